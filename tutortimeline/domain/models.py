"""
Domain models for availability blocks, booked events and timeline entries.
"""

from dataclasses import dataclass, field
from datetime import datetime, time
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple, Union

from pendulum import DateTime

from .exceptions import AmbiguousRecurrenceError, InvalidIntervalError

MINUTES_PER_DAY = 24 * 60


def round_minutes(seconds: float) -> int:
    """Convert seconds to whole minutes, rounding half up."""
    return int((seconds + 30) // 60)


def is_aware(value: object) -> bool:
    """True for a datetime carrying a timezone."""
    return isinstance(value, datetime) and value.tzinfo is not None


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable half-open time range ``[start, end)``.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidIntervalError(
                f"Start time {self.start} must be before end time {self.end}"
            )

    def duration_seconds(self) -> float:
        return (self.end - self.start).total_seconds()

    def duration_minutes(self) -> int:
        """Return the duration in whole minutes, rounded to nearest."""
        return round_minutes(self.duration_seconds())

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another. Touching ranges do not."""
        return self.start < other.end and self.end > other.start

    def contains(self, other: "TimeRange") -> bool:
        """Check if ``other`` lies entirely inside this range."""
        return self.start <= other.start and other.end <= self.end

    def contains_instant(self, instant: DateTime) -> bool:
        return self.start <= instant < self.end

    def intersect(self, other: "TimeRange") -> "TimeRange | None":
        """
        Calculate the intersection of two time ranges.
        Returns None if there is no overlap.
        """
        if not self.overlaps(other):
            return None

        start = max(self.start, other.start)
        end = min(self.end, other.end)

        return TimeRange(start=start, end=end)

    def clip(self, window_start: DateTime, window_end: DateTime) -> "TimeRange | None":
        """Clamp the range to a window, returning None when nothing remains."""
        if self.end <= window_start or self.start >= window_end:
            return None
        return TimeRange(
            start=max(self.start, window_start),
            end=min(self.end, window_end),
        )

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


class BlockKind(Enum):
    """Kinds of tutor-declared availability blocks."""
    AVAILABLE = "available"
    TIME_OFF = "time_off"
    CLASS = "class"


class EventKind(Enum):
    """Kinds of booked events occupying a calendar."""
    LESSON = "lesson"
    CLASS = "class"
    OFFICE_HOURS = "office_hours"


class EventStatus(Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ACTIVE_STATUSES: FrozenSet[EventStatus] = frozenset(
    {EventStatus.SCHEDULED, EventStatus.IN_PROGRESS}
)

STATUS_TRANSITIONS: Dict[EventStatus, FrozenSet[EventStatus]] = {
    EventStatus.SCHEDULED: frozenset({EventStatus.IN_PROGRESS, EventStatus.CANCELLED}),
    EventStatus.IN_PROGRESS: frozenset({EventStatus.COMPLETED, EventStatus.CANCELLED}),
    EventStatus.COMPLETED: frozenset(),
    EventStatus.CANCELLED: frozenset(),
}

# Lower value wins when two intervals start at the same instant.
KIND_PRIORITY: Dict[Union[BlockKind, EventKind], int] = {
    EventKind.LESSON: 0,
    EventKind.CLASS: 0,
    EventKind.OFFICE_HOURS: 0,
    BlockKind.CLASS: 1,
    BlockKind.TIME_OFF: 2,
    BlockKind.AVAILABLE: 3,
}


def parse_clock(value: str, *, allow_midnight_end: bool = False) -> int:
    """
    Parse an ``HH:MM`` string into minutes since midnight.

    ``24:00`` is accepted only as an end time and maps to the next midnight.

    Raises:
        AmbiguousRecurrenceError: If the string is not a valid time of day
    """
    try:
        hour_str, minute_str = value.strip().split(":")
        hour, minute = int(hour_str), int(minute_str)
    except (AttributeError, ValueError) as exc:
        raise AmbiguousRecurrenceError(f"Invalid time of day: {value!r}") from exc

    if allow_midnight_end and hour == 24 and minute == 0:
        return MINUTES_PER_DAY
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise AmbiguousRecurrenceError(f"Invalid time of day: {value!r}")
    return hour * 60 + minute


def format_clock(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


@dataclass(frozen=True)
class WeeklyRecurrence:
    """
    A block repeating every week on ``day_of_week`` (0=Sunday, 6=Saturday).

    Local times are stored as minutes since midnight; an end of 1440 means
    the block runs until the following midnight.
    """
    day_of_week: int
    start_minute: int
    end_minute: int

    def __post_init__(self):
        if not isinstance(self.day_of_week, int) or not 0 <= self.day_of_week <= 6:
            raise AmbiguousRecurrenceError(
                f"day_of_week must be between 0 and 6, got {self.day_of_week!r}"
            )
        if not 0 <= self.start_minute < MINUTES_PER_DAY:
            raise AmbiguousRecurrenceError(f"Invalid start minute {self.start_minute}")
        if not 0 < self.end_minute <= MINUTES_PER_DAY:
            raise AmbiguousRecurrenceError(f"Invalid end minute {self.end_minute}")

    @classmethod
    def from_clock(cls, day_of_week: int, start: str, end: str) -> "WeeklyRecurrence":
        return cls(
            day_of_week=day_of_week,
            start_minute=parse_clock(start),
            end_minute=parse_clock(end, allow_midnight_end=True),
        )

    @property
    def start_time(self) -> time:
        return time(self.start_minute // 60, self.start_minute % 60)

    @property
    def start_clock(self) -> str:
        return format_clock(self.start_minute)

    @property
    def end_clock(self) -> str:
        return format_clock(self.end_minute)


@dataclass(frozen=True)
class AbsoluteRecurrence:
    """A one-off block with explicit timestamps."""
    start: DateTime
    end: DateTime


Recurrence = Union[WeeklyRecurrence, AbsoluteRecurrence]


@dataclass(frozen=True)
class AvailabilityBlock:
    """A tutor-declared block of availability, time off or class time."""
    id: str
    kind: BlockKind
    recurrence: Recurrence
    label: str = "Available"
    color: str = "#4A90E2"

    @property
    def is_weekly(self) -> bool:
        return isinstance(self.recurrence, WeeklyRecurrence)


@dataclass(frozen=True)
class BookedEvent:
    """A lesson, class or office-hours session on a participant's calendar."""
    id: str
    kind: EventKind
    start: DateTime
    end: DateTime
    status: EventStatus = EventStatus.SCHEDULED
    participant_ids: Tuple[str, ...] = ()
    label: str = ""
    created_at: Optional[DateTime] = None

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def can_transition_to(self, status: EventStatus) -> bool:
        return status in STATUS_TRANSITIONS[self.status]


@dataclass(frozen=True)
class TaggedInterval:
    """
    A concrete interval tagged with the kind of block or event it came from.

    ``source_ids`` lists every block or event that contributed; merged
    availability runs carry more than one.
    """
    time_range: TimeRange
    kind: Union[BlockKind, EventKind]
    source_ids: Tuple[str, ...] = ()
    status: Optional[EventStatus] = None
    label: str = ""

    @property
    def start(self) -> DateTime:
        return self.time_range.start

    @property
    def end(self) -> DateTime:
        return self.time_range.end

    @property
    def is_booking(self) -> bool:
        return isinstance(self.kind, EventKind)

    @property
    def is_available(self) -> bool:
        return self.kind is BlockKind.AVAILABLE

    @property
    def is_active_booking(self) -> bool:
        return self.is_booking and (self.status is None or self.status in ACTIVE_STATUSES)

    def sort_key(self) -> Tuple[DateTime, int]:
        return (self.start, KIND_PRIORITY[self.kind])


class EntryType(Enum):
    EVENT = "event"
    FREE = "free"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class TimelineEntry:
    """One piece of a rendered day timeline. Never persisted."""
    type: EntryType
    time_range: TimeRange
    metadata: Dict[str, object] = field(default_factory=dict, hash=False, compare=False)

    def duration_minutes(self) -> int:
        return self.time_range.duration_minutes()
