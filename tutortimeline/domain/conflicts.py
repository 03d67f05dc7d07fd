"""
Booking-time conflict detection.

Results are plain values: ``None`` means the proposal is clear, any
``ConflictResult`` subclass explains why it is not. A clear result does not
reserve the slot; the persistence layer must still check atomically.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Iterable, List, Optional

from pendulum import DateTime

from .models import BookedEvent, EventKind, TimeRange, is_aware, round_minutes

logger = logging.getLogger(__name__)

DEFAULT_LEAD_TIME = timedelta(minutes=5)
DEFAULT_OFFICE_HOURS_BUFFER = timedelta(minutes=5)
DEFAULT_OFFICE_HOURS_MAX_AHEAD = timedelta(hours=24)


class ConflictResult:
    """Base class for every non-clear outcome of a conflict check."""


@dataclass(frozen=True)
class Conflict(ConflictResult):
    """The proposal overlaps an active event or an accepted class."""
    kind: EventKind
    time_range: TimeRange
    event_id: Optional[str] = None
    label: str = ""

    @property
    def from_invitation(self) -> bool:
        return self.event_id is None


@dataclass(frozen=True)
class TooSoon(ConflictResult):
    """The proposal starts within the minimum lead time."""
    earliest_start: DateTime
    lead_time: timedelta


@dataclass(frozen=True)
class TooFarAhead(ConflictResult):
    """The proposal starts beyond the furthest bookable instant."""
    latest_start: DateTime


@dataclass(frozen=True)
class CurrentlyBusy(ConflictResult):
    """The tutor is in, or about to start, an event."""
    event: BookedEvent
    minutes_until: int

    @property
    def is_current(self) -> bool:
        return self.minutes_until == 0


class ConflictDetector:
    """
    Checks proposed lessons, classes and office-hours sessions against a
    participant's calendar.

    Sets the caller could not load are passed as ``None`` and treated as
    empty (fail open); the caller is responsible for logging that.
    """

    def __init__(
        self,
        lead_time: timedelta = DEFAULT_LEAD_TIME,
        office_hours_buffer: timedelta = DEFAULT_OFFICE_HOURS_BUFFER,
        office_hours_max_ahead: timedelta = DEFAULT_OFFICE_HOURS_MAX_AHEAD,
    ):
        self.lead_time = lead_time
        self.office_hours_buffer = office_hours_buffer
        self.office_hours_max_ahead = office_hours_max_ahead

    def check_conflict(
        self,
        proposed: TimeRange,
        active_events: Optional[Iterable[BookedEvent]],
        accepted_class_invitations: Optional[Iterable[TimeRange]] = None,
        *,
        now: Optional[DateTime] = None,
        exclude_event_id: Optional[str] = None,
    ) -> Optional[ConflictResult]:
        """
        Return the reason ``proposed`` cannot be booked, or None.

        Order of checks:
        1. Lead time (only when ``now`` is given)
        2. Earliest overlapping active event
        3. Earliest overlapping accepted class invitation
        """
        if now is not None:
            too_soon = self.check_lead_time(proposed, now)
            if too_soon is not None:
                return too_soon

        for event in self._active_sorted(active_events or []):
            if event.id == exclude_event_id:
                continue
            if event.time_range.overlaps(proposed):
                return Conflict(
                    kind=event.kind,
                    time_range=event.time_range,
                    event_id=event.id,
                    label=event.label,
                )

        invitations = sorted(accepted_class_invitations or [], key=lambda r: r.start)
        for invitation in invitations:
            if invitation.overlaps(proposed):
                return Conflict(kind=EventKind.CLASS, time_range=invitation)

        return None

    def check_lead_time(self, proposed: TimeRange, now: DateTime) -> Optional[TooSoon]:
        """A proposal must start strictly more than ``lead_time`` after now."""
        earliest = now + self.lead_time
        if proposed.start <= earliest:
            return TooSoon(earliest_start=earliest, lead_time=self.lead_time)
        return None

    def check_office_hours_booking(
        self,
        proposed: TimeRange,
        active_events: Optional[Iterable[BookedEvent]],
        now: DateTime,
    ) -> Optional[ConflictResult]:
        """Validate a scheduled office-hours session against its booking window."""
        latest = now + self.office_hours_max_ahead
        if proposed.start > latest:
            return TooFarAhead(latest_start=latest)
        return self.check_conflict(proposed, active_events, now=now)

    def check_currently_busy(
        self,
        now: DateTime,
        active_events: Optional[Iterable[BookedEvent]],
    ) -> Optional[CurrentlyBusy]:
        """
        Decide whether instant availability may be switched on at ``now``.

        Busy when ``now`` falls inside an active event, or an active event
        starts within the office-hours buffer. Office-hours sessions
        themselves do not block.
        """
        horizon = now + self.office_hours_buffer

        for event in self._active_sorted(active_events or []):
            if event.kind is EventKind.OFFICE_HOURS:
                continue
            if event.time_range.contains_instant(now):
                return CurrentlyBusy(event=event, minutes_until=0)
            if now < event.start <= horizon:
                minutes = round_minutes((event.start - now).total_seconds())
                return CurrentlyBusy(event=event, minutes_until=max(minutes, 1))

        return None

    @staticmethod
    def _active_sorted(events: Iterable[BookedEvent]) -> List[BookedEvent]:
        active: List[BookedEvent] = []
        for event in events:
            if not event.is_active:
                continue
            if not (is_aware(event.start) and is_aware(event.end)):
                logger.warning("Ignoring event %s with malformed timestamps", event.id)
                continue
            if event.end <= event.start:
                logger.warning("Ignoring event %s with invalid interval", event.id)
                continue
            active.append(event)
        return sorted(active, key=lambda e: e.start)


def check_conflict(
    proposed: TimeRange,
    active_events: Optional[Iterable[BookedEvent]],
    accepted_class_invitations: Optional[Iterable[TimeRange]] = None,
    *,
    now: Optional[DateTime] = None,
    lead_time: timedelta = DEFAULT_LEAD_TIME,
) -> Optional[ConflictResult]:
    """Convenience wrapper around ``ConflictDetector.check_conflict``."""
    return ConflictDetector(lead_time=lead_time).check_conflict(
        proposed,
        active_events,
        accepted_class_invitations,
        now=now,
    )
