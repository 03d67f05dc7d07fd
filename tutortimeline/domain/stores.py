"""
Immutable snapshots of a tutor's availability blocks and booked events.

Every editing operation returns a new store; nothing is mutated in place.
"""

import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Dict, Iterable, List, Optional, Set, Tuple

from pendulum import DateTime

from .exceptions import InvalidTransitionError
from .models import (
    AbsoluteRecurrence,
    AvailabilityBlock,
    BlockKind,
    BookedEvent,
    EventStatus,
    WeeklyRecurrence,
)

logger = logging.getLogger(__name__)

DEFAULT_STALE_BLOCK_DAYS = 7


@dataclass(frozen=True)
class AvailabilityStore:
    """A participant's declared availability blocks."""
    blocks: Tuple[AvailabilityBlock, ...] = ()

    def __iter__(self):
        return iter(self.blocks)

    def __len__(self) -> int:
        return len(self.blocks)

    def weekly_blocks(self) -> List[AvailabilityBlock]:
        return [block for block in self.blocks if block.is_weekly]

    def absolute_blocks(self) -> List[AvailabilityBlock]:
        return [block for block in self.blocks if not block.is_weekly]

    def find(self, block_id: str) -> Optional[AvailabilityBlock]:
        for block in self.blocks:
            if block.id == block_id:
                return block
        return None

    def add(self, block: AvailabilityBlock) -> "AvailabilityStore":
        if self.find(block.id) is not None:
            raise ValueError(f"Duplicate availability block id: {block.id}")
        return AvailabilityStore(blocks=self.blocks + (block,))

    def remove_block(self, block_id: str) -> "AvailabilityStore":
        return AvailabilityStore(
            blocks=tuple(block for block in self.blocks if block.id != block_id)
        )

    def add_class_block(
        self,
        class_id: str,
        start: DateTime,
        end: DateTime,
        label: str = "Class",
        color: str = "#8E44AD",
    ) -> "AvailabilityStore":
        """Record the one-off block created when a class is scheduled."""
        block = AvailabilityBlock(
            id=f"class-{class_id}",
            kind=BlockKind.CLASS,
            recurrence=AbsoluteRecurrence(start=start, end=end),
            label=label,
            color=color,
        )
        return self.add(block)

    def cancel_class_block(self, class_id: str) -> "AvailabilityStore":
        return self.remove_block(f"class-{class_id}")

    def replace_dated_blocks(self, new_blocks: Iterable[AvailabilityBlock]) -> "AvailabilityStore":
        """
        Merge freshly edited blocks into the store.

        Existing one-off blocks on any calendar date touched by a new one-off
        block are replaced; weekly blocks are always kept.
        """
        incoming = list(new_blocks)
        touched_dates: Set[date] = {
            block.recurrence.start.date()
            for block in incoming
            if isinstance(block.recurrence, AbsoluteRecurrence)
        }

        kept = [
            block for block in self.blocks
            if block.is_weekly or block.recurrence.start.date() not in touched_dates
        ]
        logger.debug(
            "Replacing dated blocks on %d date(s): keeping %d, adding %d",
            len(touched_dates),
            len(kept),
            len(incoming),
        )
        return AvailabilityStore(blocks=tuple(kept + incoming))

    def public_view(
        self,
        now: DateTime,
        stale_after_days: int = DEFAULT_STALE_BLOCK_DAYS,
    ) -> "AvailabilityStore":
        """
        Blocks a student may see: no class blocks, and no one-off blocks that
        ended before midnight ``stale_after_days`` days ago.
        """
        cutoff = now.subtract(days=stale_after_days).start_of("day")
        visible = [
            block for block in self.blocks
            if block.kind is not BlockKind.CLASS
            and (block.is_weekly or block.recurrence.end >= cutoff)
        ]
        return AvailabilityStore(blocks=tuple(visible))

    @classmethod
    def from_hour_grid(
        cls,
        cells: Iterable[Tuple[int, int]],
        color: str = "#007bff",
    ) -> "AvailabilityStore":
        """
        Build weekly ``available`` blocks from selected ``(day, hour)`` cells.

        Consecutive hours on the same day collapse into one block.

        Example:
        Cells: [(1, 9), (1, 10), (1, 14)]
        Result: Monday 09:00-11:00, Monday 14:00-15:00
        """
        by_day: Dict[int, List[int]] = {}
        for day, hour in set(cells):
            if not 0 <= hour <= 23:
                raise ValueError(f"Hour must be between 0 and 23, got {hour}")
            by_day.setdefault(day, []).append(hour)

        blocks: List[AvailabilityBlock] = []
        for day in sorted(by_day):
            hours = sorted(by_day[day])
            start_hour = hours[0]
            end_hour = hours[0] + 1

            for hour in hours[1:]:
                if hour == end_hour:
                    end_hour += 1
                else:
                    blocks.append(cls._grid_block(day, start_hour, end_hour, color))
                    start_hour = hour
                    end_hour = hour + 1

            blocks.append(cls._grid_block(day, start_hour, end_hour, color))

        return cls(blocks=tuple(blocks))

    @staticmethod
    def _grid_block(day: int, start_hour: int, end_hour: int, color: str) -> AvailabilityBlock:
        return AvailabilityBlock(
            id=f"{day}-{start_hour}-{end_hour}",
            kind=BlockKind.AVAILABLE,
            recurrence=WeeklyRecurrence(
                day_of_week=day,
                start_minute=start_hour * 60,
                end_minute=end_hour * 60,
            ),
            label="Available",
            color=color,
        )


@dataclass(frozen=True)
class BookedEventStore:
    """Lessons, classes and office-hours sessions on one calendar."""
    events: Tuple[BookedEvent, ...] = ()

    def __iter__(self):
        return iter(self.events)

    def __len__(self) -> int:
        return len(self.events)

    def find(self, event_id: str) -> Optional[BookedEvent]:
        for event in self.events:
            if event.id == event_id:
                return event
        return None

    def active(self) -> List[BookedEvent]:
        return [event for event in self.events if event.is_active]

    def for_participant(self, participant_id: str) -> "BookedEventStore":
        return BookedEventStore(
            events=tuple(e for e in self.events if participant_id in e.participant_ids)
        )

    def in_window(
        self,
        window_start: DateTime,
        window_end: DateTime,
        include_inactive: bool = False,
    ) -> List[BookedEvent]:
        return sorted(
            (
                event for event in self.events
                if (include_inactive or event.is_active)
                and event.start < window_end
                and event.end > window_start
            ),
            key=lambda e: e.start,
        )

    def with_status(self, event_id: str, status: EventStatus) -> "BookedEventStore":
        """
        Move an event to a new status following the lifecycle
        scheduled -> in_progress -> completed, with cancellation allowed from
        either of the first two.

        Raises:
            KeyError: If the event is unknown
            InvalidTransitionError: If the transition is not allowed
        """
        event = self.find(event_id)
        if event is None:
            raise KeyError(event_id)
        if not event.can_transition_to(status):
            raise InvalidTransitionError(
                f"Event {event_id} cannot move from {event.status.value} to {status.value}"
            )

        updated = replace(event, status=status)
        return BookedEventStore(
            events=tuple(updated if e.id == event_id else e for e in self.events)
        )

    def visible_events(self, window_start: DateTime, window_end: DateTime) -> List[BookedEvent]:
        """
        Events to render in a window, including crossed-out cancelled ones.

        A cancelled event is hidden when it overlaps an event that is not
        cancelled, or a cancelled event created later (equal creation times
        fall back to the higher id).
        """
        candidates = self.in_window(window_start, window_end, include_inactive=True)
        return [event for event in candidates if not self._is_superseded(event, candidates)]

    @staticmethod
    def _is_superseded(event: BookedEvent, others: List[BookedEvent]) -> bool:
        if event.status is not EventStatus.CANCELLED:
            return False

        event_created = event.created_at or event.start
        for other in others:
            if other is event:
                continue
            if not (event.start < other.end and event.end > other.start):
                continue
            if other.status is not EventStatus.CANCELLED:
                return True

            other_created = other.created_at or other.start
            if other_created > event_created:
                return True
            if other_created == event_created and other.id > event.id:
                return True

        return False
