"""
Projection of availability blocks and booked events onto concrete intervals.

Weekly and one-off blocks are normalized here into ``TaggedInterval``
values; everything downstream works on concrete intervals only.
"""

import logging
from typing import Iterable, List, Optional

from pendulum import DateTime

from .exceptions import InvalidIntervalError
from .models import (
    MINUTES_PER_DAY,
    AbsoluteRecurrence,
    AvailabilityBlock,
    BookedEvent,
    TaggedInterval,
    TimeRange,
    WeeklyRecurrence,
    is_aware,
)

logger = logging.getLogger(__name__)


def sunday_based_weekday(dt: DateTime) -> int:
    """Return the weekday with 0=Sunday, matching stored availability records."""
    return dt.isoweekday() % 7


class TimelineMaterializer:
    """
    Turns availability blocks into ordered, window-clamped intervals.

    Algorithm:
    1. Walk every calendar day touched by the window (in the window timezone)
    2. Project weekly blocks onto the days matching their day of week
    3. Take absolute blocks as they are
    4. Clamp everything to the window and drop empty or invalid results
    5. Sort by start, then class > time off > available
    """

    def __init__(self, timezone: Optional[str] = None):
        self.timezone = timezone

    def materialize(
        self,
        blocks: Iterable[AvailabilityBlock],
        window_start: DateTime,
        window_end: DateTime,
    ) -> List[TaggedInterval]:
        """
        Materialize blocks inside ``[window_start, window_end)``.

        Blocks that cannot produce a valid interval are skipped with a
        warning; a single corrupt block never empties the result.
        """
        if window_start >= window_end:
            return []

        window = TimeRange(start=window_start, end=window_end)
        local_start = self._localize(window_start)
        local_end = self._localize(window_end)

        intervals: List[TaggedInterval] = []

        for block in blocks:
            if isinstance(block.recurrence, WeeklyRecurrence):
                ranges = self._weekly_occurrences(block, local_start, local_end)
            elif isinstance(block.recurrence, AbsoluteRecurrence):
                ranges = self._absolute_occurrence(block)
            else:
                logger.warning("Skipping block %s with unknown recurrence", block.id)
                continue

            for time_range in ranges:
                clipped = time_range.clip(window.start, window.end)
                if clipped is None:
                    continue
                intervals.append(
                    TaggedInterval(
                        time_range=clipped,
                        kind=block.kind,
                        source_ids=(block.id,),
                        label=block.label,
                    )
                )

        intervals.sort(key=TaggedInterval.sort_key)
        return intervals

    def _localize(self, dt: DateTime) -> DateTime:
        if self.timezone:
            return dt.in_timezone(self.timezone)
        return dt

    def _weekly_occurrences(
        self,
        block: AvailabilityBlock,
        local_start: DateTime,
        local_end: DateTime,
    ) -> List[TimeRange]:
        recurrence = block.recurrence
        occurrences: List[TimeRange] = []

        current = local_start.start_of("day")
        while current < local_end:
            if sunday_based_weekday(current) == recurrence.day_of_week:
                occurrence = self._occurrence_on(block, current)
                if occurrence is not None:
                    occurrences.append(occurrence)
            current = current.add(days=1)

        return occurrences

    def _occurrence_on(self, block: AvailabilityBlock, day: DateTime) -> TimeRange | None:
        recurrence = block.recurrence
        start = day.at(recurrence.start_minute // 60, recurrence.start_minute % 60)
        if recurrence.end_minute == MINUTES_PER_DAY:
            end = day.add(days=1).start_of("day")
        else:
            end = day.at(recurrence.end_minute // 60, recurrence.end_minute % 60)

        try:
            return TimeRange(start=start, end=end)
        except InvalidIntervalError:
            logger.warning(
                "Dropping weekly block %s: %s-%s is not a valid interval",
                block.id,
                recurrence.start_clock,
                recurrence.end_clock,
            )
            return None

    def _absolute_occurrence(self, block: AvailabilityBlock) -> List[TimeRange]:
        recurrence = block.recurrence
        try:
            return [TimeRange(start=recurrence.start, end=recurrence.end)]
        except InvalidIntervalError:
            logger.warning(
                "Dropping block %s: end %s is not after start %s",
                block.id,
                recurrence.end,
                recurrence.start,
            )
            return []
        except TypeError:
            logger.warning("Dropping block %s: malformed timestamps", block.id)
            return []


def materialize(
    blocks: Iterable[AvailabilityBlock],
    window_start: DateTime,
    window_end: DateTime,
    timezone: Optional[str] = None,
) -> List[TaggedInterval]:
    """Convenience wrapper around ``TimelineMaterializer.materialize``."""
    return TimelineMaterializer(timezone=timezone).materialize(blocks, window_start, window_end)


def materialize_events(
    events: Iterable[BookedEvent],
    window_start: DateTime,
    window_end: DateTime,
    *,
    include_inactive: bool = False,
) -> List[TaggedInterval]:
    """
    Clamp booked events to the window as tagged intervals.

    Completed and cancelled events are left out unless ``include_inactive``
    is set; they never occupy time.
    """
    intervals: List[TaggedInterval] = []

    for event in events:
        if not include_inactive and not event.is_active:
            continue
        if not (is_aware(event.start) and is_aware(event.end)):
            logger.warning("Dropping event %s: malformed timestamps", event.id)
            continue
        try:
            time_range = event.time_range
        except InvalidIntervalError:
            logger.warning("Dropping event %s: end is not after start", event.id)
            continue

        clipped = time_range.clip(window_start, window_end)
        if clipped is None:
            continue
        intervals.append(
            TaggedInterval(
                time_range=clipped,
                kind=event.kind,
                source_ids=(event.id,),
                status=event.status,
                label=event.label,
            )
        )

    intervals.sort(key=TaggedInterval.sort_key)
    return intervals
