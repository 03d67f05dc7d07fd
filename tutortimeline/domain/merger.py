"""
Merging of availability intervals into displayable runs.
"""

import logging
from datetime import timedelta
from typing import Iterable, List, Sequence

from .models import BlockKind, TaggedInterval, TimeRange

logger = logging.getLogger(__name__)

DEFAULT_GAP_TOLERANCE = timedelta(minutes=30)


class IntervalMerger:
    """
    Merges ``available`` intervals that overlap or sit close together.

    Booked events and time-off/class blocks pass through unchanged. Active
    bookings act as hard occupiers:

    - an available interval lying entirely inside a booking is discarded
    - two available intervals are never bridged across a booking
    """

    def __init__(self, gap_tolerance: timedelta = DEFAULT_GAP_TOLERANCE):
        if gap_tolerance < timedelta(0):
            raise ValueError("gap_tolerance must not be negative")
        self.gap_tolerance = gap_tolerance

    def merge(self, intervals: Iterable[TaggedInterval]) -> List[TaggedInterval]:
        """Return bookings, blocked time and merged availability sorted by start."""
        available: List[TaggedInterval] = []
        passthrough: List[TaggedInterval] = []

        for interval in intervals:
            if interval.is_available:
                available.append(interval)
            else:
                passthrough.append(interval)

        occupied = [i.time_range for i in passthrough if i.is_active_booking]

        open_available = [
            interval for interval in available
            if not self._is_consumed(interval.time_range, occupied)
        ]
        dropped = len(available) - len(open_available)
        if dropped:
            logger.debug("Discarded %d availability interval(s) covered by bookings", dropped)

        merged = passthrough + self._merge_runs(open_available, occupied)
        merged.sort(key=TaggedInterval.sort_key)
        return merged

    @staticmethod
    def _is_consumed(time_range: TimeRange, occupied: Sequence[TimeRange]) -> bool:
        return any(booking.contains(time_range) for booking in occupied)

    def _merge_runs(
        self,
        available: List[TaggedInterval],
        occupied: Sequence[TimeRange],
    ) -> List[TaggedInterval]:
        """
        Merge sorted availability into runs.

        Example (tolerance 30 min):
        Available: [09:00-10:00, 10:15-11:00, 12:00-13:00]
        Result: [09:00-11:00, 12:00-13:00]
        """
        if not available:
            return []

        sorted_available = sorted(available, key=lambda i: i.start)
        runs: List[TaggedInterval] = [sorted_available[0]]

        for current in sorted_available[1:]:
            last = runs[-1]

            if self._can_join(last, current, occupied):
                runs[-1] = TaggedInterval(
                    time_range=TimeRange(start=last.start, end=max(last.end, current.end)),
                    kind=BlockKind.AVAILABLE,
                    source_ids=last.source_ids + tuple(
                        source for source in current.source_ids
                        if source not in last.source_ids
                    ),
                    label=last.label,
                )
            else:
                runs.append(current)

        return runs

    def _can_join(
        self,
        last: TaggedInterval,
        current: TaggedInterval,
        occupied: Sequence[TimeRange],
    ) -> bool:
        if current.start <= last.end:
            return True

        if current.start - last.end > self.gap_tolerance:
            return False

        gap = TimeRange(start=last.end, end=current.start)
        return not any(gap.overlaps(booking) for booking in occupied)


def merge(
    intervals: Iterable[TaggedInterval],
    gap_tolerance: timedelta = DEFAULT_GAP_TOLERANCE,
) -> List[TaggedInterval]:
    """Convenience wrapper around ``IntervalMerger.merge``."""
    return IntervalMerger(gap_tolerance=gap_tolerance).merge(intervals)
