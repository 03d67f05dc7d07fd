"""
Free/busy calculation over merged intervals.

This is pure domain logic without any external dependencies (no API calls,
no database, no I/O).
"""

from dataclasses import dataclass, field
from typing import Iterable, List

from pendulum import DateTime

from .models import (
    EntryType,
    TaggedInterval,
    TimeRange,
    TimelineEntry,
)


@dataclass(frozen=True)
class FreeBusyResult:
    """Free minutes plus a partition of the window into timeline entries."""
    free_minutes: int
    available_minutes: int
    timeline: List[TimelineEntry] = field(default_factory=list, hash=False)

    @property
    def free_hours(self) -> float:
        return round(self.free_minutes / 60, 1)

    @property
    def total_availability_hours(self) -> float:
        return round(self.available_minutes / 60, 1)

    def free_entries(self) -> List[TimelineEntry]:
        return [entry for entry in self.timeline if entry.type is EntryType.FREE]

    def event_entries(self) -> List[TimelineEntry]:
        return [entry for entry in self.timeline if entry.type is EntryType.EVENT]


class FreeBusyCalculator:
    """
    Computes bookable free time and a day timeline.

    Free time only exists inside declared availability: an unbooked gap with
    no availability block is reported as ``unavailable``, never as free.
    """

    def calculate(
        self,
        intervals: Iterable[TaggedInterval],
        window_start: DateTime,
        window_end: DateTime,
    ) -> FreeBusyResult:
        if window_start >= window_end:
            return FreeBusyResult(free_minutes=0, available_minutes=0, timeline=[])

        window = TimeRange(start=window_start, end=window_end)
        available_runs: List[TimeRange] = []
        occupiers: List[TaggedInterval] = []

        for interval in intervals:
            clipped = interval.time_range.clip(window.start, window.end)
            if clipped is None:
                continue
            if interval.is_available:
                available_runs.append(clipped)
            elif interval.is_booking and not interval.is_active_booking:
                continue
            else:
                occupiers.append(
                    TaggedInterval(
                        time_range=clipped,
                        kind=interval.kind,
                        source_ids=interval.source_ids,
                        status=interval.status,
                        label=interval.label,
                    )
                )

        available_runs = self._union(available_runs)
        occupiers.sort(key=TaggedInterval.sort_key)

        available_minutes = sum(run.duration_minutes() for run in available_runs)
        free_minutes = self._free_minutes(
            available_minutes,
            available_runs,
            [o for o in occupiers if o.is_booking],
            window,
        )
        timeline = self._partition(window, available_runs, occupiers)

        return FreeBusyResult(
            free_minutes=free_minutes,
            available_minutes=available_minutes,
            timeline=timeline,
        )

    @staticmethod
    def _free_minutes(
        available_minutes: int,
        available_runs: List[TimeRange],
        bookings: List[TaggedInterval],
        window: TimeRange,
    ) -> int:
        """
        Available minutes minus the minutes of bookings that touch availability.

        A booking placed outside every available run does not reduce the total.
        A booking that touches availability counts with its full (window
        clipped) duration, even the part running past the available run, so
        the result can be lower than the sum of the free timeline entries.

        Example:
        Available: 09:00-09:30, lesson 09:15-10:30
        Result: 0 free minutes, while the timeline shows free 09:00-09:15
        """
        booked_minutes = sum(
            booking.time_range.duration_minutes()
            for booking in bookings
            if any(booking.time_range.overlaps(run) for run in available_runs)
        )
        free = max(0, available_minutes - booked_minutes)
        return min(free, window.duration_minutes())

    @staticmethod
    def _union(ranges: List[TimeRange]) -> List[TimeRange]:
        """Collapse overlapping or touching ranges."""
        if not ranges:
            return []

        sorted_ranges = sorted(ranges, key=lambda r: r.start)
        merged: List[TimeRange] = [sorted_ranges[0]]

        for current in sorted_ranges[1:]:
            last = merged[-1]
            if current.start <= last.end:
                merged[-1] = TimeRange(start=last.start, end=max(last.end, current.end))
            else:
                merged.append(current)

        return merged

    def _partition(
        self,
        window: TimeRange,
        available_runs: List[TimeRange],
        occupiers: List[TaggedInterval],
    ) -> List[TimelineEntry]:
        """
        Walk the occupiers with a cursor and fill the gaps between them.

        Overlapping occupiers are trimmed so that each instant of the window
        belongs to exactly one entry.
        """
        entries: List[TimelineEntry] = []
        cursor = window.start

        for occupier in occupiers:
            if occupier.end <= cursor:
                continue

            segment_start = max(occupier.start, cursor)
            if segment_start > cursor:
                entries.extend(self._fill_gap(TimeRange(start=cursor, end=segment_start), available_runs))

            entries.append(
                TimelineEntry(
                    type=EntryType.EVENT,
                    time_range=TimeRange(start=segment_start, end=occupier.end),
                    metadata={
                        "kind": occupier.kind.value,
                        "source_ids": occupier.source_ids,
                        "status": occupier.status.value if occupier.status else None,
                        "label": occupier.label,
                    },
                )
            )
            cursor = occupier.end

        if cursor < window.end:
            entries.extend(self._fill_gap(TimeRange(start=cursor, end=window.end), available_runs))

        return entries

    @staticmethod
    def _fill_gap(gap: TimeRange, available_runs: List[TimeRange]) -> List[TimelineEntry]:
        """
        Split an unoccupied gap into free and unavailable pieces.

        Example:
        Gap: 08:00 - 12:00
        Available: [09:00-10:00, 11:00-13:00]
        Result: [unavailable 08-09, free 09-10, unavailable 10-11, free 11-12]
        """
        entries: List[TimelineEntry] = []
        cursor = gap.start

        for run in available_runs:
            piece = run.intersect(gap)
            if piece is None:
                continue
            if piece.start > cursor:
                entries.append(
                    TimelineEntry(type=EntryType.UNAVAILABLE, time_range=TimeRange(start=cursor, end=piece.start))
                )
            entries.append(TimelineEntry(type=EntryType.FREE, time_range=piece))
            cursor = piece.end

        if cursor < gap.end:
            entries.append(
                TimelineEntry(type=EntryType.UNAVAILABLE, time_range=TimeRange(start=cursor, end=gap.end))
            )

        return entries


def free_busy(
    intervals: Iterable[TaggedInterval],
    window_start: DateTime,
    window_end: DateTime,
) -> FreeBusyResult:
    """Convenience wrapper around ``FreeBusyCalculator.calculate``."""
    return FreeBusyCalculator().calculate(intervals, window_start, window_end)


def visible_day_window(day: DateTime, start_hour: int = 6, end_hour: int = 23) -> TimeRange:
    """Return the calendar's visible hours for the given day."""
    midnight = day.start_of("day")
    end = midnight.add(days=1) if end_hour == 24 else midnight.at(end_hour)
    return TimeRange(start=midnight.at(start_hour), end=end)
