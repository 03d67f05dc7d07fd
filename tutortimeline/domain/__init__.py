"""
Domain layer - Pure timeline logic without external dependencies.
"""

from .conflicts import (
    Conflict,
    ConflictDetector,
    ConflictResult,
    CurrentlyBusy,
    TooFarAhead,
    TooSoon,
    check_conflict,
)
from .free_busy import FreeBusyCalculator, FreeBusyResult, free_busy, visible_day_window
from .materializer import TimelineMaterializer, materialize, materialize_events
from .merger import IntervalMerger, merge
from .models import (
    AbsoluteRecurrence,
    AvailabilityBlock,
    BlockKind,
    BookedEvent,
    EntryType,
    EventKind,
    EventStatus,
    TaggedInterval,
    TimeRange,
    TimelineEntry,
    WeeklyRecurrence,
)
from .stores import AvailabilityStore, BookedEventStore

__all__ = [
    "AbsoluteRecurrence",
    "AvailabilityBlock",
    "AvailabilityStore",
    "BlockKind",
    "BookedEvent",
    "BookedEventStore",
    "Conflict",
    "ConflictDetector",
    "ConflictResult",
    "CurrentlyBusy",
    "EntryType",
    "EventKind",
    "EventStatus",
    "FreeBusyCalculator",
    "FreeBusyResult",
    "IntervalMerger",
    "TaggedInterval",
    "TimeRange",
    "TimelineEntry",
    "TimelineMaterializer",
    "TooFarAhead",
    "TooSoon",
    "WeeklyRecurrence",
    "check_conflict",
    "free_busy",
    "materialize",
    "materialize_events",
    "merge",
    "visible_day_window",
]
