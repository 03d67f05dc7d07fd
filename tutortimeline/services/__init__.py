"""
Service layer helpers that orchestrate snapshot sources and domain logic.
"""

from .timeline_service import (
    AvailabilitySource,
    ClassInvitationSource,
    DayTimeline,
    EventSource,
    Snapshot,
    TimelineService,
)

__all__ = [
    "AvailabilitySource",
    "ClassInvitationSource",
    "DayTimeline",
    "EventSource",
    "Snapshot",
    "TimelineService",
]
