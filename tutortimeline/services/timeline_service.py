"""
Application services for rendering tutor timelines and checking bookings.

The service fetches consistent snapshots through source protocols and
delegates all calculation to the pure domain layer. This keeps the CLI thin
and lets tests replace the backend with simple stubs.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Awaitable, Dict, FrozenSet, Iterable, List, Optional, Protocol, Tuple

from pendulum import DateTime

from ..config import EngineDefaults
from ..domain.conflicts import ConflictDetector, ConflictResult, CurrentlyBusy
from ..domain.free_busy import FreeBusyCalculator, FreeBusyResult, visible_day_window
from ..domain.materializer import TimelineMaterializer, materialize_events
from ..domain.merger import IntervalMerger
from ..domain.models import AvailabilityBlock, BookedEvent, TimeRange
from ..domain.stores import AvailabilityStore, BookedEventStore

logger = logging.getLogger(__name__)

AVAILABILITY = "availability"
EVENTS = "events"
INVITATIONS = "invitations"


class AvailabilitySource(Protocol):
    """Protocol describing where a tutor's availability blocks come from."""

    async def get_availability(self, tutor_id: str) -> List[AvailabilityBlock]:
        """Return the tutor's declared blocks."""


class EventSource(Protocol):
    """Protocol describing where lessons and classes come from."""

    async def get_events(
        self,
        participant_id: str,
        start_time: DateTime,
        end_time: DateTime,
    ) -> List[BookedEvent]:
        """Return events of the participant overlapping the window."""


class ClassInvitationSource(Protocol):
    """Protocol describing the class-membership collaborator."""

    async def get_accepted_class_intervals(
        self,
        participant_id: str,
        start_time: DateTime,
        end_time: DateTime,
    ) -> List[TimeRange]:
        """Return accepted, non-cancelled classes overlapping the window."""


@dataclass(frozen=True)
class Snapshot:
    """Data fetched together for one request."""
    availability: AvailabilityStore = field(default_factory=AvailabilityStore)
    events: BookedEventStore = field(default_factory=BookedEventStore)
    accepted_classes: Tuple[TimeRange, ...] = ()
    missing: FrozenSet[str] = frozenset()

    def is_missing(self, name: str) -> bool:
        return name in self.missing


@dataclass(frozen=True)
class DayTimeline:
    """A rendered day: the free/busy result plus the events to draw."""
    window: TimeRange
    result: FreeBusyResult
    visible_events: List[BookedEvent] = field(default_factory=list, hash=False)

    @property
    def free_hours(self) -> float:
        return self.result.free_hours

    @property
    def total_availability_hours(self) -> float:
        return self.result.total_availability_hours


class TimelineService:
    """
    Orchestrates snapshot retrieval, timeline calculation and conflict checks.

    Dependency inversion toward protocols makes it easy to plug in the real
    booking backend, the JSON snapshot adapter, or stubs in tests.
    """

    def __init__(
        self,
        availability_source: AvailabilitySource,
        event_source: EventSource,
        invitation_source: Optional[ClassInvitationSource] = None,
        defaults: Optional[EngineDefaults] = None,
        timezone: Optional[str] = None,
    ) -> None:
        self._availability_source = availability_source
        self._event_source = event_source
        self._invitation_source = invitation_source
        self._defaults = defaults or EngineDefaults()
        self._timezone = timezone

        self._materializer = TimelineMaterializer(timezone=timezone)
        self._merger = IntervalMerger(gap_tolerance=self._defaults.gap_tolerance)
        self._calculator = FreeBusyCalculator()
        self._detector = ConflictDetector(
            lead_time=self._defaults.lead_time,
            office_hours_buffer=self._defaults.office_hours_buffer,
            office_hours_max_ahead=self._defaults.office_hours_max_ahead,
        )

    async def load_snapshot(
        self,
        participant_id: str,
        start_time: DateTime,
        end_time: DateTime,
        *,
        include_availability: bool = True,
        include_invitations: bool = False,
    ) -> Snapshot:
        """
        Fetch every requested set concurrently and wait for all of them.

        A set whose source fails is logged, recorded in ``missing`` and
        treated as empty. Blocking a legitimate booking is considered worse
        than letting a rare conflict through.
        """
        requests: Dict[str, Awaitable] = {
            EVENTS: self._event_source.get_events(participant_id, start_time, end_time),
        }
        if include_availability:
            requests[AVAILABILITY] = self._availability_source.get_availability(participant_id)
        if include_invitations:
            if self._invitation_source is None:
                logger.warning(
                    "No class invitation source configured; treating invitations of %s as empty",
                    participant_id,
                )
            else:
                requests[INVITATIONS] = self._invitation_source.get_accepted_class_intervals(
                    participant_id, start_time, end_time
                )

        results = await asyncio.gather(*requests.values(), return_exceptions=True)

        loaded: Dict[str, Iterable] = {}
        missing: List[str] = []
        for name, result in zip(requests.keys(), results):
            if isinstance(result, Exception):
                logger.warning(
                    "Could not load %s for %s, continuing without it: %s",
                    name,
                    participant_id,
                    result,
                )
                missing.append(name)
                continue
            if isinstance(result, BaseException):
                raise result
            loaded[name] = result

        if include_invitations and self._invitation_source is None:
            missing.append(INVITATIONS)

        return Snapshot(
            availability=AvailabilityStore(blocks=tuple(loaded.get(AVAILABILITY, ()))),
            events=BookedEventStore(events=tuple(loaded.get(EVENTS, ()))),
            accepted_classes=tuple(loaded.get(INVITATIONS, ())),
            missing=frozenset(missing),
        )

    def calculate_timeline(
        self,
        blocks: Iterable[AvailabilityBlock],
        events: Iterable[BookedEvent],
        window_start: DateTime,
        window_end: DateTime,
    ) -> FreeBusyResult:
        """Materialize, merge and partition a window."""
        intervals = self._materializer.materialize(blocks, window_start, window_end)
        intervals.extend(materialize_events(events, window_start, window_end))
        merged = self._merger.merge(intervals)
        return self._calculator.calculate(merged, window_start, window_end)

    def _visible_window(self, day: DateTime) -> TimeRange:
        local_day = day.in_timezone(self._timezone) if self._timezone else day
        return visible_day_window(
            local_day,
            start_hour=self._defaults.visible_start_hour,
            end_hour=self._defaults.visible_end_hour,
        )

    def _render_day(self, snapshot: Snapshot, window: TimeRange) -> DayTimeline:
        result = self.calculate_timeline(
            snapshot.availability.blocks,
            snapshot.events.events,
            window.start,
            window.end,
        )
        return DayTimeline(
            window=window,
            result=result,
            visible_events=snapshot.events.visible_events(window.start, window.end),
        )

    async def day_timeline(self, tutor_id: str, day: DateTime) -> DayTimeline:
        """Render the visible hours of one day for a tutor."""
        window = self._visible_window(day)
        snapshot = await self.load_snapshot(tutor_id, window.start, window.end)
        return self._render_day(snapshot, window)

    async def week_timeline(self, tutor_id: str, reference: DateTime) -> List[DayTimeline]:
        """Render Monday through Sunday of the week containing ``reference``."""
        local = reference.in_timezone(self._timezone) if self._timezone else reference
        monday = local.start_of("week")
        windows = [self._visible_window(monday.add(days=offset)) for offset in range(7)]

        snapshot = await self.load_snapshot(tutor_id, windows[0].start, windows[-1].end)
        return [self._render_day(snapshot, window) for window in windows]

    async def public_availability(self, tutor_id: str, now: DateTime) -> AvailabilityStore:
        """
        Blocks of a tutor that students may see at ``now``.

        Class blocks and one-off blocks older than ``stale_block_days`` are
        hidden. Unavailable availability data yields an empty store.
        """
        results = await asyncio.gather(
            self._availability_source.get_availability(tutor_id),
            return_exceptions=True,
        )
        blocks = results[0]
        if isinstance(blocks, Exception):
            logger.warning(
                "Could not load %s for %s, continuing without it: %s",
                AVAILABILITY,
                tutor_id,
                blocks,
            )
            return AvailabilityStore()
        if isinstance(blocks, BaseException):
            raise blocks

        store = AvailabilityStore(blocks=tuple(blocks))
        return store.public_view(now, stale_after_days=self._defaults.stale_block_days)

    async def check_booking(
        self,
        participant_id: str,
        proposed: TimeRange,
        now: DateTime,
    ) -> Optional[ConflictResult]:
        """Check a lesson a participant wants to book, including lead time."""
        snapshot = await self.load_snapshot(
            participant_id,
            proposed.start,
            proposed.end,
            include_availability=False,
            include_invitations=True,
        )
        return self._detector.check_conflict(
            proposed,
            None if snapshot.is_missing(EVENTS) else snapshot.events.active(),
            None if snapshot.is_missing(INVITATIONS) else snapshot.accepted_classes,
            now=now,
        )

    async def check_class_invitation(
        self,
        student_id: str,
        class_id: str,
        class_range: TimeRange,
    ) -> Optional[ConflictResult]:
        """Check whether a student can accept an invitation to a class."""
        snapshot = await self.load_snapshot(
            student_id,
            class_range.start,
            class_range.end,
            include_availability=False,
            include_invitations=True,
        )
        return self._detector.check_conflict(
            class_range,
            None if snapshot.is_missing(EVENTS) else snapshot.events.active(),
            None if snapshot.is_missing(INVITATIONS) else snapshot.accepted_classes,
            exclude_event_id=class_id,
        )

    async def check_office_hours(self, tutor_id: str, now: DateTime) -> Optional[CurrentlyBusy]:
        """Decide whether a tutor may switch on instant availability."""
        horizon = now + self._defaults.office_hours_buffer + timedelta(minutes=1)
        snapshot = await self.load_snapshot(tutor_id, now, horizon, include_availability=False)
        return self._detector.check_currently_busy(
            now,
            None if snapshot.is_missing(EVENTS) else snapshot.events.active(),
        )

    async def check_office_hours_booking(
        self,
        tutor_id: str,
        proposed: TimeRange,
        now: DateTime,
    ) -> Optional[ConflictResult]:
        """Check a scheduled office-hours session requested by a student."""
        snapshot = await self.load_snapshot(
            tutor_id, proposed.start, proposed.end, include_availability=False
        )
        return self._detector.check_office_hours_booking(
            proposed,
            None if snapshot.is_missing(EVENTS) else snapshot.events.active(),
            now,
        )
