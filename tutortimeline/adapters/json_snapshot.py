"""
File-backed snapshot source for running the engine without a backend.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from pendulum import DateTime

from ..domain.exceptions import DependencyUnavailableError, TimelineError
from ..domain.models import AvailabilityBlock, BookedEvent, TimeRange
from .snapshot_parser import (
    accepted_class_interval,
    parse_availability_block,
    parse_class,
    parse_lesson,
)

logger = logging.getLogger(__name__)


class JsonSnapshotSource:
    """
    Serves availability, events and class invitations from a JSON file.

    Expected layout::

        {
          "availability": {"<tutor id>": [<availability record>, ...]},
          "lessons": [<lesson record>, ...],
          "classes": [<class record>, ...]
        }

    Malformed records are skipped with a warning. A missing or unreadable
    file raises ``DependencyUnavailableError`` from every getter so callers
    can apply their failure policy.
    """

    def __init__(self, path: Path, timezone: str = "America/New_York"):
        self.path = path
        self.timezone = timezone
        self._data: Dict[str, Any] | None = None

    def _load(self) -> Dict[str, Any]:
        if self._data is not None:
            return self._data

        if not self.path.exists():
            raise DependencyUnavailableError(f"Snapshot file not found: {self.path}")

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise DependencyUnavailableError(f"Cannot read snapshot {self.path}: {exc}") from exc

        if not isinstance(data, dict):
            raise DependencyUnavailableError("Snapshot file must contain a JSON object.")

        self._data = data
        return data

    async def get_availability(self, tutor_id: str) -> List[AvailabilityBlock]:
        """Return the tutor's availability blocks."""
        records = self._load().get("availability", {}).get(tutor_id, [])
        blocks: List[AvailabilityBlock] = []

        for record in records:
            try:
                blocks.append(parse_availability_block(record, self.timezone))
            except TimelineError as exc:
                logger.warning("Skipping availability record for %s: %s", tutor_id, exc)

        return blocks

    async def get_events(
        self,
        participant_id: str,
        start_time: DateTime,
        end_time: DateTime,
    ) -> List[BookedEvent]:
        """Return lessons and classes of the participant overlapping the window."""
        data = self._load()
        events: List[BookedEvent] = []

        for parser, records in (
            (parse_lesson, data.get("lessons", [])),
            (parse_class, data.get("classes", [])),
        ):
            for record in records:
                try:
                    event = parser(record, self.timezone)
                except TimelineError as exc:
                    logger.warning("Skipping event record: %s", exc)
                    continue

                if participant_id not in event.participant_ids:
                    continue
                if event.start < end_time and event.end > start_time:
                    events.append(event)

        return sorted(events, key=lambda e: e.start)

    async def get_accepted_class_intervals(
        self,
        participant_id: str,
        start_time: DateTime,
        end_time: DateTime,
    ) -> List[TimeRange]:
        """Return classes the participant accepted that are not cancelled."""
        intervals: List[TimeRange] = []

        for record in self._load().get("classes", []):
            try:
                interval = accepted_class_interval(record, participant_id, self.timezone)
            except TimelineError as exc:
                logger.warning("Skipping class record: %s", exc)
                continue

            if interval is not None and interval.start < end_time and interval.end > start_time:
                intervals.append(interval)

        return sorted(intervals, key=lambda r: r.start)
