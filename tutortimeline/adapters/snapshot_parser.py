"""
Conversion of stored availability, lesson and class records into domain objects.

Records use the field names of the booking backend (``startTime``,
``absoluteStart``, ``confirmedStudents`` ...).
"""

from typing import Any, Dict, List, Optional, Tuple

import pendulum
from pendulum import DateTime

from ..domain.exceptions import AmbiguousRecurrenceError, SnapshotError
from ..domain.models import (
    AbsoluteRecurrence,
    AvailabilityBlock,
    BlockKind,
    BookedEvent,
    EventKind,
    EventStatus,
    TimeRange,
    WeeklyRecurrence,
)

BLOCK_KINDS: Dict[str, BlockKind] = {
    "available": BlockKind.AVAILABLE,
    "unavailable": BlockKind.TIME_OFF,
    "break": BlockKind.TIME_OFF,
    "time_off": BlockKind.TIME_OFF,
    "class": BlockKind.CLASS,
}

LESSON_STATUSES: Dict[str, EventStatus] = {
    "scheduled": EventStatus.SCHEDULED,
    "confirmed": EventStatus.SCHEDULED,
    "pending_reschedule": EventStatus.SCHEDULED,
    "in_progress": EventStatus.IN_PROGRESS,
    "ended_early": EventStatus.COMPLETED,
    "completed": EventStatus.COMPLETED,
    "cancelled": EventStatus.CANCELLED,
}


def parse_timestamp(value: Any, timezone: str) -> DateTime:
    """Parse an ISO-8601 timestamp; naive values are read in ``timezone``."""
    if not isinstance(value, str) or not value:
        raise SnapshotError(f"Missing or non-string timestamp: {value!r}")
    try:
        parsed = pendulum.parse(value, tz=timezone)
    except (ValueError, TypeError) as exc:
        raise SnapshotError(f"Invalid timestamp {value!r}: {exc}") from exc
    if not isinstance(parsed, DateTime):
        raise SnapshotError(f"Timestamp {value!r} is not a date and time")
    return parsed


def _record_id(record: Dict[str, Any]) -> str:
    record_id = record.get("id") or record.get("_id")
    if not record_id:
        raise SnapshotError(f"Record has no id: {record!r}")
    return str(record_id)


def _day_of_week(value: Any) -> int:
    if isinstance(value, bool):
        raise AmbiguousRecurrenceError(f"Invalid day of week: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    raise AmbiguousRecurrenceError(f"Invalid day of week: {value!r}")


def parse_availability_block(record: Dict[str, Any], timezone: str) -> AvailabilityBlock:
    """
    Build an ``AvailabilityBlock`` from a stored availability record.

    Records carrying both ``absoluteStart`` and ``absoluteEnd`` are one-off
    blocks; all others repeat weekly on ``day`` between ``startTime`` and
    ``endTime``.

    Raises:
        AmbiguousRecurrenceError: If the weekly day or times are malformed
        SnapshotError: If the record is otherwise unusable
    """
    block_id = _record_id(record)
    raw_type = record.get("type", "available")
    kind = BLOCK_KINDS.get(raw_type)
    if kind is None:
        raise SnapshotError(f"Unknown availability type {raw_type!r} on block {block_id}")

    if record.get("absoluteStart") and record.get("absoluteEnd"):
        recurrence = AbsoluteRecurrence(
            start=parse_timestamp(record["absoluteStart"], timezone),
            end=parse_timestamp(record["absoluteEnd"], timezone),
        )
    else:
        recurrence = WeeklyRecurrence.from_clock(
            _day_of_week(record.get("day")),
            record.get("startTime"),
            record.get("endTime"),
        )

    return AvailabilityBlock(
        id=block_id,
        kind=kind,
        recurrence=recurrence,
        label=record.get("title") or "Available",
        color=record.get("color") or "#4A90E2",
    )


def _optional_timestamp(value: Any, timezone: str) -> Optional[DateTime]:
    if not value:
        return None
    return parse_timestamp(value, timezone)


def _participant_ids(*values: Any) -> Tuple[str, ...]:
    ids: List[str] = []
    for value in values:
        if value is None:
            continue
        items = value if isinstance(value, list) else [value]
        for item in items:
            if str(item) not in ids:
                ids.append(str(item))
    return tuple(ids)


def parse_lesson(record: Dict[str, Any], timezone: str) -> BookedEvent:
    """Build a lesson or office-hours ``BookedEvent`` from a lesson record."""
    lesson_id = _record_id(record)
    raw_status = record.get("status", "scheduled")
    status = LESSON_STATUSES.get(raw_status)
    if status is None:
        raise SnapshotError(f"Unknown lesson status {raw_status!r} on lesson {lesson_id}")

    is_office_hours = bool(record.get("isOfficeHours")) or record.get("bookingType") == "office_hours"

    return BookedEvent(
        id=lesson_id,
        kind=EventKind.OFFICE_HOURS if is_office_hours else EventKind.LESSON,
        start=parse_timestamp(record.get("startTime"), timezone),
        end=parse_timestamp(record.get("endTime"), timezone),
        status=status,
        participant_ids=_participant_ids(record.get("tutorId"), record.get("studentId")),
        label=record.get("subject", ""),
        created_at=_optional_timestamp(record.get("createdAt"), timezone),
    )


def parse_class(record: Dict[str, Any], timezone: str) -> BookedEvent:
    """Build a class ``BookedEvent``; only confirmed students are participants."""
    class_id = _record_id(record)
    raw_status = record.get("status", "scheduled")
    status = LESSON_STATUSES.get(raw_status)
    if status is None:
        raise SnapshotError(f"Unknown class status {raw_status!r} on class {class_id}")

    return BookedEvent(
        id=class_id,
        kind=EventKind.CLASS,
        start=parse_timestamp(record.get("startTime"), timezone),
        end=parse_timestamp(record.get("endTime"), timezone),
        status=status,
        participant_ids=_participant_ids(record.get("tutorId"), record.get("confirmedStudents")),
        label=record.get("name", ""),
        created_at=_optional_timestamp(record.get("createdAt"), timezone),
    )


def accepted_class_interval(
    record: Dict[str, Any],
    participant_id: str,
    timezone: str,
) -> Optional[TimeRange]:
    """
    Return the class interval when ``participant_id`` accepted its invitation
    and the class is not cancelled, otherwise None.
    """
    if record.get("status") == "cancelled":
        return None

    accepted = any(
        str(invitation.get("studentId")) == participant_id
        and invitation.get("status") == "accepted"
        for invitation in record.get("invitations", [])
    )
    if not accepted:
        return None

    return TimeRange(
        start=parse_timestamp(record.get("startTime"), timezone),
        end=parse_timestamp(record.get("endTime"), timezone),
    )
