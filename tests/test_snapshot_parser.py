"""
Tests for stored-record parsing and the JSON snapshot source.
"""

import asyncio
import json
import logging

import pendulum
import pytest

from tutortimeline.adapters.json_snapshot import JsonSnapshotSource
from tutortimeline.adapters.snapshot_parser import (
    accepted_class_interval,
    parse_availability_block,
    parse_class,
    parse_lesson,
    parse_timestamp,
)
from tutortimeline.domain.exceptions import (
    AmbiguousRecurrenceError,
    DependencyUnavailableError,
    SnapshotError,
)
from tutortimeline.domain.models import (
    AbsoluteRecurrence,
    BlockKind,
    EventKind,
    EventStatus,
    WeeklyRecurrence,
)

TZ = "Europe/Berlin"


class TestParseAvailabilityBlock:
    def test_weekly_block(self):
        block = parse_availability_block(
            {"id": "1-9-12", "day": 1, "startTime": "09:00", "endTime": "12:00", "type": "available"},
            TZ,
        )

        assert block.kind is BlockKind.AVAILABLE
        assert block.recurrence == WeeklyRecurrence(day_of_week=1, start_minute=540, end_minute=720)
        assert block.label == "Available"

    def test_string_day_is_accepted(self):
        block = parse_availability_block(
            {"id": "b", "day": "3", "startTime": "10:00", "endTime": "24:00"},
            TZ,
        )

        assert block.recurrence.day_of_week == 3
        assert block.recurrence.end_minute == 1440

    def test_absolute_block_wins_over_weekly_fields(self):
        block = parse_availability_block(
            {
                "_id": "off",
                "day": 1,
                "startTime": "12:00",
                "endTime": "13:00",
                "absoluteStart": "2024-11-25T12:00:00+01:00",
                "absoluteEnd": "2024-11-25T13:00:00+01:00",
                "type": "unavailable",
                "title": "Dentist",
            },
            TZ,
        )

        assert block.id == "off"
        assert block.kind is BlockKind.TIME_OFF
        assert isinstance(block.recurrence, AbsoluteRecurrence)
        assert block.recurrence.start == pendulum.datetime(2024, 11, 25, 11, tz="UTC")
        assert block.label == "Dentist"

    @pytest.mark.parametrize("record", [
        {"id": "x", "day": 7, "startTime": "09:00", "endTime": "10:00"},
        {"id": "x", "day": "monday", "startTime": "09:00", "endTime": "10:00"},
        {"id": "x", "day": 1, "startTime": "9am", "endTime": "10:00"},
        {"id": "x", "day": 1, "startTime": "24:00", "endTime": "10:00"},
        {"id": "x", "day": 1, "endTime": "10:00"},
    ])
    def test_ambiguous_weekly_records_rejected(self, record):
        with pytest.raises(AmbiguousRecurrenceError):
            parse_availability_block(record, TZ)

    def test_unknown_type_rejected(self):
        with pytest.raises(SnapshotError):
            parse_availability_block(
                {"id": "x", "day": 1, "startTime": "09:00", "endTime": "10:00", "type": "maybe"},
                TZ,
            )

    def test_missing_id_rejected(self):
        with pytest.raises(SnapshotError):
            parse_availability_block({"day": 1, "startTime": "09:00", "endTime": "10:00"}, TZ)


class TestParseEvents:
    def test_lesson(self):
        event = parse_lesson(
            {
                "_id": "l1",
                "tutorId": "tutor-1",
                "studentId": "student-1",
                "startTime": "2024-11-25T10:00:00+01:00",
                "endTime": "2024-11-25T10:25:00+01:00",
                "status": "confirmed",
                "subject": "Spanish",
            },
            TZ,
        )

        assert event.kind is EventKind.LESSON
        assert event.status is EventStatus.SCHEDULED
        assert event.participant_ids == ("tutor-1", "student-1")
        assert event.label == "Spanish"
        assert event.created_at is None

    def test_office_hours_lesson(self):
        event = parse_lesson(
            {
                "_id": "oh",
                "tutorId": "tutor-1",
                "startTime": "2024-11-25T10:00:00+01:00",
                "endTime": "2024-11-25T10:15:00+01:00",
                "isOfficeHours": True,
                "status": "in_progress",
            },
            TZ,
        )

        assert event.kind is EventKind.OFFICE_HOURS
        assert event.status is EventStatus.IN_PROGRESS

    def test_ended_early_counts_as_completed(self):
        event = parse_lesson(
            {
                "_id": "l",
                "startTime": "2024-11-25T10:00:00+01:00",
                "endTime": "2024-11-25T10:25:00+01:00",
                "status": "ended_early",
            },
            TZ,
        )

        assert event.status is EventStatus.COMPLETED
        assert not event.is_active

    def test_unknown_status_rejected(self):
        with pytest.raises(SnapshotError):
            parse_lesson(
                {
                    "_id": "l",
                    "startTime": "2024-11-25T10:00:00+01:00",
                    "endTime": "2024-11-25T10:25:00+01:00",
                    "status": "lost",
                },
                TZ,
            )

    def test_class_participants_are_confirmed_students(self):
        event = parse_class(
            {
                "_id": "c1",
                "tutorId": "tutor-1",
                "name": "Conversation",
                "startTime": "2024-11-25T10:00:00+01:00",
                "endTime": "2024-11-25T11:00:00+01:00",
                "confirmedStudents": ["s1", "s2"],
            },
            TZ,
        )

        assert event.kind is EventKind.CLASS
        assert event.participant_ids == ("tutor-1", "s1", "s2")
        assert event.label == "Conversation"

    def test_invalid_timestamp(self):
        with pytest.raises(SnapshotError):
            parse_timestamp("not a date", TZ)
        with pytest.raises(SnapshotError):
            parse_timestamp(None, TZ)

    def test_naive_timestamp_read_in_timezone(self):
        parsed = parse_timestamp("2024-11-25T10:00:00", TZ)

        assert parsed == pendulum.datetime(2024, 11, 25, 9, tz="UTC")


class TestAcceptedClassInterval:
    RECORD = {
        "_id": "c1",
        "startTime": "2024-11-25T10:00:00+01:00",
        "endTime": "2024-11-25T11:00:00+01:00",
        "status": "scheduled",
        "invitations": [
            {"studentId": "s1", "status": "accepted"},
            {"studentId": "s2", "status": "pending"},
        ],
    }

    def test_accepted(self):
        interval = accepted_class_interval(self.RECORD, "s1", TZ)

        assert interval is not None
        assert interval.duration_minutes() == 60

    def test_pending_invitation_ignored(self):
        assert accepted_class_interval(self.RECORD, "s2", TZ) is None

    def test_cancelled_class_ignored(self):
        record = dict(self.RECORD, status="cancelled")

        assert accepted_class_interval(record, "s1", TZ) is None


@pytest.fixture
def snapshot_file(tmp_path):
    data = {
        "availability": {
            "tutor-1": [
                {"id": "mon", "day": 1, "startTime": "09:00", "endTime": "12:00"},
                {"id": "bad", "day": 9, "startTime": "09:00", "endTime": "12:00"},
            ]
        },
        "lessons": [
            {
                "_id": "l1",
                "tutorId": "tutor-1",
                "studentId": "s1",
                "startTime": "2024-11-25T10:00:00+01:00",
                "endTime": "2024-11-25T10:25:00+01:00",
            },
            {
                "_id": "l2",
                "tutorId": "tutor-2",
                "studentId": "s1",
                "startTime": "2024-11-26T10:00:00+01:00",
                "endTime": "2024-11-26T10:25:00+01:00",
            },
            {"_id": "broken", "tutorId": "tutor-1", "startTime": "yesterday"},
        ],
        "classes": [
            {
                "_id": "c1",
                "tutorId": "tutor-2",
                "startTime": "2024-11-25T14:00:00+01:00",
                "endTime": "2024-11-25T15:00:00+01:00",
                "invitations": [{"studentId": "tutor-1", "status": "accepted"}],
            }
        ],
    }
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestJsonSnapshotSource:
    """Tests for JsonSnapshotSource."""

    def test_availability_skips_bad_records(self, snapshot_file, caplog):
        source = JsonSnapshotSource(snapshot_file, timezone=TZ)

        with caplog.at_level(logging.WARNING):
            blocks = asyncio.run(source.get_availability("tutor-1"))

        assert [b.id for b in blocks] == ["mon"]
        assert "Skipping availability record" in caplog.text

    def test_unknown_tutor_has_no_blocks(self, snapshot_file):
        source = JsonSnapshotSource(snapshot_file, timezone=TZ)

        assert asyncio.run(source.get_availability("nobody")) == []

    def test_events_filtered_by_participant_and_window(self, snapshot_file, caplog):
        source = JsonSnapshotSource(snapshot_file, timezone=TZ)
        start = pendulum.datetime(2024, 11, 25, tz=TZ)

        with caplog.at_level(logging.WARNING):
            events = asyncio.run(source.get_events("tutor-1", start, start.add(days=1)))

        assert [e.id for e in events] == ["l1"]
        assert "Skipping event record" in caplog.text

    def test_accepted_class_intervals(self, snapshot_file):
        source = JsonSnapshotSource(snapshot_file, timezone=TZ)
        start = pendulum.datetime(2024, 11, 25, tz=TZ)

        intervals = asyncio.run(
            source.get_accepted_class_intervals("tutor-1", start, start.add(days=1))
        )

        assert len(intervals) == 1
        assert intervals[0].start == pendulum.datetime(2024, 11, 25, 14, tz=TZ)

    def test_missing_file(self, tmp_path):
        source = JsonSnapshotSource(tmp_path / "missing.json", timezone=TZ)

        with pytest.raises(DependencyUnavailableError):
            asyncio.run(source.get_availability("tutor-1"))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "snapshot.json"
        path.write_text("{not json", encoding="utf-8")
        source = JsonSnapshotSource(path, timezone=TZ)

        with pytest.raises(DependencyUnavailableError):
            asyncio.run(source.get_availability("tutor-1"))
