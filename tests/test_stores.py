"""
Tests for availability and booked event stores.
"""

import pendulum
import pytest

from tutortimeline.domain.exceptions import InvalidTransitionError
from tutortimeline.domain.models import (
    AbsoluteRecurrence,
    AvailabilityBlock,
    BlockKind,
    BookedEvent,
    EventKind,
    EventStatus,
    WeeklyRecurrence,
)
from tutortimeline.domain.stores import AvailabilityStore, BookedEventStore

TZ = "Europe/Berlin"


def _dt(value: str):
    return pendulum.parse(value, tz=TZ)


def _dated(block_id: str, start: str, end: str, kind: BlockKind = BlockKind.AVAILABLE):
    return AvailabilityBlock(
        id=block_id,
        kind=kind,
        recurrence=AbsoluteRecurrence(start=_dt(start), end=_dt(end)),
    )


def _weekly(block_id: str, day: int = 1):
    return AvailabilityBlock(
        id=block_id,
        kind=BlockKind.AVAILABLE,
        recurrence=WeeklyRecurrence.from_clock(day, "09:00", "12:00"),
    )


class TestAvailabilityStore:
    """Tests for AvailabilityStore editing operations."""

    def test_replace_dated_blocks_replaces_same_day_only(self):
        store = AvailabilityStore(blocks=(
            _weekly("weekly"),
            _dated("old-mon", "2024-11-25 09:00", "2024-11-25 10:00"),
            _dated("old-tue", "2024-11-26 09:00", "2024-11-26 10:00"),
        ))

        updated = store.replace_dated_blocks([_dated("new-mon", "2024-11-25 14:00", "2024-11-25 15:00")])

        assert [b.id for b in updated] == ["weekly", "old-tue", "new-mon"]
        assert len(store) == 3

    def test_class_blocks_lifecycle(self):
        store = AvailabilityStore().add_class_block(
            "c1", _dt("2024-11-25 10:00"), _dt("2024-11-25 11:00"), label="Spanish"
        )

        block = store.find("class-c1")
        assert block is not None
        assert block.kind is BlockKind.CLASS
        assert len(store.cancel_class_block("c1")) == 0

    def test_duplicate_ids_rejected(self):
        store = AvailabilityStore(blocks=(_weekly("a"),))

        with pytest.raises(ValueError, match="Duplicate"):
            store.add(_weekly("a"))

    def test_public_view_hides_classes_and_stale_blocks(self):
        now = _dt("2024-11-25 12:00")
        store = AvailabilityStore(blocks=(
            _weekly("weekly"),
            _dated("stale", "2024-11-10 09:00", "2024-11-10 10:00"),
            _dated("recent", "2024-11-19 09:00", "2024-11-19 10:00"),
            _dated("cls", "2024-11-26 09:00", "2024-11-26 10:00", BlockKind.CLASS),
            _dated("off", "2024-11-27 09:00", "2024-11-27 10:00", BlockKind.TIME_OFF),
        ))

        visible = store.public_view(now)

        assert [b.id for b in visible] == ["weekly", "recent", "off"]

    def test_from_hour_grid(self):
        """Consecutive hours on a day collapse into a single block."""
        store = AvailabilityStore.from_hour_grid([(1, 9), (1, 10), (1, 14), (3, 23), (1, 11)])

        assert [b.id for b in store] == ["1-9-12", "1-14-15", "3-23-24"]
        late = store.find("3-23-24")
        assert late.recurrence.end_clock == "24:00"
        assert all(b.kind is BlockKind.AVAILABLE for b in store)

    def test_from_hour_grid_rejects_bad_hours(self):
        with pytest.raises(ValueError):
            AvailabilityStore.from_hour_grid([(1, 24)])

    def test_weekly_and_absolute_split(self):
        store = AvailabilityStore(blocks=(_weekly("w"), _dated("d", "2024-11-25 09:00", "2024-11-25 10:00")))

        assert [b.id for b in store.weekly_blocks()] == ["w"]
        assert [b.id for b in store.absolute_blocks()] == ["d"]


def _event(event_id: str, start: str, end: str, status=EventStatus.SCHEDULED, created=None, participants=()):
    return BookedEvent(
        id=event_id,
        kind=EventKind.LESSON,
        start=_dt(start),
        end=_dt(end),
        status=status,
        participant_ids=participants,
        created_at=_dt(created) if created else None,
    )


class TestBookedEventStore:
    """Tests for BookedEventStore."""

    def test_active_excludes_terminal_events(self):
        store = BookedEventStore(events=(
            _event("a", "2024-11-25 10:00", "2024-11-25 10:25"),
            _event("b", "2024-11-25 11:00", "2024-11-25 11:25", EventStatus.IN_PROGRESS),
            _event("c", "2024-11-25 12:00", "2024-11-25 12:25", EventStatus.COMPLETED),
            _event("d", "2024-11-25 13:00", "2024-11-25 13:25", EventStatus.CANCELLED),
        ))

        assert [e.id for e in store.active()] == ["a", "b"]

    def test_with_status_follows_lifecycle(self):
        store = BookedEventStore(events=(_event("a", "2024-11-25 10:00", "2024-11-25 10:25"),))

        started = store.with_status("a", EventStatus.IN_PROGRESS)
        finished = started.with_status("a", EventStatus.COMPLETED)

        assert finished.find("a").status is EventStatus.COMPLETED
        assert store.find("a").status is EventStatus.SCHEDULED

    def test_invalid_transition_raises(self):
        store = BookedEventStore(events=(
            _event("a", "2024-11-25 10:00", "2024-11-25 10:25", EventStatus.CANCELLED),
        ))

        with pytest.raises(InvalidTransitionError):
            store.with_status("a", EventStatus.SCHEDULED)

    def test_unknown_event_raises_key_error(self):
        with pytest.raises(KeyError):
            BookedEventStore().with_status("missing", EventStatus.CANCELLED)

    def test_for_participant(self):
        store = BookedEventStore(events=(
            _event("a", "2024-11-25 10:00", "2024-11-25 10:25", participants=("tutor-1", "s1")),
            _event("b", "2024-11-25 11:00", "2024-11-25 11:25", participants=("tutor-2", "s1")),
        ))

        assert [e.id for e in store.for_participant("tutor-1")] == ["a"]
        assert len(store.for_participant("s1")) == 2

    def test_in_window(self):
        store = BookedEventStore(events=(
            _event("late", "2024-11-25 15:00", "2024-11-25 15:25"),
            _event("early", "2024-11-25 10:00", "2024-11-25 10:25"),
            _event("outside", "2024-11-26 10:00", "2024-11-26 10:25"),
        ))

        events = store.in_window(_dt("2024-11-25 06:00"), _dt("2024-11-25 23:00"))

        assert [e.id for e in events] == ["early", "late"]

    def test_visible_events_hide_cancelled_under_active(self):
        store = BookedEventStore(events=(
            _event("active", "2024-11-25 10:00", "2024-11-25 10:50"),
            _event("old", "2024-11-25 10:00", "2024-11-25 10:50", EventStatus.CANCELLED),
            _event("alone", "2024-11-25 14:00", "2024-11-25 14:50", EventStatus.CANCELLED),
        ))

        visible = store.visible_events(_dt("2024-11-25 06:00"), _dt("2024-11-25 23:00"))

        assert [e.id for e in visible] == ["active", "alone"]

    def test_visible_events_keep_newest_cancelled(self):
        store = BookedEventStore(events=(
            _event("first", "2024-11-25 10:00", "2024-11-25 10:50", EventStatus.CANCELLED, created="2024-11-20 08:00"),
            _event("second", "2024-11-25 10:30", "2024-11-25 11:20", EventStatus.CANCELLED, created="2024-11-21 08:00"),
        ))

        visible = store.visible_events(_dt("2024-11-25 06:00"), _dt("2024-11-25 23:00"))

        assert [e.id for e in visible] == ["second"]

    def test_visible_events_tie_broken_by_id(self):
        store = BookedEventStore(events=(
            _event("a", "2024-11-25 10:00", "2024-11-25 10:50", EventStatus.CANCELLED, created="2024-11-20 08:00"),
            _event("b", "2024-11-25 10:00", "2024-11-25 10:50", EventStatus.CANCELLED, created="2024-11-20 08:00"),
        ))

        visible = store.visible_events(_dt("2024-11-25 06:00"), _dt("2024-11-25 23:00"))

        assert [e.id for e in visible] == ["b"]
