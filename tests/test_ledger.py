"""Tests for the attendance ledger."""

from datetime import date, datetime, timedelta, timezone

import pytest

from attendance.ledger import AttendanceEvent, AttendanceLedger, calendar_date_of
from conftest import utc


class TestCalendarDate:
    """Tests for calendar_date_of."""

    def test_aware_datetime_uses_reference_zone(self) -> None:
        """Late UTC evening is already the next day further east."""
        kolkata = timezone(timedelta(hours=5, minutes=30))
        moment = utc(2024, 3, 1, hour=23, minute=30)

        assert calendar_date_of(moment, timezone.utc) == date(2024, 3, 1)
        assert calendar_date_of(moment, kolkata) == date(2024, 3, 2)

    def test_naive_datetime_taken_as_local(self) -> None:
        """Naive datetimes are not shifted."""
        assert calendar_date_of(datetime(2024, 3, 1, 23, 30), timezone.utc) == date(2024, 3, 1)


class TestMarkAttendance:
    """Tests for AttendanceLedger.mark_attendance."""

    def test_first_mark_creates_event(self, ledger) -> None:
        """The first mark of the day is recorded with its details."""
        event = ledger.mark_attendance("Alice", 92, utc(2024, 3, 1, 9, 15))

        assert event.identity_name == "Alice"
        assert event.calendar_date == date(2024, 3, 1)
        assert event.time_of_day == "09:15:00"
        assert event.confidence_percent == 92
        assert event.status == "Present"
        assert len(ledger) == 1

    def test_second_mark_same_day_is_noop(self, ledger) -> None:
        """At most one event per identity per calendar day."""
        ledger.mark_attendance("Alice", 92, utc(2024, 3, 1, 9))

        again = ledger.mark_attendance("Alice", 97, utc(2024, 3, 1, 17))

        assert again is None
        assert len(ledger) == 1
        assert ledger.records_for("Alice")[0].confidence_percent == 92

    def test_next_day_is_new_event(self, ledger) -> None:
        """A new calendar day allows a new event."""
        ledger.mark_attendance("Alice", 90, utc(2024, 3, 1))
        ledger.mark_attendance("Alice", 90, utc(2024, 3, 2))

        assert len(ledger.records_for("Alice")) == 2

    def test_identities_are_independent(self, ledger) -> None:
        """Marking one identity does not block another."""
        ledger.mark_attendance("Alice", 90, utc(2024, 3, 1))

        assert ledger.mark_attendance("Bob", 88, utc(2024, 3, 1)) is not None
        assert ledger.has_marked_today("Bob", date(2024, 3, 1))

    def test_confidence_out_of_range(self, ledger) -> None:
        """Confidence is a percentage."""
        with pytest.raises(ValueError):
            ledger.mark_attendance("Alice", 101, utc(2024, 3, 1))

    def test_persisted_across_instances(self, kv_store, ledger) -> None:
        """Events survive reloading from the same key-value store."""
        ledger.mark_attendance("Alice", 90, utc(2024, 3, 1))

        reloaded = AttendanceLedger(kv_store, tz=timezone.utc)

        assert len(reloaded) == 1
        assert reloaded.mark_attendance("Alice", 90, utc(2024, 3, 1, 18)) is None

    def test_failed_save_rolls_back(self, kv_store, ledger, monkeypatch) -> None:
        """A storage failure leaves the ledger unchanged."""
        def broken_set(key, value):
            raise OSError("disk full")

        monkeypatch.setattr(kv_store, "set", broken_set)

        with pytest.raises(OSError):
            ledger.mark_attendance("Alice", 90, utc(2024, 3, 1))
        assert len(ledger) == 0


class TestQueries:
    """Tests for ledger queries."""

    def test_records_for_ordering(self, ledger) -> None:
        """Records can be listed oldest or newest first."""
        for day in (3, 1, 2):
            ledger.mark_attendance("Alice", 90, utc(2024, 3, day))

        oldest_first = [e.calendar_date.day for e in ledger.records_for("Alice")]
        newest_first = [e.calendar_date.day for e in ledger.records_for("Alice", newest_first=True)]

        assert oldest_first == [1, 2, 3]
        assert newest_first == [3, 2, 1]

    def test_records_on_day(self, ledger) -> None:
        """All identities present on a day are returned."""
        ledger.mark_attendance("Alice", 90, utc(2024, 3, 1))
        ledger.mark_attendance("Bob", 90, utc(2024, 3, 1))
        ledger.mark_attendance("Bob", 90, utc(2024, 3, 2))

        assert {e.identity_name for e in ledger.records_on(date(2024, 3, 1))} == {"Alice", "Bob"}

    def test_clear(self, kv_store, ledger) -> None:
        """Clearing removes every event, persistently."""
        ledger.mark_attendance("Alice", 90, utc(2024, 3, 1))

        ledger.clear()

        assert len(ledger) == 0
        assert len(AttendanceLedger(kv_store, tz=timezone.utc)) == 0


class TestAttendanceEvent:
    """Tests for event serialization."""

    def test_record_fields(self) -> None:
        """Serialized events carry the stored field names."""
        event = AttendanceEvent("Alice", date(2024, 3, 1), utc(2024, 3, 1, 9, 5), 91)

        record = event.to_record()

        assert record == {
            'name': "Alice",
            'date': "2024-03-01",
            'time': "09:05:00",
            'timestamp': "2024-03-01T09:05:00+00:00",
            'status': "Present",
            'confidence': 91,
        }
        assert AttendanceEvent.from_record(record) == event

    def test_percent_string_confidence(self) -> None:
        """Confidence stored as a "91%" string is accepted."""
        event = AttendanceEvent.from_record({
            'name': "Alice",
            'date': "2024-03-01",
            'timestamp': "2024-03-01T09:05:00+00:00",
            'confidence': "91%",
        })

        assert event.confidence_percent == 91
