"""Tests for attendance percentage calculation."""

from datetime import date

from attendance.stats import AttendanceStats, AttendanceSummary, compute_percentage
from conftest import ALICE, BOB, utc


class TestComputePercentage:
    """Tests for compute_percentage."""

    def test_no_events(self, ledger) -> None:
        """An identity with no events has zero days and zero percent."""
        assert compute_percentage("Bob", [], date(2024, 3, 5)) == AttendanceSummary(0, 0)

    def test_every_other_day(self, ledger) -> None:
        """Present on 3 of 5 calendar days is 60%."""
        for day in (1, 3, 5):
            ledger.mark_attendance("Bob", 90, utc(2024, 3, day))

        summary = compute_percentage("Bob", ledger.records_for("Bob"), date(2024, 3, 5))

        assert summary == AttendanceSummary(total_present_days=3, percentage=60)

    def test_first_day_is_full_attendance(self, ledger) -> None:
        """A single event on the as-of day is 100%."""
        ledger.mark_attendance("Bob", 90, utc(2024, 3, 1))

        assert compute_percentage("Bob", ledger.records_for("Bob"), date(2024, 3, 1)).percentage == 100

    def test_decays_as_days_pass(self, ledger) -> None:
        """Later as-of dates lower the percentage."""
        for day in (1, 3, 5):
            ledger.mark_attendance("Bob", 90, utc(2024, 3, day))

        assert compute_percentage("Bob", ledger.records_for("Bob"), date(2024, 3, 10)).percentage == 30

    def test_rounds_half_up(self, ledger) -> None:
        """1 of 8 days is 12.5%, shown as 13."""
        ledger.mark_attendance("Bob", 90, utc(2024, 3, 1))

        assert compute_percentage("Bob", ledger.records_for("Bob"), date(2024, 3, 8)).percentage == 13

    def test_ignores_other_identities(self, ledger) -> None:
        """Only the named identity's events count."""
        ledger.mark_attendance("Alice", 90, utc(2024, 3, 1))
        ledger.mark_attendance("Bob", 90, utc(2024, 3, 2))

        summary = compute_percentage("Bob", ledger.all_records(), date(2024, 3, 2))

        assert summary == AttendanceSummary(1, 100)

    def test_never_exceeds_one_hundred(self, ledger) -> None:
        """An as-of date before the first event still caps at 100."""
        ledger.mark_attendance("Bob", 90, utc(2024, 3, 5))

        assert compute_percentage("Bob", ledger.records_for("Bob"), date(2024, 3, 1)).percentage == 100


class TestAttendanceStats:
    """Tests for AttendanceStats."""

    def test_refresh_writes_to_store(self, identity_store, ledger, enroll) -> None:
        """Refreshing caches the summary on the identity."""
        enroll(identity_store, "Bob", BOB)
        stats = AttendanceStats(identity_store, ledger)
        for day in (1, 3, 5):
            ledger.mark_attendance("Bob", 90, utc(2024, 3, day))

        stats.refresh("Bob", utc(2024, 3, 5))

        bob = identity_store.find_by_name("Bob")
        assert bob.total_present_days == 3
        assert bob.attendance_percentage == 60

    def test_individual_report(self, identity_store, ledger, enroll) -> None:
        """The report lists every identity with records newest first."""
        enroll(identity_store, "Alice", ALICE)
        enroll(identity_store, "Bob", BOB)
        stats = AttendanceStats(identity_store, ledger)
        ledger.mark_attendance("Bob", 90, utc(2024, 3, 1))
        ledger.mark_attendance("Bob", 95, utc(2024, 3, 2))
        stats.refresh("Bob", utc(2024, 3, 2))

        report = {entry['name']: entry for entry in stats.individual_report()}

        assert report["Alice"]['total_days'] == 0
        assert report["Alice"]['records'] == []
        assert report["Bob"]['total_days'] == 2
        assert report["Bob"]['percentage'] == 100
        assert [r['date'] for r in report["Bob"]['records']] == ["2024-03-02", "2024-03-01"]

    def test_overview(self, identity_store, ledger, enroll) -> None:
        """The overview counts today's and all events and averages cached percentages."""
        enroll(identity_store, "Alice", ALICE)
        enroll(identity_store, "Bob", BOB)
        stats = AttendanceStats(identity_store, ledger)
        ledger.mark_attendance("Alice", 90, utc(2024, 3, 1))
        ledger.mark_attendance("Bob", 90, utc(2024, 3, 1))
        ledger.mark_attendance("Bob", 90, utc(2024, 3, 2))
        stats.refresh("Alice", utc(2024, 3, 2))
        stats.refresh("Bob", utc(2024, 3, 2))

        overview = stats.overview(date(2024, 3, 2))

        assert overview == {
            'today': "2024-03-02",
            'today_count': 1,
            'total_count': 3,
            'registered_count': 2,
            'average_attendance_percentage': 75,
        }

    def test_overview_empty(self, identity_store, ledger) -> None:
        """With nobody enrolled the average is zero."""
        overview = AttendanceStats(identity_store, ledger).overview(date(2024, 3, 2))

        assert overview['registered_count'] == 0
        assert overview['average_attendance_percentage'] == 0
