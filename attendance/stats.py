"""
Attendance percentage calculation.

The percentage is the share of calendar days, counted from an identity's first
recorded attendance to ``as_of`` inclusive, on which they were present. The
cached figures on each identity are refreshed after every new event for that
identity, not as time passes.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Union

from identity.distance import round_half_up
from identity.identity_store import IdentityStore
from utils.logger import logger
from .ledger import AttendanceEvent, AttendanceLedger, calendar_date_of


@dataclass(frozen=True)
class AttendanceSummary:
    total_present_days: int
    percentage: int


def compute_percentage(name: str, events: Iterable[AttendanceEvent],
                       as_of: date) -> AttendanceSummary:
    """Present days and attendance percentage for ``name`` as of ``as_of``."""
    unique_dates = {event.calendar_date for event in events if event.identity_name == name}
    if not unique_dates:
        return AttendanceSummary(total_present_days=0, percentage=0)

    first_date = min(unique_dates)
    total_days = max((as_of - first_date).days + 1, 1)
    percentage = round_half_up(100 * len(unique_dates) / total_days)

    return AttendanceSummary(
        total_present_days=len(unique_dates),
        percentage=min(percentage, 100)
    )


class AttendanceStats:
    """Derives per-identity attendance figures from the ledger."""

    def __init__(self, store: IdentityStore, ledger: AttendanceLedger):
        self.store = store
        self.ledger = ledger

    def _as_date(self, as_of: Optional[Union[date, datetime]]) -> date:
        if as_of is None:
            return self.ledger.today()
        if isinstance(as_of, datetime):
            return calendar_date_of(as_of, self.ledger.tz)
        return as_of

    def summary_for(self, name: str, as_of: Optional[Union[date, datetime]] = None) -> AttendanceSummary:
        return compute_percentage(name, self.ledger.records_for(name), self._as_date(as_of))

    def refresh(self, name: str, as_of: Optional[Union[date, datetime]] = None) -> AttendanceSummary:
        """Recompute the cached figures for ``name`` and write them to the store."""
        summary = self.summary_for(name, as_of)

        def apply(identity):
            identity.total_present_days = summary.total_present_days
            identity.attendance_percentage = summary.percentage

        self.store.update(name, apply)
        logger.debug(f"{name}: {summary.total_present_days} days present, {summary.percentage}%")
        return summary

    def individual_report(self) -> List[Dict]:
        """Per-identity attendance with records newest first."""
        report = []
        for identity in self.store.list_identities():
            records = self.ledger.records_for(identity.name, newest_first=True)
            report.append({
                'name': identity.name,
                'total_days': len({record.calendar_date for record in records}),
                'percentage': identity.attendance_percentage,
                'records': [record.to_record() for record in records]
            })
        return report

    def overview(self, today: Optional[Union[date, datetime]] = None) -> Dict:
        """Headline counts: today's events, all events, roster size and average percentage."""
        today = self._as_date(today)
        identities = self.store.list_identities()

        average = 0
        if identities:
            average = round_half_up(
                sum(identity.attendance_percentage for identity in identities) / len(identities)
            )

        return {
            'today': today.isoformat(),
            'today_count': len(self.ledger.records_on(today)),
            'total_count': len(self.ledger),
            'registered_count': len(identities),
            'average_attendance_percentage': average
        }
