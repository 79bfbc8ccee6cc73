"""
Append-only attendance ledger with one event per identity per calendar day.
"""
import threading
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Dict, List, Optional

from storage.kv_store import KeyValueStore, load_json, save_json
from utils.config import config
from utils.logger import logger


def calendar_date_of(moment: datetime, tz: tzinfo) -> date:
    """Date part of ``moment`` in the reference timezone.

    Naive datetimes are taken to be already expressed in that timezone.
    """
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(tz).date()


@dataclass(frozen=True)
class AttendanceEvent:
    """One recorded presence."""
    identity_name: str
    calendar_date: date
    timestamp: datetime
    confidence_percent: int
    status: str = "Present"

    @property
    def time_of_day(self) -> str:
        return self.timestamp.strftime("%H:%M:%S")

    def to_record(self) -> Dict:
        return {
            'name': self.identity_name,
            'date': self.calendar_date.isoformat(),
            'time': self.time_of_day,
            'timestamp': self.timestamp.isoformat(),
            'status': self.status,
            'confidence': self.confidence_percent
        }

    @classmethod
    def from_record(cls, record: Dict) -> "AttendanceEvent":
        confidence = record.get('confidence', 0)
        if isinstance(confidence, str):
            # Older exports stored "90%"
            confidence = confidence.rstrip('%')
        return cls(
            identity_name=record['name'],
            calendar_date=date.fromisoformat(record['date']),
            timestamp=datetime.fromisoformat(record['timestamp']),
            confidence_percent=int(confidence),
            status=record.get('status', 'Present')
        )


class AttendanceLedger:
    """Attendance events persisted through a key-value store."""

    def __init__(self, kv_store: KeyValueStore, key: Optional[str] = None,
                 tz: Optional[tzinfo] = None):
        self.kv_store = kv_store
        self.key = key or config.storage.records_key
        self.tz = tz or config.tzinfo
        self._lock = threading.RLock()
        self._events: List[AttendanceEvent] = [
            AttendanceEvent.from_record(record) for record in load_json(self.kv_store, self.key, [])
        ]
        logger.info(f"Loaded {len(self._events)} attendance records")

    def __len__(self) -> int:
        return len(self._events)

    def today(self, now: Optional[datetime] = None) -> date:
        return calendar_date_of(now or datetime.now(self.tz), self.tz)

    def has_marked_today(self, name: str, day: date) -> bool:
        """True if ``name`` already has an event on ``day``."""
        with self._lock:
            return any(
                event.identity_name == name and event.calendar_date == day
                for event in self._events
            )

    def mark_attendance(self, name: str, confidence_percent: int,
                        now: Optional[datetime] = None) -> Optional[AttendanceEvent]:
        """Append an event for ``name`` unless one already exists for that day.

        Returns the new event, or None when the identity was already marked.
        """
        if not 0 <= confidence_percent <= 100:
            raise ValueError(f"Confidence must be between 0 and 100, got {confidence_percent}")

        now = now or datetime.now(self.tz)
        day = calendar_date_of(now, self.tz)

        with self._lock:
            if self.has_marked_today(name, day):
                logger.debug(f"{name} already marked on {day}")
                return None

            event = AttendanceEvent(
                identity_name=name,
                calendar_date=day,
                timestamp=now,
                confidence_percent=int(confidence_percent)
            )
            self._events.append(event)
            try:
                self._save()
            except Exception:
                self._events.pop()
                raise

        logger.log_attendance_event(name, "ATTENDANCE_MARKED",
                                    {'date': day.isoformat(), 'time': event.time_of_day},
                                    confidence_percent / 100.0)
        return event

    def _save(self):
        save_json(self.kv_store, self.key, [event.to_record() for event in self._events])

    @staticmethod
    def _ordered(events: List[AttendanceEvent], newest_first: bool) -> List[AttendanceEvent]:
        return sorted(events, key=lambda event: event.timestamp.timestamp(), reverse=newest_first)

    def records_for(self, name: str, newest_first: bool = False) -> List[AttendanceEvent]:
        """Events for one identity ordered by timestamp."""
        with self._lock:
            events = [event for event in self._events if event.identity_name == name]
        return self._ordered(events, newest_first)

    def all_records(self, newest_first: bool = False) -> List[AttendanceEvent]:
        with self._lock:
            events = list(self._events)
        return self._ordered(events, newest_first)

    def records_on(self, day: date) -> List[AttendanceEvent]:
        with self._lock:
            return [event for event in self._events if event.calendar_date == day]

    def clear(self):
        with self._lock:
            count = len(self._events)
            self._events = []
            self._save()

        logger.info(f"Cleared {count} attendance records")
