"""
Attendance system facade.

Wires the key-value store, identity store, attendance ledger, security log and
identity matcher together. The matcher is rebuilt whenever the identity store
changes and swapped in as a whole, so running sessions always see a complete
snapshot.
"""
import threading
from datetime import date, datetime
from pathlib import Path
from typing import Dict, List, Optional

from identity.distance import EmbeddingLike
from identity.enrollment import EnrollmentSession
from identity.identity_matcher import IdentityMatcher
from identity.identity_store import Identity, IdentityNotFound, IdentityStore
from identity.security_log import SecurityLog
from identity.uniqueness_guard import AlreadyRegistered, MatchResult, UniquenessGuard
from storage.kv_store import KeyValueStore, create_store
from utils.config import Config, config as default_config
from utils.logger import logger
from .ledger import AttendanceEvent, AttendanceLedger
from .recognition import RecognitionSession
from .reports import default_export_name, export_attendance
from .stats import AttendanceStats, AttendanceSummary


class AttendanceSystem:
    """Enrollment, recognition and reporting over one key-value store."""

    def __init__(self, kv_store: Optional[KeyValueStore] = None, settings: Optional[Config] = None):
        self.settings = settings or default_config
        self.kv_store = kv_store or create_store(self.settings.storage.backend, self.settings.storage.path)

        self.store = IdentityStore(
            self.kv_store,
            key=self.settings.storage.identities_key,
            embedding_dimension=self.settings.matching.embedding_dimension
        )
        self.ledger = AttendanceLedger(
            self.kv_store,
            key=self.settings.storage.records_key,
            tz=self.settings.tzinfo
        )
        self.security_log = SecurityLog(self.kv_store, key=self.settings.storage.security_key)
        self.stats = AttendanceStats(self.store, self.ledger)
        self.guard = UniquenessGuard(self.store, threshold=self.settings.matching.uniqueness_threshold)

        self._lock = threading.RLock()
        self._matcher = self._build_matcher()

        logger.info(f"Attendance system initialized with {len(self.store)} identities")

    def _build_matcher(self) -> IdentityMatcher:
        return IdentityMatcher.build(
            self.store.list_identities(),
            match_threshold=self.settings.matching.match_threshold
        )

    def reload_matcher(self):
        """Rebuild the matcher from the current store contents."""
        matcher = self._build_matcher()
        with self._lock:
            self._matcher = matcher
        logger.info(f"Face matcher loaded with {len(matcher.names)} users")

    @property
    def matcher(self) -> IdentityMatcher:
        with self._lock:
            return self._matcher

    # Enrollment

    def check_uniqueness(self, embedding: EmbeddingLike) -> MatchResult:
        return self.guard.check(embedding)

    def _on_rejected(self, attempted_name: str, result: AlreadyRegistered):
        self.security_log.record(attempted_name, result.name, result.similarity_percent)

    def _on_enrolled(self, identity: Identity):
        self.reload_matcher()

    def begin_enrollment(self, name: str) -> EnrollmentSession:
        """Start collecting samples for ``name``."""
        return EnrollmentSession(
            name,
            self.store,
            guard=self.guard,
            on_complete=self._on_enrolled,
            on_rejected=self._on_rejected,
            samples_required=self.settings.enrollment.samples_required,
            capture_interval=self.settings.enrollment.capture_interval_seconds
        )

    # Recognition

    def begin_recognition(self) -> RecognitionSession:
        """Start a recognition session; raises NoIdentitiesEnrolled on an empty roster."""
        return RecognitionSession(
            lambda: self.matcher,
            self.ledger,
            self.stats,
            scan_interval=self.settings.recognition.scan_interval_seconds
        )

    def mark_attendance(self, name: str, confidence_percent: int,
                        now: Optional[datetime] = None) -> Optional[AttendanceEvent]:
        """Record attendance for an enrolled identity and refresh its percentage."""
        now = now or datetime.now(self.ledger.tz)
        with self._lock:
            if self.store.find_by_name(name) is None:
                raise IdentityNotFound(f"No identity named '{name}'")

            event = self.ledger.mark_attendance(name, confidence_percent, now)
            if event is not None:
                self.stats.refresh(name, now)
        return event

    # Reporting

    def list_identities(self) -> List[Identity]:
        return self.store.list_identities()

    def records_for(self, name: str, newest_first: bool = True) -> List[AttendanceEvent]:
        return self.ledger.records_for(name, newest_first=newest_first)

    def summary_for(self, name: str, as_of: Optional[date] = None) -> AttendanceSummary:
        return self.stats.summary_for(name, as_of)

    def individual_report(self) -> List[Dict]:
        return self.stats.individual_report()

    def overview(self, today: Optional[date] = None) -> Dict:
        return self.stats.overview(today)

    def export(self, output_path: Optional[str] = None, fmt: Optional[str] = None,
               start_date: Optional[date] = None, end_date: Optional[date] = None) -> Path:
        """Export the attendance table; defaults to the reports directory."""
        if output_path is None:
            fmt = fmt or self.settings.attendance.default_export_format
            output_path = Path(self.settings.attendance.reports_directory) / default_export_name(
                self.ledger.today(), fmt)

        return export_attendance(
            self.ledger.all_records(),
            self.store.list_identities(),
            output_path,
            fmt=fmt,
            start_date=start_date,
            end_date=end_date
        )

    def clear_all_data(self):
        """Delete every identity, attendance record and security event."""
        with self._lock:
            cleared = {'identities': len(self.store), 'records': len(self.ledger)}
            self.store.clear()
            self.ledger.clear()
            self.security_log.clear()
            self._matcher = self._build_matcher()

        logger.clear_events()
        logger.log_event("DATA_CLEARED", cleared)
        return cleared

    def get_system_status(self) -> Dict:
        """Roster, ledger and matcher status."""
        return {
            'status': 'ready' if not self.matcher.is_empty else 'awaiting_enrollment',
            'timestamp': datetime.now(self.ledger.tz).isoformat(),
            'store_backend': type(self.kv_store).__name__,
            'registered_identities': len(self.store),
            'attendance_records': len(self.ledger),
            'security_events': len(self.security_log.events()),
            'matcher': self.matcher.statistics(),
            'thresholds': {
                'uniqueness': self.settings.matching.uniqueness_threshold,
                'match': self.settings.matching.match_threshold
            },
            'configuration': self.settings.get_effective_config(),
            'logging': logger.get_log_statistics(),
            'recent_events': logger.get_attendance_summary()
        }

    def close(self):
        self.kv_store.close()
