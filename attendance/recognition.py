"""
Recognition sessions.

The host calls ``step`` with the embeddings detected in each frame at
``scan_interval``. Every recognised face that has not been marked yet today gets
an attendance event and a refreshed attendance percentage.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Sequence

from identity.distance import DimensionMismatch, EmbeddingLike
from identity.identity_matcher import IdentityMatcher, NoIdentitiesEnrolled
from utils.config import config
from utils.logger import logger
from .ledger import AttendanceEvent, AttendanceLedger
from .stats import AttendanceStats


class RecognitionStatus(Enum):
    MARKED = "marked"
    ALREADY_MARKED = "already_marked"
    UNKNOWN = "unknown"
    INVALID_EMBEDDING = "invalid_embedding"


@dataclass(frozen=True)
class RecognitionOutcome:
    """What happened to one face in a frame. ``name`` is None unless identified."""
    status: RecognitionStatus
    name: Optional[str] = None
    confidence_percent: Optional[int] = None
    attendance_percentage: Optional[int] = None
    message: str = ""


class RecognitionSession:
    """Marks attendance for recognised faces, one frame at a time."""

    def __init__(self, matcher_source: Callable[[], IdentityMatcher],
                 ledger: AttendanceLedger, stats: AttendanceStats,
                 scan_interval: Optional[float] = None):
        if matcher_source().is_empty:
            raise NoIdentitiesEnrolled("No registered users found. Please register faces first!")

        self.matcher_source = matcher_source
        self.ledger = ledger
        self.stats = stats
        self.scan_interval = scan_interval or config.recognition.scan_interval_seconds
        self.active = True
        self.frames_processed = 0

        logger.info("Attendance recognition started")

    def mark(self, name: str, confidence_percent: int, now: datetime) -> Optional[AttendanceEvent]:
        event = self.ledger.mark_attendance(name, confidence_percent, now)
        if event is not None:
            self.stats.refresh(name, now)
        return event

    def step(self, embeddings: Sequence[EmbeddingLike],
             now: Optional[datetime] = None) -> List[RecognitionOutcome]:
        """Process every face detected in one frame."""
        if not self.active:
            return []

        now = now or datetime.now(self.ledger.tz)
        matcher = self.matcher_source()
        if matcher.is_empty:
            # Store was wiped while the session was running
            self.cancel()
            raise NoIdentitiesEnrolled("No registered users found. Please register faces first!")

        self.frames_processed += 1
        outcomes = []

        for embedding in embeddings:
            try:
                identification = matcher.identify(embedding)
            except DimensionMismatch as e:
                logger.warning(f"Skipping malformed embedding: {e}")
                outcomes.append(RecognitionOutcome(RecognitionStatus.INVALID_EMBEDDING, message=str(e)))
                continue

            confidence = identification.confidence_percent
            if not identification.is_known:
                outcomes.append(RecognitionOutcome(
                    RecognitionStatus.UNKNOWN,
                    confidence_percent=confidence,
                    message=f"Unknown ({confidence}% confidence - too low)"
                ))
                continue

            name = identification.name
            event = self.mark(name, confidence, now)
            if event is None:
                outcomes.append(RecognitionOutcome(
                    RecognitionStatus.ALREADY_MARKED,
                    name=name,
                    confidence_percent=confidence,
                    message=f"{name} - Already marked today"
                ))
                continue

            identity = self.stats.store.find_by_name(name)
            outcomes.append(RecognitionOutcome(
                RecognitionStatus.MARKED,
                name=name,
                confidence_percent=confidence,
                attendance_percentage=identity.attendance_percentage if identity else None,
                message=f"{name} - Attendance Marked! ({confidence}%)"
            ))

        return outcomes

    def cancel(self):
        if self.active:
            logger.info(f"Attendance recognition stopped after {self.frames_processed} frames")
        self.active = False
