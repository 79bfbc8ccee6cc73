"""
Enrollment sessions.

A session collects face samples for one person across polling ticks. The host
calls ``step`` once per captured frame at ``capture_interval`` and stops
calling once the session is no longer active. Nothing is persisted until the
last sample is accepted; cancelling simply drops the samples.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence

import numpy as np

from utils.config import config
from utils.logger import logger
from .distance import DimensionMismatch, EmbeddingLike, as_embedding
from .identity_store import DuplicateName, Identity, IdentityStore
from .uniqueness_guard import AlreadyRegistered, UniquenessGuard


class EnrollmentState(Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class EnrollmentStatus(Enum):
    NO_FACE = "no_face"
    MULTIPLE_FACES = "multiple_faces"
    INVALID_EMBEDDING = "invalid_embedding"
    SAMPLE_ACCEPTED = "sample_accepted"
    ALREADY_REGISTERED = "already_registered"
    COMPLETED = "completed"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class EnrollmentStep:
    """Result of one enrollment tick."""
    status: EnrollmentStatus
    samples_collected: int
    samples_required: int
    existing_name: Optional[str] = None
    similarity_percent: Optional[int] = None
    message: str = ""

    @property
    def finished(self) -> bool:
        return self.status in (EnrollmentStatus.COMPLETED,
                               EnrollmentStatus.ALREADY_REGISTERED,
                               EnrollmentStatus.INACTIVE)


class EnrollmentSession:
    """Collects exactly ``samples_required`` single-face samples for one name."""

    def __init__(self, name: str, store: IdentityStore,
                 guard: Optional[UniquenessGuard] = None,
                 on_complete: Optional[Callable[[Identity], None]] = None,
                 on_rejected: Optional[Callable[[str, AlreadyRegistered], None]] = None,
                 samples_required: Optional[int] = None,
                 capture_interval: Optional[float] = None):
        name = (name or "").strip()
        if not name:
            raise ValueError("Please enter a name before starting registration")
        if store.name_taken(name):
            raise DuplicateName(f"Name '{name}' is already registered")

        self.name = name
        self.store = store
        self.guard = guard or UniquenessGuard(store)
        self.on_complete = on_complete
        self.on_rejected = on_rejected
        self.samples_required = samples_required or config.enrollment.samples_required
        self.capture_interval = capture_interval or config.enrollment.capture_interval_seconds

        self.state = EnrollmentState.ACTIVE
        self.identity: Optional[Identity] = None
        self._samples: List[np.ndarray] = []

        logger.info(f"Registration started for {name}")

    @property
    def samples_collected(self) -> int:
        return len(self._samples)

    @property
    def is_active(self) -> bool:
        return self.state is EnrollmentState.ACTIVE

    def _result(self, status: EnrollmentStatus, message: str, **kwargs) -> EnrollmentStep:
        return EnrollmentStep(
            status=status,
            samples_collected=self.samples_collected,
            samples_required=self.samples_required,
            message=message,
            **kwargs
        )

    def step(self, embeddings: Sequence[EmbeddingLike]) -> EnrollmentStep:
        """Process the embeddings detected in one captured frame."""
        if not self.is_active:
            return self._result(EnrollmentStatus.INACTIVE, f"Registration is {self.state.value}")

        if len(embeddings) == 0:
            return self._result(EnrollmentStatus.NO_FACE, "No face detected. Please look directly at the camera.")

        if len(embeddings) > 1:
            return self._result(EnrollmentStatus.MULTIPLE_FACES,
                                "Multiple faces detected. Please ensure only one person is visible.")

        try:
            sample = as_embedding(embeddings[0])
            self._check_dimension(sample)
            result = self.guard.check(sample)
        except DimensionMismatch as e:
            logger.warning(f"Rejected sample for {self.name}: {e}")
            return self._result(EnrollmentStatus.INVALID_EMBEDDING, str(e))

        if isinstance(result, AlreadyRegistered):
            self._reject(result)
            return self._result(
                EnrollmentStatus.ALREADY_REGISTERED,
                f"This face is already registered as '{result.name}' ({result.similarity_percent}% match)",
                existing_name=result.name,
                similarity_percent=result.similarity_percent
            )

        self._samples.append(sample)
        logger.debug(f"Captured {self.samples_collected}/{self.samples_required} face samples for {self.name}")

        if self.samples_collected >= self.samples_required:
            self._finalize()
            collected = len(self.identity.embeddings)
            return EnrollmentStep(
                status=EnrollmentStatus.COMPLETED,
                samples_collected=collected,
                samples_required=self.samples_required,
                message=f"Successfully registered {self.name} with {collected} face samples"
            )

        return self._result(
            EnrollmentStatus.SAMPLE_ACCEPTED,
            f"Captured {self.samples_collected}/{self.samples_required} face samples"
        )

    def _check_dimension(self, sample: np.ndarray):
        # Every sample must match the store and the samples already collected
        expected = self._samples[0].shape[0] if self._samples else self.store.dimension
        if expected is not None and sample.shape[0] != expected:
            raise DimensionMismatch(
                f"Sample for '{self.name}' has length {sample.shape[0]}, expected {expected}"
            )

    def _reject(self, result: AlreadyRegistered):
        self._samples = []
        self.state = EnrollmentState.REJECTED
        if self.on_rejected is not None:
            self.on_rejected(self.name, result)

    def _finalize(self):
        identity = Identity.create(self.name, self._samples)
        try:
            self.store.add(identity)
        except (DuplicateName, DimensionMismatch):
            self.cancel()
            raise

        self.identity = identity
        self.state = EnrollmentState.COMPLETED
        self._samples = []

        logger.log_attendance_event(self.name, "IDENTITY_ENROLLED",
                                    {'samples': len(identity.embeddings)})

        if self.on_complete is not None:
            self.on_complete(identity)

    def cancel(self):
        """Stop the session and drop any collected samples."""
        if self.is_active:
            logger.info(f"Registration cancelled for {self.name} after {self.samples_collected} samples")
            self.state = EnrollmentState.CANCELLED
        self._samples = []
