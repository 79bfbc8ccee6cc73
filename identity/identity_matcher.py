"""
Nearest-neighbour identity matching for live recognition.
A matcher is an immutable snapshot of the identity store; rebuild it whenever
the store changes.
"""
import threading
import time
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from utils.config import config
from utils.logger import logger
from .distance import DimensionMismatch, EmbeddingLike, as_embedding, similarity_percent
from .identity_store import Identity


class NoIdentitiesEnrolled(RuntimeError):
    """Raised when matching is attempted before anyone has been enrolled."""


@dataclass(frozen=True)
class BestMatch:
    """Nearest enrolled identity for a candidate."""
    name: str
    distance: float


@dataclass(frozen=True)
class Identification:
    """Caller-facing recognition result; ``name`` is None when the face is unknown."""
    name: Optional[str]
    distance: float
    confidence_percent: int

    @property
    def is_known(self) -> bool:
        return self.name is not None


class IdentityMatcher:
    """Face matcher built from a copy of (name, embeddings) pairs."""

    def __init__(self, labeled_embeddings: Iterable[Tuple[str, Iterable[EmbeddingLike]]],
                 match_threshold: Optional[float] = None):
        self.match_threshold = (
            match_threshold if match_threshold is not None else config.matching.match_threshold
        )

        names: List[str] = []
        labels: List[str] = []
        samples: List[np.ndarray] = []
        for name, embeddings in labeled_embeddings:
            names.append(name)
            for embedding in embeddings:
                labels.append(name)
                samples.append(as_embedding(embedding))

        lengths = {sample.shape[0] for sample in samples}
        if len(lengths) > 1:
            raise DimensionMismatch(f"Enrolled embeddings have mixed lengths: {sorted(lengths)}")

        self._names: Tuple[str, ...] = tuple(names)
        self._labels: Tuple[str, ...] = tuple(labels)
        if samples:
            self._matrix = np.vstack(samples)
        else:
            self._matrix = np.empty((0, 0), dtype=np.float64)
        self._matrix.setflags(write=False)

        # Performance tracking
        self._matching_times: List[float] = []
        self._stats_lock = threading.Lock()

        logger.debug(f"Identity matcher built with {len(self._names)} identities, {len(self._labels)} samples")

    @classmethod
    def build(cls, identities: Iterable[Identity], match_threshold: Optional[float] = None) -> "IdentityMatcher":
        """Snapshot the given identities into a new matcher."""
        return cls(
            ((identity.name, list(identity.embeddings)) for identity in identities),
            match_threshold=match_threshold
        )

    @property
    def names(self) -> Tuple[str, ...]:
        return self._names

    @property
    def is_empty(self) -> bool:
        return len(self._labels) == 0

    @property
    def dimension(self) -> Optional[int]:
        return None if self.is_empty else self._matrix.shape[1]

    def face_distances(self, candidate: EmbeddingLike) -> np.ndarray:
        """Distance from ``candidate`` to every enrolled sample, in snapshot order."""
        if self.is_empty:
            raise NoIdentitiesEnrolled("No identities enrolled; register faces first")

        candidate = as_embedding(candidate)
        if candidate.shape[0] != self._matrix.shape[1]:
            raise DimensionMismatch(
                f"Candidate length {candidate.shape[0]} does not match enrolled length {self._matrix.shape[1]}"
            )

        return np.linalg.norm(self._matrix - candidate, axis=1)

    def find_best_match(self, candidate: EmbeddingLike) -> BestMatch:
        """Identity owning the globally closest sample; ties go to the earliest sample."""
        start_time = time.time()

        face_distances = self.face_distances(candidate)
        best_match_index = int(np.argmin(face_distances))

        self._record_matching_time(time.time() - start_time)

        return BestMatch(
            name=self._labels[best_match_index],
            distance=float(face_distances[best_match_index])
        )

    def identify(self, candidate: EmbeddingLike) -> Identification:
        """Apply the match threshold to the best match."""
        match = self.find_best_match(candidate)
        confidence = similarity_percent(match.distance)

        if match.distance < self.match_threshold:
            logger.debug(f"Face matched: {match.name} (distance: {match.distance:.3f})")
            return Identification(name=match.name, distance=match.distance, confidence_percent=confidence)

        logger.debug(f"Unknown face, nearest distance {match.distance:.3f} above {self.match_threshold}")
        return Identification(name=None, distance=match.distance, confidence_percent=confidence)

    def _record_matching_time(self, elapsed: float):
        with self._stats_lock:
            self._matching_times.append(elapsed)
            if len(self._matching_times) > 100:
                self._matching_times = self._matching_times[-100:]

    def statistics(self) -> Dict:
        """Matcher size and recent matching performance."""
        with self._stats_lock:
            avg_matching_time = float(np.mean(self._matching_times)) if self._matching_times else 0.0

        return {
            'total_identities': len(self._names),
            'total_samples': len(self._labels),
            'embedding_dimension': self.dimension,
            'match_threshold': self.match_threshold,
            'average_matching_time_ms': avg_matching_time * 1000
        }
