"""
Durable collection of enrolled identities.
Identities are serialized as one JSON record list under a single key-value entry.
"""
import threading
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np

from storage.kv_store import KeyValueStore, load_json, save_json
from utils.config import config
from utils.logger import logger
from .distance import DimensionMismatch, EmbeddingLike, as_embedding


class DuplicateName(ValueError):
    """Raised when a name is already enrolled (case-insensitive)."""


class IdentityNotFound(LookupError):
    """Raised when updating or looking up an identity that is not enrolled."""


@dataclass
class Identity:
    """An enrolled person and the face samples collected at enrollment."""
    name: str
    embeddings: List[np.ndarray]
    enrolled_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    total_present_days: int = 0
    attendance_percentage: int = 0

    @classmethod
    def create(cls, name: str, embeddings: Sequence[EmbeddingLike],
               enrolled_at: Optional[datetime] = None) -> "Identity":
        """Validate and normalize a freshly enrolled identity."""
        name = (name or "").strip()
        if not name:
            raise ValueError("Identity name must not be empty")
        if not embeddings:
            raise ValueError(f"Identity '{name}' needs at least one embedding")

        samples = [as_embedding(sample) for sample in embeddings]
        lengths = {sample.shape[0] for sample in samples}
        if len(lengths) > 1:
            raise DimensionMismatch(f"Embeddings for '{name}' have mixed lengths: {sorted(lengths)}")

        return cls(name=name, embeddings=samples,
                   enrolled_at=enrolled_at or datetime.now(timezone.utc))

    @property
    def dimension(self) -> int:
        return self.embeddings[0].shape[0]

    def to_record(self) -> Dict:
        return {
            'name': self.name,
            'embeddings': [sample.tolist() for sample in self.embeddings],
            'enrolled_at': self.enrolled_at.isoformat(),
            'total_present_days': self.total_present_days,
            'attendance_percentage': self.attendance_percentage
        }

    @classmethod
    def from_record(cls, record: Dict) -> "Identity":
        identity = cls.create(
            record['name'],
            record['embeddings'],
            enrolled_at=datetime.fromisoformat(record['enrolled_at'])
        )
        identity.total_present_days = int(record.get('total_present_days', 0))
        identity.attendance_percentage = int(record.get('attendance_percentage', 0))
        return identity


class IdentityStore:
    """Enrolled identities persisted through a key-value store."""

    def __init__(self, kv_store: KeyValueStore, key: Optional[str] = None,
                 embedding_dimension: Optional[int] = None):
        self.kv_store = kv_store
        self.key = key or config.storage.identities_key
        self.embedding_dimension = (
            embedding_dimension if embedding_dimension is not None
            else config.matching.embedding_dimension
        )
        self._lock = threading.RLock()
        self._identities: List[Identity] = []

        self._load_identities()

    def _load_identities(self):
        """Load identities from the key-value store."""
        records = load_json(self.kv_store, self.key, [])
        self._identities = [Identity.from_record(record) for record in records]
        logger.info(f"Loaded {len(self._identities)} identities from store")

    def _save_identities(self):
        save_json(self.kv_store, self.key, [identity.to_record() for identity in self._identities])

    def __len__(self) -> int:
        return len(self._identities)

    @property
    def dimension(self) -> Optional[int]:
        """Embedding length shared by every enrolled identity."""
        with self._lock:
            if self._identities:
                return self._identities[0].dimension
        return self.embedding_dimension

    def list_identities(self) -> List[Identity]:
        """Copies of enrolled identities in enrollment order, unaffected by later updates."""
        with self._lock:
            return [replace(identity, embeddings=list(identity.embeddings)) for identity in self._identities]

    def find_by_name(self, name: str) -> Optional[Identity]:
        """Exact, case-sensitive lookup."""
        with self._lock:
            for identity in self._identities:
                if identity.name == name:
                    return identity
        return None

    def name_taken(self, name: str) -> bool:
        """Case-insensitive check used to keep names unique."""
        folded = name.strip().casefold()
        with self._lock:
            return any(identity.name.casefold() == folded for identity in self._identities)

    def add(self, identity: Identity):
        """Append a new identity and persist."""
        with self._lock:
            if self.name_taken(identity.name):
                raise DuplicateName(f"Name '{identity.name}' is already registered")

            expected = self.dimension
            if expected is not None and identity.dimension != expected:
                raise DimensionMismatch(
                    f"Embeddings for '{identity.name}' have length {identity.dimension}, expected {expected}"
                )

            self._identities.append(identity)
            try:
                self._save_identities()
            except Exception:
                self._identities.pop()
                raise

        logger.info(f"Added identity '{identity.name}' with {len(identity.embeddings)} samples")

    def update(self, name: str, mutator: Callable[[Identity], None]):
        """Apply ``mutator`` to the named identity and persist."""
        with self._lock:
            identity = self.find_by_name(name)
            if identity is None:
                raise IdentityNotFound(f"No identity named '{name}'")

            mutator(identity)
            self._save_identities()

    def clear(self):
        """Remove every identity."""
        with self._lock:
            count = len(self._identities)
            self._identities = []
            self._save_identities()

        logger.info(f"Cleared {count} identities")

    def get_store_info(self) -> Dict:
        """Summary of enrolled identities, most attended first."""
        identities = self.list_identities()
        now = time.time()

        faces_info = [
            {
                'name': identity.name,
                'samples': len(identity.embeddings),
                'enrolled_at': identity.enrolled_at.isoformat(),
                'days_since_enrolled': int((now - identity.enrolled_at.timestamp()) / 86400),
                'total_present_days': identity.total_present_days,
                'attendance_percentage': identity.attendance_percentage
            }
            for identity in identities
        ]
        faces_info.sort(key=lambda x: x['attendance_percentage'], reverse=True)

        return {
            'total_identities': len(identities),
            'embedding_dimension': self.dimension,
            'identities': faces_info
        }
