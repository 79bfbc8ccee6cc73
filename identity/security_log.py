"""Persistent log of registrations rejected because the face was already enrolled."""
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from storage.kv_store import KeyValueStore, load_json, save_json
from utils.config import config
from utils.logger import logger


@dataclass(frozen=True)
class SecurityEvent:
    attempted_name: str
    existing_name: str
    similarity_percent: int
    timestamp: datetime

    def to_record(self) -> Dict:
        return {
            'attempted_name': self.attempted_name,
            'existing_name': self.existing_name,
            'similarity_percent': self.similarity_percent,
            'timestamp': self.timestamp.isoformat()
        }

    @classmethod
    def from_record(cls, record: Dict) -> "SecurityEvent":
        return cls(
            attempted_name=record['attempted_name'],
            existing_name=record['existing_name'],
            similarity_percent=int(record['similarity_percent']),
            timestamp=datetime.fromisoformat(record['timestamp'])
        )


class SecurityLog:
    def __init__(self, kv_store: KeyValueStore, key: Optional[str] = None):
        self.kv_store = kv_store
        self.key = key or config.storage.security_key
        self._lock = threading.RLock()

    def record(self, attempted_name: str, existing_name: str, similarity_percent: int,
               timestamp: Optional[datetime] = None) -> SecurityEvent:
        event = SecurityEvent(
            attempted_name=attempted_name,
            existing_name=existing_name,
            similarity_percent=similarity_percent,
            timestamp=timestamp or datetime.now(timezone.utc)
        )

        with self._lock:
            records = load_json(self.kv_store, self.key, [])
            records.append(event.to_record())
            save_json(self.kv_store, self.key, records)

        logger.log_security_event(attempted_name, existing_name, similarity_percent)
        return event

    def events(self) -> List[SecurityEvent]:
        with self._lock:
            records = load_json(self.kv_store, self.key, [])
        return [SecurityEvent.from_record(record) for record in records]

    def clear(self):
        with self._lock:
            self.kv_store.remove(self.key)
