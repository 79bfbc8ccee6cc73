"""
Key-value persistence surface used by the identity store, attendance ledger and
security log. Values are opaque bytes; callers serialize their own records.
"""
import base64
import json
import logging
import os
import sqlite3
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Minimal durable key-value surface."""

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """Return the stored bytes for ``key`` or None."""

    @abstractmethod
    def set(self, key: str, value: bytes) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete ``key``; missing keys are ignored."""

    def close(self) -> None:
        pass


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store, used for tests and throwaway sessions."""

    def __init__(self):
        self._data: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self):
        with self._lock:
            return list(self._data)


class JsonFileKeyValueStore(KeyValueStore):
    """All keys kept in one JSON document on disk, rewritten atomically on every change."""

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._data: Dict[str, bytes] = self._load()

    def _load(self) -> Dict[str, bytes]:
        if not self.path.exists():
            return {}

        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read key-value file {self.path}: {e}")
            raise ValueError(f"Corrupted key-value file: {self.path}") from e

        data = {}
        for key, encoded in document.items():
            data[key] = base64.b64decode(encoded)

        logger.info(f"Loaded {len(data)} keys from {self.path}")
        return data

    def _flush(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        document = {key: base64.b64encode(value).decode("ascii") for key, value in self._data.items()}

        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)
            self._flush()

    def remove(self, key: str) -> None:
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._flush()


class SQLiteKeyValueStore(KeyValueStore):
    """Key-value table in a SQLite database."""

    def __init__(self, db_path: str = "attendance.db"):
        self.db_path = db_path
        self._lock = threading.Lock()
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self.init_database()

    def init_database(self):
        """Create the key-value table."""
        with self._lock:
            self._conn.execute('''
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value BLOB NOT NULL,
                    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
                )
            ''')
            self._conn.commit()
        logger.info(f"Key-value database initialized at {self.db_path}")

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            row = self._conn.execute(
                'SELECT value FROM kv_store WHERE key = ?', (key,)
            ).fetchone()
        return bytes(row[0]) if row else None

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._conn.execute('''
                INSERT INTO kv_store (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP
            ''', (key, sqlite3.Binary(value)))
            self._conn.commit()

    def remove(self, key: str) -> None:
        with self._lock:
            self._conn.execute('DELETE FROM kv_store WHERE key = ?', (key,))
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()


def create_store(backend: str, path: Optional[str] = None) -> KeyValueStore:
    """Build a key-value store for the configured backend name."""
    backend = backend.lower()
    if backend == "memory":
        return InMemoryKeyValueStore()
    if backend == "json":
        return JsonFileKeyValueStore(path or "attendance_data/store.json")
    if backend == "sqlite":
        return SQLiteKeyValueStore(path or "attendance_data/attendance.db")
    raise ValueError(f"Unknown store backend: {backend}")


def load_json(store: KeyValueStore, key: str, default):
    """Decode a JSON document stored under ``key``."""
    raw = store.get(key)
    if raw is None:
        return default
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error(f"Stored value under '{key}' is not valid JSON: {e}")
        raise ValueError(f"Corrupted record list under key '{key}'") from e


def save_json(store: KeyValueStore, key: str, value) -> None:
    """Encode ``value`` as JSON and store it under ``key``."""
    store.set(key, json.dumps(value, separators=(",", ":")).encode("utf-8"))
