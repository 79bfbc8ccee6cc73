"""Key-value persistence backends for the face attendance engine."""
from .kv_store import (
    KeyValueStore,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    SQLiteKeyValueStore,
    create_store,
    load_json,
    save_json,
)

__all__ = [
    'KeyValueStore',
    'InMemoryKeyValueStore',
    'JsonFileKeyValueStore',
    'SQLiteKeyValueStore',
    'create_store',
    'load_json',
    'save_json',
]
