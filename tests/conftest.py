"""Shared fixtures for the face attendance tests."""

import os

# Must be set before utils.config builds the global configuration.
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("ATTENDANCE_TIMEZONE", "UTC")

from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402

from attendance.attendance_system import AttendanceSystem  # noqa: E402
from attendance.ledger import AttendanceLedger  # noqa: E402
from identity.identity_store import Identity, IdentityStore  # noqa: E402
from storage.kv_store import InMemoryKeyValueStore  # noqa: E402

ALICE = [0.0, 0.0, 0.0]
BOB = [1.0, 0.0, 0.0]
CAROL = [0.0, 1.0, 0.0]


def samples_near(center, count=5, step=0.01):
    """``count`` embeddings a small distance from ``center``."""
    return [[center[0] + step * i] + list(center[1:]) for i in range(count)]


def utc(year, month, day, hour=9, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def kv_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def identity_store(kv_store):
    return IdentityStore(kv_store)


@pytest.fixture
def ledger(kv_store):
    return AttendanceLedger(kv_store, tz=timezone.utc)


@pytest.fixture
def enroll():
    """Add an identity straight to a store, bypassing the enrollment session."""
    def _enroll(store, name, center, count=3):
        identity = Identity.create(name, samples_near(center, count))
        store.add(identity)
        return identity
    return _enroll


@pytest.fixture
def system():
    attendance_system = AttendanceSystem(InMemoryKeyValueStore())
    yield attendance_system
    attendance_system.close()


@pytest.fixture
def enrolled_system(system, enroll):
    """System with Alice and Bob enrolled and the matcher rebuilt."""
    enroll(system.store, "Alice", ALICE)
    enroll(system.store, "Bob", BOB)
    system.reload_matcher()
    return system
