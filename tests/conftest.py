"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before anything imports app.core.config, so the
global settings object is built from them.
"""

import os

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("APP_ADMIN_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_ADMIN_API_KEYS", "test-admin-key-123,test-admin-key-456")
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

from app.adapters.store.base import AbstractRecordStore
from app.adapters.store.in_memory import InMemoryRecordStore
from app.core.dependencies import reset_services
from app.core.errors import StoreUnavailableError

START_MS = 1_700_000_000_000


class FakeClock:
    """Deterministic millisecond clock."""

    def __init__(self, start: int = START_MS) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FailingStore(AbstractRecordStore):
    """Store whose every transaction fails, as if the backend were down."""

    def __init__(self) -> None:
        self.calls = 0

    def run_transaction(self, namespace, key, fn):
        self.calls += 1
        raise StoreUnavailableError(
            code="store_unavailable",
            message="Record store transaction failed",
            details={"namespace": namespace, "backend": "test"},
        )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore(timeout_seconds=1.0)


@pytest.fixture
def failing_store() -> FailingStore:
    return FailingStore()


@pytest.fixture(autouse=True)
def _fresh_services():
    """Each test gets newly built process-wide services."""
    reset_services()
    yield
    reset_services()
