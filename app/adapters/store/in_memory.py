"""In-process keyed record store.

Notes:
- Per-process only: running multiple workers gives each worker its own data,
  so use the SQL backend whenever more than one process serves requests.
- Thread-safe: one lock per (namespace, key); unrelated keys never contend.
- Locks only exist while a transaction holds or waits for them, so lookups of
  unknown keys (e.g. guessed tokens) leave nothing behind.
"""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass, field

from app.adapters.store.base import (
    DELETE,
    UNCHANGED,
    AbstractRecordStore,
    Record,
    T,
    TransactionFn,
)
from app.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

Slot = tuple[str, str]


@dataclass
class _SlotLock:
    """Lock of one (namespace, key) plus the number of transactions using it."""

    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class InMemoryRecordStore(AbstractRecordStore):
    """Record store backed by a dict guarded by per-key locks."""

    def __init__(self, *, timeout_seconds: float = 5.0) -> None:
        """Initialize the store.

        Args:
            timeout_seconds: How long a transaction waits for its key lock
                before failing with StoreUnavailableError.

        Raises:
            ValueError: If timeout_seconds is not positive.
        """
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")

        self._timeout = timeout_seconds
        self._records: dict[Slot, Record] = {}
        self._locks: dict[Slot, _SlotLock] = {}
        self._locks_guard = threading.Lock()

    def _checkout(self, slot: Slot) -> _SlotLock:
        with self._locks_guard:
            entry = self._locks.get(slot)
            if entry is None:
                entry = _SlotLock()
                self._locks[slot] = entry
            entry.users += 1
            return entry

    def _checkin(self, slot: Slot, entry: _SlotLock) -> None:
        with self._locks_guard:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[slot]

    def run_transaction(self, namespace: str, key: str, fn: TransactionFn[T]) -> T:
        """Run ``fn`` against one record while holding that record's lock."""
        slot = (namespace, key)
        entry = self._checkout(slot)
        try:
            if not entry.lock.acquire(timeout=self._timeout):
                logger.error(
                    "store.transaction_failed",
                    extra={
                        "backend": "memory",
                        "namespace": namespace,
                        "reason": "lock_timeout",
                        "timeout_s": self._timeout,
                    },
                )
                raise StoreUnavailableError(
                    code="store_unavailable",
                    message="Record store transaction timed out",
                    details={"namespace": namespace, "backend": "memory"},
                )

            try:
                current = self._records.get(slot)
                new_value, result = fn(copy.deepcopy(current))

                if new_value is DELETE:
                    self._records.pop(slot, None)
                elif new_value is not UNCHANGED:
                    self._records[slot] = copy.deepcopy(new_value)
                return result
            finally:
                entry.lock.release()
        finally:
            self._checkin(slot, entry)

    def __len__(self) -> int:
        return len(self._records)
