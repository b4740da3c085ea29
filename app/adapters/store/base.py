"""Keyed record store interfaces.

Services depend on this abstraction (not a concrete backend) so the same
rate limiter and magic link code runs against the in-process store in tests
and a shared SQL database in production.

The one primitive is an atomic read-modify-write on a single key inside a
namespace. The transaction function receives the current value (or ``None``)
and returns the value to write together with a result for the caller. Two
sentinels express "leave the record untouched" and "delete the record".
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, TypeVar

Record = dict[str, Any]
T = TypeVar("T")


class WriteAction(Enum):
    """Non-value outcomes a transaction function may return."""

    UNCHANGED = "unchanged"
    DELETE = "delete"


UNCHANGED = WriteAction.UNCHANGED
DELETE = WriteAction.DELETE

TransactionFn = Callable[[Record | None], tuple[Record | WriteAction, T]]


class AbstractRecordStore(ABC):
    """Interface for transactional keyed record stores.

    Implementations must guarantee that, for one ``(namespace, key)``, only
    one transaction observes and replaces the record at a time and that later
    transactions observe earlier commits. Different keys must not block each
    other.

    Transaction functions must be pure with respect to the record: a backend
    may run them more than once while resolving contention, and only the last
    run's write is committed.
    """

    @abstractmethod
    def run_transaction(self, namespace: str, key: str, fn: TransactionFn[T]) -> T:
        """Atomically read, transform and write one record.

        Args:
            namespace: Collection the key belongs to (e.g. ``rate_limits``).
            key: Record key within the namespace.
            fn: Receives a copy of the current record (``None`` if absent) and
                returns ``(new_value, result)``. ``new_value`` may be a dict,
                ``UNCHANGED`` or ``DELETE``.

        Returns:
            The ``result`` part returned by ``fn``.

        Raises:
            StoreUnavailableError: If the transaction could not be completed.
            Exception: Anything raised by ``fn`` propagates and nothing is written.
        """
        raise NotImplementedError

    def get(self, namespace: str, key: str) -> Record | None:
        """Return a copy of the record, or None when absent."""
        return self.run_transaction(namespace, key, lambda current: (UNCHANGED, current))

    def put(self, namespace: str, key: str, value: Record) -> None:
        """Create or replace a record."""
        self.run_transaction(namespace, key, lambda _current: (dict(value), None))

    def delete(self, namespace: str, key: str) -> bool:
        """Delete a record.

        Returns:
            True if a record existed.
        """
        return self.run_transaction(
            namespace, key, lambda current: (DELETE, current is not None)
        )
