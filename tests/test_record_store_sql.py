"""Tests for the SQLAlchemy record store against SQLite files."""

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from app.adapters.store.base import UNCHANGED
from app.adapters.store.sql import SqlAlchemyRecordStore
from app.core.errors import StoreUnavailableError, ValidationAppError


@pytest.fixture
def sql_store(tmp_path):
    store = SqlAlchemyRecordStore.from_url(f"sqlite:///{tmp_path / 'records.db'}")
    yield store
    store.close()


def test_put_get_delete(sql_store: SqlAlchemyRecordStore) -> None:
    assert sql_store.get("ns", "k") is None

    sql_store.put("ns", "k", {"attempts": 1, "blocked_until": None})
    assert sql_store.get("ns", "k") == {"attempts": 1, "blocked_until": None}

    sql_store.put("ns", "k", {"attempts": 2})
    assert sql_store.get("ns", "k") == {"attempts": 2}

    assert sql_store.delete("ns", "k") is True
    assert sql_store.delete("ns", "k") is False
    assert sql_store.get("ns", "k") is None


def test_unchanged_returns_result_without_write(sql_store: SqlAlchemyRecordStore) -> None:
    sql_store.put("ns", "k", {"v": 1})

    result = sql_store.run_transaction("ns", "k", lambda current: (UNCHANGED, current["v"]))

    assert result == 1
    assert sql_store.get("ns", "k") == {"v": 1}


def test_exception_in_transaction_rolls_back(sql_store: SqlAlchemyRecordStore) -> None:
    sql_store.put("ns", "k", {"v": 1})

    def _boom(current):
        raise RuntimeError("business failure")

    with pytest.raises(RuntimeError):
        sql_store.run_transaction("ns", "k", _boom)

    assert sql_store.get("ns", "k") == {"v": 1}


def test_namespaces_are_disjoint(sql_store: SqlAlchemyRecordStore) -> None:
    sql_store.put("magic_links", "abc", {"owner": "token"})
    sql_store.put("rate_limits", "abc", {"owner": "limit"})

    assert sql_store.get("magic_links", "abc") == {"owner": "token"}
    assert sql_store.get("rate_limits", "abc") == {"owner": "limit"}


def test_records_survive_a_new_store_instance(tmp_path) -> None:
    url = f"sqlite:///{tmp_path / 'shared.db'}"
    first = SqlAlchemyRecordStore.from_url(url)
    first.put("ns", "k", {"v": 1})
    first.close()

    second = SqlAlchemyRecordStore.from_url(url)
    try:
        assert second.get("ns", "k") == {"v": 1}
    finally:
        second.close()


def test_concurrent_increments_are_serialized(sql_store: SqlAlchemyRecordStore) -> None:
    def _increment(current):
        count = (current or {}).get("count", 0)
        return {"count": count + 1}, None

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda _: sql_store.run_transaction("ns", "k", _increment), range(40)))

    assert sql_store.get("ns", "k") == {"count": 40}


class TestFailureHandling:
    """Database errors surface as StoreUnavailableError."""

    def test_insert_conflict_is_retried(self, sql_store: SqlAlchemyRecordStore) -> None:
        conflict = IntegrityError("INSERT", {}, Exception("duplicate key"))

        with patch.object(sql_store, "_run_once", side_effect=[conflict, "ok"]) as run_once:
            assert sql_store.run_transaction("ns", "k", lambda c: (UNCHANGED, "ok")) == "ok"

        assert run_once.call_count == 2

    def test_exhausted_retries_raise_store_unavailable(self, tmp_path) -> None:
        store = SqlAlchemyRecordStore.from_url(f"sqlite:///{tmp_path / 'r.db'}", max_retries=2)
        conflict = IntegrityError("INSERT", {}, Exception("duplicate key"))

        try:
            with patch.object(store, "_run_once", side_effect=conflict) as run_once:
                with pytest.raises(StoreUnavailableError):
                    store.run_transaction("ns", "k", lambda c: (UNCHANGED, None))
            assert run_once.call_count == 3
        finally:
            store.close()

    def test_database_error_raises_store_unavailable(self, sql_store: SqlAlchemyRecordStore) -> None:
        error = OperationalError("SELECT", {}, Exception("database is locked"))

        with patch.object(sql_store, "_run_once", side_effect=error) as run_once:
            with pytest.raises(StoreUnavailableError) as exc_info:
                sql_store.get("ns", "k")

        assert run_once.call_count == 1
        assert exc_info.value.details["backend"] == "sql"


def test_negative_retries_rejected(tmp_path) -> None:
    with pytest.raises(ValueError):
        SqlAlchemyRecordStore.from_url(f"sqlite:///{tmp_path / 'r.db'}", max_retries=-1)


@pytest.mark.parametrize(
    "url",
    ["sqlite://", "sqlite:///:memory:", "sqlite:///file:shared?mode=memory&uri=true"],
)
def test_in_memory_sqlite_rejected(url: str) -> None:
    with pytest.raises(ValidationAppError) as exc_info:
        SqlAlchemyRecordStore.from_url(url)

    assert exc_info.value.code == "store_sqlite_memory_unsupported"
