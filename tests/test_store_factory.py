"""Tests for the record store factory."""

import pytest

from app.adapters.store.factory import create_record_store
from app.adapters.store.in_memory import InMemoryRecordStore
from app.adapters.store.sql import SqlAlchemyRecordStore
from app.core.config import StoreSettings
from app.core.errors import ValidationAppError


def test_memory_backend() -> None:
    store = create_record_store(StoreSettings(backend="memory"))
    assert isinstance(store, InMemoryRecordStore)


def test_backend_name_is_case_insensitive() -> None:
    store = create_record_store(StoreSettings(backend="MEMORY"))
    assert isinstance(store, InMemoryRecordStore)


def test_sql_backend(tmp_path) -> None:
    store = create_record_store(
        StoreSettings(backend="sql", database_url=f"sqlite:///{tmp_path / 'f.db'}")
    )
    try:
        assert isinstance(store, SqlAlchemyRecordStore)
    finally:
        store.close()


def test_sql_backend_requires_url() -> None:
    with pytest.raises(ValidationAppError) as exc_info:
        create_record_store(StoreSettings(backend="sql", database_url=""))

    assert exc_info.value.code == "store_missing_database_url"


def test_unknown_backend() -> None:
    with pytest.raises(ValidationAppError) as exc_info:
        create_record_store(StoreSettings(backend="redis"))

    assert exc_info.value.code == "store_unknown_backend"
    assert "redis" in exc_info.value.message


def test_sql_backend_rejects_in_memory_sqlite() -> None:
    with pytest.raises(ValidationAppError) as exc_info:
        create_record_store(StoreSettings(backend="sql", database_url="sqlite:///:memory:"))

    assert exc_info.value.code == "store_sqlite_memory_unsupported"
