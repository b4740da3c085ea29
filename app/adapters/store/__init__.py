"""Keyed record store adapters - abstracts over storage backends."""

from app.adapters.store.base import DELETE, UNCHANGED, AbstractRecordStore, Record
from app.adapters.store.factory import create_record_store
from app.adapters.store.in_memory import InMemoryRecordStore
from app.adapters.store.sql import SqlAlchemyRecordStore

__all__ = [
    "AbstractRecordStore",
    "DELETE",
    "InMemoryRecordStore",
    "Record",
    "SqlAlchemyRecordStore",
    "UNCHANGED",
    "create_record_store",
]
