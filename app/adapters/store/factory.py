"""Factory pattern for creating record store instances."""

from app.adapters.store.base import AbstractRecordStore
from app.adapters.store.in_memory import InMemoryRecordStore
from app.adapters.store.sql import SqlAlchemyRecordStore
from app.core.config import StoreSettings, settings
from app.core.errors import ValidationAppError


def create_record_store(store_settings: StoreSettings | None = None) -> AbstractRecordStore:
    """Factory function to instantiate the configured record store.

    Reads configuration from app.core.config.settings unless explicit
    settings are passed.

    Args:
        store_settings: Optional store settings; defaults to global settings.

    Returns:
        AbstractRecordStore: Configured store instance.

    Raises:
        ValidationAppError: If the backend is unknown or misconfigured.
    """
    cfg = store_settings or settings.store
    backend = cfg.backend.lower()

    if backend == "memory":
        return InMemoryRecordStore(timeout_seconds=cfg.timeout_seconds)

    if backend == "sql":
        if not cfg.database_url:
            raise ValidationAppError(
                code="store_missing_database_url",
                message="SQL store backend requires STORE_DATABASE_URL",
            )
        return SqlAlchemyRecordStore.from_url(
            cfg.database_url,
            timeout_seconds=cfg.timeout_seconds,
            max_retries=cfg.max_retries,
        )

    raise ValidationAppError(
        code="store_unknown_backend",
        message=f"Unknown record store backend: '{backend}'. Supported backends: memory, sql",
    )
