"""Process-wide service instances for the HTTP layer.

Instances are cached in-module so the in-memory store keeps its state across
requests. If the relevant configuration changes (primarily in tests), the
affected instances are rebuilt.
"""

from __future__ import annotations

import threading

from app.adapters.delivery.base import AbstractLinkSender
from app.adapters.delivery.factory import create_link_sender
from app.adapters.store.base import AbstractRecordStore
from app.adapters.store.factory import create_record_store
from app.core.config import settings
from app.services.magic_link_service import MagicLinkService
from app.services.rate_limiter_service import RateLimiterService, build_rate_limit_configs

_lock = threading.Lock()

_store: AbstractRecordStore | None = None
_store_config: dict | None = None

_rate_limiter_service: RateLimiterService | None = None
_rate_limiter_config: tuple[int, dict] | None = None

_magic_link_service: MagicLinkService | None = None
_magic_link_config: tuple[int, dict] | None = None

_link_sender: AbstractLinkSender | None = None
_link_sender_config: dict | None = None


def get_record_store() -> AbstractRecordStore:
    """Return the shared record store for the configured backend."""

    global _store, _store_config

    config = settings.store.model_dump()
    with _lock:
        if _store is None or _store_config != config:
            _store = create_record_store(settings.store)
            _store_config = config
        return _store


def get_rate_limiter_service() -> RateLimiterService:
    """Return the rate limiter service bound to the shared store."""

    global _rate_limiter_service, _rate_limiter_config

    store = get_record_store()
    config = (id(store), settings.rate_limit.model_dump())
    with _lock:
        if _rate_limiter_service is None or _rate_limiter_config != config:
            _rate_limiter_service = RateLimiterService.from_configs(
                store, build_rate_limit_configs(settings.rate_limit)
            )
            _rate_limiter_config = config
        return _rate_limiter_service


def get_magic_link_service() -> MagicLinkService:
    """Return the magic link service bound to the shared store."""

    global _magic_link_service, _magic_link_config

    store = get_record_store()
    config = (id(store), settings.magic_link.model_dump())
    with _lock:
        if _magic_link_service is None or _magic_link_config != config:
            _magic_link_service = MagicLinkService.from_settings(store, settings.magic_link)
            _magic_link_config = config
        return _magic_link_service


def get_link_sender() -> AbstractLinkSender:
    """Return the sender for the configured delivery backend."""

    global _link_sender, _link_sender_config

    config = settings.delivery.model_dump()
    with _lock:
        if _link_sender is None or _link_sender_config != config:
            _link_sender = create_link_sender(settings.delivery)
            _link_sender_config = config
        return _link_sender


def reset_services() -> None:
    """Drop cached instances so the next request rebuilds them."""

    global _store, _store_config, _rate_limiter_service, _rate_limiter_config
    global _magic_link_service, _magic_link_config, _link_sender, _link_sender_config

    with _lock:
        _store = _store_config = None
        _rate_limiter_service = _rate_limiter_config = None
        _magic_link_service = _magic_link_config = None
        _link_sender = _link_sender_config = None
