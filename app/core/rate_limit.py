"""Rate limiting dependencies for FastAPI routes.

This module wires the rate limiter service into the HTTP layer.

Design goals:
- Minimal coupling: routes depend on dependency functions only.
- Safe defaults: enforcement is on unless explicitly disabled via settings.
- Fail closed: a limiter that cannot reach its store rejects with 503.

Limiter classes used here:
- Magic link issuance is limited per client IP (dependency) and per email
  (``enforce_magic_link_email_rate_limit``, called once the body is parsed).
- Chat requests are limited per session id from the ``X-Session-ID`` header.

Dependencies are plain functions so FastAPI runs them in its thread pool;
store transactions may block.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, Request

from app.core.config import settings
from app.core.dependencies import get_rate_limiter_service
from app.core.errors import ValidationAppError
from app.services.rate_limiter_service import LimiterClass, RateLimiterService


def client_ip(request: Request) -> str:
    """Resolve the client IP used as rate limit identifier.

    The first ``X-Forwarded-For`` hop is used only when the deployment sits
    behind a trusted proxy (``APP_TRUST_FORWARDED_FOR``).
    """
    if settings.app.trust_forwarded_for:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    return request.client.host if request.client else "unknown"


def enforce_rate_limit(
    service: RateLimiterService,
    limiter_class: LimiterClass,
    identifier: str,
) -> None:
    """Count one request and raise if it is denied.

    Raises:
        RateLimitExceededError: 429 when over the limit.
        StoreUnavailableError: 503 when the limiter failed closed.
    """
    if not settings.rate_limit.enabled:
        return

    service.check_request(limiter_class, identifier).raise_for_status()


def enforce_magic_link_ip_rate_limit(
    request: Request,
    service: Annotated[RateLimiterService, Depends(get_rate_limiter_service)],
) -> None:
    """FastAPI dependency limiting magic link requests per client IP."""

    enforce_rate_limit(service, LimiterClass.MAGIC_LINK_IP, client_ip(request))


def enforce_magic_link_email_rate_limit(service: RateLimiterService, email: str) -> None:
    """Limit magic link requests per normalized email."""

    enforce_rate_limit(service, LimiterClass.MAGIC_LINK, email)


def enforce_chat_rate_limit(
    service: Annotated[RateLimiterService, Depends(get_rate_limiter_service)],
    x_session_id: Annotated[str | None, Header(alias="X-Session-ID")] = None,
) -> None:
    """FastAPI dependency limiting LLM-backed chat requests per session.

    Usage:
        @router.post("/chat", dependencies=[Depends(enforce_chat_rate_limit)])

    Raises:
        ValidationAppError: 400 when the X-Session-ID header is missing.
    """
    if not x_session_id:
        raise ValidationAppError(
            code="session_id_required",
            message="Missing session id. Provide X-Session-ID header.",
        )

    enforce_rate_limit(service, LimiterClass.CHAT, x_session_id)
