"""Admin key authentication for operator-only endpoints.

Administrative operations (e.g. clearing a rate limit record) are not part of
the public request path. They require an ``X-Admin-Key`` header matching one
of the comma-separated keys in ``APP_ADMIN_API_KEYS``.
"""

from __future__ import annotations

import hmac
import logging
from typing import Annotated

from fastapi import Header

from app.core.config import settings
from app.core.errors import AuthenticationAppError
from app.utils.pii import hash_identifier

logger = logging.getLogger(__name__)


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Parse comma-separated keys into a set.

    Examples:
        >>> parse_api_keys("key1, key2 , key3 ")
        {'key1', 'key2', 'key3'}
        >>> parse_api_keys(None)
        set()
    """
    if not keys_string:
        return set()

    return {key.strip() for key in keys_string.split(",") if key.strip()}


def validate_admin_key(provided_key: str) -> None:
    """Validate that the provided key matches a configured admin key.

    Pure validation logic without FastAPI dependencies for easy testing.

    Raises:
        AuthenticationAppError: If the key is invalid, or admin keys are
            required but none are configured.
    """
    if not settings.app.admin_api_key_required:
        return

    valid_keys = parse_api_keys(settings.app.admin_api_keys)

    if not valid_keys:
        logger.error(
            "admin_key_validation_failed",
            extra={"reason": "admin_keys_not_configured"},
        )
        raise AuthenticationAppError(
            code="admin_keys_not_configured",
            message="Admin endpoints are enabled but no admin keys are configured",
            details={"hint": "Set APP_ADMIN_API_KEYS or disable with APP_ADMIN_API_KEY_REQUIRED=false"},
        )

    # compare against every key so timing does not reveal which one matched
    matched = False
    for key in valid_keys:
        if hmac.compare_digest(provided_key.encode(), key.encode()):
            matched = True

    if not matched:
        logger.warning(
            "admin_key_validation_failed",
            extra={
                "reason": "invalid_admin_key",
                "admin_key_hash": hash_identifier(provided_key) if provided_key else None,
            },
        )
        raise AuthenticationAppError(
            code="invalid_admin_key",
            message="Invalid or missing admin key",
        )


def verify_admin_key(
    x_admin_key: Annotated[str | None, Header(alias="X-Admin-Key")] = None,
) -> None:
    """FastAPI dependency guarding administrative routes.

    Usage:
        @router.delete("/admin/...", dependencies=[Depends(verify_admin_key)])

    Raises:
        AuthenticationAppError: 403 when the header is missing or invalid.
    """
    if not settings.app.admin_api_key_required:
        logger.debug("admin_auth.skipped", extra={"reason": "admin_key_required_false"})
        return

    if not x_admin_key:
        logger.warning("admin_auth.missing_key", extra={"admin_key_present": False})
        raise AuthenticationAppError(
            code="missing_admin_key",
            message="Missing admin key. Provide X-Admin-Key header.",
        )

    validate_admin_key(x_admin_key)
    logger.info(
        "admin_auth.success",
        extra={"admin_key_hash": hash_identifier(x_admin_key)},
    )
