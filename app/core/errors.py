"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.

Business outcomes of the access-control core (a denied rate-limit check, a
rejected token) are returned as result objects; the classes below are what
those results raise from ``raise_for_status()`` and what infrastructure
failures raise directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    http_status: int
    retry_after: int
    limit: int
    limiter: str
    namespace: str
    backend: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""


class RateLimitExceededError(AppError):
    """Raised when a caller is over its rate limit.

    ``details["retry_after"]`` carries the wait time in seconds.
    """


class StoreUnavailableError(AppError):
    """Raised when the record store cannot complete a transaction."""


class TokenRedemptionAppError(AppError):
    """Base class for magic link redemption rejections."""


class TokenNotFoundError(TokenRedemptionAppError):
    """No magic link exists for the presented token."""


class TokenAlreadyUsedError(TokenRedemptionAppError):
    """The magic link was already redeemed (replay attempt)."""


class TokenExpiredError(TokenRedemptionAppError):
    """The magic link is past its expiry."""


class LinkDeliveryError(AppError):
    """The magic link could not be handed to the delivery provider."""
