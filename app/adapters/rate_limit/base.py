"""Rate limiter interfaces.

Callers depend on this abstraction (not the concrete implementation) so the
limiting algorithm and its storage can change without touching call sites.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from app.core.errors import RateLimitExceededError, StoreUnavailableError


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the request may proceed.
        limiter: Name of the limiter class that made the decision.
        limit: Max requests per window for that limiter.
        reason: User-facing explanation when denied.
        retry_after_seconds: Suggested wait in seconds when blocked.
        unavailable: True when the deny comes from a store failure
            (fail closed) rather than from the caller's own usage.
    """

    allowed: bool
    limiter: str
    limit: int
    reason: str | None = None
    retry_after_seconds: int | None = None
    unavailable: bool = False

    def raise_for_status(self) -> None:
        """Raise the matching AppError if the request was denied.

        Raises:
            StoreUnavailableError: Denied because the limiter could not reach its store.
            RateLimitExceededError: Denied because the caller is over its limit.
        """
        if self.allowed:
            return

        if self.unavailable:
            raise StoreUnavailableError(
                code="rate_limiter_unavailable",
                message=self.reason or "Rate limiter unavailable",
                details={"limiter": self.limiter},
            )

        raise RateLimitExceededError(
            code="rate_limit_exceeded",
            message=self.reason or "Too many requests",
            details={
                "limiter": self.limiter,
                "limit": self.limit,
                "retry_after": self.retry_after_seconds or 0,
            },
        )


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def check(self, identifier: str) -> RateLimitDecision:
        """Record one request for ``identifier`` and decide whether it is allowed.

        Args:
            identifier: Already-normalized subject (email, IP, session id).

        Returns:
            RateLimitDecision describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def reset(self, identifier: str) -> None:
        """Forget all usage recorded for ``identifier``."""
        raise NotImplementedError
