"""Rate limiting for the magic link and chat call sites.

One sliding-window limiter per limiter class, all sharing the same record
store but writing to disjoint namespaces. The classes differ only by their
configuration:

- ``magic_link``: per normalized email, strict (3 per hour, 1 hour block).
- ``magic_link_ip``: per client IP, against enumeration from one source.
- ``chat``: per session id, generous enough for conversation.
"""

from __future__ import annotations

from enum import Enum
from typing import Mapping

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitDecision
from app.adapters.rate_limit.sliding_window import (
    RateLimitConfig,
    SlidingWindowRateLimiter,
    format_minutes,
)
from app.adapters.store.base import AbstractRecordStore
from app.core.config import RateLimitSettings
from app.core.errors import ValidationAppError
from app.utils.clock import MS_PER_SECOND, Clock, epoch_ms
from app.utils.pii import normalize_email


class LimiterClass(str, Enum):
    """Call-site classes that are rate limited independently."""

    MAGIC_LINK = "magic_link"
    MAGIC_LINK_IP = "magic_link_ip"
    CHAT = "chat"


# Limiter classes whose identifiers are email addresses
EMAIL_LIMITER_CLASSES = frozenset({LimiterClass.MAGIC_LINK})

NAMESPACES = {
    LimiterClass.MAGIC_LINK: "rate_limits",
    LimiterClass.MAGIC_LINK_IP: "rate_limits_magic_link_ip",
    LimiterClass.CHAT: "rate_limits_chat",
}


def _magic_link_message(minutes: int) -> str:
    return f"Too many requests. Please try again in {format_minutes(minutes)}."


def _magic_link_ip_message(minutes: int) -> str:
    return f"Too many requests from your location. Please try again in {format_minutes(minutes)}."


def _chat_message(minutes: int) -> str:
    return f"Too many requests. Please wait {format_minutes(minutes)} before continuing."


def build_rate_limit_configs(cfg: RateLimitSettings) -> dict[LimiterClass, RateLimitConfig]:
    """Translate settings (seconds) into per-class limiter configs (milliseconds)."""

    return {
        LimiterClass.MAGIC_LINK: RateLimitConfig(
            name=LimiterClass.MAGIC_LINK.value,
            namespace=NAMESPACES[LimiterClass.MAGIC_LINK],
            window_ms=cfg.magic_link_window_seconds * MS_PER_SECOND,
            max_attempts=cfg.magic_link_max_attempts,
            block_duration_ms=cfg.magic_link_block_seconds * MS_PER_SECOND,
            message=_magic_link_message,
        ),
        LimiterClass.MAGIC_LINK_IP: RateLimitConfig(
            name=LimiterClass.MAGIC_LINK_IP.value,
            namespace=NAMESPACES[LimiterClass.MAGIC_LINK_IP],
            window_ms=cfg.magic_link_ip_window_seconds * MS_PER_SECOND,
            max_attempts=cfg.magic_link_ip_max_attempts,
            block_duration_ms=cfg.magic_link_ip_block_seconds * MS_PER_SECOND,
            message=_magic_link_ip_message,
        ),
        LimiterClass.CHAT: RateLimitConfig(
            name=LimiterClass.CHAT.value,
            namespace=NAMESPACES[LimiterClass.CHAT],
            window_ms=cfg.chat_window_seconds * MS_PER_SECOND,
            max_attempts=cfg.chat_max_attempts,
            block_duration_ms=cfg.chat_block_seconds * MS_PER_SECOND,
            message=_chat_message,
        ),
    }


class RateLimiterService:
    """Routes checks and resets to the limiter of a limiter class."""

    def __init__(self, limiters: Mapping[LimiterClass, AbstractRateLimiter]) -> None:
        missing = set(LimiterClass) - set(limiters)
        if missing:
            raise ValueError(f"missing limiters for: {sorted(m.value for m in missing)}")
        self._limiters = dict(limiters)

    @classmethod
    def from_configs(
        cls,
        store: AbstractRecordStore,
        configs: Mapping[LimiterClass, RateLimitConfig],
        *,
        clock: Clock = epoch_ms,
    ) -> "RateLimiterService":
        """Build one store-backed sliding-window limiter per class."""
        return cls(
            {
                limiter_class: SlidingWindowRateLimiter(store, config, clock=clock)
                for limiter_class, config in configs.items()
            }
        )

    @staticmethod
    def normalize_identifier(limiter_class: LimiterClass, identifier: str) -> str:
        """Normalize an identifier for its limiter class.

        Emails are stripped and lower-cased; session ids and IPs pass
        through unchanged.

        Raises:
            ValidationAppError: If the identifier is empty.
        """
        if limiter_class in EMAIL_LIMITER_CLASSES:
            identifier = normalize_email(identifier or "")

        if not identifier:
            raise ValidationAppError(
                code="rate_limit_identifier_required",
                message="A non-empty identifier is required for rate limiting",
                details={"limiter": limiter_class.value},
            )
        return identifier

    def check_request(self, limiter_class: LimiterClass, identifier: str) -> RateLimitDecision:
        """Count one request against the identifier and return allow/deny.

        Store failures do not raise: the decision is a deny flagged
        ``unavailable``.
        """
        normalized = self.normalize_identifier(limiter_class, identifier)
        return self._limiters[limiter_class].check(normalized)

    def reset(self, limiter_class: LimiterClass, identifier: str) -> None:
        """Delete the identifier's record (administrative).

        Raises:
            StoreUnavailableError: If the store cannot complete the delete.
        """
        normalized = self.normalize_identifier(limiter_class, identifier)
        self._limiters[limiter_class].reset(normalized)
