"""Store-backed sliding-window rate limiter with punitive blocking.

Each identifier owns one record holding the attempt count of its current
window. Once a request arrives with the count already at the limit, the
identifier is blocked for a fixed duration; requests during the block are
denied without touching the record, so hammering does not extend it.

The decision and the next record are computed by ``evaluate`` (pure), and
``SlidingWindowRateLimiter`` runs it inside a single store transaction so two
concurrent requests can never both see the same count.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitDecision
from app.adapters.store.base import UNCHANGED, AbstractRecordStore, Record, WriteAction
from app.core.errors import StoreUnavailableError
from app.utils.clock import MS_PER_MINUTE, MS_PER_SECOND, Clock, epoch_ms
from app.utils.pii import hash_identifier

logger = logging.getLogger(__name__)

UNAVAILABLE_REASON = "Rate limiter unavailable - request blocked for security."


def format_minutes(minutes: int) -> str:
    """Render a minute count with the right plural, e.g. ``1 minute``, ``5 minutes``."""
    return f"{minutes} minute{'s' if minutes > 1 else ''}"


def default_block_message(minutes: int) -> str:
    return f"Too many requests. Please try again in {format_minutes(minutes)}."


@dataclass(frozen=True)
class RateLimitConfig:
    """Immutable limits for one limiter class.

    Attributes:
        name: Limiter class name used in logs and decisions.
        namespace: Store namespace holding this class's records.
        window_ms: Length of the counting window.
        max_attempts: Requests allowed per window before blocking.
        block_duration_ms: Length of the block once the limit is exceeded.
        message: Maps minutes remaining to the user-facing deny reason.
    """

    name: str
    namespace: str
    window_ms: int
    max_attempts: int
    block_duration_ms: int
    message: Callable[[int], str] = default_block_message

    def __post_init__(self) -> None:
        if self.window_ms < 1:
            raise ValueError("window_ms must be >= 1")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.block_duration_ms < 1:
            raise ValueError("block_duration_ms must be >= 1")
        if not self.namespace:
            raise ValueError("namespace must be a non-empty string")


@dataclass
class RateLimitRecord:
    """Persisted usage for one identifier."""

    identifier: str
    attempts: int
    first_attempt_at: int
    last_attempt_at: int
    blocked_until: int | None = None

    @classmethod
    def fresh(cls, identifier: str, now: int) -> "RateLimitRecord":
        return cls(identifier=identifier, attempts=1, first_attempt_at=now, last_attempt_at=now)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RateLimitRecord":
        return cls(
            identifier=data["identifier"],
            attempts=int(data["attempts"]),
            first_attempt_at=int(data["first_attempt_at"]),
            last_attempt_at=int(data["last_attempt_at"]),
            blocked_until=data.get("blocked_until"),
        )

    def to_dict(self) -> Record:
        data: Record = {
            "identifier": self.identifier,
            "attempts": self.attempts,
            "first_attempt_at": self.first_attempt_at,
            "last_attempt_at": self.last_attempt_at,
        }
        if self.blocked_until is not None:
            data["blocked_until"] = self.blocked_until
        return data


def _denied(config: RateLimitConfig, remaining_ms: int) -> RateLimitDecision:
    minutes = math.ceil(remaining_ms / MS_PER_MINUTE)
    return RateLimitDecision(
        allowed=False,
        limiter=config.name,
        limit=config.max_attempts,
        reason=config.message(minutes),
        retry_after_seconds=math.ceil(remaining_ms / MS_PER_SECOND),
    )


def evaluate(
    config: RateLimitConfig,
    identifier: str,
    record: RateLimitRecord | None,
    now: int,
) -> tuple[RateLimitRecord | None, RateLimitDecision]:
    """Decide one request and compute the record to write.

    Args:
        config: Limits for the limiter class.
        identifier: Subject being limited.
        record: Current stored record, or None on first contact.
        now: Current time in epoch milliseconds.

    Returns:
        Tuple of (record to write or None to leave the store untouched, decision).
    """
    allowed = RateLimitDecision(allowed=True, limiter=config.name, limit=config.max_attempts)

    if record is None:
        return RateLimitRecord.fresh(identifier, now), allowed

    # Blocked while now < blocked_until; a request at exactly blocked_until passes.
    if record.blocked_until is not None and record.blocked_until > now:
        return None, _denied(config, record.blocked_until - now)

    if now - record.first_attempt_at > config.window_ms:
        return RateLimitRecord.fresh(identifier, now), allowed

    if record.attempts >= config.max_attempts:
        blocked = RateLimitRecord(
            identifier=record.identifier,
            attempts=record.attempts + 1,
            first_attempt_at=record.first_attempt_at,
            last_attempt_at=now,
            blocked_until=now + config.block_duration_ms,
        )
        return blocked, _denied(config, config.block_duration_ms)

    counted = RateLimitRecord(
        identifier=record.identifier,
        attempts=record.attempts + 1,
        first_attempt_at=record.first_attempt_at,
        last_attempt_at=now,
        blocked_until=record.blocked_until,
    )
    return counted, allowed


class SlidingWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter for one limiter class, persisted in a record store.

    Holds no per-identifier state of its own: every decision is derived from
    the store inside one transaction, so any number of service instances can
    share a store.

    If the store fails, the limiter fails closed and returns a denied decision
    flagged ``unavailable`` instead of letting the request through.
    """

    def __init__(
        self,
        store: AbstractRecordStore,
        config: RateLimitConfig,
        *,
        clock: Clock = epoch_ms,
    ) -> None:
        self._store = store
        self._config = config
        self._clock = clock

    def check(self, identifier: str) -> RateLimitDecision:
        """Record one request for the identifier and return the decision.

        Raises:
            ValueError: If identifier is empty.
        """
        if not identifier:
            raise ValueError("identifier must be a non-empty string")

        config = self._config
        now = self._clock()

        def _transition(current: Record | None) -> tuple[Record | WriteAction, RateLimitDecision]:
            record = RateLimitRecord.from_dict(current) if current is not None else None
            next_record, decision = evaluate(config, identifier, record, now)
            return (next_record.to_dict() if next_record is not None else UNCHANGED), decision

        try:
            decision = self._store.run_transaction(config.namespace, identifier, _transition)
        except StoreUnavailableError:
            logger.error(
                "rate_limit.store_unavailable",
                extra={
                    "limiter": config.name,
                    "key_hash": hash_identifier(identifier),
                    "fail_mode": "closed",
                },
            )
            return RateLimitDecision(
                allowed=False,
                limiter=config.name,
                limit=config.max_attempts,
                reason=UNAVAILABLE_REASON,
                unavailable=True,
            )

        if decision.allowed:
            logger.debug(
                "rate_limit.allowed",
                extra={
                    "limiter": config.name,
                    "key_hash": hash_identifier(identifier),
                    "limit": config.max_attempts,
                    "window_s": config.window_ms // MS_PER_SECOND,
                },
            )
        else:
            logger.warning(
                "rate_limit.blocked",
                extra={
                    "limiter": config.name,
                    "key_hash": hash_identifier(identifier),
                    "limit": config.max_attempts,
                    "retry_after_s": decision.retry_after_seconds,
                },
            )
        return decision

    def reset(self, identifier: str) -> None:
        """Delete the identifier's record.

        Raises:
            StoreUnavailableError: If the store cannot complete the delete.
        """
        existed = self._store.delete(self._config.namespace, identifier)
        logger.info(
            "rate_limit.reset",
            extra={
                "limiter": self._config.name,
                "key_hash": hash_identifier(identifier),
                "existed": existed,
            },
        )
