"""Magic link token primitives.

Raw tokens are random hex strings handed to the user once. The store only
ever sees ``hash_token(raw)``, so read access to the store (logs, backups)
is not enough to redeem a link.
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from enum import Enum
from typing import Any

from app.adapters.store.base import UNCHANGED, Record, WriteAction
from app.core.errors import (
    TokenAlreadyUsedError,
    TokenExpiredError,
    TokenNotFoundError,
)

TOKEN_BYTES = 32
MAGIC_LINK_NAMESPACE = "magic_links"


def generate_raw_token(num_bytes: int = TOKEN_BYTES) -> str:
    """Return a fresh token of ``2 * num_bytes`` hex characters.

    Raises:
        ValueError: If fewer than 32 bytes (256 bits) are requested.
    """
    if num_bytes < TOKEN_BYTES:
        raise ValueError(f"num_bytes must be >= {TOKEN_BYTES}")
    return secrets.token_hex(num_bytes)


def hash_token(raw_token: str) -> str:
    """SHA-256 hex digest of the raw token; used as the store key."""
    return hashlib.sha256(raw_token.encode()).hexdigest()


@dataclass
class MagicLinkToken:
    """Persisted state of one issued magic link."""

    token_hash: str
    session_id: str
    created_at: int
    expires_at_ms: int
    email: str | None = None
    used: bool = False
    used_at: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MagicLinkToken":
        return cls(
            token_hash=data["token_hash"],
            session_id=data["session_id"],
            created_at=int(data["created_at"]),
            expires_at_ms=int(data["expires_at_ms"]),
            email=data.get("email"),
            used=bool(data.get("used", False)),
            used_at=data.get("used_at"),
        )

    def to_dict(self) -> Record:
        data: Record = {
            "token_hash": self.token_hash,
            "session_id": self.session_id,
            "created_at": self.created_at,
            "expires_at_ms": self.expires_at_ms,
            "used": self.used,
        }
        if self.email is not None:
            data["email"] = self.email
        if self.used_at is not None:
            data["used_at"] = self.used_at
        return data

    def is_expired(self, now: int) -> bool:
        return now >= self.expires_at_ms


class RedemptionStatus(str, Enum):
    """Closed set of redemption outcomes."""

    REDEEMED = "redeemed"
    NOT_FOUND = "not_found"
    ALREADY_USED = "already_used"
    EXPIRED = "expired"


@dataclass(frozen=True)
class RedemptionResult:
    """Outcome of a redemption attempt.

    ``session_id`` and ``email`` are only set when ``status`` is REDEEMED.
    """

    status: RedemptionStatus
    session_id: str | None = None
    email: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is RedemptionStatus.REDEEMED

    def raise_for_status(self) -> None:
        """Raise the matching TokenRedemptionAppError unless redeemed."""
        if self.status is RedemptionStatus.NOT_FOUND:
            raise TokenNotFoundError(
                code="magic_link_not_found",
                message="Magic link is invalid. Please request a new one.",
            )
        if self.status is RedemptionStatus.ALREADY_USED:
            raise TokenAlreadyUsedError(
                code="magic_link_already_used",
                message="Magic link has already been used. Please request a new one.",
            )
        if self.status is RedemptionStatus.EXPIRED:
            raise TokenExpiredError(
                code="magic_link_expired",
                message="Magic link has expired. Please request a new one.",
            )


def redeem_transition(
    current: Record | None,
    now: int,
) -> tuple[Record | WriteAction, RedemptionResult]:
    """Check a stored token and mark it used when redeemable.

    Order of checks: missing, already used, expired. A token is redeemable
    only while ``now < expires_at_ms``.

    Returns:
        Tuple of (record to write or UNCHANGED, result).
    """
    if current is None:
        return UNCHANGED, RedemptionResult(RedemptionStatus.NOT_FOUND)

    token = MagicLinkToken.from_dict(current)
    if token.used:
        return UNCHANGED, RedemptionResult(RedemptionStatus.ALREADY_USED)
    if token.is_expired(now):
        return UNCHANGED, RedemptionResult(RedemptionStatus.EXPIRED)

    token.used = True
    token.used_at = now
    return token.to_dict(), RedemptionResult(
        RedemptionStatus.REDEEMED,
        session_id=token.session_id,
        email=token.email,
    )
