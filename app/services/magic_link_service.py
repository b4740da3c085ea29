"""Magic link issuance and redemption backed by the record store."""

from __future__ import annotations

import logging
from urllib.parse import urlencode

from app.adapters.store.base import AbstractRecordStore
from app.core.config import MagicLinkSettings
from app.core.errors import StoreUnavailableError, ValidationAppError
from app.services.magic_link_tokens import (
    MAGIC_LINK_NAMESPACE,
    TOKEN_BYTES,
    MagicLinkToken,
    RedemptionResult,
    generate_raw_token,
    hash_token,
    redeem_transition,
)
from app.utils.clock import MS_PER_SECOND, Clock, epoch_ms
from app.utils.pii import mask_email, normalize_email

logger = logging.getLogger(__name__)


class MagicLinkService:
    """Issues single-use magic link tokens and redeems them exactly once.

    Attributes:
        ttl_ms: Lifetime of issued tokens in milliseconds.
    """

    def __init__(
        self,
        store: AbstractRecordStore,
        *,
        ttl_ms: int,
        link_base_url: str = "http://localhost:3000",
        token_bytes: int = TOKEN_BYTES,
        clock: Clock = epoch_ms,
    ) -> None:
        if ttl_ms < 1:
            raise ValueError("ttl_ms must be >= 1")
        if token_bytes < TOKEN_BYTES:
            raise ValueError(f"token_bytes must be >= {TOKEN_BYTES}")

        self._store = store
        self.ttl_ms = ttl_ms
        self._link_base_url = link_base_url.rstrip("/")
        self._token_bytes = token_bytes
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        store: AbstractRecordStore,
        cfg: MagicLinkSettings,
        *,
        clock: Clock = epoch_ms,
    ) -> "MagicLinkService":
        return cls(
            store,
            ttl_ms=cfg.token_ttl_seconds * MS_PER_SECOND,
            link_base_url=cfg.link_base_url,
            token_bytes=cfg.token_bytes,
            clock=clock,
        )

    def issue(self, session_id: str, email: str | None = None) -> str:
        """Create a token for the session and return the raw value.

        The raw token is not stored; losing it means issuing a new one.

        Args:
            session_id: Session the token will authenticate.
            email: Optional address, stored lower-cased for auditing.

        Returns:
            The raw token.

        Raises:
            ValidationAppError: If session_id is empty.
            StoreUnavailableError: If the token could not be persisted.
        """
        if not session_id:
            raise ValidationAppError(
                code="session_id_required",
                message="A session id is required to issue a magic link",
            )

        raw_token = generate_raw_token(self._token_bytes)
        now = self._clock()
        token = MagicLinkToken(
            token_hash=hash_token(raw_token),
            session_id=session_id,
            email=normalize_email(email) if email else None,
            created_at=now,
            expires_at_ms=now + self.ttl_ms,
        )

        self._store.put(MAGIC_LINK_NAMESPACE, token.token_hash, token.to_dict())

        logger.info(
            "magic_link.issued",
            extra={
                "session_id": session_id,
                "email_masked": mask_email(token.email),
                "token_hash_prefix": token.token_hash[:16],
                "ttl_s": self.ttl_ms // MS_PER_SECOND,
            },
        )
        return raw_token

    def redeem(self, raw_token: str) -> RedemptionResult:
        """Atomically redeem a raw token.

        Returns:
            RedemptionResult; REDEEMED carries the session id and email.

        Raises:
            ValidationAppError: If raw_token is empty.
            StoreUnavailableError: If the store transaction failed. Never
                reported as a redemption outcome.
        """
        if not raw_token:
            raise ValidationAppError(
                code="token_required",
                message="Token is required",
            )

        token_hash = hash_token(raw_token)
        now = self._clock()

        try:
            result = self._store.run_transaction(
                MAGIC_LINK_NAMESPACE,
                token_hash,
                lambda current: redeem_transition(current, now),
            )
        except StoreUnavailableError:
            logger.error(
                "magic_link.store_unavailable",
                extra={"token_hash_prefix": token_hash[:16]},
            )
            raise

        if result.ok:
            logger.info(
                "magic_link.redeemed",
                extra={"session_id": result.session_id, "token_hash_prefix": token_hash[:16]},
            )
        else:
            logger.warning(
                "magic_link.redeem_rejected",
                extra={"status": result.status.value, "token_hash_prefix": token_hash[:16]},
            )
        return result

    def build_link(self, raw_token: str) -> str:
        """Build the URL the chat frontend redeems."""
        return f"{self._link_base_url}/chat?{urlencode({'token': raw_token})}"
