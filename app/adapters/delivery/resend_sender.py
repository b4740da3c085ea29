"""Magic link delivery through the Resend email API.

One plain-text email per link, sent with a synchronous ``httpx.Client`` since
the issuing route runs in FastAPI's thread pool.
"""

from __future__ import annotations

import logging

import httpx

from app.adapters.delivery.base import AbstractLinkSender
from app.core.errors import LinkDeliveryError
from app.utils.pii import mask_email

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class ResendLinkSender(AbstractLinkSender):
    """Sends magic links as emails via Resend."""

    def __init__(
        self,
        *,
        api_key: str,
        email_from: str,
        subject: str = "Continue your onboarding chat",
        api_url: str = RESEND_API_URL,
        timeout_seconds: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._api_key = api_key
        self._email_from = email_from
        self._subject = subject
        self._api_url = api_url
        self._client = client or httpx.Client(timeout=timeout_seconds)

    def _body(self, link: str) -> str:
        return (
            f"Click this link to pick up where you left off:\n\n{link}\n\n"
            "The link works once. If you didn't request it, you can safely ignore this email."
        )

    def send(self, email: str, link: str) -> None:
        try:
            resp = self._client.post(
                self._api_url,
                headers={"Authorization": f"Bearer {self._api_key}"},
                json={
                    "from": self._email_from,
                    "to": email,
                    "subject": self._subject,
                    "text": self._body(link),
                },
            )
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error(
                "magic_link.delivery_failed",
                extra={
                    "email_masked": mask_email(email),
                    "provider": "resend",
                    "error_type": type(exc).__name__,
                },
            )
            raise LinkDeliveryError(
                code="magic_link_delivery_failed",
                message="Could not send the magic link email. Please try again later.",
                details={"backend": "resend"},
            ) from exc

        logger.info(
            "magic_link.delivered",
            extra={"email_masked": mask_email(email), "provider": "resend"},
        )

    def close(self) -> None:
        self._client.close()
