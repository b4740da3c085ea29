"""Factory pattern for creating magic link sender instances."""

from app.adapters.delivery.base import AbstractLinkSender
from app.adapters.delivery.logging_sender import LoggingLinkSender
from app.adapters.delivery.resend_sender import ResendLinkSender
from app.core.config import DeliverySettings, settings
from app.core.errors import ValidationAppError


def create_link_sender(delivery_settings: DeliverySettings | None = None) -> AbstractLinkSender:
    """Instantiate the configured link sender.

    Raises:
        ValidationAppError: If the backend is unknown or misconfigured.
    """
    cfg = delivery_settings or settings.delivery
    backend = cfg.backend.lower()

    if backend == "log":
        return LoggingLinkSender()

    if backend == "resend":
        if not cfg.resend_api_key or not cfg.email_from:
            raise ValidationAppError(
                code="delivery_missing_credentials",
                message="Resend delivery requires DELIVERY_RESEND_API_KEY and DELIVERY_EMAIL_FROM",
            )
        return ResendLinkSender(
            api_key=cfg.resend_api_key,
            email_from=cfg.email_from,
            subject=cfg.subject,
            timeout_seconds=cfg.timeout_seconds,
        )

    raise ValidationAppError(
        code="delivery_unknown_backend",
        message=f"Unknown link delivery backend: '{backend}'. Supported backends: log, resend",
    )
