"""Magic link delivery adapters - abstracts over email providers."""

from app.adapters.delivery.base import AbstractLinkSender
from app.adapters.delivery.factory import create_link_sender
from app.adapters.delivery.logging_sender import LoggingLinkSender
from app.adapters.delivery.resend_sender import ResendLinkSender

__all__ = [
    "AbstractLinkSender",
    "LoggingLinkSender",
    "ResendLinkSender",
    "create_link_sender",
]
