"""Helpers for keeping personal data out of logs and store keys."""

from __future__ import annotations

import hashlib


def normalize_email(email: str) -> str:
    """Normalize an email address for use as a rate limit or token identifier.

    Surrounding whitespace is removed and the address is lower-cased. Issuance
    and redemption both go through this function, so the stored form always
    matches what a later lookup computes.

    Examples:
        >>> normalize_email("  Jane.Doe@Example.COM ")
        'jane.doe@example.com'
    """
    return email.strip().lower()


def mask_email(email: str | None) -> str:
    """Mask an email address for logging.

    Keeps the first character of the local part and the full domain.

    Examples:
        >>> mask_email("john.doe@example.com")
        'j***@example.com'
        >>> mask_email("not-an-email")
        '[invalid-email]'
        >>> mask_email(None)
        '[no-email]'
    """
    if not email:
        return "[no-email]"

    local_part, sep, domain = email.partition("@")
    if not sep or not domain:
        return "[invalid-email]"

    masked_local = f"{local_part[0]}***" if local_part else "***"
    return f"{masked_local}@{domain}"


def hash_identifier(identifier: str) -> str:
    """Hash an identifier for logging without exposing it."""
    return hashlib.sha256(identifier.encode()).hexdigest()[:16]
