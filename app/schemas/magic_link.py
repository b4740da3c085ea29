"""Request/response models for the magic link endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator


class MagicLinkRequest(BaseModel):
    """Request a magic link for an existing session."""

    session_id: str = Field(..., min_length=1, max_length=128, description="Session to resume")
    email: str = Field(..., min_length=3, max_length=254, description="Address the link is sent to")

    @field_validator("email")
    @classmethod
    def _looks_like_email(cls, value: str) -> str:
        local, sep, domain = value.strip().partition("@")
        if not sep or not local or "." not in domain:
            raise ValueError("email must be a valid email address")
        return value


class MagicLinkIssuedResponse(BaseModel):
    status: Literal["magic_link_sent"] = "magic_link_sent"
    expires_in_seconds: int = Field(..., description="Seconds until the link expires")
    magic_link: str | None = Field(
        None,
        description="The link itself; only returned when MAGIC_LINK_EXPOSE_LINKS is enabled",
    )


class RedeemMagicLinkRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=256)


class RedeemMagicLinkResponse(BaseModel):
    """Session restored by a redeemed magic link."""

    session_id: str
    email: str | None = None
