from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from app.adapters.delivery.base import AbstractLinkSender
from app.core.config import settings
from app.core.dependencies import (
    get_link_sender,
    get_magic_link_service,
    get_rate_limiter_service,
)
from app.core.rate_limit import (
    enforce_magic_link_email_rate_limit,
    enforce_magic_link_ip_rate_limit,
)
from app.schemas.magic_link import (
    MagicLinkIssuedResponse,
    MagicLinkRequest,
    RedeemMagicLinkRequest,
    RedeemMagicLinkResponse,
)
from app.services.magic_link_service import MagicLinkService
from app.services.rate_limiter_service import RateLimiterService
from app.utils.clock import MS_PER_SECOND
from app.utils.pii import normalize_email

router = APIRouter(tags=["Magic Links"])


@router.post(
    "/magic-links",
    response_model=MagicLinkIssuedResponse,
    status_code=201,
    dependencies=[Depends(enforce_magic_link_ip_rate_limit)],
)
def request_magic_link(
    body: MagicLinkRequest,
    limiter: Annotated[RateLimiterService, Depends(get_rate_limiter_service)],
    magic_links: Annotated[MagicLinkService, Depends(get_magic_link_service)],
    sender: Annotated[AbstractLinkSender, Depends(get_link_sender)],
) -> MagicLinkIssuedResponse:
    """Issue a single-use magic link for a session and send it to the email.

    Limited per client IP and per email. The link goes through the configured
    delivery backend (``DELIVERY_BACKEND``).

    Raises:
        RateLimitExceededError: 429 with Retry-After when over a limit.
        StoreUnavailableError: 503 when the limiter or token store is down.
        LinkDeliveryError: 502 when the email provider rejects the message.
    """
    enforce_magic_link_email_rate_limit(limiter, body.email)

    raw_token = magic_links.issue(body.session_id, body.email)
    link = magic_links.build_link(raw_token)
    sender.send(normalize_email(body.email), link)

    return MagicLinkIssuedResponse(
        expires_in_seconds=magic_links.ttl_ms // MS_PER_SECOND,
        magic_link=link if settings.magic_link.expose_links else None,
    )


@router.post("/magic-links/redeem", response_model=RedeemMagicLinkResponse)
def redeem_magic_link(
    body: RedeemMagicLinkRequest,
    magic_links: Annotated[MagicLinkService, Depends(get_magic_link_service)],
) -> RedeemMagicLinkResponse:
    """Redeem a magic link token exactly once.

    Raises:
        TokenNotFoundError: 404 for unknown tokens.
        TokenAlreadyUsedError: 409 when replayed.
        TokenExpiredError: 410 past expiry.
        StoreUnavailableError: 503 when the token store is down.
    """
    result = magic_links.redeem(body.token)
    result.raise_for_status()
    return RedeemMagicLinkResponse(session_id=result.session_id, email=result.email)
