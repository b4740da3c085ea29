from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Response

from app.core.auth import verify_admin_key
from app.core.dependencies import get_rate_limiter_service
from app.services.rate_limiter_service import LimiterClass, RateLimiterService

router = APIRouter(tags=["Admin"], dependencies=[Depends(verify_admin_key)])


@router.delete("/admin/rate-limits/{limiter_class}/{identifier}", status_code=204)
def reset_rate_limit(
    limiter_class: LimiterClass,
    identifier: str,
    limiter: Annotated[RateLimiterService, Depends(get_rate_limiter_service)],
) -> Response:
    """Clear the rate limit record of one identifier (operator use).

    Raises:
        AuthenticationAppError: 403 without a valid X-Admin-Key.
        StoreUnavailableError: 503 if the store cannot delete the record.
    """
    limiter.reset(limiter_class, identifier)
    return Response(status_code=204)
