from __future__ import annotations

from fastapi import APIRouter

from app.core.config import settings

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check used by load balancers and monitoring.

    Returns:
        dict: ``status`` ("ok") and the configured record store backend.
    """

    return {"status": "ok", "store_backend": settings.store.backend}
