"""Rate limiting adapters.

This package keeps the limiting algorithm behind a small interface so call
sites only see allow/deny decisions, while the counters live in whichever
record store backend is configured.
"""

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitDecision
from app.adapters.rate_limit.sliding_window import (
    RateLimitConfig,
    RateLimitRecord,
    SlidingWindowRateLimiter,
    evaluate,
)

__all__ = [
    "AbstractRateLimiter",
    "RateLimitConfig",
    "RateLimitDecision",
    "RateLimitRecord",
    "SlidingWindowRateLimiter",
    "evaluate",
]
