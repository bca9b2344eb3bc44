"""Rate limiting configuration for the ledger API.

Uses slowapi for request-level limits on money-moving endpoints. The
tracking redirect is not limited here: abusive click traffic must still be
redirected and recorded, so it is classified per link instead.
"""

from functools import lru_cache
from typing import Callable

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from libs.common.config import get_settings


def get_client_ip(request: Request) -> str:
    """
    Get client IP from request, handling proxies.

    Checks X-Forwarded-For header first (for proxied requests),
    then falls back to direct connection IP.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # Take the first IP in the chain (original client)
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return get_remote_address(request) or "unknown"


def _get_user_or_ip(request: Request) -> str:
    """
    Rate limit by user ID if authenticated, otherwise by IP.
    """
    if hasattr(request.state, "user") and request.state.user:
        return f"user:{request.state.user.user_id}"
    return f"ip:{get_client_ip(request)}"


@lru_cache
def get_limiter() -> Limiter:
    """
    Create and return a cached Limiter instance.

    Storage is configurable so that several API replicas can share
    counters through Redis; local runs and tests use process memory.
    """
    settings = get_settings()

    return Limiter(
        key_func=_get_user_or_ip,
        default_limits=["100/minute"],
        storage_uri=settings.RATE_LIMIT_STORAGE_URI,
        strategy="fixed-window",
        enabled=settings.RATE_LIMIT_ENABLED,
    )


limiter = get_limiter()


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """
    Custom handler for rate limit exceeded errors.

    Returns a JSON response with clear error message and retry-after header.
    """
    retry_after = exc.detail.split("per")[0].strip() if exc.detail else "1 minute"

    return JSONResponse(
        status_code=429,
        content={
            "detail": f"Rate limit exceeded. Try again in {retry_after}.",
            "code": "RATE_LIMIT_EXCEEDED",
        },
        headers={
            "Retry-After": str(getattr(exc, "retry_after", 60)),
        },
    )


def withdrawal_limit(func: Callable) -> Callable:
    """Apply strict rate limit for withdrawal requests (3/minute)."""
    return limiter.limit("3/minute")(func)


def admin_limit(func: Callable) -> Callable:
    """Apply relaxed rate limit for admin endpoints (200/minute)."""
    return limiter.limit("200/minute")(func)
