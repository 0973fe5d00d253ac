"""Rate limiting configuration for the commerce API.

Uses slowapi; storage defaults to in-process memory and can point at Redis
(``RATE_LIMIT_STORAGE_URI=redis://...``) when several workers share limits.
"""

from functools import lru_cache

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from libs.common.config import get_settings


def _get_client_ip(request: Request) -> str:
    """
    Get client IP from request, handling proxies.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # Take the first IP in the chain (original client)
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


def _get_user_or_ip(request: Request) -> str:
    """
    Rate limit by authenticated customer when known, otherwise by IP.

    Customer dependencies store the caller on ``request.state.user_id``.
    """
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return f"user:{user_id}"
    return f"ip:{_get_client_ip(request)}"


@lru_cache
def get_limiter() -> Limiter:
    """
    Create and return a cached Limiter instance.
    """
    settings = get_settings()
    return Limiter(
        key_func=_get_user_or_ip,
        storage_uri=settings.RATE_LIMIT_STORAGE_URI,
        strategy="fixed-window",
        enabled=settings.RATE_LIMIT_ENABLED,
    )


limiter = get_limiter()


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """
    Return the structured error body used across the API, plus Retry-After.
    """
    return JSONResponse(
        status_code=429,
        content={
            "error": f"Too many requests ({exc.detail}). Please wait and try again.",
            "kind": "rate_limited",
        },
        headers={"Retry-After": "60"},
    )
