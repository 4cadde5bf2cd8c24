"""Rate limiting configuration.

Uses slowapi; storage is configurable (in-memory by default, Redis in
multi-instance deployments via ``RATE_LIMIT_STORAGE_URI=redis://...``).
"""

from functools import lru_cache
from typing import Callable

from fastapi import Request, Response
from jose import JWTError, jwt
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from libs.common.config import get_settings


def _get_client_ip(request: Request) -> str:
    """
    Get client IP from request, handling proxies.

    Checks X-Forwarded-For header first (for proxied requests),
    then falls back to direct connection IP.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # Take the first IP in the chain (original client)
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


def _get_user_or_ip(request: Request) -> str:
    """
    Rate limit by token subject if a bearer token is present, otherwise by IP.

    The token is only read for its subject here; it is verified by the auth
    dependency on the route itself.
    """
    authorization = request.headers.get("Authorization", "")
    if authorization.lower().startswith("bearer "):
        try:
            claims = jwt.get_unverified_claims(authorization[7:])
        except JWTError:
            claims = {}
        if claims.get("sub"):
            return f"user:{claims['sub']}"
    return f"ip:{_get_client_ip(request)}"


@lru_cache
def get_limiter() -> Limiter:
    """
    Create and return a cached Limiter instance.
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
    Render rate limit errors in the same shape as other service errors.
    """
    return JSONResponse(
        status_code=429,
        content={
            "detail": f"Rate limit exceeded: {exc.detail}",
            "kind": "rate_limited",
            "code": "rate_limit_exceeded",
        },
        headers={"Retry-After": "60"},
    )


def coupon_rate_limit() -> str:
    return get_settings().COUPON_RATE_LIMIT


def coupon_limit(func: Callable) -> Callable:
    """Apply the configured limit to public coupon endpoints."""
    return limiter.limit(coupon_rate_limit)(func)
