"""
Request rate limiting built on SlowAPI.
Uses Redis storage when REDIS_URL is configured so limits hold across workers.
"""

import logging

from fastapi import Request
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from app.core.config import settings

logger = logging.getLogger("perftracker.rate_limiter")


def get_real_client_ip(request: Request) -> str:
    """
    Client IP, honouring X-Forwarded-For and X-Real-IP from a reverse proxy.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # First hop is the original client
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return get_remote_address(request)


def get_principal_identifier(request: Request) -> str:
    """
    Rate limit key: the authenticated principal when the session has been
    resolved for this request, the client IP otherwise.
    """
    principal = getattr(request.state, "principal", None)
    if principal is not None and getattr(principal, "id", None) is not None:
        return f"{principal.role}:{principal.id}"

    return f"ip:{get_real_client_ip(request)}"


def _storage_uri():
    if not settings.REDIS_URL:
        if settings.is_production:
            logger.warning(
                "Rate limiting is using in-memory storage in production. "
                "Limits will not be shared between instances; configure REDIS_URL."
            )
        return None

    logged_url = settings.REDIS_URL.split('@')[-1]
    logger.info(f"Rate limiter using Redis backend: {logged_url}")
    return settings.REDIS_URL


limiter = Limiter(
    key_func=get_principal_identifier,
    storage_uri=_storage_uri(),
    strategy="fixed-window",
    headers_enabled=True,
    enabled=settings.RATE_LIMIT_ENABLED,
)


def _retry_after_seconds(exc: RateLimitExceeded) -> int:
    """Length of the exceeded limit's window, e.g. 60 for "5/minute"."""
    limit_item = getattr(getattr(exc, "limit", None), "limit", None)
    if limit_item is None:
        return 60
    return int(limit_item.get_expiry())


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Render a 429 in the standard error envelope with retry information."""
    logger.warning(
        f"Rate limit exceeded for {get_principal_identifier(request)} "
        f"on {request.method} {request.url.path}"
    )

    retry_after = _retry_after_seconds(exc)

    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "message": f"Too many requests. Please retry after {retry_after} seconds.",
            "retry_after": retry_after,
        },
        headers={"Retry-After": str(retry_after)},
    )


class RateLimits:
    """Limits applied to individual endpoints."""

    AUTH_LOGIN = "5/minute"
    AUTH_REGISTER = "3/minute"
    AUTH_REFRESH = "30/minute"
