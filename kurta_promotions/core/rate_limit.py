"""
Rate limiting for the validation endpoint.

Limits are keyed on the client IP. Request headers naming the shopper are
not authenticated and never pick the bucket. Storage is in-memory unless
RATE_LIMIT_STORAGE_URI points at a shared backend.
"""
import logging

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

from kurta_promotions.core.config import settings

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """Original client IP behind the storefront proxy."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


def get_rate_limit_key(request: Request) -> str:
    return f"ip:{get_client_ip(request)}"


limiter = Limiter(
    key_func=get_rate_limit_key,
    enabled=settings.RATE_LIMIT_ENABLED,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 in the same envelope as PromotionsBaseError responses."""
    key = get_rate_limit_key(request)
    logger.warning(f"Rate limit exceeded for {key} on {request.url.path}")

    limit = exc.detail or settings.RATE_LIMIT_PROMOTIONS
    return JSONResponse(
        status_code=429,
        content={
            "error": {
                "error_type": "RateLimitExceeded",
                "code": "PROMOTION_RATE_LIMITED",
                "message": "Too many promotion checks. Please slow down and try again.",
                "severity": "P3",
                "details": {"limit": limit},
            }
        },
        headers={"Retry-After": "60"},
    )


def get_promotions_limit():
    """Limit for promotion validation."""
    return limiter.limit(settings.RATE_LIMIT_PROMOTIONS)
