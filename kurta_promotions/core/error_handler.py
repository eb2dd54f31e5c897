"""
Error responses

Every failure leaves the API in one envelope:
    {"error": {"error_type", "code", "message", "severity", "details"}}

PromotionsBaseError renders itself via to_dict(). Anything unhandled is
logged with its traceback and answered with a generic message carrying an
error id the support team can grep for. Messages that mention database
internals or secrets never reach the shopper outside DEBUG.
"""
import logging
from typing import Union
from uuid import uuid4

from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from kurta_promotions.core.config import settings
from kurta_promotions.core.exceptions import PromotionsBaseError

logger = logging.getLogger(__name__)

GENERIC_MESSAGE = "Promotions are temporarily unavailable. Please try again."
MAX_MESSAGE_LENGTH = 200

# Substrings that mark a message as leaking internals
SENSITIVE_PATTERNS = (
    "password",
    "secret",
    "token",
    "credential",
    "sqlalchemy",
    "asyncpg",
    "postgresql",
    "select ",
    "promotion_bxgy_rules",
    "customer_segment_memberships",
    "traceback",
    "file \"",
)


def is_sensitive_error(message: str) -> bool:
    lowered = message.lower()
    return any(pattern in lowered for pattern in SENSITIVE_PATTERNS)


def sanitize_error_message(error: Union[str, Exception]) -> str:
    """Client-safe version of an error message."""
    message = str(error)
    if settings.DEBUG:
        return message
    if is_sensitive_error(message):
        return GENERIC_MESSAGE
    if len(message) > MAX_MESSAGE_LENGTH:
        return message[:MAX_MESSAGE_LENGTH] + "..."
    return message


async def promotions_error_handler(request: Request, exc: PromotionsBaseError) -> JSONResponse:
    """Exception handler for PromotionsBaseError and subclasses."""
    payload = exc.to_dict()
    payload["message"] = sanitize_error_message(exc.message)

    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")

    return JSONResponse(status_code=exc.status_code, content={"error": payload})


def internal_error_response(error_id: str, exc: Exception) -> JSONResponse:
    payload = {
        "error_type": "InternalError",
        "code": "INTERNAL_ERROR",
        "message": GENERIC_MESSAGE,
        "severity": "P1",
        "details": {"error_id": error_id},
    }
    if settings.DEBUG:
        payload["message"] = str(exc)
        payload["details"]["exception"] = type(exc).__name__
    return JSONResponse(status_code=500, content={"error": payload})


class ErrorSanitizationMiddleware(BaseHTTPMiddleware):
    """Last-resort handler for exceptions no route or handler caught."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except HTTPException:
            raise
        except Exception as exc:
            error_id = uuid4().hex[:12]
            logger.exception(
                f"Unhandled error [{error_id}] on {request.method} {request.url.path}: "
                f"{type(exc).__name__}"
            )
            return internal_error_response(error_id, exc)
