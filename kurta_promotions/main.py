"""
Kurta Promotions API

Serves promotion validation for the storefront cart and checkout. Run with
`kurta-promotions` (see server.py) or `uvicorn kurta_promotions.main:app`.
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text

from kurta_promotions import __version__
from kurta_promotions.api.routes import promotions
from kurta_promotions.core.config import settings
from kurta_promotions.core.database import AsyncSessionLocal, engine
from kurta_promotions.core.error_handler import ErrorSanitizationMiddleware, promotions_error_handler
from kurta_promotions.core.exceptions import PromotionsBaseError
from kurta_promotions.core.logging_config import configure_logging
from kurta_promotions.core.rate_limit import limiter, rate_limit_exceeded_handler

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        f"{settings.APP_NAME} {__version__} up: environment={settings.ENVIRONMENT}, "
        f"currency decimals={settings.PROMOTION_CURRENCY_DECIMALS}, "
        f"rate limiting={'on' if settings.RATE_LIMIT_ENABLED else 'off'}"
    )
    yield
    await engine.dispose()
    logger.info(f"{settings.APP_NAME} shut down, connection pool closed")


def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.APP_NAME,
        description="Evaluates which promotions apply to a cart and how much they take off.",
        version=__version__,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Promotions", "description": "Promotion validation against a cart"},
            {"name": "Health", "description": "Liveness and database checks"},
        ],
    )

    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    application.add_exception_handler(PromotionsBaseError, promotions_error_handler)

    # CORS must stay outermost (added last) so error responses carry its headers
    application.add_middleware(ErrorSanitizationMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    application.include_router(promotions.router, prefix="/api/promotions", tags=["Promotions"])
    return application


app = create_app()


@app.get("/", tags=["Health"])
async def root():
    return {"service": settings.APP_NAME, "version": __version__, "status": "operational"}


@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness plus a database round trip; 503 when the database is unreachable."""
    checked_at = datetime.now(timezone.utc).isoformat()
    try:
        async with AsyncSessionLocal() as db:
            await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning(f"Health check failed: {type(e).__name__}")
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": f"error: {type(e).__name__}", "timestamp": checked_at},
        )
    return {"status": "healthy", "database": "connected", "timestamp": checked_at}
