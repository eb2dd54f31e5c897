"""
Database engine and sessions

The promotions service only reads: promotion definitions, catalog placement,
segment memberships and order history are owned by other services. Sessions
are therefore never committed, and every connection carries a statement
timeout so a slow query cannot stall checkout.
"""
from typing import Any, AsyncIterator, Dict

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from kurta_promotions.core.config import Settings, settings


def engine_options(config: Settings) -> Dict[str, Any]:
    """Keyword arguments for create_async_engine under `config`."""
    if config.ENVIRONMENT == "production":
        options: Dict[str, Any] = {
            "pool_size": config.DB_POOL_SIZE,
            "max_overflow": config.DB_MAX_OVERFLOW,
            "pool_recycle": config.DB_POOL_RECYCLE,
        }
    else:
        options = {"pool_size": 2, "max_overflow": 5}

    options["pool_pre_ping"] = True
    options["connect_args"] = {
        "server_settings": {
            "application_name": config.APP_NAME,
            "statement_timeout": str(config.DB_STATEMENT_TIMEOUT_MS),
        },
    }
    return options


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **engine_options(settings),
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db() -> AsyncIterator[AsyncSession]:
    """Request-scoped read session; whatever it did is rolled back."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.rollback()
