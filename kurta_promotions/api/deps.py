"""
Shared route dependencies.
"""
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from kurta_promotions.core.config import settings
from kurta_promotions.core.database import get_db
from kurta_promotions.services.promotion_context import PromotionContextService
from kurta_promotions.services.promotions import PromotionEngine


@lru_cache()
def get_promotion_engine() -> PromotionEngine:
    """One engine per process; it holds no per-request state."""
    return PromotionEngine.for_currency(settings.PROMOTION_CURRENCY_DECIMALS)


def get_context_service(db: AsyncSession = Depends(get_db)) -> PromotionContextService:
    return PromotionContextService(db)
