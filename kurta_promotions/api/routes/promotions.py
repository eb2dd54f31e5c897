"""
Promotion API Routes

Public validation endpoint used by the storefront cart and checkout.
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from kurta_promotions.api.deps import get_context_service, get_promotion_engine
from kurta_promotions.core.config import settings
from kurta_promotions.core.exceptions import PromotionInputError
from kurta_promotions.core.rate_limit import get_promotions_limit
from kurta_promotions.schemas.promotion import EvaluateRequest, EvaluateResponse
from kurta_promotions.services.promotion_context import PromotionContextService
from kurta_promotions.services.promotions import PromotionEngine

logger = logging.getLogger(__name__)
router = APIRouter()


def check_request_limits(payload: EvaluateRequest) -> None:
    """Reject oversized requests before touching the database."""
    if len(payload.cart_lines) > settings.PROMOTION_MAX_CART_LINES:
        raise PromotionInputError(
            f"Too many cart lines (max {settings.PROMOTION_MAX_CART_LINES})",
            field="cart_lines",
        )
    if payload.promotion_codes and len(payload.promotion_codes) > settings.PROMOTION_MAX_CODES:
        raise PromotionInputError(
            f"Too many promotion codes (max {settings.PROMOTION_MAX_CODES})",
            field="promotion_codes",
        )


@router.post("/validate", response_model=EvaluateResponse)
@get_promotions_limit()
async def validate_promotions(
    request: Request,
    payload: EvaluateRequest,
    service: PromotionContextService = Depends(get_context_service),
    engine: PromotionEngine = Depends(get_promotion_engine),
):
    """
    Evaluate every applicable promotion against the current cart.

    Automatic promotions are always considered; code promotions only when
    their code is in `promotion_codes`. Returns the applied promotions in
    application order and the combined discount.
    """
    check_request_limits(payload)

    now = datetime.now(timezone.utc)
    context = await service.build_context(payload)
    promotions = await service.get_candidate_promotions(payload.promotion_codes, now)

    outcome = engine.evaluate(promotions, context, now=now)
    return EvaluateResponse.from_outcome(outcome)
