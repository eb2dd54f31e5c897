"""
Discount Calculator

Runs every qualifying promotion through its strategy and produces one
PromotionResult per promotion. A promotion that fails to compute is logged
and dropped; the rest of the evaluation carries on.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional

from kurta_promotions.core.exceptions import (
    PromotionComputationError,
    PromotionsBaseError,
    UnsupportedPromotionKindError,
)
from kurta_promotions.services.promotions.domain import (
    CENT,
    ZERO,
    EvaluationContext,
    Promotion,
    PromotionKind,
    PromotionResult,
)
from kurta_promotions.services.promotions.qualifier import qualifies
from kurta_promotions.services.promotions.strategies import STRATEGIES

logger = logging.getLogger(__name__)


def _format_number(value: Decimal) -> str:
    if value == value.to_integral_value():
        return str(int(value))
    return str(value.normalize())


def promotion_message(promotion: Promotion, discount_amount: Decimal) -> str:
    """Shopper-facing description of what the promotion did."""
    if promotion.kind == PromotionKind.PERCENTAGE:
        return f"{_format_number(promotion.value)}% off selected items"
    if promotion.kind == PromotionKind.FIXED_AMOUNT:
        return f"{promotion.value:.2f} off your purchase"
    if promotion.kind == PromotionKind.BUY_X_GET_Y:
        return "Buy X get Y discount applied"
    if promotion.kind == PromotionKind.FREE_SHIPPING:
        return "Free shipping applied"
    if promotion.kind == PromotionKind.TIER_DISCOUNT:
        return "Volume discount applied"
    return f"Saved {discount_amount:.2f}"


class DiscountCalculator:
    """
    Computes per-promotion results for one evaluation.

    Stateless apart from the rounding quantum; a single instance can serve
    concurrent evaluations.
    """

    def __init__(self, quantum: Decimal = CENT, strategies=None):
        self.quantum = quantum
        self.strategies = strategies or STRATEGIES

    def compute(self, promotion: Promotion, context: EvaluationContext) -> PromotionResult:
        """Compute one promotion's discount, assuming it qualifies."""
        strategy = self.strategies.get(promotion.kind)
        if strategy is None:
            raise UnsupportedPromotionKindError(
                f"No strategy for promotion kind {promotion.kind.value}",
                promotion_id=promotion.id,
            )

        try:
            total, allocations = strategy(promotion, context, self.quantum)
        except PromotionsBaseError:
            raise
        except (ArithmeticError, TypeError, ValueError) as exc:
            raise PromotionComputationError(
                f"{promotion.kind.value} discount failed: {exc}",
                promotion_id=promotion.id,
            ) from exc

        original_total = sum((a.original_amount for a in allocations), ZERO)

        discount = max(ZERO, min(total, original_total))
        if promotion.max_discount_amount is not None and discount > promotion.max_discount_amount:
            discount = max(ZERO, promotion.max_discount_amount)

        return PromotionResult(
            promotion_id=promotion.id,
            kind=promotion.kind,
            discount_amount=discount,
            allocations=tuple(allocations),
            message=promotion_message(promotion, discount),
        )

    def evaluate(
        self,
        promotions: Iterable[Promotion],
        context: EvaluationContext,
        now: datetime,
    ) -> List[PromotionResult]:
        """Results for every qualifying promotion, in candidate order."""
        results = []
        for promotion in promotions:
            result = self._evaluate_one(promotion, context, now)
            if result is not None:
                results.append(result)
        return results

    def _evaluate_one(
        self,
        promotion: Promotion,
        context: EvaluationContext,
        now: datetime,
    ) -> Optional[PromotionResult]:
        try:
            if not qualifies(promotion, context, now):
                return None
            return self.compute(promotion, context)
        except Exception:
            # One broken promotion must not block checkout for the others
            logger.exception(f"Dropping promotion {promotion.id}: discount computation failed")
            return None
