"""
Promotion Engine

Entry point for one evaluation: qualify → compute → stack → total.
Pure and synchronous; the only clock read is the single `now` sampled here
when the caller does not supply one.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Sequence

from kurta_promotions.services.promotions.calculator import DiscountCalculator
from kurta_promotions.services.promotions.domain import (
    CENT,
    EvaluationContext,
    EvaluationOutcome,
    Promotion,
    PromotionKind,
    quantum_for,
)
from kurta_promotions.services.promotions.stacking import resolve, total_discount

logger = logging.getLogger(__name__)


class PromotionEngine:
    """Evaluates candidate promotions against a cart."""

    def __init__(self, quantum: Decimal = CENT):
        self.calculator = DiscountCalculator(quantum=quantum)

    @classmethod
    def for_currency(cls, decimals: int) -> "PromotionEngine":
        return cls(quantum=quantum_for(decimals))

    def evaluate(
        self,
        promotions: Sequence[Promotion],
        context: EvaluationContext,
        now: Optional[datetime] = None,
    ) -> EvaluationOutcome:
        """
        Evaluate `promotions` for `context`.

        Args:
            promotions: Candidate promotions, in candidate order
            context: Cart and customer snapshot
            now: Evaluation instant (sampled once if omitted)

        Returns:
            EvaluationOutcome with the applied promotions in application order
        """
        if now is None:
            now = datetime.now(timezone.utc)
        promotions = tuple(promotions)

        results = self.calculator.evaluate(promotions, context, now)
        applied = resolve(results, promotions)
        total = total_discount(applied)

        logger.info(
            f"Evaluated {len(promotions)} promotions for {len(context.lines)} cart lines: "
            f"{len(results)} qualified, {len(applied)} applied, total discount {total}"
        )

        return EvaluationOutcome(
            applicable_promotions=tuple(applied),
            total_discount=total,
            free_shipping=any(r.kind == PromotionKind.FREE_SHIPPING for r in applied),
            evaluated_at=now,
        )
