"""
Stacking Resolver

Non-stackable promotions are exclusive: the best one applies alone. When
none qualified, every stackable promotion combines.
"""
from decimal import Decimal
from typing import Dict, Iterable, List, Sequence

from kurta_promotions.services.promotions.domain import ZERO, Promotion, PromotionResult


def order_results(
    results: Sequence[PromotionResult],
    promotions_by_id: Dict[str, Promotion],
) -> List[PromotionResult]:
    """Non-stackable first, then descending priority; ties keep input order."""
    known = [r for r in results if r.promotion_id in promotions_by_id]

    def sort_key(result: PromotionResult):
        promotion = promotions_by_id[result.promotion_id]
        return (promotion.is_stackable, -promotion.priority)

    return sorted(known, key=sort_key)


def resolve(
    results: Sequence[PromotionResult],
    promotions: Iterable[Promotion],
) -> List[PromotionResult]:
    """Final applied subset, in application order."""
    promotions_by_id = {p.id: p for p in promotions}
    selected: List[PromotionResult] = []

    for result in order_results(results, promotions_by_id):
        promotion = promotions_by_id[result.promotion_id]
        if not promotion.is_stackable:
            # Sorted first, so nothing has been selected yet
            return [result]
        selected.append(result)

    return selected


def total_discount(results: Iterable[PromotionResult]) -> Decimal:
    return sum((r.discount_amount for r in results), ZERO)
