"""
Discount Strategies

One pure function per promotion kind. Each takes the promotion, the
evaluation context and the rounding quantum, and returns
(total_discount, allocations). Line discounts are rounded to the quantum
individually and the total is their sum, so allocations always add up.

Malformed rule data raises PromotionDefinitionError; the calculator drops
the promotion in that case.
"""
from decimal import Decimal
from typing import Callable, Dict, List, Sequence, Tuple

from kurta_promotions.core.exceptions import PromotionDefinitionError
from kurta_promotions.services.promotions.domain import (
    CENT,
    HUNDRED,
    ZERO,
    CartLine,
    EvaluationContext,
    LineAllocation,
    Promotion,
    PromotionKind,
    PromotionTier,
    floor_amount,
    round_amount,
)
from kurta_promotions.services.promotions.eligibility import eligible_lines, is_line_eligible

StrategyResult = Tuple[Decimal, List[LineAllocation]]
Strategy = Callable[[Promotion, EvaluationContext, Decimal], StrategyResult]


def _check_percentage(promotion: Promotion, percentage: Decimal, label: str) -> None:
    if percentage < 0 or percentage > HUNDRED:
        raise PromotionDefinitionError(
            f"{label} must be between 0 and 100, got {percentage}",
            promotion_id=promotion.id,
        )


def _percentage_off(
    lines: Sequence[CartLine],
    percentage: Decimal,
    quantum: Decimal,
) -> StrategyResult:
    total = ZERO
    allocations = []
    for line in lines:
        original = line.amount
        discount = round_amount(original * percentage / HUNDRED, quantum)
        total += discount
        allocations.append(LineAllocation.for_line(line.line_id, original, discount))
    return total, allocations


def percentage_discount(
    promotion: Promotion,
    context: EvaluationContext,
    quantum: Decimal = CENT,
) -> StrategyResult:
    """`value` percent off every eligible line."""
    _check_percentage(promotion, promotion.value, "Percentage value")
    return _percentage_off(eligible_lines(promotion, context), promotion.value, quantum)


def distribute_amount(
    amount: Decimal,
    weights: Sequence[Decimal],
    quantum: Decimal = CENT,
) -> List[Decimal]:
    """
    Split `amount` proportionally to `weights`, rounded to `quantum`, so the
    shares sum exactly to `amount` (largest remainder; ties go to the
    earlier weight).
    """
    total_weight = sum(weights, ZERO)
    if total_weight <= 0 or amount <= 0:
        return [ZERO for _ in weights]

    exact = [amount * weight / total_weight for weight in weights]
    shares = [floor_amount(share, quantum) for share in exact]
    leftover_units = int((amount - sum(shares, ZERO)) / quantum)

    by_remainder = sorted(
        range(len(weights)),
        key=lambda i: exact[i] - shares[i],
        reverse=True,
    )
    for index in by_remainder[:leftover_units]:
        shares[index] += quantum
    return shares


def fixed_amount_discount(
    promotion: Promotion,
    context: EvaluationContext,
    quantum: Decimal = CENT,
) -> StrategyResult:
    """
    `value` off the eligible lines, spread in proportion to line amounts.
    Never distributes more than the eligible lines are worth.
    """
    if promotion.value < 0:
        raise PromotionDefinitionError(
            f"Fixed discount cannot be negative, got {promotion.value}",
            promotion_id=promotion.id,
        )

    lines = eligible_lines(promotion, context)
    amounts = [line.amount for line in lines]
    eligible_total = sum(amounts, ZERO)
    if eligible_total <= 0:
        return ZERO, []

    to_distribute = round_amount(min(promotion.value, eligible_total), quantum)
    if to_distribute > eligible_total:
        to_distribute = floor_amount(eligible_total, quantum)

    shares = distribute_amount(to_distribute, amounts, quantum)
    allocations = [
        LineAllocation.for_line(line.line_id, amount, share)
        for line, amount, share in zip(lines, amounts, shares)
    ]
    return sum(shares, ZERO), allocations


def buy_x_get_y_discount(
    promotion: Promotion,
    context: EvaluationContext,
    quantum: Decimal = CENT,
) -> StrategyResult:
    """
    For each rule, every full set of `buy_quantity` bought units unlocks
    `get_quantity` units of the get product at `discount_percentage` off,
    capped at the get units actually in the cart. The get line must be
    eligible (targeted and not excluded); the buy line only counts units.
    """
    total = ZERO
    allocations = []

    for rule in promotion.bxgy_rules:
        if rule.buy_quantity <= 0 or rule.get_quantity < 0:
            raise PromotionDefinitionError(
                f"Invalid BXGY quantities: buy {rule.buy_quantity}, get {rule.get_quantity}",
                promotion_id=promotion.id,
            )
        _check_percentage(promotion, rule.discount_percentage, "BXGY discount percentage")

        buy_line = context.first_line_for(rule.buy_product_id)
        get_line = context.first_line_for(rule.get_product_id)
        if buy_line is None or get_line is None:
            continue
        if not is_line_eligible(get_line, promotion):
            continue

        sets = buy_line.quantity // rule.buy_quantity
        discounted_quantity = min(sets * rule.get_quantity, get_line.quantity)
        if discounted_quantity <= 0:
            continue

        original = get_line.unit_price * discounted_quantity
        discount = round_amount(original * rule.discount_percentage / HUNDRED, quantum)
        total += discount
        allocations.append(LineAllocation.for_line(get_line.line_id, original, discount))

    return total, allocations


def select_tier(tiers: Sequence[PromotionTier], quantity: int):
    """Tier with the highest threshold not above `quantity`, or None."""
    applicable = [tier for tier in tiers if tier.min_quantity <= quantity]
    if not applicable:
        return None
    return max(applicable, key=lambda tier: tier.min_quantity)


def tier_discount(
    promotion: Promotion,
    context: EvaluationContext,
    quantum: Decimal = CENT,
) -> StrategyResult:
    """Percentage off eligible lines, rate picked by their combined quantity."""
    if not promotion.tiers:
        raise PromotionDefinitionError(
            "Tier discount has no tiers configured",
            promotion_id=promotion.id,
        )

    lines = eligible_lines(promotion, context)
    total_quantity = sum(line.quantity for line in lines)

    tier = select_tier(promotion.tiers, total_quantity)
    if tier is None:
        return ZERO, []

    _check_percentage(promotion, tier.discount_value, "Tier discount value")
    return _percentage_off(lines, tier.discount_value, quantum)


def free_shipping_discount(
    promotion: Promotion,
    context: EvaluationContext,
    quantum: Decimal = CENT,
) -> StrategyResult:
    """No item discount; shipping cost is waived downstream."""
    return ZERO, []


STRATEGIES: Dict[PromotionKind, Strategy] = {
    PromotionKind.PERCENTAGE: percentage_discount,
    PromotionKind.FIXED_AMOUNT: fixed_amount_discount,
    PromotionKind.BUY_X_GET_Y: buy_x_get_y_discount,
    PromotionKind.TIER_DISCOUNT: tier_discount,
    PromotionKind.FREE_SHIPPING: free_shipping_discount,
}
