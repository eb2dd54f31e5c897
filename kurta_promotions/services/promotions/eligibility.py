"""
Line eligibility for a promotion.

A line is a discount target when it is targeted (no line-level targets means
every line) and matches none of the promotion's exclusions. Lines whose
product could not be resolved are never eligible.
"""
from typing import Tuple, Union

from kurta_promotions.services.promotions.domain import (
    CartLine,
    EvaluationContext,
    Promotion,
    PromotionExclusion,
    PromotionTarget,
    TargetType,
)


def entry_matches(entry: Union[PromotionTarget, PromotionExclusion], line: CartLine) -> bool:
    """Match one target/exclusion entry against a cart line."""
    product = line.product
    if product is None:
        return False

    target_type = entry.target_type
    if target_type == TargetType.ALL:
        return True
    if target_type == TargetType.PRODUCT:
        return entry.target_id == line.product_id
    if target_type == TargetType.CATEGORY:
        return entry.target_id in product.category_ids
    if target_type == TargetType.COLLECTION:
        return entry.target_id in product.collection_ids
    if target_type == TargetType.CUSTOMER_SEGMENT:
        # Segments qualify customers, not lines
        return False
    raise ValueError(f"Unhandled target type: {target_type!r}")


def is_line_targeted(line: CartLine, promotion: Promotion) -> bool:
    targets = promotion.line_targets
    if not targets:
        return True
    return any(entry_matches(target, line) for target in targets)


def is_line_excluded(line: CartLine, promotion: Promotion) -> bool:
    return any(entry_matches(exclusion, line) for exclusion in promotion.exclusions)


def is_line_eligible(line: CartLine, promotion: Promotion) -> bool:
    """True when `promotion` may discount `line`."""
    if line.product is None:
        return False
    return is_line_targeted(line, promotion) and not is_line_excluded(line, promotion)


def eligible_lines(promotion: Promotion, context: EvaluationContext) -> Tuple[CartLine, ...]:
    """Eligible lines in cart order."""
    return tuple(line for line in context.lines if is_line_eligible(line, promotion))
