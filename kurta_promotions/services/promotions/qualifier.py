"""
Promotion qualification.

Decides whether a promotion applies to the request at all, before any
discount is computed. A promotion that fails a check is simply not a
candidate; nothing here raises for an ordinary mismatch.
"""
import logging
from datetime import datetime
from typing import Optional

from kurta_promotions.services.promotions.domain import (
    Condition,
    EvaluationContext,
    FirstTimeCustomer,
    MinPurchase,
    MinQuantity,
    Promotion,
    PromotionStatus,
    RequiredProducts,
    SegmentMembership,
    UsageAvailable,
    normalize_code,
)

logger = logging.getLogger(__name__)


def is_within_window(promotion: Promotion, now: datetime) -> bool:
    """`starts_at <= now < ends_at`, open-ended when there is no end."""
    if promotion.starts_at > now:
        return False
    if promotion.ends_at is not None and now >= promotion.ends_at:
        return False
    return True


def matches_codes(promotion: Promotion, context: EvaluationContext) -> bool:
    """
    Without entered codes only automatic promotions (no code) are candidates.
    Once the shopper enters codes, only the promotions carrying one of them are.
    """
    if not context.promotion_codes:
        return not promotion.code
    if not promotion.code:
        return False
    return normalize_code(promotion.code) in context.promotion_codes


def condition_holds(condition: Condition, context: EvaluationContext) -> bool:
    if isinstance(condition, MinPurchase):
        return context.subtotal >= condition.amount
    if isinstance(condition, SegmentMembership):
        return not condition.segment_ids.isdisjoint(context.customer_segments)
    if isinstance(condition, FirstTimeCustomer):
        return context.is_first_time_customer
    if isinstance(condition, MinQuantity):
        return context.total_quantity >= condition.quantity
    if isinstance(condition, RequiredProducts):
        return not condition.product_ids.isdisjoint(context.product_ids)
    if isinstance(condition, UsageAvailable):
        return condition.used < condition.limit
    raise TypeError(f"Unhandled promotion condition: {condition!r}")


def rejection_reason(
    promotion: Promotion,
    context: EvaluationContext,
    now: datetime,
) -> Optional[str]:
    """Why `promotion` does not qualify, or None when it does."""
    if promotion.status != PromotionStatus.ACTIVE:
        return f"status is {promotion.status.value}"
    if not is_within_window(promotion, now):
        return "outside validity window"
    if not matches_codes(promotion, context):
        return "code not entered" if promotion.code else "automatic promotion, codes were entered"
    for condition in promotion.conditions:
        if not condition_holds(condition, context):
            return f"condition not met: {type(condition).__name__}"
    return None


def qualifies(promotion: Promotion, context: EvaluationContext, now: datetime) -> bool:
    reason = rejection_reason(promotion, context, now)
    if reason is not None:
        logger.debug(f"Promotion {promotion.id} skipped: {reason}")
        return False
    return True
