"""
Promotion evaluation engine.

Leaf-first: eligibility → strategies → qualifier → calculator → stacking,
tied together by PromotionEngine.
"""
from kurta_promotions.services.promotions.domain import (
    BxgyRule,
    CartLine,
    EvaluationContext,
    EvaluationOutcome,
    LineAllocation,
    ProductRef,
    Promotion,
    PromotionExclusion,
    PromotionKind,
    PromotionResult,
    PromotionStatus,
    PromotionTarget,
    PromotionTier,
    TargetType,
)
from kurta_promotions.services.promotions.engine import PromotionEngine

__all__ = [
    "BxgyRule",
    "CartLine",
    "EvaluationContext",
    "EvaluationOutcome",
    "LineAllocation",
    "ProductRef",
    "Promotion",
    "PromotionEngine",
    "PromotionExclusion",
    "PromotionKind",
    "PromotionResult",
    "PromotionStatus",
    "PromotionTarget",
    "PromotionTier",
    "TargetType",
]
