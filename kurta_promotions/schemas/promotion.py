"""
Pydantic Schemas for Promotion Validation

Request/response shapes of the promotion validation endpoint. Input is
validated here, before the engine sees it.
"""
from decimal import Decimal
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from kurta_promotions.services.promotions.domain import EvaluationOutcome, PromotionResult


# ==================== Request ====================

class CartLineIn(BaseModel):
    """One cart entry as sent by the storefront."""
    id: Optional[str] = Field(None, max_length=64, description="Cart item ID (defaults to line position)")
    product_id: str = Field(..., min_length=1, max_length=64)
    quantity: int = Field(..., ge=0, le=10000)
    unit_price: Decimal = Field(
        ...,
        ge=0,
        validation_alias=AliasChoices("unit_price", "price"),
        description="Price per unit in the store's base currency",
    )


class EvaluateRequest(BaseModel):
    """Cart plus optional shopper identity and entered codes."""
    cart_lines: List[CartLineIn] = Field(
        ...,
        validation_alias=AliasChoices("cart_lines", "cart_items"),
    )
    subtotal: Decimal = Field(..., ge=0)
    customer_id: Optional[str] = Field(None, max_length=64)
    promotion_codes: Optional[List[str]] = None

    @field_validator("promotion_codes")
    @classmethod
    def strip_blank_codes(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        return [code.strip() for code in v if code and code.strip()]


# ==================== Response ====================

class LineAllocationOut(BaseModel):
    line_id: str
    original_amount: float
    discounted_amount: float
    discount_amount: float


class PromotionResultOut(BaseModel):
    promotion_id: str
    type: str
    discount_amount: float
    allocations: List[LineAllocationOut] = Field(default_factory=list)
    message: str = ""

    @classmethod
    def from_result(cls, result: PromotionResult) -> "PromotionResultOut":
        return cls(
            promotion_id=result.promotion_id,
            type=result.kind.value,
            discount_amount=float(result.discount_amount),
            allocations=[
                LineAllocationOut(
                    line_id=a.line_id,
                    original_amount=float(a.original_amount),
                    discounted_amount=float(a.discounted_amount),
                    discount_amount=float(a.discount_amount),
                )
                for a in result.allocations
            ],
            message=result.message,
        )


class EvaluateResponse(BaseModel):
    applicable_promotions: List[PromotionResultOut] = Field(default_factory=list)
    total_discount: float = 0.0
    free_shipping: bool = False

    @classmethod
    def from_outcome(cls, outcome: EvaluationOutcome) -> "EvaluateResponse":
        return cls(
            applicable_promotions=[
                PromotionResultOut.from_result(r) for r in outcome.applicable_promotions
            ],
            total_discount=float(outcome.total_discount),
            free_shipping=outcome.free_shipping,
        )
