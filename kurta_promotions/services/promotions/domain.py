"""
Promotion Engine Domain Types

Immutable snapshots the engine evaluates. Everything here is built once per
evaluation request (by the context service or by tests) and never mutated.

Money is Decimal in the store's base currency unit.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from enum import Enum
from typing import FrozenSet, Optional, Tuple, Union

from kurta_promotions.core.exceptions import PromotionDefinitionError, PromotionInputError

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value) -> Decimal:
    """Convert int/float/str to Decimal without float artifacts."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantum_for(decimals: int) -> Decimal:
    """Rounding quantum for a currency with `decimals` minor digits."""
    return Decimal(1).scaleb(-decimals)


def round_amount(value: Decimal, quantum: Decimal = CENT) -> Decimal:
    return value.quantize(quantum, rounding=ROUND_HALF_UP)


def floor_amount(value: Decimal, quantum: Decimal = CENT) -> Decimal:
    return value.quantize(quantum, rounding=ROUND_DOWN)


# ==================== Enums ====================

class PromotionKind(str, Enum):
    """Discount computation strategy of a promotion."""
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    BUY_X_GET_Y = "buy_x_get_y"
    FREE_SHIPPING = "free_shipping"
    TIER_DISCOUNT = "tier_discount"


class PromotionStatus(str, Enum):
    """Promotion lifecycle status."""
    DRAFT = "draft"
    ACTIVE = "active"
    SCHEDULED = "scheduled"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class TargetType(str, Enum):
    """What a target or exclusion entry points at."""
    ALL = "all"
    PRODUCT = "product"
    CATEGORY = "category"
    COLLECTION = "collection"
    CUSTOMER_SEGMENT = "customer_segment"


# ==================== Cart ====================

@dataclass(frozen=True)
class ProductRef:
    """Resolved catalog placement of a product."""
    product_id: str
    category_ids: FrozenSet[str] = frozenset()
    collection_ids: FrozenSet[str] = frozenset()

    def __post_init__(self):
        object.__setattr__(self, "category_ids", frozenset(self.category_ids))
        object.__setattr__(self, "collection_ids", frozenset(self.collection_ids))


@dataclass(frozen=True)
class CartLine:
    """One cart entry. `product` is None when the product could not be resolved."""
    line_id: str
    product_id: str
    unit_price: Decimal
    quantity: int
    product: Optional[ProductRef] = None

    def __post_init__(self):
        object.__setattr__(self, "unit_price", to_decimal(self.unit_price))
        if self.unit_price < 0:
            raise PromotionInputError(
                f"Cart line {self.line_id} has a negative unit price",
                field="unit_price",
            )
        if self.quantity < 0:
            raise PromotionInputError(
                f"Cart line {self.line_id} has a negative quantity",
                field="quantity",
            )

    @property
    def amount(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class EvaluationContext:
    """Everything known about the shopper and cart for one evaluation."""
    lines: Tuple[CartLine, ...]
    subtotal: Decimal
    customer_id: Optional[str] = None
    customer_segments: FrozenSet[str] = frozenset()
    is_first_time_customer: bool = False
    promotion_codes: Optional[Tuple[str, ...]] = None

    def __post_init__(self):
        if isinstance(self.lines, (str, bytes)) or not isinstance(self.lines, (list, tuple)):
            raise PromotionInputError("Cart lines must be a list", field="cart_lines")
        object.__setattr__(self, "lines", tuple(self.lines))
        object.__setattr__(self, "subtotal", to_decimal(self.subtotal))
        object.__setattr__(self, "customer_segments", frozenset(self.customer_segments))
        if self.promotion_codes is not None:
            object.__setattr__(
                self,
                "promotion_codes",
                tuple(normalize_code(c) for c in self.promotion_codes if c and c.strip()),
            )

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def product_ids(self) -> FrozenSet[str]:
        return frozenset(line.product_id for line in self.lines)

    def first_line_for(self, product_id: str) -> Optional[CartLine]:
        """First cart line holding `product_id`, in cart order."""
        return next((line for line in self.lines if line.product_id == product_id), None)


def normalize_code(code: str) -> str:
    """Codes compare case-insensitively, ignoring surrounding whitespace."""
    return code.upper().strip()


# ==================== Promotion definition ====================

@dataclass(frozen=True)
class PromotionTarget:
    target_type: TargetType
    target_id: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "target_type", TargetType(self.target_type))


@dataclass(frozen=True)
class PromotionExclusion:
    target_type: TargetType
    target_id: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "target_type", TargetType(self.target_type))
        if self.target_type == TargetType.CUSTOMER_SEGMENT:
            raise PromotionDefinitionError(
                "Customer segments cannot be used as exclusions"
            )


@dataclass(frozen=True)
class PromotionTier:
    """Quantity threshold mapped to a percentage discount."""
    min_quantity: int
    discount_value: Decimal

    def __post_init__(self):
        object.__setattr__(self, "discount_value", to_decimal(self.discount_value))


@dataclass(frozen=True)
class BxgyRule:
    buy_product_id: str
    buy_quantity: int
    get_product_id: str
    get_quantity: int
    discount_percentage: Decimal

    def __post_init__(self):
        object.__setattr__(self, "discount_percentage", to_decimal(self.discount_percentage))


# Conditions: one variant per kind, matched exhaustively by the qualifier.

@dataclass(frozen=True)
class MinPurchase:
    amount: Decimal


@dataclass(frozen=True)
class SegmentMembership:
    segment_ids: FrozenSet[str]


@dataclass(frozen=True)
class FirstTimeCustomer:
    pass


@dataclass(frozen=True)
class MinQuantity:
    quantity: int


@dataclass(frozen=True)
class RequiredProducts:
    product_ids: FrozenSet[str]


@dataclass(frozen=True)
class UsageAvailable:
    limit: int
    used: int


Condition = Union[
    MinPurchase, SegmentMembership, FirstTimeCustomer,
    MinQuantity, RequiredProducts, UsageAvailable,
]


@dataclass(frozen=True)
class Promotion:
    """A named, time-boxed discount definition joined with its rules."""
    id: str
    kind: PromotionKind
    starts_at: datetime
    name: str = ""
    code: Optional[str] = None
    status: PromotionStatus = PromotionStatus.ACTIVE
    value: Decimal = ZERO
    min_purchase_amount: Decimal = ZERO
    max_discount_amount: Optional[Decimal] = None
    priority: int = 0
    is_stackable: bool = False
    ends_at: Optional[datetime] = None
    first_time_customer_only: bool = False
    required_segment_ids: FrozenSet[str] = frozenset()
    targets: Tuple[PromotionTarget, ...] = ()
    exclusions: Tuple[PromotionExclusion, ...] = ()
    tiers: Tuple[PromotionTier, ...] = ()
    bxgy_rules: Tuple[BxgyRule, ...] = ()
    usage_limit: Optional[int] = None
    usage_count: int = 0
    min_quantity: Optional[int] = None
    required_product_ids: FrozenSet[str] = frozenset()

    def __post_init__(self):
        object.__setattr__(self, "kind", PromotionKind(self.kind))
        object.__setattr__(self, "status", PromotionStatus(self.status))
        object.__setattr__(self, "value", to_decimal(self.value))
        object.__setattr__(self, "min_purchase_amount", to_decimal(self.min_purchase_amount))
        if self.max_discount_amount is not None:
            object.__setattr__(self, "max_discount_amount", to_decimal(self.max_discount_amount))
        object.__setattr__(self, "required_segment_ids", frozenset(self.required_segment_ids))
        object.__setattr__(self, "required_product_ids", frozenset(self.required_product_ids))
        for name in ("targets", "exclusions", "tiers", "bxgy_rules"):
            object.__setattr__(self, name, tuple(getattr(self, name)))

    @property
    def line_targets(self) -> Tuple[PromotionTarget, ...]:
        """Targets that select cart lines (segment targets select customers)."""
        return tuple(t for t in self.targets if t.target_type != TargetType.CUSTOMER_SEGMENT)

    @property
    def segment_ids(self) -> FrozenSet[str]:
        """Required segments, from explicit requirements and segment targets."""
        from_targets = {
            t.target_id for t in self.targets
            if t.target_type == TargetType.CUSTOMER_SEGMENT and t.target_id
        }
        return self.required_segment_ids | frozenset(from_targets)

    @property
    def conditions(self) -> Tuple[Condition, ...]:
        conditions = [MinPurchase(self.min_purchase_amount)]
        if self.segment_ids:
            conditions.append(SegmentMembership(self.segment_ids))
        if self.first_time_customer_only:
            conditions.append(FirstTimeCustomer())
        if self.min_quantity:
            conditions.append(MinQuantity(self.min_quantity))
        if self.required_product_ids:
            conditions.append(RequiredProducts(self.required_product_ids))
        if self.usage_limit is not None:
            conditions.append(UsageAvailable(self.usage_limit, self.usage_count))
        return tuple(conditions)


# ==================== Results ====================

@dataclass(frozen=True)
class LineAllocation:
    """Discount attributed to one cart line by one promotion."""
    line_id: str
    original_amount: Decimal
    discounted_amount: Decimal
    discount_amount: Decimal

    @classmethod
    def for_line(cls, line_id: str, original_amount: Decimal, discount: Decimal) -> "LineAllocation":
        return cls(
            line_id=line_id,
            original_amount=original_amount,
            discounted_amount=original_amount - discount,
            discount_amount=discount,
        )


@dataclass(frozen=True)
class PromotionResult:
    promotion_id: str
    kind: PromotionKind
    discount_amount: Decimal
    allocations: Tuple[LineAllocation, ...] = ()
    message: str = ""

    @property
    def original_total(self) -> Decimal:
        return sum((a.original_amount for a in self.allocations), ZERO)


@dataclass(frozen=True)
class EvaluationOutcome:
    applicable_promotions: Tuple[PromotionResult, ...] = ()
    total_discount: Decimal = ZERO
    free_shipping: bool = False
    evaluated_at: Optional[datetime] = field(default=None, compare=False)
