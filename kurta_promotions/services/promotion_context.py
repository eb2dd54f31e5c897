"""
Promotion Context Service

Fetches everything the promotion engine needs for one request (customer
segments, first-order status, product placement and candidate promotions)
and converts the rows into immutable engine inputs.
"""
import logging
from datetime import datetime
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from kurta_promotions.core.exceptions import PromotionDefinitionError
from kurta_promotions.models.catalog import (
    CustomerSegmentMembership,
    Order,
    Product,
    ProductCategory,
    ProductCollection,
)
from kurta_promotions.models.promotion import Promotion as PromotionRow
from kurta_promotions.schemas.promotion import EvaluateRequest
from kurta_promotions.services.promotions import domain
from kurta_promotions.services.promotions.domain import normalize_code

logger = logging.getLogger(__name__)

COMPLETED_ORDER_STATUS = "completed"

# Keys accepted in the promotions.conditions JSON column
CONDITION_KEYS = {
    "first_time_customer",
    "customer_segment",
    "min_quantity",
    "specific_products",
    "min_purchase",
}


def _as_id_set(value: Any) -> FrozenSet[str]:
    if value is None:
        return frozenset()
    if isinstance(value, (list, tuple, set, frozenset)):
        return frozenset(str(v) for v in value)
    return frozenset([str(value)])


def parse_conditions(raw: Any, promotion_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Turn the stored conditions bag into typed Promotion fields.

    Accepts either a mapping ({"first_time_customer": true, ...}) or a list
    of {"type": ..., "value": ...} entries. Unknown condition types are
    rejected so a promotion never applies more widely than configured.
    """
    if not raw:
        return {}

    if isinstance(raw, dict):
        entries = list(raw.items())
    elif isinstance(raw, list):
        try:
            entries = [(item["type"], item.get("value")) for item in raw]
        except (KeyError, TypeError, AttributeError):
            raise PromotionDefinitionError(
                "Condition entries must be objects with a 'type'",
                promotion_id=promotion_id,
            )
    else:
        raise PromotionDefinitionError(
            f"Unsupported conditions format: {type(raw).__name__}",
            promotion_id=promotion_id,
        )

    fields: Dict[str, Any] = {}
    for key, value in entries:
        if key not in CONDITION_KEYS:
            raise PromotionDefinitionError(
                f"Unknown promotion condition: {key}",
                promotion_id=promotion_id,
            )
        if key == "first_time_customer":
            fields["first_time_customer_only"] = bool(value)
        elif key == "customer_segment":
            fields["required_segment_ids"] = _as_id_set(value)
        elif key == "min_quantity":
            fields["min_quantity"] = int(value) if value is not None else None
        elif key == "specific_products":
            fields["required_product_ids"] = _as_id_set(value)
        elif key == "min_purchase":
            fields["min_purchase_amount"] = domain.to_decimal(value)
    return fields


def to_domain(row: PromotionRow) -> domain.Promotion:
    """Convert a loaded promotion row (children eager-loaded) to the engine type."""
    fields = parse_conditions(row.conditions, promotion_id=row.id)

    min_purchase = fields.pop("min_purchase_amount", None)
    if row.min_purchase_amount is not None:
        min_purchase = max(domain.to_decimal(row.min_purchase_amount), min_purchase or domain.ZERO)

    return domain.Promotion(
        id=str(row.id),
        name=row.name or "",
        code=row.code,
        kind=row.type,
        status=row.status,
        value=row.value,
        min_purchase_amount=min_purchase,
        max_discount_amount=row.max_discount_amount,
        priority=row.priority or 0,
        is_stackable=bool(row.is_stackable),
        starts_at=row.starts_at,
        ends_at=row.ends_at,
        usage_limit=row.usage_limit,
        usage_count=row.usage_count or 0,
        targets=tuple(
            domain.PromotionTarget(t.target_type, t.target_id) for t in row.targets
        ),
        exclusions=tuple(
            domain.PromotionExclusion(e.target_type, e.target_id) for e in row.exclusions
        ),
        tiers=tuple(
            domain.PromotionTier(t.min_quantity, t.discount_value) for t in row.tiers
        ),
        bxgy_rules=tuple(
            domain.BxgyRule(
                buy_product_id=r.buy_product_id,
                buy_quantity=r.buy_quantity,
                get_product_id=r.get_product_id,
                get_quantity=r.get_quantity,
                discount_percentage=r.discount_percentage,
            )
            for r in row.bxgy_rules
        ),
        **fields,
    )


def convert_promotions(rows: Iterable[PromotionRow]) -> List[domain.Promotion]:
    """Convert rows, skipping (and logging) any that are malformed."""
    promotions = []
    for row in rows:
        try:
            promotions.append(to_domain(row))
        except Exception:
            logger.exception(f"Skipping promotion {row.id}: invalid definition")
    return promotions


def build_lines(
    request: EvaluateRequest,
    product_refs: Dict[str, domain.ProductRef],
) -> Tuple[domain.CartLine, ...]:
    """Cart lines with their resolved products merged in."""
    return tuple(
        domain.CartLine(
            line_id=item.id or str(index),
            product_id=item.product_id,
            unit_price=item.unit_price,
            quantity=item.quantity,
            product=product_refs.get(item.product_id),
        )
        for index, item in enumerate(request.cart_lines)
    )


class PromotionContextService:
    """
    Assembles engine inputs from the database.

    Features:
    - Customer segment and first-order lookup
    - Product → category/collection resolution
    - Candidate promotion loading with all rule children
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_customer_segments(self, customer_id: str) -> FrozenSet[str]:
        result = await self.db.execute(
            select(CustomerSegmentMembership.segment_id).where(
                CustomerSegmentMembership.customer_id == customer_id,
            )
        )
        return frozenset(result.scalars().all())

    async def is_first_time_customer(self, customer_id: str) -> bool:
        """No completed orders yet."""
        completed = await self.db.scalar(
            select(func.count(Order.id)).where(
                Order.customer_id == customer_id,
                Order.status == COMPLETED_ORDER_STATUS,
            )
        )
        return not completed

    async def get_product_refs(self, product_ids: Sequence[str]) -> Dict[str, domain.ProductRef]:
        """Placement of every known product; unknown ids are absent."""
        ids = sorted(set(product_ids))
        if not ids:
            return {}

        result = await self.db.execute(select(Product.id).where(Product.id.in_(ids)))
        known = list(result.scalars().all())
        if not known:
            return {}

        result = await self.db.execute(
            select(ProductCategory.product_id, ProductCategory.category_id).where(
                ProductCategory.product_id.in_(known)
            )
        )
        categories: Dict[str, set] = {}
        for product_id, category_id in result.all():
            categories.setdefault(product_id, set()).add(category_id)

        result = await self.db.execute(
            select(ProductCollection.product_id, ProductCollection.collection_id).where(
                ProductCollection.product_id.in_(known)
            )
        )
        collections: Dict[str, set] = {}
        for product_id, collection_id in result.all():
            collections.setdefault(product_id, set()).add(collection_id)

        return {
            product_id: domain.ProductRef(
                product_id=product_id,
                category_ids=frozenset(categories.get(product_id, ())),
                collection_ids=frozenset(collections.get(product_id, ())),
            )
            for product_id in known
        }

    async def get_candidate_promotions(
        self,
        codes: Optional[Sequence[str]],
        now: datetime,
    ) -> List[domain.Promotion]:
        """
        Active promotions that have started: the code promotions whose code
        was entered, or every automatic promotion when no code was entered.
        """
        query = (
            select(PromotionRow)
            .where(
                PromotionRow.status == domain.PromotionStatus.ACTIVE.value,
                PromotionRow.starts_at <= now,
            )
            .options(
                selectinload(PromotionRow.targets),
                selectinload(PromotionRow.exclusions),
                selectinload(PromotionRow.tiers),
                selectinload(PromotionRow.bxgy_rules),
            )
            .order_by(PromotionRow.created_at, PromotionRow.id)
        )

        normalized = sorted({normalize_code(c) for c in codes or [] if c and c.strip()})
        if normalized:
            query = query.where(func.upper(PromotionRow.code).in_(normalized))
        else:
            query = query.where(PromotionRow.code.is_(None))

        result = await self.db.execute(query)
        return convert_promotions(result.scalars().all())

    async def build_context(self, request: EvaluateRequest) -> domain.EvaluationContext:
        """Evaluation context for a validated request."""
        segments: FrozenSet[str] = frozenset()
        first_time = False
        if request.customer_id:
            segments = await self.get_customer_segments(request.customer_id)
            first_time = await self.is_first_time_customer(request.customer_id)

        product_refs = await self.get_product_refs(
            [item.product_id for item in request.cart_lines]
        )

        return domain.EvaluationContext(
            lines=build_lines(request, product_refs),
            subtotal=request.subtotal,
            customer_id=request.customer_id,
            customer_segments=segments,
            is_first_time_customer=first_time,
            promotion_codes=tuple(request.promotion_codes) if request.promotion_codes is not None else None,
        )
