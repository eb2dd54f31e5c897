"""
Promotion Models

Promotion definitions with their targets, exclusions, quantity tiers and
buy-X-get-Y rules. Supports percentage, fixed amount, BXGY, tiered and free
shipping promotions.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    Column, String, Boolean, Integer,
    DateTime, ForeignKey, Text, Numeric
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from kurta_promotions.core.database import Base


def utcnow():
    """Return timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class Promotion(Base):
    """A time-boxed discount definition."""
    __tablename__ = "promotions"

    id = Column(String(36), primary_key=True, default=new_id)

    name = Column(String(255), nullable=False)
    code = Column(String(50), unique=True, index=True)  # NULL = automatic promotion
    description = Column(Text)

    # 'percentage', 'fixed_amount', 'buy_x_get_y', 'free_shipping', 'tier_discount'
    type = Column(String(20), nullable=False)
    # 'draft', 'active', 'scheduled', 'expired', 'cancelled'
    status = Column(String(20), nullable=False, default="draft", index=True)

    value = Column(Numeric(12, 2), default=0)
    min_purchase_amount = Column(Numeric(12, 2))
    max_discount_amount = Column(Numeric(12, 2))  # Hard cap on the promotion's total

    # Validity
    starts_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    ends_at = Column(DateTime(timezone=True))

    # Usage
    usage_limit = Column(Integer)  # NULL = unlimited
    usage_count = Column(Integer, default=0)

    # Combination
    is_stackable = Column(Boolean, default=False)
    priority = Column(Integer, default=0)

    # {first_time_customer: true, min_quantity: 3, specific_products: [...]}
    conditions = Column(JSONB, default=dict)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    targets = relationship("PromotionTarget", back_populates="promotion", cascade="all, delete-orphan")
    exclusions = relationship("PromotionExclusion", back_populates="promotion", cascade="all, delete-orphan")
    tiers = relationship(
        "PromotionTier",
        back_populates="promotion",
        cascade="all, delete-orphan",
        order_by="PromotionTier.min_quantity",
    )
    bxgy_rules = relationship("PromotionBxgyRule", back_populates="promotion", cascade="all, delete-orphan")


class PromotionTarget(Base):
    """What a promotion applies to. No rows = every product."""
    __tablename__ = "promotion_targets"

    id = Column(String(36), primary_key=True, default=new_id)
    promotion_id = Column(String(36), ForeignKey("promotions.id", ondelete="CASCADE"), nullable=False, index=True)

    # 'all', 'product', 'category', 'collection', 'customer_segment'
    target_type = Column(String(20), nullable=False)
    target_id = Column(String(36))

    promotion = relationship("Promotion", back_populates="targets")


class PromotionExclusion(Base):
    """Products, categories or collections a promotion never discounts."""
    __tablename__ = "promotion_exclusions"

    id = Column(String(36), primary_key=True, default=new_id)
    promotion_id = Column(String(36), ForeignKey("promotions.id", ondelete="CASCADE"), nullable=False, index=True)

    # 'all', 'product', 'category', 'collection'
    target_type = Column(String(20), nullable=False)
    target_id = Column(String(36))

    promotion = relationship("Promotion", back_populates="exclusions")


class PromotionTier(Base):
    """Quantity threshold → percentage off, for tier_discount promotions."""
    __tablename__ = "promotion_tiers"

    id = Column(String(36), primary_key=True, default=new_id)
    promotion_id = Column(String(36), ForeignKey("promotions.id", ondelete="CASCADE"), nullable=False, index=True)

    min_quantity = Column(Integer, nullable=False)
    discount_value = Column(Numeric(5, 2), nullable=False)

    promotion = relationship("Promotion", back_populates="tiers")


class PromotionBxgyRule(Base):
    """Buy `buy_quantity` of one product, get `get_quantity` of another discounted."""
    __tablename__ = "promotion_bxgy_rules"

    id = Column(String(36), primary_key=True, default=new_id)
    promotion_id = Column(String(36), ForeignKey("promotions.id", ondelete="CASCADE"), nullable=False, index=True)

    buy_product_id = Column(String(36), nullable=False)
    buy_quantity = Column(Integer, nullable=False, default=1)
    get_product_id = Column(String(36), nullable=False)
    get_quantity = Column(Integer, nullable=False, default=1)
    discount_percentage = Column(Numeric(5, 2), nullable=False, default=100)

    promotion = relationship("Promotion", back_populates="bxgy_rules")
