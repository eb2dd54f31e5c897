"""
Catalog and Customer Lookup Models

Read-only views of the tables the promotion engine consults while assembling
an evaluation context. They are owned and written by other services.
"""
from sqlalchemy import Column, String, DateTime, Numeric

from kurta_promotions.core.database import Base


class ProductCategory(Base):
    """Product ↔ category membership."""
    __tablename__ = "product_categories"

    product_id = Column(String(36), primary_key=True)
    category_id = Column(String(36), primary_key=True, index=True)


class ProductCollection(Base):
    """Product ↔ collection membership."""
    __tablename__ = "product_collections"

    product_id = Column(String(36), primary_key=True)
    collection_id = Column(String(36), primary_key=True, index=True)


class CustomerSegmentMembership(Base):
    """Precomputed segment membership (maintained by the segmentation job)."""
    __tablename__ = "customer_segment_memberships"

    customer_id = Column(String(36), primary_key=True)
    segment_id = Column(String(36), primary_key=True, index=True)


class Order(Base):
    """Just enough of an order to tell first-time customers apart."""
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True)
    customer_id = Column(String(36), index=True)
    # 'pending', 'processing', 'completed', 'cancelled', 'refunded'
    status = Column(String(20), nullable=False, index=True)
    total = Column(Numeric(12, 2))
    created_at = Column(DateTime(timezone=True))


class Product(Base):
    """Catalog product (only the columns needed to resolve cart lines)."""
    __tablename__ = "products"

    id = Column(String(36), primary_key=True)
    title = Column(String(255), nullable=False)
    sku = Column(String(100), index=True)
    price = Column(Numeric(12, 2))
