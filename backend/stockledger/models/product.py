from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from stockledger.core.database import Base


class Category(Base):
    __tablename__ = "categories"

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_categories_tenant_name"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)

    name = Column(String, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    products = relationship("Product", back_populates="category")


class Product(Base):
    __tablename__ = "products"

    __table_args__ = (
        # SAFETY CONSTRAINTS
        CheckConstraint("quantity >= 0", name="ck_quantity_non_negative"),
        CheckConstraint("price >= 0", name="ck_price_non_negative"),
        CheckConstraint(
            "low_stock_threshold IS NULL OR low_stock_threshold >= 0",
            name="ck_threshold_non_negative",
        ),
        # sku is unique per tenant, not globally (NULLs never collide)
        UniqueConstraint("tenant_id", "sku", name="uq_products_tenant_sku"),

        # PERFORMANCE INDEXES
        Index("ix_products_tenant_quantity", "tenant_id", "quantity"),
        Index("ix_products_tenant_category", "tenant_id", "category_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)

    name = Column(String, nullable=False)
    sku = Column(String, nullable=True)
    manufacturer = Column(String, nullable=False, default="")

    quantity = Column(Integer, nullable=False, default=0)
    price = Column(Numeric(12, 2), nullable=False, default=0)

    # NULL means "no low-stock alerting", only out-of-stock
    low_stock_threshold = Column(Integer, nullable=True)

    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True)

    # soft delete (kept while sale history points at it)
    is_active = Column(Boolean, nullable=False, default=True)

    # timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    category = relationship("Category", back_populates="products")
    supplier = relationship("Supplier", back_populates="products")
    batches = relationship("Batch", back_populates="product")
    tags = relationship("Tag", secondary="product_tags", back_populates="products", order_by="Tag.name")
