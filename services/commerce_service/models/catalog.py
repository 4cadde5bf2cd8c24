"""Catalog models: products and their SKU-level variants."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base, JSONType
from services.commerce_service.models.enums import (
    ProductStatus,
    StockStatus,
    enum_values,
)
from sqlalchemy import Boolean, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, attribute_keyed_dict, mapped_column, relationship

# ============================================================================
# CATALOG MODELS
# ============================================================================


class Product(Base):
    """Catalog products. Purchasable configurations live in ``variants``."""

    __tablename__ = "store_products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    brand: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    status: Mapped[ProductStatus] = mapped_column(
        SAEnum(
            ProductStatus,
            values_callable=enum_values,
            name="store_product_status_enum",
        ),
        default=ProductStatus.ACTIVE,
        server_default="active",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    # Keyed by SKU so a single variant is addressable without scanning
    variants = relationship(
        "ProductVariant",
        back_populates="product",
        collection_class=attribute_keyed_dict("sku"),
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Product {self.name}>"


class ProductVariant(Base):
    """SKU-level variant (e.g., 'Phone X - Black - 128GB').

    ``stock_quantity`` is a cache written only by the stock aggregator;
    ``stock_status`` and ``has_stock`` are derived from it and the check
    constraints below reject any row where they disagree.
    """

    __tablename__ = "store_product_variants"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("store_products.id", ondelete="CASCADE"),
        nullable=False,
    )

    sku: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # e.g. {"color": "Black", "size": "M", "model": "2024"}
    attributes: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    mrp: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2), nullable=True
    )  # list price, shown struck through
    image_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    # Aggregate stock cache
    stock_quantity: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    stock_status: Mapped[StockStatus] = mapped_column(
        SAEnum(
            StockStatus,
            values_callable=enum_values,
            name="store_stock_status_enum",
        ),
        default=StockStatus.OUT_OF_STOCK,
        server_default="out-of-stock",
        nullable=False,
    )
    has_stock: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="variant_stock_non_negative"),
        CheckConstraint(
            "(has_stock AND stock_quantity > 0) OR (NOT has_stock AND stock_quantity = 0)",
            name="variant_has_stock_derived",
        ),
        CheckConstraint(
            "(stock_quantity = 0 AND stock_status = 'out-of-stock')"
            " OR (stock_quantity BETWEEN 1 AND 5 AND stock_status = 'low-stock')"
            " OR (stock_quantity > 5 AND stock_status = 'in-stock')",
            name="variant_stock_status_derived",
        ),
        Index("ix_store_product_variants_product_sku", "product_id", "sku"),
    )

    # Relationships
    product = relationship("Product", back_populates="variants")

    def __repr__(self):
        return f"<ProductVariant {self.sku} stock={self.stock_quantity}>"
