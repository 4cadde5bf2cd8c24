"""Store models: stock-holding locations and their per-variant inventory rows."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base, JSONType
from services.commerce_service.models.enums import StockStatus, enum_values
from sqlalchemy import Boolean, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import (
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

DEFAULT_LEAD_TIME_DAYS = 2
DEFAULT_FULFILLMENT_OPTIONS = ("shipping",)


# ============================================================================
# STORE MODELS
# ============================================================================


class Store(Base):
    """A seller or warehouse contributing stock for shared catalog variants."""

    __tablename__ = "stores"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    # auth_id of the operator account allowed to manage this store
    owner_auth_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)

    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    inventory = relationship("StoreInventory", back_populates="store")

    def __repr__(self):
        return f"<Store {self.name}>"


class StoreInventory(Base):
    """Stock for one variant at one store.

    Rows are never deleted; operators deactivate them instead so history
    stays intact. Inactive rows contribute nothing to aggregate stock.
    """

    __tablename__ = "store_inventory"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    store_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("store_products.id", ondelete="CASCADE"), nullable=False
    )
    variant_sku: Mapped[str] = mapped_column(String(100), nullable=False)

    # Stock levels
    stock_qty: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    reserved_qty: Mapped[int] = mapped_column(
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
    )  # this row alone; the variant carries the cross-store figure

    # Store-specific commercial data
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    store_sku: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    lead_time_days: Mapped[int] = mapped_column(
        Integer,
        default=DEFAULT_LEAD_TIME_DAYS,
        server_default=str(DEFAULT_LEAD_TIME_DAYS),
        nullable=False,
    )
    fulfillment_options: Mapped[list] = mapped_column(
        JSONType, nullable=False, default=lambda: list(DEFAULT_FULFILLMENT_OPTIONS)
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true", nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        UniqueConstraint(
            "store_id", "product_id", "variant_sku", name="uq_store_inventory_variant"
        ),
        CheckConstraint("stock_qty >= 0", name="inventory_stock_non_negative"),
        CheckConstraint("reserved_qty >= 0", name="inventory_reserved_non_negative"),
        Index("ix_store_inventory_product_sku_active", "product_id", "variant_sku", "is_active"),
        Index("ix_store_inventory_store_updated", "store_id", "updated_at"),
    )

    # Relationships
    store = relationship("Store", back_populates="inventory")
    product = relationship("Product")

    @property
    def quantity_available(self) -> int:
        """On hand minus reserved, never negative."""
        return max(self.stock_qty - self.reserved_qty, 0)

    def __repr__(self):
        return (
            f"<StoreInventory store={self.store_id} sku={self.variant_sku} "
            f"qty={self.stock_qty}/{self.reserved_qty}>"
        )
