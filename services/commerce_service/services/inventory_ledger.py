"""Per-store inventory ledger: upserts, operator edits and listings.

Store ownership is verified by the caller (the router's operator
dependency); functions here trust the ``store_id`` they are given.
Every write that can change a variant's aggregate triggers
``stock_aggregator.recompute`` in the same transaction before commit.
"""

import math
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from libs.common.datetime_utils import utc_now
from libs.common.errors import NotFoundError, ValidationFailedError
from libs.common.logging import get_logger
from services.commerce_service.models import (
    AuditEntityType,
    Product,
    ProductVariant,
    StockStatus,
    Store,
    StoreInventory,
)
from services.commerce_service.models.stores import (
    DEFAULT_FULFILLMENT_OPTIONS,
    DEFAULT_LEAD_TIME_DAYS,
)
from services.commerce_service.services import stock_aggregator
from services.commerce_service.services.audit import log_audit
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)

_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}

# Fields an operator may edit on a known record
UPDATABLE_FIELDS = frozenset(
    {
        "price",
        "stock_qty",
        "reserved_qty",
        "lead_time_days",
        "is_active",
        "store_sku",
        "fulfillment_options",
    }
)
# Changes to these can move the variant's aggregate
AGGREGATE_FIELDS = frozenset({"stock_qty", "reserved_qty", "is_active"})
# Only these may be cleared with an explicit null
NULLABLE_FIELDS = frozenset({"price", "store_sku"})


@dataclass
class InventoryPage:
    records: list[StoreInventory]
    total_items: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_items / self.page_size) if self.total_items else 0


def clamp_quantity(value: Any) -> int:
    """Negative quantities are clamped to zero rather than rejected."""
    return max(0, int(value))


def _snapshot(record: StoreInventory) -> dict:
    return {
        "stock_qty": record.stock_qty,
        "reserved_qty": record.reserved_qty,
        "is_active": record.is_active,
        "lead_time_days": record.lead_time_days,
        "price": str(record.price) if record.price is not None else None,
    }


async def _require_variant(
    db: AsyncSession, product_id: uuid.UUID, variant_sku: str
) -> ProductVariant:
    result = await db.execute(
        select(ProductVariant).where(
            ProductVariant.product_id == product_id,
            ProductVariant.sku == variant_sku,
        )
    )
    variant = result.scalar_one_or_none()
    if variant is not None:
        return variant

    if await db.get(Product, product_id) is None:
        raise NotFoundError("Product not found", code="product_not_found")
    raise NotFoundError(
        f"Variant {variant_sku} not found on product", code="variant_not_found"
    )


async def _load_record(
    db: AsyncSession,
    store_id: uuid.UUID,
    product_id: uuid.UUID,
    variant_sku: str,
) -> Optional[StoreInventory]:
    result = await db.execute(
        select(StoreInventory)
        .where(
            StoreInventory.store_id == store_id,
            StoreInventory.product_id == product_id,
            StoreInventory.variant_sku == variant_sku,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def upsert_inventory(
    db: AsyncSession,
    *,
    store_id: uuid.UUID,
    product_id: uuid.UUID,
    variant_sku: str,
    stock_qty: Optional[int] = None,
    reserved_qty: Optional[int] = None,
    is_active: Optional[bool] = None,
    lead_time_days: Optional[int] = None,
    fulfillment_options: Optional[list[str]] = None,
    price: Optional[Decimal] = None,
    store_sku: Optional[str] = None,
    performed_by: str = "system",
) -> StoreInventory:
    """Create or overwrite the inventory row for (store, product, sku).

    Fields left as None keep their current value on an existing row and take
    the model default on a new one. The write is a single
    ``INSERT ... ON CONFLICT DO UPDATE`` so two operators racing on the same
    row cannot create a duplicate; the later write wins field by field.
    """
    variant_sku = (variant_sku or "").strip()
    if not variant_sku:
        raise ValidationFailedError(
            "variant_sku is required", code="variant_selection_missing"
        )

    if await db.get(Store, store_id) is None:
        raise NotFoundError("Store not found", code="store_not_found")
    await _require_variant(db, product_id, variant_sku)

    supplied: dict[str, Any] = {}
    if stock_qty is not None:
        supplied["stock_qty"] = clamp_quantity(stock_qty)
    if reserved_qty is not None:
        supplied["reserved_qty"] = clamp_quantity(reserved_qty)
    if is_active is not None:
        supplied["is_active"] = is_active
    if lead_time_days is not None:
        supplied["lead_time_days"] = lead_time_days
    if fulfillment_options is not None:
        supplied["fulfillment_options"] = list(fulfillment_options)
    if price is not None:
        supplied["price"] = price
    if store_sku is not None:
        supplied["store_sku"] = store_sku

    existing = await _load_record(db, store_id, product_id, variant_sku)
    old_value = _snapshot(existing) if existing else None

    insert_values = {
        "id": uuid.uuid4(),
        "store_id": store_id,
        "product_id": product_id,
        "variant_sku": variant_sku,
        "stock_qty": 0,
        "reserved_qty": 0,
        "is_active": True,
        "lead_time_days": DEFAULT_LEAD_TIME_DAYS,
        "fulfillment_options": list(DEFAULT_FULFILLMENT_OPTIONS),
        "stock_status": StockStatus.OUT_OF_STOCK,
        **supplied,
    }

    dialect = db.get_bind().dialect.name
    insert = _UPSERT_INSERTS.get(dialect)
    if insert is None:
        raise RuntimeError(f"Inventory upsert not supported on {dialect}")

    stmt = insert(StoreInventory).values(**insert_values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["store_id", "product_id", "variant_sku"],
        set_={**supplied, "updated_at": utc_now()},
    )
    await db.execute(stmt)

    record = await _load_record(db, store_id, product_id, variant_sku)
    record.stock_status = stock_aggregator.classify_stock(record.quantity_available)
    await db.flush()

    snapshot = await stock_aggregator.recompute(db, product_id, variant_sku)

    await log_audit(
        db,
        AuditEntityType.INVENTORY,
        record.id,
        "inventory_upserted" if existing else "inventory_created",
        performed_by,
        old_value=old_value,
        new_value=_snapshot(record),
    )
    await db.commit()
    await db.refresh(record)

    logger.info(
        "Inventory %s for store=%s sku=%s: stock=%d reserved=%d active=%s (aggregate=%d)",
        "updated" if existing else "created",
        store_id,
        variant_sku,
        record.stock_qty,
        record.reserved_qty,
        record.is_active,
        snapshot.total_available,
    )
    return record


async def update_inventory(
    db: AsyncSession,
    inventory_id: uuid.UUID,
    changes: dict[str, Any],
    *,
    store_id: Optional[uuid.UUID] = None,
    performed_by: str = "system",
) -> StoreInventory:
    """Apply an operator's partial edit to a known record.

    When ``store_id`` is given the record must belong to that store.
    """
    query = select(StoreInventory).where(StoreInventory.id == inventory_id)
    if store_id is not None:
        query = query.where(StoreInventory.store_id == store_id)
    result = await db.execute(query)
    record = result.scalar_one_or_none()

    if not record:
        raise NotFoundError("Inventory not found", code="inventory_not_found")

    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationFailedError(
            f"Fields not editable: {', '.join(sorted(unknown))}",
            code="invalid_fields",
        )
    nulled = {
        field
        for field, value in changes.items()
        if value is None and field not in NULLABLE_FIELDS
    }
    if nulled:
        raise ValidationFailedError(
            f"Fields cannot be null: {', '.join(sorted(nulled))}",
            code="invalid_fields",
        )

    old_value = _snapshot(record)
    for field, value in changes.items():
        if field in ("stock_qty", "reserved_qty"):
            value = clamp_quantity(value)
        elif field == "fulfillment_options":
            value = list(value)
        setattr(record, field, value)

    record.stock_status = stock_aggregator.classify_stock(record.quantity_available)
    await db.flush()

    if AGGREGATE_FIELDS & set(changes):
        await stock_aggregator.recompute(db, record.product_id, record.variant_sku)

    await log_audit(
        db,
        AuditEntityType.INVENTORY,
        record.id,
        "inventory_updated",
        performed_by,
        old_value=old_value,
        new_value=_snapshot(record),
    )
    await db.commit()
    await db.refresh(record)

    logger.info(
        "Inventory %s edited (%s)", record.id, ", ".join(sorted(changes)) or "no fields"
    )
    return record


async def list_by_store(
    db: AsyncSession,
    store_id: uuid.UUID,
    *,
    stock_status: Optional[StockStatus] = None,
    page: int = 1,
    page_size: int = 20,
) -> InventoryPage:
    """Paginated records for a store, most recently updated first."""
    query = select(StoreInventory).where(StoreInventory.store_id == store_id)
    if stock_status is not None:
        query = query.where(StoreInventory.stock_status == stock_status)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    query = (
        query.options(selectinload(StoreInventory.product))
        .order_by(StoreInventory.updated_at.desc(), StoreInventory.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(query)

    return InventoryPage(
        records=list(result.scalars().all()),
        total_items=total,
        page=page,
        page_size=page_size,
    )


async def list_by_product(
    db: AsyncSession, product_id: uuid.UUID
) -> list[StoreInventory]:
    """Every store's record for a product (public, cross-store)."""
    if await db.get(Product, product_id) is None:
        raise NotFoundError("Product not found", code="product_not_found")

    result = await db.execute(
        select(StoreInventory)
        .where(StoreInventory.product_id == product_id)
        .options(selectinload(StoreInventory.store))
        .order_by(StoreInventory.variant_sku, StoreInventory.created_at)
    )
    return list(result.scalars().all())
