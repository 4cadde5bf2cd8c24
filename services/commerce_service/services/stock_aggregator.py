"""Cross-store stock aggregation.

A variant's catalog stock is a cache: the sum of available quantity over
every *active* store inventory row for that (product, sku). The reduction is
a pure function (``aggregate``); ``recompute`` only loads rows and writes the
result back onto the one matching variant with a single targeted UPDATE.

Callers must invoke ``recompute`` after every inventory write that can change
the aggregate. It is idempotent, so concurrent writers each recomputing is
harmless; the last recompute to run observes the latest committed rows for
its own store and whatever other stores have committed so far.
"""

import uuid
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

from libs.common.logging import get_logger
from services.commerce_service.models import (
    ProductVariant,
    StockStatus,
    StoreInventory,
)
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

# Fixed policy, not a setting
LOW_STOCK_THRESHOLD = 5


class InventoryRow(Protocol):
    stock_qty: int
    reserved_qty: int
    is_active: bool


@dataclass(frozen=True)
class StockSnapshot:
    total_available: int
    status: StockStatus
    # False when the target variant no longer exists and nothing was written
    applied: bool = True

    @property
    def has_stock(self) -> bool:
        return self.total_available > 0


def classify_stock(total: int) -> StockStatus:
    """Map an available quantity to its status band."""
    if total <= 0:
        return StockStatus.OUT_OF_STOCK
    if total <= LOW_STOCK_THRESHOLD:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


def available_quantity(row: InventoryRow) -> int:
    """What one row contributes: 0 if inactive, else max(on hand - reserved, 0)."""
    if not row.is_active:
        return 0
    return max((row.stock_qty or 0) - (row.reserved_qty or 0), 0)


def aggregate(rows: Iterable[InventoryRow]) -> StockSnapshot:
    """Reduce inventory rows to one total and status."""
    total = sum(available_quantity(row) for row in rows)
    return StockSnapshot(total_available=total, status=classify_stock(total))


def stock_fields(total: int) -> dict:
    """Column values for a variant holding ``total`` units.

    The only way the variant's stock columns should ever be produced, so the
    derived status and flag cannot drift from the quantity.
    """
    total = max(int(total), 0)
    return {
        "stock_quantity": total,
        "stock_status": classify_stock(total),
        "has_stock": total > 0,
    }


async def recompute(
    db: AsyncSession,
    product_id: uuid.UUID,
    variant_sku: str,
) -> StockSnapshot:
    """Recompute and cache aggregate stock for one variant.

    Runs inside the caller's transaction and does not commit. If the product
    or variant has gone away the result is returned with ``applied=False``
    and nothing is written.
    """
    result = await db.execute(
        select(StoreInventory).where(
            StoreInventory.product_id == product_id,
            StoreInventory.variant_sku == variant_sku,
            StoreInventory.is_active.is_(True),
        )
    )
    snapshot = aggregate(result.scalars().all())

    write = await db.execute(
        update(ProductVariant)
        .where(
            ProductVariant.product_id == product_id,
            ProductVariant.sku == variant_sku,
        )
        .values(**stock_fields(snapshot.total_available))
        .execution_options(synchronize_session="evaluate")
    )

    if write.rowcount == 0:
        logger.warning(
            "Stock recompute skipped: variant %s on product %s no longer exists",
            variant_sku,
            product_id,
        )
        return StockSnapshot(
            total_available=snapshot.total_available,
            status=snapshot.status,
            applied=False,
        )

    logger.debug(
        "Recomputed stock for %s/%s: %d (%s)",
        product_id,
        variant_sku,
        snapshot.total_available,
        snapshot.status.value,
    )
    return snapshot


async def recompute_product(
    db: AsyncSession, product_id: uuid.UUID
) -> dict[str, StockSnapshot]:
    """Recompute every variant of a product. Used for repair after bulk edits."""
    result = await db.execute(
        select(ProductVariant.sku).where(ProductVariant.product_id == product_id)
    )
    snapshots = {}
    for sku in result.scalars().all():
        snapshots[sku] = await recompute(db, product_id, sku)
    return snapshots


async def get_cached_stock(
    db: AsyncSession, product_id: uuid.UUID, variant_sku: str
) -> Optional[StockSnapshot]:
    """Read the cached aggregate for a variant without recomputing."""
    result = await db.execute(
        select(ProductVariant.stock_quantity, ProductVariant.stock_status).where(
            ProductVariant.product_id == product_id,
            ProductVariant.sku == variant_sku,
        )
    )
    row = result.first()
    if row is None:
        return None
    return StockSnapshot(total_available=row.stock_quantity, status=row.stock_status)
