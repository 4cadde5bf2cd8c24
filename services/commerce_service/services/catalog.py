"""Catalog reads and the admin stock repair entry point."""

import uuid

from libs.common.errors import NotFoundError
from libs.common.logging import get_logger
from services.commerce_service.models import Product
from services.commerce_service.services import stock_aggregator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)


async def get_product(db: AsyncSession, product_id: uuid.UUID) -> Product:
    """Load a product with its variants and their cached stock."""
    result = await db.execute(
        select(Product)
        .where(Product.id == product_id)
        .options(selectinload(Product.variants))
        .execution_options(populate_existing=True)
    )
    product = result.scalar_one_or_none()
    if product is None:
        raise NotFoundError("Product not found", code="product_not_found")
    return product


async def recompute_product_stock(
    db: AsyncSession, product_id: uuid.UUID
) -> dict[str, stock_aggregator.StockSnapshot]:
    """Rebuild every variant's aggregate from the ledger and commit."""
    await get_product(db, product_id)
    snapshots = await stock_aggregator.recompute_product(db, product_id)
    await db.commit()
    logger.info(
        "Recomputed stock for product %s across %d variant(s)",
        product_id,
        len(snapshots),
    )
    return snapshots
