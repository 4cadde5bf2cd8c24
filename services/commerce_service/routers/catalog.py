"""Catalog router: product reads and admin stock repair."""

import uuid

from fastapi import APIRouter, Depends
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.commerce_service.schemas import (
    ProductResponse,
    StockRecomputeResponse,
    StockSnapshotResponse,
)
from services.commerce_service.services import catalog
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["catalog"])
admin_router = APIRouter(tags=["admin-catalog"])


@router.get("/products/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_db),
):
    """Get a product with per-variant cached stock."""
    product = await catalog.get_product(db, product_id)
    return ProductResponse.model_validate(product)


@admin_router.post(
    "/products/{product_id}/stock/recompute", response_model=StockRecomputeResponse
)
async def recompute_product_stock(
    product_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Rebuild every variant's aggregate stock from the store ledger."""
    snapshots = await catalog.recompute_product_stock(db, product_id)
    return StockRecomputeResponse(
        product_id=product_id,
        variants=[
            StockSnapshotResponse(
                sku=sku,
                total_available=snapshot.total_available,
                status=snapshot.status,
                has_stock=snapshot.has_stock,
                applied=snapshot.applied,
            )
            for sku, snapshot in sorted(snapshots.items())
        ],
    )
