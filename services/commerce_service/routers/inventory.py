"""Store inventory router: operator upserts, edits and listings."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.commerce_service.models import StockStatus, Store
from services.commerce_service.routers._helpers import enum_list, require_store_operator
from services.commerce_service.schemas import (
    InventoryListItem,
    InventoryListResponse,
    InventoryRecordResponse,
    InventoryUpdate,
    InventoryUpsert,
    ProductInventoryItem,
)
from services.commerce_service.services import inventory_ledger
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["inventory"])


# ============================================================================
# STORE OPERATOR ENDPOINTS
# ============================================================================


@router.post("/stores/{store_id}/inventory", response_model=InventoryRecordResponse)
async def upsert_inventory(
    payload: InventoryUpsert,
    store: Store = Depends(require_store_operator),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Create or update this store's stock row for a variant."""
    record = await inventory_ledger.upsert_inventory(
        db,
        store_id=store.id,
        product_id=payload.product_id,
        variant_sku=payload.variant_sku,
        stock_qty=payload.stock_qty,
        reserved_qty=payload.reserved_qty,
        is_active=payload.is_active,
        lead_time_days=payload.lead_time_days,
        fulfillment_options=enum_list(payload.fulfillment_options),
        price=payload.price,
        store_sku=payload.store_sku,
        performed_by=current_user.user_id,
    )
    return InventoryRecordResponse.model_validate(record)


@router.patch(
    "/stores/{store_id}/inventory/{inventory_id}",
    response_model=InventoryRecordResponse,
)
async def update_inventory(
    inventory_id: uuid.UUID,
    payload: InventoryUpdate,
    store: Store = Depends(require_store_operator),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Partially edit a known inventory record."""
    changes = payload.model_dump(exclude_unset=True)
    if "fulfillment_options" in changes:
        changes["fulfillment_options"] = enum_list(changes["fulfillment_options"])

    record = await inventory_ledger.update_inventory(
        db,
        inventory_id,
        changes,
        store_id=store.id,
        performed_by=current_user.user_id,
    )
    return InventoryRecordResponse.model_validate(record)


@router.get("/stores/{store_id}/inventory", response_model=InventoryListResponse)
async def list_store_inventory(
    stock_status: Optional[StockStatus] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    store: Store = Depends(require_store_operator),
    db: AsyncSession = Depends(get_async_db),
):
    """List a store's inventory, most recently updated first."""
    result = await inventory_ledger.list_by_store(
        db, store.id, stock_status=stock_status, page=page, page_size=page_size
    )
    return InventoryListResponse(
        records=[InventoryListItem.model_validate(r) for r in result.records],
        total_pages=result.total_pages,
        total_items=result.total_items,
        page=result.page,
        page_size=result.page_size,
    )


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================


@router.get(
    "/products/{product_id}/inventory", response_model=list[ProductInventoryItem]
)
async def list_product_inventory(
    product_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_db),
):
    """Every store's stock row for a product."""
    records = await inventory_ledger.list_by_product(db, product_id)
    return [ProductInventoryItem.model_validate(r) for r in records]
