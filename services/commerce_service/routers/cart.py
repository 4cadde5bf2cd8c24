"""Cart router: member and guest cart operations."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import get_optional_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.commerce_service.routers._helpers import build_cart_response
from services.commerce_service.schemas import (
    CartItemCreate,
    CartItemUpdate,
    CartResponse,
    ExternalCartItemCreate,
)
from services.commerce_service.services import cart_ops
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["cart"])


async def _resolve_cart(db, current_user, session_id):
    return await cart_ops.get_or_create_cart(
        db, current_user.user_id if current_user else None, session_id
    )


@router.get("/cart", response_model=CartResponse)
async def get_cart(
    session_id: Optional[str] = Query(None),
    current_user: Optional[AuthUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Get current cart, merging any guest cart on login."""
    cart = await _resolve_cart(db, current_user, session_id)
    return build_cart_response(cart)


@router.post("/cart/items", response_model=CartResponse)
async def add_to_cart(
    item_in: CartItemCreate,
    session_id: Optional[str] = Query(None),
    current_user: Optional[AuthUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Add a catalog variant to the cart."""
    cart = await _resolve_cart(db, current_user, session_id)
    cart = await cart_ops.add_catalog_item(
        db, cart, item_in.product_id, item_in.variant_sku, item_in.quantity
    )
    return build_cart_response(cart)


@router.post("/cart/items/external", response_model=CartResponse)
async def add_external_to_cart(
    item_in: ExternalCartItemCreate,
    session_id: Optional[str] = Query(None),
    current_user: Optional[AuthUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Add an item that has no catalog identity."""
    cart = await _resolve_cart(db, current_user, session_id)
    cart = await cart_ops.add_external_item(
        db,
        cart,
        title=item_in.title,
        price=item_in.price,
        quantity=item_in.quantity,
        image_url=item_in.image_url,
        category=item_in.category,
    )
    return build_cart_response(cart)


@router.patch("/cart/items/{item_id}", response_model=CartResponse)
async def update_cart_item(
    item_id: uuid.UUID,
    item_in: CartItemUpdate,
    session_id: Optional[str] = Query(None),
    current_user: Optional[AuthUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Update cart item quantity."""
    cart = await _resolve_cart(db, current_user, session_id)
    cart = await cart_ops.update_item_quantity(db, cart, item_id, item_in.quantity)
    return build_cart_response(cart)


@router.delete("/cart/items/{item_id}", response_model=CartResponse)
async def remove_cart_item(
    item_id: uuid.UUID,
    session_id: Optional[str] = Query(None),
    current_user: Optional[AuthUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Remove item from cart."""
    cart = await _resolve_cart(db, current_user, session_id)
    cart = await cart_ops.remove_item(db, cart, item_id)
    return build_cart_response(cart)
