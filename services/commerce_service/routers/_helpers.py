"""Shared router dependencies and response builders."""

import uuid

from fastapi import Depends, HTTPException, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.errors import NotFoundError
from libs.db.session import get_async_db
from services.commerce_service.models import Cart, Store
from services.commerce_service.schemas import CartItemResponse, CartResponse
from services.commerce_service.services.cart_ops import cart_subtotal
from sqlalchemy.ext.asyncio import AsyncSession


async def require_store_operator(
    store_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
) -> Store:
    """Resolve the store and check the caller operates it (admins pass)."""
    store = await db.get(Store, store_id)
    if store is None:
        raise NotFoundError("Store not found", code="store_not_found")
    if store.owner_auth_id != current_user.user_id and not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not an operator of this store",
        )
    return store


def enum_list(values):
    if values is None:
        return None
    return [getattr(value, "value", value) for value in values]


def build_cart_response(cart: Cart) -> CartResponse:
    return CartResponse(
        id=cart.id,
        status=cart.status,
        expires_at=cart.expires_at,
        items=[CartItemResponse.model_validate(item) for item in cart.items],
        subtotal=cart_subtotal(cart),
        created_at=cart.created_at,
        updated_at=cart.updated_at,
    )
