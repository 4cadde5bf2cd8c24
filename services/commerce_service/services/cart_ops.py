"""Cart operations: member and guest carts, line merging, price snapshots.

A cart line is identified by (product_id, variant_sku) for catalog items and
by title for external "category products". Adding a line that already exists
sums the quantities and refreshes the snapshot instead of creating a second
line.
"""

import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from libs.common.config import get_settings
from libs.common.currency import ZERO, to_decimal
from libs.common.datetime_utils import ensure_utc, utc_now
from libs.common.errors import (
    NotFoundError,
    StockInsufficientError,
    ValidationFailedError,
)
from libs.common.logging import get_logger
from services.commerce_service.models import (
    Cart,
    CartItem,
    CartStatus,
    ProductStatus,
    ProductVariant,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)


# ============================================================================
# CART HELPERS
# ============================================================================


def cart_expiry(now: Optional[datetime] = None) -> datetime:
    return (now or utc_now()) + timedelta(days=get_settings().CART_EXPIRY_DAYS)


def cart_subtotal(cart: Cart) -> Decimal:
    """Sum of snapshot line totals."""
    return sum((item.line_total for item in cart.items), ZERO)


def _line_key(item: CartItem) -> tuple:
    if item.is_catalog_item:
        return ("catalog", item.product_id, item.variant_sku)
    return ("external", item.title.strip().casefold())


def _find_line(cart: Cart, key: tuple) -> Optional[CartItem]:
    return next((item for item in cart.items if _line_key(item) == key), None)


def _validate_quantity(quantity: int) -> int:
    if quantity is None or quantity < 1:
        raise ValidationFailedError(
            "Quantity must be at least 1", code="invalid_quantity"
        )
    return quantity


async def get_cart(db: AsyncSession, cart_id: uuid.UUID) -> Cart:
    """Load a cart with its items, bypassing stale identity-map state."""
    result = await db.execute(
        select(Cart)
        .where(Cart.id == cart_id)
        .options(selectinload(Cart.items))
        .execution_options(populate_existing=True)
    )
    cart = result.scalar_one_or_none()
    if cart is None:
        raise NotFoundError("Cart not found", code="cart_not_found")
    return cart


async def _find_active_cart(
    db: AsyncSession,
    *,
    member_auth_id: Optional[str] = None,
    session_id: Optional[str] = None,
    mark_expired: bool = True,
) -> Optional[Cart]:
    query = select(Cart).where(Cart.status == CartStatus.ACTIVE)
    if member_auth_id is not None:
        query = query.where(Cart.member_auth_id == member_auth_id)
    else:
        query = query.where(
            Cart.session_id == session_id,
            Cart.member_auth_id.is_(None),
        )
    result = await db.execute(
        query.order_by(Cart.created_at.desc())
        .options(selectinload(Cart.items))
        .execution_options(populate_existing=True)
    )
    cart = result.scalars().first()
    if cart is None:
        return None

    if cart.expires_at is not None and ensure_utc(cart.expires_at) <= utc_now():
        if mark_expired:
            cart.status = CartStatus.EXPIRED
            await db.flush()
            logger.info("Cart %s expired at %s", cart.id, cart.expires_at)
        return None
    return cart


async def find_member_cart(db: AsyncSession, member_auth_id: str) -> Optional[Cart]:
    """The member's live cart, or None. Read-only: never creates or expires."""
    return await _find_active_cart(
        db, member_auth_id=member_auth_id, mark_expired=False
    )


async def merge_guest_cart(db: AsyncSession, member_cart: Cart, guest_cart: Cart) -> int:
    """Fold a guest cart's lines into the member cart. Returns lines merged.

    The guest cart is marked abandoned. Does not commit.
    """
    merged = 0
    for guest_item in guest_cart.items:
        existing = _find_line(member_cart, _line_key(guest_item))
        if existing is not None:
            existing.quantity += guest_item.quantity
            existing.price_snapshot = guest_item.price_snapshot
        else:
            member_cart.items.append(
                CartItem(
                    product_id=guest_item.product_id,
                    variant_sku=guest_item.variant_sku,
                    variant_attributes=guest_item.variant_attributes,
                    quantity=guest_item.quantity,
                    price_snapshot=guest_item.price_snapshot,
                    title=guest_item.title,
                    image_url=guest_item.image_url,
                    category=guest_item.category,
                )
            )
        merged += 1

    guest_cart.status = CartStatus.ABANDONED
    member_cart.expires_at = cart_expiry()
    return merged


async def get_or_create_cart(
    db: AsyncSession,
    member_auth_id: Optional[str],
    session_id: Optional[str] = None,
) -> Cart:
    """Get the caller's active cart or create one.

    When an authenticated member also presents a guest ``session_id``, the
    guest cart's lines are merged into the member cart.
    """
    if member_auth_id:
        cart = await _find_active_cart(db, member_auth_id=member_auth_id)
        guest_cart = None
        if session_id:
            guest_cart = await _find_active_cart(db, session_id=session_id)

        if cart is None:
            cart = Cart(member_auth_id=member_auth_id, expires_at=cart_expiry())
            cart.items = []
            db.add(cart)
            await db.flush()

        if guest_cart is not None and guest_cart.items:
            merged = await merge_guest_cart(db, cart, guest_cart)
            logger.info(
                "Merged %d guest line(s) from cart %s into member cart %s",
                merged,
                guest_cart.id,
                cart.id,
            )

        await db.commit()
        return await get_cart(db, cart.id)

    if session_id:
        cart = await _find_active_cart(db, session_id=session_id)
        if cart is None:
            cart = Cart(session_id=session_id, expires_at=cart_expiry())
            db.add(cart)
        await db.commit()
        return await get_cart(db, cart.id)

    raise ValidationFailedError(
        "Session ID required for guest cart", code="session_required"
    )


# ============================================================================
# LINE OPERATIONS
# ============================================================================


async def add_catalog_item(
    db: AsyncSession,
    cart: Cart,
    product_id: uuid.UUID,
    variant_sku: str,
    quantity: int = 1,
) -> Cart:
    """Add a catalog variant, snapshotting its current price."""
    _validate_quantity(quantity)
    variant_sku = (variant_sku or "").strip()
    if not product_id or not variant_sku:
        raise ValidationFailedError(
            "product_id and variant_sku are required",
            code="variant_selection_missing",
        )

    result = await db.execute(
        select(ProductVariant)
        .where(
            ProductVariant.product_id == product_id,
            ProductVariant.sku == variant_sku,
        )
        .options(selectinload(ProductVariant.product))
    )
    variant = result.scalar_one_or_none()
    if variant is None:
        raise NotFoundError("Product variant not found", code="variant_not_found")

    product = variant.product
    if not variant.is_active or product.status != ProductStatus.ACTIVE:
        raise ValidationFailedError(
            f"{product.name} is not available", code="variant_unavailable"
        )

    existing = _find_line(cart, ("catalog", product_id, variant_sku))
    new_quantity = quantity + (existing.quantity if existing else 0)
    if variant.stock_quantity < new_quantity:
        raise StockInsufficientError(
            f"Only {variant.stock_quantity} of {product.name} available",
            code="out_of_stock",
        )

    if existing is not None:
        existing.quantity = new_quantity
        existing.price_snapshot = variant.price
    else:
        cart.items.append(
            CartItem(
                product_id=product_id,
                variant_sku=variant.sku,
                variant_attributes=dict(variant.attributes or {}),
                quantity=quantity,
                price_snapshot=variant.price,
                title=product.name,
                image_url=variant.image_url or product.image_url,
                category=product.category,
            )
        )

    cart.expires_at = cart_expiry()
    await db.commit()
    return await get_cart(db, cart.id)


async def add_external_item(
    db: AsyncSession,
    cart: Cart,
    *,
    title: str,
    price: Decimal,
    quantity: int = 1,
    image_url: Optional[str] = None,
    category: Optional[str] = None,
) -> Cart:
    """Add a line with no catalog identity; lines merge by title."""
    _validate_quantity(quantity)
    title = (title or "").strip()
    if not title:
        raise ValidationFailedError("title is required", code="title_required")
    price = to_decimal(price)
    if price < 0:
        raise ValidationFailedError("price cannot be negative", code="invalid_price")

    existing = _find_line(cart, ("external", title.casefold()))
    if existing is not None:
        existing.quantity += quantity
        existing.price_snapshot = price
    else:
        cart.items.append(
            CartItem(
                quantity=quantity,
                price_snapshot=price,
                title=title,
                image_url=image_url,
                category=category,
            )
        )

    cart.expires_at = cart_expiry()
    await db.commit()
    return await get_cart(db, cart.id)


def _require_line(cart: Cart, item_id: uuid.UUID) -> CartItem:
    item = next((item for item in cart.items if item.id == item_id), None)
    if item is None:
        raise NotFoundError("Cart item not found", code="cart_item_not_found")
    return item


async def update_item_quantity(
    db: AsyncSession, cart: Cart, item_id: uuid.UUID, quantity: int
) -> Cart:
    _validate_quantity(quantity)
    item = _require_line(cart, item_id)

    if item.product_id is not None and item.variant_sku:
        result = await db.execute(
            select(ProductVariant.stock_quantity).where(
                ProductVariant.product_id == item.product_id,
                ProductVariant.sku == item.variant_sku,
            )
        )
        available = result.scalar_one_or_none()
        if available is not None and available < quantity:
            raise StockInsufficientError(
                f"Only {available} of {item.title} available", code="out_of_stock"
            )

    item.quantity = quantity
    cart.expires_at = cart_expiry()
    await db.commit()
    return await get_cart(db, cart.id)


async def remove_item(db: AsyncSession, cart: Cart, item_id: uuid.UUID) -> Cart:
    item = _require_line(cart, item_id)
    cart.items.remove(item)
    await db.commit()
    return await get_cart(db, cart.id)
