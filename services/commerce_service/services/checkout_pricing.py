"""Checkout preview: re-price a member's cart against live catalog data.

The preview is advisory and read-only. It never reserves stock and never
consumes a coupon; the authoritative stock decrement and coupon redemption
happen when the order is committed.
"""

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from libs.common.currency import ZERO, round_amount, to_decimal
from libs.common.errors import (
    NotFoundError,
    StockInsufficientError,
    ValidationFailedError,
)
from libs.common.logging import get_logger
from services.commerce_service.models import CartItem, Product
from services.commerce_service.services import cart_ops, coupon_engine
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)


@dataclass
class PreviewLine:
    cart_item_id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    product_slug: str
    brand: Optional[str]
    image_url: Optional[str]
    sku: str
    attributes: dict
    quantity: int
    price_per_unit: Decimal
    cut_price_per_unit: Decimal
    discount_per_unit: Decimal
    total_price: Decimal
    stock: int


@dataclass
class CouponSummary:
    coupon_id: uuid.UUID
    code: str
    applied_discount: int


@dataclass
class CheckoutPreview:
    items: list[PreviewLine] = field(default_factory=list)
    subtotal: Decimal = ZERO
    total_discount: Decimal = ZERO
    coupon_discount: Decimal = ZERO
    coupon: Optional[CouponSummary] = None
    coupon_error: Optional[str] = None

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self.items)

    @property
    def final_amount(self) -> Decimal:
        return self.subtotal - self.coupon_discount

    def pricing(self) -> dict[str, int]:
        """Order totals in whole currency units, all rounded the same way."""
        return {
            "subtotal": round_amount(self.subtotal),
            "total_cut_price": round_amount(self.subtotal + self.total_discount),
            "total_discount": round_amount(self.total_discount),
            "coupon_discount": round_amount(self.coupon_discount),
            "final_amount": round_amount(self.final_amount),
        }


def price_line(item: CartItem, product: Product) -> PreviewLine:
    """Validate one cart line against its live variant and price it.

    Raises ``ValidationFailedError`` (variant_unavailable) when the SKU no
    longer resolves to a live variant and ``StockInsufficientError`` when the
    cached aggregate cannot cover the requested quantity.
    """
    variant = product.variants.get(item.variant_sku)
    if variant is None or not variant.is_active:
        raise ValidationFailedError(
            f"{product.name} variant is no longer available",
            code="variant_unavailable",
        )

    quantity = item.quantity or 1
    if variant.stock_quantity < quantity:
        raise StockInsufficientError(
            f"{product.name} is out of stock", code="out_of_stock"
        )

    price_per_unit = to_decimal(item.price_snapshot)
    # First non-empty of mrp, live price, snapshot
    cut_price = to_decimal(variant.mrp or variant.price or price_per_unit)
    discount_per_unit = max(ZERO, cut_price - price_per_unit)

    return PreviewLine(
        cart_item_id=item.id,
        product_id=product.id,
        product_name=product.name,
        product_slug=product.slug,
        brand=product.brand,
        image_url=item.image_url or variant.image_url or product.image_url,
        sku=variant.sku,
        attributes=dict(item.variant_attributes or variant.attributes or {}),
        quantity=quantity,
        price_per_unit=price_per_unit,
        cut_price_per_unit=cut_price,
        discount_per_unit=discount_per_unit,
        total_price=price_per_unit * quantity,
        stock=variant.stock_quantity,
    )


async def _load_products(
    db: AsyncSession, product_ids: set[uuid.UUID]
) -> dict[uuid.UUID, Product]:
    if not product_ids:
        return {}
    result = await db.execute(
        select(Product)
        .where(Product.id.in_(product_ids))
        .options(selectinload(Product.variants))
        .execution_options(populate_existing=True)
    )
    return {product.id: product for product in result.scalars().all()}


async def preview_checkout(
    db: AsyncSession,
    member_auth_id: str,
    coupon_code: Optional[str] = None,
) -> CheckoutPreview:
    """Price the member's cart with an optional coupon.

    Hard failures (empty cart, missing variant selection, unavailable
    variant, insufficient stock) raise. A coupon that fails validation only
    sets ``coupon_error``.
    """
    cart = await cart_ops.find_member_cart(db, member_auth_id)
    if cart is None or not cart.items:
        raise ValidationFailedError("Cart is empty", code="empty_cart")

    for item in cart.items:
        if item.is_catalog_item and not item.variant_sku:
            raise ValidationFailedError(
                "Product variant missing in cart", code="variant_selection_missing"
            )
        if not item.is_catalog_item:
            raise ValidationFailedError(
                f"{item.title} has no catalog variant to verify",
                code="variant_selection_missing",
            )

    products = await _load_products(
        db, {item.product_id for item in cart.items if item.product_id is not None}
    )

    preview = CheckoutPreview()
    for item in cart.items:
        product = products.get(item.product_id) if item.product_id else None
        if product is None:
            # Product deleted since the line was added
            logger.info(
                "Skipping cart line %s: product for sku %s no longer exists",
                item.id,
                item.variant_sku,
            )
            continue

        line = price_line(item, product)
        preview.items.append(line)
        preview.subtotal += line.total_price
        preview.total_discount += line.discount_per_unit * line.quantity

    if not preview.items:
        raise ValidationFailedError("Cart is empty", code="empty_cart")

    if coupon_code:
        try:
            quote = await coupon_engine.validate_coupon(
                db,
                coupon_code,
                preview.subtotal,
                policy=coupon_engine.ExpiryPolicy.PREVIEW,
            )
        except (NotFoundError, ValidationFailedError) as exc:
            preview.coupon_error = exc.message
            logger.info(
                "Checkout preview for %s: coupon %s rejected (%s)",
                member_auth_id,
                coupon_code,
                exc.code,
            )
        else:
            preview.coupon_discount = quote.discount
            preview.coupon = CouponSummary(
                coupon_id=quote.coupon.id,
                code=quote.coupon.code,
                applied_discount=round_amount(quote.discount),
            )

    return preview
