"""Commerce service models package."""

from services.commerce_service.models.audit import CommerceAuditLog
from services.commerce_service.models.catalog import Product, ProductVariant
from services.commerce_service.models.commerce import Cart, CartItem
from services.commerce_service.models.coupons import Coupon
from services.commerce_service.models.enums import (
    AuditEntityType,
    CartStatus,
    CouponPlatform,
    CouponStatus,
    CouponVisibility,
    DiscountType,
    FulfillmentOption,
    ProductStatus,
    StockStatus,
)
from services.commerce_service.models.stores import Store, StoreInventory

__all__ = [
    "AuditEntityType",
    "Cart",
    "CartItem",
    "CartStatus",
    "CommerceAuditLog",
    "Coupon",
    "CouponPlatform",
    "CouponStatus",
    "CouponVisibility",
    "DiscountType",
    "FulfillmentOption",
    "Product",
    "ProductStatus",
    "ProductVariant",
    "StockStatus",
    "Store",
    "StoreInventory",
]
