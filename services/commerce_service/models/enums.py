"""Enum definitions for commerce service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class ProductStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"


class StockStatus(str, enum.Enum):
    IN_STOCK = "in-stock"
    LOW_STOCK = "low-stock"
    OUT_OF_STOCK = "out-of-stock"


class CartStatus(str, enum.Enum):
    ACTIVE = "active"
    CONVERTED = "converted"
    ABANDONED = "abandoned"
    EXPIRED = "expired"


class DiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FLAT = "flat"


class CouponStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"


class CouponVisibility(str, enum.Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class CouponPlatform(str, enum.Enum):
    WEB = "web"
    APP = "app"
    BOTH = "both"


class FulfillmentOption(str, enum.Enum):
    SHIPPING = "shipping"
    PICKUP = "pickup"


class AuditEntityType(str, enum.Enum):
    INVENTORY = "inventory"
    VARIANT = "variant"
    COUPON = "coupon"
