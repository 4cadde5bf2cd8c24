"""Pydantic schemas for commerce service."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from services.commerce_service.models import (
    CartStatus,
    DiscountType,
    FulfillmentOption,
    ProductStatus,
    StockStatus,
)

# ============================================================================
# CATALOG SCHEMAS
# ============================================================================


class ProductVariantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    sku: str
    name: Optional[str] = None
    attributes: dict = {}
    price: Decimal
    mrp: Optional[Decimal] = None
    image_url: Optional[str] = None
    stock_quantity: int
    stock_status: StockStatus
    has_stock: bool
    is_active: bool


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    slug: str
    description: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    image_url: Optional[str] = None
    status: ProductStatus
    variants: list[ProductVariantResponse] = []
    created_at: datetime
    updated_at: datetime

    @field_validator("variants", mode="before")
    @classmethod
    def variants_as_list(cls, v):
        # Product.variants is keyed by SKU
        if isinstance(v, dict):
            return list(v.values())
        return v


class StockSnapshotResponse(BaseModel):
    sku: str
    total_available: int
    status: StockStatus
    has_stock: bool
    applied: bool


class StockRecomputeResponse(BaseModel):
    product_id: uuid.UUID
    variants: list[StockSnapshotResponse]


# ============================================================================
# INVENTORY SCHEMAS
# ============================================================================


class InventoryUpsert(BaseModel):
    product_id: uuid.UUID
    variant_sku: str = Field(..., min_length=1, max_length=100)
    # Negative quantities are clamped to zero by the ledger, not rejected here
    stock_qty: Optional[int] = None
    reserved_qty: Optional[int] = None
    is_active: Optional[bool] = None
    lead_time_days: Optional[int] = Field(None, ge=0)
    fulfillment_options: Optional[list[FulfillmentOption]] = None
    price: Optional[Decimal] = Field(None, ge=0)
    store_sku: Optional[str] = Field(None, max_length=100)


class InventoryUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    price: Optional[Decimal] = Field(None, ge=0)
    stock_qty: Optional[int] = None
    reserved_qty: Optional[int] = None
    lead_time_days: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    store_sku: Optional[str] = Field(None, max_length=100)
    fulfillment_options: Optional[list[FulfillmentOption]] = None


class InventoryProductSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    slug: str
    brand: Optional[str] = None
    image_url: Optional[str] = None


class InventoryStoreSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    slug: str


class InventoryRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    store_id: uuid.UUID
    product_id: uuid.UUID
    variant_sku: str
    stock_qty: int
    reserved_qty: int
    quantity_available: int
    stock_status: StockStatus
    price: Optional[Decimal] = None
    store_sku: Optional[str] = None
    lead_time_days: int
    fulfillment_options: list[str] = []
    is_active: bool
    created_at: datetime
    updated_at: datetime


class InventoryListItem(InventoryRecordResponse):
    product: Optional[InventoryProductSummary] = None


class ProductInventoryItem(InventoryRecordResponse):
    store: Optional[InventoryStoreSummary] = None


class InventoryListResponse(BaseModel):
    records: list[InventoryListItem]
    total_pages: int
    total_items: int
    page: int
    page_size: int


# ============================================================================
# CART SCHEMAS
# ============================================================================


class CartItemCreate(BaseModel):
    product_id: uuid.UUID
    variant_sku: str = Field(..., min_length=1, max_length=100)
    quantity: int = Field(1, ge=1)


class ExternalCartItemCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    price: Decimal = Field(..., ge=0)
    quantity: int = Field(1, ge=1)
    image_url: Optional[str] = Field(None, max_length=512)
    category: Optional[str] = Field(None, max_length=100)


class CartItemUpdate(BaseModel):
    quantity: int = Field(..., ge=1)


class CartItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    product_id: Optional[uuid.UUID] = None
    variant_sku: Optional[str] = None
    variant_attributes: Optional[dict] = None
    quantity: int
    price_snapshot: Decimal
    line_total: Decimal
    title: str
    image_url: Optional[str] = None
    category: Optional[str] = None


class CartResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    status: CartStatus
    expires_at: Optional[datetime] = None
    items: list[CartItemResponse] = []
    subtotal: Decimal
    created_at: datetime
    updated_at: datetime


# ============================================================================
# CHECKOUT SCHEMAS
# ============================================================================


class CheckoutPreviewRequest(BaseModel):
    coupon_code: Optional[str] = Field(None, max_length=16)


class PreviewLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    cart_item_id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    product_slug: str
    brand: Optional[str] = None
    image_url: Optional[str] = None
    sku: str
    attributes: dict = {}
    quantity: int
    price_per_unit: Decimal
    cut_price_per_unit: Decimal
    discount_per_unit: Decimal
    total_price: Decimal
    stock: int


class PreviewPricing(BaseModel):
    subtotal: int
    total_cut_price: int
    total_discount: int
    coupon_discount: int
    final_amount: int


class CouponSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    coupon_id: uuid.UUID
    code: str
    applied_discount: int


class CheckoutPreviewResponse(BaseModel):
    items: list[PreviewLineResponse]
    item_count: int
    total_quantity: int
    pricing: PreviewPricing
    coupon: Optional[CouponSummaryResponse] = None
    coupon_error: Optional[str] = None


# ============================================================================
# COUPON SCHEMAS
# ============================================================================


class CouponApplyRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=16)
    order_amount: Decimal = Field(..., ge=0)


class CouponApplyResponse(BaseModel):
    code: str
    discount: Decimal
    final_amount: Decimal


class ApplicableCouponsRequest(BaseModel):
    total_price: Decimal = Field(..., ge=0)


class ApplicableCouponResponse(BaseModel):
    id: uuid.UUID
    code: str
    title: str
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: Decimal
    min_order_value: Decimal
    max_discount: Optional[Decimal] = None
    expiry_date: datetime
    discount: Decimal
    new_total_price: Decimal
