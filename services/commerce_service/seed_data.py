"""Seed script for commerce demo data.

Creates a small catalog, two stores stocking overlapping variants, and a
handful of coupons so the checkout flow can be exercised end-to-end.
Inventory goes through the ledger, so variant stock is aggregated exactly as
it would be for a real operator write.

Usage:
    python -m services.commerce_service.seed_data
"""

import asyncio
from datetime import timedelta
from decimal import Decimal

from libs.common.datetime_utils import utc_now
from libs.db.config import AsyncSessionLocal
from services.commerce_service.models import (
    Coupon,
    CouponVisibility,
    DiscountType,
    Product,
    ProductVariant,
    Store,
)
from services.commerce_service.services import inventory_ledger
from services.commerce_service.services.stock_aggregator import stock_fields
from sqlalchemy import func, select

SEED_OWNER = "seed-store-owner"


def _variant(sku, price, mrp=None, **attributes):
    return ProductVariant(
        sku=sku,
        name=" / ".join(attributes.values()) or sku,
        attributes=attributes,
        price=Decimal(price),
        mrp=Decimal(mrp) if mrp else None,
        **stock_fields(0),
    )


async def seed_commerce_data():
    async with AsyncSessionLocal() as db:
        print("Seeding commerce data...")

        count = (await db.execute(select(func.count()).select_from(Product))).scalar()
        if count:
            print(f"Commerce data already exists ({count} products). Skipping seed.")
            return

        # =====================================================================
        # 1. CATALOG
        # =====================================================================
        phone = Product(
            name="Phone X",
            slug="phone-x",
            brand="Acme",
            category="phones",
            description="Flagship phone",
        )
        for variant in (
            _variant("PHX-BLK-128", "49999", "54999", color="Black", model="128GB"),
            _variant("PHX-BLK-256", "56999", "61999", color="Black", model="256GB"),
            _variant("PHX-WHT-128", "49999", color="White", model="128GB"),
        ):
            phone.variants[variant.sku] = variant

        tee = Product(
            name="Classic Tee",
            slug="classic-tee",
            brand="Basics",
            category="apparel",
        )
        for variant in (
            _variant("TEE-RED-M", "499", "799", color="Red", size="M"),
            _variant("TEE-RED-L", "499", "799", color="Red", size="L"),
        ):
            tee.variants[variant.sku] = variant

        db.add_all([phone, tee])

        # =====================================================================
        # 2. STORES
        # =====================================================================
        north = Store(name="North Warehouse", slug="north", owner_auth_id=SEED_OWNER)
        south = Store(name="South Outlet", slug="south", owner_auth_id=SEED_OWNER)
        db.add_all([north, south])

        # =====================================================================
        # 3. COUPONS
        # =====================================================================
        now = utc_now()
        db.add_all(
            [
                Coupon(
                    title="20% off, up to 150",
                    code="SAVE20",
                    discount_type=DiscountType.PERCENTAGE,
                    discount_value=Decimal("20"),
                    max_discount=Decimal("150"),
                    min_order_value=Decimal("500"),
                    start_date=now - timedelta(days=1),
                    expiry_date=now + timedelta(days=30),
                ),
                Coupon(
                    title="Flat 100",
                    code="FLAT100",
                    discount_type=DiscountType.FLAT,
                    discount_value=Decimal("100"),
                    start_date=now - timedelta(days=1),
                    expiry_date=now + timedelta(days=30),
                    total_usage=100,
                ),
                Coupon(
                    title="Staff only",
                    code="STAFF50",
                    discount_type=DiscountType.PERCENTAGE,
                    discount_value=Decimal("50"),
                    visibility=CouponVisibility.PRIVATE,
                    start_date=now - timedelta(days=1),
                    expiry_date=now + timedelta(days=365),
                ),
            ]
        )
        await db.commit()

        # =====================================================================
        # 4. INVENTORY (through the ledger so aggregates are computed)
        # =====================================================================
        stock_plan = [
            (north, phone, "PHX-BLK-128", 10, 2),
            (south, phone, "PHX-BLK-128", 3, 0),
            (north, phone, "PHX-BLK-256", 4, 0),
            (south, phone, "PHX-WHT-128", 0, 0),
            (north, tee, "TEE-RED-M", 50, 5),
            (south, tee, "TEE-RED-L", 2, 0),
        ]
        for store, product, sku, stock_qty, reserved_qty in stock_plan:
            await inventory_ledger.upsert_inventory(
                db,
                store_id=store.id,
                product_id=product.id,
                variant_sku=sku,
                stock_qty=stock_qty,
                reserved_qty=reserved_qty,
                performed_by="seed",
            )

        print("=" * 60)
        print("Commerce data seeded successfully!")
        print("=" * 60)
        print("  Products: 2")
        print("  Stores: 2")
        print("  Coupons: 3")
        print(f"  Inventory rows: {len(stock_plan)}")
        print("=" * 60)


if __name__ == "__main__":
    asyncio.run(seed_commerce_data())
