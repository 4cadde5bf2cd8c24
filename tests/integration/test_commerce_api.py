"""HTTP-level tests for the commerce service routes.

Auth is bypassed via dependency overrides; the database is a throwaway
SQLite file shared between the test's own session and the app's.
"""

import uuid
from decimal import Decimal

import pytest
from services.commerce_service.models import Coupon, CouponVisibility, DiscountType
from sqlalchemy import select
from tests.conftest import make_admin_user, make_member_user, override_auth
from tests.factories import (
    CartFactory,
    CartItemFactory,
    CouponFactory,
    InventoryFactory,
    ProductFactory,
    StoreFactory,
    VariantFactory,
    persist,
)


async def _catalog(db, sku="PHX-BLK", stock=0):
    variant = VariantFactory.create(sku=sku, stock=stock)
    product = ProductFactory.create(name="Phone X", variants=[variant])
    await persist(db, product)
    return product, variant


# ---------------------------------------------------------------------------
# System
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_health(client):
    """Health endpoint identifies the service."""
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "commerce"}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_unknown_product_error_shape(client):
    """Service errors render as detail/kind/code."""
    response = await client.get(f"/products/{uuid.uuid4()}")

    assert response.status_code == 404
    body = response.json()
    assert body["kind"] == "not_found"
    assert body["code"] == "product_not_found"
    assert body["detail"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_protected_routes_require_auth(client):
    """No bearer token means no preview and no redemption."""
    preview = await client.post("/checkout/preview", json={})
    apply = await client.post(
        "/coupons/apply", json={"code": "X", "order_amount": "10"}
    )

    assert preview.status_code in (401, 403)
    assert apply.status_code in (401, 403)


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_store_owner_upserts_inventory(client, commerce_app, db_session):
    """The owner's upsert is reflected in the product's cached stock."""
    owner = make_member_user("owner-1")
    product, variant = await _catalog(db_session)
    store = StoreFactory.create(owner_auth_id=owner.user_id)
    await persist(db_session, store)

    with override_auth(commerce_app, owner):
        response = await client.post(
            f"/stores/{store.id}/inventory",
            json={
                "product_id": str(product.id),
                "variant_sku": variant.sku,
                "stock_qty": 12,
                "reserved_qty": 2,
                "fulfillment_options": ["shipping", "pickup"],
            },
        )

    assert response.status_code == 200
    record = response.json()
    assert record["quantity_available"] == 10
    assert record["stock_status"] == "in-stock"
    assert record["fulfillment_options"] == ["shipping", "pickup"]

    product_response = await client.get(f"/products/{product.id}")
    variants = product_response.json()["variants"]
    assert variants[0]["stock_quantity"] == 10
    assert variants[0]["has_stock"] is True


@pytest.mark.asyncio
@pytest.mark.integration
async def test_non_owner_cannot_touch_store_inventory(client, commerce_app, db_session):
    """Another member is forbidden; an admin is allowed."""
    product, variant = await _catalog(db_session)
    store = StoreFactory.create(owner_auth_id="owner-2")
    await persist(db_session, store)
    payload = {"product_id": str(product.id), "variant_sku": variant.sku, "stock_qty": 1}

    with override_auth(commerce_app, make_member_user("intruder")):
        forbidden = await client.post(f"/stores/{store.id}/inventory", json=payload)
    with override_auth(commerce_app, make_admin_user()):
        allowed = await client.post(f"/stores/{store.id}/inventory", json=payload)

    assert forbidden.status_code == 403
    assert allowed.status_code == 200


@pytest.mark.asyncio
@pytest.mark.integration
async def test_unknown_store_is_not_found(client, commerce_app):
    """Operator routes 404 for a store that does not exist."""
    with override_auth(commerce_app, make_member_user()):
        response = await client.get(f"/stores/{uuid.uuid4()}/inventory")

    assert response.status_code == 404
    assert response.json()["code"] == "store_not_found"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_upsert_unknown_variant_is_not_found(client, commerce_app, db_session):
    """A SKU missing from the product returns 404 variant_not_found."""
    owner = make_member_user("owner-3")
    product, _ = await _catalog(db_session)
    store = StoreFactory.create(owner_auth_id=owner.user_id)
    await persist(db_session, store)

    with override_auth(commerce_app, owner):
        response = await client.post(
            f"/stores/{store.id}/inventory",
            json={"product_id": str(product.id), "variant_sku": "NOPE"},
        )

    assert response.status_code == 404
    assert response.json()["code"] == "variant_not_found"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_inventory_edit_and_listing(client, commerce_app, db_session):
    """PATCH edits a row; the list endpoint pages and embeds the product."""
    owner = make_member_user("owner-4")
    product, variant = await _catalog(db_session)
    store = StoreFactory.create(owner_auth_id=owner.user_id)
    await persist(db_session, store)

    with override_auth(commerce_app, owner):
        created = await client.post(
            f"/stores/{store.id}/inventory",
            json={"product_id": str(product.id), "variant_sku": variant.sku, "stock_qty": 3},
        )
        inventory_id = created.json()["id"]

        patched = await client.patch(
            f"/stores/{store.id}/inventory/{inventory_id}",
            json={"stock_qty": 0, "store_sku": "N-1"},
        )
        rejected = await client.patch(
            f"/stores/{store.id}/inventory/{inventory_id}",
            json={"variant_sku": "OTHER"},
        )
        listing = await client.get(
            f"/stores/{store.id}/inventory", params={"stock_status": "out-of-stock"}
        )

    assert patched.status_code == 200
    assert patched.json()["stock_status"] == "out-of-stock"
    assert patched.json()["store_sku"] == "N-1"
    assert rejected.status_code == 422

    body = listing.json()
    assert body["total_items"] == 1
    assert body["total_pages"] == 1
    assert body["records"][0]["product"]["name"] == "Phone X"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_inventory_patch_null_handling(client, commerce_app, db_session):
    """Nulling a required field is a 400; nulling store_sku clears it."""
    owner = make_member_user("owner-7")
    product, variant = await _catalog(db_session)
    store = StoreFactory.create(owner_auth_id=owner.user_id)
    await persist(db_session, store)

    with override_auth(commerce_app, owner):
        created = await client.post(
            f"/stores/{store.id}/inventory",
            json={
                "product_id": str(product.id),
                "variant_sku": variant.sku,
                "stock_qty": 5,
                "store_sku": "N-9",
            },
        )
        url = f"/stores/{store.id}/inventory/{created.json()['id']}"

        null_stock = await client.patch(url, json={"stock_qty": None})
        null_active = await client.patch(url, json={"is_active": None})
        cleared = await client.patch(url, json={"store_sku": None})

    for response in (null_stock, null_active):
        assert response.status_code == 400
        assert response.json()["kind"] == "validation"
        assert response.json()["code"] == "invalid_fields"

    assert cleared.status_code == 200
    assert cleared.json()["store_sku"] is None
    assert cleared.json()["stock_qty"] == 5
    assert cleared.json()["is_active"] is True


@pytest.mark.asyncio
@pytest.mark.integration
async def test_public_product_inventory(client, db_session):
    """Anyone can see per-store rows for a product."""
    product, variant = await _catalog(db_session)
    north = StoreFactory.create(name="North")
    await persist(db_session, north)
    await persist(
        db_session,
        InventoryFactory.create(north.id, product.id, variant.sku, stock_qty=4),
    )

    response = await client.get(f"/products/{product.id}/inventory")

    assert response.status_code == 200
    rows = response.json()
    assert len(rows) == 1
    assert rows[0]["store"]["name"] == "North"
    assert rows[0]["stock_qty"] == 4


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_recompute_repairs_cache(client, commerce_app, db_session):
    """Admins can rebuild a product's stock; members cannot."""
    product, variant = await _catalog(db_session, stock=0)
    store = StoreFactory.create()
    await persist(db_session, store)
    await persist(
        db_session,
        InventoryFactory.create(store.id, product.id, variant.sku, stock_qty=8),
    )

    with override_auth(commerce_app, make_member_user()):
        forbidden = await client.post(f"/admin/products/{product.id}/stock/recompute")
    with override_auth(commerce_app, make_admin_user()):
        response = await client.post(f"/admin/products/{product.id}/stock/recompute")

    assert forbidden.status_code == 403
    assert response.status_code == 200
    assert response.json()["variants"] == [
        {
            "sku": variant.sku,
            "total_available": 8,
            "status": "in-stock",
            "has_stock": True,
            "applied": True,
        }
    ]


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_member_cart_lifecycle(client, commerce_app, db_session):
    """Add, update and remove through the API."""
    product, variant = await _catalog(db_session, stock=5)
    member = make_member_user("cart-member")

    with override_auth(commerce_app, member):
        added = await client.post(
            "/cart/items",
            json={"product_id": str(product.id), "variant_sku": variant.sku, "quantity": 2},
        )
        item_id = added.json()["items"][0]["id"]
        updated = await client.patch(f"/cart/items/{item_id}", json={"quantity": 3})
        too_many = await client.patch(f"/cart/items/{item_id}", json={"quantity": 6})
        removed = await client.delete(f"/cart/items/{item_id}")

    assert added.status_code == 200
    assert Decimal(added.json()["subtotal"]) == Decimal("1000")
    assert updated.json()["items"][0]["quantity"] == 3
    assert too_many.status_code == 409
    assert too_many.json()["kind"] == "stock_insufficient"
    assert removed.json()["items"] == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_guest_cart_needs_session(client):
    """Guests must supply a session id."""
    missing = await client.get("/cart")
    guest = await client.post(
        "/cart/items/external",
        params={"session_id": "guest-1"},
        json={"title": "Gift wrap", "price": "40"},
    )

    assert missing.status_code == 400
    assert missing.json()["code"] == "session_required"
    assert guest.status_code == 200
    assert guest.json()["items"][0]["title"] == "Gift wrap"


# ---------------------------------------------------------------------------
# Checkout preview
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_preview_with_bad_coupon(client, commerce_app, db_session):
    """An unknown coupon still returns 200 with coupon_error set."""
    member = make_member_user("checkout-1")
    product, variant = await _catalog(db_session, stock=10)
    await persist(
        db_session,
        CartFactory.create(
            member_auth_id=member.user_id,
            items=[CartItemFactory.for_variant(product, variant, quantity=2)],
        ),
    )

    with override_auth(commerce_app, member):
        response = await client.post(
            "/checkout/preview", json={"coupon_code": "NOTREAL"}
        )

    assert response.status_code == 200
    body = response.json()
    assert body["item_count"] == 1
    assert body["pricing"]["subtotal"] == 1000
    assert body["pricing"]["coupon_discount"] == 0
    assert body["coupon"] is None
    assert body["coupon_error"] == "Coupon not found"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_preview_with_coupon(client, commerce_app, db_session):
    """A valid coupon is summarised and the final amount reduced."""
    member = make_member_user("checkout-2")
    product, variant = await _catalog(db_session, stock=10)
    await persist(
        db_session,
        CartFactory.create(
            member_auth_id=member.user_id,
            items=[CartItemFactory.for_variant(product, variant, quantity=2)],
        ),
        CouponFactory.create(
            code="SAVE20", discount_value=Decimal("20"), max_discount=Decimal("150")
        ),
    )

    with override_auth(commerce_app, member):
        response = await client.post("/checkout/preview", json={"coupon_code": "SAVE20"})

    body = response.json()
    assert body["coupon"]["code"] == "SAVE20"
    assert body["coupon"]["applied_discount"] == 150
    assert body["pricing"]["final_amount"] == 850


@pytest.mark.asyncio
@pytest.mark.integration
async def test_checkout_preview_out_of_stock(client, commerce_app, db_session):
    """Insufficient stock is a 409 naming the product."""
    member = make_member_user("checkout-3")
    product, variant = await _catalog(db_session, stock=1)
    await persist(
        db_session,
        CartFactory.create(
            member_auth_id=member.user_id,
            items=[CartItemFactory.for_variant(product, variant, quantity=3)],
        ),
    )

    with override_auth(commerce_app, member):
        response = await client.post("/checkout/preview", json={})

    assert response.status_code == 409
    body = response.json()
    assert body["kind"] == "stock_insufficient"
    assert "Phone X" in body["detail"]


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_apply_coupon_consumes_until_exhausted(client, commerce_app, db_session):
    """The single use is consumed once; the next apply conflicts."""
    coupon = CouponFactory.create(
        code="ONEUSE",
        discount_type=DiscountType.FLAT,
        discount_value=Decimal("100"),
        total_usage=1,
    )
    await persist(db_session, coupon)

    with override_auth(commerce_app, make_member_user()):
        first = await client.post(
            "/coupons/apply", json={"code": "oneuse", "order_amount": "250"}
        )
        second = await client.post(
            "/coupons/apply", json={"code": "ONEUSE", "order_amount": "250"}
        )

    assert first.status_code == 200
    assert Decimal(first.json()["discount"]) == Decimal("100")
    assert Decimal(first.json()["final_amount"]) == Decimal("150")
    assert second.status_code == 409
    assert second.json()["code"] == "coupon_exhausted"

    result = await db_session.execute(
        select(Coupon.used_count).where(Coupon.id == coupon.id)
    )
    assert result.scalar_one() == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_applicable_coupons(client, db_session):
    """Public, best-first suggestions with the new total."""
    await persist(
        db_session,
        CouponFactory.create(code="TEN", discount_value=Decimal("10")),
        CouponFactory.create(
            code="FLAT50", discount_type=DiscountType.FLAT, discount_value=Decimal("50")
        ),
        CouponFactory.create(
            code="HIDDEN",
            discount_type=DiscountType.FLAT,
            discount_value=Decimal("90"),
            visibility=CouponVisibility.PRIVATE,
        ),
    )

    response = await client.post("/coupons/applicable", json={"total_price": "300"})

    assert response.status_code == 200
    suggestions = response.json()
    assert [s["code"] for s in suggestions] == ["FLAT50", "TEN"]
    assert Decimal(suggestions[0]["new_total_price"]) == Decimal("250")
