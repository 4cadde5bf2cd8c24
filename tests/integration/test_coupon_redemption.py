"""Integration tests for coupon validation, redemption and ranking."""

import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest
from libs.common.datetime_utils import utc_now
from libs.common.errors import ConflictError, NotFoundError, ValidationFailedError
from services.commerce_service.models import (
    CommerceAuditLog,
    Coupon,
    CouponVisibility,
    DiscountType,
)
from services.commerce_service.services import coupon_engine
from sqlalchemy import select
from tests.factories import CouponFactory, persist


async def _used_count(db, coupon_id):
    result = await db.execute(select(Coupon.used_count).where(Coupon.id == coupon_id))
    return result.scalar_one()


# ---------------------------------------------------------------------------
# redeem_coupon
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_redeem_increments_usage_and_audits(db_session):
    """A redemption consumes one use and leaves an audit entry."""
    coupon = CouponFactory.create(
        code="SAVE20", discount_value=Decimal("20"), max_discount=Decimal("150")
    )
    await persist(db_session, coupon)

    quote = await coupon_engine.redeem_coupon(
        db_session, "save20", Decimal("1000"), performed_by="member-1"
    )

    assert quote.discount == Decimal("150")
    assert quote.final_amount == Decimal("850")
    assert await _used_count(db_session, coupon.id) == 1

    result = await db_session.execute(
        select(CommerceAuditLog).where(CommerceAuditLog.entity_id == coupon.id)
    )
    entry = result.scalar_one()
    assert entry.action == "coupon_redeemed"
    assert entry.performed_by == "member-1"
    assert entry.new_value == {"used_count": 1}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_redeem_past_limit_conflicts(db_session):
    """With one use left, the first redemption wins and the second conflicts."""
    coupon = CouponFactory.create(code="LAST1", total_usage=1)
    await persist(db_session, coupon)

    await coupon_engine.redeem_coupon(db_session, "LAST1", Decimal("100"))
    with pytest.raises(ConflictError) as exc_info:
        await coupon_engine.redeem_coupon(db_session, "LAST1", Decimal("100"))

    assert exc_info.value.code == "coupon_exhausted"
    assert await _used_count(db_session, coupon.id) == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_concurrent_redemptions_of_last_use(session_factory):
    """Two sessions racing for the last use: one wins, the other conflicts."""
    async with session_factory() as setup:
        coupon = CouponFactory.create(code="RACE", total_usage=1)
        await persist(setup, coupon)

    async def _redeem():
        async with session_factory() as session:
            try:
                await coupon_engine.redeem_coupon(session, "RACE", Decimal("100"))
            except ConflictError as exc:
                return exc.code
            return "redeemed"

    results = await asyncio.gather(_redeem(), _redeem())

    assert sorted(results) == ["coupon_exhausted", "redeemed"]
    async with session_factory() as check:
        assert await _used_count(check, coupon.id) == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_redeem_rejected_at_expiry_instant(db_session):
    """Exactly at expiry a preview still accepts, redemption does not."""
    now = utc_now()
    coupon = CouponFactory.create(
        code="EDGE", start_date=now - timedelta(days=1), expiry_date=now
    )
    await persist(db_session, coupon)

    quote = await coupon_engine.validate_coupon(
        db_session, "EDGE", Decimal("100"), now=now
    )
    assert quote.discount == Decimal("10")

    with pytest.raises(ValidationFailedError) as exc_info:
        await coupon_engine.redeem_coupon(db_session, "EDGE", Decimal("100"), now=now)

    assert exc_info.value.code == "coupon_expired"
    assert await _used_count(db_session, coupon.id) == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_redeem_unknown_code(db_session):
    """Unknown codes are NotFound."""
    with pytest.raises(NotFoundError):
        await coupon_engine.redeem_coupon(db_session, "MISSING", Decimal("100"))


@pytest.mark.asyncio
@pytest.mark.integration
async def test_redeem_negative_amount(db_session):
    """A negative order amount is rejected before any lookup."""
    with pytest.raises(ValidationFailedError) as exc_info:
        await coupon_engine.redeem_coupon(db_session, "ANY", Decimal("-1"))

    assert exc_info.value.code == "invalid_amount"


# ---------------------------------------------------------------------------
# rank_applicable
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_rank_applicable_top_three(db_session):
    """Largest discount first, ties by code, ineligible coupons excluded."""
    flat = DiscountType.FLAT
    await persist(
        db_session,
        CouponFactory.create(code="PCT10", discount_value=Decimal("10")),
        CouponFactory.create(
            code="FLAT250", discount_type=flat, discount_value=Decimal("250")
        ),
        CouponFactory.create(
            code="PCT20CAP",
            discount_value=Decimal("20"),
            max_discount=Decimal("150"),
        ),
        CouponFactory.create(
            code="AAA100", discount_type=flat, discount_value=Decimal("100")
        ),
        CouponFactory.create(
            code="STAFF",
            discount_type=flat,
            discount_value=Decimal("300"),
            visibility=CouponVisibility.PRIVATE,
        ),
        CouponFactory.create(
            code="OLD",
            discount_type=flat,
            discount_value=Decimal("500"),
            start_date=utc_now() - timedelta(days=10),
            expiry_date=utc_now() - timedelta(days=1),
        ),
        CouponFactory.create(
            code="BIGSPEND",
            discount_type=flat,
            discount_value=Decimal("400"),
            min_order_value=Decimal("5000"),
        ),
        CouponFactory.create(
            code="GONE",
            discount_type=flat,
            discount_value=Decimal("350"),
            total_usage=2,
            used_count=2,
        ),
    )

    quotes = await coupon_engine.rank_applicable(db_session, Decimal("1000"))

    assert [(q.coupon.code, q.discount) for q in quotes] == [
        ("FLAT250", Decimal("250")),
        ("PCT20CAP", Decimal("150")),
        ("AAA100", Decimal("100")),
    ]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_rank_applicable_nothing_eligible(db_session):
    """An empty list when no public coupon applies."""
    await persist(
        db_session,
        CouponFactory.create(code="MIN", min_order_value=Decimal("100")),
    )

    assert await coupon_engine.rank_applicable(db_session, Decimal("50")) == []
