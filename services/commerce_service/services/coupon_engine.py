"""Coupon validation, discount computation and redemption.

Expiry is checked under one of two policies (see ``ExpiryPolicy``): previews
accept a coupon up to and including ``expiry_date``, redemption requires
``now < expiry_date``.

Redemption is the only mutation. It is a conditional increment that only
succeeds while the usage limit still has room, so two checkouts racing for
the last use cannot both win; the loser gets ``ConflictError``.
"""

import enum
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from libs.common.currency import ZERO, format_amount, to_decimal
from libs.common.datetime_utils import ensure_utc, utc_now
from libs.common.errors import (
    ConflictError,
    NotFoundError,
    ValidationFailedError,
)
from libs.common.logging import get_logger
from services.commerce_service.models import (
    AuditEntityType,
    Coupon,
    CouponStatus,
    CouponVisibility,
    DiscountType,
)
from services.commerce_service.services.audit import log_audit
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

RANKED_COUPON_LIMIT = 3


class ExpiryPolicy(str, enum.Enum):
    PREVIEW = "preview"  # now <= expiry_date
    CONSUMPTION = "consumption"  # now < expiry_date


# ---------------------------------------------------------------------------
# Usage limits
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Unlimited:
    def allows(self, used_count: int) -> bool:
        return True

    def remaining(self, used_count: int) -> Optional[int]:
        return None


@dataclass(frozen=True)
class Limited:
    total: int

    def allows(self, used_count: int) -> bool:
        return used_count < self.total

    def remaining(self, used_count: int) -> Optional[int]:
        return max(self.total - used_count, 0)


UsageLimit = Union[Unlimited, Limited]


def usage_limit_of(coupon: Coupon) -> UsageLimit:
    if coupon.total_usage is None:
        return Unlimited()
    return Limited(coupon.total_usage)


# ---------------------------------------------------------------------------
# Pure rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CouponQuote:
    coupon: Coupon
    subtotal: Decimal
    discount: Decimal

    @property
    def final_amount(self) -> Decimal:
        return self.subtotal - self.discount


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def compute_discount(coupon: Coupon, subtotal: Decimal) -> Decimal:
    """Discount for ``subtotal``, always within [0, subtotal].

    Percentage coupons are capped by ``max_discount`` when it is set (a zero
    cap counts as unset); flat coupons are their face value.
    """
    subtotal = to_decimal(subtotal)
    value = to_decimal(coupon.discount_value)

    if coupon.discount_type == DiscountType.PERCENTAGE:
        discount = subtotal * value / Decimal(100)
        if coupon.max_discount:
            discount = min(discount, to_decimal(coupon.max_discount))
    else:
        discount = value

    return min(max(discount, ZERO), max(subtotal, ZERO))


def check_coupon(
    coupon: Optional[Coupon],
    subtotal: Decimal,
    now: datetime,
    policy: ExpiryPolicy = ExpiryPolicy.PREVIEW,
) -> Coupon:
    """Run the eligibility checks in order, raising on the first failure."""
    if coupon is None:
        raise NotFoundError("Coupon not found", code="coupon_not_found")

    if coupon.status == CouponStatus.EXPIRED:
        raise ValidationFailedError("Coupon has expired", code="coupon_expired")
    if coupon.status != CouponStatus.ACTIVE:
        raise ValidationFailedError("Coupon is not active", code="coupon_inactive")

    now = ensure_utc(now)
    if now < ensure_utc(coupon.start_date):
        raise ValidationFailedError(
            "Coupon is not yet valid", code="coupon_not_started"
        )
    expiry = ensure_utc(coupon.expiry_date)
    expired = now > expiry if policy == ExpiryPolicy.PREVIEW else now >= expiry
    if expired:
        raise ValidationFailedError("Coupon has expired", code="coupon_expired")

    min_order_value = to_decimal(coupon.min_order_value)
    if to_decimal(subtotal) < min_order_value:
        raise ValidationFailedError(
            f"Minimum order value of {format_amount(min_order_value)} required",
            code="coupon_min_order_not_met",
        )

    if not usage_limit_of(coupon).allows(coupon.used_count or 0):
        message = "Coupon usage limit has been reached"
        if policy == ExpiryPolicy.CONSUMPTION:
            raise ConflictError(message, code="coupon_exhausted")
        raise ValidationFailedError(message, code="coupon_exhausted")

    return coupon


# ---------------------------------------------------------------------------
# Queries and redemption
# ---------------------------------------------------------------------------


async def find_coupon(db: AsyncSession, code: str) -> Optional[Coupon]:
    result = await db.execute(
        select(Coupon)
        .where(Coupon.code == normalize_code(code))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def _validate_subtotal(subtotal) -> Decimal:
    subtotal = to_decimal(subtotal)
    if subtotal < 0:
        raise ValidationFailedError(
            "Order amount cannot be negative", code="invalid_amount"
        )
    return subtotal


async def validate_coupon(
    db: AsyncSession,
    code: str,
    subtotal: Decimal,
    *,
    now: Optional[datetime] = None,
    policy: ExpiryPolicy = ExpiryPolicy.PREVIEW,
) -> CouponQuote:
    """Check a code against ``subtotal`` and quote its discount. No side effects."""
    subtotal = _validate_subtotal(subtotal)
    coupon = check_coupon(
        await find_coupon(db, code), subtotal, now or utc_now(), policy
    )
    return CouponQuote(
        coupon=coupon, subtotal=subtotal, discount=compute_discount(coupon, subtotal)
    )


async def redeem_coupon(
    db: AsyncSession,
    code: str,
    order_amount: Decimal,
    *,
    now: Optional[datetime] = None,
    performed_by: str = "system",
) -> CouponQuote:
    """Validate under the strict policy and consume one use.

    Raises ``ConflictError`` if another redemption took the last use between
    our read and our write.
    """
    quote = await validate_coupon(
        db, code, order_amount, now=now, policy=ExpiryPolicy.CONSUMPTION
    )
    coupon = quote.coupon
    coupon_code = coupon.code

    result = await db.execute(
        update(Coupon)
        .where(
            Coupon.id == coupon.id,
            Coupon.status == CouponStatus.ACTIVE,
            or_(
                Coupon.total_usage.is_(None),
                Coupon.used_count < Coupon.total_usage,
            ),
        )
        .values(used_count=Coupon.used_count + 1, updated_at=utc_now())
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        await db.rollback()
        logger.warning("Coupon %s redemption lost a race at the usage limit", coupon_code)
        raise ConflictError(
            "Coupon usage limit has been reached", code="coupon_exhausted"
        )

    await log_audit(
        db,
        AuditEntityType.COUPON,
        coupon.id,
        "coupon_redeemed",
        performed_by,
        old_value={"used_count": coupon.used_count},
        new_value={"used_count": coupon.used_count + 1},
        notes=f"order_amount={quote.subtotal} discount={quote.discount}",
    )
    await db.commit()
    await db.refresh(coupon)

    logger.info(
        "Coupon %s redeemed (%s/%s) discount=%s",
        coupon.code,
        coupon.used_count,
        coupon.total_usage if coupon.total_usage is not None else "unlimited",
        quote.discount,
    )
    return quote


async def rank_applicable(
    db: AsyncSession,
    subtotal: Decimal,
    *,
    now: Optional[datetime] = None,
    limit: int = RANKED_COUPON_LIMIT,
) -> list[CouponQuote]:
    """Best public coupons for ``subtotal``, largest discount first."""
    subtotal = _validate_subtotal(subtotal)
    now = now or utc_now()

    result = await db.execute(
        select(Coupon).where(
            Coupon.visibility == CouponVisibility.PUBLIC,
            Coupon.status == CouponStatus.ACTIVE,
        )
    )

    quotes = []
    for coupon in result.scalars().all():
        try:
            check_coupon(coupon, subtotal, now, ExpiryPolicy.PREVIEW)
        except (NotFoundError, ValidationFailedError):
            continue
        quotes.append(
            CouponQuote(
                coupon=coupon,
                subtotal=subtotal,
                discount=compute_discount(coupon, subtotal),
            )
        )

    quotes.sort(key=lambda q: (-q.discount, q.coupon.code))
    return quotes[:limit]
