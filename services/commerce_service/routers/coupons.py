"""Coupon router: direct redemption and best-coupon suggestions."""

from fastapi import APIRouter, Depends, Request
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.currency import quantize_cents
from libs.common.rate_limit import coupon_limit
from libs.db.session import get_async_db
from services.commerce_service.schemas import (
    ApplicableCouponResponse,
    ApplicableCouponsRequest,
    CouponApplyRequest,
    CouponApplyResponse,
)
from services.commerce_service.services import coupon_engine
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["coupons"])


@router.post("/coupons/apply", response_model=CouponApplyResponse)
@coupon_limit
async def apply_coupon(
    request: Request,
    payload: CouponApplyRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Validate a coupon and consume one use."""
    quote = await coupon_engine.redeem_coupon(
        db, payload.code, payload.order_amount, performed_by=current_user.user_id
    )
    return CouponApplyResponse(
        code=quote.coupon.code,
        discount=quantize_cents(quote.discount),
        final_amount=quantize_cents(quote.final_amount),
    )


@router.post("/coupons/applicable", response_model=list[ApplicableCouponResponse])
@coupon_limit
async def applicable_coupons(
    request: Request,
    payload: ApplicableCouponsRequest,
    db: AsyncSession = Depends(get_async_db),
):
    """Top public coupons for an order total, best discount first."""
    quotes = await coupon_engine.rank_applicable(db, payload.total_price)
    return [
        ApplicableCouponResponse(
            id=quote.coupon.id,
            code=quote.coupon.code,
            title=quote.coupon.title,
            description=quote.coupon.description,
            discount_type=quote.coupon.discount_type,
            discount_value=quote.coupon.discount_value,
            min_order_value=quote.coupon.min_order_value,
            max_discount=quote.coupon.max_discount,
            expiry_date=quote.coupon.expiry_date,
            discount=quantize_cents(quote.discount),
            new_total_price=quantize_cents(quote.final_amount),
        )
        for quote in quotes
    ]
