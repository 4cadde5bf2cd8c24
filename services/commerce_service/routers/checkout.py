"""Checkout router: priced, stock-verified order preview."""

import asyncio

from fastapi import APIRouter, Depends
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.errors import ServiceUnavailableError
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.commerce_service.schemas import (
    CheckoutPreviewRequest,
    CheckoutPreviewResponse,
    CouponSummaryResponse,
    PreviewLineResponse,
    PreviewPricing,
)
from services.commerce_service.services import checkout_pricing
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["checkout"])
logger = get_logger(__name__)


@router.post("/checkout/preview", response_model=CheckoutPreviewResponse)
async def preview_checkout(
    payload: CheckoutPreviewRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Price the caller's cart, optionally with a coupon.

    Read-only; the result is advisory until the order is committed.
    """
    timeout = get_settings().CHECKOUT_PREVIEW_TIMEOUT_SECONDS
    try:
        preview = await asyncio.wait_for(
            checkout_pricing.preview_checkout(
                db, current_user.user_id, payload.coupon_code
            ),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning(
            "Checkout preview for %s exceeded %.1fs", current_user.user_id, timeout
        )
        raise ServiceUnavailableError(
            "Checkout preview timed out, please retry", code="preview_timeout"
        )

    return CheckoutPreviewResponse(
        items=[PreviewLineResponse.model_validate(line) for line in preview.items],
        item_count=preview.item_count,
        total_quantity=preview.total_quantity,
        pricing=PreviewPricing(**preview.pricing()),
        coupon=(
            CouponSummaryResponse.model_validate(preview.coupon)
            if preview.coupon
            else None
        ),
        coupon_error=preview.coupon_error,
    )
