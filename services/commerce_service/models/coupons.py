"""Coupon model."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.commerce_service.models.enums import (
    CouponPlatform,
    CouponStatus,
    CouponVisibility,
    DiscountType,
    enum_values,
)
from sqlalchemy import CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class Coupon(Base):
    """Discount coupons, created by the admin subsystem.

    Only reads and the usage counter are touched by this service.
    """

    __tablename__ = "store_coupons"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(
        String(16), unique=True, index=True, nullable=False
    )  # stored uppercase
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    discount_type: Mapped[DiscountType] = mapped_column(
        SAEnum(
            DiscountType,
            values_callable=enum_values,
            name="store_discount_type_enum",
        ),
        nullable=False,
    )
    discount_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    min_order_value: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=0, server_default="0", nullable=False
    )
    max_discount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2), nullable=True
    )  # percentage coupons only

    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expiry_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    # Usage (null total_usage = unlimited)
    total_usage: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    used_count: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )

    status: Mapped[CouponStatus] = mapped_column(
        SAEnum(
            CouponStatus,
            values_callable=enum_values,
            name="store_coupon_status_enum",
        ),
        default=CouponStatus.ACTIVE,
        server_default="active",
        nullable=False,
    )
    visibility: Mapped[CouponVisibility] = mapped_column(
        SAEnum(
            CouponVisibility,
            values_callable=enum_values,
            name="store_coupon_visibility_enum",
        ),
        default=CouponVisibility.PUBLIC,
        server_default="public",
        nullable=False,
    )
    platform: Mapped[CouponPlatform] = mapped_column(
        SAEnum(
            CouponPlatform,
            values_callable=enum_values,
            name="store_coupon_platform_enum",
        ),
        default=CouponPlatform.BOTH,
        server_default="both",
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("discount_value >= 0", name="coupon_value_non_negative"),
        CheckConstraint(
            "discount_type <> 'percentage' OR discount_value <= 100",
            name="coupon_percentage_max_100",
        ),
        CheckConstraint("start_date < expiry_date", name="coupon_valid_window"),
        CheckConstraint("used_count >= 0", name="coupon_used_non_negative"),
        CheckConstraint(
            "total_usage IS NULL OR used_count <= total_usage",
            name="coupon_usage_within_limit",
        ),
    )

    def __repr__(self):
        return f"<Coupon {self.code} used={self.used_count}/{self.total_usage}>"
