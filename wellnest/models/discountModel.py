"""
Discount codes and the per-user redemption ledger.
"""
from datetime import datetime
from typing import Optional, List
from sqlalchemy import (
    ForeignKey, Integer, BigInteger, String, Boolean, JSON, CheckConstraint,
    UniqueConstraint, Enum as SAEnum
)
from sqlalchemy.orm import Mapped, mapped_column

from wellnest.core.state_machine import RedemptionStatus
from wellnest.db.postgresql import Base
from wellnest.db.types import BigIntPK, UTCDateTime, utcnow


class DiscountCode(Base):
    __tablename__ = "discount_codes"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    # Stored upper-case; lookups upper-case the input
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255))
    percentage: Mapped[int] = mapped_column(Integer, nullable=False)
    max_uses: Mapped[Optional[int]] = mapped_column(Integer)
    current_uses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    valid_from: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    valid_until: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # Package ids; empty list applies to every package
    applicable_to: Mapped[List[int]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("percentage BETWEEN 1 AND 100", name="ck_discount_percentage"),
        CheckConstraint("max_uses IS NULL OR current_uses <= max_uses", name="ck_discount_uses"),
        CheckConstraint("valid_from <= valid_until", name="ck_discount_window"),
    )


class PromoRedemption(Base):
    __tablename__ = "promo_redemptions"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    discount_code_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("discount_codes.id"), nullable=False)
    purchase_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("purchases.id"))
    order_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("orders.id"))
    status: Mapped[RedemptionStatus] = mapped_column(
        SAEnum(RedemptionStatus, native_enum=False, length=16),
        nullable=False, default=RedemptionStatus.APPLIED
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "discount_code_id", name="uq_redemption_user_code"),
    )
