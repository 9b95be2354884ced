from datetime import datetime
from decimal import Decimal
from typing import Optional, TYPE_CHECKING
from sqlalchemy import (
    ForeignKey, BigInteger, String, Text, Boolean, Numeric, JSON, Index, Enum as SAEnum
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wellnest.core.state_machine import RefundStatus
from wellnest.db.postgresql import Base
from wellnest.db.types import BigIntPK, UTCDateTime, utcnow

if TYPE_CHECKING:
    from wellnest.models.purchaseModel import Purchase
    from wellnest.models.userModel import User


class RefundRequest(Base):
    """Member refund request, adjudicated by an admin."""

    __tablename__ = "refund_requests"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    purchase_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("purchases.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    eligible: Mapped[bool] = mapped_column(Boolean, nullable=False)
    status: Mapped[RefundStatus] = mapped_column(
        SAEnum(RefundStatus, native_enum=False, length=16),
        nullable=False, default=RefundStatus.PENDING
    )
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    policy_snapshot: Mapped[dict] = mapped_column(JSON, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    provider_ref: Mapped[Optional[str]] = mapped_column(String(120))
    refunded_by: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("users.id"))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)

    purchase: Mapped["Purchase"] = relationship(lazy="selectin")
    user: Mapped["User"] = relationship(foreign_keys=[user_id])

    __table_args__ = (
        Index("ix_refund_requests_status", "status"),
    )
