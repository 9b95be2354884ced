"""
Purchases: a user's instance of a package, holding the class-credit balance.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, TYPE_CHECKING
from sqlalchemy import (
    ForeignKey, Integer, BigInteger, String, Numeric, CheckConstraint, Index,
    Enum as SAEnum
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wellnest.core.state_machine import PurchaseStatus
from wellnest.db.postgresql import Base
from wellnest.db.types import BigIntPK, UTCDateTime, utcnow

if TYPE_CHECKING:
    from wellnest.models.catalogModel import Package
    from wellnest.models.userModel import User
    from wellnest.models.classModel import Reservation


class Purchase(Base):
    __tablename__ = "purchases"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    package_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("packages.id"), nullable=False)
    order_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("orders.id"))
    # Only changed through conditional updates in purchasesCrud
    classes_remaining: Mapped[int] = mapped_column(Integer, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    original_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    final_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount_code: Mapped[Optional[str]] = mapped_column(String(64))
    status: Mapped[PurchaseStatus] = mapped_column(
        SAEnum(PurchaseStatus, native_enum=False, length=16),
        nullable=False, default=PurchaseStatus.ACTIVE
    )
    payment_reference: Mapped[Optional[str]] = mapped_column(String(120))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    user: Mapped["User"] = relationship(back_populates="purchases")
    package: Mapped["Package"] = relationship(lazy="selectin")
    reservations: Mapped[List["Reservation"]] = relationship(back_populates="purchase")

    __table_args__ = (
        CheckConstraint("classes_remaining >= 0", name="ck_purchase_balance_non_negative"),
        CheckConstraint("final_price >= 0 AND original_price >= 0", name="ck_purchase_prices"),
        Index("ix_purchases_user_status_expiry", "user_id", "status", "expires_at"),
    )
