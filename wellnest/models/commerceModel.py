"""
Cart, orders and the append-only payment transaction log.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, TYPE_CHECKING
from sqlalchemy import (
    ForeignKey, Integer, BigInteger, String, Numeric, JSON, CheckConstraint,
    UniqueConstraint, Index, Enum as SAEnum, text
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wellnest.core.state_machine import OrderStatus, TransactionStatus, PaymentProvider
from wellnest.db.postgresql import Base
from wellnest.db.types import BigIntPK, UTCDateTime, utcnow

if TYPE_CHECKING:
    from wellnest.models.catalogModel import Package
    from wellnest.models.userModel import User


class CartItem(Base):
    __tablename__ = "cart_items"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    # "user_<id>" for signed-in members, the cart cookie value otherwise
    session_id: Mapped[str] = mapped_column(String(120), nullable=False)
    package_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("packages.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    package: Mapped["Package"] = relationship(lazy="selectin")

    __table_args__ = (
        UniqueConstraint("session_id", "package_id", name="uq_cart_session_package"),
        CheckConstraint("quantity >= 1", name="ck_cart_quantity"),
    )


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(OrderStatus, native_enum=False, length=16),
        nullable=False, default=OrderStatus.PENDING
    )
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount_code_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("discount_codes.id"))
    discount_code: Mapped[Optional[str]] = mapped_column(String(64))
    # Percentage snapshot so fulfilment prices match what was quoted
    discount_percentage: Mapped[Optional[int]] = mapped_column(Integer)
    payment_method: Mapped[Optional[str]] = mapped_column(String(32))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    paid_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)

    user: Mapped["User"] = relationship()
    items: Mapped[List["OrderItem"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id", lazy="selectin"
    )
    transactions: Mapped[List["PaymentTransaction"]] = relationship(
        back_populates="order", order_by="PaymentTransaction.id", lazy="selectin"
    )

    __table_args__ = (
        CheckConstraint("total >= 0 AND subtotal >= 0 AND discount >= 0", name="ck_order_amounts"),
        Index("ix_orders_user_created", "user_id", "created_at"),
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    package_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("packages.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    order: Mapped["Order"] = relationship(back_populates="items")
    package: Mapped["Package"] = relationship(lazy="selectin")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_item_quantity"),
    )


class PaymentTransaction(Base):
    """One payment attempt against an order. Rows are never updated."""

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("orders.id"), nullable=False)
    provider: Mapped[PaymentProvider] = mapped_column(
        SAEnum(PaymentProvider, native_enum=False, length=16), nullable=False
    )
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(TransactionStatus, native_enum=False, length=16), nullable=False
    )
    provider_transaction_id: Mapped[Optional[str]] = mapped_column(String(120))
    authorization_number: Mapped[Optional[str]] = mapped_column(String(64))
    reference_number: Mapped[Optional[str]] = mapped_column(String(64))
    payway_number: Mapped[Optional[str]] = mapped_column(String(64))
    transaction_date: Mapped[Optional[str]] = mapped_column(String(64))
    payment_number: Mapped[Optional[str]] = mapped_column(String(64))
    card_brand: Mapped[Optional[str]] = mapped_column(String(32))
    card_last_digits: Mapped[Optional[str]] = mapped_column(String(4))
    card_holder: Mapped[Optional[str]] = mapped_column(String(160))
    raw_payload: Mapped[Optional[dict]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    order: Mapped["Order"] = relationship(back_populates="transactions")

    __table_args__ = (
        # Provider retries of the same callback dedupe here
        Index(
            "uq_transaction_provider_ref",
            "provider", "provider_transaction_id",
            unique=True,
            postgresql_where=text("provider_transaction_id IS NOT NULL"),
            sqlite_where=text("provider_transaction_id IS NOT NULL"),
        ),
    )
