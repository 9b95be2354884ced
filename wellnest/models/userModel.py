"""
Studio members and administrators.
"""
from datetime import datetime
from typing import Optional, List, TYPE_CHECKING
from sqlalchemy import String, Boolean, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wellnest.core.state_machine import UserRole
from wellnest.db.postgresql import Base
from wellnest.db.types import BigIntPK, UTCDateTime, utcnow

if TYPE_CHECKING:
    from wellnest.models.purchaseModel import Purchase
    from wellnest.models.classModel import Reservation


class User(Base):
    """Authenticated account. Identity management itself lives outside this service."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(40))
    role: Mapped[UserRole] = mapped_column(
        SAEnum(UserRole, native_enum=False, length=16), nullable=False, default=UserRole.MEMBER
    )
    # Opaque token printed in the member's QR code
    qr_code: Mapped[Optional[str]] = mapped_column(String(64), unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    purchases: Mapped[List["Purchase"]] = relationship(back_populates="user")
    reservations: Mapped[List["Reservation"]] = relationship(
        back_populates="user", foreign_keys="Reservation.user_id"
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
