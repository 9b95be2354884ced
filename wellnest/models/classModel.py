"""
Class scheduling, reservation and waitlist models
"""
from datetime import datetime, timedelta
from typing import Optional, List, TYPE_CHECKING
from sqlalchemy import (
    ForeignKey, Integer, BigInteger, String, Boolean, CheckConstraint,
    UniqueConstraint, Index, Enum as SAEnum, text
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wellnest.core.state_machine import ReservationStatus, GuestStatus
from wellnest.db.postgresql import Base
from wellnest.db.types import BigIntPK, UTCDateTime, utcnow

if TYPE_CHECKING:
    from wellnest.models.catalogModel import Discipline, Instructor
    from wellnest.models.userModel import User
    from wellnest.models.purchaseModel import Purchase


class StudioClass(Base):
    """A single scheduled class. Soft-cancelled, never deleted once booked."""

    __tablename__ = "classes"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    discipline_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("disciplines.id"), nullable=False)
    complementary_discipline_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("disciplines.id"))
    instructor_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("instructors.id"), nullable=False)
    date_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)  # minutes
    max_capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    # Confirmed host reservations; only changed through conditional updates
    current_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    class_type: Mapped[Optional[str]] = mapped_column(String(120))
    is_cancelled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    discipline: Mapped["Discipline"] = relationship(foreign_keys=[discipline_id], lazy="selectin")
    complementary_discipline: Mapped[Optional["Discipline"]] = relationship(
        foreign_keys=[complementary_discipline_id], lazy="selectin"
    )
    instructor: Mapped["Instructor"] = relationship(lazy="selectin")
    reservations: Mapped[List["Reservation"]] = relationship(back_populates="studio_class")
    waitlist: Mapped[List["WaitlistEntry"]] = relationship(back_populates="studio_class")

    __table_args__ = (
        CheckConstraint("duration BETWEEN 15 AND 240", name="ck_class_duration_range"),
        CheckConstraint("max_capacity > 0", name="ck_class_capacity_positive"),
        CheckConstraint("current_count >= 0 AND current_count <= max_capacity", name="ck_class_count_range"),
        Index("ix_classes_date_time", "date_time"),
    )

    @property
    def end_time(self) -> datetime:
        return self.date_time + timedelta(minutes=self.duration)

    @property
    def available_spots(self) -> int:
        return max(self.max_capacity - self.current_count, 0)


class Reservation(Base):
    """A booking of one user (optionally +1 guest) into one class"""

    __tablename__ = "reservations"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    class_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("classes.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    purchase_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("purchases.id"), nullable=False)
    status: Mapped[ReservationStatus] = mapped_column(
        SAEnum(ReservationStatus, native_enum=False, length=16),
        nullable=False, default=ReservationStatus.CONFIRMED
    )
    # Credits taken from the purchase: 1, or 2 with a guest
    classes_used: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    checked_in: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    checked_in_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    checked_in_by: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("users.id"))

    # Guests ride on the host's row, so nothing sets this to True
    is_guest_reservation: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    guest_name: Mapped[Optional[str]] = mapped_column(String(160))
    guest_email: Mapped[Optional[str]] = mapped_column(String(255))
    guest_status: Mapped[Optional[GuestStatus]] = mapped_column(
        SAEnum(GuestStatus, native_enum=False, length=16)
    )
    invitation_token: Mapped[Optional[str]] = mapped_column(String(64), unique=True)

    cancelled_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    studio_class: Mapped["StudioClass"] = relationship(back_populates="reservations", lazy="selectin")
    user: Mapped["User"] = relationship(back_populates="reservations", foreign_keys=[user_id], lazy="selectin")
    purchase: Mapped["Purchase"] = relationship(back_populates="reservations")

    __table_args__ = (
        CheckConstraint("classes_used IN (1, 2)", name="ck_reservation_classes_used"),
        # At most one confirmed member seat per (class, user)
        Index(
            "uq_reservation_confirmed_member",
            "class_id", "user_id",
            unique=True,
            postgresql_where=text("status = 'CONFIRMED' AND is_guest_reservation = false"),
            sqlite_where=text("status = 'CONFIRMED' AND is_guest_reservation = 0"),
        ),
        Index("ix_reservations_user_status", "user_id", "status"),
    )

    @property
    def has_guest(self) -> bool:
        return self.guest_email is not None


class WaitlistEntry(Base):
    __tablename__ = "waitlist_entries"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    class_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("classes.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    studio_class: Mapped["StudioClass"] = relationship(back_populates="waitlist", lazy="selectin")
    user: Mapped["User"] = relationship(lazy="selectin")

    __table_args__ = (
        UniqueConstraint("user_id", "class_id", name="uq_waitlist_user_class"),
        CheckConstraint("position >= 1", name="ck_waitlist_position"),
    )
