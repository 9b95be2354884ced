"""
Catalog models: disciplines, instructors and purchasable packages.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from sqlalchemy import (
    Integer, String, Text, Boolean, Numeric, JSON, CheckConstraint
)
from sqlalchemy.orm import Mapped, mapped_column

from wellnest.db.postgresql import Base
from wellnest.db.types import BigIntPK, UTCDateTime, utcnow

# class_count value that means "unlimited classes"
UNLIMITED_CLASSES = 999


class Discipline(Base):
    """Yoga, Pilates, Soundbath..."""

    __tablename__ = "disciplines"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    benefits: Mapped[Optional[str]] = mapped_column(Text)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


class Instructor(Base):
    __tablename__ = "instructors"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    bio: Mapped[Optional[str]] = mapped_column(Text)
    # Denormalized discipline names, shown on the team page
    disciplines: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


class Package(Base):
    """Bundle of class credits. Price changes never touch existing purchases."""

    __tablename__ = "packages"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    slug: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    class_count: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    validity_days: Mapped[int] = mapped_column(Integer, nullable=False)
    is_shareable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    max_shares: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("class_count > 0", name="ck_package_class_count"),
        CheckConstraint("price >= 0", name="ck_package_price"),
        CheckConstraint("validity_days > 0", name="ck_package_validity"),
        CheckConstraint("max_shares >= 0", name="ck_package_max_shares"),
    )

    @property
    def is_unlimited(self) -> bool:
        return self.class_count >= UNLIMITED_CLASSES

    @property
    def allows_guests(self) -> bool:
        return self.is_shareable and self.max_shares >= 1
