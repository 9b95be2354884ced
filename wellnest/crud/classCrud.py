"""
CRUD operations for scheduled classes.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, and_
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.core.errors import (
    ClassNotFound, NotFoundError, ValidationError, CapacityBelowBookings,
)
from wellnest.core.state_machine import ReservationStatus
from wellnest.crud import purchasesCrud
from wellnest.crud.settingsCrud import DEFAULT_CAPACITY, get_int_setting
from wellnest.db.types import utcnow
from wellnest.models import Discipline, Instructor, Reservation, StudioClass, WaitlistEntry
from wellnest.services.notifications import notifier

logger = logging.getLogger(__name__)


@dataclass
class ClassData:
    """Scheduled class with availability info"""
    id: int
    date_time: datetime
    end_time: datetime
    duration: int
    max_capacity: int
    current_count: int
    available_spots: int
    is_cancelled: bool
    is_recurring: bool
    class_type: Optional[str]
    discipline_id: int
    discipline_name: str
    complementary_discipline_name: Optional[str]
    instructor_id: int
    instructor_name: str


def class_to_data(studio_class: StudioClass) -> ClassData:
    complementary = studio_class.complementary_discipline
    return ClassData(
        id=studio_class.id,
        date_time=studio_class.date_time,
        end_time=studio_class.end_time,
        duration=studio_class.duration,
        max_capacity=studio_class.max_capacity,
        current_count=studio_class.current_count,
        available_spots=studio_class.available_spots,
        is_cancelled=studio_class.is_cancelled,
        is_recurring=studio_class.is_recurring,
        class_type=studio_class.class_type,
        discipline_id=studio_class.discipline_id,
        discipline_name=studio_class.discipline.name,
        complementary_discipline_name=complementary.name if complementary else None,
        instructor_id=studio_class.instructor_id,
        instructor_name=studio_class.instructor.name,
    )


def class_label(studio_class: StudioClass) -> str:
    """Display name such as "Yoga + Soundbath"."""
    name = studio_class.discipline.name
    if studio_class.complementary_discipline is not None:
        name = f"{name} + {studio_class.complementary_discipline.name}"
    return name


async def get_class(db: AsyncSession, class_id: int) -> Optional[StudioClass]:
    result = await db.execute(
        select(StudioClass)
        .where(StudioClass.id == class_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_schedule(
    db: AsyncSession,
    start: datetime,
    end: datetime,
    discipline_id: Optional[int] = None,
    include_cancelled: bool = False
) -> List[ClassData]:
    conditions = [StudioClass.date_time >= start, StudioClass.date_time < end]
    if discipline_id is not None:
        conditions.append(StudioClass.discipline_id == discipline_id)
    if not include_cancelled:
        conditions.append(StudioClass.is_cancelled == False)

    result = await db.execute(
        select(StudioClass)
        .where(and_(*conditions))
        .order_by(StudioClass.date_time.asc())
        .execution_options(populate_existing=True)
    )
    return [class_to_data(c) for c in result.scalars().all()]


MIN_DURATION = 15
MAX_DURATION = 240


def _check_schedule_fields(date_time: Optional[datetime], duration: Optional[int]) -> None:
    if date_time is not None and date_time.tzinfo is None:
        raise ValidationError("date_time must be timezone-aware")
    if duration is not None and not MIN_DURATION <= duration <= MAX_DURATION:
        raise ValidationError(f"duration must be between {MIN_DURATION} and {MAX_DURATION} minutes")


async def create_class(
    db: AsyncSession,
    *,
    discipline_id: int,
    instructor_id: int,
    date_time: datetime,
    duration: int,
    max_capacity: Optional[int] = None,
    complementary_discipline_id: Optional[int] = None,
    class_type: Optional[str] = None,
    is_recurring: bool = False,
    commit: bool = True
) -> StudioClass:
    """Create a single class. Capacity defaults to the defaultCapacity setting."""
    _check_schedule_fields(date_time, duration)

    if await db.get(Discipline, discipline_id) is None:
        raise NotFoundError(f"Discipline {discipline_id} not found")
    if complementary_discipline_id is not None:
        if complementary_discipline_id == discipline_id:
            raise ValidationError("Complementary discipline must differ from the primary one")
        if await db.get(Discipline, complementary_discipline_id) is None:
            raise NotFoundError(f"Discipline {complementary_discipline_id} not found")
    if await db.get(Instructor, instructor_id) is None:
        raise NotFoundError(f"Instructor {instructor_id} not found")

    if max_capacity is None:
        max_capacity = await get_int_setting(db, DEFAULT_CAPACITY)
    if max_capacity < 1:
        raise ValidationError("max_capacity must be at least 1")

    studio_class = StudioClass(
        discipline_id=discipline_id,
        complementary_discipline_id=complementary_discipline_id,
        instructor_id=instructor_id,
        date_time=date_time,
        duration=duration,
        max_capacity=max_capacity,
        current_count=0,
        class_type=class_type,
        is_recurring=is_recurring,
    )
    db.add(studio_class)

    if commit:
        await db.commit()
    else:
        await db.flush()
    await db.refresh(studio_class)
    return studio_class


async def update_class(
    db: AsyncSession,
    class_id: int,
    updates: Dict[str, Any],
    commit: bool = True
) -> StudioClass:
    """Edit a class. Every field is checked before anything is written."""
    studio_class = await get_class(db, class_id)
    if studio_class is None:
        raise ClassNotFound()

    _check_schedule_fields(updates.get("date_time"), updates.get("duration"))
    instructor_id = updates.get("instructor_id")
    if instructor_id is not None and await db.get(Instructor, instructor_id) is None:
        raise NotFoundError(f"Instructor {instructor_id} not found")
    new_capacity = updates.get("max_capacity")
    if new_capacity is not None:
        new_capacity = int(new_capacity)
        if new_capacity < 1:
            raise ValidationError("max_capacity must be at least 1")

    try:
        if new_capacity is not None:
            result = await db.execute(
                update(StudioClass)
                .where(and_(StudioClass.id == class_id, StudioClass.current_count <= new_capacity))
                .values(max_capacity=new_capacity)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise CapacityBelowBookings(
                    f"Class already has {studio_class.current_count} bookings"
                )

        for field in ("date_time", "duration", "class_type", "instructor_id"):
            if updates.get(field) is not None:
                setattr(studio_class, field, updates[field])

        if commit:
            await db.commit()
        else:
            await db.flush()
    except Exception:
        if commit:
            await db.rollback()
        raise

    return await get_class(db, class_id)


async def cancel_class(
    db: AsyncSession,
    class_id: int,
    commit: bool = True
) -> Dict[str, int]:
    """Soft-cancel a class: cancel every confirmed booking and give the credits back."""
    studio_class = await get_class(db, class_id)
    if studio_class is None:
        raise ClassNotFound()
    if studio_class.is_cancelled:
        return {"class_id": class_id, "reservations_cancelled": 0}

    now = utcnow()
    result = await db.execute(
        select(Reservation).where(
            and_(
                Reservation.class_id == class_id,
                Reservation.status == ReservationStatus.CONFIRMED,
            )
        )
    )
    reservations = result.scalars().all()
    affected = []

    try:
        for reservation in reservations:
            flipped = await db.execute(
                update(Reservation)
                .where(
                    and_(
                        Reservation.id == reservation.id,
                        Reservation.status == ReservationStatus.CONFIRMED,
                    )
                )
                .values(status=ReservationStatus.CANCELLED, cancelled_at=now)
                .execution_options(synchronize_session=False)
            )
            if flipped.rowcount != 1:
                continue
            await purchasesCrud.restore_class(
                db,
                purchase_id=reservation.purchase_id,
                count=reservation.classes_used,
                now=now,
                commit=False,
            )
            affected.append(reservation.user.email)

        await db.execute(
            update(StudioClass)
            .where(StudioClass.id == class_id)
            .values(is_cancelled=True, current_count=0)
            .execution_options(synchronize_session=False)
        )
        waitlist = await db.execute(select(WaitlistEntry).where(WaitlistEntry.class_id == class_id))
        for entry in waitlist.scalars().all():
            await db.delete(entry)

        if commit:
            await db.commit()
        else:
            await db.flush()
    except Exception:
        if commit:
            await db.rollback()
        raise

    for email in affected:
        notifier.class_cancelled(email=email, class_name=class_label(studio_class), class_time=studio_class.date_time)

    logger.info("Class cancelled class_id=%s reservations_cancelled=%s", class_id, len(affected))
    return {"class_id": class_id, "reservations_cancelled": len(affected)}
