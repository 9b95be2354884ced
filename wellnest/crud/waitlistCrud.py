"""
Waitlist for full classes. Promotion on cancellation lives in reservationsCrud.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update, and_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.core.errors import (
    ClassNotFound, ClassCancelled, ClassAlreadyStarted, AlreadyWaitlisted,
    AlreadyReserved, WaitlistEntryNotFound, NotOwner,
)
from wellnest.core.state_machine import ReservationStatus
from wellnest.crud.classCrud import get_class, class_label
from wellnest.db.locks import lock_key
from wellnest.db.types import utcnow
from wellnest.models import Reservation, WaitlistEntry

logger = logging.getLogger(__name__)


@dataclass
class WaitlistData:
    id: int
    class_id: int
    user_id: int
    position: int
    class_name: str
    class_date_time: datetime
    created_at: datetime


def entry_to_data(entry: WaitlistEntry) -> WaitlistData:
    return WaitlistData(
        id=entry.id,
        class_id=entry.class_id,
        user_id=entry.user_id,
        position=entry.position,
        class_name=class_label(entry.studio_class),
        class_date_time=entry.studio_class.date_time,
        created_at=entry.created_at,
    )


async def join_waitlist(
    db: AsyncSession,
    *,
    user_id: int,
    class_id: int,
    now: Optional[datetime] = None,
    commit: bool = True
) -> WaitlistEntry:
    now = now or utcnow()
    try:
        await lock_key(db, f"waitlist:{class_id}")

        studio_class = await get_class(db, class_id)
        if studio_class is None:
            raise ClassNotFound()
        if studio_class.is_cancelled:
            raise ClassCancelled()
        if studio_class.date_time <= now:
            raise ClassAlreadyStarted()

        booked = await db.execute(
            select(Reservation.id).where(
                and_(
                    Reservation.class_id == class_id,
                    Reservation.user_id == user_id,
                    Reservation.status == ReservationStatus.CONFIRMED,
                )
            )
        )
        if booked.scalars().first() is not None:
            raise AlreadyReserved()

        existing = await db.execute(
            select(WaitlistEntry.id).where(
                and_(WaitlistEntry.class_id == class_id, WaitlistEntry.user_id == user_id)
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise AlreadyWaitlisted()

        last = await db.execute(
            select(func.max(WaitlistEntry.position)).where(WaitlistEntry.class_id == class_id)
        )
        entry = WaitlistEntry(
            class_id=class_id,
            user_id=user_id,
            position=(last.scalar() or 0) + 1,
            created_at=now,
        )
        db.add(entry)
        try:
            await db.flush()
        except IntegrityError as exc:
            raise AlreadyWaitlisted() from exc

        if commit:
            await db.commit()
    except Exception:
        if commit:
            await db.rollback()
        raise

    await db.refresh(entry)
    logger.info("Waitlist joined user_id=%s class_id=%s position=%s", user_id, class_id, entry.position)
    return entry


async def leave_waitlist(
    db: AsyncSession,
    *,
    entry_id: int,
    user_id: int,
    commit: bool = True
) -> bool:
    entry = await db.get(WaitlistEntry, entry_id)
    if entry is None:
        raise WaitlistEntryNotFound()
    if entry.user_id != user_id:
        raise NotOwner()

    class_id, position = entry.class_id, entry.position
    await db.delete(entry)
    await db.flush()
    await db.execute(
        update(WaitlistEntry)
        .where(and_(WaitlistEntry.class_id == class_id, WaitlistEntry.position > position))
        .values(position=WaitlistEntry.position - 1)
        .execution_options(synchronize_session=False)
    )

    if commit:
        await db.commit()
    logger.info("Waitlist left user_id=%s class_id=%s", user_id, class_id)
    return True


async def list_user_waitlist(db: AsyncSession, user_id: int) -> List[WaitlistData]:
    result = await db.execute(
        select(WaitlistEntry)
        .where(WaitlistEntry.user_id == user_id)
        .order_by(WaitlistEntry.created_at.asc())
        .execution_options(populate_existing=True)
    )
    return [entry_to_data(e) for e in result.scalars().all()]


async def list_class_waitlist(db: AsyncSession, class_id: int) -> List[WaitlistData]:
    result = await db.execute(
        select(WaitlistEntry)
        .where(WaitlistEntry.class_id == class_id)
        .order_by(WaitlistEntry.position.asc())
        .execution_options(populate_existing=True)
    )
    return [entry_to_data(e) for e in result.scalars().all()]
