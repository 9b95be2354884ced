"""
Attendance: QR scanning at the door, manual toggles and the class roster.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select, update, and_
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.core.errors import (
    UserNotFound, NoReservation, AlreadyCheckedIn, ClassEnded, ClassNotFound, ReservationNotFound,
)
from wellnest.core.state_machine import ReservationStatus
from wellnest.crud.classCrud import get_class
from wellnest.crud.reservationsCrud import get_reservation
from wellnest.crud.usersCrud import get_user_by_qr
from wellnest.db.types import utcnow
from wellnest.models import Reservation, User

logger = logging.getLogger(__name__)


@dataclass
class RosterEntry:
    reservation_id: int
    user_id: int
    user_name: str
    user_email: str
    classes_used: int
    checked_in: bool
    checked_in_at: Optional[datetime]
    guest_name: Optional[str]
    guest_email: Optional[str]
    guest_status: Optional[str]


async def check_in(
    db: AsyncSession,
    *,
    qr_token: str,
    class_id: int,
    admin_id: int,
    now: Optional[datetime] = None,
    commit: bool = True
) -> Tuple[Reservation, User]:
    """Mark the scanned member's seat in `class_id` as attended."""
    now = now or utcnow()

    user = await get_user_by_qr(db, qr_token)
    if user is None:
        raise UserNotFound("No member matches this QR code")

    result = await db.execute(
        select(Reservation)
        .where(
            and_(
                Reservation.class_id == class_id,
                Reservation.user_id == user.id,
                Reservation.status == ReservationStatus.CONFIRMED,
            )
        )
        .execution_options(populate_existing=True)
    )
    reservation = result.scalars().first()
    if reservation is None:
        raise NoReservation(f"{user.name} has no reservation for this class")

    if reservation.studio_class.end_time <= now:
        raise ClassEnded()
    if reservation.checked_in:
        raise AlreadyCheckedIn(f"{user.name} is already checked in")

    flipped = await db.execute(
        update(Reservation)
        .where(and_(Reservation.id == reservation.id, Reservation.checked_in == False))
        .values(checked_in=True, checked_in_at=now, checked_in_by=admin_id)
        .execution_options(synchronize_session=False)
    )
    if flipped.rowcount != 1:
        raise AlreadyCheckedIn(f"{user.name} is already checked in")

    if commit:
        await db.commit()
    else:
        await db.flush()
    await db.refresh(reservation)

    logger.info(
        "Check-in reservation_id=%s user_id=%s class_id=%s admin_id=%s",
        reservation.id, user.id, class_id, admin_id,
    )
    return reservation, user


async def manual_check_in(
    db: AsyncSession,
    *,
    reservation_id: int,
    admin_id: int,
    now: Optional[datetime] = None,
    commit: bool = True
) -> Reservation:
    """Toggle attendance from the roster; undoing clears who and when."""
    now = now or utcnow()
    reservation = await get_reservation(db, reservation_id)
    if reservation is None:
        raise ReservationNotFound()
    if reservation.status != ReservationStatus.CONFIRMED:
        raise NoReservation("Reservation is not confirmed")

    if reservation.checked_in:
        reservation.checked_in = False
        reservation.checked_in_at = None
        reservation.checked_in_by = None
    else:
        reservation.checked_in = True
        reservation.checked_in_at = now
        reservation.checked_in_by = admin_id

    if commit:
        await db.commit()
    else:
        await db.flush()
    await db.refresh(reservation)

    logger.info(
        "Manual check-in reservation_id=%s checked_in=%s admin_id=%s",
        reservation_id, reservation.checked_in, admin_id,
    )
    return reservation


async def class_roster(db: AsyncSession, class_id: int) -> List[RosterEntry]:
    studio_class = await get_class(db, class_id)
    if studio_class is None:
        raise ClassNotFound()

    result = await db.execute(
        select(Reservation)
        .where(
            and_(
                Reservation.class_id == class_id,
                Reservation.status == ReservationStatus.CONFIRMED,
            )
        )
        .order_by(Reservation.created_at.asc(), Reservation.id.asc())
        .execution_options(populate_existing=True)
    )
    return [
        RosterEntry(
            reservation_id=r.id,
            user_id=r.user_id,
            user_name=r.user.name,
            user_email=r.user.email,
            classes_used=r.classes_used,
            checked_in=r.checked_in,
            checked_in_at=r.checked_in_at,
            guest_name=r.guest_name,
            guest_email=r.guest_email,
            guest_status=r.guest_status.value if r.guest_status else None,
        )
        for r in result.scalars().all()
    ]
