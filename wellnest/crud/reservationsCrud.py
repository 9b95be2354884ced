"""
Reservation engine: booking against class capacity and purchase balance.

Capacity and balance are both claimed with conditional UPDATEs inside the
caller's transaction; any failure rolls the whole booking back.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import select, update, and_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.core.errors import (
    DomainError, ValidationError, ClassNotFound, ClassCancelled, ClassAlreadyStarted,
    ClassFull, AlreadyReserved, TimeConflict, NoActivePackage, NotShareable,
    ReservationNotFound, NotOwner, AlreadyCancelled, TooLateToCancel,
    InvitationNotFound, InvitationExpired, ReservationCancelled, AlreadyResponded,
    UserNotFound,
)
from wellnest.core.state_machine import ReservationStatus, GuestStatus
from wellnest.crud import purchasesCrud
from wellnest.crud.classCrud import get_class, class_label
from wellnest.crud.settingsCrud import CANCELLATION_HOURS, get_int_setting
from wellnest.db.types import utcnow
from wellnest.models import Purchase, Reservation, StudioClass, User, WaitlistEntry
from wellnest.services.notifications import notifier

logger = logging.getLogger(__name__)

# Longest class we schedule; bounds the overlap search window
MAX_CLASS_MINUTES = 240


@dataclass
class GuestInfo:
    email: str
    name: Optional[str] = None


@dataclass
class ReservationData:
    """Clean reservation data structure"""
    id: int
    class_id: int
    user_id: int
    purchase_id: int
    status: str
    classes_used: int
    checked_in: bool
    checked_in_at: Optional[datetime]
    is_guest_reservation: bool
    guest_name: Optional[str]
    guest_email: Optional[str]
    guest_status: Optional[str]
    created_at: datetime
    cancelled_at: Optional[datetime] = None

    # Related data
    user_name: Optional[str] = None
    class_name: Optional[str] = None
    class_date_time: Optional[datetime] = None
    instructor_name: Optional[str] = None


@dataclass
class InvitationData:
    token: str
    host_name: str
    guest_name: Optional[str]
    guest_status: str
    class_name: str
    class_date_time: datetime
    instructor_name: str
    reservation_status: str
    is_past: bool


def reservation_to_data(reservation: Reservation) -> ReservationData:
    studio_class = reservation.studio_class
    return ReservationData(
        id=reservation.id,
        class_id=reservation.class_id,
        user_id=reservation.user_id,
        purchase_id=reservation.purchase_id,
        status=reservation.status.value,
        classes_used=reservation.classes_used,
        checked_in=reservation.checked_in,
        checked_in_at=reservation.checked_in_at,
        is_guest_reservation=reservation.is_guest_reservation,
        guest_name=reservation.guest_name,
        guest_email=reservation.guest_email,
        guest_status=reservation.guest_status.value if reservation.guest_status else None,
        created_at=reservation.created_at,
        cancelled_at=reservation.cancelled_at,
        user_name=reservation.user.name if reservation.user else None,
        class_name=class_label(studio_class) if studio_class else None,
        class_date_time=studio_class.date_time if studio_class else None,
        instructor_name=studio_class.instructor.name if studio_class else None,
    )


async def get_reservation(db: AsyncSession, reservation_id: int) -> Optional[Reservation]:
    result = await db.execute(
        select(Reservation)
        .where(Reservation.id == reservation_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_user_reservations(
    db: AsyncSession,
    user_id: int,
    upcoming_only: bool = False,
    include_cancelled: bool = True,
    now: Optional[datetime] = None
) -> List[ReservationData]:
    now = now or utcnow()
    stmt = (
        select(Reservation)
        .join(StudioClass, Reservation.class_id == StudioClass.id)
        .where(Reservation.user_id == user_id)
    )
    if upcoming_only:
        stmt = stmt.where(StudioClass.date_time > now)
    if not include_cancelled:
        stmt = stmt.where(Reservation.status == ReservationStatus.CONFIRMED)
    stmt = stmt.order_by(StudioClass.date_time.asc() if upcoming_only else StudioClass.date_time.desc())

    result = await db.execute(stmt.execution_options(populate_existing=True))
    return [reservation_to_data(r) for r in result.scalars().all()]


async def _find_confirmed_seat(db: AsyncSession, class_id: int, user_id: int) -> Optional[Reservation]:
    result = await db.execute(
        select(Reservation).where(
            and_(
                Reservation.class_id == class_id,
                Reservation.user_id == user_id,
                Reservation.status == ReservationStatus.CONFIRMED,
            )
        )
    )
    return result.scalars().first()


async def _has_time_conflict(db: AsyncSession, user_id: int, studio_class: StudioClass) -> bool:
    """True if the user holds a confirmed seat in another class overlapping this one."""
    window_start = studio_class.date_time - timedelta(minutes=MAX_CLASS_MINUTES)
    result = await db.execute(
        select(StudioClass)
        .join(Reservation, Reservation.class_id == StudioClass.id)
        .where(
            and_(
                Reservation.user_id == user_id,
                Reservation.status == ReservationStatus.CONFIRMED,
                StudioClass.id != studio_class.id,
                StudioClass.is_cancelled == False,
                StudioClass.date_time > window_start,
                StudioClass.date_time < studio_class.end_time,
            )
        )
    )
    return any(other.end_time > studio_class.date_time for other in result.scalars().all())


async def _resolve_purchase(
    db: AsyncSession,
    user_id: int,
    purchase_id: Optional[int],
    classes_needed: int,
    with_guest: bool,
    now: datetime,
) -> Purchase:
    if purchase_id is not None:
        purchase = await purchasesCrud.get_purchase(db, purchase_id)
        if purchase is None or purchase.user_id != user_id:
            raise NoActivePackage("Selected package not found")
        if with_guest and not purchase.package.allows_guests:
            raise NotShareable()
        return purchase

    snapshot = await purchasesCrud.list_active_purchases(db, user_id, now=now)
    best = purchasesCrud.select_best_purchase(snapshot, classes_needed, now, require_shareable=with_guest)
    if best is not None:
        return best
    if with_guest and snapshot and not any(p.package.allows_guests for p in snapshot):
        raise NotShareable()
    raise NoActivePackage()


async def _claim_seat(db: AsyncSession, studio_class: StudioClass) -> None:
    result = await db.execute(
        update(StudioClass)
        .where(
            and_(
                StudioClass.id == studio_class.id,
                StudioClass.is_cancelled == False,
                StudioClass.current_count < StudioClass.max_capacity,
            )
        )
        .values(current_count=StudioClass.current_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.refresh(studio_class)
        if studio_class.is_cancelled:
            raise ClassCancelled()
        raise ClassFull()


async def _release_seat(db: AsyncSession, class_id: int) -> None:
    await db.execute(
        update(StudioClass)
        .where(and_(StudioClass.id == class_id, StudioClass.current_count > 0))
        .values(current_count=StudioClass.current_count - 1)
        .execution_options(synchronize_session=False)
    )


async def create_reservation(
    db: AsyncSession,
    *,
    user_id: int,
    class_id: int,
    purchase_id: Optional[int] = None,
    guest: Optional[GuestInfo] = None,
    now: Optional[datetime] = None,
    notify: bool = True,
    commit: bool = True
) -> Tuple[Reservation, Purchase]:
    """Book `user_id` into a class, optionally bringing one guest.

    A guest costs one extra credit and needs a shareable package but does
    not take a seat. Returns the reservation and the purchase with its
    updated balance.
    """
    now = now or utcnow()

    try:
        user = await db.get(User, user_id)
        if user is None:
            raise UserNotFound()

        studio_class = await get_class(db, class_id)
        if studio_class is None:
            raise ClassNotFound()
        if studio_class.is_cancelled:
            raise ClassCancelled()
        if studio_class.date_time <= now:
            raise ClassAlreadyStarted("Cannot reserve a class that has already started")

        if guest is not None:
            guest_email = (guest.email or "").strip()
            if "@" not in guest_email:
                raise ValidationError("A valid guest email is required")
            if guest_email.lower() == user.email.lower():
                raise ValidationError("Guest email must differ from your own")

        classes_needed = 2 if guest is not None else 1

        purchase = await _resolve_purchase(
            db, user_id, purchase_id, classes_needed, guest is not None, now
        )

        await _claim_seat(db, studio_class)

        if await _find_confirmed_seat(db, class_id, user_id) is not None:
            raise AlreadyReserved()
        if await _has_time_conflict(db, user_id, studio_class):
            raise TimeConflict()

        purchase = await purchasesCrud.consume_class(
            db, purchase_id=purchase.id, count=classes_needed, now=now, commit=False
        )

        reservation = Reservation(
            class_id=class_id,
            user_id=user_id,
            purchase_id=purchase.id,
            status=ReservationStatus.CONFIRMED,
            classes_used=classes_needed,
            created_at=now,
        )
        if guest is not None:
            reservation.guest_email = guest.email.strip()
            reservation.guest_name = guest.name.strip() if guest.name else None
            reservation.guest_status = GuestStatus.PENDING
            reservation.invitation_token = secrets.token_hex(32)
        db.add(reservation)

        try:
            await db.flush()
        except IntegrityError as exc:
            raise AlreadyReserved() from exc

        if commit:
            await db.commit()
    except Exception:
        if commit:
            await db.rollback()
        raise

    await db.refresh(reservation)

    logger.info(
        "Reservation created reservation_id=%s user_id=%s class_id=%s purchase_id=%s classes_used=%s",
        reservation.id, user_id, class_id, purchase.id, classes_needed,
    )

    if guest is not None and notify:
        notifier.guest_invitation(
            guest_email=reservation.guest_email,
            guest_name=reservation.guest_name,
            host_name=user.name,
            class_name=class_label(studio_class),
            class_time=studio_class.date_time,
            token=reservation.invitation_token,
        )

    return reservation, purchase


async def promote_from_waitlist(
    db: AsyncSession,
    class_id: int,
    now: Optional[datetime] = None
) -> Optional[Reservation]:
    """Book the first waitlisted user who still has a usable package.

    Each attempt runs in its own savepoint. Never commits; the caller owns
    the transaction.
    """
    now = now or utcnow()
    result = await db.execute(
        select(WaitlistEntry)
        .where(WaitlistEntry.class_id == class_id)
        .order_by(WaitlistEntry.position.asc())
    )
    entries = list(result.scalars().all())

    for entry in entries:
        snapshot = await purchasesCrud.list_active_purchases(db, entry.user_id, now=now)
        best = purchasesCrud.select_best_purchase(snapshot, 1, now)
        if best is None:
            continue

        entry_id, entry_user_id, entry_position = entry.id, entry.user_id, entry.position
        try:
            async with db.begin_nested():
                reservation, _ = await create_reservation(
                    db,
                    user_id=entry_user_id,
                    class_id=class_id,
                    purchase_id=best.id,
                    now=now,
                    notify=False,
                    commit=False,
                )
        except ClassFull:
            return None
        except DomainError as exc:
            logger.warning(
                "Waitlist promotion skipped user_id=%s class_id=%s reason=%s",
                entry_user_id, class_id, exc.code.value,
            )
            continue

        await db.delete(entry)
        await db.flush()
        await db.execute(
            update(WaitlistEntry)
            .where(
                and_(
                    WaitlistEntry.class_id == class_id,
                    WaitlistEntry.position > entry_position,
                )
            )
            .values(position=WaitlistEntry.position - 1)
            .execution_options(synchronize_session=False)
        )

        logger.info(
            "Waitlist promoted user_id=%s class_id=%s reservation_id=%s waitlist_id=%s",
            entry_user_id, class_id, reservation.id, entry_id,
        )
        return reservation

    return None


async def cancel_reservation(
    db: AsyncSession,
    *,
    reservation_id: int,
    acting_user_id: int,
    now: Optional[datetime] = None,
    commit: bool = True
) -> Tuple[Reservation, Purchase]:
    """Cancel a confirmed reservation outside the cutoff window and give the credits back."""
    now = now or utcnow()
    promoted = None

    try:
        reservation = await get_reservation(db, reservation_id)
        if reservation is None:
            raise ReservationNotFound()
        if reservation.user_id != acting_user_id:
            raise NotOwner("You can only cancel your own reservations")
        if reservation.status == ReservationStatus.CANCELLED:
            raise AlreadyCancelled()

        studio_class = reservation.studio_class
        class_name, class_time = class_label(studio_class), studio_class.date_time
        cutoff_hours = await get_int_setting(db, CANCELLATION_HOURS)
        if studio_class.date_time <= now:
            raise TooLateToCancel("Cannot cancel a class that has already started")
        if studio_class.date_time - now < timedelta(hours=cutoff_hours):
            raise TooLateToCancel(
                f"Reservations can only be cancelled up to {cutoff_hours} hours before class"
            )

        flipped = await db.execute(
            update(Reservation)
            .where(
                and_(
                    Reservation.id == reservation_id,
                    Reservation.status == ReservationStatus.CONFIRMED,
                )
            )
            .values(status=ReservationStatus.CANCELLED, cancelled_at=now)
            .execution_options(synchronize_session=False)
        )
        if flipped.rowcount != 1:
            raise AlreadyCancelled()

        purchase = await purchasesCrud.restore_class(
            db,
            purchase_id=reservation.purchase_id,
            count=reservation.classes_used,
            now=now,
            commit=False,
        )
        await _release_seat(db, reservation.class_id)
        await db.flush()

        try:
            async with db.begin_nested():
                promoted = await promote_from_waitlist(db, reservation.class_id, now=now)
        except SQLAlchemyError:
            logger.exception("Waitlist promotion failed class_id=%s", reservation.class_id)
            promoted = None

        if commit:
            await db.commit()
    except Exception:
        if commit:
            await db.rollback()
        raise

    await db.refresh(reservation)
    await db.refresh(purchase)

    logger.info(
        "Reservation cancelled reservation_id=%s user_id=%s class_id=%s restored=%s",
        reservation_id, acting_user_id, reservation.class_id, reservation.classes_used,
    )

    if promoted is not None:
        notifier.waitlist_promoted(
            email=promoted.user.email,
            class_name=class_name,
            class_time=class_time,
        )

    return reservation, purchase


async def transfer_reservation(
    db: AsyncSession,
    *,
    reservation_id: int,
    acting_user_id: int,
    new_purchase_id: int,
    now: Optional[datetime] = None,
    commit: bool = True
) -> Tuple[Reservation, Purchase]:
    """Charge a confirmed reservation to another of the user's purchases."""
    now = now or utcnow()

    try:
        reservation = await get_reservation(db, reservation_id)
        if reservation is None:
            raise ReservationNotFound()
        if reservation.user_id != acting_user_id:
            raise NotOwner()
        if reservation.status != ReservationStatus.CONFIRMED:
            raise AlreadyCancelled()
        if reservation.studio_class.date_time <= now:
            raise ClassAlreadyStarted()
        if reservation.purchase_id == new_purchase_id:
            raise ValidationError("Reservation already uses this package")

        new_purchase = await purchasesCrud.get_purchase(db, new_purchase_id)
        if new_purchase is None or new_purchase.user_id != acting_user_id:
            raise NoActivePackage("Selected package not found")
        if reservation.has_guest and not new_purchase.package.allows_guests:
            raise NotShareable()

        old_purchase_id = reservation.purchase_id
        new_purchase = await purchasesCrud.consume_class(
            db, purchase_id=new_purchase_id, count=reservation.classes_used, now=now, commit=False
        )
        await purchasesCrud.restore_class(
            db, purchase_id=old_purchase_id, count=reservation.classes_used, now=now, commit=False
        )
        reservation.purchase_id = new_purchase_id

        if commit:
            await db.commit()
        else:
            await db.flush()
    except Exception:
        if commit:
            await db.rollback()
        raise

    await db.refresh(reservation)
    logger.info(
        "Reservation transferred reservation_id=%s from_purchase=%s to_purchase=%s",
        reservation_id, old_purchase_id, new_purchase_id,
    )
    return reservation, new_purchase


async def _get_by_token(db: AsyncSession, token: str) -> Optional[Reservation]:
    if not token:
        return None
    result = await db.execute(
        select(Reservation)
        .where(Reservation.invitation_token == token)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_invitation(
    db: AsyncSession,
    token: str,
    now: Optional[datetime] = None
) -> InvitationData:
    now = now or utcnow()
    reservation = await _get_by_token(db, token)
    if reservation is None:
        raise InvitationNotFound()

    studio_class = reservation.studio_class
    return InvitationData(
        token=token,
        host_name=reservation.user.name,
        guest_name=reservation.guest_name,
        guest_status=reservation.guest_status.value if reservation.guest_status else GuestStatus.PENDING.value,
        class_name=class_label(studio_class),
        class_date_time=studio_class.date_time,
        instructor_name=studio_class.instructor.name,
        reservation_status=reservation.status.value,
        is_past=studio_class.date_time <= now,
    )


async def respond_to_invitation(
    db: AsyncSession,
    *,
    token: str,
    accept: bool,
    now: Optional[datetime] = None,
    commit: bool = True
) -> Reservation:
    """Record the guest's answer. Capacity and balance were settled at booking time."""
    now = now or utcnow()

    reservation = await _get_by_token(db, token)
    if reservation is None:
        raise InvitationNotFound()
    if reservation.status == ReservationStatus.CANCELLED:
        raise ReservationCancelled()
    if reservation.studio_class.date_time <= now:
        raise InvitationExpired()
    if reservation.guest_status != GuestStatus.PENDING:
        raise AlreadyResponded()

    new_status = GuestStatus.ACCEPTED if accept else GuestStatus.DECLINED
    result = await db.execute(
        update(Reservation)
        .where(
            and_(
                Reservation.id == reservation.id,
                Reservation.guest_status == GuestStatus.PENDING,
            )
        )
        .values(guest_status=new_status)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise AlreadyResponded()

    if commit:
        await db.commit()
    else:
        await db.flush()
    await db.refresh(reservation)

    logger.info("Invitation %s reservation_id=%s", new_status.value.lower(), reservation.id)
    return reservation
