"""QR check-in, manual attendance toggles and the class roster."""

from datetime import timedelta

import pytest

from wellnest.core.errors import AlreadyCheckedIn, ClassEnded, NoReservation, UserNotFound
from wellnest.core.state_machine import ReservationStatus
from wellnest.crud import attendanceCrud, reservationsCrud
from wellnest.crud.reservationsCrud import GuestInfo
from wellnest.models import Reservation

from factories import make_admin, make_class, make_package, make_purchase, make_user


async def _booked(db, name="Ana", **class_kwargs):
    user = await make_user(db, name=name)
    await make_purchase(db, user, await make_package(db, is_shareable=True, max_shares=1))
    studio_class = await make_class(db, **class_kwargs)
    reservation, _ = await reservationsCrud.create_reservation(db, user_id=user.id, class_id=studio_class.id)
    return user, studio_class, reservation


class TestScanCheckIn:

    async def test_scan_marks_attendance(self, db):
        admin = await make_admin(db)
        user, studio_class, reservation = await _booked(db)

        checked, member = await attendanceCrud.check_in(
            db, qr_token=user.qr_code, class_id=studio_class.id, admin_id=admin.id
        )

        assert checked.id == reservation.id
        assert checked.checked_in is True
        assert checked.checked_in_at is not None
        assert checked.checked_in_by == admin.id
        assert member.id == user.id

    async def test_second_scan_is_rejected(self, db):
        admin = await make_admin(db)
        user, studio_class, _ = await _booked(db)
        await attendanceCrud.check_in(db, qr_token=user.qr_code, class_id=studio_class.id, admin_id=admin.id)

        with pytest.raises(AlreadyCheckedIn):
            await attendanceCrud.check_in(db, qr_token=user.qr_code, class_id=studio_class.id, admin_id=admin.id)

    async def test_unknown_qr_code(self, db):
        admin = await make_admin(db)
        studio_class = await make_class(db)

        with pytest.raises(UserNotFound):
            await attendanceCrud.check_in(db, qr_token="not-a-member", class_id=studio_class.id, admin_id=admin.id)

    async def test_member_without_reservation(self, db):
        admin = await make_admin(db)
        user = await make_user(db)
        studio_class = await make_class(db)

        with pytest.raises(NoReservation):
            await attendanceCrud.check_in(db, qr_token=user.qr_code, class_id=studio_class.id, admin_id=admin.id)

    async def test_cancelled_reservation_does_not_count(self, db):
        admin = await make_admin(db)
        user, studio_class, reservation = await _booked(db)
        await reservationsCrud.cancel_reservation(db, reservation_id=reservation.id, acting_user_id=user.id)

        with pytest.raises(NoReservation):
            await attendanceCrud.check_in(db, qr_token=user.qr_code, class_id=studio_class.id, admin_id=admin.id)

    async def test_ended_class_is_rejected(self, db):
        admin = await make_admin(db)
        user = await make_user(db)
        purchase = await make_purchase(db, user, await make_package(db))
        studio_class = await make_class(db, starts_in=timedelta(hours=-3), duration=60)
        db.add(Reservation(
            class_id=studio_class.id,
            user_id=user.id,
            purchase_id=purchase.id,
            status=ReservationStatus.CONFIRMED,
            classes_used=1,
        ))
        await db.commit()

        with pytest.raises(ClassEnded):
            await attendanceCrud.check_in(db, qr_token=user.qr_code, class_id=studio_class.id, admin_id=admin.id)


class TestManualCheckIn:

    async def test_toggle_on_and_off(self, db):
        admin = await make_admin(db)
        _, _, reservation = await _booked(db)

        on = await attendanceCrud.manual_check_in(db, reservation_id=reservation.id, admin_id=admin.id)
        assert on.checked_in is True
        assert on.checked_in_by == admin.id

        off = await attendanceCrud.manual_check_in(db, reservation_id=reservation.id, admin_id=admin.id)
        assert off.checked_in is False
        assert off.checked_in_at is None
        assert off.checked_in_by is None


class TestRoster:

    async def test_roster_lists_confirmed_reservations_with_guests(self, db):
        admin = await make_admin(db)
        user, studio_class, _ = await _booked(db, name="Bea")
        host = await make_user(db, name="Carla")
        await make_purchase(db, host, await make_package(db, is_shareable=True, max_shares=1))
        await reservationsCrud.create_reservation(
            db, user_id=host.id, class_id=studio_class.id, guest=GuestInfo(email="friend@example.com", name="Friend")
        )
        await attendanceCrud.check_in(db, qr_token=user.qr_code, class_id=studio_class.id, admin_id=admin.id)

        roster = await attendanceCrud.class_roster(db, studio_class.id)

        assert [entry.user_name for entry in roster] == ["Bea", "Carla"]
        assert roster[0].checked_in is True
        assert roster[1].guest_name == "Friend"
        assert roster[1].classes_used == 2
        assert roster[1].guest_status == "PENDING"
