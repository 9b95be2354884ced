"""Waitlist ordering and promotion when a seat frees up."""

import pytest

from wellnest.core.errors import AlreadyReserved, AlreadyWaitlisted, NotOwner
from wellnest.core.state_machine import ReservationStatus
from wellnest.crud import reservationsCrud, waitlistCrud
from wellnest.crud.classCrud import get_class

from factories import make_class, make_package, make_purchase, make_user


async def _positions(db, class_id):
    return [(e.user_id, e.position) for e in await waitlistCrud.list_class_waitlist(db, class_id)]


class TestJoinAndLeave:

    async def test_positions_follow_join_order(self, db):
        studio_class = await make_class(db, max_capacity=1)
        users = [await make_user(db) for _ in range(3)]

        for user in users:
            await waitlistCrud.join_waitlist(db, user_id=user.id, class_id=studio_class.id)

        assert await _positions(db, studio_class.id) == [(u.id, i) for i, u in enumerate(users, start=1)]

    async def test_leaving_closes_the_gap(self, db):
        studio_class = await make_class(db, max_capacity=1)
        first, second, third = [await make_user(db) for _ in range(3)]
        await waitlistCrud.join_waitlist(db, user_id=first.id, class_id=studio_class.id)
        middle = await waitlistCrud.join_waitlist(db, user_id=second.id, class_id=studio_class.id)
        await waitlistCrud.join_waitlist(db, user_id=third.id, class_id=studio_class.id)

        await waitlistCrud.leave_waitlist(db, entry_id=middle.id, user_id=second.id)

        assert await _positions(db, studio_class.id) == [(first.id, 1), (third.id, 2)]

    async def test_joining_twice_is_rejected(self, db):
        user = await make_user(db)
        studio_class = await make_class(db)
        class_id, user_id = studio_class.id, user.id
        await waitlistCrud.join_waitlist(db, user_id=user_id, class_id=class_id)

        with pytest.raises(AlreadyWaitlisted):
            await waitlistCrud.join_waitlist(db, user_id=user_id, class_id=class_id)

    async def test_booked_member_cannot_join(self, db):
        user = await make_user(db)
        await make_purchase(db, user, await make_package(db))
        studio_class = await make_class(db)
        await reservationsCrud.create_reservation(db, user_id=user.id, class_id=studio_class.id)

        with pytest.raises(AlreadyReserved):
            await waitlistCrud.join_waitlist(db, user_id=user.id, class_id=studio_class.id)

    async def test_only_owner_can_leave(self, db):
        user = await make_user(db)
        other = await make_user(db)
        studio_class = await make_class(db)
        entry = await waitlistCrud.join_waitlist(db, user_id=user.id, class_id=studio_class.id)

        with pytest.raises(NotOwner):
            await waitlistCrud.leave_waitlist(db, entry_id=entry.id, user_id=other.id)


class TestPromotion:

    async def test_member_without_credits_is_skipped(self, db):
        booked = await make_user(db)
        broke = await make_user(db)
        ready = await make_user(db)
        await make_purchase(db, booked, await make_package(db))
        await make_purchase(db, ready, await make_package(db))
        studio_class = await make_class(db, max_capacity=1)
        class_id, broke_id, ready_id = studio_class.id, broke.id, ready.id

        reservation, _ = await reservationsCrud.create_reservation(db, user_id=booked.id, class_id=class_id)
        await waitlistCrud.join_waitlist(db, user_id=broke_id, class_id=class_id)
        await waitlistCrud.join_waitlist(db, user_id=ready_id, class_id=class_id)

        await reservationsCrud.cancel_reservation(db, reservation_id=reservation.id, acting_user_id=booked.id)

        promoted = await reservationsCrud.list_user_reservations(db, ready_id)
        assert [r.status for r in promoted] == [ReservationStatus.CONFIRMED.value]
        assert await reservationsCrud.list_user_reservations(db, broke_id) == []
        assert await _positions(db, class_id) == [(broke_id, 1)]

    async def test_nobody_eligible_leaves_seat_open(self, db):
        booked = await make_user(db)
        broke = await make_user(db)
        await make_purchase(db, booked, await make_package(db))
        studio_class = await make_class(db, max_capacity=1)
        class_id = studio_class.id

        reservation, _ = await reservationsCrud.create_reservation(db, user_id=booked.id, class_id=class_id)
        await waitlistCrud.join_waitlist(db, user_id=broke.id, class_id=class_id)

        await reservationsCrud.cancel_reservation(db, reservation_id=reservation.id, acting_user_id=booked.id)

        refreshed = await get_class(db, class_id)
        assert refreshed.current_count == 0
        assert len(await _positions(db, class_id)) == 1
