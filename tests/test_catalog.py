"""Catalog management: disciplines, packages and class edits."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from wellnest.core.errors import CapacityBelowBookings, DisciplineInUse, NotFoundError, SlugTaken, ValidationError
from wellnest.core.state_machine import ReservationStatus
from wellnest.crud import catalogCrud, classCrud, purchasesCrud, reservationsCrud
from wellnest.services.notifications import notifier

from factories import make_class, make_discipline, make_package, make_purchase, make_user


class TestDisciplines:

    async def test_slug_is_derived_from_name(self, db):
        discipline = await catalogCrud.create_discipline(db, name="Mat Pilates")

        assert discipline.slug == "mat-pilates"

    async def test_duplicate_slug_is_rejected(self, db):
        await catalogCrud.create_discipline(db, name="Barre")

        with pytest.raises(SlugTaken):
            await catalogCrud.create_discipline(db, name="barre")

    async def test_discipline_with_classes_cannot_be_deleted(self, db):
        studio_class = await make_class(db)

        with pytest.raises(DisciplineInUse):
            await catalogCrud.delete_discipline(db, studio_class.discipline_id)

    async def test_unused_discipline_is_deleted(self, db):
        discipline = await make_discipline(db, name="Aerial")
        discipline_id = discipline.id

        assert await catalogCrud.delete_discipline(db, discipline_id) is True
        assert [d.id for d in await catalogCrud.list_disciplines(db)] == []

    async def test_slug_is_frozen_while_in_use(self, db):
        studio_class = await make_class(db)

        with pytest.raises(DisciplineInUse):
            await catalogCrud.update_discipline(db, studio_class.discipline_id, {"slug": "renamed"})


class TestInstructors:

    async def test_inactive_instructors_are_filtered(self, db):
        lucia = await catalogCrud.create_instructor(db, name=" Lucia ", disciplines=["yoga"])
        marco = await catalogCrud.create_instructor(db, name="Marco")

        await catalogCrud.update_instructor(db, marco.id, {"is_active": False, "disciplines": ["barre"]})

        active = await catalogCrud.list_instructors(db, active_only=True)
        assert [i.name for i in active] == ["Lucia"]
        assert lucia.disciplines == ["yoga"]
        assert [i.disciplines for i in await catalogCrud.list_instructors(db)] == [["yoga"], ["barre"]]

    async def test_name_is_required(self, db):
        with pytest.raises(ValidationError):
            await catalogCrud.create_instructor(db, name="  ")


class TestPackages:

    async def test_price_change_does_not_touch_existing_purchases(self, db):
        user = await make_user(db)
        package = await make_package(db, price="50.00")
        purchase = await make_purchase(db, user, package)

        await catalogCrud.update_package(db, package.id, {"price": Decimal("65.00")})

        stored = await purchasesCrud.get_purchase(db, purchase.id)
        assert stored.final_price == Decimal("50.00")
        assert stored.package.price == Decimal("65.00")

    async def test_invalid_class_count(self, db):
        with pytest.raises(ValidationError):
            await catalogCrud.create_package(
                db, name="Broken", class_count=0, price=Decimal("10"), validity_days=30
            )

    async def test_listing_hides_inactive_packages(self, db):
        visible = await make_package(db)
        await make_package(db, is_active=False)

        packages = await catalogCrud.list_packages(db)

        assert [p.id for p in packages] == [visible.id]


class TestClasses:

    async def test_capacity_cannot_drop_below_bookings(self, db):
        studio_class = await make_class(db, max_capacity=3)
        class_id = studio_class.id
        for _ in range(2):
            user = await make_user(db)
            await make_purchase(db, user, await make_package(db))
            await reservationsCrud.create_reservation(db, user_id=user.id, class_id=class_id)

        with pytest.raises(CapacityBelowBookings):
            await classCrud.update_class(db, class_id, {"max_capacity": 1})

        updated = await classCrud.update_class(db, class_id, {"max_capacity": 2})
        assert updated.max_capacity == 2

    @pytest.mark.parametrize("updates", [
        {"duration": 500},
        {"duration": 10},
        {"date_time": datetime(2031, 5, 1, 9, 0)},
    ])
    async def test_invalid_edit_writes_nothing(self, db, updates):
        studio_class = await make_class(db, max_capacity=4, duration=60)
        class_id = studio_class.id

        with pytest.raises(ValidationError):
            await classCrud.update_class(db, class_id, {"max_capacity": 8, **updates})

        unchanged = await classCrud.get_class(db, class_id)
        assert unchanged.max_capacity == 4
        assert unchanged.duration == 60

    async def test_unknown_instructor_is_rejected(self, db):
        studio_class = await make_class(db)
        class_id = studio_class.id

        with pytest.raises(NotFoundError):
            await classCrud.update_class(db, class_id, {"instructor_id": 9999})

    async def test_valid_edit_is_applied(self, db):
        studio_class = await make_class(db, duration=60)
        new_start = datetime(2031, 5, 1, 15, 0, tzinfo=timezone.utc)

        updated = await classCrud.update_class(db, studio_class.id, {"duration": 90, "date_time": new_start})

        assert updated.duration == 90
        assert updated.date_time == new_start

    async def test_cancel_class_refunds_credits(self, db):
        user = await make_user(db, email="member@example.com")
        purchase = await make_purchase(db, user, await make_package(db, class_count=5))
        studio_class = await make_class(db)
        class_id, purchase_id = studio_class.id, purchase.id
        await reservationsCrud.create_reservation(db, user_id=user.id, class_id=class_id)

        stats = await classCrud.cancel_class(db, class_id)

        assert stats["reservations_cancelled"] == 1
        assert (await purchasesCrud.get_purchase(db, purchase_id)).classes_remaining == 5
        cancelled = await classCrud.get_class(db, class_id)
        assert cancelled.is_cancelled is True
        assert cancelled.current_count == 0
        reservations = await reservationsCrud.list_user_reservations(db, user.id)
        assert reservations[0].status == ReservationStatus.CANCELLED.value
        assert notifier.sent[-1]["kind"] == "class_cancelled"
        assert notifier.sent[-1]["to"] == "member@example.com"
