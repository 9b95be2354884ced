"""Entitlement ledger: minting, consuming, restoring and expiring credits."""

from datetime import timedelta

import pytest

from wellnest.core.errors import Expired, InsufficientBalance, NotActive
from wellnest.core.state_machine import PurchaseStatus
from wellnest.crud import purchasesCrud
from wellnest.db.types import utcnow

from factories import make_admin, make_package, make_purchase, make_user


class TestMintPurchase:

    async def test_mint_sets_full_balance_and_expiry(self, db):
        user = await make_user(db)
        package = await make_package(db, class_count=8, validity_days=30)
        now = utcnow()

        purchase = await make_purchase(db, user, package, now=now)

        assert purchase.status == PurchaseStatus.ACTIVE
        assert purchase.classes_remaining == 8
        assert abs((purchase.expires_at - (now + timedelta(days=30))).total_seconds()) < 1

    async def test_assign_package_is_free(self, db):
        admin = await make_admin(db)
        user = await make_user(db)
        package = await make_package(db, price="80.00")

        purchase = await purchasesCrud.assign_package(db, admin_id=admin.id, user_id=user.id, package_id=package.id)

        assert str(purchase.final_price) == "0.00"
        assert str(purchase.original_price) == "80.00"
        assert purchase.payment_reference == f"admin_{admin.id}"


class TestConsumeAndRestore:

    async def test_consume_to_zero_depletes(self, db):
        user = await make_user(db)
        package = await make_package(db, class_count=2)
        purchase = await make_purchase(db, user, package)

        purchase = await purchasesCrud.consume_class(db, purchase_id=purchase.id, count=2)

        assert purchase.classes_remaining == 0
        assert purchase.status == PurchaseStatus.DEPLETED

    async def test_consume_more_than_balance_fails(self, db):
        user = await make_user(db)
        package = await make_package(db, class_count=1)
        purchase = await make_purchase(db, user, package)

        with pytest.raises(InsufficientBalance):
            await purchasesCrud.consume_class(db, purchase_id=purchase.id, count=2)

    async def test_restore_reactivates_depleted_purchase(self, db):
        user = await make_user(db)
        package = await make_package(db, class_count=1)
        purchase = await make_purchase(db, user, package)
        await purchasesCrud.consume_class(db, purchase_id=purchase.id)

        purchase = await purchasesCrud.restore_class(db, purchase_id=purchase.id)

        assert purchase.classes_remaining == 1
        assert purchase.status == PurchaseStatus.ACTIVE

    async def test_restore_is_capped_at_package_size(self, db):
        user = await make_user(db)
        package = await make_package(db, class_count=3)
        purchase = await make_purchase(db, user, package)

        purchase = await purchasesCrud.restore_class(db, purchase_id=purchase.id, count=2)

        assert purchase.classes_remaining == 3

    async def test_unlimited_package_is_never_decremented(self, db):
        user = await make_user(db)
        package = await make_package(db, class_count=999)
        purchase = await make_purchase(db, user, package)

        purchase = await purchasesCrud.consume_class(db, purchase_id=purchase.id, count=2)

        assert purchase.classes_remaining == 999
        assert purchase.status == PurchaseStatus.ACTIVE

    async def test_expired_purchase_cannot_be_consumed(self, db):
        user = await make_user(db)
        package = await make_package(db, validity_days=1)
        purchase = await make_purchase(db, user, package, now=utcnow() - timedelta(days=2))

        with pytest.raises(Expired):
            await purchasesCrud.consume_class(db, purchase_id=purchase.id)

    async def test_purchase_is_usable_up_to_its_expiry_instant(self, db):
        user = await make_user(db)
        package = await make_package(db, class_count=2, validity_days=1)
        purchase = await make_purchase(db, user, package, now=utcnow() - timedelta(days=1))
        purchase_id, expires_at = purchase.id, purchase.expires_at

        assert await purchasesCrud.expire_overdue_purchases(db, now=expires_at) == 0
        consumed = await purchasesCrud.consume_class(db, purchase_id=purchase_id, now=expires_at)
        assert consumed.classes_remaining == 1

        with pytest.raises(Expired):
            await purchasesCrud.consume_class(
                db, purchase_id=purchase_id, now=expires_at + timedelta(microseconds=1)
            )

    async def test_expire_overdue_marks_purchases_expired(self, db):
        user = await make_user(db)
        package = await make_package(db, validity_days=1)
        old = await make_purchase(db, user, package, now=utcnow() - timedelta(days=2))
        fresh = await make_purchase(db, user, package)
        old_id, fresh_id = old.id, fresh.id

        expired = await purchasesCrud.expire_overdue_purchases(db)

        assert expired == 1
        assert (await purchasesCrud.get_purchase(db, old_id)).status == PurchaseStatus.EXPIRED
        assert (await purchasesCrud.get_purchase(db, fresh_id)).status == PurchaseStatus.ACTIVE

        with pytest.raises(NotActive):
            await purchasesCrud.consume_class(db, purchase_id=old_id)


class TestSelectBestPurchase:

    async def test_picks_earliest_expiring_usable_purchase(self, db):
        user = await make_user(db)
        short = await make_package(db, class_count=5, validity_days=10)
        long = await make_package(db, class_count=5, validity_days=60)
        later = await make_purchase(db, user, long)
        sooner = await make_purchase(db, user, short)

        snapshot = await purchasesCrud.list_active_purchases(db, user.id)
        best = purchasesCrud.select_best_purchase(snapshot, 1, utcnow())

        assert best.id == sooner.id
        assert later.id != best.id

    async def test_guest_booking_requires_shareable_package(self, db):
        user = await make_user(db)
        plain = await make_package(db, class_count=5, validity_days=10)
        shareable = await make_package(db, class_count=5, validity_days=60, is_shareable=True, max_shares=1)
        await make_purchase(db, user, plain)
        shared = await make_purchase(db, user, shareable)

        snapshot = await purchasesCrud.list_active_purchases(db, user.id)
        best = purchasesCrud.select_best_purchase(snapshot, 2, utcnow(), require_shareable=True)

        assert best.id == shared.id
