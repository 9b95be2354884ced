"""Refund quotes, requests and admin adjudication."""

from datetime import timedelta
from decimal import Decimal

import pytest

from wellnest.core.errors import (
    AlreadyFinalized, AlreadyRefunded, NotOwner, RefundAlreadyRequested, ValidationError,
)
from wellnest.core.state_machine import PurchaseStatus, RefundStatus
from wellnest.crud import purchasesCrud, refundsCrud
from wellnest.db.types import utcnow
from wellnest.services.notifications import notifier

from factories import make_admin, make_package, make_purchase, make_user


class TestComputeRefund:

    async def test_unused_purchase_refunds_full_price(self, db):
        user = await make_user(db)
        purchase = await make_purchase(db, user, await make_package(db, class_count=4, price="100.00"))

        quote = refundsCrud.compute_refund(purchase, 4, utcnow())

        assert quote["eligible"] is True
        assert quote["amount"] == Decimal("100.00")
        assert quote["snapshot"]["classesUsed"] == 0

    async def test_partly_used_purchase_is_prorated(self, db):
        user = await make_user(db)
        purchase = await make_purchase(db, user, await make_package(db, class_count=4, price="100.00"))
        purchase = await purchasesCrud.consume_class(db, purchase_id=purchase.id)

        quote = refundsCrud.compute_refund(purchase, 4, utcnow())

        assert quote["amount"] == Decimal("75.00")
        assert quote["snapshot"]["classesUsed"] == 1
        assert quote["snapshot"]["calculatedRefund"] == "75.00"

    async def test_outside_window_is_quoted_at_zero(self, db):
        user = await make_user(db)
        package = await make_package(db, class_count=4, price="100.00")
        purchase = await make_purchase(db, user, package, now=utcnow() - timedelta(hours=10))

        quote = refundsCrud.compute_refund(purchase, 4, utcnow())

        assert quote["eligible"] is False
        assert quote["amount"] == Decimal("0.00")

    async def test_unlimited_package_refunds_in_full(self, db):
        user = await make_user(db)
        purchase = await make_purchase(db, user, await make_package(db, class_count=999, price="200.00"))
        purchase = await purchasesCrud.consume_class(db, purchase_id=purchase.id)

        quote = refundsCrud.compute_refund(purchase, 4, utcnow())

        assert quote["amount"] == Decimal("200.00")


class TestRequestRefund:

    async def test_request_is_pending_and_leaves_purchase_alone(self, db):
        user = await make_user(db)
        purchase = await make_purchase(db, user, await make_package(db, price="60.00"))

        refund = await refundsCrud.request_refund(db, user_id=user.id, purchase_id=purchase.id)

        assert refund.status == RefundStatus.PENDING
        assert refund.amount == Decimal("60.00")
        assert refund.reason == "within_policy"
        assert (await purchasesCrud.get_purchase(db, purchase.id)).status == PurchaseStatus.ACTIVE

    async def test_second_open_request_is_rejected(self, db):
        user = await make_user(db)
        purchase = await make_purchase(db, user, await make_package(db))
        await refundsCrud.request_refund(db, user_id=user.id, purchase_id=purchase.id)

        with pytest.raises(RefundAlreadyRequested):
            await refundsCrud.request_refund(db, user_id=user.id, purchase_id=purchase.id)

    async def test_only_owner_can_request(self, db):
        user = await make_user(db)
        other = await make_user(db)
        purchase = await make_purchase(db, user, await make_package(db))

        with pytest.raises(NotOwner):
            await refundsCrud.request_refund(db, user_id=other.id, purchase_id=purchase.id)


async def _pending_refund(db, price="80.00"):
    user = await make_user(db)
    purchase = await make_purchase(db, user, await make_package(db, price=price))
    refund = await refundsCrud.request_refund(db, user_id=user.id, purchase_id=purchase.id, reason="moving away")
    return user, purchase, refund


class TestAdjudicate:

    async def test_approve_refunds_purchase(self, db):
        admin = await make_admin(db)
        user, purchase, refund = await _pending_refund(db)

        approved = await refundsCrud.adjudicate(db, refund_id=refund.id, action="approve", admin_id=admin.id)

        assert approved.status == RefundStatus.REFUNDED
        assert approved.refunded_at is not None
        assert approved.provider_ref.startswith("manual_")
        assert (await purchasesCrud.get_purchase(db, purchase.id)).status == PurchaseStatus.REFUNDED
        assert notifier.sent[-1]["kind"] == "refund_updated"
        assert notifier.sent[-1]["to"] == user.email

    async def test_approve_with_custom_amount(self, db):
        admin = await make_admin(db)
        _, _, refund = await _pending_refund(db)

        approved = await refundsCrud.adjudicate(
            db, refund_id=refund.id, action="APPROVE", admin_id=admin.id, custom_amount=Decimal("30")
        )

        assert approved.amount == Decimal("30.00")

    async def test_custom_amount_above_price_is_rejected(self, db):
        admin = await make_admin(db)
        _, _, refund = await _pending_refund(db)

        with pytest.raises(ValidationError):
            await refundsCrud.adjudicate(
                db, refund_id=refund.id, action="approve", admin_id=admin.id, custom_amount=Decimal("500")
            )

    async def test_reject_keeps_purchase_and_sets_default_note(self, db):
        admin = await make_admin(db)
        _, purchase, refund = await _pending_refund(db)

        rejected = await refundsCrud.adjudicate(db, refund_id=refund.id, action="reject", admin_id=admin.id)

        assert rejected.status == RefundStatus.REJECTED
        assert rejected.notes == "Request rejected"
        assert (await purchasesCrud.get_purchase(db, purchase.id)).status == PurchaseStatus.ACTIVE

    async def test_processing_then_approve(self, db):
        admin = await make_admin(db)
        _, _, refund = await _pending_refund(db)

        in_progress = await refundsCrud.adjudicate(db, refund_id=refund.id, action="processing", admin_id=admin.id)
        assert in_progress.status == RefundStatus.PROCESSING
        assert notifier.sent == []

        approved = await refundsCrud.adjudicate(db, refund_id=refund.id, action="approve", admin_id=admin.id)
        assert approved.status == RefundStatus.REFUNDED

    async def test_finalized_request_cannot_change(self, db):
        admin = await make_admin(db)
        _, _, refund = await _pending_refund(db)
        await refundsCrud.adjudicate(db, refund_id=refund.id, action="reject", admin_id=admin.id)

        with pytest.raises(AlreadyFinalized):
            await refundsCrud.adjudicate(db, refund_id=refund.id, action="approve", admin_id=admin.id)

    async def test_unknown_action(self, db):
        admin = await make_admin(db)
        _, _, refund = await _pending_refund(db)

        with pytest.raises(ValidationError):
            await refundsCrud.adjudicate(db, refund_id=refund.id, action="maybe", admin_id=admin.id)

    async def test_refunded_purchase_cannot_be_requested_again(self, db):
        admin = await make_admin(db)
        user, purchase, refund = await _pending_refund(db)
        await refundsCrud.adjudicate(db, refund_id=refund.id, action="approve", admin_id=admin.id)

        with pytest.raises(AlreadyRefunded):
            await refundsCrud.request_refund(db, user_id=user.id, purchase_id=purchase.id)


class TestListRefunds:

    async def test_counts_cover_every_status(self, db):
        admin = await make_admin(db)
        _, _, first = await _pending_refund(db)
        await _pending_refund(db)
        await refundsCrud.adjudicate(db, refund_id=first.id, action="reject", admin_id=admin.id)

        listing = await refundsCrud.list_refunds(db)
        pending_only = await refundsCrud.list_refunds(db, status=RefundStatus.PENDING)

        assert listing["status_counts"] == {"PENDING": 1, "PROCESSING": 0, "REFUNDED": 0, "REJECTED": 1}
        assert len(listing["refunds"]) == 2
        assert [r.status for r in pending_only["refunds"]] == ["PENDING"]
