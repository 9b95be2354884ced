"""Cart, checkout and payment confirmation."""

from decimal import Decimal

import pytest

from wellnest.core.errors import EmptyCart, OrderNotPending, PackageUnavailable, ValidationError
from wellnest.core.state_machine import (
    ORDER_TRANSITIONS, PAYMENT_OUTCOMES, OrderStatus, PaymentProvider, PurchaseStatus, TransactionStatus,
    can_transition, is_terminal,
)
from wellnest.crud import cartCrud, ordersCrud
from wellnest.crud.ordersCrud import TransactionResult
from wellnest.crud.purchasesCrud import list_user_purchases

from factories import make_discount, make_package, make_user


async def _fill_cart(db, user, package, quantity=1):
    return await cartCrud.add_to_cart(
        db, session_id=cartCrud.user_session_key(user.id), package_id=package.id, quantity=quantity
    )


def _approved(reference="pw-1"):
    return TransactionResult(
        provider=PaymentProvider.PAYWAY,
        status=TransactionStatus.APPROVED,
        provider_transaction_id=reference,
        card_last_digits="4111111111111111",
    )


class TestCart:

    async def test_adding_twice_sums_quantities(self, db):
        user = await make_user(db)
        package = await make_package(db, price="40.00")

        await _fill_cart(db, user, package, quantity=2)
        cart = await _fill_cart(db, user, package, quantity=1)

        assert len(cart.items) == 1
        assert cart.items[0].quantity == 3
        assert cart.subtotal == Decimal("120.00")

    async def test_quantity_above_limit_is_rejected(self, db):
        user = await make_user(db)
        package = await make_package(db)

        with pytest.raises(ValidationError):
            await _fill_cart(db, user, package, quantity=cartCrud.MAX_QUANTITY + 1)

    async def test_inactive_package_cannot_be_added(self, db):
        user = await make_user(db)
        package = await make_package(db, is_active=False)

        with pytest.raises(PackageUnavailable):
            await _fill_cart(db, user, package)

    async def test_update_to_zero_removes_line(self, db):
        user = await make_user(db)
        package = await make_package(db)
        await _fill_cart(db, user, package, quantity=2)

        cart = await cartCrud.update_cart_item(
            db, session_id=cartCrud.user_session_key(user.id), package_id=package.id, quantity=0
        )

        assert cart.items == []

    async def test_merge_caps_quantity(self, db):
        user = await make_user(db)
        package = await make_package(db)
        await _fill_cart(db, user, package, quantity=5)
        await cartCrud.add_to_cart(db, session_id="anon-abc", package_id=package.id, quantity=8)

        cart = await cartCrud.merge_carts(db, anonymous_session_id="anon-abc", user_id=user.id)

        assert cart.items[0].quantity == cartCrud.MAX_QUANTITY
        assert (await cartCrud.get_cart(db, "anon-abc")).items == []


class TestCreateOrder:

    async def test_empty_cart_is_rejected(self, db):
        user = await make_user(db)

        with pytest.raises(EmptyCart):
            await ordersCrud.create_order_from_cart(db, user_id=user.id)

    async def test_order_totals_with_discount(self, db):
        user = await make_user(db)
        package = await make_package(db, price="50.00")
        await make_discount(db, code="SPRING20", percentage=20)
        await _fill_cart(db, user, package, quantity=2)

        order = await ordersCrud.create_order_from_cart(db, user_id=user.id, discount_code="spring20")

        assert order.status == OrderStatus.PENDING
        assert order.subtotal == Decimal("100.00")
        assert order.discount == Decimal("20.00")
        assert order.total == Decimal("80.00")
        assert order.discount_code == "SPRING20"
        assert (await cartCrud.get_cart(db, cartCrud.user_session_key(user.id))).items == []

    async def test_place_order_redirects_to_checkout(self, db):
        user = await make_user(db)
        package = await make_package(db)
        await _fill_cart(db, user, package)

        order, redirect = await ordersCrud.place_order(db, user_id=user.id)

        assert redirect == f"/checkout/payway/{order.id}"
        assert order.status == OrderStatus.PENDING

    async def test_unknown_payment_method_is_rejected(self, db):
        user = await make_user(db)

        with pytest.raises(ValidationError):
            await ordersCrud.place_order(db, user_id=user.id, payment_method="cash")

    async def test_free_order_is_fulfilled_immediately(self, db):
        """A 100% code mints the purchase without a payment provider."""
        user = await make_user(db)
        package = await make_package(db, price="90.00")
        await make_discount(db, code="FULLFREE", percentage=100)
        await _fill_cart(db, user, package)

        order, redirect = await ordersCrud.place_order(db, user_id=user.id, discount_code="FULLFREE")

        assert order.status == OrderStatus.PAID
        assert redirect == f"/payment/success?oid={order.id}"
        purchases = await list_user_purchases(db, user.id)
        assert len(purchases) == 1
        assert purchases[0].final_price == Decimal("0.00")
        assert purchases[0].original_price == Decimal("90.00")
        assert purchases[0].order_id == order.id


class TestConfirmPayment:

    async def test_approved_payment_mints_one_purchase_per_unit(self, db):
        user = await make_user(db)
        package = await make_package(db, class_count=4, price="30.00")
        await _fill_cart(db, user, package, quantity=2)
        order = await ordersCrud.create_order_from_cart(db, user_id=user.id)

        paid = await ordersCrud.confirm_payment(db, order_id=order.id, result=_approved())

        assert paid.status == OrderStatus.PAID
        assert paid.paid_at is not None
        assert paid.transactions[0].card_last_digits == "1111"
        purchases = await list_user_purchases(db, user.id)
        assert len(purchases) == 2
        assert all(p.status == PurchaseStatus.ACTIVE.value for p in purchases)
        assert all(p.classes_remaining == 4 for p in purchases)

    async def test_confirming_twice_mints_once(self, db):
        user = await make_user(db)
        package = await make_package(db)
        await _fill_cart(db, user, package)
        order = await ordersCrud.create_order_from_cart(db, user_id=user.id)

        await ordersCrud.confirm_payment(db, order_id=order.id, result=_approved("pw-7"))
        again = await ordersCrud.confirm_payment(db, order_id=order.id, result=_approved("pw-7"))

        assert again.status == OrderStatus.PAID
        assert len(again.transactions) == 1
        assert len(await list_user_purchases(db, user.id)) == 1

    async def test_discounted_order_mints_at_discounted_price(self, db):
        user = await make_user(db)
        package = await make_package(db, price="50.00")
        discount = await make_discount(db, code="TEN", percentage=10)
        await _fill_cart(db, user, package)
        order = await ordersCrud.create_order_from_cart(db, user_id=user.id, discount_code="TEN")

        await ordersCrud.confirm_payment(db, order_id=order.id, result=_approved())

        purchase = (await list_user_purchases(db, user.id))[0]
        assert purchase.final_price == Decimal("45.00")
        assert purchase.original_price == Decimal("50.00")
        await db.refresh(discount)
        assert discount.current_uses == 1

    async def test_denied_payment_fails_the_order(self, db):
        user = await make_user(db)
        package = await make_package(db)
        await _fill_cart(db, user, package)
        order = await ordersCrud.create_order_from_cart(db, user_id=user.id)

        failed = await ordersCrud.confirm_payment(
            db,
            order_id=order.id,
            result=TransactionResult(
                provider=PaymentProvider.PAYWAY,
                status=TransactionStatus.DENIED,
                provider_transaction_id="pw-denied",
            ),
        )

        assert failed.status == OrderStatus.FAILED
        assert await list_user_purchases(db, user.id) == []

    async def test_approval_after_failure_is_rejected(self, db):
        user = await make_user(db)
        package = await make_package(db)
        await _fill_cart(db, user, package)
        order = await ordersCrud.create_order_from_cart(db, user_id=user.id)
        order_id = order.id
        await ordersCrud.confirm_payment(
            db,
            order_id=order_id,
            result=TransactionResult(provider="PAYWAY", status="DENIED", provider_transaction_id="pw-a"),
        )

        with pytest.raises(OrderNotPending):
            await ordersCrud.confirm_payment(db, order_id=order_id, result=_approved("pw-b"))

    async def test_denied_result_on_cancelled_order_is_only_recorded(self, db):
        user = await make_user(db)
        package = await make_package(db)
        await _fill_cart(db, user, package)
        order = await ordersCrud.create_order_from_cart(db, user_id=user.id)
        await ordersCrud.cancel_order(db, order_id=order.id, user_id=user.id)

        after = await ordersCrud.confirm_payment(
            db,
            order_id=order.id,
            result=TransactionResult(provider="PAYWAY", status="DENIED", provider_transaction_id="pw-late"),
        )

        assert after.status == OrderStatus.CANCELLED
        assert [t.provider_transaction_id for t in after.transactions] == ["pw-late"]

    async def test_pending_result_leaves_order_pending(self, db):
        user = await make_user(db)
        package = await make_package(db)
        await _fill_cart(db, user, package)
        order = await ordersCrud.create_order_from_cart(db, user_id=user.id)

        after = await ordersCrud.confirm_payment(
            db,
            order_id=order.id,
            result=TransactionResult(provider="PAYWAY", status="PENDING", provider_transaction_id="pw-wait"),
        )

        assert after.status == OrderStatus.PENDING
        assert after.paid_at is None
        assert await list_user_purchases(db, user.id) == []


class TestCancelOrder:

    async def test_member_cancels_pending_order(self, db):
        user = await make_user(db)
        package = await make_package(db)
        await _fill_cart(db, user, package)
        order = await ordersCrud.create_order_from_cart(db, user_id=user.id)

        cancelled = await ordersCrud.cancel_order(db, order_id=order.id, user_id=user.id)

        assert cancelled.status == OrderStatus.CANCELLED

    async def test_paid_order_cannot_be_cancelled(self, db):
        user = await make_user(db)
        package = await make_package(db)
        await _fill_cart(db, user, package)
        order = await ordersCrud.create_order_from_cart(db, user_id=user.id)
        await ordersCrud.confirm_payment(db, order_id=order.id, result=_approved())

        with pytest.raises(OrderNotPending):
            await ordersCrud.cancel_order(db, order_id=order.id, user_id=user.id)

    async def test_cancelling_twice_is_rejected(self, db):
        user = await make_user(db)
        package = await make_package(db)
        await _fill_cart(db, user, package)
        order = await ordersCrud.create_order_from_cart(db, user_id=user.id)
        await ordersCrud.cancel_order(db, order_id=order.id, user_id=user.id)

        with pytest.raises(OrderNotPending):
            await ordersCrud.cancel_order(db, order_id=order.id, user_id=user.id)


class TestOrderTransitions:

    def test_only_pending_orders_move(self):
        for status in (OrderStatus.PAID, OrderStatus.FAILED, OrderStatus.CANCELLED):
            assert is_terminal(ORDER_TRANSITIONS, status)
        assert can_transition(ORDER_TRANSITIONS, OrderStatus.PENDING, OrderStatus.PAID)
        assert not can_transition(ORDER_TRANSITIONS, OrderStatus.FAILED, OrderStatus.PAID)

    def test_payment_results_map_to_order_statuses(self):
        assert PAYMENT_OUTCOMES[TransactionStatus.APPROVED] == OrderStatus.PAID
        assert PAYMENT_OUTCOMES[TransactionStatus.DENIED] == OrderStatus.FAILED
        assert TransactionStatus.PENDING not in PAYMENT_OUTCOMES
