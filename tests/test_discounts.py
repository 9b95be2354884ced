"""Discount validation rules and redemption bookkeeping."""

from datetime import timedelta

import pytest

from wellnest.core.errors import (
    ConflictError, DiscountAlreadyUsed, DiscountExhausted, DiscountExpired, DiscountNotApplicable,
    DiscountNotFound, ValidationError,
)
from wellnest.core.state_machine import PaymentProvider, TransactionStatus
from wellnest.crud import cartCrud, discountsCrud, ordersCrud
from wellnest.db.types import utcnow

from factories import make_discount, make_package, make_user


async def _validate(db, user, code, package_ids):
    return await discountsCrud.validate_discount(db, code=code, package_ids=package_ids, user_id=user.id)


async def _pay_with_code(db, user, package, code):
    await cartCrud.add_to_cart(db, session_id=cartCrud.user_session_key(user.id), package_id=package.id)
    order = await ordersCrud.create_order_from_cart(db, user_id=user.id, discount_code=code)
    return await ordersCrud.confirm_payment(
        db,
        order_id=order.id,
        result=ordersCrud.TransactionResult(
            provider=PaymentProvider.PAYWAY,
            status=TransactionStatus.APPROVED,
            provider_transaction_id=f"pw-{order.id}",
        ),
    )


class TestValidateDiscount:

    async def test_valid_code_is_case_insensitive(self, db):
        user = await make_user(db)
        package = await make_package(db)
        await make_discount(db, code="WELCOME10", percentage=10)

        quote = await _validate(db, user, "  welcome10 ", [package.id])

        assert quote.code == "WELCOME10"
        assert quote.percentage == 10

    async def test_unknown_code(self, db):
        user = await make_user(db)

        with pytest.raises(DiscountNotFound):
            await _validate(db, user, "NOPE", [])

    async def test_inactive_code_looks_unknown(self, db):
        user = await make_user(db)
        await make_discount(db, code="OFF", is_active=False)

        with pytest.raises(DiscountNotFound):
            await _validate(db, user, "OFF", [])

    async def test_expired_code(self, db):
        user = await make_user(db)
        now = utcnow()
        await make_discount(
            db, code="OLD", valid_from=now - timedelta(days=10), valid_until=now - timedelta(days=1)
        )

        with pytest.raises(DiscountExpired):
            await _validate(db, user, "OLD", [])

    async def test_not_yet_valid_code(self, db):
        user = await make_user(db)
        now = utcnow()
        await make_discount(
            db, code="SOON", valid_from=now + timedelta(days=1), valid_until=now + timedelta(days=10)
        )

        with pytest.raises(DiscountExpired):
            await _validate(db, user, "SOON", [])

    async def test_exhausted_code(self, db):
        user = await make_user(db)
        discount = await make_discount(db, code="LIMITED", max_uses=1)
        discount.current_uses = 1
        await db.commit()

        with pytest.raises(DiscountExhausted):
            await _validate(db, user, "LIMITED", [])

    async def test_code_restricted_to_other_packages(self, db):
        user = await make_user(db)
        allowed = await make_package(db)
        other = await make_package(db)
        await make_discount(db, code="YOGAONLY", applicable_to=[allowed.id])

        with pytest.raises(DiscountNotApplicable):
            await _validate(db, user, "YOGAONLY", [other.id])

        quote = await _validate(db, user, "YOGAONLY", [other.id, allowed.id])
        assert quote.code == "YOGAONLY"

    async def test_expiry_is_checked_before_usage(self, db):
        """First failing rule wins."""
        user = await make_user(db)
        now = utcnow()
        discount = await make_discount(
            db, code="BOTH", max_uses=1, valid_from=now - timedelta(days=10), valid_until=now - timedelta(days=1)
        )
        discount.current_uses = 1
        await db.commit()

        with pytest.raises(DiscountExpired):
            await _validate(db, user, "BOTH", [])


class TestRedemption:

    async def test_validation_alone_records_nothing(self, db):
        user = await make_user(db)
        package = await make_package(db)
        discount = await make_discount(db, code="PEEK")

        await _validate(db, user, "PEEK", [package.id])
        await _validate(db, user, "PEEK", [package.id])

        await db.refresh(discount)
        assert discount.current_uses == 0

    async def test_code_is_single_use_per_member_after_payment(self, db):
        user = await make_user(db)
        other = await make_user(db)
        package = await make_package(db)
        discount = await make_discount(db, code="ONCE")

        await _pay_with_code(db, user, package, "ONCE")

        with pytest.raises(DiscountAlreadyUsed):
            await _validate(db, user, "ONCE", [package.id])
        quote = await _validate(db, other, "ONCE", [package.id])
        assert quote.percentage == 10
        await db.refresh(discount)
        assert discount.current_uses == 1


class TestManageDiscountCodes:

    async def test_create_normalizes_code(self, db):
        now = utcnow()
        discount = await discountsCrud.create_discount_code(
            db, code=" summer ", percentage=15, valid_from=now, valid_until=now + timedelta(days=5)
        )

        assert discount.code == "SUMMER"
        assert discount.current_uses == 0

    async def test_duplicate_code_conflicts(self, db):
        now = utcnow()
        await make_discount(db, code="DUP")

        with pytest.raises(ConflictError):
            await discountsCrud.create_discount_code(
                db, code="dup", percentage=15, valid_from=now, valid_until=now + timedelta(days=5)
            )

    async def test_percentage_out_of_range(self, db):
        now = utcnow()

        with pytest.raises(ValidationError):
            await discountsCrud.create_discount_code(
                db, code="HUGE", percentage=150, valid_from=now, valid_until=now + timedelta(days=5)
            )
