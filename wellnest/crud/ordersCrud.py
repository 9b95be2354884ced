"""
Orders: cart checkout, payment confirmation and fulfilment.

confirm_payment is the only place member purchases are minted. Its
PENDING -> PAID flip is a conditional UPDATE, so when two callbacks for the
same order race only one of them mints.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import select, update, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.core.conversions import to_money
from wellnest.core.errors import (
    EmptyCart, PackageUnavailable, OrderNotFound, OrderNotPending, NotOwner, ValidationError,
)
from wellnest.core.logging_config import log_payment_event
from wellnest.core.state_machine import (
    ORDER_TRANSITIONS, PAYMENT_OUTCOMES, OrderStatus, TransactionStatus, PaymentProvider, can_transition, coerce_status,
)
from wellnest.crud.cartCrud import get_cart_items, clear_cart, user_session_key, cart_lock_key
from wellnest.crud.discountsCrud import validate_discount, record_redemption
from wellnest.crud.purchasesCrud import mint_purchase
from wellnest.db.locks import lock_key
from wellnest.db.types import utcnow
from wellnest.models import Order, OrderItem, PaymentTransaction, Purchase

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("payway",)


@dataclass
class TransactionResult:
    """What a provider (or the free path) reported for one payment attempt."""
    provider: PaymentProvider
    status: TransactionStatus
    provider_transaction_id: Optional[str] = None
    authorization_number: Optional[str] = None
    reference_number: Optional[str] = None
    payway_number: Optional[str] = None
    transaction_date: Optional[str] = None
    payment_number: Optional[str] = None
    card_brand: Optional[str] = None
    card_last_digits: Optional[str] = None
    card_holder: Optional[str] = None
    raw_payload: Optional[dict] = None


@dataclass
class OrderItemData:
    package_id: int
    package_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


@dataclass
class TransactionData:
    id: int
    provider: str
    status: str
    provider_transaction_id: Optional[str]
    authorization_number: Optional[str]
    card_brand: Optional[str]
    card_last_digits: Optional[str]
    created_at: datetime


@dataclass
class OrderData:
    id: int
    user_id: int
    status: str
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    discount_code: Optional[str]
    payment_method: Optional[str]
    created_at: datetime
    paid_at: Optional[datetime]
    items: List[OrderItemData] = field(default_factory=list)
    transactions: List[TransactionData] = field(default_factory=list)


def order_to_data(order: Order) -> OrderData:
    return OrderData(
        id=order.id,
        user_id=order.user_id,
        status=order.status.value,
        subtotal=order.subtotal,
        discount=order.discount,
        total=order.total,
        discount_code=order.discount_code,
        payment_method=order.payment_method,
        created_at=order.created_at,
        paid_at=order.paid_at,
        items=[
            OrderItemData(
                package_id=i.package_id,
                package_name=i.package.name,
                quantity=i.quantity,
                unit_price=i.unit_price,
                total_price=i.total_price,
            )
            for i in order.items
        ],
        transactions=[
            TransactionData(
                id=t.id,
                provider=t.provider.value,
                status=t.status.value,
                provider_transaction_id=t.provider_transaction_id,
                authorization_number=t.authorization_number,
                card_brand=t.card_brand,
                card_last_digits=t.card_last_digits,
                created_at=t.created_at,
            )
            for t in order.transactions
        ],
    )


def discounted_price(unit_price: Decimal, percentage: Optional[int]) -> Decimal:
    """Unit price after a percentage discount, in cents."""
    if not percentage:
        return to_money(unit_price)
    return to_money(Decimal(unit_price) * (100 - percentage) / 100)


async def get_order_model(db: AsyncSession, order_id: int) -> Optional[Order]:
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_order(db: AsyncSession, order_id: int, user_id: Optional[int] = None) -> Order:
    """Load an order; with `user_id` the order must belong to that user."""
    order = await get_order_model(db, order_id)
    if order is None:
        raise OrderNotFound()
    if user_id is not None and order.user_id != user_id:
        raise NotOwner("You do not own this order")
    return order


async def list_user_orders(db: AsyncSession, user_id: int) -> List[OrderData]:
    result = await db.execute(
        select(Order)
        .where(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .execution_options(populate_existing=True)
    )
    return [order_to_data(o) for o in result.scalars().all()]


async def create_order_from_cart(
    db: AsyncSession,
    *,
    user_id: int,
    discount_code: Optional[str] = None,
    session_id: Optional[str] = None,
    payment_method: Optional[str] = None,
    now: Optional[datetime] = None,
    commit: bool = True
) -> Order:
    """Turn the user's cart into a PENDING order and empty the cart."""
    now = now or utcnow()
    session_id = session_id or user_session_key(user_id)

    try:
        await lock_key(db, cart_lock_key(session_id))

        items = await get_cart_items(db, session_id)
        if not items:
            raise EmptyCart()

        for item in items:
            if item.package is None or not item.package.is_active:
                raise PackageUnavailable(f"Package {item.package_id} is not available")

        quote = None
        if discount_code and discount_code.strip():
            quote = await validate_discount(
                db,
                code=discount_code,
                package_ids=[i.package_id for i in items],
                user_id=user_id,
                now=now,
            )

        subtotal = to_money(sum((i.package.price * i.quantity for i in items), Decimal("0")))
        discount = to_money(subtotal * quote.percentage / 100) if quote else Decimal("0.00")
        total = max(subtotal - discount, Decimal("0.00"))

        order = Order(
            user_id=user_id,
            status=OrderStatus.PENDING,
            subtotal=subtotal,
            discount=discount,
            total=total,
            discount_code_id=quote.discount_code_id if quote else None,
            discount_code=quote.code if quote else None,
            discount_percentage=quote.percentage if quote else None,
            payment_method=payment_method,
            created_at=now,
        )
        order.items = [
            OrderItem(
                package_id=i.package_id,
                quantity=i.quantity,
                unit_price=to_money(i.package.price),
                total_price=to_money(i.package.price * i.quantity),
            )
            for i in items
        ]
        db.add(order)
        await db.flush()
        await clear_cart(db, session_id)

        if commit:
            await db.commit()
        else:
            await db.flush()
    except Exception:
        if commit:
            await db.rollback()
        raise

    order = await get_order_model(db, order.id)
    logger.info(
        "Order created order_id=%s user_id=%s total=%s discount_code=%s",
        order.id, user_id, order.total, order.discount_code,
    )
    return order


async def place_order(
    db: AsyncSession,
    *,
    user_id: int,
    discount_code: Optional[str] = None,
    session_id: Optional[str] = None,
    payment_method: Optional[str] = "payway",
    now: Optional[datetime] = None
) -> Tuple[Order, str]:
    """Create the order and decide where the member goes next.

    Zero-total orders are fulfilled immediately through the free path.
    Returns the order and the redirect target.
    """
    method = (payment_method or "payway").lower()
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"Unsupported payment method: {payment_method}")

    order = await create_order_from_cart(
        db,
        user_id=user_id,
        discount_code=discount_code,
        session_id=session_id,
        payment_method=method,
        now=now,
    )

    if order.total == 0:
        order = await confirm_payment(
            db,
            order_id=order.id,
            result=TransactionResult(
                provider=PaymentProvider.FREE,
                status=TransactionStatus.APPROVED,
                provider_transaction_id=f"free_{order.id}",
            ),
            now=now,
        )
        return order, f"/payment/success?oid={order.id}"

    return order, f"/checkout/{method}/{order.id}"


async def _find_transaction(
    db: AsyncSession,
    provider: PaymentProvider,
    provider_transaction_id: str
) -> Optional[PaymentTransaction]:
    result = await db.execute(
        select(PaymentTransaction).where(
            and_(
                PaymentTransaction.provider == provider,
                PaymentTransaction.provider_transaction_id == provider_transaction_id,
            )
        )
    )
    return result.scalar_one_or_none()


async def _fulfil(db: AsyncSession, order: Order, result: TransactionResult, now: datetime) -> List[Purchase]:
    """Mint one purchase per unit bought and record the discount redemption."""
    reference = result.provider_transaction_id or f"{result.provider.value.lower()}_{order.id}"
    purchases = []
    for item in order.items:
        final_price = discounted_price(item.unit_price, order.discount_percentage)
        for _ in range(item.quantity):
            purchase = await mint_purchase(
                db,
                user_id=order.user_id,
                package_id=item.package_id,
                final_price=final_price,
                original_price=item.unit_price,
                order_id=order.id,
                discount_code=order.discount_code,
                payment_reference=reference,
                now=now,
                commit=False,
            )
            purchases.append(purchase)

    if order.discount_code_id is not None:
        await record_redemption(
            db,
            user_id=order.user_id,
            discount_code_id=order.discount_code_id,
            order_id=order.id,
            purchase_id=purchases[0].id if purchases else None,
        )
    return purchases


async def confirm_payment(
    db: AsyncSession,
    *,
    order_id: int,
    result: TransactionResult,
    now: Optional[datetime] = None,
    commit: bool = True
) -> Order:
    """Record a payment attempt and apply its outcome to the order.

    Idempotent: a PAID order is returned untouched and a repeated provider
    transaction id is ignored.
    """
    now = now or utcnow()
    provider = coerce_status(PaymentProvider, result.provider)
    status = coerce_status(TransactionStatus, result.status)
    result.provider, result.status = provider, status

    order = await get_order_model(db, order_id)
    if order is None:
        raise OrderNotFound()

    if order.status == OrderStatus.PAID:
        logger.info("Order already paid, ignoring confirmation order_id=%s", order_id)
        return order

    if result.provider_transaction_id and await _find_transaction(db, provider, result.provider_transaction_id):
        logger.info(
            "Duplicate transaction ignored order_id=%s provider=%s ref=%s",
            order_id, provider.value, result.provider_transaction_id,
        )
        return order

    target = PAYMENT_OUTCOMES.get(status)
    allowed = target is not None and can_transition(ORDER_TRANSITIONS, order.status, target)
    if status == TransactionStatus.APPROVED and not allowed:
        logger.warning("Approved payment for non-pending order order_id=%s status=%s", order_id, order.status.value)
        log_payment_event("payment_rejected", order_id=order_id, provider=provider.value, success=False,
                          details=f"order_status={order.status.value}")
        raise OrderNotPending(f"Order is {order.status.value.lower()}")

    try:
        db.add(PaymentTransaction(
            order_id=order.id,
            provider=provider,
            status=status,
            provider_transaction_id=result.provider_transaction_id,
            authorization_number=result.authorization_number,
            reference_number=result.reference_number,
            payway_number=result.payway_number,
            transaction_date=result.transaction_date,
            payment_number=result.payment_number,
            card_brand=result.card_brand,
            card_last_digits=(result.card_last_digits or "")[-4:] or None,
            card_holder=result.card_holder,
            raw_payload=result.raw_payload,
            created_at=now,
        ))
        try:
            await db.flush()
        except IntegrityError:
            # A concurrent callback recorded the same provider reference first
            if commit:
                await db.rollback()
            logger.info("Duplicate transaction lost insert race order_id=%s", order_id)
            return await get_order_model(db, order_id)

        if target is not None and not allowed:
            logger.info(
                "Payment result leaves order unchanged order_id=%s status=%s result=%s",
                order_id, order.status.value, status.value,
            )
        elif target is not None:
            values = {"status": target}
            if target == OrderStatus.PAID:
                values["paid_at"] = now
            moved = await db.execute(
                update(Order)
                .where(and_(Order.id == order_id, Order.status == order.status))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if moved.rowcount != 1:
                current = await get_order_model(db, order_id)
                if target == OrderStatus.PAID and current.status != OrderStatus.PAID:
                    raise OrderNotPending(f"Order is {current.status.value.lower()}")
                logger.info(
                    "Order moved by a concurrent confirmation order_id=%s status=%s",
                    order_id, current.status.value,
                )
            elif target == OrderStatus.PAID:
                purchases = await _fulfil(db, order, result, now)
                logger.info("Order fulfilled order_id=%s purchases=%s", order_id, [p.id for p in purchases])

        if commit:
            await db.commit()
        else:
            await db.flush()
    except Exception:
        if commit:
            await db.rollback()
        raise

    order = await get_order_model(db, order_id)
    log_payment_event(
        "payment_confirmed",
        order_id=order_id,
        provider=provider.value,
        success=status != TransactionStatus.DENIED,
        details=f"transaction_status={status.value} order_status={order.status.value}",
    )
    return order


async def cancel_order(
    db: AsyncSession,
    *,
    order_id: int,
    user_id: int,
    commit: bool = True
) -> Order:
    """Member cancels their own PENDING order."""
    order = await get_order(db, order_id, user_id=user_id)
    if not can_transition(ORDER_TRANSITIONS, order.status, OrderStatus.CANCELLED):
        raise OrderNotPending(f"Order is {order.status.value.lower()}")

    result = await db.execute(
        update(Order)
        .where(and_(Order.id == order_id, Order.status == order.status))
        .values(status=OrderStatus.CANCELLED)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise OrderNotPending(f"Order is {order.status.value.lower()}")

    if commit:
        await db.commit()
    else:
        await db.flush()

    logger.info("Order cancelled order_id=%s user_id=%s", order_id, user_id)
    return await get_order_model(db, order_id)
