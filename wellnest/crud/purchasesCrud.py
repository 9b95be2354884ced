"""
Entitlement ledger: minting purchases and moving their class-credit balance.

Balance changes are conditional UPDATEs evaluated by the database, never a
read-modify-write from Python, so two concurrent bookings cannot both spend
the last credit.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import select, update, and_, case
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.core.conversions import to_money
from wellnest.core.errors import (
    PurchaseNotFound, NotFoundError, NotActive, Expired, InsufficientBalance,
)
from wellnest.core.state_machine import PurchaseStatus
from wellnest.db.types import utcnow
from wellnest.models import Package, Purchase, User

logger = logging.getLogger(__name__)


@dataclass
class PurchaseData:
    id: int
    user_id: int
    package_id: int
    package_name: str
    class_count: int
    classes_remaining: int
    is_unlimited: bool
    is_shareable: bool
    expires_at: datetime
    original_price: Decimal
    final_price: Decimal
    status: str
    discount_code: Optional[str]
    order_id: Optional[int]
    created_at: datetime


def purchase_to_data(purchase: Purchase) -> PurchaseData:
    """Map Purchase model (package loaded) to PurchaseData DTO."""
    package = purchase.package
    return PurchaseData(
        id=purchase.id,
        user_id=purchase.user_id,
        package_id=purchase.package_id,
        package_name=package.name,
        class_count=package.class_count,
        classes_remaining=purchase.classes_remaining,
        is_unlimited=package.is_unlimited,
        is_shareable=package.allows_guests,
        expires_at=purchase.expires_at,
        original_price=purchase.original_price,
        final_price=purchase.final_price,
        status=purchase.status.value,
        discount_code=purchase.discount_code,
        order_id=purchase.order_id,
        created_at=purchase.created_at,
    )


def select_best_purchase(
    purchases: Iterable[Purchase],
    classes_needed: int,
    now: datetime,
    require_shareable: bool = False,
) -> Optional[Purchase]:
    """Earliest-expiring usable purchase from a snapshot, or None.

    Usable means ACTIVE, not expired, with at least `classes_needed` credits
    (unlimited packages always qualify) and, for guest bookings, shareable.
    """
    candidates = [
        p for p in purchases
        if p.status == PurchaseStatus.ACTIVE
        and p.expires_at >= now
        and (p.package.is_unlimited or p.classes_remaining >= classes_needed)
        and (not require_shareable or p.package.allows_guests)
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda p: (p.expires_at, p.id))


async def get_purchase(db: AsyncSession, purchase_id: int) -> Optional[Purchase]:
    result = await db.execute(
        select(Purchase)
        .where(Purchase.id == purchase_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_active_purchases(
    db: AsyncSession,
    user_id: int,
    now: Optional[datetime] = None
) -> List[Purchase]:
    """Snapshot of a user's ACTIVE, unexpired purchases, soonest expiry first."""
    now = now or utcnow()
    result = await db.execute(
        select(Purchase)
        .where(
            and_(
                Purchase.user_id == user_id,
                Purchase.status == PurchaseStatus.ACTIVE,
                Purchase.expires_at >= now,
            )
        )
        .order_by(Purchase.expires_at.asc(), Purchase.id.asc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def list_user_purchases(db: AsyncSession, user_id: int) -> List[PurchaseData]:
    result = await db.execute(
        select(Purchase)
        .where(Purchase.user_id == user_id)
        .order_by(Purchase.created_at.desc(), Purchase.id.desc())
        .execution_options(populate_existing=True)
    )
    return [purchase_to_data(p) for p in result.scalars().all()]


async def mint_purchase(
    db: AsyncSession,
    *,
    user_id: int,
    package_id: int,
    final_price: Decimal,
    original_price: Decimal,
    order_id: Optional[int] = None,
    discount_code: Optional[str] = None,
    payment_reference: Optional[str] = None,
    now: Optional[datetime] = None,
    commit: bool = True
) -> Purchase:
    """Create an ACTIVE purchase with the package's full balance.

    Only called from payment confirmation and admin package assignment.
    """
    now = now or utcnow()
    package = await db.get(Package, package_id)
    if package is None:
        raise NotFoundError(f"Package {package_id} not found")

    purchase = Purchase(
        user_id=user_id,
        package_id=package.id,
        order_id=order_id,
        classes_remaining=package.class_count,
        expires_at=now + timedelta(days=package.validity_days),
        original_price=to_money(original_price),
        final_price=to_money(final_price),
        discount_code=discount_code,
        payment_reference=payment_reference,
        status=PurchaseStatus.ACTIVE,
        created_at=now,
    )
    db.add(purchase)

    if commit:
        await db.commit()
    else:
        await db.flush()
    await db.refresh(purchase)

    logger.info(
        "Purchase minted purchase_id=%s user_id=%s package_id=%s order_id=%s",
        purchase.id, user_id, package_id, order_id,
    )
    return purchase


def _raise_for_unusable(purchase: Purchase, count: int, now: datetime) -> None:
    if purchase.status != PurchaseStatus.ACTIVE:
        raise NotActive(f"Package is {purchase.status.value.lower()}")
    if purchase.expires_at < now:
        raise Expired()
    if not purchase.package.is_unlimited and purchase.classes_remaining < count:
        raise InsufficientBalance(
            f"Not enough classes remaining ({purchase.classes_remaining} left, {count} needed)"
        )


async def consume_class(
    db: AsyncSession,
    *,
    purchase_id: int,
    count: int = 1,
    now: Optional[datetime] = None,
    commit: bool = True
) -> Purchase:
    """Take `count` credits from a purchase; at zero it becomes DEPLETED.

    Unlimited packages are validated but never decremented.
    """
    if count < 1:
        raise ValueError("count must be positive")
    now = now or utcnow()

    purchase = await get_purchase(db, purchase_id)
    if purchase is None:
        raise PurchaseNotFound()
    _raise_for_unusable(purchase, count, now)

    if purchase.package.is_unlimited:
        return purchase

    result = await db.execute(
        update(Purchase)
        .where(
            and_(
                Purchase.id == purchase_id,
                Purchase.status == PurchaseStatus.ACTIVE,
                Purchase.expires_at >= now,
                Purchase.classes_remaining >= count,
            )
        )
        .values(classes_remaining=Purchase.classes_remaining - count)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        # Lost a race with another booking; report what the row says now
        await db.refresh(purchase)
        _raise_for_unusable(purchase, count, now)
        raise InsufficientBalance()

    await db.execute(
        update(Purchase)
        .where(
            and_(
                Purchase.id == purchase_id,
                Purchase.status == PurchaseStatus.ACTIVE,
                Purchase.classes_remaining == 0,
            )
        )
        .values(status=PurchaseStatus.DEPLETED)
        .execution_options(synchronize_session=False)
    )

    if commit:
        await db.commit()
    else:
        await db.flush()
    await db.refresh(purchase)

    logger.info(
        "Consumed %s class(es) purchase_id=%s remaining=%s",
        count, purchase_id, purchase.classes_remaining,
    )
    return purchase


async def restore_class(
    db: AsyncSession,
    *,
    purchase_id: int,
    count: int = 1,
    now: Optional[datetime] = None,
    commit: bool = True
) -> Purchase:
    """Give back `count` credits, capped at the package size.

    A DEPLETED purchase that has not expired becomes ACTIVE again. No-op for
    unlimited and REFUNDED purchases. Callers restore once per cancellation.
    """
    if count < 1:
        raise ValueError("count must be positive")
    now = now or utcnow()

    purchase = await get_purchase(db, purchase_id)
    if purchase is None:
        raise PurchaseNotFound()
    if purchase.package.is_unlimited or purchase.status == PurchaseStatus.REFUNDED:
        return purchase

    cap = purchase.package.class_count
    await db.execute(
        update(Purchase)
        .where(
            and_(
                Purchase.id == purchase_id,
                Purchase.status != PurchaseStatus.REFUNDED,
            )
        )
        .values(
            classes_remaining=case(
                (Purchase.classes_remaining + count > cap, cap),
                else_=Purchase.classes_remaining + count,
            )
        )
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        update(Purchase)
        .where(
            and_(
                Purchase.id == purchase_id,
                Purchase.status == PurchaseStatus.DEPLETED,
                Purchase.classes_remaining > 0,
                Purchase.expires_at >= now,
            )
        )
        .values(status=PurchaseStatus.ACTIVE)
        .execution_options(synchronize_session=False)
    )

    if commit:
        await db.commit()
    else:
        await db.flush()
    await db.refresh(purchase)

    logger.info(
        "Restored %s class(es) purchase_id=%s remaining=%s",
        count, purchase_id, purchase.classes_remaining,
    )
    return purchase


async def expire_overdue_purchases(
    db: AsyncSession,
    now: Optional[datetime] = None,
    commit: bool = True
) -> int:
    """Mark ACTIVE/DEPLETED purchases past their expiry as EXPIRED. Returns the count."""
    now = now or utcnow()
    result = await db.execute(
        update(Purchase)
        .where(
            and_(
                Purchase.status.in_([PurchaseStatus.ACTIVE, PurchaseStatus.DEPLETED]),
                Purchase.expires_at < now,
            )
        )
        .values(status=PurchaseStatus.EXPIRED)
        .execution_options(synchronize_session=False)
    )
    if commit:
        await db.commit()
    else:
        await db.flush()
    if result.rowcount:
        logger.info("Expired %s overdue purchase(s)", result.rowcount)
    return result.rowcount


async def assign_package(
    db: AsyncSession,
    *,
    admin_id: int,
    user_id: int,
    package_id: int,
    commit: bool = True
) -> Purchase:
    """Admin grant of a complimentary package."""
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    package = await db.get(Package, package_id)
    if package is None:
        raise NotFoundError(f"Package {package_id} not found")

    purchase = await mint_purchase(
        db,
        user_id=user_id,
        package_id=package_id,
        final_price=Decimal("0"),
        original_price=package.price,
        payment_reference=f"admin_{admin_id}",
        commit=commit,
    )
    logger.info(
        "Package assigned by admin admin_id=%s user_id=%s package_id=%s purchase_id=%s",
        admin_id, user_id, package_id, purchase.id,
    )
    return purchase
