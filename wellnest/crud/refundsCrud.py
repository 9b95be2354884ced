"""
Refund requests and their admin adjudication.

Status moves are checked against REFUND_TRANSITIONS and applied with a
conditional UPDATE on the current status, so two admins acting on the same
request cannot both finalize it.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, and_, func
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.core.conversions import to_money, format_amount
from wellnest.core.errors import (
    PurchaseNotFound, NotOwner, AlreadyRefunded, RefundAlreadyRequested, RefundNotFound,
    AlreadyFinalized, ValidationError,
)
from wellnest.core.state_machine import (
    PurchaseStatus, RefundStatus, RefundAction, REFUND_TRANSITIONS, REFUND_ACTION_TARGETS,
    is_terminal, can_transition,
)
from wellnest.crud.discountsCrud import void_redemption_for_purchase
from wellnest.crud.purchasesCrud import get_purchase
from wellnest.crud.settingsCrud import CANCELLATION_HOURS, get_int_setting
from wellnest.db.types import utcnow
from wellnest.models import Purchase, RefundRequest, User
from wellnest.services.notifications import notifier
from wellnest.services.payment_gateway import gateway

logger = logging.getLogger(__name__)

OPEN_STATUSES = (RefundStatus.PENDING, RefundStatus.PROCESSING)


@dataclass
class RefundData:
    id: int
    user_id: int
    purchase_id: int
    package_name: str
    amount: Decimal
    eligible: bool
    status: str
    reason: str
    policy_snapshot: Dict[str, Any]
    notes: Optional[str]
    provider_ref: Optional[str]
    created_at: datetime
    refunded_at: Optional[datetime]


def refund_to_data(refund: RefundRequest) -> RefundData:
    return RefundData(
        id=refund.id,
        user_id=refund.user_id,
        purchase_id=refund.purchase_id,
        package_name=refund.purchase.package.name,
        amount=refund.amount,
        eligible=refund.eligible,
        status=refund.status.value,
        reason=refund.reason,
        policy_snapshot=dict(refund.policy_snapshot or {}),
        notes=refund.notes,
        provider_ref=refund.provider_ref,
        created_at=refund.created_at,
        refunded_at=refund.refunded_at,
    )


def compute_refund(purchase: Purchase, cancellation_hours: int, now: datetime) -> Dict[str, Any]:
    """Eligibility and amount for refunding `purchase` at `now`.

    Eligible while no more than `cancellation_hours` have passed since the
    purchase. The amount is the unused share of the price paid; unlimited
    packages refund in full. Ineligible requests are quoted at zero.
    """
    package = purchase.package
    hours_since = (now - purchase.created_at).total_seconds() / 3600
    eligible = hours_since <= cancellation_hours

    if package.is_unlimited:
        classes_used = 0
        amount = to_money(purchase.final_price)
    else:
        classes_used = package.class_count - purchase.classes_remaining
        if classes_used > 0:
            amount = to_money(purchase.final_price * purchase.classes_remaining / package.class_count)
        else:
            amount = to_money(purchase.final_price)

    if not eligible:
        amount = Decimal("0.00")

    return {
        "eligible": eligible,
        "amount": amount,
        "snapshot": {
            "cancellationHours": cancellation_hours,
            "classesUsed": classes_used,
            "classesTotal": package.class_count,
            "originalPrice": format_amount(purchase.final_price),
            "calculatedRefund": format_amount(amount),
        },
    }


async def get_refund(db: AsyncSession, refund_id: int) -> Optional[RefundRequest]:
    result = await db.execute(
        select(RefundRequest)
        .where(RefundRequest.id == refund_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def request_refund(
    db: AsyncSession,
    *,
    user_id: int,
    purchase_id: int,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
    commit: bool = True
) -> RefundRequest:
    """Member asks for a refund of one purchase. The purchase is not touched."""
    now = now or utcnow()

    purchase = await get_purchase(db, purchase_id)
    if purchase is None:
        raise PurchaseNotFound()
    if purchase.user_id != user_id:
        raise NotOwner("You do not own this purchase")
    if purchase.status == PurchaseStatus.REFUNDED:
        raise AlreadyRefunded()

    existing = await db.execute(
        select(RefundRequest.id).where(
            and_(
                RefundRequest.purchase_id == purchase_id,
                RefundRequest.status.in_(OPEN_STATUSES),
            )
        )
    )
    if existing.scalars().first() is not None:
        raise RefundAlreadyRequested()

    hours = await get_int_setting(db, CANCELLATION_HOURS)
    quote = compute_refund(purchase, hours, now)

    refund = RefundRequest(
        user_id=user_id,
        purchase_id=purchase_id,
        amount=quote["amount"],
        eligible=quote["eligible"],
        status=RefundStatus.PENDING,
        reason=(reason or "").strip() or ("within_policy" if quote["eligible"] else "outside_policy"),
        policy_snapshot=quote["snapshot"],
        created_at=now,
    )
    db.add(refund)

    if commit:
        await db.commit()
    else:
        await db.flush()
    await db.refresh(refund)

    logger.info(
        "Refund requested refund_id=%s purchase_id=%s user_id=%s amount=%s eligible=%s",
        refund.id, purchase_id, user_id, refund.amount, refund.eligible,
    )
    return refund


async def adjudicate(
    db: AsyncSession,
    *,
    refund_id: int,
    action: str,
    admin_id: int,
    notes: Optional[str] = None,
    custom_amount: Optional[Decimal] = None,
    now: Optional[datetime] = None,
    commit: bool = True
) -> RefundRequest:
    """Admin approves, rejects or marks a refund request as in progress."""
    now = now or utcnow()
    try:
        action = RefundAction((action or "").lower())
    except ValueError as exc:
        raise ValidationError(f"Unknown refund action: {action}") from exc

    refund = await get_refund(db, refund_id)
    if refund is None:
        raise RefundNotFound()

    current = refund.status
    target = REFUND_ACTION_TARGETS[action]
    if is_terminal(REFUND_TRANSITIONS, current):
        raise AlreadyFinalized()
    if not can_transition(REFUND_TRANSITIONS, current, target):
        raise ValidationError(f"Cannot move refund from {current.value} to {target.value}")

    values: Dict[str, Any] = {"status": target}
    if action == RefundAction.APPROVE:
        amount = to_money(custom_amount) if custom_amount is not None else refund.amount
        if amount < 0 or amount > refund.purchase.final_price:
            raise ValidationError("Refund amount must be between 0 and the price paid")
        values.update(amount=amount, notes=notes or None, refunded_at=now, refunded_by=admin_id)
    elif action == RefundAction.REJECT:
        values.update(notes=notes or "Request rejected", refunded_by=admin_id)
    else:
        values.update(notes=notes or None)

    try:
        result = await db.execute(
            update(RefundRequest)
            .where(and_(RefundRequest.id == refund_id, RefundRequest.status == current))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise AlreadyFinalized("Refund request was updated concurrently")

        if action == RefundAction.APPROVE:
            await db.execute(
                update(Purchase)
                .where(Purchase.id == refund.purchase_id)
                .values(status=PurchaseStatus.REFUNDED)
                .execution_options(synchronize_session=False)
            )
            voided = await void_redemption_for_purchase(db, refund.purchase_id)
            provider_ref = await gateway.refund(
                purchase_id=refund.purchase_id,
                amount=values["amount"],
                payment_reference=refund.purchase.payment_reference,
            )
            await db.execute(
                update(RefundRequest)
                .where(RefundRequest.id == refund_id)
                .values(provider_ref=provider_ref)
                .execution_options(synchronize_session=False)
            )
            if voided:
                logger.info("Promo redemption voided purchase_id=%s", refund.purchase_id)

        if commit:
            await db.commit()
        else:
            await db.flush()
    except Exception:
        if commit:
            await db.rollback()
        raise

    refund = await get_refund(db, refund_id)
    logger.info(
        "Refund %s refund_id=%s admin_id=%s status=%s amount=%s",
        action.value, refund_id, admin_id, refund.status.value, refund.amount,
    )

    user = await db.get(User, refund.user_id)
    if user is not None and target != RefundStatus.PROCESSING:
        notifier.refund_updated(email=user.email, status=refund.status.value, amount=format_amount(refund.amount))
    return refund


async def list_user_refunds(db: AsyncSession, user_id: int) -> List[RefundData]:
    result = await db.execute(
        select(RefundRequest)
        .where(RefundRequest.user_id == user_id)
        .order_by(RefundRequest.created_at.desc(), RefundRequest.id.desc())
        .execution_options(populate_existing=True)
    )
    return [refund_to_data(r) for r in result.scalars().all()]


async def list_refunds(
    db: AsyncSession,
    status: Optional[RefundStatus] = None
) -> Dict[str, Any]:
    """Admin listing, optionally filtered, with a count per status."""
    query = select(RefundRequest).order_by(RefundRequest.created_at.desc(), RefundRequest.id.desc())
    if status is not None:
        query = query.where(RefundRequest.status == RefundStatus(status))
    result = await db.execute(query.execution_options(populate_existing=True))

    counts = {s.value: 0 for s in RefundStatus}
    grouped = await db.execute(
        select(RefundRequest.status, func.count(RefundRequest.id)).group_by(RefundRequest.status)
    )
    for row_status, count in grouped.all():
        counts[RefundStatus(row_status).value] = count

    return {
        "refunds": [refund_to_data(r) for r in result.scalars().all()],
        "status_counts": counts,
    }
