"""
Discount codes: validation (read-only) and admin management.

Validation never writes. Usage counters and redemptions are recorded only
when an order using the code is paid (see ordersCrud.confirm_payment).
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, update, and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.core.errors import (
    ValidationError, NotFoundError, ConflictError, DiscountNotFound, DiscountExpired,
    DiscountAlreadyUsed, DiscountExhausted, DiscountNotApplicable,
)
from wellnest.core.state_machine import RedemptionStatus
from wellnest.db.types import utcnow
from wellnest.models import DiscountCode, PromoRedemption

logger = logging.getLogger(__name__)


@dataclass
class DiscountQuote:
    code: str
    percentage: int
    discount_code_id: int


@dataclass
class DiscountCodeData:
    id: int
    code: str
    description: Optional[str]
    percentage: int
    max_uses: Optional[int]
    current_uses: int
    valid_from: datetime
    valid_until: datetime
    is_active: bool
    applicable_to: List[int]


def discount_to_data(discount: DiscountCode) -> DiscountCodeData:
    return DiscountCodeData(
        id=discount.id,
        code=discount.code,
        description=discount.description,
        percentage=discount.percentage,
        max_uses=discount.max_uses,
        current_uses=discount.current_uses,
        valid_from=discount.valid_from,
        valid_until=discount.valid_until,
        is_active=discount.is_active,
        applicable_to=list(discount.applicable_to or []),
    )


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


async def get_discount_by_code(db: AsyncSession, code: str) -> Optional[DiscountCode]:
    result = await db.execute(
        select(DiscountCode)
        .where(DiscountCode.code == normalize_code(code))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def validate_discount(
    db: AsyncSession,
    *,
    code: str,
    package_ids: Iterable[int],
    user_id: int,
    now: Optional[datetime] = None
) -> DiscountQuote:
    """Check a code for this user and cart. First failing rule wins."""
    now = now or utcnow()
    package_ids = {int(p) for p in package_ids}

    discount = await get_discount_by_code(db, code)
    if discount is None or not discount.is_active:
        raise DiscountNotFound()

    if not (discount.valid_from <= now <= discount.valid_until):
        raise DiscountExpired()

    redeemed = await db.execute(
        select(PromoRedemption.id).where(
            and_(
                PromoRedemption.user_id == user_id,
                PromoRedemption.discount_code_id == discount.id,
                PromoRedemption.status == RedemptionStatus.APPLIED,
            )
        )
    )
    if redeemed.scalar_one_or_none() is not None:
        raise DiscountAlreadyUsed()

    if discount.max_uses is not None and discount.current_uses >= discount.max_uses:
        raise DiscountExhausted()

    allowlist = set(discount.applicable_to or [])
    if allowlist and not (allowlist & package_ids):
        raise DiscountNotApplicable()

    return DiscountQuote(code=discount.code, percentage=discount.percentage, discount_code_id=discount.id)


async def record_redemption(
    db: AsyncSession,
    *,
    user_id: int,
    discount_code_id: int,
    order_id: int,
    purchase_id: Optional[int]
) -> bool:
    """Upsert the user's redemption and bump the code's usage counter.

    Returns False when the user already had an APPLIED redemption (counter
    untouched). Never commits.
    """
    result = await db.execute(
        select(PromoRedemption).where(
            and_(
                PromoRedemption.user_id == user_id,
                PromoRedemption.discount_code_id == discount_code_id,
            )
        )
    )
    redemption = result.scalar_one_or_none()
    if redemption is not None and redemption.status == RedemptionStatus.APPLIED:
        return False

    if redemption is None:
        db.add(PromoRedemption(
            user_id=user_id,
            discount_code_id=discount_code_id,
            order_id=order_id,
            purchase_id=purchase_id,
            status=RedemptionStatus.APPLIED,
        ))
    else:
        # A refunded redemption being used again
        redemption.status = RedemptionStatus.APPLIED
        redemption.order_id = order_id
        redemption.purchase_id = purchase_id

    bumped = await db.execute(
        update(DiscountCode)
        .where(
            and_(
                DiscountCode.id == discount_code_id,
                or_(DiscountCode.max_uses.is_(None), DiscountCode.current_uses < DiscountCode.max_uses),
            )
        )
        .values(current_uses=DiscountCode.current_uses + 1)
        .execution_options(synchronize_session=False)
    )
    if bumped.rowcount != 1:
        # The payment already went through; honour it but flag the overuse
        logger.warning("Discount code %s used past max_uses by order_id=%s", discount_code_id, order_id)
    await db.flush()
    logger.info("Discount redeemed discount_code_id=%s user_id=%s order_id=%s", discount_code_id, user_id, order_id)
    return True


async def void_redemption_for_purchase(db: AsyncSession, purchase_id: int) -> int:
    """Mark redemptions tied to a refunded purchase as REFUNDED. Never commits."""
    result = await db.execute(
        update(PromoRedemption)
        .where(
            and_(
                PromoRedemption.purchase_id == purchase_id,
                PromoRedemption.status == RedemptionStatus.APPLIED,
            )
        )
        .values(status=RedemptionStatus.REFUNDED)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


# Admin management

def _validate_fields(percentage: int, valid_from: datetime, valid_until: datetime, max_uses: Optional[int]) -> None:
    if not 1 <= percentage <= 100:
        raise ValidationError("percentage must be between 1 and 100")
    if valid_from.tzinfo is None or valid_until.tzinfo is None:
        raise ValidationError("Validity dates must be timezone-aware")
    if valid_from > valid_until:
        raise ValidationError("valid_from must be before valid_until")
    if max_uses is not None and max_uses < 1:
        raise ValidationError("max_uses must be positive")


async def list_discount_codes(db: AsyncSession) -> List[DiscountCodeData]:
    result = await db.execute(select(DiscountCode).order_by(DiscountCode.created_at.desc()))
    return [discount_to_data(d) for d in result.scalars().all()]


async def create_discount_code(
    db: AsyncSession,
    *,
    code: str,
    percentage: int,
    valid_from: datetime,
    valid_until: datetime,
    max_uses: Optional[int] = None,
    applicable_to: Optional[List[int]] = None,
    description: Optional[str] = None,
    is_active: bool = True,
    commit: bool = True
) -> DiscountCode:
    normalized = normalize_code(code)
    if not normalized:
        raise ValidationError("Code is required")
    _validate_fields(percentage, valid_from, valid_until, max_uses)

    if await get_discount_by_code(db, normalized) is not None:
        raise ConflictError(f"Discount code {normalized} already exists")

    discount = DiscountCode(
        code=normalized,
        description=description,
        percentage=percentage,
        max_uses=max_uses,
        current_uses=0,
        valid_from=valid_from,
        valid_until=valid_until,
        is_active=is_active,
        applicable_to=[int(p) for p in (applicable_to or [])],
    )
    db.add(discount)
    try:
        if commit:
            await db.commit()
        else:
            await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError(f"Discount code {normalized} already exists") from exc

    await db.refresh(discount)
    logger.info("Discount code created code=%s percentage=%s", normalized, percentage)
    return discount


async def update_discount_code(
    db: AsyncSession,
    discount_id: int,
    updates: Dict[str, Any],
    commit: bool = True
) -> DiscountCode:
    discount = await db.get(DiscountCode, discount_id)
    if discount is None:
        raise NotFoundError(f"Discount code {discount_id} not found")

    for field in ("description", "percentage", "valid_from", "valid_until", "is_active"):
        if updates.get(field) is not None:
            setattr(discount, field, updates[field])
    if "max_uses" in updates:
        discount.max_uses = updates["max_uses"]
    if updates.get("applicable_to") is not None:
        discount.applicable_to = [int(p) for p in updates["applicable_to"]]

    _validate_fields(discount.percentage, discount.valid_from, discount.valid_until, discount.max_uses)
    if discount.max_uses is not None and discount.current_uses > discount.max_uses:
        raise ValidationError("max_uses cannot be lower than current uses")

    if commit:
        await db.commit()
    else:
        await db.flush()
    await db.refresh(discount)
    return discount
