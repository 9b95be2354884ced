"""
Shopping cart keyed by session: "user_<id>" for members, a cookie id otherwise.

Every mutation takes the per-session lock so it cannot interleave with a
checkout of the same cart.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

from sqlalchemy import select, delete, and_
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.core.conversions import to_money
from wellnest.core.errors import PackageUnavailable, ValidationError, NotFoundError
from wellnest.db.locks import lock_key
from wellnest.models import CartItem, Package

logger = logging.getLogger(__name__)

MAX_QUANTITY = 10


@dataclass
class CartLine:
    package_id: int
    package_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    is_available: bool


@dataclass
class CartData:
    session_id: str
    items: List[CartLine] = field(default_factory=list)
    subtotal: Decimal = Decimal("0.00")

    @property
    def package_ids(self) -> List[int]:
        return [line.package_id for line in self.items]


def user_session_key(user_id: int) -> str:
    return f"user_{user_id}"


def cart_lock_key(session_id: str) -> str:
    return f"cart:{session_id}"


async def get_cart_items(db: AsyncSession, session_id: str) -> List[CartItem]:
    result = await db.execute(
        select(CartItem)
        .where(CartItem.session_id == session_id)
        .order_by(CartItem.id.asc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_cart(db: AsyncSession, session_id: str) -> CartData:
    cart = CartData(session_id=session_id)
    subtotal = Decimal("0.00")
    for item in await get_cart_items(db, session_id):
        line_total = to_money(item.package.price * item.quantity)
        cart.items.append(CartLine(
            package_id=item.package_id,
            package_name=item.package.name,
            quantity=item.quantity,
            unit_price=item.package.price,
            total_price=line_total,
            is_available=item.package.is_active,
        ))
        subtotal += line_total
    cart.subtotal = to_money(subtotal)
    return cart


def _check_quantity(quantity: int) -> None:
    if quantity < 1 or quantity > MAX_QUANTITY:
        raise ValidationError(f"Quantity must be between 1 and {MAX_QUANTITY}")


async def add_to_cart(
    db: AsyncSession,
    *,
    session_id: str,
    package_id: int,
    quantity: int = 1,
    commit: bool = True
) -> CartData:
    """Add a package, or increase its quantity if already in the cart."""
    _check_quantity(quantity)
    await lock_key(db, cart_lock_key(session_id))

    package = await db.get(Package, package_id)
    if package is None or not package.is_active:
        raise PackageUnavailable()

    result = await db.execute(
        select(CartItem).where(
            and_(CartItem.session_id == session_id, CartItem.package_id == package_id)
        )
    )
    item = result.scalar_one_or_none()
    if item is None:
        db.add(CartItem(session_id=session_id, package_id=package_id, quantity=quantity))
    else:
        _check_quantity(item.quantity + quantity)
        item.quantity = item.quantity + quantity

    if commit:
        await db.commit()
    else:
        await db.flush()
    return await get_cart(db, session_id)


async def update_cart_item(
    db: AsyncSession,
    *,
    session_id: str,
    package_id: int,
    quantity: int,
    commit: bool = True
) -> CartData:
    """Set a line's quantity; zero removes it."""
    if quantity == 0:
        return await remove_from_cart(db, session_id=session_id, package_id=package_id, commit=commit)
    _check_quantity(quantity)
    await lock_key(db, cart_lock_key(session_id))

    result = await db.execute(
        select(CartItem).where(
            and_(CartItem.session_id == session_id, CartItem.package_id == package_id)
        )
    )
    item = result.scalar_one_or_none()
    if item is None:
        raise NotFoundError("Item is not in the cart")
    item.quantity = quantity

    if commit:
        await db.commit()
    else:
        await db.flush()
    return await get_cart(db, session_id)


async def remove_from_cart(
    db: AsyncSession,
    *,
    session_id: str,
    package_id: int,
    commit: bool = True
) -> CartData:
    await lock_key(db, cart_lock_key(session_id))
    await db.execute(
        delete(CartItem)
        .where(and_(CartItem.session_id == session_id, CartItem.package_id == package_id))
        .execution_options(synchronize_session=False)
    )
    if commit:
        await db.commit()
    else:
        await db.flush()
    return await get_cart(db, session_id)


async def clear_cart(db: AsyncSession, session_id: str) -> int:
    """Delete every line. Never commits; the caller holds the cart lock."""
    result = await db.execute(
        delete(CartItem)
        .where(CartItem.session_id == session_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def merge_carts(
    db: AsyncSession,
    *,
    anonymous_session_id: str,
    user_id: int,
    commit: bool = True
) -> CartData:
    """Move an anonymous cart into the member's cart after sign-in, summing quantities."""
    target = user_session_key(user_id)
    if anonymous_session_id == target:
        return await get_cart(db, target)

    # Fixed lock order avoids deadlocks between two merges
    for key in sorted([anonymous_session_id, target]):
        await lock_key(db, cart_lock_key(key))

    source_items = await get_cart_items(db, anonymous_session_id)
    target_items = {item.package_id: item for item in await get_cart_items(db, target)}

    for item in source_items:
        existing = target_items.get(item.package_id)
        if existing is None:
            db.add(CartItem(session_id=target, package_id=item.package_id, quantity=item.quantity))
        else:
            existing.quantity = min(existing.quantity + item.quantity, MAX_QUANTITY)
        await db.delete(item)

    if commit:
        await db.commit()
    else:
        await db.flush()

    logger.info("Cart merged items=%s user_id=%s", len(source_items), user_id)
    return await get_cart(db, target)
