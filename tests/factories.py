"""Builders for test data. Each helper commits so ids are available."""

from datetime import datetime, timedelta
from decimal import Decimal
from itertools import count
from typing import Optional

from wellnest.core.state_machine import UserRole
from wellnest.crud.purchasesCrud import mint_purchase
from wellnest.crud.usersCrud import new_qr_code
from wellnest.db.types import utcnow
from wellnest.models import DiscountCode, Discipline, Instructor, Package, StudioClass, User
from wellnest.security.jwt import create_access_token

_seq = count(1)


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'user_id': user.id})}"}


async def make_user(db, name: str = "Ana", role: UserRole = UserRole.MEMBER, email: Optional[str] = None) -> User:
    n = next(_seq)
    user = User(
        name=name,
        email=email or f"user{n}@example.com",
        role=role,
        qr_code=new_qr_code(),
        is_active=True,
    )
    db.add(user)
    await db.commit()
    return user


async def make_admin(db) -> User:
    return await make_user(db, name="Admin", role=UserRole.ADMIN)


async def make_discipline(db, name: str = "Yoga") -> Discipline:
    n = next(_seq)
    discipline = Discipline(name=name, slug=f"{name.lower()}-{n}", order=0, is_active=True)
    db.add(discipline)
    await db.commit()
    return discipline


async def make_instructor(db, name: str = "Lucia") -> Instructor:
    instructor = Instructor(name=name, disciplines=["yoga"], is_active=True)
    db.add(instructor)
    await db.commit()
    return instructor


async def make_package(
    db,
    class_count: int = 5,
    price: str = "50.00",
    validity_days: int = 30,
    is_shareable: bool = False,
    max_shares: int = 0,
    is_active: bool = True,
) -> Package:
    n = next(_seq)
    package = Package(
        slug=f"pack-{n}",
        name=f"Pack {class_count}",
        class_count=class_count,
        price=Decimal(price),
        validity_days=validity_days,
        is_shareable=is_shareable,
        max_shares=max_shares,
        is_active=is_active,
        is_featured=False,
    )
    db.add(package)
    await db.commit()
    return package


async def make_class(
    db,
    starts_in: timedelta = timedelta(days=2),
    duration: int = 60,
    max_capacity: int = 10,
    date_time: Optional[datetime] = None,
) -> StudioClass:
    discipline = await make_discipline(db)
    instructor = await make_instructor(db)
    studio_class = StudioClass(
        discipline_id=discipline.id,
        instructor_id=instructor.id,
        date_time=date_time or utcnow() + starts_in,
        duration=duration,
        max_capacity=max_capacity,
        current_count=0,
    )
    db.add(studio_class)
    await db.commit()
    await db.refresh(studio_class)
    return studio_class


async def make_purchase(db, user: User, package: Package, now: Optional[datetime] = None, price: Optional[str] = None):
    return await mint_purchase(
        db,
        user_id=user.id,
        package_id=package.id,
        final_price=Decimal(price) if price is not None else package.price,
        original_price=package.price,
        now=now,
    )


async def make_discount(
    db,
    code: str = "WELCOME10",
    percentage: int = 10,
    max_uses: Optional[int] = None,
    applicable_to: Optional[list] = None,
    valid_from: Optional[datetime] = None,
    valid_until: Optional[datetime] = None,
    is_active: bool = True,
) -> DiscountCode:
    now = utcnow()
    discount = DiscountCode(
        code=code,
        percentage=percentage,
        max_uses=max_uses,
        current_uses=0,
        valid_from=valid_from or now - timedelta(days=1),
        valid_until=valid_until or now + timedelta(days=30),
        is_active=is_active,
        applicable_to=applicable_to or [],
    )
    db.add(discount)
    await db.commit()
    return discount
