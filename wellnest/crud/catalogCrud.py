"""
CRUD operations for disciplines, instructors and packages.
"""
import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select, or_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.core.conversions import to_money
from wellnest.core.errors import NotFoundError, SlugTaken, DisciplineInUse, ValidationError
from wellnest.models import Discipline, Instructor, Package, StudioClass

logger = logging.getLogger(__name__)


@dataclass
class PackageData:
    id: int
    slug: str
    name: str
    description: Optional[str]
    class_count: int
    is_unlimited: bool
    price: Decimal
    validity_days: int
    is_shareable: bool
    max_shares: int
    is_active: bool
    is_featured: bool


def package_to_data(package: Package) -> PackageData:
    return PackageData(
        id=package.id,
        slug=package.slug,
        name=package.name,
        description=package.description,
        class_count=package.class_count,
        is_unlimited=package.is_unlimited,
        price=package.price,
        validity_days=package.validity_days,
        is_shareable=package.is_shareable,
        max_shares=package.max_shares,
        is_active=package.is_active,
        is_featured=package.is_featured,
    )


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.strip().lower()).strip("-")
    if not slug:
        raise ValidationError("Name must contain letters or digits")
    return slug


async def _commit_or_flush(db: AsyncSession, commit: bool, slug_conflict: bool = False) -> None:
    try:
        if commit:
            await db.commit()
        else:
            await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        if slug_conflict:
            raise SlugTaken() from exc
        raise


# Disciplines

async def list_disciplines(db: AsyncSession, active_only: bool = False) -> List[Discipline]:
    stmt = select(Discipline).order_by(Discipline.order.asc(), Discipline.name.asc())
    if active_only:
        stmt = stmt.where(Discipline.is_active == True)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def create_discipline(
    db: AsyncSession,
    *,
    name: str,
    slug: Optional[str] = None,
    description: Optional[str] = None,
    benefits: Optional[str] = None,
    order: int = 0,
    is_active: bool = True,
    commit: bool = True
) -> Discipline:
    if not name or not name.strip():
        raise ValidationError("Discipline name is required")
    slug = slugify(slug or name)

    existing = await db.execute(select(Discipline.id).where(Discipline.slug == slug))
    if existing.scalar_one_or_none() is not None:
        raise SlugTaken(f"Discipline slug '{slug}' is already in use")

    discipline = Discipline(
        name=name.strip(),
        slug=slug,
        description=description,
        benefits=benefits,
        order=order,
        is_active=is_active,
    )
    db.add(discipline)
    await _commit_or_flush(db, commit, slug_conflict=True)
    await db.refresh(discipline)
    logger.info("Discipline created discipline_id=%s slug=%s", discipline.id, slug)
    return discipline


async def update_discipline(
    db: AsyncSession,
    discipline_id: int,
    updates: Dict[str, Any],
    commit: bool = True
) -> Discipline:
    """Cosmetic fields are always editable; the slug only while no class references it."""
    discipline = await db.get(Discipline, discipline_id)
    if discipline is None:
        raise NotFoundError(f"Discipline {discipline_id} not found")

    if "slug" in updates and updates["slug"] and slugify(updates["slug"]) != discipline.slug:
        if await _discipline_in_use(db, discipline_id):
            raise DisciplineInUse("Slug cannot change while classes reference this discipline")
        discipline.slug = slugify(updates["slug"])

    for field in ("name", "description", "benefits", "order", "is_active"):
        if field in updates and updates[field] is not None:
            setattr(discipline, field, updates[field])

    await _commit_or_flush(db, commit, slug_conflict=True)
    await db.refresh(discipline)
    return discipline


async def _discipline_in_use(db: AsyncSession, discipline_id: int) -> bool:
    result = await db.execute(
        select(func.count(StudioClass.id)).where(
            or_(
                StudioClass.discipline_id == discipline_id,
                StudioClass.complementary_discipline_id == discipline_id,
            )
        )
    )
    return (result.scalar() or 0) > 0


async def delete_discipline(db: AsyncSession, discipline_id: int, commit: bool = True) -> bool:
    discipline = await db.get(Discipline, discipline_id)
    if discipline is None:
        raise NotFoundError(f"Discipline {discipline_id} not found")
    if await _discipline_in_use(db, discipline_id):
        raise DisciplineInUse()

    await db.delete(discipline)
    await _commit_or_flush(db, commit)
    logger.info("Discipline deleted discipline_id=%s", discipline_id)
    return True


# Instructors

async def list_instructors(db: AsyncSession, active_only: bool = False) -> List[Instructor]:
    stmt = select(Instructor).order_by(Instructor.name.asc())
    if active_only:
        stmt = stmt.where(Instructor.is_active == True)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def create_instructor(
    db: AsyncSession,
    *,
    name: str,
    bio: Optional[str] = None,
    disciplines: Optional[List[str]] = None,
    is_active: bool = True,
    commit: bool = True
) -> Instructor:
    if not name or not name.strip():
        raise ValidationError("Instructor name is required")
    instructor = Instructor(
        name=name.strip(),
        bio=bio,
        disciplines=list(disciplines or []),
        is_active=is_active,
    )
    db.add(instructor)
    await _commit_or_flush(db, commit)
    await db.refresh(instructor)
    return instructor


async def update_instructor(
    db: AsyncSession,
    instructor_id: int,
    updates: Dict[str, Any],
    commit: bool = True
) -> Instructor:
    instructor = await db.get(Instructor, instructor_id)
    if instructor is None:
        raise NotFoundError(f"Instructor {instructor_id} not found")
    for field in ("name", "bio", "is_active"):
        if field in updates and updates[field] is not None:
            setattr(instructor, field, updates[field])
    if updates.get("disciplines") is not None:
        instructor.disciplines = list(updates["disciplines"])
    await _commit_or_flush(db, commit)
    await db.refresh(instructor)
    return instructor


# Packages

async def list_packages(db: AsyncSession, active_only: bool = True) -> List[PackageData]:
    stmt = select(Package).order_by(Package.is_featured.desc(), Package.price.asc())
    if active_only:
        stmt = stmt.where(Package.is_active == True)
    result = await db.execute(stmt)
    return [package_to_data(p) for p in result.scalars().all()]


async def get_package(db: AsyncSession, package_id: int) -> Optional[Package]:
    return await db.get(Package, package_id)


def _validate_package_fields(class_count: int, price: Decimal, validity_days: int, max_shares: int) -> None:
    if class_count < 1:
        raise ValidationError("class_count must be at least 1")
    if price < 0:
        raise ValidationError("price cannot be negative")
    if validity_days < 1:
        raise ValidationError("validity_days must be at least 1")
    if max_shares < 0:
        raise ValidationError("max_shares cannot be negative")


async def create_package(
    db: AsyncSession,
    *,
    name: str,
    class_count: int,
    price: Decimal,
    validity_days: int,
    slug: Optional[str] = None,
    description: Optional[str] = None,
    is_shareable: bool = False,
    max_shares: int = 0,
    is_active: bool = True,
    is_featured: bool = False,
    commit: bool = True
) -> Package:
    price = to_money(price)
    _validate_package_fields(class_count, price, validity_days, max_shares)
    slug = slugify(slug or name)

    existing = await db.execute(select(Package.id).where(Package.slug == slug))
    if existing.scalar_one_or_none() is not None:
        raise SlugTaken(f"Package slug '{slug}' is already in use")

    package = Package(
        slug=slug,
        name=name.strip(),
        description=description,
        class_count=class_count,
        price=price,
        validity_days=validity_days,
        is_shareable=is_shareable,
        max_shares=max_shares if is_shareable else 0,
        is_active=is_active,
        is_featured=is_featured,
    )
    db.add(package)
    await _commit_or_flush(db, commit, slug_conflict=True)
    await db.refresh(package)
    logger.info("Package created package_id=%s slug=%s", package.id, slug)
    return package


async def update_package(
    db: AsyncSession,
    package_id: int,
    updates: Dict[str, Any],
    commit: bool = True
) -> Package:
    """Edits apply to future purchases only; minted purchases keep their own prices and balance."""
    package = await db.get(Package, package_id)
    if package is None:
        raise NotFoundError(f"Package {package_id} not found")

    for field in (
        "name", "description", "class_count", "validity_days", "is_shareable",
        "max_shares", "is_active", "is_featured",
    ):
        if field in updates and updates[field] is not None:
            setattr(package, field, updates[field])
    if updates.get("price") is not None:
        package.price = to_money(updates["price"])
    if updates.get("slug"):
        package.slug = slugify(updates["slug"])

    _validate_package_fields(package.class_count, package.price, package.validity_days, package.max_shares)
    await _commit_or_flush(db, commit, slug_conflict=True)
    await db.refresh(package)
    return package
