from datetime import datetime, timedelta
from typing import List, Optional

import strawberry
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.core.conversions import coerce_int
from wellnest.crud.catalogCrud import get_package, list_disciplines, list_instructors, list_packages, package_to_data
from wellnest.crud.classCrud import class_to_data, get_class, list_schedule
from wellnest.db.types import utcnow
from wellnest.graphql.catalog.types import Discipline, Instructor, Package, StudioClass


@strawberry.type
class CatalogQuery:
    @strawberry.field
    async def disciplines(self, info: strawberry.Info, active_only: bool = True) -> List[Discipline]:
        db: AsyncSession = info.context.db
        rows = await list_disciplines(db, active_only=active_only)
        return [Discipline.from_model(d) for d in rows]

    @strawberry.field
    async def instructors(self, info: strawberry.Info, active_only: bool = True) -> List[Instructor]:
        db: AsyncSession = info.context.db
        rows = await list_instructors(db, active_only=active_only)
        return [Instructor.from_model(i) for i in rows]

    @strawberry.field
    async def packages(self, info: strawberry.Info, active_only: bool = True) -> List[Package]:
        """Packages on sale, featured first"""
        db: AsyncSession = info.context.db
        packages_data = await list_packages(db, active_only=active_only)
        return [Package.from_data(p) for p in packages_data]

    @strawberry.field
    async def package(self, info: strawberry.Info, package_id: int) -> Optional[Package]:
        db: AsyncSession = info.context.db

        package_id = coerce_int(package_id)
        if package_id is None:
            return None

        package = await get_package(db, package_id)
        return Package.from_data(package_to_data(package)) if package else None

    @strawberry.field
    async def schedule(
        self,
        info: strawberry.Info,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        discipline_id: Optional[int] = None
    ) -> List[StudioClass]:
        """Classes in [start, end). Defaults to the coming week."""
        db: AsyncSession = info.context.db
        start = start or utcnow()
        end = end or start + timedelta(days=7)
        classes_data = await list_schedule(db, start, end, discipline_id=discipline_id)
        return [StudioClass.from_data(c) for c in classes_data]

    @strawberry.field
    async def studio_class(self, info: strawberry.Info, class_id: int) -> Optional[StudioClass]:
        db: AsyncSession = info.context.db
        studio_class = await get_class(db, class_id)
        return StudioClass.from_data(class_to_data(studio_class)) if studio_class else None
