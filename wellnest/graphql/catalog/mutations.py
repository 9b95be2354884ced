import strawberry
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.core.errors import DomainError
from wellnest.crud.catalogCrud import (
    create_discipline, update_discipline, delete_discipline,
    create_instructor, update_instructor,
    create_package, update_package, package_to_data,
)
from wellnest.crud.classCrud import cancel_class, class_to_data, get_class, update_class
from wellnest.graphql.auth.permissions import IsAdmin
from wellnest.graphql.catalog.types import (
    Discipline, DisciplineInput, DisciplineUpdateInput, DisciplineResponse,
    Instructor, InstructorInput, InstructorUpdateInput, InstructorResponse,
    Package, PackageInput, PackageUpdateInput, PackageResponse,
    StudioClass, ScheduleClassesInput, ClassUpdateInput, ClassResponse,
    ScheduleResponse, CancelClassResponse, DeleteResponse,
)
from wellnest.graphql.utils import updates_from
from wellnest.services.class_scheduler import ClassSchedulerService


@strawberry.type
class CatalogMutation:
    @strawberry.mutation(permission_classes=[IsAdmin])
    async def create_discipline(self, info: strawberry.Info, input: DisciplineInput) -> DisciplineResponse:
        db: AsyncSession = info.context.db

        try:
            discipline = await create_discipline(
                db,
                name=input.name,
                slug=input.slug,
                description=input.description,
                benefits=input.benefits,
                order=input.order,
                is_active=input.is_active,
            )
            return DisciplineResponse(
                success=True,
                discipline=Discipline.from_model(discipline),
                message="Discipline created"
            )
        except DomainError as e:
            await db.rollback()
            return DisciplineResponse(success=False, discipline=None, message=e.message, code=e.code.value)

    @strawberry.mutation(permission_classes=[IsAdmin])
    async def update_discipline(self, info: strawberry.Info, discipline_id: int, input: DisciplineUpdateInput) -> DisciplineResponse:
        db: AsyncSession = info.context.db

        try:
            discipline = await update_discipline(db, discipline_id, updates_from(input))
            return DisciplineResponse(
                success=True,
                discipline=Discipline.from_model(discipline),
                message="Discipline updated"
            )
        except DomainError as e:
            await db.rollback()
            return DisciplineResponse(success=False, discipline=None, message=e.message, code=e.code.value)

    @strawberry.mutation(permission_classes=[IsAdmin])
    async def delete_discipline(self, info: strawberry.Info, discipline_id: int) -> DeleteResponse:
        db: AsyncSession = info.context.db

        try:
            await delete_discipline(db, discipline_id)
            return DeleteResponse(success=True, message="Discipline deleted")
        except DomainError as e:
            await db.rollback()
            return DeleteResponse(success=False, message=e.message, code=e.code.value)

    @strawberry.mutation(permission_classes=[IsAdmin])
    async def create_instructor(self, info: strawberry.Info, input: InstructorInput) -> InstructorResponse:
        db: AsyncSession = info.context.db

        try:
            instructor = await create_instructor(
                db,
                name=input.name,
                bio=input.bio,
                disciplines=input.disciplines,
                is_active=input.is_active,
            )
            return InstructorResponse(
                success=True,
                instructor=Instructor.from_model(instructor),
                message="Instructor created"
            )
        except DomainError as e:
            await db.rollback()
            return InstructorResponse(success=False, instructor=None, message=e.message, code=e.code.value)

    @strawberry.mutation(permission_classes=[IsAdmin])
    async def update_instructor(self, info: strawberry.Info, instructor_id: int, input: InstructorUpdateInput) -> InstructorResponse:
        db: AsyncSession = info.context.db

        try:
            instructor = await update_instructor(db, instructor_id, updates_from(input))
            return InstructorResponse(
                success=True,
                instructor=Instructor.from_model(instructor),
                message="Instructor updated"
            )
        except DomainError as e:
            await db.rollback()
            return InstructorResponse(success=False, instructor=None, message=e.message, code=e.code.value)

    @strawberry.mutation(permission_classes=[IsAdmin])
    async def create_package(self, info: strawberry.Info, input: PackageInput) -> PackageResponse:
        db: AsyncSession = info.context.db

        try:
            package = await create_package(
                db,
                name=input.name,
                class_count=input.class_count,
                price=input.price,
                validity_days=input.validity_days,
                slug=input.slug,
                description=input.description,
                is_shareable=input.is_shareable,
                max_shares=input.max_shares,
                is_active=input.is_active,
                is_featured=input.is_featured,
            )
            return PackageResponse(
                success=True,
                package=Package.from_data(package_to_data(package)),
                message="Package created"
            )
        except DomainError as e:
            await db.rollback()
            return PackageResponse(success=False, package=None, message=e.message, code=e.code.value)

    @strawberry.mutation(permission_classes=[IsAdmin])
    async def update_package(self, info: strawberry.Info, package_id: int, input: PackageUpdateInput) -> PackageResponse:
        """Price edits only affect future orders"""
        db: AsyncSession = info.context.db

        try:
            package = await update_package(db, package_id, updates_from(input))
            return PackageResponse(
                success=True,
                package=Package.from_data(package_to_data(package)),
                message="Package updated"
            )
        except DomainError as e:
            await db.rollback()
            return PackageResponse(success=False, package=None, message=e.message, code=e.code.value)

    @strawberry.mutation(permission_classes=[IsAdmin])
    async def schedule_classes(self, info: strawberry.Info, input: ScheduleClassesInput) -> ScheduleResponse:
        """Create a single class or a weekly recurring batch"""
        db: AsyncSession = info.context.db

        try:
            scheduler = ClassSchedulerService(db)
            stats = await scheduler.schedule(
                discipline_id=input.discipline_id,
                instructor_id=input.instructor_id,
                weekday=input.weekday,
                start_time=input.start_time,
                duration=input.duration,
                max_capacity=input.max_capacity,
                weeks_ahead=input.weeks_ahead,
                is_recurring=input.is_recurring,
                complementary_discipline_id=input.complementary_discipline_id,
                class_type=input.class_type,
            )
            return ScheduleResponse(
                success=True,
                classes_created=stats["classes_created"],
                class_ids=stats["class_ids"],
                message=f"{stats['classes_created']} class(es) scheduled"
            )
        except DomainError as e:
            await db.rollback()
            return ScheduleResponse(
                success=False, classes_created=0, class_ids=[], message=e.message, code=e.code.value
            )

    @strawberry.mutation(permission_classes=[IsAdmin])
    async def update_class(self, info: strawberry.Info, class_id: int, input: ClassUpdateInput) -> ClassResponse:
        db: AsyncSession = info.context.db

        try:
            await update_class(db, class_id, updates_from(input))
            studio_class = await get_class(db, class_id)
            return ClassResponse(
                success=True,
                studio_class=StudioClass.from_data(class_to_data(studio_class)),
                message="Class updated"
            )
        except DomainError as e:
            await db.rollback()
            return ClassResponse(success=False, studio_class=None, message=e.message, code=e.code.value)

    @strawberry.mutation(permission_classes=[IsAdmin])
    async def cancel_class(self, info: strawberry.Info, class_id: int) -> CancelClassResponse:
        """Cancel a class, refunding every confirmed booking and clearing its waitlist"""
        db: AsyncSession = info.context.db

        try:
            stats = await cancel_class(db, class_id)
            return CancelClassResponse(
                success=True,
                reservations_cancelled=stats["reservations_cancelled"],
                message="Class cancelled"
            )
        except DomainError as e:
            await db.rollback()
            return CancelClassResponse(
                success=False, reservations_cancelled=0, message=e.message, code=e.code.value
            )
