"""
GraphQL types for the studio catalog: disciplines, instructors, packages and classes.
"""
from datetime import datetime, time
from decimal import Decimal
from typing import Optional, List
import strawberry

from wellnest.crud.catalogCrud import PackageData
from wellnest.crud.classCrud import ClassData
from wellnest.models import Discipline as DisciplineModel, Instructor as InstructorModel


@strawberry.type
class Discipline:
    id: int
    name: str
    slug: str
    description: Optional[str]
    benefits: Optional[str]
    order: int
    is_active: bool

    @classmethod
    def from_model(cls, d: DisciplineModel) -> "Discipline":
        return cls(
            id=d.id,
            name=d.name,
            slug=d.slug,
            description=d.description,
            benefits=d.benefits,
            order=d.order,
            is_active=d.is_active,
        )


@strawberry.type
class Instructor:
    id: int
    name: str
    bio: Optional[str]
    disciplines: List[str]
    is_active: bool

    @classmethod
    def from_model(cls, i: InstructorModel) -> "Instructor":
        return cls(id=i.id, name=i.name, bio=i.bio, disciplines=list(i.disciplines or []), is_active=i.is_active)


@strawberry.type
class Package:
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

    @classmethod
    def from_data(cls, data: PackageData) -> "Package":
        return cls(**data.__dict__)


@strawberry.type
class StudioClass:
    """Scheduled class with availability info"""
    id: int
    date_time: datetime
    end_time: datetime
    duration: int
    max_capacity: int
    current_count: int
    available_spots: int
    is_cancelled: bool
    is_recurring: bool
    class_type: Optional[str]
    discipline_id: int
    discipline_name: str
    complementary_discipline_name: Optional[str]
    instructor_id: int
    instructor_name: str

    @classmethod
    def from_data(cls, data: ClassData) -> "StudioClass":
        return cls(**data.__dict__)


# Inputs

@strawberry.input
class DisciplineInput:
    name: str
    slug: Optional[str] = None
    description: Optional[str] = None
    benefits: Optional[str] = None
    order: int = 0
    is_active: bool = True


@strawberry.input
class DisciplineUpdateInput:
    name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    benefits: Optional[str] = None
    order: Optional[int] = None
    is_active: Optional[bool] = None


@strawberry.input
class InstructorInput:
    name: str
    bio: Optional[str] = None
    disciplines: Optional[List[str]] = None
    is_active: bool = True


@strawberry.input
class InstructorUpdateInput:
    name: Optional[str] = None
    bio: Optional[str] = None
    disciplines: Optional[List[str]] = None
    is_active: Optional[bool] = None


@strawberry.input
class PackageInput:
    name: str
    class_count: int
    price: Decimal
    validity_days: int
    slug: Optional[str] = None
    description: Optional[str] = None
    is_shareable: bool = False
    max_shares: int = 0
    is_active: bool = True
    is_featured: bool = False


@strawberry.input
class PackageUpdateInput:
    name: Optional[str] = None
    description: Optional[str] = None
    class_count: Optional[int] = None
    price: Optional[Decimal] = None
    validity_days: Optional[int] = None
    is_shareable: Optional[bool] = None
    max_shares: Optional[int] = None
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None


@strawberry.input
class ScheduleClassesInput:
    """Weekday uses 0=Monday; start_time is wall-clock time at the studio"""
    discipline_id: int
    instructor_id: int
    weekday: int
    start_time: time
    duration: int
    max_capacity: Optional[int] = None
    weeks_ahead: int = 1
    is_recurring: bool = False
    complementary_discipline_id: Optional[int] = None
    class_type: Optional[str] = None


@strawberry.input
class ClassUpdateInput:
    date_time: Optional[datetime] = None
    duration: Optional[int] = None
    max_capacity: Optional[int] = None
    class_type: Optional[str] = None
    instructor_id: Optional[int] = None


# Responses

@strawberry.type
class DisciplineResponse:
    success: bool
    discipline: Optional[Discipline]
    message: str
    code: Optional[str] = None


@strawberry.type
class InstructorResponse:
    success: bool
    instructor: Optional[Instructor]
    message: str
    code: Optional[str] = None


@strawberry.type
class PackageResponse:
    success: bool
    package: Optional[Package]
    message: str
    code: Optional[str] = None


@strawberry.type
class ClassResponse:
    success: bool
    studio_class: Optional[StudioClass]
    message: str
    code: Optional[str] = None


@strawberry.type
class ScheduleResponse:
    success: bool
    classes_created: int
    class_ids: List[int]
    message: str
    code: Optional[str] = None


@strawberry.type
class CancelClassResponse:
    success: bool
    reservations_cancelled: int
    message: str
    code: Optional[str] = None


@strawberry.type
class DeleteResponse:
    success: bool
    message: str
    code: Optional[str] = None
