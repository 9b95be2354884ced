"""
GraphQL types for bookings, entitlements, waitlists and guest invitations.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
import strawberry

from wellnest.crud.purchasesCrud import PurchaseData
from wellnest.crud.reservationsCrud import InvitationData, ReservationData
from wellnest.crud.waitlistCrud import WaitlistData


@strawberry.type
class Reservation:
    id: int
    class_id: int
    user_id: int
    purchase_id: int
    status: str
    classes_used: int
    checked_in: bool
    checked_in_at: Optional[datetime]
    is_guest_reservation: bool
    guest_name: Optional[str]
    guest_email: Optional[str]
    guest_status: Optional[str]
    created_at: datetime
    cancelled_at: Optional[datetime] = None
    user_name: Optional[str] = None
    class_name: Optional[str] = None
    class_date_time: Optional[datetime] = None
    instructor_name: Optional[str] = None

    @classmethod
    def from_data(cls, data: ReservationData) -> "Reservation":
        return cls(**data.__dict__)


@strawberry.type
class Purchase:
    """A member's entitlement: credits plus an expiry"""
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

    @classmethod
    def from_data(cls, data: PurchaseData) -> "Purchase":
        return cls(**data.__dict__)


@strawberry.type
class WaitlistEntry:
    id: int
    class_id: int
    user_id: int
    position: int
    class_name: str
    class_date_time: datetime
    created_at: datetime

    @classmethod
    def from_data(cls, data: WaitlistData) -> "WaitlistEntry":
        return cls(**data.__dict__)


@strawberry.type
class Invitation:
    token: str
    host_name: str
    guest_name: Optional[str]
    guest_status: str
    class_name: str
    class_date_time: datetime
    instructor_name: str
    reservation_status: str
    is_past: bool

    @classmethod
    def from_data(cls, data: InvitationData) -> "Invitation":
        return cls(**data.__dict__)


# Inputs

@strawberry.input
class GuestInput:
    email: str
    name: Optional[str] = None


@strawberry.input
class CreateReservationInput:
    class_id: int
    purchase_id: Optional[int] = None
    guest: Optional[GuestInput] = None


@strawberry.input
class AssignPackageInput:
    user_id: int
    package_id: int


# Responses

@strawberry.type
class ReservationResponse:
    success: bool
    reservation: Optional[Reservation]
    updated_purchase: Optional[Purchase]
    message: str
    code: Optional[str] = None


@strawberry.type
class WaitlistResponse:
    success: bool
    entry: Optional[WaitlistEntry]
    message: str
    code: Optional[str] = None


@strawberry.type
class InvitationResponse:
    success: bool
    invitation: Optional[Invitation]
    message: str
    code: Optional[str] = None


@strawberry.type
class PurchaseResponse:
    success: bool
    purchase: Optional[Purchase]
    message: str
    code: Optional[str] = None


@strawberry.type
class ExpireResponse:
    success: bool
    expired_count: int
    message: str


@strawberry.type
class ReservationsResponse:
    reservations: List[Reservation]
    total_count: int
