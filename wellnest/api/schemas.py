"""
Request and response bodies for the REST surface. JSON keys are camelCase.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# Reservations

class GuestIn(CamelModel):
    email: str
    name: Optional[str] = None


class ReservationCreate(CamelModel):
    class_id: int
    purchase_id: Optional[int] = None
    guest: Optional[GuestIn] = None


class ReservationTransfer(CamelModel):
    purchase_id: int


class ReservationOut(CamelModel):
    id: int
    class_id: int
    user_id: int
    purchase_id: int
    status: str
    classes_used: int
    checked_in: bool
    checked_in_at: Optional[datetime] = None
    is_guest_reservation: bool
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_status: Optional[str] = None
    created_at: datetime
    cancelled_at: Optional[datetime] = None
    class_name: Optional[str] = None
    class_date_time: Optional[datetime] = None
    instructor_name: Optional[str] = None


class PurchaseOut(CamelModel):
    id: int
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
    discount_code: Optional[str] = None
    order_id: Optional[int] = None
    created_at: datetime


class ReservationCreated(CamelModel):
    reservation: ReservationOut
    updated_purchase: PurchaseOut


# Cart and orders

class CartItemIn(CamelModel):
    package_id: int
    quantity: int = Field(default=1, ge=1)


class CartItemUpdate(CamelModel):
    package_id: int
    quantity: int = Field(ge=0)


class CartLineOut(CamelModel):
    package_id: int
    package_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    is_available: bool


class CartOut(CamelModel):
    items: List[CartLineOut]
    subtotal: Decimal


class OrderCreate(CamelModel):
    discount_code: Optional[str] = None
    payment_method: Optional[str] = "payway"


class OrderItemOut(CamelModel):
    package_id: int
    package_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


class TransactionOut(CamelModel):
    id: int
    provider: str
    status: str
    provider_transaction_id: Optional[str] = None
    authorization_number: Optional[str] = None
    card_brand: Optional[str] = None
    card_last_digits: Optional[str] = None
    created_at: datetime


class OrderOut(CamelModel):
    id: int
    user_id: int
    status: str
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    discount_code: Optional[str] = None
    payment_method: Optional[str] = None
    created_at: datetime
    paid_at: Optional[datetime] = None
    items: List[OrderItemOut] = []
    transactions: List[TransactionOut] = []


class OrderPlaced(CamelModel):
    order: OrderOut
    redirect_url: str


class OrderEnvelope(CamelModel):
    order: OrderOut


class OrderList(CamelModel):
    orders: List[OrderOut]


class PaymentConfirm(CamelModel):
    order_id: int
    status: str
    transaction_id: Optional[str] = None
    authorization_number: Optional[str] = None
    reference_number: Optional[str] = None
    card_brand: Optional[str] = None
    card_last_digits: Optional[str] = None
    card_holder: Optional[str] = None


class PaywayInitOut(CamelModel):
    payload: Dict[str, str]
    order: OrderOut
    script_url: str
    env: str


# Discounts

class DiscountValidate(CamelModel):
    code: str
    package_ids: List[int] = []


class DiscountValidation(CamelModel):
    valid: bool
    code: Optional[str] = None
    percentage: Optional[int] = None
    error: Optional[str] = None


# Refunds

class RefundCreate(CamelModel):
    purchase_id: int
    reason: Optional[str] = None


class RefundAdjudicate(CamelModel):
    refund_id: int
    action: str
    notes: Optional[str] = None
    custom_amount: Optional[Decimal] = None


class RefundOut(CamelModel):
    id: int
    user_id: int
    purchase_id: int
    package_name: str
    amount: Decimal
    eligible: bool
    status: str
    reason: str
    policy_snapshot: Dict[str, Any]
    notes: Optional[str] = None
    provider_ref: Optional[str] = None
    created_at: datetime
    refunded_at: Optional[datetime] = None


class RefundList(CamelModel):
    refunds: List[RefundOut]
    status_counts: Dict[str, int]


# Attendance

class AttendanceScan(CamelModel):
    qr_code: str
    class_id: int


class CheckInOut(CamelModel):
    reservation_id: int
    user_id: int
    user_name: str
    user_email: str
    checked_in_at: Optional[datetime] = None
    guest_name: Optional[str] = None


# Invitations

class InvitationOut(CamelModel):
    token: str
    host_name: str
    guest_name: Optional[str] = None
    guest_status: str
    class_name: str
    class_date_time: datetime
    instructor_name: str
    reservation_status: str
    is_past: bool


class InvitationAnswer(CamelModel):
    accept: bool
