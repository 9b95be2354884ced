"""Status enums and the transition tables that guard them."""

from enum import Enum
from typing import Dict, FrozenSet, Type, TypeVar

S = TypeVar("S", bound=Enum)


class UserRole(str, Enum):
    MEMBER = "MEMBER"
    ADMIN = "ADMIN"


class PurchaseStatus(str, Enum):
    ACTIVE = "ACTIVE"
    DEPLETED = "DEPLETED"
    EXPIRED = "EXPIRED"
    REFUNDED = "REFUNDED"


class ReservationStatus(str, Enum):
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class GuestStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class TransactionStatus(str, Enum):
    APPROVED = "APPROVED"
    DENIED = "DENIED"
    PENDING = "PENDING"


class PaymentProvider(str, Enum):
    PAYWAY = "PAYWAY"
    FREE = "FREE"
    MANUAL = "MANUAL"


class RedemptionStatus(str, Enum):
    APPLIED = "APPLIED"
    REFUNDED = "REFUNDED"


class RefundStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    REFUNDED = "REFUNDED"
    REJECTED = "REJECTED"


class RefundAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    PROCESSING = "processing"


ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PAID, OrderStatus.FAILED, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset(),
    OrderStatus.FAILED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# Order status a provider result moves a PENDING order to; PENDING results move nothing
PAYMENT_OUTCOMES: Dict[TransactionStatus, OrderStatus] = {
    TransactionStatus.APPROVED: OrderStatus.PAID,
    TransactionStatus.DENIED: OrderStatus.FAILED,
}

REFUND_TRANSITIONS: Dict[RefundStatus, FrozenSet[RefundStatus]] = {
    RefundStatus.PENDING: frozenset({RefundStatus.PROCESSING, RefundStatus.REFUNDED, RefundStatus.REJECTED}),
    RefundStatus.PROCESSING: frozenset({RefundStatus.REFUNDED, RefundStatus.REJECTED}),
    RefundStatus.REFUNDED: frozenset(),
    RefundStatus.REJECTED: frozenset(),
}

REFUND_ACTION_TARGETS: Dict[RefundAction, RefundStatus] = {
    RefundAction.APPROVE: RefundStatus.REFUNDED,
    RefundAction.REJECT: RefundStatus.REJECTED,
    RefundAction.PROCESSING: RefundStatus.PROCESSING,
}


def is_terminal(table: Dict[S, FrozenSet[S]], state: S) -> bool:
    return not table[state]


def can_transition(table: Dict[S, FrozenSet[S]], current: S, target: S) -> bool:
    return target in table[current]


def coerce_status(enum_cls: Type[S], value: object) -> S:
    """Accept either the enum member or its raw string value."""
    if isinstance(value, enum_cls):
        return value
    return enum_cls(value)
