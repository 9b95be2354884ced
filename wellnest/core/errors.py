"""Domain error taxonomy shared by the CRUD layer, REST routers and GraphQL resolvers."""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """Domain error codes."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    POLICY_VIOLATION = "POLICY_VIOLATION"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"

    # Catalog
    SLUG_TAKEN = "SLUG_TAKEN"
    DISCIPLINE_IN_USE = "DISCIPLINE_IN_USE"
    CAPACITY_BELOW_BOOKINGS = "CAPACITY_BELOW_BOOKINGS"

    # Entitlements
    PURCHASE_NOT_FOUND = "PURCHASE_NOT_FOUND"
    NO_ACTIVE_PACKAGE = "NO_ACTIVE_PACKAGE"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    EXPIRED = "EXPIRED"
    NOT_ACTIVE = "NOT_ACTIVE"

    # Reservations
    CLASS_NOT_FOUND = "CLASS_NOT_FOUND"
    CLASS_CANCELLED = "CLASS_CANCELLED"
    CLASS_ALREADY_STARTED = "CLASS_ALREADY_STARTED"
    CLASS_FULL = "CLASS_FULL"
    ALREADY_RESERVED = "ALREADY_RESERVED"
    TIME_CONFLICT = "TIME_CONFLICT"
    NOT_SHAREABLE = "NOT_SHAREABLE"
    RESERVATION_NOT_FOUND = "RESERVATION_NOT_FOUND"
    NOT_OWNER = "NOT_OWNER"
    ALREADY_CANCELLED = "ALREADY_CANCELLED"
    TOO_LATE_TO_CANCEL = "TOO_LATE_TO_CANCEL"
    INVITATION_NOT_FOUND = "INVITATION_NOT_FOUND"
    INVITATION_EXPIRED = "INVITATION_EXPIRED"
    RESERVATION_CANCELLED = "RESERVATION_CANCELLED"
    ALREADY_RESPONDED = "ALREADY_RESPONDED"
    ALREADY_WAITLISTED = "ALREADY_WAITLISTED"
    WAITLIST_ENTRY_NOT_FOUND = "WAITLIST_ENTRY_NOT_FOUND"

    # Commerce
    EMPTY_CART = "EMPTY_CART"
    PACKAGE_UNAVAILABLE = "PACKAGE_UNAVAILABLE"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    ORDER_NOT_PENDING = "ORDER_NOT_PENDING"

    # Discounts
    DISCOUNT_NOT_FOUND = "DISCOUNT_NOT_FOUND"
    DISCOUNT_EXPIRED = "DISCOUNT_EXPIRED"
    DISCOUNT_ALREADY_USED = "DISCOUNT_ALREADY_USED"
    DISCOUNT_EXHAUSTED = "DISCOUNT_EXHAUSTED"
    DISCOUNT_NOT_APPLICABLE = "DISCOUNT_NOT_APPLICABLE"

    # Refunds
    REFUND_NOT_FOUND = "REFUND_NOT_FOUND"
    REFUND_ALREADY_REQUESTED = "REFUND_ALREADY_REQUESTED"
    ALREADY_REFUNDED = "ALREADY_REFUNDED"
    ALREADY_FINALIZED = "ALREADY_FINALIZED"

    # Attendance
    USER_NOT_FOUND = "USER_NOT_FOUND"
    NO_RESERVATION = "NO_RESERVATION"
    ALREADY_CHECKED_IN = "ALREADY_CHECKED_IN"
    CLASS_ENDED = "CLASS_ENDED"


class DomainError(Exception):
    """Base domain error with code, user-safe message and HTTP status."""

    status: int = 400
    code: ErrorCode = ErrorCode.VALIDATION_ERROR
    default_message: str = "Invalid request"

    def __init__(self, message: Optional[str] = None, code: Optional[ErrorCode] = None) -> None:
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code.value}


# Categories

class ValidationError(DomainError):
    status = 400
    code = ErrorCode.VALIDATION_ERROR
    default_message = "Invalid request"


class NotFoundError(DomainError):
    status = 404
    code = ErrorCode.NOT_FOUND
    default_message = "Not found"


class ConflictError(DomainError):
    status = 409
    code = ErrorCode.CONFLICT
    default_message = "Conflict with current state"


class PolicyError(DomainError):
    status = 403
    code = ErrorCode.POLICY_VIOLATION
    default_message = "Operation not allowed by studio policy"


class AuthError(DomainError):
    status = 401
    code = ErrorCode.UNAUTHENTICATED
    default_message = "Authentication required"


class ForbiddenError(AuthError):
    status = 403
    code = ErrorCode.FORBIDDEN
    default_message = "Not enough permissions"


class UpstreamError(DomainError):
    status = 502
    code = ErrorCode.UPSTREAM_ERROR
    default_message = "Payment provider unavailable"


# Catalog

class SlugTaken(ConflictError):
    code = ErrorCode.SLUG_TAKEN
    default_message = "Slug is already in use"


class DisciplineInUse(ConflictError):
    code = ErrorCode.DISCIPLINE_IN_USE
    default_message = "Discipline is referenced by scheduled classes"


class CapacityBelowBookings(ConflictError):
    code = ErrorCode.CAPACITY_BELOW_BOOKINGS
    default_message = "Capacity cannot be lower than current bookings"


# Entitlements

class PurchaseNotFound(NotFoundError):
    code = ErrorCode.PURCHASE_NOT_FOUND
    default_message = "Purchase not found"


class NoActivePackage(ValidationError):
    code = ErrorCode.NO_ACTIVE_PACKAGE
    default_message = "No active package with enough classes"


class InsufficientBalance(ConflictError):
    code = ErrorCode.INSUFFICIENT_BALANCE
    default_message = "Not enough classes remaining"


class Expired(PolicyError):
    code = ErrorCode.EXPIRED
    default_message = "Package has expired"


class NotActive(PolicyError):
    code = ErrorCode.NOT_ACTIVE
    default_message = "Package is not active"


# Reservations

class ClassNotFound(NotFoundError):
    code = ErrorCode.CLASS_NOT_FOUND
    default_message = "Class not found"


class ClassCancelled(PolicyError):
    code = ErrorCode.CLASS_CANCELLED
    default_message = "Class has been cancelled"


class ClassAlreadyStarted(PolicyError):
    code = ErrorCode.CLASS_ALREADY_STARTED
    default_message = "Class has already started"


class ClassFull(ConflictError):
    code = ErrorCode.CLASS_FULL
    default_message = "Class is full"


class AlreadyReserved(ConflictError):
    code = ErrorCode.ALREADY_RESERVED
    default_message = "You already have a reservation for this class"


class TimeConflict(ConflictError):
    code = ErrorCode.TIME_CONFLICT
    default_message = "You already have a reservation at this time"


class NotShareable(PolicyError):
    code = ErrorCode.NOT_SHAREABLE
    default_message = "This package does not allow guests"


class ReservationNotFound(NotFoundError):
    code = ErrorCode.RESERVATION_NOT_FOUND
    default_message = "Reservation not found"


class NotOwner(ForbiddenError):
    code = ErrorCode.NOT_OWNER
    default_message = "Not allowed to modify this resource"


class AlreadyCancelled(ConflictError):
    code = ErrorCode.ALREADY_CANCELLED
    default_message = "Reservation is already cancelled"


class TooLateToCancel(PolicyError):
    code = ErrorCode.TOO_LATE_TO_CANCEL
    default_message = "Too late to cancel this reservation"


class InvitationNotFound(NotFoundError):
    code = ErrorCode.INVITATION_NOT_FOUND
    default_message = "Invitation not found"


class InvitationExpired(PolicyError):
    code = ErrorCode.INVITATION_EXPIRED
    default_message = "Class has already taken place"


class ReservationCancelled(PolicyError):
    code = ErrorCode.RESERVATION_CANCELLED
    default_message = "The reservation for this invitation was cancelled"


class AlreadyResponded(ConflictError):
    code = ErrorCode.ALREADY_RESPONDED
    default_message = "Invitation already answered"


class AlreadyWaitlisted(ConflictError):
    code = ErrorCode.ALREADY_WAITLISTED
    default_message = "Already on the waitlist for this class"


class WaitlistEntryNotFound(NotFoundError):
    code = ErrorCode.WAITLIST_ENTRY_NOT_FOUND
    default_message = "Waitlist entry not found"


# Commerce

class EmptyCart(ValidationError):
    code = ErrorCode.EMPTY_CART
    default_message = "Cart is empty"


class PackageUnavailable(ValidationError):
    code = ErrorCode.PACKAGE_UNAVAILABLE
    default_message = "Package is not available"


class OrderNotFound(NotFoundError):
    code = ErrorCode.ORDER_NOT_FOUND
    default_message = "Order not found"


class OrderNotPending(ConflictError):
    code = ErrorCode.ORDER_NOT_PENDING
    default_message = "Order is not pending"


# Discounts

class DiscountError(ValidationError):
    """Any reason a discount code cannot be applied."""

    code = ErrorCode.DISCOUNT_NOT_FOUND
    default_message = "Invalid discount code"


class DiscountNotFound(DiscountError):
    code = ErrorCode.DISCOUNT_NOT_FOUND
    default_message = "Invalid or inactive discount code"


class DiscountExpired(DiscountError):
    code = ErrorCode.DISCOUNT_EXPIRED
    default_message = "Discount code is not valid at this time"


class DiscountAlreadyUsed(DiscountError):
    code = ErrorCode.DISCOUNT_ALREADY_USED
    default_message = "You have already used this discount code"


class DiscountExhausted(DiscountError):
    code = ErrorCode.DISCOUNT_EXHAUSTED
    default_message = "Discount code has reached its usage limit"


class DiscountNotApplicable(DiscountError):
    code = ErrorCode.DISCOUNT_NOT_APPLICABLE
    default_message = "Discount code does not apply to these packages"


# Refunds

class RefundNotFound(NotFoundError):
    code = ErrorCode.REFUND_NOT_FOUND
    default_message = "Refund request not found"


class RefundAlreadyRequested(ConflictError):
    code = ErrorCode.REFUND_ALREADY_REQUESTED
    default_message = "A refund request is already open for this purchase"


class AlreadyRefunded(ConflictError):
    code = ErrorCode.ALREADY_REFUNDED
    default_message = "Purchase has already been refunded"


class AlreadyFinalized(ConflictError):
    code = ErrorCode.ALREADY_FINALIZED
    default_message = "Request has already been finalized"


# Attendance

class UserNotFound(NotFoundError):
    code = ErrorCode.USER_NOT_FOUND
    default_message = "User not found"


class NoReservation(NotFoundError):
    code = ErrorCode.NO_RESERVATION
    default_message = "User has no confirmed reservation for this class"


class AlreadyCheckedIn(ConflictError):
    code = ErrorCode.ALREADY_CHECKED_IN
    default_message = "User is already checked in"


class ClassEnded(PolicyError):
    code = ErrorCode.CLASS_ENDED
    default_message = "Class has already ended"
