import strawberry
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.core.errors import DomainError
from wellnest.crud.purchasesCrud import assign_package, expire_overdue_purchases, purchase_to_data
from wellnest.crud.reservationsCrud import (
    GuestInfo,
    cancel_reservation,
    create_reservation,
    get_invitation,
    reservation_to_data,
    respond_to_invitation,
    transfer_reservation,
)
from wellnest.crud.waitlistCrud import entry_to_data, join_waitlist, leave_waitlist
from wellnest.graphql.auth.permissions import IsAdmin, IsAuthenticated
from wellnest.graphql.reservations.types import (
    AssignPackageInput, CreateReservationInput,
    ExpireResponse, InvitationResponse, PurchaseResponse, ReservationResponse, WaitlistResponse,
    Invitation, Purchase, Reservation, WaitlistEntry,
)


def _reservation_response(reservation, purchase, message: str) -> ReservationResponse:
    return ReservationResponse(
        success=True,
        reservation=Reservation.from_data(reservation_to_data(reservation)),
        updated_purchase=Purchase.from_data(purchase_to_data(purchase)),
        message=message
    )


def _reservation_error(e: DomainError) -> ReservationResponse:
    return ReservationResponse(
        success=False, reservation=None, updated_purchase=None, message=e.message, code=e.code.value
    )


@strawberry.type
class ReservationMutation:
    @strawberry.mutation(permission_classes=[IsAuthenticated])
    async def create_reservation(self, info: strawberry.Info, input: CreateReservationInput) -> ReservationResponse:
        """Book a class for the current member, optionally bringing one guest"""
        db: AsyncSession = info.context.db

        try:
            guest = GuestInfo(email=input.guest.email, name=input.guest.name) if input.guest else None
            reservation, purchase = await create_reservation(
                db,
                user_id=info.context.user.id,
                class_id=input.class_id,
                purchase_id=input.purchase_id,
                guest=guest,
            )
            return _reservation_response(reservation, purchase, "Reservation confirmed")
        except DomainError as e:
            await db.rollback()
            return _reservation_error(e)

    @strawberry.mutation(permission_classes=[IsAuthenticated])
    async def cancel_reservation(self, info: strawberry.Info, reservation_id: int) -> ReservationResponse:
        db: AsyncSession = info.context.db

        try:
            reservation, purchase = await cancel_reservation(
                db, reservation_id=reservation_id, acting_user_id=info.context.user.id
            )
            return _reservation_response(reservation, purchase, "Reservation cancelled")
        except DomainError as e:
            await db.rollback()
            return _reservation_error(e)

    @strawberry.mutation(permission_classes=[IsAuthenticated])
    async def transfer_reservation(self, info: strawberry.Info, reservation_id: int, purchase_id: int) -> ReservationResponse:
        """Move the credits backing a booking onto another of the member's purchases"""
        db: AsyncSession = info.context.db

        try:
            reservation, purchase = await transfer_reservation(
                db,
                reservation_id=reservation_id,
                acting_user_id=info.context.user.id,
                new_purchase_id=purchase_id,
            )
            return _reservation_response(reservation, purchase, "Reservation transferred")
        except DomainError as e:
            await db.rollback()
            return _reservation_error(e)

    @strawberry.mutation(permission_classes=[IsAuthenticated])
    async def join_waitlist(self, info: strawberry.Info, class_id: int) -> WaitlistResponse:
        db: AsyncSession = info.context.db

        try:
            entry = await join_waitlist(db, user_id=info.context.user.id, class_id=class_id)
            return WaitlistResponse(
                success=True,
                entry=WaitlistEntry.from_data(entry_to_data(entry)),
                message=f"Added to waitlist at position {entry.position}"
            )
        except DomainError as e:
            await db.rollback()
            return WaitlistResponse(success=False, entry=None, message=e.message, code=e.code.value)

    @strawberry.mutation(permission_classes=[IsAuthenticated])
    async def leave_waitlist(self, info: strawberry.Info, entry_id: int) -> WaitlistResponse:
        db: AsyncSession = info.context.db

        try:
            await leave_waitlist(db, entry_id=entry_id, user_id=info.context.user.id)
            return WaitlistResponse(success=True, entry=None, message="Removed from waitlist")
        except DomainError as e:
            await db.rollback()
            return WaitlistResponse(success=False, entry=None, message=e.message, code=e.code.value)

    @strawberry.mutation
    async def respond_to_invitation(self, info: strawberry.Info, token: str, accept: bool) -> InvitationResponse:
        """Guest accepts or declines; no login required, the token is the credential"""
        db: AsyncSession = info.context.db

        try:
            await respond_to_invitation(db, token=token, accept=accept)
            invitation = await get_invitation(db, token)
            return InvitationResponse(
                success=True,
                invitation=Invitation.from_data(invitation),
                message="Invitation accepted" if accept else "Invitation declined"
            )
        except DomainError as e:
            await db.rollback()
            return InvitationResponse(success=False, invitation=None, message=e.message, code=e.code.value)

    @strawberry.mutation(permission_classes=[IsAdmin])
    async def assign_package(self, info: strawberry.Info, input: AssignPackageInput) -> PurchaseResponse:
        """Grant a complimentary package to a member"""
        db: AsyncSession = info.context.db

        try:
            purchase = await assign_package(
                db,
                admin_id=info.context.user.id,
                user_id=input.user_id,
                package_id=input.package_id,
            )
            return PurchaseResponse(
                success=True,
                purchase=Purchase.from_data(purchase_to_data(purchase)),
                message="Package assigned"
            )
        except DomainError as e:
            await db.rollback()
            return PurchaseResponse(success=False, purchase=None, message=e.message, code=e.code.value)

    @strawberry.mutation(permission_classes=[IsAdmin])
    async def expire_overdue_purchases(self, info: strawberry.Info) -> ExpireResponse:
        db: AsyncSession = info.context.db
        count = await expire_overdue_purchases(db)
        return ExpireResponse(success=True, expired_count=count, message=f"{count} purchase(s) expired")
