from typing import List, Optional

import strawberry
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.core.errors import InvitationNotFound
from wellnest.crud.purchasesCrud import list_user_purchases
from wellnest.crud.reservationsCrud import get_invitation, list_user_reservations
from wellnest.crud.waitlistCrud import list_class_waitlist, list_user_waitlist
from wellnest.graphql.auth.permissions import IsAdmin, IsAuthenticated
from wellnest.graphql.reservations.types import (
    Invitation, Purchase, Reservation, ReservationsResponse, WaitlistEntry,
)


@strawberry.type
class ReservationQuery:
    @strawberry.field(permission_classes=[IsAuthenticated])
    async def my_reservations(
        self,
        info: strawberry.Info,
        upcoming_only: bool = False,
        include_cancelled: bool = True
    ) -> ReservationsResponse:
        db: AsyncSession = info.context.db
        reservations_data = await list_user_reservations(
            db,
            info.context.user.id,
            upcoming_only=upcoming_only,
            include_cancelled=include_cancelled,
        )
        return ReservationsResponse(
            reservations=[Reservation.from_data(r) for r in reservations_data],
            total_count=len(reservations_data)
        )

    @strawberry.field(permission_classes=[IsAuthenticated])
    async def my_purchases(self, info: strawberry.Info) -> List[Purchase]:
        """Every purchase the member owns, newest first"""
        db: AsyncSession = info.context.db
        purchases_data = await list_user_purchases(db, info.context.user.id)
        return [Purchase.from_data(p) for p in purchases_data]

    @strawberry.field(permission_classes=[IsAuthenticated])
    async def my_waitlist(self, info: strawberry.Info) -> List[WaitlistEntry]:
        db: AsyncSession = info.context.db
        entries = await list_user_waitlist(db, info.context.user.id)
        return [WaitlistEntry.from_data(e) for e in entries]

    @strawberry.field(permission_classes=[IsAdmin])
    async def class_waitlist(self, info: strawberry.Info, class_id: int) -> List[WaitlistEntry]:
        db: AsyncSession = info.context.db
        entries = await list_class_waitlist(db, class_id)
        return [WaitlistEntry.from_data(e) for e in entries]

    @strawberry.field
    async def invitation(self, info: strawberry.Info, token: str) -> Optional[Invitation]:
        """Public lookup used by the guest's invitation link"""
        db: AsyncSession = info.context.db
        try:
            return Invitation.from_data(await get_invitation(db, token))
        except InvitationNotFound:
            return None
