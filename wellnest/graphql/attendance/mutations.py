import strawberry
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.core.errors import DomainError
from wellnest.crud.attendanceCrud import check_in, manual_check_in
from wellnest.graphql.attendance.types import CheckInResponse
from wellnest.graphql.auth.permissions import IsAdmin


@strawberry.type
class AttendanceMutation:
    @strawberry.mutation(permission_classes=[IsAdmin])
    async def scan_check_in(self, info: strawberry.Info, qr_code: str, class_id: int) -> CheckInResponse:
        db: AsyncSession = info.context.db

        try:
            reservation, member = await check_in(
                db, qr_token=qr_code, class_id=class_id, admin_id=info.context.user.id
            )
            return CheckInResponse(
                success=True,
                message=f"{member.name} checked in",
                reservation_id=reservation.id,
                user_name=member.name,
                checked_in=reservation.checked_in,
                checked_in_at=reservation.checked_in_at,
                guest_name=reservation.guest_name,
            )
        except DomainError as e:
            await db.rollback()
            return CheckInResponse(success=False, message=e.message, code=e.code.value)

    @strawberry.mutation(permission_classes=[IsAdmin])
    async def manual_check_in(self, info: strawberry.Info, reservation_id: int) -> CheckInResponse:
        """Toggle attendance from the roster"""
        db: AsyncSession = info.context.db

        try:
            reservation = await manual_check_in(db, reservation_id=reservation_id, admin_id=info.context.user.id)
            return CheckInResponse(
                success=True,
                message="Checked in" if reservation.checked_in else "Check-in undone",
                reservation_id=reservation.id,
                user_name=reservation.user.name,
                checked_in=reservation.checked_in,
                checked_in_at=reservation.checked_in_at,
                guest_name=reservation.guest_name,
            )
        except DomainError as e:
            await db.rollback()
            return CheckInResponse(success=False, message=e.message, code=e.code.value)
