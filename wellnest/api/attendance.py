from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.api.schemas import AttendanceScan, CheckInOut
from wellnest.auth.dependencies import require_admin
from wellnest.crud.attendanceCrud import check_in
from wellnest.db.postgresql import get_db
from wellnest.models import User

router = APIRouter()


@router.post("/admin/attendance/scan", response_model=CheckInOut)
async def scan_member(
    body: AttendanceScan,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Door scanner: check in the member whose QR code was read"""
    reservation, member = await check_in(db, qr_token=body.qr_code, class_id=body.class_id, admin_id=admin.id)
    return CheckInOut(
        reservation_id=reservation.id,
        user_id=member.id,
        user_name=member.name,
        user_email=member.email,
        checked_in_at=reservation.checked_in_at,
        guest_name=reservation.guest_name,
    )
