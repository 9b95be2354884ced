from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.api.schemas import RefundAdjudicate, RefundCreate, RefundList, RefundOut
from wellnest.auth.dependencies import get_current_user, require_admin
from wellnest.core.errors import ValidationError
from wellnest.core.state_machine import RefundStatus
from wellnest.crud.refundsCrud import (
    adjudicate, list_refunds, list_user_refunds, refund_to_data, request_refund,
)
from wellnest.db.postgresql import get_db
from wellnest.models import User

router = APIRouter()


@router.post("/refunds", response_model=RefundOut)
async def create_refund_request(
    body: RefundCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    refund = await request_refund(db, user_id=current_user.id, purchase_id=body.purchase_id, reason=body.reason)
    return RefundOut.model_validate(refund_to_data(refund))


@router.get("/refunds", response_model=RefundList)
async def my_refunds(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    refunds = await list_user_refunds(db, current_user.id)
    counts = {s.value: sum(1 for r in refunds if r.status == s.value) for s in RefundStatus}
    return RefundList(refunds=[RefundOut.model_validate(r) for r in refunds], status_counts=counts)


@router.get("/admin/refunds", response_model=RefundList)
async def all_refunds(
    status: Optional[str] = None,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        status_filter = RefundStatus(status.upper()) if status else None
    except ValueError as exc:
        raise ValidationError(f"Unknown refund status: {status}") from exc
    listing = await list_refunds(db, status_filter)
    return RefundList(
        refunds=[RefundOut.model_validate(r) for r in listing["refunds"]],
        status_counts=listing["status_counts"],
    )


@router.post("/admin/refunds", response_model=RefundOut)
async def process_refund(
    body: RefundAdjudicate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    refund = await adjudicate(
        db,
        refund_id=body.refund_id,
        action=body.action,
        admin_id=admin.id,
        notes=body.notes,
        custom_amount=body.custom_amount,
    )
    return RefundOut.model_validate(refund_to_data(refund))
