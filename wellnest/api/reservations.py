from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.api.schemas import (
    ReservationCreate, ReservationCreated, ReservationOut, ReservationTransfer, PurchaseOut,
    InvitationOut, InvitationAnswer,
)
from wellnest.auth.dependencies import get_current_user
from wellnest.crud.purchasesCrud import purchase_to_data
from wellnest.crud.reservationsCrud import (
    GuestInfo, create_reservation, cancel_reservation, transfer_reservation,
    get_invitation, respond_to_invitation, reservation_to_data,
)
from wellnest.db.postgresql import get_db
from wellnest.models import User

router = APIRouter()


def _created(reservation, purchase) -> ReservationCreated:
    return ReservationCreated(
        reservation=ReservationOut.model_validate(reservation_to_data(reservation)),
        updated_purchase=PurchaseOut.model_validate(purchase_to_data(purchase)),
    )


@router.post("/reservations", response_model=ReservationCreated)
async def book_class(
    body: ReservationCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Book a class for the caller, optionally with one guest"""
    guest = GuestInfo(email=body.guest.email, name=body.guest.name) if body.guest else None
    reservation, purchase = await create_reservation(
        db,
        user_id=current_user.id,
        class_id=body.class_id,
        purchase_id=body.purchase_id,
        guest=guest,
    )
    return _created(reservation, purchase)


@router.delete("/reservations/{reservation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_booking(
    reservation_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await cancel_reservation(db, reservation_id=reservation_id, acting_user_id=current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/reservations/{reservation_id}/transfer", response_model=ReservationCreated)
async def transfer_booking(
    reservation_id: int,
    body: ReservationTransfer,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    reservation, purchase = await transfer_reservation(
        db,
        reservation_id=reservation_id,
        acting_user_id=current_user.id,
        new_purchase_id=body.purchase_id,
    )
    return _created(reservation, purchase)


@router.get("/invitations/{token}", response_model=InvitationOut)
async def show_invitation(token: str, db: AsyncSession = Depends(get_db)):
    """Public: the guest opens the link from their invitation email"""
    return InvitationOut.model_validate(await get_invitation(db, token))


@router.post("/invitations/{token}", response_model=InvitationOut)
async def answer_invitation(token: str, body: InvitationAnswer, db: AsyncSession = Depends(get_db)):
    await respond_to_invitation(db, token=token, accept=body.accept)
    return InvitationOut.model_validate(await get_invitation(db, token))
