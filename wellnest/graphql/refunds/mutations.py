from typing import Optional

import strawberry
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.core.errors import DomainError
from wellnest.crud.refundsCrud import adjudicate, refund_to_data, request_refund
from wellnest.graphql.auth.permissions import IsAdmin, IsAuthenticated
from wellnest.graphql.refunds.types import ProcessRefundInput, RefundRequest, RefundResponse


@strawberry.type
class RefundMutation:
    @strawberry.mutation(permission_classes=[IsAuthenticated])
    async def request_refund(self, info: strawberry.Info, purchase_id: int, reason: Optional[str] = None) -> RefundResponse:
        """File a refund request; the policy snapshot is frozen at this moment"""
        db: AsyncSession = info.context.db

        try:
            refund = await request_refund(db, user_id=info.context.user.id, purchase_id=purchase_id, reason=reason)
            return RefundResponse(
                success=True,
                refund=RefundRequest.from_data(refund_to_data(refund)),
                message="Refund requested"
            )
        except DomainError as e:
            await db.rollback()
            return RefundResponse(success=False, refund=None, message=e.message, code=e.code.value)

    @strawberry.mutation(permission_classes=[IsAdmin])
    async def process_refund(self, info: strawberry.Info, input: ProcessRefundInput) -> RefundResponse:
        db: AsyncSession = info.context.db

        try:
            refund = await adjudicate(
                db,
                refund_id=input.refund_id,
                action=input.action,
                admin_id=info.context.user.id,
                notes=input.notes,
                custom_amount=input.custom_amount,
            )
            return RefundResponse(
                success=True,
                refund=RefundRequest.from_data(refund_to_data(refund)),
                message=f"Refund {refund.status.value.lower()}"
            )
        except DomainError as e:
            await db.rollback()
            return RefundResponse(success=False, refund=None, message=e.message, code=e.code.value)
