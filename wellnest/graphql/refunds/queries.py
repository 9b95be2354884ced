from typing import Optional

import strawberry
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.core.state_machine import RefundStatus
from wellnest.crud.refundsCrud import list_refunds, list_user_refunds
from wellnest.graphql.auth.permissions import IsAdmin, IsAuthenticated
from wellnest.graphql.refunds.types import RefundsResponse


@strawberry.type
class RefundQuery:
    @strawberry.field(permission_classes=[IsAuthenticated])
    async def my_refunds(self, info: strawberry.Info) -> RefundsResponse:
        db: AsyncSession = info.context.db
        refunds = await list_user_refunds(db, info.context.user.id)
        counts = {s.value: sum(1 for r in refunds if r.status == s.value) for s in RefundStatus}
        return RefundsResponse.build(refunds, counts)

    @strawberry.field(permission_classes=[IsAdmin])
    async def refunds(self, info: strawberry.Info, status: Optional[str] = None) -> RefundsResponse:
        """Refund queue, optionally filtered by status (unknown statuses are ignored)"""
        db: AsyncSession = info.context.db
        status_filter = None
        if status and status.upper() in RefundStatus.__members__:
            status_filter = RefundStatus[status.upper()]
        listing = await list_refunds(db, status_filter)
        return RefundsResponse.build(listing["refunds"], listing["status_counts"])
