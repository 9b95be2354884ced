from typing import List

import strawberry
from sqlalchemy.ext.asyncio import AsyncSession

from wellnest.crud.attendanceCrud import class_roster
from wellnest.graphql.attendance.types import RosterEntry
from wellnest.graphql.auth.permissions import IsAdmin


@strawberry.type
class AttendanceQuery:
    @strawberry.field(permission_classes=[IsAdmin])
    async def class_roster(self, info: strawberry.Info, class_id: int) -> List[RosterEntry]:
        """Confirmed bookings for a class, in booking order"""
        db: AsyncSession = info.context.db
        roster = await class_roster(db, class_id)
        return [RosterEntry.from_data(entry) for entry in roster]
