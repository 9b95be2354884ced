from datetime import datetime
from typing import Optional

import strawberry

from wellnest.crud.attendanceCrud import RosterEntry as RosterEntryData


@strawberry.type
class RosterEntry:
    reservation_id: int
    user_id: int
    user_name: str
    user_email: str
    classes_used: int
    checked_in: bool
    checked_in_at: Optional[datetime]
    guest_name: Optional[str]
    guest_email: Optional[str]
    guest_status: Optional[str]

    @classmethod
    def from_data(cls, data: RosterEntryData) -> "RosterEntry":
        return cls(**data.__dict__)


@strawberry.type
class CheckInResponse:
    success: bool
    message: str
    reservation_id: Optional[int] = None
    user_name: Optional[str] = None
    checked_in: Optional[bool] = None
    checked_in_at: Optional[datetime] = None
    guest_name: Optional[str] = None
    code: Optional[str] = None
