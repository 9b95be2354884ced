from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

import strawberry
from strawberry.scalars import JSON

from wellnest.crud.refundsCrud import RefundData


@strawberry.type
class RefundRequest:
    id: int
    user_id: int
    purchase_id: int
    package_name: str
    amount: Decimal
    eligible: bool
    status: str
    reason: str
    policy_snapshot: JSON
    notes: Optional[str]
    provider_ref: Optional[str]
    created_at: datetime
    refunded_at: Optional[datetime]

    @classmethod
    def from_data(cls, data: RefundData) -> "RefundRequest":
        return cls(**data.__dict__)


@strawberry.type
class StatusCount:
    status: str
    count: int


@strawberry.type
class RefundsResponse:
    refunds: List[RefundRequest]
    status_counts: List[StatusCount]

    @classmethod
    def build(cls, refunds: List[RefundData], counts: Dict[str, int]) -> "RefundsResponse":
        return cls(
            refunds=[RefundRequest.from_data(r) for r in refunds],
            status_counts=[StatusCount(status=s, count=c) for s, c in counts.items()],
        )


@strawberry.input
class ProcessRefundInput:
    """action is one of approve, reject, process"""
    refund_id: int
    action: str
    notes: Optional[str] = None
    custom_amount: Optional[Decimal] = None


@strawberry.type
class RefundResponse:
    success: bool
    refund: Optional[RefundRequest]
    message: str
    code: Optional[str] = None
