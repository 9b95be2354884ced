"""
Payment gateway boundary for provider-side refunds.

PayWay exposes no refund API to this studio, so approved refunds are settled
manually at the terminal and tracked here with a manual reference.
"""
import logging
from decimal import Decimal
from typing import Optional

from wellnest.core.conversions import format_amount
from wellnest.core.logging_config import log_payment_event
from wellnest.db.types import utcnow

logger = logging.getLogger(__name__)


class PaymentGateway:
    """Requests provider refunds and returns the provider reference."""

    async def refund(self, *, purchase_id: int, amount: Decimal, payment_reference: Optional[str]) -> str:
        reference = f"manual_{int(utcnow().timestamp() * 1000)}"
        log_payment_event(
            "refund_requested",
            provider="MANUAL",
            details=f"purchase_id={purchase_id} amount={format_amount(amount)} "
                    f"original_ref={payment_reference or '-'} ref={reference}",
        )
        return reference


gateway = PaymentGateway()
