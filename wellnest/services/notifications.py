"""
Outbound member notifications (email / WhatsApp).

Delivery lives outside this service; the default notifier only logs what
would be sent so the booking flow never blocks on a mail server.
"""
from datetime import datetime
from typing import List, Optional
from zoneinfo import ZoneInfo
import logging

from wellnest.core.config import settings

logger = logging.getLogger(__name__)


def format_local(instant: datetime) -> str:
    """Human-facing class time in the studio's timezone."""
    return instant.astimezone(ZoneInfo(settings.studio_timezone)).strftime("%Y-%m-%d %H:%M")


class NotificationService:
    """Logs outbound notifications; subclasses plug in a real transport.

    With `record=True` each message is also kept in `sent`, which the test
    suite uses to inspect what would have gone out.
    """

    def __init__(self, record: bool = False):
        self.sent: Optional[List[dict]] = [] if record else None

    def _emit(self, kind: str, to: str, **fields) -> None:
        if self.sent is not None:
            self.sent.append({"kind": kind, "to": to, **fields})
        logger.info("Notification queued kind=%s to=%s", kind, to)

    def guest_invitation(
        self,
        *,
        guest_email: str,
        guest_name: Optional[str],
        host_name: str,
        class_name: str,
        class_time: datetime,
        token: str,
    ) -> None:
        self._emit(
            "guest_invitation",
            guest_email,
            guest_name=guest_name,
            host_name=host_name,
            class_name=class_name,
            class_time=format_local(class_time),
            accept_url=f"{settings.public_base_url}/invitacion/{token}",
        )

    def waitlist_promoted(self, *, email: str, class_name: str, class_time: datetime) -> None:
        self._emit("waitlist_promoted", email, class_name=class_name, class_time=format_local(class_time))

    def class_cancelled(self, *, email: str, class_name: str, class_time: datetime) -> None:
        self._emit("class_cancelled", email, class_name=class_name, class_time=format_local(class_time))

    def refund_updated(self, *, email: str, status: str, amount: str) -> None:
        self._emit("refund_updated", email, status=status, amount=amount)


notifier = NotificationService()
