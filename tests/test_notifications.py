"""Outbound notification boundary."""

from datetime import datetime, timezone

from wellnest.core.config import settings
from wellnest.services.notifications import NotificationService, format_local


def test_default_notifier_keeps_nothing_in_memory():
    service = NotificationService()

    service.refund_updated(email="ana@example.com", status="REFUNDED", amount="20.00")

    assert service.sent is None


def test_recording_notifier_keeps_messages(monkeypatch):
    monkeypatch.setattr(settings, "public_base_url", "https://studio.test")
    service = NotificationService(record=True)

    service.guest_invitation(
        guest_email="guest@example.com",
        guest_name="Bea",
        host_name="Ana",
        class_name="Yoga",
        class_time=datetime(2030, 1, 7, 13, 0, tzinfo=timezone.utc),
        token="abc123",
    )

    assert service.sent == [{
        "kind": "guest_invitation",
        "to": "guest@example.com",
        "guest_name": "Bea",
        "host_name": "Ana",
        "class_name": "Yoga",
        "class_time": "2030-01-07 07:00",
        "accept_url": "https://studio.test/invitacion/abc123",
    }]


def test_local_time_uses_studio_timezone(monkeypatch):
    monkeypatch.setattr(settings, "studio_timezone", "America/El_Salvador")

    assert format_local(datetime(2030, 1, 2, 0, 30, tzinfo=timezone.utc)) == "2030-01-01 18:30"
