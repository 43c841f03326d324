"""Tests for notification texts, the background gateway and SMTP delivery."""

import logging
import threading

import pytest
from pydantic import ValidationError

from library_circulation.config import CirculationConfig
from library_circulation.notifications import (
    BackgroundNotificationGateway,
    Notification,
    NotificationSender,
    NullNotificationGateway,
    SmtpEmailSender,
    build_gateway,
    hold_claim_notification,
)
from library_circulation.notifications import email as email_module


def make_notification(n: int = 1) -> Notification:
    return Notification(
        recipient_name=f"Reader {n}",
        recipient_address=f"reader{n}@example.org",
        subject="Place hold on the book",
        body=f"Message {n}",
    )


class RecordingSender(NotificationSender):
    def __init__(self):
        self.sent: list[Notification] = []

    async def send(self, notification: Notification) -> None:
        self.sent.append(notification)


class TestMessages:
    def test_hold_claim_text(self, patrons):
        message = hold_claim_notification(patrons[0], "Dune", 24)

        assert message.recipient_name == "Ada"
        assert message.recipient_address == "ada@example.org"
        assert message.subject == "Place hold on the book"
        assert message.body == (
            "You have placed hold on the asset: 'Dune' from our library. "
            "Now you have to come to us and take the item in 24 hours time. "
            "If you will not take the item up to this time you will not be able to borrow it."
        )

    def test_notification_requires_valid_address(self):
        with pytest.raises(ValidationError):
            Notification(recipient_name="X", recipient_address="not-an-email", subject="S", body="")


class TestBackgroundGateway:
    def test_delivers_in_order(self):
        sender = RecordingSender()
        gateway = BackgroundNotificationGateway(sender)
        try:
            for n in range(3):
                gateway.enqueue(make_notification(n))
            gateway.flush()
        finally:
            gateway.close()

        assert [m.body for m in sender.sent] == ["Message 0", "Message 1", "Message 2"]

    def test_failure_is_logged_and_worker_keeps_going(self, caplog):
        class FlakySender(RecordingSender):
            async def send(self, notification):
                if notification.body == "Message 1":
                    raise ConnectionError("SMTP down")
                await super().send(notification)

        sender = FlakySender()
        gateway = BackgroundNotificationGateway(sender)
        with caplog.at_level(logging.ERROR, logger="library_circulation.notifications.gateway"):
            gateway.enqueue(make_notification(1))
            gateway.enqueue(make_notification(2))
            gateway.flush()
        gateway.close()

        assert [m.body for m in sender.sent] == ["Message 2"]
        assert "Failed to send" in caplog.text

    def test_full_queue_drops(self, caplog):
        started = threading.Event()
        release = threading.Event()

        class SlowSender(RecordingSender):
            async def send(self, notification):
                started.set()
                release.wait(5)
                await super().send(notification)

        sender = SlowSender()
        gateway = BackgroundNotificationGateway(sender, max_queue_size=1)
        try:
            gateway.enqueue(make_notification(1))
            assert started.wait(5)
            gateway.enqueue(make_notification(2))
            with caplog.at_level(logging.ERROR, logger="library_circulation.notifications.gateway"):
                gateway.enqueue(make_notification(3))
            release.set()
            gateway.flush()
        finally:
            release.set()
            gateway.close()

        assert [m.body for m in sender.sent] == ["Message 1", "Message 2"]
        assert "queue full" in caplog.text

    def test_close_drains_then_drops(self, caplog):
        sender = RecordingSender()
        gateway = BackgroundNotificationGateway(sender)
        gateway.enqueue(make_notification(1))

        gateway.close()
        with caplog.at_level(logging.WARNING, logger="library_circulation.notifications.gateway"):
            gateway.enqueue(make_notification(2))

        assert [m.body for m in sender.sent] == ["Message 1"]
        assert "closed" in caplog.text


class TestBuildGateway:
    def test_disabled(self, tmp_path):
        config = CirculationConfig(database_path=tmp_path / "x.db", notifications_enabled=False)
        assert isinstance(build_gateway(config), NullNotificationGateway)

    def test_enabled_uses_smtp(self, tmp_path):
        config = CirculationConfig(database_path=tmp_path / "x.db", notification_queue_size=5)
        gateway = build_gateway(config)
        try:
            assert isinstance(gateway, BackgroundNotificationGateway)
            assert isinstance(gateway.sender, SmtpEmailSender)
        finally:
            gateway.close()


class TestSmtpEmailSender:
    def test_build_message(self, tmp_path):
        config = CirculationConfig(
            database_path=tmp_path / "x.db", smtp_from_email="desk@library.example.org"
        )
        msg = SmtpEmailSender(config).build_message(make_notification(4))

        assert msg["From"] == "desk@library.example.org"
        assert msg["To"] == "Reader 4 <reader4@example.org>"
        assert msg["Subject"] == "Place hold on the book"
        assert msg.get_content().strip() == "Message 4"

    async def test_skips_without_host(self, tmp_path, monkeypatch):
        async def fail(*args, **kwargs):
            raise AssertionError("should not send")

        monkeypatch.setattr(email_module.aiosmtplib, "send", fail)
        config = CirculationConfig(database_path=tmp_path / "x.db", smtp_host=None)

        await SmtpEmailSender(config).send(make_notification())

    async def test_sends_with_starttls(self, tmp_path, monkeypatch):
        calls = []

        async def fake_send(message, **kwargs):
            calls.append((message, kwargs))

        monkeypatch.setattr(email_module.aiosmtplib, "send", fake_send)
        config = CirculationConfig(
            database_path=tmp_path / "x.db",
            smtp_host="smtp.example.org",
            smtp_port=587,
            smtp_user="library",
            smtp_password="secret",
        )

        await SmtpEmailSender(config).send(make_notification())

        assert len(calls) == 1
        message, kwargs = calls[0]
        assert message["To"] == "Reader 1 <reader1@example.org>"
        assert kwargs["hostname"] == "smtp.example.org"
        assert kwargs["start_tls"] is True
        assert kwargs["use_tls"] is False
        assert kwargs["username"] == "library"
