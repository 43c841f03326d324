"""
Notification delivery for the circulation engine.

- gateway.py: the fire-and-forget gateway contract and its implementations
- email.py: SMTP delivery via aiosmtplib
- messages.py: the texts the engine sends
"""

from ..config import CirculationConfig
from .email import SmtpEmailSender
from .gateway import (
    BackgroundNotificationGateway,
    Notification,
    NotificationGateway,
    NotificationSender,
    NullNotificationGateway,
    RecordingNotificationGateway,
)
from .messages import HOLD_PLACED_SUBJECT, hold_claim_notification


def build_gateway(config: CirculationConfig) -> NotificationGateway:
    """Gateway matching the configuration: SMTP in the background, or nothing."""
    if not config.notifications_enabled:
        return NullNotificationGateway()
    return BackgroundNotificationGateway(
        SmtpEmailSender(config), max_queue_size=config.notification_queue_size
    )


__all__ = [
    "HOLD_PLACED_SUBJECT",
    "BackgroundNotificationGateway",
    "Notification",
    "NotificationGateway",
    "NotificationSender",
    "NullNotificationGateway",
    "RecordingNotificationGateway",
    "SmtpEmailSender",
    "build_gateway",
    "hold_claim_notification",
]
