"""SMTP delivery for circulation notifications."""

import logging
from email.message import EmailMessage

import aiosmtplib

from ..config import CirculationConfig
from .gateway import Notification, NotificationSender

logger = logging.getLogger(__name__)


class SmtpEmailSender(NotificationSender):
    """Sends notifications as plain-text email through the configured SMTP server."""

    def __init__(self, config: CirculationConfig):
        self.config = config

    def build_message(self, notification: Notification) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.config.smtp_from_email
        msg["To"] = f"{notification.recipient_name} <{notification.recipient_address}>"
        msg["Subject"] = notification.subject
        msg.set_content(notification.body)
        return msg

    async def send(self, notification: Notification) -> None:
        if not self.config.smtp_configured:
            logger.warning(
                "SMTP not configured, skipping email to %s", notification.recipient_address
            )
            return

        # STARTTLS on 587, implicit TLS on 465
        start_tls = self.config.smtp_use_tls and self.config.smtp_port == 587
        use_tls = self.config.smtp_use_tls and self.config.smtp_port == 465
        await aiosmtplib.send(
            self.build_message(notification),
            hostname=self.config.smtp_host,
            port=self.config.smtp_port,
            username=self.config.smtp_user,
            password=self.config.smtp_password,
            start_tls=start_tls,
            use_tls=use_tls,
        )
