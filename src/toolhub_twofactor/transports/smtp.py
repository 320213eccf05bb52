"""SMTP mailbox transport."""

from __future__ import annotations

import email.message
import email.policy
import logging
from typing import TYPE_CHECKING

import aiosmtplib

from ..delivery import DeliveryChannel, DeliveryRecord, OutboundMessage
from ..exceptions import ConfigurationError

if TYPE_CHECKING:
    from ..config import SmtpSettings

logger = logging.getLogger(__name__)


class SmtpMailSender:
    """
    Async SMTP sender for verification-code emails using aiosmtplib.
    """

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout: float = 10.0,
        from_email: str | None = None,
    ):
        if not from_email:
            raise ConfigurationError("Sender email (from_email) is required.")
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout
        self.from_email = from_email

    @classmethod
    def from_settings(cls, settings: SmtpSettings) -> SmtpMailSender:
        return cls(
            host=settings.host,
            port=settings.port,
            username=settings.username,
            password=settings.password,
            use_tls=settings.use_tls,
            timeout=settings.timeout,
            from_email=settings.from_email,
        )

    def build_message(self, recipient: str, content: OutboundMessage) -> email.message.EmailMessage:
        message = email.message.EmailMessage(policy=email.policy.default)
        message["To"] = recipient
        message["From"] = self.from_email
        if content.subject:
            message["Subject"] = content.subject
        message.set_content(content.body_text, charset="utf-8")
        return message

    async def send(self, recipient: str, message: OutboundMessage) -> DeliveryRecord:
        try:
            async with aiosmtplib.SMTP(
                hostname=self.host,
                port=self.port,
                timeout=self.timeout,
            ) as smtp:
                if self.use_tls:
                    await smtp.starttls()
                if self.username and self.password:
                    await smtp.login(self.username, self.password)

                await smtp.send_message(self.build_message(recipient, message))

            logger.info("Verification email sent to %s via SMTP", recipient)
            return DeliveryRecord.sent(recipient, DeliveryChannel.EMAIL, provider_id="smtp")

        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email to %s: %s", recipient, e)
            return DeliveryRecord.failed(recipient, DeliveryChannel.EMAIL, error=str(e))


__all__: list[str] = ["SmtpMailSender"]
