"""SMTP delivery provider.

Configure via environment variables (see teamspace.config):
  SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASSWORD,
  EMAIL_FROM_ADDRESS, EMAIL_FROM_NAME

If SMTP is not configured, emails are logged instead of sent.
"""

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import Optional

from teamspace import config
from teamspace.logging import get_logger
from teamspace_api.providers.base import (
    BaseDeliveryProvider,
    ProviderResult,
    RenderedMessage,
)

logger = get_logger(__name__)


class SMTPProvider(BaseDeliveryProvider):
    """Deliver email over SMTP with STARTTLS."""

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        from_email: Optional[str] = None,
        from_name: Optional[str] = None,
    ):
        self.smtp_host = host or config.SMTP_HOST
        self.smtp_port = port or config.SMTP_PORT
        self.smtp_user = user or config.SMTP_USER
        self.smtp_password = password or config.SMTP_PASSWORD
        self.from_email = from_email or config.EMAIL_FROM_ADDRESS
        self.from_name = from_name or config.EMAIL_FROM_NAME

    @property
    def name(self) -> str:
        return "smtp"

    @property
    def is_configured(self) -> bool:
        """Check if SMTP is configured."""
        return bool(self.smtp_host and self.smtp_user and self.smtp_password)

    def deliver(self, message: RenderedMessage, timeout: float) -> ProviderResult:
        message_id = make_msgid(domain=self.from_email.split("@")[-1])

        if not self.is_configured:
            logger.info(
                "email_not_configured",
                to=message.to,
                subject=message.subject,
                body=message.text,
            )
            return ProviderResult(success=True, provider_message_id=message_id)

        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = ", ".join(message.to)
        if message.cc:
            msg["Cc"] = ", ".join(message.cc)
        msg["Message-ID"] = message_id

        msg.attach(MIMEText(message.text, "plain"))
        if message.html:
            msg.attach(MIMEText(message.html, "html"))

        recipients = message.to + message.cc + message.bcc
        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=timeout) as server:
                server.starttls()
                server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg, to_addrs=recipients)
        except TimeoutError:
            logger.warning("smtp_timeout", to=message.to, timeout=timeout)
            return ProviderResult(success=False, error="Delivery timed out")
        except (smtplib.SMTPException, OSError) as e:
            logger.error("smtp_send_failed", to=message.to, error=str(e))
            return ProviderResult(success=False, error="SMTP delivery failed")

        logger.info("email_sent", to=message.to, subject=message.subject)
        return ProviderResult(success=True, provider_message_id=message_id)
