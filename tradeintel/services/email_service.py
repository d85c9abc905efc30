"""Outbound e-mail over SMTP."""

import asyncio
import logging
import smtplib
from email.message import EmailMessage

from tradeintel.config import Settings

logger = logging.getLogger(__name__)


class EmailService:
    """Sends plain-text e-mail. Raises on transport failure."""

    def __init__(self, settings: Settings) -> None:
        self._host = settings.smtp_host
        self._port = settings.smtp_port
        self._username = settings.smtp_username
        self._password = settings.smtp_password.get_secret_value()
        self._use_tls = settings.smtp_use_tls
        self._timeout = settings.smtp_timeout_seconds
        self._sender = settings.mail_from

    async def send(self, to_addr: str, subject: str, body: str) -> None:
        msg = EmailMessage()
        msg["From"] = self._sender
        msg["To"] = to_addr
        msg["Subject"] = subject
        msg.set_content(body)
        await asyncio.to_thread(self._deliver, msg)
        logger.info("Sent e-mail to %s***", to_addr[:3])

    def _deliver(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as smtp:
            if self._use_tls:
                smtp.starttls()
            if self._username:
                smtp.login(self._username, self._password)
            smtp.send_message(msg)


_email_service: EmailService | None = None


def get_email_service(settings: Settings) -> EmailService:
    global _email_service
    if _email_service is None:
        _email_service = EmailService(settings)
    return _email_service
