"""
Email service.
Sends plain-text mail over SMTP when SMTP_HOST and MAIL_FROM are configured.
"""

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from app.core.config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """Service for outbound email."""

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: Optional[bool] = None,
        sender: Optional[str] = None,
    ):
        self.host = host if host is not None else settings.SMTP_HOST
        self.port = port if port is not None else settings.SMTP_PORT
        self.username = username if username is not None else settings.SMTP_USERNAME
        self.password = password if password is not None else settings.SMTP_PASSWORD
        self.use_tls = use_tls if use_tls is not None else settings.SMTP_TLS
        self.sender = sender if sender is not None else settings.MAIL_FROM

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.sender)

    def _send_sync(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=30) as s:
            if self.use_tls:
                s.starttls()
            if self.username and self.password:
                s.login(self.username, self.password)
            s.send_message(msg)

    async def send(self, to: str, subject: str, body: str) -> bool:
        """
        Send one email.

        Returns:
            True if handed to the SMTP server, False if email is not configured
        """
        if not self.is_configured:
            return False

        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(body)

        # smtplib blocks; keep it off the event loop
        await asyncio.to_thread(self._send_sync, msg)
        logger.info("Email sent", extra={"to": to, "subject": subject})
        return True
