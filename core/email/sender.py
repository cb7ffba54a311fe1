"""Email delivery backends.

Resend (HTTP API) when RESEND_API_KEY is set, SMTP when SMTP_HOST and
SMTP_USER are set, otherwise a development backend that only logs. Every
backend returns an EmailResult; delivery errors are logged and reported in
the result, never raised.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage as MimeMessage
from typing import Any

import httpx

from core.config import EmailConfig, get_settings

logger = logging.getLogger(__name__)


@dataclass
class EmailMessage:
    to: str | list[str]
    subject: str
    html: str
    text: str | None = None
    from_address: str | None = None

    @property
    def recipients(self) -> list[str]:
        return self.to if isinstance(self.to, list) else [self.to]


@dataclass
class EmailResult:
    success: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "error": self.error}


class EmailSender:
    """Base sender. Subclasses implement ``_deliver``."""

    provider = "base"

    def __init__(self, config: EmailConfig):
        self.config = config

    async def send(self, message: EmailMessage) -> EmailResult:
        if message.from_address is None:
            message.from_address = self.config.from_address
        try:
            await self._deliver(message)
        except Exception as exc:
            logger.error("Failed to send email via %s to %s: %s", self.provider, message.recipients, exc)
            return EmailResult(success=False, error=str(exc) or "Failed to send email")
        return EmailResult(success=True)

    async def _deliver(self, message: EmailMessage) -> None:
        raise NotImplementedError


class ResendEmailSender(EmailSender):
    provider = "resend"

    def __init__(self, config: EmailConfig, client: httpx.AsyncClient | None = None):
        super().__init__(config)
        self._client = client

    async def _deliver(self, message: EmailMessage) -> None:
        payload = {
            "from": message.from_address,
            "to": message.recipients,
            "subject": message.subject,
            "html": message.html,
        }
        if message.text:
            payload["text"] = message.text
        headers = {"Authorization": f"Bearer {self.config.resend_api_key}"}

        if self._client is not None:
            resp = await self._client.post(self.config.resend_api_url, json=payload, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=10.0) as client:
                resp = await client.post(self.config.resend_api_url, json=payload, headers=headers)
        resp.raise_for_status()


class SmtpEmailSender(EmailSender):
    provider = "smtp"

    def _send_sync(self, message: EmailMessage) -> None:
        mime = MimeMessage()
        mime["From"] = message.from_address
        mime["To"] = ", ".join(message.recipients)
        mime["Subject"] = message.subject
        mime.set_content(message.text or "")
        mime.add_alternative(message.html, subtype="html")

        smtp_cls = smtplib.SMTP_SSL if self.config.smtp_secure else smtplib.SMTP
        with smtp_cls(self.config.smtp_host, self.config.smtp_port, timeout=30) as smtp:
            if not self.config.smtp_secure:
                smtp.starttls()
            smtp.login(self.config.smtp_user, self.config.smtp_password or "")
            smtp.send_message(mime)

    async def _deliver(self, message: EmailMessage) -> None:
        await asyncio.to_thread(self._send_sync, message)


class LogEmailSender(EmailSender):
    """Development backend: no provider configured, log and succeed."""

    provider = "log"

    async def _deliver(self, message: EmailMessage) -> None:
        logger.info(
            "Email not sent (no provider configured) to=%s subject=%r",
            message.recipients,
            message.subject,
        )


def get_email_sender(config: EmailConfig | None = None) -> EmailSender:
    config = config or get_settings().email
    provider = config.provider
    if provider == "resend":
        return ResendEmailSender(config)
    if provider == "smtp":
        return SmtpEmailSender(config)
    return LogEmailSender(config)
