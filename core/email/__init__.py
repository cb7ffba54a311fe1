"""Outbound email: provider selection, delivery and message templates."""

from core.email import templates  # noqa: F401  registers templates with the engine
from core.email.sender import (
    EmailMessage,
    EmailResult,
    EmailSender,
    LogEmailSender,
    ResendEmailSender,
    SmtpEmailSender,
    get_email_sender,
)

__all__ = [
    "EmailMessage",
    "EmailResult",
    "EmailSender",
    "LogEmailSender",
    "ResendEmailSender",
    "SmtpEmailSender",
    "get_email_sender",
]
