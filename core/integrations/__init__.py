"""
Outbound integrations bundled for dependency injection.

Routes and the automation executor receive one Integrations object so the
email sender, webhook client and AI model can be swapped together (tests
use recording fakes and pydantic-ai's TestModel).
"""
from dataclasses import dataclass
from typing import Any

from core.email.sender import EmailSender, get_email_sender
from core.integrations.webhooks import WebhookClient, WebhookDelivery, sign_payload


@dataclass
class Integrations:
    mailer: EmailSender
    webhooks: WebhookClient
    ai_model: Any = None  # pydantic-ai model override; None uses the routed default


def default_integrations() -> Integrations:
    return Integrations(mailer=get_email_sender(), webhooks=WebhookClient())


__all__ = [
    "Integrations",
    "WebhookClient",
    "WebhookDelivery",
    "default_integrations",
    "sign_payload",
]
