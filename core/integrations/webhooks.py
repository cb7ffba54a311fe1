"""
Outbound webhook delivery for automations.

Posts a JSON event to a single URL with:
- HMAC-SHA256 payload signing when a secret is configured
- One attempt per event (no retries); non-2xx counts as a failure
- A delivery record describing the outcome
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
import hashlib
import hmac
import json
import logging
import time
import uuid

import httpx

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-BizOS-Signature"
EVENT_HEADER = "X-BizOS-Event"
DELIVERY_HEADER = "X-BizOS-Delivery"


@dataclass
class WebhookDelivery:
    """Record of a webhook delivery attempt."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    event: str = ""
    url: str = ""
    status_code: int = 0
    latency_ms: float = 0.0
    success: bool = False
    error: str | None = None
    delivered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "event": self.event,
            "url": self.url,
            "status_code": self.status_code,
            "latency_ms": round(self.latency_ms, 1),
            "success": self.success,
            "error": self.error,
            "delivered_at": self.delivered_at.isoformat(),
        }


def sign_payload(payload: str, secret: str) -> str:
    """Generate HMAC-SHA256 signature for a payload."""
    return hmac.new(
        secret.encode("utf-8"),
        payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


class WebhookClient:
    """Posts signed JSON events. Pass a client to control the transport."""

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = 10.0):
        self._client = client
        self.timeout = timeout

    async def post(
        self,
        url: str,
        event: str,
        payload: dict[str, Any],
        secret: str | None = None,
    ) -> WebhookDelivery:
        body = json.dumps(payload, default=str, sort_keys=True)
        delivery = WebhookDelivery(event=event, url=url)
        headers = {
            "Content-Type": "application/json",
            EVENT_HEADER: event,
            DELIVERY_HEADER: delivery.id,
        }
        if secret:
            headers[SIGNATURE_HEADER] = f"sha256={sign_payload(body, secret)}"

        start = time.monotonic()
        try:
            if self._client is not None:
                resp = await self._client.post(url, content=body, headers=headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient() as client:
                    resp = await client.post(url, content=body, headers=headers, timeout=self.timeout)
        except httpx.HTTPError as exc:
            delivery.latency_ms = (time.monotonic() - start) * 1000
            delivery.error = str(exc) or exc.__class__.__name__
            logger.warning("Webhook %s to %s failed: %s", event, url, delivery.error)
            return delivery

        delivery.latency_ms = (time.monotonic() - start) * 1000
        delivery.status_code = resp.status_code
        delivery.success = 200 <= resp.status_code < 300
        if not delivery.success:
            delivery.error = f"HTTP {resp.status_code}"
        return delivery
