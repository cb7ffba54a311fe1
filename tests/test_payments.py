"""Test products, invoices and the Stripe webhook."""
import hashlib
import hmac
import json
import time

import pytest
from conftest import sign_up

from core.resilience.idempotency import generate_idempotency_key
from domains.automations.executor import get_idempotency_store

SECRET = "whsec_test_secret"


def stripe_signature(payload: str, secret: str = SECRET) -> str:
    timestamp = int(time.time())
    digest = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


async def _post_event(client, event: dict, signature: str | None = None):
    payload = json.dumps(event)
    headers = {"Content-Type": "application/json"}
    headers["Stripe-Signature"] = signature if signature is not None else stripe_signature(payload)
    return await client.post("/api/webhooks/stripe", content=payload, headers=headers)


async def _contact(client, headers, email="jane@example.com"):
    body = {"first_name": "Jane", "last_name": "Doe"}
    if email:
        body["email"] = email
    return (await client.post("/api/crm/contacts", json=body, headers=headers)).json()


async def _invoice(client, headers, contact_id):
    resp = await client.post("/api/payments/invoices", json={
        "contact_id": contact_id,
        "items": [
            {"description": "Design", "quantity": 2, "unit_amount": 15000},
            {"description": "Hosting", "quantity": 1, "unit_amount": 2500},
        ],
    }, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.asyncio
async def test_products(client, owner):
    headers = owner["headers"]
    monthly = (await client.post(
        "/api/payments/products", json={"name": "Retainer", "price": 99900, "recurring_interval": "month"}, headers=headers
    )).json()
    assert monthly["is_recurring"] is True
    once = (await client.post("/api/payments/products", json={"name": "Audit", "price": 50000}, headers=headers)).json()
    assert once["is_recurring"] is False

    await client.delete(f"/api/payments/products/{once['id']}", headers=headers)
    products = (await client.get("/api/payments/products", headers=headers)).json()
    assert [p["name"] for p in products["data"]] == ["Retainer"]


@pytest.mark.asyncio
async def test_invoice_numbers_and_totals(client, owner):
    headers = owner["headers"]
    contact = await _contact(client, headers)
    first = await _invoice(client, headers, contact["id"])
    second = await _invoice(client, headers, contact["id"])

    assert first["invoice_number"] == "INV-0001"
    assert second["invoice_number"] == "INV-0002"
    assert first["status"] == "DRAFT"
    assert first["total"] == 32500
    assert [item["total"] for item in first["items"]] == [30000, 2500]
    assert first["due_date"] is not None


@pytest.mark.asyncio
async def test_invoice_numbers_are_per_organization(client, owner):
    other = await sign_up(client, "other@example.com", org_name="Other Co")
    await _invoice(client, owner["headers"], (await _contact(client, owner["headers"]))["id"])
    invoice = await _invoice(client, other["headers"], (await _contact(client, other["headers"]))["id"])
    assert invoice["invoice_number"] == "INV-0001"


@pytest.mark.asyncio
async def test_send_invoice(client, owner, mailer):
    headers = owner["headers"]
    contact = await _contact(client, headers)
    invoice = await _invoice(client, headers, contact["id"])

    resp = await client.post(f"/api/payments/invoices/{invoice['id']}/send", headers=headers)
    body = resp.json()
    assert body["status"] == "SENT"
    assert body["email_sent"] is True
    assert mailer.sent[-1].to == "jane@example.com"
    assert mailer.sent[-1].subject == "Invoice INV-0001 from Acme Studio"
    assert "325.00" in mailer.sent[-1].html

    resp = await client.post(f"/api/payments/invoices/{invoice['id']}/send", headers=headers)
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invoice has already been sent"}


@pytest.mark.asyncio
async def test_send_invoice_requires_email(client, owner):
    headers = owner["headers"]
    contact = await _contact(client, headers, email=None)
    invoice = await _invoice(client, headers, contact["id"])
    resp = await client.post(f"/api/payments/invoices/{invoice['id']}/send", headers=headers)
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invoice contact has no email address"}


@pytest.mark.asyncio
async def test_mark_paid_dispatches_payment_received_once(client, owner, mailer):
    headers = owner["headers"]
    await client.post("/api/automations", json={
        "name": "Thank you",
        "trigger_type": "PAYMENT_RECEIVED",
        "action_type": "SEND_EMAIL",
        "action_config": {"subject": "Thanks for paying {{invoice_number}}", "body": "<p>Received</p>"},
    }, headers=headers)
    contact = await _contact(client, headers)
    invoice = await _invoice(client, headers, contact["id"])

    paid = (await client.post(f"/api/payments/invoices/{invoice['id']}/paid", headers=headers)).json()
    assert paid["status"] == "PAID"
    assert paid["paid_at"] is not None
    await client.post(f"/api/payments/invoices/{invoice['id']}/paid", headers=headers)

    assert [m.subject for m in mailer.sent] == ["Thanks for paying INV-0001"]


@pytest.mark.asyncio
async def test_stripe_webhook_requires_signature(client):
    resp = await client.post("/api/webhooks/stripe", content="{}")
    assert resp.status_code == 400
    assert resp.json() == {"error": "No signature"}


@pytest.mark.asyncio
async def test_stripe_webhook_rejects_bad_signature(client):
    payload = json.dumps({"type": "invoice.paid", "data": {"object": {}}})
    resp = await _post_event(client, json.loads(payload), signature=stripe_signature(payload, secret="whsec_wrong"))
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid signature"}


@pytest.mark.asyncio
async def test_stripe_invoice_paid(client, owner):
    headers = owner["headers"]
    contact = await _contact(client, headers)
    invoice = await _invoice(client, headers, contact["id"])

    resp = await _post_event(client, {
        "id": "evt_1",
        "type": "invoice.paid",
        "data": {"object": {"id": "in_123", "metadata": {"invoiceId": invoice["id"]}}},
    })
    assert resp.json() == {"received": True}

    detail = (await client.get(f"/api/payments/invoices/{invoice['id']}", headers=headers)).json()
    assert detail["status"] == "PAID"
    assert detail["stripe_invoice_id"] == "in_123"


@pytest.mark.asyncio
async def test_stripe_redelivery_runs_automations_once(client, owner, mailer):
    headers = owner["headers"]
    automation = (await client.post("/api/automations", json={
        "name": "Receipt",
        "trigger_type": "PAYMENT_RECEIVED",
        "action_type": "SEND_EMAIL",
        "action_config": {"subject": "Paid {{invoice_number}}"},
    }, headers=headers)).json()
    contact = await _contact(client, headers)
    invoice = await _invoice(client, headers, contact["id"])
    event = {
        "id": "evt_paid_7",
        "type": "invoice.paid",
        "data": {"object": {"id": "in_7", "metadata": {"invoiceId": invoice["id"]}}},
    }

    assert (await _post_event(client, event)).json() == {"received": True}
    assert (await _post_event(client, event)).json() == {"received": True}

    assert [m.subject for m in mailer.sent] == ["Paid INV-0001"]
    key = generate_idempotency_key("automation.run", automation_id=automation["id"], event_id="evt_paid_7")
    assert get_idempotency_store().check(key) is not None


@pytest.mark.asyncio
async def test_stripe_unhandled_event_is_acknowledged(client):
    resp = await _post_event(client, {"id": "evt_2", "type": "charge.refunded", "data": {"object": {}}})
    assert resp.json() == {"received": True}


@pytest.mark.asyncio
async def test_stripe_subscription_lifecycle(client, owner):
    headers = owner["headers"]
    subscription = {
        "id": "sub_123",
        "customer": "cus_123",
        "status": "active",
        "current_period_end": 1924992000,
        "metadata": {"organizationId": owner["organization_id"], "plan": "pro"},
    }
    await _post_event(client, {"id": "evt_3", "type": "customer.subscription.updated", "data": {"object": subscription}})

    current = (await client.get("/api/subscriptions", headers=headers)).json()
    assert current["plan"] == "PRO"
    assert current["status"] == "ACTIVE"
    assert current["stripe_customer_id"] == "cus_123"
    assert current["current_period_end"].startswith("2031-01-01")

    await _post_event(client, {"id": "evt_4", "type": "customer.subscription.deleted", "data": {"object": subscription}})
    current = (await client.get("/api/subscriptions", headers=headers)).json()
    assert current["plan"] == "FREE"
    assert current["status"] == "CANCELED"
