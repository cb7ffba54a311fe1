"""Test campaign recipients, sending and engagement tracking."""
import pytest


async def _contact(client, headers, first_name, email):
    resp = await client.post("/api/crm/contacts", json={"first_name": first_name, "email": email}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _campaign(client, headers, **overrides):
    body = {"name": "Spring Launch", "subject": "Hi {{Contact.FirstName}}", "content": "<p>Hello {{Contact.Name}}</p>"}
    body.update(overrides)
    resp = await client.post("/api/campaigns", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.asyncio
async def test_all_contacts_snapshot(client, owner):
    headers = owner["headers"]
    await _contact(client, headers, "Jane", "jane@example.com")
    await _contact(client, headers, "John", "john@example.com")
    await client.post("/api/crm/contacts", json={"first_name": "NoEmail"}, headers=headers)

    campaign = await _campaign(client, headers)
    assert campaign["status"] == "DRAFT"
    assert campaign["total_recipients"] == 2

    # contacts added later are not part of the snapshot
    await _contact(client, headers, "Late", "late@example.com")
    detail = (await client.get(f"/api/campaigns/{campaign['id']}", headers=headers)).json()
    assert sorted(r["email"] for r in detail["recipients"]) == ["jane@example.com", "john@example.com"]


@pytest.mark.asyncio
async def test_segment_campaign_uses_tags(client, owner):
    headers = owner["headers"]
    jane = await _contact(client, headers, "Jane", "jane@example.com")
    await _contact(client, headers, "John", "john@example.com")
    tag = (await client.post("/api/crm/tags", json={"name": "Newsletter"}, headers=headers)).json()
    await client.post(f"/api/crm/contacts/{jane['id']}/tags/{tag['id']}", headers=headers)

    campaign = await _campaign(client, headers, recipient_type="SEGMENT", segment_ids=[tag["id"]])
    assert campaign["total_recipients"] == 1

    resp = await client.post("/api/campaigns", json={
        "name": "x", "subject": "x", "content": "x", "recipient_type": "SEGMENT",
    }, headers=headers)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_scheduled_campaign_status(client, owner):
    campaign = await _campaign(client, owner["headers"], scheduled_at="2030-01-01T09:00:00Z")
    assert campaign["status"] == "SCHEDULED"


@pytest.mark.asyncio
async def test_send_personalizes_each_email(client, owner, mailer):
    headers = owner["headers"]
    await _contact(client, headers, "Jane", "jane@example.com")
    campaign = await _campaign(client, headers)

    resp = await client.post(f"/api/campaigns/{campaign['id']}/send", headers=headers)
    assert resp.json() == {"success": True, "sent": 1, "failed": 0}
    assert mailer.sent[0].subject == "Hi Jane"
    assert mailer.sent[0].text == "Hello Jane"

    detail = (await client.get(f"/api/campaigns/{campaign['id']}", headers=headers)).json()
    assert detail["status"] == "SENT"
    assert detail["sent_count"] == 1
    assert detail["recipients"][0]["status"] == "SENT"

    resp = await client.post(f"/api/campaigns/{campaign['id']}/send", headers=headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_failed_deliveries_are_recorded(client, owner, mailer):
    headers = owner["headers"]
    await _contact(client, headers, "Jane", "jane@example.com")
    campaign = await _campaign(client, headers)
    mailer.fail = True

    resp = await client.post(f"/api/campaigns/{campaign['id']}/send", headers=headers)
    assert resp.json()["failed"] == 1

    detail = (await client.get(f"/api/campaigns/{campaign['id']}", headers=headers)).json()
    assert detail["failed_count"] == 1
    assert detail["recipients"][0]["status"] == "FAILED"
    assert detail["recipients"][0]["error"]


@pytest.mark.asyncio
async def test_sent_campaign_cannot_be_edited(client, owner):
    headers = owner["headers"]
    campaign = await _campaign(client, headers)
    await client.post(f"/api/campaigns/{campaign['id']}/send", headers=headers)
    resp = await client.patch(f"/api/campaigns/{campaign['id']}", json={"subject": "Changed"}, headers=headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_tracking_counts_once_and_only_moves_forward(client, owner):
    headers = owner["headers"]
    await _contact(client, headers, "Jane", "jane@example.com")
    campaign = await _campaign(client, headers)
    await client.post(f"/api/campaigns/{campaign['id']}/send", headers=headers)
    recipient_id = (await client.get(f"/api/campaigns/{campaign['id']}", headers=headers)).json()["recipients"][0]["id"]

    resp = await client.get(f"/api/campaigns/track/{recipient_id}/open")
    assert resp.headers["content-type"] == "image/gif"
    await client.get(f"/api/campaigns/track/{recipient_id}/open")

    resp = await client.post(f"/api/campaigns/track/{recipient_id}/deliver")
    assert resp.json() == {"recorded": True}

    resp = await client.get(
        f"/api/campaigns/track/{recipient_id}/click", params={"url": "https://example.com/offer"}
    )
    assert resp.status_code == 302
    assert resp.headers["location"] == "https://example.com/offer"

    detail = (await client.get(f"/api/campaigns/{campaign['id']}", headers=headers)).json()
    assert detail["opened_count"] == 1
    assert detail["delivered_count"] == 1
    assert detail["clicked_count"] == 1
    assert detail["recipients"][0]["status"] == "CLICKED"
