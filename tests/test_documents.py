"""Test document templates, the send/view/sign lifecycle and expiry."""
from uuid import UUID

import pytest
from conftest import set_plan, sign_up
from domains.subscriptions.service import get_subscription


async def _document(client, headers, **overrides):
    body = {"name": "Website Proposal", "type": "PROPOSAL", "content": {"body": "Scope of work"}}
    body.update(overrides)
    resp = await client.post("/api/documents", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.asyncio
async def test_template_content_is_merged_for_contact(client, owner):
    headers = owner["headers"]
    contact = (await client.post(
        "/api/crm/contacts", json={"first_name": "Jane", "last_name": "Doe", "email": "jane@example.com"}, headers=headers
    )).json()
    template = (await client.post("/api/documents/templates", json={
        "name": "Proposal",
        "type": "PROPOSAL",
        "content": {"title": "Proposal for {{Contact.Name}}", "sections": ["Dear {{Contact.FirstName}},", 3]},
    }, headers=headers)).json()

    document = await _document(client, headers, content=None, template_id=template["id"], contact_id=contact["id"])
    assert document["status"] == "DRAFT"
    assert document["content"] == {"title": "Proposal for Jane Doe", "sections": ["Dear Jane,", 3]}

    detail = (await client.get(f"/api/documents/{document['id']}", headers=headers)).json()
    assert detail["contact"]["email"] == "jane@example.com"
    assert detail["company"] is None


@pytest.mark.asyncio
async def test_templates_of_other_orgs_are_hidden(client, owner):
    other = await sign_up(client, "other@example.com", org_name="Other Co")
    await client.post(
        "/api/documents/templates", json={"name": "Private", "type": "CONTRACT"}, headers=other["headers"]
    )
    await client.post(
        "/api/documents/templates", json={"name": "Shared", "type": "CONTRACT", "is_public": True}, headers=other["headers"]
    )
    names = [t["name"] for t in (await client.get("/api/documents/templates", headers=owner["headers"])).json()["data"]]
    assert names == ["Shared"]


@pytest.mark.asyncio
async def test_lifecycle(client, owner):
    headers = owner["headers"]
    document = await _document(client, headers)

    sent = (await client.post(f"/api/documents/{document['id']}/send", headers=headers)).json()
    assert sent["status"] == "SENT"
    assert sent["sent_at"] is not None

    viewed = (await client.post(f"/api/documents/{document['id']}/view", headers=headers)).json()
    assert viewed["status"] == "VIEWED"
    again = (await client.post(f"/api/documents/{document['id']}/view", headers=headers)).json()
    assert again["viewed_at"] == viewed["viewed_at"]

    signed = (await client.post(f"/api/documents/{document['id']}/sign", headers=headers)).json()
    assert signed["status"] == "SIGNED"

    resp = await client.post(f"/api/documents/{document['id']}/send", headers=headers)
    assert resp.status_code == 400
    resp = await client.patch(f"/api/documents/{document['id']}", json={"name": "Renamed"}, headers=headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_sent_document_past_expiry_expires(client, owner):
    headers = owner["headers"]
    document = await _document(client, headers, expires_at="2000-01-01T00:00:00Z")
    await client.post(f"/api/documents/{document['id']}/send", headers=headers)

    detail = (await client.get(f"/api/documents/{document['id']}", headers=headers)).json()
    assert detail["status"] == "EXPIRED"
    resp = await client.post(f"/api/documents/{document['id']}/sign", headers=headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_draft_past_expiry_stays_draft(client, owner):
    headers = owner["headers"]
    await _document(client, headers, expires_at="2000-01-01T00:00:00Z")
    items = (await client.get("/api/documents", headers=headers)).json()["data"]
    assert [d["status"] for d in items] == ["DRAFT"]


@pytest.mark.asyncio
async def test_free_plan_document_limit(client, owner):
    headers = owner["headers"]
    for i in range(10):
        await _document(client, headers, name=f"Doc {i}")
    resp = await client.post("/api/documents", json={"name": "One more", "type": "OTHER"}, headers=headers)
    assert resp.status_code == 402
    assert resp.json()["error"].startswith("You have reached your plan limit of 10 documents")


@pytest.mark.asyncio
async def test_generate_consumes_ai_credit(client, owner):
    headers = owner["headers"]
    resp = await client.post("/api/documents/generate", json={"prompt": "A web design proposal"}, headers=headers)
    assert resp.json() == {"success": True, "content": "Generated copy #launch"}

    usage = (await client.get("/api/subscriptions/usage/ai_credits", headers=headers)).json()
    assert usage["used"] == 1
    assert usage["remaining"] == 9


@pytest.mark.asyncio
async def test_generate_blocked_without_credits(client, owner, session_factory):
    async with session_factory() as session:
        subscription = await get_subscription(session, UUID(owner["organization_id"]))
        subscription.ai_credits_used = 10
        await session.commit()

    resp = await client.post("/api/documents/generate", json={"prompt": "Anything"}, headers=owner["headers"])
    assert resp.status_code == 402

    await set_plan(session_factory, owner["organization_id"], "PRO")
    resp = await client.post("/api/documents/generate", json={"prompt": "Anything"}, headers=owner["headers"])
    assert resp.status_code == 200
