"""Test funnels, publishing and public form submissions."""
import pytest


async def _funnel(client, headers, **body):
    body.setdefault("name", "Spring Offer")
    resp = await client.post("/api/funnels", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _published(client, headers, **body):
    funnel = await _funnel(client, headers, **body)
    resp = await client.post(f"/api/funnels/{funnel['id']}/publish", headers=headers)
    assert resp.json()["is_published"] is True
    return funnel


@pytest.mark.asyncio
async def test_template_seeds_steps_and_description(client, owner):
    funnel = await _funnel(client, owner["headers"], template="LEAD_MAGNET")
    assert funnel["slug"] == "spring-offer"
    assert funnel["is_published"] is False
    assert funnel["description"] == "Capture leads with a free resource download"
    assert [(s["name"], s["type"], s["order"]) for s in funnel["steps"]] == [
        ("Landing Page", "LANDING_PAGE", 0),
        ("Opt-in Form", "OPT_IN_FORM", 1),
        ("Thank You", "THANK_YOU", 2),
    ]


@pytest.mark.asyncio
async def test_explicit_steps_win_over_template(client, owner):
    funnel = await _funnel(
        client, owner["headers"], template="WEBINAR", description="Mine",
        steps=[{"name": "Only", "type": "SALES_PAGE"}],
    )
    assert funnel["description"] == "Mine"
    assert [s["name"] for s in funnel["steps"]] == ["Only"]


@pytest.mark.asyncio
async def test_slugs_are_unique_and_follow_renames(client, owner):
    headers = owner["headers"]
    first = await _funnel(client, headers)
    second = await _funnel(client, headers)
    assert first["slug"] == "spring-offer"
    assert second["slug"] != first["slug"]

    renamed = (await client.patch(f"/api/funnels/{first['id']}", json={"name": "Summer Deal"}, headers=headers)).json()
    assert renamed["slug"] == "summer-deal"


@pytest.mark.asyncio
async def test_templates_listing(client, owner):
    templates = (await client.get("/api/funnels/templates", headers=owner["headers"])).json()["data"]
    assert {t["key"] for t in templates} == {
        "LEAD_MAGNET", "CONSULTATION", "FREE_TRIAL", "DIRECT_PURCHASE", "WEBINAR", "WAITLIST",
    }


@pytest.mark.asyncio
async def test_unpublished_funnel_is_not_public(client, owner):
    funnel = await _funnel(client, owner["headers"])
    resp = await client.get(f"/api/public/{owner['slug']}/funnels/{funnel['slug']}")
    assert resp.status_code == 404
    resp = await client.post(
        f"/api/public/{owner['slug']}/funnels/{funnel['slug']}", json={"email": "lead@example.com"}
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_views_and_conversions(client, owner):
    headers = owner["headers"]
    funnel = await _published(client, headers, template="LEAD_MAGNET")
    url = f"/api/public/{owner['slug']}/funnels/{funnel['slug']}"

    page = (await client.get(url)).json()
    assert page["name"] == "Spring Offer"
    assert "views" not in page
    await client.get(url)

    resp = await client.post(url, json={"email": "Lead@Example.com", "name": "Linus Torvalds", "message": "Interested"})
    body = resp.json()
    assert body["success"] is True
    assert body["created"] is True

    stats = (await client.get(f"/api/funnels/{funnel['id']}", headers=headers)).json()
    assert (stats["views"], stats["conversions"], stats["conversion_rate"]) == (2, 1, 50.0)

    contact = (await client.get(f"/api/crm/contacts/{body['contact_id']}", headers=headers)).json()
    assert contact["email"] == "lead@example.com"
    assert contact["first_name"] == "Linus"
    assert contact["source"] == "Spring Offer"
    assert contact["notes"] == "Interested"


@pytest.mark.asyncio
async def test_repeat_submission_updates_existing_contact(client, owner):
    headers = owner["headers"]
    funnel = await _published(client, headers)
    url = f"/api/public/{owner['slug']}/funnels/{funnel['slug']}"
    first = (await client.post(url, json={"email": "lead@example.com", "name": "Lead"})).json()
    second = (await client.post(url, json={"email": "lead@example.com", "phone": "555-0100"})).json()

    assert second["created"] is False
    assert second["contact_id"] == first["contact_id"]
    contacts = (await client.get("/api/crm/contacts", headers=headers)).json()["data"]
    assert len(contacts) == 1
    assert contacts[0]["phone"] == "555-0100"


@pytest.mark.asyncio
async def test_submission_triggers_automations(client, owner, webhook_recorder):
    headers = owner["headers"]
    await client.post("/api/automations", json={
        "name": "Tag leads", "trigger_type": "CONTACT_CREATED", "action_type": "ADD_TAG",
    }, headers=headers)
    await client.post("/api/automations", json={
        "name": "Forward form", "trigger_type": "FORM_SUBMITTED", "action_type": "WEBHOOK",
        "action_config": {"url": "https://hooks.example.com/forms"},
    }, headers=headers)
    funnel = await _published(client, headers)
    url = f"/api/public/{owner['slug']}/funnels/{funnel['slug']}"

    body = (await client.post(url, json={"email": "lead@example.com", "fields": {"budget": "5k"}})).json()

    contact = (await client.get(f"/api/crm/contacts/{body['contact_id']}", headers=headers)).json()
    assert [t["name"] for t in contact["tags"]] == ["Funnel Lead"]
    assert len(webhook_recorder.requests) == 1
    payload = webhook_recorder.requests[0].content
    assert b'"funnel_name": "Spring Offer"' in payload
    assert b'"budget": "5k"' in payload
