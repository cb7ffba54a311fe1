"""Test automation management and the event-driven executor."""
import json
from uuid import UUID

import pytest
from conftest import set_plan
from domains.automations.executor import trigger_automations


async def _automation(client, headers, trigger, action, action_config=None, trigger_config=None):
    resp = await client.post(
        "/api/automations",
        json={
            "name": f"{trigger} -> {action}",
            "trigger_type": trigger,
            "trigger_config": trigger_config or {},
            "action_type": action,
            "action_config": action_config or {},
        },
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _get(client, headers, automation_id):
    return (await client.get(f"/api/automations/{automation_id}", headers=headers)).json()


@pytest.mark.asyncio
async def test_create_automation_has_labels(client, owner):
    automation = await _automation(client, owner["headers"], "CONTACT_CREATED", "SEND_EMAIL")
    assert automation["status"] == "ACTIVE"
    assert automation["trigger_label"] == "New contact created"
    assert automation["action_label"] == "Send email"


@pytest.mark.asyncio
async def test_free_plan_automation_limit(client, owner):
    await _automation(client, owner["headers"], "CONTACT_CREATED", "SEND_EMAIL")
    await _automation(client, owner["headers"], "DEAL_WON", "SEND_NOTIFICATION")
    resp = await client.post(
        "/api/automations",
        json={"name": "third", "trigger_type": "DEAL_LOST", "action_type": "SEND_EMAIL"},
        headers=owner["headers"],
    )
    assert resp.status_code == 402


@pytest.mark.asyncio
async def test_contact_created_sends_merged_email(client, owner, mailer):
    headers = owner["headers"]
    automation = await _automation(
        client, headers, "CONTACT_CREATED", "SEND_EMAIL",
        action_config={"subject": "Welcome {{Contact.FirstName}}", "body": "<p>Hi {{Contact.Name}}</p>"},
    )
    resp = await client.post(
        "/api/crm/contacts", json={"first_name": "Jane", "last_name": "Doe", "email": "jane@example.com"}, headers=headers
    )
    assert resp.status_code == 201

    message = mailer.sent[-1]
    assert message.to == "jane@example.com"
    assert message.subject == "Welcome Jane"
    assert message.text == "Hi Jane Doe"

    automation = await _get(client, headers, automation["id"])
    assert automation["executions"] == 1
    assert automation["last_run_at"] is not None
    assert automation["last_error"] is None


@pytest.mark.asyncio
async def test_add_tag_action_creates_default_tag(client, owner):
    headers = owner["headers"]
    await _automation(client, headers, "CONTACT_CREATED", "ADD_TAG")
    contact = (await client.post("/api/crm/contacts", json={"first_name": "Jane"}, headers=headers)).json()
    contact = (await client.get(f"/api/crm/contacts/{contact['id']}", headers=headers)).json()
    assert [t["name"] for t in contact["tags"]] == ["Funnel Lead"]


@pytest.mark.asyncio
async def test_condition_mismatch_skips_without_counting(client, owner, mailer):
    headers = owner["headers"]
    automation = await _automation(
        client, headers, "CONTACT_CREATED", "SEND_EMAIL",
        trigger_config={"conditions": [{"field": "source", "op": "eq", "value": "Website"}]},
    )
    await client.post("/api/crm/contacts", json={"first_name": "Jane", "email": "jane@example.com", "source": "Referral"}, headers=headers)
    assert mailer.sent == []
    assert (await _get(client, headers, automation["id"]))["executions"] == 0

    await client.post("/api/crm/contacts", json={"first_name": "John", "email": "john@example.com", "source": "Website"}, headers=headers)
    assert [m.to for m in mailer.sent] == ["john@example.com"]


@pytest.mark.asyncio
async def test_failed_action_is_recorded_and_does_not_fail_request(client, owner, webhook_recorder):
    headers = owner["headers"]
    webhook_recorder.status_code = 500
    automation = await _automation(client, headers, "CONTACT_CREATED", "WEBHOOK", action_config={"url": "https://hooks.example.com/in"})

    resp = await client.post("/api/crm/contacts", json={"first_name": "Jane"}, headers=headers)
    assert resp.status_code == 201

    automation = await _get(client, headers, automation["id"])
    assert automation["executions"] == 1
    assert automation["last_error"] == "Webhook failed: HTTP 500"


@pytest.mark.asyncio
async def test_webhook_action_payload(client, owner, webhook_recorder):
    headers = owner["headers"]
    await _automation(client, headers, "CONTACT_CREATED", "WEBHOOK", action_config={"url": "https://hooks.example.com/in", "secret": "s3cret"})
    await client.post("/api/crm/contacts", json={"first_name": "Jane", "email": "jane@example.com"}, headers=headers)

    request = webhook_recorder.requests[-1]
    payload = json.loads(request.content)
    assert payload["trigger"] == "CONTACT_CREATED"
    assert payload["data"]["email"] == "jane@example.com"
    assert request.headers["X-BizOS-Signature"].startswith("sha256=")


@pytest.mark.asyncio
async def test_unknown_condition_operator_counts_as_failure(client, owner, mailer):
    headers = owner["headers"]
    automation = await _automation(
        client, headers, "CONTACT_CREATED", "SEND_EMAIL",
        trigger_config={"conditions": [{"field": "email", "op": "regex", "value": ".*"}]},
    )
    await client.post("/api/crm/contacts", json={"first_name": "Jane", "email": "jane@example.com"}, headers=headers)
    automation = await _get(client, headers, automation["id"])
    assert automation["executions"] == 1
    assert "Unknown condition operator" in automation["last_error"]
    assert mailer.sent == []


@pytest.mark.asyncio
async def test_paused_automation_does_not_run(client, owner, mailer):
    headers = owner["headers"]
    automation = await _automation(client, headers, "CONTACT_CREATED", "SEND_EMAIL")
    resp = await client.post(f"/api/automations/{automation['id']}/toggle", headers=headers)
    assert resp.json()["status"] == "PAUSED"
    await client.post("/api/crm/contacts", json={"first_name": "Jane", "email": "jane@example.com"}, headers=headers)
    assert mailer.sent == []


@pytest.mark.asyncio
async def test_redelivered_event_runs_once(client, owner, session_factory, integrations, mailer):
    automation = await _automation(client, owner["headers"], "FORM_SUBMITTED", "SEND_EMAIL")
    context = {"email": "jane@example.com", "first_name": "Jane"}
    organization_id = UUID(owner["organization_id"])

    async with session_factory() as session:
        first = await trigger_automations(
            session, organization_id, "FORM_SUBMITTED", context, integrations, event_id="evt_1"
        )
        second = await trigger_automations(
            session, organization_id, "FORM_SUBMITTED", dict(context), integrations, event_id="evt_1"
        )
        await session.commit()

    assert [r.status for r in first] == ["success"]
    assert [r.status for r in second] == ["duplicate"]
    assert len(mailer.sent) == 1
    assert (await _get(client, owner["headers"], automation["id"]))["executions"] == 1


@pytest.mark.asyncio
async def test_new_events_with_same_context_each_run(client, owner, session_factory, integrations, mailer):
    automation = await _automation(client, owner["headers"], "FORM_SUBMITTED", "SEND_EMAIL")
    context = {"email": "jane@example.com", "first_name": "Jane"}
    organization_id = UUID(owner["organization_id"])

    async with session_factory() as session:
        first = await trigger_automations(session, organization_id, "FORM_SUBMITTED", context, integrations)
        second = await trigger_automations(session, organization_id, "FORM_SUBMITTED", dict(context), integrations)
        await session.commit()

    assert [r.status for r in first] == ["success"]
    assert [r.status for r in second] == ["success"]
    assert len(mailer.sent) == 2
    assert (await _get(client, owner["headers"], automation["id"]))["executions"] == 2


@pytest.mark.asyncio
async def test_tag_added_again_runs_again(client, owner, mailer):
    headers = owner["headers"]
    automation = await _automation(
        client, headers, "CONTACT_TAG_ADDED", "SEND_EMAIL", action_config={"subject": "Tagged {{tag_name}}"}
    )
    contact = (await client.post(
        "/api/crm/contacts", json={"first_name": "Jane", "email": "jane@example.com"}, headers=headers
    )).json()
    tag = (await client.post("/api/crm/tags", json={"name": "Partner"}, headers=headers)).json()
    path = f"/api/crm/contacts/{contact['id']}/tags/{tag['id']}"

    assert (await client.post(path, headers=headers)).status_code == 200
    assert (await client.delete(path, headers=headers)).status_code == 200
    assert (await client.post(path, headers=headers)).status_code == 200

    assert [m.subject for m in mailer.sent] == ["Tagged Partner", "Tagged Partner"]
    assert (await _get(client, headers, automation["id"]))["executions"] == 2


@pytest.mark.asyncio
async def test_database_failure_does_not_block_siblings(client, owner, session_factory, integrations):
    headers = owner["headers"]
    task = await _automation(client, headers, "DEAL_WON", "CREATE_TASK", action_config={"title": "Kickoff"})
    notify = await _automation(client, headers, "DEAL_WON", "SEND_NOTIFICATION", action_config={"title": "Deal closed"})
    organization_id = UUID(owner["organization_id"])
    missing_deal = "00000000-0000-4000-8000-000000000001"

    async with session_factory() as session:
        runs = await trigger_automations(session, organization_id, "DEAL_WON", {"deal_id": missing_deal}, integrations)
        await session.commit()

    statuses = {r.automation_id: r.status for r in runs}
    assert statuses == {task["id"]: "failed", notify["id"]: "success"}

    failed = await _get(client, headers, task["id"])
    assert failed["executions"] == 1
    assert "FOREIGN KEY constraint failed" in failed["last_error"]
    succeeded = await _get(client, headers, notify["id"])
    assert succeeded["executions"] == 1
    assert succeeded["last_error"] is None

    titles = [n["title"] for n in (await client.get("/api/notifications", headers=headers)).json()["data"]]
    assert titles == ["Deal closed"]
    activities = (await client.get("/api/crm/activities", headers=headers)).json()
    assert all(a["title"] != "Kickoff" for a in activities["data"])
@pytest.mark.asyncio
async def test_deal_won_notifies_members(client, owner):
    headers = owner["headers"]
    await _automation(client, headers, "DEAL_WON", "SEND_NOTIFICATION", action_config={"title": "Won: {{title}}"})
    deal = (await client.post("/api/crm/deals", json={"title": "Big Contract", "value": 100}, headers=headers)).json()
    await client.post(f"/api/crm/deals/{deal['id']}/status", json={"status": "WON"}, headers=headers)

    resp = await client.get("/api/notifications", headers=headers)
    titles = [n["title"] for n in resp.json()["data"]]
    assert "Won: Big Contract" in titles


@pytest.mark.asyncio
async def test_create_task_action(client, owner, session_factory):
    await set_plan(session_factory, owner["organization_id"], "PRO")
    headers = owner["headers"]
    await _automation(
        client, headers, "CONTACT_CREATED", "CREATE_TASK",
        action_config={"title": "Call {{Contact.FirstName}}", "due_in_days": 2},
    )
    contact = (await client.post("/api/crm/contacts", json={"first_name": "Jane"}, headers=headers)).json()
    resp = await client.get("/api/crm/activities", params={"contact_id": contact["id"]}, headers=headers)
    tasks = resp.json()["data"]
    assert tasks[0]["type"] == "TASK"
    assert tasks[0]["title"] == "Call Jane"
    assert tasks[0]["due_date"] is not None
