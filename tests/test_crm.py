"""Test contacts, tags, deals and CSV import/export through the API."""
import pytest
from conftest import sign_up


async def _create_contact(client, headers, **fields):
    resp = await client.post("/api/crm/contacts", json=fields, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.asyncio
async def test_create_and_search_contacts(client, owner):
    headers = owner["headers"]
    contact = await _create_contact(client, headers, first_name="Jane", last_name="Doe", email="Jane@Example.com")
    assert contact["email"] == "jane@example.com"
    assert contact["status"] == "LEAD"
    assert contact["tags"] == []

    await _create_contact(client, headers, first_name="John", email="john@example.com", status="CUSTOMER")

    resp = await client.get("/api/crm/contacts", params={"query": "jane"}, headers=headers)
    body = resp.json()
    assert [c["first_name"] for c in body["data"]] == ["Jane"]
    assert body["pagination"]["total"] == 1

    resp = await client.get("/api/crm/contacts", params={"status": "CUSTOMER"}, headers=headers)
    assert [c["first_name"] for c in resp.json()["data"]] == ["John"]

    resp = await client.get("/api/crm/contacts/count", headers=headers)
    assert resp.json() == {"count": 2}


@pytest.mark.asyncio
async def test_duplicate_contact_email_conflicts(client, owner):
    await _create_contact(client, owner["headers"], first_name="Jane", email="jane@example.com")
    resp = await client.post(
        "/api/crm/contacts", json={"first_name": "Other", "email": "JANE@example.com"}, headers=owner["headers"]
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_contacts_are_isolated_per_organization(client, owner):
    contact = await _create_contact(client, owner["headers"], first_name="Jane", email="jane@example.com")
    other = await sign_up(client, "other@example.com", org_name="Other Co")

    resp = await client.get(f"/api/crm/contacts/{contact['id']}", headers=other["headers"])
    assert resp.status_code == 404
    assert resp.json() == {"error": "Contact not found"}

    resp = await client.get("/api/crm/contacts", headers=other["headers"])
    assert resp.json()["data"] == []


@pytest.mark.asyncio
async def test_contact_tags(client, owner):
    headers = owner["headers"]
    contact = await _create_contact(client, headers, first_name="Jane", email="jane@example.com")
    resp = await client.post("/api/crm/tags", json={"name": "Newsletter"}, headers=headers)
    assert resp.status_code == 201
    tag = resp.json()

    resp = await client.post(f"/api/crm/contacts/{contact['id']}/tags/{tag['id']}", headers=headers)
    assert [t["name"] for t in resp.json()["tags"]] == ["Newsletter"]

    resp = await client.get("/api/crm/contacts", params={"tag_id": tag["id"]}, headers=headers)
    assert len(resp.json()["data"]) == 1

    resp = await client.delete(f"/api/crm/contacts/{contact['id']}/tags/{tag['id']}", headers=headers)
    assert resp.json()["tags"] == []


@pytest.mark.asyncio
async def test_company_link(client, owner):
    headers = owner["headers"]
    resp = await client.post("/api/crm/companies", json={"name": "Globex"}, headers=headers)
    company = resp.json()
    contact = await _create_contact(client, headers, first_name="Hank", company_id=company["id"])
    assert contact["company"]["name"] == "Globex"


@pytest.mark.asyncio
async def test_deal_lifecycle(client, owner):
    headers = owner["headers"]
    resp = await client.post("/api/crm/deals", json={"title": "Website redesign", "value": 5000}, headers=headers)
    assert resp.status_code == 201
    deal = resp.json()
    assert deal["status"] == "OPEN"
    assert deal["probability"] == 10

    board = (await client.get("/api/crm/deals/board", headers=headers)).json()
    stages = board["stages"]
    assert stages[0]["name"] == "Discovery"
    assert stages[0]["total_value"] == 5000

    proposal = next(s for s in stages if s["name"] == "Proposal")
    resp = await client.post(f"/api/crm/deals/{deal['id']}/move", json={"stage_id": proposal["id"]}, headers=headers)
    assert resp.json()["stage_id"] == proposal["id"]
    assert resp.json()["probability"] == 50

    resp = await client.post(f"/api/crm/deals/{deal['id']}/status", json={"status": "WON"}, headers=headers)
    assert resp.json()["status"] == "WON"
    assert resp.json()["actual_close_date"] is not None

    stats = (await client.get("/api/crm/deals/stats", headers=headers)).json()
    assert stats["won"] == 1
    assert stats["won_value"] == 5000
    assert stats["conversion_rate"] == 100


@pytest.mark.asyncio
async def test_move_deal_to_foreign_stage_rejected(client, owner):
    headers = owner["headers"]
    deal = (await client.post("/api/crm/deals", json={"title": "Retainer"}, headers=headers)).json()
    resp = await client.post(
        "/api/crm/pipelines",
        json={"name": "Partnerships", "stages": [{"name": "Intro"}, {"name": "Signed", "probability": 100}]},
        headers=headers,
    )
    other_stage = resp.json()["stages"][0]
    resp = await client.post(f"/api/crm/deals/{deal['id']}/move", json={"stage_id": other_stage["id"]}, headers=headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_import_and_export_csv(client, owner):
    headers = owner["headers"]
    await _create_contact(client, headers, first_name="Existing", email="dup@example.com")
    csv_text = (
        "First Name,Last Name,Email Address,Company\n"
        "Ada,Lovelace,ada@example.com,Analytical Engines\n"
        "Dup,Person,dup@example.com,\n"
        ",,,Nameless Co\n"
        "Bad,Email,not-an-email,\n"
    )
    resp = await client.post("/api/crm/contacts/import", json={"csv": csv_text}, headers=headers)
    body = resp.json()
    assert body["success"] == 1
    assert body["failed"] == 3
    assert "Row 3: A contact with this email already exists" in body["errors"]
    assert "Row 4: Missing email and name" in body["errors"]
    assert any(e.startswith("Row 5: Invalid email") for e in body["errors"])

    resp = await client.get("/api/crm/contacts/export", headers=headers)
    assert resp.headers["content-type"].startswith("text/csv")
    lines = resp.text.strip().splitlines()
    assert lines[0] == "First Name,Last Name,Email,Phone,Title,Company,Status,Source,Notes"
    assert any('"ada@example.com"' in line and '"Analytical Engines"' in line for line in lines[1:])
