"""Test sign-up, organizations, team roles and invitations through the API."""
import pytest
from conftest import set_plan, sign_up


@pytest.mark.asyncio
async def test_sign_up_and_sign_in(client):
    await sign_up(client, "ada@example.com", org_name=None)

    resp = await client.post("/api/auth/sign-in", json={"email": "ADA@example.com", "password": "password123"})
    assert resp.status_code == 200
    assert resp.json()["token_type"] == "bearer"

    resp = await client.post("/api/auth/sign-in", json={"email": "ada@example.com", "password": "wrong-password"})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid email or password"}


@pytest.mark.asyncio
async def test_duplicate_sign_up_conflicts(client):
    await sign_up(client, "ada@example.com", org_name=None)
    resp = await client.post("/api/auth/sign-up", json={"email": "ada@example.com", "password": "password123"})
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_requests_without_token_are_rejected(client):
    resp = await client.get("/api/crm/contacts")
    assert resp.status_code == 401
    resp = await client.get("/api/crm/contacts", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_user_without_organization_gets_403(client):
    account = await sign_up(client, "ada@example.com", org_name=None)
    resp = await client.get("/api/crm/contacts", headers=account["headers"])
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_create_organization_seeds_defaults(client, owner):
    resp = await client.get("/api/organizations/current", headers=owner["headers"])
    assert resp.status_code == 200
    body = resp.json()
    assert body["slug"] == "acme-studio"
    assert body["role"] == "OWNER"

    resp = await client.get("/api/crm/pipelines", headers=owner["headers"])
    pipelines = resp.json()["data"]
    assert len(pipelines) == 1
    assert pipelines[0]["is_default"]
    assert [s["name"] for s in pipelines[0]["stages"]][:2] == ["Discovery", "Qualified"]

    resp = await client.get("/api/crm/tags", headers=owner["headers"])
    assert any(tag["name"] == "Hot Lead" for tag in resp.json()["data"])

    resp = await client.get("/api/subscriptions", headers=owner["headers"])
    assert resp.json()["plan"] == "FREE"


@pytest.mark.asyncio
async def test_second_organization_gets_unique_slug(client, owner):
    resp = await client.post("/api/organizations", json={"name": "Acme Studio"}, headers=owner["headers"])
    assert resp.status_code == 201
    assert resp.json()["organization"]["slug"] == "acme-studio-1"


@pytest.mark.asyncio
async def test_organization_header_must_be_a_membership(client, owner):
    other = await sign_up(client, "other@example.com", org_name="Other Co")
    headers = {**owner["headers"], "X-Organization-ID": other["organization_id"]}
    resp = await client.get("/api/organizations/current", headers=headers)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_free_plan_blocks_second_user(client, owner):
    resp = await client.post("/api/invitations", json={"email": "new@example.com"}, headers=owner["headers"])
    assert resp.status_code == 402
    assert "plan limit" in resp.json()["error"]


@pytest.mark.asyncio
async def test_invitation_flow(client, owner, mailer, session_factory):
    await set_plan(session_factory, owner["organization_id"], "PRO")

    resp = await client.post(
        "/api/invitations", json={"email": "New@Example.com", "role": "ADMIN"}, headers=owner["headers"]
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["email_sent"]
    assert not body["renewed"]
    token = body["invitation"]["token"]
    assert mailer.sent[-1].to == "new@example.com"
    assert token in mailer.sent[-1].html

    resp = await client.post("/api/invitations", json={"email": "new@example.com", "role": "ADMIN"}, headers=owner["headers"])
    assert resp.json()["renewed"]

    resp = await client.get(f"/api/invitations/token/{token}")
    assert resp.status_code == 200

    stranger = await sign_up(client, "stranger@example.com", org_name=None)
    resp = await client.post(f"/api/invitations/token/{token}/accept", headers=stranger["headers"])
    assert resp.status_code == 403

    invitee = await sign_up(client, "new@example.com", org_name=None)
    resp = await client.post(f"/api/invitations/token/{token}/accept", headers=invitee["headers"])
    assert resp.status_code == 200
    assert resp.json()["organization_id"] == owner["organization_id"]

    resp = await client.get("/api/organizations/current/members", headers=owner["headers"])
    roles = sorted(m["role"] for m in resp.json()["data"])
    assert roles == ["ADMIN", "OWNER"]


@pytest.mark.asyncio
async def test_invitation_email_failure_still_creates(client, owner, mailer, session_factory):
    await set_plan(session_factory, owner["organization_id"], "PRO")
    mailer.fail = True
    resp = await client.post("/api/invitations", json={"email": "new@example.com"}, headers=owner["headers"])
    assert resp.status_code == 201
    assert resp.json()["email_sent"] is False


async def _join(client, owner, session_factory, email, role):
    await set_plan(session_factory, owner["organization_id"], "PRO")
    resp = await client.post("/api/invitations", json={"email": email, "role": role}, headers=owner["headers"])
    token = resp.json()["invitation"]["token"]
    account = await sign_up(client, email, org_name=None)
    resp = await client.post(f"/api/invitations/token/{token}/accept", headers=account["headers"])
    assert resp.status_code == 200, resp.text
    return {**account, "headers": {"Authorization": f"Bearer {resp.json()['access_token']}"}}


async def _member_ids(client, headers):
    resp = await client.get("/api/organizations/current/members", headers=headers)
    return {m["user"]["email"]: m["id"] for m in resp.json()["data"]}


@pytest.mark.asyncio
async def test_last_owner_cannot_be_demoted_or_remove_themselves(client, owner):
    own_id = (await _member_ids(client, owner["headers"]))["owner@example.com"]

    resp = await client.patch(
        f"/api/organizations/current/members/{own_id}", json={"role": "ADMIN"}, headers=owner["headers"]
    )
    assert resp.status_code == 400
    assert resp.json() == {"error": "Cannot demote the last owner"}

    resp = await client.delete(f"/api/organizations/current/members/{own_id}", headers=owner["headers"])
    assert resp.status_code == 400
    assert resp.json() == {"error": "You cannot remove yourself"}


@pytest.mark.asyncio
async def test_only_owners_manage_owners(client, owner, session_factory):
    admin = await _join(client, owner, session_factory, "admin@example.com", "ADMIN")
    await _join(client, owner, session_factory, "member@example.com", "MEMBER")
    ids = await _member_ids(client, owner["headers"])

    resp = await client.patch(
        f"/api/organizations/current/members/{ids['owner@example.com']}", json={"role": "MEMBER"}, headers=admin["headers"]
    )
    assert resp.status_code == 403
    assert resp.json() == {"error": "Only owners can manage owners"}

    resp = await client.patch(
        f"/api/organizations/current/members/{ids['member@example.com']}", json={"role": "OWNER"}, headers=admin["headers"]
    )
    assert resp.status_code == 403

    resp = await client.delete(f"/api/organizations/current/members/{ids['owner@example.com']}", headers=admin["headers"])
    assert resp.status_code == 403

    resp = await client.patch(
        f"/api/organizations/current/members/{ids['member@example.com']}", json={"role": "ADMIN"}, headers=admin["headers"]
    )
    assert resp.status_code == 200
    assert resp.json()["role"] == "ADMIN"


@pytest.mark.asyncio
async def test_second_owner_can_be_demoted_and_removed(client, owner, session_factory):
    await _join(client, owner, session_factory, "partner@example.com", "ADMIN")
    partner_id = (await _member_ids(client, owner["headers"]))["partner@example.com"]
    path = f"/api/organizations/current/members/{partner_id}"

    resp = await client.patch(path, json={"role": "OWNER"}, headers=owner["headers"])
    assert resp.json()["role"] == "OWNER"
    resp = await client.patch(path, json={"role": "MEMBER"}, headers=owner["headers"])
    assert resp.json()["role"] == "MEMBER"

    resp = await client.delete(path, headers=owner["headers"])
    assert resp.status_code == 204
    assert list(await _member_ids(client, owner["headers"])) == ["owner@example.com"]


@pytest.mark.asyncio
async def test_switch_organization_requires_membership(client, owner):
    resp = await client.post("/api/organizations", json={"name": "Side Project"}, headers=owner["headers"])
    assert resp.status_code == 201
    side_headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}
    current = (await client.get("/api/organizations/current", headers=side_headers)).json()
    assert current["name"] == "Side Project"

    resp = await client.post(
        "/api/organizations/switch", json={"organization_id": owner["organization_id"]}, headers=side_headers
    )
    assert resp.status_code == 200
    assert resp.json()["active_organization_id"] == owner["organization_id"]
    switched = {"Authorization": f"Bearer {resp.json()['access_token']}"}
    current = (await client.get("/api/organizations/current", headers=switched)).json()
    assert current["id"] == owner["organization_id"]

    other = await sign_up(client, "other@example.com", org_name="Other Co")
    resp = await client.post(
        "/api/organizations/switch", json={"organization_id": other["organization_id"]}, headers=owner["headers"]
    )
    assert resp.status_code == 403
    assert resp.json() == {"error": "You are not a member of this organization"}


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.json()["status"] == "healthy"
