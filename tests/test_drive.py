"""Test folders, file records, storage metering and file summaries."""
from types import SimpleNamespace

import pytest

from domains.drive import service as drive_service

MB = 1024 * 1024


async def _upload(client, headers, name="brief.pdf", size=2 * MB, **extra):
    body = {"name": name, "type": "application/pdf", "size": size, "url": f"https://files.example.com/{name}", **extra}
    return await client.post("/api/drive/files", json=body, headers=headers)


@pytest.mark.asyncio
async def test_folder_tree_counts(client, owner):
    headers = owner["headers"]
    parent = (await client.post("/api/drive/folders", json={"name": "Clients"}, headers=headers)).json()
    assert parent["color"] == "#3B82F6"
    child = (await client.post("/api/drive/folders", json={"name": "Acme", "parent_id": parent["id"]}, headers=headers)).json()
    await _upload(client, headers, folder_id=parent["id"])

    top = (await client.get("/api/drive/folders", headers=headers)).json()["data"]
    assert [(f["name"], f["file_count"], f["folder_count"]) for f in top] == [("Clients", 1, 1)]

    nested = (await client.get("/api/drive/folders", params={"parent_id": parent["id"]}, headers=headers)).json()["data"]
    assert [f["id"] for f in nested] == [child["id"]]


@pytest.mark.asyncio
async def test_non_empty_folder_cannot_be_deleted(client, owner):
    headers = owner["headers"]
    folder = (await client.post("/api/drive/folders", json={"name": "Contracts"}, headers=headers)).json()
    file = (await _upload(client, headers, folder_id=folder["id"])).json()

    resp = await client.delete(f"/api/drive/folders/{folder['id']}", headers=headers)
    assert resp.status_code == 400

    await client.delete(f"/api/drive/files/{file['id']}", headers=headers)
    resp = await client.delete(f"/api/drive/folders/{folder['id']}", headers=headers)
    assert resp.status_code == 204


@pytest.mark.asyncio
async def test_file_listing_and_search(client, owner):
    headers = owner["headers"]
    folder = (await client.post("/api/drive/folders", json={"name": "Design"}, headers=headers)).json()
    await _upload(client, headers, name="logo.png", folder_id=folder["id"])
    await _upload(client, headers, name="invoice-march.pdf", description="Quarterly invoice")

    root = (await client.get("/api/drive/files", params={"folder_id": "root"}, headers=headers)).json()["data"]
    assert [f["name"] for f in root] == ["invoice-march.pdf"]

    found = (await client.get("/api/drive/files", params={"query": "quarterly"}, headers=headers)).json()["data"]
    assert [f["name"] for f in found] == ["invoice-march.pdf"]

    resp = await client.get("/api/drive/files", params={"folder_id": "nope"}, headers=headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_storage_is_metered(client, owner):
    headers = owner["headers"]
    file = (await _upload(client, headers, size=60 * MB)).json()
    usage = (await client.get("/api/subscriptions/usage/storage", headers=headers)).json()
    assert usage["used"] == 60

    resp = await _upload(client, headers, name="video.mp4", size=50 * MB)
    assert resp.status_code == 402

    await client.delete(f"/api/drive/files/{file['id']}", headers=headers)
    usage = (await client.get("/api/subscriptions/usage/storage", headers=headers)).json()
    assert usage["used"] == 0


@pytest.mark.asyncio
async def test_ai_summary_uses_credit(client, owner):
    headers = owner["headers"]
    file = (await _upload(client, headers)).json()

    resp = await client.post(f"/api/drive/files/{file['id']}/summary", headers=headers)
    assert resp.json() == {"success": True, "summary": "Generated copy #launch"}
    assert (await client.get(f"/api/drive/files/{file['id']}", headers=headers)).json()["ai_summary"] == "Generated copy #launch"

    usage = (await client.get("/api/subscriptions/usage/ai_credits", headers=headers)).json()
    assert usage["used"] == 1


@pytest.mark.asyncio
async def test_placeholder_summary_without_ai(client, owner, integrations, monkeypatch):
    headers = owner["headers"]
    integrations.ai_model = None
    monkeypatch.setattr(drive_service, "get_settings", lambda: SimpleNamespace(ai=SimpleNamespace(enabled=False)))
    file = (await _upload(client, headers, size=2048)).json()

    summary = (await client.post(f"/api/drive/files/{file['id']}/summary", headers=headers)).json()["summary"]
    assert summary.startswith("This application/pdf file (2.00 KB) was uploaded on ")

    usage = (await client.get("/api/subscriptions/usage/ai_credits", headers=headers)).json()
    assert usage["used"] == 0
