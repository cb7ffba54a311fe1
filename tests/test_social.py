"""Test social posts, platform length limits and AI drafts."""
import pytest


@pytest.mark.asyncio
async def test_draft_and_scheduled_posts(client, owner):
    headers = owner["headers"]
    draft = (await client.post("/api/social/posts", json={"platform": "LINKEDIN", "content": "Hello"}, headers=headers)).json()
    assert draft["status"] == "DRAFT"

    scheduled = (await client.post(
        "/api/social/posts",
        json={"platform": "TWITTER", "content": "Soon", "scheduled_at": "2030-01-01T10:00:00Z"},
        headers=headers,
    )).json()
    assert scheduled["status"] == "SCHEDULED"

    resp = await client.get("/api/social/posts", params={"platform": "TWITTER"}, headers=headers)
    assert [p["id"] for p in resp.json()["data"]] == [scheduled["id"]]


@pytest.mark.asyncio
async def test_twitter_length_limit(client, owner):
    headers = owner["headers"]
    resp = await client.post("/api/social/posts", json={"platform": "TWITTER", "content": "x" * 281}, headers=headers)
    assert resp.status_code == 400
    assert "TWITTER limit of 280" in resp.json()["error"]

    resp = await client.post("/api/social/posts", json={"platform": "LINKEDIN", "content": "x" * 281}, headers=headers)
    assert resp.status_code == 201


@pytest.mark.asyncio
async def test_clearing_schedule_returns_to_draft(client, owner):
    headers = owner["headers"]
    post = (await client.post(
        "/api/social/posts",
        json={"platform": "FACEBOOK", "content": "Soon", "scheduled_at": "2030-01-01T10:00:00Z"},
        headers=headers,
    )).json()
    updated = (await client.patch(f"/api/social/posts/{post['id']}", json={"scheduled_at": None}, headers=headers)).json()
    assert updated["status"] == "DRAFT"
    assert updated["scheduled_at"] is None


@pytest.mark.asyncio
async def test_published_post_is_locked(client, owner):
    headers = owner["headers"]
    post = (await client.post("/api/social/posts", json={"platform": "INSTAGRAM", "content": "Hi"}, headers=headers)).json()
    published = (await client.post(f"/api/social/posts/{post['id']}/publish", headers=headers)).json()
    assert published["status"] == "PUBLISHED"
    assert published["published_at"] is not None

    resp = await client.patch(f"/api/social/posts/{post['id']}", json={"content": "Edited"}, headers=headers)
    assert resp.status_code == 400
    resp = await client.post(f"/api/social/posts/{post['id']}/publish", headers=headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_generate_post(client, owner):
    resp = await client.post(
        "/api/social/generate", json={"prompt": "Spring sale", "platform": "TWITTER"}, headers=owner["headers"]
    )
    assert resp.json() == {
        "success": True,
        "content": "Generated copy #launch",
        "platform": "TWITTER",
        "characters": 22,
        "limit": 280,
    }
