"""Shared fixtures: in-memory SQLite per test, recording integrations, API client."""
import os
from uuid import UUID

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"

import httpx
import pytest
import pytest_asyncio
from pydantic_ai.models.test import TestModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.deps import get_integrations
from api.main import app
from core.config import get_settings
from core.database import create_engine_for, get_session, init_db
from core.email.sender import EmailMessage, EmailSender
from core.integrations import Integrations, WebhookClient
from domains.automations.executor import get_idempotency_store
from domains.subscriptions.service import get_subscription


class RecordingMailer(EmailSender):
    """Keeps every message instead of delivering it."""

    provider = "recording"

    def __init__(self):
        super().__init__(get_settings().email)
        self.sent: list[EmailMessage] = []
        self.fail = False

    async def _deliver(self, message: EmailMessage) -> None:
        if self.fail:
            raise RuntimeError("mailbox unavailable")
        self.sent.append(message)


class WebhookRecorder:
    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.status_code = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"ok": True})


@pytest_asyncio.fixture
async def engine():
    engine = create_engine_for("sqlite+aiosqlite://")
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def webhook_recorder():
    return WebhookRecorder()


@pytest_asyncio.fixture
async def integrations(mailer, webhook_recorder):
    async with httpx.AsyncClient(transport=httpx.MockTransport(webhook_recorder)) as client:
        yield Integrations(
            mailer=mailer,
            webhooks=WebhookClient(client=client),
            ai_model=TestModel(custom_output_text="Generated copy #launch"),
        )


@pytest.fixture(autouse=True)
def clear_idempotency_store():
    get_idempotency_store().clear()
    yield
    get_idempotency_store().clear()


@pytest_asyncio.fixture
async def client(session_factory, integrations):
    async def override_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_integrations] = lambda: integrations
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def sign_up(client: httpx.AsyncClient, email: str, org_name: str | None = "Acme Studio") -> dict:
    """Register a user and (optionally) create their organization. Returns auth headers and ids."""
    resp = await client.post("/api/auth/sign-up", json={"email": email, "password": "password123", "name": "Ada Owner"})
    assert resp.status_code == 201, resp.text
    body = resp.json()
    account = {
        "user_id": body["user"]["id"],
        "headers": {"Authorization": f"Bearer {body['access_token']}"},
    }
    if org_name:
        resp = await client.post("/api/organizations", json={"name": org_name}, headers=account["headers"])
        assert resp.status_code == 201, resp.text
        org = resp.json()
        account["organization_id"] = org["organization"]["id"]
        account["slug"] = org["organization"]["slug"]
        account["headers"] = {"Authorization": f"Bearer {org['access_token']}"}
    return account


@pytest_asyncio.fixture
async def owner(client):
    return await sign_up(client, "owner@example.com")


async def set_plan(session_factory, organization_id: str, plan: str) -> None:
    async with session_factory() as session:
        subscription = await get_subscription(session, UUID(organization_id))
        subscription.plan = plan
        await session.commit()
