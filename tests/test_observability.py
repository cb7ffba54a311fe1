"""Test tracing setup and automation spans."""
from uuid import UUID

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from core.config import TracingConfig
from core.observability.tracing import build_tracer_provider, setup_tracing
from domains.automations import executor


def test_provider_carries_service_name():
    provider = build_tracer_provider("unified-bizos")
    assert provider.resource.attributes["service.name"] == "unified-bizos"


def test_tracing_is_off_without_endpoint():
    assert TracingConfig().enabled is False
    assert setup_tracing(TracingConfig()) is None
    assert TracingConfig(otlp_endpoint="http://collector:4317").enabled is True


@pytest.mark.asyncio
async def test_automation_runs_are_traced(client, owner, session_factory, integrations, monkeypatch):
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    monkeypatch.setattr(executor, "tracer", provider.get_tracer("test"))

    resp = await client.post(
        "/api/automations",
        json={"name": "Welcome", "trigger_type": "FORM_SUBMITTED", "action_type": "SEND_EMAIL"},
        headers=owner["headers"],
    )
    automation_id = resp.json()["id"]

    async with session_factory() as session:
        await executor.trigger_automations(
            session, UUID(owner["organization_id"]), "FORM_SUBMITTED",
            {"email": "jane@example.com"}, integrations, event_id="evt_42",
        )
        await session.commit()

    [span] = exporter.get_finished_spans()
    assert span.name == "automation.run"
    assert span.attributes["automation.id"] == automation_id
    assert span.attributes["automation.action"] == "SEND_EMAIL"
    assert span.attributes["automation.event_id"] == "evt_42"
    assert span.attributes["automation.status"] == "success"
