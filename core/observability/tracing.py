"""
OpenTelemetry tracing.

- One span per automation run (``automation.run``) with the trigger, action
  and outcome as attributes
- OTLP export when ``OTEL_EXPORTER_OTLP_ENDPOINT`` is set; without it spans
  go to the API's no-op provider
"""
from __future__ import annotations

import logging
from typing import Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from core.config import TracingConfig

logger = logging.getLogger(__name__)


def build_tracer_provider(service_name: str, endpoint: Optional[str] = None) -> TracerProvider:
    """Tracer provider tagged with the service name, exporting over OTLP when an endpoint is given."""
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    if endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    return provider


def setup_tracing(config: TracingConfig) -> Optional[TracerProvider]:
    """Install the global tracer provider. Returns None when tracing is off."""
    if not config.enabled:
        return None
    provider = build_tracer_provider(config.service_name, config.otlp_endpoint)
    trace.set_tracer_provider(provider)
    logger.info("Tracing %s to %s", config.service_name, config.otlp_endpoint)
    return provider
