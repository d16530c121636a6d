"""Tests for shiftdesk.core.telemetry: mutation spans and trace propagation."""

from __future__ import annotations

import pytest
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from shiftdesk.core import telemetry
from shiftdesk.core.telemetry import inject_trace_context, init_telemetry, mutation_span

pytestmark = pytest.mark.unit


@pytest.fixture
def exporter(monkeypatch) -> InMemorySpanExporter:
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    monkeypatch.setattr(
        telemetry.trace, "get_tracer", lambda name, *args, **kwargs: provider.get_tracer(name)
    )
    yield exporter
    provider.shutdown()


def test_mutation_span_records_name_and_generation(exporter):
    with mutation_span("toggle_star", generation=3) as span:
        span.set_attribute("mutation.outcome", "committed")

    (finished,) = exporter.get_finished_spans()
    assert finished.name == "shiftdesk.mutation"
    assert finished.attributes["mutation.name"] == "toggle_star"
    assert finished.attributes["session.generation"] == 3
    assert finished.attributes["mutation.outcome"] == "committed"


def test_mutation_span_records_exceptions(exporter):
    with pytest.raises(KeyError), mutation_span("send_notification", generation=1):
        raise KeyError("boom")

    (finished,) = exporter.get_finished_spans()
    assert finished.status.status_code is trace.StatusCode.ERROR
    assert finished.events[0].name == "exception"


def test_inject_trace_context_inside_span(exporter):
    with mutation_span("mark_notification_read", generation=1):
        headers = inject_trace_context()
    assert headers["traceparent"].startswith("00-")


def test_inject_trace_context_without_span_is_empty():
    assert inject_trace_context() == {}


def test_init_without_endpoint_returns_noop_tracer(monkeypatch):
    monkeypatch.delenv("OTEL_EXPORTER_OTLP_ENDPOINT", raising=False)
    tracer = init_telemetry("shiftdesk.test")
    assert tracer is not None
