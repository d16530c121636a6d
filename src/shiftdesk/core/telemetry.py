"""OpenTelemetry setup, mutation spans and W3C trace propagation for API calls."""

from __future__ import annotations

import logging
import os

from opentelemetry import trace
from opentelemetry.propagate import inject

logger = logging.getLogger(__name__)

_TRACER_NAME = "shiftdesk"

_tracer_provider_installed: bool = False


def init_telemetry(service_name: str) -> trace.Tracer:
    """Initialise tracing for one console client process.

    Installs an OTLP-exporting ``TracerProvider`` when
    ``OTEL_EXPORTER_OTLP_ENDPOINT`` is set; otherwise the global no-op tracer
    is used.  Repeated calls reuse the installed provider.
    """
    global _tracer_provider_installed

    endpoint = os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT")
    if not endpoint:
        logger.info("OTEL_EXPORTER_OTLP_ENDPOINT not set, using no-op tracer")
        return trace.get_tracer(service_name)

    if _tracer_provider_installed:
        return trace.get_tracer(service_name)

    # Import exporter only when needed
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    trace.set_tracer_provider(provider)
    _tracer_provider_installed = True
    logger.info("Telemetry initialized: endpoint=%s", endpoint)
    return trace.get_tracer(service_name)


def get_tracer(name: str = _TRACER_NAME) -> trace.Tracer:
    return trace.get_tracer(name)


class mutation_span:
    """Span around one optimistic mutation, from request to commit/rollback.

    Named ``shiftdesk.mutation`` with ``mutation.name`` and, once known,
    ``mutation.outcome``.  Exceptions are recorded and re-raised.
    """

    def __init__(self, mutation_name: str, *, generation: int) -> None:
        self._mutation_name = mutation_name
        self._generation = generation
        self._span: trace.Span | None = None
        self._token: object | None = None

    def __enter__(self) -> trace.Span:
        tracer = trace.get_tracer(_TRACER_NAME)
        self._span = tracer.start_span("shiftdesk.mutation")
        self._span.set_attribute("mutation.name", self._mutation_name)
        self._span.set_attribute("session.generation", self._generation)
        self._token = trace.context_api.attach(trace.set_span_in_context(self._span))
        return self._span

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._span is None:
            return
        if exc_val is not None:
            self._span.set_status(trace.StatusCode.ERROR, str(exc_val))
            self._span.record_exception(exc_val)
        self._span.end()
        if self._token is not None:
            trace.context_api.detach(self._token)


def inject_trace_context() -> dict[str, str]:
    """W3C ``traceparent``/``tracestate`` headers for the current span (may be empty)."""
    carrier: dict[str, str] = {}
    inject(carrier)
    return carrier
