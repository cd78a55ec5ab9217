"""OpenTelemetry tracing for orchestrator operations.

Every reserve, wait, deploy and release runs inside a span named
"testbed.<operation>" whose attributes live under the "testbed." namespace
(site, resource spec, job uid...). When an OrchestratorError leaves a span,
the error class is recorded as "testbed.error", and the HTTP status too when
the backend answered.

References:
    - DESIGN.md Section 7.4 (Metrics and tracing)
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Generator

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from testbed_orchestrator import __version__
from testbed_orchestrator.domain.errors import OrchestratorError

SPAN_NAMESPACE = "testbed"
INSTRUMENTATION_NAME = "testbed_orchestrator"

_provider: TracerProvider | None = None
_tracer: trace.Tracer | None = None


def setup_tracing(
    service_name: str = "testbed_orchestrator",
    otlp_endpoint: str | None = None,
    console_export: bool = False,
) -> trace.Tracer:
    """
    Set up OpenTelemetry tracing.

    The first provider set up also becomes the process-wide OpenTelemetry
    provider; orchestrator spans always go to the latest one.

    Args:
        service_name: Name of the service for tracing
        otlp_endpoint: OTLP collector endpoint (e.g., "http://localhost:4317")
        console_export: Whether to also export to console (for debugging)

    Returns:
        Configured tracer instance
    """
    global _provider, _tracer

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": __version__,
        }
    )
    provider = TracerProvider(resource=resource)

    if otlp_endpoint:
        otlp_exporter = OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True)
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

    if console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    # OpenTelemetry refuses to replace a global SDK provider
    if not isinstance(trace.get_tracer_provider(), TracerProvider):
        trace.set_tracer_provider(provider)

    _provider = provider
    _tracer = provider.get_tracer(INSTRUMENTATION_NAME, __version__)
    return _tracer


def get_tracer_provider() -> TracerProvider | None:
    """Provider installed by the last setup_tracing(), if any."""
    return _provider


def shutdown_tracing() -> None:
    """Flush and shut down the provider installed by setup_tracing()."""
    global _provider, _tracer
    if _provider is not None:
        _provider.shutdown()
    _provider = None
    _tracer = None


def get_tracer() -> trace.Tracer:
    """Get the orchestrator tracer; a no-op tracer until tracing is set up."""
    if _tracer is None:
        return trace.get_tracer(INSTRUMENTATION_NAME, __version__)
    return _tracer


@contextmanager
def trace_span(operation: str, **attributes: Any) -> Generator[trace.Span, None, None]:
    """
    Run an orchestrator operation inside a span.

    Example:
        with trace_span("reserve", site="nancy", resources="/nodes=2"):
            ...
        # span "testbed.reserve" with testbed.site and testbed.resources

    Args:
        operation: Operation name, prefixed with the "testbed." namespace
        **attributes: Span attributes, namespaced the same way; None values are skipped

    Yields:
        The active span
    """
    with get_tracer().start_as_current_span(f"{SPAN_NAMESPACE}.{operation}") as span:
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(f"{SPAN_NAMESPACE}.{key}", value)
        try:
            yield span
        except OrchestratorError as exc:
            span.set_attribute(f"{SPAN_NAMESPACE}.error", type(exc).__name__)
            status = getattr(exc, "status", None)
            if status is not None:
                span.set_attribute("http.status_code", status)
            raise
