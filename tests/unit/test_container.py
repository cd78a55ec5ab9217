"""Unit tests for dependency injection and wiring."""

from __future__ import annotations

import logging
from typing import Generator

import pytest
import structlog
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from prometheus_client import CollectorRegistry

from testbed_orchestrator.adapters.outbound import FakeTestbedTransport, RequestsTransport, RestGateway
from testbed_orchestrator.application import CatalogService, ReservationOrchestrator
from testbed_orchestrator.infrastructure import tracing
from testbed_orchestrator.infrastructure.config import ApiConfig, Config, ObservabilityConfig
from testbed_orchestrator.infrastructure.container import Container, build_container
from testbed_orchestrator.infrastructure.logging import TimestampedStdoutSink
from testbed_orchestrator.infrastructure.metrics import MetricsRegistry
from testbed_orchestrator.ports.outbound import LogSink, Transport


@pytest.fixture(autouse=True)
def reset_observability() -> Generator[None, None, None]:
    """Undo the logging and tracing set up by build_container."""
    yield
    structlog.reset_defaults()
    tracing.shutdown_tracing()


@pytest.mark.unit
class TestContainer:
    """Tests for Container."""

    def test_singleton(self, container: Container) -> None:
        sink = TimestampedStdoutSink()
        container.register_singleton(LogSink, sink)
        assert container.resolve(LogSink) is sink
        assert container.has(LogSink)

    def test_factory_is_lazy_and_cached(self, container: Container) -> None:
        calls: list[int] = []

        def factory(c: Container) -> TimestampedStdoutSink:
            calls.append(1)
            return TimestampedStdoutSink()

        container.register_factory(LogSink, factory)
        assert calls == []
        assert container.resolve(LogSink) is container.resolve(LogSink)
        assert calls == [1]

    def test_unregistered(self, container: Container) -> None:
        with pytest.raises(KeyError):
            container.resolve(Transport)

    def test_clear(self, container: Container) -> None:
        container.register_singleton(LogSink, TimestampedStdoutSink())
        container.clear()
        assert not container.has(LogSink)


@pytest.mark.unit
class TestBuildContainer:
    """Tests for build_container wiring."""

    def test_wires_orchestrator_on_fake_testbed(self, fake_testbed: FakeTestbedTransport) -> None:
        config = Config(api=ApiConfig(username="alice"))
        container = build_container(
            config, transport=fake_testbed, metrics_registry=CollectorRegistry()
        )

        orchestrator = container.resolve(ReservationOrchestrator)

        assert isinstance(orchestrator, ReservationOrchestrator)
        assert container.resolve(CatalogService) is orchestrator.catalog
        assert container.resolve(CatalogService).user == "alice"
        assert isinstance(container.resolve(MetricsRegistry), MetricsRegistry)
        # Resolving the gateway checked the API root
        assert fake_testbed.requests[0].path == "sid/"

    def test_default_transport(self) -> None:
        config = Config(api=ApiConfig(uri="https://api.example.org/"))
        container = build_container(config, metrics_registry=CollectorRegistry())
        transport = container.resolve(Transport)
        assert isinstance(transport, RequestsTransport)
        assert container.has(RestGateway)

    def test_configures_logging(self, fake_testbed: FakeTestbedTransport) -> None:
        config = Config(
            api=ApiConfig(username="alice"),
            observability=ObservabilityConfig(log_level="DEBUG", log_format="json"),
        )

        build_container(config, transport=fake_testbed, metrics_registry=CollectorRegistry())

        structlog_config = structlog.get_config()
        assert isinstance(structlog_config["processors"][-1], structlog.processors.JSONRenderer)
        assert structlog_config["wrapper_class"] is structlog.make_filtering_bound_logger(logging.DEBUG)

    def test_configures_tracing(
        self, fake_testbed: FakeTestbedTransport, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """An OTLP endpoint installs an SDK provider exporting orchestrator spans."""
        endpoints: list[str] = []
        spans = InMemorySpanExporter()

        def otlp_exporter(endpoint: str, insecure: bool) -> InMemorySpanExporter:
            endpoints.append(endpoint)
            return spans

        monkeypatch.setattr(tracing, "OTLPSpanExporter", otlp_exporter)
        config = Config(
            api=ApiConfig(username="alice"),
            observability=ObservabilityConfig(
                otel_endpoint="http://localhost:4317", otel_service_name="testbed-ci"
            ),
        )
        container = build_container(
            config, transport=fake_testbed, metrics_registry=CollectorRegistry()
        )

        provider = tracing.get_tracer_provider()
        assert isinstance(provider, TracerProvider)
        assert isinstance(trace.get_tracer_provider(), TracerProvider)
        assert endpoints == ["http://localhost:4317"]
        assert provider.resource.attributes["service.name"] == "testbed-ci"

        uid = fake_testbed.add_job("nancy")
        orchestrator = container.resolve(ReservationOrchestrator)
        orchestrator.release(orchestrator.catalog.get_job("nancy", uid))
        provider.force_flush()

        (span,) = [s for s in spans.get_finished_spans() if s.name == "testbed.release"]
        assert "testbed.resource" in span.attributes

    def test_tracing_without_endpoint(self, fake_testbed: FakeTestbedTransport) -> None:
        config = Config(api=ApiConfig(username="alice"))

        build_container(config, transport=fake_testbed, metrics_registry=CollectorRegistry())

        assert isinstance(tracing.get_tracer_provider(), TracerProvider)
