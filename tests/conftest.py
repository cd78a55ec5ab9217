"""Pytest configuration and fixtures for testbed_orchestrator tests."""

from __future__ import annotations

from pathlib import Path
from typing import Generator

import pytest
from prometheus_client import CollectorRegistry

from testbed_orchestrator.adapters.outbound import FakeTestbedTransport, RestGateway
from testbed_orchestrator.application import CatalogService, ReservationOrchestrator
from testbed_orchestrator.infrastructure.config import ReservationDefaultsConfig
from testbed_orchestrator.infrastructure.container import Container, reset_container
from testbed_orchestrator.infrastructure.metrics import MetricsRegistry


class FakeClock:
    """Monotonic clock whose sleep() moves time forward instantly."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class RecordingSink:
    """LogSink keeping every progress message."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    def log(self, message: str) -> None:
        self.messages.append(message)

    def contains(self, fragment: str) -> bool:
        return any(fragment in m for m in self.messages)


@pytest.fixture
def container() -> Generator[Container, None, None]:
    """Provide a fresh DI container for each test."""
    reset_container()
    c = Container()
    yield c
    c.clear()


@pytest.fixture
def metrics_registry() -> MetricsRegistry:
    """Provide a fresh metrics registry for each test."""
    # Use a separate registry to avoid conflicts between tests
    registry = CollectorRegistry(auto_describe=True)
    return MetricsRegistry(registry=registry)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def fake_testbed() -> FakeTestbedTransport:
    """A testbed with one site, four graphene nodes (one dead) and two switches."""
    transport = FakeTestbedTransport(user="alice")
    transport.add_site(
        "nancy",
        clusters=["graphene", "griffon"],
        environments=["debian11-min-1.0", "debian11-min-2.0", "ubuntu2204-x64-min-1.1"],
        hosts=["graphene-1", "graphene-2", "graphene-3", "graphene-4"],
        dead_hosts=["graphene-4"],
    )
    transport.add_site("lille", clusters=["chetemi"], hosts=["chetemi-1"])
    transport.add_equipment("nancy", "sgraphene1", ["graphene-1", "graphene-2"])
    transport.add_equipment("nancy", "sgraphene2", ["graphene-3", "graphene-4"])
    transport.add_equipment("nancy", "ib-graphene")
    transport.add_equipment("nancy", "gw-nancy", ["graphene-1"], kind="router")
    return transport


@pytest.fixture
def gateway(
    fake_testbed: FakeTestbedTransport,
    fake_clock: FakeClock,
    metrics_registry: MetricsRegistry,
) -> RestGateway:
    return RestGateway(
        fake_testbed,
        username="alice",
        sleep=fake_clock.sleep,
        metrics=metrics_registry,
    )


@pytest.fixture
def catalog(gateway: RestGateway) -> CatalogService:
    return CatalogService(gateway)


@pytest.fixture
def orchestrator(
    gateway: RestGateway,
    catalog: CatalogService,
    recording_sink: RecordingSink,
    metrics_registry: MetricsRegistry,
    fake_clock: FakeClock,
    tmp_path: Path,
) -> ReservationOrchestrator:
    """Orchestrator on the fake testbed, driven by the fake clock."""
    return ReservationOrchestrator(
        gateway,
        catalog=catalog,
        log=recording_sink,
        defaults=ReservationDefaultsConfig(public_key_path=tmp_path / "id_rsa.pub"),
        metrics=metrics_registry,
        sleep=fake_clock.sleep,
        clock=fake_clock.monotonic,
        now=lambda: 1_700_000_000.0,
    )


# Markers for test categories
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests against the fake testbed")
    config.addinivalue_line("markers", "slow: Slow tests")
