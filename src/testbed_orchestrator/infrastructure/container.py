"""Dependency injection container."""

from __future__ import annotations

from typing import Any, Callable, Optional, TypeVar

from prometheus_client import CollectorRegistry

from testbed_orchestrator.infrastructure.config import Config, get_config
from testbed_orchestrator.infrastructure.logging import create_log_sink, setup_logging
from testbed_orchestrator.infrastructure.metrics import MetricsRegistry, setup_metrics
from testbed_orchestrator.infrastructure.tracing import setup_tracing
from testbed_orchestrator.ports.outbound import LogSink, Transport

T = TypeVar("T")


class Container:
    """
    Simple dependency injection container.

    Supports singleton and factory registrations with lazy initialization.
    """

    def __init__(self) -> None:
        """Initialize the container."""
        self._singletons: dict[type, Any] = {}
        self._factories: dict[type, Callable[[Container], Any]] = {}
        self._instances: dict[type, Any] = {}

    def register_singleton(self, interface: type[T], instance: T) -> None:
        """
        Register a singleton instance.

        Args:
            interface: The interface/type to register
            instance: The singleton instance
        """
        self._singletons[interface] = instance
        self._instances[interface] = instance

    def register_factory(
        self,
        interface: type[T],
        factory: Callable[[Container], T],
    ) -> None:
        """
        Register a factory function for lazy instantiation.

        Args:
            interface: The interface/type to register
            factory: Factory function that takes the container and returns an instance
        """
        self._factories[interface] = factory

    def resolve(self, interface: type[T]) -> T:
        """
        Resolve a dependency.

        Raises:
            KeyError: If no registration exists for the interface
        """
        if interface in self._instances:
            return self._instances[interface]

        if interface in self._factories:
            instance = self._factories[interface](self)
            self._instances[interface] = instance
            return instance

        raise KeyError(f"No registration found for {interface}")

    def has(self, interface: type) -> bool:
        """Check if an interface is registered."""
        return (
            interface in self._singletons
            or interface in self._factories
            or interface in self._instances
        )

    def clear(self) -> None:
        """Clear all registrations and instances."""
        self._singletons.clear()
        self._factories.clear()
        self._instances.clear()


def build_container(
    config: Optional[Config] = None,
    transport: Optional[Transport] = None,
    log: Optional[LogSink] = None,
    metrics_registry: Optional[CollectorRegistry] = None,
) -> Container:
    """
    Wire the orchestrator from configuration.

    Logging and tracing are set up from the observability section right
    away; everything else is instantiated when resolved. Resolving the
    gateway performs the API connectivity check.

    Args:
        config: Configuration (defaults to the environment)
        transport: Transport override (e.g., the fake testbed)
        log: Progress sink override
        metrics_registry: Prometheus registry; a private one is used when
            metrics export is disabled

    Returns:
        A container resolving Config, Transport, LogSink, MetricsRegistry,
        RestGateway, CatalogService and ReservationOrchestrator
    """
    from testbed_orchestrator.adapters.outbound import RequestsTransport, RestGateway
    from testbed_orchestrator.application import CatalogService, ReservationOrchestrator

    config = config or get_config()
    observability = config.observability
    setup_logging(observability.log_level, observability.log_format)
    setup_tracing(observability.otel_service_name, observability.otel_endpoint)

    container = Container()
    container.register_singleton(Config, config)

    if transport is not None:
        container.register_singleton(Transport, transport)
    else:
        container.register_factory(Transport, lambda c: RequestsTransport.from_config(config.api))

    if log is not None:
        container.register_singleton(LogSink, log)
    else:
        container.register_factory(
            LogSink, lambda c: create_log_sink(config.observability.progress_sink)
        )

    def metrics_factory(c: Container) -> MetricsRegistry:
        if config.observability.metrics_enabled:
            return setup_metrics(config.observability.metrics_port, metrics_registry)
        return MetricsRegistry(metrics_registry or CollectorRegistry())

    container.register_factory(MetricsRegistry, metrics_factory)

    container.register_factory(
        RestGateway,
        lambda c: RestGateway(
            c.resolve(Transport),
            version=config.api.version,
            username=config.api.username,
            max_retries=config.api.max_get_retries,
            retry_pause=config.api.retry_pause_seconds,
            metrics=c.resolve(MetricsRegistry),
        ),
    )
    container.register_factory(
        CatalogService,
        lambda c: CatalogService(c.resolve(RestGateway), user=config.api.username),
    )
    container.register_factory(
        ReservationOrchestrator,
        lambda c: ReservationOrchestrator(
            c.resolve(RestGateway),
            catalog=c.resolve(CatalogService),
            log=c.resolve(LogSink),
            wait=config.wait,
            defaults=config.defaults,
            metrics=c.resolve(MetricsRegistry),
        ),
    )
    return container


# Global container instance
_container: Container | None = None


def get_container() -> Container:
    """Get the global container instance, wired from the environment."""
    global _container
    if _container is None:
        _container = build_container()
    return _container


def reset_container() -> None:
    """Reset the global container (useful for testing)."""
    global _container
    if _container is not None:
        _container.clear()
    _container = None
