"""Prometheus metrics for the testbed orchestrator."""

from __future__ import annotations

from prometheus_client import (
    Counter,
    Histogram,
    Info,
    start_http_server,
    REGISTRY,
    CollectorRegistry,
)


class MetricsRegistry:
    """Registry of all testbed orchestrator metrics."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Initialize metrics registry."""
        self._registry = registry or REGISTRY

        # REST metrics
        self.requests_total = Counter(
            "testbed_api_requests_total",
            "Total REST requests sent to the testbed API",
            ["method", "status"],  # status: HTTP code or "timeout"
            registry=self._registry,
        )

        self.get_retries_total = Counter(
            "testbed_api_get_retries_total",
            "GET requests retried after a timeout",
            registry=self._registry,
        )

        # Lifecycle metrics
        self.reservations_total = Counter(
            "testbed_reservations_total",
            "Total reservation attempts",
            ["outcome"],  # submitted, running, failed
            registry=self._registry,
        )

        self.deployments_total = Counter(
            "testbed_deployments_total",
            "Total deployment submissions",
            ["outcome"],  # submitted, failed
            registry=self._registry,
        )

        self.releases_total = Counter(
            "testbed_releases_total",
            "Total job releases",
            ["outcome"],  # released, failed
            registry=self._registry,
        )

        # Wait metrics
        self.poll_attempts_total = Counter(
            "testbed_poll_attempts_total",
            "Total refreshes issued while waiting",
            ["kind"],  # job, deployment
            registry=self._registry,
        )

        self.wait_duration_seconds = Histogram(
            "testbed_wait_duration_seconds",
            "Time spent waiting for a job or deployment",
            ["kind"],
            buckets=(1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0, 600.0, 1800.0, 3600.0),
            registry=self._registry,
        )

        # Client info
        self.info = Info(
            "testbed_orchestrator",
            "Testbed orchestrator information",
            registry=self._registry,
        )


def setup_metrics(port: int = 8010, registry: CollectorRegistry | None = None) -> MetricsRegistry:
    """
    Set up Prometheus metrics server.

    Args:
        port: Port for the metrics HTTP server
        registry: Optional custom registry

    Returns:
        The metrics registry
    """
    metrics = MetricsRegistry(registry)

    from testbed_orchestrator import __version__
    metrics.info.info({
        "version": __version__,
    })

    start_http_server(port, registry=registry or REGISTRY)

    return metrics

