"""Infrastructure layer - cross-cutting concerns."""

from testbed_orchestrator.infrastructure.config import Config, get_config
from testbed_orchestrator.infrastructure.logging import (
    StructlogSink,
    TimestampedStdoutSink,
    get_logger,
    setup_logging,
)
from testbed_orchestrator.infrastructure.metrics import MetricsRegistry, setup_metrics
from testbed_orchestrator.infrastructure.tracing import get_tracer, setup_tracing, trace_span

__all__ = [
    "Config",
    "get_config",
    "setup_logging",
    "get_logger",
    "TimestampedStdoutSink",
    "StructlogSink",
    "setup_metrics",
    "MetricsRegistry",
    "setup_tracing",
    "get_tracer",
    "trace_span",
]
