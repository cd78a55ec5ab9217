"""Adapters layer - concrete implementations of port interfaces.

Adapters provide the actual implementations:
- Inbound adapters: HTTP front for the orchestrator (FastAPI)
- Outbound adapters: transport to the testbed REST API and the gateway
  that decodes its hypermedia representations
"""

from testbed_orchestrator.adapters.outbound import (
    FakeTestbedTransport,
    RequestsTransport,
    RestGateway,
)

__all__ = [
    # Outbound adapters
    "FakeTestbedTransport",
    "RequestsTransport",
    "RestGateway",
]
