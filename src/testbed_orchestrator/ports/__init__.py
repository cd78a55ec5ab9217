"""Ports layer - interface definitions following Hexagonal Architecture.

Ports are abstract interfaces (protocols) that define contracts:
- Inbound ports: APIs offered to callers (ReservationAPI, CatalogAPI)
- Outbound ports: Dependencies on external systems (Transport, LogSink,
  ResourceGateway)

Adapters implement these ports with concrete functionality.
"""

from testbed_orchestrator.ports.inbound import CatalogAPI, ReservationAPI
from testbed_orchestrator.ports.outbound import LogSink, ResourceGateway, Transport

__all__ = [
    # Inbound ports
    "ReservationAPI",
    "CatalogAPI",
    # Outbound ports
    "Transport",
    "LogSink",
    "ResourceGateway",
]
