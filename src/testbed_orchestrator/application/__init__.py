"""Application layer for the testbed orchestrator.

Composes the gateway and domain services into the reservation workflow
and the catalog queries.
"""

from testbed_orchestrator.application.catalog import CatalogService
from testbed_orchestrator.application.orchestrator import ReservationOrchestrator

__all__ = [
    "CatalogService",
    "ReservationOrchestrator",
]
