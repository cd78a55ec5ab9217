"""Outbound ports - External dependency interfaces for the orchestrator.

Outbound ports define the interfaces for the systems the orchestrator
depends on: the raw HTTP transport, the destination of progress messages,
and the resource gateway that entities refresh themselves through.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Mapping, Optional, Protocol

if TYPE_CHECKING:
    from testbed_orchestrator.domain.entities.resource import (
        HypermediaResource,
        ResourceCollection,
    )


# =============================================================================
# Transport Port
# =============================================================================


class Transport(Protocol):
    """Protocol for raw HTTP exchanges with the testbed API.

    The transport owns TLS, connection reuse and credential encoding.
    It does not interpret status codes.

    Example:
        status, body = transport.send("GET", "sid/sites")
        status, body = transport.send("POST", "sid/sites/nancy/jobs", {"resources": "/nodes=1"})
    """

    @abstractmethod
    def send(
        self, method: str, path: str, body: Optional[Mapping[str, Any]] = None
    ) -> tuple[int, str]:
        """Send a request.

        Args:
            method: HTTP method ("GET", "POST", "DELETE").
            path: Path relative to the API endpoint.
            body: JSON-serializable request payload.

        Returns:
            (status code, response body text).

        Raises:
            TransportTimeout: If the request timed out.
            TransportError: If the request could not be completed.
        """
        ...


# =============================================================================
# Log Sink Port
# =============================================================================


class LogSink(Protocol):
    """Protocol for progress messages (site, resource spec, schedule, counts)."""

    @abstractmethod
    def log(self, message: str) -> None:
        """Emit one progress message."""
        ...


# =============================================================================
# Resource Gateway Port
# =============================================================================


class ResourceGateway(Protocol):
    """Protocol for fetching and mutating hypermedia resources.

    Entities refresh themselves through this port.
    """

    @abstractmethod
    def get(self, path: str, model: type = ...) -> HypermediaResource:
        """GET a resource and decode it into `model`."""
        ...

    @abstractmethod
    def get_collection(self, path: str, item_model: type = ...) -> ResourceCollection:
        """GET a collection and decode its items into `item_model`."""
        ...

    @abstractmethod
    def post(self, path: str, payload: Mapping[str, Any], model: type = ...) -> HypermediaResource:
        """POST a payload and decode the created resource."""
        ...

    @abstractmethod
    def delete(self, path: str) -> Optional[HypermediaResource]:
        """DELETE a resource. Returns None when nothing (or nothing parsable) comes back."""
        ...


__all__ = [
    "Transport",
    "LogSink",
    "ResourceGateway",
]
