"""Error taxonomy for the testbed orchestrator.

Every failure surfaced to callers derives from OrchestratorError so a caller can
catch the whole family, while WaitTimeout stays distinguishable from other
failures (a caller usually wants to release and retry after a timeout).

References:
    - DESIGN.md Section 7.1 (Error handling)
"""

from __future__ import annotations

from typing import Any, Optional


class OrchestratorError(Exception):
    """Base class for all orchestrator errors."""

    pass


# =============================================================================
# Transport and backend errors
# =============================================================================


class TransportError(OrchestratorError):
    """Raised when the transport cannot complete a request."""

    pass


class TransportTimeout(TransportError):
    """Raised when a request times out at the transport level."""

    pass


class CredentialsInvalid(OrchestratorError):
    """Raised when the API rejects the configured credentials (HTTP 401)."""

    pass


class BackendRejected(OrchestratorError):
    """Raised for any non-2xx response that is not otherwise classified."""

    def __init__(self, method: str, path: str, status: int, body: str) -> None:
        self.method = method
        self.path = path
        self.status = status
        self.body = body
        super().__init__(f"{method} {path} failed with HTTP {status}: {body[:200]}")


class AlreadyReleased(BackendRejected):
    """Raised when the backend reports that a job was already killed."""

    pass


class LinkNotFound(OrchestratorError):
    """Raised when a resource has no link with the requested relation."""

    def __init__(self, relation: str, resource: Any = None) -> None:
        self.relation = relation
        self.resource = resource
        super().__init__(f"No '{relation}' link on resource {resource!r}")


class JobNotFound(OrchestratorError):
    """Raised when a submitted job cannot be found on the site."""

    pass


class SwitchNotFound(OrchestratorError, LookupError):
    """Raised when a site has no switch with the requested name."""

    pass


# =============================================================================
# Caller input errors (raised before any network call)
# =============================================================================


class InvalidOptions(OrchestratorError, ValueError):
    """Base class for invalid reservation or deployment options."""

    pass


class MissingRequiredOption(InvalidOptions):
    """Raised when nodes, walltime or site is missing."""

    def __init__(self, option: str) -> None:
        self.option = option
        super().__init__(f"At least nodes, walltime and site must be given (missing: {option})")


class InvalidNodeCount(InvalidOptions):
    """Raised when the node count is not a positive integer."""

    pass


class UnknownVlanType(InvalidOptions):
    """Raised when the requested VLAN kind is not routed, local or global."""

    pass


class MissingEnvironment(InvalidOptions):
    """Raised when a deployment is requested without an environment."""

    pass


class InvalidWalltime(InvalidOptions):
    """Raised when a walltime string cannot be parsed."""

    pass


# =============================================================================
# Waiting errors
# =============================================================================


class WaitFailure(OrchestratorError):
    """Base class for waits that ended without the awaited state.

    The orchestrator fills in the site and the resource spec of the job,
    so the message is enough to diagnose without re-querying the API.
    """

    what: str = "resource"
    site: Optional[str] = None
    resources: Optional[str] = None

    def add_context(
        self,
        site: Optional[str] = None,
        resources: Optional[str] = None,
    ) -> WaitFailure:
        """Record where the wait happened and rebuild the message."""
        if site is not None:
            self.site = site
        if resources is not None:
            self.resources = resources
        self.args = (self._message(),)
        return self

    def _context(self) -> str:
        text = ""
        if self.site:
            text += f" on site {self.site}"
        if self.resources:
            text += f" (resources: {self.resources})"
        return text

    def _message(self) -> str:
        return f"Waiting for {self.what}{self._context()} failed"


class WaitTimeout(WaitFailure, TimeoutError):
    """Raised when a polling wait exceeds its time budget."""

    def __init__(
        self,
        what: str,
        elapsed: float,
        timeout: float,
        site: Optional[str] = None,
        resources: Optional[str] = None,
    ) -> None:
        self.what = what
        self.elapsed = elapsed
        self.timeout = timeout
        self.site = site
        self.resources = resources
        super().__init__(self._message())

    def _message(self) -> str:
        return (
            f"Timed out after {self.elapsed:.1f}s waiting for {self.what}{self._context()} "
            f"(limit {self.timeout}s)"
        )


class TerminalFailureState(WaitFailure):
    """Raised when a waited-on resource reaches a fatal state."""

    def __init__(
        self,
        what: str,
        state: str,
        site: Optional[str] = None,
        resources: Optional[str] = None,
    ) -> None:
        self.what = what
        self.state = state
        self.site = site
        self.resources = resources
        super().__init__(self._message())

    def _message(self) -> str:
        return f"{self.what}{self._context()} reached terminal state '{self.state}'"


__all__ = [
    "OrchestratorError",
    "TransportError",
    "TransportTimeout",
    "CredentialsInvalid",
    "BackendRejected",
    "AlreadyReleased",
    "LinkNotFound",
    "JobNotFound",
    "SwitchNotFound",
    "InvalidOptions",
    "MissingRequiredOption",
    "InvalidNodeCount",
    "UnknownVlanType",
    "MissingEnvironment",
    "InvalidWalltime",
    "WaitFailure",
    "WaitTimeout",
    "TerminalFailureState",
]
