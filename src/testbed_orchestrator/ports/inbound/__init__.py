"""Inbound ports - API contracts offered by the orchestrator.

Inbound ports define what callers (scripts, shells, other services) use
to reserve nodes, deploy images, wait for completion and query the
testbed catalog.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Optional, Protocol, Sequence

from testbed_orchestrator.domain.entities import (
    Cluster,
    Deployment,
    Environment,
    HypermediaResource,
    Job,
    NetworkEquipment,
    SiteStatus,
)
from testbed_orchestrator.domain.value_objects import DeployOptions, ReservationOptions


# =============================================================================
# Reservation API
# =============================================================================


class ReservationAPI(Protocol):
    """Protocol for reservation and deployment workflows.

    All operations block the calling thread. Run one orchestrator per
    thread to drive independent reservations in parallel.

    Example:
        job = api.reserve(ReservationOptions(site="nancy", nodes=2, walltime="01:00:00",
                                             environment="debian11-min"))
        try:
            api.wait_for_deploy(job)
            # ... use job.assigned_nodes
        finally:
            api.release(job)
    """

    @abstractmethod
    def reserve(self, options: ReservationOptions) -> Job:
        """Submit a reservation, wait for it to run unless asynchronous.

        Raises:
            InvalidOptions: If the options are incomplete or invalid.
            WaitTimeout: If the job did not start in time.
            TerminalFailureState: If the job ended before running.
            BackendRejected: If the API refused the submission.
        """
        ...

    @abstractmethod
    def wait_for_job(self, job: Job, timeout: Optional[float] = None) -> Job:
        """Block until the job is running."""
        ...

    @abstractmethod
    def deploy(self, job: Job, options: DeployOptions) -> Job:
        """Start deploying an image onto the job's nodes (does not wait).

        Raises:
            MissingEnvironment: If no environment is given.
        """
        ...

    @abstractmethod
    def wait_for_deploy(
        self,
        job: Job,
        nodes: Optional[Sequence[str]] = None,
        timeout: Optional[float] = None,
    ) -> list[str]:
        """Block until no matching deployment of the job is still processing."""
        ...

    @abstractmethod
    def release(self, resource: HypermediaResource) -> Optional[HypermediaResource]:
        """Release a job or deployment. Releasing twice is not an error."""
        ...

    @abstractmethod
    def release_all(self, site: str, timeout: Optional[float] = None) -> int:
        """Release every running job of the current user on a site."""
        ...


# =============================================================================
# Catalog API
# =============================================================================


class CatalogAPI(Protocol):
    """Protocol for read-only catalog and status queries."""

    @abstractmethod
    def site_uids(self) -> list[str]:
        ...

    @abstractmethod
    def clusters(self, site: str) -> list[Cluster]:
        ...

    @abstractmethod
    def environments(self, site: str) -> list[Environment]:
        ...

    @abstractmethod
    def current_site(self, hostname: Optional[str] = None) -> Optional[str]:
        """Site of a testbed machine, None outside the testbed."""
        ...

    @abstractmethod
    def site_status(self, site: str) -> SiteStatus:
        ...

    @abstractmethod
    def get_job(self, site: str, job_id: int) -> Job:
        ...

    @abstractmethod
    def get_my_jobs(self, site: str, state: Optional[str] = "running") -> list[Job]:
        ...

    @abstractmethod
    def get_deployments(self, site: str, user: Optional[str] = None) -> list[Deployment]:
        ...

    @abstractmethod
    def get_switches(self, site: str) -> list[NetworkEquipment]:
        ...


__all__ = [
    "ReservationAPI",
    "CatalogAPI",
]
