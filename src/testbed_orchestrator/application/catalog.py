"""Catalog service - read-only queries on sites, jobs and deployments.

This service answers the questions a reservation script asks before and
after reserving: which sites, clusters and images exist, which nodes are
usable, which jobs and deployments the caller owns, and how nodes are
cabled to switches.
"""

from __future__ import annotations

import getpass
import re
import socket
from typing import Iterable, Optional
from urllib.parse import urlencode

from testbed_orchestrator.adapters.outbound.rest_gateway import RestGateway
from testbed_orchestrator.domain.entities import (
    Cluster,
    Deployment,
    Environment,
    Job,
    NetworkEquipment,
    Site,
    SiteStatus,
)
from testbed_orchestrator.domain.errors import SwitchNotFound
from testbed_orchestrator.domain.value_objects import Hostname, kavlan_hostname, qualify_hostname
from testbed_orchestrator.infrastructure.logging import get_logger

logger = get_logger(__name__)

# The API answers slowly when every job of a site is listed
DEFAULT_JOB_LIMIT = 25


class CatalogService:
    """Implementation of the CatalogAPI inbound port.

    Example:
        catalog = CatalogService(gateway)
        catalog.site_uids()                 # ["lille", "nancy", ...]
        catalog.environment_uids("nancy")   # ["debian11-min", "ubuntu2204-x64-min"]
        catalog.get_my_jobs("nancy")        # running jobs with their deployments
    """

    def __init__(
        self,
        gateway: RestGateway,
        user: Optional[str] = None,
        domain: str = "grid5000.fr",
    ) -> None:
        """Initialize the catalog.

        Args:
            gateway: REST gateway to the testbed API.
            user: Job owner used by the "my jobs" queries; defaults to the
                gateway's user, then to the local login.
            domain: DNS domain node names live under.
        """
        self._gateway = gateway
        self._user = user or gateway.username or getpass.getuser()
        self._domain = domain

    @property
    def user(self) -> str:
        return self._user

    # =========================================================================
    # Sites, clusters, environments
    # =========================================================================

    def site_uids(self) -> list[str]:
        """Return the uid of every site."""
        return self._gateway.get_collection(self._gateway.api_path("sites"), Site).identifiers()

    def clusters(self, site: str) -> list[Cluster]:
        path = self._gateway.api_path(f"sites/{site}/clusters")
        return list(self._gateway.get_collection(path, Cluster))

    def cluster_uids(self, site: str) -> list[str]:
        return [cluster.uid for cluster in self.clusters(site)]

    def environments(self, site: str) -> list[Environment]:
        path = self._gateway.api_path(f"sites/{site}/environments")
        return list(self._gateway.get_collection(path, Environment))

    def environment_uids(self, site: str) -> list[str]:
        """Return the deployable image names of a site, version suffix stripped, without duplicates."""
        names: list[str] = []
        for environment in self.environments(site):
            if environment.name not in names:
                names.append(environment.name)
        return names

    def current_site(self, hostname: Optional[str] = None) -> Optional[str]:
        """Return the site a testbed machine lives on.

        Args:
            hostname: Fully qualified name, "<host>.<site>.<domain>"; defaults
                to this machine's FQDN.

        Returns:
            The site uid, or None outside the testbed domain.
        """
        name = (hostname or socket.getfqdn()).strip().rstrip(".")
        match = re.match(rf"^.+\.([^.]+)\.{re.escape(self._domain)}$", name)
        return match.group(1) if match else None

    # =========================================================================
    # Node status
    # =========================================================================

    def site_status(self, site: str) -> SiteStatus:
        return self._gateway.get(self._gateway.api_path(f"sites/{site}/status"), model=SiteStatus)

    def nodes_status(self, site: str) -> dict[str, str]:
        """Map each host of a site to its soft state."""
        return self.site_status(site).node_states()

    def dead_hosts(self, site: str, hosts: Iterable[str]) -> list[str]:
        """Return the hosts among `hosts` the scheduler cannot hand out.

        Hosts may be given as node uids ("graphene-1") or fully qualified.
        """
        dead = self.site_status(site).dead_hosts()
        return [host for host in hosts if host in dead or self._qualify(site, host) in dead]

    def _qualify(self, site: str, host: str) -> Hostname:
        if "." in host:
            return Hostname(host)
        return qualify_hostname(host, site, self._domain)

    # =========================================================================
    # Jobs and deployments
    # =========================================================================

    def get_jobs(
        self,
        site: str,
        user: Optional[str] = None,
        state: Optional[str] = None,
    ) -> list[Job]:
        """List jobs of a site, each fetched in full through its self link.

        Without a user or state filter the listing is capped at the 25
        most recent jobs.
        """
        query: dict[str, str] = {}
        if state is not None:
            query["state"] = state
        if user is not None:
            query["user"] = user
        if not query:
            query["limit"] = str(DEFAULT_JOB_LIMIT)

        path = self._gateway.api_path(f"sites/{site}/jobs?{urlencode(query)}")
        listing = self._gateway.get_collection(path, Job)
        return [self._gateway.get(job.self_link(), model=Job) for job in listing]

    def get_job(self, site: str, job_id: int) -> Job:
        return self._gateway.get(self._gateway.api_path(f"sites/{site}/jobs/{job_id}"), model=Job)

    def get_deployments(self, site: str, user: Optional[str] = None) -> list[Deployment]:
        path = f"sites/{site}/deployments"
        if user is not None:
            path += f"?{urlencode({'user': user})}"
        return list(self._gateway.get_collection(self._gateway.api_path(path), Deployment))

    def get_my_jobs(self, site: str, state: Optional[str] = "running") -> list[Job]:
        """List the caller's jobs on a site.

        Each job gets the caller's deployments created after the job started.

        Args:
            site: Site uid.
            state: Job state filter; None lists jobs in every state.
        """
        jobs = self.get_jobs(site, self._user, state)
        deployments = self.get_deployments(site, self._user)
        for job in jobs:
            job.deployments = [
                d
                for d in deployments
                if d.created_at is not None
                and job.started_at is not None
                and d.created_at > job.started_at
            ]
        logger.debug("my_jobs_listed", site=site, state=state, jobs=len(jobs))
        return jobs

    # =========================================================================
    # Network
    # =========================================================================

    def get_switches(self, site: str) -> list[NetworkEquipment]:
        """Return the switches of a site that have nodes plugged in.

        Port uids are rewritten to fully qualified node names.
        """
        path = self._gateway.api_path(f"sites/{site}/network_equipments")
        switches = []
        for equipment in self._gateway.get_collection(path, NetworkEquipment):
            if not equipment.is_switch:
                continue
            ports = equipment.node_ports()
            if ports is None:
                continue
            equipment.extra["nodes"] = [self._qualify(site, uid) for uid in ports]
            switches.append(equipment)
        return switches

    def get_switch(self, site: str, name: str) -> NetworkEquipment:
        """Return one switch by uid.

        Raises:
            SwitchNotFound: If the site has no such switch.
        """
        for switch in self.get_switches(site):
            if switch.uid == name:
                return switch
        raise SwitchNotFound(f"Unknown switch '{name}' on site {site}")

    def get_subnets(self, job: Job) -> list[str]:
        """Subnets reserved by a job, as "<address>/<prefix>" strings."""
        return job.subnets

    def get_vlan_nodes(self, job: Job) -> Optional[list[Hostname]]:
        """Names the job's nodes answer to inside its VLAN.

        Returns None when the job has no deployment yet.
        """
        if not job.deployments:
            return None
        vlan = job.deployments[0].vlan
        return [kavlan_hostname(node, vlan) for node in job.assigned_nodes]
