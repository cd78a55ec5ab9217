"""Reservation and deployment options.

These are the high-level parameters a caller hands to the orchestrator.
They are plain data: validation and translation into the scheduler's
resource-spec language happen in ResourceSpecBuilder.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional, Sequence, Union

from testbed_orchestrator.domain.value_objects.walltime import Walltime

DEFAULT_JOB_NAME = "testbed-orchestrator job"
DEPLOY_JOB_TYPE = "deploy"

NodeSelection = Union[int, Sequence[str]]
StartTime = Union[int, float, datetime, str]


class VlanKind(str, Enum):
    """Network isolation mode for reserved nodes."""
    ROUTED = "routed"
    LOCAL = "local"
    GLOBAL = "global"


@dataclass(frozen=True)
class DeployOptions:
    """Options for deploying an OS image onto reserved nodes."""
    environment: Optional[str] = None        # Image name or description URL
    nodes: Optional[Sequence[str]] = None    # Defaults to all assigned nodes
    keys: Optional[str] = None               # Private key path, "<keys>.pub" is sent


@dataclass(frozen=True)
class ReservationOptions:
    """Options for reserving nodes on a site."""
    site: Optional[str] = None
    nodes: Optional[NodeSelection] = 1       # Node count or explicit host list
    walltime: Optional[Union[str, int, Walltime]] = "01:00:00"
    name: str = DEFAULT_JOB_NAME
    command: Optional[str] = None            # Defaults to "sleep <walltime seconds>"
    job_type: Optional[str] = None
    environment: Optional[str] = None        # Forces a deploy-mode reservation
    keys: Optional[str] = None               # SSH key path
    vlan: Optional[Union[VlanKind, str]] = None
    subnets: Optional[tuple[int, int]] = None  # (prefix size, count)
    cluster: Optional[str] = None
    switches: Optional[int] = None
    cpus: Optional[int] = None
    cores: Optional[int] = None
    properties: Optional[str] = None
    resources: str = ""                      # Raw resource spec, bypasses synthesis
    at: Optional[StartTime] = None           # Advance reservation start
    asynchronous: bool = False               # Return without waiting for "running"
    ignore_dead: bool = False                # Drop dead hosts from a host list
    wait_timeout: Optional[float] = None     # Overrides the configured job wait

    @property
    def is_deploy(self) -> bool:
        """Check if this reservation runs in deploy mode."""
        return self.environment is not None or self.job_type == DEPLOY_JOB_TYPE

    @property
    def host_list(self) -> Optional[list[str]]:
        """Explicit host list, or None when a node count was given."""
        if self.nodes is None or isinstance(self.nodes, (int, str)):
            return None
        return list(self.nodes)

    def deploy_options(self) -> DeployOptions:
        """Deployment options implied by this reservation."""
        return DeployOptions(environment=self.environment, keys=self.keys)

    def with_changes(self, **changes) -> ReservationOptions:
        """Return a copy with some options replaced."""
        return replace(self, **changes)
