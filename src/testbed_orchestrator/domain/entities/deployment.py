"""Deployment entity: an OS image being installed onto reserved nodes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from testbed_orchestrator.domain.entities.resource import HypermediaResource


class DeploymentStatus(str, Enum):
    """Deployment lifecycle status."""
    PROCESSING = "processing"   # Image is being installed
    TERMINATED = "terminated"   # Finished (per-node results in `result`)
    ERROR = "error"             # Deployment failed as a whole
    CANCELED = "canceled"       # Cancelled by the user


@dataclass
class Deployment(HypermediaResource):
    """Deployment handle returned by POST /sites/{site}/deployments."""
    status: Optional[str] = None
    nodes: list[str] = field(default_factory=list)
    environment: Optional[str] = None
    vlan: Optional[Any] = None
    key: Optional[str] = None
    site_uid: Optional[str] = None
    user_uid: Optional[str] = None
    created_at: Optional[float] = None
    updated_at: Optional[float] = None
    result: Optional[dict[str, Any]] = None

    @property
    def is_processing(self) -> bool:
        return self.status == DeploymentStatus.PROCESSING

    def matches(self, nodes: Optional[list[str]] = None, status: Optional[str] = None) -> bool:
        """Check the deployment against an optional node list and status.

        Args:
            nodes: Exact node list the deployment must target.
            status: Status the deployment must be in.
        """
        if nodes is not None and list(self.nodes) != list(nodes):
            return False
        if status is not None and self.status != status:
            return False
        return True
