"""Read-only catalog entities: sites, clusters, environments, equipment."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from testbed_orchestrator.domain.entities.resource import HypermediaResource

DEAD_HARD_STATES = ("dead", "absent", "suspected")


@dataclass
class Site(HypermediaResource):
    """A testbed site (e.g., "nancy")."""
    name: Optional[str] = None
    description: Optional[str] = None


@dataclass
class Cluster(HypermediaResource):
    """A homogeneous cluster of nodes on a site."""
    model: Optional[str] = None
    created_at: Optional[str] = None


@dataclass
class Environment(HypermediaResource):
    """A deployable OS image. The uid carries a version suffix ("<name>-<version>")."""
    version: Optional[Any] = None
    description: Optional[str] = None

    @property
    def name(self) -> str:
        uid = str(self.uid)
        head, sep, _ = uid.rpartition("-")
        return head if sep else uid


@dataclass
class NetworkEquipment(HypermediaResource):
    """A switch or router on a site."""
    kind: Optional[str] = None
    linecards: list[dict[str, Any]] = field(default_factory=list)

    @property
    def is_switch(self) -> bool:
        return self.kind == "switch"

    def node_ports(self) -> Optional[list[str]]:
        """Uids of the nodes plugged into this equipment.

        Returns None when no linecard connects nodes (e.g., Infiniband switches).
        """
        linecard = next((c for c in self.linecards if c.get("kind") == "node"), None)
        if linecard is None:
            return None
        return [port["uid"] for port in linecard.get("ports", []) if port and "uid" in port]


@dataclass
class SiteStatus(HypermediaResource):
    """Live status of every node on a site."""
    nodes: dict[str, dict[str, Any]] = field(default_factory=dict)

    def node_states(self) -> dict[str, str]:
        """Map each host to its soft state ("free", "busy", "besteffort", "dead"...)."""
        return {host: info.get("soft") for host, info in self.nodes.items()}

    def dead_hosts(self) -> set[str]:
        """Hosts the scheduler cannot hand out: hard state dead/absent/suspected, or unknown soft state."""
        return {
            host
            for host, info in self.nodes.items()
            if info.get("hard") in DEAD_HARD_STATES or info.get("soft") == "unknown"
        }
