"""Job entity: a reservation on a site's scheduler.

A job is created by reserve()'s POST, mutated in place by refresh() and
by deploy() (which appends to `deployments`), and destroyed server-side
by release(), after which refresh() fails.

References:
    - DESIGN.md Section 4.5 (Job wait state machine)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from testbed_orchestrator.domain.entities.deployment import Deployment
from testbed_orchestrator.domain.entities.resource import PARENT, HypermediaResource, local_field


class JobState(str, Enum):
    """Scheduler job states. The scheduler may report others; Job.state stays a str."""
    WAITING = "waiting"         # Queued, no resources yet
    HOLD = "hold"               # Held by the user or an admin
    LAUNCHING = "launching"     # Resources assigned, job starting
    RUNNING = "running"         # Resources available to the user
    FINISHING = "finishing"     # Being torn down
    TERMINATED = "terminated"   # Over
    ERROR = "error"             # Scheduler failure


@dataclass
class Job(HypermediaResource):
    """Scheduler job handle."""
    state: Optional[str] = None
    user_uid: Optional[str] = None
    user: Optional[str] = None
    name: Optional[str] = None
    queue: Optional[str] = None
    walltime: Optional[int] = None
    types: list[str] = field(default_factory=list)
    command: Optional[str] = None
    properties: Optional[str] = None
    message: Optional[str] = None
    submitted_at: Optional[float] = None
    scheduled_at: Optional[float] = None
    started_at: Optional[float] = None
    assigned_nodes: list[str] = field(default_factory=list)
    resources_by_type: dict[str, Any] = field(default_factory=dict)

    # Deployments started on this job by the orchestrator
    deployments: list[Deployment] = local_field(default_factory=list)

    @property
    def is_running(self) -> bool:
        return self.state == JobState.RUNNING

    @property
    def site_uid(self) -> Optional[str]:
        """Site the job runs on, read from its parent link ("/<version>/sites/<site>")."""
        link = self.links.get(PARENT)
        if link is None:
            return None
        return link.href.rstrip("/").rsplit("/", 1)[-1]

    @property
    def vlans(self) -> list[Any]:
        return list(self.resources_by_type.get("vlans") or [])

    @property
    def subnets(self) -> list[str]:
        return list(self.resources_by_type.get("subnets") or [])

    @property
    def first_vlan(self) -> Optional[Any]:
        vlans = self.vlans
        return vlans[0] if vlans else None

    def scheduled_datetime(self) -> Optional[datetime]:
        """Expected start time, once the scheduler has assigned one."""
        if self.scheduled_at is None:
            return None
        return datetime.fromtimestamp(self.scheduled_at, tz=timezone.utc)

    def seconds_until_start(self, now: float) -> int:
        """Seconds until the scheduled start, never negative."""
        if self.scheduled_at is None:
            return 0
        return max(int(self.scheduled_at - now), 0)
