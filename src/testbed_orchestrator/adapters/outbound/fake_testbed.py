"""In-memory testbed backend for testing and development.

This adapter provides a fake implementation of the Transport protocol
that answers the REST surface the orchestrator uses: the catalog
(sites, clusters, environments, status, network equipments), jobs and
deployments.

Jobs and deployments follow scripted state sequences. Every GET on a
job or deployment returns the current state and moves to the next one;
the last state sticks. Listings and POST responses show the current
state without advancing.
"""

from __future__ import annotations

import itertools
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence
from urllib.parse import parse_qs, urlsplit

from testbed_orchestrator.domain.errors import TransportTimeout


logger = logging.getLogger(__name__)

DEFAULT_JOB_STATES = ("waiting", "running")
DEFAULT_DEPLOYMENT_STATUSES = ("processing", "terminated")
DEFAULT_VLAN = "4"
DEFAULT_SUBNET = "10.158.0.0/22"

_WALLTIME_PATTERN = re.compile(r"walltime=(\d+):(\d{2}):(\d{2})")
_NODES_PATTERN = re.compile(r"/nodes=(\d+)")
_QUOTED_PATTERN = re.compile(r"'([^']+)'")


@dataclass
class RecordedRequest:
    """A request seen by the fake backend."""

    method: str
    path: str
    body: Optional[dict[str, Any]] = None


@dataclass
class StateScript:
    """A sequence of states consumed one per GET."""

    states: list[str]
    cursor: int = 0

    @property
    def current(self) -> str:
        return self.states[self.cursor]

    def advance(self) -> str:
        state = self.states[self.cursor]
        if self.cursor < len(self.states) - 1:
            self.cursor += 1
        return state

    def settle(self, state: str) -> None:
        self.states = [state]
        self.cursor = 0


@dataclass
class FakeSite:
    """Catalog data of one fake site."""

    uid: str
    clusters: list[str] = field(default_factory=list)
    environments: list[str] = field(default_factory=list)
    nodes: dict[str, dict[str, str]] = field(default_factory=dict)
    equipment: dict[str, dict[str, Any]] = field(default_factory=dict)


@dataclass
class FakeJob:
    """A job held by the fake scheduler."""

    uid: int
    site: str
    user: str
    payload: dict[str, Any]
    script: StateScript
    submitted_at: int
    resources: str
    assigned_nodes: list[str] = field(default_factory=list)
    resources_by_type: dict[str, Any] = field(default_factory=dict)
    killed: bool = False


@dataclass
class FakeDeployment:
    """A deployment held by the fake deployment service."""

    uid: str
    site: str
    user: str
    payload: dict[str, Any]
    script: StateScript
    created_at: int


class FakeTestbedTransport:
    """Fake implementation of the Transport protocol.

    Example:
        transport = FakeTestbedTransport(user="alice")
        transport.add_site("nancy", clusters=["graphene"], hosts=["graphene-1", "graphene-2"])
        transport.script_job_states("waiting", "waiting", "running")
        gateway = RestGateway(transport, username="alice", sleep=lambda _: None)
    """

    def __init__(
        self,
        user: str = "alice",
        version: str = "sid",
        domain: str = "grid5000.fr",
        start_time: int = 1_700_000_000,
    ) -> None:
        self.user = user
        self.version = version
        self.domain = domain
        self.requests: list[RecordedRequest] = []

        self._sites: dict[str, FakeSite] = {}
        self._jobs: dict[int, FakeJob] = {}
        self._deployments: dict[str, FakeDeployment] = {}
        self._job_scripts: list[list[str]] = []
        self._deployment_scripts: list[list[str]] = []
        self._job_ids = itertools.count(1000)
        self._deployment_ids = itertools.count(1)
        # Each event moves time forward so creation timestamps are strictly ordered
        self._ticks = itertools.count(start_time, 100)
        self._timeouts: dict[str, int] = {}
        self._reject_credentials = False

    # =========================================================================
    # Scenario setup
    # =========================================================================

    def add_site(
        self,
        uid: str,
        clusters: Iterable[str] = (),
        environments: Iterable[str] = (),
        hosts: Iterable[str] = (),
        dead_hosts: Iterable[str] = (),
    ) -> FakeSite:
        """Add a site. Hosts are node uids ("graphene-1"); they are stored fully qualified."""
        site = FakeSite(uid=uid, clusters=list(clusters), environments=list(environments))
        dead = set(dead_hosts)
        for host in hosts:
            state = {"soft": "free", "hard": "alive"}
            if host in dead:
                state = {"soft": "unknown", "hard": "dead"}
            site.nodes[self.qualify(uid, host)] = state
        self._sites[uid] = site
        return site

    def add_equipment(
        self,
        site: str,
        uid: str,
        node_uids: Sequence[str] = (),
        kind: str = "switch",
    ) -> None:
        """Add a network equipment with a node linecard holding `node_uids`."""
        linecards: list[dict[str, Any]] = [{"kind": "other", "ports": [{"uid": "uplink"}]}]
        if node_uids:
            linecards.append({"kind": "node", "ports": [{"uid": n} for n in node_uids] + [{}]})
        self._sites[site].equipment[uid] = {"uid": uid, "kind": kind, "linecards": linecards}

    def script_job_states(self, *states: str) -> None:
        """Set the state sequence of the next submitted job."""
        self._job_scripts.append(list(states))

    def script_deployment_statuses(self, *statuses: str) -> None:
        """Set the status sequence of the next submitted deployment."""
        self._deployment_scripts.append(list(statuses))

    def add_job(
        self,
        site: str,
        state: str = "running",
        user: Optional[str] = None,
        nodes: int = 1,
    ) -> int:
        """Add a job that exists before the test starts. Returns its uid."""
        resources = f"/nodes={nodes},walltime=01:00:00"
        job = self._create_job(site, {"resources": resources, "name": "existing"}, resources, [state])
        job.user = user or self.user
        return job.uid

    def reject_credentials(self, reject: bool = True) -> None:
        """Answer 401 to every request."""
        self._reject_credentials = reject

    def inject_timeouts(self, count: int, method: str = "GET") -> None:
        """Make the next `count` requests with `method` time out."""
        self._timeouts[method] = self._timeouts.get(method, 0) + count

    def qualify(self, site: str, host: str) -> str:
        return host if "." in host else f"{host}.{site}.{self.domain}"

    # =========================================================================
    # Inspection
    # =========================================================================

    def job(self, uid: int) -> FakeJob:
        return self._jobs[int(uid)]

    def deployment(self, uid: str) -> FakeDeployment:
        return self._deployments[uid]

    def requests_for(self, method: str, fragment: str = "") -> list[RecordedRequest]:
        """Recorded requests with `method` whose path contains `fragment`."""
        return [r for r in self.requests if r.method == method and fragment in r.path]

    # =========================================================================
    # Transport
    # =========================================================================

    def send(
        self, method: str, path: str, body: Optional[Mapping[str, Any]] = None
    ) -> tuple[int, str]:
        self.requests.append(RecordedRequest(method, path, dict(body) if body is not None else None))
        logger.debug(f"{method} {path}")

        if self._timeouts.get(method, 0) > 0:
            self._timeouts[method] -= 1
            raise TransportTimeout(f"{method} {path} timed out")

        if self._reject_credentials:
            return _encode(*_error(401, "Unauthorized"))

        split = urlsplit(path.lstrip("/"))
        query = {key: values[-1] for key, values in parse_qs(split.query).items()}
        parts = [p for p in split.path.split("/") if p]
        if not parts or parts[0] != self.version:
            return _encode(*_error(404, f"Unknown API version in {path}"))

        try:
            status, payload = self._route(method, parts[1:], query, body or {})
        except KeyError as exc:
            status, payload = _error(404, f"Not found: {path} ({exc})")
        return _encode(status, payload)

    def _route(
        self,
        method: str,
        parts: list[str],
        query: dict[str, str],
        body: Mapping[str, Any],
    ) -> tuple[int, Any]:
        if not parts:
            return 200, {"uid": self.version, "links": [self._link("self", "")]}

        if parts == ["sites"]:
            if method != "GET":
                return _not_allowed(method)
            return 200, self._collection("sites", [self._site_json(s) for s in self._sites.values()])

        site = self._sites[parts[1]]
        rest = parts[2:]
        base = f"sites/{site.uid}"

        if not rest:
            return 200, self._site_json(site)

        kind = rest[0]
        if kind == "clusters" and len(rest) == 1:
            items = [
                {"uid": c, "model": c.capitalize(), "links": [self._link("self", f"{base}/clusters/{c}")]}
                for c in site.clusters
            ]
            return 200, self._collection(f"{base}/clusters", items)

        if kind == "environments" and len(rest) == 1:
            items = [
                {"uid": e, "links": [self._link("self", f"{base}/environments/{e}")]}
                for e in site.environments
            ]
            return 200, self._collection(f"{base}/environments", items)

        if kind == "status" and len(rest) == 1:
            return 200, {"nodes": site.nodes, "links": [self._link("self", f"{base}/status")]}

        if kind == "network_equipments":
            if len(rest) == 1:
                return 200, self._collection(
                    f"{base}/network_equipments",
                    [self._equipment_json(base, e) for e in site.equipment.values()],
                )
            return 200, self._equipment_json(base, site.equipment[rest[1]])

        if kind == "jobs":
            if len(rest) == 1:
                if method == "POST":
                    return self._submit_job(site.uid, body, internal=False)
                return 200, self._list_jobs(site.uid, query)
            return self._job_request(method, site.uid, int(rest[1]))

        if rest == ["internal", "oarapi", "jobs"] and method == "POST":
            return self._submit_job(site.uid, body, internal=True)

        if kind == "deployments":
            if len(rest) == 1:
                if method == "POST":
                    return self._submit_deployment(site.uid, body)
                return 200, self._list_deployments(site.uid, query)
            return self._deployment_request(method, site.uid, rest[1])

        raise KeyError("/".join(parts))

    # =========================================================================
    # Jobs
    # =========================================================================

    def _submit_job(self, site: str, body: Mapping[str, Any], internal: bool) -> tuple[int, Any]:
        resources = str(body.get("resources", ""))
        if internal:
            resources = resources.strip('"')
        if not resources:
            return _error(400, "Missing resources")

        script = self._job_scripts.pop(0) if self._job_scripts else list(DEFAULT_JOB_STATES)
        job = self._create_job(site, dict(body), resources, script)

        if internal:
            return 201, {
                "id": job.uid,
                "links": [self._link("self", f"sites/{site}/internal/oarapi/jobs/{job.uid}")],
            }
        return 201, self._job_json(job)

    def _create_job(
        self, site: str, payload: dict[str, Any], resources: str, states: list[str]
    ) -> FakeJob:
        job = FakeJob(
            uid=next(self._job_ids),
            site=site,
            user=self.user,
            payload=payload,
            script=StateScript(states),
            submitted_at=next(self._ticks),
            resources=resources,
        )
        job.assigned_nodes = self._allocate(site, resources, payload.get("properties"))
        if "kavlan" in resources:
            job.resources_by_type["vlans"] = [DEFAULT_VLAN]
        if "slash_" in resources:
            job.resources_by_type["subnets"] = [DEFAULT_SUBNET]
        job.resources_by_type["cores"] = list(job.assigned_nodes)
        self._jobs[job.uid] = job
        return job

    def _allocate(self, site: str, resources: str, properties: Optional[str]) -> list[str]:
        if properties and "host in" in properties:
            return [self.qualify(site, h) for h in _QUOTED_PATTERN.findall(properties)]
        match = _NODES_PATTERN.search(resources)
        count = int(match.group(1)) if match else 1
        free = sorted(h for h, s in self._sites[site].nodes.items() if s.get("hard") == "alive")
        return free[:count]

    def _list_jobs(self, site: str, query: dict[str, str]) -> dict[str, Any]:
        jobs = [j for j in self._jobs.values() if j.site == site]
        if "state" in query:
            wanted = query["state"].split(",")
            jobs = [j for j in jobs if j.script.current in wanted]
        if "user" in query:
            jobs = [j for j in jobs if j.user == query["user"]]
        if "limit" in query:
            jobs = jobs[: int(query["limit"])]
        return self._collection(f"sites/{site}/jobs", [self._job_json(j) for j in jobs])

    def _job_request(self, method: str, site: str, uid: int) -> tuple[int, Any]:
        job = self._jobs[uid]
        if job.site != site:
            raise KeyError(uid)

        if method == "GET":
            return 200, self._job_json(job, job.script.advance())

        if method == "DELETE":
            if job.killed:
                return _error(500, f"Delete request failed: job {uid} already killed")
            job.killed = True
            job.script.settle("error")
            return 202, {
                "uid": uid,
                "status": "Delete request registered",
                "links": [self._link("self", f"sites/{site}/jobs/{uid}")],
            }

        return _not_allowed(method)

    def _job_json(self, job: FakeJob, state: Optional[str] = None) -> dict[str, Any]:
        walltime = 3600
        match = _WALLTIME_PATTERN.search(job.resources)
        if match:
            hours, minutes, seconds = (int(g) for g in match.groups())
            walltime = hours * 3600 + minutes * 60 + seconds
        return {
            "uid": job.uid,
            "user_uid": job.user,
            "user": job.user,
            "name": job.payload.get("name"),
            "state": state or job.script.current,
            "queue": "default",
            "walltime": walltime,
            "types": list(job.payload.get("types") or []),
            "command": job.payload.get("command"),
            "properties": job.payload.get("properties"),
            "submitted_at": job.submitted_at,
            "scheduled_at": job.submitted_at + 10,
            "started_at": job.submitted_at + 10,
            "assigned_nodes": list(job.assigned_nodes),
            "resources_by_type": dict(job.resources_by_type),
            "links": [
                self._link("self", f"sites/{job.site}/jobs/{job.uid}"),
                self._link("parent", f"sites/{job.site}"),
            ],
        }

    # =========================================================================
    # Deployments
    # =========================================================================

    def _submit_deployment(self, site: str, body: Mapping[str, Any]) -> tuple[int, Any]:
        if not body.get("nodes") or not body.get("environment"):
            return _error(400, "Deployments need nodes and an environment")
        script = (
            self._deployment_scripts.pop(0)
            if self._deployment_scripts
            else list(DEFAULT_DEPLOYMENT_STATUSES)
        )
        deployment = FakeDeployment(
            uid=f"D-{next(self._deployment_ids):08d}",
            site=site,
            user=self.user,
            payload=dict(body),
            script=StateScript(script),
            created_at=next(self._ticks),
        )
        self._deployments[deployment.uid] = deployment
        return 201, self._deployment_json(deployment)

    def _list_deployments(self, site: str, query: dict[str, str]) -> dict[str, Any]:
        deployments = [d for d in self._deployments.values() if d.site == site]
        if "user" in query:
            deployments = [d for d in deployments if d.user == query["user"]]
        return self._collection(
            f"sites/{site}/deployments", [self._deployment_json(d) for d in deployments]
        )

    def _deployment_request(self, method: str, site: str, uid: str) -> tuple[int, Any]:
        deployment = self._deployments[uid]
        if deployment.site != site:
            raise KeyError(uid)
        if method == "GET":
            return 200, self._deployment_json(deployment, deployment.script.advance())
        if method == "DELETE":
            deployment.script.settle("canceled")
            return 202, None
        return _not_allowed(method)

    def _deployment_json(
        self, deployment: FakeDeployment, status: Optional[str] = None
    ) -> dict[str, Any]:
        status = status or deployment.script.current
        nodes = list(deployment.payload.get("nodes") or [])
        data = {
            "uid": deployment.uid,
            "status": status,
            "nodes": nodes,
            "environment": deployment.payload.get("environment"),
            "key": deployment.payload.get("key"),
            "site_uid": deployment.site,
            "user_uid": deployment.user,
            "created_at": deployment.created_at,
            "updated_at": deployment.created_at,
            "links": [
                self._link("self", f"sites/{deployment.site}/deployments/{deployment.uid}"),
                self._link("parent", f"sites/{deployment.site}"),
            ],
        }
        if "vlan" in deployment.payload:
            data["vlan"] = deployment.payload["vlan"]
        if status == "terminated":
            data["result"] = {node: {"state": "OK"} for node in nodes}
        return data

    # =========================================================================
    # Representations
    # =========================================================================

    def _link(self, rel: str, relative: str) -> dict[str, str]:
        href = f"/{self.version}/{relative}" if relative else f"/{self.version}/"
        return {"rel": rel, "href": href, "type": "application/json"}

    def _collection(self, relative: str, items: list[dict[str, Any]]) -> dict[str, Any]:
        return {
            "items": items,
            "total": len(items),
            "offset": 0,
            "links": [self._link("self", relative)],
        }

    def _site_json(self, site: FakeSite) -> dict[str, Any]:
        return {
            "uid": site.uid,
            "name": site.uid.capitalize(),
            "links": [
                self._link("self", f"sites/{site.uid}"),
                self._link("parent", ""),
                self._link("jobs", f"sites/{site.uid}/jobs"),
                self._link("deployments", f"sites/{site.uid}/deployments"),
            ],
        }

    def _equipment_json(self, base: str, equipment: dict[str, Any]) -> dict[str, Any]:
        data = dict(equipment)
        data["links"] = [self._link("self", f"{base}/network_equipments/{equipment['uid']}")]
        return data


def _encode(status: int, payload: Any) -> tuple[int, str]:
    return status, "" if payload is None else json.dumps(payload)


def _error(status: int, message: str) -> tuple[int, dict[str, Any]]:
    return status, {"code": status, "message": message}


def _not_allowed(method: str) -> tuple[int, dict[str, Any]]:
    return _error(405, f"Method {method} not allowed")
