"""Reservation orchestrator.

Composes the resource spec builder, the REST gateway and the poll waiter
into the reservation workflow:

    reserve -> wait_for_job -> deploy -> wait_for_deploy -> release

Every call blocks the calling thread. Progress messages (site, resource
spec, expected start, deployment counts) go to the injected LogSink;
internal diagnostics go to structlog.

References:
    - DESIGN.md Section 4.5 (ReservationOrchestrator)
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Callable, Optional, Sequence

from testbed_orchestrator.adapters.outbound.rest_gateway import RestGateway
from testbed_orchestrator.application.catalog import CatalogService
from testbed_orchestrator.domain.entities import (
    Deployment,
    DeploymentStatus,
    HypermediaResource,
    Job,
    JobState,
    Site,
)
from testbed_orchestrator.domain.errors import (
    InvalidOptions,
    JobNotFound,
    MissingEnvironment,
    OrchestratorError,
    WaitFailure,
    WaitTimeout,
)
from testbed_orchestrator.domain.services import PollWaiter, ResourceRequest, ResourceSpecBuilder
from testbed_orchestrator.domain.value_objects import (
    DEFAULT_JOB_NAME,
    DeployOptions,
    ReservationOptions,
)
from testbed_orchestrator.infrastructure.config import ReservationDefaultsConfig, WaitConfig
from testbed_orchestrator.infrastructure.logging import TimestampedStdoutSink, get_logger
from testbed_orchestrator.infrastructure.metrics import MetricsRegistry
from testbed_orchestrator.infrastructure.tracing import trace_span
from testbed_orchestrator.ports.outbound import LogSink

logger = get_logger(__name__)

JOB_FATAL_STATES = (JobState.FINISHING.value, JobState.ERROR.value)


class ReservationOrchestrator:
    """Implementation of the ReservationAPI inbound port."""

    def __init__(
        self,
        gateway: RestGateway,
        catalog: Optional[CatalogService] = None,
        log: Optional[LogSink] = None,
        wait: Optional[WaitConfig] = None,
        defaults: Optional[ReservationDefaultsConfig] = None,
        metrics: Optional[MetricsRegistry] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            gateway: REST gateway to the testbed API.
            catalog: Catalog queries; built on the gateway when omitted.
            log: Destination of progress messages.
            wait: Polling intervals and time budgets.
            defaults: Reservation defaults (job name, public key).
            metrics: Optional Prometheus registry.
            sleep: Blocking pause used by every wait.
            clock: Monotonic clock bounding every wait.
            now: Wall clock, for "available in N s" messages.
        """
        self._gateway = gateway
        self._catalog = catalog or CatalogService(gateway)
        self._log = log or TimestampedStdoutSink()
        self._wait = wait or WaitConfig()
        self._defaults = defaults or ReservationDefaultsConfig()
        self._metrics = metrics
        self._sleep = sleep
        self._clock = clock
        self._now = now
        self._waiter = PollWaiter(sleep=sleep, clock=clock)
        self._builder = ResourceSpecBuilder()

    @property
    def catalog(self) -> CatalogService:
        return self._catalog

    # =========================================================================
    # Jobs
    # =========================================================================

    def reserve(self, options: ReservationOptions) -> Job:
        """Submit a reservation and, unless asynchronous, wait for it to run.

        When an environment is given, a deployment is started once the job
        runs; reserve() does not wait for it. In asynchronous mode the nodes
        are not known yet, so no deployment is started.

        Raises:
            InvalidOptions: If the options are incomplete or invalid.
            JobNotFound: If a job submitted with a key import is not listed.
            BackendRejected: If the API refused the submission.
            WaitTimeout: If the job did not start in time.
            TerminalFailureState: If the job ended before running.
        """
        if options.name == DEFAULT_JOB_NAME:
            options = options.with_changes(name=self._defaults.job_name)

        # Validate before touching the network
        request = self._builder.build(options)
        if options.ignore_dead and options.host_list is not None:
            dead = self._catalog.dead_hosts(request.site, options.host_list)
            request = self._builder.build(options, dead_hosts=dead)
            if request.ignored_hosts:
                self._log.log(f"Ignored nodes {list(request.ignored_hosts)}.")

        with trace_span("reserve", site=request.site, resources=request.resources):
            self._log.log(
                f"Reserving resources: {request.resources} "
                f"(type: {request.job_type}) (in {request.site})"
            )
            if "reservation" in request.payload_extras:
                self._log.log(f"Starting this reservation at {request.payload_extras['reservation']}")

            job = self._submit(request)
            self._count("reservations_total", "submitted")

            if not options.asynchronous:
                try:
                    job = self.wait_for_job(job, timeout=options.wait_timeout)
                except WaitFailure as exc:
                    exc.add_context(site=request.site, resources=request.resources)
                    raise

        if options.environment is not None:
            if options.asynchronous:
                self._log.log(f"Reservation {job.uid} not running yet, deploy it once it runs")
            else:
                self.deploy(job, options.deploy_options())
        return job

    def _submit(self, request: ResourceRequest) -> Job:
        site = request.site
        payload = request.submission_payload()
        try:
            if request.imports_key:
                # The main jobs endpoint does not accept key imports
                created = self._gateway.post(
                    self._gateway.api_path(f"sites/{site}/internal/oarapi/jobs"), payload
                )
                self._sleep(self._wait.key_import_settle_seconds)
                job_id = created.get("id")
                listed = self._catalog.get_my_jobs(site, state=None)
                created = next((j for j in listed if j.uid == job_id), None)
                if created is None:
                    raise JobNotFound(f"Job {job_id} submitted on {site} is not in the job list")
            else:
                created = self._gateway.post(
                    self._gateway.api_path(f"sites/{site}/jobs"), payload, model=Job
                )
            return self._gateway.get(created.self_link(), model=Job)
        except OrchestratorError as exc:
            self._count("reservations_total", "failed")
            logger.error(
                "job_submission_failed",
                site=site,
                resources=request.resources,
                error=str(exc),
            )
            raise

    def wait_for_job(self, job: Job, timeout: Optional[float] = None) -> Job:
        """Block until the job is running.

        Raises:
            WaitTimeout: If the job did not start within `timeout` seconds.
            TerminalFailureState: If the job reached "finishing" or "error".
        """
        timeout = timeout if timeout is not None else self._wait.job_timeout_seconds
        self._log.log(f"Waiting for reservation {job.uid}")

        def progress(current: Job, attempt: int) -> None:
            self._count_poll("job")
            when = current.scheduled_datetime()
            if when is not None:
                secs = current.seconds_until_start(self._now())
                local = when.astimezone().strftime("%Y-%m-%d %H:%M:%S %z")
                self._log.log(f"Reservation {current.uid} should be available at {local} ({secs} s)")

        start = self._clock()
        with trace_span("wait_for_job", site=job.site_uid, job=job.describe()):
            try:
                self._waiter.wait_until(
                    job,
                    self._gateway,
                    predicate=lambda current: current.is_running,
                    poll_interval=self._wait.job_poll_interval_seconds,
                    timeout=timeout,
                    fatal_states=JOB_FATAL_STATES,
                    on_poll=progress,
                )
            except WaitFailure as exc:
                exc.add_context(site=job.site_uid)
                self._count("reservations_total", "failed")
                raise
            finally:
                self._observe_wait("job", start)

        self._count("reservations_total", "running")
        self._log.log(f"Reservation {job.uid} ready")
        return job

    # =========================================================================
    # Deployments
    # =========================================================================

    def deploy(self, job: Job, options: DeployOptions) -> Job:
        """Start deploying an image onto the job's nodes; does not wait.

        The deployment targets `options.nodes` or every assigned node, joins
        the job's first VLAN if it has one, and is appended to
        `job.deployments`.

        Raises:
            MissingEnvironment: If no environment is given.
            InvalidOptions: If the given key has no readable ".pub" file.
            BackendRejected: If the API refused the deployment.
        """
        if options.environment is None:
            raise MissingEnvironment("Environment must be given")

        nodes = options.nodes if options.nodes is not None else job.assigned_nodes
        if isinstance(nodes, str):
            nodes = [nodes]
        key = self._public_key(options.keys)

        site = self._gateway.follow_parent(job, model=Site).uid
        payload = {"nodes": list(nodes), "environment": options.environment, "key": key}
        vlan = job.first_vlan
        if vlan is not None:
            payload["vlan"] = vlan
            self._log.log(f"Found VLAN with uid = {vlan}")

        self._log.log("Creating deployment")
        with trace_span("deploy", site=site, job=job.describe(), environment=options.environment):
            try:
                deployment = self._gateway.post(
                    self._gateway.api_path(f"sites/{site}/deployments"), payload, model=Deployment
                )
            except OrchestratorError:
                self._count("deployments_total", "failed")
                raise

        job.deployments.append(deployment)
        self._count("deployments_total", "submitted")
        return job

    def _public_key(self, keys: Optional[str]) -> str:
        if keys is None:
            path = self._defaults.public_key_path.expanduser()
            return path.read_text() if path.exists() else ""
        path = Path(f"{keys}.pub").expanduser()
        try:
            return path.read_text()
        except OSError as exc:
            raise InvalidOptions(f"Cannot read public key {path}: {exc}") from exc

    def deploy_status(
        self,
        job: Job,
        nodes: Optional[Sequence[str]] = None,
        status: Optional[str] = None,
    ) -> list[str]:
        """Refresh every deployment of the job and return the matching statuses.

        Args:
            job: Job whose deployments are refreshed.
            nodes: Keep deployments targeting exactly these nodes.
            status: Keep deployments in this status.
        """
        for deployment in job.deployments:
            deployment.refresh(self._gateway)
        wanted = list(nodes) if nodes is not None else None
        return [d.status for d in job.deployments if d.matches(nodes=wanted, status=status)]

    def wait_for_deploy(
        self,
        job: Job,
        nodes: Optional[Sequence[str]] = None,
        timeout: Optional[float] = None,
    ) -> list[str]:
        """Block until no matching deployment of the job is processing.

        Returns:
            The final status of every matching deployment.

        Raises:
            WaitTimeout: If deployments are still processing after `timeout` seconds.
        """
        timeout = timeout if timeout is not None else self._wait.deploy_timeout_seconds

        def progress(processing: list[str], attempt: int) -> None:
            self._count_poll("deployment")
            if processing:
                self._log.log(f"Waiting for {len(processing)} deployment")

        start = self._clock()
        with trace_span("wait_for_deploy", site=job.site_uid, job=job.describe()):
            try:
                self._waiter.poll(
                    probe=lambda: self.deploy_status(job, nodes, DeploymentStatus.PROCESSING.value),
                    predicate=lambda processing: not processing,
                    poll_interval=self._wait.deploy_poll_interval_seconds,
                    timeout=timeout,
                    on_poll=progress,
                    what=f"deployments of job {job.describe()}",
                )
            except WaitFailure as exc:
                exc.add_context(site=job.site_uid)
                raise
            finally:
                self._observe_wait("deployment", start)

        self._log.log("Deployment finished")
        wanted = list(nodes) if nodes is not None else None
        return [d.status for d in job.deployments if d.matches(nodes=wanted)]

    # =========================================================================
    # Release
    # =========================================================================

    def release(self, resource: HypermediaResource) -> Optional[HypermediaResource]:
        """Release a job or deployment through its self link.

        Releasing something already released is not an error.
        """
        with trace_span("release", resource=resource.describe()):
            try:
                result = self._gateway.delete(resource.self_link())
            except OrchestratorError:
                self._count("releases_total", "failed")
                raise
        self._count("releases_total", "released")
        return result

    def release_all(self, site: str, timeout: Optional[float] = None) -> int:
        """Release every running job of the current user on a site.

        Returns:
            The number of jobs released.

        Raises:
            WaitTimeout: If the releases did not complete within `timeout` seconds.
        """
        timeout = timeout if timeout is not None else self._wait.release_all_timeout_seconds
        start = self._clock()
        jobs = self._catalog.get_my_jobs(site)
        released = 0
        for job in jobs:
            elapsed = self._clock() - start
            if elapsed >= timeout:
                raise WaitTimeout(f"release of {len(jobs)} jobs", elapsed, timeout, site=site)
            self.release(job)
            released += 1
        if released:
            self._log.log(f"Released {released} job(s) on {site}")
        return released

    # =========================================================================
    # Metrics
    # =========================================================================

    def _count(self, metric: str, outcome: str) -> None:
        if self._metrics is not None:
            getattr(self._metrics, metric).labels(outcome=outcome).inc()

    def _count_poll(self, kind: str) -> None:
        if self._metrics is not None:
            self._metrics.poll_attempts_total.labels(kind=kind).inc()

    def _observe_wait(self, kind: str, start: float) -> None:
        if self._metrics is not None:
            self._metrics.wait_duration_seconds.labels(kind=kind).observe(self._clock() - start)
