"""REST API adapter for the reservation orchestrator.

This module provides a FastAPI-based HTTP front for a long-lived
orchestrator process, so several clients can share one set of testbed
credentials.

Endpoints:
    GET    /health                                 - Health check
    GET    /sites                                  - Site uids
    GET    /sites/{site}/jobs                      - Caller's jobs on a site
    POST   /jobs                                   - Reserve nodes
    GET    /sites/{site}/jobs/{job_id}             - Job details
    POST   /sites/{site}/jobs/{job_id}/deployments - Deploy an image
    DELETE /sites/{site}/jobs/{job_id}             - Release a job
    DELETE /sites/{site}/jobs                      - Release every job on a site

Usage:
    from testbed_orchestrator.adapters.inbound.rest_api import create_app
    from testbed_orchestrator.application import ReservationOrchestrator
    from testbed_orchestrator.infrastructure.container import build_container

    app = create_app(build_container().resolve(ReservationOrchestrator))
    # Run with uvicorn: uvicorn app:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from typing import Optional, Union

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from testbed_orchestrator import __version__
from testbed_orchestrator.application import ReservationOrchestrator
from testbed_orchestrator.domain.entities import Deployment, Job
from testbed_orchestrator.domain.errors import (
    BackendRejected,
    CredentialsInvalid,
    InvalidOptions,
    JobNotFound,
    LinkNotFound,
    OrchestratorError,
    TerminalFailureState,
    WaitTimeout,
)
from testbed_orchestrator.domain.value_objects import DeployOptions, ReservationOptions


class ReservationRequest(BaseModel):
    """Request model for a reservation."""

    site: str = Field(..., description="Site to reserve on")
    nodes: Union[int, list[str]] = Field(1, description="Node count or explicit host list")
    walltime: str = Field("01:00:00", description="Reservation duration (HH:MM:SS)")
    name: Optional[str] = Field(None, description="Job name")
    command: Optional[str] = Field(None, description="Job command")
    job_type: Optional[str] = Field(None, description="Job type")
    environment: Optional[str] = Field(None, description="Image to deploy once running")
    vlan: Optional[str] = Field(None, description="VLAN kind: routed, local or global")
    cluster: Optional[str] = Field(None, description="Cluster constraint")
    switches: Optional[int] = Field(None, description="Number of switches")
    cpus: Optional[int] = Field(None, description="CPUs per node")
    cores: Optional[int] = Field(None, description="Cores per CPU")
    properties: Optional[str] = Field(None, description="Scheduler properties")
    resources: str = Field("", description="Raw resource spec")
    at: Optional[Union[int, str]] = Field(None, description="Advance reservation start")
    asynchronous: bool = Field(True, description="Return without waiting for the job to run")
    ignore_dead: bool = Field(False, description="Drop dead hosts from a host list")

    def to_options(self) -> ReservationOptions:
        data = self.model_dump(exclude_none=True)
        return ReservationOptions(**data)


class DeploymentRequest(BaseModel):
    """Request model for a deployment."""

    environment: str = Field(..., description="Image to deploy")
    nodes: Optional[list[str]] = Field(None, description="Subset of the job's nodes")


class DeploymentResponse(BaseModel):
    """Response model for a deployment."""

    uid: str
    status: Optional[str] = None
    environment: Optional[str] = None
    nodes: list[str] = Field(default_factory=list)


class JobResponse(BaseModel):
    """Response model for a job."""

    uid: int
    state: Optional[str] = None
    name: Optional[str] = None
    assigned_nodes: list[str] = Field(default_factory=list)
    scheduled_at: Optional[float] = None
    started_at: Optional[float] = None
    deployments: list[DeploymentResponse] = Field(default_factory=list)


class ReleaseResponse(BaseModel):
    """Response model for a bulk release."""

    released: int


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str
    version: str


def _deployment_response(deployment: Deployment) -> DeploymentResponse:
    return DeploymentResponse(
        uid=str(deployment.uid),
        status=deployment.status,
        environment=deployment.environment,
        nodes=list(deployment.nodes),
    )


def _job_response(job: Job) -> JobResponse:
    return JobResponse(
        uid=job.uid,
        state=job.state,
        name=job.name,
        assigned_nodes=list(job.assigned_nodes),
        scheduled_at=job.scheduled_at,
        started_at=job.started_at,
        deployments=[_deployment_response(d) for d in job.deployments],
    )


def _http_error(exc: OrchestratorError) -> HTTPException:
    """Map an orchestrator failure to an HTTP error."""
    if isinstance(exc, InvalidOptions):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, (JobNotFound, LinkNotFound)):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, BackendRejected) and exc.status == 404:
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, TerminalFailureState):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, WaitTimeout):
        return HTTPException(status_code=504, detail=str(exc))
    if isinstance(exc, CredentialsInvalid):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=502, detail=str(exc))


def create_app(orchestrator: ReservationOrchestrator) -> FastAPI:
    """Create a FastAPI application around an orchestrator.

    Handlers are plain functions: FastAPI runs them in its thread pool,
    so a blocking wait does not stall other requests.

    Args:
        orchestrator: The orchestrator serving every request.

    Returns:
        A configured FastAPI application.
    """
    app = FastAPI(
        title="Testbed Orchestrator API",
        description="Reserve, deploy and release testbed nodes",
        version=__version__,
    )
    catalog = orchestrator.catalog

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="healthy", version=__version__)

    @app.get("/sites", response_model=list[str], tags=["Catalog"])
    def list_sites() -> list[str]:
        try:
            return catalog.site_uids()
        except OrchestratorError as e:
            raise _http_error(e)

    @app.get("/sites/{site}/jobs", response_model=list[JobResponse], tags=["Jobs"])
    def list_my_jobs(site: str, state: Optional[str] = "running") -> list[JobResponse]:
        """List the caller's jobs on a site with their deployments."""
        try:
            return [_job_response(j) for j in catalog.get_my_jobs(site, state=state)]
        except OrchestratorError as e:
            raise _http_error(e)

    @app.post("/jobs", response_model=JobResponse, status_code=201, tags=["Jobs"])
    def reserve(request: ReservationRequest) -> JobResponse:
        """Reserve nodes; waits for the job to run unless asynchronous."""
        try:
            return _job_response(orchestrator.reserve(request.to_options()))
        except OrchestratorError as e:
            raise _http_error(e)

    @app.get("/sites/{site}/jobs/{job_id}", response_model=JobResponse, tags=["Jobs"])
    def get_job(site: str, job_id: int) -> JobResponse:
        try:
            return _job_response(catalog.get_job(site, job_id))
        except OrchestratorError as e:
            raise _http_error(e)

    @app.post(
        "/sites/{site}/jobs/{job_id}/deployments",
        response_model=JobResponse,
        status_code=201,
        tags=["Deployments"],
    )
    def deploy(site: str, job_id: int, request: DeploymentRequest) -> JobResponse:
        """Start a deployment on a job's nodes; does not wait for it."""
        try:
            job = catalog.get_job(site, job_id)
            options = DeployOptions(environment=request.environment, nodes=request.nodes)
            return _job_response(orchestrator.deploy(job, options))
        except OrchestratorError as e:
            raise _http_error(e)

    @app.delete("/sites/{site}/jobs/{job_id}", tags=["Jobs"])
    def release(site: str, job_id: int) -> dict[str, str]:
        try:
            orchestrator.release(catalog.get_job(site, job_id))
        except OrchestratorError as e:
            raise _http_error(e)
        return {"message": f"Job {job_id} released"}

    @app.delete("/sites/{site}/jobs", response_model=ReleaseResponse, tags=["Jobs"])
    def release_all(site: str) -> ReleaseResponse:
        try:
            return ReleaseResponse(released=orchestrator.release_all(site))
        except OrchestratorError as e:
            raise _http_error(e)

    return app


def run_server(
    orchestrator: ReservationOrchestrator,
    host: str = "0.0.0.0",
    port: int = 8000,
) -> None:
    """Run the REST API server.

    Args:
        orchestrator: The orchestrator to serve.
        host: Host to bind to.
        port: Port to bind to.
    """
    import uvicorn

    app = create_app(orchestrator)
    uvicorn.run(app, host=host, port=port)
