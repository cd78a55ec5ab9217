"""REST gateway over a raw Transport.

Turns (status, body) exchanges into decoded hypermedia resources and
classifies failures:

- GET is retried on TransportTimeout (3 extra attempts, 1 s apart by default)
- POST and DELETE are never retried
- 401 during the connectivity check means the credentials were refused
- a 5xx whose body says "already killed" is AlreadyReleased, which
  delete() treats as success
- any other non-2xx is BackendRejected, carrying the status and body

Paths are relative to the API endpoint. Hrefs found in links already
carry the version prefix; use api_path() for paths built by hand.

References:
    - DESIGN.md Section 4.2 (RestGateway)
"""

from __future__ import annotations

import json
import time
from typing import Any, Callable, Mapping, Optional

from testbed_orchestrator.domain.entities.resource import HypermediaResource, ResourceCollection
from testbed_orchestrator.domain.errors import (
    AlreadyReleased,
    BackendRejected,
    CredentialsInvalid,
    TransportTimeout,
)
from testbed_orchestrator.infrastructure.logging import get_logger
from testbed_orchestrator.infrastructure.metrics import MetricsRegistry
from testbed_orchestrator.ports.outbound import Transport

logger = get_logger(__name__)

ALREADY_KILLED_MARKER = "already killed"


class RestGateway:
    """ResourceGateway implementation for the testbed REST API.

    Example:
        gateway = RestGateway(RequestsTransport("https://api.grid5000.fr/", "user", "secret"))
        sites = gateway.get_collection(gateway.api_path("sites"))
        job = gateway.get("/sid/sites/nancy/jobs/1234", model=Job)
    """

    def __init__(
        self,
        transport: Transport,
        version: str = "sid",
        username: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep,
        max_retries: int = 3,
        retry_pause: float = 1.0,
        metrics: Optional[MetricsRegistry] = None,
        check_connectivity: bool = True,
    ) -> None:
        """Initialize the gateway.

        Args:
            transport: Raw HTTP transport.
            version: API version prefix.
            username: Authenticated user, used to filter the caller's jobs.
            sleep: Pause between GET retries.
            max_retries: Extra GET attempts after a timeout.
            retry_pause: Seconds between GET attempts.
            metrics: Optional Prometheus registry.
            check_connectivity: Probe the API root before returning.

        Raises:
            CredentialsInvalid: If the API answers 401 to the probe.
        """
        self._transport = transport
        self._version = version or "sid"
        self._username = username
        self._sleep = sleep
        self._max_retries = max_retries
        self._retry_pause = retry_pause
        self._metrics = metrics

        if check_connectivity:
            self.check_connectivity()

    @property
    def version(self) -> str:
        return self._version

    @property
    def username(self) -> Optional[str]:
        """User the gateway authenticates as, if known."""
        return self._username

    def api_path(self, relative: str) -> str:
        """Prefix a hand-built path with the API version."""
        return f"{self._version}/{relative.lstrip('/')}"

    def check_connectivity(self) -> None:
        """GET the API root.

        Raises:
            CredentialsInvalid: If the credentials are refused.
        """
        path = self.api_path("")
        status, body = self._get_with_retry(path)
        if status == 401:
            raise CredentialsInvalid("Your testbed API credentials are not recognized")
        self._raise_for_status("GET", path, status, body)

    # =========================================================================
    # ResourceGateway
    # =========================================================================

    def get(self, path: str, model: type = HypermediaResource) -> Any:
        """GET a resource and decode it into `model`."""
        data = self.get_json(path)
        return model.from_json(data)

    def get_collection(
        self, path: str, item_model: type = HypermediaResource
    ) -> ResourceCollection:
        """GET a collection and decode its items into `item_model`."""
        data = self.get_json(path)
        return ResourceCollection.from_json(data, item_model=item_model)

    def post(
        self, path: str, payload: Mapping[str, Any], model: type = HypermediaResource
    ) -> Any:
        """POST a JSON payload and decode the created resource."""
        path = _relative(path)
        status, body = self._send("POST", path, payload)
        self._raise_for_status("POST", path, status, body)
        return model.from_json(_parse(body, "POST", path, status))

    def delete(self, path: str) -> Optional[HypermediaResource]:
        """DELETE a resource.

        Returns:
            The decoded response, or None when the body is empty or not
            JSON, or when the resource was already released.
        """
        path = _relative(path)
        status, body = self._send("DELETE", path)
        try:
            self._raise_for_status("DELETE", path, status, body)
        except AlreadyReleased:
            logger.info("resource_already_released", path=path, status=status)
            return None

        if not body or not body.strip():
            return None
        try:
            data = json.loads(body)
        except ValueError:
            return None
        if not isinstance(data, Mapping):
            return None
        return HypermediaResource.from_json(data)

    # =========================================================================
    # Helpers
    # =========================================================================

    def get_json(self, path: str) -> Any:
        """GET a path and return the parsed JSON body."""
        path = _relative(path)
        status, body = self._get_with_retry(path)
        self._raise_for_status("GET", path, status, body)
        return _parse(body, "GET", path, status)

    def follow_parent(self, resource: HypermediaResource, model: type = HypermediaResource) -> Any:
        """Dereference the resource's parent link."""
        return self.get(resource.parent_link(), model=model)

    def _get_with_retry(self, path: str) -> tuple[int, str]:
        attempt = 0
        while True:
            try:
                return self._send("GET", path)
            except TransportTimeout:
                attempt += 1
                if attempt > self._max_retries:
                    logger.error("get_retries_exhausted", path=path, attempts=attempt)
                    raise
                if self._metrics is not None:
                    self._metrics.get_retries_total.inc()
                logger.warning("get_timeout_retrying", path=path, attempt=attempt)
                self._sleep(self._retry_pause)

    def _send(
        self, method: str, path: str, body: Optional[Mapping[str, Any]] = None
    ) -> tuple[int, str]:
        try:
            status, text = self._transport.send(method, path, body)
        except TransportTimeout:
            self._count(method, "timeout")
            raise
        self._count(method, str(status))
        return status, text

    def _count(self, method: str, status: str) -> None:
        if self._metrics is not None:
            self._metrics.requests_total.labels(method=method, status=status).inc()

    @staticmethod
    def _raise_for_status(method: str, path: str, status: int, body: str) -> None:
        if 200 <= status < 300:
            return
        if status >= 500 and ALREADY_KILLED_MARKER in (body or ""):
            raise AlreadyReleased(method, path, status, body)
        raise BackendRejected(method, path, status, body or "")


def _relative(path: str) -> str:
    return path[1:] if path.startswith("/") else path


def _parse(body: str, method: str, path: str, status: int) -> Any:
    try:
        return json.loads(body)
    except ValueError:
        raise BackendRejected(method, path, status, f"Invalid JSON body: {body}") from None
