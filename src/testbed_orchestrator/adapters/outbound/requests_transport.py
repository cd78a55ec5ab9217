"""HTTP transport backed by a requests Session."""

from __future__ import annotations

from typing import Any, Mapping, Optional
from urllib.parse import urljoin

import requests
from requests import auth as rauth

from testbed_orchestrator import __version__
from testbed_orchestrator.domain.errors import TransportError, TransportTimeout
from testbed_orchestrator.infrastructure.config import ApiConfig


class RequestsTransport:
    """Transport implementation using a pooled requests.Session.

    Credentials are optional: from inside the testbed the API is reachable
    without authentication.

    Example:
        transport = RequestsTransport("https://api.grid5000.fr/", "alice", "secret")
        status, body = transport.send("GET", "sid/sites")
    """

    def __init__(
        self,
        uri: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 30.0,
        verify: bool = True,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._base = uri if uri.endswith("/") else uri + "/"
        self._timeout = timeout
        self._verify = verify
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Accept": "application/json",
                "User-Agent": f"testbed-orchestrator/{__version__}",
            }
        )
        self._auth = (
            rauth.HTTPBasicAuth(username, password) if username and password else None
        )

    @classmethod
    def from_config(cls, config: ApiConfig) -> RequestsTransport:
        """Create a transport from the API section of the configuration."""
        return cls(
            uri=config.uri,
            username=config.username,
            password=config.password,
            timeout=config.request_timeout_seconds,
            verify=config.verify_tls,
        )

    def url_for(self, path: str) -> str:
        return urljoin(self._base, path.lstrip("/"))

    def send(
        self, method: str, path: str, body: Optional[Mapping[str, Any]] = None
    ) -> tuple[int, str]:
        """Send one request and return (status, body text).

        Raises:
            TransportTimeout: If the request timed out.
            TransportError: For any other connection-level failure.
        """
        url = self.url_for(path)
        try:
            response = self._session.request(
                method,
                url,
                json=dict(body) if body is not None else None,
                auth=self._auth,
                timeout=self._timeout,
                verify=self._verify,
            )
        except requests.exceptions.Timeout as exc:
            raise TransportTimeout(f"{method} {url} timed out after {self._timeout}s") from exc
        except requests.exceptions.RequestException as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc
        return response.status_code, response.text

    def close(self) -> None:
        self._session.close()
