"""Unit tests for the requests-based transport."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from testbed_orchestrator import __version__
from testbed_orchestrator.adapters.outbound import RequestsTransport
from testbed_orchestrator.domain.errors import TransportError, TransportTimeout
from testbed_orchestrator.infrastructure.config import ApiConfig


def make_session(status: int = 200, text: str = "{}") -> MagicMock:
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    response = MagicMock(status_code=status, text=text)
    session.request.return_value = response
    return session


@pytest.mark.unit
class TestRequestsTransport:
    """Tests for RequestsTransport."""

    def test_send_get(self) -> None:
        session = make_session(200, '{"uid": "sid"}')
        transport = RequestsTransport("https://api.example.org", timeout=12, session=session)

        status, body = transport.send("GET", "sid/")

        assert (status, body) == (200, '{"uid": "sid"}')
        session.request.assert_called_once_with(
            "GET",
            "https://api.example.org/sid/",
            json=None,
            auth=None,
            timeout=12,
            verify=True,
        )

    def test_leading_slash_is_relative_to_endpoint(self) -> None:
        transport = RequestsTransport("https://api.example.org/proxy/", session=make_session())
        assert transport.url_for("/sid/sites") == "https://api.example.org/proxy/sid/sites"

    def test_post_body_and_auth(self) -> None:
        session = make_session(201)
        transport = RequestsTransport("https://api.example.org/", "alice", "secret", session=session)

        transport.send("POST", "sid/sites/nancy/jobs", {"resources": "/nodes=1"})

        kwargs = session.request.call_args.kwargs
        assert kwargs["json"] == {"resources": "/nodes=1"}
        assert isinstance(kwargs["auth"], requests.auth.HTTPBasicAuth)
        assert kwargs["auth"].username == "alice"

    def test_headers(self) -> None:
        session = make_session()
        RequestsTransport("https://api.example.org/", session=session)
        assert session.headers["User-Agent"] == f"testbed-orchestrator/{__version__}"
        assert session.headers["Accept"] == "application/json"

    def test_status_is_not_interpreted(self) -> None:
        transport = RequestsTransport("https://api.example.org/", session=make_session(500, "boom"))
        assert transport.send("DELETE", "sid/sites/nancy/jobs/1") == (500, "boom")

    def test_timeout(self) -> None:
        session = make_session()
        session.request.side_effect = requests.exceptions.ReadTimeout("slow")
        transport = RequestsTransport("https://api.example.org/", session=session)
        with pytest.raises(TransportTimeout):
            transport.send("GET", "sid/")

    def test_connection_error(self) -> None:
        session = make_session()
        session.request.side_effect = requests.exceptions.ConnectionError("refused")
        transport = RequestsTransport("https://api.example.org/", session=session)
        with pytest.raises(TransportError) as exc_info:
            transport.send("GET", "sid/")
        assert not isinstance(exc_info.value, TransportTimeout)

    def test_from_config(self) -> None:
        config = ApiConfig(uri="https://api.example.org/", username="bob", password="pw", verify_tls=False)
        transport = RequestsTransport.from_config(config)
        assert transport.url_for("sid/") == "https://api.example.org/sid/"
        transport.close()
