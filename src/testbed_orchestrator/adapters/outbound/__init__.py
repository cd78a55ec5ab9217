"""Outbound adapters - implementations of outbound ports.

These adapters talk to the testbed REST API (or an in-memory stand-in
for it) on behalf of the orchestrator.
"""

from testbed_orchestrator.adapters.outbound.fake_testbed import FakeTestbedTransport
from testbed_orchestrator.adapters.outbound.requests_transport import RequestsTransport
from testbed_orchestrator.adapters.outbound.rest_gateway import RestGateway

__all__ = [
    "FakeTestbedTransport",
    "RequestsTransport",
    "RestGateway",
]
