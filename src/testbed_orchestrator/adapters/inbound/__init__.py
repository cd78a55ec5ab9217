"""Inbound adapters - HTTP front for the orchestrator.

The REST API requires fastapi and uvicorn.
"""

from testbed_orchestrator.adapters.inbound.rest_api import create_app, run_server

__all__ = [
    "create_app",
    "run_server",
]
