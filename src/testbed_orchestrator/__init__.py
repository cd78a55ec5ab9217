"""
Testbed Orchestrator - reservation and deployment engine for a shared cluster testbed

Turns high-level reservation options into scheduler resource specs, submits
them to the testbed's hypermedia REST API, and polls jobs and OS image
deployments until they reach a terminal state.
"""

__version__ = "0.1.0"
__author__ = "Systems Engineering Portfolio"
