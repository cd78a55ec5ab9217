"""Value objects for the testbed orchestrator domain.

Exports:
    Identifiers:
        - JobId, DeploymentId, SiteId, Hostname
        - qualify_hostname, kavlan_hostname

    Walltime:
        - Walltime: structured reservation duration
        - parse_walltime: "HH:MM:SS" parser

    Options:
        - ReservationOptions, DeployOptions, VlanKind
"""

from testbed_orchestrator.domain.value_objects.identifiers import (
    DeploymentId,
    Hostname,
    JobId,
    SiteId,
    kavlan_hostname,
    qualify_hostname,
)
from testbed_orchestrator.domain.value_objects.options import (
    DEFAULT_JOB_NAME,
    DEPLOY_JOB_TYPE,
    DeployOptions,
    ReservationOptions,
    VlanKind,
)
from testbed_orchestrator.domain.value_objects.walltime import Walltime, parse_walltime

__all__ = [
    # Identifiers
    "JobId",
    "DeploymentId",
    "SiteId",
    "Hostname",
    "qualify_hostname",
    "kavlan_hostname",
    # Walltime
    "Walltime",
    "parse_walltime",
    # Options
    "ReservationOptions",
    "DeployOptions",
    "VlanKind",
    "DEFAULT_JOB_NAME",
    "DEPLOY_JOB_TYPE",
]
