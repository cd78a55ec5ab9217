"""Domain entities for the testbed orchestrator.

Entities are decoded API representations with identity and links:
- HypermediaResource / ResourceCollection: generic link-aware wrappers
- Job: scheduler reservation
- Deployment: OS image installation
- Site, Cluster, Environment, NetworkEquipment, SiteStatus: catalog
"""

from testbed_orchestrator.domain.entities.catalog import (
    Cluster,
    Environment,
    NetworkEquipment,
    Site,
    SiteStatus,
)
from testbed_orchestrator.domain.entities.deployment import Deployment, DeploymentStatus
from testbed_orchestrator.domain.entities.job import Job, JobState
from testbed_orchestrator.domain.entities.resource import (
    PARENT,
    SELF,
    HypermediaResource,
    Link,
    ResourceCollection,
)

__all__ = [
    # Resources
    "HypermediaResource",
    "ResourceCollection",
    "Link",
    "SELF",
    "PARENT",
    # Job
    "Job",
    "JobState",
    # Deployment
    "Deployment",
    "DeploymentStatus",
    # Catalog
    "Site",
    "Cluster",
    "Environment",
    "NetworkEquipment",
    "SiteStatus",
]
