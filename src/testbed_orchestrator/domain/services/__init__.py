"""Domain services for reservation logic.

Services implement logic that doesn't naturally fit within a single
entity: translating options into scheduler requests and polling
resources until they settle.
"""

from testbed_orchestrator.domain.services.poll_waiter import (
    DEPLOY_WAIT_TIMEOUT,
    JOB_WAIT_TIMEOUT,
    RELEASE_ALL_TIMEOUT,
    PollWaiter,
)
from testbed_orchestrator.domain.services.resource_spec import (
    CLASSIC_SSH_TYPE,
    KEY_IMPORT_FIELD,
    VLAN_RESOURCE_TYPES,
    ResourceRequest,
    ResourceSpecBuilder,
    to_epoch_seconds,
)

__all__ = [
    "PollWaiter",
    "JOB_WAIT_TIMEOUT",
    "DEPLOY_WAIT_TIMEOUT",
    "RELEASE_ALL_TIMEOUT",
    "ResourceSpecBuilder",
    "ResourceRequest",
    "VLAN_RESOURCE_TYPES",
    "CLASSIC_SSH_TYPE",
    "KEY_IMPORT_FIELD",
    "to_epoch_seconds",
]
