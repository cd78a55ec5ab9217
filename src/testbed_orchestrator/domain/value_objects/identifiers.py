"""Testbed-related type-safe identifiers.

These value objects provide type safety for testbed identifiers using
Python's NewType for zero-runtime overhead.
"""

from __future__ import annotations

import re
from typing import NewType

# Scheduler job identifier (integer assigned by the site's scheduler)
JobId = NewType("JobId", int)

# Deployment identifier (e.g., "D-751096de-0c33-461a-9d27-56be1b2dd980")
DeploymentId = NewType("DeploymentId", str)

# Site identifier (e.g., "nancy")
SiteId = NewType("SiteId", str)

# Fully qualified host name (e.g., "griffon-8.nancy.grid5000.fr")
Hostname = NewType("Hostname", str)

_HOST_PATTERN = re.compile(r"^(\w+-\d+)(\..*)$")


def qualify_hostname(node_uid: str, site: str, domain: str = "grid5000.fr") -> Hostname:
    """Build the fully qualified name of a node on a site."""
    return Hostname(f"{node_uid}.{site}.{domain}")


def kavlan_hostname(hostname: str, vlan_id: int | str) -> Hostname:
    """Return the name a host answers to once it is moved into a VLAN.

    Example:
        kavlan_hostname("griffon-8.nancy.grid5000.fr", 5)
        # -> "griffon-8-kavlan-5.nancy.grid5000.fr"

    Raises:
        ValueError: If the host name is not of the form "<cluster>-<n>.<domain>".
    """
    match = _HOST_PATTERN.match(hostname)
    if match is None:
        raise ValueError(f"Unrecognized host name: {hostname}")
    return Hostname(f"{match.group(1)}-kavlan-{vlan_id}{match.group(2)}")
