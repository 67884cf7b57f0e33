"""
Built-in OCCI Core and Infrastructure categories.

Kinds:
    core#entity
      core#resource -> compute, network, storage
      core#link     -> networkinterface, storagelink

Mixins:
    network#ipnetwork, networkinterface#ipnetworkinterface

Every Kind's `state` attribute is required and immutable: it is set when
the entity is created and afterwards only changes through actions run by
the backend.

Example:
    >>> registry = CategoryRegistry()
    >>> register_infrastructure(registry)
    >>> registry.lookup(INFRASTRUCTURE_SCHEME, "network").title
    'Network Resource'
"""

from __future__ import annotations

import logging
from typing import List

from .category.registry import CategoryRegistry
from .category.types import Action, Category, Kind, Mixin, attribute

logger = logging.getLogger(__name__)

CORE_SCHEME = "http://schemas.ogf.org/occi/core#"
INFRASTRUCTURE_SCHEME = "http://schemas.ogf.org/occi/infrastructure#"
COMPUTE_ACTION_SCHEME = "http://schemas.ogf.org/occi/infrastructure/compute/action#"
NETWORK_ACTION_SCHEME = "http://schemas.ogf.org/occi/infrastructure/network/action#"
STORAGE_ACTION_SCHEME = "http://schemas.ogf.org/occi/infrastructure/storage/action#"
NETWORK_MIXIN_SCHEME = "http://schemas.ogf.org/occi/infrastructure/network#"
NETWORKINTERFACE_MIXIN_SCHEME = "http://schemas.ogf.org/occi/infrastructure/networkinterface#"

# Core

ENTITY = Kind(
    term="entity",
    scheme=CORE_SCHEME,
    title="Entity",
    attributes=(attribute("occi.core.title"),),
)

RESOURCE = Kind(
    term="resource",
    scheme=CORE_SCHEME,
    title="Resource",
    related=ENTITY,
    attributes=(attribute("occi.core.summary"),),
)

LINK = Kind(
    term="link",
    scheme=CORE_SCHEME,
    title="Link",
    related=ENTITY,
    attributes=(
        attribute("occi.core.source", mutable=False, required=True),
        attribute("occi.core.target", mutable=False, required=True),
    ),
)

# Compute

COMPUTE_START = Action(term="start", scheme=COMPUTE_ACTION_SCHEME, title="Start Compute")
COMPUTE_STOP = Action(
    term="stop",
    scheme=COMPUTE_ACTION_SCHEME,
    title="Stop Compute",
    attributes=(attribute("method", default="graceful", range="graceful|acpioff|poweroff"),),
)
COMPUTE_RESTART = Action(
    term="restart",
    scheme=COMPUTE_ACTION_SCHEME,
    title="Restart Compute",
    attributes=(attribute("method", default="graceful", range="graceful|warm|cold"),),
)
COMPUTE_SUSPEND = Action(
    term="suspend",
    scheme=COMPUTE_ACTION_SCHEME,
    title="Suspend Compute",
    attributes=(attribute("method", default="suspend", range="hibernate|suspend"),),
)

COMPUTE = Kind(
    term="compute",
    scheme=INFRASTRUCTURE_SCHEME,
    title="Compute Resource",
    related=RESOURCE,
    attributes=(
        attribute("occi.compute.architecture", range="x86|x64"),
        attribute("occi.compute.cores", "number", range=(1, None)),
        attribute("occi.compute.hostname"),
        attribute("occi.compute.speed", "number", range=(0, None)),
        attribute("occi.compute.memory", "number", range=(0, None)),
        attribute(
            "occi.compute.state",
            mutable=False,
            required=True,
            range="active|inactive|suspended",
        ),
    ),
    actions=(COMPUTE_START, COMPUTE_STOP, COMPUTE_RESTART, COMPUTE_SUSPEND),
)

# Network

NETWORK_UP = Action(term="up", scheme=NETWORK_ACTION_SCHEME, title="Network Action Up")
NETWORK_DOWN = Action(term="down", scheme=NETWORK_ACTION_SCHEME, title="Network Action Down")

NETWORK = Kind(
    term="network",
    scheme=INFRASTRUCTURE_SCHEME,
    title="Network Resource",
    related=RESOURCE,
    attributes=(
        # Only the VLAN id is unique; labels and states repeat across networks.
        attribute("occi.network.vlan", "number", unique=True, range=(0, 4095)),
        attribute("occi.network.label"),
        attribute("occi.network.state", mutable=False, required=True, range="active|inactive"),
    ),
    actions=(NETWORK_DOWN, NETWORK_UP),
)

IPNETWORK = Mixin(
    term="ipnetwork",
    scheme=NETWORK_MIXIN_SCHEME,
    title="IP Network Mixin",
    attributes=(
        attribute("occi.network.address"),
        attribute("occi.network.gateway"),
        attribute("occi.network.allocation", range="dynamic|static"),
    ),
)

# Storage

STORAGE_ONLINE = Action(term="online", scheme=STORAGE_ACTION_SCHEME, title="Storage Online")
STORAGE_OFFLINE = Action(term="offline", scheme=STORAGE_ACTION_SCHEME, title="Storage Offline")
STORAGE_BACKUP = Action(term="backup", scheme=STORAGE_ACTION_SCHEME, title="Storage Backup")
STORAGE_SNAPSHOT = Action(term="snapshot", scheme=STORAGE_ACTION_SCHEME, title="Storage Snapshot")
STORAGE_RESIZE = Action(
    term="resize",
    scheme=STORAGE_ACTION_SCHEME,
    title="Storage Resize",
    attributes=(attribute("size", "number", required=True, range=(0, None)),),
)

STORAGE = Kind(
    term="storage",
    scheme=INFRASTRUCTURE_SCHEME,
    title="Storage Resource",
    related=RESOURCE,
    attributes=(
        attribute("occi.storage.size", "number", required=True, range=(0, None)),
        attribute(
            "occi.storage.state",
            mutable=False,
            required=True,
            range="online|offline|backup|snapshot|resize|degraded",
        ),
    ),
    actions=(STORAGE_ONLINE, STORAGE_OFFLINE, STORAGE_BACKUP, STORAGE_SNAPSHOT, STORAGE_RESIZE),
)

# Links

NETWORKINTERFACE = Kind(
    term="networkinterface",
    scheme=INFRASTRUCTURE_SCHEME,
    title="Network Interface Link",
    related=LINK,
    attributes=(
        attribute("occi.networkinterface.interface"),
        attribute("occi.networkinterface.mac", range=r"([0-9a-fA-F]{2}:){5}[0-9a-fA-F]{2}"),
        attribute("occi.networkinterface.state", mutable=False, required=True, range="active|inactive"),
    ),
)

IPNETWORKINTERFACE = Mixin(
    term="ipnetworkinterface",
    scheme=NETWORKINTERFACE_MIXIN_SCHEME,
    title="IP Network Interface Mixin",
    attributes=(
        attribute("occi.networkinterface.address"),
        attribute("occi.networkinterface.gateway"),
        attribute("occi.networkinterface.allocation", range="dynamic|static"),
    ),
)

STORAGELINK = Kind(
    term="storagelink",
    scheme=INFRASTRUCTURE_SCHEME,
    title="Storage Link",
    related=LINK,
    attributes=(
        attribute("occi.storagelink.deviceid"),
        attribute("occi.storagelink.mountpoint"),
        attribute("occi.storagelink.state", mutable=False, required=True, range="active|inactive"),
    ),
)

# Registration order: parents and actions before their users.
BUILTIN_CATEGORIES: List[Category] = [
    ENTITY,
    RESOURCE,
    LINK,
    COMPUTE_START,
    COMPUTE_STOP,
    COMPUTE_RESTART,
    COMPUTE_SUSPEND,
    COMPUTE,
    NETWORK_UP,
    NETWORK_DOWN,
    NETWORK,
    IPNETWORK,
    STORAGE_ONLINE,
    STORAGE_OFFLINE,
    STORAGE_BACKUP,
    STORAGE_SNAPSHOT,
    STORAGE_RESIZE,
    STORAGE,
    NETWORKINTERFACE,
    IPNETWORKINTERFACE,
    STORAGELINK,
]


def register_infrastructure(registry: CategoryRegistry) -> None:
    """Register the built-in categories. Safe to call more than once."""
    for category in BUILTIN_CATEGORIES:
        registry.register(category)
    logger.info(f"Registered {len(BUILTIN_CATEGORIES)} built-in categories")
