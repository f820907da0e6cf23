"""Named, thread-safe shared maps and sets, optionally backed by a cluster."""

from shareddata.buffer import Buffer
from shareddata.cluster_map import ClusterSharedMap
from shareddata.errors import BackendFailure, IllegalValueKind, NoClusterManager, SharedDataError
from shareddata.local_map import LocalSharedMap
from shareddata.protocols import (
    AsyncMap,
    AsyncSharedMapOps,
    AsyncSharedSetOps,
    ClusterManager,
    SharedMap,
    SharedMapOps,
    SharedSetOps,
)
from shareddata.registry import SharedData, get_shared_data, reset_shared_data
from shareddata.shared_set import SharedSet

__all__ = [
    "Buffer",
    "ClusterSharedMap",
    "BackendFailure",
    "IllegalValueKind",
    "NoClusterManager",
    "SharedDataError",
    "LocalSharedMap",
    "AsyncMap",
    "AsyncSharedMapOps",
    "AsyncSharedSetOps",
    "ClusterManager",
    "SharedMap",
    "SharedMapOps",
    "SharedSetOps",
    "SharedData",
    "get_shared_data",
    "reset_shared_data",
    "SharedSet",
]
