"""Process-wide registry of named shared maps and sets.

Module purpose and system role:
    - Hand out one container per (namespace, name) to every caller.
    - Keep local maps, cluster maps, local sets and cluster sets in four
      independent tables.

Integration points and dependencies:
    - Cluster containers take their storage from a ``ClusterManager``.
    - Registry events go to ``StructuredLogger`` and ``core.metrics``.

Concurrency:
    - Lookups are create-if-absent: a fresh container is built outside any
      lock and published with an atomic put-if-absent. The loser of a
      creation race drops its candidate and returns the winner.
"""

from __future__ import annotations

import os
import threading
from typing import Callable, Dict, List, Optional, TypeVar, Union

from core import metrics
from core.logger import StructuredLogger
from shareddata.cluster_map import ClusterSharedMap
from shareddata.errors import NoClusterManager
from shareddata.local_map import LocalSharedMap
from shareddata.protocols import ClusterManager, SharedMap
from shareddata.shared_set import SharedSet

LOGGER = StructuredLogger("shared_data")

MAP = "map"
CLUSTER_MAP = "cluster_map"
SET = "set"
CLUSTER_SET = "cluster_set"
NAMESPACES = (MAP, CLUSTER_MAP, SET, CLUSTER_SET)

# backend map name prefix for cluster sets, keeps them apart from cluster maps
CLUSTER_SET_PREFIX = "__shared_set__."

Container = Union[SharedMap, SharedSet]
C = TypeVar("C")


class _NameTable:
    """Thread-safe name -> container table with put-if-absent publication."""

    def __init__(self, namespace: str) -> None:
        self.namespace = namespace
        self._items: Dict[str, Container] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> Optional[Container]:
        with self._lock:
            return self._items.get(name)

    def put_if_absent(self, name: str, container: Container) -> Optional[Container]:
        """Publish ``container`` unless ``name`` is taken; return the existing one if so."""
        with self._lock:
            existing = self._items.get(name)
            if existing is None:
                self._items[name] = container
            return existing

    def remove(self, name: str) -> bool:
        with self._lock:
            return self._items.pop(name, None) is not None

    def names(self) -> List[str]:
        with self._lock:
            return list(self._items)


class SharedData:
    """Registry of named shared containers.

    All lookups of the same name in the same namespace return the same
    container until it is removed; the next lookup after a removal builds a
    new one. Without a cluster manager, cluster lookups are served by local
    containers unless strict mode is enabled, in which case they raise
    :class:`NoClusterManager`.
    """

    def __init__(
        self,
        cluster_manager: Optional[ClusterManager] = None,
        *,
        strict_cluster: bool | None = None,
    ) -> None:
        if strict_cluster is None:
            strict_cluster = os.getenv("SHARED_DATA_STRICT_CLUSTER", "0") == "1"
        self.cluster_manager = cluster_manager
        self.strict_cluster = strict_cluster
        self._tables = {ns: _NameTable(ns) for ns in NAMESPACES}

    @property
    def clustered(self) -> bool:
        return self.cluster_manager is not None

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def get_map(self, name: str) -> LocalSharedMap:
        """Return the local map called ``name``, creating it on first use."""
        return self._get_or_create(MAP, name, lambda: LocalSharedMap(name))

    def get_cluster_map(self, name: str) -> SharedMap:
        """Return the cluster map called ``name``.

        Falls back to a local map, kept in the cluster table, when no
        cluster manager is configured.
        """
        return self._get_or_create(CLUSTER_MAP, name, lambda: self._new_cluster_map(name))

    def get_set(self, name: str) -> SharedSet:
        return self._get_or_create(SET, name, lambda: SharedSet(LocalSharedMap(name), name))

    def get_cluster_set(self, name: str) -> SharedSet:
        return self._get_or_create(
            CLUSTER_SET,
            name,
            lambda: SharedSet(self._new_cluster_map(name, CLUSTER_SET_PREFIX + name), name),
        )

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------
    def remove_map(self, name: str) -> bool:
        return self._remove(MAP, name)

    def remove_cluster_map(self, name: str) -> bool:
        return self._remove(CLUSTER_MAP, name)

    def remove_set(self, name: str) -> bool:
        return self._remove(SET, name)

    def remove_cluster_set(self, name: str) -> bool:
        return self._remove(CLUSTER_SET, name)

    def names(self, namespace: str) -> List[str]:
        """Return the names currently registered in ``namespace``."""
        if namespace not in self._tables:
            raise ValueError(f"unknown namespace {namespace!r}")
        return self._tables[namespace].names()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _get_or_create(self, namespace: str, name: str, factory: Callable[[], C]) -> C:
        table = self._tables[namespace]
        existing = table.get(name)
        if existing is not None:
            return existing  # type: ignore[return-value]
        candidate = factory()
        winner = table.put_if_absent(name, candidate)
        if winner is not None:
            metrics.record_container_discarded(namespace)
            LOGGER.log("container_discarded", name=name, namespace=namespace)
            return winner  # type: ignore[return-value]
        metrics.record_container_created(namespace)
        LOGGER.log(
            "container_created",
            name=name,
            namespace=namespace,
            clustered=bool(getattr(candidate, "clustered", False)),
        )
        return candidate

    def _new_cluster_map(self, name: str, backend_name: str | None = None) -> SharedMap:
        if self.cluster_manager is None:
            if self.strict_cluster:
                LOGGER.log(
                    "cluster_unavailable",
                    name=name,
                    risk_level="high",
                    error="no cluster manager configured",
                )
                raise NoClusterManager(f"no cluster manager configured for {name!r}")
            metrics.record_cluster_downgrade()
            LOGGER.log("cluster_downgrade", name=name, risk_level="low")
            return LocalSharedMap(name)
        async_map = self.cluster_manager.get_async_map(backend_name or name)
        return ClusterSharedMap(async_map, name)

    def _remove(self, namespace: str, name: str) -> bool:
        removed = self._tables[namespace].remove(name)
        if removed:
            metrics.record_container_removed(namespace)
            LOGGER.log("container_removed", name=name, namespace=namespace)
        return removed


# ---------------------------------------------------------------------------
# Shared instance utilities
# ---------------------------------------------------------------------------
_shared_data: Optional[SharedData] = None
_shared_lock = threading.Lock()


def get_shared_data(cluster_manager: Optional[ClusterManager] = None) -> SharedData:
    """Return module-wide singleton ``SharedData``."""

    global _shared_data
    with _shared_lock:
        if _shared_data is None:
            _shared_data = SharedData(cluster_manager)
        elif cluster_manager is not None and _shared_data.cluster_manager is None:
            _shared_data.cluster_manager = cluster_manager
        return _shared_data


def reset_shared_data() -> None:
    """Drop the module-wide instance; the next call builds a new one."""

    global _shared_data
    with _shared_lock:
        _shared_data = None
