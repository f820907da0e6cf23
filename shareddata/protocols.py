"""Interfaces of shared containers and of the cluster collaborators.

Containers expose two narrow capability sets, sync and async, implemented
side by side by each concrete class. Cluster backends implement
:class:`AsyncMap` and are handed out by a :class:`ClusterManager`.
"""

from __future__ import annotations

from typing import Any, Iterable, Iterator, List, Mapping, Optional, Protocol, Tuple, runtime_checkable

from core.executor import Handler
from shareddata.admission import Entries


@runtime_checkable
class SharedMapOps(Protocol):
    """Synchronous operations of a shared map."""

    def size(self) -> int: ...
    def is_empty(self) -> bool: ...
    def get(self, key: Any) -> Any: ...
    def contains_key(self, key: Any) -> bool: ...
    def contains_value(self, value: Any) -> bool: ...
    def put(self, key: Any, value: Any) -> Any: ...
    def remove(self, key: Any) -> Any: ...
    def put_if_absent(self, key: Any, value: Any) -> Any: ...
    def replace(self, key: Any, value: Any) -> Any: ...
    def replace_if_same(self, key: Any, old_value: Any, new_value: Any) -> bool: ...
    def remove_if_same(self, key: Any, value: Any) -> bool: ...
    def put_all(self, entries: Entries) -> None: ...
    def clear(self) -> None: ...
    def keys(self) -> List[Any]: ...
    def values(self) -> List[Any]: ...
    def entries(self) -> List[Tuple[Any, Any]]: ...
    def __iter__(self) -> Iterator[Any]: ...


@runtime_checkable
class AsyncSharedMapOps(Protocol):
    """Asynchronous operations of a shared map."""

    def get_async(self, key: Any, handler: Optional[Handler]) -> None: ...
    def put_async(self, key: Any, value: Any, handler: Optional[Handler] = None) -> None: ...
    def remove_async(self, key: Any, handler: Optional[Handler] = None) -> None: ...


@runtime_checkable
class SharedSetOps(Protocol):
    """Synchronous operations of a shared set."""

    def size(self) -> int: ...
    def is_empty(self) -> bool: ...
    def contains(self, element: Any) -> bool: ...
    def add(self, element: Any) -> bool: ...
    def remove(self, element: Any) -> bool: ...
    def contains_all(self, elements: Iterable[Any]) -> bool: ...
    def add_all(self, elements: Iterable[Any]) -> bool: ...
    def remove_all(self, elements: Iterable[Any]) -> bool: ...
    def retain_all(self, elements: Iterable[Any]) -> bool: ...
    def clear(self) -> None: ...
    def __iter__(self) -> Iterator[Any]: ...


@runtime_checkable
class AsyncSharedSetOps(Protocol):
    """Asynchronous operations of a shared set."""

    def add_async(self, element: Any, handler: Optional[Handler] = None) -> None: ...
    def contains_async(self, element: Any, handler: Optional[Handler]) -> None: ...
    def remove_async(self, element: Any, handler: Optional[Handler] = None) -> None: ...


@runtime_checkable
class SharedMap(SharedMapOps, AsyncSharedMapOps, Protocol):
    """A shared map with both capability sets, local or clustered."""

    clustered: bool


@runtime_checkable
class AsyncMap(Protocol):
    """Distributed key-value store supplied by a cluster manager.

    Sync methods block until the store answers. The ``*_async`` methods run
    the matching sync call as blocking work and report through ``handler``.
    """

    def get(self, key: Any) -> Any: ...
    def put(self, key: Any, value: Any) -> Any: ...
    def remove(self, key: Any) -> Any: ...
    def put_if_absent(self, key: Any, value: Any) -> Any: ...
    def replace(self, key: Any, value: Any) -> Any: ...
    def replace_if_same(self, key: Any, old_value: Any, new_value: Any) -> bool: ...
    def remove_if_same(self, key: Any, value: Any) -> bool: ...
    def size(self) -> int: ...
    def is_empty(self) -> bool: ...
    def contains_key(self, key: Any) -> bool: ...
    def contains_value(self, value: Any) -> bool: ...
    def clear(self) -> None: ...
    def key_set(self) -> Iterable[Any]: ...
    def values(self) -> Iterable[Any]: ...
    def entry_set(self) -> Iterable[Tuple[Any, Any]]: ...
    def put_all(self, entries: Mapping[Any, Any]) -> None: ...
    def get_async(self, key: Any, handler: Optional[Handler]) -> None: ...
    def put_async(self, key: Any, value: Any, handler: Optional[Handler]) -> None: ...
    def remove_async(self, key: Any, handler: Optional[Handler]) -> None: ...


@runtime_checkable
class ClusterManager(Protocol):
    """Source of named distributed maps."""

    def get_async_map(self, name: str) -> AsyncMap: ...
