"""Shared set layered on the key set of a shared map."""

from __future__ import annotations

from typing import Any, Iterable, Iterator, List, Optional

from core.executor import AsyncResult, Handler, deliver
from shareddata.local_map import LocalSharedMap
from shareddata.protocols import SharedMap

# value stored against every element in the backing map
PRESENT = "present"


def _as_bool(handler: Optional[Handler], test: Any) -> Handler:
    def on_result(res: AsyncResult) -> None:
        if res.failed:
            deliver(handler, res)
        else:
            deliver(handler, AsyncResult.success(test(res.result)))

    return on_result


class SharedSet:
    """Set of admitted values backed by a local or cluster shared map.

    Elements are the keys of the backing map, so they follow the same
    admission and copy rules. ``retain_all`` is a no-op returning ``False``
    and equality and hashing are those of the backing map.
    """

    def __init__(self, backing: Optional[SharedMap] = None, name: str = "") -> None:
        if backing is None:
            backing = LocalSharedMap(name)
        self.name = name
        self._map = backing

    @property
    def clustered(self) -> bool:
        return self._map.clustered

    # ------------------------------------------------------------------
    # Sync operations
    # ------------------------------------------------------------------
    def size(self) -> int:
        return self._map.size()

    def is_empty(self) -> bool:
        return self._map.is_empty()

    def contains(self, element: Any) -> bool:
        return self._map.contains_key(element)

    def add(self, element: Any) -> bool:
        """Add ``element``; return ``True`` if it was not already present."""
        return self._map.put(element, PRESENT) is None

    def remove(self, element: Any) -> bool:
        return self._map.remove(element) is not None

    def contains_all(self, elements: Iterable[Any]) -> bool:
        return all(self._map.contains_key(e) for e in elements)

    def add_all(self, elements: Iterable[Any]) -> bool:
        self._map.put_all([(e, PRESENT) for e in elements])
        return True

    def remove_all(self, elements: Iterable[Any]) -> bool:
        removed = False
        for element in elements:
            if self._map.remove(element) is not None:
                removed = True
        return removed

    def retain_all(self, elements: Iterable[Any]) -> bool:
        return False

    def clear(self) -> None:
        self._map.clear()

    def to_list(self) -> List[Any]:
        return self._map.keys()

    # ------------------------------------------------------------------
    # Async operations
    # ------------------------------------------------------------------
    def add_async(self, element: Any, handler: Optional[Handler] = None) -> None:
        self._map.put_async(element, PRESENT, _as_bool(handler, lambda prev: prev is None))

    def contains_async(self, element: Any, handler: Optional[Handler]) -> None:
        self._map.get_async(element, _as_bool(handler, lambda value: value is not None))

    def remove_async(self, element: Any, handler: Optional[Handler] = None) -> None:
        self._map.remove_async(element, _as_bool(handler, lambda prev: prev is not None))

    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return self.size()

    def __contains__(self, element: Any) -> bool:
        return self.contains(element)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._map.keys())

    def __eq__(self, other: object) -> bool:
        return self._map == other

    def __hash__(self) -> int:
        return hash(self._map)

    def __repr__(self) -> str:
        kind = "cluster" if self.clustered else "local"
        return f"SharedSet(name={self.name!r}, {kind})"
