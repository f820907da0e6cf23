"""In-process cluster manager.

Stands in for a real cluster on a single node and in tests. Managers built
over the same ``maps`` dictionary see the same data, which is how two
registries can act as two members of one cluster.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, Hashable, List, Mapping, Optional, Tuple

from core.executor import BlockingExecutor, Handler

_MISSING = object()


class InMemoryAsyncMap:
    """Lock-protected dictionary implementing the ``AsyncMap`` contract."""

    def __init__(self, name: str, executor: BlockingExecutor) -> None:
        self.name = name
        self._executor = executor
        self._data: Dict[Hashable, Any] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    def get(self, key: Any) -> Any:
        with self._lock:
            return self._data.get(key)

    def put(self, key: Any, value: Any) -> Any:
        with self._lock:
            previous = self._data.get(key)
            self._data[key] = value
            return previous

    def remove(self, key: Any) -> Any:
        with self._lock:
            return self._data.pop(key, None)

    def put_if_absent(self, key: Any, value: Any) -> Any:
        with self._lock:
            existing = self._data.get(key)
            if existing is None:
                self._data[key] = value
            return existing

    def replace(self, key: Any, value: Any) -> Any:
        with self._lock:
            previous = self._data.get(key)
            if previous is not None:
                self._data[key] = value
            return previous

    def replace_if_same(self, key: Any, old_value: Any, new_value: Any) -> bool:
        with self._lock:
            current = self._data.get(key, _MISSING)
            if current is _MISSING or current != old_value:
                return False
            self._data[key] = new_value
            return True

    def remove_if_same(self, key: Any, value: Any) -> bool:
        with self._lock:
            current = self._data.get(key, _MISSING)
            if current is _MISSING or current != value:
                return False
            del self._data[key]
            return True

    def size(self) -> int:
        with self._lock:
            return len(self._data)

    def is_empty(self) -> bool:
        return self.size() == 0

    def contains_key(self, key: Any) -> bool:
        with self._lock:
            return key in self._data

    def contains_value(self, value: Any) -> bool:
        with self._lock:
            return any(v == value for v in self._data.values())

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def key_set(self) -> List[Any]:
        with self._lock:
            return list(self._data)

    def values(self) -> List[Any]:
        with self._lock:
            return list(self._data.values())

    def entry_set(self) -> List[Tuple[Any, Any]]:
        with self._lock:
            return list(self._data.items())

    def put_all(self, entries: Mapping[Any, Any]) -> None:
        with self._lock:
            self._data.update(entries)

    # ------------------------------------------------------------------
    def get_async(self, key: Any, handler: Optional[Handler]) -> None:
        self._executor.execute_blocking(lambda: self.get(key), handler, order_key=(self.name, key))

    def put_async(self, key: Any, value: Any, handler: Optional[Handler]) -> None:
        self._executor.execute_blocking(
            lambda: self.put(key, value), handler, order_key=(self.name, key)
        )

    def remove_async(self, key: Any, handler: Optional[Handler]) -> None:
        self._executor.execute_blocking(
            lambda: self.remove(key), handler, order_key=(self.name, key)
        )


class InMemoryClusterManager:
    """Hands out one :class:`InMemoryAsyncMap` per name."""

    def __init__(
        self,
        executor: BlockingExecutor | None = None,
        *,
        maps: Dict[str, InMemoryAsyncMap] | None = None,
        lock: threading.Lock | None = None,
    ) -> None:
        self._owns_executor = executor is None
        self.executor = executor or BlockingExecutor()
        self.maps: Dict[str, InMemoryAsyncMap] = maps if maps is not None else {}
        self._lock = lock or threading.Lock()

    def get_async_map(self, name: str) -> InMemoryAsyncMap:
        with self._lock:
            async_map = self.maps.get(name)
            if async_map is None:
                async_map = InMemoryAsyncMap(name, self.executor)
                self.maps[name] = async_map
            return async_map

    def join(self) -> "InMemoryClusterManager":
        """Return another member sharing this manager's maps and executor."""
        return InMemoryClusterManager(self.executor, maps=self.maps, lock=self._lock)

    def shutdown(self) -> None:
        if self._owns_executor:
            self.executor.shutdown()
