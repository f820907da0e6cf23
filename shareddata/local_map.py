"""In-process shared map."""

from __future__ import annotations

import threading
from typing import Any, Dict, Hashable, Iterator, List, Optional, Tuple

from core.executor import Handler, complete_inline
from shareddata.admission import Entries, admit, admit_key, entry_pairs, release, release_key

_MISSING = object()


class LocalSharedMap:
    """Thread-safe map holding only admitted keys and values.

    Every operation runs under one lock. Reads hand out copies of mutable
    byte values and iteration works on a snapshot, so it never fails under
    concurrent mutation. The async operations compute their result inline and
    report it through the handler.
    """

    clustered = False

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._entries: Dict[Hashable, Any] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Sync operations
    # ------------------------------------------------------------------
    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def is_empty(self) -> bool:
        return self.size() == 0

    def get(self, key: Any) -> Any:
        k = admit_key(key)
        with self._lock:
            stored = self._entries.get(k)
        return release(stored)

    def contains_key(self, key: Any) -> bool:
        k = admit_key(key)
        with self._lock:
            return k in self._entries

    def contains_value(self, value: Any) -> bool:
        v = admit(value)
        with self._lock:
            return any(stored == v for stored in self._entries.values())

    def put(self, key: Any, value: Any) -> Any:
        """Store ``value`` under ``key`` and return the previous value, if any."""
        k = admit_key(key)
        v = admit(value)
        with self._lock:
            previous = self._entries.get(k)
            self._entries[k] = v
        return release(previous)

    def remove(self, key: Any) -> Any:
        k = admit_key(key)
        with self._lock:
            previous = self._entries.pop(k, None)
        return release(previous)

    def put_if_absent(self, key: Any, value: Any) -> Any:
        """Store ``value`` only if ``key`` is absent; return the existing value otherwise."""
        k = admit_key(key)
        v = admit(value)
        with self._lock:
            existing = self._entries.get(k)
            if existing is None:
                self._entries[k] = v
        return release(existing)

    def replace(self, key: Any, value: Any) -> Any:
        """Replace the value of an existing ``key``; return the old value or ``None``."""
        k = admit_key(key)
        v = admit(value)
        with self._lock:
            previous = self._entries.get(k)
            if previous is not None:
                self._entries[k] = v
        return release(previous)

    def replace_if_same(self, key: Any, old_value: Any, new_value: Any) -> bool:
        k = admit_key(key)
        old = admit(old_value)
        new = admit(new_value)
        with self._lock:
            current = self._entries.get(k, _MISSING)
            if current is _MISSING or current != old:
                return False
            self._entries[k] = new
            return True

    def remove_if_same(self, key: Any, value: Any) -> bool:
        k = admit_key(key)
        v = admit(value)
        with self._lock:
            current = self._entries.get(k, _MISSING)
            if current is _MISSING or current != v:
                return False
            del self._entries[k]
            return True

    def put_all(self, entries: Entries) -> None:
        # admit everything first so a rejected pair leaves the map untouched
        admitted = [(admit_key(k), admit(v)) for k, v in entry_pairs(entries)]
        with self._lock:
            self._entries.update(admitted)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> List[Any]:
        with self._lock:
            stored = list(self._entries)
        return [release_key(k) for k in stored]

    def values(self) -> List[Any]:
        with self._lock:
            stored = list(self._entries.values())
        return [release(v) for v in stored]

    def entries(self) -> List[Tuple[Any, Any]]:
        with self._lock:
            stored = list(self._entries.items())
        return [(release_key(k), release(v)) for k, v in stored]

    # ------------------------------------------------------------------
    # Async operations
    # ------------------------------------------------------------------
    def get_async(self, key: Any, handler: Optional[Handler]) -> None:
        complete_inline(lambda: self.get(key), handler)

    def put_async(self, key: Any, value: Any, handler: Optional[Handler] = None) -> None:
        complete_inline(lambda: self.put(key, value), handler)

    def remove_async(self, key: Any, handler: Optional[Handler] = None) -> None:
        complete_inline(lambda: self.remove(key), handler)

    # ------------------------------------------------------------------
    # Mapping protocol
    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return self.size()

    def __contains__(self, key: Any) -> bool:
        return self.contains_key(key)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.keys())

    def __getitem__(self, key: Any) -> Any:
        value = self.get(key)
        if value is None:
            raise KeyError(key)
        return value

    def __setitem__(self, key: Any, value: Any) -> None:
        self.put(key, value)

    def __delitem__(self, key: Any) -> None:
        if self.remove(key) is None:
            raise KeyError(key)

    def __repr__(self) -> str:
        return f"LocalSharedMap(name={self.name!r}, size={self.size()})"
