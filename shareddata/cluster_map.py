"""Shared map backed by a cluster-wide :class:`~shareddata.protocols.AsyncMap`."""

from __future__ import annotations

from typing import Any, Callable, Iterator, List, Optional, Tuple

from core import metrics
from core.executor import AsyncResult, Handler, deliver
from core.logger import StructuredLogger
from shareddata.admission import Entries, admit, admit_key, entry_pairs, release, release_key
from shareddata.errors import BackendFailure, IllegalValueKind
from shareddata.protocols import AsyncMap

LOGGER = StructuredLogger("shared_data")


class ClusterSharedMap:
    """Shared map whose state lives in a distributed store.

    Sync operations block on the store. Async operations are handed to the
    store's async methods, which run them as blocking work and report
    through the handler. Backend errors surface as :class:`BackendFailure`:
    raised on sync paths, delivered as the failure cause on async paths.
    """

    clustered = True

    def __init__(self, async_map: AsyncMap, name: str = "") -> None:
        self.name = name
        self._map = async_map

    # ------------------------------------------------------------------
    # Wire conversion hooks
    # ------------------------------------------------------------------
    def _to_wire(self, value: Any) -> Any:
        return value

    def _from_wire(self, value: Any) -> Any:
        return value

    def _read(self, stored: Any) -> Any:
        if stored is None:
            return None
        return release(self._from_wire(stored))

    # ------------------------------------------------------------------
    def _failure(self, operation: str, exc: Exception) -> BackendFailure:
        metrics.record_backend_failure()
        LOGGER.log(
            "backend_failure",
            name=self.name,
            namespace="cluster",
            risk_level="high",
            error=str(exc),
            operation=operation,
        )
        failure = BackendFailure(operation, self.name, exc)
        failure.__cause__ = exc
        return failure

    def _call(self, operation: str, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return func(*args)
        except Exception as exc:
            raise self._failure(operation, exc) from exc

    # ------------------------------------------------------------------
    # Sync operations
    # ------------------------------------------------------------------
    def size(self) -> int:
        return self._call("size", self._map.size)

    def is_empty(self) -> bool:
        return self._call("is_empty", self._map.is_empty)

    def get(self, key: Any) -> Any:
        return self._read(self._call("get", self._map.get, admit_key(key)))

    def contains_key(self, key: Any) -> bool:
        return self._call("contains_key", self._map.contains_key, admit_key(key))

    def contains_value(self, value: Any) -> bool:
        return self._call("contains_value", self._map.contains_value, self._to_wire(admit(value)))

    def put(self, key: Any, value: Any) -> Any:
        """Store ``value`` under ``key`` and return the previous value, if any."""
        k = admit_key(key)
        v = self._to_wire(admit(value))
        return self._read(self._call("put", self._map.put, k, v))

    def remove(self, key: Any) -> Any:
        return self._read(self._call("remove", self._map.remove, admit_key(key)))

    def put_if_absent(self, key: Any, value: Any) -> Any:
        k = admit_key(key)
        v = self._to_wire(admit(value))
        return self._read(self._call("put_if_absent", self._map.put_if_absent, k, v))

    def replace(self, key: Any, value: Any) -> Any:
        k = admit_key(key)
        v = self._to_wire(admit(value))
        return self._read(self._call("replace", self._map.replace, k, v))

    def replace_if_same(self, key: Any, old_value: Any, new_value: Any) -> bool:
        k = admit_key(key)
        old = self._to_wire(admit(old_value))
        new = self._to_wire(admit(new_value))
        return self._call("replace_if_same", self._map.replace_if_same, k, old, new)

    def remove_if_same(self, key: Any, value: Any) -> bool:
        k = admit_key(key)
        v = self._to_wire(admit(value))
        return self._call("remove_if_same", self._map.remove_if_same, k, v)

    def put_all(self, entries: Entries) -> None:
        admitted = {admit_key(k): self._to_wire(admit(v)) for k, v in entry_pairs(entries)}
        self._call("put_all", self._map.put_all, admitted)

    def clear(self) -> None:
        self._call("clear", self._map.clear)

    def keys(self) -> List[Any]:
        return [release_key(k) for k in self._call("key_set", self._map.key_set)]

    def values(self) -> List[Any]:
        return [self._read(v) for v in self._call("values", self._map.values)]

    def entries(self) -> List[Tuple[Any, Any]]:
        stored = self._call("entry_set", self._map.entry_set)
        return [(release_key(k), self._read(v)) for k, v in stored]

    # ------------------------------------------------------------------
    # Async operations
    # ------------------------------------------------------------------
    def _deliver(self, operation: str, handler: Optional[Handler]) -> Handler:
        def on_result(res: AsyncResult) -> None:
            if handler is None:
                return
            if res.failed:
                cause = res.cause
                if isinstance(cause, Exception) and not isinstance(cause, BackendFailure):
                    cause = self._failure(operation, cause)
                handler(AsyncResult.failure(cause))  # type: ignore[arg-type]
            else:
                handler(AsyncResult.success(self._read(res.result)))

        return on_result

    def _submit(self, operation: str, handler: Optional[Handler], start: Callable[[Handler], None]) -> None:
        on_result = self._deliver(operation, handler)
        try:
            start(on_result)
        except IllegalValueKind as exc:
            deliver(handler, AsyncResult.failure(exc))
        except Exception as exc:
            deliver(on_result, AsyncResult.failure(exc))

    def get_async(self, key: Any, handler: Optional[Handler]) -> None:
        self._submit("get", handler, lambda h: self._map.get_async(admit_key(key), h))

    def put_async(self, key: Any, value: Any, handler: Optional[Handler] = None) -> None:
        self._submit(
            "put",
            handler,
            lambda h: self._map.put_async(admit_key(key), self._to_wire(admit(value)), h),
        )

    def remove_async(self, key: Any, handler: Optional[Handler] = None) -> None:
        self._submit("remove", handler, lambda h: self._map.remove_async(admit_key(key), h))

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
        return f"ClusterSharedMap(name={self.name!r})"
