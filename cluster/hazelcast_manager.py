"""Hazelcast-backed cluster manager.

Module purpose and system role:
    - Serve shared cluster maps from a Hazelcast cluster through the
      ``hazelcast-python-client`` blocking map proxies.
    - Run the async map operations on a ``BlockingExecutor``.

Integration points and dependencies:
    - Text, numbers, booleans and ``bytearray`` use the client's built-in
      serializers. ``bytes``, ``Buffer`` and frozen keys go through the
      stream serializers in ``CUSTOM_SERIALIZERS``, which a client built
      here registers; a client passed in must be built with them.
    - ``HAZELCAST_CLUSTER_NAME`` and ``HAZELCAST_MEMBERS`` (comma separated
      ``host:port``) configure a client built by the manager.
"""

from __future__ import annotations

import os
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type

import hazelcast
from hazelcast.serialization.api import StreamSerializer

from core.executor import BlockingExecutor, Handler
from core.logger import StructuredLogger
from shareddata.admission import FrozenKey, ValueKind
from shareddata.buffer import Buffer

LOGGER = StructuredLogger("hazelcast_manager")

# custom serializer type ids; Hazelcast reserves zero and negative ids
BYTES_TYPE_ID = 7101
BUFFER_TYPE_ID = 7102
FROZEN_KEY_TYPE_ID = 7103


class BytesSerializer(StreamSerializer):
    """Writes ``bytes`` as a byte array; the client has no serializer of its own for it."""

    def write(self, out: Any, obj: bytes) -> None:
        out.write_byte_array(obj)

    def read(self, inp: Any) -> bytes:
        return bytes(inp.read_byte_array())

    def get_type_id(self) -> int:
        return BYTES_TYPE_ID

    def destroy(self) -> None:
        pass


class BufferSerializer(StreamSerializer):
    def write(self, out: Any, obj: Buffer) -> None:
        out.write_byte_array(bytes(obj))

    def read(self, inp: Any) -> Buffer:
        return Buffer(inp.read_byte_array())

    def get_type_id(self) -> int:
        return BUFFER_TYPE_ID

    def destroy(self) -> None:
        pass


class FrozenKeySerializer(StreamSerializer):
    """Writes the key kind followed by its payload in the kind's native form."""

    def write(self, out: Any, obj: FrozenKey) -> None:
        out.write_string(obj.kind.value)
        if obj.kind is ValueKind.BOOLEAN:
            out.write_boolean(obj.data)
        elif obj.kind is ValueKind.FLOAT:
            out.write_double(obj.data)
        else:
            out.write_byte_array(obj.data)

    def read(self, inp: Any) -> FrozenKey:
        kind = ValueKind(inp.read_string())
        if kind is ValueKind.BOOLEAN:
            return FrozenKey(kind, inp.read_boolean())
        if kind is ValueKind.FLOAT:
            return FrozenKey(kind, inp.read_double())
        return FrozenKey(kind, bytes(inp.read_byte_array()))

    def get_type_id(self) -> int:
        return FROZEN_KEY_TYPE_ID

    def destroy(self) -> None:
        pass


# pass as ``custom_serializers`` to any client handed to HazelcastClusterManager
CUSTOM_SERIALIZERS: Dict[type, Type[StreamSerializer]] = {
    bytes: BytesSerializer,
    Buffer: BufferSerializer,
    FrozenKey: FrozenKeySerializer,
}


class HazelcastAsyncMap:
    """``AsyncMap`` over a Hazelcast blocking map proxy."""

    def __init__(self, hz_map: Any, executor: BlockingExecutor, name: str = "") -> None:
        self.name = name
        self._map = hz_map
        self._executor = executor

    # ------------------------------------------------------------------
    def get(self, key: Any) -> Any:
        return self._map.get(key)

    def put(self, key: Any, value: Any) -> Any:
        return self._map.put(key, value)

    def remove(self, key: Any) -> Any:
        return self._map.remove(key)

    def put_if_absent(self, key: Any, value: Any) -> Any:
        return self._map.put_if_absent(key, value)

    def replace(self, key: Any, value: Any) -> Any:
        return self._map.replace(key, value)

    def replace_if_same(self, key: Any, old_value: Any, new_value: Any) -> bool:
        return self._map.replace_if_same(key, old_value, new_value)

    def remove_if_same(self, key: Any, value: Any) -> bool:
        return self._map.remove_if_same(key, value)

    def size(self) -> int:
        return self._map.size()

    def is_empty(self) -> bool:
        return self._map.is_empty()

    def contains_key(self, key: Any) -> bool:
        return self._map.contains_key(key)

    def contains_value(self, value: Any) -> bool:
        return self._map.contains_value(value)

    def clear(self) -> None:
        self._map.clear()

    def key_set(self) -> List[Any]:
        return list(self._map.key_set())

    def values(self) -> List[Any]:
        return list(self._map.values())

    def entry_set(self) -> List[Tuple[Any, Any]]:
        return [(k, v) for k, v in self._map.entry_set()]

    def put_all(self, entries: Mapping[Any, Any]) -> None:
        self._map.put_all(dict(entries))

    # ------------------------------------------------------------------
    def get_async(self, key: Any, handler: Optional[Handler]) -> None:
        self._executor.execute_blocking(
            lambda: self._map.get(key), handler, order_key=(self.name, key)
        )

    def put_async(self, key: Any, value: Any, handler: Optional[Handler]) -> None:
        self._executor.execute_blocking(
            lambda: self._map.put(key, value), handler, order_key=(self.name, key)
        )

    def remove_async(self, key: Any, handler: Optional[Handler]) -> None:
        self._executor.execute_blocking(
            lambda: self._map.remove(key), handler, order_key=(self.name, key)
        )


def _members_from_env() -> List[str]:
    return [m.strip() for m in os.getenv("HAZELCAST_MEMBERS", "").split(",") if m.strip()]


class HazelcastClusterManager:
    """Hands out :class:`HazelcastAsyncMap` adapters for named Hazelcast maps."""

    def __init__(
        self,
        client: Any = None,
        *,
        executor: BlockingExecutor | None = None,
        cluster_name: str | None = None,
        cluster_members: List[str] | None = None,
    ) -> None:
        self._owns_client = client is None
        if client is None:
            config: dict = {
                "cluster_name": cluster_name or os.getenv("HAZELCAST_CLUSTER_NAME", "dev"),
                "custom_serializers": dict(CUSTOM_SERIALIZERS),
            }
            members = cluster_members if cluster_members is not None else _members_from_env()
            if members:
                config["cluster_members"] = members
            client = hazelcast.HazelcastClient(**config)
            LOGGER.log("client_started", cluster_name=config["cluster_name"], members=members)
        self.client = client
        self._owns_executor = executor is None
        self.executor = executor or BlockingExecutor()

    def get_async_map(self, name: str) -> HazelcastAsyncMap:
        return HazelcastAsyncMap(self.client.get_map(name).blocking(), self.executor, name)

    def shutdown(self) -> None:
        if self._owns_executor:
            self.executor.shutdown()
        if self._owns_client:
            self.client.shutdown()
            LOGGER.log("client_stopped")
