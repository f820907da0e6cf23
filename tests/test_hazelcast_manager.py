"""Tests for the Hazelcast cluster manager using a stand-in client."""

import threading
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))  # noqa: E402

import pytest
from hazelcast.config import Config
from hazelcast.serialization.service import SerializationServiceV1

from cluster import hazelcast_manager
from cluster.hazelcast_manager import CUSTOM_SERIALIZERS, HazelcastAsyncMap, HazelcastClusterManager
from core.executor import BlockingExecutor
from shareddata.admission import FrozenKey, ValueKind, admit_key
from shareddata.buffer import Buffer
from shareddata.cluster_map import ClusterSharedMap
from shareddata.registry import SharedData
from shareddata.shared_set import SharedSet


class DummyBlockingMap:
    """Mimics the blocking map proxy of the Hazelcast client."""

    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def put(self, key, value):
        prev = self.data.get(key)
        self.data[key] = value
        return prev

    def remove(self, key):
        return self.data.pop(key, None)

    def put_if_absent(self, key, value):
        prev = self.data.get(key)
        if prev is None:
            self.data[key] = value
        return prev

    def replace(self, key, value):
        prev = self.data.get(key)
        if prev is not None:
            self.data[key] = value
        return prev

    def replace_if_same(self, key, old, new):
        if self.data.get(key) == old:
            self.data[key] = new
            return True
        return False

    def remove_if_same(self, key, value):
        if self.data.get(key) == value:
            del self.data[key]
            return True
        return False

    def size(self):
        return len(self.data)

    def is_empty(self):
        return not self.data

    def contains_key(self, key):
        return key in self.data

    def contains_value(self, value):
        return value in self.data.values()

    def clear(self):
        self.data.clear()

    def key_set(self):
        return list(self.data)

    def values(self):
        return list(self.data.values())

    def entry_set(self):
        return list(self.data.items())

    def put_all(self, entries):
        self.data.update(entries)


class DummyMapProxy:
    def __init__(self, blocking_map):
        self._blocking = blocking_map

    def blocking(self):
        return self._blocking


class DummyClient:
    def __init__(self, **config):
        self.config = config
        self.maps = {}
        self.stopped = False

    def get_map(self, name):
        return DummyMapProxy(self.maps.setdefault(name, DummyBlockingMap()))

    def shutdown(self):
        self.stopped = True


def test_async_map_delegates_to_proxy():
    proxy = DummyBlockingMap()
    with BlockingExecutor(1) as executor:
        amap = HazelcastAsyncMap(proxy, executor)
        assert amap.put("a", 1) is None
        assert amap.put_if_absent("a", 2) == 1
        assert amap.replace("a", 3) == 1
        assert amap.replace_if_same("a", 3, 4)
        assert not amap.remove_if_same("a", 3)
        amap.put_all({"b": 2})
        assert amap.size() == 2 and not amap.is_empty()
        assert amap.contains_key("b") and amap.contains_value(4)
        assert sorted(amap.key_set()) == ["a", "b"]
        assert sorted(amap.values()) == [2, 4]
        assert sorted(amap.entry_set()) == [("a", 4), ("b", 2)]

        done = threading.Event()
        box = []
        amap.get_async("a", lambda res: (box.append(res), done.set()))
        assert done.wait(2)
        assert box[0].result == 4
        assert amap.remove("a") == 4
        amap.clear()
        assert amap.is_empty()


def test_manager_with_registry():
    client = DummyClient()
    mgr = HazelcastClusterManager(client)
    try:
        sd = SharedData(mgr)
        m = sd.get_cluster_map("foo")
        m.put("k", "v")
        assert client.maps["foo"].data == {"k": "v"}
        sd.get_cluster_set("foo").add("e")
        assert "e" in client.maps["__shared_set__.foo"].data
    finally:
        mgr.shutdown()
    assert not client.stopped


def test_manager_builds_client_from_env(monkeypatch):
    monkeypatch.setattr(hazelcast_manager.hazelcast, "HazelcastClient", DummyClient)
    monkeypatch.setenv("HAZELCAST_CLUSTER_NAME", "shared")
    monkeypatch.setenv("HAZELCAST_MEMBERS", "10.0.0.1:5701, 10.0.0.2:5701")
    mgr = HazelcastClusterManager()
    assert mgr.client.config == {
        "cluster_name": "shared",
        "cluster_members": ["10.0.0.1:5701", "10.0.0.2:5701"],
        "custom_serializers": CUSTOM_SERIALIZERS,
    }
    mgr.shutdown()
    assert mgr.client.stopped


def _service():
    config = Config()
    config.custom_serializers = dict(CUSTOM_SERIALIZERS)
    return SerializationServiceV1(config)


ADMITTED = [
    "text",
    "",
    7,
    -(2**63),
    2**63 - 1,
    1.5,
    float("inf"),
    True,
    False,
    b"\x00\xffraw",
    b"",
    bytearray(b"\x80seq"),
    Buffer(b"\xfe\x00buf"),
    Buffer(b""),
]


@pytest.mark.parametrize("value", ADMITTED, ids=lambda v: type(v).__name__)
def test_admitted_values_survive_serialization(value):
    service = _service()
    back = service.to_object(service.to_data(value))
    assert type(back) is type(value)
    assert back == value


@pytest.mark.parametrize("key", ADMITTED, ids=lambda v: type(v).__name__)
def test_admitted_keys_survive_serialization(key):
    service = _service()
    stored = admit_key(key)
    back = service.to_object(service.to_data(stored))
    assert type(back) is type(stored)
    assert back == stored
    assert hash(back) == hash(stored)


def test_frozen_keys_keep_their_kind():
    service = _service()
    keys = [
        FrozenKey(ValueKind.BOOLEAN, True),
        FrozenKey(ValueKind.FLOAT, 1.0),
        FrozenKey(ValueKind.BYTE_SEQUENCE, b"\x01"),
        FrozenKey(ValueKind.BYTE_BUFFER, b"\x01"),
    ]
    back = [service.to_object(service.to_data(k)) for k in keys]
    assert back == keys
    assert len(set(back) | {1}) == 5


class SerializingBlockingMap(DummyBlockingMap):
    """Blocking map that stores what the client would send over the wire."""

    def __init__(self):
        super().__init__()
        self.service = _service()

    def _wire(self, obj):
        return self.service.to_object(self.service.to_data(obj))

    def get(self, key):
        return super().get(self._wire(key))

    def put(self, key, value):
        return super().put(self._wire(key), self._wire(value))

    def remove(self, key):
        return super().remove(self._wire(key))

    def put_if_absent(self, key, value):
        return super().put_if_absent(self._wire(key), self._wire(value))

    def contains_key(self, key):
        return super().contains_key(self._wire(key))

    def put_all(self, entries):
        super().put_all({self._wire(k): self._wire(v) for k, v in entries.items()})


def test_cluster_map_with_every_kind_over_serialization():
    with BlockingExecutor(1) as executor:
        m = ClusterSharedMap(HazelcastAsyncMap(SerializingBlockingMap(), executor, "kinds"), "kinds")
        for value in ADMITTED:
            m.put("v", value)
            got = m.get("v")
            assert type(got) is type(value) and got == value
        m.put(Buffer(b"\xffk"), "buffer-key")
        assert m.get(Buffer(b"\xffk")) == "buffer-key"
        assert isinstance(m.keys()[-1], Buffer)


def test_cluster_set_mixed_kinds_over_serialization():
    with BlockingExecutor(1) as executor:
        s = SharedSet(
            ClusterSharedMap(HazelcastAsyncMap(SerializingBlockingMap(), executor, "s"), "s"), "s"
        )
        assert s.add(1) and s.add(True) and s.add(1.0)
        assert s.size() == 3
        assert sorted(type(e).__name__ for e in s.to_list()) == ["bool", "float", "int"]
