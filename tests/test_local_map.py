"""Tests for the in-process shared map."""

import os
import random
import threading
from pathlib import Path
import sys

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))  # noqa: E402

from core.executor import AsyncResult
from shareddata.buffer import Buffer
from shareddata.errors import IllegalValueKind
from shareddata.local_map import LocalSharedMap


class SomeOtherClass:
    pass


def _capture():
    results = []

    def handler(res: AsyncResult) -> None:
        results.append(res)

    return results, handler


def test_sync_put_get_remove():
    m = LocalSharedMap("foo")
    assert m.put("key", "Hello") is None
    assert m.get("key") == "Hello"
    assert m.put("key", "World") == "Hello"
    assert m.get("key") == "World"
    assert m.remove("key") == "World"
    assert m.get("key") is None
    assert m.is_empty()


def test_conditional_operations():
    m = LocalSharedMap()
    assert m.put_if_absent("a", 1) is None
    assert m.put_if_absent("a", 2) == 1
    assert m.replace("missing", 5) is None
    assert "missing" not in m
    assert m.replace("a", 3) == 1
    assert not m.replace_if_same("a", 1, 4)
    assert m.replace_if_same("a", 3, 4)
    assert not m.remove_if_same("a", 3)
    assert m.remove_if_same("a", 4)
    assert m.size() == 0


def test_bulk_and_views():
    m = LocalSharedMap()
    m.put_all({"a": 1, "b": 2.5, "c": True})
    assert len(m) == 3
    assert sorted(m.keys()) == ["a", "b", "c"]
    assert sorted(m) == ["a", "b", "c"]
    assert m.contains_value(2.5)
    assert not m.contains_value("nope")
    assert dict(m.entries()) == {"a": 1, "b": 2.5, "c": True}
    m.clear()
    assert m.values() == []


def test_put_all_rejects_whole_batch():
    m = LocalSharedMap()
    with pytest.raises(IllegalValueKind):
        m.put_all({"a": 1, "b": SomeOtherClass()})
    assert m.size() == 0


def test_mapping_sugar():
    m = LocalSharedMap()
    m["x"] = "y"
    assert m["x"] == "y"
    assert "x" in m
    del m["x"]
    with pytest.raises(KeyError):
        m["x"]
    with pytest.raises(KeyError):
        del m["x"]


def test_every_admitted_kind_round_trips():
    m = LocalSharedMap()
    rnd = random.Random(7)
    values = [
        rnd.random(),
        rnd.randint(-128, 127),
        rnd.randint(-(2**15), 2**15 - 1),
        rnd.randint(-(2**31), 2**31 - 1),
        rnd.randint(-(2**63), 2**63 - 1),
        rnd.randint(0, 255),
        True,
        False,
        chr(rnd.randint(32, 0xD7FF)),
        "text",
        b"immutable",
    ]
    for value in values:
        m.put("key", value)
        got = m.get("key")
        assert got == value and type(got) is type(value)


def test_rejected_value_leaves_map_unchanged():
    m = LocalSharedMap()
    m.put("keep", 1)
    with pytest.raises(IllegalValueKind):
        m.put("key", SomeOtherClass())
    with pytest.raises(IllegalValueKind):
        m.put("key", None)
    with pytest.raises(IllegalValueKind):
        m.put(None, "v")
    with pytest.raises(IllegalValueKind):
        m.put_if_absent("key", [1])
    assert m.size() == 1
    assert m.get("key") is None


def test_buffer_is_copied_on_every_read():
    m = LocalSharedMap()
    buff = Buffer(os.urandom(100))
    m.put("key", buff)
    got1 = m.get("key")
    got2 = m.get("key")
    assert got1 is not buff and got2 is not buff and got1 is not got2
    assert got1 == buff and got2 == buff


def test_bytearray_is_copied_on_every_read():
    m = LocalSharedMap()
    data = bytearray(os.urandom(100))
    m.put("key", data)
    got1 = m.get("key")
    got2 = m.get("key")
    assert got1 is not data and got2 is not data and got1 is not got2
    assert got1 == data and got2 == data
    data[0] ^= 0xFF
    assert m.get("key") == got1


def test_iteration_returns_copies():
    m = LocalSharedMap()
    data = bytearray(b"abc")
    m.put(bytearray(b"k"), data)
    (key, value), = m.entries()
    assert key == bytearray(b"k") and isinstance(key, bytearray)
    assert value == data and value is not data
    assert m.values()[0] is not m.values()[0]
    assert m.get(bytearray(b"k")) == data


def test_async_operations_deliver_inline():
    m = LocalSharedMap()
    results, handler = _capture()
    m.put_async("key", "Hello", handler)
    m.get_async("key", handler)
    m.put_async("key", "World", handler)
    m.get_async("key", handler)
    m.remove_async("key", handler)
    m.get_async("key", handler)
    assert all(r.succeeded for r in results)
    assert [r.result for r in results] == [None, "Hello", "Hello", "World", "World", None]


def test_async_rejection_delivered_as_failure():
    m = LocalSharedMap()
    results, handler = _capture()
    m.put_async("key", SomeOtherClass(), handler)
    assert results[0].failed
    assert isinstance(results[0].cause, IllegalValueKind)
    assert m.size() == 0


def test_async_get_agrees_with_sync_get():
    m = LocalSharedMap()
    m.put("k", bytearray(b"payload"))
    results, handler = _capture()
    m.get_async("k", handler)
    assert results[0].result == m.get("k")


def test_iteration_survives_concurrent_mutation():
    m = LocalSharedMap()
    for i in range(200):
        m.put(i, i)
    stop = threading.Event()

    def writer():
        i = 200
        while not stop.is_set():
            m.put(i, i)
            m.remove(i - 200)
            i += 1

    t = threading.Thread(target=writer)
    t.start()
    try:
        for _ in range(50):
            for key in m:
                assert isinstance(key, int)
    finally:
        stop.set()
        t.join()


def test_concurrent_put_if_absent_single_winner():
    m = LocalSharedMap()
    winners = []
    barrier = threading.Barrier(8)

    def worker(n):
        barrier.wait()
        if m.put_if_absent("slot", n) is None:
            winners.append(n)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(winners) == 1
    assert m.get("slot") == winners[0]


def test_mixed_numeric_keys_are_distinct():
    m = LocalSharedMap("foo")
    m.put(1, "int")
    m.put(True, "bool")
    m.put(1.0, "float")
    assert m.size() == 3
    assert m.get(1) == "int" and m.get(True) == "bool" and m.get(1.0) == "float"
    assert {type(k) for k in m.keys()} == {int, bool, float}
    assert m.remove(True) == "bool"
    assert not m.contains_key(True) and m.contains_key(1)


def test_put_all_pairs_keep_mixed_numeric_keys():
    m = LocalSharedMap("foo")
    m.put_all([(0, "int"), (False, "bool"), (0.0, "float")])
    assert sorted(m.values()) == ["bool", "float", "int"]
    assert dict((type(k), v) for k, v in m.entries()) == {int: "int", bool: "bool", float: "float"}
