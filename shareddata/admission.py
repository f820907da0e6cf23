"""Value admission policy for shared containers.

Every key and value entering a shared map or set passes through this module.
Only a closed set of kinds is accepted. The two mutable kinds, ``bytearray``
and :class:`~shareddata.buffer.Buffer`, are copied on the way in and again on
every read so no caller ever holds the stored object.

Keys additionally have to be hashable. Mutable byte keys are frozen into a
private hashable form while stored and thawed into a fresh object of their
original kind when read back. Boolean and float keys are stored tagged with
their kind as well, so ``1``, ``True`` and ``1.0`` stay three distinct keys.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Hashable, Iterable, Mapping, Tuple, Union

from core import metrics
from core.logger import StructuredLogger
from shareddata.buffer import Buffer
from shareddata.errors import IllegalValueKind

LOGGER = StructuredLogger("shared_data")

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


class ValueKind(Enum):
    TEXT = "text"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    BYTES = "bytes"
    BYTE_SEQUENCE = "byte_sequence"
    BYTE_BUFFER = "byte_buffer"


_KINDS = {
    str: ValueKind.TEXT,
    int: ValueKind.INTEGER,
    float: ValueKind.FLOAT,
    bool: ValueKind.BOOLEAN,
    bytes: ValueKind.BYTES,
    bytearray: ValueKind.BYTE_SEQUENCE,
    Buffer: ValueKind.BYTE_BUFFER,
}

MUTABLE_KINDS = frozenset({ValueKind.BYTE_SEQUENCE, ValueKind.BYTE_BUFFER})

# kinds whose values compare equal to an int of the same magnitude
TAGGED_KINDS = frozenset({ValueKind.BOOLEAN, ValueKind.FLOAT})


@dataclass(frozen=True)
class FrozenKey:
    """Kind-tagged stand-in for a key while it sits in a container.

    Byte keys keep their content as ``bytes``; boolean and float keys keep
    the value itself. Two frozen keys are equal only if their kinds match.
    """

    kind: ValueKind
    data: Any


def _reject(value: Any, role: str) -> IllegalValueKind:
    metrics.record_rejection()
    LOGGER.log("value_rejected", risk_level="low", role=role, kind=type(value).__name__)
    return IllegalValueKind(value, role)


def kind_of(value: Any, role: str = "value") -> ValueKind:
    """Return the admitted kind of ``value`` or raise :class:`IllegalValueKind`.

    Exact types only: subclasses of admitted types may carry mutable state
    and are refused.
    """
    kind = _KINDS.get(type(value))
    if kind is None:
        raise _reject(value, role)
    if kind is ValueKind.INTEGER and not INT64_MIN <= value <= INT64_MAX:
        raise _reject(value, role)
    return kind


def _copy(value: Any, kind: ValueKind) -> Any:
    if kind is ValueKind.BYTE_SEQUENCE:
        return bytearray(value)
    if kind is ValueKind.BYTE_BUFFER:
        return value.copy()
    return value


def admit(value: Any) -> Any:
    """Return the form of ``value`` to store."""
    return _copy(value, kind_of(value))


def release(stored: Any) -> Any:
    """Return the form of a stored value handed to a caller."""
    if stored is None:
        return None
    kind = _KINDS.get(type(stored))
    if kind is None:
        return stored
    return _copy(stored, kind)


def admit_key(key: Any) -> Hashable:
    """Return the hashable stored form of ``key``."""
    kind = kind_of(key, role="key")
    if kind in MUTABLE_KINDS:
        return FrozenKey(kind, bytes(key))
    if kind in TAGGED_KINDS:
        return FrozenKey(kind, key)
    return key


def release_key(stored: Hashable) -> Any:
    """Return a fresh caller-side key for a stored key."""
    if isinstance(stored, FrozenKey):
        if stored.kind is ValueKind.BYTE_BUFFER:
            return Buffer(stored.data)
        if stored.kind is ValueKind.BYTE_SEQUENCE:
            return bytearray(stored.data)
        return stored.data
    return stored


Entries = Union[Mapping[Any, Any], Iterable[Tuple[Any, Any]]]


def entry_pairs(entries: Entries) -> Iterable[Tuple[Any, Any]]:
    """Return ``(key, value)`` pairs from a mapping or an iterable of pairs.

    Pairs let callers pass keys a dict would merge, such as ``1`` and ``True``.
    """
    if isinstance(entries, Mapping):
        return entries.items()
    return entries
