"""Mutable byte buffer accepted by shared data containers."""

from __future__ import annotations

from typing import Tuple, Union

BytesLike = Union[bytes, bytearray, memoryview]


class Buffer:
    """Growable byte buffer.

    A buffer stored in a shared map or set is copied on the way in and on
    every read, so two holders never share the underlying storage.
    """

    __slots__ = ("_data",)

    def __init__(self, data: BytesLike | str = b"", encoding: str = "utf-8") -> None:
        if isinstance(data, str):
            data = data.encode(encoding)
        self._data = bytearray(data)

    # ------------------------------------------------------------------
    def append_bytes(self, data: BytesLike) -> "Buffer":
        self._data.extend(data)
        return self

    def append_string(self, text: str, encoding: str = "utf-8") -> "Buffer":
        self._data.extend(text.encode(encoding))
        return self

    def append_buffer(self, other: "Buffer") -> "Buffer":
        self._data.extend(other._data)
        return self

    def set_byte(self, pos: int, value: int) -> "Buffer":
        self._data[pos] = value
        return self

    def get_byte(self, pos: int) -> int:
        return self._data[pos]

    def get_bytes(self, start: int = 0, end: int | None = None) -> bytes:
        return bytes(self._data[start:end])

    def to_string(self, encoding: str = "utf-8") -> str:
        return self._data.decode(encoding)

    def length(self) -> int:
        return len(self._data)

    def copy(self) -> "Buffer":
        return Buffer(self._data)

    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._data)

    def __bytes__(self) -> bytes:
        return bytes(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Buffer):
            return NotImplemented
        return self._data == other._data

    __hash__ = None  # type: ignore[assignment]

    # pickle support, used by cluster backends that serialize values
    def __getstate__(self) -> Tuple[bytes]:
        return (bytes(self._data),)

    def __setstate__(self, state: Tuple[bytes]) -> None:
        self._data = bytearray(state[0])

    def __repr__(self) -> str:
        return f"Buffer({bytes(self._data)!r})"
