"""Exceptions raised by the shared data registry and its containers."""

from __future__ import annotations

from typing import Any


class SharedDataError(Exception):
    """Base class for shared data errors."""


class IllegalValueKind(SharedDataError, ValueError, TypeError):
    """A key or value is ``None`` or not one of the admitted kinds."""

    def __init__(self, value: Any, role: str = "value") -> None:
        self.value = value
        self.role = role
        if value is None:
            msg = f"{role} must not be None"
        else:
            msg = f"{role} of type {type(value).__name__} cannot be stored in shared data"
        super().__init__(msg)


class BackendFailure(SharedDataError, RuntimeError):
    """The cluster backend failed an operation; the original error is ``__cause__``."""

    def __init__(self, operation: str, name: str, error: BaseException) -> None:
        self.operation = operation
        self.name = name
        super().__init__(f"{operation} on cluster map {name!r} failed: {error}")


class NoClusterManager(SharedDataError, RuntimeError):
    """A cluster container was requested but no cluster manager is configured."""
