"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Error taxonomy for fetch, assign and cache backend failures.
"""

from __future__ import annotations


class XFetchError(RuntimeError):
    """
    Base error carrying a short step description and the original cause.

    ``str(error)`` renders as ``"<step>: <cause>"`` so nested failures read
    like a chain of steps, e.g. ``"reading from cache: connection refused"``.
    """

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        if self.cause is None:
            return self.message
        return f"{self.message}: {self.cause}"


class CacheReadError(XFetchError):
    """Raised when a cache read fails with a transport or decoding fault."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__("reading from cache", cause=cause)


class CacheWriteError(XFetchError):
    """Raised when writing a recomputed value back to the cache fails."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__("updating cache", cause=cause)


class RecomputeError(XFetchError):
    """Raised when the recompute callback fails."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__("recomputing value", cause=cause)


class RecomputeInvariantError(XFetchError):
    """Raised when the recompute callback returns neither a value nor an error."""

    def __init__(self, message: str = "recompute returned no value") -> None:
        super().__init__(message)


class AssignError(XFetchError):
    """Base class for holder transfer failures."""


class TypeMismatchError(AssignError):
    """Raised when source and destination holders are of different types."""


class InvalidReferenceError(AssignError):
    """Raised when a holder is missing or cannot be overwritten in place."""


class SerializationError(XFetchError):
    """Raised when a value cannot be encoded to or decoded from its wire form."""


class CacheBackendError(XFetchError):
    """Raised by backends on protocol-level faults such as a shape mismatch."""


class DegradedFetchError(XFetchError):
    """
    Cache read failed and the fallback refresh reported an error as well.

    Both failures stay inspectable through ``read_error`` and
    ``refresh_error``.
    """

    def __init__(self, read_error: CacheReadError, refresh_error: XFetchError) -> None:
        super().__init__("refreshing after cache failure", cause=refresh_error)
        self.read_error = read_error
        self.refresh_error = refresh_error

    @property
    def errors(self) -> tuple[XFetchError, XFetchError]:
        """Return ``(read_error, refresh_error)``."""
        return (self.read_error, self.refresh_error)

    def __str__(self) -> str:
        return f"{self.message}: {self.refresh_error}; {self.read_error}"
