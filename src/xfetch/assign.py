"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Runtime-checked transfer of one holder's state into another holder.

The fetcher hands the caller one long-lived holder for the whole call while
the recompute callback is free to build a brand-new one. ``assign`` copies
the recomputed state into the caller's holder after checking that both are
of the same concrete type.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from .errors import InvalidReferenceError, TypeMismatchError

T = TypeVar("T")

_IMMUTABLE_TYPES = (
    str,
    bytes,
    int,
    float,
    complex,
    bool,
    tuple,
    frozenset,
    range,
    type(None),
)


@dataclass(slots=True)
class Ref(Generic[T]):
    """
    Mutable slot holding one value of a declared type.

    Scalars and other immutable values cannot be overwritten in place, so
    they travel inside a ``Ref``. ``kind`` is the declared value type; it is
    used for type checks in ``assign`` and for decoding cached payloads.
    """

    kind: Any
    value: T | None = None


def _type_name(obj: object) -> str:
    if isinstance(obj, Ref):
        kind = getattr(obj.kind, "__name__", repr(obj.kind))
        return f"Ref[{kind}]"
    return type(obj).__name__


def _slot_names(cls: type) -> list[str]:
    names: list[str] = []
    for klass in cls.__mro__:
        slots = klass.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for name in slots:
            if name in ("__dict__", "__weakref__") or name in names:
                continue
            names.append(name)
    return names


def ensure_writable(ref: object) -> None:
    """
    Raise ``InvalidReferenceError`` unless ``ref`` can be overwritten in place.

    Args:
        ref: Holder that would receive a value through ``assign``.
    """
    if ref is None:
        raise InvalidReferenceError("holder must be a non-None mutable reference")
    if isinstance(ref, type):
        raise InvalidReferenceError(
            f"holder must be an instance, got class {ref.__name__}"
        )
    if isinstance(ref, _IMMUTABLE_TYPES):
        raise InvalidReferenceError(
            f"holder of type {type(ref).__name__} is immutable; wrap it in Ref"
        )
    if dataclasses.is_dataclass(ref):
        params = getattr(type(ref), "__dataclass_params__", None)
        if params is not None and params.frozen:
            raise InvalidReferenceError(
                f"holder of type {type(ref).__name__} is a frozen dataclass"
            )
    if isinstance(ref, (Ref, list, dict, set, bytearray)):
        return
    if not hasattr(ref, "__dict__") and not _slot_names(type(ref)):
        raise InvalidReferenceError(
            f"holder of type {type(ref).__name__} has no writable state"
        )


def assign(dest: T, src: T | None) -> None:
    """
    Overwrite the state of ``dest`` with the state of ``src``.

    The copy is shallow: nested references are shared, not cloned.

    Raises:
        InvalidReferenceError: ``src`` is ``None`` or ``dest`` is not writable.
        TypeMismatchError: ``dest`` and ``src`` are not the same concrete type.
    """
    if src is None:
        raise InvalidReferenceError("recomputed value must be a non-None reference")
    if type(dest) is not type(src) or (
        isinstance(dest, Ref) and dest.kind != src.kind  # type: ignore[attr-defined]
    ):
        raise TypeMismatchError(
            f"fetchable type {_type_name(dest)} is not assignable to "
            f"recomputed type {_type_name(src)}"
        )
    ensure_writable(dest)
    if dest is src:
        return

    if isinstance(dest, Ref):
        dest.value = src.value  # type: ignore[attr-defined]
    elif isinstance(dest, (list, bytearray)):
        dest[:] = src  # type: ignore[index]
    elif isinstance(dest, (dict, set)):
        dest.clear()
        dest.update(src)  # type: ignore[arg-type]
    else:
        _copy_object_state(dest, src)


def _copy_object_state(dest: object, src: object) -> None:
    """Copy instance ``__dict__`` and slot values from ``src`` onto ``dest``."""
    if hasattr(dest, "__dict__"):
        state = dict(vars(src))
        vars(dest).clear()
        vars(dest).update(state)

    for name in _slot_names(type(dest)):
        if hasattr(src, name):
            object.__setattr__(dest, name, getattr(src, name))
        elif hasattr(dest, name):
            object.__delattr__(dest, name)
