"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Concrete value codecs: field-wise records, JSON text and msgpack blobs.

Every codec wraps a caller-owned holder and populates it in place on
``deserialize``. Values are shaped against the holder's declared type with
pydantic ``TypeAdapter``, so cached payloads come back as the same
dataclasses, containers and scalars that were written.
"""

from __future__ import annotations

import dataclasses
import types
import typing
from collections.abc import Mapping
from functools import lru_cache
from typing import Any, Optional, Union

import msgpack
from pydantic import TypeAdapter

from .assign import Ref, assign
from .errors import SerializationError
from .types import WireValue

RECORD_WRITE_CMD = "HSET"
RECORD_READ_CMD = "HGETALL"
BLOB_WRITE_CMD = "SET"
BLOB_READ_CMD = "GET"

# Field annotations stored verbatim (booleans as 0/1), mapped to the runtime
# types accepted for them. Every other annotation is stored as JSON text.
_RAW_ACCEPTS: dict[Any, tuple[type, ...]] = {
    str: (str,),
    bytes: (bytes,),
    int: (int,),
    float: (int, float),
    bool: (bool,),
}
_RAW_FIELD_TYPES = tuple(_RAW_ACCEPTS)


@lru_cache(maxsize=256)
def _adapter(annotation: Any) -> TypeAdapter[Any]:
    return TypeAdapter(annotation)


def _unwrap_optional(annotation: Any) -> Any:
    """Return ``X`` for ``Optional[X]`` / ``X | None``, else ``annotation``."""
    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _blob(reply: Any) -> bytes:
    if isinstance(reply, bytes):
        return reply
    if isinstance(reply, (bytearray, memoryview)):
        return bytes(reply)
    if isinstance(reply, str):
        return reply.encode("utf-8")
    raise SerializationError(
        f"expected a single blob reply, got {type(reply).__name__}"
    )


def _text(raw: Any) -> str:
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw).decode("utf-8")
    return str(raw)


class _HolderFetchable:
    """Shared holder plumbing for the concrete codecs."""

    write_cmd: str
    read_cmd: str

    __slots__ = ("_holder",)

    def __init__(self, holder: Any) -> None:
        self._holder = holder

    def unwrap(self) -> Any:
        return self._holder

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._holder!r})"

    def _shape(self) -> Any:
        """Declared type used to encode and decode the holder's value."""
        if isinstance(self._holder, Ref):
            return Optional[self._holder.kind]
        return type(self._holder)

    def _value(self) -> Any:
        if isinstance(self._holder, Ref):
            return self._holder.value
        return self._holder

    def _store(self, value: Any) -> None:
        if isinstance(self._holder, Ref):
            self._holder.value = value
            return
        assign(self._holder, value)


class StructRecord(_HolderFetchable):
    """
    Stores a mutable dataclass instance field by field (``HSET``/``HGETALL``).

    The field annotation picks the wire form in both directions: fields
    annotated ``str``, ``bytes``, ``int`` or ``float`` (optionally
    ``Optional``) are written verbatim, ``bool`` fields as ``0``/``1``, and
    every other annotation, unions and ``Any`` included, as JSON text.
    ``None`` fields are skipped. Reading only sets the fields present in the
    reply.
    """

    write_cmd = RECORD_WRITE_CMD
    read_cmd = RECORD_READ_CMD

    __slots__ = ()

    def __init__(self, holder: Any) -> None:
        if (
            not dataclasses.is_dataclass(holder)
            or isinstance(holder, (type, Ref))
        ):
            raise TypeError("StructRecord holder must be a dataclass instance")
        super().__init__(holder)

    def serialize(self) -> list[WireValue]:
        hints = _field_hints(type(self._holder))
        args: list[WireValue] = []
        for field in dataclasses.fields(self._holder):
            value = getattr(self._holder, field.name)
            if value is None:
                continue
            try:
                args.extend((field.name, _encode_field(hints[field.name], value)))
            except Exception as exc:
                raise SerializationError(
                    f"encoding field {field.name!r}", cause=exc
                ) from exc
        return args

    def deserialize(self, reply: Any) -> None:
        hints = _field_hints(type(self._holder))
        for raw_name, raw in _record_pairs(reply):
            name = _text(raw_name)
            annotation = hints.get(name)
            if annotation is None:
                continue
            try:
                value = _decode_field(annotation, raw)
            except Exception as exc:
                raise SerializationError(
                    f"decoding field {name!r}", cause=exc
                ) from exc
            setattr(self._holder, name, value)


def _field_hints(cls: type) -> dict[str, Any]:
    hints = typing.get_type_hints(cls)
    return {field.name: hints.get(field.name, Any) for field in dataclasses.fields(cls)}


def _record_pairs(reply: Any) -> list[tuple[Any, Any]]:
    if isinstance(reply, Mapping):
        return list(reply.items())
    if isinstance(reply, (list, tuple)):
        if len(reply) % 2:
            raise SerializationError("record reply has an odd number of items")
        return list(zip(reply[0::2], reply[1::2]))
    raise SerializationError(
        f"expected a record reply, got {type(reply).__name__}"
    )


def _encode_field(annotation: Any, value: Any) -> WireValue:
    base = _unwrap_optional(annotation)
    if base in _RAW_FIELD_TYPES:
        if isinstance(value, _RAW_ACCEPTS[base]) and (
            base is bool or not isinstance(value, bool)
        ):
            return int(value) if base is bool else value
        raise TypeError(
            f"expected {base.__name__}, got {type(value).__name__}"
        )
    return _adapter(annotation).dump_json(value).decode("utf-8")


def _decode_field(annotation: Any, raw: Any) -> Any:
    base = _unwrap_optional(annotation)
    if base is bytes:
        return _blob(raw)
    if base in _RAW_FIELD_TYPES:
        return _adapter(annotation).validate_python(_text(raw))
    return _adapter(annotation).validate_json(_text(raw))


class JSONText(_HolderFetchable):
    """Stores the holder's value as one JSON document (``SET``/``GET``)."""

    write_cmd = BLOB_WRITE_CMD
    read_cmd = BLOB_READ_CMD

    __slots__ = ()

    def serialize(self) -> list[WireValue]:
        try:
            payload = _adapter(self._shape()).dump_json(self._value())
        except Exception as exc:
            raise SerializationError("encoding json value", cause=exc) from exc
        return [payload.decode("utf-8")]

    def deserialize(self, reply: Any) -> None:
        try:
            value = _adapter(self._shape()).validate_json(_blob(reply))
        except SerializationError:
            raise
        except Exception as exc:
            raise SerializationError("decoding json value", cause=exc) from exc
        self._store(value)


class BinaryPack(_HolderFetchable):
    """Stores the holder's value as one msgpack blob (``SET``/``GET``)."""

    write_cmd = BLOB_WRITE_CMD
    read_cmd = BLOB_READ_CMD

    __slots__ = ()

    def serialize(self) -> list[WireValue]:
        try:
            data = _adapter(self._shape()).dump_python(self._value())
            payload = msgpack.packb(data, use_bin_type=True, default=_msgpack_default)
        except Exception as exc:
            raise SerializationError("encoding msgpack value", cause=exc) from exc
        return [payload]

    def deserialize(self, reply: Any) -> None:
        try:
            data = msgpack.unpackb(_blob(reply), raw=False)
            value = _adapter(self._shape()).validate_python(data)
        except SerializationError:
            raise
        except Exception as exc:
            raise SerializationError("decoding msgpack value", cause=exc) from exc
        self._store(value)


def _msgpack_default(obj: Any) -> Any:
    """Fallback for types msgpack cannot pack natively (sets, datetimes, ...)."""
    return _adapter(Any).dump_python(obj, mode="json")


ValueCodec = Union[StructRecord, JSONText, BinaryPack]
