"""Typed key-value fields and the logic that adds them to an encoder."""

from __future__ import annotations

import enum
import struct
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

__all__ = [
    "FieldType",
    "Field",
    "add_fields",
    "encode_error",
    "encode_stringer",
]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class FieldType(enum.IntEnum):
    """Which member of a Field carries its value, and how it is encoded."""

    UNKNOWN = 0
    ARRAY_MARSHALER = 1
    OBJECT_MARSHALER = 2
    BINARY = 3
    BOOL = 4
    BYTE_STRING = 5
    COMPLEX128 = 6
    COMPLEX64 = 7
    DURATION = 8
    FLOAT64 = 9
    FLOAT32 = 10
    INT64 = 11
    INT32 = 12
    INT16 = 13
    INT8 = 14
    STRING = 15
    TIME = 16
    TIME_FULL = 17
    UINT64 = 18
    UINT32 = 19
    UINT16 = 20
    UINT8 = 21
    UINTPTR = 22
    REFLECT = 23
    NAMESPACE = 24
    STRINGER = 25
    ERROR = 26
    SKIP = 27
    INLINE_MARSHALER = 28


_FALLIBLE = frozenset(
    {
        FieldType.ARRAY_MARSHALER,
        FieldType.OBJECT_MARSHALER,
        FieldType.INLINE_MARSHALER,
        FieldType.REFLECT,
        FieldType.STRINGER,
        FieldType.ERROR,
    }
)

_DEEP_COMPARED = frozenset(
    {
        FieldType.ARRAY_MARSHALER,
        FieldType.OBJECT_MARSHALER,
        FieldType.ERROR,
        FieldType.REFLECT,
    }
)


def _signed(value: int, bits: int) -> int:
    value &= (1 << bits) - 1
    return value - (1 << bits) if value >> (bits - 1) else value


def _unsigned(value: int, bits: int) -> int:
    return value & ((1 << bits) - 1)


def _float64_from_bits(bits: int) -> float:
    return struct.unpack("<d", struct.pack("<Q", _unsigned(bits, 64)))[0]


def _float32_from_bits(bits: int) -> float:
    return struct.unpack("<f", struct.pack("<I", _unsigned(bits, 32)))[0]


def _duration(nanos: int) -> timedelta | int:
    nanos = _signed(nanos, 64)
    if nanos % 1000 == 0:
        return timedelta(microseconds=nanos // 1000)
    return nanos


def _time_from_nanos(nanos: int, tz: Any) -> datetime:
    moment = _EPOCH + timedelta(microseconds=_signed(nanos, 64) // 1000)
    return moment.astimezone(tz) if tz is not None else moment.astimezone()


def _safe_str(value: Any) -> str:
    try:
        return str(value)
    except Exception:
        return f"<unprintable {type(value).__name__}>"


def _deep_equal(a: Any, b: Any) -> bool:
    if isinstance(a, BaseException) or isinstance(b, BaseException):
        return (
            type(a) is type(b)
            and _deep_equal(a.args, b.args)
            and _deep_equal(vars(a), vars(b))
        )
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        return (
            type(a) is type(b)
            and len(a) == len(b)
            and all(_deep_equal(x, y) for x, y in zip(a, b))
        )
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(_deep_equal(a[k], b[k]) for k in a)
    return a == b


@dataclass(frozen=True)
class Field:
    """A lazily encoded key-value pair for a logger's context.

    Integers, floats (as their IEEE bit patterns), booleans, durations (in
    nanoseconds) and times (in nanoseconds since the epoch) live in
    ``integer``; strings in ``string``; everything else in ``interface``.
    For ``TIME`` fields, ``interface`` holds an optional tzinfo.
    """

    key: str = ""
    type: FieldType = FieldType.UNKNOWN
    integer: int = 0
    string: str = ""
    interface: Any = None

    def add_to(self, enc: Any) -> None:
        """Add this field to an object encoder.

        Failures of marshalers, reflection, stringers or errors are recorded
        under ``<key>Error``. An unknown field type raises ValueError.
        """
        if self.type in _FALLIBLE:
            try:
                self._add_fallible(enc)
            except Exception as exc:
                enc.add_string(f"{self.key}Error", _safe_str(exc))
        else:
            self._add_plain(enc)

    def _add_fallible(self, enc: Any) -> None:
        match self.type:
            case FieldType.ARRAY_MARSHALER:
                enc.add_array(self.key, self.interface)
            case FieldType.OBJECT_MARSHALER:
                enc.add_object(self.key, self.interface)
            case FieldType.INLINE_MARSHALER:
                self.interface.marshal_log_object(enc)
            case FieldType.REFLECT:
                enc.add_reflected(self.key, self.interface)
            case FieldType.STRINGER:
                encode_stringer(self.key, self.interface, enc)
            case FieldType.ERROR:
                encode_error(self.key, self.interface, enc)

    def _add_plain(self, enc: Any) -> None:
        key, value = self.key, self.integer
        match self.type:
            case FieldType.BINARY:
                enc.add_binary(key, self.interface)
            case FieldType.BOOL:
                enc.add_bool(key, value == 1)
            case FieldType.BYTE_STRING:
                enc.add_byte_string(key, self.interface)
            case FieldType.COMPLEX128:
                enc.add_complex128(key, self.interface)
            case FieldType.COMPLEX64:
                enc.add_complex64(key, self.interface)
            case FieldType.DURATION:
                enc.add_duration(key, _duration(value))
            case FieldType.FLOAT64:
                enc.add_float64(key, _float64_from_bits(value))
            case FieldType.FLOAT32:
                enc.add_float32(key, _float32_from_bits(value))
            case FieldType.INT64:
                enc.add_int(key, _signed(value, 64))
            case FieldType.INT32:
                enc.add_int(key, _signed(value, 32))
            case FieldType.INT16:
                enc.add_int(key, _signed(value, 16))
            case FieldType.INT8:
                enc.add_int(key, _signed(value, 8))
            case FieldType.STRING:
                enc.add_string(key, self.string)
            case FieldType.TIME:
                enc.add_time(key, _time_from_nanos(value, self.interface))
            case FieldType.TIME_FULL:
                enc.add_time(key, self.interface)
            case FieldType.UINT64 | FieldType.UINTPTR:
                enc.add_uint(key, _unsigned(value, 64))
            case FieldType.UINT32:
                enc.add_uint(key, _unsigned(value, 32))
            case FieldType.UINT16:
                enc.add_uint(key, _unsigned(value, 16))
            case FieldType.UINT8:
                enc.add_uint(key, _unsigned(value, 8))
            case FieldType.NAMESPACE:
                enc.open_namespace(key)
            case FieldType.SKIP:
                pass
            case _:
                raise ValueError(f"unknown field type: {self!r}")

    def equals(self, other: Field) -> bool:
        """Return whether two fields are equal, comparing rich values deeply."""
        if self.type != other.type or self.key != other.key:
            return False
        if self.type in (FieldType.BINARY, FieldType.BYTE_STRING):
            return bytes(self.interface) == bytes(other.interface)
        if self.type in _DEEP_COMPARED:
            return _deep_equal(self.interface, other.interface)
        return self == other


def add_fields(enc: Any, fields: Iterable[Field]) -> None:
    """Add every field, in order, to ``enc``."""
    for item in fields:
        item.add_to(enc)


def _group_members(err: Any) -> list[Any] | None:
    if isinstance(err, BaseExceptionGroup):
        return list(err.exceptions)
    errors = getattr(err, "errors", None)
    if callable(errors):
        return list(errors())
    return None


def _has_custom_format(err: Any) -> bool:
    return type(err).__format__ is not object.__format__


@dataclass(frozen=True)
class _ErrArray:
    errors: list[Any]

    def marshal_log_array(self, arr: Any) -> None:
        for err in self.errors:
            if err is None:
                continue
            try:
                arr.append_object(_ErrArrayElem(err))
            except Exception:
                pass


@dataclass(frozen=True)
class _ErrArrayElem:
    err: Any

    def marshal_log_object(self, enc: Any) -> None:
        encode_error("error", self.err, enc)


def encode_error(key: str, err: Any, enc: Any) -> None:
    """Add an error's message under ``key`` to ``enc``.

    Groups of errors (exception groups or objects with an ``errors()``
    method) add their members under ``<key>Causes``; errors with a custom
    ``__format__`` add ``format(err, "+v")`` under ``<key>Verbose`` when it
    differs from the message. If rendering the error fails, RuntimeError
    is raised with a ``PANIC=`` message.
    """
    if err is None:
        enc.add_string(key, "<nil>")
        return
    try:
        basic = str(err)
    except Exception as exc:
        raise RuntimeError(f"PANIC={_safe_str(exc)}") from exc
    enc.add_string(key, basic)

    members = _group_members(err)
    if members is not None:
        enc.add_array(f"{key}Causes", _ErrArray(members))
        return
    if _has_custom_format(err):
        try:
            verbose = format(err, "+v")
        except Exception as exc:
            raise RuntimeError(f"PANIC={_safe_str(exc)}") from exc
        if verbose != basic:
            enc.add_string(f"{key}Verbose", verbose)


def encode_stringer(key: str, stringer: Any, enc: Any) -> None:
    """Add ``str(stringer)`` under ``key``; None becomes ``<nil>``.

    If rendering fails, RuntimeError is raised with a ``PANIC=`` message.
    """
    if stringer is None:
        enc.add_string(key, "<nil>")
        return
    try:
        text = str(stringer)
    except Exception as exc:
        raise RuntimeError(f"PANIC={_safe_str(exc)}") from exc
    enc.add_string(key, text)