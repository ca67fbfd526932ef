"""Encoders that collect log context into plain dicts and lists."""

from __future__ import annotations

import struct
from typing import Any

from corelog.marshaler import ArrayMarshaler, ObjectMarshaler

__all__ = ["MapObjectEncoder", "SliceArrayEncoder"]


def _to_float32(value: float) -> float:
    return struct.unpack("<f", struct.pack("<f", float(value)))[0]


def _to_complex64(value: complex) -> complex:
    value = complex(value)
    return complex(_to_float32(value.real), _to_float32(value.imag))


def _decode(value: bytes | bytearray | str) -> str:
    if isinstance(value, str):
        return value
    return bytes(value).decode("utf-8", errors="replace")


class MapObjectEncoder:
    """An object encoder backed by a dict.

    Too slow for production logging, but convenient for inspecting what a
    marshaler or field produces. The whole context is in ``fields``.
    """

    def __init__(self) -> None:
        self.fields: dict[str, Any] = {}
        self._cur: dict[str, Any] = self.fields

    def add_array(self, key: str, marshaler: ArrayMarshaler) -> None:
        """Encode ``marshaler`` as a list under ``key``; errors propagate."""
        arr = SliceArrayEncoder()
        try:
            marshaler.marshal_log_array(arr)
        finally:
            self._cur[key] = arr.elems

    def add_object(self, key: str, marshaler: ObjectMarshaler) -> None:
        """Encode ``marshaler`` as a nested dict under ``key``; errors propagate."""
        nested = MapObjectEncoder()
        self._cur[key] = nested.fields
        marshaler.marshal_log_object(nested)

    def add_binary(self, key: str, value: bytes) -> None:
        """Store opaque bytes as they are."""
        self._cur[key] = bytes(value)

    def add_byte_string(self, key: str, value: bytes) -> None:
        """Store UTF-8 bytes as a string."""
        self._cur[key] = _decode(value)

    def add_bool(self, key: str, value: bool) -> None:
        """Store a boolean."""
        self._cur[key] = bool(value)

    def add_complex128(self, key: str, value: complex) -> None:
        """Store a complex number."""
        self._cur[key] = complex(value)

    def add_complex64(self, key: str, value: complex) -> None:
        """Store a complex number rounded to single precision."""
        self._cur[key] = _to_complex64(value)

    def add_duration(self, key: str, value: Any) -> None:
        """Store a duration as given."""
        self._cur[key] = value

    def add_float64(self, key: str, value: float) -> None:
        """Store a float."""
        self._cur[key] = float(value)

    def add_float32(self, key: str, value: float) -> None:
        """Store a float rounded to single precision."""
        self._cur[key] = _to_float32(value)

    def add_int(self, key: str, value: int) -> None:
        """Store a signed integer."""
        self._cur[key] = int(value)

    def add_uint(self, key: str, value: int) -> None:
        """Store an unsigned integer."""
        self._cur[key] = int(value)

    def add_string(self, key: str, value: str) -> None:
        """Store a string."""
        self._cur[key] = value

    def add_time(self, key: str, value: Any) -> None:
        """Store a point in time as given."""
        self._cur[key] = value

    def add_reflected(self, key: str, value: Any) -> None:
        """Store an arbitrary value as given."""
        self._cur[key] = value

    def open_namespace(self, key: str) -> None:
        """Start a nested dict that receives every later field."""
        namespace: dict[str, Any] = {}
        self._cur[key] = namespace
        self._cur = namespace


class SliceArrayEncoder:
    """An array encoder backed by a list, held in ``elems``."""

    def __init__(self) -> None:
        self.elems: list[Any] = []

    def append_array(self, marshaler: ArrayMarshaler) -> None:
        """Append a nested list; errors propagate after it is appended."""
        inner = SliceArrayEncoder()
        try:
            marshaler.marshal_log_array(inner)
        finally:
            self.elems.append(inner.elems)

    def append_object(self, marshaler: ObjectMarshaler) -> None:
        """Append a nested dict; errors propagate after it is appended."""
        inner = MapObjectEncoder()
        try:
            marshaler.marshal_log_object(inner)
        finally:
            self.elems.append(inner.fields)

    def append_reflected(self, value: Any) -> None:
        """Append an arbitrary value as given."""
        self.elems.append(value)

    def append_bool(self, value: bool) -> None:
        """Append a boolean."""
        self.elems.append(bool(value))

    def append_byte_string(self, value: bytes) -> None:
        """Append UTF-8 bytes as a string."""
        self.elems.append(_decode(value))

    def append_complex128(self, value: complex) -> None:
        """Append a complex number."""
        self.elems.append(complex(value))

    def append_complex64(self, value: complex) -> None:
        """Append a complex number rounded to single precision."""
        self.elems.append(_to_complex64(value))

    def append_duration(self, value: Any) -> None:
        """Append a duration as given."""
        self.elems.append(value)

    def append_float64(self, value: float) -> None:
        """Append a float."""
        self.elems.append(float(value))

    def append_float32(self, value: float) -> None:
        """Append a float rounded to single precision."""
        self.elems.append(_to_float32(value))

    def append_int(self, value: int) -> None:
        """Append a signed integer."""
        self.elems.append(int(value))

    def append_uint(self, value: int) -> None:
        """Append an unsigned integer."""
        self.elems.append(int(value))

    def append_string(self, value: str) -> None:
        """Append a string."""
        self.elems.append(value)

    def append_time(self, value: Any) -> None:
        """Append a point in time as given."""
        self.elems.append(value)