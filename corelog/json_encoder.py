"""A JSON entry encoder that escapes keys and values itself."""

from __future__ import annotations

import base64
import dataclasses
import io
import json
import math
import re
import struct
from collections.abc import Iterable, Mapping
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, TextIO

from corelog.encoder import (
    DEFAULT_LINE_ENDING,
    EncoderConfig,
    format_time,
    full_name_encoder,
    unix_nanos,
)
from corelog.entry import Entry
from corelog.field import Field, add_fields
from corelog.level import Level
from corelog.marshaler import ArrayMarshaler, ObjectMarshaler

__all__ = ["DefaultReflectedEncoder", "JSONEncoder", "new_json_encoder"]

_ESCAPE_RE = re.compile(r'[\x00-\x1f"\\\ud800-\udfff]')
_SIMPLE_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}
_NO_SEPARATOR_AFTER = frozenset("{[:, ")


def _escape_char(match: re.Match[str]) -> str:
    char = match.group()
    simple = _SIMPLE_ESCAPES.get(char)
    if simple is not None:
        return simple
    code = ord(char)
    if code < 0x20:
        return f"\\u00{code:02x}"
    return "\\ufffd"


def _escape(text: str) -> str:
    """JSON-escape ``text``; stray surrogates become U+FFFD."""
    return _ESCAPE_RE.sub(_escape_char, text)


def _escape_bytes(value: bytes | bytearray | str) -> str:
    if isinstance(value, str):
        return _escape(value)
    # Each invalid byte becomes one lone surrogate, which then escapes to U+FFFD.
    return _escape(bytes(value).decode("utf-8", errors="surrogateescape"))


def _to_float32(value: float) -> float:
    try:
        return struct.unpack("<f", struct.pack("<f", float(value)))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


def _shortest_float32(value: float) -> str:
    for precision in range(1, 18):
        text = f"{value:.{precision}g}"
        if _to_float32(float(text)) == value:
            return text
    return repr(value)


def _format_float(value: float, bits: int) -> str:
    """Shortest decimal form without an exponent; NaN and infinities by name."""
    value = float(value)
    if bits == 32:
        value = _to_float32(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    text = _shortest_float32(value) if bits == 32 else repr(value)
    plain = format(Decimal(text), "f")
    if "." in plain:
        plain = plain.rstrip("0").rstrip(".")
    return plain


def _nanos(duration: timedelta | int) -> int:
    if isinstance(duration, timedelta):
        return (
            duration.days * 86400 + duration.seconds
        ) * 1_000_000_000 + duration.microseconds * 1000
    return int(duration)


def _json_default(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: getattr(obj, f.name) for f in dataclasses.fields(obj)}
    if isinstance(obj, Mapping):
        return dict(obj)
    if isinstance(obj, (set, frozenset)):
        return list(obj)
    if isinstance(obj, (bytes, bytearray)):
        return base64.b64encode(bytes(obj)).decode("ascii")
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, timedelta):
        return _nanos(obj)
    raise TypeError(f"object of type {type(obj).__name__} is not JSON serializable")


class DefaultReflectedEncoder:
    """Writes values as compact JSON, one per line, to a text stream."""

    def __init__(self, writer: TextIO) -> None:
        self._writer = writer

    def encode(self, obj: Any) -> None:
        """Serialise ``obj``; raise TypeError or ValueError if it cannot be."""
        text = json.dumps(
            obj,
            ensure_ascii=False,
            allow_nan=False,
            separators=(",", ":"),
            default=_json_default,
        )
        self._writer.write(text + "\n")


def _normalised(config: EncoderConfig) -> EncoderConfig:
    cfg = dataclasses.replace(config)
    if cfg.skip_line_ending:
        cfg.line_ending = ""
    elif not cfg.line_ending:
        cfg.line_ending = DEFAULT_LINE_ENDING
    if cfg.new_reflected_encoder is None:
        cfg.new_reflected_encoder = DefaultReflectedEncoder
    return cfg


class JSONEncoder:
    """Encodes entries and accumulated context as JSON objects.

    Keys are not deduplicated: adding the same key twice writes it twice.
    """

    def __init__(self, config: EncoderConfig | None = None, *, spaced: bool = False) -> None:
        self.config = _normalised(config if config is not None else EncoderConfig())
        self.spaced = spaced
        self._buf: list[str] = []
        self._open_namespaces = 0

    @classmethod
    def _derived(cls, config: EncoderConfig, spaced: bool, namespaces: int) -> JSONEncoder:
        enc = cls.__new__(cls)
        enc.config = config
        enc.spaced = spaced
        enc._buf = []
        enc._open_namespaces = namespaces
        return enc

    # --- buffer helpers ---------------------------------------------------

    def _put(self, text: str) -> None:
        if text:
            self._buf.append(text)

    def _mark(self) -> int:
        return len(self._buf)

    def _add_element_separator(self) -> None:
        if not self._buf or self._buf[-1][-1] in _NO_SEPARATOR_AFTER:
            return
        self._put(", " if self.spaced else ",")

    def _add_key(self, key: str) -> None:
        self._add_element_separator()
        self._put(f'"{_escape(key)}":')
        if self.spaced:
            self._put(" ")

    def _close_open_namespaces(self) -> None:
        self._put("}" * self._open_namespaces)
        self._open_namespaces = 0

    def _encode_reflected(self, value: Any) -> str:
        if value is None:
            return "null"
        stream = io.StringIO()
        self.config.new_reflected_encoder(stream).encode(value)
        text = stream.getvalue()
        return text[:-1] if text.endswith("\n") else text

    # --- object encoder ---------------------------------------------------

    def add_array(self, key: str, marshaler: ArrayMarshaler) -> None:
        """Add a JSON array built by ``marshaler``; its errors propagate."""
        self._add_key(key)
        self.append_array(marshaler)

    def add_object(self, key: str, marshaler: ObjectMarshaler) -> None:
        """Add a JSON object built by ``marshaler``; its errors propagate."""
        self._add_key(key)
        self.append_object(marshaler)

    def add_binary(self, key: str, value: bytes) -> None:
        """Add bytes as a base64 string."""
        self.add_string(key, base64.b64encode(bytes(value)).decode("ascii"))

    def add_byte_string(self, key: str, value: bytes) -> None:
        """Add UTF-8 bytes as a string."""
        self._add_key(key)
        self.append_byte_string(value)

    def add_bool(self, key: str, value: bool) -> None:
        """Add a boolean."""
        self._add_key(key)
        self.append_bool(value)

    def add_complex128(self, key: str, value: complex) -> None:
        """Add a complex number as a quoted string."""
        self._add_key(key)
        self.append_complex128(value)

    def add_complex64(self, key: str, value: complex) -> None:
        """Add a single-precision complex number as a quoted string."""
        self._add_key(key)
        self.append_complex64(value)

    def add_duration(self, key: str, value: timedelta | int) -> None:
        """Add a duration using the configured duration encoder."""
        self._add_key(key)
        self.append_duration(value)

    def add_float64(self, key: str, value: float) -> None:
        """Add a float."""
        self._add_key(key)
        self.append_float64(value)

    def add_float32(self, key: str, value: float) -> None:
        """Add a float at single precision."""
        self._add_key(key)
        self.append_float32(value)

    def add_int(self, key: str, value: int) -> None:
        """Add a signed integer."""
        self._add_key(key)
        self.append_int(value)

    def add_uint(self, key: str, value: int) -> None:
        """Add an unsigned integer."""
        self._add_key(key)
        self.append_uint(value)

    def add_string(self, key: str, value: str) -> None:
        """Add an escaped string."""
        self._add_key(key)
        self.append_string(value)

    def add_time(self, key: str, value: datetime) -> None:
        """Add a time using the configured time encoder."""
        self._add_key(key)
        self.append_time(value)

    def add_reflected(self, key: str, value: Any) -> None:
        """Add an arbitrary value through the reflected encoder.

        Nothing is written if encoding fails; the error propagates.
        """
        text = self._encode_reflected(value)
        self._add_key(key)
        self._put(text)

    def open_namespace(self, key: str) -> None:
        """Open a nested object that receives every later field."""
        self._add_key(key)
        self._put("{")
        self._open_namespaces += 1

    # --- array encoder ----------------------------------------------------

    def append_array(self, marshaler: ArrayMarshaler) -> None:
        """Append a nested array; its errors propagate after it is closed."""
        self._add_element_separator()
        self._put("[")
        try:
            marshaler.marshal_log_array(self)
        finally:
            self._put("]")

    def append_object(self, marshaler: ObjectMarshaler) -> None:
        """Append a nested object, closing namespaces it opens."""
        outer = self._open_namespaces
        self._open_namespaces = 0
        self._add_element_separator()
        self._put("{")
        try:
            marshaler.marshal_log_object(self)
        finally:
            self._put("}")
            self._close_open_namespaces()
            self._open_namespaces = outer

    def append_reflected(self, value: Any) -> None:
        """Append an arbitrary value through the reflected encoder."""
        text = self._encode_reflected(value)
        self._add_element_separator()
        self._put(text)

    def append_bool(self, value: bool) -> None:
        """Append a boolean."""
        self._add_element_separator()
        self._put("true" if value else "false")

    def append_byte_string(self, value: bytes) -> None:
        """Append UTF-8 bytes as a string; invalid bytes become U+FFFD."""
        self._add_element_separator()
        self._put(f'"{_escape_bytes(value)}"')

    def _append_complex(self, value: complex, bits: int) -> None:
        self._add_element_separator()
        value = complex(value)
        real = _format_float(value.real, bits)
        imag_value = _to_float32(value.imag) if bits == 32 else value.imag
        imag = _format_float(imag_value, bits)
        sign = "+" if imag_value >= 0 else ""
        self._put(f'"{real}{sign}{imag}i"')

    def append_complex128(self, value: complex) -> None:
        """Append a complex number as a quoted string."""
        self._append_complex(value, 64)

    def append_complex64(self, value: complex) -> None:
        """Append a single-precision complex number as a quoted string."""
        self._append_complex(value, 32)

    def append_duration(self, value: timedelta | int) -> None:
        """Append a duration; a no-op encoder falls back to nanoseconds."""
        mark = self._mark()
        if self.config.encode_duration is not None:
            self.config.encode_duration(value, self)
        if mark == self._mark():
            self.append_int(_nanos(value))

    def _append_float(self, value: float, bits: int) -> None:
        self._add_element_separator()
        text = _format_float(value, bits)
        if text in ("NaN", "+Inf", "-Inf"):
            text = f'"{text}"'
        self._put(text)

    def append_float64(self, value: float) -> None:
        """Append a float; NaN and infinities are written as strings."""
        self._append_float(value, 64)

    def append_float32(self, value: float) -> None:
        """Append a float at single precision."""
        self._append_float(value, 32)

    def append_int(self, value: int) -> None:
        """Append a signed integer."""
        self._add_element_separator()
        self._put(str(int(value)))

    def append_uint(self, value: int) -> None:
        """Append an unsigned integer."""
        self._add_element_separator()
        self._put(str(int(value)))

    def append_string(self, value: str) -> None:
        """Append an escaped string."""
        self._add_element_separator()
        self._put(f'"{_escape(value)}"')

    def append_time(self, value: datetime) -> None:
        """Append a time; a no-op encoder falls back to epoch nanoseconds."""
        mark = self._mark()
        if self.config.encode_time is not None:
            self.config.encode_time(value, self)
        if mark == self._mark():
            self.append_int(unix_nanos(value))

    def append_time_layout(self, value: datetime, layout: str) -> None:
        """Append a time formatted with a reference layout, quoted."""
        self._add_element_separator()
        self._put(f'"{format_time(value, layout)}"')

    # --- entry encoding ---------------------------------------------------

    def clone(self) -> JSONEncoder:
        """Copy the encoder so fields added to the copy leave this one alone."""
        copy = self._derived(self.config, self.spaced, self._open_namespaces)
        copy._buf = list(self._buf)
        return copy

    def encode_entry(self, entry: Entry, fields: Iterable[Field] = ()) -> str:
        """Encode ``entry``, the accumulated context and ``fields`` as one line."""
        cfg = self.config
        final = self._derived(cfg, self.spaced, self._open_namespaces)
        final._put("{")

        if cfg.level_key and cfg.encode_level is not None:
            final._add_key(cfg.level_key)
            mark = final._mark()
            cfg.encode_level(entry.level, final)
            if mark == final._mark():
                final.append_string(str(Level(entry.level)))
        if cfg.time_key:
            final.add_time(cfg.time_key, entry.time)
        if entry.logger_name and cfg.name_key:
            final._add_key(cfg.name_key)
            mark = final._mark()
            encode_name = cfg.encode_name or full_name_encoder
            encode_name(entry.logger_name, final)
            if mark == final._mark():
                final.append_string(entry.logger_name)
        if entry.caller.defined:
            if cfg.caller_key:
                final._add_key(cfg.caller_key)
                mark = final._mark()
                if cfg.encode_caller is not None:
                    cfg.encode_caller(entry.caller, final)
                if mark == final._mark():
                    final.append_string(str(entry.caller))
            if cfg.function_key:
                final._add_key(cfg.function_key)
                final.append_string(entry.caller.function)
        if cfg.message_key:
            final._add_key(cfg.message_key)
            final.append_string(entry.message)
        if self._buf:
            final._add_element_separator()
            final._buf.extend(self._buf)
        add_fields(final, fields)
        final._close_open_namespaces()
        if entry.stack and cfg.stacktrace_key:
            final.add_string(cfg.stacktrace_key, entry.stack)
        final._put("}")
        final._put(cfg.line_ending)
        return "".join(final._buf)


def new_json_encoder(config: EncoderConfig) -> JSONEncoder:
    """Create a compact JSON encoder from ``config``."""
    return JSONEncoder(config)