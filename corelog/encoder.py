"""Encoder configuration and the primitive encoders for levels, times and more."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from corelog.entry import EntryCaller
from corelog.level import Level, capital_color_string, lowercase_color_string

__all__ = [
    "DEFAULT_LINE_ENDING",
    "OMIT_KEY",
    "EncoderConfig",
    "lowercase_level_encoder",
    "lowercase_color_level_encoder",
    "capital_level_encoder",
    "capital_color_level_encoder",
    "level_encoder_from_text",
    "epoch_time_encoder",
    "epoch_millis_time_encoder",
    "epoch_nanos_time_encoder",
    "iso8601_time_encoder",
    "rfc3339_time_encoder",
    "rfc3339nano_time_encoder",
    "time_encoder_of_layout",
    "time_encoder_from_text",
    "time_encoder_from_value",
    "seconds_duration_encoder",
    "nanos_duration_encoder",
    "millis_duration_encoder",
    "string_duration_encoder",
    "duration_encoder_from_text",
    "full_caller_encoder",
    "short_caller_encoder",
    "caller_encoder_from_text",
    "full_name_encoder",
    "name_encoder_from_text",
    "format_time",
    "format_duration",
    "unix_nanos",
    "encoder_config_from_dict",
]

DEFAULT_LINE_ENDING = "\n"
"""Line ending used when the configuration leaves it empty."""

OMIT_KEY = ""
"""The key that removes a part of the entry from the output."""

ISO8601_LAYOUT = "2006-01-02T15:04:05.000Z0700"
RFC3339_LAYOUT = "2006-01-02T15:04:05Z07:00"
RFC3339NANO_LAYOUT = "2006-01-02T15:04:05.999999999Z07:00"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_NANOS_PER_SECOND = 1_000_000_000
_NANOS_PER_MILLI = 1_000_000

LevelEncoder = Callable[[Level, Any], None]
TimeEncoder = Callable[[datetime, Any], None]
DurationEncoder = Callable[[Any], None]
CallerEncoder = Callable[[EntryCaller, Any], None]
NameEncoder = Callable[[str, Any], None]


def _text(value: str | bytes | bytearray) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return value


def _timedelta_nanos(delta: timedelta) -> int:
    return (delta.days * 86400 + delta.seconds) * _NANOS_PER_SECOND + delta.microseconds * 1000


def _duration_nanos(duration: timedelta | int) -> int:
    if isinstance(duration, timedelta):
        return _timedelta_nanos(duration)
    return int(duration)


def _aware(moment: datetime) -> datetime:
    if moment.utcoffset() is None:
        return moment.astimezone()
    return moment


def unix_nanos(moment: datetime) -> int:
    """Return nanoseconds since the Unix epoch; naive times are local."""
    return _timedelta_nanos(_aware(moment) - _EPOCH)


# --- level encoders -------------------------------------------------------


def lowercase_level_encoder(level: Level, enc: Any) -> None:
    """Append the level as a lower-case string, e.g. ``info``."""
    enc.append_string(str(Level(level)))


def lowercase_color_level_encoder(level: Level, enc: Any) -> None:
    """Append the lower-case level name wrapped in its terminal color."""
    enc.append_string(lowercase_color_string(level))


def capital_level_encoder(level: Level, enc: Any) -> None:
    """Append the level as an all-caps string, e.g. ``INFO``."""
    enc.append_string(Level(level).capital_string())


def capital_color_level_encoder(level: Level, enc: Any) -> None:
    """Append the all-caps level name wrapped in its terminal color."""
    enc.append_string(capital_color_string(level))


def level_encoder_from_text(text: str | bytes) -> LevelEncoder:
    """Choose a level encoder by name; unknown names give lower case."""
    return {
        "capital": capital_level_encoder,
        "capitalColor": capital_color_level_encoder,
        "color": lowercase_color_level_encoder,
    }.get(_text(text), lowercase_level_encoder)


# --- time encoders --------------------------------------------------------


def epoch_time_encoder(moment: datetime, enc: Any) -> None:
    """Append floating-point seconds since the Unix epoch."""
    enc.append_float64(unix_nanos(moment) / _NANOS_PER_SECOND)


def epoch_millis_time_encoder(moment: datetime, enc: Any) -> None:
    """Append floating-point milliseconds since the Unix epoch."""
    enc.append_float64(unix_nanos(moment) / _NANOS_PER_MILLI)


def epoch_nanos_time_encoder(moment: datetime, enc: Any) -> None:
    """Append integer nanoseconds since the Unix epoch."""
    enc.append_int(unix_nanos(moment))


def _encode_time_layout(moment: datetime, layout: str, enc: Any) -> None:
    append_layout = getattr(enc, "append_time_layout", None)
    if callable(append_layout):
        append_layout(moment, layout)
    else:
        enc.append_string(format_time(moment, layout))


def iso8601_time_encoder(moment: datetime, enc: Any) -> None:
    """Append an ISO8601 string with millisecond precision."""
    _encode_time_layout(moment, ISO8601_LAYOUT, enc)


def rfc3339_time_encoder(moment: datetime, enc: Any) -> None:
    """Append an RFC3339 string."""
    _encode_time_layout(moment, RFC3339_LAYOUT, enc)


def rfc3339nano_time_encoder(moment: datetime, enc: Any) -> None:
    """Append an RFC3339 string with sub-second precision."""
    _encode_time_layout(moment, RFC3339NANO_LAYOUT, enc)


def time_encoder_of_layout(layout: str) -> TimeEncoder:
    """Return a time encoder that formats with the given reference layout."""

    def encode(moment: datetime, enc: Any) -> None:
        _encode_time_layout(moment, layout, enc)

    return encode


def time_encoder_from_text(text: str | bytes) -> TimeEncoder:
    """Choose a time encoder by name; unknown names give epoch seconds."""
    return {
        "rfc3339nano": rfc3339nano_time_encoder,
        "RFC3339Nano": rfc3339nano_time_encoder,
        "rfc3339": rfc3339_time_encoder,
        "RFC3339": rfc3339_time_encoder,
        "iso8601": iso8601_time_encoder,
        "ISO8601": iso8601_time_encoder,
        "millis": epoch_millis_time_encoder,
        "nanos": epoch_nanos_time_encoder,
    }.get(_text(text), epoch_time_encoder)


def time_encoder_from_value(value: Any) -> TimeEncoder:
    """Build a time encoder from decoded configuration.

    A mapping uses its ``layout`` entry; a string is a name as in
    time_encoder_from_text. Anything else raises TypeError.
    """
    if isinstance(value, Mapping):
        layout = value.get("layout", "")
        if not isinstance(layout, str):
            raise TypeError(f"time encoder layout must be a string, not {type(layout).__name__}")
        return time_encoder_of_layout(layout)
    if isinstance(value, (str, bytes, bytearray)):
        return time_encoder_from_text(value)
    raise TypeError(f"cannot build a time encoder from {type(value).__name__}")


# --- duration encoders ----------------------------------------------------


def seconds_duration_encoder(duration: timedelta | int, enc: Any) -> None:
    """Append floating-point seconds; ints are taken as nanoseconds."""
    enc.append_float64(_duration_nanos(duration) / _NANOS_PER_SECOND)


def nanos_duration_encoder(duration: timedelta | int, enc: Any) -> None:
    """Append integer nanoseconds."""
    enc.append_int(_duration_nanos(duration))


def millis_duration_encoder(duration: timedelta | int, enc: Any) -> None:
    """Append integer milliseconds, truncated toward zero."""
    nanos = _duration_nanos(duration)
    millis = abs(nanos) // _NANOS_PER_MILLI
    enc.append_int(-millis if nanos < 0 else millis)


def string_duration_encoder(duration: timedelta | int, enc: Any) -> None:
    """Append the duration in its human form, e.g. ``1m30s``."""
    enc.append_string(format_duration(duration))


def duration_encoder_from_text(text: str | bytes) -> DurationEncoder:
    """Choose a duration encoder by name; unknown names give seconds."""
    return {
        "string": string_duration_encoder,
        "nanos": nanos_duration_encoder,
        "ms": millis_duration_encoder,
    }.get(_text(text), seconds_duration_encoder)


# --- caller and name encoders ---------------------------------------------


def full_caller_encoder(caller: EntryCaller, enc: Any) -> None:
    """Append the caller as ``/full/path/to/file:line``."""
    enc.append_string(caller.full_path())


def short_caller_encoder(caller: EntryCaller, enc: Any) -> None:
    """Append the caller as ``package/file:line``."""
    enc.append_string(caller.trimmed_path())


def caller_encoder_from_text(text: str | bytes) -> CallerEncoder:
    """``full`` gives the full caller encoder; anything else the short one."""
    return full_caller_encoder if _text(text) == "full" else short_caller_encoder


def full_name_encoder(name: str, enc: Any) -> None:
    """Append the logger name as it is."""
    enc.append_string(name)


def name_encoder_from_text(text: str | bytes) -> NameEncoder:
    """Every name currently gives the full name encoder."""
    _text(text)
    return full_name_encoder


# --- configuration --------------------------------------------------------


@dataclass
class EncoderConfig:
    """Keys and primitive encoders used by the entry encoders.

    An empty key omits that part of the entry. ``encode_name`` may be left
    unset, in which case the full name is used.
    """

    message_key: str = ""
    level_key: str = ""
    time_key: str = ""
    name_key: str = ""
    caller_key: str = ""
    function_key: str = ""
    stacktrace_key: str = ""
    skip_line_ending: bool = False
    line_ending: str = ""
    encode_level: LevelEncoder | None = None
    encode_time: TimeEncoder | None = None
    encode_duration: DurationEncoder | None = None
    encode_caller: CallerEncoder | None = None
    encode_name: NameEncoder | None = None
    new_reflected_encoder: Callable[[Any], Any] | None = None
    console_separator: str = ""


_STRING_KEYS = {
    "messageKey": "message_key",
    "levelKey": "level_key",
    "timeKey": "time_key",
    "nameKey": "name_key",
    "callerKey": "caller_key",
    "functionKey": "function_key",
    "stacktraceKey": "stacktrace_key",
    "lineEnding": "line_ending",
    "consoleSeparator": "console_separator",
}

_TEXT_ENCODER_KEYS: dict[str, tuple[str, Callable[[str], Any]]] = {
    "levelEncoder": ("encode_level", level_encoder_from_text),
    "durationEncoder": ("encode_duration", duration_encoder_from_text),
    "callerEncoder": ("encode_caller", caller_encoder_from_text),
    "nameEncoder": ("encode_name", name_encoder_from_text),
}


def _require(key: str, value: Any, kind: type) -> Any:
    if not isinstance(value, kind):
        raise TypeError(f"{key} must be {kind.__name__}, not {type(value).__name__}")
    return value


def encoder_config_from_dict(data: Mapping[str, Any]) -> EncoderConfig:
    """Build an EncoderConfig from decoded JSON or YAML.

    Keys use their camel-case names (``messageKey``, ``timeEncoder`` ...).
    Unknown keys and null values are ignored; values of the wrong type
    raise TypeError.
    """
    if not isinstance(data, Mapping):
        raise TypeError(f"encoder configuration must be a mapping, not {type(data).__name__}")
    config = EncoderConfig()
    for key, value in data.items():
        if value is None:
            continue
        if key in _STRING_KEYS:
            setattr(config, _STRING_KEYS[key], _require(key, value, str))
        elif key == "skipLineEnding":
            config.skip_line_ending = _require(key, value, bool)
        elif key == "timeEncoder":
            config.encode_time = time_encoder_from_value(value)
        elif key in _TEXT_ENCODER_KEYS:
            attribute, build = _TEXT_ENCODER_KEYS[key]
            setattr(config, attribute, build(_require(key, value, str)))
    return config


# --- reference-layout time formatting -------------------------------------

_MONTHS = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
_WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
_ZONE_SUFFIXES = ("070000", "07:00:00", "0700", "07:00", "07")
_DIGITS = "0123456789"


def _starts_lower(layout: str, index: int) -> bool:
    return index < len(layout) and "a" <= layout[index] <= "z"


def _next_token(layout: str, i: int) -> str | None:
    rest = layout[i:]
    c = rest[0]
    if c == "J" and rest.startswith("Jan"):
        if rest.startswith("January"):
            return "January"
        if not _starts_lower(layout, i + 3):
            return "Jan"
    elif c == "M":
        if rest.startswith("Mon"):
            if rest.startswith("Monday"):
                return "Monday"
            if not _starts_lower(layout, i + 3):
                return "Mon"
        if rest.startswith("MST"):
            return "MST"
    elif c == "0":
        if len(rest) >= 2 and "1" <= rest[1] <= "6":
            return rest[:2]
        if rest.startswith("002"):
            return "002"
    elif c == "1":
        return "15" if rest.startswith("15") else "1"
    elif c == "2":
        return "2006" if rest.startswith("2006") else "2"
    elif c == "_":
        if rest.startswith("_2"):
            return None if rest.startswith("_2006") else "_2"
        if rest.startswith("__2"):
            return "__2"
    elif c in "345":
        return c
    elif c == "P" and rest.startswith("PM"):
        return "PM"
    elif c == "p" and rest.startswith("pm"):
        return "pm"
    elif c in "-Z":
        for suffix in _ZONE_SUFFIXES:
            if rest.startswith(c + suffix):
                return c + suffix
    elif c in ".," and len(rest) > 1 and rest[1] in "09":
        end = 1
        while end < len(rest) and rest[end] == rest[1]:
            end += 1
        if not (end < len(rest) and rest[end] in _DIGITS):
            return rest[:end]
    return None


def _offset_seconds(moment: datetime) -> int:
    offset = moment.utcoffset() or timedelta(0)
    return offset.days * 86400 + offset.seconds


def _format_zone(token: str, offset: int) -> str:
    if offset == 0 and token.startswith("Z"):
        return "Z"
    zone = -((-offset) // 60) if offset < 0 else offset // 60
    absolute = abs(offset)
    sign = "-" if zone < 0 else "+"
    zone = abs(zone)
    colon = ":" in token
    parts = [sign, f"{zone // 60:02d}"]
    if token[1:] != "07":
        if colon:
            parts.append(":")
        parts.append(f"{zone % 60:02d}")
    if token[1:] in ("070000", "07:00:00"):
        if colon:
            parts.append(":")
        parts.append(f"{absolute % 60:02d}")
    return "".join(parts)


def _format_fraction(token: str, nanos: int) -> str:
    digits = f"{nanos:09d}"[: min(len(token) - 1, 9)]
    if token[1] == "9":
        digits = digits.rstrip("0")
        if not digits:
            return ""
    return token[0] + digits


def _render(token: str, moment: datetime) -> str:
    hour12 = moment.hour % 12 or 12
    match token:
        case "January":
            return _MONTHS[moment.month - 1]
        case "Jan":
            return _MONTHS[moment.month - 1][:3]
        case "1":
            return str(moment.month)
        case "01":
            return f"{moment.month:02d}"
        case "Monday":
            return _WEEKDAYS[moment.weekday()]
        case "Mon":
            return _WEEKDAYS[moment.weekday()][:3]
        case "2":
            return str(moment.day)
        case "_2":
            return f"{moment.day:2d}"
        case "02":
            return f"{moment.day:02d}"
        case "__2":
            return f"{moment.timetuple().tm_yday:3d}"
        case "002":
            return f"{moment.timetuple().tm_yday:03d}"
        case "15":
            return f"{moment.hour:02d}"
        case "3":
            return str(hour12)
        case "03":
            return f"{hour12:02d}"
        case "4":
            return str(moment.minute)
        case "04":
            return f"{moment.minute:02d}"
        case "5":
            return str(moment.second)
        case "05":
            return f"{moment.second:02d}"
        case "2006":
            return f"{moment.year:04d}"
        case "06":
            return f"{moment.year % 100:02d}"
        case "PM":
            return "PM" if moment.hour >= 12 else "AM"
        case "pm":
            return "pm" if moment.hour >= 12 else "am"
        case "MST":
            name = moment.tzname()
            if name:
                return name
            return _format_zone("-0700", _offset_seconds(moment))
    if token[0] in "-Z":
        return _format_zone(token, _offset_seconds(moment))
    return _format_fraction(token, moment.microsecond * 1000)


def format_time(moment: datetime, layout: str) -> str:
    """Format ``moment`` using a layout written for the reference time
    ``Mon Jan 2 15:04:05 MST 2006``. Naive times are taken as local."""
    moment = _aware(moment)
    out: list[str] = []
    i = 0
    while i < len(layout):
        token = _next_token(layout, i)
        if token is None:
            out.append(layout[i])
            i += 1
            continue
        out.append(_render(token, moment))
        i += len(token)
    return "".join(out)


# --- duration formatting --------------------------------------------------


def _with_fraction(value: int, precision: int) -> str:
    whole, fraction = divmod(value, 10**precision)
    digits = f"{fraction:0{precision}d}".rstrip("0")
    return f"{whole}.{digits}" if digits else str(whole)


def format_duration(duration: timedelta | int) -> str:
    """Render a duration like ``1h2m3.5s``; ints are taken as nanoseconds."""
    nanos = _duration_nanos(duration)
    sign = "-" if nanos < 0 else ""
    value = abs(nanos)
    if value == 0:
        return "0s"
    if value < 1_000:
        return f"{sign}{value}ns"
    if value < 1_000_000:
        return f"{sign}{_with_fraction(value, 3)}µs"
    if value < _NANOS_PER_SECOND:
        return f"{sign}{_with_fraction(value, 6)}ms"
    total_seconds, fraction = divmod(value, _NANOS_PER_SECOND)
    total_minutes, seconds = divmod(total_seconds, 60)
    hours, minutes = divmod(total_minutes, 60)
    text = _with_fraction(seconds * _NANOS_PER_SECOND + fraction, 9) + "s"
    if total_minutes > 0:
        text = f"{minutes}m{text}"
    if hours > 0:
        text = f"{hours}h{text}"
    return sign + text