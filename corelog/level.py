"""Logging levels, their text forms and their terminal-colored forms."""

from __future__ import annotations

import json
from typing import ClassVar, Protocol, runtime_checkable

__all__ = [
    "Level",
    "LevelEnabler",
    "MIN_LEVEL",
    "MAX_LEVEL",
    "ALL_LEVELS",
    "parse_level",
    "lowercase_color_string",
    "capital_color_string",
]

_INT8_MIN = -128
_INT8_MAX = 127


class Level(int):
    """A logging priority. Higher levels are more important.

    Any small integer is a valid level; the named ones are available as
    ``Level.DEBUG`` through ``Level.FATAL``.
    """

    __slots__ = ()

    DEBUG: ClassVar[Level]
    INFO: ClassVar[Level]
    WARN: ClassVar[Level]
    ERROR: ClassVar[Level]
    DPANIC: ClassVar[Level]
    PANIC: ClassVar[Level]
    FATAL: ClassVar[Level]

    def __new__(cls, value: int = 0) -> Level:
        number = int(value)
        if not _INT8_MIN <= number <= _INT8_MAX:
            raise ValueError(f"level {number} is out of range")
        return super().__new__(cls, number)

    def __str__(self) -> str:
        name = _LOWER_NAMES.get(int(self))
        return name if name is not None else f"Level({int(self)})"

    def __repr__(self) -> str:
        return f"Level({int(self)})"

    def __format__(self, spec: str) -> str:
        if not spec:
            return str(self)
        return format(int(self), spec)

    def __add__(self, other: object) -> Level:
        if isinstance(other, int):
            return Level(int(self) + other)
        return NotImplemented

    __radd__ = __add__

    def __sub__(self, other: object) -> Level:
        if isinstance(other, int):
            return Level(int(self) - other)
        return NotImplemented

    def capital_string(self) -> str:
        """Return the all-caps text form of the level."""
        name = _LOWER_NAMES.get(int(self))
        return name.upper() if name is not None else f"LEVEL({int(self)})"

    def enabled(self, level: int) -> bool:
        """Return True if ``level`` is at or above this level."""
        return level >= self


_LOWER_NAMES: dict[int, str] = {
    -1: "debug",
    0: "info",
    1: "warn",
    2: "error",
    3: "dpanic",
    4: "panic",
    5: "fatal",
}

Level.DEBUG = Level(-1)
Level.INFO = Level(0)
Level.WARN = Level(1)
Level.ERROR = Level(2)
Level.DPANIC = Level(3)
Level.PANIC = Level(4)
Level.FATAL = Level(5)

MIN_LEVEL = Level.DEBUG
MAX_LEVEL = Level.FATAL
ALL_LEVELS: tuple[Level, ...] = tuple(
    Level(n) for n in range(int(MIN_LEVEL), int(MAX_LEVEL) + 1)
)


@runtime_checkable
class LevelEnabler(Protocol):
    """Decides whether a given logging level is enabled."""

    def enabled(self, level: Level) -> bool:
        """Return True if entries at ``level`` should be logged."""


def _build_text_table() -> dict[str, Level]:
    table: dict[str, Level] = {"": Level.INFO}
    for level in ALL_LEVELS:
        table[str(level)] = level
        table[level.capital_string()] = level
    return table


_TEXT_TO_LEVEL = _build_text_table()


def parse_level(text: str | bytes) -> Level:
    """Parse a level from its lower-case or all-caps name.

    Mixed case is accepted as well; the empty string means ``Level.INFO``.
    Raises ValueError for anything unrecognised.
    """
    if isinstance(text, (bytes, bytearray)):
        text = bytes(text).decode("utf-8", errors="replace")
    level = _TEXT_TO_LEVEL.get(text)
    if level is None:
        level = _TEXT_TO_LEVEL.get(text.lower())
    if level is None:
        raise ValueError(f"unrecognized level: {json.dumps(text, ensure_ascii=False)}")
    return level


_MAGENTA = 35
_BLUE = 34
_YELLOW = 33
_RED = 31

_LEVEL_COLORS: dict[Level, int] = {
    Level.DEBUG: _MAGENTA,
    Level.INFO: _BLUE,
    Level.WARN: _YELLOW,
    Level.ERROR: _RED,
    Level.DPANIC: _RED,
    Level.PANIC: _RED,
    Level.FATAL: _RED,
}
_UNKNOWN_LEVEL_COLOR = _RED


def _colorize(color: int, text: str) -> str:
    return f"\x1b[{color}m{text}\x1b[0m"


_LOWERCASE_COLOR_STRINGS: dict[Level, str] = {
    level: _colorize(color, str(level)) for level, color in _LEVEL_COLORS.items()
}
_CAPITAL_COLOR_STRINGS: dict[Level, str] = {
    level: _colorize(color, level.capital_string())
    for level, color in _LEVEL_COLORS.items()
}


def lowercase_color_string(level: int) -> str:
    """Return the lower-case level name wrapped in its terminal color."""
    level = Level(level)
    cached = _LOWERCASE_COLOR_STRINGS.get(level)
    return cached if cached is not None else _colorize(_UNKNOWN_LEVEL_COLOR, str(level))


def capital_color_string(level: int) -> str:
    """Return the all-caps level name wrapped in its terminal color."""
    level = Level(level)
    cached = _CAPITAL_COLOR_STRINGS.get(level)
    return (
        cached
        if cached is not None
        else _colorize(_UNKNOWN_LEVEL_COLOR, level.capital_string())
    )