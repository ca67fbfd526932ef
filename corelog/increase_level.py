"""A core wrapper that raises the minimum level of an existing core."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from corelog.entry import CheckedEntry, Core, Entry
from corelog.level import MAX_LEVEL, MIN_LEVEL, Level, LevelEnabler

__all__ = ["LevelFilterCore", "new_increase_level_core"]


class LevelFilterCore(Core):
    """Filters entries by an extra level enabler before the wrapped core."""

    def __init__(self, core: Core, level: LevelEnabler) -> None:
        self._core = core
        self._level = level

    def enabled(self, level: Level) -> bool:
        """Return whether the filtering enabler allows ``level``."""
        return self._level.enabled(level)

    def with_fields(self, fields: Sequence[Any]) -> LevelFilterCore:
        """Add fields to the wrapped core, keeping the same filter."""
        return LevelFilterCore(self._core.with_fields(fields), self._level)

    def check(self, entry: Entry, ce: CheckedEntry | None) -> CheckedEntry | None:
        """Drop entries below the filter, otherwise defer to the wrapped core."""
        if not self.enabled(entry.level):
            return ce
        return self._core.check(entry, ce)

    def write(self, entry: Entry, fields: Sequence[Any]) -> None:
        """Write through to the wrapped core unconditionally."""
        self._core.write(entry, fields)

    def sync(self) -> None:
        """Defer to the wrapped core."""
        self._core.sync()


def new_increase_level_core(core: Core, level: LevelEnabler) -> LevelFilterCore:
    """Wrap ``core`` so it only logs at ``level`` or above.

    Raises ValueError if ``level`` would allow a level the core does not.
    """
    for number in range(int(MAX_LEVEL), int(MIN_LEVEL) - 1, -1):
        lvl = Level(number)
        if not core.enabled(lvl) and level.enabled(lvl):
            raise ValueError(
                f'invalid increase level, as level "{lvl}" is allowed by '
                "increased level, but not by existing core"
            )
    return LevelFilterCore(core, level)