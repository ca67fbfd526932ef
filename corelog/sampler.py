"""A core wrapper that samples repeated entries to cap logging load."""

from __future__ import annotations

import enum
import threading
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any

from corelog.entry import CheckedEntry, Core, Entry
from corelog.level import MAX_LEVEL, MIN_LEVEL, Level

__all__ = [
    "SamplingDecision",
    "Sampler",
    "fnv32a",
    "sampler_hook",
    "new_sampler_with_options",
    "new_sampler",
]

_COUNTERS_PER_LEVEL = 4096
_FNV_OFFSET32 = 2166136261
_FNV_PRIME32 = 16777619
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def fnv32a(text: str | bytes) -> int:
    """Return the 32-bit FNV-1a hash of ``text`` (UTF-8 encoded if a string)."""
    data = text.encode("utf-8") if isinstance(text, str) else bytes(text)
    value = _FNV_OFFSET32
    for byte in data:
        value ^= byte
        value = (value * _FNV_PRIME32) & 0xFFFFFFFF
    return value


def _timedelta_nanos(delta: timedelta) -> int:
    return (delta.days * 86400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1000


def _tick_nanos(tick: timedelta | int) -> int:
    if isinstance(tick, timedelta):
        return _timedelta_nanos(tick)
    return int(tick)


def _unix_nanos(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return _timedelta_nanos(moment - _EPOCH)


class SamplingDecision(enum.IntFlag):
    """A decision made by the sampler about one entry."""

    LOG_DROPPED = 1
    LOG_SAMPLED = 2


class _Counter:
    __slots__ = ("reset_at", "count")

    def __init__(self) -> None:
        self.reset_at = 0
        self.count = 0

    def inc_check_reset(self, now: int, tick: int) -> int:
        if self.reset_at > now:
            self.count += 1
            return self.count
        self.count = 1
        self.reset_at = now + tick
        return 1


class _Counters:
    """Counters keyed by level and message hash, shared between derived cores."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._table: dict[tuple[int, int], _Counter] = {}

    def inc_check_reset(self, level: Level, message: str, now: int, tick: int) -> int:
        key = (int(level), fnv32a(message) % _COUNTERS_PER_LEVEL)
        with self._lock:
            counter = self._table.get(key)
            if counter is None:
                counter = self._table[key] = _Counter()
            return counter.inc_check_reset(now, tick)


SamplerHookFunc = Callable[[Entry, SamplingDecision], Any]
SamplerOption = Callable[["Sampler"], None]


def _nop_hook(entry: Entry, decision: SamplingDecision) -> None:
    return None


class Sampler(Core):
    """Logs the first entries per level and message each tick, then every Nth.

    Sampling favours speed over precision; counts are shared with every core
    derived through ``with_fields``.
    """

    def __init__(
        self,
        core: Core,
        tick: timedelta | int,
        first: int,
        thereafter: int,
        *,
        hook: SamplerHookFunc = _nop_hook,
        counts: _Counters | None = None,
    ) -> None:
        self._core = core
        self._tick = _tick_nanos(tick)
        self._first = int(first)
        self._thereafter = int(thereafter)
        self._hook = hook
        self._counts = counts if counts is not None else _Counters()

    def enabled(self, level: Level) -> bool:
        """Defer to the wrapped core."""
        return self._core.enabled(level)

    def with_fields(self, fields: Sequence[Any]) -> Sampler:
        """Add fields to the wrapped core, sharing this sampler's counts."""
        return Sampler(
            self._core.with_fields(fields),
            self._tick,
            self._first,
            self._thereafter,
            hook=self._hook,
            counts=self._counts,
        )

    def check(self, entry: Entry, ce: CheckedEntry | None) -> CheckedEntry | None:
        """Drop the entry if it is over budget, otherwise defer to the wrapped core."""
        if not self.enabled(entry.level):
            return ce
        if MIN_LEVEL <= entry.level <= MAX_LEVEL:
            n = self._counts.inc_check_reset(
                entry.level, entry.message, _unix_nanos(entry.time), self._tick
            )
            if n > self._first and (
                self._thereafter == 0 or (n - self._first) % self._thereafter != 0
            ):
                self._hook(entry, SamplingDecision.LOG_DROPPED)
                return ce
            self._hook(entry, SamplingDecision.LOG_SAMPLED)
        return self._core.check(entry, ce)

    def write(self, entry: Entry, fields: Sequence[Any]) -> None:
        """Write through to the wrapped core."""
        self._core.write(entry, fields)

    def sync(self) -> None:
        """Defer to the wrapped core."""
        self._core.sync()


def sampler_hook(hook: SamplerHookFunc) -> SamplerOption:
    """Return an option that reports every sampling decision to ``hook``."""

    def apply(sampler: Sampler) -> None:
        sampler._hook = hook

    return apply


def new_sampler_with_options(
    core: Core, tick: timedelta | int, first: int, thereafter: int, *args: SamplerOption
) -> Sampler:
    """Wrap ``core`` in a sampler; ``tick`` is a timedelta or nanoseconds.

    If ``thereafter`` is zero, every entry after the first ``first`` in a
    tick is dropped.
    """
    sampler = Sampler(core, tick, first, thereafter)
    for option in args:
        option(sampler)
    return sampler


def new_sampler(core: Core, tick: timedelta | int, first: int, thereafter: int) -> Sampler:
    """Wrap ``core`` in a sampler with no options."""
    return new_sampler_with_options(core, tick, first, thereafter)