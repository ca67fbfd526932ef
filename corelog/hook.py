"""A core wrapper that runs user callbacks for every logged entry."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from corelog.entry import CheckedEntry, Core, Entry, add_core
from corelog.level import Level

__all__ = ["HookedCore", "register_hooks"]

Hook = Callable[[Entry], Any]


class HookedCore(Core):
    """Wraps a core and calls each hook, in order, whenever an entry is logged."""

    def __init__(self, core: Core, hooks: Sequence[Hook]) -> None:
        self._core = core
        self._hooks = tuple(hooks)

    def enabled(self, level: Level) -> bool:
        """Defer to the wrapped core."""
        return self._core.enabled(level)

    def with_fields(self, fields: Sequence[Any]) -> HookedCore:
        """Add fields to the wrapped core, keeping the same hooks."""
        return HookedCore(self._core.with_fields(fields), self._hooks)

    def check(self, entry: Entry, ce: CheckedEntry | None) -> CheckedEntry | None:
        """Let the wrapped core decide; if it accepts, register the hooks too."""
        downstream = self._core.check(entry, ce)
        if downstream is not None:
            return add_core(downstream, entry, self)
        return ce

    def write(self, entry: Entry, fields: Sequence[Any]) -> None:
        """Run every hook; failures are collected and raised together."""
        errors: list[Exception] = []
        for hook in self._hooks:
            try:
                hook(entry)
            except Exception as exc:
                errors.append(exc)
        if len(errors) == 1:
            raise errors[0]
        if errors:
            raise ExceptionGroup("hook errors", errors)

    def sync(self) -> None:
        """Defer to the wrapped core."""
        self._core.sync()


def register_hooks(core: Core, *args: Hook) -> HookedCore:
    """Wrap ``core`` so that each hook in ``args`` runs for every logged entry."""
    return HookedCore(core, args)