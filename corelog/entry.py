"""Log entries, their call sites, and entries already accepted by cores."""

from __future__ import annotations

import enum
import sys
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from corelog.level import Level

__all__ = [
    "EntryCaller",
    "Entry",
    "CheckWriteAction",
    "CheckedEntry",
    "Core",
    "LogPanic",
    "RoutineExit",
    "new_entry_caller",
    "add_core",
    "should",
]

_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


class LogPanic(Exception):
    """Raised after writing an entry whose action is ``CheckWriteAction.PANIC``."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class RoutineExit(Exception):
    """Raised after writing an entry whose action is ``CheckWriteAction.GOEXIT``.

    It unwinds the current routine without being treated as an error message.
    """


@dataclass(frozen=True)
class EntryCaller:
    """The call site of a logging function."""

    defined: bool = False
    pc: int = 0
    file: str = ""
    line: int = 0
    function: str = ""

    def __str__(self) -> str:
        return self.full_path()

    def full_path(self) -> str:
        """Return ``/full/path/to/package/file:line``, or ``undefined``."""
        if not self.defined:
            return "undefined"
        return f"{self.file}:{self.line}"

    def trimmed_path(self) -> str:
        """Return ``package/file:line``, keeping only the leaf directory."""
        if not self.defined:
            return "undefined"
        last = self.file.rfind("/")
        if last == -1:
            return self.full_path()
        penultimate = self.file.rfind("/", 0, last)
        if penultimate == -1:
            return self.full_path()
        return f"{self.file[penultimate + 1:]}:{self.line}"


def new_entry_caller(pc: int, file: str, line: int, ok: bool) -> EntryCaller:
    """Build an EntryCaller; an unsuccessful lookup gives an undefined caller."""
    if not ok:
        return EntryCaller()
    return EntryCaller(defined=True, pc=pc, file=file, line=line)


@dataclass(frozen=True)
class Entry:
    """A complete log message. Empty parts are omitted when encoding."""

    level: Level = Level.INFO
    time: datetime = _ZERO_TIME
    logger_name: str = ""
    message: str = ""
    caller: EntryCaller = EntryCaller()
    stack: str = ""


class CheckWriteAction(enum.IntEnum):
    """What to do after an entry is written, in increasing severity."""

    NOOP = 0
    GOEXIT = 1
    PANIC = 2
    FATAL = 3


class Core(ABC):
    """The minimal, fast logger interface that encoders and sinks plug into."""

    @abstractmethod
    def enabled(self, level: Level) -> bool:
        """Return True if entries at ``level`` would be logged."""

    @abstractmethod
    def with_fields(self, fields: Sequence[Any]) -> Core:
        """Return a core that adds ``fields`` to every entry it writes."""

    @abstractmethod
    def check(self, entry: Entry, ce: CheckedEntry | None) -> CheckedEntry | None:
        """Add this core to ``ce`` if it will log ``entry``; return the result."""

    @abstractmethod
    def write(self, entry: Entry, fields: Sequence[Any]) -> None:
        """Serialise and write ``entry`` with ``fields``; raise on failure."""

    @abstractmethod
    def sync(self) -> None:
        """Flush any buffered entries."""


def _flatten(errors: Iterable[BaseException]) -> Iterator[BaseException]:
    for error in errors:
        if isinstance(error, BaseExceptionGroup):
            yield from _flatten(error.exceptions)
        else:
            yield error


def _report(output: Any, text: str) -> None:
    output.write(text)
    flush = getattr(output, "sync", None) or getattr(output, "flush", None)
    if callable(flush):
        flush()


@dataclass
class CheckedEntry:
    """An entry together with the cores that have agreed to log it.

    A CheckedEntry must not be written more than once; a repeated write is
    reported on ``error_output`` and otherwise ignored.
    """

    entry: Entry = field(default_factory=Entry)
    error_output: Any = None
    action: CheckWriteAction = CheckWriteAction.NOOP
    cores: list[Core] = field(default_factory=list)
    _dirty: bool = field(default=False, repr=False, compare=False)

    def write(self, *args: Any) -> None:
        """Write the entry to every core, then carry out the write action.

        ``args`` are the fields passed to each core. Core failures are
        reported on ``error_output``. Depending on the action this raises
        LogPanic, RoutineExit or SystemExit after writing.
        """
        if self._dirty:
            if self.error_output is not None:
                _report(
                    self.error_output,
                    f"{self.entry.time} Unsafe CheckedEntry re-use near Entry {self.entry!r}.\n",
                )
            return
        self._dirty = True

        fields = list(args)
        errors: list[BaseException] = []
        for core in self.cores:
            try:
                core.write(self.entry, fields)
            except Exception as exc:
                errors.append(exc)
        if errors and self.error_output is not None:
            text = "; ".join(str(error) for error in _flatten(errors))
            _report(self.error_output, f"{self.entry.time} write error: {text}\n")

        if self.action is CheckWriteAction.PANIC:
            raise LogPanic(self.entry.message)
        if self.action is CheckWriteAction.FATAL:
            sys.exit(1)
        if self.action is CheckWriteAction.GOEXIT:
            raise RoutineExit()


def add_core(ce: CheckedEntry | None, entry: Entry, core: Core) -> CheckedEntry:
    """Add ``core`` to ``ce``, creating a CheckedEntry for ``entry`` if needed."""
    if ce is None:
        ce = CheckedEntry(entry=entry)
    ce.cores.append(core)
    return ce


def should(
    ce: CheckedEntry | None, entry: Entry, action: CheckWriteAction
) -> CheckedEntry:
    """Set the write action of ``ce``, creating one for ``entry`` if needed."""
    if ce is None:
        ce = CheckedEntry(entry=entry)
    ce.action = CheckWriteAction(action)
    return ce