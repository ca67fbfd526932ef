import io

import pytest

from corelog.entry import (
    CheckedEntry,
    CheckWriteAction,
    Core,
    Entry,
    EntryCaller,
    LogPanic,
    RoutineExit,
    add_core,
    new_entry_caller,
    should,
)
from corelog.level import Level


class RecordingCore(Core):
    def __init__(self, fail_with=None):
        self.written = []
        self.fail_with = fail_with

    def enabled(self, level):
        return True

    def with_fields(self, fields):
        return self

    def check(self, entry, ce):
        return add_core(ce, entry, self)

    def write(self, entry, fields):
        self.written.append((entry, list(fields)))
        if self.fail_with is not None:
            raise self.fail_with

    def sync(self):
        return None


@pytest.mark.parametrize(
    "caller, full, short",
    [
        (new_entry_caller(100, "/path/to/foo.go", 42, False), "undefined", "undefined"),
        (new_entry_caller(100, "/path/to/foo.go", 42, True), "/path/to/foo.go:42", "to/foo.go:42"),
        (new_entry_caller(100, "to/foo.go", 42, True), "to/foo.go:42", "to/foo.go:42"),
    ],
)
def test_entry_caller(caller, full, short):
    assert str(caller) == full
    assert caller.full_path() == full
    assert caller.trimmed_path() == short


def test_entry_caller_without_directory():
    caller = EntryCaller(defined=True, file="foo.go", line=7)
    assert caller.trimmed_path() == "foo.go:7"


def test_new_entry_caller_undefined_is_empty():
    assert new_entry_caller(1, "x.go", 3, False) == EntryCaller()


def test_entry_defaults():
    entry = Entry()
    assert entry.level == Level.INFO
    assert entry.message == ""
    assert entry.caller.defined is False


def test_write_then_panic():
    ce = should(None, Entry(message="boom"), CheckWriteAction.PANIC)
    with pytest.raises(LogPanic) as info:
        ce.write()
    assert info.value.message == "boom"


def test_write_then_goexit():
    ce = should(None, Entry(), CheckWriteAction.GOEXIT)
    with pytest.raises(RoutineExit):
        ce.write()


def test_write_then_fatal():
    ce = should(None, Entry(), CheckWriteAction.FATAL)
    with pytest.raises(SystemExit) as info:
        ce.write()
    assert info.value.code == 1


def test_new_checked_entry_is_clean():
    ce = should(None, Entry(), CheckWriteAction.NOOP)
    assert ce.action is CheckWriteAction.NOOP
    assert ce.error_output is None
    assert ce.cores == []


def test_add_core_creates_and_appends():
    entry = Entry(message="hi")
    first, second = RecordingCore(), RecordingCore()
    ce = add_core(None, entry, first)
    assert ce.entry == entry
    same = add_core(ce, Entry(message="ignored"), second)
    assert same is ce
    assert ce.cores == [first, second]
    assert ce.entry.message == "hi"


def test_write_passes_fields_to_every_core():
    entry = Entry(message="hi")
    first, second = RecordingCore(), RecordingCore()
    ce = add_core(add_core(None, entry, first), entry, second)
    ce.write("a", "b")
    assert first.written == [(entry, ["a", "b"])]
    assert second.written == [(entry, ["a", "b"])]


def test_write_errors_are_reported():
    out = io.StringIO()
    entry = Entry(message="hi")
    ce = add_core(None, entry, RecordingCore(fail_with=ValueError("disk full")))
    ce = add_core(ce, entry, RecordingCore(fail_with=OSError("closed")))
    ce.error_output = out
    ce.write()
    assert out.getvalue().endswith(" write error: disk full; closed\n")


def test_reuse_is_detected():
    out = io.StringIO()
    core = RecordingCore()
    ce = add_core(None, Entry(message="hi"), core)
    ce.error_output = out
    ce.write()
    assert out.getvalue() == ""
    ce.write()
    assert len(core.written) == 1
    assert "Unsafe CheckedEntry re-use" in out.getvalue()


def test_checked_entry_default_construction():
    ce = CheckedEntry()
    assert ce.entry == Entry()
    assert ce.action == CheckWriteAction.NOOP