import struct
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest

from corelog.field import (
    Field,
    FieldType,
    add_fields,
    encode_error,
    encode_stringer,
)
from corelog.memory_encoder import MapObjectEncoder


@dataclass(frozen=True)
class Users:
    n: int

    def __str__(self):
        return f"{self.n} users"

    def marshal_log_object(self, enc):
        if self.n < 0:
            raise ValueError("too few users")
        enc.add_int("users", self.n)

    def marshal_log_array(self, enc):
        if self.n < 0:
            raise ValueError("too few users")
        for _ in range(self.n):
            enc.append_string("user")


class PanickyStringer:
    def __str__(self):
        raise RuntimeError("panic with string")


class BadError(Exception):
    def __str__(self):
        raise RuntimeError("cannot print")


class UnprintableStringer:
    def __str__(self):
        raise BadError()


class ErrObj(Exception):
    def __str__(self):
        raise RuntimeError("panic in Error() method")


class TooManyUsers(Exception):
    def __init__(self, n):
        super().__init__(n)
        self.n = n

    def __str__(self):
        return f"{self.n} too many users"

    def __format__(self, spec):
        return str(self)


def _verbose(err):
    if type(err).__format__ is not object.__format__:
        return format(err, "+v")
    return str(err)


class Multi(Exception):
    def __init__(self, *errs):
        super().__init__(*errs)
        self._errs = list(errs)

    def errors(self):
        return self._errs

    def __str__(self):
        return "; ".join(str(e) for e in self._errs)

    def __format__(self, spec):
        if spec != "+v":
            return str(self)
        lines = "".join(f"\n -  {_verbose(e)}" for e in self._errs)
        return "the following errors occurred:" + lines


class CustomMulti(Exception):
    def __str__(self):
        return "great sadness"

    def errors(self):
        return [ValueError("foo"), None, Multi(ValueError("bar"), ValueError("baz"))]


class WithMessage(Exception):
    def __init__(self, cause, msg):
        super().__init__(cause, msg)
        self.cause = cause
        self.msg = msg

    def __str__(self):
        return f"{self.msg}: {self.cause}"

    def __format__(self, spec):
        if spec != "+v":
            return str(self)
        return f"{_verbose(self.cause)}\n{self.msg}"


def _encode(field):
    enc = MapObjectEncoder()
    field.add_to(enc)
    return enc.fields


def test_unknown_field_type_raises():
    unknown = Field(key="k", string="foo")
    assert unknown.type is FieldType.UNKNOWN
    with pytest.raises(ValueError, match="unknown field type"):
        unknown.add_to(MapObjectEncoder())


@pytest.mark.parametrize(
    "ftype, iface, want, err",
    [
        (FieldType.ARRAY_MARSHALER, Users(-1), [], "too few users"),
        (FieldType.OBJECT_MARSHALER, Users(-1), {}, "too few users"),
        (FieldType.INLINE_MARSHALER, Users(-1), None, "too few users"),
        (FieldType.STRINGER, PanickyStringer(), None, "PANIC=panic with string"),
        (FieldType.STRINGER, UnprintableStringer(), None, "PANIC=<unprintable BadError>"),
        (FieldType.ERROR, ErrObj(), None, "PANIC=panic in Error() method"),
    ],
)
def test_field_adding_error(ftype, iface, want, err):
    fields = _encode(Field(key="k", type=ftype, interface=iface))
    assert fields.get("k") == want
    assert fields["kError"] == err


_UTC_TIME = datetime(1970, 1, 1, 0, 0, 0, 1, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "ftype, integer, string, iface, want",
    [
        (FieldType.ARRAY_MARSHALER, 0, "", Users(2), ["user", "user"]),
        (FieldType.OBJECT_MARSHALER, 0, "", Users(2), {"users": 2}),
        (FieldType.BOOL, 0, "", None, False),
        (FieldType.BOOL, 1, "", None, True),
        (FieldType.BINARY, 0, "", b"\x01\x02", b"\x01\x02"),
        (FieldType.BYTE_STRING, 0, "", b"foo", "foo"),
        (FieldType.COMPLEX128, 0, "", 1 + 2j, 1 + 2j),
        (FieldType.COMPLEX64, 0, "", 1 + 2j, 1 + 2j),
        (FieldType.DURATION, 1000, "", None, timedelta(microseconds=1)),
        (FieldType.DURATION, 1500, "", None, 1500),
        (FieldType.FLOAT64, struct.unpack("<Q", struct.pack("<d", 3.14))[0], "", None, 3.14),
        (FieldType.FLOAT64, 0x3FF8000000000000, "", None, 1.5),
        (FieldType.FLOAT32, 0x3F000000, "", None, 0.5),
        (FieldType.INT64, 42, "", None, 42),
        (FieldType.INT32, 42, "", None, 42),
        (FieldType.INT16, 42, "", None, 42),
        (FieldType.INT8, 42, "", None, 42),
        (FieldType.INT8, 255, "", None, -1),
        (FieldType.INT8, 300, "", None, 44),
        (FieldType.STRING, 0, "foo", None, "foo"),
        (FieldType.TIME, 1000, "", timezone.utc, _UTC_TIME),
        (FieldType.TIME_FULL, 0, "", _UTC_TIME, _UTC_TIME),
        (FieldType.UINT64, 42, "", None, 42),
        (FieldType.UINT64, -1, "", None, 2**64 - 1),
        (FieldType.UINT32, 42, "", None, 42),
        (FieldType.UINT16, 42, "", None, 42),
        (FieldType.UINT8, 42, "", None, 42),
        (FieldType.UINT8, -1, "", None, 255),
        (FieldType.UINTPTR, 42, "", None, 42),
        (FieldType.REFLECT, 0, "", Users(2), Users(2)),
        (FieldType.NAMESPACE, 0, "", None, {}),
        (FieldType.STRINGER, 0, "", Users(2), "2 users"),
        (FieldType.STRINGER, 0, "", None, "<nil>"),
        (FieldType.SKIP, 0, "", None, None),
        (FieldType.ERROR, 0, "", None, "<nil>"),
    ],
)
def test_fields(ftype, integer, string, iface, want):
    field = Field(key="k", type=ftype, integer=integer, string=string, interface=iface)
    fields = _encode(field)
    assert fields.pop("k", None) == want
    assert fields == {}
    assert field.equals(field)


def test_time_without_zone_is_same_instant():
    fields = _encode(Field(key="k", type=FieldType.TIME, integer=1000))
    assert fields["k"] == _UTC_TIME
    assert fields["k"].tzinfo is not None


def test_inline_marshaler():
    enc = MapObjectEncoder()
    Field(key="k", type=FieldType.STRING, string="s").add_to(enc)
    Field(key="ignored", type=FieldType.INLINE_MARSHALER, interface=Users(10)).add_to(enc)
    Field(key="nested", type=FieldType.OBJECT_MARSHALER, interface=Users(11)).add_to(enc)
    assert enc.fields == {"k": "s", "users": 10, "nested": {"users": 11}}


def test_add_fields_in_order():
    enc = MapObjectEncoder()
    add_fields(
        enc,
        [
            Field(key="a", type=FieldType.STRING, string="x"),
            Field(key="ns", type=FieldType.NAMESPACE),
            Field(key="b", type=FieldType.INT64, integer=7),
        ],
    )
    assert enc.fields == {"a": "x", "ns": {"b": 7}}


def _time_field(key, nanos, tz=None):
    return Field(key=key, type=FieldType.TIME, integer=nanos, interface=tz)


@pytest.mark.parametrize(
    "a, b, want",
    [
        (Field("a", FieldType.INT16, 1), Field("a", FieldType.INT32, 1), False),
        (Field("k", FieldType.STRING, string="a"), Field("k", FieldType.STRING, string="a"), True),
        (Field("k", FieldType.STRING, string="a"), Field("k2", FieldType.STRING, string="a"), False),
        (Field("k", FieldType.STRING, string="a"), Field("k", FieldType.STRING, string="b"), False),
        (_time_field("k", 1000_000001000), _time_field("k", 1000_000001000), True),
        (
            _time_field("k", 1000_000001000, timezone.utc),
            _time_field("k", 1000_000001000, timezone(timedelta(seconds=-8), "TEST")),
            False,
        ),
        (_time_field("k", 1000_000001000), _time_field("k", 1000_000002000), False),
        (Field("k", FieldType.BINARY, interface=b"\x01\x02"), Field("k", FieldType.BINARY, interface=b"\x01\x02"), True),
        (Field("k", FieldType.BINARY, interface=b"\x01\x02"), Field("k", FieldType.BINARY, interface=b"\x01\x03"), False),
        (Field("k", FieldType.BYTE_STRING, interface=b"abc"), Field("k", FieldType.BYTE_STRING, interface=b"abc"), True),
        (Field("k", FieldType.BYTE_STRING, interface=b"abc"), Field("k", FieldType.BYTE_STRING, interface=b"abd"), False),
        (Field("k", FieldType.REFLECT, interface=[1, 2]), Field("k", FieldType.REFLECT, interface=[1, 2]), True),
        (Field("k", FieldType.REFLECT, interface=[1, 2]), Field("k", FieldType.REFLECT, interface=[1, 3]), False),
        (
            Field("k", FieldType.OBJECT_MARSHALER, interface=Users(10)),
            Field("k", FieldType.OBJECT_MARSHALER, interface=Users(10)),
            True,
        ),
        (
            Field("k", FieldType.OBJECT_MARSHALER, interface=Users(10)),
            Field("k", FieldType.OBJECT_MARSHALER, interface=Users(20)),
            False,
        ),
        (Field("k", FieldType.REFLECT, interface={"a": "b"}), Field("k", FieldType.REFLECT, interface={"a": "b"}), True),
        (Field("k", FieldType.REFLECT, interface={"a": "b"}), Field("k", FieldType.REFLECT, interface={"a": "d"}), False),
        (Field("k", FieldType.ERROR, interface=ValueError("x")), Field("k", FieldType.ERROR, interface=ValueError("x")), True),
        (Field("k", FieldType.ERROR, interface=ValueError("x")), Field("k", FieldType.ERROR, interface=ValueError("y")), False),
        (Field("k", FieldType.ERROR, interface=ValueError("x")), Field("k", FieldType.ERROR, interface=KeyError("x")), False),
    ],
)
def test_equals(a, b, want):
    assert a.equals(b) is want
    assert b.equals(a) is want


@pytest.mark.parametrize(
    "key, err, want",
    [
        ("k", TooManyUsers(2), {"k": "2 too many users"}),
        (
            "err",
            Multi(ValueError("foo"), ValueError("bar"), ValueError("baz")),
            {
                "err": "foo; bar; baz",
                "errCauses": [{"error": "foo"}, {"error": "bar"}, {"error": "baz"}],
            },
        ),
        (
            "e",
            CustomMulti(),
            {
                "e": "great sadness",
                "eCauses": [
                    {"error": "foo"},
                    {
                        "error": "bar; baz",
                        "errorCauses": [{"error": "bar"}, {"error": "baz"}],
                    },
                ],
            },
        ),
        (
            "k",
            WithMessage(ValueError("egad"), "failed"),
            {"k": "failed: egad", "kVerbose": "egad\nfailed"},
        ),
        (
            "error",
            Multi(
                WithMessage(Multi(ValueError("foo"), ValueError("bar")), "hello"),
                ValueError("baz"),
                WithMessage(ValueError("qux"), "world"),
            ),
            {
                "error": "hello: foo; bar; baz; world: qux",
                "errorCauses": [
                    {
                        "error": "hello: foo; bar",
                        "errorVerbose": "the following errors occurred:\n"
                        " -  foo\n"
                        " -  bar\n"
                        "hello",
                    },
                    {"error": "baz"},
                    {"error": "world: qux", "errorVerbose": "qux\nworld"},
                ],
            },
        ),
    ],
)
def test_error_encoding(key, err, want):
    assert _encode(Field(key=key, type=FieldType.ERROR, interface=err)) == want


def test_exception_group_causes():
    group = ExceptionGroup("boom", [ValueError("a"), KeyError("b")])
    enc = MapObjectEncoder()
    encode_error("err", group, enc)
    assert enc.fields == {
        "err": "boom (2 sub-exceptions)",
        "errCauses": [{"error": "a"}, {"error": "'b'"}],
    }


def test_encode_error_raises_on_unprintable():
    enc = MapObjectEncoder()
    with pytest.raises(RuntimeError, match="PANIC=panic in Error"):
        encode_error("k", ErrObj(), enc)
    assert enc.fields == {}


def test_encode_stringer_directly():
    enc = MapObjectEncoder()
    encode_stringer("s", Users(3), enc)
    encode_stringer("n", None, enc)
    assert enc.fields == {"s": "3 users", "n": "<nil>"}
    with pytest.raises(RuntimeError, match="PANIC=panic with string"):
        encode_stringer("p", PanickyStringer(), enc)