import pytest

from corelog.marshaler import (
    ArrayMarshaler,
    ArrayMarshalerFunc,
    ObjectMarshaler,
    ObjectMarshalerFunc,
)


class _RecordingEncoder:
    def __init__(self):
        self.fields = {}
        self.elems = []

    def add_string(self, key, value):
        self.fields[key] = value

    def append_string(self, value):
        self.elems.append(value)


def test_object_marshaler_func_passes_encoder():
    enc = _RecordingEncoder()
    marshaler = ObjectMarshalerFunc(lambda e: e.add_string("k", "v"))
    marshaler.marshal_log_object(enc)
    assert enc.fields == {"k": "v"}


def test_array_marshaler_func_passes_encoder():
    enc = _RecordingEncoder()

    def fill(e):
        e.append_string("a")
        e.append_string("b")

    ArrayMarshalerFunc(fill).marshal_log_array(enc)
    assert enc.elems == ["a", "b"]


def test_object_marshaler_func_propagates_errors():
    def fail(_enc):
        raise ValueError("too few users")

    with pytest.raises(ValueError, match="too few users"):
        ObjectMarshalerFunc(fail).marshal_log_object(_RecordingEncoder())


def test_array_marshaler_func_propagates_errors():
    def fail(_enc):
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        ArrayMarshalerFunc(fail).marshal_log_array(_RecordingEncoder())


def test_funcs_satisfy_protocols():
    obj = ObjectMarshalerFunc(lambda e: e.add_string("kind", "object"))
    arr = ArrayMarshalerFunc(lambda e: e.append_string("array"))
    assert isinstance(obj, ObjectMarshaler)
    assert isinstance(arr, ArrayMarshaler)
    assert not isinstance(obj, ArrayMarshaler)
    assert not isinstance(arr, ObjectMarshaler)

    enc = _RecordingEncoder()
    obj.marshal_log_object(enc)
    arr.marshal_log_array(enc)
    assert enc.fields == {"kind": "object"}
    assert enc.elems == ["array"]


def test_user_type_method_wrapped_as_marshaler():
    class Users:
        def __init__(self, count):
            self.count = count

        def fill(self, enc):
            for _ in range(self.count):
                enc.append_string("user")

    marshaler = ArrayMarshalerFunc(Users(2).fill)
    assert isinstance(marshaler, ArrayMarshaler)
    enc = _RecordingEncoder()
    marshaler.marshal_log_array(enc)
    assert enc.elems == ["user", "user"]