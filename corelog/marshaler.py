"""Interfaces through which user types add themselves to a log context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Protocol, runtime_checkable

__all__ = [
    "ObjectMarshaler",
    "ArrayMarshaler",
    "ObjectMarshalerFunc",
    "ArrayMarshalerFunc",
]


@runtime_checkable
class ObjectMarshaler(Protocol):
    """A type that can add itself, key by key, to an object encoder.

    Implementations signal failure by raising an exception.
    """

    def marshal_log_object(self, enc: Any) -> None:
        """Add this value's fields to ``enc``."""


@runtime_checkable
class ArrayMarshaler(Protocol):
    """A type that can add itself, element by element, to an array encoder.

    Implementations signal failure by raising an exception.
    """

    def marshal_log_array(self, enc: Any) -> None:
        """Append this value's elements to ``enc``."""


@dataclass(frozen=True)
class ObjectMarshalerFunc:
    """Adapts a plain function to the ObjectMarshaler interface."""

    func: Callable[[Any], Any]

    def marshal_log_object(self, enc: Any) -> None:
        """Call the wrapped function with ``enc``."""
        self.func(enc)


@dataclass(frozen=True)
class ArrayMarshalerFunc:
    """Adapts a plain function to the ArrayMarshaler interface."""

    func: Callable[[Any], Any]

    def marshal_log_array(self, enc: Any) -> None:
        """Call the wrapped function with ``enc``."""
        self.func(enc)