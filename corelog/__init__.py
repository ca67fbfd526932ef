"""Structured, leveled logging core: levels, fields, entries, core wrappers, sampling and encoders."""

__version__ = "0.1.0"

__all__ = [
    "encoder",
    "entry",
    "field",
    "hook",
    "increase_level",
    "json_encoder",
    "level",
    "marshaler",
    "memory_encoder",
    "sampler",
]