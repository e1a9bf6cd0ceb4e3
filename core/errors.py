"""
Error taxonomy for the entity & gesture engine.

Missing entities, empty loads and view mismatches are NOT errors: the store
treats them as no-ops. Everything here is fatal for the single operation
that raised it.
"""
from __future__ import annotations


class MapEditError(Exception):
    """Base exception for the editor engine."""


class InvalidEnumerationError(MapEditError, ValueError):
    """An enumerated value (event type, tool, edit mode, pointer button) is not recognized."""

    def __init__(self, kind: str, value: object):
        super().__init__(f"Unrecognized {kind}: {value!r}")
        self.kind = kind
        self.value = value


class SerializationError(MapEditError, ValueError):
    """External map record carries an out-of-range discriminant."""

    def __init__(self, field: str, value: object, record: object = None):
        super().__init__(f"Invalid value for {field}: {value!r}")
        self.field = field
        self.value = value
        self.record = record


class UnknownCommandError(MapEditError, TypeError):
    """apply_command() received something outside the command union."""


class SessionNotFoundError(MapEditError, KeyError):
    """No editor session with the given id."""
