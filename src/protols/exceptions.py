"""Error types raised across the protols core.

Lookups that simply miss (no field on a line, no message with a name) are not
errors and return ``None``; the classes here cover the conditions callers must
be able to tell apart from an empty answer.
"""

from __future__ import annotations


class ProtolsError(Exception):
    """Base class for protols errors."""


class ConfigError(ProtolsError):
    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(f"failed to parse config at {path}: {reason}", path=path)

    @classmethod
    def invalid_value(cls, field: str, value: object, reason: str) -> "ConfigError":
        return cls(f"invalid value for {field!r} ({value!r}): {reason}")


class ViewNotFoundError(ProtolsError):
    """No workspace owns the URI, or a workspace reference went stale."""

    def __init__(self, message: str, *, uri: str | None = None) -> None:
        super().__init__(message)
        self.uri = uri


class ResolutionError(ProtolsError):
    """An imported file could not be read from disk."""

    def __init__(self, message: str, *, path: str) -> None:
        super().__init__(message)
        self.path = path


class ProtoParseError(ProtolsError):
    def __init__(self, message: str, *, line: int, column: int) -> None:
        super().__init__(f"{line}:{column}: {message}")
        self.reason = message
        self.line = line
        self.column = column


class InvalidStateError(ProtolsError):
    """A lifecycle request arrived in the wrong server state."""

    def __init__(self, message: str, *, state: str) -> None:
        super().__init__(message)
        self.state = state
