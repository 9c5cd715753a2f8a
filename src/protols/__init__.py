"""Language server for Protocol Buffers schema files."""

from protols.exceptions import (
    ConfigError,
    InvalidStateError,
    ProtolsError,
    ProtoParseError,
    ResolutionError,
    ViewNotFoundError,
)

__all__ = [
    "__version__",
    "ConfigError",
    "InvalidStateError",
    "ProtolsError",
    "ProtoParseError",
    "ResolutionError",
    "ViewNotFoundError",
]

__version__ = "0.1.0"
