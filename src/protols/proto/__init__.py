"""Protocol Buffers schema parsing and symbol indexing."""

from protols.proto.parser import parse
from protols.proto.registry import ProtoRegistry, build_registry, parse_registry
from protols.proto.types import BUILTIN_TYPES

__all__ = ["BUILTIN_TYPES", "ProtoRegistry", "build_registry", "parse", "parse_registry"]
