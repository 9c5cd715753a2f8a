from __future__ import annotations

BUILTIN_TYPES: tuple[str, ...] = (
    "double",
    "float",
    "int32",
    "int64",
    "uint32",
    "uint64",
    "sint32",
    "sint64",
    "fixed32",
    "fixed64",
    "sfixed32",
    "sfixed64",
    "bool",
    "string",
    "bytes",
)

MAP_KEY_TYPES: frozenset[str] = frozenset(BUILTIN_TYPES) - {"double", "float", "bytes"}

PROTO_SUFFIX = ".proto"


def is_builtin_type(name: str) -> bool:
    return name in BUILTIN_TYPES
