"""Declaration tree for one parsed ``.proto`` file.

Every node is immutable and carries the 1-based position of its first token.
The ``*Element`` unions are closed: code dispatching over them handles each
member explicitly and ignores nothing silently except the kinds it has no use
for (options, reserved ranges).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TypeAlias, Union


@dataclass(frozen=True, order=True)
class Position:
    line: int
    column: int


@dataclass(frozen=True)
class Syntax:
    value: str
    position: Position


@dataclass(frozen=True)
class Package:
    name: str
    position: Position


@dataclass(frozen=True)
class Import:
    filename: str
    position: Position
    kind: str = ""


@dataclass(frozen=True)
class Option:
    name: str
    constant: str
    position: Position


@dataclass(frozen=True)
class Reserved:
    position: Position
    ranges: tuple[str, ...] = ()


@dataclass(frozen=True)
class NormalField:
    name: str
    type: str
    sequence: int
    position: Position
    label: str = ""
    options: tuple[Option, ...] = ()

    @property
    def repeated(self) -> bool:
        return self.label == "repeated"


@dataclass(frozen=True)
class MapField:
    name: str
    key_type: str
    type: str
    sequence: int
    position: Position
    options: tuple[Option, ...] = ()


@dataclass(frozen=True)
class OneofField:
    name: str
    type: str
    sequence: int
    position: Position
    options: tuple[Option, ...] = ()


@dataclass(frozen=True)
class Oneof:
    name: str
    position: Position
    elements: tuple[Union[OneofField, Option], ...] = ()


@dataclass(frozen=True)
class EnumField:
    name: str
    integer: int
    position: Position
    options: tuple[Option, ...] = ()


@dataclass(frozen=True)
class Enum:
    name: str
    position: Position
    elements: tuple[Union[EnumField, Option, Reserved], ...] = ()


@dataclass(frozen=True)
class RPC:
    name: str
    request_type: str
    returns_type: str
    position: Position
    streams_request: bool = False
    streams_returns: bool = False
    options: tuple[Option, ...] = ()


@dataclass(frozen=True)
class Service:
    name: str
    position: Position
    elements: tuple[Union[RPC, Option], ...] = ()


@dataclass(frozen=True)
class Extend:
    name: str
    position: Position
    elements: tuple[NormalField, ...] = ()


@dataclass(frozen=True)
class Message:
    name: str
    position: Position
    elements: tuple["MessageElement", ...] = ()


MessageElement: TypeAlias = Union[
    NormalField, MapField, Oneof, Message, Enum, Extend, Option, Reserved
]
EnumElement: TypeAlias = Union[EnumField, Option, Reserved]
ServiceElement: TypeAlias = Union[RPC, Option]
Element: TypeAlias = Union[Syntax, Package, Import, Option, Message, Enum, Service, Extend]


@dataclass(frozen=True)
class Proto:
    filename: str = ""
    elements: tuple[Element, ...] = field(default_factory=tuple)
