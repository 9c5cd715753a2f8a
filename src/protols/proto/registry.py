"""Name and line indexes over a parsed ``.proto`` file.

A :class:`ProtoRegistry` is built in one pass from a declaration tree and is
never mutated afterwards, so lookups need no locking. Names are unique per
kind within their scope: when a file declares the same name twice the later
declaration replaces the earlier one in the name map. Line maps are keyed by
the 1-based line of a declaration's first token.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

from protols.proto import ast
from protols.proto.parser import parse


@dataclass(frozen=True)
class OneofSymbols:
    node: ast.Oneof
    fields_by_name: dict[str, ast.OneofField] = field(default_factory=dict)
    fields_by_line: dict[int, ast.OneofField] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.node.name

    def get_field_by_name(self, name: str) -> ast.OneofField | None:
        return self.fields_by_name.get(name)

    def get_field_by_line(self, line: int) -> ast.OneofField | None:
        return self.fields_by_line.get(line)


def build_oneof(node: ast.Oneof) -> OneofSymbols:
    symbols = OneofSymbols(node=node)
    for element in node.elements:
        if isinstance(element, ast.OneofField):
            symbols.fields_by_name[element.name] = element
            symbols.fields_by_line[element.position.line] = element
    return symbols


@dataclass(frozen=True)
class EnumSymbols:
    node: ast.Enum
    fully_qualified_name: str
    fields: tuple[ast.EnumField, ...] = ()
    fields_by_name: dict[str, ast.EnumField] = field(default_factory=dict)
    fields_by_line: dict[int, ast.EnumField] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.node.name

    @property
    def position(self) -> ast.Position:
        return self.node.position

    def get_field_by_name(self, name: str) -> ast.EnumField | None:
        return self.fields_by_name.get(name)

    def get_field_by_line(self, line: int) -> ast.EnumField | None:
        return self.fields_by_line.get(line)


def build_enum(node: ast.Enum, scope: str = "") -> EnumSymbols:
    values = tuple(element for element in node.elements if isinstance(element, ast.EnumField))
    symbols = EnumSymbols(node=node, fully_qualified_name=_join(scope, node.name), fields=values)
    for value in values:
        symbols.fields_by_name[value.name] = value
        symbols.fields_by_line[value.position.line] = value
    return symbols


@dataclass(frozen=True)
class ServiceSymbols:
    node: ast.Service
    rpcs: tuple[ast.RPC, ...] = ()
    rpcs_by_name: dict[str, ast.RPC] = field(default_factory=dict)
    rpcs_by_line: dict[int, ast.RPC] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.node.name

    @property
    def position(self) -> ast.Position:
        return self.node.position

    def get_rpc_by_name(self, name: str) -> ast.RPC | None:
        return self.rpcs_by_name.get(name)

    def get_rpc_by_line(self, line: int) -> ast.RPC | None:
        return self.rpcs_by_line.get(line)


def build_service(node: ast.Service) -> ServiceSymbols:
    rpcs = tuple(element for element in node.elements if isinstance(element, ast.RPC))
    symbols = ServiceSymbols(node=node, rpcs=rpcs)
    for rpc in rpcs:
        symbols.rpcs_by_name[rpc.name] = rpc
        symbols.rpcs_by_line[rpc.position.line] = rpc
    return symbols


@dataclass(frozen=True)
class MessageSymbols:
    node: ast.Message
    fully_qualified_name: str
    nested_messages: tuple["MessageSymbols", ...] = ()
    nested_enums: tuple[EnumSymbols, ...] = ()
    oneofs: tuple[OneofSymbols, ...] = ()
    nested_messages_by_name: dict[str, "MessageSymbols"] = field(default_factory=dict)
    nested_enums_by_name: dict[str, EnumSymbols] = field(default_factory=dict)
    fields_by_name: dict[str, ast.NormalField] = field(default_factory=dict)
    oneofs_by_name: dict[str, OneofSymbols] = field(default_factory=dict)
    map_fields_by_name: dict[str, ast.MapField] = field(default_factory=dict)
    fields_by_line: dict[int, ast.NormalField] = field(default_factory=dict)
    oneofs_by_line: dict[int, OneofSymbols] = field(default_factory=dict)
    map_fields_by_line: dict[int, ast.MapField] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.node.name

    @property
    def position(self) -> ast.Position:
        return self.node.position

    def get_nested_message_by_name(self, name: str) -> MessageSymbols | None:
        return self.nested_messages_by_name.get(name)

    def get_nested_enum_by_name(self, name: str) -> EnumSymbols | None:
        return self.nested_enums_by_name.get(name)

    def get_field_by_name(self, name: str) -> ast.NormalField | None:
        return self.fields_by_name.get(name)

    def get_oneof_by_name(self, name: str) -> OneofSymbols | None:
        return self.oneofs_by_name.get(name)

    def get_map_field_by_name(self, name: str) -> ast.MapField | None:
        return self.map_fields_by_name.get(name)

    def get_field_by_line(self, line: int) -> ast.NormalField | None:
        return self.fields_by_line.get(line)

    def get_oneof_by_line(self, line: int) -> OneofSymbols | None:
        return self.oneofs_by_line.get(line)

    def get_map_field_by_line(self, line: int) -> ast.MapField | None:
        return self.map_fields_by_line.get(line)

    def walk(self) -> Iterator[MessageSymbols]:
        """Yield this message and every nested message, depth first."""
        yield self
        for nested in self.nested_messages:
            yield from nested.walk()

    def walk_scopes(
        self, outer: tuple[MessageSymbols, ...] = ()
    ) -> Iterator[tuple[MessageSymbols, ...]]:
        """Yield the chain of enclosing messages for this message and each nested one."""
        chain = (*outer, self)
        yield chain
        for nested in self.nested_messages:
            yield from nested.walk_scopes(chain)


def build_message(node: ast.Message, scope: str = "") -> MessageSymbols:
    qualified = _join(scope, node.name)
    nested_messages: list[MessageSymbols] = []
    nested_enums: list[EnumSymbols] = []
    oneofs: list[OneofSymbols] = []
    for element in node.elements:
        if isinstance(element, ast.Message):
            nested_messages.append(build_message(element, qualified))
        elif isinstance(element, ast.Enum):
            nested_enums.append(build_enum(element, qualified))
        elif isinstance(element, ast.Oneof):
            oneofs.append(build_oneof(element))

    symbols = MessageSymbols(
        node=node,
        fully_qualified_name=qualified,
        nested_messages=tuple(nested_messages),
        nested_enums=tuple(nested_enums),
        oneofs=tuple(oneofs),
    )
    for message in nested_messages:
        symbols.nested_messages_by_name[message.name] = message
    for enum in nested_enums:
        symbols.nested_enums_by_name[enum.name] = enum
    for oneof in oneofs:
        symbols.oneofs_by_name[oneof.name] = oneof
        symbols.oneofs_by_line[oneof.node.position.line] = oneof
    for element in node.elements:
        if isinstance(element, ast.NormalField):
            symbols.fields_by_name[element.name] = element
            symbols.fields_by_line[element.position.line] = element
        elif isinstance(element, ast.MapField):
            symbols.map_fields_by_name[element.name] = element
            symbols.map_fields_by_line[element.position.line] = element
    return symbols


MessageFieldNode = ast.NormalField | ast.OneofField | ast.MapField


@dataclass(frozen=True)
class ProtoRegistry:
    tree: ast.Proto
    packages: tuple[ast.Package, ...] = ()
    imports: tuple[ast.Import, ...] = ()
    messages: tuple[MessageSymbols, ...] = ()
    enums: tuple[EnumSymbols, ...] = ()
    services: tuple[ServiceSymbols, ...] = ()
    packages_by_name: dict[str, ast.Package] = field(default_factory=dict)
    messages_by_name: dict[str, MessageSymbols] = field(default_factory=dict)
    enums_by_name: dict[str, EnumSymbols] = field(default_factory=dict)
    services_by_name: dict[str, ServiceSymbols] = field(default_factory=dict)
    packages_by_line: dict[int, ast.Package] = field(default_factory=dict)
    messages_by_line: dict[int, MessageSymbols] = field(default_factory=dict)
    enums_by_line: dict[int, EnumSymbols] = field(default_factory=dict)
    services_by_line: dict[int, ServiceSymbols] = field(default_factory=dict)

    @property
    def package_name(self) -> str | None:
        """Name of the first ``package`` declaration, if any."""
        if not self.packages:
            return None
        return self.packages[0].name

    def get_package_by_name(self, name: str) -> ast.Package | None:
        return self.packages_by_name.get(name)

    def get_message_by_name(self, name: str) -> MessageSymbols | None:
        return self.messages_by_name.get(name)

    def get_enum_by_name(self, name: str) -> EnumSymbols | None:
        return self.enums_by_name.get(name)

    def get_service_by_name(self, name: str) -> ServiceSymbols | None:
        return self.services_by_name.get(name)

    def get_package_by_line(self, line: int) -> ast.Package | None:
        return self.packages_by_line.get(line)

    def get_message_by_line(self, line: int) -> MessageSymbols | None:
        return self.messages_by_line.get(line)

    def get_enum_by_line(self, line: int) -> EnumSymbols | None:
        return self.enums_by_line.get(line)

    def get_service_by_line(self, line: int) -> ServiceSymbols | None:
        return self.services_by_line.get(line)

    def get_message_field_by_line(self, line: int) -> MessageFieldNode | None:
        found = self.find_message_field(line)
        return found[1] if found is not None else None

    def find_message_field(
        self, line: int
    ) -> tuple[tuple[MessageSymbols, ...], MessageFieldNode] | None:
        """Return the field starting on ``line`` with its enclosing messages.

        The scope chain runs from the top-level message to the one declaring
        the field. Messages are searched in declaration order, outer before nested; the
        first hit wins when two fields share a line.
        """
        for message in self.messages:
            for scopes in message.walk_scopes():
                candidate = scopes[-1]
                found: MessageFieldNode | None = candidate.get_field_by_line(line)
                if found is None:
                    found = candidate.get_map_field_by_line(line)
                if found is None:
                    for oneof in candidate.oneofs:
                        found = oneof.get_field_by_line(line)
                        if found is not None:
                            break
                if found is not None:
                    return scopes, found
        return None

    def get_enum_field_by_line(self, line: int) -> ast.EnumField | None:
        for enum in self._all_enums():
            found = enum.get_field_by_line(line)
            if found is not None:
                return found
        return None

    def get_rpc_by_line(self, line: int) -> ast.RPC | None:
        for service in self.services:
            found = service.get_rpc_by_line(line)
            if found is not None:
                return found
        return None

    def _all_enums(self) -> Iterator[EnumSymbols]:
        yield from self.enums
        for message in self.messages:
            for candidate in message.walk():
                yield from candidate.nested_enums


def build_registry(tree: ast.Proto) -> ProtoRegistry:
    packages: list[ast.Package] = []
    imports: list[ast.Import] = []
    message_nodes: list[ast.Message] = []
    enum_nodes: list[ast.Enum] = []
    services: list[ServiceSymbols] = []
    for element in tree.elements:
        if isinstance(element, ast.Package):
            packages.append(element)
        elif isinstance(element, ast.Import):
            imports.append(element)
        elif isinstance(element, ast.Message):
            message_nodes.append(element)
        elif isinstance(element, ast.Enum):
            enum_nodes.append(element)
        elif isinstance(element, ast.Service):
            services.append(build_service(element))

    scope = packages[0].name if packages else ""
    registry = ProtoRegistry(
        tree=tree,
        packages=tuple(packages),
        imports=tuple(imports),
        messages=tuple(build_message(node, scope) for node in message_nodes),
        enums=tuple(build_enum(node, scope) for node in enum_nodes),
        services=tuple(services),
    )
    for package in registry.packages:
        registry.packages_by_name[package.name] = package
        registry.packages_by_line[package.position.line] = package
    for message in registry.messages:
        registry.messages_by_name[message.name] = message
        registry.messages_by_line[message.position.line] = message
    for enum in registry.enums:
        registry.enums_by_name[enum.name] = enum
        registry.enums_by_line[enum.position.line] = enum
    for service in registry.services:
        registry.services_by_name[service.name] = service
        registry.services_by_line[service.position.line] = service
    return registry


def parse_registry(data: bytes | str, filename: str = "") -> ProtoRegistry:
    return build_registry(parse(data, filename))


def _join(scope: str, name: str) -> str:
    return f"{scope}.{name}" if scope else name
