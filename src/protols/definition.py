"""Go-to-definition for field types.

Resolution is line based: the field whose declaration starts on the cursor
line is used regardless of the cursor column. Every miss yields an empty
result; the editor treats it as "no definition available".
"""

from __future__ import annotations

from dataclasses import dataclass

from protols.exceptions import ResolutionError
from protols.logging import get_logger
from protols.proto.ast import Position
from protols.proto.registry import EnumSymbols, MessageSymbols, ProtoRegistry
from protols.source.view import View

logger = get_logger(__name__)

Declaration = MessageSymbols | EnumSymbols


@dataclass(frozen=True)
class DefinitionLocation:
    uri: str
    line: int
    column: int

    @classmethod
    def of(cls, uri: str, position: Position) -> "DefinitionLocation":
        return cls(uri=uri, line=position.line, column=position.column)


def lookup_path(registry: ProtoRegistry, parts: list[str]) -> Declaration | None:
    """Resolve ``Outer.Inner`` style paths from the top level of ``registry``."""
    if not parts:
        return None
    head, rest = parts[0], parts[1:]
    if not rest:
        return registry.get_message_by_name(head) or registry.get_enum_by_name(head)
    message = registry.get_message_by_name(head)
    return _descend(message, rest)


def _descend(message: MessageSymbols | None, parts: list[str]) -> Declaration | None:
    for index, part in enumerate(parts):
        if message is None:
            return None
        if index == len(parts) - 1:
            return message.get_nested_message_by_name(part) or message.get_nested_enum_by_name(part)
        message = message.get_nested_message_by_name(part)
    return message


def _strip_package(type_name: str, package: str | None) -> list[str] | None:
    if not package or not type_name.startswith(package + "."):
        return None
    return type_name[len(package) + 1 :].split(".")


def find_definition(view: View, uri: str, line: int) -> list[DefinitionLocation]:
    """Locate the declaration of the type of the field starting on ``line``.

    ``line`` is 1-based, matching declaration tree positions.
    """
    document = view.get_file(uri)
    registry = document.registry
    if registry is None:
        logger.debug("no registry", uri=document.uri)
        return []
    found = registry.find_message_field(line)
    if found is None:
        logger.debug("field not found", uri=document.uri, line=line)
        return []
    scopes, field = found
    type_name = field.type.lstrip(".")
    parts = type_name.split(".")

    if len(parts) == 1:
        target = None
        for scope in reversed(scopes):
            target = _descend(scope, parts)
            if target is not None:
                break
        else:
            target = lookup_path(registry, parts)
        if target is None:
            logger.debug("type not found", type=type_name)
            return []
        return [DefinitionLocation.of(document.uri, target.position)]

    target = lookup_path(registry, parts)
    if target is None:
        local = _strip_package(type_name, registry.package_name)
        if local is not None:
            target = lookup_path(registry, local)
    if target is not None:
        return [DefinitionLocation.of(document.uri, target.position)]

    for imported in registry.imports:
        try:
            imported_document = view.find_file_by_relative_path(imported.filename)
        except ResolutionError as exc:
            logger.warning("failed to find file by import path", path=exc.path, error=str(exc))
            continue
        imported_registry = imported_document.registry
        if imported_registry is None or imported_registry.package_name is None:
            continue
        remainder = _strip_package(type_name, imported_registry.package_name)
        if remainder is None:
            continue
        target = lookup_path(imported_registry, remainder)
        if target is not None:
            return [DefinitionLocation.of(imported_document.uri, target.position)]
    logger.debug("no import declares type", type=type_name)
    return []
