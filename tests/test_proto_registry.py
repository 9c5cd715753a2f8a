from __future__ import annotations

import textwrap

import pytest

from protols.exceptions import ProtoParseError
from protols.proto import BUILTIN_TYPES, parse_registry
from protols.proto.types import is_builtin_type

from tests.proto_sources import MAIN_PROTO


def test_registry_name_and_line_maps() -> None:
    registry = parse_registry(MAIN_PROTO)
    assert registry.package_name == "a"
    assert [message.name for message in registry.messages] == ["Foo", "Bar"]
    assert registry.get_message_by_name("Bar").position.line == 22
    assert registry.get_message_by_line(6).name == "Foo"
    assert registry.get_enum_by_name("Kind").position.line == 24
    assert registry.get_service_by_name("Svc").position.line == 28
    assert registry.get_package_by_line(2).name == "a"
    assert [imported.filename for imported in registry.imports] == ["b.proto"]
    assert registry.get_message_by_name("Nope") is None
    assert registry.get_message_by_line(7) is None


def test_fully_qualified_names_follow_package_and_nesting() -> None:
    registry = parse_registry(MAIN_PROTO)
    foo = registry.get_message_by_name("Foo")
    assert foo.fully_qualified_name == "a.Foo"
    assert foo.get_nested_message_by_name("Inner").fully_qualified_name == "a.Foo.Inner"
    assert registry.get_enum_by_name("Kind").fully_qualified_name == "a.Kind"


def test_message_symbols_index_each_field_kind() -> None:
    foo = parse_registry(MAIN_PROTO).get_message_by_name("Foo")
    assert foo.get_field_by_name("bar").type == "Bar"
    assert foo.get_field_by_line(7).name == "w"
    assert foo.get_map_field_by_name("bars").key_type == "string"
    assert foo.get_map_field_by_line(13).type == "Bar"
    choice = foo.get_oneof_by_name("choice")
    assert foo.get_oneof_by_line(14) is choice
    assert choice.get_field_by_line(15).name == "k"
    assert foo.get_field_by_line(11) is None


def test_message_field_by_line_covers_nested_oneof_and_map() -> None:
    registry = parse_registry(MAIN_PROTO)
    assert registry.get_message_field_by_line(8).name == "bar"
    assert registry.get_message_field_by_line(13).name == "bars"
    assert registry.get_message_field_by_line(15).name == "k"
    scopes, field = registry.find_message_field(11)
    assert [scope.name for scope in scopes] == ["Foo", "Inner"]
    assert field.name == "kind"
    assert registry.get_message_field_by_line(29) is None


def test_enum_and_rpc_lookups_by_line() -> None:
    registry = parse_registry(
        textwrap.dedent(
            """\
            enum Top {
              A = 0;
            }
            message Holder {
              enum Nested {
                B = 0;
              }
            }
            service S {
              rpc Do(Holder) returns (Holder);
            }
            """
        )
    )
    assert registry.get_enum_field_by_line(2).name == "A"
    assert registry.get_enum_field_by_line(6).name == "B"
    assert registry.get_rpc_by_line(10).name == "Do"
    assert registry.get_rpc_by_line(9) is None
    top = registry.get_enum_by_name("Top")
    assert top.get_field_by_name("A").integer == 0
    assert registry.get_service_by_name("S").get_rpc_by_name("Do").returns_type == "Holder"


def test_duplicate_names_keep_the_last_declaration() -> None:
    registry = parse_registry("message A {}\nmessage A { int32 x = 1; }\n")
    assert len(registry.messages) == 2
    assert registry.get_message_by_name("A").position.line == 2
    assert registry.get_message_by_line(1).position.line == 1


def test_parse_registry_propagates_parse_errors() -> None:
    with pytest.raises(ProtoParseError):
        parse_registry("message A {")


def test_builtin_types_order() -> None:
    assert BUILTIN_TYPES[0] == "double"
    assert BUILTIN_TYPES[-1] == "bytes"
    assert len(BUILTIN_TYPES) == 15
    assert is_builtin_type("sfixed64")
    assert not is_builtin_type("Foo")
