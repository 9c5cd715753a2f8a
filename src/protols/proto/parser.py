"""proto2/proto3 schema parsing on a lark LALR grammar.

``parse`` is a pure function from source text to a :class:`~protols.proto.ast.Proto`
tree. Lexer and parser errors, and malformed literals found while building the
tree, all surface as :class:`~protols.exceptions.ProtoParseError` carrying the
1-based position of the offending token.
"""

from __future__ import annotations

from lark import Lark, Token, Transformer
from lark.exceptions import UnexpectedCharacters, UnexpectedInput, UnexpectedToken, VisitError

from protols.exceptions import ProtoParseError
from protols.proto.ast import (
    RPC,
    Enum,
    EnumField,
    Extend,
    Import,
    MapField,
    Message,
    NormalField,
    Oneof,
    OneofField,
    Option,
    Package,
    Position,
    Proto,
    Reserved,
    Service,
    Syntax,
)
from protols.proto.types import MAP_KEY_TYPES

PROTO_GRAMMAR = r"""
start: _top*
_top: syntax | package | import_decl | option_stmt | message | enum | service | extend | ";"

syntax: (SYNTAX | EDITION) "=" strlit ";"
package: PACKAGE NAME ";"
import_decl: IMPORT [import_kind] strlit ";"
import_kind: PUBLIC | WEAK

option_stmt: OPTION option_name "=" constant ";"
option_name: _option_part+
_option_part: NAME | ext_name
!ext_name: "(" NAME ")"
field_options: "[" option_assign ("," option_assign)* "]"
option_assign: option_name "=" constant
constant: [SIGN] (NAME | NUMBER) | strlit | aggregate
!aggregate: "{" (NAME | NUMBER | STRING | SIGN | ":" | "," | ";" | "[" | "]" | "<" | ">" | aggregate)* "}"

message: MESSAGE NAME message_body
message_body: "{" _message_item* "}"
_message_item: field | map_field | group | oneof | message | enum | extend
             | option_stmt | reserved | ";"
label: REPEATED | OPTIONAL | REQUIRED
field: [label] NAME NAME "=" int_lit [field_options] ";"
group: [label] GROUP NAME "=" int_lit [field_options] message_body
map_field: MAP "<" NAME "," NAME ">" NAME "=" int_lit [field_options] ";"
oneof: ONEOF NAME "{" _oneof_item* "}"
_oneof_item: oneof_field | option_stmt | ";"
oneof_field: NAME NAME "=" int_lit [field_options] ";"
reserved: (RESERVED | EXTENSIONS) _reserved_item ("," _reserved_item)* [field_options] ";"
_reserved_item: reserved_range | STRING | NAME
reserved_range: int_lit [TO (int_lit | MAX)]
extend: EXTEND NAME message_body

enum: ENUM NAME "{" _enum_item* "}"
_enum_item: enum_value | option_stmt | reserved | ";"
enum_value: NAME "=" int_lit [field_options] ";"

service: SERVICE NAME "{" _service_item* "}"
_service_item: rpc | option_stmt | ";"
rpc: RPC NAME rpc_type RETURNS rpc_type (rpc_body | ";")
rpc_type: "(" [STREAM] NAME ")"
rpc_body: "{" (option_stmt | ";")* "}"

int_lit: [SIGN] NUMBER
strlit: STRING+

SYNTAX: "syntax"
EDITION: "edition"
PACKAGE: "package"
IMPORT: "import"
PUBLIC: "public"
WEAK: "weak"
OPTION: "option"
MESSAGE: "message"
ENUM: "enum"
SERVICE: "service"
RPC: "rpc"
RETURNS: "returns"
STREAM: "stream"
ONEOF: "oneof"
MAP: "map"
GROUP: "group"
EXTEND: "extend"
RESERVED: "reserved"
EXTENSIONS: "extensions"
TO: "to"
MAX: "max"
REPEATED: "repeated"
OPTIONAL: "optional"
REQUIRED: "required"

SIGN: /[-+]/
NAME: /\.?[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*/
NUMBER: /0[xX][0-9a-fA-F]+|(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?/
STRING: /"(?:[^"\\\n]|\\.)*"|'(?:[^'\\\n]|\\.)*'/

LINE_COMMENT: /\/\/[^\n]*/
BLOCK_COMMENT: /\/\*[\s\S]*?\*\//

%import common.WS
%ignore WS
%ignore LINE_COMMENT
%ignore BLOCK_COMMENT
"""

_PARSER = Lark(PROTO_GRAMMAR, parser="lalr")


def _position(token: Token) -> Position:
    return Position(token.line, token.column)


def _unquote(token: Token) -> str:
    body = token[1:-1]
    if "\\" not in body:
        return body
    try:
        return body.encode("latin-1", "backslashreplace").decode("unicode_escape")
    except ValueError as exc:
        raise ProtoParseError(
            f"invalid escape in string literal: {exc}", line=token.line, column=token.column
        ) from None


def _parse_int(token: Token) -> int:
    lowered = token.lower()
    try:
        if lowered.startswith("0x"):
            return int(lowered, 16)
        if len(lowered) > 1 and lowered.startswith("0"):
            return int(lowered, 8)
        return int(lowered, 10)
    except ValueError:
        raise ProtoParseError(
            f"expected integer, found {str(token)!r}", line=token.line, column=token.column
        ) from None


def _end_position(text: str) -> tuple[int, int]:
    lines = text.split("\n")
    return len(lines), len(lines[-1]) + 1


class _TreeBuilder(Transformer):
    """Maps lark parse trees onto declaration tree nodes."""

    def start(self, children):
        return tuple(children)

    # literals

    def strlit(self, children):
        return "".join(_unquote(token) for token in children)

    def int_lit(self, children):
        sign, number = children
        value = _parse_int(number)
        return -value if sign == "-" else value

    def constant(self, children):
        return "".join(str(child) for child in children if child is not None)

    def aggregate(self, children):
        return " ".join(str(child) for child in children)

    # options

    def ext_name(self, children):
        paren, name, _ = children
        return Token.new_borrow_pos("NAME", f"({name})", paren)

    def option_name(self, children):
        return Token.new_borrow_pos("NAME", "".join(children), children[0])

    def option_stmt(self, children):
        keyword, name, constant = children
        return Option(name=str(name), constant=constant, position=_position(keyword))

    def option_assign(self, children):
        name, constant = children
        return Option(name=str(name), constant=constant, position=_position(name))

    def field_options(self, children):
        return tuple(children)

    # top level

    def syntax(self, children):
        keyword, value = children
        return Syntax(value=value, position=_position(keyword))

    def package(self, children):
        keyword, name = children
        return Package(name=str(name), position=_position(keyword))

    def import_kind(self, children):
        return str(children[0])

    def import_decl(self, children):
        keyword, kind, filename = children
        return Import(filename=filename, position=_position(keyword), kind=kind or "")

    # messages

    def label(self, children):
        return children[0]

    def message_body(self, children):
        elements = []
        for child in children:
            if isinstance(child, list):
                elements.extend(child)
            else:
                elements.append(child)
        return tuple(elements)

    def message(self, children):
        keyword, name, body = children
        return Message(name=str(name), position=_position(keyword), elements=body)

    def field(self, children):
        label, type_name, name, sequence, options = children
        return NormalField(
            name=str(name),
            type=str(type_name),
            sequence=sequence,
            position=_position(label or type_name),
            label=str(label or ""),
            options=options or (),
        )

    def group(self, children):
        label, keyword, name, sequence, options, body = children
        field = NormalField(
            name=name.lower(),
            type=str(name),
            sequence=sequence,
            position=_position(label or keyword),
            label=str(label or ""),
            options=options or (),
        )
        return [field, Message(name=str(name), position=_position(name), elements=body)]

    def map_field(self, children):
        keyword, key_type, value_type, name, sequence, options = children
        if key_type not in MAP_KEY_TYPES:
            raise ProtoParseError(
                f"invalid map key type, found {str(key_type)!r}",
                line=key_type.line,
                column=key_type.column,
            )
        return MapField(
            name=str(name),
            key_type=str(key_type),
            type=str(value_type),
            sequence=sequence,
            position=_position(keyword),
            options=options or (),
        )

    def oneof_field(self, children):
        type_name, name, sequence, options = children
        return OneofField(
            name=str(name),
            type=str(type_name),
            sequence=sequence,
            position=_position(type_name),
            options=options or (),
        )

    def oneof(self, children):
        keyword, name, *elements = children
        return Oneof(name=str(name), position=_position(keyword), elements=tuple(elements))

    def reserved_range(self, children):
        return [str(child) for child in children if child is not None]

    def reserved(self, children):
        keyword, *items = children
        ranges: list[str] = ["extensions"] if keyword.type == "EXTENSIONS" else []
        for item in items:
            if isinstance(item, list):
                ranges.extend(item)
            elif isinstance(item, Token):
                ranges.append(_unquote(item) if item.type == "STRING" else str(item))
        return Reserved(position=_position(keyword), ranges=tuple(ranges))

    def extend(self, children):
        keyword, name, body = children
        fields = tuple(element for element in body if isinstance(element, NormalField))
        return Extend(name=str(name), position=_position(keyword), elements=fields)

    # enums

    def enum_value(self, children):
        name, integer, options = children
        return EnumField(
            name=str(name), integer=integer, position=_position(name), options=options or ()
        )

    def enum(self, children):
        keyword, name, *elements = children
        return Enum(name=str(name), position=_position(keyword), elements=tuple(elements))

    # services

    def rpc_type(self, children):
        stream, name = children
        return str(name), stream is not None

    def rpc_body(self, children):
        return tuple(children)

    def rpc(self, children):
        keyword, name, request, _, returns, *body = children
        request_type, streams_request = request
        returns_type, streams_returns = returns
        return RPC(
            name=str(name),
            request_type=request_type,
            returns_type=returns_type,
            position=_position(keyword),
            streams_request=streams_request,
            streams_returns=streams_returns,
            options=body[0] if body else (),
        )

    def service(self, children):
        keyword, name, *elements = children
        return Service(name=str(name), position=_position(keyword), elements=tuple(elements))


def _syntax_error(text: str, exc: UnexpectedInput) -> ProtoParseError:
    if isinstance(exc, UnexpectedToken):
        expected = ", ".join(sorted(exc.expected))
        if exc.token.type == "$END":
            line, column = _end_position(text)
            return ProtoParseError(
                f"unexpected end of file, expected {expected}", line=line, column=column
            )
        return ProtoParseError(
            f"unexpected {str(exc.token)!r}, expected {expected}",
            line=exc.line,
            column=exc.column,
        )
    if isinstance(exc, UnexpectedCharacters):
        if text.startswith("/*", exc.pos_in_stream):
            reason = "unterminated block comment"
        else:
            reason = f"unexpected character {exc.char!r}"
        return ProtoParseError(reason, line=exc.line, column=exc.column)
    line, column = _end_position(text)
    return ProtoParseError("unexpected end of file", line=line, column=column)


def parse(data: bytes | str, filename: str = "") -> Proto:
    """Parse schema source into a declaration tree."""
    text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
    try:
        tree = _PARSER.parse(text)
    except UnexpectedInput as exc:
        raise _syntax_error(text, exc) from None
    try:
        elements = _TreeBuilder().transform(tree)
    except VisitError as exc:
        if isinstance(exc.orig_exc, ProtoParseError):
            raise exc.orig_exc from None
        raise
    return Proto(filename=filename, elements=elements)
