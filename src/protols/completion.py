from __future__ import annotations

import re
from dataclasses import dataclass

from protols.proto.types import BUILTIN_TYPES
from protols.source.document import Document

KIND_TYPE = "type"
KIND_MESSAGE = "message"
KIND_ENUM = "enum"

_RPC_LINE_RE = re.compile(r"^rpc\b")


@dataclass(frozen=True)
class CompletionCandidate:
    label: str
    kind: str


def read_line(text: str, line: int) -> str:
    """Return the 1-based ``line`` of ``text``, or ``""`` past either end."""
    if line < 1:
        return ""
    lines = text.split("\n")
    if line > len(lines):
        return ""
    return lines[line - 1]


def is_rpc_line(text: str) -> bool:
    return _RPC_LINE_RE.match(text.strip()) is not None


def complete(document: Document, line: int) -> list[CompletionCandidate]:
    """Type names for the cursor on 1-based ``line``.

    Scalars and enums are left out on ``rpc`` lines, where only message types
    are valid. Fields inside a message body and symbols from other files are
    not offered yet.
    """
    snapshot = document.snapshot()
    text = (snapshot.content or b"").decode("utf-8", errors="replace")
    rpc = is_rpc_line(read_line(text, line))

    items: list[CompletionCandidate] = []
    if not rpc:
        items.extend(CompletionCandidate(name, KIND_TYPE) for name in BUILTIN_TYPES)
    registry = snapshot.registry
    if registry is None:
        return items
    items.extend(CompletionCandidate(message.name, KIND_MESSAGE) for message in registry.messages)
    if not rpc:
        items.extend(CompletionCandidate(enum.name, KIND_ENUM) for enum in registry.enums)
    return items
