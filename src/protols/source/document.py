"""Per-file content and index state.

A document never mutates its content or registry in place. Each content
change builds a new :class:`Snapshot` off-lock and swaps it in, so a reader
holding an older snapshot keeps a consistent (content, registry) pair for as
long as it needs one.
"""

from __future__ import annotations

import enum
import hashlib
import threading
from dataclasses import dataclass
from pathlib import Path

from protols.exceptions import ProtoParseError
from protols.logging import get_logger
from protols.proto.registry import ProtoRegistry, parse_registry
from protols.proto.types import PROTO_SUFFIX
from protols.source.uri import uri_to_path

logger = get_logger(__name__)


class DocumentState(enum.Enum):
    UNLOADED = "unloaded"
    LOADED = "loaded"
    INDEXED = "indexed"


def hash_content(content: bytes) -> str:
    return hashlib.sha1(content).hexdigest()


@dataclass(frozen=True)
class Snapshot:
    generation: int
    content: bytes | None = None
    hash: str = ""
    registry: ProtoRegistry | None = None
    parse_error: ProtoParseError | None = None

    @property
    def state(self) -> DocumentState:
        if self.content is None:
            return DocumentState.UNLOADED
        if self.registry is None:
            return DocumentState.LOADED
        return DocumentState.INDEXED


class Document:
    def __init__(self, uri: str) -> None:
        self.uri = uri
        self.path: Path = uri_to_path(uri)
        self.is_proto = self.path.suffix == PROTO_SUFFIX
        self._lock = threading.Lock()
        self._generation = 0
        self._snapshot = Snapshot(generation=0)
        self._is_open = False
        self._is_saved = True

    def __repr__(self) -> str:
        return f"Document({self.uri!r}, state={self.state.value})"

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def is_saved(self) -> bool:
        return self._is_saved

    @property
    def state(self) -> DocumentState:
        return self._snapshot.state

    @property
    def registry(self) -> ProtoRegistry | None:
        return self._snapshot.registry

    def snapshot(self) -> Snapshot:
        with self._lock:
            return self._snapshot

    def read(self) -> tuple[bytes, str]:
        snapshot = self.snapshot()
        return snapshot.content or b"", snapshot.hash

    def text(self) -> str:
        content, _ = self.read()
        return content.decode("utf-8", errors="replace")

    def open(self, text: str | bytes) -> Snapshot:
        """Mark the document open in the editor and install ``text``.

        Reopening with unchanged content keeps the current snapshot.
        """
        with self._lock:
            self._is_open = True
        return self.set_content(text, saved=True)

    def load(self, data: bytes) -> Snapshot:
        """Install content read from disk; the document stays closed."""
        return self.set_content(data, saved=True)

    def set_content(self, data: str | bytes | None, *, saved: bool = False) -> Snapshot:
        if isinstance(data, str):
            data = data.encode("utf-8")
        with self._lock:
            current = self._snapshot
            if data is not None and current.content == data:
                if saved:
                    self._is_saved = True
                return current
            self._generation += 1
            generation = self._generation
            self._is_saved = saved
        snapshot = self._build(data, generation)
        with self._lock:
            if snapshot.generation > self._snapshot.generation:
                self._snapshot = snapshot
            return self._snapshot

    def save(self) -> None:
        with self._lock:
            self._is_saved = True

    def close(self) -> None:
        with self._lock:
            self._is_open = False

    def _build(self, data: bytes | None, generation: int) -> Snapshot:
        if data is None:
            return Snapshot(generation=generation)
        digest = hash_content(data)
        if not data or not self.is_proto:
            return Snapshot(generation=generation, content=data, hash=digest)
        try:
            registry = parse_registry(data, filename=str(self.path))
        except ProtoParseError as exc:
            logger.debug("parse failed", uri=self.uri, line=exc.line, column=exc.column, reason=exc.reason)
            return Snapshot(generation=generation, content=data, hash=digest, parse_error=exc)
        return Snapshot(generation=generation, content=data, hash=digest, registry=registry)
