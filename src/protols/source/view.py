"""A workspace folder and the documents it owns."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

from protols.exceptions import ResolutionError
from protols.logging import get_logger
from protols.proto.types import PROTO_SUFFIX
from protols.source.document import Document, DocumentState
from protols.source.rwlock import RWLock
from protols.source.uri import basename, normalize_uri, path_to_uri, uri_to_path

logger = get_logger(__name__)


class View:
    """One workspace root.

    Documents are tracked by URI and, as a secondary index, by basename so a
    file reached through a second URI (a symlink, another spelling of the
    path) resolves to the document already tracked for it.
    """

    def __init__(
        self,
        view_id: int,
        name: str,
        folder: str,
        *,
        include_paths: Iterable[str | Path] = (),
        exclude_dirs: Iterable[str] = (),
    ) -> None:
        self.id = view_id
        self.name = name
        self.folder = normalize_uri(folder)
        self.root = uri_to_path(self.folder)
        self.include_paths = tuple(self.root / Path(path) for path in include_paths)
        self.exclude_dirs = frozenset(exclude_dirs)
        self._files: dict[str, Document] = {}
        self._by_basename: dict[str, list[Document]] = {}
        self._lock = RWLock()

    def __repr__(self) -> str:
        return f"View(id={self.id}, name={self.name!r}, folder={self.folder!r})"

    def find_file(self, uri: str) -> Document | None:
        """Return the tracked document for ``uri`` without creating one."""
        uri = normalize_uri(uri)
        with self._lock.read():
            return self._files.get(uri)

    def get_file(self, uri: str) -> Document:
        """Return the document for ``uri``, tracking a new empty one on a miss."""
        uri = normalize_uri(uri)
        with self._lock.read():
            document = self._files.get(uri)
        if document is not None:
            return document
        with self._lock.write():
            document = self._files.get(uri)
            if document is not None:
                return document
            document = self._same_file(uri)
            if document is None:
                document = Document(uri)
                self._by_basename.setdefault(basename(uri), []).append(document)
            else:
                logger.debug("aliased document", uri=uri, target=document.uri)
            self._files[uri] = document
            return document

    def files(self) -> list[Document]:
        with self._lock.read():
            unique = {id(document): document for document in self._files.values()}
        return list(unique.values())

    def open_file(self, uri: str, text: str | bytes) -> Document:
        document = self.get_file(uri)
        document.open(text)
        return document

    def set_content(self, uri: str, data: str | bytes | None) -> Document:
        document = self.get_file(uri)
        document.set_content(data)
        return document

    def save_file(self, uri: str) -> Document:
        document = self.get_file(uri)
        document.save()
        return document

    def close_file(self, uri: str) -> Document:
        """Mark the document closed; its content and registry stay indexed."""
        document = self.get_file(uri)
        document.close()
        return document

    def find_file_by_relative_path(self, path: str) -> Document:
        """Resolve an import path against the root, then each include path.

        Raises :class:`ResolutionError` when no candidate is tracked and none
        can be read from disk.
        """
        candidates = self._import_candidates(path)
        for candidate in candidates:
            document = self.find_file(path_to_uri(candidate))
            if document is not None and document.state is not DocumentState.UNLOADED:
                return document
        errors: list[str] = []
        for candidate in candidates:
            try:
                data = candidate.read_bytes()
            except OSError as exc:
                errors.append(f"{candidate}: {exc.strerror or exc}")
                continue
            document = self.get_file(path_to_uri(candidate))
            if document.state is DocumentState.UNLOADED:
                document.load(data)
                logger.debug("loaded import", path=path, uri=document.uri)
            return document
        raise ResolutionError(f"cannot read import {path!r}: {'; '.join(errors)}", path=path)

    def populate(self) -> int:
        """Index every schema file under the root that is not tracked yet."""
        loaded = 0
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(
                name for name in dirnames if not name.startswith(".") and name not in self.exclude_dirs
            )
            for filename in sorted(filenames):
                if not filename.endswith(PROTO_SUFFIX):
                    continue
                file_path = Path(dirpath) / filename
                document = self.get_file(path_to_uri(file_path))
                if document.state is not DocumentState.UNLOADED:
                    continue
                try:
                    document.load(file_path.read_bytes())
                except OSError as exc:
                    logger.warning("failed to read file", path=str(file_path), error=str(exc))
                    continue
                loaded += 1
        logger.info("populated view", view=self.name, folder=self.folder, files=loaded)
        return loaded

    def shutdown(self) -> None:
        with self._lock.write():
            self._files.clear()
            self._by_basename.clear()

    def _import_candidates(self, path: str) -> list[Path]:
        relative = Path(path)
        if relative.is_absolute():
            return [relative]
        return [self.root / relative, *(include / relative for include in self.include_paths)]

    def _same_file(self, uri: str) -> Document | None:
        # Caller holds the write lock.
        candidates = self._by_basename.get(basename(uri))
        if not candidates:
            return None
        try:
            target = uri_to_path(uri).stat()
        except OSError:
            return None
        for document in candidates:
            try:
                existing = document.path.stat()
            except OSError:
                continue
            if (existing.st_dev, existing.st_ino) == (target.st_dev, target.st_ino):
                return document
        return None
