"""Connection-scoped state: the set of workspace views and open files."""

from __future__ import annotations

import itertools
import threading
from pathlib import Path
from typing import Iterable

from protols.exceptions import ViewNotFoundError
from protols.logging import get_logger
from protols.source.document import Document
from protols.source.rwlock import RWLock
from protols.source.uri import is_under, normalize_uri
from protols.source.view import View

logger = get_logger(__name__)


class IdCounter:
    """Monotonic id source handed to whatever creates sessions or views."""

    def __init__(self, start: int = 1) -> None:
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def __call__(self) -> int:
        with self._lock:
            return next(self._counter)


class ViewCache:
    """URI to view memo for one topology generation.

    ``invalidate`` is the single way to drop entries; it also bumps the
    generation so a lookup computed against the old view set cannot be stored
    after the set has changed.
    """

    def __init__(self) -> None:
        self._entries: dict[str, View] = {}
        self.generation = 0

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, uri: str) -> View | None:
        return self._entries.get(uri)

    def put(self, uri: str, view: View, generation: int) -> bool:
        if generation != self.generation:
            return False
        self._entries[uri] = view
        return True

    def invalidate(self) -> None:
        self._entries.clear()
        self.generation += 1


class Session:
    def __init__(self, session_id: int, view_ids: IdCounter | None = None) -> None:
        self.id = session_id
        self._view_ids = view_ids or IdCounter()
        self._views: list[View] = []
        self._cache = ViewCache()
        self._lock = RWLock()
        self._open_files: set[str] = set()
        self._open_lock = threading.Lock()

    def __repr__(self) -> str:
        return f"Session(id={self.id}, views={len(self._views)})"

    def view(self, name: str) -> View | None:
        with self._lock.read():
            for view in self._views:
                if view.name == name:
                    return view
        return None

    def views(self) -> list[View]:
        with self._lock.read():
            return list(self._views)

    def new_view(
        self,
        name: str,
        folder: str,
        *,
        include_paths: Iterable[str | Path] = (),
        exclude_dirs: Iterable[str] = (),
    ) -> View:
        view = View(
            self._view_ids(),
            name,
            folder,
            include_paths=include_paths,
            exclude_dirs=exclude_dirs,
        )
        self.add_view(view)
        return view

    def add_view(self, view: View) -> None:
        with self._lock.write():
            self._views.append(view)
            self._cache.invalidate()
        logger.info("added view", session=self.id, view=view.name, folder=view.folder)

    def remove_view(self, view: View) -> None:
        with self._lock.write():
            self._cache.invalidate()
            for index, candidate in enumerate(self._views):
                if candidate is view:
                    del self._views[index]
                    break
            else:
                raise ViewNotFoundError(
                    f"view {view.name} for {view.folder} not found", uri=view.folder
                )
        view.shutdown()
        logger.info("removed view", session=self.id, view=view.name)

    def view_of(self, uri: str) -> View | None:
        """Return the view whose folder is the longest prefix of ``uri``.

        Equal-length folders resolve to the first registered view. A URI under
        no folder falls back to the first view; ``None`` means there are no
        views at all.
        """
        uri = normalize_uri(uri)
        with self._lock.read():
            cached = self._cache.get(uri)
            if cached is not None:
                return cached
            generation = self._cache.generation
            best = self._best_view(uri)
        if best is None:
            return None
        with self._lock.write():
            self._cache.put(uri, best, generation)
        return best

    def require_view(self, uri: str) -> View:
        view = self.view_of(uri)
        if view is None:
            raise ViewNotFoundError(f"view of {uri} not found", uri=uri)
        return view

    def _best_view(self, uri: str) -> View | None:
        longest: View | None = None
        for view in self._views:
            if not is_under(uri, view.folder):
                continue
            if longest is None or len(view.folder) > len(longest.folder):
                longest = view
        if longest is not None:
            return longest
        return self._views[0] if self._views else None

    def is_open(self, uri: str) -> bool:
        with self._open_lock:
            return normalize_uri(uri) in self._open_files

    def open_files(self) -> frozenset[str]:
        with self._open_lock:
            return frozenset(self._open_files)

    def did_open(self, uri: str, text: str | bytes) -> Document:
        uri = normalize_uri(uri)
        document = self.require_view(uri).open_file(uri, text)
        with self._open_lock:
            self._open_files.add(uri)
        return document

    def did_change(self, uri: str, text: str | bytes) -> Document:
        return self.require_view(uri).set_content(uri, text)

    def did_save(self, uri: str) -> Document:
        return self.require_view(uri).save_file(uri)

    def did_close(self, uri: str) -> Document:
        uri = normalize_uri(uri)
        with self._open_lock:
            self._open_files.discard(uri)
        return self.require_view(uri).close_file(uri)

    def shutdown(self) -> None:
        with self._lock.write():
            views = self._views
            for view in views:
                view.shutdown()
            self._views = []
            self._cache.invalidate()
        with self._open_lock:
            self._open_files.clear()
        logger.info("session shut down", session=self.id, views=len(views))
