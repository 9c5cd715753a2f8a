from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest

from protols.exceptions import ViewNotFoundError
from protols.source import IdCounter, Session, View, ViewCache

_TIMEOUT = 5.0


@pytest.fixture
def nested(workspace: Path) -> Path:
    inner = workspace / "nested"
    inner.mkdir()
    (inner / "n.proto").write_text("message N {}\n")
    return inner


def test_longest_folder_prefix_wins_in_either_order(workspace: Path, nested: Path) -> None:
    uri = (nested / "n.proto").as_uri()
    for folders in ((workspace, nested), (nested, workspace)):
        session = Session(1)
        for folder in folders:
            session.new_view(folder.name, folder.as_uri())
        assert session.view_of(uri).name == "nested"
        assert session.view_of((workspace / "a.proto").as_uri()).name == "ws"


def test_prefix_match_respects_path_boundaries(tmp_path: Path) -> None:
    (tmp_path / "ws").mkdir()
    (tmp_path / "ws2").mkdir()
    session = Session(1)
    session.new_view("ws", (tmp_path / "ws").as_uri())
    session.new_view("ws2", (tmp_path / "ws2").as_uri())
    assert session.view_of((tmp_path / "ws2" / "x.proto").as_uri()).name == "ws2"


def test_equal_prefixes_resolve_to_first_view(workspace: Path) -> None:
    session = Session(1)
    first = session.new_view("first", workspace.as_uri())
    session.new_view("second", workspace.as_uri())
    assert session.view_of((workspace / "a.proto").as_uri()) is first


def test_uri_outside_every_folder_falls_back_to_first_view(workspace: Path, tmp_path: Path) -> None:
    session = Session(1)
    first = session.new_view("ws", workspace.as_uri())
    assert session.view_of((tmp_path / "elsewhere" / "z.proto").as_uri()) is first


def test_no_views_means_no_owner(workspace: Path) -> None:
    session = Session(1)
    uri = (workspace / "a.proto").as_uri()
    assert session.view_of(uri) is None
    with pytest.raises(ViewNotFoundError):
        session.did_open(uri, "message M {}\n")
    with pytest.raises(ViewNotFoundError):
        session.did_close(uri)


def test_adding_a_view_invalidates_cached_routing(workspace: Path, nested: Path) -> None:
    session = Session(1)
    outer = session.new_view("ws", workspace.as_uri())
    uri = (nested / "n.proto").as_uri()
    assert session.view_of(uri) is outer
    inner = session.new_view("nested", nested.as_uri())
    assert session.view_of(uri) is inner
    session.remove_view(inner)
    assert session.view_of(uri) is outer


def test_removing_a_stale_view_fails(workspace: Path) -> None:
    session = Session(1)
    view = session.new_view("ws", workspace.as_uri())
    session.remove_view(view)
    with pytest.raises(ViewNotFoundError):
        session.remove_view(view)
    stranger = View(99, "stranger", workspace.as_uri())
    with pytest.raises(ViewNotFoundError):
        session.remove_view(stranger)


def test_views_by_name_and_injected_ids(workspace: Path, nested: Path) -> None:
    ids = IdCounter(start=10)
    session = Session(1, ids)
    first = session.new_view("ws", workspace.as_uri())
    second = session.new_view("nested", nested.as_uri())
    assert (first.id, second.id) == (10, 11)
    assert session.view("nested") is second
    assert session.view("missing") is None
    assert session.views() == [first, second]


def test_view_cache_rejects_stale_generation(workspace: Path) -> None:
    cache = ViewCache()
    view = View(1, "ws", workspace.as_uri())
    generation = cache.generation
    cache.invalidate()
    assert not cache.put("file:///x.proto", view, generation)
    assert cache.get("file:///x.proto") is None
    assert cache.put("file:///x.proto", view, cache.generation)
    assert len(cache) == 1
    cache.invalidate()
    assert len(cache) == 0


def test_open_change_save_close_round(workspace: Path) -> None:
    session = Session(1)
    session.new_view("ws", workspace.as_uri())
    uri = (workspace / "b.proto").as_uri()
    document = session.did_open(uri, (workspace / "b.proto").read_text())
    assert session.is_open(uri)
    assert session.open_files() == frozenset({uri})
    session.did_change(uri, "package p;\nmessage Gadget {}\n")
    session.did_save(uri)
    closed = session.did_close(uri)
    assert closed is document
    assert not session.is_open(uri)
    assert document.registry.get_message_by_name("Gadget") is not None


def test_shutdown_clears_views_and_open_files(workspace: Path) -> None:
    session = Session(1)
    view = session.new_view("ws", workspace.as_uri())
    uri = (workspace / "a.proto").as_uri()
    session.did_open(uri, "message M {}\n")
    session.shutdown()
    assert session.views() == []
    assert session.open_files() == frozenset()
    assert view.files() == []
    assert session.view_of(uri) is None


def test_id_counter_is_monotonic() -> None:
    counter = IdCounter()
    assert [counter(), counter(), counter()] == [1, 2, 3]


def test_close_keeps_unsaved_change_indexed(workspace: Path) -> None:
    session = Session(1)
    session.new_view("ws", workspace.as_uri())
    uri = (workspace / "b.proto").as_uri()
    session.did_open(uri, (workspace / "b.proto").read_text())
    session.did_change(uri, "package p;\nmessage Gadget {}\n")
    document = session.did_close(uri)
    assert not session.is_open(uri)
    assert document.registry.get_message_by_name("Gadget") is not None
    assert document.registry.get_message_by_name("Widget") is None


def test_lookup_racing_a_new_view_is_not_cached(
    workspace: Path, nested: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    session = Session(1)
    outer = session.new_view("ws", workspace.as_uri())
    uri = (nested / "n.proto").as_uri()
    entered = threading.Event()
    best_view = Session._best_view

    def slow_best_view(self: Session, target: str) -> View | None:
        found = best_view(self, target)
        entered.set()
        # Hold the read side until the writer is queued behind it.
        deadline = time.monotonic() + _TIMEOUT
        while not self._lock._writers_waiting and time.monotonic() < deadline:
            time.sleep(0.005)
        return found

    monkeypatch.setattr(Session, "_best_view", slow_best_view)
    results: list[View | None] = []
    lookup = threading.Thread(target=lambda: results.append(session.view_of(uri)))
    lookup.start()
    assert entered.wait(_TIMEOUT)
    adder = threading.Thread(target=session.new_view, args=("nested", nested.as_uri()))
    adder.start()
    lookup.join(_TIMEOUT)
    adder.join(_TIMEOUT)
    assert not lookup.is_alive() and not adder.is_alive()
    assert results == [outer]
    assert session._cache.get(uri) is None
    monkeypatch.setattr(Session, "_best_view", best_view)
    assert session.view_of(uri).name == "nested"


def test_concurrent_lookups_and_view_additions(tmp_path: Path) -> None:
    folders = [tmp_path]
    for depth in range(10):
        folders.append(folders[-1] / f"d{depth}")
    folders[-1].mkdir(parents=True)
    uri = (folders[-1] / "deep.proto").as_uri()
    session = Session(1)
    session.new_view("root", tmp_path.as_uri())
    barrier = threading.Barrier(5, timeout=_TIMEOUT)
    failures: list[str] = []

    def adder() -> None:
        barrier.wait()
        for folder in folders[1:]:
            session.new_view(folder.name, folder.as_uri())

    def reader() -> None:
        barrier.wait()
        for _ in range(200):
            if session.view_of(uri) is None:
                failures.append("lookup found no view")

    threads = [threading.Thread(target=reader) for _ in range(4)]
    threads.append(threading.Thread(target=adder))
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(_TIMEOUT)
    assert not any(thread.is_alive() for thread in threads)
    assert failures == []
    assert session.view_of(uri).name == "d9"
    assert len(session.views()) == 11
