from __future__ import annotations

from typing import Callable, Sequence

import structlog
from lsprotocol.types import (
    INITIALIZE,
    INITIALIZED,
    SHUTDOWN,
    TEXT_DOCUMENT_COMPLETION,
    TEXT_DOCUMENT_DEFINITION,
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_CLOSE,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_DID_SAVE,
    WORKSPACE_DID_CHANGE_WORKSPACE_FOLDERS,
    CompletionItem,
    CompletionItemKind,
    CompletionList,
    CompletionOptions,
    CompletionParams,
    DefinitionParams,
    DidChangeTextDocumentParams,
    DidChangeWorkspaceFoldersParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    DidSaveTextDocumentParams,
    InitializedParams,
    InitializeParams,
    Location,
    Position,
    Range,
    TextDocumentSyncKind,
    WorkspaceFolder,
)
from pygls.exceptions import (
    JsonRpcInternalError,
    JsonRpcInvalidRequest,
    JsonRpcServerNotInitialized,
)
from pygls.lsp.server import LanguageServer

from protols import __version__
from protols.completion import KIND_ENUM, KIND_MESSAGE, KIND_TYPE, complete
from protols.config import ProtolsConfig
from protols.definition import DefinitionLocation, find_definition
from protols.exceptions import InvalidStateError, ProtolsError, ViewNotFoundError
from protols.logging import configure_logging, get_logger, request_scope
from protols.source.session import IdCounter, Session
from protols.source.uri import basename
from protols.source.view import View
from protols.state import ServerState, ServerStateMachine

logger = get_logger(__name__)

_MAX_WORKERS = 4

_COMPLETION_KINDS = {
    KIND_TYPE: CompletionItemKind.Keyword,
    KIND_MESSAGE: CompletionItemKind.Struct,
    KIND_ENUM: CompletionItemKind.Enum,
}


class ProtoLanguageServer(LanguageServer):
    """pygls server owning one session and its lifecycle state."""

    def __init__(
        self,
        name: str,
        version: str,
        *,
        settings: ProtolsConfig | None = None,
        session_ids: IdCounter | None = None,
        view_ids: IdCounter | None = None,
        **kwargs,
    ) -> None:
        kwargs.setdefault("text_document_sync_kind", TextDocumentSyncKind.Full)
        kwargs.setdefault("max_workers", _MAX_WORKERS)
        super().__init__(name, version, **kwargs)
        self.settings = settings or ProtolsConfig()
        self.lifecycle = ServerStateMachine()
        self.session = Session((session_ids or IdCounter())(), view_ids)

    def add_view(self, name: str, folder: str) -> View:
        return add_workspace_view(self.session, self.settings, name, folder)


def add_workspace_view(
    session: Session, settings: ProtolsConfig, name: str, folder: str
) -> View:
    view = session.new_view(
        name,
        folder,
        include_paths=settings.workspace.include_paths,
        exclude_dirs=settings.workspace.exclude_dirs,
    )
    if settings.workspace.preload:
        view.populate()
    return view


server = ProtoLanguageServer("protols", __version__)


def _require_initialized(ls: ProtoLanguageServer) -> None:
    try:
        ls.lifecycle.require_initialized()
    except InvalidStateError as exc:
        if exc.state == ServerState.SHUTDOWN.name:
            raise JsonRpcInvalidRequest(message=str(exc)) from exc
        raise JsonRpcServerNotInitialized(message=str(exc)) from exc


def _workspace_folders(params: InitializeParams) -> list[WorkspaceFolder]:
    if params.workspace_folders:
        return list(params.workspace_folders)
    if params.root_uri:
        return [WorkspaceFolder(uri=params.root_uri, name=basename(params.root_uri))]
    return []


def _whole_document_text(changes: Sequence[object]) -> str | None:
    """Text of the last change that replaces the whole document."""
    for change in reversed(changes):
        if getattr(change, "range", None) is None:
            return getattr(change, "text", None)
    return None


def _to_location(found: DefinitionLocation) -> Location:
    # Tree positions are 1-based, LSP positions 0-based.
    position = Position(line=found.line - 1, character=max(found.column - 1, 0))
    return Location(uri=found.uri, range=Range(start=position, end=position))


@server.feature(INITIALIZE)
def initialize(ls: ProtoLanguageServer, params: InitializeParams) -> None:
    try:
        ls.lifecycle.begin_initialize()
    except InvalidStateError as exc:
        raise JsonRpcInvalidRequest(message=str(exc)) from exc
    folders = _workspace_folders(params)
    if not folders:
        raise JsonRpcInvalidRequest(message="single file mode not supported")
    for folder in folders:
        ls.add_view(folder.name, folder.uri)
    logger.info("initialize", folders=[folder.uri for folder in folders])


@server.feature(INITIALIZED)
def initialized(ls: ProtoLanguageServer, params: InitializedParams) -> None:
    try:
        ls.lifecycle.finish_initialize()
    except InvalidStateError as exc:
        raise JsonRpcInvalidRequest(message=str(exc)) from exc
    logger.info("initialized", session=ls.session.id)


@server.feature(SHUTDOWN)
def shutdown(ls: ProtoLanguageServer, params: None = None) -> None:
    try:
        ls.lifecycle.begin_shutdown()
    except InvalidStateError as exc:
        raise JsonRpcInvalidRequest(message=str(exc)) from exc
    ls.session.shutdown()


def _forward(method: str, uri: str, action: Callable[[], object]) -> bool:
    with request_scope(method, uri=uri):
        try:
            action()
        except ProtolsError as exc:
            logger.warning("notification failed", error=str(exc))
            return False
    return True


@server.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: ProtoLanguageServer, params: DidOpenTextDocumentParams) -> bool:
    _require_initialized(ls)
    document = params.text_document
    return _forward(
        TEXT_DOCUMENT_DID_OPEN,
        document.uri,
        lambda: ls.session.did_open(document.uri, document.text),
    )


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls: ProtoLanguageServer, params: DidChangeTextDocumentParams) -> bool:
    _require_initialized(ls)
    uri = params.text_document.uri
    if not params.content_changes:
        raise JsonRpcInternalError(message=f"no content changes for {uri}")
    text = _whole_document_text(params.content_changes)
    if text is None:
        raise JsonRpcInternalError(message=f"no whole document change for {uri}")
    return _forward(TEXT_DOCUMENT_DID_CHANGE, uri, lambda: ls.session.did_change(uri, text))


@server.feature(TEXT_DOCUMENT_DID_SAVE)
def did_save(ls: ProtoLanguageServer, params: DidSaveTextDocumentParams) -> bool:
    _require_initialized(ls)
    uri = params.text_document.uri
    return _forward(TEXT_DOCUMENT_DID_SAVE, uri, lambda: ls.session.did_save(uri))


@server.feature(TEXT_DOCUMENT_DID_CLOSE)
def did_close(ls: ProtoLanguageServer, params: DidCloseTextDocumentParams) -> bool:
    _require_initialized(ls)
    uri = params.text_document.uri
    return _forward(TEXT_DOCUMENT_DID_CLOSE, uri, lambda: ls.session.did_close(uri))


@server.feature(TEXT_DOCUMENT_COMPLETION, CompletionOptions(trigger_characters=["."]))
@server.thread()
def completion(ls: ProtoLanguageServer, params: CompletionParams) -> CompletionList:
    _require_initialized(ls)
    uri = params.text_document.uri
    with request_scope(TEXT_DOCUMENT_COMPLETION, uri=uri):
        view = ls.session.view_of(uri)
        if view is None:
            logger.debug("view not found")
            return CompletionList(is_incomplete=False, items=[])
        candidates = complete(view.get_file(uri), params.position.line + 1)
    items = [
        CompletionItem(
            label=candidate.label,
            detail=candidate.kind,
            kind=_COMPLETION_KINDS[candidate.kind],
        )
        for candidate in candidates
    ]
    return CompletionList(is_incomplete=False, items=items)


@server.feature(TEXT_DOCUMENT_DEFINITION)
@server.thread()
def definition(ls: ProtoLanguageServer, params: DefinitionParams) -> list[Location]:
    _require_initialized(ls)
    uri = params.text_document.uri
    with request_scope(TEXT_DOCUMENT_DEFINITION, uri=uri):
        try:
            view = ls.session.require_view(uri)
        except ViewNotFoundError as exc:
            logger.error("view not found")
            raise JsonRpcInternalError(message=str(exc)) from exc
        found = find_definition(view, uri, params.position.line + 1)
    return [_to_location(location) for location in found]


@server.feature(WORKSPACE_DID_CHANGE_WORKSPACE_FOLDERS)
def did_change_workspace_folders(
    ls: ProtoLanguageServer, params: DidChangeWorkspaceFoldersParams
) -> None:
    _require_initialized(ls)
    for folder in params.event.removed:
        view = ls.session.view(folder.name)
        if view is None:
            logger.warning("no view for removed folder", name=folder.name, uri=folder.uri)
            continue
        try:
            ls.session.remove_view(view)
        except ViewNotFoundError as exc:
            logger.warning("failed to remove view", name=folder.name, error=str(exc))
    for folder in params.event.added:
        ls.add_view(folder.name, folder.uri)


def start(
    settings: ProtolsConfig | None = None,
    start_fn: Callable[[], None] | None = None,
) -> None:
    """Serve over TCP when an address or port is configured, else stdio."""
    if settings is not None:
        server.settings = settings
    if not structlog.is_configured():
        log = server.settings.log
        configure_logging(log.level, log_file=log.file, json_format=log.format == "json")
    if start_fn is not None:
        start_fn()
        return
    config = server.settings.server
    if config.address or config.port:
        host = config.address or "127.0.0.1"
        logger.info("listening", address=host, port=config.port)
        server.start_tcp(host, config.port)
    else:
        server.start_io()


if __name__ == "__main__":  # pragma: no cover
    start()  # pragma: no cover
