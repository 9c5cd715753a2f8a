"""Workspace, document and session state shared by request handlers."""

from protols.source.document import Document, DocumentState, Snapshot, hash_content
from protols.source.session import IdCounter, Session, ViewCache
from protols.source.view import View

__all__ = [
    "Document",
    "DocumentState",
    "IdCounter",
    "Session",
    "Snapshot",
    "View",
    "ViewCache",
    "hash_content",
]
