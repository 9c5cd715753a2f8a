from __future__ import annotations

from pathlib import Path
from urllib.parse import unquote, urlparse

FILE_SCHEME = "file"


def uri_to_path(uri: str) -> Path:
    parsed = urlparse(uri)
    if parsed.scheme == FILE_SCHEME:
        return Path(unquote(parsed.path))
    return Path(uri)


def path_to_uri(path: Path | str) -> str:
    return Path(path).absolute().as_uri()


def normalize_uri(uri: str) -> str:
    """Return the canonical ``file://`` form of a URI or plain path."""
    scheme = urlparse(uri).scheme
    if scheme == FILE_SCHEME:
        return path_to_uri(uri_to_path(uri))
    if scheme:
        return uri
    return path_to_uri(uri)


def basename(uri: str) -> str:
    return uri_to_path(uri).name


def is_under(uri: str, folder: str) -> bool:
    """True when ``uri`` is ``folder`` itself or a path inside it."""
    if uri == folder:
        return True
    prefix = folder if folder.endswith("/") else folder + "/"
    return uri.startswith(prefix)
