"""Structured logging for the language server.

stdout carries the JSON-RPC stream, so every handler installed here writes to
stderr or to a file.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator
from uuid import uuid4

import structlog

from protols.exceptions import ConfigError

_request_id: ContextVar[str | None] = ContextVar("protols_request_id", default=None)

_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def parse_log_level(text: str) -> int:
    level = _LEVEL_MAP.get(text.strip().upper())
    if level is None:
        raise ConfigError.invalid_value("log.level", text, "undefined log level")
    return level


def get_request_id() -> str | None:
    return _request_id.get()


def set_request_id(request_id: str | None = None) -> str:
    rid = request_id or uuid4().hex[:12]
    _request_id.set(rid)
    return rid


def clear_request_id() -> None:
    _request_id.set(None)


@contextmanager
def request_scope(method: str, **bindings: Any) -> Iterator[str]:
    """Tag every event logged inside the block with a fresh request id."""
    rid = set_request_id()
    try:
        with structlog.contextvars.bound_contextvars(method=method, **bindings):
            yield rid
    finally:
        clear_request_id()


def _add_request_id(
    _logger: structlog.typing.WrappedLogger,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    if rid := get_request_id():
        event_dict["request_id"] = rid
    return event_dict


def configure_logging(
    level: str = "INFO",
    *,
    log_file: str | None = None,
    json_format: bool = False,
) -> None:
    numeric_level = parse_log_level(level)
    shared_processors: list[structlog.typing.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%dT%H:%M:%S", key="time"),
        _add_request_id,  # type: ignore[list-item]
    ]
    renderer: structlog.typing.Processor
    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    handler: logging.Handler
    if log_file:
        handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
        existing.close()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    return structlog.get_logger(name)
