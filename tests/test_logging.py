from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from protols.exceptions import ConfigError
from protols.logging import (
    configure_logging,
    get_logger,
    get_request_id,
    parse_log_level,
    request_scope,
)


@pytest.mark.parametrize(
    ("text", "level"),
    [
        ("debug", logging.DEBUG),
        ("INFO", logging.INFO),
        ("warn", logging.WARNING),
        ("Warning", logging.WARNING),
        (" error ", logging.ERROR),
    ],
)
def test_parse_log_level(text: str, level: int) -> None:
    assert parse_log_level(text) == level


def test_parse_log_level_rejects_unknown() -> None:
    with pytest.raises(ConfigError, match="undefined log level"):
        parse_log_level("verbose")


def test_request_scope_sets_and_clears_id() -> None:
    assert get_request_id() is None
    with request_scope("textDocument/definition", uri="file:///a.proto") as rid:
        assert get_request_id() == rid
    assert get_request_id() is None


@pytest.mark.usefixtures("restore_logging")
def test_json_events_go_to_log_file(tmp_path: Path) -> None:
    log_file = tmp_path / "protols.log"
    configure_logging("DEBUG", log_file=str(log_file), json_format=True)
    with request_scope("textDocument/completion", uri="file:///a.proto") as rid:
        get_logger("protols.test").info("hello", items=3)
    for handler in logging.getLogger().handlers:
        handler.flush()
    event = json.loads(log_file.read_text().strip().splitlines()[-1])
    assert event["event"] == "hello"
    assert event["items"] == 3
    assert event["request_id"] == rid
    assert event["method"] == "textDocument/completion"
    assert event["level"] == "info"


@pytest.mark.usefixtures("restore_logging")
def test_events_below_level_are_dropped(tmp_path: Path) -> None:
    log_file = tmp_path / "protols.log"
    configure_logging("ERROR", log_file=str(log_file))
    get_logger("protols.test").info("quiet")
    get_logger("protols.test").error("loud")
    for handler in logging.getLogger().handlers:
        handler.flush()
    text = log_file.read_text()
    assert "loud" in text
    assert "quiet" not in text
