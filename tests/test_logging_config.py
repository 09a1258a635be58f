from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core import logging_config


@pytest.fixture
def fresh_logging(monkeypatch: pytest.MonkeyPatch):
    root = logging.getLogger()
    before = list(root.handlers)
    monkeypatch.setattr(logging_config, "_LOG_PATH", None)
    yield root
    for handler in root.handlers[:]:
        if handler not in before:
            root.removeHandler(handler)
            handler.close()


def test_configure_logging_is_idempotent(tmp_path: Path, fresh_logging: logging.Logger) -> None:
    target = tmp_path / "logs" / "medrep.log"

    first = logging_config.configure_logging(path=target)
    second = logging_config.configure_logging(path=tmp_path / "other.log")

    assert first == second == target
    assert logging_config.get_log_path() == target
    file_handlers = [
        handler
        for handler in fresh_logging.handlers
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == str(target)
    ]
    assert len(file_handlers) == 1

    logging.getLogger("core.test").warning("sheet %s resolved", "abc")
    file_handlers[0].flush()
    assert "[WARNING] core.test: sheet abc resolved" in target.read_text(encoding="utf-8")


def test_console_handler_added_once(tmp_path: Path, fresh_logging: logging.Logger) -> None:
    logging_config.configure_logging(path=tmp_path / "medrep.log", console=True)
    logging_config.configure_logging(console=True)

    console_handlers = [
        handler
        for handler in fresh_logging.handlers
        if type(handler) is logging.StreamHandler and handler.stream is sys.stderr
    ]
    assert len(console_handlers) == 1
