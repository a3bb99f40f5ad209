# tests/test_logging_setup.py

from __future__ import annotations

import logging

import pytest

from session_sweeper.logging_setup import _ConsoleNoiseFilter, setup_logging


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


@pytest.mark.parametrize(
    ("name", "level", "shown"),
    [
        ("session_sweeper.status", logging.INFO, False),
        ("session_sweeper.status", logging.WARNING, True),
        ("session_sweeper.logout.reconciler", logging.DEBUG, True),
        ("asyncio", logging.INFO, False),
        ("asyncio", logging.WARNING, True),
        ("py.warnings", logging.WARNING, False),
        ("urllib3", logging.WARNING, False),
        ("urllib3", logging.ERROR, True),
    ],
)
def test_console_filter(name, level, shown) -> None:
    assert _ConsoleNoiseFilter().filter(_record(name, level)) is shown


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)
    logging.captureWarnings(False)


def test_setup_logging_writes_everything_to_file(tmp_path, restore_root_logging) -> None:
    log_dir = tmp_path / "logs"
    setup_logging(log_dir=log_dir)

    logging.getLogger("session_sweeper.status").info("[QUEUE] queued")
    for h in logging.getLogger().handlers:
        h.flush()

    root = logging.getLogger()
    assert len(root.handlers) == 2
    assert "[QUEUE] queued" in (log_dir / "sweeper.log").read_text(encoding="utf-8")
