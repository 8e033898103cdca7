from __future__ import annotations

import logging
import tempfile
from pathlib import Path

import pytest

from shared import logging_config


def _managed_handlers() -> list[logging.Handler]:
    return [
        handler
        for handler in logging.getLogger().handlers
        if getattr(handler, logging_config._HANDLER_TAG, False)  # type: ignore[attr-defined]
    ]


def _flush_managed_handlers() -> None:
    for handler in _managed_handlers():
        handler.flush()


@pytest.fixture(autouse=True)
def reset_logging():
    logging_config._reset_for_tests()
    try:
        yield
    finally:
        logging_config._reset_for_tests()


def test_logging_creates_file_with_debug_records(tmp_path, monkeypatch):
    monkeypatch.setenv("XLM_LOG_DIR", str(tmp_path))

    log_path = logging_config.ensure_app_logging()
    assert log_path == tmp_path / "xlm.log"
    assert logging_config.get_file_log_verbosity() == logging_config.LogVerbosity.VERBOSE
    logging.getLogger("services.launch.guard").debug("debug message")
    logging.getLogger("services.launch.guard").error("error message")
    _flush_managed_handlers()

    contents = log_path.read_text(encoding="utf-8")
    assert "debug message" in contents
    assert "ERROR [services.launch.guard] error message" in contents


def test_log_file_env_takes_precedence(tmp_path, monkeypatch):
    monkeypatch.setenv("XLM_LOG_DIR", str(tmp_path / "ignored"))
    monkeypatch.setenv("XLM_LOG_FILE", str(tmp_path / "custom" / "launch.log"))

    assert logging_config.ensure_app_logging() == tmp_path / "custom" / "launch.log"


def test_default_log_path_is_in_temp_directory(monkeypatch):
    monkeypatch.delenv("XLM_LOG_DIR", raising=False)
    monkeypatch.delenv("XLM_LOG_FILE", raising=False)

    assert logging_config._resolve_log_path() == Path(tempfile.gettempdir()) / "xlm.log"  # type: ignore[attr-defined]


def test_logging_configuration_is_idempotent(tmp_path, monkeypatch):
    monkeypatch.setenv("XLM_LOG_DIR", str(tmp_path))

    first_path = logging_config.ensure_app_logging()
    second_path = logging_config.ensure_app_logging(verbose=True)

    assert first_path == second_path
    handlers = _managed_handlers()
    file_handlers = [handler for handler in handlers if isinstance(handler, logging.FileHandler)]
    stream_handlers = [handler for handler in handlers if not isinstance(handler, logging.FileHandler)]
    assert len(file_handlers) == 1
    assert Path(file_handlers[0].baseFilename) == first_path
    assert len(stream_handlers) == 1
    assert stream_handlers[0].level == logging.DEBUG


def test_stream_handler_defaults_to_info(tmp_path, monkeypatch):
    monkeypatch.setenv("XLM_LOG_DIR", str(tmp_path))

    logging_config.ensure_app_logging()

    stream_handlers = [
        handler for handler in _managed_handlers() if not isinstance(handler, logging.FileHandler)
    ]
    assert [handler.level for handler in stream_handlers] == [logging.INFO]


def test_disabling_file_logging_suppresses_output(tmp_path, monkeypatch):
    monkeypatch.setenv("XLM_LOG_DIR", str(tmp_path))

    log_path = logging_config.ensure_app_logging()
    logging_config.set_file_log_verbosity(logging_config.LogVerbosity.DISABLED)
    _flush_managed_handlers()
    initial_size = log_path.stat().st_size

    logging.getLogger("tests.logging").critical("critical message")
    _flush_managed_handlers()

    assert log_path.stat().st_size == initial_size


def test_unknown_verbosity_is_rejected(tmp_path, monkeypatch):
    monkeypatch.setenv("XLM_LOG_DIR", str(tmp_path))

    with pytest.raises(ValueError):
        logging_config.set_file_log_verbosity("chatty")
