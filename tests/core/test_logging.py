"""Tests for the structured logger and its formatters."""

import json
import logging
from logging.handlers import RotatingFileHandler

import pytest

from ccfg.core.logging import (
    JsonFormatter,
    PlainFormatter,
    SmartFormatter,
    StructuredLogger,
    get_logger,
    set_log_level,
)
from ccfg.core.logging.formatters import _module_display


def _record(name="settings.store", msg="Settings written", level=logging.INFO, **extra):
    record = logging.LogRecord(name, level, "", 0, msg, (), None)
    record.extra_data = extra
    return record


class TestGetLogger:

    def test_returns_structured_logger(self):
        assert isinstance(get_logger("detect"), StructuredLogger)

    def test_cached_per_name(self):
        assert get_logger("selector") is get_logger("selector")

    def test_name(self):
        assert get_logger("backup").name == "backup"

    def test_does_not_propagate(self):
        log = get_logger("files")
        assert log._logger.propagate is False

    def test_set_log_level(self):
        log = get_logger("config")
        original = log._logger.level
        try:
            set_log_level("DEBUG")
            assert log._logger.level == logging.DEBUG
        finally:
            set_log_level(logging.getLevelName(original))

    def test_kwargs_reach_handler(self):
        log = get_logger("ccfg.test.kwargs")
        seen = []

        class Capture(logging.Handler):
            def emit(self, record):
                seen.append(record)

        handler = Capture()
        log._logger.addHandler(handler)
        try:
            log.warning("Manifest missing", path="/p", code="MANIFEST_MISSING")
        finally:
            log._logger.removeHandler(handler)

        assert seen[0].getMessage() == "Manifest missing"
        assert seen[0].extra_data == {"path": "/p", "code": "MANIFEST_MISSING"}


class TestLogFile:

    def _close(self, log):
        for handler in list(log._logger.handlers):
            handler.close()
            log._logger.removeHandler(handler)

    def test_plain_lines_written_to_file(self, tmp_path):
        log_path = tmp_path / "logs" / "ccfg.log"
        log = StructuredLogger("ccfg.test.logfile", level=logging.WARNING, log_file=str(log_path))
        try:
            log.debug("Selection computed", keys=["python"])
            for handler in log._logger.handlers:
                handler.flush()
            text = log_path.read_text(encoding="utf-8")
        finally:
            self._close(log)

        assert "DEBUG" in text
        assert "Selection computed" in text
        assert "keys=[python]" in text
        assert "\033[" not in text

    def test_no_file_by_default(self):
        log = StructuredLogger("ccfg.test.nofile", log_file="")
        try:
            assert not any(isinstance(h, RotatingFileHandler) for h in log._logger.handlers)
        finally:
            self._close(log)

    def test_unwritable_location_falls_back_to_console(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory")
        log = StructuredLogger("ccfg.test.badfile", log_file=str(blocker / "ccfg.log"))
        try:
            assert not any(isinstance(h, RotatingFileHandler) for h in log._logger.handlers)
            assert len(log._logger.handlers) == 1
        finally:
            self._close(log)


class TestModuleDisplay:

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("detect", "DET"),
            ("settings.store", "SET|store"),
            ("unknownmod", "UNK"),
        ],
    )
    def test_abbreviations(self, name, expected):
        assert _module_display(name) == expected

    def test_truncates_long_names(self):
        assert len(_module_display("settings.very.long.submodule.name")) <= 14


class TestFormatters:

    def test_smart_formatter_without_colors(self):
        line = SmartFormatter(use_colors=False).format(_record(path="/tmp/s.json", changed=True))
        assert "Settings written" in line
        assert "path=/tmp/s.json" in line
        assert "changed=yes" in line
        assert "\033[" not in line

    def test_smart_formatter_summarizes_collections(self):
        line = SmartFormatter(use_colors=False).format(_record(keys=["a", "b", "c", "d"]))
        assert "keys=[4 items]" in line

    def test_plain_formatter(self):
        line = PlainFormatter().format(_record(path="/tmp/s.json"))
        assert "INFO" in line
        assert "path=/tmp/s.json" in line

    def test_json_formatter(self):
        payload = json.loads(JsonFormatter().format(_record(path="/tmp/s.json", count=3)))
        assert payload["level"] == "INFO"
        assert payload["logger"] == "settings.store"
        assert payload["msg"] == "Settings written"
        assert payload["path"] == "/tmp/s.json"
        assert payload["count"] == 3
