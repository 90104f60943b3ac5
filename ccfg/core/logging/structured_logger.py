import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from .constants import (
    DEFAULT_LEVEL,
    LOG_FILE,
    LOG_FILE_BACKUPS,
    LOG_FILE_MAX_BYTES,
    LOG_JSON,
    LOG_LEVEL_MAP,
)
from .formatters import JsonFormatter, PlainFormatter, SmartFormatter

# Library default: silent unless a ccfg logger has its own handler
if not logging.getLogger().handlers:
    logging.getLogger().addHandler(logging.NullHandler())


class StructuredLogger:
    """stdlib logger wrapper whose methods take key=value extras.

    Console output goes to stderr. When log_file (default: CCFG_LOG_FILE) is
    set, a rotating plain-text copy at DEBUG level is written there too.

    Usage:
        _log = get_logger("settings.store")
        _log.info("Settings written", path=str(path), state="committed")
    """

    def __init__(self, name: str, level: Optional[int] = None, log_file: Optional[str] = None):
        self._logger = logging.getLogger(name)
        effective_level = level or DEFAULT_LEVEL
        self._logger.setLevel(effective_level)

        if not self._logger.handlers:
            console = logging.StreamHandler(sys.stderr)
            console.setFormatter(JsonFormatter() if LOG_JSON else SmartFormatter(use_colors=True))
            console.setLevel(effective_level)
            self._logger.addHandler(console)

            target = LOG_FILE if log_file is None else log_file
            if target:
                self._attach_file(Path(target).expanduser())

            self._logger.propagate = False

    def _attach_file(self, path: Path) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fh = RotatingFileHandler(
                path,
                encoding="utf-8",
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
            )
        except OSError as e:
            self.warning("Log file unavailable, console only", path=str(path), error=str(e))
            return
        fh.setFormatter(PlainFormatter())
        fh.setLevel(logging.DEBUG)
        # The file gets DEBUG even when the console is quieter
        self._logger.setLevel(logging.DEBUG)
        self._logger.addHandler(fh)

    @property
    def name(self) -> str:
        return self._logger.name

    def _emit(self, level: int, msg: str, extras: dict[str, Any], exc_info=None) -> None:
        if not self._logger.isEnabledFor(level):
            return
        record = self._logger.makeRecord(self._logger.name, level, "", 0, msg, (), exc_info)
        record.extra_data = extras
        self._logger.handle(record)

    def debug(self, msg: str, **kwargs) -> None:
        self._emit(logging.DEBUG, msg, kwargs)

    def info(self, msg: str, **kwargs) -> None:
        self._emit(logging.INFO, msg, kwargs)

    def warning(self, msg: str, **kwargs) -> None:
        self._emit(logging.WARNING, msg, kwargs)

    def error(self, msg: str, **kwargs) -> None:
        self._emit(logging.ERROR, msg, kwargs)

    def exception(self, msg: str, **kwargs) -> None:
        """error() plus the traceback of the exception being handled."""
        self._emit(logging.ERROR, msg, kwargs, exc_info=sys.exc_info())


_loggers: dict[str, StructuredLogger] = {}


def get_logger(name: str = "ccfg") -> StructuredLogger:
    if name not in _loggers:
        _loggers[name] = StructuredLogger(name)
    return _loggers[name]


def set_log_level(level: str) -> None:
    """Apply a level name (DEBUG, INFO, ...) to every console handler created so far."""
    numeric = LOG_LEVEL_MAP.get(level.upper(), logging.INFO)
    for logger in _loggers.values():
        has_file = False
        for handler in logger._logger.handlers:
            if isinstance(handler, RotatingFileHandler):
                has_file = True
                continue
            handler.setLevel(numeric)
        logger._logger.setLevel(logging.DEBUG if has_file else numeric)
