import json
import logging
from datetime import datetime
from typing import Any

from .constants import (
    LEVEL_STYLES,
    MODULE_ABBREV,
    MODULE_COLORS,
    Colors,
    _COLORS,
)

_MODULE_WIDTH = 14


def _module_display(name: str) -> str:
    """'settings.store' -> 'SET|store', clipped to the column width."""
    head, _, tail = name.partition(".")
    abbrev = MODULE_ABBREV.get(head.lower(), head[:3].upper())
    if tail and len(tail) > 9:
        tail = tail[:8] + "…"
    display = f"{abbrev}|{tail}" if tail else abbrev
    if len(display) > _MODULE_WIDTH:
        display = display[:_MODULE_WIDTH - 1] + "…"
    return display


def _summarize(value: Any, max_len: int = 60) -> str:
    """Short rendering of a log extra: long collections collapse to a count."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        if len(value) > 3:
            return f"[{len(value)} items]"
        return f"[{', '.join(str(v) for v in value)}]"
    if isinstance(value, dict):
        return f"{{{len(value)} keys}}" if value else "{}"

    text = str(value)
    # Paths keep their tail, which names the file
    if len(text) > max_len:
        return "..." + text[-(max_len - 3):]
    return text


def _extras(record: logging.LogRecord) -> dict[str, Any]:
    return getattr(record, "extra_data", None) or {}


class SmartFormatter(logging.Formatter):
    """Console format: time, level, module column, message, then key=value extras."""

    HIGHLIGHT_KEYS = {
        "path": "PATH",
        "file": "PATH",
        "target": "PATH",
        "backup": "PATH",
        "key": "SUCCESS",
        "tag": "SUCCESS",
        "state": "WARNING",
        "error": "ERROR",
    }

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and Colors._enabled()

    def _c(self, key: str) -> str:
        return _COLORS.get(key, "") if self.use_colors else ""

    def _module_color(self, name: str) -> str:
        if not self.use_colors:
            return ""
        return MODULE_COLORS.get(name.split(".")[0].lower(), _COLORS["MODULE"])

    def format(self, record: logging.LogRecord) -> str:
        label, color_key = LEVEL_STYLES.get(record.levelname, (record.levelname[:5], "INFO"))
        reset = self._c("RESET")

        now = datetime.now()
        line = (
            f"{self._c('TIME')}{now:%H:%M:%S}.{now.microsecond // 1000:03d}{reset} "
            f"{self._c(color_key)}{label}{reset} "
            f"[{self._module_color(record.name)}{_module_display(record.name):{_MODULE_WIDTH}}{reset}] "
            f"{record.getMessage()}"
        )

        pairs = []
        for key, value in _extras(record).items():
            highlight = self.HIGHLIGHT_KEYS.get(key.lower())
            key_color = self._c(highlight) if highlight else self._c("KEY")
            pairs.append(f"{key_color}{key}{reset}={self._c('VALUE')}{_summarize(value)}{reset}")
        if pairs:
            line += f" {self._c('SEPARATOR')}│{reset} " + " ".join(pairs)

        if record.exc_info:
            line += f"\n{self._c(color_key)}{self.formatException(record.exc_info)}{reset}"
        return line


class PlainFormatter(logging.Formatter):
    """Colorless single-line format for log files."""

    def format(self, record: logging.LogRecord) -> str:
        now = datetime.now()
        line = (
            f"{now:%Y-%m-%d %H:%M:%S}.{now.microsecond // 1000:03d} "
            f"{record.levelname:7} [{_module_display(record.name):{_MODULE_WIDTH}}] {record.getMessage()}"
        )
        extras = _extras(record)
        if extras:
            line += " │ " + " ".join(f"{k}={_summarize(v, max_len=200)}" for k, v in extras.items())
        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"
        return line


class JsonFormatter(logging.Formatter):
    """One JSON object per line; extras become top-level fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.now().astimezone().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update(_extras(record))
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)
