"""Structured logging: get_logger(name) -> StructuredLogger with key=value extras."""

from .constants import Colors, LEVEL_STYLES, MODULE_ABBREV, MODULE_COLORS
from .formatters import JsonFormatter, PlainFormatter, SmartFormatter
from .structured_logger import StructuredLogger, get_logger, set_log_level

__all__ = [
    "get_logger",
    "set_log_level",
    "StructuredLogger",
    "SmartFormatter",
    "PlainFormatter",
    "JsonFormatter",
    "Colors",
    "LEVEL_STYLES",
    "MODULE_COLORS",
    "MODULE_ABBREV",
]
