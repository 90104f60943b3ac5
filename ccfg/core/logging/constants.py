import logging
import os
import sys

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}
DEFAULT_LEVEL = LOG_LEVEL_MAP.get(LOG_LEVEL, logging.INFO)
LOG_JSON = os.getenv("LOG_JSON", "").lower() in ("1", "true", "yes")
# Optional plain-text log file, rotated at 1 MiB
LOG_FILE = os.getenv("CCFG_LOG_FILE", "")
LOG_FILE_MAX_BYTES = 1024 * 1024
LOG_FILE_BACKUPS = 3

MODULE_COLORS = {
    "detect":   "\033[96m",
    "plugin":   "\033[95m",
    "registry": "\033[95m",
    "selector": "\033[92m",
    "settings": "\033[93m",
    "backup":   "\033[38;5;208m",
    "config":   "\033[94m",
    "files":    "\033[97m",
}

MODULE_ABBREV = {
    "detect": "DET",
    "plugin": "PLG",
    "registry": "REG",
    "selector": "SEL",
    "settings": "SET",
    "backup": "BAK",
    "config": "CFG",
    "files": "FIL",
}


class Colors:
    """ANSI color switch: off under NO_COLOR or when stderr is not a terminal."""

    @staticmethod
    def _enabled() -> bool:
        if os.getenv("NO_COLOR"):
            return False
        return sys.stderr.isatty()


_COLORS = {
    "RESET": "\033[0m",
    "BOLD": "\033[1m",
    "DIM": "\033[2m",
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
    "TIME": "\033[90m",
    "MODULE": "\033[34m",
    "KEY": "\033[90m",
    "VALUE": "\033[37m",
    "PATH": "\033[96m",
    "SUCCESS": "\033[92m",
    "SEPARATOR": "\033[90m",
}

LEVEL_STYLES = {
    "DEBUG": ("DEBUG", "DEBUG"),
    "INFO": (" INFO", "INFO"),
    "WARNING": (" WARN", "WARNING"),
    "ERROR": ("ERROR", "ERROR"),
    "CRITICAL": ("CRIT!", "CRITICAL"),
}
