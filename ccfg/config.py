import os
from pathlib import Path

from dotenv import load_dotenv
from ccfg.core.logging import get_logger
_log = get_logger("config")

load_dotenv()


def _get_int_env(name: str, default: int) -> int:
    """Get integer value from environment variable.

    Args:
        name: Environment variable name
        default: Default value if not set or invalid

    Returns:
        Integer value from env or default
    """
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        _log.warning("Invalid int env", env=name, value=raw)
        return default


def _get_path_env(name: str, default: Path) -> Path:
    """Get a user-expanded path from environment variable, or default."""
    raw = os.getenv(name)
    if not raw:
        return default
    return Path(raw).expanduser()


CLAUDE_HOME = _get_path_env("CCFG_CLAUDE_HOME", Path.home() / ".claude")

SETTINGS_FILE = _get_path_env("CCFG_SETTINGS_FILE", CLAUDE_HOME / "settings.json")

# Backups of settings.json / CLAUDE.md before modification
BACKUP_DIR = _get_path_env("CCFG_BACKUP_DIR", CLAUDE_HOME / "backups")
BACKUP_KEEP = _get_int_env("CCFG_BACKUP_KEEP", 10)

# Relative to a plugin root, e.g. plugins/ccfg-python/.claude-plugin/plugin.json
PLUGIN_MANIFEST_RELPATH = Path(".claude-plugin") / "plugin.json"

THINKING_FLAG = "alwaysThinkingEnabled"

# Temp files live next to their target so os.replace stays on one filesystem
TMP_FILE_PREFIX = ".ccfg_settings."
TMP_MAX_AGE_SECONDS = _get_int_env("CCFG_TMP_MAX_AGE_SECONDS", 3600)

INSTALL_COMMAND = ("claude", "plugin", "install")
