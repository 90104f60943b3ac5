"""Timestamped backups of configuration files.

Backups land in BACKUP_DIR as <name>_<YYYYMMDD_HHMMSS>.<ext>. A second backup
of the same file within one second gets a _1, _2, ... suffix rather than
overwriting the first.
"""

import re
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from ccfg.config import BACKUP_DIR, BACKUP_KEEP, CLAUDE_HOME
from ccfg.core.errors import NotFoundError, PermissionError as BackupPermissionError
from ccfg.core.logging import get_logger
from ccfg.core.utils.file_utils import atomic_copy

_log = get_logger("backup")

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


@dataclass
class BackupConfig:
    """Configuration for file backups."""

    backup_dir: Path = field(default_factory=lambda: BACKUP_DIR)
    claude_home: Path = field(default_factory=lambda: CLAUDE_HOME)


@dataclass
class RetentionPolicy:
    """How many backups to keep per source file."""

    keep: int = BACKUP_KEEP


@dataclass(frozen=True)
class BackupInfo:
    path: Path
    timestamp: str
    sequence: int
    size: int


def apply_retention_policy(
    backups: list[BackupInfo],
    policy: RetentionPolicy,
) -> dict[str, list[BackupInfo]]:
    """Apply retention policy to a list of backups.

    Args:
        backups: Backups of one source file, in any order.
        policy: Retention policy to apply.

    Returns:
        Dict with 'to_keep' and 'to_delete' lists, newest first.
    """
    if not backups:
        return {"to_keep": [], "to_delete": []}

    sorted_backups = sorted(backups, key=lambda b: (b.timestamp, b.sequence), reverse=True)
    keep = max(policy.keep, 0)

    return {"to_keep": sorted_backups[:keep], "to_delete": sorted_backups[keep:]}


class BackupManager:
    """Create, list, restore, roll back and prune backups of a file."""

    def __init__(
        self,
        config: Optional[BackupConfig] = None,
        policy: Optional[RetentionPolicy] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config or BackupConfig()
        self.policy = policy or RetentionPolicy()
        self._clock = clock

    @property
    def backup_dir(self) -> Path:
        return self.config.backup_dir

    def name_parts(self, file: Path) -> tuple[str, str]:
        """Backup base name and extension for a source file.

        CLAUDE.md exists at user and project level, so the two get distinct
        names: CLAUDE_user under the Claude home directory, CLAUDE_project elsewhere.
        """
        file = Path(file)
        name, ext = file.stem, file.suffix.lstrip(".")
        if file.name == "CLAUDE.md":
            parent = file.parent.resolve()
            home = self.config.claude_home.resolve()
            name = "CLAUDE_user" if parent == home or home in parent.parents else "CLAUDE_project"
        return name, ext

    def _pattern(self, file: Path) -> re.Pattern[str]:
        name, ext = self.name_parts(file)
        ext_part = rf"\.{re.escape(ext)}" if ext else ""
        return re.compile(rf"^{re.escape(name)}_(\d{{8}}_\d{{6}})(?:_(\d+))?{ext_part}$")

    def _ensure_dir(self) -> None:
        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            _log.error("Cannot create backup directory", path=str(self.backup_dir), error=str(e))
            raise BackupPermissionError(
                f"Cannot create backup directory: {self.backup_dir}", path=self.backup_dir
            ) from e

    def list_backups(self, file: Path) -> list[BackupInfo]:
        """Backups of file, newest first.

        Raises:
            PermissionError: the backup directory exists but cannot be listed.
        """
        if not self.backup_dir.is_dir():
            return []
        pattern = self._pattern(file)
        found = []
        try:
            entries = list(self.backup_dir.iterdir())
        except OSError as e:
            _log.error("Cannot list backup directory", path=str(self.backup_dir), error=str(e))
            raise BackupPermissionError(
                f"Cannot list backups in: {self.backup_dir}", path=self.backup_dir
            ) from e
        for p in entries:
            m = pattern.match(p.name)
            if not m or not p.is_file():
                continue
            try:
                size = p.stat().st_size
            except OSError:
                continue
            found.append(BackupInfo(path=p, timestamp=m.group(1), sequence=int(m.group(2) or 0), size=size))
        found.sort(key=lambda b: (b.timestamp, b.sequence), reverse=True)
        return found

    def create(self, file: Path) -> Path | None:
        """Copy file into the backup directory. None (and a warning) if file is missing."""
        file = Path(file)
        if not file.is_file():
            _log.warning("Nothing to backup, file not found", path=str(file))
            return None

        self._ensure_dir()
        name, ext = self.name_parts(file)
        timestamp = self._clock().strftime(TIMESTAMP_FORMAT)
        suffix = f".{ext}" if ext else ""

        backup_path = self.backup_dir / f"{name}_{timestamp}{suffix}"
        sequence = 0
        while backup_path.exists():
            sequence += 1
            backup_path = self.backup_dir / f"{name}_{timestamp}_{sequence}{suffix}"

        try:
            shutil.copy2(file, backup_path)
        except OSError as e:
            _log.error("Failed to create backup", path=str(backup_path), error=str(e))
            raise BackupPermissionError(f"Failed to create backup: {backup_path}", path=backup_path) from e

        _log.info("Backup created", file=str(file), backup=str(backup_path))
        return backup_path

    def restore(self, file: Path, timestamp: Optional[str] = None) -> Path:
        """Restore file from the backup matching timestamp, or the newest one.

        The current file is backed up first. Returns the backup restored from.
        """
        file = Path(file)
        backups = self.list_backups(file)
        if not backups:
            raise NotFoundError(f"No backups available for: {file.name}", path=file)

        if timestamp:
            match = next((b for b in backups if timestamp in b.path.name), None)
            if match is None:
                raise NotFoundError(f"No backup found matching timestamp: {timestamp}", path=file)
        else:
            match = backups[0]

        if file.is_file():
            _log.info("Creating safety backup before restore", path=str(file))
            self.create(file)

        self._copy_back(match.path, file)
        _log.info("Restored", backup=match.path.name, path=str(file))
        return match.path

    def rollback(self, file: Path) -> Path:
        """Back up the current file, then restore the state before it."""
        file = Path(file)
        if not self.list_backups(file):
            raise NotFoundError(f"No backups to rollback to for: {file.name}", path=file)

        _log.info("Creating safety backup before rollback", path=str(file))
        self.create(file)

        backups = self.list_backups(file)
        if len(backups) < 2:
            raise NotFoundError("Only one backup exists, nothing to rollback to", path=file)

        # backups[0] is the safety backup just taken
        restore_from = backups[1].path
        self._copy_back(restore_from, file)
        _log.info("Rolled back", backup=restore_from.name, path=str(file))
        return restore_from

    def prune(self, file: Path, keep: Optional[int] = None) -> list[Path]:
        """Delete all but the newest `keep` backups of file. Returns deleted paths.

        A backup that cannot be removed is logged and skipped.
        """
        policy = RetentionPolicy(keep=keep) if keep is not None else self.policy
        plan = apply_retention_policy(self.list_backups(file), policy)

        deleted = []
        for info in plan["to_delete"]:
            try:
                info.path.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                _log.warning("Failed to prune backup", backup=info.path.name, error=str(e))
                continue
            _log.info("Pruned old backup", backup=info.path.name)
            deleted.append(info.path)
        return deleted

    def _copy_back(self, src: Path, dst: Path) -> None:
        try:
            dst.parent.mkdir(parents=True, exist_ok=True)
            atomic_copy(src, dst)
        except OSError as e:
            _log.error("Failed to restore", backup=str(src), path=str(dst), error=str(e))
            raise BackupPermissionError(f"Failed to restore from: {src}", path=dst) from e
