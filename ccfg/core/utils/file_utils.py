import os
import shutil
import tempfile
import time
from pathlib import Path

from ccfg.config import TMP_FILE_PREFIX, TMP_MAX_AGE_SECONDS
from ccfg.core.logging import get_logger

_logger = get_logger("files")


def fsync_directory(dir_path: Path) -> None:

    if os.name == "nt":
        return

    try:

        o_directory = getattr(os, "O_DIRECTORY", 0)
        dir_fd = os.open(str(dir_path), os.O_RDONLY | o_directory)
        try:
            os.fsync(dir_fd)
        finally:
            os.close(dir_fd)
    except OSError as e:

        _logger.warning("Directory fsync failed", path=str(dir_path), error=str(e))


def discard_tmp(tmp_path: str | Path | None) -> None:
    """Remove a temp file if it still exists; never raises."""
    if not tmp_path:
        return
    try:
        os.unlink(tmp_path)
    except FileNotFoundError:
        pass
    except OSError as e:
        _logger.warning("Temp file cleanup failed", path=str(tmp_path), error=str(e))


def cleanup_orphaned_tmp_files(dir_path: Path, max_age_seconds: int = TMP_MAX_AGE_SECONDS) -> int:
    """Delete temp files left behind by an interrupted write.

    Only files carrying TMP_FILE_PREFIX and older than max_age_seconds are
    removed, so a write in progress in another process is left alone.
    """
    if not dir_path.exists():
        return 0

    now = time.time()
    deleted = 0

    try:
        for p in dir_path.iterdir():
            if not p.name.startswith(TMP_FILE_PREFIX):
                continue
            try:
                age = now - p.stat().st_mtime
                if age >= max_age_seconds:
                    p.unlink(missing_ok=True)
                    _logger.info("Cleaned orphaned tmp", file=p.name, age_seconds=int(age))
                    deleted += 1
            except FileNotFoundError:
                pass
            except OSError as e:
                _logger.warning("Cleanup error", file=p.name, error=str(e))
    except OSError:
        _logger.exception("Directory scan error", path=str(dir_path))

    return deleted


def atomic_copy(src: Path, dst: Path) -> None:
    """Copy src over dst through a temp file in dst's directory.

    dst is either fully replaced or left as it was. OSError propagates to
    the caller after the temp file is removed.
    """
    fd, tmp_path = tempfile.mkstemp(dir=dst.parent, prefix=TMP_FILE_PREFIX, suffix=".tmp")
    os.close(fd)
    try:
        shutil.copy2(src, tmp_path)
        with open(tmp_path, "rb") as f:
            os.fsync(f.fileno())
        os.replace(tmp_path, dst)
        tmp_path = None
        fsync_directory(dst.parent)
    finally:
        discard_tmp(tmp_path)


def atomic_write_text(path: Path, text: str) -> None:
    """Replace path with text through a fsynced temp file in its directory.

    path keeps its permission bits when it exists (0644 otherwise). OSError
    propagates to the caller after the temp file is removed.
    """
    try:
        mode = path.stat().st_mode & 0o777
    except OSError:
        mode = 0o644

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=TMP_FILE_PREFIX, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
        tmp_path = None
        fsync_directory(path.parent)
    finally:
        discard_tmp(tmp_path)
