from .lazy import Lazy
from .file_utils import (
    atomic_copy,
    cleanup_orphaned_tmp_files,
    discard_tmp,
    fsync_directory,
)

__all__ = [
    "Lazy",
    "atomic_copy",
    "cleanup_orphaned_tmp_files",
    "discard_tmp",
    "fsync_directory",
]
