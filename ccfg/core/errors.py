"""
Structured error types for the registry and settings store.

Every failure the settings store can produce is one of the CcfgError
subclasses below. Merge operations never let them escape: they are captured
in a MergeResult so a caller always gets an outcome back.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional


class CcfgError(Exception, ABC):
    """Abstract base for all typed application errors."""

    @abstractmethod
    def _abstract_guard(self) -> None: ...

    @property
    @abstractmethod
    def is_fatal(self) -> bool: ...

    def __init__(
        self,
        message: str,
        *,
        code: str = "",
        path: Path | str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__.upper().replace("ERROR", "").strip("_") or type(self).__name__
        self.path = str(path) if path is not None else None
        self.timestamp = time.time()

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "path": self.path,
            "is_fatal": self.is_fatal,
            "timestamp": self.timestamp,
        }


class NotFoundError(CcfgError):
    """A document the operation requires does not exist."""

    is_fatal: bool = True

    def _abstract_guard(self) -> None: ...

    def __init__(self, message: str, *, code: str = "NOT_FOUND", **kw: Any) -> None:
        super().__init__(message, code=code, **kw)


class AlreadyExistsError(CcfgError):
    """The operation only creates, and its target is already there."""

    is_fatal: bool = True

    def _abstract_guard(self) -> None: ...

    def __init__(self, message: str, *, code: str = "ALREADY_EXISTS", **kw: Any) -> None:
        super().__init__(message, code=code, **kw)


class ParseError(CcfgError):
    """Input is not valid JSON, or has the wrong shape."""

    is_fatal: bool = True

    def _abstract_guard(self) -> None: ...

    def __init__(
        self, message: str, *, code: str = "PARSE", field: str | None = None, **kw: Any
    ) -> None:
        super().__init__(message, code=code, **kw)
        self.field = field


class WriteValidationError(CcfgError):
    """Serialized output did not round-trip; the target was left untouched."""

    is_fatal: bool = True

    def _abstract_guard(self) -> None: ...

    def __init__(self, message: str, *, code: str = "WRITE_VALIDATION", **kw: Any) -> None:
        super().__init__(message, code=code, **kw)


class PermissionError(CcfgError):  # noqa: A001
    is_fatal: bool = True

    def _abstract_guard(self) -> None: ...

    def __init__(self, message: str, *, code: str = "PERMISSION", **kw: Any) -> None:
        super().__init__(message, code=code, **kw)


class CommitError(CcfgError):
    """The atomic rename onto the target failed."""

    is_fatal: bool = True

    def _abstract_guard(self) -> None: ...

    def __init__(self, message: str, *, code: str = "COMMIT", **kw: Any) -> None:
        super().__init__(message, code=code, **kw)


class ManifestMissingError(CcfgError):
    """Soft failure: a plugin manifest (or its permissions field) is absent."""

    is_fatal: bool = False

    def _abstract_guard(self) -> None: ...

    def __init__(self, message: str, *, code: str = "MANIFEST_MISSING", **kw: Any) -> None:
        super().__init__(message, code=code, **kw)


class RegistryError(CcfgError):
    is_fatal: bool = True

    def _abstract_guard(self) -> None: ...

    def __init__(self, message: str, *, code: str = "REGISTRY", key: str | None = None, **kw: Any) -> None:
        super().__init__(message, code=code, **kw)
        self.key = key


class DuplicatePluginError(RegistryError):
    def __init__(self, key: str, **kw: Any) -> None:
        super().__init__(f"Plugin key already registered: {key}", code="REGISTRY_DUPLICATE", key=key, **kw)


class RegistryFrozenError(RegistryError):
    def __init__(self, key: str, **kw: Any) -> None:
        super().__init__(
            f"Registry is frozen, cannot register: {key}", code="REGISTRY_FROZEN", key=key, **kw
        )


@dataclass(frozen=True)
class MergeResult:
    """Outcome of a settings merge.

    Attributes:
        success: True when the document was read, merged and (if needed) committed
        changed: True when a new version of the file was written
        path: Settings file the operation targeted
        error: The captured failure, None on success
        backup_path: Backup taken before the write, if any
    """

    success: bool
    changed: bool
    path: Path
    error: Optional[CcfgError] = None
    backup_path: Optional[Path] = None

    @classmethod
    def ok(cls, path: Path, changed: bool, backup_path: Optional[Path] = None) -> "MergeResult":
        return cls(success=True, changed=changed, path=path, backup_path=backup_path)

    @classmethod
    def failed(cls, path: Path, error: CcfgError) -> "MergeResult":
        return cls(success=False, changed=False, path=path, error=error)

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "changed": self.changed,
            "path": str(self.path),
            "error": self.error.to_dict() if self.error else None,
            "backup_path": str(self.backup_path) if self.backup_path else None,
        }
