"""
Non-destructive JSON settings store.

Every operation re-reads the file, computes the merged document, and commits
it with write(): temp file in the target's directory, fsync, parse-back
validation, then os.replace. A failed operation leaves the target
byte-identical and removes its temp file.

No locking is done. Two processes merging into the same file concurrently
race: the later rename wins. Callers that need cross-process safety must
serialize externally.
"""

import copy
import errno
import json
import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Optional

from pydantic import ValidationError

from ccfg.config import PLUGIN_MANIFEST_RELPATH, THINKING_FLAG, TMP_FILE_PREFIX
from ccfg.core.errors import (
    CcfgError,
    CommitError,
    ManifestMissingError,
    MergeResult,
    NotFoundError,
    ParseError,
    PermissionError as SettingsPermissionError,
    WriteValidationError,
)
from ccfg.core.logging import get_logger
from ccfg.core.ops.backup import BackupManager
from ccfg.core.settings.schemas import PluginManifest, SettingsDocument
from ccfg.core.utils.file_utils import cleanup_orphaned_tmp_files, discard_tmp, fsync_directory

_log = get_logger("settings.store")

Document = dict[str, Any]

_PERMISSION_ERRNOS = (errno.EACCES, errno.EPERM, errno.EROFS)


class WriteState(str, Enum):
    """Lifecycle of one write(). COMMITTED and ABORTED are terminal."""

    DRAFTING = "drafting"
    VALIDATING = "validating"
    COMMITTED = "committed"
    ABORTED = "aborted"


def _serialize(document: Document) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False, allow_nan=False) + "\n"


def _first_error_field(exc: ValidationError) -> str | None:
    errors = exc.errors()
    if not errors:
        return None
    return ".".join(str(part) for part in errors[0].get("loc", ()))


def parse_document(text: str, source: Path | str | None = None) -> Document:
    """Parse and validate settings JSON.

    Raises:
        ParseError: not JSON, not an object, or a known field has the wrong type.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON: {e.msg} (line {e.lineno})", path=source) from e

    if not isinstance(data, dict):
        raise ParseError(
            f"Settings must be a JSON object, got {type(data).__name__}", path=source
        )

    try:
        SettingsDocument.model_validate(data)
    except ValidationError as e:
        field = _first_error_field(e)
        raise ParseError(f"Invalid settings field: {field}", path=source, field=field) from e

    return data


def merge_allow_list(existing: Iterable[str], new_entries: Iterable[str]) -> list[str]:
    """Order-preserving dedup union: existing order kept, unseen entries appended."""
    return list(dict.fromkeys([*existing, *new_entries]))


class SettingsStore:
    """Read, validate and atomically merge into one settings JSON file.

    Usage:
        store = SettingsStore(Path("~/.claude/settings.json").expanduser())
        store.ensure_exists()
        result = store.merge_permissions(["Bash(uv:*)", "Bash(ruff:*)"])
        if not result.success:
            ...
    """

    def __init__(self, path: Path | str, backups: Optional[BackupManager] = None):
        self.path = Path(path)
        self.backups = backups

    def __repr__(self) -> str:
        return f"SettingsStore({str(self.path)!r})"

    # -- read / write -------------------------------------------------------

    def exists(self) -> bool:
        return self.path.is_file()

    def read(self) -> Document:
        """Load and validate the document.

        Raises:
            NotFoundError: file does not exist.
            PermissionError: file cannot be read.
            ParseError: content is not a valid settings document.
        """
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise NotFoundError(f"Settings file not found: {self.path}", path=self.path) from e
        except PermissionError as e:
            raise SettingsPermissionError(f"Cannot read settings: {self.path}", path=self.path) from e
        except UnicodeDecodeError as e:
            raise ParseError(f"Settings file is not UTF-8: {self.path}", path=self.path) from e
        except OSError as e:
            raise NotFoundError(f"Cannot open settings file: {self.path} ({e})", path=self.path) from e

        try:
            return parse_document(text, source=self.path)
        except ParseError as e:
            _log.error("Invalid JSON in settings", path=str(self.path), error=e.message)
            raise

    def ensure_exists(self) -> bool:
        """Create a minimal `{}` document if the file is absent. True if created.

        Also clears temp files an interrupted write left next to the target.
        """
        cleanup_orphaned_tmp_files(self.path.parent)
        if self.exists():
            return False
        self.write({})
        _log.info("Created settings file", path=str(self.path))
        return True

    def write(self, document: Document) -> WriteState:
        """Atomically replace the file with document.

        Returns WriteState.COMMITTED. Every failure aborts: the temp file is
        removed, the target keeps its previous bytes, and the error is raised.

        Raises:
            WriteValidationError: document cannot be serialized, the written
                bytes do not parse back to an equal document, or a known
                field has the wrong type (read() would reject the file).
            PermissionError: directory or temp file cannot be created, or the
                rename is refused.
            CommitError: rename failed for another reason.
        """
        state = WriteState.DRAFTING
        directory = self.path.parent
        tmp_path: Optional[str] = None

        try:
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise SettingsPermissionError(
                    f"Cannot create directory: {directory}", path=directory
                ) from e

            try:
                payload = _serialize(document)
            except (TypeError, ValueError) as e:
                raise WriteValidationError(
                    f"Document cannot be serialized: {e}", path=self.path
                ) from e

            try:
                fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=TMP_FILE_PREFIX, suffix=".tmp")
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
                self._copy_mode(tmp_path)
            except OSError as e:
                raise SettingsPermissionError(
                    f"Cannot create temp file in: {directory} ({e.strerror})", path=directory
                ) from e

            state = WriteState.VALIDATING
            self._validate_written(tmp_path, document)

            try:
                os.replace(tmp_path, self.path)
            except OSError as e:
                if e.errno in _PERMISSION_ERRNOS:
                    raise SettingsPermissionError(f"Failed to write: {self.path}", path=self.path) from e
                raise CommitError(f"Failed to write: {self.path} ({e.strerror})", path=self.path) from e
            tmp_path = None
            fsync_directory(directory)

            state = WriteState.COMMITTED
            _log.debug("Settings written", path=str(self.path), state=state.value)
            return state

        except CcfgError as e:
            _log.error(
                "Write aborted, original file preserved",
                path=str(self.path),
                stage=state.value,
                state=WriteState.ABORTED.value,
                error=e.message,
            )
            raise
        finally:
            discard_tmp(tmp_path)

    def _validate_written(self, tmp_path: str, document: Document) -> None:
        try:
            with open(tmp_path, encoding="utf-8") as f:
                written = json.load(f)
        except (OSError, ValueError) as e:
            raise WriteValidationError(
                f"Generated JSON is invalid, original file preserved: {self.path}", path=self.path
            ) from e
        if written != document:
            raise WriteValidationError(
                f"Generated JSON does not match document, original file preserved: {self.path}",
                path=self.path,
            )
        try:
            SettingsDocument.model_validate(written)
        except ValidationError as e:
            field = _first_error_field(e)
            raise WriteValidationError(
                f"Generated settings field is invalid: {field}, original file preserved: {self.path}",
                path=self.path,
            ) from e

    def _copy_mode(self, tmp_path: str) -> None:
        try:
            mode = self.path.stat().st_mode & 0o777
        except OSError:
            mode = 0o644
        os.chmod(tmp_path, mode)

    # -- merges -------------------------------------------------------------

    def _apply(self, operation: str, transform: Callable[[Document], Document]) -> MergeResult:
        try:
            current = self.read()
            merged = transform(copy.deepcopy(current))
            if merged == current:
                _log.debug("No changes", operation=operation, path=str(self.path))
                return MergeResult.ok(self.path, changed=False)

            backup_path = self.backups.create(self.path) if self.backups else None
            self.write(merged)
        except CcfgError as e:
            _log.error("Merge failed", operation=operation, path=str(self.path), error=e.message)
            return MergeResult.failed(self.path, e)

        # Committed from here on; retention trouble cannot undo the merge
        if self.backups:
            try:
                self.backups.prune(self.path)
            except (CcfgError, OSError) as e:
                _log.warning(
                    "Backup prune failed after commit",
                    operation=operation,
                    path=str(self.path),
                    error=str(e),
                )

        _log.info("Settings merged", operation=operation, path=str(self.path))
        return MergeResult.ok(self.path, changed=True, backup_path=backup_path)

    def merge_permissions(self, entries: Iterable[str]) -> MergeResult:
        """Union entries into permissions.allow. Never removes or reorders existing ones."""
        new_entries = list(entries)

        def transform(doc: Document) -> Document:
            permissions = doc.get("permissions")
            if not isinstance(permissions, dict):
                permissions = {}
            permissions["allow"] = merge_allow_list(permissions.get("allow") or [], new_entries)
            doc["permissions"] = permissions
            return doc

        return self._apply("merge_permissions", transform)

    def merge_plugins(self, plugins: Mapping[str, bool]) -> MergeResult:
        """Add plugin ids missing from enabledPlugins.

        Existing ids keep their value, whatever plugins says for them: an
        already-enabled plugin is never demoted, a disabled one never re-enabled.
        """
        patch = dict(plugins)

        def transform(doc: Document) -> Document:
            enabled = doc.get("enabledPlugins")
            if not isinstance(enabled, dict):
                enabled = {}
            for plugin_id, value in patch.items():
                enabled.setdefault(plugin_id, value)
            doc["enabledPlugins"] = enabled
            return doc

        return self._apply("merge_plugins", transform)

    def set_flag_if_absent(self, path: str, value: Any) -> MergeResult:
        """Set the dotted path to value only if nothing is stored there.

        A missing key or JSON null counts as absent; explicit false is a value.
        Missing intermediate objects are created. If an intermediate is not an
        object, the path is occupied and the document is left as it is.
        """
        parts = [p for p in path.split(".") if p]
        if not parts:
            error = ParseError("Empty settings path", path=self.path, field=path)
            return MergeResult.failed(self.path, error)

        def transform(doc: Document) -> Document:
            node = doc
            for part in parts[:-1]:
                child = node.get(part)
                if child is None:
                    child = node[part] = {}
                elif not isinstance(child, dict):
                    return doc
                node = child
            if node.get(parts[-1]) is None:
                node[parts[-1]] = value
            return doc

        return self._apply("set_flag_if_absent", transform)

    def set_thinking(self) -> MergeResult:
        """alwaysThinkingEnabled = true, only when unset."""
        return self.set_flag_if_absent(THINKING_FLAG, True)


def read_plugin_permissions(plugin_dir: Path | str) -> list[str]:
    """suggestedPermissions.allow from a plugin's manifest.

    Missing or unreadable manifest, or an absent field, yields [] with a
    logged warning.
    """
    manifest_path = Path(plugin_dir) / PLUGIN_MANIFEST_RELPATH

    try:
        text = manifest_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        _warn_manifest(ManifestMissingError(f"Plugin manifest not found: {manifest_path}", path=manifest_path))
        return []
    except (OSError, UnicodeDecodeError) as e:
        _warn_manifest(ManifestMissingError(f"Could not read manifest: {manifest_path} ({e})", path=manifest_path))
        return []

    try:
        manifest = PluginManifest.model_validate_json(text)
    except ValidationError:
        _warn_manifest(ManifestMissingError(f"Could not read permissions from: {manifest_path}", path=manifest_path))
        return []

    suggested = manifest.suggested_permissions
    if suggested is None or suggested.allow is None:
        _warn_manifest(ManifestMissingError(f"No suggestedPermissions.allow in: {manifest_path}", path=manifest_path))
        return []
    return list(suggested.allow)


def _warn_manifest(error: ManifestMissingError) -> None:
    _log.warning(error.message, path=error.path, code=error.code)
