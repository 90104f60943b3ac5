"""Tests for the non-destructive settings store."""

import errno
import json
import os
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import pytest

from ccfg.config import TMP_FILE_PREFIX
from ccfg.core.errors import (
    CommitError,
    NotFoundError,
    ParseError,
    PermissionError as SettingsPermissionError,
    WriteValidationError,
)
from ccfg.core.ops.backup import BackupConfig, BackupManager, RetentionPolicy
from ccfg.core.settings.store import (
    SettingsStore,
    WriteState,
    merge_allow_list,
    parse_document,
    read_plugin_permissions,
)


def _write_json(path: Path, data) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")


def _tmp_files(directory: Path) -> list[Path]:
    return list(directory.glob(f"{TMP_FILE_PREFIX}*"))


@pytest.fixture
def settings_path(tmp_path):
    return tmp_path / ".claude" / "settings.json"


@pytest.fixture
def store(settings_path):
    return SettingsStore(settings_path)


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------


class TestRead:

    def test_reads_object(self, store, settings_path):
        _write_json(settings_path, {"model": "opus", "permissions": {"allow": ["Bash(uv:*)"]}})
        assert store.read() == {"model": "opus", "permissions": {"allow": ["Bash(uv:*)"]}}

    def test_missing_file(self, store):
        with pytest.raises(NotFoundError):
            store.read()

    def test_malformed_json(self, store, settings_path):
        settings_path.parent.mkdir(parents=True)
        settings_path.write_text("{not json")
        with pytest.raises(ParseError):
            store.read()

    def test_top_level_must_be_object(self, store, settings_path):
        _write_json(settings_path, ["a", "b"])
        with pytest.raises(ParseError):
            store.read()

    def test_wrong_shape_of_known_field(self, store, settings_path):
        _write_json(settings_path, {"enabledPlugins": {"context7@claude-plugins-official": "yes"}})
        with pytest.raises(ParseError) as exc_info:
            store.read()
        assert exc_info.value.field.startswith("enabledPlugins")

    def test_allow_entries_must_be_strings(self):
        with pytest.raises(ParseError):
            parse_document('{"permissions": {"allow": [1, 2]}}')

    def test_unreadable_file(self, store, settings_path):
        _write_json(settings_path, {})
        with patch.object(Path, "read_text", side_effect=PermissionError("denied")):
            with pytest.raises(SettingsPermissionError):
                store.read()


# ---------------------------------------------------------------------------
# Write
# ---------------------------------------------------------------------------


class TestWrite:

    def test_commits_and_formats(self, store, settings_path):
        assert store.write({"b": 1, "a": "한글"}) is WriteState.COMMITTED
        assert settings_path.read_text(encoding="utf-8") == '{\n  "b": 1,\n  "a": "한글"\n}\n'

    def test_creates_parent_directory(self, tmp_path):
        target = tmp_path / "a" / "b" / "settings.json"
        SettingsStore(target).write({})
        assert json.loads(target.read_text()) == {}

    def test_unserializable_document_is_rejected(self, store, settings_path):
        _write_json(settings_path, {"keep": True})
        before = settings_path.read_bytes()

        with pytest.raises(WriteValidationError):
            store.write({"bad": float("nan")})

        assert settings_path.read_bytes() == before
        assert _tmp_files(settings_path.parent) == []

    def test_invalid_generated_json_preserves_original(self, store, settings_path):
        _write_json(settings_path, {"keep": True})
        before = settings_path.read_bytes()

        with patch("ccfg.core.settings.store._serialize", return_value="{broken"):
            with pytest.raises(WriteValidationError):
                store.write({"new": 1})

        assert settings_path.read_bytes() == before
        assert _tmp_files(settings_path.parent) == []

    def test_round_trip_mismatch_is_rejected(self, store, settings_path):
        _write_json(settings_path, {"keep": True})

        with patch("ccfg.core.settings.store._serialize", return_value='{"other": 1}\n'):
            with pytest.raises(WriteValidationError):
                store.write({"new": 1})

        assert json.loads(settings_path.read_text()) == {"keep": True}

    def test_rename_failure_is_commit_error(self, store, settings_path):
        _write_json(settings_path, {"keep": True})
        before = settings_path.read_bytes()

        with patch("ccfg.core.settings.store.os.replace", side_effect=OSError(errno.EXDEV, "cross-device")):
            with pytest.raises(CommitError):
                store.write({"new": 1})

        assert settings_path.read_bytes() == before
        assert _tmp_files(settings_path.parent) == []

    def test_rename_refused_is_permission_error(self, store, settings_path):
        _write_json(settings_path, {})
        with patch("ccfg.core.settings.store.os.replace", side_effect=OSError(errno.EACCES, "denied")):
            with pytest.raises(SettingsPermissionError):
                store.write({"new": 1})

    def test_temp_file_failure_is_permission_error(self, store, settings_path):
        _write_json(settings_path, {})
        with patch("ccfg.core.settings.store.tempfile.mkstemp", side_effect=PermissionError(errno.EACCES, "denied")):
            with pytest.raises(SettingsPermissionError):
                store.write({"new": 1})

    @pytest.mark.skipif(os.name == "nt", reason="POSIX modes")
    def test_keeps_file_mode(self, store, settings_path):
        _write_json(settings_path, {})
        settings_path.chmod(0o640)
        store.write({"a": 1})
        assert settings_path.stat().st_mode & 0o777 == 0o640


class TestEnsureExists:

    def test_creates_minimal_document(self, store, settings_path):
        assert store.ensure_exists() is True
        assert settings_path.read_text() == "{}\n"

    def test_existing_file_untouched(self, store, settings_path):
        _write_json(settings_path, {"model": "opus"})
        before = settings_path.read_bytes()
        assert store.ensure_exists() is False
        assert settings_path.read_bytes() == before

    def test_removes_orphaned_temp_files(self, store, settings_path):
        settings_path.parent.mkdir(parents=True)
        orphan = settings_path.parent / f"{TMP_FILE_PREFIX}dead.tmp"
        orphan.write_text("{")
        old = orphan.stat().st_mtime - 7200
        os.utime(orphan, (old, old))

        store.ensure_exists()

        assert not orphan.exists()


# ---------------------------------------------------------------------------
# Merges
# ---------------------------------------------------------------------------


class TestMergePermissions:

    def test_union_preserves_existing_order(self, store, settings_path):
        _write_json(settings_path, {"model": "opus", "permissions": {"allow": ["A"], "deny": ["X"]}})

        result = store.merge_permissions(["B", "A", "C"])

        assert result.success and result.changed
        assert store.read() == {
            "model": "opus",
            "permissions": {"allow": ["A", "B", "C"], "deny": ["X"]},
        }

    def test_creates_permissions_block(self, store, settings_path):
        _write_json(settings_path, {})
        store.merge_permissions(["Bash(go:*)"])
        assert store.read() == {"permissions": {"allow": ["Bash(go:*)"]}}

    def test_idempotent_without_rewrite(self, store, settings_path):
        _write_json(settings_path, {"permissions": {"allow": ["A"]}})
        store.merge_permissions(["B"])
        after_first = settings_path.read_bytes()
        mtime = settings_path.stat().st_mtime_ns

        result = store.merge_permissions(["B"])

        assert result.success
        assert result.changed is False
        assert settings_path.read_bytes() == after_first
        assert settings_path.stat().st_mtime_ns == mtime

    def test_merge_allow_list(self):
        assert merge_allow_list(["a", "b", "a"], ["c", "b"]) == ["a", "b", "c"]

    def test_two_merges_from_empty(self, store, settings_path):
        _write_json(settings_path, {})

        store.merge_permissions(["Bash(uv:*)", "Bash(ruff:*)"])
        store.merge_permissions(["Bash(ruff:*)", "Bash(pytest:*)"])

        assert store.read()["permissions"]["allow"] == [
            "Bash(uv:*)",
            "Bash(ruff:*)",
            "Bash(pytest:*)",
        ]


class TestMergePlugins:

    def test_adds_missing_ids_only(self, store, settings_path):
        _write_json(settings_path, {"enabledPlugins": {"x@m": False}})

        result = store.merge_plugins({"x@m": True, "y@m": True})

        assert result.changed
        assert store.read()["enabledPlugins"] == {"x@m": False, "y@m": True}

    def test_already_enabled_is_noop(self, store, settings_path):
        _write_json(settings_path, {"enabledPlugins": {"x@m": True}})
        assert store.merge_plugins({"x@m": True}).changed is False

    def test_disabled_core_stays_disabled_next_to_new_plugin(self, store, settings_path):
        _write_json(settings_path, {})
        store.merge_plugins({"ccfg-core@x": True})
        # user turns core off by hand
        _write_json(settings_path, {"enabledPlugins": {"ccfg-core@x": False}})

        result = store.merge_plugins({"ccfg-core@x": True, "ccfg-python@x": True})

        assert result.changed
        assert store.read()["enabledPlugins"] == {
            "ccfg-core@x": False,
            "ccfg-python@x": True,
        }


class TestSetFlagIfAbsent:

    def test_sets_thinking_when_unset(self, store, settings_path):
        _write_json(settings_path, {"model": "opus"})
        result = store.set_thinking()
        assert result.changed
        assert store.read() == {"model": "opus", "alwaysThinkingEnabled": True}

    def test_explicit_false_is_kept(self, store, settings_path):
        _write_json(settings_path, {"alwaysThinkingEnabled": False})
        result = store.set_thinking()
        assert result.success
        assert result.changed is False
        assert store.read()["alwaysThinkingEnabled"] is False

    def test_null_counts_as_absent(self, store, settings_path):
        _write_json(settings_path, {"alwaysThinkingEnabled": None})
        store.set_thinking()
        assert store.read()["alwaysThinkingEnabled"] is True

    def test_creates_intermediate_objects(self, store, settings_path):
        _write_json(settings_path, {})
        store.set_flag_if_absent("env.flags.fast", "1")
        assert store.read() == {"env": {"flags": {"fast": "1"}}}

    def test_non_object_intermediate_is_occupied(self, store, settings_path):
        _write_json(settings_path, {"env": "production"})
        result = store.set_flag_if_absent("env.debug", True)
        assert result.success
        assert result.changed is False
        assert store.read() == {"env": "production"}

    def test_empty_path_fails(self, store, settings_path):
        _write_json(settings_path, {})
        result = store.set_flag_if_absent("", True)
        assert not result.success
        assert isinstance(result.error, ParseError)


class TestMergeFailures:

    def test_missing_file_fails_and_creates_nothing(self, store, settings_path):
        result = store.merge_permissions(["A"])
        assert not result.success
        assert isinstance(result.error, NotFoundError)
        assert not settings_path.exists()

    def test_malformed_file_is_left_byte_identical(self, store, settings_path):
        settings_path.parent.mkdir(parents=True)
        settings_path.write_bytes(b'{"permissions": {"allow": ["A"],}')
        before = settings_path.read_bytes()

        result = store.merge_permissions(["B"])

        assert not result.success
        assert isinstance(result.error, ParseError)
        assert settings_path.read_bytes() == before

    def test_failed_write_reports_error(self, store, settings_path):
        _write_json(settings_path, {"permissions": {"allow": ["A"]}})
        before = settings_path.read_bytes()

        with patch("ccfg.core.settings.store.os.replace", side_effect=OSError(errno.EIO, "io")):
            result = store.merge_permissions(["B"])

        assert not result.success
        assert isinstance(result.error, CommitError)
        assert settings_path.read_bytes() == before
        assert _tmp_files(settings_path.parent) == []

    def test_raise_for_error(self, store):
        with pytest.raises(NotFoundError):
            store.set_thinking().raise_for_error()


class TestSchemaGuardedWrites:
    """A merge must never commit a document read() would reject."""

    @pytest.mark.parametrize(
        "merge",
        [
            lambda s: s.merge_plugins({"x@m": 1}),
            lambda s: s.merge_permissions([1]),
            lambda s: s.set_flag_if_absent("permissions.allow", True),
        ],
        ids=["plugin-value-not-bool", "allow-entry-not-str", "allow-not-list"],
    )
    def test_invalid_result_is_not_committed(self, store, settings_path, merge):
        _write_json(settings_path, {"model": "opus"})
        before = settings_path.read_bytes()

        result = merge(store)

        assert not result.success
        assert isinstance(result.error, WriteValidationError)
        assert settings_path.read_bytes() == before
        assert _tmp_files(settings_path.parent) == []
        assert store.read() == {"model": "opus"}

    def test_write_rejects_wrong_field_type(self, store, settings_path):
        _write_json(settings_path, {})
        before = settings_path.read_bytes()

        with pytest.raises(WriteValidationError):
            store.write({"alwaysThinkingEnabled": "yes"})

        assert settings_path.read_bytes() == before


# ---------------------------------------------------------------------------
# Backups
# ---------------------------------------------------------------------------


class _Clock:
    def __init__(self):
        self._second = 0

    def __call__(self) -> datetime:
        self._second += 1
        return datetime(2025, 1, 1, 12, 0, self._second)


@pytest.fixture
def backups(tmp_path):
    config = BackupConfig(backup_dir=tmp_path / "backups", claude_home=tmp_path / ".claude")
    return BackupManager(config=config, policy=RetentionPolicy(keep=2), clock=_Clock())


class TestBackupIntegration:

    def test_backup_taken_before_changing_write(self, settings_path, backups):
        _write_json(settings_path, {"permissions": {"allow": ["A"]}})
        original = settings_path.read_text()
        store = SettingsStore(settings_path, backups=backups)

        result = store.merge_permissions(["B"])

        assert result.backup_path is not None
        assert result.backup_path.read_text() == original

    def test_no_backup_when_unchanged(self, settings_path, backups):
        _write_json(settings_path, {"permissions": {"allow": ["A"]}})
        store = SettingsStore(settings_path, backups=backups)

        result = store.merge_permissions(["A"])

        assert result.backup_path is None
        assert backups.list_backups(settings_path) == []

    def test_backups_pruned_to_policy(self, settings_path, backups):
        _write_json(settings_path, {})
        store = SettingsStore(settings_path, backups=backups)

        for entry in ["A", "B", "C", "D"]:
            assert store.merge_permissions([entry]).changed

        assert len(backups.list_backups(settings_path)) == 2

    def test_prune_failure_after_commit_is_not_fatal(self, tmp_path, settings_path):
        _write_json(settings_path, {})
        config = BackupConfig(backup_dir=tmp_path / "backups", claude_home=tmp_path / ".claude")
        manager = BackupManager(config=config, policy=RetentionPolicy(keep=0), clock=_Clock())
        store = SettingsStore(settings_path, backups=manager)

        denied = PermissionError(errno.EACCES, "Permission denied")
        with patch.object(Path, "unlink", side_effect=denied):
            result = store.merge_permissions(["A"])

        assert result.success and result.changed
        assert store.read() == {"permissions": {"allow": ["A"]}}
        assert len(manager.list_backups(settings_path)) == 1

    def test_unlistable_backups_after_commit_is_not_fatal(self, settings_path, backups):
        _write_json(settings_path, {})
        store = SettingsStore(settings_path, backups=backups)

        denied = SettingsPermissionError("Cannot list backups", path=backups.backup_dir)
        with patch.object(BackupManager, "prune", side_effect=denied):
            result = store.merge_permissions(["A"])

        assert result.success and result.changed
        assert store.read() == {"permissions": {"allow": ["A"]}}


# ---------------------------------------------------------------------------
# Plugin manifests
# ---------------------------------------------------------------------------


class TestReadPluginPermissions:

    def _manifest(self, plugin_dir: Path, data) -> None:
        path = plugin_dir / ".claude-plugin" / "plugin.json"
        path.parent.mkdir(parents=True)
        path.write_text(data if isinstance(data, str) else json.dumps(data))

    def test_reads_suggested_allow(self, tmp_path):
        self._manifest(tmp_path, {
            "name": "ccfg-python",
            "suggestedPermissions": {"allow": ["Bash(uv:*)", "Bash(ruff:*)"]},
        })
        assert read_plugin_permissions(tmp_path) == ["Bash(uv:*)", "Bash(ruff:*)"]

    def test_missing_manifest_warns(self, tmp_path):
        with patch("ccfg.core.settings.store._log") as log:
            assert read_plugin_permissions(tmp_path) == []
        log.warning.assert_called_once()
        assert log.warning.call_args.kwargs["code"] == "MANIFEST_MISSING"

    def test_invalid_json(self, tmp_path):
        self._manifest(tmp_path, "{nope")
        assert read_plugin_permissions(tmp_path) == []

    def test_missing_field(self, tmp_path):
        self._manifest(tmp_path, {"name": "ccfg-go"})
        with patch("ccfg.core.settings.store._log") as log:
            assert read_plugin_permissions(tmp_path) == []
        log.warning.assert_called_once()

    def test_wrong_types(self, tmp_path):
        self._manifest(tmp_path, {"suggestedPermissions": {"allow": [1, 2]}})
        assert read_plugin_permissions(tmp_path) == []
