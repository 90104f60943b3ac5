"""
Managed sections of a CLAUDE.md file.

A managed section is fenced by HTML comment markers carrying its name and
version:

    <!-- ccfg:begin:python v0.1.0 -->

    ...managed content...

    <!-- ccfg:end:python -->

Only the lines between (and including) a section's markers are ever
rewritten. Everything outside them, including the "## User Customizations"
footer and whatever the user wrote below it, is carried over unchanged.
Writes go through a temp file in the same directory and os.replace.
"""

import errno
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from ccfg.core.errors import (
    AlreadyExistsError,
    CcfgError,
    CommitError,
    MergeResult,
    NotFoundError,
    ParseError,
    PermissionError as ClaudeMdPermissionError,
    WriteValidationError,
)
from ccfg.core.logging import get_logger
from ccfg.core.ops.backup import BackupManager
from ccfg.core.utils.file_utils import atomic_write_text

_log = get_logger("settings.claude_md")

BEGIN_MARKER = "<!-- ccfg:begin:{section} {version} -->"
END_MARKER = "<!-- ccfg:end:{section} -->"
USER_HEADING = "## User Customizations"
USER_FOOTER = f"{USER_HEADING}\n\nAdd your personal preferences below.\n"

_BEGIN_RE = re.compile(r"^<!-- ccfg:begin:(?P<section>\S+) (?P<version>\S+) -->$")
_END_RE = re.compile(r"^<!-- ccfg:end:(?P<section>\S+) -->$")
_TOKEN_RE = re.compile(r"^\S+$")

_PERMISSION_ERRNOS = (errno.EACCES, errno.EPERM, errno.EROFS)


@dataclass(frozen=True)
class Section:
    """One managed block: name, version tag, body text."""

    name: str
    version: str
    content: str

    def render(self) -> str:
        return "\n".join([
            BEGIN_MARKER.format(section=self.name, version=self.version),
            "",
            self.content.strip("\n"),
            "",
            END_MARKER.format(section=self.name),
        ])


@dataclass(frozen=True)
class MarkerProblem:
    """A begin without its end, or an end without its begin."""

    kind: str  # "begin" | "end"
    section: str
    line: int

    @property
    def message(self) -> str:
        return f"Unmatched {self.kind} marker: {self.section} (line {self.line})"


def _marker(line: str) -> tuple[str, str, str] | None:
    """(kind, section, version) for a marker line, else None. version is '' for end."""
    stripped = line.strip()
    m = _BEGIN_RE.match(stripped)
    if m:
        return "begin", m.group("section"), m.group("version")
    m = _END_RE.match(stripped)
    if m:
        return "end", m.group("section"), ""
    return None


def find_marker_problems(text: str) -> list[MarkerProblem]:
    """Unbalanced markers in text. Empty when balanced.

    A begin must be closed by its own end before the same section opens
    again; an end with no open begin is unmatched.
    """
    problems = []
    open_sections: dict[str, int] = {}
    for lineno, line in enumerate(text.split("\n"), start=1):
        marker = _marker(line)
        if marker is None:
            continue
        kind, section, _ = marker
        if kind == "begin":
            if section in open_sections:
                problems.append(MarkerProblem("begin", section, open_sections[section]))
            open_sections[section] = lineno
        elif open_sections.pop(section, None) is None:
            problems.append(MarkerProblem("end", section, lineno))
    for section, lineno in open_sections.items():
        problems.append(MarkerProblem("begin", section, lineno))
    return sorted(problems, key=lambda p: p.line)


def _insert(text: str, block: str) -> str:
    lines = text.split("\n")
    for i, line in enumerate(lines):
        if line.startswith(USER_HEADING):
            return "\n".join(lines[:i] + block.split("\n") + [""] + lines[i:])

    if not text:
        return f"{block}\n"
    if not text.endswith("\n"):
        text += "\n"
    return f"{text}\n{block}\n"


def _replace(text: str, section: str, block: str) -> str:
    lines = text.split("\n")
    start = end = None
    for i, line in enumerate(lines):
        marker = _marker(line)
        if marker is None or marker[1] != section:
            continue
        if marker[0] == "begin" and start is None:
            start = i
        elif marker[0] == "end" and start is not None:
            end = i
            break
    return "\n".join(lines[:start] + block.split("\n") + lines[end + 1:])


class ClaudeMd:
    """Marker-based section management for one CLAUDE.md.

    Usage:
        doc = ClaudeMd(project / "CLAUDE.md")
        if not doc.exists():
            doc.create([Section("python", "v0.1.0", "## Python Conventions")])
        else:
            doc.update_section("python", "## Python Conventions", "v0.2.0")
    """

    def __init__(self, path: Path | str, backups: Optional[BackupManager] = None):
        self.path = Path(path)
        self.backups = backups

    def __repr__(self) -> str:
        return f"ClaudeMd({str(self.path)!r})"

    def exists(self) -> bool:
        return self.path.is_file()

    def read_text(self) -> str:
        """
        Raises:
            NotFoundError: file does not exist.
            PermissionError: file cannot be read.
            ParseError: file is not UTF-8.
        """
        try:
            data = self.path.read_bytes()
        except FileNotFoundError as e:
            raise NotFoundError(f"CLAUDE.md not found: {self.path}", path=self.path) from e
        except OSError as e:
            raise ClaudeMdPermissionError(f"Cannot read: {self.path} ({e})", path=self.path) from e
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(f"CLAUDE.md is not UTF-8: {self.path}", path=self.path) from e

    def sections(self) -> dict[str, str]:
        """Section name -> version of its first begin marker. {} if the file is missing."""
        if not self.exists():
            return {}
        found: dict[str, str] = {}
        for line in self.read_text().split("\n"):
            marker = _marker(line)
            if marker and marker[0] == "begin":
                found.setdefault(marker[1], marker[2])
        return found

    def has_section(self, section: str) -> bool:
        return section in self.sections()

    def get_version(self, section: str) -> str | None:
        return self.sections().get(section)

    # -- mutations ----------------------------------------------------------

    def update_section(self, section: str, content: str, version: str) -> MergeResult:
        """Insert or refresh one managed section.

        Absent: inserted before the "## User Customizations" heading, or
        appended when there is none. Same version: nothing is written.
        Other version: the lines from its begin to its end marker are
        replaced. A section whose own markers are unbalanced is refused with
        ParseError, so text after a stray begin is never swallowed.
        Never raises CcfgError.
        """
        current = None
        try:
            block = self._section(section, version, content).render()
            text = self.read_text()
            problems = [p for p in find_marker_problems(text) if p.section == section]
            if problems:
                raise ParseError(
                    f"Unbalanced markers: {'; '.join(p.message for p in problems)}",
                    path=self.path,
                    field=section,
                )

            current = self._version_in(text, section)
            if current == version:
                _log.info("Section unchanged", section=section, version=version, path=str(self.path))
                return MergeResult.ok(self.path, changed=False)

            updated = _insert(text, block) if current is None else _replace(text, section, block)
            backup_path = self._commit(updated)
        except CcfgError as e:
            _log.error("Section update failed", section=section, path=str(self.path), error=e.message)
            return MergeResult.failed(self.path, e)

        if current is None:
            _log.info("Added section", section=section, version=version, path=str(self.path))
        else:
            _log.info("Updated section", section=section, old=current, new=version, path=str(self.path))
        return MergeResult.ok(self.path, changed=True, backup_path=backup_path)

    def create(self, sections: Iterable[Section]) -> MergeResult:
        """Write a new file: each section in order, then the user footer.

        An existing file is never overwritten (AlreadyExistsError result).
        """
        try:
            if self.path.exists():
                raise AlreadyExistsError(
                    f"File already exists, update sections instead: {self.path}", path=self.path
                )
            blocks = [self._section(s.name, s.version, s.content).render() for s in sections]
            text = "".join(f"{block}\n\n" for block in blocks) + USER_FOOTER
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ClaudeMdPermissionError(
                    f"Cannot create directory: {self.path.parent}", path=self.path.parent
                ) from e
            self._write(text)
        except CcfgError as e:
            _log.error("Create failed", path=str(self.path), error=e.message)
            return MergeResult.failed(self.path, e)

        _log.info("Created", path=str(self.path), sections=len(blocks))
        return MergeResult.ok(self.path, changed=True)

    def validate(self) -> list[MarkerProblem]:
        """Marker problems in the file; [] when every begin has its end.

        Raises:
            NotFoundError: file does not exist.
        """
        problems = find_marker_problems(self.read_text())
        for problem in problems:
            _log.error(problem.message, path=str(self.path))
        if problems:
            _log.error("CLAUDE.md marker validation failed", path=str(self.path), count=len(problems))
        return problems

    # -- internals ----------------------------------------------------------

    def _section(self, name: str, version: str, content: str) -> Section:
        for label, value in (("section", name), ("version", version)):
            if not _TOKEN_RE.match(value or ""):
                raise WriteValidationError(
                    f"Invalid {label} {value!r}: must be non-empty without whitespace",
                    path=self.path,
                )
        return Section(name, version, content)

    @staticmethod
    def _version_in(text: str, section: str) -> str | None:
        for line in text.split("\n"):
            marker = _marker(line)
            if marker and marker[0] == "begin" and marker[1] == section:
                return marker[2]
        return None

    def _commit(self, text: str) -> Optional[Path]:
        backup_path = self.backups.create(self.path) if self.backups else None
        self._write(text)
        if self.backups:
            try:
                self.backups.prune(self.path)
            except (CcfgError, OSError) as e:
                _log.warning("Backup prune failed after commit", path=str(self.path), error=str(e))
        return backup_path

    def _write(self, text: str) -> None:
        try:
            atomic_write_text(self.path, text)
        except OSError as e:
            _log.error("Write aborted, original file preserved", path=str(self.path), error=str(e))
            if e.errno in _PERMISSION_ERRNOS:
                raise ClaudeMdPermissionError(f"Failed to write: {self.path}", path=self.path) from e
            raise CommitError(f"Failed to write: {self.path} ({e.strerror})", path=self.path) from e
