"""Technology tags and the filesystem rule that produces each one.

RULES maps every Tag to exactly one rule object. A rule answers two
questions about a project root: does the technology appear (matches), and
which file or directory shows it (trigger, for display only). Rules raise
OSError freely; the detector treats any OSError as "tag absent".
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from fnmatch import fnmatchcase
from enum import Enum
from pathlib import Path


class Tag(str, Enum):
    """Detected technology. Declaration order is the canonical output order."""

    PYTHON = "python"
    GOLANG = "golang"
    TYPESCRIPT = "typescript"
    JAVASCRIPT = "javascript"
    JAVA = "java"
    RUST = "rust"
    CSHARP = "csharp"
    SHELL = "shell"
    DOCKER = "docker"
    KUBERNETES = "kubernetes"
    GITHUB_ACTIONS = "github-actions"
    MYSQL = "mysql"
    POSTGRESQL = "postgresql"
    MONGODB = "mongodb"
    REDIS = "redis"
    SQLITE = "sqlite"
    MARKDOWN = "markdown"
    FRONTEND = "frontend"
    BEADS = "beads"

    def __str__(self) -> str:
        return self.value


COMPOSE_FILES: tuple[str, ...] = (
    "docker-compose.yml",
    "docker-compose.yaml",
    "compose.yml",
    "compose.yaml",
)


# ---------------------------------------------------------------------------
# Filesystem primitives
# ---------------------------------------------------------------------------


def _glob_bounded(root: Path, pattern: str, max_depth: int) -> bool:
    """True if any entry within max_depth levels below root matches pattern.

    Depth 1 is the direct children of root, like `find -maxdepth 1`. Directory
    symlinks are not followed. Unreadable subdirectories are skipped; an
    unreadable root raises.
    """
    pending: list[tuple[Path, int]] = [(root, 1)]
    while pending:
        directory, depth = pending.pop()
        try:
            with os.scandir(directory) as it:
                entries = list(it)
        except OSError:
            if directory is root:
                raise
            continue
        for entry in entries:
            if fnmatchcase(entry.name, pattern):
                return True
            if depth < max_depth and entry.is_dir(follow_symlinks=False):
                pending.append((Path(entry.path), depth + 1))
    return False


# ---------------------------------------------------------------------------
# Rule types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Files:
    """Any of the named regular files exists directly under the root."""

    names: tuple[str, ...]

    def matches(self, root: Path) -> bool:
        return any((root / name).is_file() for name in self.names)

    def trigger(self, root: Path) -> str | None:
        for name in self.names:
            if (root / name).is_file():
                return name
        return None


@dataclass(frozen=True)
class Dirs:
    """Any of the named directories exists under the root."""

    names: tuple[str, ...]

    def matches(self, root: Path) -> bool:
        return any((root / name).is_dir() for name in self.names)

    def trigger(self, root: Path) -> str | None:
        for name in self.names:
            if (root / name).is_dir():
                return f"{name}/"
        return None


@dataclass(frozen=True)
class Glob:
    """Any file matching one of the patterns within max_depth levels.

    extra_dirs are searched too (with the same depth, relative to themselves),
    for layouts like scripts/*.sh.
    """

    patterns: tuple[str, ...]
    max_depth: int
    label: str
    extra_dirs: tuple[str, ...] = ()

    def matches(self, root: Path) -> bool:
        for pattern in self.patterns:
            if _glob_bounded(root, pattern, self.max_depth):
                return True
        for sub in self.extra_dirs:
            sub_root = root / sub
            if not sub_root.is_dir():
                continue
            for pattern in self.patterns:
                if _glob_bounded(sub_root, pattern, self.max_depth):
                    return True
        return False

    def trigger(self, root: Path) -> str | None:
        return self.label


@dataclass(frozen=True)
class ComposeImage:
    """A compose file declares an `image:` line matching the given pattern."""

    image: str

    @property
    def regex(self) -> re.Pattern[str]:
        return re.compile(rf"image:.*{self.image}")

    def matches(self, root: Path) -> bool:
        regex = self.regex
        for name in COMPOSE_FILES:
            path = root / name
            if not path.is_file():
                continue
            try:
                text = path.read_text(encoding="utf-8", errors="replace")
            except OSError:
                continue
            if any(regex.search(line) for line in text.splitlines()):
                return True
        return False

    def trigger(self, root: Path) -> str | None:
        return f"docker-compose: {self.image} image"


@dataclass(frozen=True)
class TypeScript:
    """tsconfig.json, or a package.json mentioning the "typescript" package."""

    def matches(self, root: Path) -> bool:
        if (root / "tsconfig.json").is_file():
            return True
        package_json = root / "package.json"
        if not package_json.is_file():
            return False
        try:
            text = package_json.read_text(encoding="utf-8", errors="replace")
        except OSError:
            return False
        return '"typescript"' in text

    def trigger(self, root: Path) -> str | None:
        if (root / "tsconfig.json").is_file():
            return "tsconfig.json"
        return "package.json + typescript"


@dataclass(frozen=True)
class JavaScript:
    """package.json present and no TypeScript signal."""

    def matches(self, root: Path) -> bool:
        if not (root / "package.json").is_file():
            return False
        return not TypeScript().matches(root)

    def trigger(self, root: Path) -> str | None:
        return "package.json"


Rule = Files | Dirs | Glob | ComposeImage | TypeScript | JavaScript


@dataclass(frozen=True)
class AnyOf:
    """First matching sub-rule wins; its trigger is reported."""

    rules: tuple[Rule, ...]

    def matches(self, root: Path) -> bool:
        return any(rule.matches(root) for rule in self.rules)

    def trigger(self, root: Path) -> str | None:
        for rule in self.rules:
            if rule.matches(root):
                return rule.trigger(root)
        return None


# ---------------------------------------------------------------------------
# Rule table
# ---------------------------------------------------------------------------

RULES: dict[Tag, Rule | AnyOf] = {
    Tag.PYTHON: Files(("pyproject.toml", "setup.py", "setup.cfg", "requirements.txt", "Pipfile")),
    Tag.GOLANG: Files(("go.mod",)),
    Tag.TYPESCRIPT: TypeScript(),
    Tag.JAVASCRIPT: JavaScript(),
    Tag.JAVA: Files(("pom.xml", "build.gradle", "build.gradle.kts")),
    Tag.RUST: Files(("Cargo.toml",)),
    Tag.CSHARP: Glob(("*.csproj", "*.sln"), max_depth=2, label="*.csproj / *.sln"),
    Tag.SHELL: Glob(("*.sh",), max_depth=1, label="*.sh files", extra_dirs=("scripts",)),
    Tag.DOCKER: Files(("Dockerfile", "docker-compose.yml", "docker-compose.yaml", "compose.yml")),
    Tag.KUBERNETES: Dirs(("k8s", "kubernetes")),
    Tag.GITHUB_ACTIONS: Dirs((".github/workflows",)),
    Tag.MYSQL: ComposeImage("mysql"),
    Tag.POSTGRESQL: ComposeImage("postgres"),
    Tag.MONGODB: ComposeImage("mongo"),
    Tag.REDIS: ComposeImage("redis"),
    Tag.SQLITE: Glob(("*.db", "*.sqlite", "*.sqlite3"), max_depth=1, label="*.db / *.sqlite files"),
    Tag.MARKDOWN: AnyOf((Dirs(("docs",)), Files(("README.md",)))),
    Tag.FRONTEND: Glob(
        ("*.tsx", "*.vue", "*.svelte", "*.jsx"),
        max_depth=2,
        label="*.tsx / *.vue / *.svelte / *.jsx",
    ),
    Tag.BEADS: Dirs((".beads",)),
}

_missing = [tag.value for tag in Tag if tag not in RULES]
if _missing:
    raise RuntimeError(f"Detection rules missing for tags: {', '.join(_missing)}")
del _missing


def rule_for(tag: Tag) -> Rule | AnyOf:
    return RULES[tag]


def parse_tag(value: "Tag | str") -> Tag | None:
    """Tag for a raw string, or None if it names no known technology."""
    if isinstance(value, Tag):
        return value
    try:
        return Tag(value)
    except ValueError:
        return None
