"""Project technology detection from file and directory evidence.

detect() never raises: a rule that hits an OSError (unreadable directory,
vanished file, root that is not a directory) simply does not produce its tag.
"""

from dataclasses import dataclass
from pathlib import Path

from ccfg.core.detect.tags import RULES, Tag, parse_tag
from ccfg.core.logging import get_logger

_log = get_logger("detect")


@dataclass(frozen=True)
class Detection:
    """A detected tag and the file that triggered it (display only)."""

    tag: Tag
    trigger: str


def _evaluate(root: Path, tag: Tag) -> bool:
    try:
        return RULES[tag].matches(root)
    except OSError as e:
        _log.debug("Detection check failed", tag=tag.value, path=str(root), error=str(e))
        return False


def detect_ordered(path: Path | str = ".") -> list[Tag]:
    """Detected tags in canonical Tag order."""
    root = Path(path)
    try:
        is_dir = root.is_dir()
    except OSError:
        is_dir = False
    if not is_dir:
        _log.debug("Not a directory, nothing detected", path=str(root))
        return []
    return [tag for tag in Tag if _evaluate(root, tag)]


def detect(path: Path | str = ".") -> frozenset[Tag]:
    """Return the set of technology tags present in a project directory."""
    return frozenset(detect_ordered(path))


def detect_has(path: Path | str, tag: Tag | str) -> bool:
    """Membership check over detect(path); unknown tag names are never present."""
    wanted = parse_tag(tag)
    if wanted is None:
        return False
    return wanted in detect(path)


def trigger_for(path: Path | str, tag: Tag | str) -> str:
    """First matching trigger file for a tag, from its fixed lookup order."""
    known = parse_tag(tag)
    if known is None:
        return "(unknown)"
    try:
        trigger = RULES[known].trigger(Path(path))
    except OSError:
        trigger = None
    return trigger or "(unknown)"


def detect_summary(path: Path | str = ".") -> list[Detection]:
    """Per detected tag, the trigger that explains it."""
    root = Path(path)
    summary = [Detection(tag=tag, trigger=trigger_for(root, tag)) for tag in detect_ordered(root)]
    if not summary:
        _log.info("No languages or technologies detected", path=str(root))
    return summary
