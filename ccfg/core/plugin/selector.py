"""Turn detected tags into an ordered plugin decision list.

Pure functions over a registry: nothing here installs, prompts or writes.
An external installer calls select() / build_candidates() for decisions and
hands the result to the settings store.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Mapping, Optional

from ccfg.core.detect.tags import Tag
from ccfg.core.logging import get_logger
from ccfg.core.plugin.catalog import get_registry
from ccfg.core.plugin.registry import PluginRegistry
from ccfg.core.plugin.types import ALWAYS, Category, LspPreference, Overlap, Tier

_log = get_logger("selector")

_TAG_ORDER = {tag.value: index for index, tag in enumerate(Tag)}


class ResolutionMode(str, Enum):
    """How overlapping LSP entries are resolved.

    AUTO keeps only the preferred entry, SUGGEST surfaces every member so the
    user can choose.
    """

    AUTO = "auto"
    SUGGEST = "suggest"


@dataclass
class Candidates:
    """Installer candidate split: install without asking vs offer."""

    auto: list[str] = field(default_factory=list)
    suggest: list[str] = field(default_factory=list)


def _signal_sort_key(signal: str) -> tuple[int, int, str]:
    if signal == ALWAYS:
        return (2, 0, signal)
    if signal in _TAG_ORDER:
        return (0, _TAG_ORDER[signal], signal)
    return (1, 0, signal)


def expand_signals(tags: Iterable[Tag | str]) -> list[str]:
    """Detection signals for registry matching, in deterministic order.

    JavaScript projects also get the typescript signal (the same LSP serves
    both), and the universal `always` signal is appended.
    """
    signals = {str(tag.value) if isinstance(tag, Tag) else str(tag) for tag in tags}
    signals.discard("")
    if Tag.JAVASCRIPT.value in signals:
        signals.add(Tag.TYPESCRIPT.value)
    signals.add(ALWAYS)
    return sorted(signals, key=_signal_sort_key)


def _dedup(keys: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(keys))


def select(
    tags: Iterable[Tag | str],
    tier: Tier | str,
    mode: ResolutionMode | str = ResolutionMode.AUTO,
    registry: Optional[PluginRegistry] = None,
) -> list[str]:
    """Plugin keys of the requested tier triggered by the detected tags.

    For each signal (tags in canonical order, then `always`) the matching
    entries are taken in registration order. Entries in an LSP overlap group
    are narrowed to the preferred one in AUTO mode and kept together in
    SUGGEST mode. The result is deduplicated and stable for equal input.
    """
    if registry is None:
        registry = get_registry()
    wanted_tier = Tier(tier)
    mode = ResolutionMode(mode)

    selected: list[str] = []
    for signal in expand_signals(tags):
        for key in registry.keys_by_detect(signal):
            entry = registry.get(key)
            if entry is None or entry.tier is not wanted_tier:
                continue

            if mode is ResolutionMode.AUTO and entry.lsp_language:
                group = registry.lsp_group(entry.lsp_language)
                if isinstance(group, Overlap) and key != group.preferred:
                    continue

            selected.append(key)

    result = _dedup(selected)
    _log.debug("Selected plugins", tier=wanted_tier.value, mode=mode.value, count=len(result))
    return result


def sort_keys(keys: Iterable[str], registry: Optional[PluginRegistry] = None) -> list[str]:
    """Order keys by (category, tier, install name) for display."""
    if registry is None:
        registry = get_registry()
    entries = [registry.get(k) for k in _dedup(keys)]
    known = [e for e in entries if e is not None]
    known.sort(key=lambda e: (e.category.value, e.tier.order, e.install_name))
    return [e.key for e in known]


def build_candidates(
    tags: Iterable[Tag | str],
    registry: Optional[PluginRegistry] = None,
    category: Category | str | None = None,
    list_mode: bool = False,
) -> Candidates:
    """Split matching registry entries into auto-install and suggest lists.

    Info-tier entries only appear in list mode, where detection is ignored.
    Outside list mode an entry needs a detection signal that was produced;
    manual-only entries never match. An auto-tier entry that shares its LSP
    language with another entry is demoted to the suggest list.
    """
    if registry is None:
        registry = get_registry()
    wanted_category = Category(category) if category else None
    signals = set(expand_signals(tags))

    raw_auto: list[str] = []
    raw_suggest: list[str] = []
    for entry in registry:
        if wanted_category is not None and entry.category is not wanted_category:
            continue
        if entry.tier is Tier.INFO and not list_mode:
            continue
        if not list_mode and (entry.is_manual or entry.detect not in signals):
            continue

        if entry.tier is Tier.AUTO and not registry.is_lsp_overlap(entry.key):
            raw_auto.append(entry.key)
        else:
            raw_suggest.append(entry.key)

    return Candidates(
        auto=sort_keys(raw_auto, registry),
        suggest=sort_keys(raw_suggest, registry),
    )


def resolve_overlaps(
    keys: Iterable[str],
    mode: ResolutionMode | str = ResolutionMode.AUTO,
    choices: Optional[Mapping[str, str]] = None,
    registry: Optional[PluginRegistry] = None,
) -> dict[str, str]:
    """Pick one entry per overlapping LSP language present among keys.

    Returns {language: chosen key}, languages in sorted order. In SUGGEST mode
    choices may name "preferred", "alternative" or a member key per language;
    anything else falls back to the preferred entry.
    """
    if registry is None:
        registry = get_registry()
    mode = ResolutionMode(mode)
    choices = choices or {}

    languages = set()
    for key in keys:
        entry = registry.get(key)
        if entry is not None and entry.lsp_language and registry.is_lsp_overlap(key):
            languages.add(entry.lsp_language)

    resolved: dict[str, str] = {}
    for lang in sorted(languages):
        group = registry.lsp_group(lang)
        if not isinstance(group, Overlap):
            continue
        choice = choices.get(lang) if mode is ResolutionMode.SUGGEST else None
        if choice == LspPreference.ALTERNATIVE.value:
            resolved[lang] = group.alternative
        elif choice in group.members:
            resolved[lang] = choice
        else:
            if choice not in (None, LspPreference.PREFERRED.value):
                _log.warning("Invalid LSP choice, using preferred", language=lang, choice=choice)
            resolved[lang] = group.preferred
    return resolved


def finalize_selection(*groups: Iterable[str]) -> list[str]:
    """Concatenate key groups (auto, LSP choices, picks), first occurrence wins."""
    return _dedup(key for group in groups for key in group if key)


def enabled_plugins_patch(
    keys: Iterable[str],
    registry: Optional[PluginRegistry] = None,
) -> dict[str, bool]:
    """{plugin_id: True} for the given keys, ready for SettingsStore.merge_plugins."""
    if registry is None:
        registry = get_registry()
    return {registry.plugin_id(key): True for key in _dedup(keys)}
