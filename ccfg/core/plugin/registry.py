"""Ordered, append-only plugin registry.

Entries live in one insertion-ordered dict keyed by plugin key, so every
query returns keys in registration order and "first encountered" in the
overlap tie-break is well defined.
"""

from typing import Iterator, Optional

from ccfg.config import INSTALL_COMMAND
from ccfg.core.errors import DuplicatePluginError, RegistryFrozenError
from ccfg.core.logging import get_logger
from ccfg.core.plugin.types import (
    Category,
    LspGroup,
    LspPreference,
    LspSource,
    Overlap,
    PluginEntry,
    Solo,
    Tier,
)

_log = get_logger("plugin.registry")


class PluginRegistry:
    """Catalog of plugin entries, queryable by tier, signal, category and LSP language.

    Usage:
        registry = PluginRegistry(version="1.0.0")
        registry.register("official/pyright-lsp", "pyright-lsp", "Python LSP",
                          "claude-plugins-official", "lsp", "suggest", "python",
                          "python", "official", "preferred")
        registry.freeze()

        registry.keys_by_tier("auto")
        registry.lsp_preferred("python")
    """

    def __init__(self, version: str = "") -> None:
        self._entries: dict[str, PluginEntry] = {}
        self._frozen = False
        self.version = version

    # -- construction -------------------------------------------------------

    def register(
        self,
        key: str,
        install_name: str,
        description: str,
        marketplace: str,
        category: Category | str,
        tier: Tier | str,
        detect: str = "",
        lsp_language: Optional[str] = None,
        lsp_source: LspSource | str | None = None,
        lsp_preference: LspPreference | str | None = None,
    ) -> PluginEntry:
        """Add one entry. The only way entries enter the registry.

        Raises:
            DuplicatePluginError: key is already registered.
            RegistryFrozenError: registry was frozen.
            ValueError: category, tier, source or preference is not a known value.
        """
        if self._frozen:
            raise RegistryFrozenError(key)
        if key in self._entries:
            raise DuplicatePluginError(key)

        entry = PluginEntry(
            key=key,
            install_name=install_name,
            description=description,
            marketplace=marketplace,
            category=category,
            tier=tier,
            detect=detect,
            lsp_language=lsp_language,
            lsp_source=lsp_source,
            lsp_preference=lsp_preference,
        )
        self._entries[key] = entry
        return entry

    def freeze(self) -> None:
        self._frozen = True
        _log.debug("Registry frozen", count=len(self._entries), version=self.version)

    @property
    def frozen(self) -> bool:
        return self._frozen

    # -- lookup -------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[PluginEntry]:
        return iter(self._entries.values())

    def get(self, key: str) -> PluginEntry | None:
        return self._entries.get(key)

    def has(self, key: str) -> bool:
        return key in self._entries

    def entries(self) -> list[PluginEntry]:
        return list(self._entries.values())

    def all_keys(self) -> list[str]:
        return list(self._entries)

    def keys_by_tier(self, tier: Tier | str) -> list[str]:
        wanted = Tier(tier)
        return [e.key for e in self._entries.values() if e.tier is wanted]

    def keys_by_detect(self, signal: str) -> list[str]:
        """Keys triggered by a detection signal. The empty signal matches manual-only entries."""
        return [e.key for e in self._entries.values() if e.detect == signal]

    def keys_by_category(self, category: Category | str) -> list[str]:
        wanted = Category(category)
        return [e.key for e in self._entries.values() if e.category is wanted]

    def install_command(self, key: str) -> list[str]:
        """argv for installing a plugin, e.g. claude plugin install pyright-lsp@claude-plugins-official."""
        return [*INSTALL_COMMAND, self._entries[key].plugin_id]

    def plugin_id(self, key: str) -> str:
        return self._entries[key].plugin_id

    # -- LSP overlap --------------------------------------------------------

    def lsp_languages(self) -> list[str]:
        """Distinct capability languages, first-seen order."""
        seen: dict[str, None] = {}
        for entry in self._entries.values():
            if entry.lsp_language:
                seen.setdefault(entry.lsp_language, None)
        return list(seen)

    def lsp_keys(self, language: str) -> list[str]:
        """All entries serving a language, registration order."""
        return [e.key for e in self._entries.values() if e.lsp_language == language]

    def lsp_overlap_languages(self) -> list[str]:
        return [lang for lang in self.lsp_languages() if len(self.lsp_keys(lang)) > 1]

    def lsp_group(self, language: str) -> LspGroup | None:
        """Solo, Overlap, or None when no entry serves the language."""
        members = [self._entries[k] for k in self.lsp_keys(language)]
        if not members:
            return None
        if len(members) == 1:
            return Solo(language=language, key=members[0].key)

        preferred = next(
            (e for e in members if e.lsp_preference is LspPreference.PREFERRED),
            members[0],
        )
        others = [e for e in members if e.key != preferred.key]
        alternative = next(
            (e for e in others if e.lsp_preference is LspPreference.ALTERNATIVE),
            others[0],
        )
        return Overlap(
            language=language,
            preferred=preferred.key,
            alternative=alternative.key,
            members=tuple(e.key for e in members),
        )

    def lsp_preferred(self, language: str) -> str | None:
        group = self.lsp_group(language)
        return group.preferred if group is not None else None

    def lsp_alternative(self, language: str) -> str | None:
        group = self.lsp_group(language)
        if isinstance(group, Overlap):
            return group.alternative
        return None

    def is_lsp_overlap(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None or entry.lsp_language is None:
            return False
        return len(self.lsp_keys(entry.lsp_language)) > 1
