"""Plugin registry record and classification types."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

# Detection signal matched by every project (universal plugins)
ALWAYS = "always"


class Category(str, Enum):
    LSP = "lsp"
    GENERAL = "general"
    INTEGRATION = "integration"
    SKILLS = "skills"
    ISSUE_TRACKING = "issue-tracking"
    STYLE = "style"


class Tier(str, Enum):
    """Install urgency.

    AUTO installs without a prompt, SUGGEST is offered, INFO is catalog-only.
    """

    AUTO = "auto"
    SUGGEST = "suggest"
    INFO = "info"

    @property
    def order(self) -> int:
        return _TIER_ORDER[self]


_TIER_ORDER = {Tier.AUTO: 1, Tier.SUGGEST: 2, Tier.INFO: 3}


class LspSource(str, Enum):
    OFFICIAL = "official"
    COMMUNITY = "community"


class LspPreference(str, Enum):
    PREFERRED = "preferred"
    ALTERNATIVE = "alternative"


def _optional_enum(enum_cls, value):
    if value is None or value == "":
        return None
    return enum_cls(value)


@dataclass(frozen=True)
class PluginEntry:
    """One registry record. Immutable once created."""

    key: str
    install_name: str
    description: str
    marketplace: str
    category: Category
    tier: Tier
    detect: str = ""
    lsp_language: str | None = None
    lsp_source: LspSource | None = None
    lsp_preference: LspPreference | None = None

    def __post_init__(self):
        if not self.key:
            raise ValueError("Plugin key must not be empty")
        # Accept raw strings from callers; unknown values raise ValueError
        object.__setattr__(self, "category", Category(self.category))
        object.__setattr__(self, "tier", Tier(self.tier))
        object.__setattr__(self, "detect", self.detect or "")
        object.__setattr__(self, "lsp_language", self.lsp_language or None)
        object.__setattr__(self, "lsp_source", _optional_enum(LspSource, self.lsp_source))
        object.__setattr__(self, "lsp_preference", _optional_enum(LspPreference, self.lsp_preference))

    @property
    def plugin_id(self) -> str:
        """Identifier used in settings enabledPlugins and install commands."""
        return f"{self.install_name}@{self.marketplace}"

    @property
    def is_manual(self) -> bool:
        return not self.detect

    @property
    def is_lsp(self) -> bool:
        return self.lsp_language is not None

    def to_dict(self) -> dict[str, str | None]:
        return {
            "key": self.key,
            "installName": self.install_name,
            "description": self.description,
            "marketplace": self.marketplace,
            "category": self.category.value,
            "tier": self.tier.value,
            "detectionSignal": self.detect,
            "lspLanguage": self.lsp_language,
            "lspSource": self.lsp_source.value if self.lsp_source else None,
            "lspPreference": self.lsp_preference.value if self.lsp_preference else None,
        }


@dataclass(frozen=True)
class Solo:
    """A capability language served by a single entry."""

    language: str
    key: str

    @property
    def preferred(self) -> str:
        return self.key


@dataclass(frozen=True)
class Overlap:
    """A capability language served by several entries, with its tie-break resolved."""

    language: str
    preferred: str
    alternative: str
    members: tuple[str, ...] = field(default=())

    def __post_init__(self):
        if self.preferred == self.alternative:
            raise ValueError(
                f"Overlap for {self.language!r} needs distinct preferred and alternative keys"
            )
        if not self.members:
            object.__setattr__(self, "members", (self.preferred, self.alternative))


LspGroup = Union[Solo, Overlap]
