"""Built-in third-party plugin catalog.

Maps languages and categories to recommended plugins. Key format is
<source>/<plugin-name>, e.g. "official/pyright-lsp". Rows are registered in
the order listed; that order is the tie-break for overlapping LSPs with no
explicit preference.
"""

from ccfg.core.logging import get_logger
from ccfg.core.plugin.registry import PluginRegistry
from ccfg.core.plugin.types import ALWAYS
from ccfg.core.utils.lazy import Lazy

_log = get_logger("plugin.catalog")

CATALOG_VERSION = "1.0.0"

OFFICIAL = "claude-plugins-official"
LSPS = "claude-code-lsps"
AGENT_SKILLS = "anthropic-agent-skills"
BEADS = "beads-marketplace"


# ---------------------------------------------------------------------------
# LSP plugins, dual coverage (official + community)
# ---------------------------------------------------------------------------
# (language, official name, official description, official preference,
#  community key, community name, community description)
# Both are suggest-tier; the user (or the auto resolver) picks one.

_DUAL_LSPS = (
    ("typescript", "typescript-lsp", "TypeScript/JS language server (official)", "preferred",
     "vtsls", "vtsls", "TypeScript/JS language server (community)"),
    ("python", "pyright-lsp", "Python type checker and language server (official)", "preferred",
     "pyright", "pyright", "Python type checker and language server (community)"),
    ("golang", "gopls-lsp", "Go language server (official)", "preferred",
     "gopls", "gopls", "Go language server (community)"),
    ("rust", "rust-analyzer-lsp", "Rust language server (official)", "preferred",
     "rust-analyzer", "rust-analyzer", "Rust language server (community)"),
    ("cpp", "clangd-lsp", "C/C++ language server (official)", "preferred",
     "clangd", "clangd", "C/C++ language server (community)"),
    # Intelephense is the industry-standard PHP LSP
    ("php", "php-lsp", "PHP language server (official)", "alternative",
     "intelephense", "intelephense", "PHP language server, Intelephense (community)"),
    ("swift", "swift-lsp", "Swift language server (official)", "preferred",
     "sourcekit-lsp", "sourcekit-lsp", "Swift language server, SourceKit (community)"),
    ("kotlin", "kotlin-lsp", "Kotlin language server (official)", "preferred",
     "kotlin-lsp-community", "kotlin-lsp", "Kotlin language server (community)"),
    # OmniSharp is the industry-standard C# LSP
    ("csharp", "csharp-lsp", "C# language server (official)", "alternative",
     "omnisharp", "omnisharp", "C# language server, OmniSharp (community)"),
    ("java", "jdtls-lsp", "Java language server, Eclipse JDT.LS (official)", "preferred",
     "jdtls", "jdtls", "Java language server, Eclipse JDT.LS (community)"),
    ("lua", "lua-lsp", "Lua language server (official)", "preferred",
     "lua-language-server", "lua-language-server", "Lua language server, sumneko (community)"),
)

# ---------------------------------------------------------------------------
# LSP plugins, community only: auto-installed when detected
# ---------------------------------------------------------------------------
# (language, name, description)

_COMMUNITY_LSPS = (
    ("shell", "bash-language-server", "Bash/Shell language server"),
    ("clojure", "clojure-lsp", "Clojure language server"),
    ("dart", "dart-analyzer", "Dart/Flutter language server"),
    ("elixir", "elixir-ls", "Elixir language server"),
    ("gleam", "gleam", "Gleam language server"),
    ("nix", "nixd", "Nix language server"),
    ("ocaml", "ocaml-lsp", "OCaml language server"),
    ("ruby", "solargraph", "Ruby language server, Solargraph"),
    ("terraform", "terraform-ls", "Terraform language server"),
    ("yaml", "yaml-language-server", "YAML language server"),
    ("zig", "zls", "Zig language server"),
)

# ---------------------------------------------------------------------------
# Everything else
# ---------------------------------------------------------------------------
# (key, name, description, marketplace, category, tier, detection signal)

_PLUGINS = (
    # General, auto: high-confidence universal plugins
    ("official/context7", "context7", "Up-to-date library documentation retrieval",
     OFFICIAL, "general", "auto", ALWAYS),
    ("official/commit-commands", "commit-commands", "Structured git commit workflow",
     OFFICIAL, "general", "auto", ALWAYS),
    ("skills/document-skills", "document-skills", "Office document handling (xlsx, docx, pptx, pdf)",
     AGENT_SKILLS, "skills", "auto", ALWAYS),

    # General, suggest
    ("official/code-review", "code-review", "Automated PR review with specialized agents",
     OFFICIAL, "general", "suggest", ALWAYS),
    ("official/feature-dev", "feature-dev", "Feature development workflow and code exploration",
     OFFICIAL, "general", "suggest", ALWAYS),
    ("official/security-guidance", "security-guidance", "Security vulnerability scanning on file edits",
     OFFICIAL, "general", "suggest", ALWAYS),
    ("official/serena", "serena", "Semantic code navigation and persistent memory",
     OFFICIAL, "general", "suggest", ALWAYS),
    ("official/greptile", "greptile", "AI-powered code review and codebase search",
     OFFICIAL, "general", "suggest", ALWAYS),
    ("official/frontend-design", "frontend-design", "Production-grade frontend UI generation",
     OFFICIAL, "general", "suggest", "frontend"),
    ("official/playwright", "playwright", "Browser testing and automation",
     OFFICIAL, "general", "suggest", "frontend"),

    # General, info
    ("official/ralph-loop", "ralph-loop", "Autonomous iterative development loops",
     OFFICIAL, "general", "info", ""),
    ("official/firecrawl", "firecrawl", "Web scraping and crawling for LLM-ready content",
     OFFICIAL, "general", "info", ""),
    ("official/pr-review-toolkit", "pr-review-toolkit", "Comprehensive PR review agents",
     OFFICIAL, "general", "info", ""),
    ("official/code-simplifier", "code-simplifier", "Code clarity and complexity reduction",
     OFFICIAL, "general", "info", ""),
    ("official/hookify", "hookify", "Custom hook creation for behavior prevention",
     OFFICIAL, "general", "info", ""),
    ("official/plugin-dev", "plugin-dev", "Claude Code plugin development toolkit",
     OFFICIAL, "general", "info", ""),
    ("official/claude-code-setup", "claude-code-setup", "Tailored automation recommendations",
     OFFICIAL, "general", "info", ""),
    ("official/claude-md-management", "claude-md-management", "CLAUDE.md maintenance and knowledge tracking",
     OFFICIAL, "general", "info", ""),
    ("official/agent-sdk-dev", "agent-sdk-dev", "Anthropic Agent SDK development kit",
     OFFICIAL, "general", "info", ""),
    ("official/playground", "playground", "Interactive HTML playgrounds with live preview",
     OFFICIAL, "general", "info", ""),
    ("official/superpowers", "superpowers", "Brainstorming, debugging, and TDD techniques",
     OFFICIAL, "general", "info", ""),

    # Style, info: output behavior, personal preference
    ("official/explanatory-output-style", "explanatory-output-style",
     "Educational insights about implementation choices", OFFICIAL, "style", "info", ""),
    ("official/learning-output-style", "learning-output-style",
     "Interactive learning mode at decision points", OFFICIAL, "style", "info", ""),

    # Integrations, info: external services, need accounts or API keys
    ("official/github", "github", "GitHub API integration", OFFICIAL, "integration", "info", ""),
    ("official/gitlab", "gitlab", "GitLab API integration", OFFICIAL, "integration", "info", ""),
    ("official/linear", "linear", "Linear issue tracking integration", OFFICIAL, "integration", "info", ""),
    ("official/asana", "asana", "Asana project management integration", OFFICIAL, "integration", "info", ""),
    ("official/slack", "slack", "Slack messaging integration", OFFICIAL, "integration", "info", ""),
    ("official/figma", "figma", "Figma design platform integration", OFFICIAL, "integration", "info", ""),
    ("official/notion", "notion", "Notion workspace integration", OFFICIAL, "integration", "info", ""),
    ("official/sentry", "sentry", "Sentry error monitoring integration", OFFICIAL, "integration", "info", ""),
    ("official/vercel", "vercel", "Vercel deployment platform integration", OFFICIAL, "integration", "info", ""),
    ("official/stripe", "stripe", "Stripe payments integration", OFFICIAL, "integration", "info", ""),
    ("official/firebase", "firebase", "Google Firebase backend integration", OFFICIAL, "integration", "info", ""),
    ("official/supabase", "supabase", "Supabase backend integration", OFFICIAL, "integration", "info", ""),
    ("official/pinecone", "pinecone", "Pinecone vector database integration", OFFICIAL, "integration", "info", ""),
    ("official/posthog", "posthog", "PostHog analytics integration", OFFICIAL, "integration", "info", ""),
    ("official/circleback", "circleback", "CircleBack meeting intelligence integration",
     OFFICIAL, "integration", "info", ""),
    ("official/coderabbit", "coderabbit", "CodeRabbit AI code review integration",
     OFFICIAL, "integration", "info", ""),
    ("official/huggingface-skills", "huggingface-skills", "HuggingFace model hub integration",
     OFFICIAL, "integration", "info", ""),
    ("official/sonatype-guide", "sonatype-guide", "Sonatype dependency security intelligence",
     OFFICIAL, "integration", "info", ""),
    ("official/atlassian", "atlassian", "Jira and Confluence integration", OFFICIAL, "integration", "info", ""),
    ("official/laravel-boost", "laravel-boost", "Laravel development toolkit", OFFICIAL, "integration", "info", ""),

    # Skills, info
    ("skills/example-skills", "example-skills", "Example skills (algorithmic art, brand guidelines, etc.)",
     AGENT_SKILLS, "skills", "info", ""),

    # Issue tracking, suggest
    ("beads/beads", "beads", "AI-supervised issue tracker for coding workflows",
     BEADS, "issue-tracking", "suggest", "beads"),
)


def register_catalog(registry: PluginRegistry) -> PluginRegistry:
    """Register every built-in entry into registry (which must not be frozen)."""
    for lang, off_name, off_desc, off_pref, com_key, com_name, com_desc in _DUAL_LSPS:
        com_pref = "alternative" if off_pref == "preferred" else "preferred"
        registry.register(
            f"official/{off_name}", off_name, off_desc, OFFICIAL,
            "lsp", "suggest", lang, lang, "official", off_pref,
        )
        registry.register(
            f"community/{com_key}", com_name, com_desc, LSPS,
            "lsp", "suggest", lang, lang, "community", com_pref,
        )

    for lang, name, desc in _COMMUNITY_LSPS:
        registry.register(f"community/{name}", name, desc, LSPS, "lsp", "auto", lang, lang)

    for key, name, desc, marketplace, category, tier, signal in _PLUGINS:
        registry.register(key, name, desc, marketplace, category, tier, signal)

    return registry


def build_default_registry() -> PluginRegistry:
    registry = register_catalog(PluginRegistry(version=CATALOG_VERSION))
    registry.freeze()
    _log.debug("Catalog loaded", count=len(registry), version=CATALOG_VERSION)
    return registry


_registry: Lazy[PluginRegistry] = Lazy(build_default_registry)


def get_registry() -> PluginRegistry:
    """Process-wide built-in registry, built on first use."""
    return _registry.get()


def reset_registry() -> None:
    _registry.reset()
