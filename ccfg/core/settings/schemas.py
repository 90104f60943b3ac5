"""
Pydantic schemas for the settings document and plugin manifests.

Only the fields this package mutates are typed; everything else is allowed
through untouched. The schemas validate, they never rebuild the document:
the store keeps writing the original dict so opaque fields and key order
survive.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr


class PermissionsBlock(BaseModel):
    """settings.permissions"""

    model_config = ConfigDict(extra="allow")

    allow: Optional[list[StrictStr]] = Field(
        default=None,
        description="Permission rules, e.g. 'Bash(uv:*)'"
    )


class SettingsDocument(BaseModel):
    """Validated subset of settings.json / settings.local.json."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    permissions: Optional[PermissionsBlock] = None
    enabled_plugins: Optional[dict[StrictStr, StrictBool]] = Field(
        default=None,
        alias="enabledPlugins",
        description="Plugin id (name@marketplace) -> enabled"
    )
    always_thinking_enabled: Optional[StrictBool] = Field(
        default=None,
        alias="alwaysThinkingEnabled",
    )


class SuggestedPermissions(BaseModel):
    model_config = ConfigDict(extra="allow")

    allow: Optional[list[StrictStr]] = None


class PluginManifest(BaseModel):
    """.claude-plugin/plugin.json, as far as permission suggestions go."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: Optional[str] = None
    suggested_permissions: Optional[SuggestedPermissions] = Field(
        default=None,
        alias="suggestedPermissions",
    )
