# AI Tool Sync Configuration Schema
# Pydantic models for YAML configuration validation

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from aitoolsync.plugins.content import CATEGORIES, DEFAULT_TARGETS
from aitoolsync.utils.paths import expand_path


class Target(str, Enum):
    """Supported output targets."""

    CURSOR = "cursor"
    CLAUDE = "claude"
    FACTORY = "factory"


class PluginsSettings(BaseModel):
    """Plugin cache and fetch settings."""

    cache_dir: str = Field(default=".ai-tool-sync/plugins", description="Plugin cache directory (relative to project)")
    timeout: float = Field(default=300.0, gt=0, description="Clone timeout in seconds")
    use_cache: bool = Field(default=True, description="Reuse cached plugins between runs")
    targets: list[Target] = Field(
        default_factory=lambda: [Target(t) for t in DEFAULT_TARGETS],
        description="Targets to load content for",
    )

    def resolve_cache_dir(self, project_root: Path) -> Path:
        """Get the absolute cache directory for a project."""
        return expand_path(self.cache_dir, base=project_root)


class PluginConfig(BaseModel):
    """A plugin the project uses."""

    name: str = Field(description="Display name")
    source: str = Field(description="Plugin reference (e.g. github:owner/repo or ./path)")
    version: Optional[str] = Field(default=None, description="Version, tag or commit to pin")
    enabled: bool = Field(default=True, description="Whether this plugin is loaded")
    include: list[str] = Field(default_factory=list, description="Content categories to keep (empty = all)")
    exclude: list[str] = Field(default_factory=list, description="Content categories to drop")

    @field_validator("name", "source")
    @classmethod
    def not_blank(cls, v: str) -> str:
        """Require non-empty values."""
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("include", "exclude")
    @classmethod
    def known_categories(cls, v: list[str]) -> list[str]:
        """Only allow known content categories."""
        unknown = [c for c in v if c not in CATEGORIES]
        if unknown:
            raise ValueError(f"unknown categories {unknown}, expected any of {list(CATEGORIES)}")
        return v


class UseConfig(BaseModel):
    """External content the project uses."""

    plugins: list[PluginConfig] = Field(default_factory=list, description="Plugins to load")


class OutputConfig(BaseModel):
    """Output configuration."""

    verbose: bool = Field(default=False, description="Enable verbose output")
    colored: bool = Field(default=True, description="Enable colored output")


class AiToolSyncConfig(BaseModel):
    """Root configuration model for AI Tool Sync."""

    plugins: PluginsSettings = Field(default_factory=PluginsSettings, description="Plugin settings")
    use: UseConfig = Field(default_factory=UseConfig, description="Plugins to use")
    output: OutputConfig = Field(default_factory=OutputConfig, description="Output settings")

    def get_enabled_plugins(self) -> list[PluginConfig]:
        """Return only enabled plugins."""
        return [plugin for plugin in self.use.plugins if plugin.enabled]

    def get_plugin(self, name: str) -> Optional[PluginConfig]:
        """Get a plugin by name."""
        for plugin in self.use.plugins:
            if plugin.name == name:
                return plugin
        return None

    def target_names(self) -> list[str]:
        """Configured targets as plain strings."""
        return [t.value for t in self.plugins.targets]
