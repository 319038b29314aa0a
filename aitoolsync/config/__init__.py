# AI Tool Sync Configuration Module
# Handles YAML-based configuration loading, validation, and defaults

from aitoolsync.config.defaults import DEFAULT_CONFIG, generate_default_config
from aitoolsync.config.loader import (
    ensure_config_exists,
    get_config_path,
    load_config,
    load_project_config,
    save_config,
    validate_config_file,
)
from aitoolsync.config.schema import AiToolSyncConfig, OutputConfig, PluginConfig, PluginsSettings, Target, UseConfig

__all__ = [
    # Schema
    "AiToolSyncConfig",
    "PluginsSettings",
    "PluginConfig",
    "UseConfig",
    "OutputConfig",
    "Target",
    # Loader
    "load_config",
    "load_project_config",
    "save_config",
    "get_config_path",
    "ensure_config_exists",
    "validate_config_file",
    # Defaults
    "DEFAULT_CONFIG",
    "generate_default_config",
]
