# AI Tool Sync Configuration Loader
# Load, save, and manage YAML configuration files

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from aitoolsync.config.defaults import generate_default_config, get_default_config
from aitoolsync.config.schema import AiToolSyncConfig

CONFIG_DIR_NAME = ".ai-tool-sync"
CONFIG_FILE_NAME = "config.yaml"


def get_config_dir(project_root: Optional[Path] = None) -> Path:
    """Get the project configuration directory."""
    return (project_root or Path.cwd()) / CONFIG_DIR_NAME


def get_config_path(project_root: Optional[Path] = None) -> Path:
    """Get the path to the configuration file."""
    # Allow override via environment variable
    env_path = os.environ.get("AI_TOOL_SYNC_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    return get_config_dir(project_root) / CONFIG_FILE_NAME


def load_config(config_path: Optional[Path] = None) -> AiToolSyncConfig:
    """
    Load configuration from YAML file.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        AiToolSyncConfig: Validated configuration object.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValidationError: If config file is invalid.
    """
    if config_path is None:
        config_path = get_config_path()

    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path}\nRun 'aitoolsync config init' to create one."
        )

    with open(config_path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        data = {}

    # Merge with defaults for missing values
    merged = _merge_with_defaults(data)

    return AiToolSyncConfig.model_validate(merged)


def load_project_config(project_root: Optional[Path] = None) -> AiToolSyncConfig:
    """
    Load a project's configuration, falling back to defaults.

    Args:
        project_root: Project directory (default: current directory).

    Returns:
        AiToolSyncConfig: Loaded or default configuration.
    """
    config_path = get_config_path(project_root)
    if not config_path.exists():
        return AiToolSyncConfig.model_validate(get_default_config())
    return load_config(config_path)


def save_config(config: AiToolSyncConfig, config_path: Optional[Path] = None) -> Path:
    """
    Save configuration to YAML file.

    Args:
        config: Configuration object to save.
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        Path: Path where config was saved.
    """
    if config_path is None:
        config_path = get_config_path()

    config_path.parent.mkdir(parents=True, exist_ok=True)

    # Use mode='json' to serialize Enums as their string values
    data = config.model_dump(exclude_none=True, mode="json")

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)

    return config_path


def ensure_config_exists(project_root: Optional[Path] = None) -> tuple[Path, bool]:
    """
    Ensure configuration file exists, creating default if needed.

    Returns:
        Tuple of (config_path, was_created).
    """
    config_path = get_config_path(project_root)

    if config_path.exists():
        return config_path, False

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(generate_default_config(), encoding="utf-8")
    return config_path, True


def validate_config_file(config_path: Optional[Path] = None) -> tuple[bool, list[str]]:
    """
    Validate a configuration file without loading it into the system.

    Args:
        config_path: Path to config file to validate.

    Returns:
        Tuple of (is_valid, error_messages).
    """
    if config_path is None:
        config_path = get_config_path()

    errors: list[str] = []

    if not config_path.exists():
        return False, [f"Configuration file not found: {config_path}"]

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        return False, [f"Invalid YAML syntax: {e}"]

    if data is None:
        return False, ["Configuration file is empty"]

    if not isinstance(data, dict):
        return False, ["Configuration must be a mapping"]

    try:
        config = AiToolSyncConfig.model_validate(data)
    except ValidationError as e:
        for error in e.errors():
            loc = " -> ".join(str(part) for part in error["loc"])
            errors.append(f"{loc}: {error['msg']}")
        return False, errors

    # Additional validation
    names = [plugin.name for plugin in config.use.plugins]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    for name in duplicates:
        errors.append(f"Duplicate plugin name: {name}")

    return len(errors) == 0, errors


def _merge_with_defaults(data: dict) -> dict:
    """Merge loaded data with default values for missing keys."""
    result = get_default_config()

    if "plugins" in data:
        result["plugins"] = {**result["plugins"], **(data["plugins"] or {})}

    if "use" in data:
        result["use"] = {**result["use"], **(data["use"] or {})}

    if "output" in data:
        result["output"] = {**result["output"], **(data["output"] or {})}

    return result
