# AI Tool Sync Default Configuration
# Default configuration as Python dict and YAML generator

import copy
from typing import Any

import yaml

DEFAULT_CONFIG: dict[str, Any] = {
    "plugins": {
        "cache_dir": ".ai-tool-sync/plugins",
        "timeout": 300,
        "use_cache": True,
        "targets": ["cursor", "claude", "factory"],
    },
    "use": {
        "plugins": [],
    },
    "output": {
        "verbose": False,
        "colored": True,
    },
}


def generate_default_config() -> str:
    """Generate default configuration as YAML string with comments."""
    header = """# AI Tool Sync Configuration
#
# Plugins are referenced as:
#   - github:owner/repo[/subpath][@version]   (also gitlab:, bitbucket:)
#   - git:host/owner/repo[@version]
#   - https://host/owner/repo.git[@version]
#   - ./relative/path or /absolute/path
#
# Example:
#   use:
#     plugins:
#       - name: toolkit
#         source: github:acme/toolkit
#         version: v2.1.0
#         include: [rules, personas]

"""
    return header + yaml.dump(DEFAULT_CONFIG, default_flow_style=False, sort_keys=False, allow_unicode=True)


def get_default_config() -> dict[str, Any]:
    """Get a deep copy of the default configuration."""
    return copy.deepcopy(DEFAULT_CONFIG)
