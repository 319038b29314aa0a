# AI Tool Sync Test Fixtures
# Pytest fixtures for plugin engine tests

import json
import tempfile
from collections.abc import Generator
from pathlib import Path
from typing import Optional

import pytest
import yaml

from aitoolsync.git.operations import GitError

SAMPLE_PLUGIN_FILES: dict[str, str] = {
    "plugin.json": json.dumps(
        {
            "name": "toolkit",
            "version": "2.1.0",
            "description": "Acme toolkit",
        }
    ),
    "skills/code-review/SKILL.md": """---
name: code-review
description: Review code changes
trigger: .py
---

# Code Review

Run ${CLAUDE_PLUGIN_ROOT}/scripts/review.sh
""",
    "skills/style.md": """---
description: Style guide
globs:
  - "src/**/*.ts"
---

Follow the style guide.
""",
    "agents/reviewer.md": """---
name: reviewer
description: Reviews pull requests
tools: [Read, Grep, Bash, CustomTool]
model: sonnet
---

You review pull requests.
""",
    "commands/deploy.md": """---
description: Deploy the app
execute: ./deploy.sh
args:
  - name: env
---

Deploy it.
""",
    "hooks/hooks.json": json.dumps(
        {
            "hooks": {
                "PreToolUse": [
                    {
                        "matcher": "Bash",
                        "hooks": [{"type": "command", "command": "${CLAUDE_PLUGIN_ROOT}/hooks/check.sh"}],
                    }
                ],
                "Stop": [{"name": "notify", "command": "notify-send done"}],
            }
        }
    ),
    ".mcp.json": json.dumps({"mcpServers": {"db": {"command": "db-server", "args": ["--port", "5432"]}}}),
    "scripts/review.sh": "#!/bin/sh\necho review\n",
}


def write_plugin(root: Path, files: dict[str, str]) -> Path:
    """Write a plugin tree from a mapping of relative path -> content."""
    root.mkdir(parents=True, exist_ok=True)
    for rel_path, content in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


class FakeCloner:
    """Cloner that writes a fixed plugin tree instead of running git."""

    def __init__(self, files: Optional[dict[str, str]] = None, error: Optional[GitError] = None):
        self.files = dict(SAMPLE_PLUGIN_FILES if files is None else files)
        self.error = error
        self.calls: list[dict] = []

    def clone(self, url, ref, target_path, timeout, depth):
        self.calls.append({"url": url, "ref": ref, "target_path": target_path, "timeout": timeout, "depth": depth})
        if self.error is not None:
            # A failed clone can leave a partial directory behind
            target_path.mkdir(parents=True, exist_ok=True)
            (target_path / "partial").write_text("x", encoding="utf-8")
            raise self.error
        write_plugin(target_path, self.files)
        return "0123456789abcdef0123456789abcdef01234567"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def project_dir(temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Create a project directory and make it the working directory."""
    project = temp_dir / "project"
    project.mkdir()
    monkeypatch.chdir(project)
    monkeypatch.delenv("AI_TOOL_SYNC_CONFIG", raising=False)
    monkeypatch.delenv("AI_TOOL_SYNC_GIT_TOKEN", raising=False)
    return project


@pytest.fixture
def cache_dir(temp_dir: Path) -> Path:
    """Plugin cache directory (not created)."""
    return temp_dir / "cache"


@pytest.fixture
def plugin_dir(temp_dir: Path) -> Path:
    """Create a complete sample plugin on disk."""
    return write_plugin(temp_dir / "plugin", SAMPLE_PLUGIN_FILES)


@pytest.fixture
def fake_cloner() -> FakeCloner:
    """Cloner producing the sample plugin."""
    return FakeCloner()


@pytest.fixture
def sample_config() -> dict:
    """Create sample configuration dict."""
    return {
        "plugins": {
            "cache_dir": ".ai-tool-sync/plugins",
            "timeout": 60,
            "use_cache": True,
            "targets": ["claude", "cursor"],
        },
        "use": {
            "plugins": [
                {
                    "name": "toolkit",
                    "source": "github:acme/toolkit",
                    "version": "v2.1.0",
                    "include": ["rules", "personas"],
                },
                {
                    "name": "local",
                    "source": "./local-plugin",
                    "enabled": False,
                },
            ]
        },
    }


@pytest.fixture
def config_file(project_dir: Path, sample_config: dict) -> Path:
    """Create a project configuration file."""
    config_dir = project_dir / ".ai-tool-sync"
    config_dir.mkdir(parents=True, exist_ok=True)
    config_path = config_dir / "config.yaml"

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(sample_config, f, default_flow_style=False)

    return config_path


@pytest.fixture
def cloner_factory() -> type[FakeCloner]:
    """Build cloners with custom plugin trees or errors."""
    return FakeCloner


@pytest.fixture
def make_plugin(temp_dir: Path):
    """Write a plugin tree under temp_dir/<name>."""

    def _make(name: str, files: dict[str, str]) -> Path:
        return write_plugin(temp_dir / name, files)

    return _make
