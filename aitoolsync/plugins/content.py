# AI Tool Sync Plugin Content
# Generic content model produced by normalizing a plugin

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

# Targets content applies to when it declares none
DEFAULT_TARGETS = ["cursor", "claude", "factory"]

# Content categories, in load order
CATEGORIES = ("rules", "personas", "commands", "hooks")

DEFAULT_CONTENT_VERSION = "1.0.0"

# Tools a persona gets when its agent file declares none
DEFAULT_PERSONA_TOOLS = ["read", "write", "edit", "execute", "search", "glob"]

# Claude tool names -> generic tool vocabulary
TOOL_MAP = {
    "Read": "read",
    "Write": "write",
    "Edit": "edit",
    "Bash": "execute",
    "Search": "search",
    "Grep": "search",
    "Glob": "glob",
    "Fetch": "fetch",
    "WebFetch": "fetch",
    "LS": "ls",
}

# Claude hook events -> generic hook events
HOOK_EVENT_MAP = {
    "PreToolUse": "PreToolUse",
    "PostToolUse": "PostToolUse",
    "Notification": "PreMessage",
    "Stop": "PostMessage",
}
DEFAULT_HOOK_EVENT = "PreToolUse"


def normalize_tools(tools: Any) -> list[str]:
    """
    Map declared tool names onto the generic vocabulary.

    Unknown names are kept as written. A comma-separated string is split.
    Missing or empty declarations give the default tool set.

    Args:
        tools: List of names, comma-separated string, or None.

    Returns:
        List of tool names.
    """
    if isinstance(tools, str):
        tools = [t.strip() for t in tools.split(",")]
    if not isinstance(tools, list):
        return list(DEFAULT_PERSONA_TOOLS)

    names = [str(t).strip() for t in tools if t is not None and str(t).strip()]
    if not names:
        return list(DEFAULT_PERSONA_TOOLS)
    return [TOOL_MAP.get(name, name) for name in names]


def applies_to(targets: Optional[list[str]], requested: Optional[list[str]]) -> bool:
    """Check whether content targeting `targets` is wanted for `requested`."""
    if not requested:
        return True
    effective = targets if targets else DEFAULT_TARGETS
    return any(t in effective for t in requested)


@dataclass
class ContentItem:
    """Fields shared by every kind of plugin content."""

    name: str
    description: str = ""
    version: str = DEFAULT_CONTENT_VERSION
    content: str = ""
    file_path: Optional[Path] = None
    # None = all supported targets
    targets: Optional[list[str]] = None

    def applies_to(self, requested: Optional[list[str]]) -> bool:
        return applies_to(self.targets, requested)


@dataclass
class Rule(ContentItem):
    """Rule-like content (from a skill)."""

    globs: list[str] = field(default_factory=list)
    always_apply: bool = False
    category: str = "other"
    priority: str = "medium"


@dataclass
class Persona(ContentItem):
    """Persona-like content (from an agent)."""

    tools: list[str] = field(default_factory=lambda: list(DEFAULT_PERSONA_TOOLS))
    model: str = "default"


@dataclass
class Command(ContentItem):
    """A slash command."""

    execute: Optional[str] = None
    args: list[Any] = field(default_factory=list)


@dataclass
class Hook(ContentItem):
    """A lifecycle hook."""

    event: str = DEFAULT_HOOK_EVENT
    tool_match: Optional[str] = None
    execute: Optional[str] = None
    action: Optional[str] = None


@dataclass
class LoadError:
    """A problem found while loading a plugin."""

    type: str
    path: str
    message: str

    def __str__(self) -> str:
        return f"[{self.type}] {self.path}: {self.message}"


@dataclass
class PluginInfo:
    """Identity of a loaded plugin."""

    name: str
    source: str
    version: Optional[str] = None
    description: Optional[str] = None


@dataclass
class LoadResult:
    """
    Normalized plugin content plus the non-fatal problems found.

    A failed resolution gives an empty result with success=False and a single
    error describing why.
    """

    source: str = ""
    rules: list[Rule] = field(default_factory=list)
    personas: list[Persona] = field(default_factory=list)
    commands: list[Command] = field(default_factory=list)
    hooks: list[Hook] = field(default_factory=list)
    mcp_servers: Optional[dict[str, Any]] = None
    errors: list[LoadError] = field(default_factory=list)
    plugin_info: Optional[PluginInfo] = None
    plugin_path: Optional[Path] = None
    success: bool = True

    @property
    def total_items(self) -> int:
        return len(self.rules) + len(self.personas) + len(self.commands) + len(self.hooks)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def filter_targets(self, targets: Optional[list[str]]) -> None:
        """Drop content that does not apply to any requested target."""
        if not targets:
            return
        self.rules = [r for r in self.rules if r.applies_to(targets)]
        self.personas = [p for p in self.personas if p.applies_to(targets)]
        self.commands = [c for c in self.commands if c.applies_to(targets)]
        self.hooks = [h for h in self.hooks if h.applies_to(targets)]

    def filter_categories(self, include: Optional[list[str]] = None, exclude: Optional[list[str]] = None) -> None:
        """Empty whole categories not selected by include/exclude."""
        for category in CATEGORIES:
            if (include and category not in include) or (exclude and category in exclude):
                setattr(self, category, [])

    @classmethod
    def failed(cls, source: str, error: LoadError) -> "LoadResult":
        """Create the empty result of a resolution that could not complete."""
        return cls(source=source, errors=[error], success=False)


def merge_load_results(results: list[LoadResult]) -> LoadResult:
    """
    Merge several load results into one.

    MCP servers are merged by name, later plugins winning.
    """
    merged = LoadResult(source=", ".join(r.source for r in results if r.source))
    servers: dict[str, Any] = {}
    for result in results:
        merged.rules.extend(result.rules)
        merged.personas.extend(result.personas)
        merged.commands.extend(result.commands)
        merged.hooks.extend(result.hooks)
        merged.errors.extend(result.errors)
        if result.mcp_servers:
            servers.update(result.mcp_servers)
        if not result.success:
            merged.success = False
    merged.mcp_servers = servers or None
    return merged
