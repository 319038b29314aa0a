# AI Tool Sync Plugin Normalizer
# Convert a plugin directory into the generic content model

import json
import os
import re
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from aitoolsync.logger import PluginLogger
from aitoolsync.plugins.content import (
    DEFAULT_CONTENT_VERSION,
    DEFAULT_HOOK_EVENT,
    HOOK_EVENT_MAP,
    Command,
    Hook,
    LoadError,
    LoadResult,
    Persona,
    PluginInfo,
    Rule,
    normalize_tools,
)
from aitoolsync.plugins.models import ManifestSummary, PluginManifest, read_json_model

# Substituted with the absolute plugin root before any file is parsed
PLUGIN_ROOT_VARIABLE = "${CLAUDE_PLUGIN_ROOT}"

# plugin.json locations, in lookup order
MANIFEST_LOCATIONS = ("plugin.json", ".claude-plugin/plugin.json")

# Hook declaration files, in lookup order
HOOK_FILES = ("hooks/hooks.json", "settings.json")

MCP_FILE = ".mcp.json"

SKILL_FILE = "SKILL.md"

# Generic events accepted as written
GENERIC_HOOK_EVENTS = {"PreToolUse", "PostToolUse", "PreMessage", "PostMessage", "PreCommit"}

_FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(?:(.*?)\r?\n)?---[ \t]*(?:\r?\n|\Z)(.*)\Z", re.DOTALL)


class FrontmatterError(ValueError):
    """Frontmatter block is not valid YAML or not a mapping."""


def resolve_plugin_root(text: str, plugin_root: Path) -> str:
    """Replace every ${CLAUDE_PLUGIN_ROOT} with the absolute plugin root."""
    return text.replace(PLUGIN_ROOT_VARIABLE, str(plugin_root))


def _resolve_json_text(text: str, plugin_root: Path) -> str:
    # Inside JSON strings the path must be escaped
    return text.replace(PLUGIN_ROOT_VARIABLE, json.dumps(str(plugin_root))[1:-1])


def _resolve_data(data: Any, plugin_root: Path) -> Any:
    if isinstance(data, str):
        return resolve_plugin_root(data, plugin_root)
    if isinstance(data, list):
        return [_resolve_data(item, plugin_root) for item in data]
    if isinstance(data, dict):
        return {key: _resolve_data(value, plugin_root) for key, value in data.items()}
    return data


def parse_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """
    Split a markdown document into YAML frontmatter and body.

    Args:
        text: Document text.

    Returns:
        Tuple of (frontmatter dict, body). Documents without a `---` fenced
        block give an empty dict and the full text.

    Raises:
        FrontmatterError: If the block is not valid YAML or not a mapping.
    """
    match = _FRONTMATTER_RE.match(text)
    if not match:
        return {}, text

    try:
        data = yaml.safe_load(match.group(1) or "")
    except yaml.YAMLError as e:
        raise FrontmatterError(f"Invalid YAML frontmatter: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontmatterError("Frontmatter must be a mapping")
    return data, match.group(2)


def normalize_globs(trigger: Any = None, globs: Any = None) -> list[str]:
    """
    Combine explicit globs with skill triggers.

    A trigger containing `*` or `/` is a glob; one starting with `.` is a file
    extension and becomes `**/*<ext>`; anything else is ignored.
    """
    result: list[str] = []

    if isinstance(globs, str):
        globs = [globs]
    if isinstance(globs, list):
        result.extend(str(g) for g in globs if g)

    if isinstance(trigger, str):
        trigger = [trigger]
    if isinstance(trigger, list):
        for t in trigger:
            t = str(t)
            if "*" in t or "/" in t:
                result.append(t)
            elif t.startswith("."):
                result.append(f"**/*{t}")

    return result


def _targets(value: Any) -> Optional[list[str]]:
    if isinstance(value, str):
        value = [v.strip() for v in value.split(",")]
    if isinstance(value, list):
        targets = [str(v) for v in value if v]
        return targets or None
    return None


def find_manifest(plugin_root: Path) -> Optional[Path]:
    """Locate plugin.json, if any."""
    for location in MANIFEST_LOCATIONS:
        candidate = plugin_root / location
        if candidate.is_file():
            return candidate
    return None


def read_plugin_manifest(plugin_root: Path) -> Optional[ManifestSummary]:
    """
    Read the name, version and description of a plugin.

    Args:
        plugin_root: Plugin directory.

    Returns:
        ManifestSummary, or None if there is no valid plugin.json.
    """
    manifest_path = find_manifest(plugin_root)
    if manifest_path is None:
        return None
    result = read_json_model(manifest_path, PluginManifest)
    return result.value.summary() if result.ok else None


class ContentNormalizer:
    """
    Reads a plugin directory into rules, personas, commands, hooks and MCP servers.

    Every category is looked up at the path plugin.json declares for it
    first, then at its conventional location. A file that fails to parse adds
    one LoadError and is skipped.
    """

    def __init__(self, logger: Optional[PluginLogger] = None):
        self.logger = logger or PluginLogger.quiet()

    def normalize(
        self,
        plugin_root: Path,
        targets: Optional[list[str]] = None,
        source: Optional[str] = None,
    ) -> LoadResult:
        """
        Normalize a plugin directory.

        Args:
            plugin_root: Plugin directory.
            targets: Only keep content for these targets (None = all).
            source: Reference the plugin was loaded from, for reporting.

        Returns:
            LoadResult with the parsed content and per-file errors.
        """
        root = Path(os.path.abspath(plugin_root))
        result = LoadResult(source=source or str(root), plugin_path=root)

        if not root.is_dir():
            result.errors.append(LoadError("directory", str(root), f"Plugin directory does not exist: {root}"))
            return result

        errors = result.errors
        manifest = self._load_manifest(root, errors)

        result.rules = self._load_skills(root, manifest.skills if manifest else None, errors)
        result.personas = self._load_agents(root, manifest.agents if manifest else None, errors)
        result.commands = self._load_commands(root, manifest.commands if manifest else None, errors)
        result.hooks = self._load_hooks(root, manifest.hooks if manifest else None, errors)
        result.mcp_servers = self._load_mcp_servers(root, manifest.mcp_servers if manifest else None, errors)

        result.plugin_info = PluginInfo(
            name=manifest.name if manifest else root.name,
            source=result.source,
            version=manifest.version if manifest else None,
            description=manifest.description if manifest else None,
        )

        result.filter_targets(targets)

        self.logger.debug(
            f"Loaded plugin {result.plugin_info.name}: {len(result.rules)} rules, "
            f"{len(result.personas)} personas, {len(result.commands)} commands, {len(result.hooks)} hooks"
        )
        return result

    # Manifest and locations

    def _load_manifest(self, root: Path, errors: list[LoadError]) -> Optional[PluginManifest]:
        manifest_path = find_manifest(root)
        if manifest_path is None:
            return None

        result = read_json_model(manifest_path, PluginManifest)
        if not result.ok:
            errors.append(LoadError("manifest", str(manifest_path), f"Invalid plugin manifest: {result.error}"))
            self.logger.warning(f"Ignoring invalid plugin manifest {manifest_path}")
            return None
        return result.value

    def _declared_path(self, root: Path, declared: str) -> Path:
        path = Path(resolve_plugin_root(declared, root))
        return path if path.is_absolute() else root / path

    def _locations(self, root: Path, declared: Union[str, list[str], None], conventional: str) -> list[Path]:
        """Existing declared locations, else the conventional one if present."""
        if declared:
            candidates = [declared] if isinstance(declared, str) else declared
            existing = [p for p in (self._declared_path(root, c) for c in candidates) if p.exists()]
            if existing:
                return existing
            self.logger.debug(f"Declared {conventional} path not found, using conventions")

        conventional_path = root / conventional
        return [conventional_path] if conventional_path.is_dir() else []

    def _markdown_files(self, directory: Path, errors: list[LoadError]) -> list[Path]:
        if directory.is_file():
            return [directory] if directory.suffix == ".md" else []
        try:
            return sorted(p for p in directory.iterdir() if p.is_file() and p.suffix == ".md")
        except OSError as e:
            errors.append(LoadError("directory", str(directory), f"Failed to read directory: {e}"))
            return []

    def _read(self, path: Path, root: Path, error_type: str, errors: list[LoadError]) -> Optional[str]:
        try:
            return resolve_plugin_root(path.read_text(encoding="utf-8"), root)
        except (OSError, UnicodeDecodeError) as e:
            errors.append(LoadError(error_type, str(path), f"Failed to read file: {e}"))
            return None

    def _read_markdown(
        self, path: Path, root: Path, error_type: str, label: str, errors: list[LoadError]
    ) -> Optional[tuple[dict[str, Any], str]]:
        text = self._read(path, root, error_type, errors)
        if text is None:
            return None
        try:
            return parse_frontmatter(text)
        except FrontmatterError as e:
            errors.append(LoadError(error_type, str(path), f"Failed to parse {label} file: {e}"))
            return None

    # Skills -> rules

    def _load_skills(self, root: Path, declared: Union[str, list[str], None], errors: list[LoadError]) -> list[Rule]:
        rules = []
        for location in self._locations(root, declared, "skills"):
            for skill_file, skill_name in self._skill_files(location, errors):
                rule = self._parse_skill(skill_file, skill_name, root, errors)
                if rule is not None:
                    rules.append(rule)
        return rules

    def _skill_files(self, location: Path, errors: list[LoadError]) -> list[tuple[Path, str]]:
        if location.is_file():
            return [(location, location.stem)] if location.suffix == ".md" else []

        if (location / SKILL_FILE).is_file():
            return [(location / SKILL_FILE, location.name)]

        found = []
        try:
            entries = sorted(location.iterdir())
        except OSError as e:
            errors.append(LoadError("directory", str(location), f"Failed to read skills directory: {e}"))
            return []

        for entry in entries:
            if entry.is_dir() and (entry / SKILL_FILE).is_file():
                found.append((entry / SKILL_FILE, entry.name))
            elif entry.is_file() and entry.suffix == ".md":
                found.append((entry, entry.stem))
        return found

    def _parse_skill(self, path: Path, skill_name: str, root: Path, errors: list[LoadError]) -> Optional[Rule]:
        parsed = self._read_markdown(path, root, "rule", "skill", errors)
        if parsed is None:
            return None
        frontmatter, body = parsed

        return Rule(
            name=str(frontmatter.get("name") or skill_name),
            description=str(frontmatter.get("description") or f"Claude skill: {skill_name}"),
            version=str(frontmatter.get("version") or DEFAULT_CONTENT_VERSION),
            content=body,
            file_path=path,
            targets=_targets(frontmatter.get("targets")),
            globs=normalize_globs(frontmatter.get("trigger"), frontmatter.get("globs")),
            always_apply=bool(frontmatter.get("always_apply", False)),
            category=str(frontmatter.get("category") or "other"),
            priority=str(frontmatter.get("priority") or "medium"),
        )

    # Agents -> personas

    def _load_agents(self, root: Path, declared: Union[str, list[str], None], errors: list[LoadError]) -> list[Persona]:
        personas = []
        for location in self._locations(root, declared, "agents"):
            for path in self._markdown_files(location, errors):
                parsed = self._read_markdown(path, root, "persona", "agent", errors)
                if parsed is None:
                    continue
                frontmatter, body = parsed
                personas.append(
                    Persona(
                        name=str(frontmatter.get("name") or path.stem),
                        description=str(frontmatter.get("description") or f"Claude agent: {path.stem}"),
                        version=str(frontmatter.get("version") or DEFAULT_CONTENT_VERSION),
                        content=body,
                        file_path=path,
                        targets=_targets(frontmatter.get("targets")),
                        tools=normalize_tools(frontmatter.get("tools")),
                        model=str(frontmatter.get("model") or "default"),
                    )
                )
        return personas

    # Commands

    def _load_commands(
        self, root: Path, declared: Union[str, list[str], None], errors: list[LoadError]
    ) -> list[Command]:
        commands = []
        for location in self._locations(root, declared, "commands"):
            for path in self._markdown_files(location, errors):
                parsed = self._read_markdown(path, root, "command", "command", errors)
                if parsed is None:
                    continue
                frontmatter, body = parsed
                execute = frontmatter.get("execute")
                args = frontmatter.get("args")
                commands.append(
                    Command(
                        name=str(frontmatter.get("name") or path.stem),
                        description=str(frontmatter.get("description") or f"Claude command: {path.stem}"),
                        version=str(frontmatter.get("version") or DEFAULT_CONTENT_VERSION),
                        content=body,
                        file_path=path,
                        targets=_targets(frontmatter.get("targets")),
                        execute=execute if isinstance(execute, str) else None,
                        args=args if isinstance(args, list) else [],
                    )
                )
        return commands

    # Hooks

    def _load_hooks(self, root: Path, declared: Union[str, dict[str, Any], None], errors: list[LoadError]) -> list[Hook]:
        if isinstance(declared, dict):
            return self._parse_hooks(_resolve_data(declared, root), root / MANIFEST_LOCATIONS[0], errors)

        candidates = []
        if isinstance(declared, str):
            candidates.append(self._declared_path(root, declared))
        candidates.extend(root / name for name in HOOK_FILES)

        for path in candidates:
            if path.is_file():
                data = self._read_json(path, root, "hook", errors)
                if data is None:
                    return []
                return self._parse_hooks(data, path, errors)
        return []

    def _read_json(self, path: Path, root: Path, error_type: str, errors: list[LoadError]) -> Any:
        try:
            text = _resolve_json_text(path.read_text(encoding="utf-8"), root)
            return json.loads(text)
        except (OSError, UnicodeDecodeError) as e:
            errors.append(LoadError(error_type, str(path), f"Failed to read file: {e}"))
        except json.JSONDecodeError as e:
            errors.append(LoadError(error_type, str(path), f"Invalid JSON: {e}"))
        return None

    def _parse_hooks(self, data: Any, path: Path, errors: list[LoadError]) -> list[Hook]:
        if not isinstance(data, dict):
            errors.append(LoadError("hook", str(path), "Hook configuration must be an object"))
            return []

        events = data.get("hooks", data)
        if not isinstance(events, dict):
            errors.append(LoadError("hook", str(path), "'hooks' must be an object"))
            return []

        hooks = []
        for event_type, entries in events.items():
            if not isinstance(entries, list):
                continue
            for entry in entries:
                if not isinstance(entry, dict):
                    continue
                if isinstance(entry.get("hooks"), list):
                    # Matcher form: {"matcher": ..., "hooks": [{"type": "command", "command": ...}]}
                    for inner in entry["hooks"]:
                        if isinstance(inner, dict):
                            hooks.append(self._build_hook(inner, event_type, path, entry.get("matcher")))
                else:
                    hooks.append(self._build_hook(entry, event_type, path, entry.get("match")))
        return hooks

    def _build_hook(self, hook: dict[str, Any], event_type: str, path: Path, match: Any) -> Hook:
        if event_type in HOOK_EVENT_MAP:
            event = HOOK_EVENT_MAP[event_type]
        elif event_type in GENERIC_HOOK_EVENTS:
            event = event_type
        else:
            event = DEFAULT_HOOK_EVENT

        execute = hook.get("command") or hook.get("script")
        message = hook.get("message")
        return Hook(
            name=str(hook.get("name") or f"{event_type.lower()}-hook"),
            description=str(message or f"Claude {event_type} hook"),
            content=str(message or ""),
            file_path=path,
            targets=["claude"],
            event=event,
            tool_match=str(match) if match else None,
            execute=str(execute) if execute else None,
            action=hook.get("action"),
        )

    # MCP servers

    def _load_mcp_servers(
        self, root: Path, declared: Union[str, dict[str, Any], None], errors: list[LoadError]
    ) -> Optional[dict[str, Any]]:
        if isinstance(declared, dict):
            return self._extract_servers(_resolve_data(declared, root), root / MANIFEST_LOCATIONS[0], errors)

        candidates = []
        if isinstance(declared, str):
            candidates.append(self._declared_path(root, declared))
        candidates.append(root / MCP_FILE)

        for path in candidates:
            if path.is_file():
                data = self._read_json(path, root, "mcp", errors)
                if data is None:
                    return None
                return self._extract_servers(data, path, errors)
        return None

    def _extract_servers(self, data: Any, path: Path, errors: list[LoadError]) -> Optional[dict[str, Any]]:
        if not isinstance(data, dict):
            errors.append(LoadError("mcp", str(path), "MCP configuration must be an object"))
            return None

        for key in ("mcpServers", "servers"):
            if key in data:
                data = data[key]
                break

        if not isinstance(data, dict):
            errors.append(LoadError("mcp", str(path), "MCP servers must be an object"))
            return None

        servers = {name: config for name, config in data.items() if isinstance(config, dict)}
        return servers or None
