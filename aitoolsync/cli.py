"""Click-based CLI for AI Tool Sync plugin management."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import click
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm

from aitoolsync import __version__
from aitoolsync.config import (
    AiToolSyncConfig,
    ensure_config_exists,
    get_config_path,
    load_project_config,
    validate_config_file,
)
from aitoolsync.git.operations import DEFAULT_LS_REMOTE_TIMEOUT
from aitoolsync.logger import PluginLogger
from aitoolsync.plugins import (
    LoadOptions,
    PluginCache,
    PluginError,
    PluginLoader,
    PluginUpdater,
    merge_load_results,
)

console = Console()
logger = PluginLogger(console)

TARGET_CHOICES = ["cursor", "claude", "factory"]


def _project_root(project: Optional[Path]) -> Path:
    return (project or Path.cwd()).resolve()


def _load_config(project_root: Path) -> AiToolSyncConfig:
    """Load project configuration or exit with an error."""
    try:
        return load_project_config(project_root)
    except (ValidationError, yaml.YAMLError, FileNotFoundError) as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)


def _logger(config: AiToolSyncConfig, verbose: bool = False) -> PluginLogger:
    output = console if config.output.colored else Console(no_color=True)
    return PluginLogger(output, verbose=verbose or config.output.verbose)


def _build_loader(project_root: Path, config: AiToolSyncConfig, verbose: bool) -> PluginLoader:
    plugin_logger = _logger(config, verbose)
    cache = PluginCache(config.plugins.resolve_cache_dir(project_root))
    return PluginLoader(cache=cache, logger=plugin_logger)


def _load_options(
    project_root: Path,
    config: AiToolSyncConfig,
    *,
    version: Optional[str] = None,
    targets: tuple[str, ...] = (),
    force: bool = False,
    no_cache: bool = False,
    timeout: Optional[float] = None,
    token: Optional[str] = None,
) -> LoadOptions:
    return LoadOptions(
        base_path=project_root,
        version=version,
        targets=list(targets) or config.target_names(),
        force_refresh=force,
        use_cache=config.plugins.use_cache and not no_cache,
        timeout=timeout or config.plugins.timeout,
        token=token,
    )


project_option = click.option(
    "--project",
    "-p",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Project directory (default: current directory)",
)
verbose_option = click.option("--verbose", "-v", is_flag=True, help="Show detailed output")


@click.group()
@click.version_option(version=__version__, prog_name="aitoolsync")
def cli() -> None:
    """AI Tool Sync - plugin resolution and caching.

    Loads plugins from hosted repositories or local paths into a
    per-project cache under .ai-tool-sync/plugins.
    """
    pass


@cli.group()
def plugins() -> None:
    """Plugin commands.

    \b
    References:
    - github:owner/repo[/subpath][@version]   (also gitlab:, bitbucket:)
    - git:host/owner/repo[@version]
    - https://host/owner/repo.git[@version]
    - ./relative/path or /absolute/path
    """
    pass


def _fetch_options(func):
    func = click.option("--token", envvar="AI_TOOL_SYNC_GIT_TOKEN", help="Access token for private repositories")(func)
    func = click.option("--timeout", type=float, default=None, help="Clone timeout in seconds")(func)
    func = click.option("--no-cache", is_flag=True, help="Do not read or record the plugin cache")(func)
    func = click.option("--force", "-f", is_flag=True, help="Refetch even if cached")(func)
    func = click.option(
        "--target", "-t", "targets", multiple=True, type=click.Choice(TARGET_CHOICES), help="Only load content for target"
    )(func)
    return func


@plugins.command("load")
@click.argument("reference")
@click.option("--version", "version", default=None, help="Version, tag or commit (overrides the reference)")
@_fetch_options
@project_option
@verbose_option
def plugins_load(
    reference: str,
    version: Optional[str],
    targets: tuple[str, ...],
    force: bool,
    no_cache: bool,
    timeout: Optional[float],
    token: Optional[str],
    project: Optional[Path],
    verbose: bool,
) -> None:
    """Load a single plugin and show what it contains.

    \b
    Example:
        aitoolsync plugins load github:acme/toolkit@v2.1.0
    """
    project_root = _project_root(project)
    config = _load_config(project_root)
    loader = _build_loader(project_root, config, verbose)

    options = _load_options(
        project_root,
        config,
        version=version,
        targets=targets,
        force=force,
        no_cache=no_cache,
        timeout=timeout,
        token=token,
    )
    try:
        result = loader.load(reference, options)
        loader.logger.summary(result)
    finally:
        loader.cleanup()

    if not result.success:
        sys.exit(1)


@plugins.command("sync")
@_fetch_options
@project_option
@verbose_option
def plugins_sync(
    targets: tuple[str, ...],
    force: bool,
    no_cache: bool,
    timeout: Optional[float],
    token: Optional[str],
    project: Optional[Path],
    verbose: bool,
) -> None:
    """Load every plugin enabled in the project configuration."""
    project_root = _project_root(project)
    config = _load_config(project_root)

    enabled = config.get_enabled_plugins()
    if not enabled:
        logger.info(f"No plugins configured in {get_config_path(project_root)}")
        return

    loader = _build_loader(project_root, config, verbose)
    options = _load_options(
        project_root,
        config,
        targets=targets,
        force=force,
        no_cache=no_cache,
        timeout=timeout,
        token=token,
    )

    try:
        results = loader.load_plugins(enabled, options)
        for result in results:
            loader.logger.summary(result)
    finally:
        loader.cleanup()

    merged = merge_load_results(results)
    if not merged.success:
        failed = sum(1 for r in results if not r.success)
        loader.logger.error(f"{failed} of {len(results)} plugin(s) failed to load")
        sys.exit(1)

    servers = len(merged.mcp_servers) if merged.mcp_servers else 0
    loader.logger.success(f"Loaded {len(results)} plugin(s): {merged.total_items} item(s), {servers} MCP server(s)")


@plugins.command("list")
@project_option
def plugins_list(project: Optional[Path]) -> None:
    """List cached plugins."""
    project_root = _project_root(project)
    config = _load_config(project_root)
    cache = PluginCache(config.plugins.resolve_cache_dir(project_root))

    try:
        entries = cache.list_cached()
    except PluginError as e:
        logger.error(str(e))
        sys.exit(1)

    _logger(config).show_cache_table(entries)


@plugins.command("invalidate")
@click.argument("reference")
@click.option("--version", "version", default=None, help="Version to invalidate")
@project_option
def plugins_invalidate(reference: str, version: Optional[str], project: Optional[Path]) -> None:
    """Remove one plugin from the cache."""
    project_root = _project_root(project)
    config = _load_config(project_root)
    loader = _build_loader(project_root, config, verbose=False)

    try:
        removed = loader.invalidate(reference, version)
    except PluginError as e:
        logger.error(str(e))
        sys.exit(1)

    if removed:
        logger.success(f"Invalidated {reference}")
    else:
        logger.info(f"{reference} was not cached")


@plugins.command("clear")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@project_option
def plugins_clear(yes: bool, project: Optional[Path]) -> None:
    """Delete every cached plugin."""
    project_root = _project_root(project)
    config = _load_config(project_root)
    cache = PluginCache(config.plugins.resolve_cache_dir(project_root))

    if not yes and not Confirm.ask(f"Delete all cached plugins in {cache.cache_dir}?", default=False):
        logger.warning("Cancelled")
        return

    try:
        count = cache.clear_all()
    except PluginError as e:
        logger.error(str(e))
        sys.exit(1)

    logger.success(f"Cleared {count} cached plugin(s)")


def _update_targets(
    name: Optional[str], config: AiToolSyncConfig, cached: list[str]
) -> list[tuple[str, Optional[str]]]:
    """Pick the (reference, version) pairs to check for updates.

    A name matches a configured plugin by name or source, then a cached
    source; anything else is taken as a reference. Without a name every
    enabled plugin and every cached source is checked.
    """
    if name:
        for plugin in config.use.plugins:
            if name in (plugin.name, plugin.source) or plugin.source.endswith(f"/{name}"):
                return [(plugin.source, plugin.version)]
        for source in cached:
            if source == name or source.endswith(f"/{name}"):
                return [(source, None)]
        return [(name, None)]

    targets: list[tuple[str, Optional[str]]] = [(p.source, p.version) for p in config.get_enabled_plugins()]
    configured = {source for source, _ in targets}
    targets.extend((source, None) for source in dict.fromkeys(cached) if source not in configured)
    return targets


@plugins.command("update")
@click.argument("name", required=False)
@click.option("--apply", is_flag=True, help="Install available updates (default: only check)")
@click.option("--force", "-f", is_flag=True, help="Refetch plugins that are already up to date")
@click.option("--all", "all_cached", is_flag=True, help="Check every cached plugin")
@click.option("--timeout", type=float, default=None, help="Git timeout in seconds")
@click.option("--token", envvar="AI_TOOL_SYNC_GIT_TOKEN", help="Access token for private repositories")
@project_option
@verbose_option
def plugins_update(
    name: Optional[str],
    apply: bool,
    force: bool,
    all_cached: bool,
    timeout: Optional[float],
    token: Optional[str],
    project: Optional[Path],
    verbose: bool,
) -> None:
    """Check for newer tagged plugin versions.

    \b
    Examples:
        aitoolsync plugins update
        aitoolsync plugins update toolkit --apply
    """
    project_root = _project_root(project)
    config = _load_config(project_root)
    loader = _build_loader(project_root, config, verbose)
    updater = PluginUpdater(loader, timeout=timeout or DEFAULT_LS_REMOTE_TIMEOUT, token=token)
    out = loader.logger

    try:
        cached = [entry.source for entry in loader.cache.list_cached()]
    except PluginError as e:
        out.error(str(e))
        sys.exit(1)

    checks = updater.check_all(None if all_cached else _update_targets(name, config, cached))
    if not checks:
        out.warning("No plugins found to check for updates")
        return

    out.show_update_table(checks)
    available = sum(1 for check in checks if check.has_update)
    errors = sum(1 for check in checks if check.error)
    out.info(f"{available} update(s) available, {len(checks) - available - errors} up to date, {errors} error(s)")

    if not apply:
        if available:
            out.info("Run with --apply to install updates")
        return

    for check in checks:
        if check.error:
            out.warning(f"Skipping {check.source}: {check.error}")
            continue
        if not check.has_update and not force:
            out.debug(f"Skipping {check.source}, already up to date")
            continue

        new_version = check.latest_version or check.current_version
        try:
            result = updater.update(check.source, new_version, check.current_version)
        except PluginError as e:
            out.error(f"Failed to update {check.source}: {e}")
            errors += 1
            continue
        out.success(f"Updated {check.source}: {result.previous_version or 'none'} -> {result.new_version}")

    if errors:
        sys.exit(1)


@cli.group()
def config() -> None:
    """Configuration file commands."""
    pass


@config.command("init")
@project_option
def config_init(project: Optional[Path]) -> None:
    """Create a default configuration file."""
    config_path, created = ensure_config_exists(_project_root(project))
    if created:
        logger.success(f"Created {config_path}")
    else:
        logger.info(f"Configuration already exists: {config_path}")


@config.command("validate")
@project_option
def config_validate(project: Optional[Path]) -> None:
    """Validate the configuration file."""
    config_path = get_config_path(_project_root(project))
    valid, errors = validate_config_file(config_path)

    if valid:
        logger.success(f"Configuration is valid: {config_path}")
        return

    logger.error(f"Configuration is invalid: {config_path}")
    for error in errors:
        console.print(f"  [red]•[/red] {escape(error)}")
    sys.exit(1)


if __name__ == "__main__":
    cli()
