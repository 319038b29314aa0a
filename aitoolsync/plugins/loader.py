# AI Tool Sync Plugin Loader
# Resolve plugin references to local content and normalize it

import tempfile
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

from aitoolsync.git.operations import DEFAULT_GIT_TIMEOUT
from aitoolsync.logger import PluginLogger
from aitoolsync.plugins.cache import CACHE_METADATA_FILE, PluginCache, default_cache_dir
from aitoolsync.plugins.content import LoadError, LoadResult
from aitoolsync.plugins.errors import PluginError
from aitoolsync.plugins.fetcher import Fetcher, FetchOptions
from aitoolsync.plugins.normalizer import ContentNormalizer, read_plugin_manifest
from aitoolsync.plugins.source import LocalSource, PluginSource, parse_reference
from aitoolsync.utils.hashing import directory_hash
from aitoolsync.utils.paths import get_relative_path, safe_delete

if TYPE_CHECKING:
    from aitoolsync.config.schema import PluginConfig

# Not part of the plugin content hash
HASH_EXCLUDE_PATTERNS = [".git", CACHE_METADATA_FILE]


@dataclass
class LoadOptions:
    """Options for resolving and loading a plugin."""

    base_path: Optional[Path] = None
    # Overrides the version embedded in the reference
    version: Optional[str] = None
    targets: Optional[list[str]] = None
    force_refresh: bool = False
    use_cache: bool = True
    timeout: Optional[float] = DEFAULT_GIT_TIMEOUT
    token: Optional[str] = None
    # Content categories to keep / drop (rules, personas, commands, hooks)
    include: Optional[list[str]] = None
    exclude: Optional[list[str]] = None


@dataclass(frozen=True)
class ResolvedPlugin:
    """A plugin reference resolved to a local directory."""

    path: Path
    source: Union[PluginSource, LocalSource]
    version: Optional[str] = None
    from_cache: bool = False


class ResolvedPathCache:
    """In-memory memo of resolved plugin directories, keyed by reference."""

    def __init__(self):
        self._paths: dict[str, Path] = {}

    def get(self, key: str) -> Optional[Path]:
        return self._paths.get(key)

    def set(self, key: str, path: Path) -> None:
        self._paths[key] = path

    def discard(self, key: str) -> None:
        self._paths.pop(key, None)

    def discard_under(self, root: Path) -> None:
        """Forget every path inside root."""
        for key, path in list(self._paths.items()):
            if get_relative_path(path, root) is not None:
                del self._paths[key]

    def clear(self) -> None:
        """Forget every resolved path."""
        self._paths.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._paths

    def __len__(self) -> int:
        return len(self._paths)


def _memo_key(reference: str, version: Optional[str]) -> str:
    return f"{reference}#{version}" if version else reference


class PluginLoader:
    """
    Loads plugins from references.

    Control flow for one reference: parse, look up the cache (a hit is
    touched and reused), on a miss fetch into the cache directory and record
    the entry, then normalize the content.

    With use_cache=False plugins are fetched into a scratch directory owned
    by the loader instead; call cleanup() when their content is no longer
    needed.
    """

    def __init__(
        self,
        cache: Optional[PluginCache] = None,
        fetcher: Optional[Fetcher] = None,
        normalizer: Optional[ContentNormalizer] = None,
        path_cache: Optional[ResolvedPathCache] = None,
        logger: Optional[PluginLogger] = None,
    ):
        """
        Initialize loader.

        Args:
            cache: Plugin cache (default: ./.ai-tool-sync/plugins).
            fetcher: Fetcher used on cache misses.
            normalizer: Content normalizer.
            path_cache: Memo of resolved paths, shared between loaders if given.
            logger: Logger (default: quiet).
        """
        self.logger = logger or PluginLogger.quiet()
        self.cache = cache or PluginCache(default_cache_dir())
        self.fetcher = fetcher or Fetcher(logger=self.logger)
        self.normalizer = normalizer or ContentNormalizer(logger=self.logger)
        self.path_cache = path_cache if path_cache is not None else ResolvedPathCache()
        self._scratch_dir: Optional[Path] = None

    def _fetch_target(self, cache_source: str, version: Optional[str], use_cache: bool) -> Path:
        target = self.cache.get_target_path(cache_source, version)
        if use_cache:
            return target
        if self._scratch_dir is None:
            self._scratch_dir = Path(tempfile.mkdtemp(prefix="aitoolsync-nocache-"))
        return self._scratch_dir / target.name

    def cleanup(self) -> None:
        """Remove plugins fetched with use_cache=False and forget their paths."""
        if self._scratch_dir is None:
            return
        self.path_cache.discard_under(self._scratch_dir)
        safe_delete(self._scratch_dir, missing_ok=True)
        self._scratch_dir = None

    def resolve(self, reference: str, options: Optional[LoadOptions] = None) -> ResolvedPlugin:
        """
        Resolve a reference to a local plugin directory.

        Args:
            reference: Plugin reference.
            options: Load options.

        Returns:
            ResolvedPlugin describing where the content is.

        Raises:
            ReferenceParseError: If the reference is malformed.
            ResolutionError: If a local path or subpath does not exist.
            FetchError: If cloning fails.
            ManifestError: If the cache manifest is corrupt.
        """
        options = options or LoadOptions()
        source = parse_reference(reference, options.base_path)

        if isinstance(source, LocalSource):
            path = self.fetcher.materialize(source)
            self.path_cache.set(reference, path)
            return ResolvedPlugin(path=path, source=source)

        source = source.with_version(options.version)
        return self._resolve_remote(reference, source, options)

    def _resolve_remote(self, reference: str, source: PluginSource, options: LoadOptions) -> ResolvedPlugin:
        cache_source = source.base_reference
        version = source.version
        memo_key = _memo_key(reference, options.version)

        if options.use_cache and not options.force_refresh:
            entry = self.cache.get_cache_entry(cache_source, version)
            if entry is not None:
                root = self.cache.get_plugin_path(entry)
                path = root / source.subpath if source.subpath else root
                if path.is_dir():
                    self.cache.touch_plugin(cache_source, version)
                    self.path_cache.set(memo_key, path)
                    self.logger.debug(f"Using cached plugin {entry.id}")
                    return ResolvedPlugin(path=path, source=source, version=version, from_cache=True)

        if not options.force_refresh:
            memo = self.path_cache.get(memo_key)
            if memo is not None and memo.is_dir():
                return ResolvedPlugin(path=memo, source=source, version=version, from_cache=True)

        target = self._fetch_target(cache_source, version, options.use_cache)
        # A directory without a matching manifest entry is not trusted
        force = options.force_refresh or target.exists()
        if target.exists() and not options.force_refresh:
            self.logger.debug(f"Refetching untracked plugin directory {target}")

        self.logger.info(f"Fetching plugin {source}")
        content_root = self.fetcher.materialize(
            source,
            target,
            FetchOptions(timeout=options.timeout, force_refresh=force, token=options.token),
        )

        if options.use_cache:
            entry = self.cache.cache_plugin(
                cache_source,
                version,
                target,
                content_hash=directory_hash(target, exclude_patterns=HASH_EXCLUDE_PATTERNS),
                manifest=read_plugin_manifest(content_root),
            )
            self.logger.debug(f"Cached plugin as {entry.id}")

        self.path_cache.set(memo_key, content_root)
        return ResolvedPlugin(path=content_root, source=source, version=version, from_cache=False)

    def load(self, reference: str, options: Optional[LoadOptions] = None) -> LoadResult:
        """
        Resolve and normalize a plugin.

        Never raises PluginError: a failed resolution gives an empty result
        with success=False and one error.

        Args:
            reference: Plugin reference.
            options: Load options.

        Returns:
            LoadResult with the plugin content.
        """
        options = options or LoadOptions()

        try:
            resolved = self.resolve(reference, options)
        except PluginError as e:
            self.logger.error(str(e))
            return LoadResult.failed(reference, LoadError(e.error_type, e.path or reference, str(e)))

        result = self.normalizer.normalize(resolved.path, options.targets, source=reference)
        result.filter_categories(options.include, options.exclude)

        if result.plugin_info is not None and result.plugin_info.version is None:
            result.plugin_info.version = resolved.version

        for error in result.errors:
            self.logger.warning(str(error))
        return result

    def load_plugins(self, configs: list["PluginConfig"], options: Optional[LoadOptions] = None) -> list[LoadResult]:
        """
        Load every enabled plugin from configuration.

        Failures are logged and loading continues with the next plugin.

        Args:
            configs: Plugin configurations.
            options: Shared load options; per-plugin version/include/exclude win.

        Returns:
            One LoadResult per enabled plugin.
        """
        options = options or LoadOptions()
        results = []

        for config in configs:
            if not config.enabled:
                self.logger.debug(f"Skipping disabled plugin {config.name}")
                continue

            plugin_options = replace(
                options,
                version=config.version or options.version,
                include=config.include or options.include,
                exclude=config.exclude or options.exclude,
            )
            result = self.load(config.source, plugin_options)
            if not result.success:
                self.logger.warning(f"Plugin {config.name} contributed no content")
            results.append(result)

        return results

    def invalidate(self, reference: str, version: Optional[str] = None) -> bool:
        """
        Drop a remote plugin from the disk cache and the path memo.

        Returns:
            True if anything was removed from the cache.

        Raises:
            ReferenceParseError: If the reference is malformed.
        """
        source = parse_reference(reference)
        self.path_cache.discard(reference)
        self.path_cache.discard(_memo_key(reference, version))
        if isinstance(source, LocalSource):
            return False

        source = source.with_version(version)
        return self.cache.invalidate(source.base_reference, source.version)
