# AI Tool Sync Plugin Updates
# Check remote tags for newer plugin versions and refetch them

from dataclasses import dataclass, field
from typing import Callable, Optional

from aitoolsync.git.operations import (
    DEFAULT_LS_REMOTE_TIMEOUT,
    GitError,
    is_git_available,
    list_remote_tags,
    redact_url,
    with_token,
)
from aitoolsync.plugins.cache import generate_plugin_id
from aitoolsync.plugins.errors import PluginError, UpdateError
from aitoolsync.plugins.loader import LoadOptions, PluginLoader
from aitoolsync.plugins.models import CacheEntry
from aitoolsync.plugins.source import LocalSource, PluginSource, parse_reference

# (url, timeout) -> tag names
TagLister = Callable[[str, Optional[float]], list[str]]


def version_key(version: str) -> Optional[tuple[int, ...]]:
    """
    Numeric sort key of a version tag.

    "v2.10.1" -> (2, 10, 1). Returns None for tags without any digits.
    """
    parts = []
    for piece in version.strip().lower().lstrip("v").split("."):
        digits = "".join(ch for ch in piece if ch.isdigit())
        if digits:
            parts.append(int(digits))
    return tuple(parts) if parts else None


def sort_versions_desc(versions: list[str]) -> list[str]:
    """Sort tags newest first; tags without a version number go last."""
    numbered = [v for v in versions if version_key(v) is not None]
    other = [v for v in versions if version_key(v) is None]
    return sorted(numbered, key=lambda v: (version_key(v), v), reverse=True) + sorted(other)


def has_newer_version(current: Optional[str], latest: Optional[str]) -> bool:
    """
    Check whether latest is newer than current.

    Without a current version any latest version counts as newer. Tags that
    are not version numbers only differ or match.
    """
    if not latest:
        return False
    if not current:
        return True

    current_key, latest_key = version_key(current), version_key(latest)
    if current_key is None or latest_key is None:
        return current.lstrip("vV") != latest.lstrip("vV")
    return latest_key > current_key


@dataclass
class UpdateCheck:
    """Outcome of checking one plugin for a newer version."""

    source: str
    plugin_id: str
    current_version: Optional[str] = None
    latest_version: Optional[str] = None
    available_versions: list[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def has_update(self) -> bool:
        return self.error is None and has_newer_version(self.current_version, self.latest_version)


@dataclass
class UpdateResult:
    """A plugin moved to a new version."""

    source: str
    plugin_id: str
    previous_version: Optional[str]
    new_version: str


def _git_tags(url: str, timeout: Optional[float]) -> list[str]:
    if not is_git_available():
        raise GitError("Git is required for plugin updates")
    return list_remote_tags(url, timeout=timeout)


class PluginUpdater:
    """
    Finds newer tagged versions of cached or configured plugins.

    Tags are queried with `git ls-remote`, so nothing is cloned until an
    update is applied. Applying fetches the new version through the loader
    (which records it in the cache) and then drops the previous version.
    """

    def __init__(
        self,
        loader: PluginLoader,
        list_tags: Optional[TagLister] = None,
        timeout: Optional[float] = DEFAULT_LS_REMOTE_TIMEOUT,
        token: Optional[str] = None,
    ):
        """
        Initialize updater.

        Args:
            loader: Loader used to fetch new versions (its cache is inspected).
            list_tags: Tag lister (default: git ls-remote).
            timeout: Seconds for each git operation.
            token: Access token for private repositories.
        """
        self.loader = loader
        self.cache = loader.cache
        self.list_tags = list_tags or _git_tags
        self.timeout = timeout
        self.token = token

    def _remote_source(self, reference: str) -> PluginSource:
        source = parse_reference(reference)
        if isinstance(source, LocalSource):
            raise UpdateError("Local plugins cannot be updated", path=reference)
        return source

    def _current_entry(self, source: PluginSource) -> Optional[CacheEntry]:
        if source.version:
            return self.cache.get_cache_entry(source.base_reference, source.version)
        entries = self.cache.entries_for(source.base_reference)
        if not entries:
            return None
        return max(entries, key=lambda e: (version_key(e.version or "") or (), e.cached_at))

    def check(self, reference: str, version: Optional[str] = None) -> UpdateCheck:
        """
        Check one plugin for a newer tag.

        Never raises PluginError: problems are reported in UpdateCheck.error.

        Args:
            reference: Plugin reference.
            version: Installed version, overriding the one in the reference.
        """
        try:
            source = self._remote_source(reference).with_version(version)
        except PluginError as e:
            return UpdateCheck(source=reference, plugin_id=generate_plugin_id(reference), error=str(e))

        entry = self._current_entry(source)
        current = source.version or (entry.version if entry else None)
        plugin_id = entry.id if entry else generate_plugin_id(source.base_reference, current)
        check = UpdateCheck(source=reference, plugin_id=plugin_id, current_version=current)

        try:
            tags = self.list_tags(with_token(source.clone_url, self.token), self.timeout)
        except GitError as e:
            check.error = f"Failed to fetch tags: {redact_url(e.message)}"
            return check

        check.available_versions = sort_versions_desc(tags)
        if not check.available_versions:
            check.error = "No version tags found"
            return check

        check.latest_version = check.available_versions[0]
        if not entry:
            check.plugin_id = generate_plugin_id(source.base_reference, current or check.latest_version)
        return check

    def check_all(self, plugins: Optional[list[tuple[str, Optional[str]]]] = None) -> list[UpdateCheck]:
        """
        Check several plugins.

        Args:
            plugins: (reference, version) pairs. None checks every cached plugin.

        Returns:
            One UpdateCheck per distinct pair.
        """
        if plugins is None:
            plugins = [(entry.source, None) for entry in self.cache.list_cached()]
        return [self.check(reference, version) for reference, version in dict.fromkeys(plugins)]

    def update(self, reference: str, new_version: str, current_version: Optional[str] = None) -> UpdateResult:
        """
        Fetch a plugin at new_version and drop the previously cached version.

        The previous version stays cached if fetching the new one fails.

        Args:
            reference: Plugin reference.
            new_version: Tag to install.
            current_version: Installed version (default: from the reference or the cache).

        Returns:
            UpdateResult with the previous and new version.

        Raises:
            UpdateError: For local references.
            PluginError: If the new version cannot be fetched.
        """
        source = self._remote_source(reference).with_version(current_version)
        entry = self._current_entry(source)
        previous = entry.version if entry else source.version

        self.loader.resolve(
            reference,
            LoadOptions(version=new_version, force_refresh=True, timeout=self.timeout, token=self.token),
        )

        plugin_id = generate_plugin_id(source.base_reference, new_version)
        if entry is not None and entry.id != plugin_id:
            self.cache.invalidate(entry.source, entry.version)
            self.loader.path_cache.discard(reference)

        self.loader.logger.debug(f"Updated plugin {source.base_reference} to {new_version}")
        return UpdateResult(
            source=reference,
            plugin_id=plugin_id,
            previous_version=previous,
            new_version=new_version,
        )
