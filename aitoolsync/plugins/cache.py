# AI Tool Sync Plugin Cache
# Durable cache of fetched plugins, indexed by cache-manifest.json

import os
import re
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from aitoolsync.plugins.errors import ManifestError, ReferenceParseError, ResolutionError
from aitoolsync.plugins.models import (
    CacheEntry,
    CacheManifest,
    ManifestSummary,
    PluginCacheMetadata,
    dump_model,
    read_json_model,
)
from aitoolsync.plugins.source import HOST_PREFIXES, is_remote_reference, parse_source, strip_plugin_prefix
from aitoolsync.utils.paths import atomic_write, get_relative_path, safe_delete

CACHE_MANIFEST_FILE = "cache-manifest.json"
CACHE_METADATA_FILE = ".plugin-cache-meta.json"

# Cache directory relative to the project root
DEFAULT_CACHE_SUBDIR = Path(".ai-tool-sync") / "plugins"

_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9.\-]+")

# One lock per manifest file, shared by every PluginCache in the process
_manifest_locks: dict[str, threading.RLock] = {}
_manifest_locks_guard = threading.Lock()


def _manifest_lock(manifest_path: Path) -> threading.RLock:
    key = os.path.abspath(manifest_path)
    with _manifest_locks_guard:
        lock = _manifest_locks.get(key)
        if lock is None:
            lock = threading.RLock()
            _manifest_locks[key] = lock
        return lock


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def default_cache_dir(project_root: Optional[Path] = None) -> Path:
    """
    Get the default plugin cache directory for a project.

    Args:
        project_root: Project directory (default: current directory).

    Returns:
        <project_root>/.ai-tool-sync/plugins
    """
    return (project_root or Path.cwd()) / DEFAULT_CACHE_SUBDIR


def _sanitize(text: str) -> str:
    return _UNSAFE_ID_CHARS.sub("_", text).strip("_")


def _ends_with_version(plugin_id: str, version: str) -> bool:
    bare = version[1:] if len(version) > 1 and version[0] in "vV" else version
    return any(plugin_id == candidate or plugin_id.endswith(f"_{candidate}") for candidate in (version, bare, f"v{bare}"))


def generate_plugin_id(source: str, version: Optional[str] = None) -> str:
    """
    Derive the cache identifier for a (source, version) pair.

    Known host shorthands become a type prefix, every run of characters
    outside [A-Za-z0-9.-] collapses to one underscore, and the version is
    appended unless the source already ends with it.

    Args:
        source: Plugin reference.
        version: Optional version, tag or commit.

    Returns:
        Filesystem-safe identifier, e.g. "github_acme_toolkit_v2.1.0".
    """
    ref = strip_plugin_prefix(source)
    prefix = ""
    for shorthand in HOST_PREFIXES:
        if ref.startswith(shorthand):
            prefix = shorthand.rstrip(":") + "_"
            ref = ref[len(shorthand):]
            break

    plugin_id = prefix + _sanitize(ref)
    if version:
        safe_version = _sanitize(version)
        if safe_version and not _ends_with_version(plugin_id, safe_version):
            plugin_id = f"{plugin_id}_{safe_version}"
    return plugin_id


def _effective_version(source: str, version: Optional[str]) -> Optional[str]:
    """Explicit version, else the one embedded in a remote reference."""
    if version:
        return version
    if is_remote_reference(source):
        try:
            return parse_source(source).version
        except ReferenceParseError:
            return None
    return None


def _normalize_version(version: Optional[str]) -> Optional[str]:
    if not version:
        return None
    return version.lstrip("vV") or version


def _identity(source: str, version: Optional[str]) -> tuple[str, Optional[str]]:
    """
    The (reference, version) pair a cache entry stands for.

    Plugin ids are lossy, so "github:acme/toolkit/v2" (subpath) and
    "github:acme/toolkit@v2" (tag) share an id; lookups compare identities.
    """
    ref = strip_plugin_prefix(source)
    effective = version
    if is_remote_reference(source):
        try:
            parsed = parse_source(source)
        except ReferenceParseError:
            pass
        else:
            ref = parsed.base_reference
            effective = version or parsed.version
    return ref, _normalize_version(effective)


class PluginCache:
    """
    Manages the on-disk plugin cache.

    Layout::

        <cache_dir>/cache-manifest.json
        <cache_dir>/<plugin-id>/.plugin-cache-meta.json
        <cache_dir>/<plugin-id>/...plugin content...

    Every operation reads the manifest from disk under a per-manifest lock and
    rewrites it atomically, so several PluginCache instances (or threads)
    sharing a directory do not lose each other's updates. Lookups never
    create the cache directory.
    """

    def __init__(self, cache_dir: Optional[Path] = None):
        """
        Initialize the cache.

        Args:
            cache_dir: Cache root. Defaults to ./.ai-tool-sync/plugins
        """
        self.cache_dir = Path(cache_dir) if cache_dir is not None else default_cache_dir()
        self.manifest_path = self.cache_dir / CACHE_MANIFEST_FILE
        self._lock = _manifest_lock(self.manifest_path)

    # Manifest persistence

    def _read_manifest(self) -> CacheManifest:
        """
        Read the manifest. A missing manifest reads as empty and is only
        written by the next mutating call.

        Raises:
            ManifestError: If the manifest is unreadable or invalid.
        """
        if not self.manifest_path.exists():
            return CacheManifest(last_updated=_now())

        result = read_json_model(self.manifest_path, CacheManifest)
        if not result.ok:
            raise ManifestError(f"Cache manifest is corrupt: {result.error}", path=str(self.manifest_path))
        return result.value

    def _write_manifest(self, manifest: CacheManifest) -> None:
        manifest.last_updated = _now()
        try:
            atomic_write(self.manifest_path, dump_model(manifest))
        except OSError as e:
            raise ManifestError(f"Cannot write cache manifest: {e}", path=str(self.manifest_path)) from e

    def load_manifest(self) -> CacheManifest:
        """Return the current manifest as stored on disk (empty if none yet)."""
        with self._lock:
            return self._read_manifest()

    # Paths

    def get_target_path(self, source: str, version: Optional[str] = None) -> Path:
        """Directory a plugin is fetched into."""
        return self.cache_dir / generate_plugin_id(source, _effective_version(source, version))

    def get_plugin_path(self, plugin: Union[str, CacheEntry]) -> Path:
        """
        Get the content directory of a cached plugin.

        Args:
            plugin: Cache entry or plugin id.

        Returns:
            Absolute directory path.
        """
        if isinstance(plugin, CacheEntry):
            path = Path(plugin.path)
            return path if path.is_absolute() else self.cache_dir / path
        return self.cache_dir / plugin

    def _entry_path(self, path: Path) -> str:
        relative = get_relative_path(Path(os.path.abspath(path)), Path(os.path.abspath(self.cache_dir)))
        return relative.as_posix() if relative is not None else str(path)

    def _owns(self, path: Path) -> bool:
        return get_relative_path(Path(os.path.abspath(path)), Path(os.path.abspath(self.cache_dir))) is not None

    # Lookup

    def get_cache_entry(self, source: str, version: Optional[str] = None) -> Optional[CacheEntry]:
        """
        Look up a cached plugin.

        An entry recorded for another reference or version is a miss. An
        entry whose directory has disappeared is dropped from the manifest
        and reported as a miss.

        Args:
            source: Plugin reference.
            version: Optional version.

        Returns:
            CacheEntry or None.

        Raises:
            ManifestError: If the manifest is corrupt.
        """
        effective = _effective_version(source, version)
        plugin_id = generate_plugin_id(source, effective)

        with self._lock:
            manifest = self._read_manifest()
            entry = manifest.plugins.get(plugin_id)
            if entry is None:
                return None

            if _identity(entry.source, entry.version) != _identity(source, version):
                return None

            if not self.get_plugin_path(entry).is_dir():
                del manifest.plugins[plugin_id]
                self._write_manifest(manifest)
                return None

            return entry

    def is_cached(self, source: str, version: Optional[str] = None) -> bool:
        """Check whether a plugin is cached and its directory still exists."""
        return self.get_cache_entry(source, version) is not None

    def list_cached(self) -> list[CacheEntry]:
        """List all manifest entries."""
        with self._lock:
            return list(self._read_manifest().plugins.values())

    def entries_for(self, source: str) -> list[CacheEntry]:
        """List the entries cached for a reference, whatever their version."""
        reference, _ = _identity(source, None)
        return [entry for entry in self.list_cached() if _identity(entry.source, entry.version)[0] == reference]

    # Mutation

    def cache_plugin(
        self,
        source: str,
        version: Optional[str],
        path: Path,
        *,
        content_hash: Optional[str] = None,
        manifest: Optional[ManifestSummary] = None,
    ) -> CacheEntry:
        """
        Record a fetched plugin directory in the cache.

        Writes the sidecar metadata file into the directory and upserts the
        manifest entry, replacing any stale entry for the same id.

        Args:
            source: Plugin reference.
            version: Optional version.
            path: Directory holding the plugin content.
            content_hash: Optional hash of the content.
            manifest: Optional plugin.json summary.

        Returns:
            The new CacheEntry.

        Raises:
            ResolutionError: If path is not a directory.
            ManifestError: If the manifest is corrupt or cannot be written.
        """
        path = Path(path)
        if not path.is_dir():
            raise ResolutionError(f"Cannot cache missing directory: {path}", path=str(path))

        effective = _effective_version(source, version)
        plugin_id = generate_plugin_id(source, effective)
        now = _now()

        metadata = PluginCacheMetadata(
            id=plugin_id,
            source=source,
            version=effective,
            cached_at=now,
            last_accessed=now,
            content_hash=content_hash,
            manifest=manifest,
        )
        entry = CacheEntry(
            id=plugin_id,
            source=source,
            version=effective,
            cached_at=now,
            last_accessed=now,
            path=self._entry_path(path),
            content_hash=content_hash,
            manifest=manifest,
        )

        with self._lock:
            cache_manifest = self._read_manifest()
            atomic_write(path / CACHE_METADATA_FILE, dump_model(metadata))
            cache_manifest.plugins[plugin_id] = entry
            self._write_manifest(cache_manifest)

        return entry

    def touch_plugin(self, source: str, version: Optional[str] = None) -> None:
        """
        Refresh the last-accessed time of a cached plugin.

        Does nothing if the plugin is not cached any more.
        """
        plugin_id = generate_plugin_id(source, _effective_version(source, version))

        with self._lock:
            manifest = self._read_manifest()
            entry = manifest.plugins.get(plugin_id)
            if entry is None or _identity(entry.source, entry.version) != _identity(source, version):
                return

            plugin_path = self.get_plugin_path(entry)
            if not plugin_path.is_dir():
                return

            now = _now()
            meta_path = plugin_path / CACHE_METADATA_FILE
            result = read_json_model(meta_path, PluginCacheMetadata)
            if result.ok:
                metadata = result.value
                metadata.last_accessed = now
            else:
                metadata = PluginCacheMetadata(
                    id=entry.id,
                    source=entry.source,
                    version=entry.version,
                    cached_at=entry.cached_at,
                    last_accessed=now,
                    content_hash=entry.content_hash,
                    manifest=entry.manifest,
                )
            atomic_write(meta_path, dump_model(metadata))

            entry.last_accessed = now
            self._write_manifest(manifest)

    def invalidate(self, source: str, version: Optional[str] = None) -> bool:
        """
        Remove a plugin from the cache and delete its directory.

        Directories outside the cache root are never deleted, nor is an
        entry recorded for another reference that shares the plugin id.

        Returns:
            True if an entry or directory was removed.
        """
        plugin_id = generate_plugin_id(source, _effective_version(source, version))

        with self._lock:
            manifest = self._read_manifest()
            entry = manifest.plugins.get(plugin_id)
            if entry is not None and _identity(entry.source, entry.version) != _identity(source, version):
                return False
            manifest.plugins.pop(plugin_id, None)
            plugin_path = self.get_plugin_path(entry) if entry else self.get_plugin_path(plugin_id)

            removed = entry is not None
            if self._owns(plugin_path) and plugin_path != self.cache_dir:
                removed = safe_delete(plugin_path, missing_ok=True) or removed

            if entry is not None:
                self._write_manifest(manifest)
            return removed

    def clear_all(self) -> int:
        """
        Delete every cached directory and reset the manifest to empty.

        Returns:
            Number of manifest entries removed.
        """
        with self._lock:
            manifest = self._read_manifest()
            count = len(manifest.plugins)

            for entry in manifest.plugins.values():
                plugin_path = self.get_plugin_path(entry)
                if self._owns(plugin_path) and plugin_path != self.cache_dir:
                    safe_delete(plugin_path, missing_ok=True)

            # Orphaned directories without an entry
            if self.cache_dir.is_dir():
                for child in self.cache_dir.iterdir():
                    if child.is_dir() and not child.is_symlink():
                        safe_delete(child, missing_ok=True)

            manifest.plugins = {}
            self._write_manifest(manifest)
            return count
