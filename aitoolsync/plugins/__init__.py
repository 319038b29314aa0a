# AI Tool Sync Plugins Module
# Plugin resolution, caching, fetching and normalization

from aitoolsync.plugins.cache import (
    CACHE_MANIFEST_FILE,
    CACHE_METADATA_FILE,
    PluginCache,
    default_cache_dir,
    generate_plugin_id,
)
from aitoolsync.plugins.content import (
    DEFAULT_TARGETS,
    Command,
    Hook,
    LoadError,
    LoadResult,
    Persona,
    PluginInfo,
    Rule,
    merge_load_results,
)
from aitoolsync.plugins.errors import (
    FetchError,
    ManifestError,
    PluginError,
    ReferenceParseError,
    ResolutionError,
    SubpathNotFoundError,
    UpdateError,
)
from aitoolsync.plugins.fetcher import Cloner, Fetcher, FetchOptions, GitCloner
from aitoolsync.plugins.loader import LoadOptions, PluginLoader, ResolvedPathCache, ResolvedPlugin
from aitoolsync.plugins.models import CacheEntry, CacheManifest, ManifestSummary, PluginCacheMetadata, PluginManifest
from aitoolsync.plugins.normalizer import ContentNormalizer, parse_frontmatter, read_plugin_manifest
from aitoolsync.plugins.source import (
    LocalSource,
    PluginSource,
    is_local_reference,
    parse_reference,
    parse_source,
    resolve_local_source,
)
from aitoolsync.plugins.update import PluginUpdater, UpdateCheck, UpdateResult, has_newer_version, sort_versions_desc

__all__ = [
    # Sources
    "PluginSource",
    "LocalSource",
    "parse_source",
    "parse_reference",
    "is_local_reference",
    "resolve_local_source",
    # Cache
    "PluginCache",
    "CacheEntry",
    "CacheManifest",
    "PluginCacheMetadata",
    "ManifestSummary",
    "CACHE_MANIFEST_FILE",
    "CACHE_METADATA_FILE",
    "default_cache_dir",
    "generate_plugin_id",
    # Fetcher
    "Cloner",
    "GitCloner",
    "Fetcher",
    "FetchOptions",
    # Normalizer
    "ContentNormalizer",
    "PluginManifest",
    "parse_frontmatter",
    "read_plugin_manifest",
    # Content
    "DEFAULT_TARGETS",
    "Rule",
    "Persona",
    "Command",
    "Hook",
    "LoadError",
    "LoadResult",
    "PluginInfo",
    "merge_load_results",
    # Loader
    "PluginLoader",
    "LoadOptions",
    "ResolvedPlugin",
    "ResolvedPathCache",
    # Updates
    "PluginUpdater",
    "UpdateCheck",
    "UpdateResult",
    "has_newer_version",
    "sort_versions_desc",
    # Errors
    "PluginError",
    "ReferenceParseError",
    "ResolutionError",
    "SubpathNotFoundError",
    "FetchError",
    "ManifestError",
    "UpdateError",
]
