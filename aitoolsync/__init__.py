"""AI Tool Sync - plugin resolution and caching.

Turns plugin references (hosted repository shorthands, git URLs or local
paths) into version-pinned local content, keeps a per-project plugin cache,
and normalizes plugin layouts into rules, personas, commands and hooks.
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "PluginLoader",
    "LoadOptions",
    "LoadResult",
    "PluginCache",
    "parse_source",
    "parse_reference",
]


def __getattr__(name: str):
    """Lazy import to avoid loading dependencies during setup."""
    if name in ("PluginLoader", "LoadOptions"):
        from aitoolsync.plugins import loader

        return getattr(loader, name)
    if name == "LoadResult":
        from aitoolsync.plugins.content import LoadResult

        return LoadResult
    if name == "PluginCache":
        from aitoolsync.plugins.cache import PluginCache

        return PluginCache
    if name in ("parse_source", "parse_reference"):
        from aitoolsync.plugins import source

        return getattr(source, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
