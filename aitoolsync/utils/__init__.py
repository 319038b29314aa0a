# AI Tool Sync Utilities Module
# Helper functions for path handling and content hashing

from aitoolsync.utils.hashing import directory_hash
from aitoolsync.utils.paths import (
    atomic_write,
    ensure_dir,
    expand_path,
    get_relative_path,
    matches_any_pattern,
    matches_pattern,
    safe_delete,
)

__all__ = [
    # Paths
    "expand_path",
    "ensure_dir",
    "safe_delete",
    "atomic_write",
    "get_relative_path",
    "matches_pattern",
    "matches_any_pattern",
    # Hashing
    "directory_hash",
]
