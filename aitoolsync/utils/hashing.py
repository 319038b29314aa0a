# AI Tool Sync Hashing Utilities
# Content hashing for cached plugin integrity

import hashlib
from pathlib import Path

from aitoolsync.utils.paths import matches_any_pattern


def directory_hash(
    path: Path,
    *,
    algorithm: str = "sha256",
    exclude_patterns: list[str] | None = None,
) -> str | None:
    """
    Calculate hash of directory contents.

    Relative file names and file contents both feed the hash, so renames,
    additions and deletions all change it.

    Args:
        path: Path to directory.
        algorithm: Hash algorithm (default sha256).
        exclude_patterns: Patterns to exclude from hashing (matched against
            the relative path and each of its components).

    Returns:
        Hex digest of hash, or None if directory doesn't exist.
    """
    if not path.is_dir():
        return None

    hasher = hashlib.new(algorithm)

    files: list[tuple[str, Path]] = []
    for file_path in path.rglob("*"):
        if not file_path.is_file():
            continue
        rel_path = file_path.relative_to(path).as_posix()
        if exclude_patterns and matches_any_pattern(rel_path, exclude_patterns):
            continue
        files.append((rel_path, file_path))

    # Sorted for a deterministic digest
    files.sort(key=lambda x: x[0])

    for rel_path, file_path in files:
        hasher.update(rel_path.encode("utf-8"))
        hasher.update(b"\x00")
        with open(file_path, "rb") as f:
            while chunk := f.read(8192):
                hasher.update(chunk)
        hasher.update(b"\x00")

    return hasher.hexdigest()
