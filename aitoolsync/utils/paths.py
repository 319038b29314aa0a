# AI Tool Sync Path Utilities
# Atomic writes, safe deletes and pattern matching for the plugin cache

import fnmatch
import os
import shutil
import tempfile
from pathlib import Path


def expand_path(path: str | Path, base: Path | None = None) -> Path:
    """
    Expand ~ and environment variables in path.

    Relative paths are resolved against base (or the current directory).

    Args:
        path: Path string or Path object.
        base: Optional base directory for relative paths.

    Returns:
        Expanded, absolute Path object.
    """
    path_str = os.path.expandvars(os.path.expanduser(str(path)))
    expanded = Path(path_str)
    if not expanded.is_absolute() and base is not None:
        expanded = base / expanded
    return expanded.resolve()


def ensure_dir(path: Path) -> Path:
    """
    Ensure directory exists, creating if necessary.

    Args:
        path: Directory path.

    Returns:
        The path that was ensured.
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def safe_delete(path: Path, *, missing_ok: bool = False) -> bool:
    """
    Safely delete file or directory.

    Args:
        path: Path to delete.
        missing_ok: If True, don't raise error if path doesn't exist.

    Returns:
        True if something was deleted, False if path didn't exist.

    Raises:
        FileNotFoundError: If path doesn't exist and missing_ok is False.
    """
    if not path.exists() and not path.is_symlink():
        if missing_ok:
            return False
        raise FileNotFoundError(f"Path does not exist: {path}")

    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()
    return True


def atomic_write(path: Path, content: str | bytes, *, encoding: str = "utf-8") -> None:
    """
    Atomically write content to file.

    Uses a temporary file in the target directory and an atomic rename, so
    readers never observe a partially written file.

    Args:
        path: Target file path.
        content: Content to write (str or bytes).
        encoding: Encoding for string content (default utf-8).
    """
    ensure_dir(path.parent)

    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        if isinstance(content, str):
            with os.fdopen(fd, "w", encoding=encoding) as f:
                f.write(content)
        else:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
        os.replace(temp_path, path)
    except Exception:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


def get_relative_path(path: Path, base: Path) -> Path | None:
    """
    Get path relative to base, or None if not relative.

    Args:
        path: Path to make relative.
        base: Base path.

    Returns:
        Relative path or None if not relative.
    """
    try:
        return path.relative_to(base)
    except ValueError:
        return None


def matches_pattern(path: str | Path, pattern: str) -> bool:
    """
    Check if path (or any of its components) matches a glob pattern.

    Args:
        path: Path to check.
        pattern: Glob pattern.

    Returns:
        True if path matches pattern.
    """
    path_str = Path(path).as_posix()
    if fnmatch.fnmatch(path_str, pattern):
        return True
    return any(fnmatch.fnmatch(part, pattern) for part in Path(path_str).parts)


def matches_any_pattern(path: str | Path, patterns: list[str]) -> bool:
    """
    Check if path matches any of the given patterns.

    Args:
        path: Path to check.
        patterns: List of glob patterns.

    Returns:
        True if path matches any pattern.
    """
    return any(matches_pattern(path, p) for p in patterns)
