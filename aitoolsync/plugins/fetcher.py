# AI Tool Sync Plugin Fetcher
# Materialize plugin sources on local disk

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Union

from aitoolsync.git.operations import (
    DEFAULT_CLONE_DEPTH,
    DEFAULT_GIT_TIMEOUT,
    GitError,
    clone_repo,
    get_commit_sha,
    redact_url,
    with_token,
)
from aitoolsync.logger import PluginLogger
from aitoolsync.plugins.errors import FetchError, ResolutionError, SubpathNotFoundError
from aitoolsync.plugins.source import LocalSource, PluginSource
from aitoolsync.utils.paths import safe_delete


class Cloner(Protocol):
    """Makes a copy of a remote repository at a local path."""

    def clone(
        self,
        url: str,
        ref: Optional[str],
        target_path: Path,
        timeout: Optional[float],
        depth: Optional[int],
    ) -> Optional[str]:
        """Clone url at ref into target_path; returns the commit if known. Raises GitError."""
        ...


class GitCloner:
    """Cloner backed by the git executable."""

    def clone(
        self,
        url: str,
        ref: Optional[str],
        target_path: Path,
        timeout: Optional[float],
        depth: Optional[int],
    ) -> Optional[str]:
        clone_repo(url, target_path, branch=ref, depth=depth, timeout=timeout)
        return get_commit_sha(target_path)


@dataclass
class FetchOptions:
    """Options for materializing a source."""

    timeout: Optional[float] = DEFAULT_GIT_TIMEOUT
    force_refresh: bool = False
    token: Optional[str] = None
    depth: Optional[int] = DEFAULT_CLONE_DEPTH


class Fetcher:
    """
    Makes plugin content available on local disk.

    Remote sources are shallow-cloned into a target directory; local sources
    are validated and used in place.
    """

    def __init__(self, cloner: Optional[Cloner] = None, logger: Optional[PluginLogger] = None):
        """
        Initialize fetcher.

        Args:
            cloner: Clone implementation (default: GitCloner).
            logger: Logger for progress output (default: quiet).
        """
        self.cloner = cloner or GitCloner()
        self.logger = logger or PluginLogger.quiet()

    def materialize(
        self,
        source: Union[PluginSource, LocalSource],
        target_path: Optional[Path] = None,
        options: Optional[FetchOptions] = None,
    ) -> Path:
        """
        Materialize a source.

        Args:
            source: Parsed source descriptor.
            target_path: Clone destination (required for remote sources).
            options: Fetch options.

        Returns:
            Directory holding the plugin content (clone root or its subpath).

        Raises:
            ResolutionError: If a local path or the subpath does not exist.
            FetchError: If cloning fails or times out.
        """
        options = options or FetchOptions()

        if isinstance(source, LocalSource):
            return self._materialize_local(source)

        if target_path is None:
            raise ValueError("target_path is required for remote sources")
        return self._materialize_remote(source, Path(target_path), options)

    def _materialize_local(self, source: LocalSource) -> Path:
        if not source.path.exists():
            raise ResolutionError(f"Plugin directory does not exist: {source.path}", path=str(source.path))
        if not source.path.is_dir():
            raise ResolutionError(f"Plugin path is not a directory: {source.path}", path=str(source.path))
        self.logger.debug(f"Using local plugin at {source.path}")
        return source.path

    def _materialize_remote(self, source: PluginSource, target_path: Path, options: FetchOptions) -> Path:
        if options.force_refresh and (target_path.exists() or target_path.is_symlink()):
            self.logger.debug(f"Removing {target_path} before refetch")
            safe_delete(target_path, missing_ok=True)

        if target_path.is_dir() and any(target_path.iterdir()):
            self.logger.debug(f"Reusing existing checkout at {target_path}")
        else:
            self._clone(source, target_path, options)

        return self._content_root(source, target_path)

    def _clone(self, source: PluginSource, target_path: Path, options: FetchOptions) -> None:
        url = with_token(source.clone_url, options.token)
        ref_label = f"@{source.version}" if source.version else ""
        self.logger.debug(f"Cloning {redact_url(source.clone_url)}{ref_label} into {target_path}")

        try:
            commit = self.cloner.clone(url, source.version, target_path, options.timeout, options.depth)
        except GitError as e:
            if target_path.exists() or target_path.is_symlink():
                safe_delete(target_path, missing_ok=True)
            raise FetchError(
                f"Failed to fetch {redact_url(source.original)}: {redact_url(e.message)}",
                path=redact_url(source.clone_url),
                returncode=e.returncode,
                stderr=redact_url(e.stderr),
            ) from e

        if commit:
            self.logger.debug(f"Fetched {source} at {commit[:12]}")

    def _content_root(self, source: PluginSource, target_path: Path) -> Path:
        if not source.subpath:
            return target_path

        content_root = target_path / source.subpath
        if not content_root.is_dir():
            safe_delete(target_path, missing_ok=True)
            raise SubpathNotFoundError(source.subpath, str(target_path))
        return content_root
