# AI Tool Sync Plugin Sources
# Parse plugin references into structured source descriptors

"""
Plugin reference grammar::

    [plugin:]<host-prefix>:<owner>/<repo>[/<subpath>][@<version>]
    [plugin:]git:<host>/<owner>/<repo>[/<subpath>][@<version>]
    [plugin:][git:]https://<host>/<owner>/<repo>[.git][/<subpath>][@<version>]
    [plugin:]git@<host>:<owner>/<repo>[.git][@<version>]
    <filesystem path>

`#` is accepted wherever `@` separates the version. Anything that is not a
remote reference is treated as a filesystem path.
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlsplit, urlunsplit

from aitoolsync.plugins.errors import ReferenceParseError

PLUGIN_PREFIX = "plugin:"
GIT_PREFIX = "git:"
SSH_PREFIX = "git@"

# Shorthand prefix -> clone host
HOST_PREFIXES: dict[str, str] = {
    "github:": "github.com",
    "gitlab:": "gitlab.com",
    "bitbucket:": "bitbucket.org",
}

_URL_SCHEMES = ("https://", "http://", "ssh://", "git://")
_VERSION_SEPARATORS = ("@", "#")


@dataclass(frozen=True)
class PluginSource:
    """A remote plugin reference, parsed."""

    host: str
    owner: str
    repo: str
    clone_url: str
    original: str
    base_reference: str
    version: Optional[str] = None
    subpath: Optional[str] = None

    def with_version(self, version: Optional[str]) -> "PluginSource":
        """Return a copy pinned to another version (None keeps the current one)."""
        if not version or version == self.version:
            return self
        return replace(self, version=version)

    def __str__(self) -> str:
        suffix = f"@{self.version}" if self.version else ""
        return f"{self.base_reference}{suffix}"


@dataclass(frozen=True)
class LocalSource:
    """A filesystem plugin reference, resolved against a base path."""

    path: Path
    original: str

    def __str__(self) -> str:
        return str(self.path)


def strip_plugin_prefix(reference: str) -> str:
    """Remove the optional outer `plugin:` prefix."""
    reference = reference.strip()
    if reference.startswith(PLUGIN_PREFIX):
        return reference[len(PLUGIN_PREFIX):]
    return reference


def is_remote_reference(reference: str) -> bool:
    """
    Check whether a reference names a remote repository.

    Args:
        reference: Raw plugin reference.

    Returns:
        True for host shorthands, git:, SSH and http(s)/ssh/git URLs.
    """
    ref = strip_plugin_prefix(reference)
    if any(ref.startswith(prefix) for prefix in HOST_PREFIXES):
        return True
    if ref.startswith(GIT_PREFIX) or ref.startswith(SSH_PREFIX):
        return True
    return ref.lower().startswith(_URL_SCHEMES)


def is_local_reference(reference: str) -> bool:
    """Check whether a reference is a filesystem path."""
    return not is_remote_reference(reference)


def _split_version(text: str, reference: str) -> tuple[str, Optional[str]]:
    """Split `path@version` (or `path#version`) at the first separator."""
    positions = [text.find(sep) for sep in _VERSION_SEPARATORS if sep in text]
    if not positions:
        return text, None

    index = min(positions)
    path_part, version = text[:index], text[index + 1:].strip()
    if not version:
        raise ReferenceParseError(reference, "Empty version after separator")
    if any(sep in version for sep in _VERSION_SEPARATORS):
        raise ReferenceParseError(reference, "Multiple version separators")
    return path_part, version


def _split_segments(path_part: str, reference: str, minimum: int) -> list[str]:
    segments = path_part.strip("/").split("/")
    if len(segments) < minimum or not all(segments[:minimum]):
        raise ReferenceParseError(reference, "Expected at least owner/repo")
    if any(seg in ("", ".", "..") for seg in segments[minimum:]):
        raise ReferenceParseError(reference, "Invalid subpath")
    return segments


def _strip_git_suffix(repo: str) -> str:
    return repo[:-4] if repo.endswith(".git") else repo


def _build(
    reference: str,
    *,
    host: str,
    owner: str,
    repo: str,
    clone_url: str,
    base_reference: str,
    version: Optional[str],
    extra: list[str],
) -> PluginSource:
    return PluginSource(
        host=host,
        owner=owner,
        repo=repo,
        clone_url=clone_url,
        original=reference,
        base_reference=base_reference,
        version=version,
        subpath="/".join(extra) if extra else None,
    )


def _parse_shorthand(reference: str, ref: str, prefix: str, host: str) -> PluginSource:
    path_part, version = _split_version(ref[len(prefix):], reference)
    segments = _split_segments(path_part, reference, 2)
    owner, repo = segments[0], _strip_git_suffix(segments[1])
    if not repo:
        raise ReferenceParseError(reference, "Expected at least owner/repo")

    return _build(
        reference,
        host=host,
        owner=owner,
        repo=repo,
        clone_url=f"https://{host}/{owner}/{repo}.git",
        base_reference=prefix + path_part.strip("/"),
        version=version,
        extra=segments[2:],
    )


def _parse_git_host(reference: str, ref: str) -> PluginSource:
    rest = ref[len(GIT_PREFIX):]
    if rest.lower().startswith(_URL_SCHEMES):
        return _parse_url(reference, rest, base_prefix=GIT_PREFIX)

    path_part, version = _split_version(rest, reference)
    segments = path_part.strip("/").split("/")
    if len(segments) < 3 or not all(segments[:3]):
        raise ReferenceParseError(reference, "Expected host/owner/repo")
    host = segments[0]
    inner = _split_segments("/".join(segments[1:]), reference, 2)
    owner, repo = inner[0], _strip_git_suffix(inner[1])

    return _build(
        reference,
        host=host,
        owner=owner,
        repo=repo,
        clone_url=f"https://{host}/{owner}/{repo}.git",
        base_reference=GIT_PREFIX + path_part.strip("/"),
        version=version,
        extra=inner[2:],
    )


def _parse_url(reference: str, url: str, base_prefix: str = "") -> PluginSource:
    parts = urlsplit(url)
    if not parts.hostname:
        raise ReferenceParseError(reference, "URL has no host")

    version = parts.fragment.strip() or None
    path_part = parts.path
    if "@" in path_part:
        if version:
            raise ReferenceParseError(reference, "Multiple version separators")
        path_part, version = _split_version(path_part, reference)
    elif url.endswith("#"):
        raise ReferenceParseError(reference, "Empty version after separator")

    segments = _split_segments(path_part, reference, 2)
    owner, repo = segments[0], _strip_git_suffix(segments[1])
    clone_url = urlunsplit((parts.scheme, parts.netloc, f"/{owner}/{repo}.git", "", ""))
    base = urlunsplit((parts.scheme, parts.netloc, path_part.rstrip("/"), "", ""))

    return _build(
        reference,
        host=parts.hostname,
        owner=owner,
        repo=repo,
        clone_url=clone_url,
        base_reference=base_prefix + base,
        version=version,
        extra=segments[2:],
    )


def _parse_ssh(reference: str, ref: str) -> PluginSource:
    rest = ref[len(SSH_PREFIX):]
    host, sep, path = rest.partition(":")
    if not sep or not host:
        raise ReferenceParseError(reference, "Expected git@host:owner/repo")

    path_part, version = _split_version(path, reference)
    segments = _split_segments(path_part, reference, 2)
    owner, repo = segments[0], _strip_git_suffix(segments[1])

    return _build(
        reference,
        host=host,
        owner=owner,
        repo=repo,
        clone_url=f"{SSH_PREFIX}{host}:{owner}/{repo}.git",
        base_reference=f"{SSH_PREFIX}{host}:{path_part.strip('/')}",
        version=version,
        extra=segments[2:],
    )


def parse_source(reference: str) -> PluginSource:
    """
    Parse a remote plugin reference.

    Args:
        reference: Plugin reference, e.g. "github:acme/toolkit@v2.1.0".

    Returns:
        PluginSource descriptor.

    Raises:
        ReferenceParseError: If the reference is not a well-formed remote reference.
    """
    ref = strip_plugin_prefix(reference)
    if not ref:
        raise ReferenceParseError(reference, "Empty plugin reference")

    for prefix, host in HOST_PREFIXES.items():
        if ref.startswith(prefix):
            return _parse_shorthand(reference, ref, prefix, host)

    if ref.startswith(GIT_PREFIX):
        return _parse_git_host(reference, ref)

    if ref.startswith(SSH_PREFIX):
        return _parse_ssh(reference, ref)

    if ref.lower().startswith(_URL_SCHEMES):
        return _parse_url(reference, ref)

    raise ReferenceParseError(reference, "Not a remote plugin reference")


def resolve_local_source(reference: str, base_path: Optional[Path] = None) -> LocalSource:
    """
    Resolve a filesystem reference against a base path.

    Only path arithmetic is done; existence is checked by the fetcher.

    Args:
        reference: Absolute or relative path (optionally `plugin:` or `file://` prefixed).
        base_path: Directory relative references are resolved against (default: cwd).

    Returns:
        LocalSource with an absolute, normalized path.
    """
    ref = strip_plugin_prefix(reference)
    if ref.startswith("file://"):
        ref = ref[len("file://"):]
    if not ref:
        raise ReferenceParseError(reference, "Empty plugin reference")

    path = Path(os.path.expanduser(ref))
    if not path.is_absolute():
        path = (base_path or Path.cwd()) / path
    return LocalSource(path=Path(os.path.normpath(path)), original=reference)


def parse_reference(reference: str, base_path: Optional[Path] = None) -> Union[PluginSource, LocalSource]:
    """
    Parse any plugin reference.

    Args:
        reference: Remote reference or filesystem path.
        base_path: Base for relative filesystem paths.

    Returns:
        PluginSource for remote references, LocalSource otherwise.

    Raises:
        ReferenceParseError: If a remote reference is malformed.
    """
    if is_remote_reference(reference):
        return parse_source(reference)
    return resolve_local_source(reference, base_path)
