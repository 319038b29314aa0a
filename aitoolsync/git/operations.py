# AI Tool Sync Git Operations
# Git command execution for fetching plugin repositories

import os
import re
import shutil
import subprocess
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

# Default timeout for git operations (5 minutes)
DEFAULT_GIT_TIMEOUT = 300.0

# Default clone depth for shallow clones
DEFAULT_CLONE_DEPTH = 1

# Default timeout for ls-remote queries
DEFAULT_LS_REMOTE_TIMEOUT = 30.0

_TAG_REF_PREFIX = "refs/tags/"

_CREDENTIALS_RE = re.compile(r"(?P<scheme>[a-zA-Z][a-zA-Z0-9+.-]*://)[^/@\s]+@")


class GitError(Exception):
    """Exception raised for git operation errors."""

    def __init__(self, message: str, returncode: int = 1, stderr: str = ""):
        self.message = message
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)


def redact_url(text: str) -> str:
    """
    Hide credentials embedded in any URL found in text.

    Args:
        text: URL or free text (e.g. git stderr) that may contain URLs.

    Returns:
        Text with every "scheme://user:pass@" authority replaced by "scheme://***@".
    """
    return _CREDENTIALS_RE.sub(r"\g<scheme>***@", text)


def with_token(url: str, token: Optional[str]) -> str:
    """
    Embed an access token into the authority of an HTTP(S) clone URL.

    SSH and other URLs are returned unchanged.

    Args:
        url: Clone URL.
        token: Personal access token, or None.

    Returns:
        URL carrying the token as "<token>:x-oauth-basic@host".
    """
    if not token:
        return url

    parts = urlsplit(url)
    if parts.scheme not in ("http", "https"):
        return url

    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    netloc = f"{token}:x-oauth-basic@{host}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def _git_env() -> dict[str, str]:
    """Environment for git subprocesses with interactive prompting disabled."""
    env = dict(os.environ)
    env["GIT_TERMINAL_PROMPT"] = "0"
    env["GCM_INTERACTIVE"] = "never"
    return env


def _run_git(
    *args: str,
    cwd: Optional[Path] = None,
    check: bool = True,
    timeout: Optional[float] = None,
) -> subprocess.CompletedProcess[str]:
    """
    Run a git command.

    Args:
        *args: Git command arguments.
        cwd: Working directory.
        check: Whether to raise on non-zero exit.
        timeout: Seconds before the process is killed (None = no limit).

    Returns:
        CompletedProcess with result.

    Raises:
        GitError: If command fails and check is True, times out, or git is missing.
    """
    cmd = ["git", *args]
    display = redact_url(" ".join(cmd))
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            check=False,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=_git_env(),
        )
    except FileNotFoundError:
        raise GitError("git command not found. Is git installed?")
    except subprocess.TimeoutExpired:
        raise GitError(f"Git command timed out after {timeout:g}s: {display}", returncode=-1)

    if check and result.returncode != 0:
        stderr = redact_url(result.stderr.strip()) if result.stderr else ""
        raise GitError(
            f"Git command failed: {display}",
            returncode=result.returncode,
            stderr=stderr,
        )
    return result


def is_git_available() -> bool:
    """
    Check if the git executable can be run.

    Returns:
        True if `git --version` succeeds.
    """
    try:
        _run_git("--version")
        return True
    except GitError:
        return False


def clone_repo(
    url: str,
    dest: Path,
    *,
    branch: Optional[str] = None,
    depth: Optional[int] = DEFAULT_CLONE_DEPTH,
    timeout: Optional[float] = DEFAULT_GIT_TIMEOUT,
) -> None:
    """
    Clone a repository.

    A failed clone leaves nothing behind at dest.

    Args:
        url: Repository URL (may carry credentials, which are never logged).
        dest: Destination directory.
        branch: Optional branch or tag to check out.
        depth: Optional depth for shallow clone (None or 0 = full history).
        timeout: Seconds before the clone is aborted.

    Raises:
        GitError: If the clone fails or times out.
    """
    args = ["clone"]

    if depth:
        args.extend(["--depth", str(depth)])

    if branch:
        args.extend(["--branch", branch])

    if branch or depth:
        args.append("--single-branch")

    args.extend([url, str(dest)])

    dest.parent.mkdir(parents=True, exist_ok=True)
    try:
        _run_git(*args, timeout=timeout)
    except GitError:
        if dest.exists():
            shutil.rmtree(dest, ignore_errors=True)
        raise


def list_remote_tags(url: str, *, timeout: Optional[float] = DEFAULT_LS_REMOTE_TIMEOUT) -> list[str]:
    """
    List the tags of a remote repository without cloning it.

    Args:
        url: Repository URL (may carry credentials).
        timeout: Seconds before the query is aborted.

    Returns:
        Tag names in the order git reports them.

    Raises:
        GitError: If the query fails or times out.
    """
    result = _run_git("ls-remote", "--tags", "--refs", url, timeout=timeout)

    tags = []
    for line in result.stdout.splitlines():
        _, _, ref = line.partition("\t")
        if ref.startswith(_TAG_REF_PREFIX):
            tags.append(ref[len(_TAG_REF_PREFIX):])
    return tags


def get_commit_sha(path: Path) -> Optional[str]:
    """
    Get the commit checked out in a repository.

    Args:
        path: Repository path.

    Returns:
        Full commit hash, or None if it cannot be determined.
    """
    try:
        result = _run_git("rev-parse", "HEAD", cwd=path)
        return result.stdout.strip() or None
    except GitError:
        return None
