# AI Tool Sync Git Module
# Git operations for fetching plugin repositories

from aitoolsync.git.operations import (
    DEFAULT_CLONE_DEPTH,
    DEFAULT_GIT_TIMEOUT,
    DEFAULT_LS_REMOTE_TIMEOUT,
    GitError,
    clone_repo,
    get_commit_sha,
    is_git_available,
    list_remote_tags,
    redact_url,
    with_token,
)

__all__ = [
    "DEFAULT_CLONE_DEPTH",
    "DEFAULT_GIT_TIMEOUT",
    "DEFAULT_LS_REMOTE_TIMEOUT",
    "GitError",
    "clone_repo",
    "get_commit_sha",
    "is_git_available",
    "list_remote_tags",
    "redact_url",
    "with_token",
]
