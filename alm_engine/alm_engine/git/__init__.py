"""Git integration for committing exported sources."""

from __future__ import annotations

from alm_engine.git.git_client import (
    GitClientError,
    add_paths,
    branch_exists,
    checkout_branch,
    commit,
    get_current_branch,
    get_current_sha,
    has_changes,
    push,
    validate_repo,
)

__all__ = [
    "GitClientError",
    "add_paths",
    "branch_exists",
    "checkout_branch",
    "commit",
    "get_current_branch",
    "get_current_sha",
    "has_changes",
    "push",
    "validate_repo",
]
