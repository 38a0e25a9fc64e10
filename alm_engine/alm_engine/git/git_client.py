"""Thin git client used to commit exported solution sources.

All interaction with the ``git`` binary is done through :func:`subprocess.run`
with explicit timeouts and structured error handling so that callers receive
:class:`GitClientError` exceptions with descriptive messages rather than raw
subprocess failures.
"""

from __future__ import annotations

import logging
import re
import subprocess
from collections.abc import Sequence
from pathlib import Path

logger = logging.getLogger(__name__)

_SUBPROCESS_TIMEOUT = 120  # seconds; pushes can be slow

_GIT_SHA_RE = re.compile(r"^[0-9a-fA-F]{4,40}$")
_GIT_REF_RE = re.compile(r"^[a-zA-Z0-9_./@~^{}\-]+$")


def _validate_git_ref(ref: str) -> None:
    """Validate a branch, remote or SHA to prevent command injection.

    Raises
    ------
    ValueError
        If *ref* does not match the expected pattern.
    """
    if not ref:
        raise ValueError("Git ref cannot be empty")
    if ref.startswith("-"):
        raise ValueError(f"Invalid git ref: {ref!r}")
    if not (_GIT_SHA_RE.match(ref) or _GIT_REF_RE.match(ref)):
        raise ValueError(f"Invalid git ref: {ref!r}")


class GitClientError(Exception):
    """Raised when a git operation fails or the repository is invalid."""


def _run_git(
    cmd: list[str],
    repo_path: Path,
    *,
    check: bool = True,
) -> subprocess.CompletedProcess[str]:
    """Execute a git command and return the completed process.

    Raises
    ------
    GitClientError
        On non-zero exit (when *check* is set), timeout, or if the process
        cannot be started.
    """
    try:
        return subprocess.run(
            cmd,
            cwd=repo_path,
            capture_output=True,
            text=True,
            check=check,
            timeout=_SUBPROCESS_TIMEOUT,
        )
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or "").strip()
        raise GitClientError(f"git command failed: {' '.join(cmd)}\n" f"Exit code {exc.returncode}: {stderr}") from exc
    except subprocess.TimeoutExpired as exc:
        raise GitClientError(f"git command timed out after {_SUBPROCESS_TIMEOUT}s: {' '.join(cmd)}") from exc
    except FileNotFoundError as exc:
        raise GitClientError("git executable not found. Ensure git is installed and on PATH.") from exc


def validate_repo(repo_path: Path) -> None:
    """Verify that *repo_path* is the root of a git repository.

    Raises
    ------
    GitClientError
        If the ``.git`` entry does not exist or the path is not a directory.
    """
    if not repo_path.is_dir():
        raise GitClientError(f"Repository path does not exist: {repo_path}")
    if not (repo_path / ".git").exists():
        raise GitClientError(f"Not a git repository (no .git directory): {repo_path}")


def has_changes(repo_path: Path, paths: Sequence[str] = ()) -> bool:
    """Return True when the working tree differs from HEAD under *paths*."""
    cmd = ["git", "status", "--porcelain"]
    if paths:
        cmd += ["--", *paths]
    result = _run_git(cmd, repo_path)
    return bool(result.stdout.strip())


def add_paths(repo_path: Path, paths: Sequence[str]) -> None:
    """Stage *paths*, including deletions."""
    if not paths:
        return
    _run_git(["git", "add", "--all", "--", *paths], repo_path)


def commit(repo_path: Path, message: str) -> str:
    """Commit the index with *message* and return the new HEAD SHA."""
    if not message.strip():
        raise GitClientError("Commit message cannot be empty")
    _run_git(["git", "commit", "--message", message], repo_path)
    sha = get_current_sha(repo_path)
    logger.info("Committed %s", sha[:12])
    return sha


def branch_exists(repo_path: Path, branch: str) -> bool:
    """Return True when a local branch named *branch* exists."""
    _validate_git_ref(branch)
    result = _run_git(["git", "rev-parse", "--verify", "--quiet", f"refs/heads/{branch}"], repo_path, check=False)
    return result.returncode == 0


def checkout_branch(repo_path: Path, branch: str, *, create: bool = False) -> None:
    """Switch to *branch*.

    With *create*, a missing branch is created from HEAD and an existing one
    is checked out as is.
    """
    _validate_git_ref(branch)
    if create and not branch_exists(repo_path, branch):
        cmd = ["git", "checkout", "-b", branch]
    else:
        cmd = ["git", "checkout", branch]
    _run_git(cmd, repo_path)


def get_current_branch(repo_path: Path) -> str:
    """Return the checked-out branch name (``HEAD`` when detached)."""
    result = _run_git(["git", "rev-parse", "--abbrev-ref", "HEAD"], repo_path)
    return result.stdout.strip()


def push(repo_path: Path, remote: str, branch: str) -> None:
    """Push *branch* to *remote* and set it as upstream."""
    _validate_git_ref(remote)
    _validate_git_ref(branch)
    _run_git(["git", "push", "--set-upstream", remote, branch], repo_path)
    logger.info("Pushed %s to %s", branch, remote)


def get_current_sha(repo_path: Path) -> str:
    """Return the full SHA of the current HEAD commit.

    Raises
    ------
    GitClientError
        If the repository has no commits or git fails.
    """
    result = _run_git(
        ["git", "rev-parse", "HEAD"],
        repo_path,
    )
    return result.stdout.strip()
