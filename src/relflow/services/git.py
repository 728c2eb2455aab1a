"""Git operations wrapper.

Thin functions over the git CLI. Each raises GitError when git exits
non-zero, unless called with ``check=False``.
"""

import logging
import subprocess
from pathlib import Path

from ..constants import GIT_TIMEOUT

logger = logging.getLogger(__name__)

# Field and record separators for machine-readable git log output
_FS = "\x1f"
_RS = "\x1e"


class GitError(Exception):
    """Git command failed."""

    pass


def _run(args: list[str], cwd: Path | None, timeout: int | None) -> subprocess.CompletedProcess[str]:
    cmd = ["git", *args]
    logger.debug("Running: %s", " ".join(cmd))
    try:
        return subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout or GIT_TIMEOUT,
        )
    except subprocess.TimeoutExpired as e:
        raise GitError(f"git {args[0]} timed out after {timeout or GIT_TIMEOUT} seconds") from e
    except FileNotFoundError:
        raise GitError("git not found in PATH") from None


def run_git(
    *args: str,
    cwd: Path | None = None,
    check: bool = True,
    timeout: int | None = None,
) -> str:
    """Run a git command and return stripped stdout.

    Args:
        *args: Arguments passed to git
        cwd: Working directory
        check: Raise GitError on non-zero exit
        timeout: Timeout in seconds (default: GIT_TIMEOUT)

    Returns:
        Stripped stdout

    Raises:
        GitError: If the command fails and check is True
    """
    result = _run(list(args), cwd, timeout)
    if check and result.returncode != 0:
        raise GitError(f"git {' '.join(args)} failed: {result.stderr.strip()}")
    return result.stdout.strip()


def git_succeeds(*args: str, cwd: Path | None = None) -> bool:
    """Return True if the git command exits 0."""
    return _run(list(args), cwd, None).returncode == 0


def get_repo_root(cwd: Path | None = None) -> Path:
    """Get the repository root directory.

    Raises:
        GitError: If cwd is not inside a git repository
    """
    try:
        return Path(run_git("rev-parse", "--show-toplevel", cwd=cwd))
    except GitError:
        raise GitError("Not a git repository") from None


def get_current_branch(cwd: Path | None = None) -> str:
    """Get the current branch name."""
    return run_git("rev-parse", "--abbrev-ref", "HEAD", cwd=cwd)


def get_head_sha(cwd: Path | None = None) -> str:
    """Get the full SHA of HEAD."""
    return run_git("rev-parse", "HEAD", cwd=cwd)


def get_status_porcelain(cwd: Path | None = None) -> str:
    """Get working tree status in porcelain format."""
    return run_git("status", "--porcelain", cwd=cwd)


def is_clean(cwd: Path | None = None) -> bool:
    """Return True if there are no uncommitted or untracked changes."""
    return get_status_porcelain(cwd) == ""


def stage_files(paths: list[str], cwd: Path | None = None) -> None:
    """Stage specific paths."""
    if paths:
        run_git("add", "--", *paths, cwd=cwd)


def commit(message: str, cwd: Path | None = None) -> str:
    """Commit staged changes and return the new HEAD SHA."""
    run_git("commit", "-m", message, cwd=cwd)
    return get_head_sha(cwd)


def count_commits(rev: str = "HEAD", cwd: Path | None = None) -> int:
    """Count commits reachable from rev."""
    return int(run_git("rev-list", "--count", rev, cwd=cwd) or 0)


def get_commits(since: str | None = None, cwd: Path | None = None) -> list[tuple[str, str, str]]:
    """List commits since a ref (exclusive), newest first.

    Args:
        since: Starting ref such as the previous tag; None for full history
        cwd: Working directory

    Returns:
        List of (sha, subject, body) tuples
    """
    rev_range = f"{since}..HEAD" if since else "HEAD"
    output = run_git("log", f"--format=%H{_FS}%s{_FS}%b{_RS}", rev_range, cwd=cwd)
    commits = []
    for record in output.split(_RS):
        record = record.strip("\n")
        if not record:
            continue
        sha, subject, body = (record.split(_FS) + ["", ""])[:3]
        commits.append((sha.strip(), subject.strip(), body.strip()))
    return commits


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------


def list_tags(pattern: str | None = None, cwd: Path | None = None) -> list[str]:
    """List tags sorted by version, highest first."""
    args = ["tag", "--list", "--sort=-version:refname"]
    if pattern:
        args.append(pattern)
    output = run_git(*args, cwd=cwd)
    return [line for line in output.splitlines() if line.strip()]


def get_last_tag(prefix: str = "v", cwd: Path | None = None) -> str | None:
    """Most recent tag reachable from HEAD matching prefix, or None."""
    tag = run_git("describe", "--tags", "--abbrev=0", f"--match={prefix}*", cwd=cwd, check=False)
    return tag or None


def tag_exists(tag: str, cwd: Path | None = None) -> bool:
    """Return True if the tag exists locally."""
    return git_succeeds("rev-parse", "-q", "--verify", f"refs/tags/{tag}", cwd=cwd)


def get_tag_commit(tag: str, cwd: Path | None = None) -> str:
    """SHA of the commit a tag points to."""
    return run_git("rev-list", "-n", "1", tag, cwd=cwd)


def build_tag_args(
    tag: str,
    message: str,
    sign: bool = False,
    key: str | None = None,
    force: bool = False,
) -> list[str]:
    """Build the ``git tag`` argument list for an annotated or signed tag."""
    args = ["tag"]
    if sign:
        args.append("-s")
        if key:
            args.extend(["-u", key])
    else:
        args.append("-a")
    if force:
        args.append("-f")
    args.extend([tag, "-m", message])
    return args


def create_tag(
    tag: str,
    message: str,
    sign: bool = False,
    key: str | None = None,
    force: bool = False,
    cwd: Path | None = None,
) -> None:
    """Create an annotated tag, GPG-signed if sign is True."""
    run_git(*build_tag_args(tag, message, sign=sign, key=key, force=force), cwd=cwd)


def delete_tag(tag: str, cwd: Path | None = None) -> None:
    """Delete a local tag."""
    run_git("tag", "-d", tag, cwd=cwd)


def verify_tag(tag: str, cwd: Path | None = None) -> bool:
    """Return True if the tag carries a valid signature."""
    return git_succeeds("verify-tag", tag, cwd=cwd)


# ---------------------------------------------------------------------------
# Remotes
# ---------------------------------------------------------------------------


def remote_exists(remote: str = "origin", cwd: Path | None = None) -> bool:
    """Return True if the named remote is configured."""
    return remote in run_git("remote", cwd=cwd).splitlines()


def remote_tag_exists(tag: str, remote: str = "origin", cwd: Path | None = None) -> bool:
    """Return True if the tag exists on the remote."""
    output = run_git("ls-remote", "--tags", remote, f"refs/tags/{tag}", cwd=cwd, check=False)
    return bool(output)


def push_tag(tag: str, remote: str = "origin", cwd: Path | None = None) -> None:
    """Push a single tag."""
    run_git("push", remote, f"refs/tags/{tag}", cwd=cwd, timeout=GIT_TIMEOUT * 4)


def delete_remote_tag(tag: str, remote: str = "origin", cwd: Path | None = None) -> None:
    """Delete a tag on the remote."""
    run_git("push", remote, "--delete", f"refs/tags/{tag}", cwd=cwd, timeout=GIT_TIMEOUT * 4)


def push_head(remote: str = "origin", cwd: Path | None = None) -> None:
    """Push the current branch."""
    run_git("push", remote, "HEAD", cwd=cwd, timeout=GIT_TIMEOUT * 4)


# ---------------------------------------------------------------------------
# Branches, history rewriting and config
# ---------------------------------------------------------------------------


def create_branch(name: str, start: str = "HEAD", cwd: Path | None = None) -> None:
    """Create a branch at start without checking it out."""
    run_git("branch", name, start, cwd=cwd)


def reset_soft(rev: str, cwd: Path | None = None) -> None:
    """Move HEAD to rev keeping the index and working tree."""
    run_git("reset", "--soft", rev, cwd=cwd)


def get_config(key: str, cwd: Path | None = None) -> str | None:
    """Read a git config value, None if unset."""
    return run_git("config", "--get", key, cwd=cwd, check=False) or None


def set_config(key: str, value: str, global_scope: bool = False, cwd: Path | None = None) -> None:
    """Write a git config value locally or globally."""
    args = ["config"]
    if global_scope:
        args.append("--global")
    args.extend([key, value])
    run_git(*args, cwd=cwd)
