"""GitHub CLI (gh) wrapper for release management."""

import json
import logging
import subprocess
from pathlib import Path
from typing import Any

from ..constants import GH_TIMEOUT

logger = logging.getLogger(__name__)


class GitHubError(Exception):
    """gh command failed."""

    pass


def run_gh(
    *args: str,
    cwd: Path | None = None,
    input_text: str | None = None,
    exec_path: str = "gh",
    check: bool = True,
    timeout: int | None = None,
) -> str:
    """Run a gh command and return stripped stdout.

    Raises:
        GitHubError: If gh is missing, times out, or fails with check=True
    """
    cmd = [exec_path, *args]
    logger.debug("Running: %s", " ".join(cmd))
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            input=input_text,
            capture_output=True,
            text=True,
            timeout=timeout or GH_TIMEOUT,
        )
    except subprocess.TimeoutExpired as e:
        raise GitHubError(f"gh timed out after {timeout or GH_TIMEOUT} seconds") from e
    except FileNotFoundError:
        raise GitHubError(f"gh executable not found: {exec_path}") from None
    if check and result.returncode != 0:
        raise GitHubError(f"gh {' '.join(args[:2])} failed: {result.stderr.strip()}")
    return result.stdout.strip()


def _repo_args(repo: str | None) -> list[str]:
    return ["--repo", repo] if repo else []


def release_view(
    tag: str,
    repo: str | None = None,
    cwd: Path | None = None,
    exec_path: str = "gh",
) -> dict[str, Any] | None:
    """Fetch a release by tag, or None if it does not exist."""
    try:
        output = run_gh(
            "release",
            "view",
            tag,
            "--json",
            "tagName,name,body,isPrerelease,isDraft,url",
            *_repo_args(repo),
            cwd=cwd,
            exec_path=exec_path,
        )
    except GitHubError as e:
        if "not found" in str(e).lower():
            return None
        raise
    return json.loads(output) if output else None


def release_create(
    tag: str,
    title: str,
    notes: str,
    prerelease: bool = False,
    repo: str | None = None,
    cwd: Path | None = None,
    exec_path: str = "gh",
) -> str:
    """Create a release for an existing tag and return its URL."""
    args = ["release", "create", tag, "--title", title, "--notes-file", "-", "--verify-tag"]
    if prerelease:
        args.append("--prerelease")
    return run_gh(*args, *_repo_args(repo), cwd=cwd, input_text=notes, exec_path=exec_path)


def release_edit(
    tag: str,
    prerelease: bool | None = None,
    notes: str | None = None,
    repo: str | None = None,
    cwd: Path | None = None,
    exec_path: str = "gh",
) -> None:
    """Edit release flags or notes."""
    args = ["release", "edit", tag]
    if prerelease is True:
        args.append("--prerelease")
    elif prerelease is False:
        args.append("--prerelease=false")
    if notes is not None:
        args.extend(["--notes-file", "-"])
    run_gh(*args, *_repo_args(repo), cwd=cwd, input_text=notes, exec_path=exec_path)
