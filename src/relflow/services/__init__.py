"""External tool and service integrations for relflow.

This package provides thin wrappers over external tools and services:
- git: Git operations (tags, commits, remotes, config)
- npm: npm CLI (view, pack, publish, deprecate, dist-tag, audit, install)
- gpg: GnuPG key listing, export and generation
- github: gh CLI release management
- http: npm registry, GitHub REST and webhook clients (httpx)
- checks: Configured quality check commands

Each wrapper raises its own exception type so commands can map
failures to exit codes.
"""

from .checks import ChecksError, run_checks, run_single_check
from .git import (
    GitError,
    get_current_branch,
    get_head_sha,
    get_repo_root,
    get_status_porcelain,
    is_clean,
    run_git,
)
from .github import GitHubError, run_gh
from .gpg import GpgError, GpgKey, run_gpg
from .http import (
    GitHubApiClient,
    NpmRegistryClient,
    RegistryError,
    WebhookError,
    post_webhook,
)
from .npm import NpmError, run_npm

__all__ = [
    "ChecksError",
    "GitError",
    "GitHubApiClient",
    "GitHubError",
    "GpgError",
    "GpgKey",
    "NpmError",
    "NpmRegistryClient",
    "RegistryError",
    "WebhookError",
    "get_current_branch",
    "get_head_sha",
    "get_repo_root",
    "get_status_porcelain",
    "is_clean",
    "post_webhook",
    "run_checks",
    "run_gh",
    "run_git",
    "run_gpg",
    "run_npm",
    "run_single_check",
]
