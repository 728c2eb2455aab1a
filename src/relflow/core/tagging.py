"""Release tag creation with optional GPG signing."""

import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from ..config import RelflowConfig
from ..services import git
from ..services.gpg import GpgError, list_secret_keys
from .changelog import extract_section
from .manifest import read_manifest
from .semver import Version, VersionError, tag_name

logger = logging.getLogger(__name__)

EXCERPT_LINES = 10


class TagError(Exception):
    """Release tag could not be created."""

    pass


@dataclass
class TagOptions:
    """Options for create_release_tag."""

    version: str | None = None
    message: str | None = None
    gpg_key: str | None = None
    skip_gpg: bool = False
    force: bool = False
    push: bool = False
    dry_run: bool = False
    allow_dirty: bool = False


@dataclass
class TagResult:
    """Outcome of create_release_tag."""

    tag: str
    version: str
    signed: bool
    message: str
    command: list[str]
    verified: bool = False
    pushed: bool = False
    replaced: bool = False
    dry_run: bool = False
    warnings: list[str] = field(default_factory=list)


def changelog_excerpt(changelog_path: Path, version: str, limit: int = EXCERPT_LINES) -> str:
    """First non-empty lines of the version's changelog section."""
    if not changelog_path.exists():
        return "See CHANGELOG.md for details."
    section = extract_section(changelog_path.read_text(), version)
    if not section:
        return "See CHANGELOG.md for details."
    lines = [line for line in section.splitlines() if line.strip()]
    return "\n".join(lines[:limit])


def build_tag_message(
    package_name: str,
    version: str,
    branch: str,
    commit_count: int,
    excerpt: str,
    tag: str,
    signed: bool,
    release_date: str | None = None,
) -> str:
    """Compose the annotated tag message."""
    lines = [
        f"{package_name} Release {version}",
        "",
        "Release Information:",
        f"- Version: {version}",
        f"- Release Date: {release_date or date.today().isoformat()}",
        f"- Branch: {branch}",
        f"- Total Commits: {commit_count}",
        "",
        "Recent Changes:",
        excerpt,
        "",
        "Verification:",
        f"- Show tag: git show {tag}",
    ]
    if signed:
        lines.append(f"- Verify signature: git verify-tag {tag}")
    return "\n".join(lines) + "\n"


def _resolve_signing(config: RelflowConfig, options: TagOptions) -> tuple[bool, str | None, list[str]]:
    """Decide whether to sign and with which key.

    An explicitly requested key that cannot be found is an error; a
    default signing preference without usable keys only downgrades to
    an annotated tag with a warning.
    """
    if options.skip_gpg:
        return False, None, []
    key = options.gpg_key or config.git.gpg_key
    if not (config.git.sign_tags or key):
        return False, None, []

    try:
        keys = list_secret_keys()
    except GpgError as e:
        keys = []
        logger.debug("gpg unavailable: %s", e)

    if key and not any(k.matches(key) for k in keys):
        if options.gpg_key:
            raise TagError(f"GPG key {key} not found in secret keyring")
        return False, None, [f"Configured GPG key {key} not found; creating unsigned tag"]
    if not keys:
        if options.gpg_key:
            raise TagError("No GPG secret keys available for signing")
        return False, None, ["No GPG secret keys available; creating unsigned annotated tag"]
    return True, key, []


def create_release_tag(repo_root: Path, config: RelflowConfig, options: TagOptions) -> TagResult:
    """Create (and optionally push) the release tag for a version.

    Raises:
        TagError: On invalid version, dirty tree, existing tag without force,
            missing explicit GPG key, or git failure
    """
    version_text = options.version or read_manifest(repo_root / config.project.manifest).version
    try:
        version = Version.parse(version_text or "")
    except VersionError as e:
        raise TagError(str(e)) from None

    tag = tag_name(version, config.project.tag_prefix)
    remote = config.git.remote

    if not options.allow_dirty and not git.is_clean(repo_root):
        raise TagError("Working tree has uncommitted changes; commit or stash them first")

    local_exists = git.tag_exists(tag, cwd=repo_root)
    has_remote = git.remote_exists(remote, cwd=repo_root)
    remote_exists = has_remote and git.remote_tag_exists(tag, remote, cwd=repo_root)
    if (local_exists or remote_exists) and not options.force:
        raise TagError(f"Tag {tag} already exists (use --force to replace it)")

    sign, key, warnings = _resolve_signing(config, options)
    for warning in warnings:
        logger.warning(warning)

    if options.message:
        message = options.message
    else:
        package_name = read_manifest(repo_root / config.project.manifest).name or "package"
        message = build_tag_message(
            package_name=package_name,
            version=str(version),
            branch=git.get_current_branch(repo_root),
            commit_count=git.count_commits(cwd=repo_root),
            excerpt=changelog_excerpt(repo_root / config.project.changelog, str(version)),
            tag=tag,
            signed=sign,
        )

    command = ["git", *git.build_tag_args(tag, message, sign=sign, key=key)]
    result = TagResult(
        tag=tag,
        version=str(version),
        signed=sign,
        message=message,
        command=command,
        dry_run=options.dry_run,
        warnings=warnings,
    )
    if options.dry_run:
        return result

    try:
        if local_exists:
            git.delete_tag(tag, cwd=repo_root)
            result.replaced = True
        if remote_exists:
            git.delete_remote_tag(tag, remote, cwd=repo_root)
            result.replaced = True
        git.create_tag(tag, message, sign=sign, key=key, cwd=repo_root)
    except git.GitError as e:
        raise TagError(f"Failed to create tag {tag}: {e}") from e

    if not git.tag_exists(tag, cwd=repo_root):
        raise TagError(f"Tag {tag} was not created")
    if sign:
        result.verified = git.verify_tag(tag, cwd=repo_root)
        if not result.verified:
            result.warnings.append(f"Signature on {tag} could not be verified")
            logger.warning("Signature on %s could not be verified", tag)

    if options.push:
        if not has_remote:
            raise TagError(f"Remote '{remote}' is not configured; cannot push {tag}")
        try:
            git.push_tag(tag, remote, cwd=repo_root)
        except git.GitError as e:
            raise TagError(f"Failed to push {tag}: {e}") from e
        result.pushed = True

    logger.info("Created %s tag %s", "signed" if sign else "annotated", tag)
    return result
