"""Version bump workflow: plan, validate, apply."""

import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from ..config import RelflowConfig
from ..models import BumpType, CommitAnalysis
from ..services import git
from ..services.checks import run_checks
from .backups import get_backups_dir
from .changelog import extract_section, has_section, update_changelog_file
from .commits import collect_commits
from .manifest import ManifestError, read_manifest, set_version
from .semver import Version, VersionError, tag_name
from .tagging import TagOptions, create_release_tag

logger = logging.getLogger(__name__)

RELEASE_COMMIT_MESSAGE = "chore(release): bump version to {version}"


class VersionBumpError(Exception):
    """Version bump cannot proceed."""

    pass


@dataclass
class BumpOptions:
    """Options controlling a version bump."""

    bump_type: BumpType | None = None
    force_version: str | None = None
    preid: str | None = None
    skip_validation: bool = False
    changelog: bool = True
    commit: bool = True
    tag: bool = True
    push: bool = False
    dry_run: bool = False


@dataclass
class BumpPlan:
    """Computed bump before anything is written."""

    current: Version
    new: Version
    bump_type: BumpType | None
    auto_detected: bool
    since: str | None
    analysis: CommitAnalysis


@dataclass
class BumpResult:
    """What apply_bump changed."""

    plan: BumpPlan
    changed_files: list[str] = field(default_factory=list)
    changelog_section: str | None = None
    commit_sha: str | None = None
    tag: str | None = None


def current_version(repo_root: Path, config: RelflowConfig) -> Version:
    """Parse the manifest version.

    Raises:
        VersionBumpError: If package.json is missing or its version is invalid
    """
    try:
        manifest = read_manifest(repo_root / config.project.manifest)
    except ManifestError as e:
        raise VersionBumpError(str(e)) from e
    try:
        return Version.parse(manifest.version or "")
    except VersionError as e:
        raise VersionBumpError(f"{config.project.manifest}: {e}") from e


def plan_bump(repo_root: Path, config: RelflowConfig, options: BumpOptions) -> BumpPlan:
    """Determine the next version.

    Priority: forced version, explicit bump type, commit analysis.
    """
    current = current_version(repo_root, config)
    since, analysis = collect_commits(repo_root, tag_prefix=config.project.tag_prefix)

    if options.force_version:
        try:
            new = Version.parse(options.force_version)
        except VersionError as e:
            raise VersionBumpError(str(e)) from None
        bump_type = None
        auto = False
    else:
        bump_type = options.bump_type or analysis.recommended_bump
        auto = options.bump_type is None
        new = current.bump(bump_type, options.preid)

    if new == current:
        raise VersionBumpError(f"New version {new} equals the current version")
    if new < current:
        raise VersionBumpError(f"New version {new} is lower than current version {current}")

    tag = tag_name(new, config.project.tag_prefix)
    if git.tag_exists(tag, cwd=repo_root):
        raise VersionBumpError(f"Tag {tag} already exists")

    return BumpPlan(
        current=current,
        new=new,
        bump_type=bump_type,
        auto_detected=auto,
        since=since,
        analysis=analysis,
    )


def validate_before_bump(repo_root: Path, config: RelflowConfig) -> list[str]:
    """Problems that block a bump: dirty tree or failing checks."""
    problems = []
    if not git.is_clean(repo_root):
        problems.append("Working tree has uncommitted changes")
    summary = run_checks(config.checks, repo_root, fail_fast=True)
    if not summary.all_passed:
        problems.append(f"Check '{summary.first_failure}' failed")
    return problems


def apply_bump(
    repo_root: Path,
    config: RelflowConfig,
    plan: BumpPlan,
    options: BumpOptions,
    today: date | None = None,
) -> BumpResult:
    """Write the new version, changelog, commit and tag.

    A section for the new version that is already in the changelog is
    kept as written; it is looked up before any file changes.
    """
    result = BumpResult(plan=plan)
    version = str(plan.new)
    changelog_path = repo_root / config.project.changelog
    existing = changelog_path.read_text() if changelog_path.exists() else ""
    keep_section = options.changelog and has_section(existing, version)

    result.changed_files = set_version(repo_root, config.project, version)
    logger.info("Updated version to %s in %s", version, ", ".join(result.changed_files))

    if keep_section:
        result.changelog_section = extract_section(existing, version) or ""
        logger.info("Keeping existing %s section in %s", version, changelog_path.name)
    elif options.changelog:
        result.changelog_section = update_changelog_file(
            changelog_path,
            version,
            (today or date.today()).isoformat(),
            plan.analysis.commits,
            repository_url=config.project.repository_url,
            previous_tag=plan.since,
            tag_prefix=config.project.tag_prefix,
            backup=not options.commit,
            backup_dir=get_backups_dir(repo_root),
        )
        result.changed_files.append(config.project.changelog)

    if not options.commit:
        return result

    git.stage_files(result.changed_files, cwd=repo_root)
    result.commit_sha = git.commit(RELEASE_COMMIT_MESSAGE.format(version=version), cwd=repo_root)

    if options.tag:
        tag = create_release_tag(
            repo_root, config, TagOptions(version=version, push=options.push, allow_dirty=True)
        )
        result.tag = tag.tag

    if options.push:
        git.push_head(config.git.remote, cwd=repo_root)

    return result
