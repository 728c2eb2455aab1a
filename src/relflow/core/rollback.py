"""Release rollback: plan, backup, confirm, execute, verify, report.

Scopes are executed independently. A failing scope is logged and recorded,
and the remaining scopes still run, so a partially broken release can be
cleaned up as far as possible in one pass.
"""

import logging
import re
import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from ..config import RelflowConfig
from ..models import (
    BackupMetadata,
    CheckStatus,
    Report,
    RollbackPlan,
    RollbackScope,
    ScopeResult,
)
from ..services import git, github, npm
from ..services.github import GitHubError
from ..services.npm import NpmError
from .backups import create_backup, get_backups_dir
from .changelog import mark_rolled_back
from .manifest import ManifestError, read_manifest, read_version_file, set_version
from .reports import get_reports_dir, timestamp_slug, write_report
from .semver import Version, VersionError, highest_below, parse_tag, tag_name

logger = logging.getLogger(__name__)

SCOPE_PRESETS: dict[str, list[RollbackScope]] = {
    "package": [RollbackScope.PACKAGE],
    "git": [RollbackScope.GIT],
    "npm": [RollbackScope.NPM],
    "github": [RollbackScope.GITHUB],
    "docs": [RollbackScope.DOCS],
    "partial": [RollbackScope.PACKAGE, RollbackScope.GIT, RollbackScope.NPM],
    "full": [
        RollbackScope.PACKAGE,
        RollbackScope.GIT,
        RollbackScope.NPM,
        RollbackScope.GITHUB,
        RollbackScope.DOCS,
    ],
}

# Errors that mark one scope as failed without aborting the others
SCOPE_ERRORS = (git.GitError, NpmError, GitHubError, ManifestError, OSError, ValueError)


class RollbackError(Exception):
    """Rollback cannot be planned."""

    pass


@dataclass
class RollbackOptions:
    """Options controlling a rollback run."""

    version: str | None = None
    target: str | None = None
    scope: str = "partial"
    reason: str | None = None
    dry_run: bool = False
    assume_yes: bool = False
    backup: bool = True
    reset_git: bool = False


@dataclass
class VerificationCheck:
    """One post-rollback verification result."""

    name: str
    passed: bool
    message: str


@dataclass
class RollbackOutcome:
    """Everything a rollback run produced."""

    plan: RollbackPlan
    cancelled: bool = False
    dry_run: bool = False
    backup_dir: Path | None = None
    backup: BackupMetadata | None = None
    results: list[ScopeResult] = field(default_factory=list)
    verification: list[VerificationCheck] = field(default_factory=list)
    report: Report | None = None
    report_dir: Path | None = None

    @property
    def success(self) -> bool:
        return all(r.success for r in self.results) and all(v.passed for v in self.verification)


def expand_scope(name: str) -> list[RollbackScope]:
    """Resolve a scope or preset name into scopes.

    Raises:
        RollbackError: For unknown names
    """
    try:
        return list(SCOPE_PRESETS[name])
    except KeyError:
        choices = ", ".join(SCOPE_PRESETS)
        raise RollbackError(f"Unknown rollback scope '{name}' (choose from {choices})") from None


def determine_versions(
    repo_root: Path,
    config: RelflowConfig,
    version: str | None = None,
    target: str | None = None,
) -> tuple[Version, Version]:
    """Resolve the problematic version and the version to restore.

    Without an explicit target, the highest tagged version below the
    problematic one is used, then the highest published npm version.

    Raises:
        RollbackError: If either version is invalid or no target can be found
    """
    manifest = read_manifest(repo_root / config.project.manifest)
    try:
        current = Version.parse(version or manifest.version or "")
    except VersionError as e:
        raise RollbackError(f"Invalid rollback version: {e}") from None

    if target:
        try:
            previous = Version.parse(target)
        except VersionError as e:
            raise RollbackError(f"Invalid target version: {e}") from None
        if previous == current:
            raise RollbackError("Target version must differ from the version being rolled back")
        return current, previous

    tagged = [parse_tag(t, config.project.tag_prefix) for t in git.list_tags(cwd=repo_root)]
    previous = highest_below([v for v in tagged if v is not None], current)
    if previous is None and manifest.name:
        try:
            published = npm.published_versions(
                manifest.name, registry=config.npm.registry, exec_path=config.npm.exec
            )
        except NpmError as e:
            logger.warning("Could not list published versions: %s", e)
            published = []
        previous = highest_below(published, current)
    if previous is None:
        raise RollbackError(f"Could not determine a version before {current}; pass --target")
    return current, previous


def moves_latest(current: Version, previous: Version) -> bool:
    """latest is only re-pointed from a stable release to a stable release."""
    return not current.is_prerelease and not previous.is_prerelease


def build_plan(
    config: RelflowConfig,
    current: Version,
    previous: Version,
    scopes: list[RollbackScope],
    options: RollbackOptions,
    package_name: str | None = None,
) -> RollbackPlan:
    """Describe every action the rollback will take."""
    plan = RollbackPlan(
        from_version=str(current),
        to_version=str(previous),
        scopes=scopes,
        reason=options.reason,
    )
    tag = tag_name(current, config.project.tag_prefix)
    name = package_name or "package"

    if RollbackScope.PACKAGE in scopes:
        plan.add(RollbackScope.PACKAGE, f"Set version {previous} in {config.project.manifest}")
        for vf in config.project.version_files:
            plan.add(RollbackScope.PACKAGE, f"Set version {previous} in {vf.path}")
        for build_dir in config.rollback.build_dirs:
            plan.add(RollbackScope.PACKAGE, f"Remove build output {build_dir}/")
        plan.add(RollbackScope.PACKAGE, f"Mark {current} as rolled back in {config.project.changelog}")
    if RollbackScope.GIT in scopes:
        if options.reset_git:
            plan.add(RollbackScope.GIT, f"Soft-reset HEAD to {tag_name(previous, config.project.tag_prefix)}")
        plan.add(RollbackScope.GIT, f"Delete local tag {tag}")
        plan.add(RollbackScope.GIT, f"Delete tag {tag} on {config.git.remote}")
    if RollbackScope.NPM in scopes:
        plan.add(RollbackScope.NPM, f"Deprecate {name}@{current}")
        if moves_latest(current, previous):
            plan.add(RollbackScope.NPM, f"Point dist-tag latest at {name}@{previous}")
    if RollbackScope.GITHUB in scopes:
        plan.add(RollbackScope.GITHUB, f"Mark GitHub release {tag} as prerelease with rollback notice")
    if RollbackScope.DOCS in scopes:
        plan.add(
            RollbackScope.DOCS,
            f"Replace {current} with {previous} in {config.docs.dir}/ and {config.docs.mkdocs_file}",
        )
    return plan


def _version_pattern(version: str) -> re.Pattern[str]:
    return re.compile(rf"(?<![\d.]){re.escape(version)}(?!\d|\.\d|-[0-9A-Za-z])")


def rollback_notice(from_version: str, to_version: str, reason: str | None, today: str) -> str:
    """Markdown notice prepended to release notes."""
    notice = (
        f"> ⚠️ **This release was rolled back on {today}.** "
        f"Please use version {to_version} instead of {from_version}."
    )
    if reason:
        notice += f"\n>\n> Reason: {reason}"
    return notice


class RollbackExecutor:
    """Executes a rollback plan scope by scope."""

    def __init__(
        self,
        repo_root: Path,
        config: RelflowConfig,
        plan: RollbackPlan,
        options: RollbackOptions,
        report_dir: Path,
        today: date | None = None,
    ) -> None:
        self.repo_root = repo_root
        self.config = config
        self.plan = plan
        self.options = options
        self.report_dir = report_dir
        self.today = (today or date.today()).isoformat()
        self.tag = tag_name(plan.from_version, config.project.tag_prefix)
        self.package_name = read_manifest(repo_root / config.project.manifest).name

    def run(self) -> list[ScopeResult]:
        """Execute every planned scope, continuing past failures."""
        handlers: dict[RollbackScope, Callable[[list[str]], str]] = {
            RollbackScope.PACKAGE: self._rollback_package,
            RollbackScope.GIT: self._rollback_git,
            RollbackScope.NPM: self._rollback_npm,
            RollbackScope.GITHUB: self._rollback_github,
            RollbackScope.DOCS: self._rollback_docs,
        }
        results = []
        for scope in self.plan.scopes:
            steps: list[str] = []
            try:
                message = handlers[scope](steps)
                result = ScopeResult(scope=scope, success=True, message=message, steps=steps)
            except SCOPE_ERRORS as e:
                logger.error("%s rollback failed: %s", scope.value, e)
                result = ScopeResult(scope=scope, success=False, message=str(e), steps=steps)
            result.report_path = str(self._write_scope_report(result))
            results.append(result)
        return results

    def _rollback_package(self, steps: list[str]) -> str:
        target = self.plan.to_version
        changed = set_version(self.repo_root, self.config.project, target)
        steps.append(f"Set version {target} in {', '.join(changed)}")

        for build_dir in self.config.rollback.build_dirs:
            path = (self.repo_root / build_dir).resolve()
            if path.is_dir() and path.is_relative_to(self.repo_root.resolve()):
                shutil.rmtree(path)
                steps.append(f"Removed {build_dir}/")

        changelog = self.repo_root / self.config.project.changelog
        if changelog.exists():
            content, changed_log = mark_rolled_back(
                changelog.read_text(), self.plan.from_version, target, self.today
            )
            if changed_log:
                changelog.write_text(content)
                steps.append(f"Marked {self.plan.from_version} as rolled back in {changelog.name}")
        return f"Package files restored to {target}"

    def _rollback_git(self, steps: list[str]) -> str:
        cwd = self.repo_root
        if self.options.reset_git:
            target_tag = tag_name(self.plan.to_version, self.config.project.tag_prefix)
            commit = git.get_tag_commit(target_tag, cwd=cwd)
            git.reset_soft(commit, cwd=cwd)
            steps.append(f"Soft-reset HEAD to {target_tag} ({commit[:8]})")

        if git.tag_exists(self.tag, cwd=cwd):
            git.delete_tag(self.tag, cwd=cwd)
            steps.append(f"Deleted local tag {self.tag}")
        remote = self.config.git.remote
        if git.remote_exists(remote, cwd=cwd) and git.remote_tag_exists(self.tag, remote, cwd=cwd):
            git.delete_remote_tag(self.tag, remote, cwd=cwd)
            steps.append(f"Deleted tag {self.tag} on {remote}")
        if not steps:
            return f"Tag {self.tag} not present, nothing to remove"
        return f"Tag {self.tag} removed"

    def _rollback_npm(self, steps: list[str]) -> str:
        if not self.package_name:
            raise ValueError("package.json has no name; cannot roll back on npm")
        registry = self.config.npm.registry
        exec_path = self.config.npm.exec
        spec = f"{self.package_name}@{self.plan.from_version}"
        if not npm.version_exists(
            self.package_name, self.plan.from_version, registry=registry, exec_path=exec_path
        ):
            return f"{spec} is not published, nothing to deprecate"

        message = f"Rolled back: use {self.plan.to_version} instead"
        if self.plan.reason:
            message += f" ({self.plan.reason})"
        npm.deprecate(spec, message, registry=registry, exec_path=exec_path)
        steps.append(f"Deprecated {spec}")

        if not moves_latest(Version.parse(self.plan.from_version), Version.parse(self.plan.to_version)):
            return f"{spec} deprecated"
        target_spec = f"{self.package_name}@{self.plan.to_version}"
        if npm.version_exists(
            self.package_name, self.plan.to_version, registry=registry, exec_path=exec_path
        ):
            npm.dist_tag_add(target_spec, "latest", registry=registry, exec_path=exec_path)
            steps.append(f"Pointed latest at {target_spec}")
        else:
            steps.append(f"{target_spec} is not published; latest left unchanged")
        return f"{spec} deprecated"

    def _rollback_github(self, steps: list[str]) -> str:
        repo = self.config.project.repository
        exec_path = self.config.github.exec
        release = github.release_view(self.tag, repo=repo, cwd=self.repo_root, exec_path=exec_path)
        if release is None:
            return f"No GitHub release for {self.tag}"
        notice = rollback_notice(
            self.plan.from_version, self.plan.to_version, self.plan.reason, self.today
        )
        body = release.get("body") or ""
        notes = body if body.startswith(notice) else f"{notice}\n\n{body}".rstrip() + "\n"
        github.release_edit(
            self.tag,
            prerelease=True,
            notes=notes,
            repo=repo,
            cwd=self.repo_root,
            exec_path=exec_path,
        )
        steps.append(f"Marked release {self.tag} as prerelease")
        steps.append("Added rollback notice to release notes")
        return f"GitHub release {self.tag} flagged"

    def _rollback_docs(self, steps: list[str]) -> str:
        pattern = _version_pattern(self.plan.from_version)
        docs_dir = self.repo_root / self.config.docs.dir
        candidates = sorted(docs_dir.rglob("*.md")) if docs_dir.is_dir() else []
        mkdocs = self.repo_root / self.config.docs.mkdocs_file
        if mkdocs.is_file():
            candidates.append(mkdocs)

        for path in candidates:
            text = path.read_text()
            updated, count = pattern.subn(self.plan.to_version, text)
            if count:
                path.write_text(updated)
                steps.append(f"{path.relative_to(self.repo_root)}: {count} replacement(s)")
        if not steps:
            return "No documentation references found"
        return f"Updated {len(steps)} documentation file(s)"

    def _write_scope_report(self, result: ScopeResult) -> Path:
        self.report_dir.mkdir(parents=True, exist_ok=True)
        path = self.report_dir / f"{result.scope.value}-rollback-report.md"
        lines = [
            f"# {result.scope.value.capitalize()} Rollback Report",
            "",
            f"- **From:** {self.plan.from_version}",
            f"- **To:** {self.plan.to_version}",
            f"- **Date:** {self.today}",
            f"- **Status:** {'SUCCESS' if result.success else 'FAILED'}",
            "",
            "## Planned actions",
            "",
        ]
        lines += [f"- {a.description}" for a in self.plan.actions_for(result.scope)]
        lines += ["", "## Completed steps", ""]
        lines += [f"- {s}" for s in result.steps] or ["- None"]
        lines += ["", "## Result", "", result.message, ""]
        path.write_text("\n".join(lines))
        return path

    def verify(self) -> list[VerificationCheck]:
        """Check the repository now reflects the target version."""
        checks = []
        target = self.plan.to_version
        if RollbackScope.PACKAGE in self.plan.scopes:
            found = read_manifest(self.repo_root / self.config.project.manifest).version
            checks.append(
                VerificationCheck(
                    self.config.project.manifest,
                    found == target,
                    f"version is {found}, expected {target}",
                )
            )
            for vf in self.config.project.version_files:
                if (self.repo_root / vf.path).exists():
                    found = read_version_file(self.repo_root, vf)
                    checks.append(
                        VerificationCheck(vf.path, found == target, f"version is {found}, expected {target}")
                    )
        if RollbackScope.GIT in self.plan.scopes:
            present = git.tag_exists(self.tag, cwd=self.repo_root)
            checks.append(
                VerificationCheck(
                    f"tag {self.tag}",
                    not present,
                    "still exists" if present else "removed",
                )
            )
        return checks


def recovery_instructions(outcome: RollbackOutcome, package_name: str | None, tag_prefix: str) -> str:
    """Markdown describing how to undo the rollback."""
    plan = outcome.plan
    tag = tag_name(plan.from_version, tag_prefix)
    lines = ["## Recovery", ""]
    if outcome.backup:
        lines.append(f"- Restore release files: `relflow backups restore {outcome.backup.name}`")
        if outcome.backup.backup_branch:
            lines.append(f"- Pre-rollback commit is kept on branch `{outcome.backup.backup_branch}`")
        if outcome.backup.git_commit:
            lines.append(f"- Recreate the tag: `git tag -s {tag} {outcome.backup.git_commit[:12]}`")
    if RollbackScope.NPM in plan.scopes and package_name:
        lines.append(f'- Undo deprecation: `npm deprecate {package_name}@{plan.from_version} ""`')
        if moves_latest(Version.parse(plan.from_version), Version.parse(plan.to_version)):
            lines.append(f"- Restore dist-tag: `npm dist-tag add {package_name}@{plan.from_version} latest`")
    return "\n".join(lines)


def run_rollback(
    repo_root: Path,
    config: RelflowConfig,
    options: RollbackOptions,
    confirm: Callable[[str], bool],
    reports_dir: Path | None = None,
    backups_dir: Path | None = None,
    today: date | None = None,
    on_plan: Callable[[RollbackPlan], None] | None = None,
) -> RollbackOutcome:
    """Run the complete rollback workflow.

    Args:
        repo_root: Repository root
        config: Loaded configuration
        options: Rollback options
        confirm: Asks the user a yes/no question; skipped for dry runs and assume_yes
        reports_dir: Override for the report directory
        backups_dir: Override for the backup directory
        today: Date override for notices
        on_plan: Called with the plan before anything is confirmed or changed

    Returns:
        RollbackOutcome; ``cancelled`` is set when the user declined

    Raises:
        RollbackError: If versions or scope cannot be resolved
    """
    scopes = expand_scope(options.scope)
    current, previous = determine_versions(repo_root, config, options.version, options.target)
    package_name = read_manifest(repo_root / config.project.manifest).name
    plan = build_plan(config, current, previous, scopes, options, package_name)
    outcome = RollbackOutcome(plan=plan, dry_run=options.dry_run)
    if on_plan is not None:
        on_plan(plan)

    if options.dry_run:
        return outcome

    if not options.assume_yes:
        if not confirm(f"Roll back {current} to {previous} ({', '.join(s.value for s in scopes)})?"):
            outcome.cancelled = True
            return outcome
        if RollbackScope.NPM in scopes and not confirm(
            f"This deprecates {package_name}@{current} on the npm registry. Continue?"
        ):
            outcome.cancelled = True
            return outcome

    if options.backup:
        outcome.backup_dir, outcome.backup = create_backup(
            repo_root,
            config,
            str(current),
            str(previous),
            backups_dir=backups_dir or get_backups_dir(repo_root),
        )

    reports_dir = reports_dir or get_reports_dir(repo_root)
    outcome.report_dir = reports_dir / f"rollback-{current}-{timestamp_slug()}"
    executor = RollbackExecutor(repo_root, config, plan, options, outcome.report_dir, today)
    outcome.results = executor.run()
    outcome.verification = executor.verify()

    report = Report(title=f"Rollback {current} → {previous}", version=str(current))
    for result in outcome.results:
        report.record(
            f"{result.scope.value} rollback",
            CheckStatus.PASS if result.success else CheckStatus.FAIL,
            result.message,
            details="\n".join(result.steps),
        )
    for check in outcome.verification:
        report.record(
            f"verify {check.name}",
            CheckStatus.PASS if check.passed else CheckStatus.FAIL,
            check.message,
        )
    outcome.report = report.finish()
    write_report(
        report,
        outcome.report_dir,
        "rollback-summary",
        appendix=recovery_instructions(outcome, package_name, config.project.tag_prefix),
    )
    return outcome
