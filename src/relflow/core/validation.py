"""Pre-release validation.

Runs every check and records the outcome instead of stopping at the first
problem, so one report lists everything that blocks a release.
"""

import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path

from ..config import RelflowConfig
from ..models import CheckStatus, Report
from ..services import git, npm
from ..services.checks import ChecksError, run_checks, run_single_check
from ..services.npm import NpmError
from .changelog import extract_section
from .changelog_validator import validate_changelog
from .manifest import ManifestError, find_inconsistencies, read_manifest, version_inventory
from .publishing import find_sensitive_files
from .semver import Version, VersionError, tag_name

logger = logging.getLogger(__name__)

COVERAGE_RE = re.compile(r"All files\s*\|\s*(\d+(?:\.\d+)?)")


@dataclass
class ValidationOptions:
    """Options for run_validation."""

    version: str | None = None
    environment: str | None = None
    skip_checks: bool = False
    skip_audit: bool = False
    skip_docs: bool = False


def parse_coverage(output: str) -> float | None:
    """Line coverage from a Jest/Istanbul text summary, if present."""
    match = COVERAGE_RE.search(output)
    return float(match.group(1)) if match else None


class PreReleaseValidator:
    """Collects pre-release checks into a Report."""

    def __init__(self, repo_root: Path, config: RelflowConfig, options: ValidationOptions) -> None:
        self.repo_root = repo_root
        self.config = config
        self.options = options
        self.report = Report(
            title="Pre-release validation",
            environment=options.environment or config.validation.environment,
        )

    def _timed(self, phase: str, func) -> None:
        start = time.monotonic()
        status, message, details = func()
        self.report.record(phase, status, message, details, time.monotonic() - start)

    def run(self) -> Report:
        self._timed("git", self._check_git)
        self._timed("branch", self._check_branch)
        self._timed("version", self._check_version)
        self._timed("version consistency", self._check_consistency)
        self._timed("tag", self._check_tag)
        self._timed("changelog", self._check_changelog)
        if self.options.skip_checks:
            self.report.record("checks", CheckStatus.SKIP, "Quality checks skipped")
        else:
            self._run_quality_checks()
        if self.options.skip_audit:
            self.report.record("security audit", CheckStatus.SKIP, "Audit skipped")
        else:
            self._timed("security audit", self._check_audit)
        self._timed("required files", self._check_required_files)
        self._timed("sensitive files", self._check_sensitive_files)
        if self.options.skip_docs:
            self.report.record("documentation", CheckStatus.SKIP, "Documentation checks skipped")
        else:
            self._timed("documentation", self._check_docs)
        return self.report.finish()

    def _check_git(self) -> tuple[CheckStatus, str, str]:
        status = git.get_status_porcelain(self.repo_root)
        if status:
            return CheckStatus.FAIL, "Working tree has uncommitted changes", status
        return CheckStatus.PASS, "Working tree clean", ""

    def _check_branch(self) -> tuple[CheckStatus, str, str]:
        branch = git.get_current_branch(self.repo_root)
        expected = self.config.project.release_branch
        if branch != expected:
            return CheckStatus.WARNING, f"On branch {branch}, releases are cut from {expected}", ""
        return CheckStatus.PASS, f"On release branch {branch}", ""

    def _release_version(self) -> str | None:
        if self.options.version:
            return self.options.version
        try:
            return read_manifest(self.repo_root / self.config.project.manifest).version
        except ManifestError:
            return None

    def _check_version(self) -> tuple[CheckStatus, str, str]:
        version = self._release_version()
        try:
            parsed = Version.parse(version or "")
        except VersionError as e:
            return CheckStatus.FAIL, str(e), ""
        self.report.version = str(parsed)
        kind = "prerelease" if parsed.is_prerelease else "release"
        return CheckStatus.PASS, f"{parsed} is a valid {kind} version", ""

    def _check_consistency(self) -> tuple[CheckStatus, str, str]:
        try:
            inventory = version_inventory(self.repo_root, self.config.project)
        except ManifestError as e:
            return CheckStatus.FAIL, str(e), ""
        expected = inventory.get(self.config.project.manifest)
        problems = find_inconsistencies(inventory, expected or "")
        if problems:
            return (
                CheckStatus.FAIL,
                f"{len(problems)} file(s) disagree with {self.config.project.manifest}",
                "\n".join(problems),
            )
        return CheckStatus.PASS, f"{len(inventory)} file(s) at {expected}", ""

    def _check_tag(self) -> tuple[CheckStatus, str, str]:
        version = self._release_version()
        if not version:
            return CheckStatus.SKIP, "No version to check", ""
        tag = tag_name(version, self.config.project.tag_prefix)
        if git.tag_exists(tag, cwd=self.repo_root):
            return CheckStatus.FAIL, f"Tag {tag} already exists", ""
        return CheckStatus.PASS, f"Tag {tag} is available", ""

    def _check_changelog(self) -> tuple[CheckStatus, str, str]:
        path = self.repo_root / self.config.project.changelog
        if not path.exists():
            return CheckStatus.FAIL, f"{path.name} not found", ""
        content = path.read_text()
        result = validate_changelog(content)
        if not result.valid:
            details = "\n".join(f"line {e.line}: {e.message}" for e in result.errors)
            return CheckStatus.FAIL, f"{len(result.errors)} changelog error(s)", details

        version = self._release_version()
        if version and extract_section(content, version):
            return CheckStatus.PASS, f"Changelog has a section for {version}", ""
        if extract_section(content, "Unreleased"):
            return CheckStatus.PASS, "Changelog has unreleased entries", ""
        return (
            CheckStatus.WARNING,
            f"No entries for {version or 'this release'}; they will be generated from commits",
            "",
        )

    def _run_quality_checks(self) -> None:
        summary = run_checks(self.config.checks, self.repo_root)
        if not summary.categories:
            self.report.record("checks", CheckStatus.SKIP, "No quality checks configured")
            return
        for name, result in summary.categories.items():
            if result.passed:
                status, message = CheckStatus.PASS, f"{name} passed"
            elif result.advisory:
                status, message = CheckStatus.WARNING, f"{name} reported issues"
            else:
                status, message = CheckStatus.FAIL, f"{name} failed (exit {result.exit_code})"
            details = "" if result.passed else result.output[-2000:]
            self.report.record(name, status, message, details, result.duration)

        test_result = summary.categories.get("test")
        if test_result is None:
            return
        coverage = parse_coverage(test_result.output)
        minimum = self.config.validation.min_coverage
        if coverage is None:
            self.report.record("coverage", CheckStatus.SKIP, "Test output has no coverage summary")
        elif coverage < minimum:
            self.report.record(
                "coverage", CheckStatus.FAIL, f"Coverage {coverage:.2f}% below {minimum:.0f}%"
            )
        else:
            self.report.record("coverage", CheckStatus.PASS, f"Coverage {coverage:.2f}%")

    def _check_audit(self) -> tuple[CheckStatus, str, str]:
        try:
            counts = npm.audit(self.repo_root, "low", exec_path=self.config.npm.exec)
        except NpmError as e:
            return CheckStatus.WARNING, f"Audit unavailable: {e}", ""
        summary = ", ".join(f"{n} {sev}" for sev, n in counts.items() if n) or "none"
        if counts.get("critical"):
            return CheckStatus.FAIL, f"Critical vulnerabilities found ({summary})", ""
        if counts.get("high"):
            return CheckStatus.WARNING, f"High severity vulnerabilities found ({summary})", ""
        return CheckStatus.PASS, f"No high or critical vulnerabilities ({summary})", ""

    def _check_required_files(self) -> tuple[CheckStatus, str, str]:
        required = self.config.validation.required_files
        missing = [p for p in required if not (self.repo_root / p).exists()]
        if missing:
            return CheckStatus.FAIL, f"Missing: {', '.join(missing)}", ""
        return CheckStatus.PASS, f"{len(required)} required file(s) present", ""

    def _check_sensitive_files(self) -> tuple[CheckStatus, str, str]:
        tracked = git.run_git("ls-files", cwd=self.repo_root).splitlines()
        found = find_sensitive_files(tracked)
        if found:
            return (
                CheckStatus.WARNING,
                f"{len(found)} potentially sensitive file(s) tracked",
                "\n".join(found),
            )
        return CheckStatus.PASS, "No sensitive files tracked", ""

    def _check_docs(self) -> tuple[CheckStatus, str, str]:
        readme = self.repo_root / "README.md"
        if not readme.exists() or not readme.read_text().strip():
            return CheckStatus.FAIL, "README.md is missing or empty", ""
        command = self.config.docs.build_command
        if not command:
            return CheckStatus.PASS, "README.md present", ""
        try:
            output, exit_code = run_single_check(command, self.repo_root)
        except ChecksError as e:
            return CheckStatus.FAIL, str(e), ""
        if exit_code != 0:
            return CheckStatus.FAIL, f"{command} exited with {exit_code}", output[-2000:]
        return CheckStatus.PASS, f"README.md present, {command} succeeded", ""


def run_validation(repo_root: Path, config: RelflowConfig, options: ValidationOptions) -> Report:
    """Run all pre-release checks and return the report."""
    return PreReleaseValidator(repo_root, config, options).run()
