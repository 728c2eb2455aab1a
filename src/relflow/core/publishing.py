"""npm publishing behind sequential safety gates.

Each gate records one ReportRecord. The first failing gate stops the
run. In dry-run mode every command that changes the working tree or the
registry is recorded as skipped instead of executed.
"""

import fnmatch
import hashlib
import logging
import tarfile
import tempfile
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from ..config import RelflowConfig
from ..constants import PUBLISH_VERIFY_ATTEMPTS, PUBLISH_VERIFY_DELAY, SENSITIVE_FILE_PATTERNS
from ..models import CheckStatus, PackageManifest, PackInfo, Report
from ..services import npm
from ..services.checks import ChecksError, run_single_check
from ..services.npm import NpmError
from .manifest import ManifestError, read_manifest
from .semver import Version, VersionError, dist_tag_for

logger = logging.getLogger(__name__)

AUDIT_LEVELS = ("low", "moderate", "high", "critical")


@dataclass
class PublishOptions:
    """Options controlling a publish run."""

    tag: str | None = None
    version: str | None = None
    force: bool = False
    skip_build: bool = False
    skip_audit: bool = False
    dry_run: bool = False
    verify_attempts: int = PUBLISH_VERIFY_ATTEMPTS
    verify_delay: float = PUBLISH_VERIFY_DELAY


@dataclass
class PublishOutcome:
    """Result of a publish run."""

    report: Report
    dist_tag: str | None = None
    pack: PackInfo | None = None
    published: bool = False
    sensitive_files: list[str] = field(default_factory=list)


def find_sensitive_files(paths: list[str]) -> list[str]:
    """Paths matching a sensitive file pattern by full path or basename."""
    found = []
    for path in paths:
        name = path.rsplit("/", 1)[-1]
        if any(
            fnmatch.fnmatch(path, pattern) or fnmatch.fnmatch(name, pattern)
            for pattern in SENSITIVE_FILE_PATTERNS
        ):
            found.append(path)
    return found


def tarball_members(path: Path) -> list[str]:
    """File paths inside an npm tarball with the ``package/`` prefix removed."""
    with tarfile.open(path, "r:gz") as archive:
        return [
            m.name.removeprefix("package/") for m in archive.getmembers() if m.isfile()
        ]


def inspect_tarball(path: Path) -> PackInfo:
    """Size, file count and SHA-256 of a tarball."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            digest.update(chunk)
    return PackInfo(
        file=str(path),
        size=path.stat().st_size,
        files=len(tarball_members(path)),
        checksum=digest.hexdigest(),
    )


def audit_failures(counts: dict[str, int], level: str) -> dict[str, int]:
    """Vulnerability counts at or above the audit level."""
    threshold = AUDIT_LEVELS.index(level) if level in AUDIT_LEVELS else 1
    return {
        severity: counts.get(severity, 0)
        for severity in AUDIT_LEVELS[threshold:]
        if counts.get(severity, 0)
    }


class Publisher:
    """Runs the publish gates for the package in repo_root."""

    def __init__(
        self,
        repo_root: Path,
        config: RelflowConfig,
        options: PublishOptions,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.repo_root = repo_root
        self.config = config
        self.options = options
        self.sleep = sleep
        self.npm_args = {"registry": config.npm.registry, "exec_path": config.npm.exec}
        self.manifest: PackageManifest | None = None
        self.version: Version | None = None

    def run(self) -> PublishOutcome:
        """Run every gate in order, stopping at the first failure."""
        report = Report(
            title="npm publish",
            environment=self.config.npm.registry,
            dry_run=self.options.dry_run,
        )
        outcome = PublishOutcome(report=report)

        with tempfile.TemporaryDirectory(prefix="relflow-pack-") as pack_dir:
            gates: list[tuple[str, Callable[[PublishOutcome], tuple[CheckStatus, str, str]]]] = [
                ("authentication", self._check_auth),
                ("manifest", self._check_manifest),
                ("version conflicts", self._check_conflicts),
                ("build", self._build),
                ("build output", self._check_build_output),
                ("security audit", self._audit),
                ("pack", lambda o: self._pack(o, Path(pack_dir))),
                ("sensitive files", self._scan_sensitive),
                ("registry", self._ping),
                ("publish", self._publish),
                ("publication", self._wait_for_publication),
            ]
            for phase, gate in gates:
                start = time.monotonic()
                status, message, details = gate(outcome)
                report.record(phase, status, message, details, time.monotonic() - start)
                if status == CheckStatus.FAIL:
                    logger.error("%s: %s", phase, message)
                    break

        report.version = str(self.version) if self.version else None
        report.finish()
        return outcome

    def _check_auth(self, outcome: PublishOutcome) -> tuple[CheckStatus, str, str]:
        user = npm.whoami(**self.npm_args)
        if user:
            return CheckStatus.PASS, f"Authenticated as {user}", ""
        if self.options.dry_run:
            return CheckStatus.WARNING, "Not logged in to npm (run 'npm login')", ""
        return CheckStatus.FAIL, "Not logged in to npm (run 'npm login')", ""

    def _check_manifest(self, outcome: PublishOutcome) -> tuple[CheckStatus, str, str]:
        try:
            self.manifest = read_manifest(self.repo_root / self.config.project.manifest)
        except ManifestError as e:
            return CheckStatus.FAIL, str(e), ""
        if not self.manifest.name:
            return CheckStatus.FAIL, "package.json has no name", ""
        expected = self.config.project.package_name
        if expected and self.manifest.name != expected:
            return (
                CheckStatus.FAIL,
                f"Package name {self.manifest.name} does not match configured {expected}",
                "",
            )
        try:
            self.version = Version.parse(self.options.version or self.manifest.version or "")
        except VersionError as e:
            return CheckStatus.FAIL, str(e), ""
        if not self.options.dry_run and str(self.version) != self.manifest.version:
            return (
                CheckStatus.FAIL,
                f"package.json is at {self.manifest.version}, expected {self.version}",
                "",
            )
        outcome.dist_tag = self.options.tag or dist_tag_for(
            self.version, self.config.npm.default_tag
        )
        return CheckStatus.PASS, f"{self.manifest.name}@{self.version} (tag {outcome.dist_tag})", ""

    def _check_conflicts(self, outcome: PublishOutcome) -> tuple[CheckStatus, str, str]:
        assert self.manifest and self.version
        name = self.manifest.name or ""
        try:
            published = npm.version_exists(name, str(self.version), **self.npm_args)
            latest = npm.dist_tags(name, **self.npm_args).get("latest")
        except NpmError as e:
            return CheckStatus.FAIL, f"Could not query registry: {e}", ""

        problems = []
        if published:
            problems.append(f"{name}@{self.version} is already published")
        if latest and not self.version.is_prerelease:
            try:
                if self.version <= Version.parse(latest):
                    problems.append(f"{self.version} is not greater than latest {latest}")
            except VersionError:
                logger.debug("Ignoring unparseable latest tag %s", latest)
        if not problems:
            if latest:
                return CheckStatus.PASS, f"No conflicts (latest is {latest})", ""
            return CheckStatus.PASS, "No conflicts (first publication)", ""
        if self.options.force:
            return CheckStatus.WARNING, "; ".join(problems) + " (forced)", ""
        return CheckStatus.FAIL, "; ".join(problems), ""

    def _build(self, outcome: PublishOutcome) -> tuple[CheckStatus, str, str]:
        if self.options.skip_build:
            return CheckStatus.SKIP, "Build skipped", ""
        command = self.config.checks.build or f"{self.config.npm.exec} run build"
        if self.options.dry_run:
            return CheckStatus.SKIP, f"Would run {command}", ""
        try:
            output, exit_code = run_single_check(command, self.repo_root)
        except ChecksError as e:
            return CheckStatus.FAIL, str(e), ""
        if exit_code != 0:
            return CheckStatus.FAIL, f"{command} exited with {exit_code}", output
        return CheckStatus.PASS, f"{command} succeeded", ""

    def _check_build_output(self, outcome: PublishOutcome) -> tuple[CheckStatus, str, str]:
        required = self.config.npm.required_build_files
        missing = [p for p in required if not (self.repo_root / p).exists()]
        if not missing:
            return CheckStatus.PASS, f"{len(required)} required file(s) present", ""
        message = f"Missing build output: {', '.join(missing)}"
        if self.options.dry_run:
            return CheckStatus.WARNING, message, ""
        return CheckStatus.FAIL, message, ""

    def _audit(self, outcome: PublishOutcome) -> tuple[CheckStatus, str, str]:
        if self.options.skip_audit:
            return CheckStatus.SKIP, "Audit skipped", ""
        level = self.config.npm.audit_level
        try:
            counts = npm.audit(self.repo_root, level, exec_path=self.config.npm.exec)
        except NpmError as e:
            return CheckStatus.WARNING, f"Audit unavailable: {e}", ""
        blocking = audit_failures(counts, level)
        if blocking:
            summary = ", ".join(f"{n} {sev}" for sev, n in blocking.items())
            return CheckStatus.FAIL, f"Vulnerabilities at or above {level}: {summary}", ""
        return CheckStatus.PASS, f"No vulnerabilities at or above {level}", ""

    def _pack(self, outcome: PublishOutcome, destination: Path) -> tuple[CheckStatus, str, str]:
        try:
            tarball = npm.pack(
                self.repo_root,
                destination,
                exec_path=self.config.npm.exec,
                ignore_scripts=self.options.dry_run,
            )
            outcome.pack = inspect_tarball(tarball)
        except (NpmError, OSError, tarfile.TarError) as e:
            return CheckStatus.FAIL, f"npm pack failed: {e}", ""
        info = outcome.pack
        note = " (lifecycle scripts skipped)" if self.options.dry_run else ""
        return (
            CheckStatus.PASS,
            f"{Path(info.file).name}: {info.files} files, {info.size} bytes{note}",
            f"sha256: {info.checksum}",
        )

    def _scan_sensitive(self, outcome: PublishOutcome) -> tuple[CheckStatus, str, str]:
        assert outcome.pack
        outcome.sensitive_files = find_sensitive_files(tarball_members(Path(outcome.pack.file)))
        if outcome.sensitive_files:
            return (
                CheckStatus.WARNING,
                f"{len(outcome.sensitive_files)} potentially sensitive file(s) in tarball",
                "\n".join(outcome.sensitive_files),
            )
        return CheckStatus.PASS, "No sensitive files in tarball", ""

    def _ping(self, outcome: PublishOutcome) -> tuple[CheckStatus, str, str]:
        if npm.ping(**self.npm_args):
            return CheckStatus.PASS, f"{self.config.npm.registry} reachable", ""
        return CheckStatus.FAIL, f"{self.config.npm.registry} did not answer npm ping", ""

    def _publish(self, outcome: PublishOutcome) -> tuple[CheckStatus, str, str]:
        assert self.manifest and outcome.dist_tag
        spec = f"{self.manifest.name}@{self.version}"
        command = (
            f"npm publish --tag {outcome.dist_tag} --access {self.config.npm.access} "
            f"--registry {self.config.npm.registry}"
        )
        if self.options.dry_run:
            return CheckStatus.SKIP, f"Would run {command}", ""
        try:
            output = npm.publish(
                self.repo_root,
                tag=outcome.dist_tag,
                access=self.config.npm.access,
                **self.npm_args,
            )
        except NpmError as e:
            return CheckStatus.FAIL, str(e), ""
        outcome.published = True
        return CheckStatus.PASS, f"Published {spec} with tag {outcome.dist_tag}", output

    def _wait_for_publication(self, outcome: PublishOutcome) -> tuple[CheckStatus, str, str]:
        if not outcome.published:
            return CheckStatus.SKIP, "Nothing published", ""
        assert self.manifest
        name, version = self.manifest.name or "", str(self.version)
        for attempt in range(1, self.options.verify_attempts + 1):
            try:
                if npm.version_exists(name, version, **self.npm_args):
                    return CheckStatus.PASS, f"{name}@{version} visible after {attempt} check(s)", ""
            except NpmError as e:
                logger.debug("Registry check %d failed: %s", attempt, e)
            if attempt < self.options.verify_attempts:
                self.sleep(self.options.verify_delay)
        return (
            CheckStatus.WARNING,
            f"{name}@{version} not visible yet; registry propagation can take a few minutes",
            "",
        )
