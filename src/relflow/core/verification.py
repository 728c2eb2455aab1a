"""Post-release verification of a published version."""

import logging
import subprocess
import tempfile
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..config import RelflowConfig
from ..models import CheckStatus, Report
from ..services import npm
from ..services.http import GitHubApiClient, NpmRegistryClient, RegistryError
from .semver import Version, dist_tag_for, tag_name

logger = logging.getLogger(__name__)

Installer = Callable[[str, Path], tuple[bool, str]]

STRESS_PASS_RATIO = 0.8
CLI_TIMEOUT = 30


class VerificationLevel(str, Enum):
    """How thoroughly to verify a release."""

    BASIC = "basic"
    STANDARD = "standard"
    COMPREHENSIVE = "comprehensive"


@dataclass
class VerifyOptions:
    """Options for ReleaseVerifier."""

    package_name: str
    version: str
    level: VerificationLevel = VerificationLevel.STANDARD
    continue_on_failure: bool = False
    stress_installs: int = 5
    dist_tag: str | None = None
    binary: str | None = None


def npm_installer(config: RelflowConfig) -> Installer:
    """Installer backed by ``npm install --prefix``."""

    def install(spec: str, prefix: Path) -> tuple[bool, str]:
        return npm.install(spec, prefix, registry=config.npm.registry, exec_path=config.npm.exec)

    return install


def classify_stress(successes: int, attempts: int) -> CheckStatus:
    """All installs succeeded: pass; at least 80%: warning; else fail."""
    if attempts and successes == attempts:
        return CheckStatus.PASS
    if attempts and successes / attempts >= STRESS_PASS_RATIO:
        return CheckStatus.WARNING
    return CheckStatus.FAIL


class ReleaseVerifier:
    """Checks that a published release is installable and consistent.

    Registry and GitHub access go through injected clients; installations
    go through an injected installer so tests never touch the network.
    """

    def __init__(
        self,
        config: RelflowConfig,
        options: VerifyOptions,
        registry: NpmRegistryClient,
        github_api: GitHubApiClient | None = None,
        installer: Installer | None = None,
    ) -> None:
        self.config = config
        self.options = options
        self.registry = registry
        self.github_api = github_api
        self.installer = installer or npm_installer(config)
        self.spec = f"{options.package_name}@{options.version}"
        self._metadata: dict | None = None

    def checks(self) -> list[tuple[str, Callable[[], tuple[CheckStatus, str, str]]]]:
        """Checks for the configured level, in execution order."""
        selected = [
            ("registry", self._check_registry),
            ("dist-tag", self._check_dist_tag),
            ("github release", self._check_github_release),
        ]
        if self.options.level in (VerificationLevel.STANDARD, VerificationLevel.COMPREHENSIVE):
            selected += [
                ("integrity", self._check_integrity),
                ("installation", self._check_install),
            ]
        if self.options.level == VerificationLevel.COMPREHENSIVE:
            selected.append(("stress test", self._check_stress))
        return selected

    def run(self) -> Report:
        report = Report(title="Release verification", version=self.options.version)
        for phase, check in self.checks():
            start = time.monotonic()
            try:
                status, message, details = check()
            except RegistryError as e:
                status, message, details = CheckStatus.FAIL, str(e), ""
            report.record(phase, status, message, details, time.monotonic() - start)
            if status == CheckStatus.FAIL and not self.options.continue_on_failure:
                logger.error("%s failed; stopping verification", phase)
                break
        return report.finish()

    def _version_metadata(self) -> dict | None:
        if self._metadata is None:
            self._metadata = self.registry.version_metadata(
                self.options.package_name, self.options.version
            )
        return self._metadata

    def _check_registry(self) -> tuple[CheckStatus, str, str]:
        if self._version_metadata() is None:
            return CheckStatus.FAIL, f"{self.spec} not found in registry", ""
        return CheckStatus.PASS, f"{self.spec} is published", ""

    def _check_dist_tag(self) -> tuple[CheckStatus, str, str]:
        expected = self.options.dist_tag or dist_tag_for(
            Version.parse(self.options.version), self.config.npm.default_tag
        )
        tags = self.registry.dist_tags(self.options.package_name)
        actual = tags.get(expected)
        if actual != self.options.version:
            return CheckStatus.FAIL, f"{expected} points at {actual or 'nothing'}", ""
        return CheckStatus.PASS, f"{expected} → {actual}", ""

    def _check_github_release(self) -> tuple[CheckStatus, str, str]:
        if self.github_api is None:
            return CheckStatus.SKIP, "No GitHub repository configured", ""
        tag = tag_name(self.options.version, self.config.project.tag_prefix)
        release = self.github_api.get_release(tag)
        if release is None:
            return CheckStatus.FAIL, f"No GitHub release for {tag}", ""
        return CheckStatus.PASS, f"Release {tag} exists", release.get("html_url", "")

    def _check_integrity(self) -> tuple[CheckStatus, str, str]:
        dist = (self._version_metadata() or {}).get("dist", {})
        missing = [key for key in ("tarball", "shasum", "integrity") if not dist.get(key)]
        if missing:
            return CheckStatus.FAIL, f"dist metadata lacks {', '.join(missing)}", ""
        return CheckStatus.PASS, "Tarball integrity metadata present", dist["integrity"]

    def _check_install(self) -> tuple[CheckStatus, str, str]:
        with tempfile.TemporaryDirectory(prefix="relflow-verify-") as tmp:
            prefix = Path(tmp)
            ok, output = self.installer(self.spec, prefix)
            if not ok:
                return CheckStatus.FAIL, f"npm install {self.spec} failed", output[-2000:]
            binary = self.options.binary
            if not binary:
                return CheckStatus.PASS, f"Installed {self.spec}", ""
            return self._check_cli(prefix, binary)

    def _check_cli(self, prefix: Path, binary: str) -> tuple[CheckStatus, str, str]:
        executable = prefix / "node_modules" / ".bin" / binary
        try:
            result = subprocess.run(
                [str(executable), "--version"],
                capture_output=True,
                text=True,
                timeout=CLI_TIMEOUT,
            )
        except FileNotFoundError:
            return CheckStatus.FAIL, f"Installed, but binary {binary} is missing", ""
        except subprocess.TimeoutExpired:
            return CheckStatus.FAIL, f"{binary} --version timed out", ""
        output = (result.stdout + result.stderr).strip()
        if result.returncode != 0:
            return CheckStatus.FAIL, f"{binary} --version exited with {result.returncode}", output
        if self.options.version not in output:
            return CheckStatus.WARNING, f"{binary} --version did not report {self.options.version}", output
        return CheckStatus.PASS, f"Installed; {binary} reports {self.options.version}", ""

    def _install_once(self, index: int) -> bool:
        with tempfile.TemporaryDirectory(prefix=f"relflow-stress-{index}-") as tmp:
            ok, output = self.installer(self.spec, Path(tmp))
            if not ok:
                logger.debug("Stress install %d failed: %s", index, output[-500:])
            return ok

    def _check_stress(self) -> tuple[CheckStatus, str, str]:
        attempts = self.options.stress_installs
        with ThreadPoolExecutor(max_workers=attempts) as pool:
            successes = sum(pool.map(self._install_once, range(attempts)))
        status = classify_stress(successes, attempts)
        return status, f"{successes}/{attempts} concurrent installs succeeded", ""
