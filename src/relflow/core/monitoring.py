"""Post-release health monitoring.

A Monitor runs health-check cycles at a fixed interval, writes a snapshot
after each cycle and stops early when a rollback trigger fires.
"""

import logging
import re
import tempfile
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path

from ..config import MonitoringConfig, RelflowConfig
from ..constants import MONITORING_DIR, RELFLOW_DIR
from ..models import HealthMetrics, MonitoringSnapshot
from ..services.http import GitHubApiClient, NpmRegistryClient, RegistryError
from .reports import timestamp_slug
from .semver import tag_name
from .verification import Installer, npm_installer

logger = logging.getLogger(__name__)

ISSUE_WINDOW = timedelta(hours=24)


@dataclass
class MonitorOptions:
    """Options for a monitoring run."""

    version: str
    duration_minutes: int = 60
    check_interval: int = 30
    auto_rollback: bool = False
    once: bool = False


@dataclass
class MonitorOutcome:
    """Everything a monitoring run observed."""

    version: str
    snapshots: list[MonitoringSnapshot] = field(default_factory=list)
    triggers: list[str] = field(default_factory=list)
    rolled_back: bool = False
    report_path: Path | None = None

    @property
    def triggered(self) -> bool:
        return bool(self.triggers)


def get_monitoring_dir(repo_root: Path) -> Path:
    """Default snapshot directory for a repository."""
    return repo_root / RELFLOW_DIR / MONITORING_DIR


def rollback_command(version: str) -> str:
    """Command a human runs when a trigger fires without --auto-rollback."""
    return f"relflow rollback --version {version} --scope partial"


class HealthChecker:
    """Collects HealthMetrics for one published version."""

    def __init__(
        self,
        config: RelflowConfig,
        package_name: str,
        version: str,
        registry: NpmRegistryClient,
        github_api: GitHubApiClient | None = None,
        installer: Installer | None = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.config = config
        self.thresholds = config.monitoring
        self.package_name = package_name
        self.version = version
        self.registry = registry
        self.github_api = github_api
        self.installer = installer or npm_installer(config)
        self.now = now
        keywords = "|".join(re.escape(k) for k in self.thresholds.critical_keywords)
        self.critical_re = re.compile(rf"\b({keywords})", re.IGNORECASE) if keywords else None

    def check(self) -> HealthMetrics:
        """Run every health check with fresh counters."""
        metrics = HealthMetrics()
        self._check_npm(metrics)
        self._check_github(metrics)
        self._check_installs(metrics)
        self._check_issues(metrics)
        return metrics

    def _error(self, metrics: HealthMetrics, message: str) -> None:
        metrics.error_count += 1
        metrics.messages.append(f"ERROR: {message}")
        logger.error(message)

    def _warn(self, metrics: HealthMetrics, message: str) -> None:
        metrics.warning_count += 1
        metrics.messages.append(f"WARNING: {message}")
        logger.warning(message)

    def _check_npm(self, metrics: HealthMetrics) -> None:
        try:
            if self.registry.version_metadata(self.package_name, self.version) is None:
                self._error(metrics, f"{self.package_name}@{self.version} missing from registry")
                return
            latest = self.registry.dist_tags(self.package_name).get("latest")
            if latest != self.version and "-" not in self.version:
                self._warn(metrics, f"latest points at {latest}, not {self.version}")
            metrics.downloads = self.registry.downloads_last_day(self.package_name)
        except RegistryError as e:
            self._error(metrics, f"Registry check failed: {e}")
            return
        metrics.messages.append(f"Downloads (last day): {metrics.downloads}")

    def _check_github(self, metrics: HealthMetrics) -> None:
        if self.github_api is None:
            return
        tag = tag_name(self.version, self.config.project.tag_prefix)
        try:
            if self.github_api.get_release(tag) is None:
                self._error(metrics, f"GitHub release {tag} not found")
        except RegistryError as e:
            self._warn(metrics, f"GitHub release check failed: {e}")

    def _check_installs(self, metrics: HealthMetrics) -> None:
        attempts = self.thresholds.install_attempts
        if attempts <= 0:
            return
        spec = f"{self.package_name}@{self.version}"
        for _ in range(attempts):
            with tempfile.TemporaryDirectory(prefix="relflow-monitor-") as tmp:
                ok, output = self.installer(spec, Path(tmp))
            if not ok:
                metrics.install_failures += 1
                logger.debug("Install of %s failed: %s", spec, output[-500:])
        rate = (attempts - metrics.install_failures) / attempts
        metrics.messages.append(f"Install success rate: {rate:.0%}")
        if rate < self.thresholds.install_success_rate:
            self._error(metrics, f"Install success rate {rate:.0%} below threshold")

    def _check_issues(self, metrics: HealthMetrics) -> None:
        if self.github_api is None:
            return
        try:
            issues = self.github_api.open_issues_since(self.now() - ISSUE_WINDOW)
        except RegistryError as e:
            self._warn(metrics, f"Issue check failed: {e}")
            return
        if len(issues) > self.thresholds.max_recent_issues:
            self._warn(metrics, f"{len(issues)} issues opened in the last 24h")
        if self.critical_re is None:
            return
        critical = [i for i in issues if self.critical_re.search(i.get("title", ""))]
        if len(critical) > self.thresholds.max_critical_issues:
            self._error(metrics, f"{len(critical)} recent issues mention critical keywords")


def evaluate_triggers(metrics: HealthMetrics, thresholds: MonitoringConfig) -> list[str]:
    """Rollback triggers that fired for a cycle's metrics."""
    triggers = []
    if metrics.error_count >= thresholds.max_errors:
        triggers.append(f"{metrics.error_count} errors (threshold {thresholds.max_errors})")
    if metrics.install_failures >= thresholds.max_install_failures:
        triggers.append(
            f"{metrics.install_failures} install failures "
            f"(threshold {thresholds.max_install_failures})"
        )
    if 0 < metrics.downloads < thresholds.min_downloads:
        triggers.append(f"only {metrics.downloads} downloads (minimum {thresholds.min_downloads})")
    return triggers


class Monitor:
    """Runs health-check cycles until the duration elapses or a trigger fires."""

    def __init__(
        self,
        checker: HealthChecker,
        thresholds: MonitoringConfig,
        options: MonitorOptions,
        snapshot_dir: Path,
        on_trigger: Callable[[MonitoringSnapshot], bool] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.checker = checker
        self.thresholds = thresholds
        self.options = options
        self.snapshot_dir = snapshot_dir
        self.on_trigger = on_trigger
        self.sleep = sleep
        self.clock = clock

    def run(self) -> MonitorOutcome:
        outcome = MonitorOutcome(version=self.options.version)
        deadline = self.clock() + self.options.duration_minutes * 60
        cycle = 0
        while True:
            cycle += 1
            logger.info("Monitoring cycle %d for %s", cycle, self.options.version)
            metrics = self.checker.check()
            snapshot = MonitoringSnapshot(
                version=self.options.version,
                cycle=cycle,
                metrics=metrics,
                triggers=evaluate_triggers(metrics, self.thresholds),
                auto_rollback=self.options.auto_rollback and self.on_trigger is not None,
                duration_minutes=self.options.duration_minutes,
                check_interval=self.options.check_interval,
            )
            self._write_snapshot(snapshot)
            outcome.snapshots.append(snapshot)

            if snapshot.triggers:
                outcome.triggers = snapshot.triggers
                if snapshot.auto_rollback and self.on_trigger is not None:
                    outcome.rolled_back = self.on_trigger(snapshot)
                break
            if self.options.once or self.clock() + self.options.check_interval >= deadline:
                break
            self.sleep(self.options.check_interval)
        return outcome

    def _write_snapshot(self, snapshot: MonitoringSnapshot) -> Path:
        self.snapshot_dir.mkdir(parents=True, exist_ok=True)
        path = self.snapshot_dir / (
            f"snapshot-{snapshot.version}-{snapshot.cycle:03d}-{timestamp_slug(snapshot.timestamp)}.json"
        )
        path.write_text(snapshot.model_dump_json(indent=2))
        return path


def render_monitoring_report(outcome: MonitorOutcome) -> str:
    """Markdown summary of a monitoring run."""
    lines = [f"# Post-release monitoring: {outcome.version}", ""]
    lines.append(f"- **Cycles:** {len(outcome.snapshots)}")
    lines.append(f"- **Result:** {'ROLLBACK TRIGGERED' if outcome.triggered else 'HEALTHY'}")
    if outcome.triggered:
        lines.append(f"- **Automatic rollback:** {'performed' if outcome.rolled_back else 'no'}")
    lines += [
        "",
        "## Cycles",
        "",
        "| Cycle | Time | Downloads | Install failures | Errors | Warnings |",
        "|---|---|---|---|---|---|",
    ]
    for snap in outcome.snapshots:
        m = snap.metrics
        lines.append(
            f"| {snap.cycle} | {snap.timestamp.isoformat(timespec='seconds')} | {m.downloads} "
            f"| {m.install_failures} | {m.error_count} | {m.warning_count} |"
        )
    if outcome.snapshots and outcome.snapshots[-1].metrics.messages:
        lines += ["", "## Last cycle findings", ""]
        lines += [f"- {msg}" for msg in outcome.snapshots[-1].metrics.messages]
    if outcome.triggered:
        lines += ["", "## Rollback triggers", ""]
        lines += [f"- {t}" for t in outcome.triggers]
        if not outcome.rolled_back:
            lines += ["", f"Run `{rollback_command(outcome.version)}` to roll back."]
    return "\n".join(lines) + "\n"


def write_monitoring_report(outcome: MonitorOutcome, directory: Path) -> Path:
    """Write the Markdown monitoring report and return its path."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"monitoring-{outcome.version}-{timestamp_slug()}.md"
    path.write_text(render_monitoring_report(outcome))
    outcome.report_path = path
    return path
