"""End-to-end release orchestration.

Phases run in order: preparation, tagging, publishing, notifications.
A failed phase stops the release; the caller may then roll back the
version bump. In dry-run mode every phase runs its own dry run, so the
same code path doubles as a release rehearsal.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ..config import RelflowConfig
from ..models import BumpType, CheckStatus, Report
from ..services import git
from ..services.checks import ChecksError
from .manifest import ManifestError
from .notifications import build_announcement, parse_channels, send_notifications
from .publishing import Publisher, PublishOptions
from .rollback import RollbackError, RollbackOptions, RollbackOutcome, run_rollback
from .tagging import TagError, TagOptions, create_release_tag
from .validation import ValidationOptions, run_validation
from .versioning import BumpOptions, VersionBumpError, apply_bump, current_version, plan_bump

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    """Release phases in execution order."""

    PREPARATION = "preparation"
    TAGGING = "tagging"
    PUBLISHING = "publishing"
    NOTIFICATIONS = "notifications"


class PhaseFailed(Exception):
    """A release phase did not complete."""

    def __init__(self, message: str, report: Report | None = None) -> None:
        super().__init__(message)
        self.report = report


@dataclass
class ReleaseOptions:
    """Options for a full release."""

    bump_type: BumpType | None = None
    force_version: str | None = None
    preid: str | None = None
    skip_preparation: bool = False
    skip_validation: bool = False
    skip_tagging: bool = False
    skip_publishing: bool = False
    skip_notifications: bool = False
    channels: str | None = None
    push: bool = True
    dry_run: bool = False
    assume_yes: bool = False
    rollback_on_failure: bool = False


@dataclass
class PhaseResult:
    """Outcome of one phase."""

    phase: Phase
    status: CheckStatus
    message: str
    duration: float = 0.0
    report: Report | None = None


@dataclass
class ReleaseOutcome:
    """Result of a release run."""

    previous: str | None = None
    version: str | None = None
    phases: list[PhaseResult] = field(default_factory=list)
    summary: Report | None = None
    cancelled: bool = False
    rollback: RollbackOutcome | None = None

    @property
    def failed_phase(self) -> Phase | None:
        return next((p.phase for p in self.phases if p.status == CheckStatus.FAIL), None)

    @property
    def success(self) -> bool:
        return not self.cancelled and self.failed_phase is None


class ReleaseOrchestrator:
    """Drives a release through its phases."""

    def __init__(
        self,
        repo_root: Path,
        config: RelflowConfig,
        options: ReleaseOptions,
        confirm: Callable[[str], bool],
    ) -> None:
        self.repo_root = repo_root
        self.config = config
        self.options = options
        self.confirm = confirm
        self.bumped = False

    def run(self) -> ReleaseOutcome:
        outcome = ReleaseOutcome()
        opts = self.options
        plan = None

        current = current_version(self.repo_root, self.config)
        outcome.previous = str(current)
        if opts.skip_preparation:
            outcome.version = str(current)
        else:
            plan = plan_bump(
                self.repo_root,
                self.config,
                BumpOptions(
                    bump_type=opts.bump_type, force_version=opts.force_version, preid=opts.preid
                ),
            )
            outcome.version = str(plan.new)

        if not (opts.dry_run or opts.assume_yes) and not self.confirm(
            f"Release {outcome.version} (from {outcome.previous})?"
        ):
            outcome.cancelled = True
            return outcome

        phases: list[tuple[Phase, bool, Callable[[ReleaseOutcome], tuple[str, Report | None]]]] = [
            (Phase.PREPARATION, opts.skip_preparation, lambda o: self._prepare(o, plan)),
            (Phase.TAGGING, opts.skip_tagging, self._tag),
            (Phase.PUBLISHING, opts.skip_publishing, self._publish),
            (Phase.NOTIFICATIONS, opts.skip_notifications, self._notify),
        ]
        for phase, skipped, run_phase in phases:
            if skipped:
                outcome.phases.append(PhaseResult(phase, CheckStatus.SKIP, "Skipped"))
                continue
            logger.info("Starting %s phase", phase.value)
            start = time.monotonic()
            try:
                message, report = run_phase(outcome)
                status = CheckStatus.PASS
                if report is not None and report.warnings and report.ok:
                    status = CheckStatus.WARNING
            except PhaseFailed as e:
                message, report, status = str(e), e.report, CheckStatus.FAIL
            except (
                VersionBumpError, TagError, ManifestError, ChecksError, git.GitError, ValueError
            ) as e:
                message, report, status = str(e), None, CheckStatus.FAIL
            outcome.phases.append(
                PhaseResult(phase, status, message, time.monotonic() - start, report)
            )
            if status == CheckStatus.FAIL:
                logger.error("%s phase failed: %s", phase.value, message)
                break

        if outcome.failed_phase is not None and self.bumped:
            outcome.rollback = self._maybe_rollback(outcome)

        outcome.summary = self._summary(outcome)
        return outcome

    def _prepare(self, outcome: ReleaseOutcome, plan) -> tuple[str, Report | None]:
        report = None
        if not self.options.skip_validation:
            report = run_validation(
                self.repo_root, self.config, ValidationOptions(version=outcome.version)
            )
            if not report.ok:
                failed = ", ".join(r.phase for r in report.failures())
                raise PhaseFailed(f"Validation failed: {failed}", report)
        if self.options.dry_run:
            return f"Would bump {outcome.previous} → {outcome.version} and commit", report
        result = apply_bump(
            self.repo_root, self.config, plan, BumpOptions(commit=True, tag=False)
        )
        self.bumped = True
        sha = result.commit_sha[:8] if result.commit_sha else "no commit"
        return f"Bumped to {outcome.version} ({sha})", report

    def _tag(self, outcome: ReleaseOutcome) -> tuple[str, Report | None]:
        remote = self.config.git.remote
        push = self.options.push and git.remote_exists(remote, cwd=self.repo_root)
        result = create_release_tag(
            self.repo_root,
            self.config,
            TagOptions(version=outcome.version, push=push, dry_run=self.options.dry_run),
        )
        if result.dry_run:
            return f"Would run {' '.join(result.command[:4])} ...", None
        if push:
            git.push_head(remote, cwd=self.repo_root)
        kind = "signed" if result.signed else "annotated"
        return f"Created {kind} tag {result.tag}{' and pushed' if result.pushed else ''}", None

    def _publish(self, outcome: ReleaseOutcome) -> tuple[str, Report | None]:
        publisher = Publisher(
            self.repo_root,
            self.config,
            PublishOptions(version=outcome.version, dry_run=self.options.dry_run),
        )
        result = publisher.run()
        if not result.report.ok:
            failed = result.report.failures()[0]
            raise PhaseFailed(f"{failed.phase}: {failed.message}", result.report)
        if result.published:
            return f"Published with tag {result.dist_tag}", result.report
        return "Publish gates passed (dry run)", result.report

    def _notify(self, outcome: ReleaseOutcome) -> tuple[str, Report | None]:
        announcement = build_announcement(self.repo_root, self.config, outcome.version)
        report = send_notifications(
            self.repo_root,
            self.config,
            announcement,
            parse_channels(self.options.channels),
            dry_run=self.options.dry_run,
        )
        if not report.ok:
            # Announcement failures never fail a release that is already published
            for record in report.records:
                if record.status == CheckStatus.FAIL:
                    record.status = CheckStatus.WARNING
        sent = report.count(CheckStatus.PASS)
        return f"{sent} channel(s) notified", report

    def _maybe_rollback(self, outcome: ReleaseOutcome) -> RollbackOutcome | None:
        if not self.options.rollback_on_failure:
            if self.options.assume_yes or not self.confirm(
                f"Release failed in {outcome.failed_phase.value}. Roll back {outcome.version}?"
            ):
                return None
        options = RollbackOptions(
            version=outcome.version,
            target=outcome.previous,
            scope="partial",
            reason=f"{outcome.failed_phase.value} phase failed",
            assume_yes=True,
        )
        try:
            return run_rollback(self.repo_root, self.config, options, self.confirm)
        except RollbackError as e:
            logger.error("Rollback failed: %s", e)
            return None

    def _summary(self, outcome: ReleaseOutcome) -> Report:
        summary = Report(
            title=f"Release {outcome.version}",
            version=outcome.version,
            dry_run=self.options.dry_run,
        )
        for result in outcome.phases:
            summary.record(result.phase.value, result.status, result.message, duration=result.duration)
        if outcome.rollback is not None:
            summary.record(
                "rollback",
                CheckStatus.PASS if outcome.rollback.success else CheckStatus.FAIL,
                f"Rolled back to {outcome.previous}",
            )
        return summary.finish()
