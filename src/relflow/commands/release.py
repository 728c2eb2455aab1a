"""Release command implementation."""

import typer

from ..core.manifest import ManifestError
from ..core.orchestrator import Phase, ReleaseOptions, ReleaseOrchestrator
from ..core.semver import VersionError, is_valid
from ..core.versioning import VersionBumpError
from ..models import BumpType, CheckStatus
from ..output import get_output_context
from .common import assume_yes, confirm, is_dry_run, load_repo_config, require_repo_root, save_and_show

# Exit code for a release that stopped in a given phase
PHASE_EXIT_CODES = {
    Phase.PREPARATION: 10,
    Phase.TAGGING: 13,
    Phase.PUBLISHING: 12,
    Phase.NOTIFICATIONS: 1,
}

STATUS_MARKS = {
    CheckStatus.PASS: "[green]✓[/green]",
    CheckStatus.FAIL: "[red]✗[/red]",
    CheckStatus.WARNING: "[yellow]![/yellow]",
    CheckStatus.SKIP: "[dim]-[/dim]",
}


def release(
    bump_type: BumpType | None = typer.Option(
        None, "--type", "-t", case_sensitive=False, help="Increment (default: from commits)"
    ),
    force_version: str | None = typer.Option(None, "--force-version", help="Release this version"),
    preid: str | None = typer.Option(None, "--preid", help="Prerelease identifier"),
    skip_preparation: bool = typer.Option(
        False, "--skip-preparation", help="Release the current version without bumping"
    ),
    skip_validation: bool = typer.Option(
        False, "--skip-validation", help="Skip pre-release validation"
    ),
    skip_tagging: bool = typer.Option(False, "--skip-tagging", help="Do not create the tag"),
    skip_publishing: bool = typer.Option(False, "--skip-publishing", help="Do not publish to npm"),
    skip_notifications: bool = typer.Option(
        False, "--skip-notifications", help="Do not announce the release"
    ),
    channels: str | None = typer.Option(
        None, "--channels", "-c", help="Notification channels (default: all)"
    ),
    no_push: bool = typer.Option(False, "--no-push", help="Do not push the commit and tag"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    rollback_on_failure: bool = typer.Option(
        False, "--rollback-on-failure", help="Undo the version bump if a later phase fails"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Rehearse every phase"),
) -> None:
    """Run the full release: prepare, tag, publish, notify."""
    ctx = get_output_context()
    repo_root = require_repo_root()
    config = load_repo_config(repo_root)

    if force_version and not is_valid(force_version):
        ctx.error(f"Invalid semantic version: {force_version}")
        raise typer.Exit(4)

    options = ReleaseOptions(
        bump_type=bump_type,
        force_version=force_version,
        preid=preid,
        skip_preparation=skip_preparation,
        skip_validation=skip_validation,
        skip_tagging=skip_tagging,
        skip_publishing=skip_publishing,
        skip_notifications=skip_notifications,
        channels=channels,
        push=not no_push,
        dry_run=is_dry_run(dry_run),
        assume_yes=assume_yes(yes),
        rollback_on_failure=rollback_on_failure,
    )
    if options.dry_run:
        ctx.dry("Release rehearsal; nothing is committed, tagged, published or announced")

    try:
        outcome = ReleaseOrchestrator(repo_root, config, options, confirm).run()
    except VersionBumpError as e:
        ctx.error(str(e))
        raise typer.Exit(4 if isinstance(e.__cause__, VersionError) else 1) from None
    except ManifestError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None

    if outcome.cancelled:
        ctx.print("Release cancelled")
        ctx.print_json({"cancelled": True})
        return

    ctx.print(f"[bold]{outcome.previous}[/bold] → [bold green]{outcome.version}[/bold green]")
    for result in outcome.phases:
        ctx.print(f"{STATUS_MARKS[result.status]} {result.phase.value}: {result.message}")
        if result.report is not None and result.report.failures():
            for failure in result.report.failures():
                ctx.print(f"    [red]{failure.phase}:[/red] {failure.message}")

    if outcome.summary is not None:
        save_and_show(ctx, outcome.summary, repo_root, "release")

    if outcome.rollback is not None:
        if outcome.rollback.success:
            ctx.print(f"[yellow]Version bump rolled back to {outcome.previous}[/yellow]")
        else:
            ctx.error("Automatic rollback failed; see the rollback report")

    failed = outcome.failed_phase
    if failed is not None:
        ctx.error(f"Release failed in {failed.value} phase")
        raise typer.Exit(PHASE_EXIT_CODES[failed])
    ctx.success(f"Released {outcome.version}")
