"""Rollback command implementation."""

import typer
from rich.table import Table

from ..core.backups import BackupError
from ..core.manifest import ManifestError
from ..core.rollback import SCOPE_PRESETS, RollbackError, RollbackOptions, run_rollback
from ..core.semver import is_valid
from ..models import RollbackPlan
from ..output import OutputContext, get_output_context
from ..services import GitError
from .common import assume_yes, confirm, is_dry_run, load_repo_config, require_repo_root


def _show_plan(ctx: OutputContext, plan: RollbackPlan) -> None:
    ctx.print(
        f"[bold]Rollback plan:[/bold] {plan.from_version} → [bold green]{plan.to_version}[/bold green]"
    )
    if plan.reason:
        ctx.print(f"Reason: {plan.reason}")
    table = Table(show_header=True)
    table.add_column("Scope", style="cyan")
    table.add_column("Action")
    for action in plan.actions:
        table.add_row(action.scope.value, action.description)
    if not ctx.json_mode:
        ctx.console.print(table)


def rollback(
    version: str | None = typer.Option(
        None, "--version", help="Version to roll back (default: package.json)"
    ),
    target: str | None = typer.Option(
        None, "--target", help="Version to restore (default: previous tag)"
    ),
    scope: str = typer.Option(
        "partial",
        "--scope",
        "-s",
        help=f"What to roll back: {', '.join(SCOPE_PRESETS)}",
    ),
    reason: str | None = typer.Option(None, "--reason", "-r", help="Reason shown in notices"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    no_backup: bool = typer.Option(False, "--no-backup", help="Skip the pre-rollback backup"),
    reset_git: bool = typer.Option(
        False, "--reset-git", help="Soft-reset HEAD to the target tag"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the plan without changing anything"),
) -> None:
    """Roll back a bad release."""
    ctx = get_output_context()
    repo_root = require_repo_root()
    config = load_repo_config(repo_root)

    for label, value in (("version", version), ("target", target)):
        if value and not is_valid(value):
            ctx.error(f"Invalid {label} version: {value}")
            raise typer.Exit(4)

    options = RollbackOptions(
        version=version,
        target=target,
        scope=scope,
        reason=reason,
        dry_run=is_dry_run(dry_run),
        assume_yes=assume_yes(yes),
        backup=not no_backup,
        reset_git=reset_git,
    )
    try:
        outcome = run_rollback(
            repo_root, config, options, confirm, on_plan=lambda plan: _show_plan(ctx, plan)
        )
    except RollbackError as e:
        ctx.error(str(e))
        raise typer.Exit(4 if str(e).startswith("Invalid") else 1) from None
    except (BackupError, ManifestError, GitError) as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None

    if outcome.dry_run:
        ctx.dry("No changes made")
        ctx.print_json({"dry_run": True, "plan": outcome.plan.model_dump(mode="json")})
        return
    if outcome.cancelled:
        ctx.print("Rollback cancelled")
        ctx.print_json({"cancelled": True})
        return

    if outcome.backup_dir:
        ctx.print(f"[dim]Backup: {outcome.backup_dir}[/dim]")
    for result in outcome.results:
        mark = "[green]✓[/green]" if result.success else "[red]✗[/red]"
        ctx.print(f"{mark} {result.scope.value}: {result.message}")
    for check in outcome.verification:
        mark = "[green]✓[/green]" if check.passed else "[red]✗[/red]"
        ctx.print(f"{mark} verify {check.name}: {check.message}")
    if outcome.report_dir:
        ctx.print(f"[dim]Reports: {outcome.report_dir}[/dim]")

    data = {
        "from": outcome.plan.from_version,
        "to": outcome.plan.to_version,
        "success": outcome.success,
        "scopes": [r.model_dump(mode="json") for r in outcome.results],
        "report_dir": str(outcome.report_dir) if outcome.report_dir else None,
    }
    if not outcome.success:
        ctx.error("Rollback completed with failures", data)
        raise typer.Exit(14)
    ctx.result(
        data,
        f"[bold green]Rolled back {outcome.plan.from_version} to "
        f"{outcome.plan.to_version}[/bold green]",
    )
