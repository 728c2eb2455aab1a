"""Backup command implementations."""

import typer
from rich.table import Table

from ..core.backups import BackupError, get_backups_dir, list_backups, restore_backup
from ..output import get_output_context
from .common import assume_yes, confirm, require_repo_root

backups_app = typer.Typer(help="Pre-rollback backups", no_args_is_help=True)


@backups_app.command("list")
def backups_list() -> None:
    """List backups, newest first."""
    ctx = get_output_context()
    repo_root = require_repo_root()
    backups = list_backups(get_backups_dir(repo_root))

    if ctx.json_mode:
        ctx.print_json({"backups": [b.model_dump(mode="json") for b in backups]})
        return
    if not backups:
        ctx.console.print("No backups found")
        return

    table = Table(title="Backups")
    table.add_column("Name", style="cyan")
    table.add_column("Created")
    table.add_column("Rollback")
    table.add_column("Files", justify="right")
    for backup in backups:
        table.add_row(
            backup.name,
            backup.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            f"{backup.rollback_from} → {backup.rollback_to}",
            str(len(backup.files)),
        )
    ctx.console.print(table)


@backups_app.command("restore")
def backups_restore(
    name: str = typer.Argument(..., help="Backup directory name (see 'relflow backups list')"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Copy a backup's files back into the repository."""
    ctx = get_output_context()
    repo_root = require_repo_root()
    backups_dir = get_backups_dir(repo_root)

    if ctx.dry_run:
        ctx.dry(f"Would restore files from {backups_dir / name}")
        return
    if not assume_yes(yes) and not confirm(f"Overwrite release files with backup {name}?"):
        ctx.print("Restore cancelled")
        return

    try:
        restored = restore_backup(repo_root, backups_dir, name)
    except BackupError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None

    for path in restored:
        ctx.print(f"[green]✓[/green] {path}")
    ctx.success(f"Restored {len(restored)} file(s) from {name}", {"files": restored})
