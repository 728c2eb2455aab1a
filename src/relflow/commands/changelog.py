"""Changelog command implementations."""

from datetime import date
from pathlib import Path

import typer
from rich.markup import escape

from ..core.backups import get_backups_dir
from ..core.changelog import preview_release, update_changelog_file, write_with_backup
from ..core.changelog_validator import fix_changelog, validate_changelog
from ..core.commits import collect_commits
from ..core.manifest import ManifestError, read_manifest
from ..core.semver import is_valid
from ..output import get_output_context
from ..services import GitError, git
from .common import is_dry_run, load_repo_config, require_repo_root

changelog_app = typer.Typer(help="Changelog commands", no_args_is_help=True)


@changelog_app.command("generate")
def changelog_generate(
    version: str | None = typer.Option(
        None, "--version", help="Version for the new section (default: package.json)"
    ),
    since: str | None = typer.Option(None, "--since", help="Start ref (default: last tag)"),
    release_date: str | None = typer.Option(
        None, "--date", help="Release date YYYY-MM-DD (default: today)"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print the section without writing"),
) -> None:
    """Generate a changelog section from conventional commits."""
    ctx = get_output_context()
    repo_root = require_repo_root()
    config = load_repo_config(repo_root)

    if not version:
        try:
            version = read_manifest(repo_root / config.project.manifest).version
        except ManifestError as e:
            ctx.error(str(e))
            raise typer.Exit(1) from None
    if not version or not is_valid(version):
        ctx.error(f"Invalid semantic version: {version}")
        raise typer.Exit(4)

    try:
        start, analysis = collect_commits(repo_root, since, config.project.tag_prefix)
    except GitError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None

    path = repo_root / config.project.changelog
    day = release_date or date.today().isoformat()
    ctx.print(f"Analyzed {analysis.total} commit(s) since {start or 'the first commit'}")

    if is_dry_run(dry_run):
        ctx.dry(f"Would add to {path.name}:")
        section = preview_release(
            path, version, day, analysis.commits, config.project.repository_url
        )
        ctx.print(section)
        ctx.print_json({"dry_run": True, "version": version, "section": section})
        return

    try:
        section = update_changelog_file(
            path,
            version,
            day,
            analysis.commits,
            repository_url=config.project.repository_url,
            previous_tag=start,
            tag_prefix=config.project.tag_prefix,
            backup_dir=get_backups_dir(repo_root),
        )
    except ValueError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None

    ctx.result(
        {"version": version, "file": str(path), "section": section},
        f"[green]Added {version} section to {path.name}[/green]",
    )


def _backup_dir_for(file: Path) -> Path | None:
    try:
        return get_backups_dir(git.get_repo_root(file.resolve().parent))
    except GitError:
        return None


@changelog_app.command("validate")
def changelog_validate(
    file: Path | None = typer.Option(None, "--file", "-f", help="Changelog path"),
    fix: bool = typer.Option(False, "--fix", help="Repair formatting problems first"),
) -> None:
    """Validate the changelog against Keep a Changelog conventions."""
    ctx = get_output_context()
    if file is None:
        repo_root = require_repo_root()
        file = repo_root / load_repo_config(repo_root).project.changelog

    if not file.exists():
        ctx.error(f"{file} not found")
        raise typer.Exit(10)

    content = file.read_text()
    if fix:
        fixed, fixes = fix_changelog(content)
        if fixes and is_dry_run(False):
            for description in fixes:
                ctx.dry(f"Would fix: {description}")
        elif fixes:
            backup = write_with_backup(file, fixed, _backup_dir_for(file))
            content = fixed
            for description in fixes:
                ctx.print(f"[green]Fixed:[/green] {description}")
            ctx.print(f"[dim]Backup: {backup}[/dim]")

    result = validate_changelog(content)
    if ctx.json_mode:
        ctx.print_json(
            {
                "file": str(file),
                "valid": result.valid,
                "errors": [str(e) for e in result.errors],
                "warnings": [str(w) for w in result.warnings],
                "versions": result.versions,
            }
        )
    else:
        for issue in result.errors:
            ctx.console.print(f"[red]✗[/red] {escape(str(issue))}")
        for issue in result.warnings:
            ctx.console.print(f"[yellow]![/yellow] {escape(str(issue))}")
        ctx.console.print(
            f"{len(result.versions)} version(s), {len(result.errors)} error(s), "
            f"{len(result.warnings)} warning(s)"
        )

    if not result.valid:
        raise typer.Exit(10)
    ctx.success(f"{file.name} is valid")
