"""Version command implementations."""

from datetime import date

import typer

from ..core.changelog import has_section, preview_release
from ..core.manifest import ManifestError, find_inconsistencies, version_inventory
from ..core.semver import VersionError, is_valid
from ..core.tagging import TagError
from ..core.versioning import (
    BumpOptions,
    VersionBumpError,
    apply_bump,
    plan_bump,
    validate_before_bump,
)
from ..models import BumpType
from ..output import get_output_context
from ..services import GitError
from .common import is_dry_run, load_repo_config, require_repo_root

version_app = typer.Typer(help="Version management commands", no_args_is_help=True)


@version_app.command("show")
def version_show() -> None:
    """Show the package version and every embedded copy of it."""
    ctx = get_output_context()
    repo_root = require_repo_root()
    config = load_repo_config(repo_root)

    try:
        inventory = version_inventory(repo_root, config.project)
    except ManifestError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None

    current = inventory.get(config.project.manifest)
    problems = find_inconsistencies(inventory, current or "")
    if ctx.json_mode:
        ctx.print_json({"version": current, "files": inventory, "consistent": not problems})
        return

    ctx.console.print(f"[bold]Version:[/bold] {current}")
    for path, found in inventory.items():
        mark = "[green]✓[/green]" if found == current else "[red]✗[/red]"
        ctx.console.print(f"  {mark} {path}: {found or 'not found'}")
    for problem in problems:
        ctx.warning(f"Version mismatch in {problem}")


@version_app.command("check")
def version_check(
    version: str = typer.Argument(..., help="Version string to validate"),
) -> None:
    """Check that a string is a valid semantic version."""
    ctx = get_output_context()
    if not is_valid(version):
        ctx.error(f"Invalid semantic version: {version}", {"version": version, "valid": False})
        raise typer.Exit(4)
    ctx.success(f"{version} is a valid semantic version", {"version": version, "valid": True})


@version_app.command("bump")
def version_bump(
    bump_type: BumpType | None = typer.Option(
        None,
        "--type",
        "-t",
        case_sensitive=False,
        help="Increment to apply (default: detected from commits)",
    ),
    force_version: str | None = typer.Option(
        None, "--force-version", help="Set this exact version instead of incrementing"
    ),
    preid: str | None = typer.Option(None, "--preid", help="Prerelease identifier (alpha, beta, rc)"),
    skip_validation: bool = typer.Option(
        False, "--skip-validation", help="Skip clean-tree and quality checks"
    ),
    no_changelog: bool = typer.Option(False, "--no-changelog", help="Do not update the changelog"),
    no_commit: bool = typer.Option(False, "--no-commit", help="Do not create a release commit"),
    no_tag: bool = typer.Option(False, "--no-tag", help="Do not create the release tag"),
    push: bool = typer.Option(False, "--push", help="Push the commit and tag"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the bump without writing"),
) -> None:
    """Bump the package version, update the changelog, commit and tag."""
    ctx = get_output_context()
    repo_root = require_repo_root()
    config = load_repo_config(repo_root)
    dry = is_dry_run(dry_run)

    if force_version and not is_valid(force_version):
        ctx.error(f"Invalid semantic version: {force_version}")
        raise typer.Exit(4)

    options = BumpOptions(
        bump_type=bump_type,
        force_version=force_version,
        preid=preid,
        skip_validation=skip_validation,
        changelog=not no_changelog,
        commit=not no_commit,
        tag=not no_tag and not no_commit,
        push=push,
        dry_run=dry,
    )
    try:
        plan = plan_bump(repo_root, config, options)
    except VersionBumpError as e:
        ctx.error(str(e))
        raise typer.Exit(4 if isinstance(e.__cause__, VersionError) else 1) from None

    if plan.auto_detected:
        source = f"detected from {plan.analysis.total} commit(s) since {plan.since or 'the first commit'}"
    elif plan.bump_type:
        source = "requested"
    else:
        source = "forced"
    ctx.print(f"[bold]{plan.current}[/bold] → [bold green]{plan.new}[/bold green] ({source})")

    if dry:
        ctx.dry(f"Would set version {plan.new} in {config.project.manifest} and version files")
        changelog_path = repo_root / config.project.changelog
        existing = changelog_path.read_text() if changelog_path.exists() else ""
        if options.changelog and has_section(existing, str(plan.new)):
            ctx.dry(f"Would keep the existing {plan.new} section in {config.project.changelog}")
        elif options.changelog:
            ctx.dry(f"Would add this section to {config.project.changelog}:")
            ctx.print(
                preview_release(
                    changelog_path,
                    str(plan.new),
                    date.today().isoformat(),
                    plan.analysis.commits,
                    config.project.repository_url,
                )
            )
        if options.commit:
            ctx.dry(f"Would commit 'chore(release): bump version to {plan.new}'")
        if options.tag:
            ctx.dry(f"Would create tag {config.project.tag_prefix}{plan.new}")
        ctx.print_json(
            {"dry_run": True, "current": str(plan.current), "new": str(plan.new), "source": source}
        )
        return

    if not skip_validation:
        problems = validate_before_bump(repo_root, config)
        if problems:
            for problem in problems:
                ctx.error(problem)
            raise typer.Exit(10)

    try:
        result = apply_bump(repo_root, config, plan, options)
    except TagError as e:
        ctx.error(str(e))
        raise typer.Exit(13) from None
    except (VersionBumpError, ManifestError, GitError, ValueError) as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None

    ctx.print(f"[green]Updated:[/green] {', '.join(result.changed_files)}")
    if result.commit_sha:
        ctx.print(f"[green]Committed:[/green] {result.commit_sha[:8]}")
    if result.tag:
        ctx.print(f"[green]Tagged:[/green] {result.tag}")
    ctx.result(
        {
            "current": str(plan.current),
            "new": str(plan.new),
            "files": result.changed_files,
            "commit": result.commit_sha,
            "tag": result.tag,
        },
        f"[bold green]Version bumped to {plan.new}[/bold green]",
    )
