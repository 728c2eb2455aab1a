"""Tag command implementation."""

import typer

from ..core.manifest import ManifestError
from ..core.semver import is_valid
from ..core.tagging import TagError, TagOptions, create_release_tag
from ..output import get_output_context
from .common import is_dry_run, load_repo_config, require_repo_root

tag_app = typer.Typer(help="Release tag commands", no_args_is_help=True)


@tag_app.command("create")
def tag_create(
    version: str | None = typer.Option(
        None, "--version", help="Version to tag (default: package.json)"
    ),
    message: str | None = typer.Option(None, "--message", "-m", help="Tag message"),
    gpg_key: str | None = typer.Option(None, "--gpg-key", "-k", help="Signing key id"),
    skip_gpg: bool = typer.Option(False, "--skip-gpg", help="Create an unsigned annotated tag"),
    force: bool = typer.Option(False, "--force", help="Replace an existing tag"),
    push: bool = typer.Option(False, "--push", help="Push the tag to the remote"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print the git command only"),
) -> None:
    """Create a (signed) release tag."""
    ctx = get_output_context()
    repo_root = require_repo_root()
    config = load_repo_config(repo_root)

    if version and not is_valid(version):
        ctx.error(f"Invalid semantic version: {version}")
        raise typer.Exit(4)

    options = TagOptions(
        version=version,
        message=message,
        gpg_key=gpg_key,
        skip_gpg=skip_gpg,
        force=force,
        push=push,
        dry_run=is_dry_run(dry_run),
    )
    try:
        result = create_release_tag(repo_root, config, options)
    except (TagError, ManifestError) as e:
        ctx.error(str(e))
        raise typer.Exit(13) from None

    for warning in result.warnings:
        ctx.warning(warning)

    data = {
        "tag": result.tag,
        "version": result.version,
        "signed": result.signed,
        "verified": result.verified,
        "pushed": result.pushed,
        "dry_run": result.dry_run,
    }
    if result.dry_run:
        # Show the message separately; it spans several lines
        ctx.dry(f"Would run: {' '.join(result.command[:-1])} <message>")
        ctx.print(result.message)
        ctx.print_json({**data, "command": result.command})
        return

    kind = "signed" if result.signed else "annotated"
    if result.replaced:
        ctx.print(f"[yellow]Replaced existing tag {result.tag}[/yellow]")
    if result.signed and result.verified:
        ctx.print("[green]✓[/green] Signature verified")
    if result.pushed:
        ctx.print(f"[green]✓[/green] Pushed to {config.git.remote}")
    ctx.result(data, f"[bold green]Created {kind} tag {result.tag}[/bold green]")
