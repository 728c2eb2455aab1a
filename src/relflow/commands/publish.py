"""Publish command implementation."""

import typer

from ..core.publishing import Publisher, PublishOptions
from ..output import get_output_context
from .common import is_dry_run, load_repo_config, require_repo_root, save_and_show


def publish(
    tag: str | None = typer.Option(
        None, "--tag", help="Dist-tag (default: latest, or the prerelease identifier)"
    ),
    force: bool = typer.Option(False, "--force", help="Continue past version conflicts"),
    skip_build: bool = typer.Option(False, "--skip-build", help="Do not run the build command"),
    skip_audit: bool = typer.Option(False, "--skip-audit", help="Do not run npm audit"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Run every gate without publishing"),
) -> None:
    """Publish the package to npm behind safety gates."""
    ctx = get_output_context()
    repo_root = require_repo_root()
    config = load_repo_config(repo_root)

    options = PublishOptions(
        tag=tag,
        force=force,
        skip_build=skip_build,
        skip_audit=skip_audit,
        dry_run=is_dry_run(dry_run),
    )
    outcome = Publisher(repo_root, config, options).run()
    save_and_show(ctx, outcome.report, repo_root, "publish")

    for path in outcome.sensitive_files:
        ctx.warning(f"Sensitive file in tarball: {path}")

    if not outcome.report.ok:
        failure = outcome.report.failures()[0]
        ctx.error(f"Publish stopped at {failure.phase}: {failure.message}")
        raise typer.Exit(12)

    if options.dry_run:
        ctx.dry(f"Would publish {outcome.report.version} with dist-tag {outcome.dist_tag}")
    elif outcome.published:
        ctx.print(
            f"[bold green]Published {outcome.report.version} "
            f"(dist-tag {outcome.dist_tag})[/bold green]"
        )
