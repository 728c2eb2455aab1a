"""Validate command implementation."""

import typer

from ..core.semver import is_valid
from ..core.validation import ValidationOptions, run_validation
from ..output import get_output_context
from .common import load_repo_config, require_repo_root, save_and_show


def validate(
    version: str | None = typer.Option(
        None, "--version", help="Version being released (default: package.json)"
    ),
    environment: str | None = typer.Option(None, "--env", help="Target environment label"),
    skip_checks: bool = typer.Option(False, "--skip-checks", help="Skip lint, test and build"),
    skip_audit: bool = typer.Option(False, "--skip-audit", help="Skip npm audit"),
    skip_docs: bool = typer.Option(False, "--skip-docs", help="Skip documentation checks"),
) -> None:
    """Run pre-release validation and write a report."""
    ctx = get_output_context()
    repo_root = require_repo_root()
    config = load_repo_config(repo_root)

    if version and not is_valid(version):
        ctx.error(f"Invalid semantic version: {version}")
        raise typer.Exit(4)

    report = run_validation(
        repo_root,
        config,
        ValidationOptions(
            version=version,
            environment=environment,
            skip_checks=skip_checks,
            skip_audit=skip_audit,
            skip_docs=skip_docs,
        ),
    )
    save_and_show(ctx, report, repo_root, "validation")

    if not report.ok:
        ctx.error(f"Validation failed ({report.failed} check(s))")
        raise typer.Exit(10)
    ctx.success("Ready to release")
