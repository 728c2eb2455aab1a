"""Notify command implementation."""

import typer

from ..core.manifest import ManifestError
from ..core.notifications import build_announcement, parse_channels, send_notifications
from ..core.semver import VersionError
from ..output import get_output_context
from .common import is_dry_run, load_repo_config, require_repo_root, save_and_show


def notify(
    channels: str | None = typer.Option(
        None, "--channels", "-c", help="Comma separated: github,discord,slack (default: all)"
    ),
    version: str | None = typer.Option(
        None, "--version", help="Released version (default: package.json)"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show payloads without sending"),
) -> None:
    """Announce a release on GitHub, Discord and Slack."""
    ctx = get_output_context()
    repo_root = require_repo_root()
    config = load_repo_config(repo_root)

    try:
        selected = parse_channels(channels)
    except ValueError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None

    try:
        announcement = build_announcement(repo_root, config, version)
    except VersionError as e:
        ctx.error(str(e))
        raise typer.Exit(4) from None
    except ManifestError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None

    dry = is_dry_run(dry_run)
    report = send_notifications(repo_root, config, announcement, selected, dry_run=dry)
    save_and_show(ctx, report, repo_root, "notifications")

    if dry and not ctx.json_mode:
        for record in report.records:
            if record.details:
                ctx.dry(f"{record.phase} payload:")
                ctx.console.print(record.details, markup=False, highlight=False)
    if not report.ok:
        ctx.error("Some notifications failed")
        raise typer.Exit(1)
