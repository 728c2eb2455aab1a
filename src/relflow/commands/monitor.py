"""Monitor command implementation."""

import logging

import typer

from ..core.manifest import ManifestError, read_manifest
from ..core.monitoring import (
    HealthChecker,
    Monitor,
    MonitorOptions,
    get_monitoring_dir,
    rollback_command,
    write_monitoring_report,
)
from ..core.reports import get_reports_dir
from ..core.rollback import RollbackError, RollbackOptions, run_rollback
from ..core.semver import is_valid
from ..models import MonitoringSnapshot
from ..output import get_output_context
from ..services.http import NpmRegistryClient
from .common import load_repo_config, require_repo_root
from .verify import github_client

logger = logging.getLogger(__name__)


def monitor(
    version: str | None = typer.Option(
        None, "--version", help="Released version to watch (default: package.json)"
    ),
    duration: int | None = typer.Option(
        None, "--duration", "-d", min=1, help="Minutes to monitor (default: config)"
    ),
    interval: int | None = typer.Option(
        None, "--interval", "-i", min=1, help="Seconds between cycles (default: config)"
    ),
    auto_rollback: bool = typer.Option(
        False, "--auto-rollback", help="Roll back automatically when a trigger fires"
    ),
    once: bool = typer.Option(False, "--once", help="Run a single health-check cycle"),
) -> None:
    """Watch a fresh release and trigger rollback on bad health."""
    ctx = get_output_context()
    repo_root = require_repo_root()
    config = load_repo_config(repo_root)

    try:
        manifest = read_manifest(repo_root / config.project.manifest)
    except ManifestError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None

    version = version or manifest.version
    if not version or not is_valid(version):
        ctx.error(f"Invalid semantic version: {version}")
        raise typer.Exit(4)
    package_name = config.project.package_name or manifest.name
    if not package_name:
        ctx.error("Package name is not set in package.json or config")
        raise typer.Exit(1)

    options = MonitorOptions(
        version=version,
        duration_minutes=duration or config.monitoring.duration_minutes,
        check_interval=interval or config.monitoring.check_interval,
        auto_rollback=auto_rollback,
        once=once,
    )

    def on_trigger(snapshot: MonitoringSnapshot) -> bool:
        ctx.print(f"[bold red]Rollback triggered:[/bold red] {'; '.join(snapshot.triggers)}")
        rollback_options = RollbackOptions(
            version=version,
            scope="partial",
            reason=f"Automatic rollback: {'; '.join(snapshot.triggers)}",
            assume_yes=True,
        )
        try:
            outcome = run_rollback(repo_root, config, rollback_options, lambda _: True)
        except RollbackError as e:
            logger.error("Automatic rollback failed: %s", e)
            ctx.error(f"Automatic rollback failed: {e}")
            return False
        return outcome.success

    ctx.print(
        f"Monitoring {package_name}@{version} for {options.duration_minutes} min "
        f"(every {options.check_interval}s)"
    )
    github_api = github_client(config)
    with NpmRegistryClient(config.npm.registry, config.npm.downloads_api) as registry:
        checker = HealthChecker(config, package_name, version, registry, github_api)
        try:
            outcome = Monitor(
                checker,
                config.monitoring,
                options,
                get_monitoring_dir(repo_root),
                on_trigger=on_trigger if auto_rollback else None,
            ).run()
        finally:
            if github_api is not None:
                github_api.close()

    for snapshot in outcome.snapshots:
        m = snapshot.metrics
        ctx.print(
            f"Cycle {snapshot.cycle}: downloads={m.downloads} install_failures={m.install_failures} "
            f"errors={m.error_count} warnings={m.warning_count}"
        )
    report_path = write_monitoring_report(outcome, get_reports_dir(repo_root))
    ctx.print(f"[dim]Report: {report_path}[/dim]")

    data = {
        "version": version,
        "cycles": len(outcome.snapshots),
        "triggers": outcome.triggers,
        "rolled_back": outcome.rolled_back,
        "report": str(report_path),
    }
    if outcome.triggered:
        if not outcome.rolled_back:
            ctx.print(f"Run [bold]{rollback_command(version)}[/bold] to roll back")
        ctx.error("Rollback triggered", data)
        raise typer.Exit(15)
    ctx.success(f"{package_name}@{version} is healthy", data)
