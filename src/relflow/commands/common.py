"""Helpers shared by command implementations."""

import tomllib
from pathlib import Path

import typer
from pydantic import ValidationError

from ..config import RelflowConfig, get_relflow_dir, load_config
from ..core.reports import get_reports_dir, report_table, write_report
from ..models import Report
from ..output import OutputContext, get_output_context
from ..services import GitError, get_repo_root


def require_repo_root() -> Path:
    """Repository root, or exit 3 outside a git repository."""
    ctx = get_output_context()
    try:
        return get_repo_root()
    except GitError:
        ctx.error("Not a git repository")
        raise typer.Exit(3) from None


def load_repo_config(repo_root: Path) -> RelflowConfig:
    """Load .relflow/config.toml, exiting 1 on a malformed file."""
    ctx = get_output_context()
    try:
        return load_config(get_relflow_dir(repo_root))
    except (tomllib.TOMLDecodeError, ValidationError) as e:
        ctx.error(f"Invalid configuration: {e}")
        raise typer.Exit(1) from None


def is_dry_run(flag: bool) -> bool:
    """Command-level --dry-run or the global flag."""
    return flag or get_output_context().dry_run


def assume_yes(flag: bool) -> bool:
    """Command-level --yes or the global flag."""
    return flag or get_output_context().assume_yes


def confirm(message: str) -> bool:
    """Ask a yes/no question, defaulting to no."""
    return typer.confirm(message, default=False)


def save_and_show(
    ctx: OutputContext,
    report: Report,
    repo_root: Path,
    name: str,
    appendix: str | None = None,
    directory: Path | None = None,
) -> tuple[Path, Path]:
    """Write a report to disk and print it as a table or JSON."""
    json_path, md_path = write_report(
        report, directory or get_reports_dir(repo_root), name, appendix
    )
    if ctx.json_mode:
        ctx.print_json(
            {"report": report.model_dump(mode="json"), "files": [str(json_path), str(md_path)]}
        )
    else:
        ctx.console.print(report_table(report))
        ctx.console.print(
            f"Passed: {report.passed}  Failed: {report.failed}  "
            f"Warnings: {report.warnings}  Skipped: {report.skipped}"
        )
        ctx.console.print(f"[dim]Report: {md_path}[/dim]")
    return json_path, md_path
