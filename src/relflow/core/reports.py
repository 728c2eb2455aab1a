"""JSON and Markdown rendering of workflow reports."""

import logging
from datetime import datetime
from pathlib import Path

from rich.table import Table

from ..constants import RELFLOW_DIR, REPORTS_DIR
from ..models import CheckStatus, Report

logger = logging.getLogger(__name__)

STATUS_ICONS = {
    CheckStatus.PASS: "✅",
    CheckStatus.FAIL: "❌",
    CheckStatus.WARNING: "⚠️",
    CheckStatus.SKIP: "⏭️",
}

STATUS_STYLES = {
    CheckStatus.PASS: "green",
    CheckStatus.FAIL: "red",
    CheckStatus.WARNING: "yellow",
    CheckStatus.SKIP: "dim",
}


def get_reports_dir(repo_root: Path) -> Path:
    """Default report directory for a repository."""
    return repo_root / RELFLOW_DIR / REPORTS_DIR


def timestamp_slug(moment: datetime | None = None) -> str:
    """Filesystem-safe timestamp such as 20250101-120000."""
    return (moment or datetime.now()).strftime("%Y%m%d-%H%M%S")


def _cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")


def render_markdown(report: Report, appendix: str | None = None) -> str:
    """Render a report as Markdown."""
    lines = [f"# {report.title}", ""]
    if report.version:
        lines.append(f"- **Version:** {report.version}")
    if report.environment:
        lines.append(f"- **Environment:** {report.environment}")
    lines.append(f"- **Dry run:** {'yes' if report.dry_run else 'no'}")
    lines.append(f"- **Started:** {report.started_at.isoformat(timespec='seconds')}")
    if report.finished_at:
        lines.append(f"- **Finished:** {report.finished_at.isoformat(timespec='seconds')}")
    lines += [
        "",
        "## Summary",
        "",
        "| Passed | Failed | Warnings | Skipped | Total |",
        "|---|---|---|---|---|",
        f"| {report.passed} | {report.failed} | {report.warnings} | {report.skipped} | {report.total} |",
        "",
        f"**Result:** {'PASSED' if report.ok else 'FAILED'}",
        "",
        "## Results",
        "",
        "| Phase | Status | Message | Duration |",
        "|---|---|---|---|",
    ]
    for record in report.records:
        lines.append(
            f"| {_cell(record.phase)} | {STATUS_ICONS[record.status]} {record.status.value} "
            f"| {_cell(record.message)} | {record.duration:.2f}s |"
        )

    detailed = [r for r in report.records if r.details]
    if detailed:
        lines += ["", "## Details"]
        for record in detailed:
            lines += ["", f"### {record.phase}", "", "```text", record.details.rstrip(), "```"]

    if appendix:
        lines += ["", appendix.rstrip()]
    return "\n".join(lines) + "\n"


def write_report(
    report: Report,
    directory: Path,
    name: str,
    appendix: str | None = None,
) -> tuple[Path, Path]:
    """Write a report as ``<name>-<timestamp>.json`` and ``.md``.

    Returns:
        Tuple of (json path, markdown path)
    """
    directory.mkdir(parents=True, exist_ok=True)
    stem = f"{name}-{timestamp_slug(report.started_at)}"
    json_path = directory / f"{stem}.json"
    md_path = directory / f"{stem}.md"
    json_path.write_text(report.model_dump_json(indent=2))
    md_path.write_text(render_markdown(report, appendix))
    logger.debug("Wrote report %s", md_path)
    return json_path, md_path


def report_table(report: Report) -> Table:
    """Rich table summarising a report for the console."""
    table = Table(title=report.title, show_lines=False)
    table.add_column("Phase", style="bold")
    table.add_column("Status")
    table.add_column("Message")
    table.add_column("Time", justify="right")
    for record in report.records:
        style = STATUS_STYLES[record.status]
        table.add_row(
            record.phase,
            f"[{style}]{record.status.value.upper()}[/{style}]",
            record.message,
            f"{record.duration:.1f}s",
        )
    return table
