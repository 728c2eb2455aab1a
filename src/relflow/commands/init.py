"""Init command implementation."""

import subprocess

import typer

from ..config import get_relflow_dir, write_config_template
from ..constants import BACKUPS_DIR, CONFIG_FILE, INIT_TOOL_CHECK_TIMEOUT, MONITORING_DIR, REPORTS_DIR
from ..core.manifest import ManifestError, read_manifest
from ..output import get_output_context
from .common import require_repo_root

# Generated artifacts stay out of the working tree status
RELFLOW_GITIGNORE = f"{REPORTS_DIR}/\n{BACKUPS_DIR}/\n{MONITORING_DIR}/\n*.backup\n"

TOOLS = {
    "git": ["git", "--version"],
    "npm": ["npm", "--version"],
    "gpg": ["gpg", "--version"],
    "gh": ["gh", "--version"],
}


def init(
    skip_tool_check: bool = typer.Option(
        False, "--skip-tool-check", help="Do not check for git, npm, gpg and gh"
    ),
) -> None:
    """Initialize relflow in the current repository."""
    ctx = get_output_context()
    repo_root = require_repo_root()

    relflow_dir = get_relflow_dir(repo_root)
    config_path = relflow_dir / CONFIG_FILE

    if ctx.dry_run:
        ctx.dry("Would initialize relflow in this repository:")
        ctx.console.print(f"  Create directory: {relflow_dir}")
        if not config_path.exists():
            ctx.console.print(f"  Create config: {config_path}")
        else:
            ctx.console.print(f"  Config already exists: {config_path}")
        ctx.console.print(f"  Create: {relflow_dir / '.gitignore'}")
        return

    relflow_dir.mkdir(exist_ok=True)
    gitignore = relflow_dir / ".gitignore"
    if not gitignore.exists():
        gitignore.write_text(RELFLOW_GITIGNORE)

    if not config_path.exists():
        try:
            package_name = read_manifest(repo_root / "package.json").name
        except ManifestError:
            package_name = None
        write_config_template(relflow_dir, package_name)
        ctx.console.print(f"[green]Created config template:[/green] {config_path}")
    else:
        ctx.console.print(f"[yellow]Config already exists:[/yellow] {config_path}")

    if skip_tool_check:
        ctx.console.print("\n[bold green]relflow initialized successfully![/bold green]")
        return

    all_ok = True
    for name, cmd in TOOLS.items():
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, timeout=INIT_TOOL_CHECK_TIMEOUT
            )
            if result.returncode == 0:
                ctx.console.print(f"[green]✓[/green] {name}")
            else:
                ctx.console.print(f"[red]✗[/red] {name}: {result.stderr.strip()[:50]}")
                all_ok = False
        except FileNotFoundError:
            ctx.console.print(f"[red]✗[/red] {name}: not found in PATH")
            all_ok = False
        except subprocess.TimeoutExpired:
            ctx.console.print(f"[yellow]?[/yellow] {name}: timed out")

    if not all_ok:
        ctx.console.print("\n[yellow]Warning: Some tools are missing or not configured[/yellow]")
        raise typer.Exit(2)

    ctx.console.print("\n[bold green]relflow initialized successfully![/bold green]")
