"""relflow CLI: release engineering for npm packages."""

import typer

from relflow import __version__

from .commands import (
    backups_app,
    changelog_app,
    gpg_app,
    init,
    monitor,
    notify,
    publish,
    release,
    rollback,
    tag_app,
    validate,
    verify,
    version_app,
)
from .logging import configure_logging
from .output import OutputContext, set_output_context


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"relflow {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="relflow",
    help="Release engineering for npm packages: version, tag, publish, verify, roll back",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V", callback=_version_callback, is_eager=True, help="Show version"
    ),
    verbose: int = typer.Option(
        0, "--verbose", "-v", count=True, help="Log tool invocations (-v), add timestamps (-vv)"
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only warnings and errors"),
    json_output: bool = typer.Option(False, "--json", help="Print results as JSON on stdout"),
    no_color: bool = typer.Option(False, "--no-color", help="Plain text output"),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Show what would happen without changing anything"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Answer yes to every confirmation prompt"),
) -> None:
    """relflow - release engineering for npm packages."""
    console = configure_logging(verbosity=verbose, quiet=quiet, no_color=no_color)
    set_output_context(
        OutputContext(console=console, json_mode=json_output, dry_run=dry_run, assume_yes=yes)
    )


app.command()(init)
app.command()(validate)
app.command()(publish)
app.command()(verify)
app.command()(rollback)
app.command()(monitor)
app.command()(notify)
app.command()(release)

app.add_typer(version_app, name="version")
app.add_typer(changelog_app, name="changelog")
app.add_typer(tag_app, name="tag")
app.add_typer(gpg_app, name="gpg")
app.add_typer(backups_app, name="backups")


if __name__ == "__main__":
    app()
