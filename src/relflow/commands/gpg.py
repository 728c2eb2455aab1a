"""GPG command implementations."""

from pathlib import Path

import typer
from rich.table import Table

from ..core.gpg_setup import configure_signing, verify_gpg_setup
from ..output import get_output_context
from ..services import GitError, GpgError, get_repo_root
from ..services.gpg import export_public_key, generate_key, list_secret_keys

gpg_app = typer.Typer(help="GPG signing setup", no_args_is_help=True)


def _repo_root_or_none() -> Path | None:
    try:
        return get_repo_root()
    except GitError:
        return None


@gpg_app.command("list")
def gpg_list() -> None:
    """List secret keys available for signing."""
    ctx = get_output_context()
    try:
        keys = list_secret_keys()
    except GpgError as e:
        ctx.error(str(e))
        raise typer.Exit(2) from None

    if ctx.json_mode:
        ctx.print_json(
            {
                "keys": [
                    {
                        "key_id": k.key_id,
                        "fingerprint": k.fingerprint,
                        "length": k.length,
                        "expires": k.expires,
                        "uids": k.uids,
                    }
                    for k in keys
                ]
            }
        )
        return

    if not keys:
        ctx.console.print("[yellow]No secret keys found[/yellow]")
        ctx.console.print("Create one with: relflow gpg generate --name NAME --email EMAIL")
        return

    table = Table(title="Secret keys")
    table.add_column("Key ID", style="cyan")
    table.add_column("Size")
    table.add_column("User IDs")
    for key in keys:
        table.add_row(key.key_id, str(key.length), "\n".join(key.uids))
    ctx.console.print(table)


@gpg_app.command("verify")
def gpg_verify() -> None:
    """Check that release tags can be signed."""
    ctx = get_output_context()
    findings = verify_gpg_setup(_repo_root_or_none())

    if ctx.json_mode:
        ctx.print_json(
            {"findings": [{"name": f.name, "ok": f.ok, "message": f.message} for f in findings]}
        )
    else:
        for finding in findings:
            mark = "[green]✓[/green]" if finding.ok else "[red]✗[/red]"
            ctx.console.print(f"{mark} {finding.name}: {finding.message}")

    # tag.gpgsign is advisory; relflow signs tags explicitly
    if not all(f.ok for f in findings if f.name != "tag.gpgsign"):
        raise typer.Exit(1)


@gpg_app.command("configure")
def gpg_configure(
    key: str = typer.Option(..., "--key", "-k", help="Key id, fingerprint or email"),
    global_scope: bool = typer.Option(False, "--global", help="Write to the global git config"),
) -> None:
    """Configure git to sign commits and tags with a key."""
    ctx = get_output_context()
    repo_root = None if global_scope else _repo_root_or_none()
    if not global_scope and repo_root is None:
        ctx.error("Not a git repository (use --global to configure all repositories)")
        raise typer.Exit(3)

    if ctx.dry_run:
        scope = "global" if global_scope else "repository"
        ctx.dry(f"Would set user.signingkey={key}, commit.gpgsign and tag.gpgsign ({scope})")
        return

    try:
        settings = configure_signing(key, global_scope=global_scope, repo_root=repo_root)
    except (GpgError, GitError) as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None

    for name, value in settings:
        ctx.print(f"[green]✓[/green] {name} = {value}")
    ctx.result(dict(settings), "[bold green]Git signing configured[/bold green]")


@gpg_app.command("export")
def gpg_export(
    key: str = typer.Option(..., "--key", "-k", help="Key id, fingerprint or email"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write to file"),
) -> None:
    """Export a public key for upload to GitHub."""
    ctx = get_output_context()
    try:
        armored = export_public_key(key)
    except GpgError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None

    if output is None:
        ctx.console.print(armored, markup=False, highlight=False)
        return
    output.write_text(armored + "\n")
    ctx.success(f"Public key written to {output}", {"file": str(output)})
    ctx.print("Add it at https://github.com/settings/gpg/new")


@gpg_app.command("generate")
def gpg_generate(
    name: str = typer.Option(..., "--name", help="Real name for the key"),
    email: str = typer.Option(..., "--email", help="Email address for the key"),
    expire: str = typer.Option("2y", "--expire", help="Expiry (gpg syntax, e.g. 1y, 0 for none)"),
) -> None:
    """Generate an RSA 4096 signing key."""
    ctx = get_output_context()
    if ctx.dry_run:
        ctx.dry(f"Would generate RSA 4096 key for {name} <{email}> expiring {expire}")
        return

    try:
        generate_key(name, email, expire)
        keys = [k for k in list_secret_keys() if k.matches(email)]
    except GpgError as e:
        ctx.error(str(e))
        raise typer.Exit(1) from None

    key_id = keys[-1].key_id if keys else email
    ctx.success(f"Generated key {key_id}", {"key_id": key_id})
    ctx.print(f"Next: relflow gpg configure --key {key_id}")
