"""Verify command implementation."""

import os

import typer

from ..config import RelflowConfig
from ..constants import GITHUB_TOKEN_ENV
from ..core.manifest import ManifestError, read_manifest
from ..core.semver import is_valid
from ..core.verification import ReleaseVerifier, VerificationLevel, VerifyOptions
from ..output import get_output_context
from ..services.http import GitHubApiClient, NpmRegistryClient
from .common import load_repo_config, require_repo_root, save_and_show


def github_client(config: RelflowConfig) -> GitHubApiClient | None:
    """GitHub REST client when a repository is configured."""
    if not config.project.repository:
        return None
    return GitHubApiClient(
        config.project.repository,
        api_url=config.github.api_url,
        token=os.environ.get(GITHUB_TOKEN_ENV),
    )


def verify(
    version: str | None = typer.Option(
        None, "--version", help="Published version to verify (default: package.json)"
    ),
    level: VerificationLevel = typer.Option(
        VerificationLevel.STANDARD, "--level", "-l", case_sensitive=False, help="Check depth"
    ),
    continue_on_failure: bool = typer.Option(
        False, "--continue-on-failure", help="Run every check even after a failure"
    ),
    stress_installs: int = typer.Option(
        5, "--stress-installs", min=1, help="Parallel installs in the comprehensive stress test"
    ),
) -> None:
    """Verify that a published release is live and installable."""
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

    binaries = manifest.binaries()
    options = VerifyOptions(
        package_name=package_name,
        version=version,
        level=level,
        continue_on_failure=continue_on_failure,
        stress_installs=stress_installs,
        binary=config.npm.binary or (binaries[0] if binaries else None),
    )
    github_api = github_client(config)
    with NpmRegistryClient(config.npm.registry, config.npm.downloads_api) as registry:
        try:
            report = ReleaseVerifier(config, options, registry, github_api).run()
        finally:
            if github_api is not None:
                github_api.close()

    save_and_show(ctx, report, repo_root, "verification")
    if not report.ok:
        ctx.error(f"Verification of {version} failed")
        raise typer.Exit(11)
    ctx.success(f"{options.package_name}@{version} verified")
