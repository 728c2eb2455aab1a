"""npm CLI wrapper.

Registry reads go through ``npm view --json`` so that the user's npm
configuration (registry, auth tokens, proxies) is honoured.
"""

import json
import logging
import subprocess
from pathlib import Path
from typing import Any

from ..constants import NPM_INSTALL_TIMEOUT, NPM_PUBLISH_TIMEOUT, NPM_TIMEOUT

logger = logging.getLogger(__name__)


class NpmError(Exception):
    """npm command failed."""

    pass


def _run(
    args: list[str],
    cwd: Path | None,
    exec_path: str,
    timeout: int | None,
) -> subprocess.CompletedProcess[str]:
    cmd = [exec_path, *args]
    logger.debug("Running: %s", " ".join(cmd))
    try:
        return subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout or NPM_TIMEOUT,
        )
    except subprocess.TimeoutExpired as e:
        raise NpmError(f"npm {args[0]} timed out after {timeout or NPM_TIMEOUT} seconds") from e
    except FileNotFoundError:
        raise NpmError(f"npm executable not found: {exec_path}") from None


def run_npm(
    *args: str,
    cwd: Path | None = None,
    exec_path: str = "npm",
    check: bool = True,
    timeout: int | None = None,
) -> str:
    """Run an npm command and return stripped stdout.

    Raises:
        NpmError: If the command fails and check is True
    """
    result = _run(list(args), cwd, exec_path, timeout)
    if check and result.returncode != 0:
        raise NpmError(f"npm {' '.join(args)} failed: {result.stderr.strip()[-500:]}")
    return result.stdout.strip()


def _registry_args(registry: str | None) -> list[str]:
    return ["--registry", registry] if registry else []


def whoami(registry: str | None = None, exec_path: str = "npm") -> str | None:
    """Return the authenticated npm username, or None if not logged in."""
    result = _run(["whoami", *_registry_args(registry)], None, exec_path, None)
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def view(
    spec: str,
    *fields: str,
    registry: str | None = None,
    exec_path: str = "npm",
) -> Any:
    """Query registry metadata with ``npm view --json``.

    Returns:
        Decoded JSON value, or None if the package or version does not exist

    Raises:
        NpmError: On any failure other than a 404
    """
    result = _run(["view", spec, *fields, "--json", *_registry_args(registry)], None, exec_path, None)
    if result.returncode != 0:
        if "E404" in result.stderr or "404" in result.stderr:
            return None
        raise NpmError(f"npm view {spec} failed: {result.stderr.strip()[-500:]}")
    output = result.stdout.strip()
    if not output:
        return None
    try:
        return json.loads(output)
    except json.JSONDecodeError as e:
        raise NpmError(f"Invalid JSON from npm view {spec}: {e}") from e


def published_versions(name: str, registry: str | None = None, exec_path: str = "npm") -> list[str]:
    """All published versions of a package, oldest first."""
    versions = view(name, "versions", registry=registry, exec_path=exec_path)
    if versions is None:
        return []
    if isinstance(versions, str):
        return [versions]
    return list(versions)


def dist_tags(name: str, registry: str | None = None, exec_path: str = "npm") -> dict[str, str]:
    """Dist-tag to version mapping for a package."""
    tags = view(name, "dist-tags", registry=registry, exec_path=exec_path)
    return dict(tags) if isinstance(tags, dict) else {}


def version_exists(
    name: str, version: str, registry: str | None = None, exec_path: str = "npm"
) -> bool:
    """Return True if name@version is published."""
    return view(f"{name}@{version}", "version", registry=registry, exec_path=exec_path) is not None


def ping(registry: str | None = None, exec_path: str = "npm") -> bool:
    """Return True if the registry answers ``npm ping``."""
    return _run(["ping", *_registry_args(registry)], None, exec_path, None).returncode == 0


def audit(cwd: Path, level: str = "moderate", exec_path: str = "npm") -> dict[str, int]:
    """Run ``npm audit`` and return vulnerability counts by severity.

    npm audit exits non-zero when vulnerabilities are found, so the exit
    code is ignored and the JSON body is inspected instead.
    """
    result = _run(["audit", "--json", "--audit-level", level], cwd, exec_path, None)
    try:
        data = json.loads(result.stdout or "{}")
    except json.JSONDecodeError as e:
        raise NpmError(f"Invalid JSON from npm audit: {e}") from e
    if "error" in data and "metadata" not in data:
        raise NpmError(f"npm audit failed: {data['error'].get('summary', data['error'])}")
    counts = data.get("metadata", {}).get("vulnerabilities", {})
    return {k: int(v) for k, v in counts.items() if k != "total"}


def pack(
    cwd: Path, destination: Path, exec_path: str = "npm", ignore_scripts: bool = False
) -> Path:
    """Create the package tarball in destination and return its path.

    With ignore_scripts, prepack, prepare and postpack do not run, so the
    working tree is left exactly as it was.
    """
    destination.mkdir(parents=True, exist_ok=True)
    args = ["pack", "--json", "--pack-destination", str(destination)]
    if ignore_scripts:
        args.append("--ignore-scripts")
    output = run_npm(*args, cwd=cwd, exec_path=exec_path)
    try:
        entries = json.loads(output)
    except json.JSONDecodeError as e:
        raise NpmError(f"Invalid JSON from npm pack: {e}") from e
    if not entries:
        raise NpmError("npm pack produced no tarball")
    return destination / entries[0]["filename"]


def publish(
    cwd: Path,
    tag: str,
    access: str,
    registry: str | None = None,
    exec_path: str = "npm",
) -> str:
    """Publish the package in cwd."""
    return run_npm(
        "publish",
        "--tag",
        tag,
        "--access",
        access,
        *_registry_args(registry),
        cwd=cwd,
        exec_path=exec_path,
        timeout=NPM_PUBLISH_TIMEOUT,
    )


def deprecate(
    spec: str, message: str, registry: str | None = None, exec_path: str = "npm"
) -> None:
    """Mark name@version as deprecated."""
    run_npm("deprecate", spec, message, *_registry_args(registry), exec_path=exec_path)


def dist_tag_add(
    spec: str, tag: str, registry: str | None = None, exec_path: str = "npm"
) -> None:
    """Point a dist-tag at name@version."""
    run_npm("dist-tag", "add", spec, tag, *_registry_args(registry), exec_path=exec_path)


def install(
    spec: str,
    prefix: Path,
    registry: str | None = None,
    exec_path: str = "npm",
    timeout: int | None = None,
) -> tuple[bool, str]:
    """Install spec into an isolated prefix directory.

    Returns:
        Tuple of (success, combined output)
    """
    try:
        result = _run(
            [
                "install",
                spec,
                "--prefix",
                str(prefix),
                "--no-audit",
                "--no-fund",
                *_registry_args(registry),
            ],
            None,
            exec_path,
            timeout or NPM_INSTALL_TIMEOUT,
        )
    except NpmError as e:
        return False, str(e)
    return result.returncode == 0, (result.stdout + result.stderr).strip()
