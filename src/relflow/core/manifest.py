"""package.json, package-lock.json and embedded version file handling.

Writes preserve key order and the file's existing indentation so that
version bumps produce one-line diffs.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..config import ProjectConfig, VersionFile
from ..models import PackageManifest

logger = logging.getLogger(__name__)

LOCKFILE = "package-lock.json"


class ManifestError(Exception):
    """package.json is missing or malformed."""

    pass


def _detect_indent(text: str) -> int | str:
    for line in text.splitlines()[1:]:
        stripped = line.lstrip()
        if stripped and line != stripped:
            prefix = line[: len(line) - len(stripped)]
            return "\t" if prefix.startswith("\t") else len(prefix)
    return 2


def read_json(path: Path) -> dict[str, Any]:
    """Read a JSON object from path.

    Raises:
        ManifestError: If the file is missing or not a JSON object
    """
    if not path.exists():
        raise ManifestError(f"{path.name} not found")
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise ManifestError(f"{path.name} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ManifestError(f"{path.name} must contain a JSON object")
    return data


def write_json(path: Path, data: dict[str, Any]) -> None:
    """Write a JSON object keeping the existing file's indentation."""
    indent = _detect_indent(path.read_text()) if path.exists() else 2
    path.write_text(json.dumps(data, indent=indent, ensure_ascii=False) + "\n")


def read_manifest(path: Path) -> PackageManifest:
    """Load package.json into a PackageManifest."""
    try:
        return PackageManifest.model_validate(read_json(path))
    except ValidationError as e:
        raise ManifestError(f"{path.name} has unexpected field types: {e}") from e


def write_manifest_version(path: Path, version: str) -> None:
    """Set the version field of package.json."""
    data = read_json(path)
    data["version"] = version
    write_json(path, data)


def update_lockfile_version(path: Path, version: str) -> bool:
    """Set the root version in package-lock.json. Returns False if absent."""
    if not path.exists():
        return False
    data = read_json(path)
    data["version"] = version
    root = data.get("packages", {}).get("")
    if isinstance(root, dict):
        root["version"] = version
    write_json(path, data)
    return True


def read_version_file(repo_root: Path, version_file: VersionFile) -> str | None:
    """Version embedded in a source file, None if missing or unmatched."""
    path = repo_root / version_file.path
    if not path.exists():
        return None
    match = re.search(version_file.pattern, path.read_text())
    return match.group("version") if match else None


def update_version_file(repo_root: Path, version_file: VersionFile, version: str) -> bool:
    """Replace the embedded version. Returns False if missing or unmatched."""
    path = repo_root / version_file.path
    if not path.exists():
        return False
    text = path.read_text()
    match = re.search(version_file.pattern, text)
    if not match:
        logger.warning("Version pattern not found in %s", version_file.path)
        return False
    start, end = match.span("version")
    path.write_text(text[:start] + version + text[end:])
    return True


def set_version(repo_root: Path, project: ProjectConfig, version: str) -> list[str]:
    """Write version to the manifest, lockfile and every version file.

    Returns:
        Repository-relative paths that were changed
    """
    changed = [project.manifest]
    write_manifest_version(repo_root / project.manifest, version)
    if update_lockfile_version(repo_root / LOCKFILE, version):
        changed.append(LOCKFILE)
    for version_file in project.version_files:
        if update_version_file(repo_root, version_file, version):
            changed.append(version_file.path)
    return changed


def version_inventory(repo_root: Path, project: ProjectConfig) -> dict[str, str | None]:
    """Version recorded in each tracked file (None where unavailable)."""
    inventory: dict[str, str | None] = {}
    inventory[project.manifest] = read_manifest(repo_root / project.manifest).version
    lock_path = repo_root / LOCKFILE
    if lock_path.exists():
        inventory[LOCKFILE] = read_json(lock_path).get("version")
    for version_file in project.version_files:
        if (repo_root / version_file.path).exists():
            inventory[version_file.path] = read_version_file(repo_root, version_file)
    return inventory


def find_inconsistencies(inventory: dict[str, str | None], expected: str) -> list[str]:
    """Describe every tracked file whose version differs from expected."""
    return [
        f"{path}: {found or 'no version found'}"
        for path, found in inventory.items()
        if found != expected
    ]
