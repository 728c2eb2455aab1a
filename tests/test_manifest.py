"""Tests for package.json and version file handling."""

import json
from pathlib import Path

import pytest

from relflow.config import ProjectConfig, RelflowConfig, VersionFile
from relflow.core.manifest import (
    ManifestError,
    find_inconsistencies,
    read_manifest,
    read_version_file,
    set_version,
    version_inventory,
    write_manifest_version,
)


class TestReadManifest:
    """Tests for read_manifest."""

    def test_reads_fields(self, npm_project: Path) -> None:
        manifest = read_manifest(npm_project / "package.json")
        assert manifest.name == "demo-pkg"
        assert manifest.version == "1.0.0"
        assert manifest.binaries() == ["demo"]

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ManifestError, match="not found"):
            read_manifest(tmp_path / "package.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_text("{not json")
        with pytest.raises(ManifestError, match="not valid JSON"):
            read_manifest(tmp_path / "package.json")

    def test_string_bin_uses_unscoped_name(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_text(
            json.dumps({"name": "@acme/tool", "version": "1.0.0", "bin": "cli.js"})
        )
        assert read_manifest(tmp_path / "package.json").binaries() == ["tool"]


class TestWriteVersion:
    """Version writes keep the rest of the file intact."""

    def test_preserves_key_order_and_indent(self, tmp_path: Path) -> None:
        path = tmp_path / "package.json"
        path.write_text('{\n    "name": "x",\n    "version": "1.0.0",\n    "private": true\n}\n')
        write_manifest_version(path, "1.1.0")
        assert path.read_text() == (
            '{\n    "name": "x",\n    "version": "1.1.0",\n    "private": true\n}\n'
        )

    def test_set_version_updates_every_file(self, npm_project: Path) -> None:
        project = RelflowConfig().project
        changed = set_version(npm_project, project, "1.2.0")

        assert changed == ["package.json", "package-lock.json", "src/types/version.ts"]
        lock = json.loads((npm_project / "package-lock.json").read_text())
        assert lock["version"] == "1.2.0"
        assert lock["packages"][""]["version"] == "1.2.0"
        assert "'1.2.0'" in (npm_project / "src/types/version.ts").read_text()

    def test_unmatched_version_file_is_skipped(self, npm_project: Path) -> None:
        (npm_project / "src/types/version.ts").write_text("export default {}\n")
        changed = set_version(npm_project, ProjectConfig(), "1.2.0")
        assert "src/types/version.ts" not in changed


class TestInventory:
    """Tests for version_inventory and find_inconsistencies."""

    def test_consistent(self, npm_project: Path) -> None:
        inventory = version_inventory(npm_project, ProjectConfig())
        assert set(inventory.values()) == {"1.0.0"}
        assert find_inconsistencies(inventory, "1.0.0") == []

    def test_reports_mismatch(self, npm_project: Path) -> None:
        (npm_project / "src/types/version.ts").write_text("export const VERSION = '0.9.0';\n")
        inventory = version_inventory(npm_project, ProjectConfig())
        assert find_inconsistencies(inventory, "1.0.0") == ["src/types/version.ts: 0.9.0"]

    def test_custom_pattern(self, tmp_path: Path) -> None:
        (tmp_path / "meta.py").write_text('__version__ = "3.1.4"\n')
        vf = VersionFile(path="meta.py", pattern=r'__version__ = "(?P<version>[^"]+)"')
        assert read_version_file(tmp_path, vf) == "3.1.4"

    def test_pattern_requires_version_group(self) -> None:
        with pytest.raises(ValueError, match="version"):
            VersionFile(path="x", pattern=r"VERSION = (\S+)")
