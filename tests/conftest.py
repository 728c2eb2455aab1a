"""Shared test fixtures for relflow tests."""

import io
import json
import os
import subprocess
import tarfile
from collections.abc import Generator
from pathlib import Path

import pytest
from typer.testing import CliRunner

from relflow.config import RelflowConfig, load_config

CHANGELOG = """# Changelog

All notable changes to this project will be documented in this file.

The format is based on [Keep a Changelog](https://keepachangelog.com/en/1.1.0/),
and this project adheres to [Semantic Versioning](https://semver.org/spec/v2.0.0.html).

## [Unreleased]

## [1.0.0] - 2024-01-15

### Added

- Initial release
"""

CONFIG = """[project]
package_name = "demo-pkg"
repository = "acme/demo-pkg"
repository_url = "https://github.com/acme/demo-pkg"
release_branch = "main"
tag_prefix = "v"

[[project.version_files]]
path = "src/types/version.ts"

[npm]
registry = "https://registry.example.test"
required_build_files = []

[git]
sign_tags = false
"""


def git(repo: Path, *args: str) -> str:
    """Run git in repo and return stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=repo,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


def make_tarball(destination: Path, files: dict[str, str]) -> Path:
    """Write a gzipped npm-style tarball (entries under package/)."""
    destination.mkdir(parents=True, exist_ok=True)
    path = destination / "demo-pkg-1.0.0.tgz"
    with tarfile.open(path, "w:gz") as archive:
        for name, content in files.items():
            data = content.encode()
            info = tarfile.TarInfo(f"package/{name}")
            info.size = len(data)
            archive.addfile(info, io.BytesIO(data))
    return path


def commit_all(repo: Path, message: str) -> None:
    """Stage everything and commit."""
    git(repo, "add", "-A")
    git(repo, "commit", "-m", message)


@pytest.fixture
def runner() -> CliRunner:
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def temp_git_repo(tmp_path: Path) -> Generator[Path, None, None]:
    """Create a temporary git repository.

    Initializes a git repo on branch main with user config and an initial
    commit. Changes cwd to the repo directory for the duration of the test.
    """
    git(tmp_path, "init")
    git(tmp_path, "config", "user.email", "test@test.com")
    git(tmp_path, "config", "user.name", "Test User")
    git(tmp_path, "config", "commit.gpgsign", "false")
    git(tmp_path, "config", "tag.gpgsign", "false")

    (tmp_path / "README.md").write_text("# Test\n")
    commit_all(tmp_path, "Initial commit")
    git(tmp_path, "branch", "-M", "main")

    original_cwd = os.getcwd()
    os.chdir(tmp_path)
    try:
        yield tmp_path
    finally:
        os.chdir(original_cwd)


@pytest.fixture
def npm_project(temp_git_repo: Path) -> Path:
    """Repository holding an npm package at 1.0.0 with relflow initialized.

    Contains package.json, package-lock.json, an embedded version file,
    a valid changelog, LICENSE and .relflow/config.toml, all committed,
    and a v1.0.0 tag on HEAD.
    """
    repo = temp_git_repo
    manifest = {
        "name": "demo-pkg",
        "version": "1.0.0",
        "description": "Demo package",
        "main": "dist/index.js",
        "bin": {"demo": "dist/cli.js"},
    }
    (repo / "package.json").write_text(json.dumps(manifest, indent=2) + "\n")
    lock = {
        "name": "demo-pkg",
        "version": "1.0.0",
        "lockfileVersion": 3,
        "packages": {"": {"name": "demo-pkg", "version": "1.0.0"}},
    }
    (repo / "package-lock.json").write_text(json.dumps(lock, indent=2) + "\n")
    (repo / "src" / "types").mkdir(parents=True)
    (repo / "src" / "types" / "version.ts").write_text("export const VERSION = '1.0.0';\n")
    (repo / "CHANGELOG.md").write_text(CHANGELOG)
    (repo / "LICENSE").write_text("MIT\n")

    relflow_dir = repo / ".relflow"
    relflow_dir.mkdir()
    (relflow_dir / "config.toml").write_text(CONFIG)
    (relflow_dir / ".gitignore").write_text("reports/\nbackups/\nmonitoring/\n*.backup\n")

    commit_all(repo, "chore: initial package")
    git(repo, "tag", "-a", "v1.0.0", "-m", "Release 1.0.0")
    return repo


@pytest.fixture
def project_config(npm_project: Path) -> RelflowConfig:
    """Loaded configuration of npm_project."""
    return load_config(npm_project / ".relflow")
