"""Tests for release tag creation."""

from pathlib import Path

import pytest
from conftest import git

from relflow.config import RelflowConfig
from relflow.core.tagging import (
    TagError,
    TagOptions,
    build_tag_message,
    changelog_excerpt,
    create_release_tag,
)
from relflow.services.git import tag_exists


class TestTagMessage:
    """Tests for tag message composition."""

    def test_message_fields(self) -> None:
        message = build_tag_message(
            "demo-pkg", "1.1.0", "main", 12, "- feature", "v1.1.0", signed=True,
            release_date="2024-02-01",
        )
        assert message.startswith("demo-pkg Release 1.1.0\n")
        assert "- Release Date: 2024-02-01" in message
        assert "- Total Commits: 12" in message
        assert "git verify-tag v1.1.0" in message

    def test_unsigned_omits_verify_hint(self) -> None:
        message = build_tag_message("x", "1.0.0", "main", 1, "", "v1.0.0", signed=False)
        assert "verify-tag" not in message

    def test_excerpt(self, npm_project: Path) -> None:
        excerpt = changelog_excerpt(npm_project / "CHANGELOG.md", "1.0.0")
        assert "Initial release" in excerpt

    def test_excerpt_fallback(self, tmp_path: Path) -> None:
        assert changelog_excerpt(tmp_path / "CHANGELOG.md", "1.0.0") == "See CHANGELOG.md for details."


class TestCreateReleaseTag:
    """Tests for create_release_tag."""

    def test_annotated_tag(self, npm_project: Path, project_config: RelflowConfig) -> None:
        result = create_release_tag(npm_project, project_config, TagOptions(version="1.1.0"))
        assert result.tag == "v1.1.0"
        assert not result.signed
        assert tag_exists("v1.1.0", cwd=npm_project)
        assert "demo-pkg Release 1.1.0" in git(npm_project, "tag", "-l", "--format=%(contents)", "v1.1.0")

    def test_skip_gpg_never_signs(self, npm_project: Path) -> None:
        result = create_release_tag(
            npm_project, RelflowConfig(), TagOptions(version="1.1.0", skip_gpg=True)
        )
        assert not result.signed
        assert result.command[:3] == ["git", "tag", "-a"]

    def test_dry_run_creates_nothing(self, npm_project: Path, project_config: RelflowConfig) -> None:
        result = create_release_tag(
            npm_project, project_config, TagOptions(version="1.1.0", dry_run=True)
        )
        assert result.dry_run
        assert not tag_exists("v1.1.0", cwd=npm_project)

    def test_defaults_to_manifest_version(
        self, npm_project: Path, project_config: RelflowConfig
    ) -> None:
        git(npm_project, "tag", "-d", "v1.0.0")
        result = create_release_tag(npm_project, project_config, TagOptions())
        assert result.tag == "v1.0.0"

    def test_existing_tag_requires_force(
        self, npm_project: Path, project_config: RelflowConfig
    ) -> None:
        with pytest.raises(TagError, match="already exists"):
            create_release_tag(npm_project, project_config, TagOptions(version="1.0.0"))

    def test_force_replaces(self, npm_project: Path, project_config: RelflowConfig) -> None:
        result = create_release_tag(
            npm_project, project_config, TagOptions(version="1.0.0", message="Redo", force=True)
        )
        assert result.replaced
        assert git(npm_project, "tag", "-l", "--format=%(contents)", "v1.0.0").strip() == "Redo"

    def test_dirty_tree_rejected(self, npm_project: Path, project_config: RelflowConfig) -> None:
        (npm_project / "scratch.txt").write_text("x")
        with pytest.raises(TagError, match="uncommitted"):
            create_release_tag(npm_project, project_config, TagOptions(version="1.1.0"))

    def test_invalid_version(self, npm_project: Path, project_config: RelflowConfig) -> None:
        with pytest.raises(TagError):
            create_release_tag(npm_project, project_config, TagOptions(version="1.1"))

    def test_push_without_remote(self, npm_project: Path, project_config: RelflowConfig) -> None:
        with pytest.raises(TagError, match="not configured"):
            create_release_tag(npm_project, project_config, TagOptions(version="1.1.0", push=True))
