"""Tests for the version bump workflow."""

from datetime import date
from pathlib import Path

import pytest
from conftest import commit_all, git

from relflow.config import RelflowConfig
from relflow.core.manifest import read_manifest
from relflow.core.versioning import (
    BumpOptions,
    VersionBumpError,
    apply_bump,
    current_version,
    plan_bump,
    validate_before_bump,
)
from relflow.models import BumpType
from relflow.services.git import tag_exists


def add_commit(repo: Path, name: str, message: str) -> None:
    (repo / name).write_text(name)
    commit_all(repo, message)


class TestPlanBump:
    """Tests for plan_bump."""

    def test_current_version(self, npm_project: Path, project_config: RelflowConfig) -> None:
        assert str(current_version(npm_project, project_config)) == "1.0.0"

    def test_auto_detects_minor(self, npm_project: Path, project_config: RelflowConfig) -> None:
        add_commit(npm_project, "search.ts", "feat: add search")
        add_commit(npm_project, "bug.ts", "fix: crash")
        plan = plan_bump(npm_project, project_config, BumpOptions())
        assert str(plan.new) == "1.1.0"
        assert plan.auto_detected
        assert plan.since == "v1.0.0"
        assert plan.analysis.total == 2

    def test_breaking_gives_major(self, npm_project: Path, project_config: RelflowConfig) -> None:
        add_commit(npm_project, "api.ts", "feat!: new api")
        assert str(plan_bump(npm_project, project_config, BumpOptions()).new) == "2.0.0"

    def test_explicit_type(self, npm_project: Path, project_config: RelflowConfig) -> None:
        plan = plan_bump(
            npm_project, project_config, BumpOptions(bump_type=BumpType.PREMINOR, preid="beta")
        )
        assert str(plan.new) == "1.1.0-beta.0"
        assert not plan.auto_detected

    def test_forced_version(self, npm_project: Path, project_config: RelflowConfig) -> None:
        plan = plan_bump(npm_project, project_config, BumpOptions(force_version="3.0.0"))
        assert str(plan.new) == "3.0.0"

    def test_forced_lower_version_rejected(
        self, npm_project: Path, project_config: RelflowConfig
    ) -> None:
        with pytest.raises(VersionBumpError, match="lower"):
            plan_bump(npm_project, project_config, BumpOptions(force_version="0.9.0"))

    def test_forced_equal_version_rejected(
        self, npm_project: Path, project_config: RelflowConfig
    ) -> None:
        with pytest.raises(VersionBumpError, match="equals"):
            plan_bump(npm_project, project_config, BumpOptions(force_version="1.0.0"))

    def test_forced_invalid_version(self, npm_project: Path, project_config: RelflowConfig) -> None:
        with pytest.raises(VersionBumpError):
            plan_bump(npm_project, project_config, BumpOptions(force_version="1.0"))

    def test_existing_tag_rejected(self, npm_project: Path, project_config: RelflowConfig) -> None:
        git(npm_project, "tag", "-a", "v1.0.1", "-m", "stray")
        with pytest.raises(VersionBumpError, match="already exists"):
            plan_bump(npm_project, project_config, BumpOptions(bump_type=BumpType.PATCH))


class TestValidateBeforeBump:
    """Tests for validate_before_bump."""

    def test_clean_repo_passes(self, npm_project: Path, project_config: RelflowConfig) -> None:
        assert validate_before_bump(npm_project, project_config) == []

    def test_dirty_repo(self, npm_project: Path, project_config: RelflowConfig) -> None:
        (npm_project / "scratch.txt").write_text("x")
        assert validate_before_bump(npm_project, project_config) == [
            "Working tree has uncommitted changes"
        ]


class TestApplyBump:
    """Tests for apply_bump."""

    def test_commit_and_tag(self, npm_project: Path, project_config: RelflowConfig) -> None:
        add_commit(npm_project, "search.ts", "feat: add search")
        options = BumpOptions()
        plan = plan_bump(npm_project, project_config, options)
        result = apply_bump(npm_project, project_config, plan, options, today=date(2024, 2, 1))

        assert read_manifest(npm_project / "package.json").version == "1.1.0"
        assert "CHANGELOG.md" in result.changed_files
        assert result.tag == "v1.1.0"
        assert tag_exists("v1.1.0", cwd=npm_project)
        assert git(npm_project, "log", "-1", "--format=%s") == "chore(release): bump version to 1.1.0"
        assert git(npm_project, "status", "--porcelain") == ""
        assert "## [1.1.0] - 2024-02-01" in (npm_project / "CHANGELOG.md").read_text()
        assert not (npm_project / "CHANGELOG.md.backup").exists()

    def test_without_commit_keeps_backup(
        self, npm_project: Path, project_config: RelflowConfig
    ) -> None:
        options = BumpOptions(bump_type=BumpType.PATCH, commit=False)
        plan = plan_bump(npm_project, project_config, options)
        result = apply_bump(npm_project, project_config, plan, options, today=date(2024, 2, 1))

        assert result.commit_sha is None
        assert result.tag is None
        assert (npm_project / ".relflow" / "backups" / "CHANGELOG.md.backup").exists()
        assert not (npm_project / "CHANGELOG.md.backup").exists()
        assert not tag_exists("v1.0.1", cwd=npm_project)

    def test_without_changelog(self, npm_project: Path, project_config: RelflowConfig) -> None:
        options = BumpOptions(bump_type=BumpType.PATCH, changelog=False, tag=False)
        plan = plan_bump(npm_project, project_config, options)
        result = apply_bump(npm_project, project_config, plan, options)
        assert result.changelog_section is None
        assert "CHANGELOG.md" not in result.changed_files
        assert result.commit_sha is not None

    def test_keeps_handwritten_section(
        self, npm_project: Path, project_config: RelflowConfig
    ) -> None:
        path = npm_project / "CHANGELOG.md"
        path.write_text(
            path.read_text().replace(
                "## [1.0.0]", "## [1.0.1] - 2024-02-01\n\n### Fixed\n\n- Written by hand\n\n## [1.0.0]"
            )
        )
        commit_all(npm_project, "docs: changelog for 1.0.1")
        written = path.read_text()

        options = BumpOptions(bump_type=BumpType.PATCH)
        plan = plan_bump(npm_project, project_config, options)
        result = apply_bump(npm_project, project_config, plan, options)

        assert result.changelog_section == "### Fixed\n\n- Written by hand"
        assert path.read_text() == written
        assert read_manifest(npm_project / "package.json").version == "1.0.1"
        assert result.tag == "v1.0.1"
        assert git(npm_project, "status", "--porcelain") == ""
