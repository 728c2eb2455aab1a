"""Tests for changelog generation and editing."""

from pathlib import Path

import pytest
from conftest import CHANGELOG

from relflow.core.changelog import (
    ROLLED_BACK_MARKER,
    extract_section,
    group_commits,
    has_section,
    insert_release,
    mark_rolled_back,
    preview_release,
    update_changelog_file,
    write_with_backup,
)
from relflow.core.changelog_validator import validate_changelog
from relflow.core.commits import parse_commit

COMMITS = [
    parse_commit("1111111aaaa", "feat(api): add search"),
    parse_commit("2222222bbbb", "fix: handle empty input"),
    parse_commit("3333333cccc", "chore: bump deps"),
    parse_commit("4444444dddd", "feat!: drop legacy endpoint"),
]


class TestGroupCommits:
    """Tests for group_commits."""

    def test_sections(self) -> None:
        sections = group_commits(COMMITS)
        assert list(sections) == ["Added", "Changed", "Fixed"]
        assert sections["Added"][0] == "- **api:** add search (1111111)"
        assert sections["Fixed"] == ["- handle empty input (2222222)"]

    def test_breaking_listed_under_changed(self) -> None:
        sections = group_commits(COMMITS)
        assert sections["Changed"] == ["- **BREAKING:** drop legacy endpoint (4444444)"]

    def test_commit_links(self) -> None:
        sections = group_commits(COMMITS[1:2], "https://github.com/acme/x/")
        assert sections["Fixed"] == [
            "- handle empty input ([2222222](https://github.com/acme/x/commit/2222222bbbb))"
        ]

    def test_chores_excluded(self) -> None:
        assert group_commits([parse_commit("a", "chore: x")]) == {}


class TestInsertRelease:
    """Tests for insert_release."""

    def test_new_section_below_unreleased(self) -> None:
        result = insert_release(CHANGELOG, "1.1.0", "2024-02-01", group_commits(COMMITS[:2]))
        assert result.index("## [Unreleased]") < result.index("## [1.1.0] - 2024-02-01")
        assert result.index("## [1.1.0]") < result.index("## [1.0.0]")
        assert validate_changelog(result).valid

    def test_merges_unreleased_entries(self) -> None:
        content = CHANGELOG.replace(
            "## [Unreleased]\n", "## [Unreleased]\n\n### Added\n\n- Hand written note\n"
        )
        result = insert_release(content, "1.1.0", "2024-02-01", group_commits(COMMITS[:1]))
        section = extract_section(result, "1.1.0")
        assert section is not None
        assert section.index("Hand written note") < section.index("add search")
        assert extract_section(result, "Unreleased") == ""

    def test_drops_duplicate_entries(self) -> None:
        entry = "- **api:** add search (1111111)"
        content = CHANGELOG.replace("## [Unreleased]\n", f"## [Unreleased]\n\n### Added\n\n{entry}\n")
        result = insert_release(content, "1.1.0", "2024-02-01", group_commits(COMMITS[:1]))
        assert result.count("add search") == 1

    def test_empty_release_gets_placeholder(self) -> None:
        result = insert_release(CHANGELOG, "1.0.1", "2024-02-01", {})
        assert "Maintenance release" in (extract_section(result, "1.0.1") or "")

    def test_creates_changelog_when_empty(self) -> None:
        result = insert_release("", "0.1.0", "2024-02-01", group_commits(COMMITS[:1]))
        assert result.startswith("# Changelog")
        assert validate_changelog(result).valid

    def test_compare_links(self) -> None:
        result = insert_release(
            CHANGELOG,
            "1.1.0",
            "2024-02-01",
            {},
            repository_url="https://github.com/acme/x",
            previous_tag="v1.0.0",
        )
        assert "[Unreleased]: https://github.com/acme/x/compare/v1.1.0...HEAD" in result
        assert "[1.1.0]: https://github.com/acme/x/compare/v1.0.0...v1.1.0" in result


class TestChangelogFile:
    """Tests for file-level helpers."""

    def test_update_writes_backup(self, tmp_path: Path) -> None:
        path = tmp_path / "CHANGELOG.md"
        path.write_text(CHANGELOG)
        section = update_changelog_file(path, "1.1.0", "2024-02-01", COMMITS[:1])
        assert "add search" in section
        assert (tmp_path / "CHANGELOG.md.backup").read_text() == CHANGELOG

    def test_update_without_backup(self, tmp_path: Path) -> None:
        path = tmp_path / "CHANGELOG.md"
        path.write_text(CHANGELOG)
        update_changelog_file(path, "1.1.0", "2024-02-01", COMMITS[:1], backup=False)
        assert not (tmp_path / "CHANGELOG.md.backup").exists()

    def test_refuses_duplicate_version(self, tmp_path: Path) -> None:
        path = tmp_path / "CHANGELOG.md"
        path.write_text(CHANGELOG)
        with pytest.raises(ValueError, match="already has a section"):
            update_changelog_file(path, "1.0.0", "2024-02-01", COMMITS)

    def test_preview_does_not_write(self, tmp_path: Path) -> None:
        path = tmp_path / "CHANGELOG.md"
        path.write_text(CHANGELOG)
        section = preview_release(path, "1.1.0", "2024-02-01", COMMITS[:2])
        assert section.startswith("## [1.1.0] - 2024-02-01")
        assert path.read_text() == CHANGELOG

    def test_write_with_backup_new_file(self, tmp_path: Path) -> None:
        assert write_with_backup(tmp_path / "NEW.md", "x") is None

    def test_backup_into_directory(self, tmp_path: Path) -> None:
        path = tmp_path / "CHANGELOG.md"
        path.write_text(CHANGELOG)
        backups = tmp_path / ".relflow" / "backups"
        backup = write_with_backup(path, "new", backups)
        assert backup == backups / "CHANGELOG.md.backup"
        assert backup.read_text() == CHANGELOG
        assert not (tmp_path / "CHANGELOG.md.backup").exists()

    def test_has_section(self) -> None:
        assert has_section(CHANGELOG, "1.0.0")
        assert not has_section(CHANGELOG, "1.0")
        assert not has_section(CHANGELOG, "1.1.0")


class TestMarkRolledBack:
    """Tests for mark_rolled_back."""

    def test_marks_heading(self) -> None:
        content, changed = mark_rolled_back(CHANGELOG, "1.0.0", "0.9.0", "2024-03-01")
        assert changed
        assert f"## [1.0.0] - 2024-01-15 {ROLLED_BACK_MARKER}" in content
        assert "Rolled back on 2024-03-01" in content
        assert validate_changelog(content).valid

    def test_idempotent(self) -> None:
        once, _ = mark_rolled_back(CHANGELOG, "1.0.0", "0.9.0", "2024-03-01")
        twice, changed = mark_rolled_back(once, "1.0.0", "0.9.0", "2024-03-01")
        assert not changed
        assert twice == once

    def test_missing_version(self) -> None:
        content, changed = mark_rolled_back(CHANGELOG, "9.9.9", "1.0.0", "2024-03-01")
        assert not changed
        assert content == CHANGELOG
