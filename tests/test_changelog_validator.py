"""Tests for changelog validation and fixes."""

from conftest import CHANGELOG

from relflow.core.changelog_validator import ChangelogIssue, fix_changelog, validate_changelog


def messages(issues: list[ChangelogIssue]) -> str:
    return "\n".join(str(i) for i in issues)


class TestValidateChangelog:
    """Tests for validate_changelog."""

    def test_valid_changelog(self) -> None:
        result = validate_changelog(CHANGELOG)
        assert result.valid
        assert result.errors == []
        assert result.versions == ["1.0.0"]

    def test_missing_unreleased_rejected(self) -> None:
        result = validate_changelog(CHANGELOG.replace("## [Unreleased]\n", ""))
        assert not result.valid
        assert "Missing [Unreleased] section" in messages(result.errors)

    def test_missing_title(self) -> None:
        result = validate_changelog(CHANGELOG.replace("# Changelog", "# History"))
        assert "title" in messages(result.errors)

    def test_invalid_version_label(self) -> None:
        content = CHANGELOG + "\n## [1.0] - 2023-01-01\n\n### Added\n\n- x\n"
        result = validate_changelog(content)
        assert "Invalid version format '1.0'" in messages(result.errors)

    def test_duplicate_version(self) -> None:
        content = CHANGELOG + "\n## [1.0.0] - 2023-01-01\n\n### Added\n\n- x\n"
        assert "Duplicate version '1.0.0'" in messages(validate_changelog(content).errors)

    def test_missing_date(self) -> None:
        content = CHANGELOG.replace("## [1.0.0] - 2024-01-15", "## [1.0.0]")
        assert "expected ' - YYYY-MM-DD'" in messages(validate_changelog(content).errors)

    def test_dates_out_of_order_is_error(self) -> None:
        content = CHANGELOG + "\n## [0.9.0] - 2024-06-01\n\n### Added\n\n- x\n"
        result = validate_changelog(content)
        assert "chronological" in messages(result.errors)

    def test_versions_out_of_order_is_warning(self) -> None:
        content = CHANGELOG + "\n## [1.1.0] - 2023-01-01\n\n### Added\n\n- x\n"
        result = validate_changelog(content)
        assert result.valid
        assert "listed below older version" in messages(result.warnings)

    def test_nonstandard_section_is_warning(self) -> None:
        content = CHANGELOG.replace("### Added", "### Improvements")
        result = validate_changelog(content)
        assert result.valid
        assert "Non-standard section 'Improvements'" in messages(result.warnings)

    def test_headings_inside_code_fence_ignored(self) -> None:
        content = CHANGELOG + "\n```\n## [bogus]\n```\n"
        assert validate_changelog(content).valid

    def test_issue_line_numbers(self) -> None:
        content = CHANGELOG.replace("## [1.0.0]", "##[1.0.0]")
        issue = validate_changelog(content).errors[0]
        assert issue.line == 10
        assert str(issue).startswith("line 10:")


class TestFixChangelog:
    """Tests for fix_changelog."""

    def test_fixes_heading_spacing(self) -> None:
        broken = CHANGELOG.replace("## [1.0.0]", "##[1.0.0]").replace("### Added", "###Added")
        fixed, fixes = fix_changelog(broken)
        assert fixed == CHANGELOG
        assert len(fixes) == 2

    def test_inserts_unreleased(self) -> None:
        fixed, fixes = fix_changelog(CHANGELOG.replace("## [Unreleased]\n\n", ""))
        assert "Inserted missing [Unreleased] section" in fixes
        assert validate_changelog(fixed).valid

    def test_valid_changelog_unchanged(self) -> None:
        assert fix_changelog(CHANGELOG) == (CHANGELOG, [])
