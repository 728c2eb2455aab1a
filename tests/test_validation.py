"""Tests for pre-release validation."""

import sys
from pathlib import Path

import pytest

from relflow.config import RelflowConfig
from relflow.core.validation import ValidationOptions, parse_coverage, run_validation
from relflow.models import CheckStatus, Report
from relflow.services import git, npm
from relflow.services.npm import NpmError

PY = sys.executable


@pytest.fixture(autouse=True)
def clean_audit(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(npm, "audit", lambda cwd, level, **kw: {"low": 1})


def statuses(report: Report) -> dict[str, CheckStatus]:
    return {r.phase: r.status for r in report.records}


def validate(repo: Path, config: RelflowConfig, **kwargs) -> Report:
    return run_validation(repo, config, ValidationOptions(version="1.1.0", **kwargs))


def test_parse_coverage() -> None:
    output = "File      | % Stmts\nAll files |   87.5 |   80 |\n"
    assert parse_coverage(output) == 87.5
    assert parse_coverage("no table") is None


class TestRunValidation:
    """Tests for run_validation."""

    def test_ready_project(self, npm_project: Path, project_config: RelflowConfig) -> None:
        report = validate(npm_project, project_config)
        result = statuses(report)
        assert report.ok
        assert report.version == "1.1.0"
        assert report.environment == "production"
        assert result["git"] == CheckStatus.PASS
        assert result["version consistency"] == CheckStatus.PASS
        assert result["tag"] == CheckStatus.PASS
        assert result["changelog"] == CheckStatus.WARNING
        assert result["checks"] == CheckStatus.SKIP
        assert result["security audit"] == CheckStatus.PASS

    def test_collects_all_failures(self, npm_project: Path, project_config: RelflowConfig) -> None:
        (npm_project / "scratch.txt").write_text("x")
        (npm_project / "LICENSE").unlink()
        report = validate(npm_project, project_config)
        assert {r.phase for r in report.failures()} == {"git", "required files"}

    def test_invalid_version(self, npm_project: Path, project_config: RelflowConfig) -> None:
        report = run_validation(npm_project, project_config, ValidationOptions(version="1.1"))
        assert statuses(report)["version"] == CheckStatus.FAIL

    def test_existing_tag(self, npm_project: Path, project_config: RelflowConfig) -> None:
        report = run_validation(npm_project, project_config, ValidationOptions())
        assert "Tag v1.0.0 already exists" in report.failures()[0].message

    def test_inconsistent_versions(self, npm_project: Path, project_config: RelflowConfig) -> None:
        (npm_project / "src/types/version.ts").write_text("export const VERSION = '0.9.0';\n")
        git.run_git("commit", "-am", "drift", cwd=npm_project)
        report = validate(npm_project, project_config)
        assert statuses(report)["version consistency"] == CheckStatus.FAIL

    def test_branch_mismatch_is_warning(self, npm_project: Path, project_config: RelflowConfig) -> None:
        git.run_git("checkout", "-b", "feature", cwd=npm_project)
        report = validate(npm_project, project_config)
        assert statuses(report)["branch"] == CheckStatus.WARNING
        assert report.ok

    def test_quality_checks_and_coverage(
        self, npm_project: Path, project_config: RelflowConfig
    ) -> None:
        project_config.checks.lint = f'{PY} -c "raise SystemExit(1)"'
        project_config.checks.format = f'{PY} -c "raise SystemExit(1)"'
        project_config.checks.test = f"{PY} -c \"print('All files |   55.0 |')\""
        result = statuses(validate(npm_project, project_config))
        assert result["format"] == CheckStatus.WARNING
        assert result["lint"] == CheckStatus.FAIL
        assert result["test"] == CheckStatus.PASS
        assert result["coverage"] == CheckStatus.FAIL

    def test_critical_vulnerabilities(
        self, npm_project: Path, project_config: RelflowConfig, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(npm, "audit", lambda cwd, level, **kw: {"critical": 1})
        assert statuses(validate(npm_project, project_config))["security audit"] == CheckStatus.FAIL

    def test_audit_unavailable_is_warning(
        self, npm_project: Path, project_config: RelflowConfig, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def broken(*args, **kwargs):
            raise NpmError("npm not found in PATH")

        monkeypatch.setattr(npm, "audit", broken)
        assert statuses(validate(npm_project, project_config))["security audit"] == CheckStatus.WARNING

    def test_skips(self, npm_project: Path, project_config: RelflowConfig) -> None:
        result = statuses(
            validate(npm_project, project_config, skip_checks=True, skip_audit=True, skip_docs=True)
        )
        assert result["checks"] == CheckStatus.SKIP
        assert result["security audit"] == CheckStatus.SKIP
        assert result["documentation"] == CheckStatus.SKIP

    def test_tracked_sensitive_file(self, npm_project: Path, project_config: RelflowConfig) -> None:
        (npm_project / ".env").write_text("TOKEN=1\n")
        git.run_git("add", ".env", cwd=npm_project)
        git.run_git("commit", "-m", "oops", cwd=npm_project)
        report = validate(npm_project, project_config)
        assert statuses(report)["sensitive files"] == CheckStatus.WARNING
