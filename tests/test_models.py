"""Tests for data models."""

import json

from relflow.models import CheckStatus, PackageManifest, Report


class TestReport:
    """Tests for Report."""

    def test_counts(self) -> None:
        report = Report(title="Validation")
        report.record("git", CheckStatus.PASS, "clean")
        report.record("npm", CheckStatus.FAIL, "not logged in")
        report.record("docs", CheckStatus.WARNING, "no docs")
        report.record("audit", CheckStatus.SKIP, "skipped")

        assert (report.passed, report.failed, report.warnings, report.skipped) == (1, 1, 1, 1)
        assert report.total == 4
        assert not report.ok
        assert [r.phase for r in report.failures()] == ["npm"]

    def test_warnings_do_not_fail(self) -> None:
        report = Report(title="Validation")
        report.record("docs", CheckStatus.WARNING, "no docs")
        assert report.ok

    def test_duration_rounded(self) -> None:
        entry = Report(title="x").record("a", CheckStatus.PASS, "ok", duration=1.23456)
        assert entry.duration == 1.235

    def test_finish_and_serialise(self) -> None:
        report = Report(title="Publish", version="1.2.0", dry_run=True)
        report.record("build", CheckStatus.PASS, "built")
        data = json.loads(report.finish().model_dump_json())
        assert data["finished_at"] is not None
        assert data["passed"] == 1
        assert data["ok"] is True
        assert data["records"][0]["status"] == "pass"


class TestPackageManifest:
    """Tests for PackageManifest."""

    def test_extra_keys_kept(self) -> None:
        manifest = PackageManifest.model_validate(
            {"name": "x", "version": "1.0.0", "scripts": {"test": "jest"}}
        )
        assert manifest.model_dump()["scripts"] == {"test": "jest"}

    def test_publish_config_alias(self) -> None:
        manifest = PackageManifest.model_validate({"publishConfig": {"access": "public"}})
        assert manifest.publish_config == {"access": "public"}

    def test_binaries(self) -> None:
        assert PackageManifest(name="x").binaries() == []
        assert PackageManifest(name="x", bin={"a": "a.js", "b": "b.js"}).binaries() == ["a", "b"]
