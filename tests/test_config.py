"""Tests for configuration management."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from relflow.config import (
    ChecksConfig,
    NotificationsConfig,
    RelflowConfig,
    load_config,
    write_config_template,
)


class TestDefaults:
    """Tests for default values."""

    def test_relflow_defaults(self) -> None:
        config = RelflowConfig()
        assert config.project.tag_prefix == "v"
        assert config.project.release_branch == "main"
        assert config.npm.registry == "https://registry.npmjs.org"
        assert config.git.sign_tags is True
        assert config.monitoring.max_errors == 10
        assert config.monitoring.min_downloads == 5
        assert config.monitoring.max_install_failures == 3
        assert config.rollback.max_backups == 10

    def test_checks_categories_skip_unset(self) -> None:
        checks = ChecksConfig(test="npm test", lint="npm run lint")
        assert checks.get_categories() == {"lint": "npm run lint", "test": "npm test"}


class TestLoadConfig:
    """Tests for load_config."""

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        assert load_config(tmp_path / ".relflow") == RelflowConfig()

    def test_reads_values(self, tmp_path: Path) -> None:
        relflow_dir = tmp_path / ".relflow"
        relflow_dir.mkdir()
        (relflow_dir / "config.toml").write_text(
            '[project]\npackage_name = "x"\n\n[monitoring]\nmax_errors = 3\n'
        )
        config = load_config(relflow_dir)
        assert config.project.package_name == "x"
        assert config.monitoring.max_errors == 3
        assert config.monitoring.min_downloads == 5

    def test_invalid_value_rejected(self, tmp_path: Path) -> None:
        relflow_dir = tmp_path / ".relflow"
        relflow_dir.mkdir()
        (relflow_dir / "config.toml").write_text('[monitoring]\nmax_errors = "many"\n')
        with pytest.raises(ValidationError):
            load_config(relflow_dir)

    def test_template_roundtrip(self, tmp_path: Path) -> None:
        relflow_dir = tmp_path / ".relflow"
        path = write_config_template(relflow_dir, package_name="demo-pkg")
        assert path == relflow_dir / "config.toml"
        config = load_config(relflow_dir)
        assert config.project.package_name == "demo-pkg"
        assert config.checks.build == "npm run build"
        assert config.project.version_files[0].path == "src/types/version.ts"


class TestWebhooks:
    """Environment variables take precedence over config values."""

    def test_config_value_used_without_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("RELFLOW_SLACK_WEBHOOK", raising=False)
        config = NotificationsConfig(slack_webhook="https://hooks.example.test/config")
        assert config.get_slack_webhook() == "https://hooks.example.test/config"

    def test_env_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RELFLOW_DISCORD_WEBHOOK", "https://hooks.example.test/env")
        config = NotificationsConfig(discord_webhook="https://hooks.example.test/config")
        assert config.get_discord_webhook() == "https://hooks.example.test/env"
