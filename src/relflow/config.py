"""Configuration management for relflow."""

import os
import re
import tomllib
from pathlib import Path

import tomli_w
from pydantic import BaseModel, Field, field_validator

from .constants import CONFIG_FILE, DISCORD_WEBHOOK_ENV, RELFLOW_DIR, SLACK_WEBHOOK_ENV

DEFAULT_VERSION_PATTERN = r"export const VERSION = ['\"](?P<version>[^'\"]*)['\"]"


class VersionFile(BaseModel):
    """A source file that embeds the package version.

    The pattern must contain a named group ``version`` marking the text
    that is replaced when the version changes.
    """

    path: str = Field(description="Path relative to the repository root")
    pattern: str = Field(default=DEFAULT_VERSION_PATTERN, description="Regex with a 'version' group")

    @field_validator("pattern")
    @classmethod
    def _has_version_group(cls, value: str) -> str:
        compiled = re.compile(value)
        if "version" not in compiled.groupindex:
            raise ValueError("pattern must define a named group 'version'")
        return value


class ProjectConfig(BaseModel):
    """Project-level configuration."""

    package_name: str | None = Field(
        default=None, description="Expected npm package name (defaults to package.json name)"
    )
    repository: str | None = Field(default=None, description="GitHub repository as owner/name")
    repository_url: str | None = Field(
        default=None, description="Web URL used for commit and compare links"
    )
    release_branch: str = "main"
    tag_prefix: str = "v"
    manifest: str = "package.json"
    changelog: str = "CHANGELOG.md"
    version_files: list[VersionFile] = Field(
        default_factory=lambda: [VersionFile(path="src/types/version.ts")]
    )


class ChecksConfig(BaseModel):
    """Configuration for quality check commands run before a release."""

    lint: str | None = Field(default=None, description="Lint command (e.g., 'npm run lint')")
    typecheck: str | None = Field(
        default=None, description="Typecheck command (e.g., 'npm run typecheck')"
    )
    test: str | None = Field(default=None, description="Test command (e.g., 'npm test')")
    build: str | None = Field(default=None, description="Build command (e.g., 'npm run build')")
    format: str | None = Field(
        default=None, description="Format check command; failures are warnings"
    )
    order: list[str] = Field(
        default=["format", "lint", "typecheck", "test", "build"],
        description="Execution order for categories",
    )

    def get_categories(self) -> dict[str, str]:
        """Get enabled category commands as {name: command} dict."""
        categories = {}
        for name in self.order:
            cmd = getattr(self, name, None)
            if cmd:
                categories[name] = cmd
        return categories


class NpmConfig(BaseModel):
    """Configuration for npm registry interaction."""

    exec: str = "npm"
    registry: str = "https://registry.npmjs.org"
    downloads_api: str = "https://api.npmjs.org/downloads"
    access: str = "public"
    default_tag: str = "latest"
    audit_level: str = "moderate"
    required_build_files: list[str] = Field(default_factory=lambda: ["dist/index.js"])
    binary: str | None = Field(default=None, description="CLI binary name for smoke tests")


class GitConfig(BaseModel):
    """Configuration for git tagging."""

    remote: str = "origin"
    sign_tags: bool = True
    gpg_key: str | None = None


class GitHubConfig(BaseModel):
    """Configuration for GitHub integration."""

    exec: str = "gh"
    api_url: str = "https://api.github.com"


class NotificationsConfig(BaseModel):
    """Chat webhook configuration.

    Webhook URLs are secrets, so environment variables take precedence
    over values stored in config.toml.
    """

    discord_webhook: str | None = None
    slack_webhook: str | None = None
    description: str | None = None
    homepage: str | None = None

    def get_discord_webhook(self) -> str | None:
        """Return the Discord webhook URL, preferring the environment."""
        return os.environ.get(DISCORD_WEBHOOK_ENV) or self.discord_webhook

    def get_slack_webhook(self) -> str | None:
        """Return the Slack webhook URL, preferring the environment."""
        return os.environ.get(SLACK_WEBHOOK_ENV) or self.slack_webhook


class MonitoringConfig(BaseModel):
    """Thresholds and cadence for post-release monitoring."""

    duration_minutes: int = 60
    check_interval: int = 30
    max_errors: int = 10
    min_downloads: int = 5
    max_install_failures: int = 3
    install_attempts: int = 5
    install_success_rate: float = 0.8
    max_recent_issues: int = 5
    max_critical_issues: int = 2
    critical_keywords: list[str] = Field(
        default_factory=lambda: ["crash", "error", "bug", "broken", "fail", "problem"]
    )


class RollbackConfig(BaseModel):
    """Configuration for rollback and backups."""

    max_backups: int = 10
    build_dirs: list[str] = Field(default_factory=lambda: ["dist"])


class ValidationConfig(BaseModel):
    """Configuration for pre-release validation."""

    environment: str = "production"
    min_coverage: float = 80.0
    required_files: list[str] = Field(
        default_factory=lambda: ["package.json", "README.md", "CHANGELOG.md", "LICENSE"]
    )


class DocsConfig(BaseModel):
    """Configuration for documentation handling."""

    dir: str = "docs"
    mkdocs_file: str = "mkdocs.yml"
    build_command: str | None = Field(
        default=None, description="Docs build command (e.g., 'mkdocs build --strict')"
    )


class RelflowConfig(BaseModel):
    """Root configuration for relflow."""

    project: ProjectConfig = Field(default_factory=ProjectConfig)
    checks: ChecksConfig = Field(default_factory=ChecksConfig)
    npm: NpmConfig = Field(default_factory=NpmConfig)
    git: GitConfig = Field(default_factory=GitConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    rollback: RollbackConfig = Field(default_factory=RollbackConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    docs: DocsConfig = Field(default_factory=DocsConfig)


def get_relflow_dir(repo_root: Path) -> Path:
    """Return the .relflow directory for a repository."""
    return repo_root / RELFLOW_DIR


def load_config(relflow_dir: Path) -> RelflowConfig:
    """Load config from .relflow/config.toml.

    Args:
        relflow_dir: Path to .relflow directory

    Returns:
        Loaded configuration, or defaults if config.toml doesn't exist
    """
    config_path = relflow_dir / CONFIG_FILE
    if not config_path.exists():
        return RelflowConfig()
    with open(config_path, "rb") as f:
        data = tomllib.load(f)
    return RelflowConfig.model_validate(data)


def write_config_template(relflow_dir: Path, package_name: str | None = None) -> Path:
    """Write default config.toml template.

    Args:
        relflow_dir: Path to .relflow directory
        package_name: Package name to pre-fill, usually read from package.json

    Returns:
        Path to the written config file
    """
    config_path = relflow_dir / CONFIG_FILE
    template = {
        "project": {
            "package_name": package_name or "your-package",
            "repository": "owner/repo",
            "repository_url": "https://github.com/owner/repo",
            "release_branch": "main",
            "tag_prefix": "v",
            "version_files": [
                {"path": "src/types/version.ts", "pattern": DEFAULT_VERSION_PATTERN},
            ],
        },
        "checks": {
            "lint": "npm run lint",
            "typecheck": "npm run typecheck",
            "test": "npm test -- --coverage",
            "build": "npm run build",
            "order": ["format", "lint", "typecheck", "test", "build"],
        },
        "npm": {
            "registry": "https://registry.npmjs.org",
            "access": "public",
            "default_tag": "latest",
            "audit_level": "moderate",
            "required_build_files": ["dist/index.js"],
        },
        "git": {"remote": "origin", "sign_tags": True},
        "github": {"exec": "gh"},
        # Webhook URLs are read from RELFLOW_DISCORD_WEBHOOK / RELFLOW_SLACK_WEBHOOK
        "notifications": {},
        "monitoring": {
            "duration_minutes": 60,
            "check_interval": 30,
            "max_errors": 10,
            "min_downloads": 5,
            "max_install_failures": 3,
        },
        "rollback": {"max_backups": 10, "build_dirs": ["dist"]},
        "validation": {"environment": "production", "min_coverage": 80.0},
        "docs": {"dir": "docs", "mkdocs_file": "mkdocs.yml"},
    }
    relflow_dir.mkdir(parents=True, exist_ok=True)
    with open(config_path, "wb") as f:
        tomli_w.dump(template, f)
    return config_path
