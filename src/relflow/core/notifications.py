"""Release announcements: GitHub release, Discord and Slack webhooks."""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import httpx

from ..config import RelflowConfig
from ..models import CheckStatus, Report
from ..services import github
from ..services.github import GitHubError
from ..services.http import WebhookError, post_webhook
from .changelog import extract_section
from .manifest import read_manifest
from .semver import Version, tag_name

logger = logging.getLogger(__name__)

CHANNELS = ("github", "discord", "slack")

DISCORD_COLOR_RELEASE = 3447003
DISCORD_COLOR_PRERELEASE = 15844367
DISCORD_DESCRIPTION_LIMIT = 2000
SLACK_TEXT_LIMIT = 2900


@dataclass
class ReleaseAnnouncement:
    """Everything needed to announce one release."""

    package_name: str
    version: str
    tag: str
    notes: str
    description: str | None = None
    repository_url: str | None = None
    homepage: str | None = None

    @property
    def prerelease(self) -> bool:
        return Version.parse(self.version).is_prerelease

    @property
    def release_url(self) -> str | None:
        if not self.repository_url:
            return None
        return f"{self.repository_url.rstrip('/')}/releases/tag/{self.tag}"

    @property
    def npm_url(self) -> str:
        return f"https://www.npmjs.com/package/{self.package_name}/v/{self.version}"

    @property
    def install_command(self) -> str:
        return f"npm install {self.package_name}@{self.version}"

    @property
    def title(self) -> str:
        return f"{self.package_name} {self.tag}"


def parse_channels(text: str | None) -> list[str]:
    """Parse a comma separated channel list; empty means all channels.

    Raises:
        ValueError: For unknown channel names
    """
    if not text:
        return list(CHANNELS)
    channels = [c.strip().lower() for c in text.split(",") if c.strip()]
    unknown = [c for c in channels if c not in CHANNELS]
    if unknown:
        raise ValueError(f"Unknown channel(s): {', '.join(unknown)} (choose from {', '.join(CHANNELS)})")
    return list(dict.fromkeys(channels))


def build_announcement(
    repo_root: Path, config: RelflowConfig, version: str | None = None
) -> ReleaseAnnouncement:
    """Assemble announcement data from package.json and the changelog."""
    manifest = read_manifest(repo_root / config.project.manifest)
    version = version or manifest.version or ""
    Version.parse(version)
    changelog = repo_root / config.project.changelog
    notes = extract_section(changelog.read_text(), version) if changelog.exists() else None
    repository_url = config.project.repository_url
    if not repository_url and config.project.repository:
        repository_url = f"https://github.com/{config.project.repository}"
    return ReleaseAnnouncement(
        package_name=config.project.package_name or manifest.name or "package",
        version=version,
        tag=tag_name(version, config.project.tag_prefix),
        notes=notes or f"Release {version}. See {config.project.changelog} for details.",
        description=config.notifications.description or manifest.description,
        repository_url=repository_url,
        homepage=config.notifications.homepage,
    )


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 1].rstrip() + "…"


def discord_payload(announcement: ReleaseAnnouncement) -> dict[str, Any]:
    """Discord webhook body with a single embed."""
    fields = [
        {"name": "Version", "value": announcement.version, "inline": True},
        {
            "name": "Type",
            "value": "Prerelease" if announcement.prerelease else "Stable",
            "inline": True,
        },
        {"name": "Install", "value": f"`{announcement.install_command}`", "inline": False},
        {"name": "npm", "value": announcement.npm_url, "inline": False},
    ]
    embed: dict[str, Any] = {
        "title": f"🚀 {announcement.title} released",
        "description": _truncate(announcement.notes, DISCORD_DESCRIPTION_LIMIT),
        "color": DISCORD_COLOR_PRERELEASE if announcement.prerelease else DISCORD_COLOR_RELEASE,
        "fields": fields,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if announcement.release_url:
        embed["url"] = announcement.release_url
    if announcement.description:
        embed["footer"] = {"text": announcement.description}
    return {"username": "Release Bot", "embeds": [embed]}


def slack_payload(announcement: ReleaseAnnouncement) -> dict[str, Any]:
    """Slack incoming-webhook body using Block Kit."""
    blocks: list[dict[str, Any]] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": f"🚀 {announcement.title} released"},
        },
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": _truncate(announcement.notes, SLACK_TEXT_LIMIT)},
        },
        {
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f"*Version:*\n{announcement.version}"},
                {"type": "mrkdwn", "text": f"*Install:*\n`{announcement.install_command}`"},
            ],
        },
    ]
    buttons = [{"type": "button", "text": {"type": "plain_text", "text": "npm"}, "url": announcement.npm_url}]
    if announcement.release_url:
        buttons.insert(
            0,
            {
                "type": "button",
                "text": {"type": "plain_text", "text": "Release notes"},
                "url": announcement.release_url,
            },
        )
    blocks.append({"type": "actions", "elements": buttons})
    return {"text": f"{announcement.title} released", "blocks": blocks}


def _notify_github(
    repo_root: Path, config: RelflowConfig, announcement: ReleaseAnnouncement, dry_run: bool
) -> tuple[CheckStatus, str, str]:
    exec_path = config.github.exec
    repo = config.project.repository
    if dry_run:
        flag = " --prerelease" if announcement.prerelease else ""
        return (
            CheckStatus.SKIP,
            f"Would run gh release create {announcement.tag} --title '{announcement.title}'{flag}",
            announcement.notes,
        )
    try:
        if github.release_view(announcement.tag, repo=repo, cwd=repo_root, exec_path=exec_path):
            return CheckStatus.WARNING, f"Release {announcement.tag} already exists", ""
        url = github.release_create(
            announcement.tag,
            announcement.title,
            announcement.notes,
            prerelease=announcement.prerelease,
            repo=repo,
            cwd=repo_root,
            exec_path=exec_path,
        )
    except GitHubError as e:
        return CheckStatus.FAIL, str(e), ""
    return CheckStatus.PASS, f"Created release {announcement.tag}", url


def _notify_webhook(
    name: str,
    url: str | None,
    payload: dict[str, Any],
    dry_run: bool,
    client: httpx.Client | None,
) -> tuple[CheckStatus, str, str]:
    if not url:
        return CheckStatus.SKIP, f"No {name} webhook configured", ""
    body = json.dumps(payload, indent=2, ensure_ascii=False)
    if dry_run:
        return CheckStatus.SKIP, f"Would post to {name} webhook", body
    try:
        status_code = post_webhook(url, payload, client=client)
    except WebhookError as e:
        return CheckStatus.FAIL, str(e), ""
    return CheckStatus.PASS, f"Posted to {name} (HTTP {status_code})", ""


def send_notifications(
    repo_root: Path,
    config: RelflowConfig,
    announcement: ReleaseAnnouncement,
    channels: list[str],
    dry_run: bool = False,
    client: httpx.Client | None = None,
) -> Report:
    """Announce a release on each selected channel.

    A failing channel is recorded and the remaining channels still run.
    """
    report = Report(title="Release notifications", version=announcement.version, dry_run=dry_run)
    for channel in channels:
        if channel == "github":
            result = _notify_github(repo_root, config, announcement, dry_run)
        elif channel == "discord":
            result = _notify_webhook(
                "Discord",
                config.notifications.get_discord_webhook(),
                discord_payload(announcement),
                dry_run,
                client,
            )
        else:
            result = _notify_webhook(
                "Slack",
                config.notifications.get_slack_webhook(),
                slack_payload(announcement),
                dry_run,
                client,
            )
        status, message, details = result
        if status == CheckStatus.FAIL:
            logger.error("%s notification failed: %s", channel, message)
        report.record(channel, status, message, details)
    return report.finish()
