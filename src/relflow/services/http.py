"""HTTP clients for the npm registry, GitHub REST API and chat webhooks.

All clients accept an injected ``httpx.Client`` so tests can supply an
``httpx.MockTransport``.
"""

import logging
from datetime import datetime
from typing import Any
from urllib.parse import quote

import httpx

from ..constants import HTTP_CONNECT_TIMEOUT, HTTP_TIMEOUT

logger = logging.getLogger(__name__)


class RegistryError(Exception):
    """Registry or API request failed."""

    pass


class WebhookError(Exception):
    """Webhook delivery failed."""

    pass


def default_client(headers: dict[str, str] | None = None) -> httpx.Client:
    """Create an httpx client with relflow's standard timeouts."""
    return httpx.Client(
        timeout=httpx.Timeout(HTTP_TIMEOUT, connect=HTTP_CONNECT_TIMEOUT),
        headers={"User-Agent": "relflow", **(headers or {})},
        follow_redirects=True,
    )


def _get_json(client: httpx.Client, url: str, params: dict[str, Any] | None = None) -> Any:
    """GET a JSON document, returning None on 404."""
    logger.debug("GET %s", url)
    try:
        response = client.get(url, params=params)
    except httpx.RequestError as e:
        raise RegistryError(f"Request to {url} failed: {e}") from e
    if response.status_code == 404:
        return None
    try:
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise RegistryError(f"{url} returned HTTP {response.status_code}") from e
    return response.json()


def encode_package_name(name: str) -> str:
    """Encode a (possibly scoped) package name for registry URLs."""
    return quote(name, safe="@")


class NpmRegistryClient:
    """Read-only client for registry metadata and download statistics."""

    def __init__(
        self,
        registry: str = "https://registry.npmjs.org",
        downloads_api: str = "https://api.npmjs.org/downloads",
        client: httpx.Client | None = None,
    ) -> None:
        self.registry = registry.rstrip("/")
        self.downloads_api = downloads_api.rstrip("/")
        self.client = client or default_client()

    def packument(self, name: str) -> dict[str, Any] | None:
        """Full package document, or None if unpublished."""
        return _get_json(self.client, f"{self.registry}/{encode_package_name(name)}")

    def version_metadata(self, name: str, version: str) -> dict[str, Any] | None:
        """Manifest of one published version, or None."""
        return _get_json(self.client, f"{self.registry}/{encode_package_name(name)}/{version}")

    def dist_tags(self, name: str) -> dict[str, str]:
        """Dist-tag mapping, empty if unpublished."""
        doc = self.packument(name)
        return dict(doc.get("dist-tags", {})) if doc else {}

    def downloads_last_day(self, name: str) -> int:
        """Download count for the last day, 0 if no stats exist yet."""
        data = _get_json(self.client, f"{self.downloads_api}/point/last-day/{name}")
        if not data:
            return 0
        return int(data.get("downloads", 0))

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "NpmRegistryClient":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class GitHubApiClient:
    """Read-only GitHub REST client for releases and issues."""

    def __init__(
        self,
        repo: str,
        api_url: str = "https://api.github.com",
        token: str | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.repo = repo
        self.api_url = api_url.rstrip("/")
        headers = {"Accept": "application/vnd.github+json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.client = client or default_client(headers)

    def get_release(self, tag: str) -> dict[str, Any] | None:
        """Release for a tag, or None."""
        return _get_json(self.client, f"{self.api_url}/repos/{self.repo}/releases/tags/{tag}")

    def open_issues_since(self, since: datetime) -> list[dict[str, Any]]:
        """Open issues (not pull requests) created at or after since."""
        data = _get_json(
            self.client,
            f"{self.api_url}/repos/{self.repo}/issues",
            params={"state": "open", "since": since.isoformat(), "per_page": 100},
        )
        issues = []
        for item in data or []:
            if "pull_request" in item:
                continue
            created = datetime.fromisoformat(item["created_at"].replace("Z", "+00:00"))
            if created >= since:
                issues.append(item)
        return issues

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "GitHubApiClient":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def post_webhook(url: str, payload: dict[str, Any], client: httpx.Client | None = None) -> int:
    """POST a JSON payload to a chat webhook.

    Returns:
        HTTP status code

    Raises:
        WebhookError: On transport errors or non-2xx responses
    """
    owns_client = client is None
    client = client or default_client()
    try:
        response = client.post(url, json=payload)
    except httpx.RequestError as e:
        raise WebhookError(f"Webhook request failed: {e}") from e
    finally:
        if owns_client:
            client.close()
    if not response.is_success:
        raise WebhookError(f"Webhook returned HTTP {response.status_code}: {response.text[:200]}")
    return response.status_code
