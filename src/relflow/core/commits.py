"""Conventional commit parsing and release type detection."""

import re
from pathlib import Path

from ..models import BumpType, CommitAnalysis, ConventionalCommit
from ..services.git import get_commits, get_last_tag

HEADER_RE = re.compile(
    r"^(?P<type>[a-zA-Z]+)(?:\((?P<scope>[^()]*)\))?(?P<breaking>!)?:\s*(?P<subject>.*)$"
)
BREAKING_FOOTER_RE = re.compile(r"^BREAKING[ -]CHANGE:", re.MULTILINE)


def parse_commit(sha: str, subject: str, body: str = "") -> ConventionalCommit:
    """Parse one commit message against the Conventional Commits header grammar."""
    match = HEADER_RE.match(subject.strip())
    breaking_footer = bool(BREAKING_FOOTER_RE.search(body))
    if not match:
        return ConventionalCommit(
            sha=sha, subject=subject.strip(), body=body, breaking=breaking_footer
        )
    return ConventionalCommit(
        sha=sha,
        type=match.group("type").lower(),
        scope=match.group("scope") or None,
        breaking=bool(match.group("breaking")) or breaking_footer,
        subject=match.group("subject").strip(),
        body=body,
    )


def determine_bump(commits: list[ConventionalCommit]) -> BumpType:
    """Recommended increment: breaking -> major, feat -> minor, else patch."""
    if any(c.breaking for c in commits):
        return BumpType.MAJOR
    if any(c.type == "feat" for c in commits):
        return BumpType.MINOR
    return BumpType.PATCH


def analyze_commits(commits: list[ConventionalCommit]) -> CommitAnalysis:
    """Count commits per type and compute the recommended increment."""
    counts: dict[str, int] = {}
    for c in commits:
        key = c.type or "other"
        counts[key] = counts.get(key, 0) + 1
    return CommitAnalysis(
        commits=commits,
        type_counts=counts,
        breaking=sum(1 for c in commits if c.breaking),
        recommended_bump=determine_bump(commits),
    )


def collect_commits(
    repo_root: Path, since: str | None = None, tag_prefix: str = "v"
) -> tuple[str | None, CommitAnalysis]:
    """Analyze commits since a ref, defaulting to the last release tag.

    Returns:
        Tuple of (ref used as the starting point, analysis)
    """
    since = since or get_last_tag(prefix=tag_prefix, cwd=repo_root)
    raw = get_commits(since=since, cwd=repo_root)
    commits = [parse_commit(sha, subject, body) for sha, subject, body in raw]
    return since, analyze_commits(commits)
