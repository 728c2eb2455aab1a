"""Keep a Changelog generation and editing.

Release sections are built from conventional commits, merged with any
hand-written entries under ``## [Unreleased]``, and inserted directly
below the (emptied) Unreleased heading.
"""

import logging
import re
import shutil
from pathlib import Path

from ..models import ConventionalCommit

logger = logging.getLogger(__name__)

STANDARD_SECTIONS = ("Added", "Changed", "Deprecated", "Removed", "Fixed", "Security")

CHANGELOG_HEADER = """# Changelog

All notable changes to this project will be documented in this file.

The format is based on [Keep a Changelog](https://keepachangelog.com/en/1.1.0/),
and this project adheres to [Semantic Versioning](https://semver.org/spec/v2.0.0.html).
"""

# Commit types that produce changelog entries; others are counted only
TYPE_SECTIONS = {
    "feat": "Added",
    "fix": "Fixed",
    "perf": "Changed",
    "refactor": "Changed",
    "revert": "Removed",
    "deprecate": "Deprecated",
    "security": "Security",
}

ROLLED_BACK_MARKER = "[ROLLED BACK]"

UNRELEASED_RE = re.compile(r"^## \[Unreleased\][^\n]*\n?", re.MULTILINE)
RELEASE_HEADING_RE = re.compile(r"^## \[", re.MULTILINE)
LINK_REF_RE = re.compile(r"^\[[^\]]+\]:\s*\S+\s*$")


def normalize_entry(line: str) -> str:
    """Normalize a bullet for duplicate comparison."""
    return " ".join(line.strip().lower().split())


def format_entry(
    commit: ConventionalCommit, repository_url: str | None = None, breaking: bool = False
) -> str:
    """Render a commit as a changelog bullet."""
    text = commit.subject
    if commit.scope:
        text = f"**{commit.scope}:** {text}"
    if breaking:
        text = f"**BREAKING:** {text}"
    if repository_url:
        ref = f"[{commit.short_sha}]({repository_url.rstrip('/')}/commit/{commit.sha})"
    else:
        ref = commit.short_sha
    return f"- {text} ({ref})"


def group_commits(
    commits: list[ConventionalCommit], repository_url: str | None = None
) -> dict[str, list[str]]:
    """Group commits into Keep a Changelog sections.

    Breaking commits are additionally listed under Changed with a
    BREAKING prefix.
    """
    sections: dict[str, list[str]] = {name: [] for name in STANDARD_SECTIONS}
    for commit in commits:
        section = "Security" if commit.scope == "security" else TYPE_SECTIONS.get(commit.type or "")
        if section:
            sections[section].append(
                format_entry(commit, repository_url, breaking=commit.breaking and section == "Changed")
            )
        if commit.breaking and section != "Changed":
            sections["Changed"].append(format_entry(commit, repository_url, breaking=True))
    return {name: entries for name, entries in sections.items() if entries}


def parse_sections(body: str) -> dict[str, list[str]]:
    """Parse ``### Section`` blocks into bullet lists.

    Continuation lines are attached to the preceding bullet. Bullets that
    appear before any section heading are filed under Changed.
    """
    sections: dict[str, list[str]] = {}
    current = "Changed"
    for line in body.splitlines():
        stripped = line.strip()
        if stripped.startswith("### "):
            current = stripped[4:].strip()
            sections.setdefault(current, [])
        elif stripped.startswith(("- ", "* ")):
            sections.setdefault(current, []).append("- " + stripped[2:])
        elif stripped and sections.get(current):
            sections[current][-1] += "\n" + line.rstrip()
    return {name: entries for name, entries in sections.items() if entries}


def merge_sections(
    existing: dict[str, list[str]], generated: dict[str, list[str]]
) -> dict[str, list[str]]:
    """Merge generated bullets after existing ones, dropping duplicates."""
    merged = {name: list(entries) for name, entries in existing.items()}
    for name, entries in generated.items():
        target = merged.setdefault(name, [])
        seen = {normalize_entry(e) for e in target}
        for entry in entries:
            if normalize_entry(entry) not in seen:
                target.append(entry)
                seen.add(normalize_entry(entry))
    return merged


def render_sections(sections: dict[str, list[str]]) -> str:
    """Render sections, standard ones first in canonical order."""
    ordered = [n for n in STANDARD_SECTIONS if n in sections]
    ordered += [n for n in sections if n not in STANDARD_SECTIONS]
    blocks = []
    for name in ordered:
        blocks.append(f"### {name}\n\n" + "\n".join(sections[name]) + "\n")
    return "\n".join(blocks)


def render_release(version: str, date: str, sections: dict[str, list[str]]) -> str:
    """Render a complete ``## [X.Y.Z] - YYYY-MM-DD`` section."""
    if not sections:
        sections = {"Changed": ["- Maintenance release with no user-facing changes"]}
    return f"## [{version}] - {date}\n\n{render_sections(sections)}"


def has_section(content: str, version: str) -> bool:
    return re.search(rf"^## \[{re.escape(version)}\]", content, re.MULTILINE) is not None


def extract_section(content: str, version: str) -> str | None:
    """Body of the section for version (or "Unreleased"), without its heading."""
    match = re.search(
        rf"^## \[{re.escape(version)}\][^\n]*\n(.*?)(?=^## \[|\Z)",
        content,
        re.MULTILINE | re.DOTALL,
    )
    if not match:
        return None
    body = match.group(1)
    # Drop trailing reference link definitions
    lines = body.rstrip("\n").splitlines()
    while lines and (LINK_REF_RE.match(lines[-1]) or not lines[-1].strip()):
        lines.pop()
    return "\n".join(lines).strip()


def _split_links(content: str) -> tuple[str, list[str]]:
    lines = content.rstrip("\n").splitlines()
    links: list[str] = []
    while lines and (LINK_REF_RE.match(lines[-1]) or (links and not lines[-1].strip())):
        line = lines.pop()
        if line.strip():
            links.insert(0, line)
    return "\n".join(lines) + "\n", links


def _update_links(
    links: list[str],
    version: str,
    previous_tag: str | None,
    repository_url: str,
    tag_prefix: str,
) -> list[str]:
    url = repository_url.rstrip("/")
    unreleased = f"[Unreleased]: {url}/compare/{tag_prefix}{version}...HEAD"
    if previous_tag:
        release = f"[{version}]: {url}/compare/{previous_tag}...{tag_prefix}{version}"
    else:
        release = f"[{version}]: {url}/releases/tag/{tag_prefix}{version}"
    kept = [
        line
        for line in links
        if not line.startswith("[Unreleased]:") and not line.startswith(f"[{version}]:")
    ]
    return [unreleased, release, *kept]


def insert_release(
    content: str,
    version: str,
    date: str,
    generated: dict[str, list[str]],
    repository_url: str | None = None,
    previous_tag: str | None = None,
    tag_prefix: str = "v",
) -> str:
    """Insert a release section below an emptied Unreleased heading.

    Args:
        content: Current changelog text (may be empty)
        version: New version
        date: Release date as YYYY-MM-DD
        generated: Sections generated from commits
        repository_url: Enables compare reference links when set
        previous_tag: Previous release tag for the compare link
        tag_prefix: Tag prefix for compare links

    Returns:
        Updated changelog text
    """
    if not content.strip():
        content = CHANGELOG_HEADER + "\n## [Unreleased]\n"
    body, links = _split_links(content)

    match = UNRELEASED_RE.search(body)
    if match:
        following = RELEASE_HEADING_RE.search(body, match.end())
        end = following.start() if following else len(body)
        existing = parse_sections(body[match.end() : end])
        head = body[: match.end()].rstrip("\n") + "\n"
        rest = body[end:]
    else:
        following = RELEASE_HEADING_RE.search(body)
        end = following.start() if following else len(body)
        existing = {}
        head = body[:end].rstrip("\n") + "\n\n## [Unreleased]\n"
        rest = body[end:]

    section = render_release(version, date, merge_sections(existing, generated))
    result = head + "\n" + section
    if rest.strip():
        result += "\n" + rest.lstrip("\n")
    result = result.rstrip("\n") + "\n"

    if repository_url:
        links = _update_links(links, version, previous_tag, repository_url, tag_prefix)
    if links:
        result += "\n" + "\n".join(links) + "\n"
    return result


def mark_rolled_back(content: str, version: str, target: str, date: str) -> tuple[str, bool]:
    """Flag a release heading as rolled back and add a notice below it.

    Returns:
        Tuple of (new content, True if changed)
    """
    heading = re.search(rf"^## \[{re.escape(version)}\][^\n]*$", content, re.MULTILINE)
    if not heading:
        logger.warning("No changelog section for %s", version)
        return content, False
    line = heading.group(0)
    if ROLLED_BACK_MARKER in line:
        return content, False
    notice = (
        f"\n\n> **Rolled back on {date}.** This release was withdrawn and "
        f"{target} restored. Install {target} instead."
    )
    new_line = f"{line.rstrip()} {ROLLED_BACK_MARKER}"
    return content[: heading.start()] + new_line + notice + content[heading.end() :], True


def write_with_backup(path: Path, content: str, backup_dir: Path | None = None) -> Path | None:
    """Write content, first copying the existing file to ``<name>.backup``.

    The copy goes to backup_dir when given, otherwise next to the file.
    Inside a repository pass the relflow backups directory so the copy
    never shows up as an untracked file.

    Returns:
        Path of the backup copy, None if the file did not exist
    """
    backup = None
    if path.exists():
        target_dir = backup_dir or path.parent
        target_dir.mkdir(parents=True, exist_ok=True)
        backup = target_dir / (path.name + ".backup")
        shutil.copy2(path, backup)
    path.write_text(content)
    return backup


def preview_release(
    path: Path,
    version: str,
    date: str,
    commits: list[ConventionalCommit],
    repository_url: str | None = None,
) -> str:
    """Section that update_changelog_file would insert, without writing."""
    content = path.read_text() if path.exists() else ""
    body, _ = _split_links(content) if content else ("", [])
    match = UNRELEASED_RE.search(body)
    existing: dict[str, list[str]] = {}
    if match:
        following = RELEASE_HEADING_RE.search(body, match.end())
        existing = parse_sections(body[match.end() : following.start() if following else len(body)])
    return render_release(version, date, merge_sections(existing, group_commits(commits, repository_url)))


def update_changelog_file(
    path: Path,
    version: str,
    date: str,
    commits: list[ConventionalCommit],
    repository_url: str | None = None,
    previous_tag: str | None = None,
    tag_prefix: str = "v",
    backup: bool = True,
    backup_dir: Path | None = None,
) -> str:
    """Insert a release section into the changelog file, creating it if needed.

    A copy of the previous file is kept as ``CHANGELOG.md.backup`` in
    backup_dir (default: beside the file) unless backup is False; the
    release commit then serves as the history.

    Returns:
        The inserted section text
    """
    content = path.read_text() if path.exists() else ""
    if has_section(content, version):
        raise ValueError(f"{path.name} already has a section for {version}")
    updated = insert_release(
        content,
        version,
        date,
        group_commits(commits, repository_url),
        repository_url=repository_url,
        previous_tag=previous_tag,
        tag_prefix=tag_prefix,
    )
    if backup:
        write_with_backup(path, updated, backup_dir)
    else:
        path.write_text(updated)
    logger.info("Added %s section to %s", version, path.name)
    return extract_section(updated, version) or ""
