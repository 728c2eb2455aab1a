"""Keep a Changelog format validation and automatic fixes."""

import re
from dataclasses import dataclass, field
from datetime import date

from .changelog import STANDARD_SECTIONS
from .semver import Version, VersionError

DESCRIPTION = "All notable changes to this project will be documented in this file."

HEADING_RE = re.compile(r"^## \[(?P<label>[^\]]+)\](?P<rest>.*)$")
RELEASE_SUFFIX_RE = re.compile(
    r"^ - (?P<when>\d{4}-\d{2}-\d{2}|TBD|Unreleased|Preparing for.*?)"
    r"(?: \[(?:YANKED|ROLLED BACK)\])?\s*$"
)
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass
class ChangelogIssue:
    """A problem found at a specific line (1-based, 0 for file-level)."""

    line: int
    message: str

    def __str__(self) -> str:
        return f"line {self.line}: {self.message}" if self.line else self.message


@dataclass
class ChangelogValidation:
    """Result of validating a changelog."""

    errors: list[ChangelogIssue] = field(default_factory=list)
    warnings: list[ChangelogIssue] = field(default_factory=list)
    versions: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def error(self, message: str, line: int = 0) -> None:
        self.errors.append(ChangelogIssue(line, message))

    def warn(self, message: str, line: int = 0) -> None:
        self.warnings.append(ChangelogIssue(line, message))


def _content_lines(content: str) -> list[tuple[int, str]]:
    """Numbered lines outside fenced code blocks."""
    lines = []
    in_fence = False
    for number, line in enumerate(content.splitlines(), start=1):
        if line.lstrip().startswith("```"):
            in_fence = not in_fence
            continue
        if not in_fence:
            lines.append((number, line))
    return lines


def validate_changelog(content: str) -> ChangelogValidation:
    """Validate changelog text against the Keep a Changelog conventions."""
    result = ChangelogValidation()
    lines = _content_lines(content)

    first = next((line.strip() for _, line in lines if line.strip()), "")
    if first != "# Changelog":
        result.error("Missing or incorrect title (expected '# Changelog')", 1)
    if DESCRIPTION not in content:
        result.error("Missing standard description line")
    if "keep a changelog" not in content.lower() and "keepachangelog.com" not in content:
        result.error("Missing reference to Keep a Changelog")
    if "semantic versioning" not in content.lower() and "semver.org" not in content:
        result.error("Missing reference to Semantic Versioning")
    if not re.search(r"^## \[Unreleased\]", content, re.MULTILINE):
        result.error("Missing [Unreleased] section")

    dated: list[tuple[int, str, date]] = []
    releases: list[tuple[int, Version]] = []
    seen: set[str] = set()
    standard_count = 0

    for number, line in lines:
        if line.startswith("##["):
            result.error("Missing space after '##' in version heading", number)
            continue
        if line.startswith("###") and not line.startswith("### ") and not line.startswith("####"):
            result.error("Missing space after '###' in section heading", number)
            continue
        if line.startswith("### "):
            name = line[4:].strip()
            if name in STANDARD_SECTIONS:
                standard_count += 1
            else:
                result.warn(f"Non-standard section '{name}'", number)
            continue
        if not line.startswith("## "):
            continue

        match = HEADING_RE.match(line.rstrip())
        if not match:
            result.error("Version heading must use '## [X.Y.Z] - YYYY-MM-DD'", number)
            continue
        label = match.group("label")
        if label == "Unreleased":
            continue
        try:
            version = Version.parse(label)
        except VersionError:
            result.error(f"Invalid version format '{label}'", number)
            continue
        if label in seen:
            result.error(f"Duplicate version '{label}'", number)
        seen.add(label)
        result.versions.append(label)
        releases.append((number, version))

        suffix = RELEASE_SUFFIX_RE.match(match.group("rest"))
        if not suffix:
            result.error(f"Invalid release heading for {label} (expected ' - YYYY-MM-DD')", number)
            continue
        when = suffix.group("when")
        if DATE_RE.match(when):
            try:
                dated.append((number, label, date.fromisoformat(when)))
            except ValueError:
                result.error(f"Invalid date '{when}' for {label}", number)

    if releases and standard_count == 0:
        result.warn("No standard sections found (Added, Changed, Deprecated, Removed, Fixed, Security)")

    for (_, prev_label, prev_date), (number, label, current) in zip(dated, dated[1:], strict=False):
        if current > prev_date:
            result.error(
                f"Releases not in chronological order: {label} ({current}) "
                f"is listed after {prev_label} ({prev_date})",
                number,
            )

    for (_, prev), (number, current) in zip(releases, releases[1:], strict=False):
        if current > prev:
            result.warn(f"Version {current} is listed below older version {prev}", number)

    return result


def fix_changelog(content: str) -> tuple[str, list[str]]:
    """Repair common formatting problems.

    Returns:
        Tuple of (fixed content, descriptions of the fixes applied)
    """
    fixes: list[str] = []

    fixed, count = re.subn(r"^##\[", "## [", content, flags=re.MULTILINE)
    if count:
        fixes.append(f"Added missing space after '##' in {count} heading(s)")

    fixed, count = re.subn(r"^###(?=[^\s#])", "### ", fixed, flags=re.MULTILINE)
    if count:
        fixes.append(f"Added missing space after '###' in {count} heading(s)")

    if not re.search(r"^## \[Unreleased\]", fixed, re.MULTILINE):
        first_release = re.search(r"^## \[", fixed, re.MULTILINE)
        if first_release:
            pos = first_release.start()
            fixed = fixed[:pos] + "## [Unreleased]\n\n" + fixed[pos:]
        else:
            fixed = fixed.rstrip("\n") + "\n\n## [Unreleased]\n"
        fixes.append("Inserted missing [Unreleased] section")

    return fixed, fixes
