"""Semantic version parsing, precedence and increments.

Parsing follows the semver.org 2.0.0 grammar exactly: ``1.0`` and
``v1.0.0`` are rejected, ``1.0.0-rc.1`` and ``1.0.0+build.5`` are accepted.
Increments follow ``npm version`` semantics, so a prerelease bumped with
``patch`` is finalised rather than skipped over.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass
from functools import total_ordering

from ..models import BumpType

_NUM = r"0|[1-9]\d*"
_PRE_ID = r"0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*"
SEMVER_RE = re.compile(
    rf"^(?P<major>{_NUM})\.(?P<minor>{_NUM})\.(?P<patch>{_NUM})"
    rf"(?:-(?P<prerelease>(?:{_PRE_ID})(?:\.(?:{_PRE_ID}))*))?"
    r"(?:\+(?P<build>[0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)


class VersionError(ValueError):
    """Text is not a valid semantic version, or an increment is impossible."""

    pass


def _parse_identifier(text: str) -> str | int:
    return int(text) if text.isdigit() else text


@total_ordering
@dataclass(frozen=True, eq=False)
class Version:
    """An immutable semantic version.

    Equality and ordering use semver precedence, so build metadata is
    ignored: ``1.0.0+a == 1.0.0+b``.
    """

    major: int
    minor: int
    patch: int
    prerelease: tuple[str | int, ...] = ()
    build: tuple[str, ...] = ()

    @classmethod
    def parse(cls, text: str) -> "Version":
        """Parse a version string.

        Raises:
            VersionError: If text is not a valid semantic version
        """
        match = SEMVER_RE.match(text.strip()) if isinstance(text, str) else None
        if not match:
            raise VersionError(f"Invalid semantic version: {text!r}")
        pre = match.group("prerelease")
        build = match.group("build")
        return cls(
            major=int(match.group("major")),
            minor=int(match.group("minor")),
            patch=int(match.group("patch")),
            prerelease=tuple(_parse_identifier(p) for p in pre.split(".")) if pre else (),
            build=tuple(build.split(".")) if build else (),
        )

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += "-" + ".".join(str(p) for p in self.prerelease)
        if self.build:
            text += "+" + ".".join(self.build)
        return text

    def __repr__(self) -> str:
        return f"Version('{self}')"

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)

    @property
    def core(self) -> "Version":
        """The version without prerelease or build parts."""
        return Version(self.major, self.minor, self.patch)

    def _precedence(self) -> tuple:
        pre = tuple((0, p, "") if isinstance(p, int) else (1, 0, p) for p in self.prerelease)
        return (self.major, self.minor, self.patch, 0 if self.prerelease else 1, pre)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._precedence() == other._precedence()

    def __lt__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._precedence() < other._precedence()

    def __hash__(self) -> int:
        return hash(self._precedence())

    def bump(self, kind: BumpType | str, preid: str | None = None) -> "Version":
        """Return the next version for an increment kind.

        Args:
            kind: One of the BumpType values
            preid: Prerelease identifier such as "alpha" or "rc"

        Raises:
            VersionError: If kind is unknown
        """
        try:
            kind = BumpType(kind)
        except ValueError:
            raise VersionError(f"Unknown bump type: {kind}") from None

        if kind == BumpType.MAJOR:
            if self.minor != 0 or self.patch != 0 or not self.prerelease:
                return Version(self.major + 1, 0, 0)
            return self.core
        if kind == BumpType.MINOR:
            if self.patch != 0 or not self.prerelease:
                return Version(self.major, self.minor + 1, 0)
            return self.core
        if kind == BumpType.PATCH:
            if not self.prerelease:
                return Version(self.major, self.minor, self.patch + 1)
            return self.core
        if kind == BumpType.PREMAJOR:
            return Version(self.major + 1, 0, 0)._next_prerelease(preid)
        if kind == BumpType.PREMINOR:
            return Version(self.major, self.minor + 1, 0)._next_prerelease(preid)
        if kind == BumpType.PREPATCH:
            return Version(self.major, self.minor, self.patch + 1)._next_prerelease(preid)
        # PRERELEASE
        base = self if self.prerelease else Version(self.major, self.minor, self.patch + 1)
        return base._next_prerelease(preid)

    def _next_prerelease(self, preid: str | None) -> "Version":
        parts = list(self.prerelease)
        if not parts:
            parts = [0]
        else:
            for i in range(len(parts) - 1, -1, -1):
                if isinstance(parts[i], int):
                    parts[i] += 1
                    break
            else:
                parts.append(0)

        if preid:
            if parts[0] != preid or len(parts) < 2 or not isinstance(parts[1], int):
                parts = [preid, 0]
        return Version(self.major, self.minor, self.patch, tuple(parts))


def is_valid(text: str) -> bool:
    """Return True if text is a valid semantic version."""
    try:
        Version.parse(text)
    except VersionError:
        return False
    return True


def parse_tag(tag: str, prefix: str = "v") -> Version | None:
    """Parse a release tag such as ``v1.2.3``, None if it is not one."""
    if prefix and not tag.startswith(prefix):
        return None
    try:
        return Version.parse(tag[len(prefix) :])
    except VersionError:
        return None


def tag_name(version: Version | str, prefix: str = "v") -> str:
    """Tag name for a version."""
    return f"{prefix}{version}"


def highest_below(candidates: Iterable[Version | str], ceiling: Version) -> Version | None:
    """Highest valid version strictly lower than ceiling."""
    best: Version | None = None
    for candidate in candidates:
        if isinstance(candidate, str):
            if not is_valid(candidate):
                continue
            candidate = Version.parse(candidate)
        if candidate < ceiling and (best is None or candidate > best):
            best = candidate
    return best


def dist_tag_for(version: Version, default_tag: str = "latest") -> str:
    """npm dist-tag for a version: prereleases go to "next"."""
    return "next" if version.is_prerelease else default_tag
