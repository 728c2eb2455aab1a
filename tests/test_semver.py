"""Tests for semantic version handling."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from relflow.core.semver import (
    Version,
    VersionError,
    dist_tag_for,
    highest_below,
    is_valid,
    parse_tag,
    tag_name,
)
from relflow.models import BumpType

identifiers = st.one_of(st.integers(0, 50), st.from_regex(r"[a-z]{1,6}", fullmatch=True))
versions = st.builds(
    Version,
    major=st.integers(0, 30),
    minor=st.integers(0, 30),
    patch=st.integers(0, 30),
    prerelease=st.lists(identifiers, max_size=3).map(tuple),
)


class TestParse:
    """Tests for Version.parse and is_valid."""

    @pytest.mark.parametrize(
        "text",
        ["1.0.0", "0.0.1", "10.20.30", "1.0.0-rc.1", "1.0.0-alpha", "1.0.0+build.5", "2.0.0-0.3.7"],
    )
    def test_accepts_valid_versions(self, text: str) -> None:
        assert is_valid(text)

    @pytest.mark.parametrize(
        "text",
        ["1.0", "v1.0.0", "1.0.0.0", "01.0.0", "1.0.0-", "1.0.0-01", "", "latest"],
    )
    def test_rejects_invalid_versions(self, text: str) -> None:
        assert not is_valid(text)

    def test_parse_error_names_input(self) -> None:
        with pytest.raises(VersionError, match="1.0"):
            Version.parse("1.0")

    def test_parts(self) -> None:
        version = Version.parse("1.2.3-beta.4+sha.abc")
        assert (version.major, version.minor, version.patch) == (1, 2, 3)
        assert version.prerelease == ("beta", 4)
        assert version.build == ("sha", "abc")
        assert str(version) == "1.2.3-beta.4+sha.abc"

    def test_is_prerelease(self) -> None:
        assert Version.parse("1.0.0-rc.1").is_prerelease
        assert not Version.parse("1.0.0").is_prerelease


class TestPrecedence:
    """Ordering follows semver precedence rules."""

    def test_prerelease_chain(self) -> None:
        ordered = ["1.0.0-alpha", "1.0.0-alpha.1", "1.0.0-beta", "1.0.0-rc.1", "1.0.0"]
        versions = [Version.parse(v) for v in ordered]
        assert sorted(reversed(versions)) == versions

    def test_numeric_not_lexical(self) -> None:
        assert Version.parse("1.10.0") > Version.parse("1.9.0")
        assert Version.parse("1.0.0-rc.10") > Version.parse("1.0.0-rc.2")

    def test_build_metadata_ignored(self) -> None:
        assert Version.parse("1.0.0+a") == Version.parse("1.0.0+b")


class TestBump:
    """Increments follow npm version semantics."""

    @pytest.mark.parametrize(
        ("current", "kind", "expected"),
        [
            ("1.2.3", BumpType.PATCH, "1.2.4"),
            ("1.2.3", BumpType.MINOR, "1.3.0"),
            ("1.2.3", BumpType.MAJOR, "2.0.0"),
            ("1.0.1-rc.1", BumpType.PATCH, "1.0.1"),
            ("2.0.0-rc.1", BumpType.MAJOR, "2.0.0"),
            ("1.2.3", BumpType.PRERELEASE, "1.2.4-0"),
            ("1.0.1-rc.0", BumpType.PRERELEASE, "1.0.1-rc.1"),
        ],
    )
    def test_bump(self, current: str, kind: BumpType, expected: str) -> None:
        assert str(Version.parse(current).bump(kind)) == expected

    def test_premajor_with_preid(self) -> None:
        assert str(Version.parse("1.2.3").bump(BumpType.PREMAJOR, "beta")) == "2.0.0-beta.0"

    def test_prerelease_switches_identifier(self) -> None:
        assert str(Version.parse("1.0.1-alpha.3").bump("prerelease", "rc")) == "1.0.1-rc.0"

    def test_unknown_kind(self) -> None:
        with pytest.raises(VersionError, match="Unknown bump type"):
            Version.parse("1.0.0").bump("huge")


class TestHelpers:
    """Tests for tag and dist-tag helpers."""

    def test_parse_tag(self) -> None:
        assert parse_tag("v1.2.3") == Version.parse("1.2.3")
        assert parse_tag("1.2.3") is None
        assert parse_tag("v1.2") is None
        assert parse_tag("release-1.2.3", prefix="release-") == Version.parse("1.2.3")

    def test_tag_name(self) -> None:
        assert tag_name("1.2.3") == "v1.2.3"
        assert tag_name(Version.parse("1.2.3"), prefix="") == "1.2.3"

    def test_highest_below(self) -> None:
        candidates = ["0.9.0", "1.0.0", "1.1.0-rc.1", "1.1.0", "garbage", "2.0.0"]
        assert highest_below(candidates, Version.parse("1.1.0")) == Version.parse("1.1.0-rc.1")
        assert highest_below(candidates, Version.parse("0.1.0")) is None

    def test_dist_tag_for(self) -> None:
        assert dist_tag_for(Version.parse("1.0.0")) == "latest"
        assert dist_tag_for(Version.parse("1.0.0-beta.1")) == "next"
        assert dist_tag_for(Version.parse("1.0.0"), "stable") == "stable"


class TestProperties:
    """Property-based checks over generated versions."""

    @given(versions)
    def test_text_form_parses_back(self, version: Version) -> None:
        assert Version.parse(str(version)) == version

    @given(versions, st.sampled_from(list(BumpType)))
    def test_bump_always_increases(self, version: Version, kind: BumpType) -> None:
        assert version.bump(kind) > version
