"""Version increment kinds."""

from enum import Enum


class BumpType(str, Enum):
    """Kinds of version increments, mirroring ``npm version``."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    PREMAJOR = "premajor"
    PREMINOR = "preminor"
    PREPATCH = "prepatch"
    PRERELEASE = "prerelease"
