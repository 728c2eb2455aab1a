"""Models for package.json contents and npm tarballs."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PackageManifest(BaseModel):
    """The subset of package.json that relflow reads.

    Unknown keys are kept so the manifest can be written back unchanged
    apart from the fields relflow edits.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str | None = None
    version: str | None = None
    description: str | None = None
    main: str | None = None
    bin: str | dict[str, str] | None = None
    files: list[str] | None = None
    publish_config: dict[str, Any] | None = Field(default=None, alias="publishConfig")

    def binaries(self) -> list[str]:
        """Names of the executables declared in ``bin``."""
        if self.bin is None:
            return []
        if isinstance(self.bin, str):
            # A string bin is exposed under the unscoped package name
            return [(self.name or "").split("/")[-1]] if self.name else []
        return list(self.bin)


class PackInfo(BaseModel):
    """Result of ``npm pack``."""

    file: str = Field(description="Tarball path")
    size: int = Field(description="Tarball size in bytes")
    files: int = Field(description="Number of files in the tarball")
    checksum: str = Field(description="SHA-256 of the tarball")
    created: datetime = Field(default_factory=datetime.now)
