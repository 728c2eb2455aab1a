"""Conventional commit models."""

from pydantic import BaseModel, Field

from .version import BumpType


class ConventionalCommit(BaseModel):
    """A commit parsed against the Conventional Commits grammar.

    Commits that do not follow the grammar keep ``type`` as None and the
    whole first line as ``subject``.
    """

    sha: str
    type: str | None = None
    scope: str | None = None
    breaking: bool = False
    subject: str
    body: str = ""

    @property
    def short_sha(self) -> str:
        return self.sha[:7]


class CommitAnalysis(BaseModel):
    """Aggregated view over commits since the last release."""

    commits: list[ConventionalCommit] = Field(default_factory=list)
    type_counts: dict[str, int] = Field(default_factory=dict)
    breaking: int = 0
    recommended_bump: BumpType = BumpType.PATCH

    @property
    def total(self) -> int:
        return len(self.commits)
