"""Quality check results.

One CategoryResult per configured command (format, lint, typecheck,
test, build), gathered into a ChecksSummary before a release.
"""

from pydantic import BaseModel, Field


class CategoryResult(BaseModel):
    """Outcome of one check command."""

    category: str = Field(description="Check category name (lint, test, etc.)")
    exit_code: int = Field(description="Exit code; 127 when the command could not run")
    passed: bool = Field(description="True if exit_code == 0")
    advisory: bool = Field(default=False, description="Failure is reported but not blocking")
    output: str = Field(default="", description="Command header and merged output tail")
    duration: float = Field(default=0.0, description="Elapsed seconds")

    @property
    def blocking_failure(self) -> bool:
        return not self.passed and not self.advisory


class ChecksSummary(BaseModel):
    """All check results of one run, in execution order."""

    categories: dict[str, CategoryResult] = Field(
        default_factory=dict, description="Results keyed by category name"
    )
    first_failure: str | None = Field(
        default=None, description="First blocking failure, or None"
    )
    all_passed: bool = Field(default=True, description="True if nothing blocking failed")

    def get_exit_code(self) -> int:
        """Exit code of the first blocking failure, or 0."""
        if self.first_failure and self.first_failure in self.categories:
            return self.categories[self.first_failure].exit_code
        return 0

    def advisories(self) -> list[str]:
        """Advisory categories that reported problems."""
        return [r.category for r in self.categories.values() if r.advisory and not r.passed]
