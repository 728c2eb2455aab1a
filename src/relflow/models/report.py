"""Report models shared by validation, publishing, verification and rollback.

Every workflow records one ReportRecord per check or phase and writes the
resulting Report as JSON and Markdown.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, computed_field


class CheckStatus(str, Enum):
    """Outcome of a single check or phase."""

    PASS = "pass"
    FAIL = "fail"
    WARNING = "warning"
    SKIP = "skip"


class ReportRecord(BaseModel):
    """A single recorded check result."""

    phase: str = Field(description="Check or phase name")
    status: CheckStatus = Field(description="Outcome of the check")
    message: str = Field(description="One-line human readable result")
    details: str = Field(default="", description="Extra output, e.g. command stderr")
    duration: float = Field(default=0.0, description="Elapsed seconds")
    timestamp: datetime = Field(default_factory=datetime.now, description="When recorded")


class Report(BaseModel):
    """Ordered collection of check results for one workflow run.

    Attributes:
        title: Report title, e.g. "Pre-release validation".
        version: Package version the report is about.
        environment: Target environment label.
        dry_run: True when no mutating command was executed.
        started_at: When the workflow started.
        finished_at: When the workflow finished, None while running.
        records: Results in the order they were recorded.
    """

    title: str = Field(description="Report title")
    version: str | None = Field(default=None, description="Package version")
    environment: str | None = Field(default=None, description="Target environment")
    dry_run: bool = Field(default=False, description="True if run without side effects")
    started_at: datetime = Field(default_factory=datetime.now, description="Start time")
    finished_at: datetime | None = Field(default=None, description="End time")
    records: list[ReportRecord] = Field(default_factory=list, description="Recorded results")

    def record(
        self,
        phase: str,
        status: CheckStatus,
        message: str,
        details: str = "",
        duration: float = 0.0,
    ) -> ReportRecord:
        """Append a result and return it."""
        entry = ReportRecord(
            phase=phase,
            status=status,
            message=message,
            details=details,
            duration=round(duration, 3),
        )
        self.records.append(entry)
        return entry

    def count(self, status: CheckStatus) -> int:
        """Number of records with the given status."""
        return sum(1 for r in self.records if r.status == status)

    def finish(self) -> "Report":
        """Stamp the finish time and return self."""
        self.finished_at = datetime.now()
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def passed(self) -> int:
        return self.count(CheckStatus.PASS)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def failed(self) -> int:
        return self.count(CheckStatus.FAIL)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def warnings(self) -> int:
        return self.count(CheckStatus.WARNING)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def skipped(self) -> int:
        return self.count(CheckStatus.SKIP)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> int:
        return len(self.records)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def ok(self) -> bool:
        """True when nothing failed."""
        return self.failed == 0

    def failures(self) -> list[ReportRecord]:
        """Records with FAIL status."""
        return [r for r in self.records if r.status == CheckStatus.FAIL]
