"""Pydantic data models for relflow.

This package defines the data structures shared across workflows:
- Check results and reports (ReportRecord, Report)
- package.json and npm tarball metadata (PackageManifest, PackInfo)
- Conventional commits (ConventionalCommit, CommitAnalysis)
- Rollback plans, results and backups (RollbackPlan, ScopeResult, BackupMetadata)
- Monitoring state (HealthMetrics, MonitoringSnapshot)

Example:
    >>> from relflow.models import Report, CheckStatus
    >>> report = Report(title="Pre-release validation")
    >>> report.record("git", CheckStatus.PASS, "Working tree clean")
    >>> report.model_dump_json()
"""

from .commit import CommitAnalysis, ConventionalCommit
from .monitoring import HealthMetrics, MonitoringSnapshot
from .package import PackageManifest, PackInfo
from .report import CheckStatus, Report, ReportRecord
from .rollback import BackupMetadata, RollbackAction, RollbackPlan, RollbackScope, ScopeResult
from .status import CategoryResult, ChecksSummary
from .version import BumpType

__all__ = [
    "BackupMetadata",
    "BumpType",
    "CategoryResult",
    "CheckStatus",
    "ChecksSummary",
    "CommitAnalysis",
    "ConventionalCommit",
    "HealthMetrics",
    "MonitoringSnapshot",
    "PackInfo",
    "PackageManifest",
    "Report",
    "ReportRecord",
    "RollbackAction",
    "RollbackPlan",
    "RollbackScope",
    "ScopeResult",
]
