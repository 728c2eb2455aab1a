"""Core release workflows for relflow.

This package contains the workflow logic, independent of the CLI:
- semver, commits, manifest, changelog: version and changelog primitives
- versioning, tagging, gpg_setup: preparing and tagging a release
- validation, publishing, verification: gates before and after npm publish
- rollback, backups, monitoring: recovering from a bad release
- notifications, orchestrator: announcing and driving a full release
- reports: JSON/Markdown report rendering
"""

from .backups import BackupError, create_backup, get_backups_dir, list_backups, restore_backup
from .changelog import update_changelog_file
from .changelog_validator import fix_changelog, validate_changelog
from .monitoring import HealthChecker, Monitor, MonitorOptions, get_monitoring_dir
from .notifications import build_announcement, send_notifications
from .orchestrator import ReleaseOptions, ReleaseOrchestrator
from .publishing import Publisher, PublishOptions
from .reports import get_reports_dir, report_table, write_report
from .rollback import RollbackError, RollbackOptions, run_rollback
from .semver import Version, VersionError
from .tagging import TagError, TagOptions, create_release_tag
from .validation import ValidationOptions, run_validation
from .verification import ReleaseVerifier, VerificationLevel, VerifyOptions
from .versioning import BumpOptions, VersionBumpError, apply_bump, plan_bump

__all__ = [
    "BackupError",
    "BumpOptions",
    "HealthChecker",
    "Monitor",
    "MonitorOptions",
    "PublishOptions",
    "Publisher",
    "ReleaseOptions",
    "ReleaseOrchestrator",
    "ReleaseVerifier",
    "RollbackError",
    "RollbackOptions",
    "TagError",
    "TagOptions",
    "ValidationOptions",
    "VerificationLevel",
    "VerifyOptions",
    "Version",
    "VersionBumpError",
    "VersionError",
    "apply_bump",
    "build_announcement",
    "create_backup",
    "create_release_tag",
    "fix_changelog",
    "get_backups_dir",
    "get_monitoring_dir",
    "get_reports_dir",
    "list_backups",
    "plan_bump",
    "report_table",
    "restore_backup",
    "run_rollback",
    "run_validation",
    "send_notifications",
    "update_changelog_file",
    "validate_changelog",
    "write_report",
]
