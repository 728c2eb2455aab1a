"""Rollback plan, backup and result models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class RollbackScope(str, Enum):
    """Independent parts of a release that can be rolled back."""

    PACKAGE = "package"
    GIT = "git"
    NPM = "npm"
    GITHUB = "github"
    DOCS = "docs"


class RollbackAction(BaseModel):
    """One planned step of a rollback."""

    scope: RollbackScope
    description: str


class RollbackPlan(BaseModel):
    """Everything a rollback is going to do, computed before any change."""

    from_version: str = Field(description="Problematic version being rolled back")
    to_version: str = Field(description="Version restored by the rollback")
    scopes: list[RollbackScope] = Field(default_factory=list)
    actions: list[RollbackAction] = Field(default_factory=list)
    reason: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)

    def add(self, scope: RollbackScope, description: str) -> None:
        self.actions.append(RollbackAction(scope=scope, description=description))

    def actions_for(self, scope: RollbackScope) -> list[RollbackAction]:
        return [a for a in self.actions if a.scope == scope]


class ScopeResult(BaseModel):
    """Outcome of executing one rollback scope."""

    scope: RollbackScope
    success: bool
    message: str
    steps: list[str] = Field(default_factory=list, description="Completed step descriptions")
    report_path: str | None = None


class BackupMetadata(BaseModel):
    """Contents of backup-metadata.json inside a backup directory.

    Attributes:
        name: Directory name of the backup.
        created_at: When the backup was taken.
        rollback_from: Version that was live when the backup was taken.
        rollback_to: Version the rollback was heading to.
        git_branch: Branch checked out at backup time.
        git_commit: HEAD commit at backup time.
        backup_branch: Git branch created to preserve HEAD, if any.
        files: Repository-relative paths copied into the backup.
        tags: Most recent tags at backup time.
    """

    name: str
    created_at: datetime = Field(default_factory=datetime.now)
    rollback_from: str
    rollback_to: str
    git_branch: str | None = None
    git_commit: str | None = None
    backup_branch: str | None = None
    files: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
