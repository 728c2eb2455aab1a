"""Tests for pre-rollback backups."""

import json
from datetime import datetime
from pathlib import Path

import pytest
from conftest import git

from relflow.config import RelflowConfig
from relflow.core.backups import (
    BackupError,
    backup_paths,
    create_backup,
    get_backups_dir,
    list_backups,
    restore_backup,
)


class TestCreateBackup:
    """Tests for create_backup."""

    def test_copies_release_files(self, npm_project: Path, project_config: RelflowConfig) -> None:
        backup_dir, metadata = create_backup(
            npm_project, project_config, "1.1.0", "1.0.0", now=datetime(2024, 3, 1, 10, 0, 0)
        )
        assert backup_dir == get_backups_dir(npm_project) / "rollback-1.1.0-20240301-100000"
        assert metadata.files == backup_paths(project_config)
        assert (backup_dir / "src/types/version.ts").exists()
        assert json.loads((backup_dir / "backup-metadata.json").read_text())["rollback_to"] == "1.0.0"

    def test_records_git_state(self, npm_project: Path, project_config: RelflowConfig) -> None:
        _, metadata = create_backup(
            npm_project, project_config, "1.1.0", "1.0.0", now=datetime(2024, 3, 1, 10, 0, 0)
        )
        assert metadata.git_branch == "main"
        assert metadata.git_commit == git(npm_project, "rev-parse", "HEAD")
        assert metadata.tags == ["v1.0.0"]
        assert metadata.backup_branch == "backup/pre-rollback-1.1.0-20240301-100000"
        assert git(npm_project, "branch", "--list", metadata.backup_branch)

    def test_without_branch(self, npm_project: Path, project_config: RelflowConfig) -> None:
        _, metadata = create_backup(
            npm_project, project_config, "1.1.0", "1.0.0", create_branch=False
        )
        assert metadata.backup_branch is None

    def test_duplicate_name_rejected(self, npm_project: Path, project_config: RelflowConfig) -> None:
        now = datetime(2024, 3, 1, 10, 0, 0)
        create_backup(npm_project, project_config, "1.1.0", "1.0.0", create_branch=False, now=now)
        with pytest.raises(BackupError, match="already exists"):
            create_backup(npm_project, project_config, "1.1.0", "1.0.0", create_branch=False, now=now)

    def test_prunes_oldest(self, npm_project: Path, project_config: RelflowConfig) -> None:
        project_config.rollback.max_backups = 2
        for minute in range(3):
            create_backup(
                npm_project,
                project_config,
                "1.1.0",
                "1.0.0",
                create_branch=False,
                now=datetime(2024, 3, 1, 10, minute, 0),
            )
        names = [b.name for b in list_backups(get_backups_dir(npm_project))]
        assert names == ["rollback-1.1.0-20240301-100200", "rollback-1.1.0-20240301-100100"]


class TestListAndRestore:
    """Tests for list_backups and restore_backup."""

    def test_list_missing_dir(self, tmp_path: Path) -> None:
        assert list_backups(tmp_path / "none") == []

    def test_corrupt_metadata_skipped(self, tmp_path: Path) -> None:
        (tmp_path / "broken").mkdir()
        (tmp_path / "broken" / "backup-metadata.json").write_text("{nope")
        assert list_backups(tmp_path) == []

    def test_restore(self, npm_project: Path, project_config: RelflowConfig) -> None:
        _, metadata = create_backup(
            npm_project, project_config, "1.1.0", "1.0.0", create_branch=False
        )
        (npm_project / "package.json").write_text("{}\n")
        restored = restore_backup(npm_project, get_backups_dir(npm_project), metadata.name)
        assert "package.json" in restored
        assert json.loads((npm_project / "package.json").read_text())["version"] == "1.0.0"

    def test_restore_missing(self, npm_project: Path) -> None:
        with pytest.raises(BackupError, match="not found"):
            restore_backup(npm_project, get_backups_dir(npm_project), "rollback-nope")
