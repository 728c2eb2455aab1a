"""Pre-rollback backups of release files.

Each backup is stored in ``.relflow/backups/rollback-<version>-<timestamp>/``
with copies of the tracked release files and a backup-metadata.json.
Backups beyond the configured maximum are pruned, oldest first.
"""

import logging
import shutil
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from ..config import RelflowConfig
from ..constants import BACKUPS_DIR, RELFLOW_DIR
from ..models import BackupMetadata
from ..services import git
from .manifest import LOCKFILE
from .reports import timestamp_slug

logger = logging.getLogger(__name__)

METADATA_FILE = "backup-metadata.json"
RECENT_TAGS = 10


class BackupError(Exception):
    """Backup could not be created or restored."""

    pass


def get_backups_dir(repo_root: Path) -> Path:
    """Default backup directory for a repository."""
    return repo_root / RELFLOW_DIR / BACKUPS_DIR


def backup_paths(config: RelflowConfig) -> list[str]:
    """Repository-relative files included in every backup."""
    paths = [config.project.manifest, LOCKFILE, config.project.changelog]
    paths += [vf.path for vf in config.project.version_files]
    return list(dict.fromkeys(paths))


def create_backup(
    repo_root: Path,
    config: RelflowConfig,
    from_version: str,
    to_version: str,
    backups_dir: Path | None = None,
    create_branch: bool = True,
    now: datetime | None = None,
) -> tuple[Path, BackupMetadata]:
    """Copy release files and record git state before a rollback.

    Args:
        repo_root: Repository root
        config: Loaded configuration
        from_version: Version being rolled back
        to_version: Version being restored
        backups_dir: Override for the backups directory
        create_branch: Also create a git branch pointing at HEAD
        now: Timestamp override

    Returns:
        Tuple of (backup directory, metadata)
    """
    now = now or datetime.now()
    backups_dir = backups_dir or get_backups_dir(repo_root)
    stamp = timestamp_slug(now)
    name = f"rollback-{from_version}-{stamp}"
    backup_dir = backups_dir / name
    try:
        backup_dir.mkdir(parents=True, exist_ok=False)
    except FileExistsError:
        raise BackupError(f"Backup {name} already exists") from None

    copied = []
    for rel in backup_paths(config):
        source = repo_root / rel
        if source.is_file():
            target = backup_dir / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)
            copied.append(rel)

    metadata = BackupMetadata(
        name=name,
        created_at=now,
        rollback_from=from_version,
        rollback_to=to_version,
        files=copied,
    )
    try:
        metadata.git_branch = git.get_current_branch(repo_root)
        metadata.git_commit = git.get_head_sha(repo_root)
        metadata.tags = git.list_tags(cwd=repo_root)[:RECENT_TAGS]
        if create_branch:
            branch = f"backup/pre-rollback-{from_version}-{stamp}"
            git.create_branch(branch, cwd=repo_root)
            metadata.backup_branch = branch
    except git.GitError as e:
        logger.warning("Could not record git state in backup: %s", e)

    (backup_dir / METADATA_FILE).write_text(metadata.model_dump_json(indent=2))
    logger.info("Created backup %s (%d files)", name, len(copied))

    _prune_old_backups(backups_dir, config.rollback.max_backups)
    return backup_dir, metadata


def _load_metadata(backup_dir: Path) -> BackupMetadata | None:
    meta_path = backup_dir / METADATA_FILE
    if not meta_path.exists():
        return None
    try:
        return BackupMetadata.model_validate_json(meta_path.read_text())
    except (ValidationError, OSError) as e:
        logger.warning("Skipping corrupt backup %s: %s", backup_dir.name, e)
        return None


def list_backups(backups_dir: Path) -> list[BackupMetadata]:
    """Backups newest first. Corrupt entries are skipped."""
    if not backups_dir.exists():
        return []
    backups = []
    for backup_dir in backups_dir.iterdir():
        if backup_dir.is_dir():
            metadata = _load_metadata(backup_dir)
            if metadata is not None:
                backups.append(metadata)
    return sorted(backups, key=lambda b: b.created_at, reverse=True)


def _prune_old_backups(backups_dir: Path, keep: int) -> None:
    """Remove backups beyond keep, newest retained."""
    for old in list_backups(backups_dir)[keep:]:
        shutil.rmtree(backups_dir / old.name)
        logger.debug("Pruned backup %s", old.name)


def restore_backup(repo_root: Path, backups_dir: Path, name: str) -> list[str]:
    """Copy a backup's files back into the repository.

    Returns:
        Repository-relative paths restored

    Raises:
        BackupError: If the backup does not exist or is unreadable
    """
    backup_dir = backups_dir / name
    metadata = _load_metadata(backup_dir)
    if metadata is None:
        raise BackupError(f"Backup not found: {name}")

    restored = []
    for rel in metadata.files:
        source = backup_dir / rel
        if not source.exists():
            logger.warning("Backup %s is missing %s", name, rel)
            continue
        target = repo_root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)
        restored.append(rel)
    return restored
