"""Snapshot and restore backends."""

from __future__ import annotations

from pathlib import Path

from changegate.backup.base import BackupManager
from changegate.backup.filecopy import FileCopyBackup
from changegate.backup.git import GitBackup
from changegate.backup.store import TokenStore
from changegate.schemas.changes import BackupBackend
from changegate.schemas.config import BackupConfig

__all__ = [
    "BackupManager",
    "FileCopyBackup",
    "GitBackup",
    "TokenStore",
    "create_backup_manager",
    "store_for",
]


def store_for(project_root: Path, config: BackupConfig) -> TokenStore:
    """Token store for ``project_root``; relative store dirs live under the root."""
    store_dir = Path(config.store_dir)
    if not store_dir.is_absolute():
        store_dir = project_root / store_dir
    return TokenStore(store_dir)


def create_backup_manager(project_root: Path, config: BackupConfig) -> BackupManager:
    """Build the backend named by ``config.backend``."""
    store = store_for(project_root, config)
    if config.backend == BackupBackend.GIT:
        return GitBackup(project_root, store)
    return FileCopyBackup(project_root, store)
