"""Backup manager interface shared by all snapshot backends."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

from changegate.backup.store import TokenStore
from changegate.errors import RollbackFailure
from changegate.paths import missing_parents, resolve_in_root
from changegate.schemas.changes import BackupBackend, RollbackToken

logger = logging.getLogger(__name__)


class BackupManager(ABC):
    """Snapshots the files a batch may touch and restores them on rollback.

    ``snapshot`` must run before the first write of a batch. ``restore``
    undoes every write since the snapshot (overwrites, creations and
    deletions) and is idempotent. A restore that cannot complete raises
    RollbackFailure.
    """

    backend: BackupBackend

    def __init__(self, project_root: Path, store: TokenStore) -> None:
        self.project_root = project_root.resolve()
        self.store = store

    @abstractmethod
    def snapshot(self, paths: Sequence[str]) -> RollbackToken:
        """Capture the current state of ``paths`` (project-relative).

        Raises:
            BackupError: If the snapshot cannot be taken.
        """

    @abstractmethod
    def restore(self, token: RollbackToken) -> list[str]:
        """Restore the project to the state captured by ``token``.

        Returns:
            Project-relative paths that were restored or removed.

        Raises:
            RollbackFailure: If any path could not be restored.
        """

    def _check_token(self, token: RollbackToken) -> None:
        if token.backend != self.backend:
            raise RollbackFailure(
                token.token_id,
                f"token was created by the {token.backend} backend, not {self.backend}",
            )
        if Path(token.project_root).resolve() != self.project_root:
            raise RollbackFailure(
                token.token_id,
                f"token belongs to {token.project_root}, not {self.project_root}",
            )

    def _missing_dirs(self, paths: Sequence[str]) -> list[str]:
        """Directories a batch would have to create for ``paths``."""
        dirs: list[str] = []
        for rel in paths:
            target = resolve_in_root(self.project_root, rel)
            for parent in missing_parents(self.project_root, target):
                rel_dir = parent.relative_to(self.project_root).as_posix()
                if rel_dir not in dirs:
                    dirs.append(rel_dir)
        return dirs

    def _remove_created_dirs(self, dirs: Sequence[str]) -> None:
        """Remove directories the batch created, deepest first, if empty."""
        for rel_dir in sorted(dirs, key=lambda d: d.count("/"), reverse=True):
            path = self.project_root / rel_dir
            if path.is_dir() and not any(path.iterdir()):
                path.rmdir()
                logger.info("Removed created directory: %s", rel_dir)
