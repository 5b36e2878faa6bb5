"""File-copy snapshot backend.

Copies each touched file into the snapshot store and records which
paths and directories did not exist, so restore can delete them again.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from changegate.backup.base import BackupManager
from changegate.errors import BackupError, RollbackFailure
from changegate.paths import resolve_in_root
from changegate.schemas.changes import BackupBackend, RollbackToken

logger = logging.getLogger(__name__)


class FileCopyBackup(BackupManager):
    """Plain file-copy snapshots stored under the token store."""

    backend = BackupBackend.COPY

    def snapshot(self, paths: Sequence[str]) -> RollbackToken:
        unique = list(dict.fromkeys(paths))
        token_id = self.store.new_token_id()
        files_dir = self.store.snapshot_dir(token_id) / "files"

        try:
            self.store.ensure()
            entries = []
            for rel in unique:
                target = resolve_in_root(self.project_root, rel)
                if target.is_dir():
                    raise BackupError(f"Cannot snapshot a directory as a file: {rel}")

                entry = {"path": rel, "existed": target.is_file(), "backup": ""}
                if entry["existed"]:
                    # .bak suffix keeps copies invisible to linters and test collectors
                    backup = files_dir / f"{rel}.bak"
                    backup.parent.mkdir(parents=True, exist_ok=True)
                    shutil.copy2(target, backup)
                    entry["backup"] = backup.relative_to(files_dir).as_posix()
                entries.append(entry)

            self.store.write_manifest(token_id, {
                "backend": self.backend.value,
                "project_root": str(self.project_root),
                "timestamp": datetime.now().isoformat(),
                "files": entries,
                "created_dirs": self._missing_dirs(unique),
            })
        except (OSError, ValueError) as e:
            raise BackupError(f"Snapshot failed: {e}") from e

        token = RollbackToken(
            token_id=token_id,
            backend=self.backend,
            project_root=str(self.project_root),
            paths=unique,
        )
        self.store.record(token)
        logger.info("Snapshot %s captured %d path(s)", token_id, len(unique))
        return token

    def restore(self, token: RollbackToken) -> list[str]:
        self._check_token(token)
        try:
            manifest = self.store.read_manifest(token.token_id)
        except (OSError, ValueError) as e:
            raise RollbackFailure(token.token_id, f"manifest unreadable: {e}") from e

        files_dir = self.store.snapshot_dir(token.token_id) / "files"
        restored: list[str] = []
        failed: list[str] = []

        for entry in manifest.get("files", []):
            rel = entry["path"]
            target = self.project_root / rel
            try:
                if entry["existed"]:
                    self._copy_back(files_dir / entry["backup"], target)
                    logger.info("Restored: %s", rel)
                elif target.exists():
                    target.unlink()
                    logger.info("Deleted new file: %s", rel)
                restored.append(rel)
            except OSError as e:
                logger.error("Failed to restore %s: %s", rel, e)
                failed.append(rel)

        try:
            self._remove_created_dirs(manifest.get("created_dirs", []))
        except OSError as e:
            logger.error("Failed to remove created directories: %s", e)
            failed.append("<created directories>")

        if failed:
            raise RollbackFailure(
                token.token_id, f"{len(failed)} path(s) not restored", failed,
            )
        return restored

    @staticmethod
    def _copy_back(backup: Path, target: Path) -> None:
        """Copy a backup over ``target`` via a temp file and atomic rename."""
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(f".{target.name}.changegate-restore")
        shutil.copy2(backup, tmp)
        os.replace(tmp, target)
