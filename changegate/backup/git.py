"""Git checkpoint snapshot backend.

Records HEAD plus a ``git stash create`` commit of the dirty working
tree, then restores touched paths from that commit. Uses subprocess
directly to avoid a dependency on GitPython.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence
from datetime import datetime

from changegate.backup.base import BackupManager
from changegate.errors import BackupError, RollbackFailure
from changegate.paths import resolve_in_root
from changegate.schemas.changes import BackupBackend, RollbackToken

logger = logging.getLogger(__name__)


class GitBackup(BackupManager):
    """Version-control checkpoints for projects inside a git work tree.

    Untracked files that already exist cannot be recovered from a commit,
    so snapshotting one is refused.
    """

    backend = BackupBackend.GIT

    def _run(self, *args: str, check: bool = True) -> subprocess.CompletedProcess:
        """Run a git command in the project root."""
        return subprocess.run(
            ["git", *args],
            cwd=str(self.project_root),
            capture_output=True,
            text=True,
            check=check,
            timeout=30,
        )

    def snapshot(self, paths: Sequence[str]) -> RollbackToken:
        unique = list(dict.fromkeys(paths))
        try:
            inside = self._run("rev-parse", "--is-inside-work-tree", check=False)
            if inside.returncode != 0:
                raise BackupError(f"Not a git repository: {self.project_root}")

            head = self._run("rev-parse", "HEAD").stdout.strip()
            stash = self._run("stash", "create").stdout.strip()
            checkpoint = stash or head

            entries = []
            for rel in unique:
                target = resolve_in_root(self.project_root, rel)
                existed = target.exists()
                if existed and not self._is_tracked(rel):
                    raise BackupError(
                        f"Untracked file cannot be checkpointed by git: {rel}"
                    )
                entries.append({"path": rel, "existed": existed})

            token_id = self.store.new_token_id()
            self.store.write_manifest(token_id, {
                "backend": self.backend.value,
                "project_root": str(self.project_root),
                "timestamp": datetime.now().isoformat(),
                "head": head,
                "checkpoint": checkpoint,
                "files": entries,
                "created_dirs": self._missing_dirs(unique),
            })
        except subprocess.CalledProcessError as e:
            raise BackupError(f"git {e.cmd[1]} failed: {e.stderr.strip()}") from e
        except (OSError, ValueError, subprocess.TimeoutExpired) as e:
            raise BackupError(f"Snapshot failed: {e}") from e

        token = RollbackToken(
            token_id=token_id,
            backend=self.backend,
            project_root=str(self.project_root),
            paths=unique,
        )
        self.store.record(token)
        logger.info("Git checkpoint %s at %s", token_id, checkpoint[:12])
        return token

    def restore(self, token: RollbackToken) -> list[str]:
        self._check_token(token)
        try:
            manifest = self.store.read_manifest(token.token_id)
        except (OSError, ValueError) as e:
            raise RollbackFailure(token.token_id, f"manifest unreadable: {e}") from e

        checkpoint = manifest["checkpoint"]
        restored: list[str] = []
        failed: list[str] = []

        for entry in manifest.get("files", []):
            rel = entry["path"]
            target = self.project_root / rel
            try:
                if entry["existed"]:
                    if not self._in_commit(checkpoint, rel):
                        logger.error("%s missing from checkpoint %s", rel, checkpoint[:12])
                        failed.append(rel)
                        continue
                    self._run("restore", f"--source={checkpoint}", "--worktree", "--", rel)
                    logger.info("Restored from %s: %s", checkpoint[:12], rel)
                elif target.exists():
                    target.unlink()
                    logger.info("Deleted new file: %s", rel)
                restored.append(rel)
            except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
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

    def _is_tracked(self, rel: str) -> bool:
        result = self._run("ls-files", "--error-unmatch", "--", rel, check=False)
        return result.returncode == 0

    def _in_commit(self, sha: str, rel: str) -> bool:
        result = self._run("cat-file", "-e", f"{sha}:./{rel}", check=False)
        return result.returncode == 0
