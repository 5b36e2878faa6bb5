"""Append-only store of rollback tokens and their snapshot directories."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime
from pathlib import Path

from changegate.schemas.changes import RollbackToken

logger = logging.getLogger(__name__)

_INDEX_FILE = "tokens.jsonl"


class TokenStore:
    """Persists rollback tokens under a snapshot store directory.

    Layout::

        <store>/tokens.jsonl          one token per line, append-only
        <store>/<token_id>/           snapshot data owned by a backend
        <store>/.lock                 project lock held by running batches
    """

    def __init__(self, store_dir: Path) -> None:
        self.store_dir = store_dir

    @property
    def lock_path(self) -> Path:
        return self.store_dir / ".lock"

    def ensure(self) -> None:
        """Create the store directory, ignored by git."""
        self.store_dir.mkdir(parents=True, exist_ok=True)
        ignore = self.store_dir / ".gitignore"
        if not ignore.exists():
            ignore.write_text("*\n", encoding="utf-8")

    def new_token_id(self) -> str:
        """Generate a token id that has never been used in this store."""
        while True:
            stamp = datetime.now().strftime("%Y%m%dT%H%M%S")
            token_id = f"backup-{stamp}-{uuid.uuid4().hex[:8]}"
            if not self.snapshot_dir(token_id).exists():
                return token_id

    def snapshot_dir(self, token_id: str) -> Path:
        return self.store_dir / token_id

    def record(self, token: RollbackToken) -> None:
        """Append a token to the index."""
        self.ensure()
        with open(self.store_dir / _INDEX_FILE, "a", encoding="utf-8") as f:
            f.write(token.model_dump_json() + "\n")
        logger.info("Recorded rollback token %s", token.token_id)

    def list_tokens(self) -> list[RollbackToken]:
        """All recorded tokens, oldest first."""
        index = self.store_dir / _INDEX_FILE
        if not index.exists():
            return []

        tokens: list[RollbackToken] = []
        for line in index.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            try:
                tokens.append(RollbackToken.model_validate_json(line))
            except ValueError:
                logger.warning("Skipping malformed token record in %s", index)
        return tokens

    def get(self, token_id: str) -> RollbackToken | None:
        for token in self.list_tokens():
            if token.token_id == token_id:
                return token
        return None

    def write_manifest(self, token_id: str, manifest: dict) -> Path:
        snap = self.snapshot_dir(token_id)
        snap.mkdir(parents=True, exist_ok=True)
        path = snap / "manifest.json"
        path.write_text(json.dumps(manifest, indent=2), encoding="utf-8")
        return path

    def read_manifest(self, token_id: str) -> dict:
        """Load a snapshot manifest.

        Raises:
            FileNotFoundError: If the snapshot has no manifest.
        """
        path = self.snapshot_dir(token_id) / "manifest.json"
        return json.loads(path.read_text(encoding="utf-8"))
