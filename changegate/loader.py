"""Load candidate changes handed over by the upstream planner."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError

from changegate.schemas.changes import CandidateChange


def load_changes(path: Path) -> list[CandidateChange]:
    """Read a JSON batch of candidate changes.

    Accepts either a bare list of change objects or an object with a
    ``changes`` list.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the JSON is malformed or a change fails validation.
    """
    if not path.exists():
        raise FileNotFoundError(f"Change batch not found: {path}")

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}: {e}") from e

    if isinstance(raw, dict):
        raw = raw.get("changes")
    if not isinstance(raw, list):
        raise ValueError(f"No list of changes found in {path}")

    try:
        return [CandidateChange.model_validate(entry) for entry in raw]
    except ValidationError as e:
        raise ValueError(f"Invalid change in {path}: {e}") from e
