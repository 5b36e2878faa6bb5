"""Project-relative path handling."""

from __future__ import annotations

from pathlib import Path


def resolve_in_root(project_root: Path, file_path: str) -> Path:
    """Resolve ``file_path`` against ``project_root``.

    Raises:
        ValueError: If the path is absolute or escapes the project root.
    """
    if Path(file_path).is_absolute():
        raise ValueError(f"Absolute paths are not allowed: {file_path}")

    root = project_root.resolve()
    target = (root / file_path).resolve()
    if target != root and root not in target.parents:
        raise ValueError(f"Path escapes project root: {file_path}")
    if target == root:
        raise ValueError(f"Path refers to the project root itself: {file_path}")
    return target


def missing_parents(project_root: Path, target: Path) -> list[Path]:
    """Ancestors of ``target`` below the root that do not exist yet, deepest first."""
    root = project_root.resolve()
    missing: list[Path] = []
    for parent in target.parents:
        if parent == root or root not in parent.parents:
            break
        if parent.exists():
            break
        missing.append(parent)
    return missing
