"""API compatibility check.

Flags deletion constructs introduced by the change and, for Python
files, public functions, classes, and methods that the change removes.
"""

from __future__ import annotations

import ast
import re

from changegate.checks.base import SafetyCheck, is_python
from changegate.schemas.changes import CandidateChange, SafetyCheckResult

BREAKING_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\.remove\(\s*\)"), "Potential breaking change: remove() call"),
    (re.compile(r"^\s*del\s+\w+\.\w+", re.MULTILINE), "Attribute deletion detected"),
    (re.compile(r"\bdelattr\s*\("), "delattr() call detected"),
    (re.compile(r"\bdelete\s+\w+\.\w+"), "Property deletion detected"),
]


def public_symbols(source: str) -> set[str] | None:
    """Collect public top-level defs and public methods of public classes.

    Returns None when the source does not parse.
    """
    try:
        tree = ast.parse(source)
    except SyntaxError:
        return None

    symbols: set[str] = set()
    for node in tree.body:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            if not node.name.startswith("_"):
                symbols.add(node.name)
        elif isinstance(node, ast.ClassDef) and not node.name.startswith("_"):
            symbols.add(node.name)
            for item in node.body:
                if isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef)):
                    if not item.name.startswith("_"):
                        symbols.add(f"{node.name}.{item.name}")
    return symbols


class ApiCompatibilityCheck(SafetyCheck):
    """Detects removals that would break callers of the changed file."""

    name = "api_compatibility"

    def __init__(self, breaking_score: float = 50.0) -> None:
        self._breaking_score = breaking_score

    def run(self, change: CandidateChange) -> SafetyCheckResult:
        original = change.original_content or ""
        issues = [
            issue for pattern, issue in BREAKING_PATTERNS
            if pattern.search(change.proposed_content) and not pattern.search(original)
        ]

        if is_python(change) and change.original_content is not None:
            before = public_symbols(original)
            after = public_symbols(change.proposed_content)
            if before is not None and after is not None:
                for name in sorted(before - after):
                    issues.append(f"Public symbol removed: {name}")

        if not issues:
            return self._result(True, 100.0)
        return self._result(
            False, self._breaking_score, issues,
            ["Verify backward compatibility", "Add deprecation warnings"],
        )
