"""Performance-impact heuristic.

Only patterns that are new relative to the original content count;
rewriting a file that already had nested loops is not penalised.
"""

from __future__ import annotations

import ast
import re

from changegate.checks.base import SafetyCheck, is_python
from changegate.schemas.changes import CandidateChange, SafetyCheckResult

NESTED_LOOPS = "nested_loops"
UNBATCHED_AWAIT = "unbatched_await"
UNBOUNDED_TIMER = "unbounded_timer"

ISSUE_TEXT = {
    NESTED_LOOPS: "Nested iteration introduced",
    UNBATCHED_AWAIT: "Per-element await inside a loop (consider batching with gather)",
    UNBOUNDED_TIMER: "Unbounded timer or polling loop (potential leak)",
}

_LOOPS = (ast.For, ast.AsyncFor, ast.While)
_COMPREHENSIONS = (ast.ListComp, ast.SetComp, ast.DictComp, ast.GeneratorExp)

# Fallbacks for non-Python sources
_TEXT_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"for\s*\([^)]*\)\s*\{[^}]*for\s*\(", re.DOTALL), NESTED_LOOPS),
    (re.compile(r"\.(map|forEach)\([^;]*\.(map|forEach)\("), NESTED_LOOPS),
    (re.compile(r"for\s*\([^)]*\)\s*\{[^}]*\bawait\b", re.DOTALL), UNBATCHED_AWAIT),
    (re.compile(r"\b(setInterval|setTimeout)\s*\("), UNBOUNDED_TIMER),
]


def _call_name(node: ast.Call) -> str:
    func = node.func
    if isinstance(func, ast.Attribute):
        return func.attr
    if isinstance(func, ast.Name):
        return func.id
    return ""


def _is_forever(node: ast.While) -> bool:
    return isinstance(node.test, ast.Constant) and bool(node.test.value)


def _python_kinds(tree: ast.AST) -> set[str]:
    kinds: set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, _LOOPS):
            for inner in ast.walk(node):
                if inner is node:
                    continue
                if isinstance(inner, _LOOPS):
                    kinds.add(NESTED_LOOPS)
                elif isinstance(inner, ast.Await) and not isinstance(node, ast.While):
                    kinds.add(UNBATCHED_AWAIT)
            if isinstance(node, ast.While) and _is_forever(node):
                if any(
                    isinstance(inner, ast.Call) and _call_name(inner) == "sleep"
                    for inner in ast.walk(node)
                ):
                    kinds.add(UNBOUNDED_TIMER)
        elif isinstance(node, _COMPREHENSIONS):
            if len(node.generators) > 1:
                kinds.add(NESTED_LOOPS)
            if any(isinstance(inner, ast.Await) for inner in ast.walk(node)):
                kinds.add(UNBATCHED_AWAIT)
        elif isinstance(node, ast.Call) and _call_name(node) in ("Timer", "call_later"):
            kinds.add(UNBOUNDED_TIMER)
    return kinds


def detect_patterns(source: str, python: bool) -> set[str]:
    """Return the performance pattern kinds present in ``source``."""
    if python:
        try:
            return _python_kinds(ast.parse(source))
        except SyntaxError:
            pass
    return {kind for pattern, kind in _TEXT_PATTERNS if pattern.search(source)}


class PerformanceCheck(SafetyCheck):
    """Flags newly introduced performance hazards."""

    name = "performance_impact"

    def __init__(self, penalty: float = 20.0, floor: float = 30.0) -> None:
        self._penalty = penalty
        self._floor = floor

    def run(self, change: CandidateChange) -> SafetyCheckResult:
        python = is_python(change)
        before = detect_patterns(change.original_content or "", python)
        after = detect_patterns(change.proposed_content, python)
        issues = [ISSUE_TEXT[kind] for kind in sorted(after - before)]

        score = max(self._floor, 100.0 - self._penalty * len(issues))
        recommendations = (
            ["Consider performance optimization", "Add performance monitoring"]
            if issues else []
        )
        return self._result(len(issues) <= 1, score, issues, recommendations)
