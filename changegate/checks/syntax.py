"""Syntax validity check.

Dispatches on the target file suffix to a parser for that language.
Files without a registered parser pass with a recommendation.
"""

from __future__ import annotations

import ast
import json
import tomllib
from collections.abc import Callable

from changegate.checks.base import SafetyCheck, suffix_of
from changegate.schemas.changes import CandidateChange, SafetyCheckResult


def _parse_python(content: str) -> str | None:
    try:
        ast.parse(content)
    except SyntaxError as e:
        return f"line {e.lineno}: {e.msg}"
    return None


def _parse_json(content: str) -> str | None:
    try:
        json.loads(content)
    except json.JSONDecodeError as e:
        return f"line {e.lineno}: {e.msg}"
    return None


def _parse_toml(content: str) -> str | None:
    try:
        tomllib.loads(content)
    except tomllib.TOMLDecodeError as e:
        return str(e)
    return None


_PARSERS: dict[str, Callable[[str], str | None]] = {
    ".py": _parse_python,
    ".pyi": _parse_python,
    ".json": _parse_json,
    ".toml": _parse_toml,
}


class SyntaxCheck(SafetyCheck):
    """Proposed content must parse for its target language."""

    name = "syntax"

    def run(self, change: CandidateChange) -> SafetyCheckResult:
        parser = _PARSERS.get(suffix_of(change))
        if parser is None:
            return self._result(
                True, 100.0,
                recommendations=[f"No syntax validator for {change.file_path}; review manually"],
            )

        error = parser(change.proposed_content)
        if error is not None:
            return self._result(
                False, 0.0,
                issues=[f"Syntax error in {change.file_path}: {error}"],
                recommendations=["Fix syntax errors before proceeding"],
            )
        return self._result(True, 100.0)
