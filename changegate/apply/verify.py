"""Post-implementation verification.

Runs the configured whole-project tools (type checker, linter, test
runner) after a batch has been written and converts each outcome into a
SafetyCheckResult. A missing tool or a timeout is a failed check.
"""

from __future__ import annotations

import logging
import re
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from changegate.errors import PostValidationToolFailure
from changegate.schemas.changes import SafetyCheckResult
from changegate.schemas.config import ToolConfig, ToolKind

logger = logging.getLogger(__name__)

_RECOMMENDATIONS: dict[ToolKind, list[str]] = {
    ToolKind.TYPECHECK: ["Fix type errors before proceeding"],
    ToolKind.LINT: ["Review and fix linting issues"],
    ToolKind.TEST: ["Fix failing tests", "Update test cases if needed"],
}

_FAILURE_ISSUES: dict[ToolKind, str] = {
    ToolKind.TYPECHECK: "Type check failed",
    ToolKind.LINT: "Lint warnings/errors found",
    ToolKind.TEST: "Some tests failed",
}


@dataclass
class ProcessOutcome:
    """Result of one external process invocation."""

    returncode: int
    output: str = ""
    timed_out: bool = False
    missing: bool = False


class ProcessRunner(Protocol):
    """Port for running external commands."""

    def run(self, args: list[str], cwd: Path, timeout: int) -> ProcessOutcome: ...


class SubprocessRunner:
    """Runs commands with subprocess and a timeout."""

    def run(self, args: list[str], cwd: Path, timeout: int) -> ProcessOutcome:
        try:
            result = subprocess.run(
                args,
                cwd=str(cwd),
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            return ProcessOutcome(
                returncode=-1,
                output=f"Command timed out after {timeout} seconds",
                timed_out=True,
            )
        except FileNotFoundError:
            return ProcessOutcome(
                returncode=-1, output=f"Command not found: {args[0]}", missing=True,
            )
        except OSError as e:
            return ProcessOutcome(returncode=-1, output=f"Command error: {e}", missing=True)
        return ProcessOutcome(returncode=result.returncode, output=result.stdout + result.stderr)


class PostImplementationValidator:
    """Runs each configured tool in order, one result per enabled tool."""

    def __init__(
        self,
        project_root: Path,
        tools: list[ToolConfig],
        runner: ProcessRunner | None = None,
    ) -> None:
        self._project_root = project_root
        self._tools = [t for t in tools if t.enabled]
        self._runner = runner or SubprocessRunner()

    def run(self) -> list[SafetyCheckResult]:
        """Run all enabled tools.

        Returns:
            SafetyCheckResults in tool order.
        """
        return [self.run_tool(tool) for tool in self._tools]

    @property
    def tools(self) -> list[ToolConfig]:
        return list(self._tools)

    def failed_kinds(self, results: list[SafetyCheckResult]) -> set[ToolKind]:
        """Kinds of the tools whose results in ``results`` did not pass."""
        return {tool.kind for tool, r in zip(self._tools, results) if not r.passed}

    def run_tool(self, tool: ToolConfig) -> SafetyCheckResult:
        """Run one tool and score its outcome."""
        logger.info("Running %s: %s", tool.kind.value, tool.command)
        try:
            args = shlex.split(tool.command)
            if not args:
                raise PostValidationToolFailure(tool.name, "empty command")
            outcome = self._runner.run(args, self._project_root, tool.timeout)
            if outcome.missing:
                raise PostValidationToolFailure(tool.name, f"unavailable ({outcome.output})")
            if outcome.timed_out:
                raise PostValidationToolFailure(
                    tool.name, f"timed out after {tool.timeout}s",
                )
        except (PostValidationToolFailure, ValueError) as e:
            logger.error("%s", e)
            return SafetyCheckResult(
                check_name=tool.name,
                passed=False,
                score=tool.failure_score,
                issues=[str(e)],
                recommendations=[f"Install or configure {tool.name}"],
            )

        if outcome.returncode == 0:
            logger.info("%s passed", tool.name)
            return SafetyCheckResult(check_name=tool.name, passed=True, score=100.0)

        logger.warning("%s failed (exit code %d)", tool.name, outcome.returncode)
        issue = _FAILURE_ISSUES[tool.kind]
        count = parse_error_count(tool.error_pattern, outcome.output)
        if count is not None:
            issue = f"{issue} ({count} reported by {tool.name})"
        return SafetyCheckResult(
            check_name=tool.name,
            passed=False,
            score=tool.failure_score,
            issues=[issue],
            recommendations=list(_RECOMMENDATIONS[tool.kind]),
        )


def parse_error_count(pattern: str, output: str) -> int | None:
    """Extract an error count from tool output using ``pattern``'s first group."""
    if not pattern:
        return None
    try:
        match = re.search(pattern, output)
    except re.error:
        logger.warning("Invalid error_pattern: %s", pattern)
        return None
    if not match or not match.groups():
        return None
    try:
        return int(match.group(1))
    except ValueError:
        return None
