"""Base class for per-change safety checks."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import PurePosixPath

from changegate.schemas.changes import CandidateChange, SafetyCheckResult


class SafetyCheck(ABC):
    """An independent validator scoring one candidate change.

    Subclasses set ``name`` and implement ``run``. Checks must not touch
    the filesystem; everything they need is on the change itself.
    """

    name: str = ""

    @abstractmethod
    def run(self, change: CandidateChange) -> SafetyCheckResult:
        """Score the change."""

    def _result(
        self,
        passed: bool,
        score: float,
        issues: list[str] | None = None,
        recommendations: list[str] | None = None,
    ) -> SafetyCheckResult:
        return SafetyCheckResult(
            check_name=self.name,
            passed=passed,
            score=max(0.0, min(100.0, score)),
            issues=issues or [],
            recommendations=recommendations or [],
        )


def suffix_of(change: CandidateChange) -> str:
    return PurePosixPath(change.file_path.replace("\\", "/")).suffix.lower()


def is_python(change: CandidateChange) -> bool:
    return suffix_of(change) in (".py", ".pyi")
