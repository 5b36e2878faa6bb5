"""Safety check registry.

Runs every registered check against a change and always returns one
result per check. A check that raises is recorded as a failing result.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from changegate.checks.base import SafetyCheck
from changegate.checks.compatibility import ApiCompatibilityCheck
from changegate.checks.performance import PerformanceCheck
from changegate.checks.security import SecurityCheck
from changegate.checks.syntax import SyntaxCheck
from changegate.errors import CheckExecutionError
from changegate.schemas.changes import CandidateChange, SafetyCheckResult
from changegate.schemas.config import PolicyConfig

logger = logging.getLogger(__name__)


def default_checks(policy: PolicyConfig | None = None) -> list[SafetyCheck]:
    """Build the built-in checks configured from ``policy``."""
    policy = policy or PolicyConfig()
    return [
        SyntaxCheck(),
        SecurityCheck(penalty=policy.security_penalty),
        ApiCompatibilityCheck(breaking_score=policy.breaking_change_score),
        PerformanceCheck(
            penalty=policy.performance_penalty, floor=policy.performance_floor,
        ),
    ]


class SafetyCheckRegistry:
    """Flat list of checks consulted uniformly for every change."""

    def __init__(self, checks: Iterable[SafetyCheck] | None = None) -> None:
        self._checks: list[SafetyCheck] = (
            list(checks) if checks is not None else default_checks()
        )

    @property
    def checks(self) -> list[SafetyCheck]:
        return list(self._checks)

    def __len__(self) -> int:
        return len(self._checks)

    def register(self, check: SafetyCheck) -> None:
        """Add a check; it applies to every subsequent run."""
        self._checks.append(check)

    def run_all(self, change: CandidateChange) -> list[SafetyCheckResult]:
        """Run every check against ``change``.

        Returns:
            One SafetyCheckResult per registered check, in registration order.
        """
        results: list[SafetyCheckResult] = []
        for check in self._checks:
            try:
                results.append(check.run(change))
            except Exception as e:
                error = (
                    e if isinstance(e, CheckExecutionError)
                    else CheckExecutionError(check.name, str(e))
                )
                logger.warning("%s (change %s)", error, change.id)
                results.append(SafetyCheckResult(
                    check_name=check.name,
                    passed=False,
                    score=0.0,
                    issues=["check execution failed"],
                    recommendations=[str(error)],
                ))
        return results
