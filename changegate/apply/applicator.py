"""Per-change applicator.

Drives one CandidateChange through pending -> pre_checked ->
applied | rejected. Every rejection is returned as a FailedChange;
nothing is raised to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from changegate.checks.registry import SafetyCheckRegistry
from changegate.errors import StaleContentError, WriteError
from changegate.paths import resolve_in_root
from changegate.schemas.changes import (
    CandidateChange,
    ChangeState,
    FailedChange,
    ImplementedChange,
    RiskLevel,
    SafetyCheckResult,
)
from changegate.schemas.config import PolicyConfig

logger = logging.getLogger(__name__)


@dataclass
class ChangeOutcome:
    """Terminal state of one change plus the record it produced."""

    state: ChangeState
    results: list[SafetyCheckResult] = field(default_factory=list)
    implemented: ImplementedChange | None = None
    failed: FailedChange | None = None

    @property
    def aborts_batch(self) -> bool:
        return self.failed is not None and self.failed.risk_level == RiskLevel.HIGH


def average_score(results: list[SafetyCheckResult]) -> float:
    if not results:
        return 0.0
    return sum(r.score for r in results) / len(results)


class ChangeApplicator:
    """Pre-checks and writes single changes under a project root."""

    def __init__(
        self,
        project_root: Path,
        registry: SafetyCheckRegistry,
        policy: PolicyConfig | None = None,
        verify_original: bool = True,
    ) -> None:
        self._root = project_root.resolve()
        self._registry = registry
        self._policy = policy or PolicyConfig()
        self._verify_original = verify_original

    def pre_check(self, change: CandidateChange) -> list[SafetyCheckResult]:
        """Run every registered check against ``change``."""
        return self._registry.run_all(change)

    def apply(
        self,
        change: CandidateChange,
        results: list[SafetyCheckResult] | None = None,
    ) -> ChangeOutcome:
        """Pre-check and, if allowed, write ``change``.

        Args:
            change: The change to apply.
            results: Check results already collected for this change
                (e.g. during preflight). Run fresh when None.
        """
        logger.debug("Change %s %s: %s", change.id, ChangeState.PENDING.value, change.file_path)
        if results is None:
            results = self.pre_check(change)
        logger.debug(
            "Change %s %s with %d result(s)", change.id, ChangeState.PRE_CHECKED.value, len(results),
        )

        if not results:
            return self._reject(
                change, results, "No safety checks were run",
                ["No safety checks registered"], RiskLevel.HIGH,
            )

        failing = [r for r in results if not r.passed]
        blocking = [r for r in failing if r.check_name in self._policy.blocking_checks]
        if blocking or (change.risk_tier == RiskLevel.HIGH and failing):
            first = (blocking or failing)[0]
            issues = [issue for r in failing for issue in r.issues]
            return self._reject(
                change, results, f"Safety check failed: {first.check_name}",
                issues, RiskLevel.HIGH,
            )

        avg = average_score(results)
        if avg < self._policy.change_threshold:
            level = RiskLevel.HIGH if avg < self._policy.high_risk_below else RiskLevel.MEDIUM
            return self._reject(
                change, results, f"Safety score too low: {avg:.1f}",
                ["Overall safety score below threshold"], level,
            )

        try:
            implemented = self._write(change, results)
        except WriteError as e:
            return self._reject(
                change, results, str(e), ["Implementation error"], RiskLevel.HIGH,
            )
        except StaleContentError as e:
            return self._reject(
                change, results, str(e), ["File changed since the change was proposed"],
                RiskLevel.MEDIUM,
            )

        logger.info(
            "%s %s (%s)", "Created" if change.is_creation else "Updated",
            change.file_path, change.id,
        )
        return ChangeOutcome(
            state=ChangeState.APPLIED, results=results, implemented=implemented,
        )

    def _write(
        self, change: CandidateChange, results: list[SafetyCheckResult],
    ) -> ImplementedChange:
        try:
            target = resolve_in_root(self._root, change.file_path)
        except ValueError as e:
            raise WriteError(str(e)) from e

        try:
            original = target.read_bytes().decode("utf-8") if target.is_file() else None
        except (OSError, UnicodeDecodeError) as e:
            raise WriteError(f"Cannot read {change.file_path}: {e}") from e

        if self._verify_original and original != change.original_content:
            raise StaleContentError(
                f"{change.file_path} no longer matches the content the change was based on"
            )

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(change.proposed_content.encode("utf-8"))
        except OSError as e:
            raise WriteError(f"Failed to write {change.file_path}: {e}") from e

        return ImplementedChange(
            file_path=change.file_path,
            change_id=change.id,
            original_content=original,
            new_content=change.proposed_content,
            validation_results=results,
        )

    def _reject(
        self,
        change: CandidateChange,
        results: list[SafetyCheckResult],
        error: str,
        issues: list[str],
        level: RiskLevel,
    ) -> ChangeOutcome:
        logger.warning("Rejected %s (%s): %s", change.file_path, level.value, error)
        return ChangeOutcome(
            state=ChangeState.REJECTED,
            results=results,
            failed=FailedChange(
                file_path=change.file_path,
                change_id=change.id,
                error=error,
                safety_issues=issues,
                risk_level=level,
            ),
        )
