"""Risk aggregation and the keep-or-rollback decision."""

from __future__ import annotations

from changegate.schemas.changes import (
    FailedChange,
    ImplementedChange,
    RiskLevel,
    SafetyCheckResult,
    SafetyReport,
)
from changegate.schemas.config import PolicyConfig


def classify_risk(score: float, success_rate: float, policy: PolicyConfig) -> RiskLevel:
    """Map an overall score and success ratio to a risk level."""
    if score < policy.high_score_floor or success_rate < policy.high_success_floor:
        return RiskLevel.HIGH
    if score >= policy.low_score_floor and success_rate >= policy.low_success_floor:
        return RiskLevel.LOW
    return RiskLevel.MEDIUM


def build_safety_report(
    implemented: list[ImplementedChange],
    failed: list[FailedChange],
    post_validation: list[SafetyCheckResult],
    policy: PolicyConfig | None = None,
    summary_prefix: str = "",
) -> SafetyReport:
    """Combine pre-check and post-validation results into one report.

    Args:
        implemented: Changes written in this batch.
        failed: Changes rejected in this batch.
        post_validation: Whole-project tool results.
        policy: Risk thresholds.
        summary_prefix: Optional first line for the summary.
    """
    policy = policy or PolicyConfig()
    results = [r for change in implemented for r in change.validation_results]
    results.extend(post_validation)
    return report_from_results(
        results, len(implemented), len(failed), policy, summary_prefix,
    )


def report_from_results(
    results: list[SafetyCheckResult],
    implemented_count: int,
    failed_count: int,
    policy: PolicyConfig,
    summary_prefix: str = "",
) -> SafetyReport:
    total = implemented_count + failed_count
    success_rate = implemented_count / total if total else 0.0

    checks_performed = len(results)
    checks_passed = sum(1 for r in results if r.passed)
    overall = sum(r.score for r in results) / checks_performed if checks_performed else 0.0
    pass_rate = checks_passed / checks_performed * 100 if checks_performed else 0.0

    lines = [summary_prefix] if summary_prefix else []
    lines += [
        f"Implementation success rate: {success_rate * 100:.1f}% ({implemented_count}/{total})",
        f"Safety check pass rate: {pass_rate:.1f}% ({checks_passed}/{checks_performed})",
        f"Overall safety score: {overall:.1f}/100",
    ]

    return SafetyReport(
        overall_score=overall,
        checks_performed=checks_performed,
        checks_passed=checks_passed,
        success_rate=success_rate,
        risk_level=classify_risk(overall, success_rate, policy),
        summary="\n".join(lines),
    )


def should_rollback(report: SafetyReport, policy: PolicyConfig | None = None) -> bool:
    """True when the batch must be undone."""
    policy = policy or PolicyConfig()
    return report.risk_level == RiskLevel.HIGH or report.overall_score < policy.rollback_threshold
