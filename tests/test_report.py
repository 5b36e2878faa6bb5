"""Tests for risk aggregation, the rollback decision, and result schemas."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from changegate.report import (
    build_safety_report,
    classify_risk,
    report_from_results,
    should_rollback,
)
from changegate.schemas.changes import (
    CandidateChange,
    FailedChange,
    ImplementedChange,
    PipelineResult,
    PipelineState,
    RiskLevel,
    SafetyCheckResult,
    SafetyReport,
)
from changegate.schemas.config import PolicyConfig

POLICY = PolicyConfig()


def _result(score: float, passed: bool = True) -> SafetyCheckResult:
    return SafetyCheckResult(check_name="c", passed=passed, score=score)


def _implemented(*scores: float) -> ImplementedChange:
    return ImplementedChange(
        file_path="a.py", change_id="c1", original_content=None, new_content="",
        validation_results=[_result(s) for s in scores],
    )


def _failed(level: RiskLevel = RiskLevel.MEDIUM) -> FailedChange:
    return FailedChange(file_path="b.py", change_id="c2", error="nope", risk_level=level)


class TestClassifyRisk:
    @pytest.mark.parametrize("score,rate,expected", [
        (100, 1.0, RiskLevel.LOW),
        (80, 0.8, RiskLevel.LOW),
        (79.9, 1.0, RiskLevel.MEDIUM),
        (100, 0.79, RiskLevel.MEDIUM),
        (60, 0.6, RiskLevel.MEDIUM),
        (59.9, 1.0, RiskLevel.HIGH),
        (100, 0.59, RiskLevel.HIGH),
        (0, 0.0, RiskLevel.HIGH),
    ])
    def test_boundaries(self, score, rate, expected):
        assert classify_risk(score, rate, POLICY) == expected


class TestBuildSafetyReport:
    def test_combines_pre_and_post_results(self):
        report = build_safety_report(
            [_implemented(100, 75, 100, 100)], [], [_result(100)] * 3,
        )
        assert report.checks_performed == 7
        assert report.checks_passed == 7
        assert report.overall_score == pytest.approx(675 / 7)
        assert report.success_rate == 1.0
        assert report.risk_level == RiskLevel.LOW

    def test_success_rate_counts_failures(self):
        report = build_safety_report([_implemented(100)], [_failed()], [])
        assert report.success_rate == 0.5
        assert report.risk_level == RiskLevel.HIGH

    def test_empty_batch_is_high_risk(self):
        report = build_safety_report([], [], [])
        assert report.overall_score == 0
        assert report.success_rate == 0
        assert report.risk_level == RiskLevel.HIGH
        assert should_rollback(report) is True

    def test_summary_lines(self):
        report = build_safety_report(
            [_implemented(100)], [], [_result(30, passed=False)],
            summary_prefix="Batch one",
        )
        lines = report.summary.splitlines()
        assert lines[0] == "Batch one"
        assert lines[1] == "Implementation success rate: 100.0% (1/1)"
        assert lines[2] == "Safety check pass rate: 50.0% (1/2)"
        assert lines[3] == "Overall safety score: 65.0/100"

    def test_policy_floors_respected(self):
        lenient = PolicyConfig(low_score_floor=50.0, high_score_floor=40.0)
        report = report_from_results([_result(55)], 1, 0, lenient)
        assert report.risk_level == RiskLevel.LOW


class TestShouldRollback:
    def test_low_risk_kept(self):
        report = build_safety_report([_implemented(100)], [], [])
        assert should_rollback(report) is False

    def test_score_below_threshold(self):
        report = SafetyReport(
            overall_score=65, checks_performed=1, checks_passed=1,
            success_rate=1.0, risk_level=RiskLevel.MEDIUM,
        )
        assert should_rollback(report) is True

    def test_medium_risk_above_threshold_kept(self):
        report = SafetyReport(
            overall_score=75, checks_performed=1, checks_passed=1,
            success_rate=1.0, risk_level=RiskLevel.MEDIUM,
        )
        assert should_rollback(report) is False

    def test_high_risk_always_rolls_back(self):
        report = SafetyReport(
            overall_score=95, checks_performed=1, checks_passed=1,
            success_rate=0.5, risk_level=RiskLevel.HIGH,
        )
        assert should_rollback(report) is True


class TestSchemas:
    def test_implemented_change_requires_results(self):
        with pytest.raises(ValidationError):
            ImplementedChange(
                file_path="a.py", change_id="c1", original_content=None,
                new_content="", validation_results=[],
            )

    def test_score_bounds(self):
        with pytest.raises(ValidationError):
            SafetyCheckResult(check_name="c", passed=True, score=101)

    def test_candidate_is_frozen(self):
        change = CandidateChange(file_path="a.py", proposed_content="")
        with pytest.raises(ValidationError):
            change.file_path = "b.py"

    def test_candidate_ids_unique(self):
        a = CandidateChange(file_path="a.py", proposed_content="")
        b = CandidateChange(file_path="a.py", proposed_content="")
        assert a.id != b.id
        assert a.is_creation is True
        assert a.risk_tier == RiskLevel.MEDIUM

    def test_pipeline_result_rolled_back(self):
        report = build_safety_report([], [], [])
        result = PipelineResult(
            state=PipelineState.ROLLED_BACK, success=False, safety_report=report,
        )
        assert result.rolled_back is True
        assert result.rollback_token is None
