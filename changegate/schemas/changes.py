"""Change records flowing through the safety-gated apply pipeline.

Defines the candidate changes handed in by the upstream planner, the
per-check results, the applied/failed change records, the rollback
token, and the aggregate report and pipeline result returned to callers.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class RiskLevel(StrEnum):
    """Risk classification shared by planner tiers and computed verdicts."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ChangeState(StrEnum):
    """Per-change applicator states."""

    PENDING = "pending"
    PRE_CHECKED = "pre_checked"
    APPLIED = "applied"
    REJECTED = "rejected"


class PipelineState(StrEnum):
    """Top-level pipeline stages."""

    START = "start"
    SNAPSHOTTING = "snapshotting"
    PREFLIGHT_CHECKING = "preflight_checking"
    APPLYING = "applying"
    POST_VALIDATING = "post_validating"
    DECIDING = "deciding"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class BackupBackend(StrEnum):
    """Snapshot storage backends."""

    COPY = "copy"
    GIT = "git"


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


class CandidateChange(BaseModel):
    """A proposed, not-yet-applied file edit."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id, description="Change identifier")
    file_path: str = Field(description="Target path relative to the project root")
    original_content: str | None = Field(
        default=None,
        description="Content the planner saw (None = the file is being created)",
    )
    proposed_content: str = Field(description="Full file content to write")
    description: str = Field(default="", description="Human-readable rationale")
    risk_tier: RiskLevel = Field(
        default=RiskLevel.MEDIUM, description="Risk tier declared by the planner"
    )
    suggested_tests: list[str] = Field(
        default_factory=list, description="Test names the planner suggests running"
    )

    @property
    def is_creation(self) -> bool:
        return self.original_content is None


class SafetyCheckResult(BaseModel):
    """Outcome of one safety check against one change or the whole project."""

    model_config = ConfigDict(frozen=True)

    check_name: str = Field(default="", description="Name of the check that produced this")
    passed: bool = Field(description="Hard gate used for fail-fast on high-tier changes")
    score: float = Field(ge=0.0, le=100.0, description="Continuous safety signal")
    issues: list[str] = Field(default_factory=list, description="Problems detected")
    recommendations: list[str] = Field(
        default_factory=list, description="Suggested follow-ups"
    )


class ImplementedChange(BaseModel):
    """A candidate change that was written to disk."""

    model_config = ConfigDict(frozen=True)

    file_path: str
    change_id: str
    original_content: str | None = Field(
        description="Content before the write (None = file did not exist)"
    )
    new_content: str
    timestamp: datetime = Field(default_factory=datetime.now)
    validation_results: list[SafetyCheckResult] = Field(
        min_length=1, description="Pre-checks collected for this change"
    )


class FailedChange(BaseModel):
    """A candidate change that was not applied."""

    model_config = ConfigDict(frozen=True)

    file_path: str
    change_id: str
    error: str
    safety_issues: list[str] = Field(default_factory=list)
    risk_level: RiskLevel


class RollbackToken(BaseModel):
    """Opaque handle to a pre-batch snapshot."""

    model_config = ConfigDict(frozen=True)

    token_id: str = Field(description="Unique snapshot identifier, never reused")
    backend: BackupBackend = Field(description="Backend that holds the snapshot")
    project_root: str = Field(description="Absolute project root the snapshot covers")
    created_at: datetime = Field(default_factory=datetime.now)
    paths: list[str] = Field(
        default_factory=list, description="Project-relative paths captured"
    )


class SafetyReport(BaseModel):
    """Aggregate safety verdict for one batch."""

    model_config = ConfigDict(frozen=True)

    overall_score: float = Field(ge=0.0, le=100.0)
    checks_performed: int = Field(ge=0)
    checks_passed: int = Field(ge=0)
    success_rate: float = Field(ge=0.0, le=1.0, description="implemented / attempted")
    risk_level: RiskLevel
    summary: str = ""


class PipelineResult(BaseModel):
    """Full record of one batch invocation, handed to downstream consumers."""

    model_config = ConfigDict(frozen=True)

    batch_id: str = Field(default_factory=_new_id)
    state: PipelineState
    success: bool
    implemented_changes: list[ImplementedChange] = Field(default_factory=list)
    failed_changes: list[FailedChange] = Field(default_factory=list)
    reverted_changes: list[ImplementedChange] = Field(
        default_factory=list, description="Changes written and then undone by rollback"
    )
    post_validation: list[SafetyCheckResult] = Field(default_factory=list)
    safety_report: SafetyReport
    rollback_token: RollbackToken | None = Field(
        default=None, description="None only when the snapshot itself failed"
    )
    cancelled: bool = False

    @property
    def rolled_back(self) -> bool:
        return self.state == PipelineState.ROLLED_BACK
