"""Configuration schemas for the safety gate.

Risk thresholds, check penalties, post-validation tools, and backup
storage are all policy knobs loaded from TOML rather than constants.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field

from changegate.schemas.changes import BackupBackend


class ToolKind(StrEnum):
    """Category of a post-implementation verification tool."""

    TYPECHECK = "typecheck"
    LINT = "lint"
    TEST = "test"


class PolicyConfig(BaseModel):
    """Risk-appetite parameters used by checks, applicator, and reporter."""

    max_risk_budget: float = Field(
        default=30.0, ge=0.0, le=100.0,
        description="Per-change average score must reach 100 - budget",
    )
    high_risk_below: float = Field(
        default=50.0, ge=0.0, le=100.0,
        description="Rejected changes averaging below this are high risk",
    )
    rollback_threshold: float = Field(
        default=70.0, ge=0.0, le=100.0,
        description="Batches scoring below this are rolled back",
    )
    high_score_floor: float = Field(default=60.0, ge=0.0, le=100.0)
    low_score_floor: float = Field(default=80.0, ge=0.0, le=100.0)
    high_success_floor: float = Field(default=0.6, ge=0.0, le=1.0)
    low_success_floor: float = Field(default=0.8, ge=0.0, le=1.0)
    security_penalty: float = Field(
        default=25.0, ge=0.0, description="Score deducted per security issue"
    )
    breaking_change_score: float = Field(
        default=50.0, ge=0.0, le=100.0,
        description="Score given to changes with API compatibility issues",
    )
    performance_penalty: float = Field(default=20.0, ge=0.0)
    performance_floor: float = Field(default=30.0, ge=0.0, le=100.0)
    blocking_checks: list[str] = Field(
        default_factory=lambda: ["syntax"],
        description="Checks whose failure rejects a change as high risk at any tier",
    )
    rollback_on_test_failure: bool = Field(
        default=True,
        description="Roll back whenever a test-kind tool fails, regardless of score",
    )

    @property
    def change_threshold(self) -> float:
        return 100.0 - self.max_risk_budget


class ToolConfig(BaseModel):
    """A whole-project verification command run after changes are applied."""

    name: str = Field(description="Display name (e.g. 'mypy')")
    kind: ToolKind = Field(description="Tool category")
    command: str = Field(description="Command line, split with shlex")
    failure_score: float = Field(
        ge=0.0, le=100.0, description="Score recorded when the tool fails"
    )
    timeout: int = Field(default=300, gt=0, description="Timeout in seconds")
    enabled: bool = Field(default=True)
    error_pattern: str = Field(
        default="",
        description="Regex whose first group is an error count parsed from output",
    )


def default_tools() -> list[ToolConfig]:
    return [
        ToolConfig(name="mypy", kind=ToolKind.TYPECHECK, command="mypy .",
                   failure_score=0.0, error_pattern=r"Found (\d+) errors?"),
        ToolConfig(name="ruff", kind=ToolKind.LINT, command="ruff check .",
                   failure_score=70.0, error_pattern=r"Found (\d+) errors?"),
        ToolConfig(name="pytest", kind=ToolKind.TEST, command="pytest -q",
                   failure_score=30.0, error_pattern=r"(\d+) failed"),
    ]


class BackupConfig(BaseModel):
    """Where and how snapshots are stored."""

    backend: BackupBackend = Field(default=BackupBackend.COPY)
    store_dir: str = Field(
        default=".changegate/backups",
        description="Snapshot store, relative to the project root unless absolute",
    )
    lock_timeout: float = Field(
        default=30.0, ge=0.0, description="Seconds to wait for the project lock"
    )


class GateConfig(BaseModel):
    """Top-level configuration for a SafetyPipeline."""

    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    tools: list[ToolConfig] = Field(default_factory=default_tools)
    backup: BackupConfig = Field(default_factory=BackupConfig)
    verify_original: bool = Field(
        default=True,
        description="Reject changes whose target no longer matches original_content",
    )
