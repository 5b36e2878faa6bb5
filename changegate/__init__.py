"""changegate — safety-gated application of proposed source changes."""

__version__ = "0.1.0"

from changegate.pipeline import CancelToken, SafetyPipeline
from changegate.schemas.changes import (
    CandidateChange,
    FailedChange,
    ImplementedChange,
    PipelineResult,
    RiskLevel,
    RollbackToken,
    SafetyCheckResult,
    SafetyReport,
)

__all__ = [
    "CancelToken",
    "CandidateChange",
    "FailedChange",
    "ImplementedChange",
    "PipelineResult",
    "RiskLevel",
    "RollbackToken",
    "SafetyCheckResult",
    "SafetyPipeline",
    "SafetyReport",
]
