"""Exception taxonomy for the safety gate.

Only RollbackFailure (and BatchInProgressError, raised before any work
starts) escape SafetyPipeline.run. Every other class is caught inside
the pipeline and converted into result data.
"""

from __future__ import annotations


class ChangeGateError(Exception):
    """Base class for all changegate errors."""


class CheckExecutionError(ChangeGateError):
    """A safety check could not evaluate a change."""

    def __init__(self, check_name: str, message: str) -> None:
        super().__init__(f"Safety check {check_name} failed: {message}")
        self.check_name = check_name


class HighRiskRejection(ChangeGateError):
    """A change crossed the abort threshold; the batch stops here."""


class WriteError(HighRiskRejection):
    """Writing a change to disk failed."""


class PostValidationToolFailure(ChangeGateError):
    """A post-implementation tool exited non-zero, timed out, or is missing."""

    def __init__(self, tool: str, message: str) -> None:
        super().__init__(f"{tool}: {message}")
        self.tool = tool


class BackupError(ChangeGateError):
    """A snapshot could not be taken."""


class RollbackFailure(ChangeGateError):
    """Restoring a snapshot did not complete.

    The working tree may be partially applied and needs manual repair.
    """

    def __init__(self, token_id: str, message: str, failed_paths: list[str] | None = None) -> None:
        super().__init__(f"Rollback of {token_id} failed: {message}")
        self.token_id = token_id
        self.failed_paths = failed_paths or []


class BatchInProgressError(ChangeGateError):
    """Another batch holds the project lock."""


class StaleContentError(ChangeGateError):
    """The target file changed after the change was proposed."""
