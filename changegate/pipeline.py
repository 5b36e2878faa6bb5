"""Pipeline orchestrator — sequences snapshot, checks, writes, verification.

Flow for one batch:
1. Acquire the project lock
2. Snapshot every path the batch may touch
3. Preflight: run the check registry over every change
4. Apply changes in order, stopping at the first high-risk rejection
5. Post-implementation verification (type-check / lint / tests)
6. Aggregate a SafetyReport and commit or roll back

Every per-check and per-change failure becomes result data. Only a
failed restore (RollbackFailure) or a held lock (BatchInProgressError)
is raised to the caller.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from pathlib import Path

from filelock import FileLock, Timeout

from changegate.apply.applicator import ChangeApplicator, average_score
from changegate.apply.verify import PostImplementationValidator, ProcessRunner
from changegate.backup import BackupManager, create_backup_manager
from changegate.checks.registry import SafetyCheckRegistry, default_checks
from changegate.errors import BackupError, BatchInProgressError, RollbackFailure
from changegate.paths import resolve_in_root
from changegate.report import build_safety_report, report_from_results, should_rollback
from changegate.schemas.changes import (
    CandidateChange,
    FailedChange,
    ImplementedChange,
    PipelineResult,
    PipelineState,
    RiskLevel,
    RollbackToken,
    SafetyCheckResult,
)
from changegate.schemas.config import GateConfig, ToolKind

logger = logging.getLogger(__name__)


class CancelToken:
    """Cooperative cancellation, honoured between changes only."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class SafetyPipeline:
    """Applies a batch of candidate changes behind layered safety gates.

    All collaborators are injectable so the decision logic can run
    against fakes: ``registry`` for per-change checks, ``backup`` for
    snapshots, and ``runner``/``validator`` for external tools.
    """

    def __init__(
        self,
        project_root: Path,
        config: GateConfig | None = None,
        *,
        registry: SafetyCheckRegistry | None = None,
        backup: BackupManager | None = None,
        runner: ProcessRunner | None = None,
        validator: PostImplementationValidator | None = None,
    ) -> None:
        self.project_root = Path(project_root).resolve()
        self.config = config or GateConfig()
        self.policy = self.config.policy
        self.registry = registry or SafetyCheckRegistry(default_checks(self.policy))
        self.backup = backup or create_backup_manager(self.project_root, self.config.backup)
        self.validator = validator or PostImplementationValidator(
            self.project_root, self.config.tools, runner,
        )
        self.applicator = ChangeApplicator(
            self.project_root,
            self.registry,
            self.policy,
            verify_original=self.config.verify_original,
        )
        self.state = PipelineState.START

    # ── Public API ───────────────────────────────────────────────

    def run(
        self,
        changes: Iterable[CandidateChange],
        cancel: CancelToken | None = None,
    ) -> PipelineResult:
        """Apply a batch of changes.

        Args:
            changes: Candidate changes, applied in the given order.
            cancel: Optional token checked between changes.

        Returns:
            PipelineResult describing what was kept or rolled back.

        Raises:
            RollbackFailure: If an automatic rollback could not complete.
            BatchInProgressError: If another batch holds the project lock.
        """
        batch = list(changes)
        self.state = PipelineState.START
        with self._locked():
            return self._run_batch(batch, cancel)

    def rollback(self, token: RollbackToken) -> list[str]:
        """Manually restore a snapshot taken by an earlier batch.

        Raises:
            RollbackFailure: If the restore did not complete.
            BatchInProgressError: If a batch is running.
        """
        with self._locked():
            logger.info("Manual rollback to %s", token.token_id)
            return self.backup.restore(token)

    def rollback_by_id(self, token_id: str) -> list[str]:
        """Look up a recorded token by id and restore it."""
        token = self.backup.store.get(token_id)
        if token is None:
            raise RollbackFailure(token_id, "no such token in the snapshot store")
        return self.rollback(token)

    def preview(
        self, changes: Iterable[CandidateChange],
    ) -> list[tuple[CandidateChange, list[SafetyCheckResult]]]:
        """Run the check registry without touching the filesystem."""
        return [(change, self.registry.run_all(change)) for change in changes]

    # ── Stages ───────────────────────────────────────────────────

    def _run_batch(
        self, batch: list[CandidateChange], cancel: CancelToken | None,
    ) -> PipelineResult:
        self._enter(PipelineState.SNAPSHOTTING)
        try:
            token = self.backup.snapshot(self._snapshot_paths(batch))
        except BackupError as e:
            logger.error("%s", e)
            return self._snapshot_failed(batch, str(e))

        self._enter(PipelineState.PREFLIGHT_CHECKING)
        preflight = [self.registry.run_all(change) for change in batch]
        all_results = [r for results in preflight for r in results]
        preflight_score = average_score(all_results)
        if preflight_score < self.policy.change_threshold:
            logger.warning(
                "Preflight score %.1f below %.1f; nothing will be written",
                preflight_score, self.policy.change_threshold,
            )
            return self._preflight_failed(batch, preflight, token)

        self._enter(PipelineState.APPLYING)
        implemented: list[ImplementedChange] = []
        failed: list[FailedChange] = []
        cancelled = False
        for change, results in zip(batch, preflight):
            if cancel is not None and cancel.cancelled:
                cancelled = True
                logger.warning("Batch cancelled after %d write(s)", len(implemented))
                break
            outcome = self.applicator.apply(change, results)
            if outcome.implemented is not None:
                implemented.append(outcome.implemented)
            elif outcome.failed is not None:
                failed.append(outcome.failed)
                if outcome.aborts_batch:
                    logger.warning("High-risk failure on %s; aborting batch", change.file_path)
                    break

        post_validation: list[SafetyCheckResult] = []
        if implemented and not cancelled:
            self._enter(PipelineState.POST_VALIDATING)
            post_validation = self.validator.run()

        self._enter(PipelineState.DECIDING)
        report = build_safety_report(implemented, failed, post_validation, self.policy)
        high_failure = any(f.risk_level == RiskLevel.HIGH for f in failed)
        tests_failed = (
            self.policy.rollback_on_test_failure
            and ToolKind.TEST in self.validator.failed_kinds(post_validation)
        )

        if should_rollback(report, self.policy) or high_failure or tests_failed or cancelled:
            if cancelled:
                reason = "Batch cancelled"
            elif tests_failed:
                reason = "Auto-rollback performed because tests failed"
            else:
                reason = "Auto-rollback performed due to safety concerns"
            logger.warning("%s (score %.1f, risk %s)", reason, report.overall_score, report.risk_level)
            self._restore(token)
            self._enter(PipelineState.ROLLED_BACK)
            return PipelineResult(
                state=PipelineState.ROLLED_BACK,
                success=False,
                failed_changes=failed,
                reverted_changes=implemented,
                post_validation=post_validation,
                safety_report=report.model_copy(
                    update={"summary": f"{reason}\n{report.summary}"}
                ),
                rollback_token=token,
                cancelled=cancelled,
            )

        self._enter(PipelineState.COMMITTED)
        logger.info(
            "Committed %d change(s), score %.1f", len(implemented), report.overall_score,
        )
        return PipelineResult(
            state=PipelineState.COMMITTED,
            success=len(implemented) > 0,
            implemented_changes=implemented,
            failed_changes=failed,
            post_validation=post_validation,
            safety_report=report,
            rollback_token=token,
        )

    def _preflight_failed(
        self,
        batch: list[CandidateChange],
        preflight: list[list[SafetyCheckResult]],
        token: RollbackToken,
    ) -> PipelineResult:
        failed = [
            FailedChange(
                file_path=change.file_path,
                change_id=change.id,
                error="Pre-implementation safety check failed",
                safety_issues=[i for r in results if not r.passed for i in r.issues],
                risk_level=RiskLevel.HIGH,
            )
            for change, results in zip(batch, preflight)
        ]
        report = report_from_results(
            [r for results in preflight for r in results],
            0, len(batch), self.policy,
            summary_prefix="Pre-implementation safety checks failed",
        )
        self._enter(PipelineState.ROLLED_BACK)
        return PipelineResult(
            state=PipelineState.ROLLED_BACK,
            success=False,
            failed_changes=failed,
            safety_report=report,
            rollback_token=token,
        )

    def _snapshot_failed(self, batch: list[CandidateChange], error: str) -> PipelineResult:
        failed = [
            FailedChange(
                file_path=change.file_path,
                change_id=change.id,
                error=f"Backup snapshot failed: {error}",
                safety_issues=["No restorable snapshot"],
                risk_level=RiskLevel.HIGH,
            )
            for change in batch
        ]
        report = report_from_results(
            [], 0, len(batch), self.policy,
            summary_prefix="Backup snapshot failed; no changes were applied",
        )
        self._enter(PipelineState.ROLLED_BACK)
        return PipelineResult(
            state=PipelineState.ROLLED_BACK,
            success=False,
            failed_changes=failed,
            safety_report=report,
        )

    # ── Helpers ──────────────────────────────────────────────────

    def _restore(self, token: RollbackToken) -> None:
        try:
            self.backup.restore(token)
        except RollbackFailure as e:
            logger.error("%s; manual intervention required", e)
            raise

    def _snapshot_paths(self, batch: list[CandidateChange]) -> list[str]:
        """Paths to capture; invalid paths are left for the applicator to reject."""
        paths: list[str] = []
        for change in batch:
            try:
                resolve_in_root(self.project_root, change.file_path)
            except ValueError:
                continue
            paths.append(change.file_path)
        return paths

    def _enter(self, state: PipelineState) -> None:
        logger.info("Pipeline: %s -> %s", self.state.value, state.value)
        self.state = state

    def _locked(self) -> _ProjectLock:
        return _ProjectLock(self.backup, self.config.backup.lock_timeout)


class _ProjectLock:
    """Exclusive lock on the project for the duration of a batch."""

    def __init__(self, backup: BackupManager, timeout: float) -> None:
        self._backup = backup
        self._timeout = timeout
        self._lock: FileLock | None = None

    def __enter__(self) -> _ProjectLock:
        store = self._backup.store
        store.ensure()
        self._lock = FileLock(str(store.lock_path), timeout=self._timeout)
        try:
            self._lock.acquire()
        except Timeout as e:
            raise BatchInProgressError(
                f"Another batch holds the lock on {self._backup.project_root}"
            ) from e
        return self

    def __exit__(self, *exc: object) -> None:
        if self._lock is not None:
            self._lock.release()
