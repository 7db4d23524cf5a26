"""Post-completion side effects: recommendations, then the PDF report.

Tasks come from the outbox written by ``LifecycleController.complete``.
Each claimed task runs exactly once. A failure is logged, recorded on the
task and on the attempt's artifact status, and never re-raised: the
completed attempt is already committed and stays valid without either
artifact.

The report task is only enqueued after recommendations are stored, and only
if no report task exists for the attempt yet, so every completion gets at
most one automatic PDF attempt. ``ensure_report`` covers explicit user
requests afterwards.
"""

import asyncio
import dataclasses
import uuid
import weakref
from collections.abc import Awaitable, Callable, MutableMapping
from typing import Any

from readiness_engine.core.domain import (
    ArtifactStatus,
    AssessmentAttempt,
    OutboxTask,
    TaskKind,
)
from readiness_engine.core.errors import (
    ArtifactNotReadyError,
    AttemptNotCompletedError,
    AttemptNotFoundError,
)
from readiness_engine.core.interfaces import (
    IAttemptRepository,
    IOutboxRepository,
    IRecommendationGenerator,
    IReportRenderer,
)
from readiness_engine.core.scoring import ScoringEngine
from readiness_engine.observability import get_logger

logger = get_logger(__name__)

# Report generation locks shared by every pipeline in the process.
# Entries disappear once no coroutine holds a reference to the lock.
_REPORT_LOCKS: MutableMapping[uuid.UUID, asyncio.Lock] = weakref.WeakValueDictionary()


async def _no_checkpoint() -> None:
    return None


class PostCompletionPipeline:
    """Execute outbox tasks for completed attempts.

    Args:
        attempt_repo: AssessmentAttempt persistence.
        outbox_repo: Durable task queue.
        recommendation_generator: External text-generation collaborator.
        report_renderer: External PDF renderer.
        scoring_engine: Used to rebuild category scores for the collaborators.
        generation_timeout: Seconds before a generate call is abandoned.
        render_timeout: Seconds before a render call is abandoned.
        checkpoint: Awaited after claiming and after each task so progress is
            durable one task at a time (typically ``session.commit``).
        report_locks: Per-attempt locks deduplicating concurrent report
            requests. Entries must not outlive their users, so a
            ``weakref.WeakValueDictionary`` is expected. Defaults to a
            process-wide one.
    """

    def __init__(
        self,
        attempt_repo: IAttemptRepository,
        outbox_repo: IOutboxRepository,
        recommendation_generator: IRecommendationGenerator,
        report_renderer: IReportRenderer,
        scoring_engine: ScoringEngine | None = None,
        generation_timeout: float | None = 60.0,
        render_timeout: float | None = 60.0,
        checkpoint: Callable[[], Awaitable[None]] = _no_checkpoint,
        report_locks: MutableMapping[uuid.UUID, asyncio.Lock] | None = None,
    ) -> None:
        self._attempts = attempt_repo
        self._outbox = outbox_repo
        self._generator = recommendation_generator
        self._renderer = report_renderer
        self._scoring = scoring_engine or ScoringEngine()
        self._generation_timeout = generation_timeout
        self._render_timeout = render_timeout
        self._checkpoint = checkpoint
        self._report_locks = report_locks if report_locks is not None else _REPORT_LOCKS

    async def run_pending(self, attempt_id: uuid.UUID | None = None) -> int:
        """Claim and run pending tasks until none are left.

        Args:
            attempt_id: Restrict to one attempt's tasks.

        Returns:
            Number of tasks executed (successful or failed).
        """
        executed = 0
        while True:
            tasks = await self._outbox.claim_pending(attempt_id=attempt_id)
            await self._checkpoint()
            if not tasks:
                return executed
            for task in tasks:
                await self.run_task(task)
                executed += 1

    async def run_task(self, task: OutboxTask) -> None:
        """Run one claimed task, isolating any failure."""
        try:
            if task.kind is TaskKind.GENERATE_RECOMMENDATIONS:
                await self._generate_recommendations(task.attempt_id)
            else:
                await self._render_report(task.attempt_id)
        except Exception as exc:
            logger.exception(
                "Post-completion task failed",
                task_id=str(task.id),
                attempt_id=str(task.attempt_id),
                kind=task.kind.value,
            )
            await self._outbox.mark_failed(task.id, _describe(exc))
            await self._mark_artifact_failed(task)
        else:
            await self._outbox.mark_done(task.id)
            logger.info(
                "Post-completion task done",
                task_id=str(task.id),
                attempt_id=str(task.attempt_id),
                kind=task.kind.value,
            )
        await self._checkpoint()

    async def recover(self) -> int:
        """Startup recovery.

        Tasks left running by a crashed process are marked failed so readers
        see a retryable state; pending tasks are then executed.

        Returns:
            Number of pending tasks executed.
        """
        interrupted = await self._outbox.fail_interrupted()
        for task in interrupted:
            logger.warning(
                "Interrupted post-completion task marked failed",
                task_id=str(task.id),
                attempt_id=str(task.attempt_id),
                kind=task.kind.value,
            )
            await self._mark_artifact_failed(task)
        await self._checkpoint()
        return await self.run_pending()

    async def ensure_report(self, attempt_id: uuid.UUID) -> AssessmentAttempt:
        """Return the attempt with a PDF report, rendering it if missing.

        Concurrent calls for one attempt share a lock; the second caller
        finds the report the first one produced. A render failure is logged
        and reflected as ``report_status=failed``.

        Raises:
            AttemptNotFoundError: If the attempt does not exist.
            AttemptNotCompletedError: If the attempt is not completed.
            ArtifactNotReadyError: If recommendations are not stored yet.
        """
        attempt = await self._require_attempt(attempt_id)
        self._require_report_inputs(attempt)
        if attempt.report_status is ArtifactStatus.READY and attempt.report_ref:
            return attempt

        async with self._lock_for(attempt_id):
            attempt = await self._require_attempt(attempt_id)
            if attempt.report_status is ArtifactStatus.READY and attempt.report_ref:
                return attempt
            try:
                report_ref = await self._render(attempt)
            except Exception:
                logger.exception("Report recovery failed", attempt_id=str(attempt_id))
                await self._attempts.save_report(attempt_id, None, ArtifactStatus.FAILED.value)
                await self._checkpoint()
                return _with_report(attempt, None, ArtifactStatus.FAILED)
            await self._attempts.save_report(attempt_id, report_ref, ArtifactStatus.READY.value)
            await self._checkpoint()
            logger.info("Report recovered", attempt_id=str(attempt_id), report_ref=report_ref)
            return _with_report(attempt, report_ref, ArtifactStatus.READY)

    async def _generate_recommendations(self, attempt_id: uuid.UUID) -> None:
        attempt = await self._require_attempt(attempt_id)
        if not attempt.is_completed:
            raise AttemptNotCompletedError(f"Assessment {attempt_id} is not completed.")

        category_scores = self._scoring.category_scores(attempt.answers, attempt.questions)
        context: dict[str, Any] = {
            "title": attempt.title,
            "industry": attempt.industry,
            "overall_score": attempt.score,
        }
        text = await asyncio.wait_for(
            self._generator.generate(category_scores, context),
            timeout=self._generation_timeout,
        )
        if not text or not text.strip():
            raise ValueError("Recommendation generator returned an empty response")

        await self._attempts.save_recommendations(attempt_id, text, ArtifactStatus.READY.value)
        logger.info(
            "Recommendations stored",
            attempt_id=str(attempt_id),
            length=len(text),
        )

        if not await self._outbox.has_task(attempt_id, TaskKind.RENDER_REPORT):
            await self._attempts.save_report(attempt_id, None, ArtifactStatus.PENDING.value)
            await self._outbox.enqueue(attempt_id, TaskKind.RENDER_REPORT)

    async def _render_report(self, attempt_id: uuid.UUID) -> None:
        async with self._lock_for(attempt_id):
            attempt = await self._require_attempt(attempt_id)
            self._require_report_inputs(attempt)
            if attempt.report_status is ArtifactStatus.READY and attempt.report_ref:
                return
            report_ref = await self._render(attempt)
            await self._attempts.save_report(attempt_id, report_ref, ArtifactStatus.READY.value)
        logger.info("Report stored", attempt_id=str(attempt_id), report_ref=report_ref)

    async def _render(self, attempt: AssessmentAttempt) -> str:
        category_scores = self._scoring.category_scores(attempt.answers, attempt.questions)
        return await asyncio.wait_for(
            self._renderer.render(attempt, category_scores),
            timeout=self._render_timeout,
        )

    def _lock_for(self, attempt_id: uuid.UUID) -> asyncio.Lock:
        lock = self._report_locks.get(attempt_id)
        if lock is None:
            lock = asyncio.Lock()
            self._report_locks[attempt_id] = lock
        return lock

    async def _require_attempt(self, attempt_id: uuid.UUID) -> AssessmentAttempt:
        attempt = await self._attempts.get(attempt_id)
        if attempt is None:
            raise AttemptNotFoundError(f"Assessment {attempt_id} not found.")
        return attempt

    @staticmethod
    def _require_report_inputs(attempt: AssessmentAttempt) -> None:
        if not attempt.is_completed:
            raise AttemptNotCompletedError(
                f"Assessment {attempt.id} must be completed before generating a report."
            )
        if not attempt.recommendations:
            raise ArtifactNotReadyError(
                f"Recommendations for assessment {attempt.id} are not ready yet."
            )

    async def _mark_artifact_failed(self, task: OutboxTask) -> None:
        if task.kind is TaskKind.GENERATE_RECOMMENDATIONS:
            await self._attempts.save_recommendations(
                task.attempt_id, None, ArtifactStatus.FAILED.value
            )
        else:
            await self._attempts.save_report(task.attempt_id, None, ArtifactStatus.FAILED.value)


def _describe(exc: BaseException) -> str:
    message = str(exc)
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__


def _with_report(
    attempt: AssessmentAttempt,
    report_ref: str | None,
    status: ArtifactStatus,
) -> AssessmentAttempt:
    return dataclasses.replace(attempt, report_ref=report_ref, report_status=status)
