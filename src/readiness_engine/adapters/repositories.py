"""SQLAlchemy repositories for attempts and outbox tasks.

Implements IAttemptRepository and IOutboxRepository using SQLAlchemy 2.0
async ORM. Repositories only flush; the session owner commits. Rows are
mapped to and from the domain dataclasses at this boundary.
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import exists, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from readiness_engine.core.domain import (
    Answer,
    ArtifactStatus,
    AssessmentAttempt,
    AttemptStatus,
    Owner,
    OutboxTask,
    Question,
    TaskKind,
    TaskStatus,
    owner_from_parts,
)
from readiness_engine.core.errors import AttemptNotFoundError
from readiness_engine.core.models import AssessmentAttemptRecord, OutboxTaskRecord
from readiness_engine.observability import get_logger

logger = get_logger(__name__)

_OPEN_STATUSES: tuple[str, ...] = (AttemptStatus.DRAFT.value, AttemptStatus.IN_PROGRESS.value)


def _dump_answers(answers: list[Answer]) -> list[dict[str, Any]]:
    return [{"question_id": a.question_id, "value": a.value} for a in answers]


def _dump_questions(questions: list[Question]) -> list[dict[str, Any]]:
    return [
        {"id": q.id, "category": q.category, "text": q.text, "details": q.details}
        for q in questions
    ]


def _to_attempt(record: AssessmentAttemptRecord) -> AssessmentAttempt:
    return AssessmentAttempt(
        id=record.id,
        survey_id=record.survey_id,
        owner=owner_from_parts(record.owner_kind, record.owner_ref),
        questions=[
            Question(
                id=int(item["id"]),
                category=item["category"],
                text=item["text"],
                details=item.get("details"),
            )
            for item in record.catalog_snapshot or []
        ],
        answers=[
            Answer(question_id=int(item["question_id"]), value=item.get("value"))
            for item in record.answers or []
        ],
        title=record.title,
        industry=record.industry,
        catalog_version=record.catalog_version,
        status=AttemptStatus(record.status),
        score=record.score,
        recommendations=record.recommendations,
        recommendations_status=ArtifactStatus(record.recommendations_status),
        report_ref=record.report_ref,
        report_status=ArtifactStatus(record.report_status),
        completed_on=record.completed_on,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _to_task(record: OutboxTaskRecord) -> OutboxTask:
    return OutboxTask(
        id=record.id,
        attempt_id=record.attempt_id,
        kind=TaskKind(record.kind),
        status=TaskStatus(record.status),
        last_error=record.last_error,
        created_at=record.created_at,
    )


class AttemptRepository:
    """Repository for AssessmentAttempt persistence."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialise with an async database session.

        Args:
            session: SQLAlchemy async session.
        """
        self._session = session

    async def create(self, attempt: AssessmentAttempt) -> AssessmentAttempt:
        """Insert a new attempt with its catalog snapshot.

        Args:
            attempt: Domain attempt to persist.

        Returns:
            The attempt as stored, with server-side timestamps.
        """
        record = AssessmentAttemptRecord(
            id=attempt.id,
            survey_id=attempt.survey_id,
            title=attempt.title,
            owner_kind=attempt.owner.kind,
            owner_ref=attempt.owner.ref,
            industry=attempt.industry,
            status=attempt.status.value,
            answers=_dump_answers(attempt.answers),
            catalog_snapshot=_dump_questions(attempt.questions),
            catalog_version=attempt.catalog_version,
            recommendations_status=attempt.recommendations_status.value,
            report_status=attempt.report_status.value,
        )
        if attempt.created_at is not None:
            record.created_at = attempt.created_at
            record.updated_at = attempt.updated_at or attempt.created_at
        self._session.add(record)
        await self._session.flush()
        await self._session.refresh(record)

        logger.debug(
            "Attempt persisted",
            attempt_id=str(record.id),
            survey_id=record.survey_id,
            owner_kind=record.owner_kind,
        )
        return _to_attempt(record)

    async def get(self, attempt_id: uuid.UUID) -> AssessmentAttempt | None:
        """Load an attempt by id, bypassing stale identity-map state."""
        record = await self._session.get(
            AssessmentAttemptRecord, attempt_id, populate_existing=True
        )
        return _to_attempt(record) if record is not None else None

    async def save(self, attempt: AssessmentAttempt) -> AssessmentAttempt:
        """Persist the mutable attempt fields.

        Raises:
            AttemptNotFoundError: If the attempt row does not exist.
        """
        record = await self._session.get(AssessmentAttemptRecord, attempt.id)
        if record is None:
            raise AttemptNotFoundError(f"Assessment {attempt.id} not found.")

        record.status = attempt.status.value
        record.answers = _dump_answers(attempt.answers)
        record.industry = attempt.industry
        record.title = attempt.title
        record.score = attempt.score
        record.recommendations = attempt.recommendations
        record.recommendations_status = attempt.recommendations_status.value
        record.report_ref = attempt.report_ref
        record.report_status = attempt.report_status.value
        record.completed_on = attempt.completed_on
        if attempt.updated_at is not None:
            record.updated_at = attempt.updated_at
        await self._session.flush()
        await self._session.refresh(record)
        return _to_attempt(record)

    async def save_recommendations(
        self,
        attempt_id: uuid.UUID,
        recommendations: str | None,
        status: str,
    ) -> None:
        """Write recommendations text and status without touching answers."""
        await self._session.execute(
            update(AssessmentAttemptRecord)
            .where(AssessmentAttemptRecord.id == attempt_id)
            .values(recommendations=recommendations, recommendations_status=status)
        )
        await self._session.flush()

    async def save_report(
        self,
        attempt_id: uuid.UUID,
        report_ref: str | None,
        status: str,
    ) -> None:
        """Write the report reference and status without touching answers."""
        await self._session.execute(
            update(AssessmentAttemptRecord)
            .where(AssessmentAttemptRecord.id == attempt_id)
            .values(report_ref=report_ref, report_status=status)
        )
        await self._session.flush()

    async def list_by_owner(
        self,
        owner: Owner,
        survey_id: int | None = None,
    ) -> list[AssessmentAttempt]:
        """List an owner's attempts, newest first."""
        stmt = select(AssessmentAttemptRecord).where(
            AssessmentAttemptRecord.owner_kind == owner.kind,
            AssessmentAttemptRecord.owner_ref == owner.ref,
        )
        if survey_id is not None:
            stmt = stmt.where(AssessmentAttemptRecord.survey_id == survey_id)
        stmt = stmt.order_by(AssessmentAttemptRecord.created_at.desc())
        result = await self._session.execute(stmt)
        return [_to_attempt(record) for record in result.scalars().all()]

    async def find_open_attempt(
        self,
        owner: Owner,
        survey_id: int,
    ) -> AssessmentAttempt | None:
        """Return the most recently updated draft or in-progress attempt."""
        result = await self._session.execute(
            select(AssessmentAttemptRecord)
            .where(
                AssessmentAttemptRecord.owner_kind == owner.kind,
                AssessmentAttemptRecord.owner_ref == owner.ref,
                AssessmentAttemptRecord.survey_id == survey_id,
                AssessmentAttemptRecord.status.in_(_OPEN_STATUSES),
            )
            .order_by(AssessmentAttemptRecord.updated_at.desc())
            .limit(1)
        )
        record = result.scalar_one_or_none()
        return _to_attempt(record) if record is not None else None

    async def list_completed(
        self,
        survey_id: int,
        start: datetime,
        end: datetime,
    ) -> list[AssessmentAttempt]:
        """Completed attempts for a survey with completed_on in [start, end)."""
        result = await self._session.execute(
            select(AssessmentAttemptRecord).where(
                AssessmentAttemptRecord.survey_id == survey_id,
                AssessmentAttemptRecord.status == AttemptStatus.COMPLETED.value,
                AssessmentAttemptRecord.completed_on >= start,
                AssessmentAttemptRecord.completed_on < end,
            )
        )
        return [_to_attempt(record) for record in result.scalars().all()]


class OutboxRepository:
    """Repository for the post-completion task queue."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialise with an async database session.

        Args:
            session: SQLAlchemy async session.
        """
        self._session = session

    async def enqueue(self, attempt_id: uuid.UUID, kind: TaskKind) -> OutboxTask:
        record = OutboxTaskRecord(
            attempt_id=attempt_id,
            kind=kind.value,
            status=TaskStatus.PENDING.value,
        )
        self._session.add(record)
        await self._session.flush()
        await self._session.refresh(record)
        logger.debug("Outbox task enqueued", task_id=str(record.id), kind=kind.value)
        return _to_task(record)

    async def claim_pending(
        self,
        attempt_id: uuid.UUID | None = None,
        limit: int = 50,
    ) -> list[OutboxTask]:
        """Move up to ``limit`` pending tasks to running, oldest first.

        Rows locked by another worker are skipped.
        """
        stmt = select(OutboxTaskRecord).where(OutboxTaskRecord.status == TaskStatus.PENDING.value)
        if attempt_id is not None:
            stmt = stmt.where(OutboxTaskRecord.attempt_id == attempt_id)
        stmt = (
            stmt.order_by(OutboxTaskRecord.created_at)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        result = await self._session.execute(stmt)
        records = list(result.scalars().all())
        for record in records:
            record.status = TaskStatus.RUNNING.value
        await self._session.flush()
        return [_to_task(record) for record in records]

    async def mark_done(self, task_id: uuid.UUID) -> None:
        await self._set_status(task_id, TaskStatus.DONE, None)

    async def mark_failed(self, task_id: uuid.UUID, error: str) -> None:
        await self._set_status(task_id, TaskStatus.FAILED, error)

    async def has_task(
        self,
        attempt_id: uuid.UUID,
        kind: TaskKind,
        open_only: bool = False,
    ) -> bool:
        condition = (OutboxTaskRecord.attempt_id == attempt_id) & (
            OutboxTaskRecord.kind == kind.value
        )
        if open_only:
            condition = condition & OutboxTaskRecord.status.in_(
                (TaskStatus.PENDING.value, TaskStatus.RUNNING.value)
            )
        result = await self._session.execute(select(exists().where(condition)))
        return bool(result.scalar())

    async def fail_interrupted(self) -> list[OutboxTask]:
        """Mark every running task failed; used once at startup."""
        result = await self._session.execute(
            select(OutboxTaskRecord).where(OutboxTaskRecord.status == TaskStatus.RUNNING.value)
        )
        records = list(result.scalars().all())
        for record in records:
            record.status = TaskStatus.FAILED.value
            record.last_error = "Interrupted before completion"
        await self._session.flush()
        return [_to_task(record) for record in records]

    async def _set_status(
        self,
        task_id: uuid.UUID,
        status: TaskStatus,
        error: str | None,
    ) -> None:
        await self._session.execute(
            update(OutboxTaskRecord)
            .where(OutboxTaskRecord.id == task_id)
            .values(status=status.value, last_error=error)
        )
        await self._session.flush()
