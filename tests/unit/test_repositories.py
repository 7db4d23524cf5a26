"""Unit tests for the SQLAlchemy repositories using a mocked AsyncSession.

Covers the row <-> domain mapping and the not-found paths; query behaviour
against a live database is out of scope here.
"""

import dataclasses
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

from readiness_engine.adapters.repositories import AttemptRepository, OutboxRepository
from readiness_engine.core.domain import (
    AccountOwner,
    ArtifactStatus,
    AssessmentAttempt,
    AttemptStatus,
    GuestOwner,
    TaskKind,
    TaskStatus,
)
from readiness_engine.core.errors import AttemptNotFoundError
from readiness_engine.core.models import AssessmentAttemptRecord, OutboxTaskRecord
from tests.fakes import FIXED_NOW, SMALL_QUESTIONS, answers_for


def _session() -> AsyncMock:
    session = AsyncMock()
    session.add = MagicMock()
    return session


def _attempt(owner=None) -> AssessmentAttempt:
    return AssessmentAttempt(
        id=uuid.uuid4(),
        survey_id=7,
        owner=owner or GuestOwner(token="guest-abc"),
        questions=list(SMALL_QUESTIONS),
        answers=answers_for(SMALL_QUESTIONS, [2, None, -1, None]),
        title="Pilot",
        industry="5112",
        catalog_version="test-1",
        created_at=FIXED_NOW,
    )


class TestAttemptRepository:
    """Mapping and not-found handling."""

    @pytest.mark.asyncio()
    async def test_create_maps_attempt_to_record_and_back(self) -> None:
        session = _session()
        attempt = _attempt()

        stored = await AttemptRepository(session).create(attempt)

        record = session.add.call_args.args[0]
        assert isinstance(record, AssessmentAttemptRecord)
        assert record.owner_kind == "guest"
        assert record.owner_ref == "guest-abc"
        assert record.answers[0] == {"question_id": 101, "value": 2}
        assert record.catalog_snapshot[2]["category"] == "Data & Information"
        session.flush.assert_awaited_once()

        assert stored.owner == GuestOwner(token="guest-abc")
        assert stored.questions == list(SMALL_QUESTIONS)
        assert stored.answers == attempt.answers
        assert stored.status is AttemptStatus.DRAFT
        assert stored.recommendations_status is ArtifactStatus.NOT_REQUESTED
        assert stored.created_at == FIXED_NOW

    @pytest.mark.asyncio()
    async def test_get_missing_returns_none(self) -> None:
        session = _session()
        session.get.return_value = None
        assert await AttemptRepository(session).get(uuid.uuid4()) is None

    @pytest.mark.asyncio()
    async def test_save_missing_raises(self) -> None:
        session = _session()
        session.get.return_value = None
        with pytest.raises(AttemptNotFoundError):
            await AttemptRepository(session).save(_attempt())

    @pytest.mark.asyncio()
    async def test_save_writes_mutable_fields(self) -> None:
        session = _session()
        attempt = _attempt(AccountOwner(user_id="user-1"))
        record = AssessmentAttemptRecord(
            id=attempt.id,
            survey_id=7,
            title="Pilot",
            owner_kind="account",
            owner_ref="user-1",
            status="draft",
            answers=[],
            catalog_snapshot=[
                {"id": q.id, "category": q.category, "text": q.text, "details": None}
                for q in SMALL_QUESTIONS
            ],
            catalog_version="test-1",
            recommendations_status="not_requested",
            report_status="not_requested",
            created_at=FIXED_NOW,
            updated_at=FIXED_NOW,
        )
        session.get.return_value = record
        completed = dataclasses.replace(
            attempt,
            status=AttemptStatus.COMPLETED,
            score=63,
            completed_on=FIXED_NOW,
            recommendations_status=ArtifactStatus.PENDING,
        )

        saved = await AttemptRepository(session).save(completed)

        assert record.status == "completed"
        assert record.score == 63
        assert record.recommendations_status == "pending"
        assert saved.owner == AccountOwner(user_id="user-1")
        assert saved.is_completed


class TestOutboxRepository:
    """Task enqueue mapping."""

    @pytest.mark.asyncio()
    async def test_enqueue_adds_pending_record(self) -> None:
        session = _session()
        attempt_id = uuid.uuid4()

        async def _refresh(record: OutboxTaskRecord) -> None:
            record.id = uuid.uuid4()
            record.created_at = FIXED_NOW

        session.refresh.side_effect = _refresh

        task = await OutboxRepository(session).enqueue(attempt_id, TaskKind.RENDER_REPORT)

        record = session.add.call_args.args[0]
        assert record.kind == "render_report"
        assert record.status == "pending"
        assert task.attempt_id == attempt_id
        assert task.kind is TaskKind.RENDER_REPORT
        assert task.status is TaskStatus.PENDING
