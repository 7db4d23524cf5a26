"""Abstract interfaces (Protocol classes) for the readiness engine.

All services depend on these interfaces, not concrete implementations.
This enables dependency injection and makes services independently testable.
Concrete implementations live in ``adapters/``.
"""

import uuid
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from readiness_engine.core.domain import (
    Answer,
    AssessmentAttempt,
    CategoryScore,
    GuestBuffer,
    Owner,
    OutboxTask,
    Question,
    TaskKind,
)
from readiness_engine.core.questions import SurveyDefinition


@runtime_checkable
class IQuestionCatalog(Protocol):
    """Read-only provider of survey templates and their questions."""

    async def get_survey(self, survey_id: int) -> SurveyDefinition:
        """Return the survey template; raise SurveyNotFoundError if unknown."""
        ...

    async def get_questions(self, survey_id: int) -> list[Question]:
        """Return the survey's questions in display order."""
        ...


@runtime_checkable
class IAttemptRepository(Protocol):
    """Persistence backend for AssessmentAttempt aggregates."""

    async def create(self, attempt: AssessmentAttempt) -> AssessmentAttempt:
        """Insert a new attempt."""
        ...

    async def get(self, attempt_id: uuid.UUID) -> AssessmentAttempt | None:
        """Load an attempt by id."""
        ...

    async def save(self, attempt: AssessmentAttempt) -> AssessmentAttempt:
        """Persist status, answers, score and completion fields."""
        ...

    async def save_recommendations(
        self,
        attempt_id: uuid.UUID,
        recommendations: str | None,
        status: str,
    ) -> None:
        """Write the recommendations text and its status (post-completion only)."""
        ...

    async def save_report(
        self,
        attempt_id: uuid.UUID,
        report_ref: str | None,
        status: str,
    ) -> None:
        """Write the PDF artifact reference and its status (post-completion only)."""
        ...

    async def list_by_owner(
        self,
        owner: Owner,
        survey_id: int | None = None,
    ) -> list[AssessmentAttempt]:
        """List an owner's attempts, optionally for one survey."""
        ...

    async def find_open_attempt(
        self,
        owner: Owner,
        survey_id: int,
    ) -> AssessmentAttempt | None:
        """Return the owner's most recent draft or in-progress attempt for a survey."""
        ...

    async def list_completed(
        self,
        survey_id: int,
        start: datetime,
        end: datetime,
    ) -> list[AssessmentAttempt]:
        """All completed attempts for a survey completed within [start, end)."""
        ...


@runtime_checkable
class IOutboxRepository(Protocol):
    """Durable queue of post-completion tasks."""

    async def enqueue(self, attempt_id: uuid.UUID, kind: TaskKind) -> OutboxTask:
        """Add a pending task."""
        ...

    async def claim_pending(
        self,
        attempt_id: uuid.UUID | None = None,
        limit: int = 50,
    ) -> list[OutboxTask]:
        """Atomically move pending tasks to running and return them."""
        ...

    async def mark_done(self, task_id: uuid.UUID) -> None:
        """Record successful execution."""
        ...

    async def mark_failed(self, task_id: uuid.UUID, error: str) -> None:
        """Record failed execution; the task is not retried."""
        ...

    async def has_task(
        self,
        attempt_id: uuid.UUID,
        kind: TaskKind,
        open_only: bool = False,
    ) -> bool:
        """Whether a task of this kind exists (optionally still pending/running)."""
        ...

    async def fail_interrupted(self) -> list[OutboxTask]:
        """Mark tasks left running by a crashed process as failed and return them."""
        ...


@runtime_checkable
class IGuestPersistence(Protocol):
    """Client-local mirror of a guest's answers, keyed by (guest_id, survey_id)."""

    async def save(
        self,
        guest_id: str,
        survey_id: int,
        answers: list[Answer],
        current_step: int,
    ) -> GuestBuffer:
        """Overwrite the buffer with the full answer list and cursor."""
        ...

    async def load(self, guest_id: str, survey_id: int) -> GuestBuffer:
        """Return the last saved buffer; raise GuestBufferNotFoundError if none."""
        ...

    async def clear(self, guest_id: str, survey_id: int) -> None:
        """Remove the buffer; clearing a missing buffer is a no-op."""
        ...


@runtime_checkable
class IRecommendationGenerator(Protocol):
    """External text-generation collaborator."""

    async def generate(
        self,
        category_scores: list[CategoryScore],
        company_context: dict[str, Any] | None = None,
    ) -> str:
        """Return free-text recommendations for the given category scores."""
        ...


@runtime_checkable
class IReportRenderer(Protocol):
    """External PDF rendering collaborator."""

    async def render(
        self,
        attempt: AssessmentAttempt,
        category_scores: list[CategoryScore],
    ) -> str:
        """Render the report and return an artifact reference."""
        ...
