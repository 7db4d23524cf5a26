"""Assessment lifecycle: draft → in-progress → completed.

Implements the attempt workflow:
    1. start()                    - snapshots the catalog, resumes an open attempt
    2. record_answer()            - one answer write, progress and preview score
    3. complete()                 - validates completeness, scores, enqueues side effects
    4. request_recommendations()  - re-queues generation after a failure
    5. claim_guest_answers()      - folds a guest buffer into an account attempt
    6. stats()                    - per-owner counts and mean score

The controller never commits. Repositories flush into the caller's unit of
work, so the completed status and its outbox task land in one transaction.
"""

import dataclasses
import math
import uuid
from collections.abc import Callable
from datetime import datetime, timezone

from readiness_engine.core.answer_store import AnswerStore
from readiness_engine.core.domain import (
    Answer,
    ArtifactStatus,
    AssessmentAttempt,
    AttemptStatus,
    GuestBuffer,
    Owner,
    ScoreResult,
    TaskKind,
)
from readiness_engine.core.errors import (
    AttemptClosedError,
    AttemptNotCompletedError,
    AttemptNotFoundError,
    CompletionLimitReachedError,
    ForbiddenOwnerError,
    GuestBufferNotFoundError,
    IncompleteAnswersError,
)
from readiness_engine.core.interfaces import (
    IAttemptRepository,
    IGuestPersistence,
    IOutboxRepository,
    IQuestionCatalog,
)
from readiness_engine.core.merge import MergeOutcome, MergeResolver
from readiness_engine.core.scoring import ScoringEngine
from readiness_engine.observability import get_logger

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclasses.dataclass(frozen=True)
class AnswerUpdate:
    """Result of one answer write.

    Attributes:
        attempt: The attempt after the write.
        answer: The stored answer.
        progress: Percentage of questions answered (0-100).
        preview: Advisory partial score, None while nothing scores.
    """

    attempt: AssessmentAttempt
    answer: Answer
    progress: int
    answered_count: int
    total_questions: int
    preview: ScoreResult | None


@dataclasses.dataclass(frozen=True)
class OwnerStats:
    """Attempt counts for one owner."""

    total: int
    completed: int
    draft: int
    in_progress: int
    average_score: float | None


class LifecycleController:
    """State machine for assessment attempts.

    Guest and account owners are handled through the Owner union: the only
    behaviour that differs is the guest-buffer mirror, which is driven by
    ``owner.guest_id`` rather than by checking authentication state.
    """

    def __init__(
        self,
        attempt_repo: IAttemptRepository,
        outbox_repo: IOutboxRepository,
        question_catalog: IQuestionCatalog,
        guest_store: IGuestPersistence | None = None,
        scoring_engine: ScoringEngine | None = None,
        merge_resolver: MergeResolver | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialise with injected dependencies.

        Args:
            attempt_repo: AssessmentAttempt persistence.
            outbox_repo: Durable post-completion task queue.
            question_catalog: Survey and question provider.
            guest_store: Guest answer mirror; None disables mirroring.
            scoring_engine: Score computation.
            merge_resolver: Guest-to-account reconciliation.
            clock: Returns the current UTC time.
        """
        self._attempts = attempt_repo
        self._outbox = outbox_repo
        self._catalog = question_catalog
        self._guest_store = guest_store
        self._scoring = scoring_engine or ScoringEngine()
        self._merger = merge_resolver or MergeResolver()
        self._clock = clock

    async def start(
        self,
        owner: Owner,
        survey_id: int,
        industry: str | None = None,
        title: str | None = None,
    ) -> AssessmentAttempt:
        """Resume the owner's open attempt for a survey or create a new one.

        A new attempt snapshots the survey's current questions and version and
        starts in ``draft`` with every answer null.

        Args:
            owner: Guest or account owner.
            survey_id: Survey template to answer.
            industry: Industry code used for benchmarking.
            title: Display title; defaults to the survey title.

        Returns:
            The open or newly created attempt.

        Raises:
            SurveyNotFoundError: If the catalog has no such survey.
            CompletionLimitReachedError: If the owner already holds the
                survey's maximum number of attempts.
        """
        survey = await self._catalog.get_survey(survey_id)

        existing = await self._attempts.find_open_attempt(owner, survey_id)
        if existing is not None:
            logger.info(
                "Resuming open assessment",
                attempt_id=str(existing.id),
                owner_kind=owner.kind,
                survey_id=survey_id,
            )
            return existing

        if survey.completion_limit is not None:
            held = await self._attempts.list_by_owner(owner, survey_id)
            if len(held) >= survey.completion_limit:
                raise CompletionLimitReachedError(
                    f"Survey {survey_id} allows at most {survey.completion_limit} "
                    "assessments per owner."
                )

        questions = list(survey.questions)
        now = self._clock()
        attempt = AssessmentAttempt(
            id=uuid.uuid4(),
            survey_id=survey_id,
            owner=owner,
            questions=questions,
            answers=[Answer(question_id=q.id) for q in questions],
            title=title or survey.title,
            industry=industry,
            catalog_version=survey.version,
            status=AttemptStatus.DRAFT,
            created_at=now,
            updated_at=now,
        )
        created = await self._attempts.create(attempt)

        logger.info(
            "Assessment started",
            attempt_id=str(created.id),
            owner_kind=owner.kind,
            survey_id=survey_id,
            catalog_version=survey.version,
            question_count=len(questions),
        )
        return created

    async def get(self, attempt_id: uuid.UUID, owner: Owner | None = None) -> AssessmentAttempt:
        """Load an attempt, optionally checking that ``owner`` holds it.

        Raises:
            AttemptNotFoundError: If no attempt has this id.
            ForbiddenOwnerError: If owner is given and does not match.
        """
        attempt = await self._attempts.get(attempt_id)
        if attempt is None:
            raise AttemptNotFoundError(f"Assessment {attempt_id} not found.")
        if owner is not None and attempt.owner != owner:
            raise ForbiddenOwnerError(f"Assessment {attempt_id} belongs to another owner.")
        return attempt

    async def list_attempts(
        self,
        owner: Owner,
        survey_id: int | None = None,
    ) -> list[AssessmentAttempt]:
        return await self._attempts.list_by_owner(owner, survey_id)

    async def record_answer(
        self,
        attempt_id: uuid.UUID,
        owner: Owner,
        question_id: int,
        value: int,
        current_step: int | None = None,
    ) -> AnswerUpdate:
        """Write one answer and move a draft attempt to in-progress.

        For guest owners the full answer list is mirrored to the guest store
        after the server write.

        Args:
            attempt_id: Target attempt.
            owner: Caller; must own the attempt.
            question_id: Question being answered.
            value: Agreement level in -2..2.
            current_step: UI cursor to store with the guest mirror.

        Returns:
            AnswerUpdate with progress and the advisory partial score.

        Raises:
            AttemptNotFoundError: If the attempt does not exist.
            ForbiddenOwnerError: If the caller does not own it.
            AttemptClosedError: If the attempt is completed.
            InvalidAnswerValueError: If value is off the scale.
            QuestionNotFoundError: If the question is not in the snapshot.
        """
        attempt = await self.get(attempt_id, owner)
        store = AnswerStore(attempt.questions, attempt.answers, closed=attempt.is_completed)
        answer = store.set_answer(question_id, value)

        status = attempt.status
        if status is AttemptStatus.DRAFT:
            status = AttemptStatus.IN_PROGRESS
            logger.info("Assessment in progress", attempt_id=str(attempt.id))

        answers = store.answers()
        saved = await self._attempts.save(
            dataclasses.replace(attempt, answers=answers, status=status, updated_at=self._clock())
        )

        guest_id = owner.guest_id
        if guest_id is not None and self._guest_store is not None:
            step = current_step
            if step is None:
                step = next(
                    (i for i, a in enumerate(answers) if a.question_id == question_id), 0
                )
            try:
                await self._guest_store.save(guest_id, attempt.survey_id, answers, step)
            except OSError as exc:
                logger.warning(
                    "Guest mirror write failed",
                    attempt_id=str(attempt.id),
                    guest_id=guest_id,
                    error=str(exc),
                )

        return AnswerUpdate(
            attempt=saved,
            answer=answer,
            progress=store.progress(),
            answered_count=store.answered_count,
            total_questions=store.total_questions,
            preview=self._scoring.preview(answers, attempt.questions),
        )

    async def complete(self, attempt_id: uuid.UUID, owner: Owner) -> AssessmentAttempt:
        """Transition an attempt to completed.

        Persists the final score and completion time, marks recommendations
        pending and enqueues the generation task in the same unit of work.
        The side effects themselves run later and cannot affect this result.

        Returns:
            The completed attempt.

        Raises:
            AttemptClosedError: If the attempt is already completed.
            IncompleteAnswersError: If any answer is null. Status is unchanged.
        """
        attempt = await self.get(attempt_id, owner)
        if attempt.is_completed:
            raise AttemptClosedError("Cannot update a completed assessment.")

        store = AnswerStore(attempt.questions, attempt.answers)
        if not store.is_complete():
            raise IncompleteAnswersError(
                unanswered=store.unanswered_count(),
                total=store.total_questions,
            )

        result = self._scoring.score(store.answers(), attempt.questions)
        now = self._clock()
        completed = await self._attempts.save(
            dataclasses.replace(
                attempt,
                answers=store.answers(),
                status=AttemptStatus.COMPLETED,
                score=result.overall,
                completed_on=now,
                updated_at=now,
                recommendations_status=ArtifactStatus.PENDING,
            )
        )
        await self._outbox.enqueue(completed.id, TaskKind.GENERATE_RECOMMENDATIONS)

        logger.info(
            "Assessment completed",
            attempt_id=str(completed.id),
            owner_kind=owner.kind,
            survey_id=completed.survey_id,
            overall_score=result.overall,
            category_count=len(result.categories),
        )
        return completed

    async def request_recommendations(
        self,
        attempt_id: uuid.UUID,
        owner: Owner,
    ) -> AssessmentAttempt:
        """Queue recommendation generation again after a failure.

        Does nothing when recommendations are ready or a generation task is
        still open.

        Raises:
            AttemptNotCompletedError: If the attempt is not completed.
        """
        attempt = await self.get(attempt_id, owner)
        if not attempt.is_completed:
            raise AttemptNotCompletedError(
                f"Assessment {attempt_id} must be completed before requesting recommendations."
            )
        if attempt.recommendations_status is ArtifactStatus.READY:
            return attempt
        if await self._outbox.has_task(
            attempt.id, TaskKind.GENERATE_RECOMMENDATIONS, open_only=True
        ):
            return attempt

        await self._attempts.save_recommendations(
            attempt.id, attempt.recommendations, ArtifactStatus.PENDING.value
        )
        await self._outbox.enqueue(attempt.id, TaskKind.GENERATE_RECOMMENDATIONS)
        logger.info("Recommendations re-requested", attempt_id=str(attempt.id))
        return dataclasses.replace(attempt, recommendations_status=ArtifactStatus.PENDING)

    async def claim_guest_answers(
        self,
        owner: Owner,
        guest_id: str,
        survey_id: int,
        buffer: GuestBuffer | None = None,
        industry: str | None = None,
    ) -> MergeOutcome | None:
        """Merge a guest's buffered answers into the account's open attempt.

        The buffer is taken from ``buffer`` when the client posts it, else
        loaded from the guest store. It is cleared once the merged attempt
        has been saved. A missing or already cleared buffer is a no-op.

        Args:
            owner: The account taking over the answers.
            guest_id: Guest token the answers were saved under.
            survey_id: Survey the answers belong to.
            buffer: Buffer supplied by the client, if any.
            industry: Industry for a newly created attempt.

        Returns:
            MergeOutcome, or None when there was nothing to merge.

        Raises:
            ForbiddenOwnerError: If owner is itself a guest.
        """
        if owner.guest_id is not None:
            raise ForbiddenOwnerError("Guest answers can only be claimed by an account.")

        if buffer is None and self._guest_store is not None:
            try:
                buffer = await self._guest_store.load(guest_id, survey_id)
            except GuestBufferNotFoundError:
                buffer = None

        if buffer is None or buffer.is_empty():
            await self._clear_guest_buffer(guest_id, survey_id)
            logger.info("No guest answers to claim", guest_id=guest_id, survey_id=survey_id)
            return None

        attempt = await self._attempts.find_open_attempt(owner, survey_id)
        if attempt is None:
            attempt = await self.start(owner, survey_id, industry=industry)

        outcome = self._merger.merge(buffer, attempt)
        if outcome.adopted:
            saved = await self._attempts.save(
                dataclasses.replace(outcome.attempt, updated_at=self._clock())
            )
            outcome = dataclasses.replace(outcome, attempt=saved)

        await self._clear_guest_buffer(guest_id, survey_id)
        return outcome

    async def stats(self, owner: Owner) -> OwnerStats:
        """Count the owner's attempts by status and average completed scores."""
        attempts = await self._attempts.list_by_owner(owner)
        scores = [
            a.score for a in attempts if a.status is AttemptStatus.COMPLETED and a.score is not None
        ]
        average = round(math.fsum(scores) / len(scores), 2) if scores else None
        return OwnerStats(
            total=len(attempts),
            completed=sum(1 for a in attempts if a.status is AttemptStatus.COMPLETED),
            draft=sum(1 for a in attempts if a.status is AttemptStatus.DRAFT),
            in_progress=sum(1 for a in attempts if a.status is AttemptStatus.IN_PROGRESS),
            average_score=average,
        )

    async def _clear_guest_buffer(self, guest_id: str, survey_id: int) -> None:
        if self._guest_store is not None:
            await self._guest_store.clear(guest_id, survey_id)
