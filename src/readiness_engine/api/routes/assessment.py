"""FastAPI routes for the assessment lifecycle.

All routes are thin: they resolve the owner, delegate to the lifecycle
controller, benchmark aggregator or post-completion pipeline, and serialise
responses. No business logic lives here.

API prefix: /api/v1/assessments
Auth: X-User-Id (account) or X-Guest-Token (guest), set by the upstream auth layer.
"""

import uuid
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from readiness_engine.adapters.database import get_db_session

from readiness_engine.api.dependencies import (
    PostCompletionRunner,
    get_benchmark_aggregator,
    get_lifecycle_controller,
    get_owner,
    get_post_completion_pipeline,
    get_post_completion_runner,
)
from readiness_engine.api.schemas.assessment import (
    AnswerUpdateResponse,
    AttemptListResponse,
    AttemptResponse,
    AttemptSummary,
    BenchmarkResponse,
    ClaimGuestRequest,
    ClaimGuestResponse,
    RecommendationsResponse,
    ReportResponse,
    SetAnswerRequest,
    StartAssessmentRequest,
    StatsResponse,
)
from readiness_engine.core.domain import Answer, BenchmarkScope, GuestBuffer, Owner
from readiness_engine.core.errors import (
    ArtifactNotReadyError,
    AssessmentError,
    AttemptClosedError,
    AttemptNotCompletedError,
    CompletionLimitReachedError,
    ForbiddenOwnerError,
    IncompleteAnswersError,
    IncompleteScoreError,
    InvalidAnswerValueError,
    NotFoundError,
)
from readiness_engine.core.services.benchmark import BenchmarkAggregator
from readiness_engine.core.services.lifecycle import LifecycleController
from readiness_engine.core.services.post_completion import PostCompletionPipeline
from readiness_engine.observability import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/assessments", tags=["Assessments"])

_UNPROCESSABLE = 422

# First match wins; subclasses must precede their bases.
_ERROR_STATUS: tuple[tuple[type[AssessmentError], int], ...] = (
    (InvalidAnswerValueError, _UNPROCESSABLE),
    (IncompleteAnswersError, _UNPROCESSABLE),
    (IncompleteScoreError, _UNPROCESSABLE),
    (AttemptClosedError, status.HTTP_409_CONFLICT),
    (AttemptNotCompletedError, status.HTTP_409_CONFLICT),
    (ArtifactNotReadyError, status.HTTP_409_CONFLICT),
    (CompletionLimitReachedError, status.HTTP_409_CONFLICT),
    (ForbiddenOwnerError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
)


def _http_error(exc: AssessmentError) -> HTTPException:
    """Translate an engine error into the matching HTTPException."""
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


OwnerDep = Annotated[Owner, Depends(get_owner)]
ControllerDep = Annotated[LifecycleController, Depends(get_lifecycle_controller)]
AttemptIdPath = Annotated[uuid.UUID, Path(..., description="Assessment attempt UUID")]
SessionDep = Annotated[AsyncSession, Depends(get_db_session)]


# ---------------------------------------------------------------------------
# Collection endpoints
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=AttemptResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start or resume an assessment",
)
async def start_assessment(
    body: StartAssessmentRequest,
    owner: OwnerDep,
    controller: ControllerDep,
) -> AttemptResponse:
    """Create a draft attempt with every answer unanswered.

    If the caller already has a draft or in-progress attempt for the survey,
    that attempt is returned instead so a reload never loses answers.
    """
    try:
        attempt = await controller.start(
            owner,
            survey_id=body.survey_id,
            industry=body.industry,
            title=body.title,
        )
    except AssessmentError as exc:
        raise _http_error(exc) from exc
    return AttemptResponse.from_domain(attempt)


@router.get("", response_model=AttemptListResponse, summary="List the caller's assessments")
async def list_assessments(
    owner: OwnerDep,
    controller: ControllerDep,
    survey_id: Annotated[int | None, Query(ge=1)] = None,
) -> AttemptListResponse:
    attempts = await controller.list_attempts(owner, survey_id)
    return AttemptListResponse(
        items=[AttemptSummary.from_domain(a) for a in attempts],
        total=len(attempts),
    )


@router.get("/stats", response_model=StatsResponse, summary="Attempt statistics for the caller")
async def get_stats(owner: OwnerDep, controller: ControllerDep) -> StatsResponse:
    stats = await controller.stats(owner)
    return StatsResponse(
        total=stats.total,
        completed=stats.completed,
        draft=stats.draft,
        in_progress=stats.in_progress,
        average_score=stats.average_score,
    )


@router.post(
    "/claim-guest",
    response_model=ClaimGuestResponse,
    summary="Merge a guest's buffered answers into the account's assessment",
)
async def claim_guest_answers(
    body: ClaimGuestRequest,
    owner: OwnerDep,
    controller: ControllerDep,
) -> ClaimGuestResponse:
    """Run the guest-to-account merge once, at sign-in or sign-up.

    Server answers win; guest answers only fill questions the account's
    attempt has not answered. Claiming again after the buffer was consumed
    is a no-op.
    """
    buffer: GuestBuffer | None = None
    if body.answers is not None:
        buffer = GuestBuffer(
            guest_id=body.guest_id,
            survey_id=body.survey_id,
            answers=[Answer(question_id=a.question_id, value=a.value) for a in body.answers],
            current_step=body.current_step,
        )
    try:
        outcome = await controller.claim_guest_answers(
            owner,
            guest_id=body.guest_id,
            survey_id=body.survey_id,
            buffer=buffer,
            industry=body.industry,
        )
    except AssessmentError as exc:
        raise _http_error(exc) from exc

    if outcome is None:
        return ClaimGuestResponse(merged=False, adopted=0, ignored=0, attempt=None)
    return ClaimGuestResponse(
        merged=outcome.adopted > 0,
        adopted=outcome.adopted,
        ignored=outcome.ignored,
        attempt=AttemptResponse.from_domain(outcome.attempt),
    )


# ---------------------------------------------------------------------------
# Attempt endpoints
# ---------------------------------------------------------------------------


@router.get("/{attempt_id}", response_model=AttemptResponse, summary="Read an assessment")
async def get_assessment(
    attempt_id: AttemptIdPath,
    owner: OwnerDep,
    controller: ControllerDep,
) -> AttemptResponse:
    try:
        attempt = await controller.get(attempt_id, owner)
    except AssessmentError as exc:
        raise _http_error(exc) from exc
    return AttemptResponse.from_domain(attempt)


@router.put(
    "/{attempt_id}/answers/{question_id}",
    response_model=AnswerUpdateResponse,
    summary="Set one answer",
)
async def set_answer(
    attempt_id: AttemptIdPath,
    question_id: Annotated[int, Path(..., description="Catalog question id")],
    body: SetAnswerRequest,
    owner: OwnerDep,
    controller: ControllerDep,
) -> AnswerUpdateResponse:
    """Record an answer on the -2..2 agreement scale.

    Returns progress and an advisory partial score. Writes to a completed
    assessment are rejected with 409.
    """
    try:
        update = await controller.record_answer(
            attempt_id,
            owner,
            question_id=question_id,
            value=body.value,
            current_step=body.current_step,
        )
    except AssessmentError as exc:
        raise _http_error(exc) from exc

    return AnswerUpdateResponse.build(
        attempt=update.attempt,
        question_id=update.answer.question_id,
        value=body.value,
        progress=update.progress,
        answered_count=update.answered_count,
        total_questions=update.total_questions,
        preview=update.preview,
    )


@router.post(
    "/{attempt_id}/complete",
    response_model=AttemptResponse,
    summary="Complete an assessment",
)
async def complete_assessment(
    attempt_id: AttemptIdPath,
    owner: OwnerDep,
    controller: ControllerDep,
    background_tasks: BackgroundTasks,
    runner: Annotated[PostCompletionRunner, Depends(get_post_completion_runner)],
    session: SessionDep,
) -> AttemptResponse:
    """Score and close the assessment.

    Every question must be answered. Recommendations and the PDF report are
    produced afterwards in the background; the response reports them as
    ``pending``.
    """
    try:
        attempt = await controller.complete(attempt_id, owner)
    except AssessmentError as exc:
        raise _http_error(exc) from exc

    # The runner opens its own session and must see the outbox row.
    await session.commit()
    background_tasks.add_task(runner.run_for_attempt, attempt.id)
    return AttemptResponse.from_domain(attempt)


@router.get(
    "/{attempt_id}/recommendations",
    response_model=RecommendationsResponse,
    summary="Read recommendation status",
)
async def get_recommendations(
    attempt_id: AttemptIdPath,
    owner: OwnerDep,
    controller: ControllerDep,
) -> RecommendationsResponse:
    try:
        attempt = await controller.get(attempt_id, owner)
    except AssessmentError as exc:
        raise _http_error(exc) from exc
    return RecommendationsResponse(
        attempt_id=attempt.id,
        recommendations_status=attempt.recommendations_status.value,
        recommendations=attempt.recommendations,
    )


@router.post(
    "/{attempt_id}/recommendations",
    response_model=RecommendationsResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Request recommendations again",
)
async def request_recommendations(
    attempt_id: AttemptIdPath,
    owner: OwnerDep,
    controller: ControllerDep,
    background_tasks: BackgroundTasks,
    runner: Annotated[PostCompletionRunner, Depends(get_post_completion_runner)],
    session: SessionDep,
) -> RecommendationsResponse:
    """Re-queue recommendation generation after a failure.

    A no-op when recommendations are ready or generation is still pending.
    """
    try:
        attempt = await controller.request_recommendations(attempt_id, owner)
    except AssessmentError as exc:
        raise _http_error(exc) from exc

    # The runner opens its own session and must see the outbox row.
    await session.commit()
    background_tasks.add_task(runner.run_for_attempt, attempt.id)
    return RecommendationsResponse(
        attempt_id=attempt.id,
        recommendations_status=attempt.recommendations_status.value,
        recommendations=attempt.recommendations,
    )


@router.get(
    "/{attempt_id}/benchmark",
    response_model=BenchmarkResponse,
    summary="Compare a completed assessment with other organisations",
)
async def get_benchmark(
    attempt_id: AttemptIdPath,
    owner: OwnerDep,
    controller: ControllerDep,
    aggregator: Annotated[BenchmarkAggregator, Depends(get_benchmark_aggregator)],
    scope: Annotated[BenchmarkScope | None, Query()] = None,
) -> BenchmarkResponse:
    """Benchmark against the current quarter's completed assessments.

    Without ``scope`` the industry comparison is tried first and the
    response falls back to global scope when no industry data exists.
    Null averages mean "no data".
    """
    try:
        attempt = await controller.get(attempt_id, owner)
        if scope is None:
            snapshot = await aggregator.benchmark(attempt)
        else:
            snapshot = await aggregator.compare(attempt, scope)
    except AssessmentError as exc:
        raise _http_error(exc) from exc
    return BenchmarkResponse.from_domain(snapshot)


@router.get(
    "/{attempt_id}/report",
    response_model=ReportResponse,
    summary="Get the PDF report, generating it if missing",
)
async def get_report(
    attempt_id: AttemptIdPath,
    owner: OwnerDep,
    controller: ControllerDep,
    pipeline: Annotated[PostCompletionPipeline, Depends(get_post_completion_pipeline)],
) -> ReportResponse:
    """Return the report reference, rendering the PDF on demand.

    Concurrent requests for the same assessment render at most once.
    Requires a completed assessment with recommendations.
    """
    try:
        await controller.get(attempt_id, owner)
        attempt = await pipeline.ensure_report(attempt_id)
    except AssessmentError as exc:
        raise _http_error(exc) from exc
    return ReportResponse(
        attempt_id=attempt.id,
        report_status=attempt.report_status.value,
        report_ref=attempt.report_ref,
    )
