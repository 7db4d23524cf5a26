"""Pydantic request/response schemas for the assessment API.

All API inputs and outputs are strictly typed Pydantic v2 models.
No raw dicts are returned from any endpoint. The ``from_domain``
constructors translate core dataclasses at the HTTP boundary.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field, StrictInt

from readiness_engine.core.answer_store import AnswerStore
from readiness_engine.core.domain import (
    AssessmentAttempt,
    BenchmarkSnapshot,
    CategoryScore,
    ScoreResult,
)
from readiness_engine.core.questions import SurveyDefinition
from readiness_engine.core.scoring import ScoringEngine

_SCORING = ScoringEngine()


# ---------------------------------------------------------------------------
# Shared value objects
# ---------------------------------------------------------------------------


class QuestionSchema(BaseModel):
    """A catalog question as shown to the respondent."""

    id: int
    category: str
    text: str
    details: str | None = None


class AnswerSchema(BaseModel):
    """One answer; ``value`` is null while the question is unanswered."""

    question_id: int
    value: int | None = None


class CategoryScoreSchema(BaseModel):
    """Per-category score.

    Attributes:
        category: Category label.
        raw_average: Mean answer value on -2..2.
        normalized_score: Score on 0..10.
        answered_count: Answered questions behind the score.
    """

    category: str
    raw_average: float
    normalized_score: float
    answered_count: int

    @classmethod
    def from_domain(cls, score: CategoryScore) -> "CategoryScoreSchema":
        return cls(
            category=score.category,
            raw_average=score.raw_average,
            normalized_score=score.normalized_score,
            answered_count=score.answered_count,
        )


# ---------------------------------------------------------------------------
# Surveys
# ---------------------------------------------------------------------------


class SurveyResponse(BaseModel):
    """A survey template and its questions."""

    survey_id: int
    title: str
    version: str
    completion_limit: int | None
    questions: list[QuestionSchema]

    @classmethod
    def from_domain(cls, survey: SurveyDefinition) -> "SurveyResponse":
        return cls(
            survey_id=survey.survey_id,
            title=survey.title,
            version=survey.version,
            completion_limit=survey.completion_limit,
            questions=[
                QuestionSchema(id=q.id, category=q.category, text=q.text, details=q.details)
                for q in survey.questions
            ],
        )


# ---------------------------------------------------------------------------
# Attempts
# ---------------------------------------------------------------------------


class StartAssessmentRequest(BaseModel):
    """Request body to start (or resume) an assessment.

    Attributes:
        survey_id: Survey template to answer.
        industry: NAICS-style industry code used for benchmarking.
        title: Optional display title; defaults to the survey title.
    """

    survey_id: int = Field(default=1, ge=1)
    industry: str | None = Field(default=None, max_length=50)
    title: str | None = Field(default=None, max_length=255)


class AttemptResponse(BaseModel):
    """Full view of one assessment attempt.

    ``category_scores`` is only populated once the attempt is completed;
    in-progress attempts expose ``progress`` instead.
    """

    id: uuid.UUID
    survey_id: int
    owner_kind: str
    title: str
    industry: str | None
    catalog_version: str
    status: str
    progress: int
    answered_count: int
    total_questions: int
    questions: list[QuestionSchema]
    answers: list[AnswerSchema]
    score: int | None
    category_scores: list[CategoryScoreSchema]
    recommendations: str | None
    recommendations_status: str
    report_status: str
    completed_on: datetime | None
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_domain(cls, attempt: AssessmentAttempt) -> "AttemptResponse":
        store = AnswerStore(attempt.questions, attempt.answers, closed=attempt.is_completed)
        category_scores: list[CategoryScore] = []
        if attempt.is_completed:
            category_scores = _SCORING.category_scores(attempt.answers, attempt.questions)
        return cls(
            id=attempt.id,
            survey_id=attempt.survey_id,
            owner_kind=attempt.owner.kind,
            title=attempt.title,
            industry=attempt.industry,
            catalog_version=attempt.catalog_version,
            status=attempt.status.value,
            progress=store.progress(),
            answered_count=store.answered_count,
            total_questions=store.total_questions,
            questions=[
                QuestionSchema(id=q.id, category=q.category, text=q.text, details=q.details)
                for q in attempt.questions
            ],
            answers=[AnswerSchema(question_id=a.question_id, value=a.value) for a in attempt.answers],
            score=attempt.score,
            category_scores=[CategoryScoreSchema.from_domain(s) for s in category_scores],
            recommendations=attempt.recommendations,
            recommendations_status=attempt.recommendations_status.value,
            report_status=attempt.report_status.value,
            completed_on=attempt.completed_on,
            created_at=attempt.created_at,
            updated_at=attempt.updated_at,
        )


class AttemptSummary(BaseModel):
    """Compact attempt row for list views."""

    id: uuid.UUID
    survey_id: int
    title: str
    status: str
    score: int | None
    completed_on: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_domain(cls, attempt: AssessmentAttempt) -> "AttemptSummary":
        return cls(
            id=attempt.id,
            survey_id=attempt.survey_id,
            title=attempt.title,
            status=attempt.status.value,
            score=attempt.score,
            completed_on=attempt.completed_on,
            updated_at=attempt.updated_at,
        )


class AttemptListResponse(BaseModel):
    """An owner's attempts, newest first."""

    items: list[AttemptSummary]
    total: int


# ---------------------------------------------------------------------------
# Answers
# ---------------------------------------------------------------------------


class SetAnswerRequest(BaseModel):
    """Request body for one answer write.

    Attributes:
        value: Agreement level: -2 Strongly Disagree .. 2 Strongly Agree.
        current_step: UI cursor mirrored into the guest buffer.
    """

    value: StrictInt
    current_step: int | None = Field(default=None, ge=0)


class AnswerUpdateResponse(BaseModel):
    """Result of an answer write: progress plus an advisory partial score.

    ``preview_overall`` is never the attempt's final score; it is computed
    over whatever subset has been answered so far.
    """

    attempt_id: uuid.UUID
    question_id: int
    value: int
    status: str
    progress: int
    answered_count: int
    total_questions: int
    preview_overall: int | None
    preview_categories: list[CategoryScoreSchema]

    @classmethod
    def build(
        cls,
        attempt: AssessmentAttempt,
        question_id: int,
        value: int,
        progress: int,
        answered_count: int,
        total_questions: int,
        preview: ScoreResult | None,
    ) -> "AnswerUpdateResponse":
        return cls(
            attempt_id=attempt.id,
            question_id=question_id,
            value=value,
            status=attempt.status.value,
            progress=progress,
            answered_count=answered_count,
            total_questions=total_questions,
            preview_overall=preview.overall if preview else None,
            preview_categories=[
                CategoryScoreSchema.from_domain(s) for s in (preview.categories if preview else [])
            ],
        )


# ---------------------------------------------------------------------------
# Benchmarks
# ---------------------------------------------------------------------------


class BenchmarkCategorySchema(BaseModel):
    """One benchmark row. Null averages mean "no data", never zero."""

    name: str
    user_score: float | None
    industry_average: float | None
    global_average: float | None


class BenchmarkResponse(BaseModel):
    """Benchmark comparison for one completed attempt."""

    quarter: str
    survey_template_id: int
    industry: str | None
    matched_industry: str | None
    scope: str
    has_industry_data: bool
    industry_sample_size: int
    global_sample_size: int
    categories: list[BenchmarkCategorySchema]

    @classmethod
    def from_domain(cls, snapshot: BenchmarkSnapshot) -> "BenchmarkResponse":
        return cls(
            quarter=snapshot.quarter,
            survey_template_id=snapshot.survey_template_id,
            industry=snapshot.industry,
            matched_industry=snapshot.matched_industry,
            scope=snapshot.scope.value,
            has_industry_data=snapshot.has_industry_data,
            industry_sample_size=snapshot.industry_sample_size,
            global_sample_size=snapshot.global_sample_size,
            categories=[
                BenchmarkCategorySchema(
                    name=c.name,
                    user_score=c.user_score,
                    industry_average=c.industry_average,
                    global_average=c.global_average,
                )
                for c in snapshot.categories
            ],
        )


# ---------------------------------------------------------------------------
# Post-completion artifacts
# ---------------------------------------------------------------------------


class RecommendationsResponse(BaseModel):
    """Recommendation state; ``pending`` and ``failed`` mean "not ready yet"."""

    attempt_id: uuid.UUID
    recommendations_status: str
    recommendations: str | None


class ReportResponse(BaseModel):
    """PDF report state for one attempt."""

    attempt_id: uuid.UUID
    report_status: str
    report_ref: str | None


# ---------------------------------------------------------------------------
# Guest claim
# ---------------------------------------------------------------------------


class GuestAnswerSchema(BaseModel):
    """A buffered guest answer. Off-scale values are ignored by the merge."""

    question_id: int
    value: StrictInt | None = None


class ClaimGuestRequest(BaseModel):
    """Guest buffer handed over at sign-in or sign-up.

    Attributes:
        guest_id: Guest token the answers were saved under.
        survey_id: Survey the answers belong to.
        answers: The client-held buffer; when omitted, the server-side
            guest store is consulted instead.
        current_step: UI cursor from the buffer.
        industry: Industry code for a newly created account attempt.
    """

    guest_id: str = Field(..., min_length=1, max_length=255)
    survey_id: int = Field(default=1, ge=1)
    answers: list[GuestAnswerSchema] | None = None
    current_step: int = Field(default=0, ge=0)
    industry: str | None = Field(default=None, max_length=50)


class ClaimGuestResponse(BaseModel):
    """Outcome of a guest claim; ``attempt`` is null when nothing was merged."""

    merged: bool
    adopted: int
    ignored: int
    attempt: AttemptResponse | None


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


class StatsResponse(BaseModel):
    """Per-owner attempt counts and the mean completed score."""

    total: int
    completed: int
    draft: int
    in_progress: int
    average_score: float | None
