"""Domain types for the AI readiness assessment engine.

Plain dataclasses and enums shared by the answer store, scoring engine,
lifecycle controller, benchmark aggregator and merge resolver. Nothing in
this module touches the database or the web framework; repositories in
``adapters/`` translate between these types and ORM records.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import ClassVar

# Likert agreement scale: -2 (Strongly Disagree) .. 2 (Strongly Agree)
LIKERT_VALUES: tuple[int, ...] = (-2, -1, 0, 1, 2)


def is_likert_value(value: object) -> bool:
    """Return True if value is one of the five ordinal answer levels.

    Booleans are rejected even though they are ints.
    """
    return isinstance(value, int) and not isinstance(value, bool) and value in LIKERT_VALUES


class AttemptStatus(str, Enum):
    """Lifecycle status of an assessment attempt."""

    DRAFT = "draft"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class ArtifactStatus(str, Enum):
    """Readiness of a post-completion artifact (recommendations or PDF report)."""

    NOT_REQUESTED = "not_requested"
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


class BenchmarkScope(str, Enum):
    """Population a benchmark comparison is drawn from."""

    INDUSTRY = "industry"
    GLOBAL = "global"


@dataclass(frozen=True)
class Question:
    """Immutable catalog entry.

    Attributes:
        id: Stable integer question id.
        category: Category label, e.g. "Strategy & Vision".
        text: Question text shown to the respondent.
        details: Optional longer guidance text.
    """

    id: int
    category: str
    text: str
    details: str | None = None


@dataclass(frozen=True)
class Answer:
    """One question's answer. ``value`` is None while unanswered."""

    question_id: int
    value: int | None = None


# ---------------------------------------------------------------------------
# Owners
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GuestOwner:
    """Unauthenticated owner identified by a client-generated guest token."""

    token: str

    kind: ClassVar[str] = "guest"

    @property
    def ref(self) -> str:
        return self.token

    @property
    def guest_id(self) -> str | None:
        return self.token


@dataclass(frozen=True)
class AccountOwner:
    """Authenticated owner identified by the account's user id."""

    user_id: str

    kind: ClassVar[str] = "account"

    @property
    def ref(self) -> str:
        return self.user_id

    @property
    def guest_id(self) -> str | None:
        return None


Owner = GuestOwner | AccountOwner


def owner_from_parts(kind: str, ref: str) -> Owner:
    """Rebuild an Owner from its persisted (kind, ref) pair.

    Args:
        kind: "guest" or "account".
        ref: Guest token or user id.

    Returns:
        The matching Owner variant.

    Raises:
        ValueError: If kind is not a known owner kind.
    """
    if kind == GuestOwner.kind:
        return GuestOwner(token=ref)
    if kind == AccountOwner.kind:
        return AccountOwner(user_id=ref)
    raise ValueError(f"Unknown owner kind {kind!r}")


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CategoryScore:
    """Derived per-category score.

    Attributes:
        category: Category label from the catalog.
        raw_average: Mean answer value, range -2..2.
        normalized_score: raw_average mapped linearly onto 0..10.
        answered_count: Number of answered questions that contributed.
    """

    category: str
    raw_average: float
    normalized_score: float
    answered_count: int


@dataclass(frozen=True)
class ScoreResult:
    """Output of the scoring engine: category scores plus a 0-100 overall."""

    categories: list[CategoryScore]
    overall: int

    def by_category(self) -> dict[str, CategoryScore]:
        return {score.category: score for score in self.categories}


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


@dataclass
class GuestBuffer:
    """Client-local mirror of a guest's in-progress answers.

    Attributes:
        guest_id: Guest token the buffer belongs to.
        survey_id: Survey the answers were given for.
        answers: Answer list in catalog order.
        current_step: UI cursor (index of the question being shown).
        last_updated: When the buffer was last written.
    """

    guest_id: str
    survey_id: int
    answers: list[Answer] = field(default_factory=list)
    current_step: int = 0
    last_updated: datetime | None = None

    def is_empty(self) -> bool:
        return all(answer.value is None for answer in self.answers)


@dataclass
class AssessmentAttempt:
    """Mutable aggregate root for one run through a survey.

    ``answers`` always has one entry per question in ``questions`` (the
    catalog snapshot taken at creation), pre-populated with ``value=None``.
    """

    id: uuid.UUID
    survey_id: int
    owner: Owner
    questions: list[Question]
    answers: list[Answer]
    title: str = ""
    industry: str | None = None
    catalog_version: str = ""
    status: AttemptStatus = AttemptStatus.DRAFT
    score: int | None = None
    recommendations: str | None = None
    recommendations_status: ArtifactStatus = ArtifactStatus.NOT_REQUESTED
    report_ref: str | None = None
    report_status: ArtifactStatus = ArtifactStatus.NOT_REQUESTED
    completed_on: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_completed(self) -> bool:
        return self.status is AttemptStatus.COMPLETED


@dataclass(frozen=True)
class BenchmarkCategory:
    """One category row of a benchmark comparison (all values on 0..10)."""

    name: str
    user_score: float | None
    industry_average: float | None
    global_average: float | None


@dataclass(frozen=True)
class BenchmarkSnapshot:
    """Comparison of one attempt against the completed-attempt population.

    Attributes:
        quarter: Reporting quarter, e.g. "2026-Q4".
        survey_template_id: Survey the population was drawn from.
        industry: The requesting attempt's industry code.
        matched_industry: Industry level actually used (after prefix fallback).
        scope: Scope the caller ends up seeing.
        industry_sample_size: Attempts behind the industry averages.
        global_sample_size: Attempts behind the global averages.
        categories: One row per catalog category.
    """

    quarter: str
    survey_template_id: int
    industry: str | None
    matched_industry: str | None
    scope: BenchmarkScope
    industry_sample_size: int
    global_sample_size: int
    categories: list[BenchmarkCategory]

    @property
    def has_industry_data(self) -> bool:
        return any(category.industry_average is not None for category in self.categories)


class TaskKind(str, Enum):
    """Post-completion side effects queued through the outbox."""

    GENERATE_RECOMMENDATIONS = "generate_recommendations"
    RENDER_REPORT = "render_report"


class TaskStatus(str, Enum):
    """Outbox task state. A task runs at most once: pending → running → done | failed."""

    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class OutboxTask:
    """A durable record of one side effect to run for a completed attempt."""

    id: uuid.UUID
    attempt_id: uuid.UUID
    kind: TaskKind
    status: TaskStatus = TaskStatus.PENDING
    last_error: str | None = None
    created_at: datetime | None = None
