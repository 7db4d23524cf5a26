"""AI Readiness scoring algorithm.

Answers are on the -2..2 agreement scale. Each category's score is the mean
of its answered values rescaled linearly onto 0-10; the overall score is the
unweighted mean of the category scores rescaled onto 0-100 and rounded half
up. Categories without a single answered question are left out rather than
counted as zero.

This module is independent of the database layer so that the scoring logic
can be unit-tested without any infrastructure.
"""

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from readiness_engine.core.domain import (
    Answer,
    CategoryScore,
    Question,
    ScoreResult,
    is_likert_value,
)
from readiness_engine.core.errors import IncompleteScoreError
from readiness_engine.observability import get_logger

logger = get_logger(__name__)

# (raw + 2) * 2.5 maps -2 -> 0 and 2 -> 10
_LIKERT_OFFSET: float = 2.0
_NORMALIZE_FACTOR: float = 2.5
_OVERALL_FACTOR: float = 10.0


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 always rounding up.

    Python's built-in round() uses banker's rounding (round(62.5) == 62).
    """
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def normalize(raw_average: float) -> float:
    """Map a -2..2 mean onto the 0..10 scale."""
    return (raw_average + _LIKERT_OFFSET) * _NORMALIZE_FACTOR


class ScoringEngine:
    """Pure scoring function over answers and a question catalog.

    Holds no state; calling ``score`` twice with the same inputs always
    returns equal results.
    """

    def category_scores(
        self,
        answers: Iterable[Answer],
        questions: Iterable[Question],
    ) -> list[CategoryScore]:
        """Compute per-category scores over the answered questions.

        Answers whose question id is not in the catalog are ignored so that
        retired questions do not break old attempts. Null and out-of-range
        values are skipped.

        Args:
            answers: Answers for one attempt, in any order.
            questions: Catalog the answers are scored against.

        Returns:
            One CategoryScore per category that has at least one answered
            question, in catalog order.
        """
        catalog = {question.id: question for question in questions}
        order: dict[str, None] = {}
        for question in catalog.values():
            order.setdefault(question.category, None)

        values_by_category: dict[str, list[int]] = {}
        for answer in answers:
            question = catalog.get(answer.question_id)
            if question is None or not is_likert_value(answer.value):
                continue
            values_by_category.setdefault(question.category, []).append(answer.value)  # type: ignore[arg-type]

        scores: list[CategoryScore] = []
        for category in order:
            values = values_by_category.get(category)
            if not values:
                continue
            raw_average = sum(values) / len(values)
            scores.append(
                CategoryScore(
                    category=category,
                    raw_average=raw_average,
                    normalized_score=normalize(raw_average),
                    answered_count=len(values),
                )
            )
        return scores

    def score(
        self,
        answers: Iterable[Answer],
        questions: Iterable[Question],
    ) -> ScoreResult:
        """Score an answer set against its catalog.

        Args:
            answers: Answers for one attempt (complete or partial).
            questions: Catalog the answers are scored against.

        Returns:
            ScoreResult with the category scores and the 0-100 overall score.

        Raises:
            IncompleteScoreError: If no category has any answered question.
        """
        categories = self.category_scores(answers, questions)
        if not categories:
            raise IncompleteScoreError(
                "No answered questions to score; the overall score is undefined."
            )

        mean_normalized = sum(c.normalized_score for c in categories) / len(categories)
        overall = round_half_up(mean_normalized * _OVERALL_FACTOR)

        logger.debug(
            "Scored answer set",
            category_count=len(categories),
            overall=overall,
        )
        return ScoreResult(categories=categories, overall=overall)

    def preview(
        self,
        answers: Iterable[Answer],
        questions: Iterable[Question],
    ) -> ScoreResult | None:
        """Advisory partial score for progress displays.

        Same formula as ``score`` but returns None instead of raising when
        nothing is answered yet. Never persisted as an attempt's final score.
        """
        try:
            return self.score(answers, questions)
        except IncompleteScoreError:
            return None
