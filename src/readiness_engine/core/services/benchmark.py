"""Benchmark aggregation over completed attempts.

An attempt is compared against every *other* completed attempt of the same
survey that was completed in the current reporting quarter. Global averages
use the whole population; industry averages use the attempts whose industry
code falls under the requester's code, walking up the NAICS hierarchy until
a level has at least ``min_industry_sample`` attempts.

Averages are plain means computed with ``math.fsum`` so the result does not
depend on the order the repository returns rows in.
"""

import dataclasses
import math
import re
from collections.abc import Callable, Iterable
from datetime import datetime, timezone

from readiness_engine.core.domain import (
    AssessmentAttempt,
    BenchmarkCategory,
    BenchmarkScope,
    BenchmarkSnapshot,
    CategoryScore,
)
from readiness_engine.core.errors import AttemptNotCompletedError
from readiness_engine.core.interfaces import IAttemptRepository
from readiness_engine.core.questions import category_order
from readiness_engine.core.scoring import ScoringEngine
from readiness_engine.observability import get_logger

logger = get_logger(__name__)

_QUARTER_PATTERN = re.compile(r"^(\d{4})-Q([1-4])$")

# Minimum completed attempts before an industry average is reported
DEFAULT_MIN_INDUSTRY_SAMPLE: int = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def current_quarter(now: datetime | None = None) -> str:
    """Return the reporting quarter containing ``now`` as "YYYY-QN"."""
    now = now or _utcnow()
    return f"{now.year}-Q{(now.month - 1) // 3 + 1}"


def quarter_bounds(quarter: str) -> tuple[datetime, datetime]:
    """Return the UTC [start, end) window of a "YYYY-QN" quarter.

    Raises:
        ValueError: If the quarter string is malformed.
    """
    match = _QUARTER_PATTERN.match(quarter)
    if match is None:
        raise ValueError(f"Invalid quarter {quarter!r}; expected 'YYYY-QN'")
    year, number = int(match.group(1)), int(match.group(2))
    start = datetime(year, (number - 1) * 3 + 1, 1, tzinfo=timezone.utc)
    if number == 4:
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(year, number * 3 + 1, 1, tzinfo=timezone.utc)
    return start, end


def industry_hierarchy(code: str | None) -> list[str]:
    """Return the industry code followed by its progressively broader levels.

    Numeric NAICS codes drop one digit at a time (``5112`` → ``511``,
    ``51``, ``5``). Range sectors such as ``31-33`` fall back through their
    first part. Non-numeric labels have no broader level.
    """
    if not code:
        return []
    code = code.strip()
    levels = [code]
    base = code.split("-", 1)[0] if "-" in code else code
    if base.isdigit():
        if base != code:
            levels.append(base)
        while len(base) > 1:
            base = base[:-1]
            levels.append(base)
    return levels


def has_uniform_answers(attempt: AssessmentAttempt) -> bool:
    """True when every answered question carries the same value."""
    values = {answer.value for answer in attempt.answers if answer.value is not None}
    return len(values) <= 1


def aggregate_category_averages(
    score_sets: Iterable[list[CategoryScore]],
    categories: list[str],
) -> dict[str, float | None]:
    """Mean normalized score per category across a population.

    Args:
        score_sets: One list of CategoryScore per attempt in the population.
        categories: Categories to report, in display order.

    Returns:
        Mapping of category to its mean, or None where no attempt in the
        population scored that category.
    """
    collected: dict[str, list[float]] = {category: [] for category in categories}
    for scores in score_sets:
        for score in scores:
            if score.category in collected:
                collected[score.category].append(score.normalized_score)
    return {
        category: (math.fsum(values) / len(values) if values else None)
        for category, values in collected.items()
    }


class BenchmarkAggregator:
    """Compare a completed attempt against the current quarter's population.

    Read-only: never locks or mutates other attempts, so it is safe to run
    while completions happen elsewhere.
    """

    def __init__(
        self,
        attempt_repo: IAttemptRepository,
        scoring_engine: ScoringEngine | None = None,
        min_industry_sample: int = DEFAULT_MIN_INDUSTRY_SAMPLE,
        exclude_uniform_answers: bool = False,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialise with injected dependencies.

        Args:
            attempt_repo: Source of completed attempts.
            scoring_engine: Engine used to derive category scores.
            min_industry_sample: Attempts required before an industry
                average is reported.
            exclude_uniform_answers: Drop attempts whose answers are all
                the same value from the population.
            clock: Returns the current UTC time; fixes the reporting quarter.
        """
        self._attempts = attempt_repo
        self._scoring = scoring_engine or ScoringEngine()
        self._min_industry_sample = max(1, min_industry_sample)
        self._exclude_uniform = exclude_uniform_answers
        self._clock = clock

    async def compare(
        self,
        attempt: AssessmentAttempt,
        scope: BenchmarkScope,
    ) -> BenchmarkSnapshot:
        """Position one attempt's category scores against the population.

        Args:
            attempt: A completed attempt.
            scope: INDUSTRY fills industry and global averages; GLOBAL leaves
                every industry average null.

        Returns:
            BenchmarkSnapshot with one row per catalog category. An empty
            comparison population yields null averages, never zeros. The
            attempt itself is never part of its population, so the sole
            completed attempt of a quarter gets null global averages.

        Raises:
            AttemptNotCompletedError: If the attempt is not completed.
        """
        if not attempt.is_completed:
            raise AttemptNotCompletedError(
                f"Assessment {attempt.id} must be completed before it can be benchmarked."
            )

        quarter = current_quarter(self._clock())
        population = await self._population(attempt, quarter)
        categories = category_order(attempt.questions)
        user_scores = {
            score.category: score.normalized_score
            for score in self._scoring.category_scores(attempt.answers, attempt.questions)
        }
        scored = [
            (other, self._scoring.category_scores(other.answers, other.questions))
            for other in population
        ]

        global_averages = aggregate_category_averages((s for _, s in scored), categories)

        matched_industry: str | None = None
        industry_sample_size = 0
        industry_averages: dict[str, float | None] = {category: None for category in categories}
        if scope is BenchmarkScope.INDUSTRY:
            for level in industry_hierarchy(attempt.industry):
                members = [s for other, s in scored if level in industry_hierarchy(other.industry)]
                if len(members) >= self._min_industry_sample:
                    matched_industry = level
                    industry_sample_size = len(members)
                    industry_averages = aggregate_category_averages(members, categories)
                    break

        snapshot = BenchmarkSnapshot(
            quarter=quarter,
            survey_template_id=attempt.survey_id,
            industry=attempt.industry,
            matched_industry=matched_industry,
            scope=scope,
            industry_sample_size=industry_sample_size,
            global_sample_size=len(scored),
            categories=[
                BenchmarkCategory(
                    name=category,
                    user_score=user_scores.get(category),
                    industry_average=industry_averages[category],
                    global_average=global_averages[category],
                )
                for category in categories
            ],
        )

        logger.info(
            "Benchmark computed",
            attempt_id=str(attempt.id),
            quarter=quarter,
            scope=scope.value,
            matched_industry=matched_industry,
            industry_sample_size=industry_sample_size,
            global_sample_size=len(scored),
        )
        return snapshot

    async def benchmark(self, attempt: AssessmentAttempt) -> BenchmarkSnapshot:
        """Industry comparison with automatic fallback to global scope.

        When no industry level reaches the sample threshold the snapshot is
        reported with ``scope=GLOBAL`` and ``has_industry_data`` False.
        """
        snapshot = await self.compare(attempt, BenchmarkScope.INDUSTRY)
        if snapshot.has_industry_data:
            return snapshot
        return dataclasses.replace(snapshot, scope=BenchmarkScope.GLOBAL)

    async def _population(
        self,
        attempt: AssessmentAttempt,
        quarter: str,
    ) -> list[AssessmentAttempt]:
        start, end = quarter_bounds(quarter)
        completed = await self._attempts.list_completed(attempt.survey_id, start, end)
        population = [
            other for other in completed if other.id != attempt.id and other.is_completed
        ]
        if self._exclude_uniform:
            population = [other for other in population if not has_uniform_answers(other)]
        return population
