"""In-memory answer state for one assessment attempt.

The store keeps one Answer per catalog question, in catalog order, and
enforces the write rules: values must be on the five-level scale and
nothing may be written once the attempt is closed. Persisting the result
is the caller's job.
"""

from readiness_engine.core.domain import Answer, Question, is_likert_value
from readiness_engine.core.errors import (
    AttemptClosedError,
    InvalidAnswerValueError,
    QuestionNotFoundError,
)
from readiness_engine.core.scoring import round_half_up


class AnswerStore:
    """Ordered (question_id → value) map for one attempt.

    Args:
        questions: Catalog snapshot the attempt is bound to.
        answers: Previously saved answers. Entries for questions outside the
            catalog are dropped; missing questions start unanswered.
        closed: True when the attempt is already completed.
    """

    def __init__(
        self,
        questions: list[Question],
        answers: list[Answer] | None = None,
        closed: bool = False,
    ) -> None:
        self._question_ids: list[int] = [q.id for q in questions]
        saved = {a.question_id: a.value for a in (answers or [])}
        self._values: dict[int, int | None] = {
            question_id: saved.get(question_id) for question_id in self._question_ids
        }
        self._closed = closed
        self._answered_count = sum(1 for v in self._values.values() if v is not None)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def answered_count(self) -> int:
        return self._answered_count

    @property
    def total_questions(self) -> int:
        return len(self._question_ids)

    def close(self) -> None:
        """Reject all further writes."""
        self._closed = True

    def set_answer(self, question_id: int, value: int) -> Answer:
        """Upsert one answer.

        Args:
            question_id: Catalog question id.
            value: Agreement level in -2..2.

        Returns:
            The stored Answer.

        Raises:
            AttemptClosedError: If the attempt is completed.
            InvalidAnswerValueError: If value is not one of -2, -1, 0, 1, 2.
            QuestionNotFoundError: If question_id is not in the catalog.
        """
        if self._closed:
            raise AttemptClosedError("Cannot update a completed assessment.")
        if not is_likert_value(value):
            raise InvalidAnswerValueError(
                f"Answer value must be one of -2, -1, 0, 1, 2; got {value!r} "
                f"for question {question_id!r}."
            )
        if question_id not in self._values:
            raise QuestionNotFoundError(
                f"Question {question_id!r} is not part of this assessment."
            )

        if self._values[question_id] is None:
            self._answered_count += 1
        self._values[question_id] = value
        return Answer(question_id=question_id, value=value)

    def get(self, question_id: int) -> int | None:
        return self._values.get(question_id)

    def answers(self) -> list[Answer]:
        """Return the full answer list in catalog order, unanswered included."""
        return [Answer(question_id=qid, value=self._values[qid]) for qid in self._question_ids]

    def progress(self) -> int:
        """Percentage of questions answered, rounded to an integer."""
        if not self._question_ids:
            return 0
        return round_half_up(self._answered_count * 100 / len(self._question_ids))

    def is_complete(self) -> bool:
        return self._answered_count == len(self._question_ids)

    def unanswered_count(self) -> int:
        return len(self._question_ids) - self._answered_count
