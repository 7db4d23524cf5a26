"""Guest-to-account answer reconciliation.

A guest's locally buffered answers are folded into an account's attempt
exactly once, at sign-in or sign-up. The server record is authoritative:
a guest value is only adopted for a question the server has not answered.
"""

import dataclasses

from readiness_engine.core.domain import (
    Answer,
    AssessmentAttempt,
    AttemptStatus,
    GuestBuffer,
    is_likert_value,
)
from readiness_engine.observability import get_logger

logger = get_logger(__name__)


@dataclasses.dataclass(frozen=True)
class MergeOutcome:
    """Result of one merge.

    Attributes:
        attempt: The merged attempt (the input attempt when nothing changed).
        adopted: Number of guest answers copied onto the attempt.
        ignored: Guest answers dropped (invalid value or unknown question).
    """

    attempt: AssessmentAttempt
    adopted: int = 0
    ignored: int = 0


class MergeResolver:
    """Per-question reconciliation of a GuestBuffer into a server attempt."""

    def merge(
        self,
        buffer: GuestBuffer | None,
        attempt: AssessmentAttempt,
    ) -> MergeOutcome:
        """Merge guest answers into ``attempt`` without mutating either input.

        Rules per question id: server non-null wins; server null adopts a
        valid guest value; both null stays null. Guest entries for questions
        outside the attempt's catalog snapshot or with values off the scale
        are ignored. A completed attempt is returned unchanged, and a missing
        or empty buffer is a no-op so repeated merges are harmless.

        Args:
            buffer: The guest's buffer, or None when it was already cleared.
            attempt: Server-side attempt owned by the account.

        Returns:
            MergeOutcome holding the merged attempt and adoption counts.
        """
        if buffer is None or buffer.is_empty() or attempt.is_completed:
            return MergeOutcome(attempt=attempt)

        guest_values: dict[int, int] = {}
        ignored = 0
        known_ids = {answer.question_id for answer in attempt.answers}
        for answer in buffer.answers:
            if answer.value is None:
                continue
            if answer.question_id not in known_ids or not is_likert_value(answer.value):
                ignored += 1
                continue
            guest_values[answer.question_id] = answer.value

        adopted = 0
        merged: list[Answer] = []
        for answer in attempt.answers:
            if answer.value is None and answer.question_id in guest_values:
                merged.append(Answer(question_id=answer.question_id, value=guest_values[answer.question_id]))
                adopted += 1
            else:
                merged.append(answer)

        if adopted == 0:
            return MergeOutcome(attempt=attempt, ignored=ignored)

        status = attempt.status
        if status is AttemptStatus.DRAFT:
            status = AttemptStatus.IN_PROGRESS

        logger.info(
            "Guest answers merged",
            attempt_id=str(attempt.id),
            guest_id=buffer.guest_id,
            adopted=adopted,
            ignored=ignored,
        )
        return MergeOutcome(
            attempt=dataclasses.replace(attempt, answers=merged, status=status),
            adopted=adopted,
            ignored=ignored,
        )
