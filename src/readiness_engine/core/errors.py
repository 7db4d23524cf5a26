"""Exception hierarchy for the assessment engine.

Every error here is either a rejected local operation or a missing record.
None of them is fatal to the process. The API layer maps each class to an
HTTP status in ``api/routes/assessment.py``.
"""


class AssessmentError(Exception):
    """Base class for all assessment engine errors."""


class InvalidAnswerValueError(AssessmentError):
    """Raised when an answer value is outside the five-level Likert set."""


class AttemptClosedError(AssessmentError):
    """Raised when a write is attempted on a completed assessment."""


class IncompleteAnswersError(AssessmentError):
    """Raised when completion is requested while questions remain unanswered."""

    def __init__(self, unanswered: int, total: int) -> None:
        self.unanswered = unanswered
        self.total = total
        super().__init__(
            "All questions must be answered before completing the assessment "
            f"({unanswered} of {total} still unanswered)."
        )


class IncompleteScoreError(AssessmentError):
    """Raised when no category has a single answered question to score."""


class AttemptNotCompletedError(AssessmentError):
    """Raised when an operation needs a completed assessment."""


class ArtifactNotReadyError(AssessmentError):
    """Raised when a report is requested before its recommendations exist."""


class CompletionLimitReachedError(AssessmentError):
    """Raised when an owner has used up the survey's completion limit."""


class ForbiddenOwnerError(AssessmentError):
    """Raised when the caller does not own the assessment."""


class NotFoundError(AssessmentError):
    """Base class for missing attempts, surveys, questions, and guest buffers."""


class AttemptNotFoundError(NotFoundError):
    """Raised when no assessment attempt exists for the given id."""


class SurveyNotFoundError(NotFoundError):
    """Raised when the question catalog has no survey with the given id."""


class QuestionNotFoundError(NotFoundError):
    """Raised when a question id is not part of the attempt's catalog."""


class GuestBufferNotFoundError(NotFoundError):
    """Raised when no guest buffer is stored for (guest_id, survey_id)."""
