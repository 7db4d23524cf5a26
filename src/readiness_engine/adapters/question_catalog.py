"""In-process question catalog provider.

Serves the built-in survey definitions from ``core/questions.py``. A catalog
backed by CSV import or an admin database would implement the same
IQuestionCatalog interface.
"""

from readiness_engine.core.domain import Question
from readiness_engine.core.errors import SurveyNotFoundError
from readiness_engine.core.questions import AI_READINESS_SURVEY, SurveyDefinition


class StaticQuestionCatalog:
    """Read-only catalog over a fixed set of survey definitions.

    Args:
        surveys: Surveys to serve. Defaults to the built-in AI readiness survey.
    """

    def __init__(self, surveys: list[SurveyDefinition] | None = None) -> None:
        self._surveys: dict[int, SurveyDefinition] = {
            survey.survey_id: survey for survey in (surveys or [AI_READINESS_SURVEY])
        }

    async def get_survey(self, survey_id: int) -> SurveyDefinition:
        survey = self._surveys.get(survey_id)
        if survey is None:
            raise SurveyNotFoundError(f"Survey {survey_id} not found.")
        return survey

    async def get_questions(self, survey_id: int) -> list[Question]:
        survey = await self.get_survey(survey_id)
        return list(survey.questions)
