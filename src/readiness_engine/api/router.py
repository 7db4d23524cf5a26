"""Top-level API router for the readiness engine.

API prefix: /api/v1
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, status

from readiness_engine.api.dependencies import get_question_catalog
from readiness_engine.api.routes.assessment import router as assessment_router
from readiness_engine.api.schemas.assessment import SurveyResponse
from readiness_engine.core.errors import SurveyNotFoundError
from readiness_engine.core.interfaces import IQuestionCatalog

router = APIRouter()
router.include_router(assessment_router)


@router.get("/surveys/{survey_id}", response_model=SurveyResponse, tags=["Surveys"])
async def get_survey(
    survey_id: Annotated[int, Path(..., ge=1)],
    catalog: Annotated[IQuestionCatalog, Depends(get_question_catalog)],
) -> SurveyResponse:
    """Return a survey template with its questions in display order."""
    try:
        survey = await catalog.get_survey(survey_id)
    except SurveyNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return SurveyResponse.from_domain(survey)
