"""Survey form and contractor assessment routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from claimcalc.models import ContractorAssessment, SurveyForm
from claimcalc.reserving.service import ReservingService
from claimcalc.web.dependencies import get_service
from claimcalc.web.models import ContractorAssessmentCreateRequest, SurveyFormCreateRequest

router = APIRouter(prefix="/api/projects/{project_id}", tags=["assessments"])


@router.get("/survey-forms", response_model=list[SurveyForm])
async def list_survey_forms(project_id: str, service: ReservingService = Depends(get_service)):
    return await service.list_survey_forms(project_id)


@router.post("/survey-forms", response_model=SurveyForm, status_code=status.HTTP_201_CREATED)
async def create_survey_form(
    project_id: str,
    body: SurveyFormCreateRequest,
    service: ReservingService = Depends(get_service),
):
    return await service.create_survey_form(
        project_id, body.model_dump(mode="json", exclude_none=True)
    )


@router.get("/contractor-assessments", response_model=list[ContractorAssessment])
async def list_contractor_assessments(
    project_id: str, service: ReservingService = Depends(get_service)
):
    return await service.list_contractor_assessments(project_id)


@router.post(
    "/contractor-assessments",
    response_model=ContractorAssessment,
    status_code=status.HTTP_201_CREATED,
)
async def create_contractor_assessment(
    project_id: str,
    body: ContractorAssessmentCreateRequest,
    service: ReservingService = Depends(get_service),
):
    return await service.create_contractor_assessment(
        project_id, body.model_dump(mode="json", exclude_none=True)
    )
