"""Reserve routes.

Routes:
- GET    /api/projects/{project_id}/reserves                        - List reserves, newest first
- GET    /api/projects/{project_id}/reserves/current                - Approved reserve, else latest
- POST   /api/projects/{project_id}/reserves                        - Create a draft reserve
- PATCH  /api/projects/{project_id}/reserves/{reserve_id}           - Update amounts / notes
- POST   /api/projects/{project_id}/reserves/{reserve_id}/revisions - Revise into a new draft
- POST   /api/projects/{project_id}/reserves/{reserve_id}/submit    - Draft -> pending approval
- POST   /api/projects/{project_id}/reserves/{reserve_id}/approve   - Approve (supersedes prior)
- POST   /api/projects/{project_id}/reserves/{reserve_id}/supersede - Supersede
- GET    /api/projects/{project_id}/reserves/{reserve_id}/history   - Per-category change log
- POST   /api/projects/{project_id}/reserves/{reserve_id}/movements - Record a reserve movement
- GET    /api/projects/{project_id}/reserve-movements               - List movements
- GET    /api/projects/{project_id}/summary                         - Financial roll-up
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from claimcalc.models import (
    ProjectFinancialSummary,
    ReserveHistoryEntry,
    ReserveMovement,
    ReserveRecord,
)
from claimcalc.reserving.service import ReservingService
from claimcalc.web.dependencies import get_service
from claimcalc.web.models import (
    ReserveCreateRequest,
    ReserveMovementRequest,
    ReserveReviseRequest,
    ReserveUpdateRequest,
)

router = APIRouter(prefix="/api/projects/{project_id}", tags=["reserves"])


@router.get("/reserves", response_model=list[ReserveRecord])
async def list_reserves(project_id: str, service: ReservingService = Depends(get_service)):
    return await service.list_reserves(project_id)


@router.get("/reserves/current", response_model=ReserveRecord | None)
async def current_reserve(project_id: str, service: ReservingService = Depends(get_service)):
    return await service.current_reserve(project_id)


@router.post("/reserves", response_model=ReserveRecord, status_code=status.HTTP_201_CREATED)
async def create_reserve(
    project_id: str,
    body: ReserveCreateRequest,
    service: ReservingService = Depends(get_service),
):
    data = body.model_dump(mode="json", exclude_none=True)
    reason = data.pop("reason", None)
    return await service.create_reserve(project_id, data, reason=reason)


@router.patch("/reserves/{reserve_id}", response_model=ReserveRecord)
async def update_reserve(
    project_id: str,
    reserve_id: UUID,
    body: ReserveUpdateRequest,
    service: ReservingService = Depends(get_service),
):
    data = body.model_dump(mode="json", exclude_unset=True)
    expected_version = data.pop("expected_version", None)
    reason = data.pop("reason", None)
    return await service.update_reserve(
        project_id, reserve_id, data, expected_version=expected_version, reason=reason
    )


@router.post(
    "/reserves/{reserve_id}/revisions",
    response_model=ReserveRecord,
    status_code=status.HTTP_201_CREATED,
)
async def revise_reserve(
    project_id: str,
    reserve_id: UUID,
    body: ReserveReviseRequest,
    service: ReservingService = Depends(get_service),
):
    data = body.model_dump(mode="json", exclude_none=True)
    reason = data.pop("reason", None)
    return await service.revise_reserve(project_id, reserve_id, data, reason=reason)


@router.post("/reserves/{reserve_id}/submit", response_model=ReserveRecord)
async def submit_reserve(
    project_id: str,
    reserve_id: UUID,
    expected_version: int | None = Query(default=None),
    service: ReservingService = Depends(get_service),
):
    return await service.submit_reserve(project_id, reserve_id, expected_version=expected_version)


@router.post("/reserves/{reserve_id}/approve", response_model=ReserveRecord)
async def approve_reserve(
    project_id: str,
    reserve_id: UUID,
    expected_version: int | None = Query(default=None),
    service: ReservingService = Depends(get_service),
):
    return await service.approve_reserve(project_id, reserve_id, expected_version=expected_version)


@router.post("/reserves/{reserve_id}/supersede", response_model=ReserveRecord)
async def supersede_reserve(
    project_id: str,
    reserve_id: UUID,
    expected_version: int | None = Query(default=None),
    service: ReservingService = Depends(get_service),
):
    return await service.supersede_reserve(project_id, reserve_id, expected_version=expected_version)


@router.get("/reserves/{reserve_id}/history", response_model=list[ReserveHistoryEntry])
async def reserve_history(
    project_id: str,
    reserve_id: UUID,
    service: ReservingService = Depends(get_service),
):
    return await service.list_reserve_history(project_id, reserve_id)


@router.post(
    "/reserves/{reserve_id}/movements",
    response_model=ReserveMovement,
    status_code=status.HTTP_201_CREATED,
)
async def record_movement(
    project_id: str,
    reserve_id: UUID,
    body: ReserveMovementRequest,
    service: ReservingService = Depends(get_service),
):
    return await service.record_reserve_movement(
        project_id, reserve_id, body.model_dump(mode="json", exclude_none=True)
    )


@router.get("/reserve-movements", response_model=list[ReserveMovement])
async def list_movements(project_id: str, service: ReservingService = Depends(get_service)):
    return await service.list_reserve_movements(project_id)


@router.get("/summary", response_model=ProjectFinancialSummary)
async def project_summary(project_id: str, service: ReservingService = Depends(get_service)):
    return await service.project_summary(project_id)
