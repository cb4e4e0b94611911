"""PC sum and scope variation routes."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status

from claimcalc.models import PCSum, ScopeVariation
from claimcalc.reserving.service import ReservingService
from claimcalc.web.dependencies import get_service
from claimcalc.web.models import (
    PCSpendRequest,
    PCSumCreateRequest,
    PCSumTransitionRequest,
    ScopeVariationCreateRequest,
    ScopeVariationTransitionRequest,
)

router = APIRouter(prefix="/api/projects/{project_id}", tags=["budget"])


@router.get("/pc-sums", response_model=list[PCSum])
async def list_pc_sums(project_id: str, service: ReservingService = Depends(get_service)):
    return await service.list_pc_sums(project_id)


@router.post("/pc-sums", response_model=PCSum, status_code=status.HTTP_201_CREATED)
async def create_pc_sum(
    project_id: str,
    body: PCSumCreateRequest,
    service: ReservingService = Depends(get_service),
):
    return await service.create_pc_sum(project_id, body.model_dump(mode="json", exclude_none=True))


@router.post("/pc-sums/{pc_sum_id}/spend", response_model=PCSum)
async def record_pc_spend(
    project_id: str,
    pc_sum_id: UUID,
    body: PCSpendRequest,
    service: ReservingService = Depends(get_service),
):
    return await service.record_pc_spend(project_id, pc_sum_id, body.amount)


@router.post("/pc-sums/{pc_sum_id}/approve", response_model=PCSum)
async def approve_pc_sum(
    project_id: str,
    pc_sum_id: UUID,
    service: ReservingService = Depends(get_service),
):
    return await service.approve_pc_sum(project_id, pc_sum_id)


@router.post("/pc-sums/{pc_sum_id}/status", response_model=PCSum)
async def transition_pc_sum(
    project_id: str,
    pc_sum_id: UUID,
    body: PCSumTransitionRequest,
    service: ReservingService = Depends(get_service),
):
    return await service.transition_pc_sum(project_id, pc_sum_id, body.status)


@router.get("/scope-variations", response_model=list[ScopeVariation])
async def list_scope_variations(project_id: str, service: ReservingService = Depends(get_service)):
    return await service.list_scope_variations(project_id)


@router.post(
    "/scope-variations",
    response_model=ScopeVariation,
    status_code=status.HTTP_201_CREATED,
)
async def create_scope_variation(
    project_id: str,
    body: ScopeVariationCreateRequest,
    service: ReservingService = Depends(get_service),
):
    return await service.create_scope_variation(
        project_id, body.model_dump(mode="json", exclude_none=True)
    )


@router.post("/scope-variations/{variation_id}/status", response_model=ScopeVariation)
async def transition_scope_variation(
    project_id: str,
    variation_id: UUID,
    body: ScopeVariationTransitionRequest,
    service: ReservingService = Depends(get_service),
):
    return await service.transition_scope_variation(project_id, variation_id, body.status)
