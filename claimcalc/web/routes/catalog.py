"""HOD code and damage item routes.

Routes:
- GET    /api/hod-codes                                           - Active HOD codes (optional search)
- GET    /api/projects/{project_id}/damage-items                  - List damage items with HOD codes
- POST   /api/projects/{project_id}/damage-items                  - Create a damage item
- PATCH  /api/projects/{project_id}/damage-items/{item_id}        - Update a damage item
- POST   /api/projects/{project_id}/damage-items/{item_id}/advance - Move one status forward
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from claimcalc.models import DamageItem, HODCode
from claimcalc.reserving.service import ReservingService
from claimcalc.web.dependencies import get_service
from claimcalc.web.models import (
    DamageItemAdvanceRequest,
    DamageItemCreateRequest,
    DamageItemUpdateRequest,
)

router = APIRouter(prefix="/api", tags=["catalog"])


@router.get("/hod-codes", response_model=list[HODCode])
async def list_hod_codes(
    search: str | None = Query(default=None),
    service: ReservingService = Depends(get_service),
):
    return await service.list_hod_codes(search)


@router.get("/projects/{project_id}/damage-items", response_model=list[DamageItem])
async def list_damage_items(project_id: str, service: ReservingService = Depends(get_service)):
    return await service.list_damage_items(project_id)


@router.post(
    "/projects/{project_id}/damage-items",
    response_model=DamageItem,
    status_code=status.HTTP_201_CREATED,
)
async def create_damage_item(
    project_id: str,
    body: DamageItemCreateRequest,
    service: ReservingService = Depends(get_service),
):
    return await service.create_damage_item(
        project_id, body.model_dump(mode="json", exclude_none=True)
    )


@router.patch("/projects/{project_id}/damage-items/{item_id}", response_model=DamageItem)
async def update_damage_item(
    project_id: str,
    item_id: UUID,
    body: DamageItemUpdateRequest,
    service: ReservingService = Depends(get_service),
):
    changes = body.model_dump(mode="json", exclude_unset=True)
    expected_version = changes.pop("expected_version", None)
    return await service.update_damage_item(
        project_id, item_id, changes, expected_version=expected_version
    )


@router.post("/projects/{project_id}/damage-items/{item_id}/advance", response_model=DamageItem)
async def advance_damage_item(
    project_id: str,
    item_id: UUID,
    body: DamageItemAdvanceRequest,
    service: ReservingService = Depends(get_service),
):
    return await service.advance_damage_item(
        project_id, item_id, body.target, expected_version=body.expected_version
    )
