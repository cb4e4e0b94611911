"""Shared dependencies for ClaimCalc API routes.

Usage:
    from fastapi import Depends
    from claimcalc.web.dependencies import get_service

    @router.get("/reserves")
    async def list_reserves(project_id: str, service=Depends(get_service)):
        return await service.list_reserves(project_id)
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Header, HTTPException, status

from claimcalc.config import get_config
from claimcalc.db.connection import get_session
from claimcalc.reserving.service import ReservingService


def get_actor_id(x_actor_id: str | None = Header(default=None)) -> str:
    """Acting user, taken from the X-Actor-Id header."""
    if not x_actor_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Actor-Id header is required",
        )
    return x_actor_id


async def get_service(actor_id: str = Depends(get_actor_id)) -> AsyncIterator[ReservingService]:
    """One ReservingService per request, committed when the handler succeeds."""
    async with get_session() as session:
        yield ReservingService(session, actor_id, config=get_config().reserving)
