"""
Temples Router
===============
Temple browsing and super-admin management.

Endpoints:
- GET /api/temples - List temples
- POST /api/temples/create - Create temple (super-admin)
- POST /api/temples/update - Merge-update temple (super-admin)
- GET /api/temples/members - Temple admins and members
- GET /api/temples/{id} - Temple with its events
"""

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.concurrency import run_in_threadpool

from temple_portal.core.dependencies import get_event_service, get_temple_service
from temple_portal.core.errors import InvalidInput
from temple_portal.core.security import CurrentUser, require_super_admin
from temple_portal.core.validation import parse_body
from temple_portal.services.event_service import EventService
from temple_portal.services.temple_service import (
    CreateTempleRequest,
    TempleCreatedResponse,
    TempleService,
    TempleUpdatedResponse,
    UpdateTempleRequest
)

router = APIRouter()


@router.get("")
async def list_temples(temple_service: TempleService = Depends(get_temple_service)):
    """List all temples."""
    temples = await run_in_threadpool(temple_service.list_temples)
    return {"temples": temples}


@router.post("/create", response_model=TempleCreatedResponse)
async def create_temple(
    request: Request,
    user: CurrentUser = Depends(require_super_admin),
    temple_service: TempleService = Depends(get_temple_service)
):
    """
    Create a temple.

    Super-admin only. A retried request creates a second temple.
    """
    body = await parse_body(request, CreateTempleRequest, "Name and location are required")
    temple_id = await run_in_threadpool(temple_service.create_temple, body, user)
    return TempleCreatedResponse(templeId=temple_id)


@router.post("/update", response_model=TempleUpdatedResponse)
async def update_temple(
    request: Request,
    user: CurrentUser = Depends(require_super_admin),
    temple_service: TempleService = Depends(get_temple_service)
):
    """
    Merge-update a temple.

    Super-admin only. An unknown templeId is created rather than rejected.
    """
    body = await parse_body(
        request, UpdateTempleRequest, "Temple ID, name, and location are required"
    )
    await run_in_threadpool(temple_service.update_temple, body, user)
    return TempleUpdatedResponse()


@router.get("/members")
async def get_temple_members(
    temple_id: Optional[str] = Query(None, alias="templeId"),
    temple_service: TempleService = Depends(get_temple_service)
):
    """List temple admins and members with their profiles."""
    if not temple_id:
        raise InvalidInput("Temple ID is required")

    members = await run_in_threadpool(temple_service.get_temple_members, temple_id)
    return {"members": members}


@router.get("/{temple_id}")
async def get_temple_overview(
    temple_id: str,
    temple_service: TempleService = Depends(get_temple_service),
    event_service: EventService = Depends(get_event_service)
):
    """
    Temple page data.

    The temple and its events are read concurrently; both must finish
    before responding.
    """
    temple, events = await asyncio.gather(
        run_in_threadpool(temple_service.get_temple, temple_id),
        run_in_threadpool(event_service.list_events, temple_id),
        return_exceptions=True
    )
    # A missing temple outranks an events failure
    for result in (temple, events):
        if isinstance(result, BaseException):
            raise result
    return {"temple": temple, "events": events}
