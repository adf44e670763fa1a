"""
Events Router
==============
Temple events and registrations.

Endpoints:
- GET /api/events?templeId= - List a temple's events
- POST /api/events - Create event (temple admin)
- GET /api/events/{id}?templeId= - Get event
- PATCH /api/events/{id} - Update event (temple admin)
- DELETE /api/events/{id}?templeId= - Delete event (temple admin)
- POST /api/events/{id}/register?templeId= - Register caller
- DELETE /api/events/{id}/register?templeId= - Unregister caller

Write endpoints read the target templeId from the body or query and check
the caller's grant against it before validating the rest of the request.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.concurrency import run_in_threadpool

from temple_portal.core.dependencies import get_event_service
from temple_portal.core.errors import InvalidInput
from temple_portal.core.firebase import FirebaseContext, get_context
from temple_portal.core.security import (
    CurrentUser,
    get_current_user,
    read_temple_scoped_body,
    require_temple_admin
)
from temple_portal.core.validation import validate_body
from temple_portal.services.event_service import (
    CreateEventRequest,
    EventCreatedResponse,
    EventService,
    UpdateEventRequest
)

router = APIRouter()


def _required_temple_id(temple_id: Optional[str]) -> str:
    if not temple_id:
        raise InvalidInput("Temple ID is required")
    return temple_id


@router.get("")
async def list_events(
    temple_id: Optional[str] = Query(None, alias="templeId"),
    event_service: EventService = Depends(get_event_service)
):
    """
    List events for a temple, newest first.

    Events whose stored templeId differs from the query are left out.
    """
    events = await run_in_threadpool(event_service.list_events, _required_temple_id(temple_id))
    return {"events": events}


@router.post("", response_model=EventCreatedResponse)
async def create_event(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    ctx: FirebaseContext = Depends(get_context),
    event_service: EventService = Depends(get_event_service)
):
    """
    Create an event.

    Super-admin or admin of the body's templeId.
    """
    data = await read_temple_scoped_body(request, ctx, user)

    body = validate_body(data, CreateEventRequest)
    event_id = await run_in_threadpool(event_service.create_event, body, user)
    return EventCreatedResponse(eventId=event_id)


@router.get("/{event_id}")
async def get_event(
    event_id: str,
    temple_id: Optional[str] = Query(None, alias="templeId"),
    event_service: EventService = Depends(get_event_service)
):
    """Get one event; 404 if it does not belong to templeId."""
    event = await run_in_threadpool(event_service.get_event, _required_temple_id(temple_id), event_id)
    return {"event": event}


@router.patch("/{event_id}")
async def update_event(
    event_id: str,
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    ctx: FirebaseContext = Depends(get_context),
    event_service: EventService = Depends(get_event_service)
):
    """
    Update an event.

    Super-admin or admin of the body's templeId.
    """
    data = await read_temple_scoped_body(request, ctx, user)

    body = validate_body(data, UpdateEventRequest)
    event = await run_in_threadpool(event_service.update_event, event_id, body, user)
    return {"success": True, "event": event}


@router.delete("/{event_id}")
async def delete_event(
    event_id: str,
    temple_id: Optional[str] = Query(None, alias="templeId"),
    user: CurrentUser = Depends(get_current_user),
    ctx: FirebaseContext = Depends(get_context),
    event_service: EventService = Depends(get_event_service)
):
    """Delete an event. Super-admin or admin of templeId."""
    await require_temple_admin(ctx, user, temple_id)

    await run_in_threadpool(event_service.delete_event, _required_temple_id(temple_id), event_id, user)
    return {"success": True, "message": "Event deleted"}


@router.post("/{event_id}/register")
async def register_for_event(
    event_id: str,
    temple_id: Optional[str] = Query(None, alias="templeId"),
    user: CurrentUser = Depends(get_current_user),
    event_service: EventService = Depends(get_event_service)
):
    """Register the caller for an event."""
    await run_in_threadpool(event_service.register, _required_temple_id(temple_id), event_id, user)
    return {"success": True, "message": "Registered for event"}


@router.delete("/{event_id}/register")
async def unregister_from_event(
    event_id: str,
    temple_id: Optional[str] = Query(None, alias="templeId"),
    user: CurrentUser = Depends(get_current_user),
    event_service: EventService = Depends(get_event_service)
):
    """Remove the caller's registration."""
    await run_in_threadpool(event_service.unregister, _required_temple_id(temple_id), event_id, user)
    return {"success": True, "message": "Unregistered from event"}
