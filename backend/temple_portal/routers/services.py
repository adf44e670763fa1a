"""
Services Router
================
Temple services, service types and service registrations.

Endpoints:
- GET /api/services?templeId=&lastServiceDate=&includeTypes= - Page of services
- POST /api/services - Create service (temple admin)
- GET /api/services/types?templeId= - Service types
- POST /api/services/types - Create service type (temple admin)
- GET /api/services/registrations?templeId= - Temple's registrations (temple admin)
- GET /api/services/registrations/mine - Caller's registrations
- PATCH /api/services/registrations/{id} - Approve/reject (temple admin)
- DELETE /api/services/registrations/{id} - Withdraw (owner or temple admin)
- GET /api/services/{id}?templeId= - Get service
- PATCH /api/services/{id} - Update service (temple admin)
- DELETE /api/services/{id}?templeId=&force= - Delete service (temple admin)
- POST /api/services/{id}/register?templeId= - Register caller
"""

import asyncio
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.concurrency import run_in_threadpool

from temple_portal.core.dependencies import get_service_service
from temple_portal.core.errors import InvalidInput
from temple_portal.core.firebase import FirebaseContext, get_context
from temple_portal.core.security import (
    CurrentUser,
    get_current_user,
    read_temple_scoped_body,
    require_temple_admin
)
from temple_portal.core.validation import validate_body
from temple_portal.services.service_service import (
    CreateServiceRequest,
    CreateServiceTypeRequest,
    ServiceCreatedResponse,
    ServiceService,
    UpdateRegistrationRequest,
    UpdateServiceRequest
)

router = APIRouter()


def _required_temple_id(temple_id: Optional[str]) -> str:
    if not temple_id:
        raise InvalidInput("Temple ID is required")
    return temple_id


@router.get("")
async def list_services(
    temple_id: Optional[str] = Query(None, alias="templeId"),
    last_service_date: Optional[datetime] = Query(None, alias="lastServiceDate"),
    include_types: bool = Query(False, alias="includeTypes"),
    service_service: ServiceService = Depends(get_service_service)
):
    """
    List services, most recently updated first, in pages of 12.

    Pass the returned `lastServiceDate` to fetch the next page. With
    `includeTypes=true` the temple's service types are read alongside.
    """
    temple_id = _required_temple_id(temple_id)

    if not include_types:
        return await run_in_threadpool(service_service.list_services, temple_id, last_service_date)

    page, types = await asyncio.gather(
        run_in_threadpool(service_service.list_services, temple_id, last_service_date),
        run_in_threadpool(service_service.list_service_types, temple_id)
    )
    return {**page, "types": types}


@router.post("", response_model=ServiceCreatedResponse)
async def create_service(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    ctx: FirebaseContext = Depends(get_context),
    service_service: ServiceService = Depends(get_service_service)
):
    """Create a service. Super-admin or admin of the body's templeId."""
    data = await read_temple_scoped_body(request, ctx, user)

    body = validate_body(data, CreateServiceRequest)
    service_id = await run_in_threadpool(service_service.create_service, body, user)
    return ServiceCreatedResponse(serviceId=service_id)


# =============================================================================
# SERVICE TYPES
# =============================================================================

@router.get("/types")
async def list_service_types(
    temple_id: Optional[str] = Query(None, alias="templeId"),
    service_service: ServiceService = Depends(get_service_service)
):
    types = await run_in_threadpool(service_service.list_service_types, _required_temple_id(temple_id))
    return {"types": types}


@router.post("/types")
async def create_service_type(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    ctx: FirebaseContext = Depends(get_context),
    service_service: ServiceService = Depends(get_service_service)
):
    """Create a service type, or return the existing one with that name."""
    data = await read_temple_scoped_body(request, ctx, user)

    body = validate_body(data, CreateServiceTypeRequest, "Name and icon are required")
    service_type = await run_in_threadpool(service_service.create_service_type, body, user)
    return {"success": True, "type": service_type}


# =============================================================================
# REGISTRATIONS
# =============================================================================

@router.get("/registrations")
async def list_temple_registrations(
    temple_id: Optional[str] = Query(None, alias="templeId"),
    user: CurrentUser = Depends(get_current_user),
    ctx: FirebaseContext = Depends(get_context),
    service_service: ServiceService = Depends(get_service_service)
):
    """All registrations for a temple. Super-admin or admin of templeId."""
    await require_temple_admin(ctx, user, temple_id)

    registrations = await run_in_threadpool(
        service_service.list_temple_registrations, _required_temple_id(temple_id)
    )
    return {"registrations": registrations}


@router.get("/registrations/mine")
async def list_my_registrations(
    user: CurrentUser = Depends(get_current_user),
    service_service: ServiceService = Depends(get_service_service)
):
    registrations = await run_in_threadpool(service_service.list_user_registrations, user.uid)
    return {"registrations": registrations}


@router.patch("/registrations/{registration_id}")
async def update_registration(
    registration_id: str,
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    ctx: FirebaseContext = Depends(get_context),
    service_service: ServiceService = Depends(get_service_service)
):
    """Set a registration's status. Super-admin or admin of the body's templeId."""
    data = await read_temple_scoped_body(request, ctx, user)

    body = validate_body(data, UpdateRegistrationRequest)
    await run_in_threadpool(service_service.update_registration_status, registration_id, body, user)
    return {"success": True, "message": f"Registration {body.status}"}


@router.delete("/registrations/{registration_id}")
async def delete_registration(
    registration_id: str,
    user: CurrentUser = Depends(get_current_user),
    service_service: ServiceService = Depends(get_service_service)
):
    await run_in_threadpool(service_service.delete_registration, registration_id, user)
    return {"success": True, "message": "Registration deleted"}


# =============================================================================
# SINGLE SERVICE
# =============================================================================

@router.get("/{service_id}")
async def get_service(
    service_id: str,
    temple_id: Optional[str] = Query(None, alias="templeId"),
    service_service: ServiceService = Depends(get_service_service)
):
    service = await run_in_threadpool(service_service.get_service, _required_temple_id(temple_id), service_id)
    return {"service": service}


@router.patch("/{service_id}")
async def update_service(
    service_id: str,
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    ctx: FirebaseContext = Depends(get_context),
    service_service: ServiceService = Depends(get_service_service)
):
    """Update a service. Super-admin or admin of the body's templeId."""
    data = await read_temple_scoped_body(request, ctx, user)

    body = validate_body(data, UpdateServiceRequest)
    service = await run_in_threadpool(service_service.update_service, service_id, body, user)
    return {"success": True, "service": service}


@router.delete("/{service_id}")
async def delete_service(
    service_id: str,
    temple_id: Optional[str] = Query(None, alias="templeId"),
    force: bool = Query(False),
    user: CurrentUser = Depends(get_current_user),
    ctx: FirebaseContext = Depends(get_context),
    service_service: ServiceService = Depends(get_service_service)
):
    """
    Delete a service. Super-admin or admin of templeId.

    Refused while registrations exist unless `force=true`.
    """
    await require_temple_admin(ctx, user, temple_id)

    removed = await run_in_threadpool(
        service_service.delete_service, _required_temple_id(temple_id), service_id, user, force
    )
    return {"success": True, "message": "Service deleted", "registrationsDeleted": removed}


@router.post("/{service_id}/register")
async def register_for_service(
    service_id: str,
    temple_id: Optional[str] = Query(None, alias="templeId"),
    user: CurrentUser = Depends(get_current_user),
    service_service: ServiceService = Depends(get_service_service)
):
    registration_id = await run_in_threadpool(
        service_service.register, _required_temple_id(temple_id), service_id, user
    )
    return {"success": True, "registrationId": registration_id, "message": "Registration pending approval"}
