"""
Admin Router
=============
Admin grant bootstrap and status endpoints.

Endpoints:
- POST /api/assign-admin - Grant super-admin to the bootstrap uid (no auth)
- GET /api/admin/status - Caller's admin flags (UI gating only)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool

from temple_portal.core.dependencies import get_admin_service
from temple_portal.core.errors import NotFound
from temple_portal.core.firebase import FirebaseContext, get_context
from temple_portal.core.security import CurrentUser, get_current_user
from temple_portal.services.admin_service import AdminService, AdminStatusResponse

router = APIRouter()


@router.post("/assign-admin")
async def assign_admin(
    ctx: FirebaseContext = Depends(get_context),
    admin_service: AdminService = Depends(get_admin_service)
):
    """
    Grant super-admin to BOOTSTRAP_ADMIN_UID.

    Performs no authentication. Intended for first-time setup; prefer the
    offline `temple_portal.scripts.assign_admin` command and disable this
    route with ENABLE_ASSIGN_ADMIN_ROUTE=false.
    """
    if not ctx.settings.enable_assign_admin_route:
        raise NotFound("Not found")

    await run_in_threadpool(admin_service.assign_bootstrap_admin)
    return {"success": True, "message": "Successfully assigned super admin permissions"}


@router.get("/admin/status", response_model=AdminStatusResponse)
async def get_admin_status(
    temple_id: Optional[str] = Query(None, alias="templeId"),
    user: CurrentUser = Depends(get_current_user),
    admin_service: AdminService = Depends(get_admin_service)
):
    """
    Report the caller's admin flags.

    For hiding or showing admin UI only. Privileged routes repeat their own
    check on every request.
    """
    return await run_in_threadpool(admin_service.get_status, user, temple_id)
