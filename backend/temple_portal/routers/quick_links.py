"""
Quick Links Router
===================
Endpoints:
- GET /api/quick-links - Caller's links, newest first
- POST /api/quick-links - Create link
- PATCH /api/quick-links - Update link (body carries `id`)
- DELETE /api/quick-links?id= - Delete link
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.concurrency import run_in_threadpool

from temple_portal.core.dependencies import get_quick_link_service
from temple_portal.core.security import CurrentUser, get_current_user
from temple_portal.core.validation import parse_body
from temple_portal.services.quick_link_service import (
    CreateQuickLinkRequest,
    QuickLinkService,
    UpdateQuickLinkRequest
)

router = APIRouter()


@router.get("")
async def list_quick_links(
    user: CurrentUser = Depends(get_current_user),
    quick_link_service: QuickLinkService = Depends(get_quick_link_service)
):
    links = await run_in_threadpool(quick_link_service.list_links, user.uid)
    return {"links": links}


@router.post("")
async def create_quick_link(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    quick_link_service: QuickLinkService = Depends(get_quick_link_service)
):
    """Pinning a new link unpins the caller's previous one."""
    body = await parse_body(request, CreateQuickLinkRequest, "Title and URL are required")
    link_id = await run_in_threadpool(quick_link_service.create_link, user.uid, body)
    return {"success": True, "id": link_id}


@router.patch("")
async def update_quick_link(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    quick_link_service: QuickLinkService = Depends(get_quick_link_service)
):
    body = await parse_body(
        request, UpdateQuickLinkRequest, "Link ID and at least one field to update are required"
    )
    await run_in_threadpool(quick_link_service.update_link, user.uid, body)
    return {"success": True}


@router.delete("")
async def delete_quick_link(
    link_id: Optional[str] = Query(None, alias="id"),
    user: CurrentUser = Depends(get_current_user),
    quick_link_service: QuickLinkService = Depends(get_quick_link_service)
):
    await run_in_threadpool(quick_link_service.delete_link, user.uid, link_id)
    return {"success": True}
