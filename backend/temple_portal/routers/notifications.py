"""
Notifications Router
=====================
Endpoints:
- GET /api/notifications - Caller's notifications, newest first
- PATCH /api/notifications - Mark one or all as read
- DELETE /api/notifications?id=|all=true - Delete one or all
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.concurrency import run_in_threadpool

from temple_portal.core.dependencies import get_notification_service
from temple_portal.core.security import CurrentUser, get_current_user
from temple_portal.core.validation import parse_body
from temple_portal.services.notification_service import (
    NotificationService,
    UpdateNotificationsRequest
)

router = APIRouter()


@router.get("")
async def list_notifications(
    user: CurrentUser = Depends(get_current_user),
    notification_service: NotificationService = Depends(get_notification_service)
):
    notifications = await run_in_threadpool(notification_service.list_notifications, user.uid)
    return {"data": notifications}


@router.patch("")
async def update_notifications(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    notification_service: NotificationService = Depends(get_notification_service)
):
    """Body: `{"markAllRead": true}` or `{"notificationId": "..."}`."""
    body = await parse_body(request, UpdateNotificationsRequest, "Invalid request body")
    message = await run_in_threadpool(notification_service.update, user.uid, body)
    return {"success": True, "message": message}


@router.delete("")
async def delete_notifications(
    notification_id: Optional[str] = Query(None, alias="id"),
    delete_all: bool = Query(False, alias="all"),
    user: CurrentUser = Depends(get_current_user),
    notification_service: NotificationService = Depends(get_notification_service)
):
    message = await run_in_threadpool(
        notification_service.delete, user.uid, notification_id, delete_all
    )
    return {"success": True, "message": message}
