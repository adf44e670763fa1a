"""Per-request service construction."""

from fastapi import Depends

from temple_portal.core.firebase import FirebaseContext, get_context
from temple_portal.services.admin_service import AdminService
from temple_portal.services.event_service import EventService
from temple_portal.services.notification_service import NotificationService
from temple_portal.services.profile_service import ProfileService
from temple_portal.services.quick_link_service import QuickLinkService
from temple_portal.services.service_service import ServiceService
from temple_portal.services.temple_service import TempleService


def get_admin_service(ctx: FirebaseContext = Depends(get_context)) -> AdminService:
    return AdminService(ctx)


def get_temple_service(ctx: FirebaseContext = Depends(get_context)) -> TempleService:
    return TempleService(ctx)


def get_event_service(ctx: FirebaseContext = Depends(get_context)) -> EventService:
    return EventService(ctx)


def get_profile_service(ctx: FirebaseContext = Depends(get_context)) -> ProfileService:
    return ProfileService(ctx)


def get_notification_service(ctx: FirebaseContext = Depends(get_context)) -> NotificationService:
    return NotificationService(ctx)


def get_service_service(ctx: FirebaseContext = Depends(get_context)) -> ServiceService:
    return ServiceService(ctx)


def get_quick_link_service(ctx: FirebaseContext = Depends(get_context)) -> QuickLinkService:
    return QuickLinkService(ctx)
