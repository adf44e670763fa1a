"""
Profile Router
===============
The signed-in user's own profile.

Endpoints:
- GET /api/profile - Profile with admin flags
- PATCH /api/profile - Update displayName, photoURL, bio
"""

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool

from temple_portal.core.dependencies import get_profile_service
from temple_portal.core.security import CurrentUser, get_current_user
from temple_portal.core.validation import parse_body
from temple_portal.services.profile_service import ProfileService, UpdateProfileRequest

router = APIRouter()


@router.get("")
async def get_profile(
    user: CurrentUser = Depends(get_current_user),
    profile_service: ProfileService = Depends(get_profile_service)
):
    """
    Get the current user's profile.

    Requires a valid token in the Authorization header.
    """
    profile = await run_in_threadpool(profile_service.get_profile, user.uid)
    return {"profile": profile}


@router.patch("")
async def update_profile(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    profile_service: ProfileService = Depends(get_profile_service)
):
    """Update the current user's editable profile fields."""
    body = await parse_body(request, UpdateProfileRequest)
    await run_in_threadpool(profile_service.update_profile, user.uid, body)
    return {"success": True}
