"""
Profile Service
================
User profiles stored at users/{uid}, combined with admin grant flags.

Security:
- Identity comes from the verified token, never from the request body
- Only displayName, photoURL and bio are writable by the user
"""

import logging
from typing import Optional

from firebase_admin import firestore
from google.api_core.exceptions import GoogleAPICallError
from google.api_core.exceptions import NotFound as DocumentNotFound
from pydantic import BaseModel, ConfigDict, Field

from temple_portal.core.errors import InvalidInput, NotFound, Unavailable
from temple_portal.core.firebase import FirebaseContext, users_collection
from temple_portal.core.security import get_admin_grant
from temple_portal.core.serialization import serialize_data

logger = logging.getLogger(__name__)


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class UpdateProfileRequest(BaseModel):
    """Profile fields a user may change."""
    model_config = ConfigDict(populate_by_name=True)

    display_name: Optional[str] = Field(default=None, alias="displayName")
    photo_url: Optional[str] = Field(default=None, alias="photoURL")
    bio: Optional[str] = None


class UserProfile(BaseModel):
    """User profile data."""
    uid: str
    email: str = ""
    displayName: str = ""
    photoURL: Optional[str] = None
    bio: Optional[str] = None
    templeId: Optional[str] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None
    isAdmin: bool = False
    isSuperAdmin: bool = False


# =============================================================================
# PROFILE SERVICE
# =============================================================================

class ProfileService:
    """Profile reads and self-service updates."""

    def __init__(self, ctx: FirebaseContext):
        self.ctx = ctx
        self.db = ctx.db

    def get_profile(self, uid: str) -> UserProfile:
        try:
            user_doc = users_collection(self.db).document(uid).get()
        except GoogleAPICallError:
            logger.exception("Error fetching profile %s", uid)
            raise Unavailable("Failed to fetch profile")

        if not user_doc.exists:
            raise NotFound("User not found")

        data = serialize_data(user_doc.to_dict() or {})
        grant = get_admin_grant(self.db, uid)

        return UserProfile(
            uid=user_doc.id,
            email=data.get("email") or "",
            displayName=data.get("displayName") or "",
            photoURL=data.get("photoURL"),
            bio=data.get("bio"),
            templeId=data.get("templeId"),
            createdAt=data.get("createdAt"),
            updatedAt=data.get("updatedAt"),
            isAdmin=grant is not None and grant.is_admin,
            isSuperAdmin=grant is not None and grant.is_super_admin
        )

    def update_profile(self, uid: str, request: UpdateProfileRequest) -> None:
        changes = request.model_dump(by_alias=True, exclude_unset=True)
        if not changes:
            raise InvalidInput("At least one profile field is required")

        changes["updatedAt"] = firestore.SERVER_TIMESTAMP

        try:
            users_collection(self.db).document(uid).update(changes)
        except DocumentNotFound:
            raise NotFound("User not found")
        except GoogleAPICallError:
            logger.exception("Error updating profile %s", uid)
            raise Unavailable("Failed to update profile")
