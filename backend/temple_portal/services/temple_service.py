"""
Temple Service
===============
Temple records and their member listings.

Security:
- Create/update require a super-admin grant (enforced by the router)
- Update is a merge-write: a missing templeId is created, not rejected
"""

import logging
from typing import List, Optional

from firebase_admin import firestore
from google.api_core.exceptions import GoogleAPICallError
from pydantic import BaseModel, ConfigDict, Field

from temple_portal.core.errors import NotFound, Unavailable
from temple_portal.core.firebase import (
    FirebaseContext,
    temple_admins_collection,
    temple_members_collection,
    temples_collection,
    users_collection
)
from temple_portal.core.security import CurrentUser, log_audit_event
from temple_portal.core.serialization import serialize_data, snapshot_to_dict

logger = logging.getLogger(__name__)


# =============================================================================
# MODELS
# =============================================================================

class CreateTempleRequest(BaseModel):
    """Request to create a temple (super-admin only)."""
    name: str = Field(min_length=1)
    location: str = Field(min_length=1)


class UpdateTempleRequest(BaseModel):
    """Request to merge-update a temple (super-admin only)."""
    model_config = ConfigDict(populate_by_name=True)

    temple_id: str = Field(alias="templeId", min_length=1)
    name: str = Field(min_length=1)
    location: str = Field(min_length=1)
    description: Optional[str] = None


class TempleCreatedResponse(BaseModel):
    success: bool = True
    templeId: str
    message: str = "Temple created successfully"


class TempleUpdatedResponse(BaseModel):
    success: bool = True
    message: str = "Temple updated successfully"


# =============================================================================
# TEMPLE SERVICE
# =============================================================================

class TempleService:
    """Temple management service."""

    def __init__(self, ctx: FirebaseContext):
        self.ctx = ctx
        self.db = ctx.db

    def create_temple(self, request: CreateTempleRequest, user: CurrentUser) -> str:
        """Create a temple with a generated identifier and return it."""
        temple_ref = temples_collection(self.db).document()

        try:
            temple_ref.set({
                "name": request.name,
                "location": request.location,
                "createdAt": firestore.SERVER_TIMESTAMP,
                "updatedAt": firestore.SERVER_TIMESTAMP
            })
        except GoogleAPICallError:
            logger.exception("Error creating temple")
            raise Unavailable("Failed to create temple")

        log_audit_event(
            self.ctx,
            action="TEMPLE_CREATED",
            user_id=user.uid,
            details={"temple_id": temple_ref.id, "name": request.name}
        )

        return temple_ref.id

    def update_temple(self, request: UpdateTempleRequest, user: CurrentUser) -> None:
        """
        Merge name, location and description onto a temple.

        Does not check that the temple exists; createdAt is never written.
        An empty description is stored as an explicit null.
        """
        temple_ref = temples_collection(self.db).document(request.temple_id)

        try:
            temple_ref.set({
                "name": request.name,
                "location": request.location,
                "description": request.description or None,
                "updatedAt": firestore.SERVER_TIMESTAMP
            }, merge=True)
        except GoogleAPICallError:
            logger.exception("Error updating temple %s", request.temple_id)
            raise Unavailable("Failed to update temple")

        log_audit_event(
            self.ctx,
            action="TEMPLE_UPDATED",
            user_id=user.uid,
            details={"temple_id": request.temple_id}
        )

    def get_temple(self, temple_id: str) -> dict:
        try:
            doc = temples_collection(self.db).document(temple_id).get()
        except GoogleAPICallError:
            logger.exception("Error fetching temple %s", temple_id)
            raise Unavailable("Failed to fetch temple")

        if not doc.exists:
            raise NotFound("Temple not found")

        return snapshot_to_dict(doc)

    def list_temples(self) -> List[dict]:
        try:
            docs = temples_collection(self.db).order_by("name").stream()
            return [snapshot_to_dict(doc) for doc in docs]
        except GoogleAPICallError:
            logger.exception("Error fetching temples")
            raise Unavailable("Failed to fetch temples")

    def get_temple_members(self, temple_id: str) -> List[dict]:
        """
        List temple admins and regular members with their user profiles.

        Admins come first. A member without a users/{uid} document gets
        `profile: None`.
        """
        try:
            admin_docs = list(temple_admins_collection(self.db, temple_id).stream())
            member_docs = list(temple_members_collection(self.db, temple_id).stream())

            members = [
                self._to_member(doc, temple_id, "admin") for doc in admin_docs
            ] + [
                self._to_member(doc, temple_id, "member") for doc in member_docs
            ]

            profiles = self._get_profiles({m["userId"] for m in members if m["userId"]})
        except GoogleAPICallError:
            logger.exception("Error fetching temple members for %s", temple_id)
            raise Unavailable("Failed to fetch temple members")

        for member in members:
            member["profile"] = profiles.get(member["userId"])

        return members

    @staticmethod
    def _to_member(doc, temple_id: str, role: str) -> dict:
        data = doc.to_dict() or {}
        return serialize_data({
            "id": doc.id,
            "templeId": temple_id,
            "userId": data.get("userId"),
            "role": role,
            "createdAt": data.get("createdAt"),
            "updatedAt": data.get("updatedAt")
        })

    def _get_profiles(self, user_ids: set) -> dict:
        if not user_ids:
            return {}

        refs = [users_collection(self.db).document(uid) for uid in sorted(user_ids)]
        profiles = {}
        for doc in self.db.get_all(refs):
            if not doc.exists:
                continue
            data = doc.to_dict() or {}
            profiles[doc.id] = {
                "uid": doc.id,
                "email": data.get("email"),
                "displayName": data.get("displayName"),
                "photoURL": data.get("photoURL"),
                "bio": data.get("bio"),
                "templeId": data.get("templeId")
            }
        return profiles
