"""
Quick Link Service
===================
Per-user shortcuts shown in the header. At most one link per user is pinned.
"""

import logging
from typing import List, Optional

from firebase_admin import firestore
from google.api_core.exceptions import GoogleAPICallError
from pydantic import BaseModel, Field

from temple_portal.core.errors import Forbidden, InvalidInput, NotFound, Unavailable
from temple_portal.core.firebase import FirebaseContext, quick_links_collection
from temple_portal.core.serialization import snapshot_to_dict

logger = logging.getLogger(__name__)


class CreateQuickLinkRequest(BaseModel):
    title: str = Field(min_length=1)
    url: str = Field(min_length=1)
    pinned: bool = False
    internal: bool = False


class UpdateQuickLinkRequest(BaseModel):
    id: str = Field(min_length=1)
    title: Optional[str] = Field(default=None, min_length=1)
    url: Optional[str] = Field(default=None, min_length=1)
    pinned: Optional[bool] = None
    internal: Optional[bool] = None

    def changes(self) -> dict:
        return self.model_dump(exclude={"id"}, exclude_none=True)


class QuickLinkService:
    """Quick link CRUD scoped to the verified uid."""

    def __init__(self, ctx: FirebaseContext):
        self.ctx = ctx
        self.db = ctx.db

    def list_links(self, uid: str) -> List[dict]:
        try:
            query = quick_links_collection(self.db) \
                .where("userId", "==", uid) \
                .order_by("createdAt", direction=firestore.Query.DESCENDING)
            return [snapshot_to_dict(doc) for doc in query.stream()]
        except GoogleAPICallError:
            logger.exception("Error fetching quick links for %s", uid)
            raise Unavailable("Failed to fetch quick links")

    def _owned_link(self, uid: str, link_id: str):
        ref = quick_links_collection(self.db).document(link_id)
        doc = ref.get()

        if not doc.exists:
            raise NotFound("Quick link not found")

        if (doc.to_dict() or {}).get("userId") != uid:
            raise Forbidden("Not allowed to modify this quick link")

        return ref

    def _unpin_others(self, batch, uid: str, keep_id: Optional[str] = None) -> None:
        pinned = quick_links_collection(self.db) \
            .where("userId", "==", uid) \
            .where("pinned", "==", True) \
            .stream()
        for doc in pinned:
            if doc.id != keep_id:
                batch.update(doc.reference, {"pinned": False})

    def create_link(self, uid: str, request: CreateQuickLinkRequest) -> str:
        link_ref = quick_links_collection(self.db).document()

        try:
            batch = self.db.batch()
            if request.pinned:
                self._unpin_others(batch, uid)
            batch.set(link_ref, {
                "userId": uid,
                "title": request.title,
                "url": request.url,
                "pinned": request.pinned,
                "internal": request.internal,
                "createdAt": firestore.SERVER_TIMESTAMP,
                "updatedAt": firestore.SERVER_TIMESTAMP
            })
            batch.commit()
        except GoogleAPICallError:
            logger.exception("Error creating quick link for %s", uid)
            raise Unavailable("Failed to create quick link")

        return link_ref.id

    def update_link(self, uid: str, request: UpdateQuickLinkRequest) -> None:
        changes = request.changes()
        if not changes:
            raise InvalidInput("Link ID and at least one field to update are required")

        try:
            link_ref = self._owned_link(uid, request.id)

            batch = self.db.batch()
            if changes.get("pinned"):
                self._unpin_others(batch, uid, keep_id=request.id)
            batch.update(link_ref, {**changes, "updatedAt": firestore.SERVER_TIMESTAMP})
            batch.commit()
        except GoogleAPICallError:
            logger.exception("Error updating quick link %s", request.id)
            raise Unavailable("Failed to update quick link")

    def delete_link(self, uid: str, link_id: Optional[str]) -> None:
        if not link_id:
            raise InvalidInput("Link ID is required")

        try:
            self._owned_link(uid, link_id).delete()
        except GoogleAPICallError:
            logger.exception("Error deleting quick link %s", link_id)
            raise Unavailable("Failed to delete quick link")
