"""
Notification Service
=====================
Per-user notifications. Ownership is checked against the verified uid.
"""

import logging
from typing import List, Optional

from firebase_admin import firestore
from google.api_core.exceptions import GoogleAPICallError
from pydantic import BaseModel, ConfigDict, Field

from temple_portal.core.errors import Forbidden, InvalidInput, NotFound, Unavailable
from temple_portal.core.firebase import FirebaseContext, notifications_collection
from temple_portal.core.serialization import snapshot_to_dict

logger = logging.getLogger(__name__)

# Firestore rejects batches with more than 500 writes
BATCH_LIMIT = 500


class UpdateNotificationsRequest(BaseModel):
    """Either mark everything read or one notification."""
    model_config = ConfigDict(populate_by_name=True)

    mark_all_read: bool = Field(default=False, alias="markAllRead")
    notification_id: Optional[str] = Field(default=None, alias="notificationId")


class NotificationService:
    """Notification listing, read-marking and deletion."""

    def __init__(self, ctx: FirebaseContext):
        self.ctx = ctx
        self.db = ctx.db

    def list_notifications(self, uid: str) -> List[dict]:
        try:
            query = notifications_collection(self.db) \
                .where("userId", "==", uid) \
                .order_by("timestamp", direction=firestore.Query.DESCENDING)
            return [snapshot_to_dict(doc) for doc in query.stream()]
        except GoogleAPICallError:
            logger.exception("Error fetching notifications for %s", uid)
            raise Unavailable("Failed to fetch notifications")

    def _owned_notification(self, uid: str, notification_id: str):
        ref = notifications_collection(self.db).document(notification_id)
        doc = ref.get()

        if not doc.exists:
            raise NotFound("Notification not found")

        if (doc.to_dict() or {}).get("userId") != uid:
            raise Forbidden("Not allowed to modify this notification")

        return ref

    def _apply_in_batches(self, refs, apply) -> int:
        """
        Write `refs` in chunks of BATCH_LIMIT and return how many were written.

        Each chunk commits on its own. A failure part-way leaves the earlier
        chunks applied; the committed count is logged before re-raising.
        """
        committed = 0
        try:
            for start in range(0, len(refs), BATCH_LIMIT):
                chunk = refs[start:start + BATCH_LIMIT]
                batch = self.db.batch()
                for ref in chunk:
                    apply(batch, ref)
                batch.commit()
                committed += len(chunk)
        except GoogleAPICallError:
            logger.error("Batch write stopped after %d of %d documents", committed, len(refs))
            raise
        return committed

    def update(self, uid: str, request: UpdateNotificationsRequest) -> str:
        """Apply a read-marking request and return a status message."""
        try:
            if request.mark_all_read:
                query = notifications_collection(self.db) \
                    .where("userId", "==", uid) \
                    .where("read", "==", False)
                refs = [doc.reference for doc in query.stream()]
                if not refs:
                    return "No unread notifications found"
                self._apply_in_batches(refs, lambda batch, ref: batch.update(ref, {"read": True}))
                return "All notifications marked as read"

            if request.notification_id:
                ref = self._owned_notification(uid, request.notification_id)
                ref.update({"read": True})
                return "Notification marked as read"
        except GoogleAPICallError:
            logger.exception("Error updating notifications for %s", uid)
            raise Unavailable("Failed to update notifications")

        raise InvalidInput("Invalid request body")

    def delete(self, uid: str, notification_id: Optional[str], delete_all: bool) -> str:
        try:
            if delete_all:
                query = notifications_collection(self.db).where("userId", "==", uid)
                refs = [doc.reference for doc in query.stream()]
                if not refs:
                    return "No notifications found"
                self._apply_in_batches(refs, lambda batch, ref: batch.delete(ref))
                return "All notifications deleted"

            if notification_id:
                self._owned_notification(uid, notification_id).delete()
                return "Notification deleted"
        except GoogleAPICallError:
            logger.exception("Error deleting notifications for %s", uid)
            raise Unavailable("Failed to delete notifications")

        raise InvalidInput("Notification ID or delete all parameter required")
