"""
Admin Service
==============
Admin grant provisioning and the UX-facing admin status lookup.

Security:
- assign_bootstrap_admin performs no authorization of its own; it backs the
  unauthenticated /api/assign-admin route and can be disabled with
  ENABLE_ASSIGN_ADMIN_ROUTE=false
- get_status is informational only; handlers never authorize from it
"""

import logging
from typing import Optional

from firebase_admin import firestore
from google.api_core.exceptions import GoogleAPICallError
from pydantic import BaseModel

from temple_portal.core.errors import Unavailable
from temple_portal.core.firebase import (
    FirebaseContext,
    admin_collection,
    temple_admins_collection,
    temples_collection
)
from temple_portal.core.security import (
    CurrentUser,
    can_manage_all_temples,
    can_manage_temple,
    get_admin_grant,
    log_audit_event
)

logger = logging.getLogger(__name__)


class AdminStatusResponse(BaseModel):
    """Caller's admin flags, for hiding or showing admin UI."""
    uid: str
    isAdmin: bool
    isSuperAdmin: bool
    templeId: Optional[str] = None
    canManageTemple: Optional[bool] = None


class AdminService:
    """Admin grant management."""

    def __init__(self, ctx: FirebaseContext):
        self.ctx = ctx
        self.db = ctx.db

    def assign_super_admin(self, uid: str) -> None:
        """Overwrite the grant for `uid` with a super-admin grant."""
        try:
            admin_collection(self.db).document(uid).set({
                "uid": uid,
                "isAdmin": True,
                "isSuperAdmin": True,
                "createdAt": firestore.SERVER_TIMESTAMP,
                "updatedAt": firestore.SERVER_TIMESTAMP
            })
        except GoogleAPICallError:
            logger.exception("Error assigning super admin to %s", uid)
            raise Unavailable("Failed to assign admin permissions")

        log_audit_event(
            self.ctx,
            action="SUPER_ADMIN_ASSIGNED",
            user_id=uid,
            details={"uid": uid}
        )

    def assign_bootstrap_admin(self) -> str:
        """Grant super-admin to the configured bootstrap identifier."""
        uid = self.ctx.settings.bootstrap_admin_uid
        logger.warning("Bootstrap super-admin grant written for %s", uid)
        self.assign_super_admin(uid)
        return uid

    def assign_temple_admin(self, uid: str, temple_id: str) -> None:
        """
        Grant admin rights over one temple.

        Writes the root grant and the temple_admins membership in one batch
        so the members listing and the authorization check agree.
        """
        batch = self.db.batch()
        batch.set(admin_collection(self.db).document(uid), {
            "uid": uid,
            "isAdmin": True,
            "isSuperAdmin": False,
            "templeId": temple_id,
            "createdAt": firestore.SERVER_TIMESTAMP,
            "updatedAt": firestore.SERVER_TIMESTAMP
        })
        batch.set(temple_admins_collection(self.db, temple_id).document(uid), {
            "templeId": temple_id,
            "userId": uid,
            "role": "admin",
            "createdAt": firestore.SERVER_TIMESTAMP,
            "updatedAt": firestore.SERVER_TIMESTAMP
        })

        try:
            batch.commit()
        except GoogleAPICallError:
            logger.exception("Error assigning temple admin %s for %s", uid, temple_id)
            raise Unavailable("Failed to assign temple admin")

        log_audit_event(
            self.ctx,
            action="TEMPLE_ADMIN_ASSIGNED",
            user_id=uid,
            details={"uid": uid, "temple_id": temple_id}
        )

    def reconcile_temple_grants(self) -> int:
        """
        Rebuild admin grants from every temples/{id}/temple_admins listing.

        Users without a grant get a scoped one; existing grants are merged
        with `isAdmin` and the temple. Returns the number of grants written.
        """
        written = 0
        try:
            for temple_doc in temples_collection(self.db).stream():
                for entry in temple_admins_collection(self.db, temple_doc.id).stream():
                    uid = (entry.to_dict() or {}).get("userId")
                    if not uid:
                        logger.warning("Skipping temple admin entry %s on %s without userId", entry.id, temple_doc.id)
                        continue

                    grant_ref = admin_collection(self.db).document(uid)
                    if grant_ref.get().exists:
                        grant_ref.set({
                            "isAdmin": True,
                            "templeId": temple_doc.id,
                            "updatedAt": firestore.SERVER_TIMESTAMP
                        }, merge=True)
                    else:
                        grant_ref.set({
                            "uid": uid,
                            "isAdmin": True,
                            "isSuperAdmin": False,
                            "templeId": temple_doc.id,
                            "createdAt": firestore.SERVER_TIMESTAMP,
                            "updatedAt": firestore.SERVER_TIMESTAMP
                        })
                    logger.info("Reconciled admin grant for %s on %s", uid, temple_doc.id)
                    written += 1
        except GoogleAPICallError:
            logger.exception("Grant reconciliation stopped after %d grants", written)
            raise Unavailable("Failed to reconcile admin grants")

        log_audit_event(
            self.ctx,
            action="ADMIN_GRANTS_RECONCILED",
            user_id=None,
            details={"grants_written": written}
        )
        return written

    def get_status(self, user: CurrentUser, temple_id: Optional[str] = None) -> AdminStatusResponse:
        grant = get_admin_grant(self.db, user.uid)

        return AdminStatusResponse(
            uid=user.uid,
            isAdmin=grant is not None and grant.is_admin,
            isSuperAdmin=can_manage_all_temples(grant),
            templeId=grant.temple_id if grant else None,
            canManageTemple=can_manage_temple(grant, temple_id) if temple_id else None
        )
