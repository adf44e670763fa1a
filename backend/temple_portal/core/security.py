"""
Security Module - Identity & Admin Grants
==========================================
The server-side trust boundary. Every privileged handler goes through here.

Security Flow:
1. Client sends `Authorization: Bearer <Firebase ID token>`
2. Token verified against the identity provider -> uid
3. Admin grant read from `admin/{uid}`
4. Grant checked against the target temple

Grants:
- Super-admin: `isSuperAdmin == True`, every temple
- Scoped admin: `isAdmin == True` and `templeId` matches the target

A missing grant and a grant with the wrong scope are both reported as the
same 403. Client-side admin checks are UX only and never replace these.
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import firestore
from google.api_core.exceptions import GoogleAPICallError
from pydantic import BaseModel

from temple_portal.core.errors import Forbidden, InvalidInput, Unauthenticated, Unavailable
from temple_portal.core.firebase import (
    FirebaseContext,
    admin_collection,
    audit_logs_collection,
    get_context
)
from temple_portal.core.validation import read_json

logger = logging.getLogger(__name__)

# Security scheme; missing headers are reported by get_current_user
security = HTTPBearer(auto_error=False)


# =============================================================================
# MODELS
# =============================================================================

class CurrentUser(BaseModel):
    """Current authenticated user context."""
    uid: str
    email: Optional[str] = None


class AdminGrant(BaseModel):
    """Admin grant stored at admin/{uid}."""
    uid: str
    is_admin: bool = False
    is_super_admin: bool = False
    temple_id: Optional[str] = None

    @classmethod
    def from_document(cls, uid: str, data: dict) -> "AdminGrant":
        # Flags must be literally True; truthy strings do not count
        temple_id = data.get("templeId")
        return cls(
            uid=uid,
            is_admin=data.get("isAdmin") is True,
            is_super_admin=data.get("isSuperAdmin") is True,
            temple_id=temple_id if isinstance(temple_id, str) else None
        )


# =============================================================================
# AUTHORIZATION RULES
# =============================================================================

def can_manage_all_temples(grant: Optional[AdminGrant]) -> bool:
    return grant is not None and grant.is_super_admin


def can_manage_temple(grant: Optional[AdminGrant], temple_id: str) -> bool:
    if grant is None:
        return False
    if grant.is_super_admin:
        return True
    return grant.is_admin and bool(temple_id) and grant.temple_id == temple_id


def get_admin_grant(db, uid: str) -> Optional[AdminGrant]:
    """Fetch the admin grant for a user, or None when absent."""
    try:
        doc = admin_collection(db).document(uid).get()
    except GoogleAPICallError:
        logger.exception("Failed to read admin grant for %s", uid)
        raise Unavailable("Failed to verify permissions")

    if not doc.exists:
        return None

    return AdminGrant.from_document(uid, doc.to_dict() or {})


# =============================================================================
# FASTAPI DEPENDENCIES
# =============================================================================

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    ctx: FirebaseContext = Depends(get_context)
) -> CurrentUser:
    """
    Dependency: Extract and verify the bearer token.

    Usage:
        @router.get("/protected")
        async def protected_route(user: CurrentUser = Depends(get_current_user)):
            ...
    """
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Missing authorization header")

    identity = await run_in_threadpool(ctx.verifier.verify, credentials.credentials)

    return CurrentUser(uid=identity.uid, email=identity.email)


async def require_super_admin(
    user: CurrentUser = Depends(get_current_user),
    ctx: FirebaseContext = Depends(get_context)
) -> CurrentUser:
    """Dependency: Require a super-admin grant."""
    grant = await run_in_threadpool(get_admin_grant, ctx.db, user.uid)
    if not can_manage_all_temples(grant):
        raise Forbidden("Super admin access required")
    return user


async def require_temple_admin(
    ctx: FirebaseContext,
    user: CurrentUser,
    temple_id: str
) -> AdminGrant:
    """
    Require admin rights over one temple.

    Called from handlers because the temple comes from the body or query.
    """
    grant = await run_in_threadpool(get_admin_grant, ctx.db, user.uid)
    if not can_manage_temple(grant, temple_id):
        raise Forbidden("Temple admin access required")
    return grant


async def read_temple_scoped_body(
    request: Request,
    ctx: FirebaseContext,
    user: CurrentUser
) -> dict:
    """
    Read a JSON body whose `templeId` names the temple being written to,
    and require admin rights over that temple.

    An unreadable body has no temple, so only a super-admin gets as far as
    the 400; everyone else is denied first.
    """
    try:
        data = await read_json(request)
    except InvalidInput:
        await require_temple_admin(ctx, user, None)
        raise

    await require_temple_admin(ctx, user, data.get("templeId"))
    return data


# =============================================================================
# AUDIT LOGGING
# =============================================================================

def log_audit_event(
    ctx: FirebaseContext,
    action: str,
    user_id: Optional[str],
    details: Optional[dict] = None
) -> None:
    """
    Log security-relevant events to Firestore.

    Runs after the primary write has committed, so a failure here is logged
    and not reported to the caller.
    """
    if not ctx.settings.audit_log_enabled:
        return

    try:
        audit_logs_collection(ctx.db).add({
            "action": action,
            "user_id": user_id,
            "details": details or {},
            "timestamp": firestore.SERVER_TIMESTAMP
        })
    except GoogleAPICallError:
        logger.exception("Failed to write audit event %s", action)
