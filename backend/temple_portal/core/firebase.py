"""
Firebase Admin SDK Initialization
==================================
Builds the Firestore client and token verifier once at startup and hands
them to request handlers through `get_context`.

Security:
- Service account credentials come from Settings (env var or file)
- Firestore accessed only through the handles in FirebaseContext
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Optional

import firebase_admin
from fastapi import Request
from firebase_admin import credentials, firestore

from temple_portal.core.config import Settings
from temple_portal.core.identity import TokenVerifier, build_verifier

logger = logging.getLogger(__name__)

DEFAULT_CREDENTIALS_FILE = "firebase-credentials.json"


@dataclass
class FirebaseContext:
    """Explicit client handles shared by every request."""
    db: Any  # firestore.Client
    verifier: TokenVerifier
    settings: Settings
    app: Optional[firebase_admin.App] = None


def load_credentials(settings: Settings) -> credentials.Certificate:
    """
    Resolve service account credentials.

    Order:
    1. GOOGLE_APPLICATION_CREDENTIALS (path to JSON file)
    2. firebase-credentials.json in the working directory
    3. FIREBASE_CREDENTIALS (JSON string)
    4. FIREBASE_PROJECT_ID / FIREBASE_CLIENT_EMAIL / FIREBASE_PRIVATE_KEY
    """
    cred_path = settings.google_application_credentials
    if cred_path and os.path.exists(cred_path):
        return credentials.Certificate(cred_path)

    if os.path.exists(DEFAULT_CREDENTIALS_FILE):
        return credentials.Certificate(DEFAULT_CREDENTIALS_FILE)

    if settings.firebase_credentials_json:
        return credentials.Certificate(json.loads(settings.firebase_credentials_json))

    if settings.firebase_project_id and settings.firebase_client_email and settings.firebase_private_key:
        return credentials.Certificate({
            "type": "service_account",
            "project_id": settings.firebase_project_id,
            "client_email": settings.firebase_client_email,
            "private_key": settings.firebase_private_key.replace("\\n", "\n"),
            "token_uri": "https://oauth2.googleapis.com/token",
        })

    raise RuntimeError(
        "Firebase credentials not found. Set GOOGLE_APPLICATION_CREDENTIALS, "
        "FIREBASE_CREDENTIALS, or the FIREBASE_PROJECT_ID/CLIENT_EMAIL/PRIVATE_KEY triple."
    )


def initialize_firebase(settings: Settings) -> FirebaseContext:
    """Initialize the Admin SDK (once per process) and build the context."""
    try:
        app = firebase_admin.get_app()
    except ValueError:
        app = firebase_admin.initialize_app(load_credentials(settings))
        logger.info("Firebase Admin SDK initialized")

    return FirebaseContext(
        db=firestore.client(app),
        verifier=build_verifier(settings, app),
        settings=settings,
        app=app
    )


def get_context(request: Request) -> FirebaseContext:
    """Dependency: the FirebaseContext built at startup."""
    return request.app.state.context


# =============================================================================
# FIRESTORE COLLECTIONS
# =============================================================================

class Collections:
    """Firestore collection names - single source of truth."""
    ADMIN = "admin"
    USERS = "users"
    TEMPLES = "temples"
    EVENTS = "events"
    TEMPLE_ADMINS = "temple_admins"
    TEMPLE_MEMBERS = "temple_members"
    NOTIFICATIONS = "notifications"
    SERVICES = "services"
    SERVICE_TYPES = "service_types"
    SERVICE_REGISTRATIONS = "service_registrations"
    QUICK_LINKS = "quickLinks"
    AUDIT_LOGS = "audit_logs"


def admin_collection(db):
    return db.collection(Collections.ADMIN)


def users_collection(db):
    return db.collection(Collections.USERS)


def temples_collection(db):
    return db.collection(Collections.TEMPLES)


def events_collection(db, temple_id: str):
    """Events live under temples/{templeId}/events."""
    return temples_collection(db).document(temple_id).collection(Collections.EVENTS)


def temple_admins_collection(db, temple_id: str):
    return temples_collection(db).document(temple_id).collection(Collections.TEMPLE_ADMINS)


def temple_members_collection(db, temple_id: str):
    return temples_collection(db).document(temple_id).collection(Collections.TEMPLE_MEMBERS)


def notifications_collection(db):
    return db.collection(Collections.NOTIFICATIONS)


def audit_logs_collection(db):
    return db.collection(Collections.AUDIT_LOGS)


def services_collection(db, temple_id: str):
    return temples_collection(db).document(temple_id).collection(Collections.SERVICES)


def service_types_collection(db, temple_id: str):
    return temples_collection(db).document(temple_id).collection(Collections.SERVICE_TYPES)


def service_registrations_collection(db):
    """Registrations are top-level so a user's can be listed across temples."""
    return db.collection(Collections.SERVICE_REGISTRATIONS)


def quick_links_collection(db):
    return db.collection(Collections.QUICK_LINKS)
