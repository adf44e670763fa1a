from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from fakes import FakeFirestore
from temple_portal.core.config import Settings
from temple_portal.core.firebase import FirebaseContext
from temple_portal.core.identity import LocalTokenVerifier, create_access_token
from temple_portal.main import create_app

SUPER_ADMIN_UID = "super-admin-uid"
TEMPLE_ADMIN_UID = "temple-admin-uid"
MEMBER_UID = "member-uid"
TEMPLE_ID = "temple-1"
OTHER_TEMPLE_ID = "temple-2"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment="test",
        auth_provider="local",
        jwt_secret_key="test-secret",
        bootstrap_admin_uid="bootstrap-uid",
    )


@pytest.fixture
def db() -> FakeFirestore:
    db = FakeFirestore()
    db.seed(f"admin/{SUPER_ADMIN_UID}", {"uid": SUPER_ADMIN_UID, "isAdmin": True, "isSuperAdmin": True})
    db.seed(
        f"admin/{TEMPLE_ADMIN_UID}",
        {"uid": TEMPLE_ADMIN_UID, "isAdmin": True, "isSuperAdmin": False, "templeId": TEMPLE_ID},
    )
    db.seed(
        f"temples/{TEMPLE_ID}",
        {
            "name": "Sri Temple",
            "location": "City",
            "createdAt": datetime(2024, 1, 1, tzinfo=timezone.utc),
            "updatedAt": datetime(2024, 1, 1, tzinfo=timezone.utc),
        },
    )
    return db


@pytest.fixture
def context(db: FakeFirestore, settings: Settings) -> FirebaseContext:
    return FirebaseContext(db=db, verifier=LocalTokenVerifier(settings.jwt_secret_key), settings=settings)


@pytest.fixture
def client(context: FirebaseContext) -> TestClient:
    return TestClient(create_app(context=context))


@pytest.fixture
def auth_headers(settings: Settings):
    def _headers(uid: str) -> dict:
        return {"Authorization": f"Bearer {create_access_token(settings, uid, email=f'{uid}@example.com')}"}

    return _headers
