from __future__ import annotations

from datetime import datetime, timezone

from conftest import MEMBER_UID, SUPER_ADMIN_UID


def test_get_profile_merges_admin_flags(client, db, auth_headers) -> None:
    db.seed(f"users/{SUPER_ADMIN_UID}", {
        "email": "root@example.com",
        "displayName": "Root",
        "createdAt": datetime(2024, 2, 1, tzinfo=timezone.utc),
    })

    response = client.get("/api/profile", headers=auth_headers(SUPER_ADMIN_UID))
    assert response.status_code == 200
    profile = response.json()["profile"]
    assert profile["uid"] == SUPER_ADMIN_UID
    assert profile["displayName"] == "Root"
    assert profile["createdAt"] == "2024-02-01T00:00:00+00:00"
    assert profile["isSuperAdmin"] is True


def test_get_profile_for_unknown_user_is_404(client, auth_headers) -> None:
    response = client.get("/api/profile", headers=auth_headers(MEMBER_UID))
    assert response.status_code == 404
    assert response.json() == {"error": "User not found"}


def test_get_profile_requires_token(client) -> None:
    assert client.get("/api/profile").status_code == 401


def test_update_profile(client, db, auth_headers) -> None:
    db.seed(f"users/{MEMBER_UID}", {"email": "m@example.com", "displayName": "Old"})

    response = client.patch("/api/profile", json={"displayName": "New", "bio": "Hi"}, headers=auth_headers(MEMBER_UID))
    assert response.status_code == 200

    stored = db.read(f"users/{MEMBER_UID}")
    assert stored["displayName"] == "New"
    assert stored["bio"] == "Hi"
    assert stored["email"] == "m@example.com"


def test_update_profile_ignores_unknown_fields(client, db, auth_headers) -> None:
    db.seed(f"users/{MEMBER_UID}", {"email": "m@example.com"})
    client.patch("/api/profile", json={"bio": "x", "isSuperAdmin": True}, headers=auth_headers(MEMBER_UID))
    assert "isSuperAdmin" not in db.read(f"users/{MEMBER_UID}")


def test_update_profile_with_no_fields_is_400(client, db, auth_headers) -> None:
    db.seed(f"users/{MEMBER_UID}", {"email": "m@example.com"})
    response = client.patch("/api/profile", json={}, headers=auth_headers(MEMBER_UID))
    assert response.status_code == 400


def test_update_missing_profile_is_404(client, auth_headers) -> None:
    response = client.patch("/api/profile", json={"bio": "x"}, headers=auth_headers(MEMBER_UID))
    assert response.status_code == 404
