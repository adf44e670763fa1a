from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from conftest import MEMBER_UID, OTHER_TEMPLE_ID, SUPER_ADMIN_UID, TEMPLE_ADMIN_UID, TEMPLE_ID

SERVICES = f"temples/{TEMPLE_ID}/services"


def _service_payload(**overrides) -> dict:
    payload = {
        "templeId": TEMPLE_ID,
        "name": "Annadanam",
        "description": "Serve lunch to devotees",
        "type": "volunteer",
        "maxParticipants": 10,
        "date": "2024-05-01T09:00:00Z",
        "timeSlot": {"start": "09:00", "end": "12:00"},
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def service(db):
    db.seed(f"{SERVICES}/s1", {
        "templeId": TEMPLE_ID,
        "name": "Annadanam",
        "type": "volunteer",
        "maxParticipants": 10,
        "currentParticipants": 0,
        "pendingParticipants": 0,
        "date": datetime(2024, 5, 1, 9, tzinfo=timezone.utc),
        "timeSlot": {"start": "09:00", "end": "12:00"},
        "updatedAt": datetime(2024, 4, 1, tzinfo=timezone.utc),
    })
    return db


def _register(client, auth_headers, uid=MEMBER_UID):
    return client.post("/api/services/s1/register", params={"templeId": TEMPLE_ID}, headers=auth_headers(uid))


def test_list_services_pages_by_updated_at(client, db) -> None:
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for i in range(13):
        db.seed(f"{SERVICES}/s{i:02d}", {"name": f"Service {i}", "updatedAt": start + timedelta(days=i)})

    first = client.get("/api/services", params={"templeId": TEMPLE_ID})
    assert first.status_code == 200
    page = first.json()
    assert len(page["services"]) == 12
    assert page["services"][0]["id"] == "s12"
    assert page["hasMore"] is True
    assert page["lastServiceDate"] == "2024-01-02T00:00:00+00:00"

    second = client.get("/api/services", params={"templeId": TEMPLE_ID, "lastServiceDate": page["lastServiceDate"]})
    page = second.json()
    assert [s["id"] for s in page["services"]] == ["s00"]
    assert page["hasMore"] is False


def test_list_services_reports_registration_count(client, db) -> None:
    db.seed(f"{SERVICES}/embedded", {
        "name": "Old style",
        "registrations": [{"userId": "a"}, {"userId": "b"}],
        "updatedAt": datetime(2024, 2, 1, tzinfo=timezone.utc),
    })
    db.seed(f"{SERVICES}/counted", {
        "name": "Counters",
        "currentParticipants": 2,
        "pendingParticipants": 1,
        "updatedAt": datetime(2024, 1, 1, tzinfo=timezone.utc),
    })

    services = client.get("/api/services", params={"templeId": TEMPLE_ID}).json()["services"]

    assert [(s["id"], s["registrationCount"]) for s in services] == [("embedded", 2), ("counted", 3)]
    assert "registrations" not in services[0]


def test_list_services_with_types(client, db) -> None:
    db.seed(f"temples/{TEMPLE_ID}/service_types/t2", {"name": "Volunteer", "icon": "hands"})
    db.seed(f"temples/{TEMPLE_ID}/service_types/t1", {"name": "Pooja", "icon": "lamp"})

    body = client.get("/api/services", params={"templeId": TEMPLE_ID, "includeTypes": "true"}).json()
    assert body["services"] == []
    assert body["lastServiceDate"] is None
    assert [t["name"] for t in body["types"]] == ["Pooja", "Volunteer"]


def test_list_services_requires_temple_id(client) -> None:
    response = client.get("/api/services")
    assert response.status_code == 400
    assert response.json() == {"error": "Temple ID is required"}


def test_create_service_as_temple_admin(client, db, auth_headers) -> None:
    response = client.post("/api/services", json=_service_payload(), headers=auth_headers(TEMPLE_ADMIN_UID))
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True

    stored = db.read(f"{SERVICES}/{body['serviceId']}")
    assert stored["currentParticipants"] == 0
    assert stored["pendingParticipants"] == 0
    assert stored["createdBy"] == TEMPLE_ADMIN_UID
    assert stored["date"] == datetime(2024, 5, 1, 9, tzinfo=timezone.utc)
    assert stored["timeSlot"] == {"start": "09:00", "end": "12:00"}


@pytest.mark.parametrize("uid", [TEMPLE_ADMIN_UID, MEMBER_UID])
def test_create_service_for_other_temple_is_403(client, db, auth_headers, uid) -> None:
    response = client.post(
        "/api/services",
        json=_service_payload(templeId=OTHER_TEMPLE_ID),
        headers=auth_headers(uid),
    )
    assert response.status_code == 403
    assert db.writes == []


def test_create_service_without_token_is_401(client, db) -> None:
    response = client.post("/api/services", json=_service_payload())
    assert response.status_code == 401
    assert db.writes == []


def test_create_service_with_zero_participants_is_400(client, db, auth_headers) -> None:
    response = client.post(
        "/api/services",
        json=_service_payload(maxParticipants=0),
        headers=auth_headers(TEMPLE_ADMIN_UID),
    )
    assert response.status_code == 400
    assert db.writes == []


def test_update_service(client, db, service, auth_headers) -> None:
    response = client.patch(
        "/api/services/s1",
        json={"templeId": TEMPLE_ID, "name": "Evening Annadanam", "notes": None},
        headers=auth_headers(TEMPLE_ADMIN_UID),
    )
    assert response.status_code == 200
    assert response.json()["service"]["name"] == "Evening Annadanam"

    stored = db.read(f"{SERVICES}/s1")
    assert stored["notes"] is None
    assert stored["type"] == "volunteer"


def test_update_missing_service_is_404(client, auth_headers) -> None:
    response = client.patch(
        "/api/services/nope",
        json={"templeId": TEMPLE_ID, "name": "X"},
        headers=auth_headers(TEMPLE_ADMIN_UID),
    )
    assert response.status_code == 404
    assert response.json() == {"error": "Service not found"}


def test_service_types_create_is_idempotent_by_name(client, db, auth_headers) -> None:
    payload = {"templeId": TEMPLE_ID, "name": "Pooja", "icon": "lamp"}
    first = client.post("/api/services/types", json=payload, headers=auth_headers(TEMPLE_ADMIN_UID))
    second = client.post("/api/services/types", json=payload, headers=auth_headers(TEMPLE_ADMIN_UID))

    assert first.status_code == 200
    assert first.json()["type"]["id"] == second.json()["type"]["id"]
    assert len(db.paths_under(f"temples/{TEMPLE_ID}/service_types")) == 1

    missing_icon = client.post(
        "/api/services/types",
        json={"templeId": TEMPLE_ID, "name": "Class"},
        headers=auth_headers(TEMPLE_ADMIN_UID),
    )
    assert missing_icon.json() == {"error": "Name and icon are required"}


def test_register_creates_pending_registration_and_membership(client, db, service, auth_headers) -> None:
    response = _register(client, auth_headers)
    assert response.status_code == 200
    registration_id = response.json()["registrationId"]

    registration = db.read(f"service_registrations/{registration_id}")
    assert registration["status"] == "pending"
    assert registration["serviceName"] == "Annadanam"
    assert db.read(f"{SERVICES}/s1")["pendingParticipants"] == 1
    assert db.read(f"temples/{TEMPLE_ID}/temple_members/{MEMBER_UID}")["role"] == "member"
    assert db.commits == 1

    again = _register(client, auth_headers)
    assert again.status_code == 400
    assert again.json() == {"error": "You are already registered for this service"}
    assert db.read(f"{SERVICES}/s1")["pendingParticipants"] == 1


def test_register_for_missing_service_is_404(client, db, auth_headers) -> None:
    response = client.post("/api/services/nope/register", params={"templeId": TEMPLE_ID}, headers=auth_headers(MEMBER_UID))
    assert response.status_code == 404
    assert db.writes == []


def test_approve_and_reject_move_counters(client, db, service, auth_headers) -> None:
    registration_id = _register(client, auth_headers).json()["registrationId"]

    approved = client.patch(
        f"/api/services/registrations/{registration_id}",
        json={"templeId": TEMPLE_ID, "status": "approved"},
        headers=auth_headers(TEMPLE_ADMIN_UID),
    )
    assert approved.json() == {"success": True, "message": "Registration approved"}
    stored = db.read(f"{SERVICES}/s1")
    assert (stored["pendingParticipants"], stored["currentParticipants"]) == (0, 1)

    client.patch(
        f"/api/services/registrations/{registration_id}",
        json={"templeId": TEMPLE_ID, "status": "rejected"},
        headers=auth_headers(TEMPLE_ADMIN_UID),
    )
    stored = db.read(f"{SERVICES}/s1")
    assert (stored["pendingParticipants"], stored["currentParticipants"]) == (0, 0)


def test_review_by_member_is_403(client, db, service, auth_headers) -> None:
    registration_id = _register(client, auth_headers).json()["registrationId"]

    response = client.patch(
        f"/api/services/registrations/{registration_id}",
        json={"templeId": TEMPLE_ID, "status": "approved"},
        headers=auth_headers(MEMBER_UID),
    )
    assert response.status_code == 403
    assert db.read(f"service_registrations/{registration_id}")["status"] == "pending"


def test_review_with_wrong_temple_is_404(client, service, auth_headers) -> None:
    registration_id = _register(client, auth_headers).json()["registrationId"]

    response = client.patch(
        f"/api/services/registrations/{registration_id}",
        json={"templeId": OTHER_TEMPLE_ID, "status": "approved"},
        headers=auth_headers(SUPER_ADMIN_UID),
    )
    assert response.status_code == 404


def test_registration_listings(client, service, auth_headers) -> None:
    _register(client, auth_headers)

    mine = client.get("/api/services/registrations/mine", headers=auth_headers(MEMBER_UID))
    assert [r["serviceId"] for r in mine.json()["registrations"]] == ["s1"]

    temple = client.get(
        "/api/services/registrations", params={"templeId": TEMPLE_ID}, headers=auth_headers(TEMPLE_ADMIN_UID)
    )
    assert len(temple.json()["registrations"]) == 1

    denied = client.get(
        "/api/services/registrations", params={"templeId": TEMPLE_ID}, headers=auth_headers(MEMBER_UID)
    )
    assert denied.status_code == 403


def test_withdraw_registration_by_owner(client, db, service, auth_headers) -> None:
    registration_id = _register(client, auth_headers).json()["registrationId"]

    response = client.delete(f"/api/services/registrations/{registration_id}", headers=auth_headers(MEMBER_UID))
    assert response.status_code == 200
    assert db.read(f"service_registrations/{registration_id}") is None
    assert db.read(f"{SERVICES}/s1")["pendingParticipants"] == 0


def test_withdraw_someone_elses_registration_is_403(client, db, service, auth_headers) -> None:
    registration_id = _register(client, auth_headers).json()["registrationId"]
    db.seed(f"admin/{MEMBER_UID}-other", {"isAdmin": True, "templeId": OTHER_TEMPLE_ID})

    response = client.delete(
        f"/api/services/registrations/{registration_id}", headers=auth_headers(f"{MEMBER_UID}-other")
    )
    assert response.status_code == 403
    assert response.json() == {"error": "Not allowed to delete this registration"}
    assert db.read(f"service_registrations/{registration_id}") is not None

    by_admin = client.delete(
        f"/api/services/registrations/{registration_id}", headers=auth_headers(TEMPLE_ADMIN_UID)
    )
    assert by_admin.status_code == 200


def test_delete_service_with_registrations_needs_force(client, db, service, auth_headers) -> None:
    registration_id = _register(client, auth_headers).json()["registrationId"]
    params = {"templeId": TEMPLE_ID}

    refused = client.delete("/api/services/s1", params=params, headers=auth_headers(TEMPLE_ADMIN_UID))
    assert refused.status_code == 400
    assert db.read(f"{SERVICES}/s1") is not None

    forced = client.delete(
        "/api/services/s1", params={**params, "force": "true"}, headers=auth_headers(TEMPLE_ADMIN_UID)
    )
    assert forced.status_code == 200
    assert forced.json()["registrationsDeleted"] == 1
    assert db.read(f"{SERVICES}/s1") is None
    assert db.read(f"service_registrations/{registration_id}") is None


def test_delete_service_as_member_is_403(client, db, service, auth_headers) -> None:
    response = client.delete("/api/services/s1", params={"templeId": TEMPLE_ID}, headers=auth_headers(MEMBER_UID))
    assert response.status_code == 403
    assert db.read(f"{SERVICES}/s1") is not None


def test_get_service(client, service) -> None:
    response = client.get("/api/services/s1", params={"templeId": TEMPLE_ID})
    assert response.status_code == 200
    assert response.json()["service"]["date"] == "2024-05-01T09:00:00+00:00"
