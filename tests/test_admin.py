from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from conftest import MEMBER_UID, SUPER_ADMIN_UID, TEMPLE_ADMIN_UID, TEMPLE_ID
from temple_portal.main import create_app
from temple_portal.scripts.assign_admin import main as assign_admin_main


def test_assign_admin_needs_no_token(client, db) -> None:
    response = client.post("/api/assign-admin")
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Successfully assigned super admin permissions"}

    grant = db.read("admin/bootstrap-uid")
    assert grant["uid"] == "bootstrap-uid"
    assert grant["isAdmin"] is True
    assert grant["isSuperAdmin"] is True


def test_assign_admin_overwrites_existing_grant(client, db) -> None:
    db.seed("admin/bootstrap-uid", {"uid": "bootstrap-uid", "isAdmin": True, "templeId": TEMPLE_ID})
    client.post("/api/assign-admin")
    grant = db.read("admin/bootstrap-uid")
    assert "templeId" not in grant
    assert grant["isSuperAdmin"] is True


def test_assign_admin_can_be_disabled(context, db) -> None:
    context.settings = context.settings.model_copy(update={"enable_assign_admin_route": False})
    client = TestClient(create_app(context=context))

    response = client.post("/api/assign-admin")
    assert response.status_code == 404
    assert db.read("admin/bootstrap-uid") is None


def test_assign_admin_store_failure_is_500(client, db) -> None:
    db.fail_writes = True
    response = client.post("/api/assign-admin")
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to assign admin permissions"}


def test_admin_status_for_super_admin(client, auth_headers) -> None:
    response = client.get("/api/admin/status", params={"templeId": TEMPLE_ID}, headers=auth_headers(SUPER_ADMIN_UID))
    assert response.status_code == 200
    body = response.json()
    assert body["isAdmin"] is True
    assert body["isSuperAdmin"] is True
    assert body["canManageTemple"] is True


def test_admin_status_for_scoped_admin(client, auth_headers) -> None:
    headers = auth_headers(TEMPLE_ADMIN_UID)

    own = client.get("/api/admin/status", params={"templeId": TEMPLE_ID}, headers=headers).json()
    assert own["isSuperAdmin"] is False
    assert own["templeId"] == TEMPLE_ID
    assert own["canManageTemple"] is True

    other = client.get("/api/admin/status", params={"templeId": "temple-2"}, headers=headers).json()
    assert other["canManageTemple"] is False


def test_admin_status_without_grant(client, auth_headers) -> None:
    body = client.get("/api/admin/status", headers=auth_headers(MEMBER_UID)).json()
    assert body == {
        "uid": MEMBER_UID,
        "isAdmin": False,
        "isSuperAdmin": False,
        "templeId": None,
        "canManageTemple": None,
    }


def test_admin_status_requires_token(client) -> None:
    assert client.get("/api/admin/status").status_code == 401


def test_cli_assigns_super_admin(context, db) -> None:
    assert assign_admin_main(["new-admin"], context=context) == 0
    assert db.read("admin/new-admin")["isSuperAdmin"] is True


def test_cli_assigns_temple_admin_in_one_batch(context, db) -> None:
    assert assign_admin_main(["new-admin", "--temple", TEMPLE_ID], context=context) == 0

    grant = db.read("admin/new-admin")
    assert grant["isSuperAdmin"] is False
    assert grant["templeId"] == TEMPLE_ID
    assert db.read(f"temples/{TEMPLE_ID}/temple_admins/new-admin")["userId"] == "new-admin"
    assert db.commits == 1


def test_cli_reports_store_failure(context, db) -> None:
    db.fail_writes = True
    assert assign_admin_main(["new-admin"], context=context) == 1


def test_cli_requires_uid_without_reconcile(context) -> None:
    with pytest.raises(SystemExit):
        assign_admin_main([], context=context)


def test_cli_reconcile_creates_missing_scoped_grant(context, db) -> None:
    db.seed(f"temples/{TEMPLE_ID}/temple_admins/entry-1", {"userId": "new-admin", "role": "admin"})

    assert assign_admin_main(["--reconcile"], context=context) == 0

    grant = db.read("admin/new-admin")
    assert grant["uid"] == "new-admin"
    assert grant["isAdmin"] is True
    assert grant["isSuperAdmin"] is False
    assert grant["templeId"] == TEMPLE_ID

    actions = [db.read(p)["action"] for p in db.paths_under("audit_logs")]
    assert actions == ["ADMIN_GRANTS_RECONCILED"]


def test_cli_reconcile_merges_into_existing_grant(context, db) -> None:
    db.seed(f"temples/{TEMPLE_ID}/temple_admins/entry-1", {"userId": SUPER_ADMIN_UID})
    db.seed(f"temples/{TEMPLE_ID}/temple_admins/entry-2", {"role": "admin"})

    assert assign_admin_main(["--reconcile"], context=context) == 0

    grant = db.read(f"admin/{SUPER_ADMIN_UID}")
    assert grant["isSuperAdmin"] is True
    assert grant["isAdmin"] is True
    assert grant["templeId"] == TEMPLE_ID
    assert db.paths_under("admin") == sorted([f"admin/{SUPER_ADMIN_UID}", f"admin/{TEMPLE_ADMIN_UID}"])


def test_cli_reconcile_reports_store_failure(context, db) -> None:
    db.seed(f"temples/{TEMPLE_ID}/temple_admins/entry-1", {"userId": "new-admin"})
    db.fail_writes = True
    assert assign_admin_main(["--reconcile"], context=context) == 1
