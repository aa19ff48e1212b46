from sqlalchemy import update
from sqlmodel import Session

from conftest import ADMIN, as_user, upload


def _storage_used(user_id):
    from sharebox import db
    from sharebox.models import User

    with Session(db.engine) as session:
        return session.get(User, user_id).storage_used


def _record(file_id):
    from sharebox import db
    from sharebox.models import FileRecord

    with Session(db.engine) as session:
        return session.get(FileRecord, file_id)


def test_admin_routes_require_admin_role(client):
    for method, path in [
        ("get", "/api/admin/files"),
        ("get", "/api/admin/users"),
        ("get", "/api/admin/stats"),
        ("post", "/api/admin/ledger/reconcile"),
        ("delete", "/api/admin/files/whatever/permanent"),
    ]:
        response = getattr(client, method)(path, headers=as_user("mallory"))
        assert response.status_code == 403, path
        assert response.json()["kind"] == "forbidden"


def test_admin_soft_delete_records_actor_and_credits(client):
    file_id = upload(client).json()["files"][0]["id"]

    response = client.put(f"/api/admin/files/{file_id}/soft-delete", headers=ADMIN)
    assert response.status_code == 200
    record = _record(file_id)
    assert record.is_active is False
    assert record.deleted_by == "root"
    assert _storage_used("alice") == 0

    # Already inactive: still fine, no second credit
    assert client.put(f"/api/admin/files/{file_id}/soft-delete", headers=ADMIN).status_code == 200
    assert _storage_used("alice") == 0


def test_purge_with_missing_bytes_still_succeeds(client):
    file_id = upload(client).json()["files"][0]["id"]
    (client.upload_dir / _record(file_id).stored_name).unlink()

    response = client.delete(f"/api/admin/files/{file_id}/permanent", headers=ADMIN)
    assert response.status_code == 200
    assert response.json() == {"status": "purged", "id": file_id, "reclaimedBytes": 11}
    assert _record(file_id) is None
    assert _storage_used("alice") == 0

    again = client.delete(f"/api/admin/files/{file_id}/permanent", headers=ADMIN)
    assert again.status_code == 404


def test_purge_after_owner_delete_does_not_credit_twice(client):
    keep = upload(client, files=[("files", ("keep.txt", b"12345", "text/plain"))]).json()["files"][0]["id"]
    gone = upload(client).json()["files"][0]["id"]
    stored_name = _record(gone).stored_name
    assert _storage_used("alice") == 16

    client.delete(f"/api/files/{gone}", headers=as_user())
    assert _storage_used("alice") == 5

    response = client.delete(f"/api/admin/files/{gone}/permanent", headers=ADMIN)
    assert response.json()["reclaimedBytes"] == 0
    assert _storage_used("alice") == 5
    assert not (client.upload_dir / stored_name).exists()
    assert _record(keep).is_active is True


def test_admin_file_listing_includes_deleted(client):
    first = upload(client).json()["files"][0]["id"]
    upload(client, user_id="bob")
    client.delete(f"/api/files/{first}", headers=as_user())

    body = client.get("/api/admin/files", headers=ADMIN).json()
    assert body["pagination"]["totalFiles"] == 2
    by_id = {item["id"]: item for item in body["files"]}
    assert by_id[first]["isActive"] is False
    assert {item["ownerId"] for item in body["files"]} == {"alice", "bob"}


def test_admin_can_disable_user_and_change_quota(client):
    upload(client)
    response = client.put("/api/admin/users/alice", json={"isActive": False, "maxStorage": 50}, headers=ADMIN)
    assert response.status_code == 200
    user = response.json()["user"]
    assert user["isActive"] is False
    assert user["maxStorage"] == 50

    blocked = client.get("/api/files/my-files", headers=as_user())
    assert blocked.status_code == 403

    missing = client.put("/api/admin/users/nobody", json={"isActive": True}, headers=ADMIN)
    assert missing.status_code == 404

    bad_role = client.put("/api/admin/users/alice", json={"role": "root"}, headers=ADMIN)
    assert bad_role.status_code == 400


def test_user_listing_is_paginated(client):
    upload(client)
    upload(client, user_id="bob")
    body = client.get("/api/admin/users", params={"limit": 1}, headers=ADMIN).json()
    assert len(body["users"]) == 1
    # root is provisioned by its own admin request
    assert body["pagination"]["totalUsers"] == 3


def test_stats_include_storage_and_counters(client):
    upload(client)
    upload(client, files=[("files", ("pic.gif", b"GIF89a", "image/gif"))])

    stats = client.get("/api/admin/stats", headers=ADMIN).json()
    assert stats["files"]["active"] == 2
    assert stats["storage"]["activeBytes"] == 17
    assert stats["counters"]["uploads"] >= 2
    assert {entry["mimetype"] for entry in stats["fileTypes"]} == {"text/plain", "image/gif"}


def test_reconcile_repairs_ledger_drift(client):
    from sharebox import db
    from sharebox.models import User

    upload(client)
    with Session(db.engine) as session:
        session.exec(update(User).where(User.id == "alice").values(storage_used=999))
        session.commit()

    response = client.post("/api/admin/ledger/reconcile", headers=ADMIN)
    assert response.status_code == 200
    body = response.json()
    assert body["corrected"] == 1
    assert body["corrections"] == [{"userId": "alice", "recorded": 999, "actual": 11}]
    assert _storage_used("alice") == 11


def test_scheduled_audit_uses_same_reconcile(client):
    import logging

    from sharebox import db
    from sharebox.auditor import run_ledger_audit
    from sharebox.models import User

    upload(client)
    with Session(db.engine) as session:
        session.exec(update(User).where(User.id == "alice").values(storage_used=0))
        session.commit()

    corrections = run_ledger_audit(db.engine, logging.getLogger("sharebox"))
    assert corrections == [{"userId": "alice", "recorded": 0, "actual": 11}]
    assert _storage_used("alice") == 11
