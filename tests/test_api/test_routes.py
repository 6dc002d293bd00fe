"""
End-to-end tests through the FastAPI app.

The app runs against a shared in-memory SQLite database seeded with the demo
graph. Startup is skipped: the permission table and presence tracker are put
on ``app.state`` directly and the DB/settings dependencies are overridden.
"""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from taskhub.authz.advisory import AdvisoryPermissions
from taskhub.db import filters  # noqa: F401  (soft-delete filter)
from taskhub.db.base import Base
from taskhub.db.init_db import seed_demo_data
from taskhub.db.session import get_db
from taskhub.main import create_app
from taskhub.presence import PresenceTracker
from taskhub.security.tokens import issue_token
from taskhub.settings import Settings, get_settings

SETTINGS = Settings(jwt_secret="api-test-secret-0123456789abcdef0123456789", seed_demo_data=False)


@pytest.fixture
def api(matrix):
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestSession = sessionmaker(bind=engine, autocommit=False, autoflush=False, class_=Session)

    with TestSession() as db:
        records = seed_demo_data(db)
        ids = {name: record.id for name, record in records.items()}
        db.commit()

    def override_get_db():
        db = TestSession()
        try:
            yield db
        finally:
            db.close()

    app = create_app()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: SETTINGS
    app.state.permission_matrix = matrix
    app.state.presence = PresenceTracker(SETTINGS.presence_ttl_seconds)

    client = TestClient(app)
    client.ids = ids
    yield client
    engine.dispose()


def auth(api, user):
    return {"Authorization": f"Bearer {issue_token(api.ids[user], SETTINGS)}"}


def test_missing_token_is_401(api):
    response = api.get("/tasks")
    assert response.status_code == 401
    assert response.json()["error_code"] == "AUTHENTICATION_ERROR"


def test_malformed_header_is_400(api):
    response = api.get("/tasks", headers={"Authorization": "Token abc"})
    assert response.status_code == 400


def test_list_is_scope_filtered(api):
    manager = api.get("/tasks", headers=auth(api, "manager"))
    assert manager.status_code == 200
    assert [t["id"] for t in manager.json()] == [api.ids["hvac"], api.ids["wiring"]]

    owner = api.get("/tasks", headers=auth(api, "owner"))
    assert [t["id"] for t in owner.json()] == [api.ids["hvac"], api.ids["rounds"], api.ids["wiring"]]


def test_notifications_are_recipient_only(api):
    response = api.get("/notifications", headers=auth(api, "manager"))
    assert response.status_code == 200
    assert response.json() == []

    response = api.get("/notifications", headers=auth(api, "engineer"))
    assert [n["id"] for n in response.json()] == [api.ids["heads_up"]]


def test_get_record_in_scope(api):
    response = api.get(f"/tasks/{api.ids['hvac']}", headers=auth(api, "manager"))
    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "Replace HVAC unit"
    assert body["is_deleted"] is False


def test_get_record_out_of_scope_is_403_with_generic_message(api):
    response = api.get(f"/tasks/{api.ids['rounds']}", headers=auth(api, "manager"))
    assert response.status_code == 403
    body = response.json()
    assert body["success"] is False
    assert body["error_code"] == "AUTHORIZATION_ERROR"
    assert body["message"] == "You do not have permission to perform this action"


def test_get_unknown_record_is_404(api):
    response = api.get("/tasks/9999", headers=auth(api, "manager"))
    assert response.status_code == 404


def test_delete_then_conflict_then_restore(api):
    headers = auth(api, "manager")
    hvac = api.ids["hvac"]

    deleted = api.delete(f"/tasks/{hvac}", headers=headers)
    assert deleted.status_code == 200
    assert deleted.json()["is_deleted"] is True
    assert deleted.json()["deleted_by_id"] == api.ids["manager"]

    assert api.get(f"/tasks/{hvac}", headers=headers).status_code == 404
    assert api.get(f"/task-activities/{api.ids['survey']}", headers=headers).status_code == 404

    again = api.delete(f"/tasks/{hvac}", headers=headers)
    assert again.status_code == 409
    assert again.json()["error_code"] == "ALREADY_DELETED"

    restored = api.patch(f"/tasks/{hvac}/restore", headers=headers)
    assert restored.status_code == 200
    assert restored.json()["is_deleted"] is False
    assert restored.json()["restored_by_id"] == api.ids["manager"]
    assert restored.json()["deleted_at"] is None


def test_restore_of_active_record_is_409(api):
    response = api.patch(f"/tasks/{api.ids['hvac']}/restore", headers=auth(api, "manager"))
    assert response.status_code == 409
    assert response.json()["error_code"] == "NOT_DELETED"


def test_restore_blocked_by_deleted_parent_is_400(api):
    headers = auth(api, "manager")
    api.delete(f"/tasks/{api.ids['hvac']}", headers=headers)

    response = api.patch(f"/task-comments/{api.ids['question']}/restore", headers=headers)
    assert response.status_code == 400
    assert response.json()["error_code"] == "RESTORE_BLOCKED_PARENT_DELETED"


def test_restore_assigned_task_with_new_assignee(api):
    owner = auth(api, "owner")
    manager = auth(api, "manager")
    assert api.delete(f"/users/{api.ids['engineer']}", headers=owner).status_code == 200
    assert api.delete(f"/tasks/{api.ids['wiring']}", headers=manager).status_code == 200

    blocked = api.patch(f"/tasks/{api.ids['wiring']}/restore", headers=manager)
    assert blocked.status_code == 400
    assert blocked.json()["error_code"] == "ASSIGNED_TASK_NO_ACTIVE_ASSIGNEES"

    restored = api.patch(
        f"/tasks/{api.ids['wiring']}/restore", headers=manager, json={"assignee_ids": [api.ids["manager"]]}
    )
    assert restored.status_code == 200


def test_cross_organization_delete_is_403(api):
    response = api.delete(f"/tasks/{api.ids['hvac']}", headers=auth(api, "root"))
    assert response.status_code == 403
    assert response.json()["error_code"] == "CROSS_ORG_VIOLATION"


def test_include_deleted_uses_restore_visibility(api):
    manager = auth(api, "manager")
    api.delete(f"/tasks/{api.ids['wiring']}", headers=manager)

    active = api.get("/tasks", headers=manager)
    assert api.ids["wiring"] not in [t["id"] for t in active.json()]

    everything = api.get("/tasks", params={"include_deleted": "true"}, headers=manager)
    assert api.ids["wiring"] in [t["id"] for t in everything.json()]

    # The User role may only restore its own records.
    technician = api.get("/tasks", params={"include_deleted": "true"}, headers=auth(api, "technician"))
    assert [t["id"] for t in technician.json()] == [api.ids["rounds"]]


def test_matrix_payload_builds_matching_advisory_copy(api, matrix):
    response = api.get("/authz/matrix", headers=auth(api, "engineer"))
    assert response.status_code == 200
    advisory = AdvisoryPermissions.from_payload(response.json())
    assert advisory.fingerprint == matrix.fingerprint

    mine = api.get("/authz/permissions", headers=auth(api, "engineer")).json()
    assert mine["principal"]["role"] == "User"
    assert mine["fingerprint"] == matrix.fingerprint
    assert mine["permissions"]["Task"]["update"] == ["own"]
    assert mine["permissions"]["Organization"]["delete"] == []


def test_platform_admin_sees_cross_org_permissions(api):
    mine = api.get("/authz/permissions", headers=auth(api, "root")).json()
    assert mine["principal"]["is_platform_principal"] is True
    assert mine["permissions"]["Organization"]["read"] == ["crossOrg", "own"]

    organizations = api.get("/organizations", headers=auth(api, "root")).json()
    assert [o["id"] for o in organizations] == [api.ids["platform"], api.ids["acme"]]


def test_user_updates_own_name(api):
    response = api.patch(
        f"/users/{api.ids['engineer']}", headers=auth(api, "engineer"), json={"first_name": "Uma"}
    )
    assert response.status_code == 200
    assert response.json()["first_name"] == "Uma"


def test_user_cannot_promote_themselves(api):
    response = api.patch(f"/users/{api.ids['engineer']}", headers=auth(api, "engineer"), json={"role": "Admin"})
    assert response.status_code == 403


def test_user_cannot_update_colleague(api):
    response = api.patch(
        f"/users/{api.ids['manager']}", headers=auth(api, "engineer"), json={"first_name": "Nope"}
    )
    assert response.status_code == 403


def test_last_head_of_department_cannot_be_removed(api):
    response = api.patch(f"/users/{api.ids['admin']}", headers=auth(api, "owner"), json={"is_hod": False})
    assert response.status_code == 403


def test_null_fields_do_not_count_as_removing_the_head(api):
    owner = auth(api, "owner")
    for body in ({"first_name": "Renamed", "is_hod": None}, {"first_name": "Renamed", "department_id": None}):
        response = api.patch(f"/users/{api.ids['admin']}", headers=owner, json=body)
        assert response.status_code == 200, body
        assert response.json()["first_name"] == "Renamed"
        assert response.json()["is_hod"] is True
        assert response.json()["department_id"] == api.ids["maint"]


def test_hod_flag_requires_admin_role(api):
    response = api.patch(f"/users/{api.ids['manager']}", headers=auth(api, "owner"), json={"is_hod": True})
    assert response.status_code == 400
    assert response.json()["error_code"] == "INVALID_HOD_ROLE"


def test_promoting_to_hod_updates_department(api):
    owner = auth(api, "owner")
    response = api.patch(
        f"/users/{api.ids['manager']}", headers=owner, json={"role": "Admin", "is_hod": True}
    )
    assert response.status_code == 200
    assert response.json()["is_hod"] is True

    department = api.get(f"/departments/{api.ids['eng']}", headers=owner).json()
    assert department["hod_id"] == api.ids["manager"]


def test_authenticated_requests_mark_presence(api):
    api.get("/tasks", headers=auth(api, "engineer"))
    api.get("/tasks", headers=auth(api, "manager"))
    api.get("/tasks", headers=auth(api, "root"))

    response = api.get("/presence/online", headers=auth(api, "owner"))
    assert response.json() == {
        "organization_id": api.ids["acme"],
        "user_ids": sorted([api.ids["owner"], api.ids["manager"], api.ids["engineer"]]),
    }


def test_deleted_organization_locks_out_its_users(api):
    assert api.delete(f"/organizations/{api.ids['acme']}", headers=auth(api, "root")).status_code == 200
    response = api.get("/tasks", headers=auth(api, "manager"))
    assert response.status_code == 401


def test_list_without_permission_is_403(api):
    # Nobody may restore notifications, so nobody may list deleted ones.
    response = api.get("/notifications", params={"include_deleted": "true"}, headers=auth(api, "owner"))
    assert response.status_code == 403
