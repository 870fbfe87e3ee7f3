"""
API tests for focus sessions.
"""

import pytest

from tests.shared.factories import auth_headers


def start(client, account, **fields):
    body = {"createdBy": account["user_id"], "durationMinutes": 25, **fields}
    return client.post("/api/v1/focus-sessions", json=body, headers=auth_headers(account))


def active_for(client, account, viewer_account=None):
    response = client.get(f"/api/v1/focus-sessions/active?userId={account['user_id']}",
                          headers=auth_headers(viewer_account or account))
    return response.json()["activeSession"]


@pytest.mark.api
class TestFocusSessions:

    def test_global_session_applies_to_everyone(self, client, manager, member):
        response = start(client, manager, taskName="Sprint planning")
        assert response.status_code == 201
        session = response.json()["session"]
        assert session["task_name"] == "Sprint planning"
        assert active_for(client, member)["session_id"] == session["session_id"]

    def test_targeted_session_notifies_targets(self, client, db, manager, member, viewer):
        start(client, manager, targetType="users", targetIds=[member["user_id"]])
        assert active_for(client, member) is not None
        assert active_for(client, viewer) is None
        notification = db.rows("notifications")[0]
        assert (notification["recipient_id"], notification["category"], notification["type"]) == \
            (member["user_id"], "focus", "alert")

    def test_new_session_ends_previous(self, client, db, manager):
        start(client, manager)
        start(client, manager, taskName="Second")
        statuses = [s["status"] for s in db.rows("focus_sessions")]
        assert statuses == ["ended", "active"]

    def test_expired_session_is_not_active(self, client, db, member):
        db.add("focus_sessions", created_by="someone", status="active", target_type="global",
               start_time="2026-01-01T09:00:00+00:00", end_time="2026-01-01T09:25:00+00:00")
        assert active_for(client, member) is None

    def test_without_user_id(self, client, member):
        response = client.get("/api/v1/focus-sessions/active", headers=auth_headers(member))
        assert response.json() == {"activeSession": None}

    def test_cannot_query_other_users(self, client, member, manager):
        response = client.get(f"/api/v1/focus-sessions/active?userId={manager['user_id']}",
                              headers=auth_headers(member))
        assert response.status_code == 403

    def test_cannot_start_for_someone_else(self, client, manager, admin):
        body = {"createdBy": admin["user_id"], "durationMinutes": 25}
        response = client.post("/api/v1/focus-sessions", json=body, headers=auth_headers(manager))
        assert response.status_code == 403

    def test_members_cannot_start(self, client, member):
        assert start(client, member).status_code == 403

    def test_duration_bounds(self, client, manager):
        assert start(client, manager, durationMinutes=0).status_code == 400
        assert start(client, manager, durationMinutes=2000).status_code == 400

    def test_end_session(self, client, manager, member):
        session = start(client, manager).json()["session"]
        response = client.post(f"/api/v1/focus-sessions/{session['session_id']}/end", headers=auth_headers(manager))
        assert response.json()["session"]["status"] == "ended"
        assert active_for(client, member) is None

    def test_only_creator_or_admin_ends(self, client, db, manager, admin):
        other = db.add("focus_sessions", created_by=admin["user_id"], status="active", target_type="global")
        response = client.post(f"/api/v1/focus-sessions/{other['session_id']}/end", headers=auth_headers(manager))
        assert response.status_code == 403

    def test_end_unknown_session(self, client, manager):
        assert client.post("/api/v1/focus-sessions/missing/end", headers=auth_headers(manager)).status_code == 404
