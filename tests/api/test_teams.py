"""
API tests for teams and team membership.
"""

from datetime import datetime, timezone

import pytest

from tests.shared.factories import auth_headers, create_account, status_id


@pytest.mark.api
class TestTeams:

    def test_admin_creates_team_with_owner_membership(self, client, db, admin, manager):
        response = client.post("/api/v1/teams", json={"name": "Growth & Ads!", "ownerId": manager["user_id"]},
                               headers=auth_headers(admin))
        assert response.status_code == 201
        body = response.json()
        assert body["slug"] == "growth-ads"
        assert body["member_count"] == 1
        membership = db.rows("team_members")[0]
        assert (membership["user_id"], membership["role"]) == (manager["user_id"], "owner")

    def test_duplicate_slug_conflicts(self, client, admin, manager, team):
        response = client.post("/api/v1/teams", json={"name": "platform", "ownerId": manager["user_id"]},
                               headers=auth_headers(admin))
        assert response.status_code == 409

    def test_name_without_letters_is_rejected(self, client, admin, manager):
        response = client.post("/api/v1/teams", json={"name": "!!!", "ownerId": manager["user_id"]},
                               headers=auth_headers(admin))
        assert response.status_code == 400

    def test_members_only_see_their_teams(self, client, db, admin, member, team):
        db.add("teams", name="Secret", slug="secret", owner_id=admin["user_id"], status="active")
        mine = client.get("/api/v1/teams", headers=auth_headers(member)).json()
        assert [t["slug"] for t in mine["teams"]] == ["platform"]
        everything = client.get("/api/v1/teams", headers=auth_headers(admin)).json()
        assert everything["pagination"]["total"] == 2

    def test_team_by_slug_name_or_id(self, client, member, team):
        headers = auth_headers(member)
        for ref in ("platform", "Platform", team["team_id"]):
            response = client.get(f"/api/v1/teams/{ref}", headers=headers)
            assert response.status_code == 200
            assert response.json()["member_count"] == 2

    def test_non_member_gets_403(self, client, db, team):
        outsider = create_account(db, "outsider@iris.test")
        assert client.get("/api/v1/teams/platform", headers=auth_headers(outsider)).status_code == 403

    def test_unknown_team_is_404(self, client, admin):
        assert client.get("/api/v1/teams/nowhere", headers=auth_headers(admin)).status_code == 404

    def test_wildcards_in_the_name_match_literally(self, client, admin, team):
        for ref in ("Pl_tform", "Plat%25orm"):
            assert client.get(f"/api/v1/teams/{ref}", headers=auth_headers(admin)).status_code == 404

    def test_rename_updates_slug(self, client, manager, team):
        response = client.patch("/api/v1/teams/platform", json={"name": "Core Platform"},
                                headers=auth_headers(manager))
        assert response.status_code == 200
        assert response.json()["slug"] == "core-platform"

    def test_delete_requires_admin(self, client, db, admin, manager, team):
        assert client.delete("/api/v1/teams/platform", headers=auth_headers(manager)).status_code == 403
        assert client.delete("/api/v1/teams/platform", headers=auth_headers(admin)).status_code == 204
        assert db.rows("teams") == []
        assert db.rows("team_members") == []


@pytest.mark.api
class TestMembers:

    def test_members_with_task_counts_and_presence(self, client, db, manager, member, team):
        account = next(a for a in db.rows("account_users") if a["user_id"] == member["user_id"])
        account["last_activity_at"] = datetime.now(timezone.utc).isoformat()
        for number, status in enumerate(["Todo", "Done", "Done"], start=1):
            db.add("task_issues", team_id=team["team_id"], title=f"Task {number}", issue_number=number,
                   assignee_id=member["user_id"], status_id=status_id(db, team, status), archived_at=None)
        members = client.get("/api/v1/teams/platform/members", headers=auth_headers(manager)).json()
        row = next(m for m in members if m["user_id"] == member["user_id"])
        assert (row["tasks_count"], row["completed_tasks_count"], row["status"]) == (3, 2, "active")
        owner = next(m for m in members if m["user_id"] == manager["user_id"])
        assert owner["status"] == "offline"

    def test_add_change_and_remove_member(self, client, db, manager, team):
        newcomer = create_account(db, "newcomer@iris.test")
        headers = auth_headers(manager)
        added = client.post("/api/v1/teams/platform/members",
                            json={"user_id": newcomer["user_id"], "role": "member"}, headers=headers)
        assert added.status_code == 201
        again = client.post("/api/v1/teams/platform/members",
                            json={"user_id": newcomer["user_id"], "role": "member"}, headers=headers)
        assert again.status_code == 409
        changed = client.patch(f"/api/v1/teams/platform/members/{newcomer['user_id']}",
                               json={"role": "lead"}, headers=headers)
        assert changed.json()["role"] == "lead"
        removed = client.delete(f"/api/v1/teams/platform/members/{newcomer['user_id']}", headers=headers)
        assert removed.status_code == 204

    def test_invalid_role(self, client, db, manager, team):
        newcomer = create_account(db, "newcomer@iris.test")
        response = client.post("/api/v1/teams/platform/members",
                               json={"user_id": newcomer["user_id"], "role": "wizard"},
                               headers=auth_headers(manager))
        assert response.status_code == 400

    def test_owner_cannot_be_removed(self, client, admin, manager, team):
        response = client.delete(f"/api/v1/teams/platform/members/{manager['user_id']}",
                                 headers=auth_headers(admin))
        assert response.status_code == 400

    def test_regular_member_cannot_manage(self, client, member, manager, team):
        response = client.delete(f"/api/v1/teams/platform/members/{manager['user_id']}",
                                 headers=auth_headers(member))
        assert response.status_code == 403

    def test_member_detail(self, client, db, manager, member, team):
        project = db.add("pm_projects", team_id=team["team_id"], project_name="Website", project_status="active")
        db.add("pm_project_members", project_id=project["project_id"], user_id=member["user_id"],
               project_role="contributor")
        detail = client.get(f"/api/v1/teams/platform/members/{member['user_id']}",
                            headers=auth_headers(manager)).json()
        assert detail["user"]["id"] == member["user_id"]
        assert detail["projects"][0]["project_role"] == "contributor"
        assert detail["tasks"] == []
