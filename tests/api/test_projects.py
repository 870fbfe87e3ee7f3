"""
API tests for projects, status updates and project issues.
"""

import pytest

from tests.shared.factories import auth_headers


def new_project(client, account, **fields):
    body = {"project_name": "Website relaunch", "created_by_user_id": account["user_id"], **fields}
    response = client.post("/api/v1/projects", json=body, headers=auth_headers(account))
    assert response.status_code == 201, response.text
    return response.json()["project"]


@pytest.mark.api
class TestCreateProject:

    def test_creates_key_owner_history_and_milestones(self, client, db, manager):
        project = new_project(client, manager, milestones=[{"name": "Design"}, {"name": "Launch",
                                                                               "targetDate": "2026-12-01"}])
        assert project["project_key"] == "WEBS-001"
        assert project["project_status"] == "planning"
        assert project["health_status"] == "on_track"
        owner = db.rows("pm_project_members")[0]
        assert (owner["user_id"], owner["project_role"], owner["can_manage_members"]) == \
            (manager["user_id"], "owner", True)
        assert db.rows("pm_project_progress_history")[0]["completion_percentage"] == 0
        assert [m["milestone_name"] for m in db.rows("pm_milestones")] == ["Design", "Launch"]
        assert db.rows("pm_milestones")[1]["target_date"] == "2026-12-01"

    def test_sequence_follows_existing_projects(self, client, db, manager):
        new_project(client, manager)
        assert new_project(client, manager, project_name="AI")["project_key"] == "AI-002"

    def test_creator_notified_without_team(self, client, db, manager):
        new_project(client, manager)
        notification = db.rows("notifications")[0]
        assert notification["recipient_id"] == manager["user_id"]
        assert notification["type"] == "success"

    def test_team_notified_except_creator(self, client, db, manager, member, team):
        new_project(client, manager, team_id=team["team_id"])
        assert [n["recipient_id"] for n in db.rows("notifications")] == [member["user_id"]]

    def test_members_cannot_create(self, client, member):
        body = {"project_name": "Nope", "created_by_user_id": member["user_id"]}
        assert client.post("/api/v1/projects", json=body, headers=auth_headers(member)).status_code == 403

    def test_cannot_create_on_behalf_of_someone_else(self, client, db, manager, admin):
        body = {"project_name": "Spoof", "created_by_user_id": admin["user_id"]}
        assert client.post("/api/v1/projects", json=body, headers=auth_headers(manager)).status_code == 403
        assert db.rows("pm_projects") == []
        assert db.rows("pm_project_members") == []

    def test_admin_may_create_for_another_user(self, client, db, admin, manager):
        body = {"project_name": "Delegated", "created_by_user_id": manager["user_id"]}
        assert client.post("/api/v1/projects", json=body, headers=auth_headers(admin)).status_code == 201
        assert db.rows("pm_project_members")[0]["user_id"] == manager["user_id"]


@pytest.mark.api
class TestListAndDetail:

    def test_list_is_enriched_and_skips_archived(self, client, db, manager, member, team):
        project = new_project(client, manager, team_id=team["team_id"], lead_user_id=member["user_id"])
        archived = new_project(client, manager, project_name="Old thing")
        client.delete(f"/api/v1/projects/{archived['project_id']}", headers=auth_headers(manager))
        body = client.get("/api/v1/projects", headers=auth_headers(member)).json()
        assert body["total"] == 1
        listed = body["projects"][0]
        assert listed["project_id"] == project["project_id"]
        assert listed["lead"]["id"] == member["user_id"]
        assert (listed["team_name"], listed["member_count"]) == ("Platform", 1)
        assert listed["progress_history"] == [{"value": 0}]

    def test_synthetic_sparkline_without_history(self, client, db, member):
        db.add("pm_projects", project_name="Imported", project_status="active", completion_percentage=60)
        listed = client.get("/api/v1/projects", headers=auth_headers(member)).json()["projects"][0]
        assert len(listed["progress_history"]) == 12
        assert listed["progress_history"][-1] == {"value": 60}

    def test_filters(self, client, db, manager, team):
        new_project(client, manager, team_id=team["team_id"], priority_level="high")
        new_project(client, manager, project_name="Mobile app")
        headers = auth_headers(manager)
        assert client.get("/api/v1/projects?priority=high", headers=headers).json()["total"] == 1
        assert client.get(f"/api/v1/projects?teamId={team['team_id']}", headers=headers).json()["total"] == 1
        found = client.get("/api/v1/projects?search=mobile", headers=headers).json()["projects"]
        assert [p["project_name"] for p in found] == ["Mobile app"]

    def test_detail_progress_from_milestones(self, client, db, manager, team):
        project = new_project(client, manager, team_id=team["team_id"],
                              milestones=[{"name": "A"}, {"name": "B"}])
        db.rows("pm_milestones")[0]["milestone_status"] = "completed"
        body = client.get(f"/api/v1/projects/{project['project_id']}", headers=auth_headers(manager)).json()
        assert body["progress"]["scope"] == 2
        assert body["progress"]["completed"] == 1
        assert body["progress"]["percentage"] == 50
        assert body["project"]["team"]["slug"] == "platform"
        assert body["progress"]["history"][0]["completed"] == 0

    def test_unknown_project_is_404(self, client, member):
        assert client.get("/api/v1/projects/missing", headers=auth_headers(member)).status_code == 404


@pytest.mark.api
class TestUpdateProject:

    def test_completion_change_is_recorded(self, client, db, manager):
        project = new_project(client, manager)
        response = client.patch(f"/api/v1/projects/{project['project_id']}", json={"completion_percentage": 40},
                                headers=auth_headers(manager))
        assert response.status_code == 200
        assert [h["completion_percentage"] for h in db.rows("pm_project_progress_history")] == [0, 40]

    def test_start_date_follows_earlier_target(self, client, manager):
        project = new_project(client, manager, start_date="2026-06-01")
        response = client.patch(f"/api/v1/projects/{project['project_id']}", json={"target_date": "2026-05-01"},
                                headers=auth_headers(manager))
        assert response.json()["project"]["start_date"] == "2026-05-01"

    def test_missing_start_date_is_filled(self, client, manager):
        project = new_project(client, manager)
        response = client.patch(f"/api/v1/projects/{project['project_id']}", json={"target_date": "2026-05-01"},
                                headers=auth_headers(manager))
        assert response.json()["project"]["start_date"] == "2026-05-01"

    def test_out_of_range_completion(self, client, manager):
        project = new_project(client, manager)
        response = client.patch(f"/api/v1/projects/{project['project_id']}", json={"completion_percentage": 120},
                                headers=auth_headers(manager))
        assert response.status_code == 400

    def test_empty_patch(self, client, manager):
        project = new_project(client, manager)
        assert client.patch(f"/api/v1/projects/{project['project_id']}", json={},
                            headers=auth_headers(manager)).status_code == 400

    def test_check_violation_is_400(self, client, db, manager):
        project = new_project(client, manager, target_date="2026-06-01")
        db.check_constraints["pm_projects"] = [(
            "pm_projects_dates_check",
            lambda row: bool(row.get("start_date") and row.get("target_date")) and row["start_date"] > row["target_date"],
        )]
        response = client.patch(f"/api/v1/projects/{project['project_id']}", json={"start_date": "2026-07-01"},
                                headers=auth_headers(manager))
        assert response.status_code == 400
        assert db.rows("pm_projects")[0]["start_date"] != "2026-07-01"


@pytest.mark.api
class TestProjectUpdatesAndIssues:

    def test_post_update_sets_health(self, client, db, manager, member):
        project = new_project(client, manager)
        body = {"content": "Blocked on vendor", "user_id": member["user_id"], "health_status": "at_risk"}
        response = client.post(f"/api/v1/projects/{project['project_id']}/updates", json=body,
                               headers=auth_headers(member))
        assert response.status_code == 201
        assert response.json()["health_status_snapshot"] == "at_risk"
        assert db.rows("pm_projects")[0]["health_status"] == "at_risk"
        updates = client.get(f"/api/v1/projects/{project['project_id']}/updates", headers=auth_headers(member)).json()
        assert updates[0]["author"]["id"] == member["user_id"]

    def test_cannot_post_as_someone_else(self, client, db, manager, member):
        project = new_project(client, manager)
        body = {"content": "Looks great", "user_id": manager["user_id"]}
        response = client.post(f"/api/v1/projects/{project['project_id']}/updates", json=body,
                               headers=auth_headers(member))
        assert response.status_code == 403
        assert db.rows("pm_project_updates") == []

    def test_viewer_cannot_post_updates(self, client, manager, viewer):
        project = new_project(client, manager)
        body = {"content": "Hi", "user_id": viewer["user_id"]}
        response = client.post(f"/api/v1/projects/{project['project_id']}/updates", json=body,
                               headers=auth_headers(viewer))
        assert response.status_code == 403

    def test_project_issues(self, client, db, manager, member, team):
        project = new_project(client, manager, team_id=team["team_id"])
        client.post("/api/v1/teams/platform/issues", json={"title": "Hero banner", "project_id": project["project_id"]},
                    headers=auth_headers(member))
        client.post("/api/v1/teams/platform/issues", json={"title": "Unrelated"}, headers=auth_headers(member))
        issues = client.get(f"/api/v1/projects/{project['project_id']}/issues", headers=auth_headers(member)).json()
        assert [(i["title"], i["identifier"]) for i in issues] == [("Hero banner", "PLATFORM-1")]

    def test_issues_of_unknown_project(self, client, member):
        assert client.get("/api/v1/projects/missing/issues", headers=auth_headers(member)).status_code == 404
