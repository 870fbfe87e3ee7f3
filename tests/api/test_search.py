"""
API tests for global search.
"""

import pytest

from tests.shared.factories import auth_headers, create_account


@pytest.mark.api
class TestSearch:

    def test_short_queries_return_nothing(self, client, member):
        assert client.get("/api/v1/search?q=a", headers=auth_headers(member)).json() == []

    def test_results_from_every_source(self, client, db, member, team):
        db.add("pm_projects", project_name="Platform revamp", project_key="PLAT-001")
        db.add("task_issues", team_id=team["team_id"], title="Platform upgrade", issue_number=4, archived_at=None)
        create_account(db, "plato@iris.test", first_name="Plato")
        results = client.get("/api/v1/search?q=plat", headers=auth_headers(member)).json()
        assert [r["type"] for r in results] == ["team", "project", "task", "user"]
        task = results[2]
        assert task["subtitle"] == "#4"
        assert "avatar" not in results[0]

    def test_deleted_users_and_archived_tasks_are_hidden(self, client, db, member, team):
        create_account(db, "ghost@iris.test", first_name="Ghost", account_status="deleted")
        db.add("task_issues", team_id=team["team_id"], title="Ghost task", issue_number=1,
               archived_at="2026-01-01T00:00:00+00:00")
        assert client.get("/api/v1/search?q=ghost", headers=auth_headers(member)).json() == []

    def test_each_source_is_capped(self, client, db, member):
        for i in range(8):
            db.add("pm_projects", project_name=f"Apollo {i}", project_key=f"APOL-{i:03d}")
        results = client.get("/api/v1/search?q=apollo", headers=auth_headers(member)).json()
        assert len(results) == 5

    def test_failing_source_is_skipped(self, client, db, member, team):
        db.failing_tables.add("teams")
        create_account(db, "plato@iris.test", first_name="Plato")
        results = client.get("/api/v1/search?q=plat", headers=auth_headers(member)).json()
        assert [r["type"] for r in results] == ["user"]

    def test_filter_breaking_characters_are_dropped(self, client, member):
        response = client.get("/api/v1/search?q=a,(b)", headers=auth_headers(member))
        assert response.status_code == 200

    def test_requires_authentication(self, client):
        assert client.get("/api/v1/search?q=plat").status_code in (401, 403)
