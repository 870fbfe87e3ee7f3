"""
API tests for workspaces and workspace roles.
"""

import pytest

from tests.shared.factories import auth_headers


@pytest.fixture
def workspace(db, admin, member):
    workspace = db.add("workspaces", name="Acme", slug="acme", brand_color="#111111", is_active=True,
                       settings={"theme": "dark"})
    db.add("workspace_members", workspace_id=workspace["workspace_id"], user_id=admin["user_id"],
           iris_role="owner", is_active=True, joined_at="2026-01-01T00:00:00+00:00")
    db.add("workspace_members", workspace_id=workspace["workspace_id"], user_id=member["user_id"],
           iris_role="member", is_active=True, joined_at="2026-02-01T00:00:00+00:00")
    return workspace


@pytest.mark.api
class TestWorkspaces:

    def test_list_with_role(self, client, db, member, workspace):
        db.add("workspaces", name="Hidden", slug="hidden", is_active=True)
        body = client.get("/api/v1/workspaces", headers=auth_headers(member)).json()
        assert body == {"workspaces": [{
            "id": workspace["workspace_id"], "name": "Acme", "slug": "acme", "logoUrl": None,
            "brandColor": "#111111", "description": None, "role": "member",
        }]}

    def test_no_memberships(self, client, manager, workspace):
        assert client.get("/api/v1/workspaces", headers=auth_headers(manager)).json() == {"workspaces": []}

    def test_detail_for_owner(self, client, admin, workspace):
        body = client.get("/api/v1/workspaces/acme", headers=auth_headers(admin)).json()
        assert body["userRole"] == "owner"
        assert body["permissions"]["manageWorkspace"] is True
        assert body["workspace"]["settings"] == {"theme": "dark"}
        assert [m["role"] for m in body["members"]] == ["owner", "member"]
        assert body["members"][1]["user"]["email"] == "member@iris.test"

    def test_member_permissions(self, client, member, workspace):
        body = client.get("/api/v1/workspaces/acme", headers=auth_headers(member)).json()
        assert not any(body["permissions"].values())

    def test_non_member_is_forbidden(self, client, manager, workspace):
        assert client.get("/api/v1/workspaces/acme", headers=auth_headers(manager)).status_code == 403

    def test_inactive_membership_is_forbidden(self, client, db, member, workspace):
        for row in db.rows("workspace_members"):
            if row["user_id"] == member["user_id"]:
                row["is_active"] = False
        assert client.get("/api/v1/workspaces/acme", headers=auth_headers(member)).status_code == 403

    def test_unknown_slug(self, client, member):
        assert client.get("/api/v1/workspaces/nope", headers=auth_headers(member)).status_code == 404
