"""
Unit tests for the permission configuration and workspace roles.
"""

import pytest

from iris.config.permissions_config import (
    MODULES, PERMISSION_LEVELS, get_level_permissions, get_permission_matrix,
    has_role_at_least, get_workspace_permissions,
)
from iris.core.dependencies import get_user_permissions, is_admin, is_super_user


@pytest.mark.unit
class TestLevelPermissions:

    def test_admin_gets_every_action(self):
        expected = {f"{m['resource']}:{a}" for m in MODULES.values() for a in m["actions"]}
        assert set(get_level_permissions("admin")) == expected

    def test_super_admin_matches_admin(self):
        assert get_level_permissions("super_admin") == get_level_permissions("admin")

    def test_user_level(self):
        permissions = get_level_permissions("user")
        assert "issues:create" in permissions
        assert "issues:comment" in permissions
        assert "issues:delete" not in permissions
        assert "projects:create" not in permissions
        assert "aria:chat" in permissions
        assert "aria:usage" not in permissions

    def test_viewer_is_read_only(self):
        permissions = get_level_permissions("viewer")
        assert "issues:read" in permissions
        writes = [p for p in permissions if p.split(":")[1] in ("create", "update", "delete")]
        assert writes == ["notifications:update"]

    def test_unknown_level_gets_nothing(self):
        assert get_level_permissions("guest") == []

    def test_matrix_lists_every_level(self):
        matrix = get_permission_matrix()
        assert set(matrix["levels"]) == set(PERMISSION_LEVELS)
        names = {p["name"] for p in matrix["permissions"]}
        assert "teams:manage_members" in names
        described = {p["name"]: p["description"] for p in matrix["permissions"]}
        assert described["issues:comment"] == "Comment on issues"

    def test_request_cache_is_used(self):
        cache = {}
        first = get_user_permissions({"permission_level": "manager"}, cache)
        cache["permission_names"] = ["only:this"]
        assert get_user_permissions({"permission_level": "manager"}, cache) == ["only:this"]
        assert "projects:create" in first

    def test_admin_helpers(self):
        assert is_admin({"permission_level": "admin"})
        assert is_admin({"permission_level": "super_admin"})
        assert not is_admin({"permission_level": "manager"})
        assert is_super_user({"permission_level": "super_admin"})
        assert not is_super_user({"permission_level": "admin"})


@pytest.mark.unit
class TestWorkspaceRoles:

    @pytest.mark.parametrize("role,minimum,expected", [
        ("owner", "admin", True),
        ("admin", "admin", True),
        ("manager", "admin", False),
        ("leader", "member", True),
        ("member", "leader", False),
        ("stranger", "member", False),
    ])
    def test_has_role_at_least(self, role, minimum, expected):
        assert has_role_at_least(role, minimum) is expected

    def test_flags(self):
        assert get_workspace_permissions("owner")["manageWorkspace"] is True
        assert get_workspace_permissions("admin")["manageWorkspace"] is False
        assert get_workspace_permissions("leader")["manageTeams"] is True
        assert get_workspace_permissions("unknown") == get_workspace_permissions("member")
