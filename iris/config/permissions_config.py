"""
Permissions Configuration
This config defines the permission matrix for all modules and the grants of each
account permission level (account_users.permission_level).
Used by require_permission and by /auth/me to tell the frontend what the user may do.
"""

# Define modules and their actions
MODULES = {
    "users": {
        "resource": "users",
        "actions": ["create", "read", "update", "delete"],
        "description": "Account administration"
    },
    "teams": {
        "resource": "teams",
        "actions": ["create", "read", "update", "delete", "manage_members"],
        "description": "Team management and workflow settings"
    },
    "projects": {
        "resource": "projects",
        "actions": ["create", "read", "update", "delete", "post_update"],
        "description": "Project portfolio management"
    },
    "issues": {
        "resource": "issues",
        "actions": ["create", "read", "update", "delete", "comment"],
        "description": "Issue tracking"
    },
    "notifications": {
        "resource": "notifications",
        "actions": ["read", "update"],
        "description": "In-app notifications"
    },
    "analytics": {
        "resource": "analytics",
        "actions": ["read"],
        "description": "Reports and usage analytics"
    },
    "aria": {
        "resource": "aria",
        "actions": ["chat", "usage"],
        "description": "ARIA assistant"
    },
    "focus": {
        "resource": "focus",
        "actions": ["create", "read"],
        "description": "Focus sessions"
    }
}

# Descriptions for actions that are not plain CRUD
MODULE_SPECIFIC_PERMISSIONS = {
    "teams": {
        "manage_members": "Add, remove and re-role team members"
    },
    "projects": {
        "post_update": "Post project status updates"
    },
    "issues": {
        "comment": "Comment on issues"
    },
    "aria": {
        "chat": "Talk to the ARIA assistant",
        "usage": "View ARIA token usage and cost"
    }
}

# Grants per permission level. "*" grants every action of the module.
LEVEL_GRANTS = {
    "admin": {module: ["*"] for module in MODULES},
    "manager": {
        "users": ["read"],
        "teams": ["read", "update", "manage_members"],
        "projects": ["*"],
        "issues": ["*"],
        "notifications": ["*"],
        "analytics": ["read"],
        "aria": ["*"],
        "focus": ["*"],
    },
    "user": {
        "users": ["read"],
        "teams": ["read"],
        "projects": ["read", "post_update"],
        "issues": ["create", "read", "update", "comment"],
        "notifications": ["*"],
        "aria": ["chat"],
        "focus": ["read"],
    },
    "viewer": {
        "teams": ["read"],
        "projects": ["read"],
        "issues": ["read"],
        "notifications": ["*"],
        "aria": ["chat"],
        "focus": ["read"],
    },
}

# super_admin bypasses checks entirely; the matrix lists it with admin grants for the UI
LEVEL_GRANTS["super_admin"] = LEVEL_GRANTS["admin"]

PERMISSION_LEVELS = ["super_admin", "admin", "manager", "user", "viewer"]


def get_level_permissions(level: str) -> list:
    """Permission names granted to a permission level. Unknown levels get nothing."""
    grants = LEVEL_GRANTS.get(level, {})
    names = []
    for module_name, actions in grants.items():
        module_config = MODULES[module_name]
        allowed = module_config["actions"] if "*" in actions else actions
        for action in allowed:
            names.append(f"{module_config['resource']}:{action}")
    return sorted(names)


# Generate permission matrix
def get_permission_matrix():
    """
    Returns a dictionary with all permissions and the permissions of each level
    Format: {
        "permissions": [
            {"name": "users:create", "resource": "users", "action": "create", "description": "..."},
            ...
        ],
        "levels": {
            "admin": ["users:create", "users:read", ...],
            ...
        }
    }
    """
    permissions = []

    for module_name, module_config in MODULES.items():
        resource = module_config["resource"]

        for action in module_config["actions"]:
            description = f"{action.capitalize()} {resource}"
            if module_name in MODULE_SPECIFIC_PERMISSIONS and action in MODULE_SPECIFIC_PERMISSIONS[module_name]:
                description = MODULE_SPECIFIC_PERMISSIONS[module_name][action]

            permissions.append({
                "name": f"{resource}:{action}",
                "resource": resource,
                "action": action,
                "description": description
            })

    return {
        "permissions": permissions,
        "levels": {level: get_level_permissions(level) for level in PERMISSION_LEVELS}
    }


PERMISSION_MATRIX = get_permission_matrix()


# Workspace roles (workspace_members.iris_role), highest first
WORKSPACE_ROLE_HIERARCHY = {
    "owner": 5,
    "admin": 4,
    "manager": 3,
    "leader": 2,
    "member": 1,
}

WORKSPACE_ROLE_PERMISSIONS = {
    "owner": {
        "manageWorkspace": True,
        "manageMembers": True,
        "manageRoles": True,
        "manageProjects": True,
        "manageTeams": True,
        "viewAnalytics": True,
    },
    "admin": {
        "manageWorkspace": False,
        "manageMembers": True,
        "manageRoles": True,
        "manageProjects": True,
        "manageTeams": True,
        "viewAnalytics": True,
    },
    "manager": {
        "manageWorkspace": False,
        "manageMembers": False,
        "manageRoles": False,
        "manageProjects": True,
        "manageTeams": True,
        "viewAnalytics": True,
    },
    "leader": {
        "manageWorkspace": False,
        "manageMembers": False,
        "manageRoles": False,
        "manageProjects": False,
        "manageTeams": True,
        "viewAnalytics": True,
    },
    "member": {
        "manageWorkspace": False,
        "manageMembers": False,
        "manageRoles": False,
        "manageProjects": False,
        "manageTeams": False,
        "viewAnalytics": False,
    },
}


def has_role_at_least(role: str, minimum: str) -> bool:
    """Unknown roles rank below member"""
    return WORKSPACE_ROLE_HIERARCHY.get(role, 0) >= WORKSPACE_ROLE_HIERARCHY.get(minimum, 0)


def get_workspace_permissions(role: str) -> dict:
    return dict(WORKSPACE_ROLE_PERMISSIONS.get(role, WORKSPACE_ROLE_PERMISSIONS["member"]))
