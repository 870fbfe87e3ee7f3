"""
Workspace tables (documentation).

workspaces
    workspace_id   uuid primary key
    name           text
    slug           text unique
    description    text
    logo_url       text
    brand_color    text default '#3B82F6'
    settings       jsonb
    is_active      boolean

workspace_members
    member_id      uuid primary key
    workspace_id   uuid references workspaces
    user_id        uuid references account_users
    iris_role      text  -- owner, admin, manager, leader, member
    is_active      boolean
    joined_at      timestamptz
    unique (workspace_id, user_id)
"""
