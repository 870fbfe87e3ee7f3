# Teams Module
"""
teams:
- team_id (UUID, Primary Key)
- workspace_id (UUID, nullable)
- name, slug (unique per workspace), description
- color (default '#00D4B3'), visibility: private | public
- status: active | archived
- owner_id (UUID, Foreign Key to account_users)
- created_at, updated_at

team_members:
- id (UUID, Primary Key)
- team_id, user_id (unique together)
- role: owner | admin | lead | member | guest
- joined_at

A team's issue workflow (task_statuses, task_labels, task_cycles) is scoped by
team_id; see iris/modules/workflow/models.py.
"""
