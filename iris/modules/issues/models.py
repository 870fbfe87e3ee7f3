# Issues Module
"""
task_issues:
- issue_id (UUID, Primary Key)
- team_id (UUID, Foreign Key to teams)
- issue_number (INTEGER, sequential per team; shown as <TEAM_SLUG>-<n>)
- title, description
- status_id -> task_statuses, priority_id -> task_priorities
- assignee_id, creator_id -> account_users
- project_id -> pm_projects, cycle_id -> task_cycles
- parent_issue_id -> task_issues (sub-issues)
- due_date, estimate_points, sort_order
- started_at, completed_at, cancelled_at (set on status type transitions)
- archived_at (soft delete)
- created_at, updated_at

task_issue_labels:
- issue_id, label_id

task_issue_history:
- history_id (UUID, Primary Key)
- issue_id, actor_id
- field_name, old_value, new_value (human readable names for status/priority/assignee)
- created_at

task_issue_comments:
- comment_id (UUID, Primary Key)
- issue_id, author_id, parent_comment_id
- content, created_at, updated_at, deleted_at
"""
