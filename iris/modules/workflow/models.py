# Workflow Module
# Per-team issue workflow configuration plus the global priority scale.

"""
task_statuses:
- status_id (UUID, Primary Key), team_id
- name, status_type: backlog | todo | in_progress | in_review | done | cancelled
- color (default '#6B7280'), position (INTEGER), is_default (BOOLEAN)

task_labels:
- label_id (UUID, Primary Key), team_id
- name, color (default '#6366F1'), description

task_cycles:
- cycle_id (UUID, Primary Key), team_id
- name, description, start_date, end_date, status

task_priorities (global):
- priority_id (UUID, Primary Key)
- name: urgent | high | medium | low | none
- level (INTEGER, 0 = highest), color
"""
