# Projects Module
"""
pm_projects:
- project_id (UUID, Primary Key)
- project_key (TEXT, e.g. 'MARK-003')
- project_name, project_description, icon_name, icon_color, tags (TEXT[])
- project_status: planning | active | in_progress | on_hold | completed | cancelled | archived
- priority_level: low | medium | high | critical
- health_status: on_track | at_risk | off_track
- completion_percentage (0-100)
- start_date, target_date (CHECK chk_project_dates: start_date <= target_date)
- team_id, lead_user_id, created_by_user_id
- archived_at, created_at, updated_at

pm_project_members:
- project_id, user_id, project_role (owner | lead | member | viewer)
- can_edit, can_delete, can_manage_members, can_manage_settings

pm_project_progress_history:
- project_id, completion_percentage, recorded_at

pm_milestones:
- milestone_id, project_id
- milestone_name, milestone_description
- milestone_status: pending | in_progress | completed
- target_date, sort_order

pm_project_updates:
- update_id, project_id, author_user_id
- update_title, update_content, update_type, health_status_snapshot, created_at
"""
