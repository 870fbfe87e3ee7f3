"""
focus_sessions (documentation)

    session_id        uuid primary key
    created_by        uuid references account_users
    task_name         text default 'Focus session'
    duration_minutes  integer
    start_time        timestamptz
    end_time          timestamptz
    target_type       text  -- 'global' or 'users'
    target_ids        uuid[]
    status            text  -- 'active' or 'ended'
"""
