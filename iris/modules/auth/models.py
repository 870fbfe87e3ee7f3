# IRIS Auth tables
# Accounts and sessions are stored in Supabase Postgres tables owned by IRIS
# (Supabase Auth is not used). Tables are created by the database migrations.

"""
account_users:
- user_id (UUID, Primary Key)
- email, username (unique, stored lowercase)
- first_name, last_name_paternal, last_name_maternal, display_name
- password_hash (PBKDF2-SHA256; legacy bcrypt and $pbkdf2$ hashes still verify)
- permission_level: super_admin | admin | manager | user | viewer
- account_status: active | pending_verification | suspended | deleted
- is_email_verified, locked_until, failed_login_attempts
- avatar_url, phone_number, company_role, department, timezone, locale
- last_login_at, last_activity_at, password_changed_at, created_at, updated_at

auth_sessions:
- session_id (UUID, Primary Key)
- user_id (UUID, Foreign Key to account_users)
- token_hash, refresh_token_hash (SHA-256 hex of the issued tokens)
- ip_address, user_agent, device_type, browser_name
- expires_at, is_active, revoked_at, revoked_reason, created_at

auth_login_history:
- id (UUID, Primary Key)
- user_id (nullable when the identifier matched nobody)
- identifier, ip_address, user_agent, success, failure_reason, attempted_at

RPCs:
- handle_failed_login(p_user_id): bumps failed_login_attempts and sets locked_until
- reset_failed_login_attempts(p_user_id)
"""
