# Accounts administered through /admin/users live in account_users
# (see iris/modules/auth/models.py for the full column list).

"""
Admin operations touch:
- account_users: list/create/update and soft delete (account_status = 'deleted')
- auth_sessions: every session of a deleted user is revoked
- storage bucket 'user-avatars': one object per user at {user_id}/avatar.{ext}
"""
