# Notifications Module
"""
notifications:
- notification_id (UUID, Primary Key)
- recipient_id (UUID, Foreign Key to account_users)
- actor_id (UUID, nullable) - who caused the notification
- title, message
- type: info | success | warning | error
- category: system | team | project | task | focus
- entity_id (UUID, nullable) - the project/issue/session it refers to
- link (TEXT, nullable) - frontend route to open
- is_read (BOOLEAN), read_at (TIMESTAMP)
- created_at (TIMESTAMP)
"""
