"""
Helpers that other modules call to drop rows into the notifications table.

Delivery is best-effort: a failed insert is logged and never fails the
operation that triggered it.
"""

import logging
from typing import Optional, Iterable
from supabase import Client
from iris.core.utils import now_iso

logger = logging.getLogger(__name__)


def send_notification(
    supabase: Client,
    recipient_id: str,
    title: str,
    message: str,
    type: str = "info",
    category: str = "system",
    actor_id: Optional[str] = None,
    entity_id: Optional[str] = None,
    link: Optional[str] = None,
) -> bool:
    try:
        supabase.table("notifications").insert({
            "recipient_id": recipient_id,
            "actor_id": actor_id,
            "title": title,
            "message": message,
            "type": type,
            "category": category,
            "entity_id": entity_id,
            "link": link,
            "is_read": False,
            "created_at": now_iso(),
        }).execute()
        return True
    except Exception as e:
        logger.error(f"Error sending notification to {recipient_id}: {e}")
        return False


def send_bulk_notification(
    supabase: Client,
    recipient_ids: Iterable[str],
    title: str,
    message: str,
    type: str = "info",
    category: str = "system",
    actor_id: Optional[str] = None,
    entity_id: Optional[str] = None,
    link: Optional[str] = None,
) -> int:
    rows = [
        {
            "recipient_id": recipient_id,
            "actor_id": actor_id,
            "title": title,
            "message": message,
            "type": type,
            "category": category,
            "entity_id": entity_id,
            "link": link,
            "is_read": False,
            "created_at": now_iso(),
        }
        for recipient_id in dict.fromkeys(recipient_ids)
        if recipient_id
    ]
    if not rows:
        return 0
    try:
        supabase.table("notifications").insert(rows).execute()
        return len(rows)
    except Exception as e:
        logger.error(f"Error sending {len(rows)} notifications: {e}")
        return 0


def send_team_notification(
    supabase: Client,
    team_id: str,
    title: str,
    message: str,
    type: str = "info",
    category: str = "team",
    actor_id: Optional[str] = None,
    entity_id: Optional[str] = None,
    link: Optional[str] = None,
) -> int:
    """Notify every member of a team except the actor. Returns how many rows were written."""
    try:
        members = supabase.table("team_members")\
            .select("user_id")\
            .eq("team_id", team_id)\
            .execute()
    except Exception as e:
        logger.error(f"Error loading members of team {team_id}: {e}")
        return 0
    recipients = [m["user_id"] for m in members.data or [] if m.get("user_id") != actor_id]
    return send_bulk_notification(
        supabase, recipients, title, message,
        type=type, category=category, actor_id=actor_id, entity_id=entity_id, link=link,
    )
