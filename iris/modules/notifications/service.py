from supabase import Client
from iris.modules.notifications.schemas import NotificationResponse
from iris.core.utils import now_iso
from typing import List
from fastapi import HTTPException


class NotificationService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def list_notifications(self, user_id: str, unread_only: bool = False, limit: int = 20) -> List[NotificationResponse]:
        """Latest notifications of a user, newest first"""
        try:
            query = self.supabase.table("notifications")\
                .select("*")\
                .eq("recipient_id", user_id)
            if unread_only:
                query = query.eq("is_read", False)
            result = query.order("created_at", desc=True)\
                .limit(max(1, min(limit, 100)))\
                .execute()
            return [NotificationResponse(**n) for n in result.data]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_recipient(self, notification_id: str) -> str:
        try:
            result = self.supabase.table("notifications")\
                .select("recipient_id")\
                .eq("notification_id", notification_id)\
                .limit(1)\
                .execute()
            if not result.data:
                raise HTTPException(status_code=404, detail="Notification not found")
            return result.data[0]["recipient_id"]
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def mark_read(self, notification_id: str) -> NotificationResponse:
        try:
            result = self.supabase.table("notifications")\
                .update({"is_read": True, "read_at": now_iso()})\
                .eq("notification_id", notification_id)\
                .execute()
            if not result.data:
                raise HTTPException(status_code=404, detail="Notification not found")
            return NotificationResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def mark_all_read(self, user_id: str) -> int:
        try:
            result = self.supabase.table("notifications")\
                .update({"is_read": True, "read_at": now_iso()})\
                .eq("recipient_id", user_id)\
                .eq("is_read", False)\
                .execute()
            return len(result.data or [])
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
