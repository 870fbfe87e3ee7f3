import logging
from datetime import datetime, timedelta, timezone
from supabase import Client
from iris.modules.focus.schemas import FocusSessionCreate
from iris.modules.notifications.notifier import send_bulk_notification
from iris.core.utils import now_iso
from typing import Optional, Dict, Any
from fastapi import HTTPException

logger = logging.getLogger(__name__)

DEFAULT_TASK_NAME = "Focus session"


def session_targets_user(session: Dict[str, Any], user_id: str) -> bool:
    if session.get("target_type") == "global":
        return True
    return session.get("target_type") == "users" and user_id in (session.get("target_ids") or [])


class FocusService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_active_for_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Most recent active, unexpired session that covers the user"""
        try:
            result = self.supabase.table("focus_sessions")\
                .select("*")\
                .eq("status", "active")\
                .gt("end_time", now_iso())\
                .order("start_time", desc=True)\
                .execute()
            for session in result.data or []:
                if session_targets_user(session, user_id):
                    return session
            return None
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def start_session(self, session_data: FocusSessionCreate) -> Dict[str, Any]:
        """Start a session, ending the creator's previous active ones and notifying targeted users"""
        try:
            self.supabase.table("focus_sessions")\
                .update({"status": "ended"})\
                .eq("created_by", session_data.created_by)\
                .eq("status", "active")\
                .execute()

            start_time = datetime.now(timezone.utc)
            end_time = start_time + timedelta(minutes=session_data.duration_minutes)
            result = self.supabase.table("focus_sessions").insert({
                "created_by": session_data.created_by,
                "task_name": session_data.task_name or DEFAULT_TASK_NAME,
                "duration_minutes": session_data.duration_minutes,
                "start_time": start_time.isoformat(),
                "end_time": end_time.isoformat(),
                "target_type": session_data.target_type,
                "target_ids": session_data.target_ids,
                "status": "active",
            }).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to start focus session")
            session = result.data[0]

            # global sessions are enforced by client polling, not notifications
            if session_data.target_type == "users" and session_data.target_ids:
                send_bulk_notification(
                    self.supabase,
                    session_data.target_ids,
                    title="Focus mode on",
                    message=f"A {session_data.duration_minutes} min focus session has started.",
                    type="alert",
                    category="focus",
                    actor_id=session_data.created_by,
                    entity_id=session["session_id"],
                )
            logger.info(f"Focus session {session['session_id']} started by {session_data.created_by}")
            return session
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_session(self, session_id: str) -> Dict[str, Any]:
        try:
            result = self.supabase.table("focus_sessions")\
                .select("*")\
                .eq("session_id", session_id)\
                .limit(1)\
                .execute()
            if not result.data:
                raise HTTPException(status_code=404, detail="Focus session not found")
            return result.data[0]
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def end_session(self, session_id: str) -> Dict[str, Any]:
        try:
            result = self.supabase.table("focus_sessions")\
                .update({"status": "ended", "end_time": now_iso()})\
                .eq("session_id", session_id)\
                .execute()
            if not result.data:
                raise HTTPException(status_code=404, detail="Focus session not found")
            return result.data[0]
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
