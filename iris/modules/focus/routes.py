from fastapi import APIRouter, Depends
from iris.database.supabase_client import get_supabase
from iris.modules.focus.schemas import FocusSessionCreate, ActiveFocusResponse, FocusStartResponse
from iris.modules.focus.service import FocusService
from iris.core.dependencies import require_permission, ensure_self_or_admin
from supabase import Client
from typing import Dict, Optional

router = APIRouter(prefix="/focus-sessions", tags=["focus"])


def get_focus_service(supabase: Client = Depends(get_supabase)) -> FocusService:
    return FocusService(supabase)


@router.get("/active", response_model=ActiveFocusResponse)
async def get_active_session(
    userId: Optional[str] = None,
    user_data: Dict = Depends(require_permission("focus:read")),
    service: FocusService = Depends(get_focus_service),
):
    if not userId:
        return ActiveFocusResponse(activeSession=None)
    ensure_self_or_admin(user_data, userId)
    return ActiveFocusResponse(activeSession=service.get_active_for_user(userId))


@router.post("", response_model=FocusStartResponse, status_code=201)
async def start_session(
    session_data: FocusSessionCreate,
    user_data: Dict = Depends(require_permission("focus:create")),
    service: FocusService = Depends(get_focus_service),
):
    ensure_self_or_admin(user_data, session_data.created_by)
    return FocusStartResponse(success=True, session=service.start_session(session_data))


@router.post("/{session_id}/end")
async def end_session(
    session_id: str,
    user_data: Dict = Depends(require_permission("focus:create")),
    service: FocusService = Depends(get_focus_service),
):
    """Only the creator (or an admin) can end a session"""
    ensure_self_or_admin(user_data, service.get_session(session_id)["created_by"])
    return {"success": True, "session": service.end_session(session_id)}
