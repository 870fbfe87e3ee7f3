from fastapi import APIRouter, Depends, HTTPException
from iris.database.supabase_client import get_supabase
from iris.modules.notifications.schemas import NotificationResponse
from iris.modules.notifications.service import NotificationService
from iris.core.dependencies import require_permission, ensure_self_or_admin
from supabase import Client
from typing import List, Dict, Optional

router = APIRouter(prefix="/notifications", tags=["notifications"])


def get_notification_service(supabase: Client = Depends(get_supabase)) -> NotificationService:
    return NotificationService(supabase)


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    userId: Optional[str] = None,
    unreadOnly: bool = False,
    limit: int = 20,
    user_data: Dict = Depends(require_permission("notifications:read")),
    service: NotificationService = Depends(get_notification_service),
):
    if not userId:
        raise HTTPException(status_code=400, detail="userId is required")
    ensure_self_or_admin(user_data, userId)
    return service.list_notifications(userId, unread_only=unreadOnly, limit=limit)


@router.patch("/read-all")
async def mark_all_read(
    userId: Optional[str] = None,
    user_data: Dict = Depends(require_permission("notifications:update")),
    service: NotificationService = Depends(get_notification_service),
):
    target = userId or user_data["id"]
    ensure_self_or_admin(user_data, target)
    return {"updated": service.mark_all_read(target)}


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: str,
    user_data: Dict = Depends(require_permission("notifications:update")),
    service: NotificationService = Depends(get_notification_service),
):
    ensure_self_or_admin(user_data, service.get_recipient(notification_id))
    return service.mark_read(notification_id)
