from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class NotificationResponse(BaseModel):
    notification_id: str
    recipient_id: str
    actor_id: Optional[str] = None
    title: str
    message: Optional[str] = None
    type: str = "info"
    category: str = "system"
    entity_id: Optional[str] = None
    link: Optional[str] = None
    is_read: bool = False
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
