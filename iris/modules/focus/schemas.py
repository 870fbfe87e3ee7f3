from pydantic import BaseModel, Field
from typing import Optional, List, Literal, Dict, Any


class FocusSessionCreate(BaseModel):
    created_by: str = Field(alias="createdBy")
    duration_minutes: int = Field(alias="durationMinutes", gt=0, le=24 * 60)
    task_name: Optional[str] = Field(default=None, alias="taskName")
    target_type: Literal["global", "users"] = Field(default="global", alias="targetType")
    target_ids: List[str] = Field(default=[], alias="targetIds")

    class Config:
        populate_by_name = True


class ActiveFocusResponse(BaseModel):
    activeSession: Optional[Dict[str, Any]] = None


class FocusStartResponse(BaseModel):
    success: bool
    session: Dict[str, Any]
