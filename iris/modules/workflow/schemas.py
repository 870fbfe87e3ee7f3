from pydantic import BaseModel, Field
from typing import Optional
from datetime import date

STATUS_TYPES = ("backlog", "todo", "in_progress", "in_review", "done", "cancelled")


class LabelCreate(BaseModel):
    name: str = Field(min_length=1)
    color: str = "#6366F1"
    description: Optional[str] = None


class LabelResponse(BaseModel):
    label_id: str
    team_id: Optional[str] = None
    name: str
    color: Optional[str] = None
    description: Optional[str] = None

    class Config:
        from_attributes = True


class StatusCreate(BaseModel):
    name: str = Field(min_length=1)
    status_type: str
    color: str = "#6B7280"
    is_default: bool = False


class StatusResponse(BaseModel):
    status_id: str
    team_id: Optional[str] = None
    name: str
    status_type: str
    color: Optional[str] = None
    position: int = 0
    is_default: bool = False

    class Config:
        from_attributes = True


class CycleCreate(BaseModel):
    name: str = Field(min_length=1)
    start_date: date
    end_date: date
    description: Optional[str] = None


class CycleResponse(BaseModel):
    cycle_id: str
    team_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[str] = None

    class Config:
        from_attributes = True


class PriorityResponse(BaseModel):
    priority_id: str
    name: str
    level: int
    color: Optional[str] = None

    class Config:
        from_attributes = True
