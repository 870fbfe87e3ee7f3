from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date


class MilestoneInput(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    target_date: Optional[date] = Field(default=None, alias="targetDate")

    class Config:
        populate_by_name = True


class ProjectCreate(BaseModel):
    project_name: str = Field(min_length=1)
    created_by_user_id: str
    project_description: Optional[str] = None
    icon_name: str = "folder"
    icon_color: str = "#3B82F6"
    priority_level: str = "medium"
    start_date: Optional[date] = None
    target_date: Optional[date] = None
    team_id: Optional[str] = None
    lead_user_id: Optional[str] = None
    tags: List[str] = []
    milestones: List[MilestoneInput] = []


class ProjectUpdate(BaseModel):
    project_name: Optional[str] = None
    project_description: Optional[str] = None
    project_status: Optional[str] = None
    priority_level: Optional[str] = None
    health_status: Optional[str] = None
    completion_percentage: Optional[int] = Field(default=None, ge=0, le=100)
    start_date: Optional[date] = None
    target_date: Optional[date] = None
    lead_user_id: Optional[str] = None
    team_id: Optional[str] = None
    icon_name: Optional[str] = None
    icon_color: Optional[str] = None
    tags: Optional[List[str]] = None


class ProjectFilters(BaseModel):
    search: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    health: Optional[str] = None
    team_id: Optional[str] = None
    limit: int = 50
    offset: int = 0


class ProjectStatusUpdateCreate(BaseModel):
    content: str = Field(min_length=1)
    user_id: str
    title: Optional[str] = None
    type: str = "general"
    health_status: Optional[str] = None
