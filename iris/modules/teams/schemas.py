from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime


class TeamCreate(BaseModel):
    name: str = Field(min_length=1)
    owner_id: str = Field(alias="ownerId")
    description: Optional[str] = None
    color: str = "#00D4B3"
    visibility: str = "private"
    workspace_id: Optional[str] = Field(default=None, alias="workspaceId")

    class Config:
        populate_by_name = True


class TeamUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None
    visibility: Optional[str] = None
    status: Optional[str] = None
    owner_id: Optional[str] = Field(default=None, alias="ownerId")

    class Config:
        populate_by_name = True


class TeamResponse(BaseModel):
    team_id: str
    name: str
    slug: str
    description: Optional[str] = None
    color: Optional[str] = None
    visibility: Optional[str] = None
    status: Optional[str] = None
    owner_id: Optional[str] = None
    workspace_id: Optional[str] = None
    member_count: int = 0
    owner: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TeamWithMembersResponse(TeamResponse):
    members: List[Dict[str, Any]] = []


class TeamMemberAdd(BaseModel):
    user_id: str
    role: str


class TeamMemberRoleUpdate(BaseModel):
    role: str


class TeamMemberResponse(BaseModel):
    id: Optional[str] = None
    team_id: str
    user_id: str
    role: str
    joined_at: Optional[datetime] = None
    user: Optional[Dict[str, Any]] = None
    tasks_count: int = 0
    completed_tasks_count: int = 0
    status: str = "offline"

    class Config:
        from_attributes = True
