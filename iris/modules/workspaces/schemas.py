from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any


class WorkspaceSummary(BaseModel):
    id: str
    name: str
    slug: str
    logo_url: Optional[str] = Field(default=None, alias="logoUrl")
    brand_color: Optional[str] = Field(default=None, alias="brandColor")
    description: Optional[str] = None
    role: str

    class Config:
        populate_by_name = True


class WorkspaceListResponse(BaseModel):
    workspaces: List[WorkspaceSummary]


class WorkspaceMemberUser(BaseModel):
    name: str
    email: Optional[str] = None
    avatar: Optional[str] = None


class WorkspaceMemberResponse(BaseModel):
    id: str
    user_id: str = Field(alias="userId")
    role: str
    joined_at: Optional[str] = Field(default=None, alias="joinedAt")
    user: Optional[WorkspaceMemberUser] = None

    class Config:
        populate_by_name = True


class WorkspaceDetail(BaseModel):
    id: str
    name: str
    slug: str
    logo_url: Optional[str] = Field(default=None, alias="logoUrl")
    brand_color: Optional[str] = Field(default=None, alias="brandColor")
    description: Optional[str] = None
    settings: Dict[str, Any] = {}

    class Config:
        populate_by_name = True


class WorkspaceDetailResponse(BaseModel):
    workspace: WorkspaceDetail
    user_role: str = Field(alias="userRole")
    permissions: Dict[str, bool]
    members: List[WorkspaceMemberResponse]

    class Config:
        populate_by_name = True
