from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Dict, Any


class UserCreate(BaseModel):
    email: EmailStr
    username: str = Field(pattern=r"^[A-Za-z0-9_.-]{3,50}$")
    password: str = Field(min_length=8)
    first_name: str = Field(min_length=1)
    last_name_paternal: str = Field(min_length=1)
    last_name_maternal: Optional[str] = None
    permission_level: str = "user"
    phone_number: Optional[str] = None
    company_role: Optional[str] = None
    department: Optional[str] = None


class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    username: Optional[str] = Field(default=None, pattern=r"^[A-Za-z0-9_.-]{3,50}$")
    password: Optional[str] = Field(default=None, min_length=8)
    first_name: Optional[str] = None
    last_name_paternal: Optional[str] = None
    last_name_maternal: Optional[str] = None
    display_name: Optional[str] = None
    permission_level: Optional[str] = None
    account_status: Optional[str] = None
    phone_number: Optional[str] = None
    company_role: Optional[str] = None
    department: Optional[str] = None
    timezone: Optional[str] = None
    locale: Optional[str] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int = Field(alias="totalPages")

    class Config:
        populate_by_name = True


class UserListResponse(BaseModel):
    users: List[Dict[str, Any]]
    pagination: Pagination


class AvatarUploadResponse(BaseModel):
    avatar_url: str
    path: str
    profile_updated: bool
