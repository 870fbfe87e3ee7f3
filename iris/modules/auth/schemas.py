from pydantic import BaseModel, EmailStr, Field
from typing import Optional, Dict, Any


class LoginRequest(BaseModel):
    # "email" accepts either an email address or a username
    email: Optional[str] = None
    username: Optional[str] = None
    password: str


class RegisterRequest(BaseModel):
    first_name: str = Field(alias="firstName", min_length=1)
    last_name_paternal: str = Field(alias="lastNamePaternal", min_length=1)
    last_name_maternal: Optional[str] = Field(default=None, alias="lastNameMaternal")
    email: EmailStr
    username: str = Field(pattern=r"^[A-Za-z0-9_-]{3,50}$")
    password: str = Field(min_length=8)

    class Config:
        populate_by_name = True


class RefreshRequest(BaseModel):
    refresh_token: str = Field(alias="refreshToken")

    class Config:
        populate_by_name = True


class TokenResponse(BaseModel):
    user: Optional[Dict[str, Any]] = None
    access_token: str = Field(alias="accessToken")
    refresh_token: str = Field(alias="refreshToken")
    expires_in: int = Field(alias="expiresIn")

    class Config:
        populate_by_name = True


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(alias="currentPassword")
    new_password: str = Field(alias="newPassword")
    confirm_password: str = Field(alias="confirmPassword")

    class Config:
        populate_by_name = True


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name_paternal: Optional[str] = None
    last_name_maternal: Optional[str] = None
    display_name: Optional[str] = None
    username: Optional[str] = Field(default=None, pattern=r"^[A-Za-z0-9_-]{3,50}$")
    phone_number: Optional[str] = None
    company_role: Optional[str] = None
    department: Optional[str] = None
    timezone: Optional[str] = None
    locale: Optional[str] = None
    avatar_url: Optional[str] = None
