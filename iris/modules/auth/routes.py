from fastapi import APIRouter, Depends, Request
from iris.modules.auth.schemas import (
    LoginRequest, RegisterRequest, RefreshRequest, TokenResponse,
    ChangePasswordRequest, ProfileUpdate
)
from iris.modules.auth.service import AuthService
from iris.core.dependencies import (
    get_auth_service, get_current_token, get_current_user_id,
    get_user_permissions, is_super_user
)
from iris.core.rate_limit import limiter
from iris.config.permissions_config import get_permission_matrix
from iris.config.settings import settings
from typing import Dict, List

router = APIRouter(prefix="/auth", tags=["auth"])


def _client_info(request: Request):
    forwarded = request.headers.get("x-forwarded-for")
    ip_address = forwarded.split(",")[0].strip() if forwarded else (request.client.host if request.client else None)
    return ip_address, request.headers.get("user-agent")


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    request: Request,
    register_data: RegisterRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Register a new account and return its first token pair"""
    ip_address, user_agent = _client_info(request)
    return service.register(register_data, ip_address, user_agent)


@router.post("/login", response_model=TokenResponse)
@limiter.limit(settings.login_rate_limit)
async def login(
    request: Request,
    login_data: LoginRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Login with email or username and get access/refresh tokens"""
    ip_address, user_agent = _client_info(request)
    return service.login(login_data, ip_address, user_agent)


@router.post("/refresh", response_model=TokenResponse, response_model_exclude_none=True)
async def refresh(
    request: Request,
    body: RefreshRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Exchange a refresh token for a new token pair"""
    ip_address, user_agent = _client_info(request)
    return service.refresh(body.refresh_token, ip_address, user_agent)


@router.post("/logout", status_code=200)
async def logout(
    token: str = Depends(get_current_token),
    service: AuthService = Depends(get_auth_service)
):
    """Logout and revoke the session"""
    service.logout(token)
    return {"message": "Logged out successfully"}


@router.get("/me")
async def get_me(
    current_user: Dict = Depends(get_current_user_id),
    service: AuthService = Depends(get_auth_service),
):
    """Get current account and its permissions (for frontend UI)."""
    if is_super_user(current_user):
        permissions: List[str] = [p["name"] for p in get_permission_matrix()["permissions"]]
    else:
        permissions = get_user_permissions(current_user)
    profile = service.get_profile(current_user["id"])
    return {**profile, "permissions": permissions}


@router.patch("/me")
async def update_me(
    profile: ProfileUpdate,
    current_user: Dict = Depends(get_current_user_id),
    service: AuthService = Depends(get_auth_service),
):
    """Update own profile fields"""
    return service.update_profile(current_user["id"], profile)


@router.post("/change-password", status_code=200)
async def change_password(
    body: ChangePasswordRequest,
    current_user: Dict = Depends(get_current_user_id),
    service: AuthService = Depends(get_auth_service),
):
    service.change_password(current_user["id"], body)
    return {"message": "Password updated successfully"}
