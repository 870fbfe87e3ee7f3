from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse
from iris.database.supabase_client import get_supabase
from iris.modules.users.schemas import UserCreate, UserUpdate, UserListResponse, AvatarUploadResponse
from iris.modules.users.service import UserService
from iris.core.dependencies import require_permission, get_current_user_id, ensure_self_or_admin
from supabase import Client
from typing import Dict, Optional

router = APIRouter(prefix="/admin/users", tags=["users"])
upload_router = APIRouter(prefix="/upload", tags=["users"])


def get_user_service(supabase: Client = Depends(get_supabase)) -> UserService:
    return UserService(supabase)


@router.get("", response_model=UserListResponse)
async def list_users(
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    status: Optional[str] = None,
    role: Optional[str] = None,
    user_data: Dict = Depends(require_permission("users:read")),
    service: UserService = Depends(get_user_service),
):
    """List accounts with pagination and search/status/role filters"""
    return service.list_users(page=page, limit=limit, search=search, status=status, role=role)


@router.post("", status_code=201)
async def create_user(
    body: UserCreate,
    user_data: Dict = Depends(require_permission("users:create")),
    service: UserService = Depends(get_user_service),
):
    return service.create_user(body, user_data)


@router.get("/{user_id}")
async def get_user(
    user_id: str,
    user_data: Dict = Depends(require_permission("users:read")),
    service: UserService = Depends(get_user_service),
):
    return service.get_user(user_id)


@router.patch("/{user_id}")
async def update_user(
    user_id: str,
    body: UserUpdate,
    user_data: Dict = Depends(require_permission("users:update")),
    service: UserService = Depends(get_user_service),
):
    return service.update_user(user_id, body, user_data)


@router.delete("/{user_id}", status_code=200)
async def delete_user(
    user_id: str,
    user_data: Dict = Depends(require_permission("users:delete")),
    service: UserService = Depends(get_user_service),
):
    """Soft delete an account and revoke its sessions"""
    service.delete_user(user_id, user_data)
    return {"message": "User deleted successfully"}


@upload_router.post("/avatar", response_model=AvatarUploadResponse)
async def upload_avatar(
    file: UploadFile = File(...),
    user_id: Optional[str] = Form(None),
    current_user: Dict = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service),
):
    """Upload a profile picture for yourself (admins may target any user)"""
    target_user_id = user_id or current_user["id"]
    ensure_self_or_admin(current_user, target_user_id)
    content = await file.read()
    result = service.upload_avatar(target_user_id, file.content_type, content)
    if not result.profile_updated:
        return JSONResponse(
            status_code=207,
            content={**result.model_dump(), "warning": "Avatar uploaded but profile was not updated"},
        )
    return result
