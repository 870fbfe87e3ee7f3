from fastapi import APIRouter, Depends
from iris.database.supabase_client import get_supabase
from iris.modules.workspaces.schemas import WorkspaceListResponse, WorkspaceDetailResponse
from iris.modules.workspaces.service import WorkspaceService
from iris.core.dependencies import get_current_user_id
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


def get_workspace_service(supabase: Client = Depends(get_supabase)) -> WorkspaceService:
    return WorkspaceService(supabase)


@router.get("", response_model=WorkspaceListResponse, response_model_by_alias=True)
async def list_workspaces(
    user_data: Dict = Depends(get_current_user_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.list_for_user(user_data["id"])


@router.get("/{slug}", response_model=WorkspaceDetailResponse, response_model_by_alias=True)
async def get_workspace(
    slug: str,
    user_data: Dict = Depends(get_current_user_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    """Workspace detail, members, and the caller's role and permission flags"""
    return service.get_by_slug(slug, user_data["id"])
