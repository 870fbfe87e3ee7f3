from fastapi import APIRouter, Depends
from iris.database.supabase_client import get_supabase
from iris.modules.projects.schemas import ProjectCreate, ProjectUpdate, ProjectFilters, ProjectStatusUpdateCreate
from iris.modules.projects.service import ProjectService
from iris.modules.issues.service import IssueService
from iris.core.dependencies import require_permission, ensure_self_or_admin
from supabase import Client
from typing import Dict, Optional

router = APIRouter(prefix="/projects", tags=["projects"])


def get_project_service(supabase: Client = Depends(get_supabase)) -> ProjectService:
    return ProjectService(supabase)


@router.get("")
async def list_projects(
    search: Optional[str] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    health: Optional[str] = None,
    teamId: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    user_data: Dict = Depends(require_permission("projects:read")),
    service: ProjectService = Depends(get_project_service),
):
    """List active projects with lead, team, member/milestone counts and progress sparkline"""
    filters = ProjectFilters(
        search=search, status=status, priority=priority, health=health,
        team_id=teamId, limit=limit, offset=offset,
    )
    return service.list_projects(filters)


@router.post("", status_code=201)
async def create_project(
    project_data: ProjectCreate,
    user_data: Dict = Depends(require_permission("projects:create")),
    service: ProjectService = Depends(get_project_service),
):
    """Create a project owned by the caller (admins may create on behalf of another user)"""
    ensure_self_or_admin(user_data, project_data.created_by_user_id)
    return service.create_project(project_data)


@router.get("/{project_id}")
async def get_project(
    project_id: str,
    user_data: Dict = Depends(require_permission("projects:read")),
    service: ProjectService = Depends(get_project_service),
):
    return service.get_project(project_id)


@router.patch("/{project_id}")
async def update_project(
    project_id: str,
    project_data: ProjectUpdate,
    user_data: Dict = Depends(require_permission("projects:update")),
    service: ProjectService = Depends(get_project_service),
):
    return service.update_project(project_id, project_data)


@router.delete("/{project_id}")
async def archive_project(
    project_id: str,
    user_data: Dict = Depends(require_permission("projects:delete")),
    service: ProjectService = Depends(get_project_service),
):
    service.archive_project(project_id)
    return {"message": "Project archived"}


@router.get("/{project_id}/updates")
async def list_updates(
    project_id: str,
    user_data: Dict = Depends(require_permission("projects:read")),
    service: ProjectService = Depends(get_project_service),
):
    return service.list_updates(project_id)


@router.post("/{project_id}/updates", status_code=201)
async def create_update(
    project_id: str,
    update_data: ProjectStatusUpdateCreate,
    user_data: Dict = Depends(require_permission("projects:post_update")),
    service: ProjectService = Depends(get_project_service),
):
    ensure_self_or_admin(user_data, update_data.user_id)
    return service.create_update(project_id, update_data)


@router.get("/{project_id}/issues")
async def list_project_issues(
    project_id: str,
    user_data: Dict = Depends(require_permission("issues:read")),
    service: ProjectService = Depends(get_project_service),
    supabase: Client = Depends(get_supabase),
):
    service.get_project(project_id)
    return IssueService(supabase).list_project_issues(project_id)
