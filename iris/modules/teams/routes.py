from fastapi import APIRouter, Depends, Request
from iris.database.supabase_client import get_supabase
from iris.modules.teams.schemas import (
    TeamCreate, TeamUpdate, TeamResponse, TeamWithMembersResponse,
    TeamMemberAdd, TeamMemberRoleUpdate, TeamMemberResponse
)
from iris.modules.teams.service import TeamService, resolve_team
from iris.core.dependencies import require_permission, check_team_member, is_admin, get_access_cache
from supabase import Client
from typing import List, Dict, Any, Optional

router = APIRouter(prefix="/teams", tags=["teams"])


def get_team_service(supabase: Client = Depends(get_supabase)) -> TeamService:
    return TeamService(supabase)


def authorize_team(team_ref: str, request: Request, user_data: Dict, supabase: Client) -> Dict[str, Any]:
    """Resolve a team reference (UUID, slug or name) and require membership unless admin"""
    team = resolve_team(supabase, team_ref)
    check_team_member(team["team_id"], user_data, supabase, get_access_cache(request))
    return team


@router.get("")
async def list_teams(
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    status: Optional[str] = None,
    user_data: Dict = Depends(require_permission("teams:read")),
    service: TeamService = Depends(get_team_service),
):
    """List teams. Admins see every team, everyone else the teams they belong to."""
    member_of = None if is_admin(user_data) else user_data["id"]
    return service.list_teams(page=page, limit=limit, search=search, status=status, member_of_user_id=member_of)


@router.post("", response_model=TeamResponse, status_code=201)
async def create_team(
    team_data: TeamCreate,
    user_data: Dict = Depends(require_permission("teams:create")),
    service: TeamService = Depends(get_team_service),
):
    return service.create_team(team_data)


@router.get("/{team_ref}", response_model=TeamWithMembersResponse)
async def get_team(
    team_ref: str,
    request: Request,
    user_data: Dict = Depends(require_permission("teams:read")),
    service: TeamService = Depends(get_team_service),
    supabase: Client = Depends(get_supabase),
):
    team = authorize_team(team_ref, request, user_data, supabase)
    return service.get_team(team["team_id"])


@router.patch("/{team_ref}", response_model=TeamResponse)
async def update_team(
    team_ref: str,
    team_data: TeamUpdate,
    request: Request,
    user_data: Dict = Depends(require_permission("teams:update")),
    service: TeamService = Depends(get_team_service),
    supabase: Client = Depends(get_supabase),
):
    team = authorize_team(team_ref, request, user_data, supabase)
    return service.update_team(team["team_id"], team_data)


@router.delete("/{team_ref}", status_code=204)
async def delete_team(
    team_ref: str,
    user_data: Dict = Depends(require_permission("teams:delete")),
    service: TeamService = Depends(get_team_service),
):
    service.delete_team(team_ref)
    return None


@router.get("/{team_ref}/members", response_model=List[TeamMemberResponse])
async def list_members(
    team_ref: str,
    request: Request,
    user_data: Dict = Depends(require_permission("teams:read")),
    service: TeamService = Depends(get_team_service),
    supabase: Client = Depends(get_supabase),
):
    """Members with task counts and active/offline status"""
    team = authorize_team(team_ref, request, user_data, supabase)
    return service.list_members(team["team_id"])


@router.post("/{team_ref}/members", response_model=TeamMemberResponse, status_code=201)
async def add_member(
    team_ref: str,
    member_data: TeamMemberAdd,
    request: Request,
    user_data: Dict = Depends(require_permission("teams:manage_members")),
    service: TeamService = Depends(get_team_service),
    supabase: Client = Depends(get_supabase),
):
    team = authorize_team(team_ref, request, user_data, supabase)
    return service.add_member(team["team_id"], member_data)


@router.get("/{team_ref}/members/{user_id}")
async def get_member_detail(
    team_ref: str,
    user_id: str,
    request: Request,
    user_data: Dict = Depends(require_permission("teams:read")),
    service: TeamService = Depends(get_team_service),
    supabase: Client = Depends(get_supabase),
):
    team = authorize_team(team_ref, request, user_data, supabase)
    return service.get_member_detail(team["team_id"], user_id)


@router.patch("/{team_ref}/members/{user_id}", response_model=TeamMemberResponse)
async def update_member_role(
    team_ref: str,
    user_id: str,
    body: TeamMemberRoleUpdate,
    request: Request,
    user_data: Dict = Depends(require_permission("teams:manage_members")),
    service: TeamService = Depends(get_team_service),
    supabase: Client = Depends(get_supabase),
):
    team = authorize_team(team_ref, request, user_data, supabase)
    return service.update_member_role(team["team_id"], user_id, body.role)


@router.delete("/{team_ref}/members/{user_id}", status_code=204)
async def remove_member(
    team_ref: str,
    user_id: str,
    request: Request,
    user_data: Dict = Depends(require_permission("teams:manage_members")),
    service: TeamService = Depends(get_team_service),
    supabase: Client = Depends(get_supabase),
):
    team = authorize_team(team_ref, request, user_data, supabase)
    service.remove_member(team["team_id"], user_id)
    return None
