from fastapi import APIRouter, Depends, Request
from iris.database.supabase_client import get_supabase
from iris.modules.issues.schemas import IssueCreate, IssueUpdate, IssueFilters, CommentCreate
from iris.modules.issues.service import IssueService
from iris.modules.teams.routes import authorize_team
from iris.core.dependencies import require_permission, check_team_member, get_access_cache
from supabase import Client
from typing import Dict, Optional

router = APIRouter(tags=["issues"])


def get_issue_service(supabase: Client = Depends(get_supabase)) -> IssueService:
    return IssueService(supabase)


def authorize_issue(issue_id: str, request: Request, user_data: Dict, service: IssueService, supabase: Client):
    """Require membership of the issue's team unless admin"""
    team_id = service.get_issue_team_id(issue_id)
    check_team_member(team_id, user_data, supabase, get_access_cache(request))


@router.get("/teams/{team_ref}/issues")
async def list_team_issues(
    team_ref: str,
    request: Request,
    statusId: Optional[str] = None,
    assignee: Optional[str] = None,
    priority: Optional[str] = None,
    projectId: Optional[str] = None,
    cycleId: Optional[str] = None,
    search: Optional[str] = None,
    groupBy: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
    user_data: Dict = Depends(require_permission("issues:read")),
    service: IssueService = Depends(get_issue_service),
    supabase: Client = Depends(get_supabase),
):
    """Board data for a team: issues, statuses, status counts and optional grouping by status"""
    team = authorize_team(team_ref, request, user_data, supabase)
    filters = IssueFilters(
        status_id=statusId, assignee=assignee, priority=priority, project_id=projectId,
        cycle_id=cycleId, search=search, group_by=groupBy, limit=limit, offset=offset,
    )
    return service.list_team_issues(team, filters)


@router.post("/teams/{team_ref}/issues", status_code=201)
async def create_issue(
    team_ref: str,
    issue_data: IssueCreate,
    request: Request,
    user_data: Dict = Depends(require_permission("issues:create")),
    service: IssueService = Depends(get_issue_service),
    supabase: Client = Depends(get_supabase),
):
    team = authorize_team(team_ref, request, user_data, supabase)
    return service.create_issue(team, issue_data, user_data["id"])


@router.get("/issues/{issue_id}")
async def get_issue(
    issue_id: str,
    request: Request,
    user_data: Dict = Depends(require_permission("issues:read")),
    service: IssueService = Depends(get_issue_service),
    supabase: Client = Depends(get_supabase),
):
    authorize_issue(issue_id, request, user_data, service, supabase)
    return service.get_issue(issue_id)


@router.patch("/issues/{issue_id}")
async def update_issue(
    issue_id: str,
    issue_data: IssueUpdate,
    request: Request,
    user_data: Dict = Depends(require_permission("issues:update")),
    service: IssueService = Depends(get_issue_service),
    supabase: Client = Depends(get_supabase),
):
    authorize_issue(issue_id, request, user_data, service, supabase)
    return service.update_issue(issue_id, issue_data, user_data["id"])


@router.delete("/issues/{issue_id}")
async def archive_issue(
    issue_id: str,
    request: Request,
    user_data: Dict = Depends(require_permission("issues:delete")),
    service: IssueService = Depends(get_issue_service),
    supabase: Client = Depends(get_supabase),
):
    """Archive an issue (soft delete)"""
    authorize_issue(issue_id, request, user_data, service, supabase)
    service.archive_issue(issue_id, user_data["id"])
    return {"message": "Issue archived"}


@router.get("/issues/{issue_id}/comments")
async def list_comments(
    issue_id: str,
    request: Request,
    user_data: Dict = Depends(require_permission("issues:read")),
    service: IssueService = Depends(get_issue_service),
    supabase: Client = Depends(get_supabase),
):
    authorize_issue(issue_id, request, user_data, service, supabase)
    return service.list_comments(issue_id)


@router.post("/issues/{issue_id}/comments", status_code=201)
async def add_comment(
    issue_id: str,
    comment_data: CommentCreate,
    request: Request,
    user_data: Dict = Depends(require_permission("issues:comment")),
    service: IssueService = Depends(get_issue_service),
    supabase: Client = Depends(get_supabase),
):
    authorize_issue(issue_id, request, user_data, service, supabase)
    return service.add_comment(issue_id, comment_data, user_data["id"])
