from fastapi import APIRouter, Depends, Request
from iris.database.supabase_client import get_supabase
from iris.modules.workflow.schemas import (
    LabelCreate, LabelResponse, StatusCreate, StatusResponse,
    CycleCreate, CycleResponse, PriorityResponse
)
from iris.modules.workflow.service import WorkflowService
from iris.modules.teams.routes import authorize_team
from iris.core.dependencies import require_permission
from supabase import Client
from typing import List, Dict

router = APIRouter(tags=["workflow"])


def get_workflow_service(supabase: Client = Depends(get_supabase)) -> WorkflowService:
    return WorkflowService(supabase)


@router.get("/teams/{team_ref}/labels", response_model=List[LabelResponse])
async def list_labels(
    team_ref: str,
    request: Request,
    user_data: Dict = Depends(require_permission("issues:read")),
    service: WorkflowService = Depends(get_workflow_service),
    supabase: Client = Depends(get_supabase),
):
    team = authorize_team(team_ref, request, user_data, supabase)
    return service.list_labels(team["team_id"])


@router.post("/teams/{team_ref}/labels", response_model=LabelResponse, status_code=201)
async def create_label(
    team_ref: str,
    label_data: LabelCreate,
    request: Request,
    user_data: Dict = Depends(require_permission("issues:create")),
    service: WorkflowService = Depends(get_workflow_service),
    supabase: Client = Depends(get_supabase),
):
    team = authorize_team(team_ref, request, user_data, supabase)
    return service.create_label(team["team_id"], label_data)


@router.get("/teams/{team_ref}/statuses", response_model=List[StatusResponse])
async def list_statuses(
    team_ref: str,
    request: Request,
    user_data: Dict = Depends(require_permission("issues:read")),
    service: WorkflowService = Depends(get_workflow_service),
    supabase: Client = Depends(get_supabase),
):
    team = authorize_team(team_ref, request, user_data, supabase)
    return service.list_statuses(team["team_id"])


@router.post("/teams/{team_ref}/statuses", response_model=StatusResponse, status_code=201)
async def create_status(
    team_ref: str,
    status_data: StatusCreate,
    request: Request,
    user_data: Dict = Depends(require_permission("teams:update")),
    service: WorkflowService = Depends(get_workflow_service),
    supabase: Client = Depends(get_supabase),
):
    team = authorize_team(team_ref, request, user_data, supabase)
    return service.create_status(team["team_id"], status_data)


@router.get("/teams/{team_ref}/cycles", response_model=List[CycleResponse])
async def list_cycles(
    team_ref: str,
    request: Request,
    user_data: Dict = Depends(require_permission("issues:read")),
    service: WorkflowService = Depends(get_workflow_service),
    supabase: Client = Depends(get_supabase),
):
    team = authorize_team(team_ref, request, user_data, supabase)
    return service.list_cycles(team["team_id"])


@router.post("/teams/{team_ref}/cycles", response_model=CycleResponse, status_code=201)
async def create_cycle(
    team_ref: str,
    cycle_data: CycleCreate,
    request: Request,
    user_data: Dict = Depends(require_permission("teams:update")),
    service: WorkflowService = Depends(get_workflow_service),
    supabase: Client = Depends(get_supabase),
):
    team = authorize_team(team_ref, request, user_data, supabase)
    return service.create_cycle(team["team_id"], cycle_data)


@router.get("/priorities", response_model=List[PriorityResponse])
async def list_priorities(
    user_data: Dict = Depends(require_permission("issues:read")),
    service: WorkflowService = Depends(get_workflow_service),
):
    return service.list_priorities()
