from fastapi import APIRouter, Depends, Query
from iris.database.supabase_client import get_supabase
from iris.modules.analytics.schemas import AnalyticsResponse, AriaUsageResponse
from iris.modules.analytics.service import AnalyticsService
from iris.core.dependencies import require_permission, is_admin
from supabase import Client
from typing import Dict, Optional

router = APIRouter(tags=["analytics"])


def get_analytics_service(supabase: Client = Depends(get_supabase)) -> AnalyticsService:
    return AnalyticsService(supabase)


@router.get("/admin/analytics", response_model=AnalyticsResponse)
async def get_analytics(
    teamId: Optional[str] = None,
    user_data: Dict = Depends(require_permission("analytics:read")),
    service: AnalyticsService = Depends(get_analytics_service),
):
    return service.get_dashboard(teamId)


@router.get("/aria/usage", response_model=AriaUsageResponse)
async def get_aria_usage(
    teamId: Optional[str] = None,
    userId: Optional[str] = None,
    days: int = Query(30, ge=1, le=365),
    user_data: Dict = Depends(require_permission("aria:usage")),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """ARIA token usage and cost. Non-admins always get their own usage."""
    if not is_admin(user_data):
        userId = user_data["id"]
    return service.get_aria_usage(team_id=teamId, user_id=userId, days=days)
