from fastapi import APIRouter, Depends
from iris.database.supabase_client import get_supabase
from iris.modules.search.schemas import SearchResult
from iris.modules.search.service import SearchService
from iris.core.dependencies import get_current_user_id
from supabase import Client
from typing import List, Dict

router = APIRouter(prefix="/search", tags=["search"])


def get_search_service(supabase: Client = Depends(get_supabase)) -> SearchService:
    return SearchService(supabase)


@router.get("", response_model=List[SearchResult], response_model_exclude_none=True)
async def search(
    q: str = "",
    user_data: Dict = Depends(get_current_user_id),
    service: SearchService = Depends(get_search_service),
):
    """Search teams, projects, tasks and users (at most five of each)"""
    return service.search(q)
