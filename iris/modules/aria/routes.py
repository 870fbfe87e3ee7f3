from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from iris.database.supabase_client import get_supabase
from iris.modules.aria.schemas import ChatRequest, ChatResponse, ChatReply
from iris.modules.aria.service import AriaService, stream_text
from iris.modules.aria.llm import get_llm_client
from iris.core.dependencies import require_permission, check_team_member, get_access_cache
from iris.modules.teams.service import resolve_team
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/aria", tags=["aria"])


def get_llm_factory():
    """The client is built lazily so request validation runs before the API key check"""
    return get_llm_client


def get_aria_service(
    supabase: Client = Depends(get_supabase),
    llm_factory=Depends(get_llm_factory),
) -> AriaService:
    return AriaService(supabase, llm_factory)


@router.post("/chat")
async def chat(
    body: ChatRequest,
    request: Request,
    user_data: Dict = Depends(require_permission("aria:chat")),
    service: AriaService = Depends(get_aria_service),
    supabase: Client = Depends(get_supabase),
):
    """Chat with ARIA. Streams server-sent events unless stream is false."""
    if body.context.team_id:
        team = resolve_team(supabase, body.context.team_id)
        check_team_member(team["team_id"], user_data, supabase, get_access_cache(request))
    content = service.chat(body, user_data)
    if body.stream:
        return StreamingResponse(stream_text(content), media_type="text/event-stream")
    return ChatResponse(message=ChatReply(content=content))


@router.get("/chat")
async def chat_status():
    return {"status": "ready", "message": "ARIA chat API ready"}
