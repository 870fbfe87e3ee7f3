import base64
import binascii
import json
import logging
import re
import time
from supabase import Client
from fastapi import HTTPException
from iris.config.settings import settings
from iris.modules.aria.schemas import ChatRequest, ChatMessage, AriaContext
from iris.modules.aria.prompts import build_system_prompt
from iris.modules.aria.tools import AriaToolHandlers, get_tool_definitions
from iris.modules.aria.llm import is_rate_limit_error
from iris.modules.teams.service import resolve_team
from iris.core.utils import now_iso
from typing import List, Dict, Any, Callable, Iterator

logger = logging.getLogger(__name__)

RATE_LIMIT_REPLY = "Sorry, I have reached my capacity limit. Please wait a few seconds and try again. (Rate limit)"
CONTEXT_TASK_LIMIT = 20
CONTEXT_PROJECT_LIMIT = 5


def safe_file_name(name: str) -> str:
    return re.sub(r"[^a-zA-Z0-9.-]", "_", name or "image")


def sse_event(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def stream_text(text: str, chunk_size: int = None) -> Iterator[str]:
    """Server-sent events carrying the reply in fixed-size chunks, then a done marker"""
    chunk_size = chunk_size or settings.aria_stream_chunk_size
    for i in range(0, len(text), chunk_size):
        yield sse_event({"content": text[i:i + chunk_size], "done": False})
    yield sse_event({"done": True})


class AriaService:
    def __init__(self, supabase: Client, llm_factory: Callable[[], Any]):
        self.supabase = supabase
        self.llm_factory = llm_factory

    # --- context -----------------------------------------------------------

    def enrich_context(self, context: AriaContext) -> AriaContext:
        """Fill team name, latest tasks and projects from the database. Failures leave the context as is."""
        if not context.team_id:
            return context
        try:
            team = self.supabase.table("teams")\
                .select("name")\
                .eq("team_id", context.team_id)\
                .limit(1)\
                .execute()
            if team.data:
                context.team_name = team.data[0].get("name")

            tasks = self.supabase.table("task_issues")\
                .select("title, issue_number, status_id, priority_id, due_date")\
                .eq("team_id", context.team_id)\
                .is_("archived_at", "null")\
                .order("created_at", desc=True)\
                .limit(CONTEXT_TASK_LIMIT)\
                .execute()
            statuses = self.supabase.table("task_statuses")\
                .select("status_id, name")\
                .eq("team_id", context.team_id)\
                .execute()
            priorities = self.supabase.table("task_priorities")\
                .select("priority_id, name")\
                .execute()
            status_names = {s["status_id"]: s["name"] for s in statuses.data or []}
            priority_names = {p["priority_id"]: p["name"] for p in priorities.data or []}
            context.tasks = [
                {
                    "title": t.get("title"),
                    "issue_number": t.get("issue_number"),
                    "status": status_names.get(t.get("status_id")),
                    "priority": priority_names.get(t.get("priority_id")),
                    "due_date": t.get("due_date"),
                }
                for t in tasks.data or []
            ]

            projects = self.supabase.table("pm_projects")\
                .select("project_name, project_status, project_key")\
                .eq("team_id", context.team_id)\
                .neq("project_status", "archived")\
                .limit(CONTEXT_PROJECT_LIMIT)\
                .execute()
            context.projects = projects.data or []
        except Exception as e:
            logger.error(f"Error fetching ARIA context data: {e}")
        return context

    def store_attachments(self, message: ChatMessage, user_id: str, team_id: str = None) -> int:
        """Persist base64 attachments of a message to storage. Returns how many were stored."""
        bucket = self.supabase.storage.from_(settings.aria_attachments_bucket)
        stored = 0
        for attachment in message.attachments:
            try:
                content = base64.b64decode(attachment.data, validate=True)
                path = f"{user_id}/{int(time.time() * 1000)}-{safe_file_name(attachment.name)}"
                bucket.upload(path, content, {"content-type": attachment.mime_type, "upsert": "false"})
                self.supabase.table("aria_chat_attachments").insert({
                    "user_id": user_id,
                    "team_id": team_id,
                    "file_name": attachment.name or "unknown",
                    "file_type": attachment.mime_type,
                    "file_size": len(content),
                    "storage_path": path,
                    "public_url": bucket.get_public_url(path),
                    "created_at": now_iso(),
                }).execute()
                stored += 1
            except (binascii.Error, ValueError) as e:
                logger.error(f"Skipping attachment {attachment.name}: invalid base64 ({e})")
            except Exception as e:
                logger.error(f"Attachment upload failed for {attachment.name}: {e}")
        return stored

    # --- model conversation ------------------------------------------------

    @staticmethod
    def to_llm_message(message: ChatMessage) -> Dict[str, Any]:
        if message.role == "user" and message.attachments:
            parts: List[Dict[str, Any]] = [{"type": "text", "text": message.content}]
            for attachment in message.attachments:
                parts.append({
                    "type": "image_url",
                    "image_url": {"url": f"data:{attachment.mime_type};base64,{attachment.data}"},
                })
            return {"role": "user", "content": parts}
        return {"role": message.role, "content": message.content}

    def build_messages(self, messages: List[ChatMessage], context: AriaContext) -> List[Dict[str, Any]]:
        conversation = [m for m in messages if m.role != "system"]
        return [{"role": "system", "content": build_system_prompt(context)}] + \
            [self.to_llm_message(m) for m in conversation]

    def _complete(self, client, messages: List[Dict[str, Any]], usage: Dict[str, int]):
        response = client.chat.completions.create(
            model=settings.llm_model,
            messages=messages,
            tools=get_tool_definitions(),
            max_tokens=settings.llm_max_output_tokens,
        )
        if response.usage:
            usage["input_tokens"] += response.usage.prompt_tokens or 0
            usage["output_tokens"] += response.usage.completion_tokens or 0
            usage["total_tokens"] += response.usage.total_tokens or 0
        return response.choices[0].message

    def run_conversation(self, client, messages: List[Dict[str, Any]], handlers: AriaToolHandlers,
                         usage: Dict[str, int]) -> str:
        """Call the model, executing requested tools, for at most aria_max_tool_turns tool rounds"""
        reply = self._complete(client, messages, usage)
        turn = 0
        while reply.tool_calls and turn < settings.aria_max_tool_turns:
            turn += 1
            logger.info(f"ARIA tool round {turn}: {[c.function.name for c in reply.tool_calls]}")
            messages.append({
                "role": "assistant",
                "content": reply.content,
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.function.name, "arguments": call.function.arguments},
                    }
                    for call in reply.tool_calls
                ],
            })
            for call in reply.tool_calls:
                try:
                    arguments = json.loads(call.function.arguments or "{}")
                except json.JSONDecodeError as e:
                    output = {"error": f"Invalid arguments for {call.function.name}: {e}"}
                else:
                    output = handlers.execute_tool(call.function.name, arguments)
                messages.append({
                    "role": "tool",
                    "tool_call_id": call.id,
                    "content": json.dumps(output, default=str),
                })
            reply = self._complete(client, messages, usage)
        return reply.content or ""

    def log_usage(self, user_id: str, team_id: str, usage: Dict[str, int]):
        try:
            self.supabase.table("aria_usage_logs").insert({
                "user_id": user_id,
                "team_id": team_id,
                "model": settings.llm_model,
                "input_tokens": usage["input_tokens"],
                "output_tokens": usage["output_tokens"],
                "total_tokens": usage["total_tokens"],
                "created_at": now_iso(),
            }).execute()
        except Exception as e:
            logger.error(f"Error logging ARIA usage: {e}")

    def chat(self, request: ChatRequest, user_data: Dict[str, Any]) -> str:
        """Answer the conversation as ARIA and return the assistant text"""
        if not request.messages:
            raise HTTPException(status_code=400, detail="At least one message is required")
        client = self.llm_factory()

        context = request.context.model_copy(update={
            "user_id": user_data["id"],
            "user_name": user_data.get("name") or request.context.user_name,
            "user_role": user_data.get("permission_level"),
        })
        if context.team_id:
            # Slug or name references become the team UUID for every query below
            context.team_id = resolve_team(self.supabase, context.team_id)["team_id"]
        context = self.enrich_context(context)

        last_message = request.messages[-1]
        attachments = last_message.attachments if last_message.role == "user" else []
        if attachments:
            self.store_attachments(last_message, user_data["id"], context.team_id)

        handlers = AriaToolHandlers(
            self.supabase,
            user_id=user_data["id"],
            user_role=user_data.get("permission_level"),
            team_id=context.team_id,
            last_message_attachments=attachments,
        )
        usage = {"input_tokens": 0, "output_tokens": 0, "total_tokens": 0}
        try:
            content = self.run_conversation(client, self.build_messages(request.messages, context), handlers, usage)
        except HTTPException:
            raise
        except Exception as e:
            if is_rate_limit_error(e):
                logger.warning(f"LLM rate limit reached: {e}")
                return RATE_LIMIT_REPLY
            logger.error(f"ARIA chat failed: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))
        finally:
            if usage["total_tokens"]:
                self.log_usage(user_data["id"], context.team_id, usage)
        return content
