"""
Unit tests for the ARIA conversation loop, streaming and usage logging.
"""

import base64
import json

import pytest
from fastapi import HTTPException

from iris.config.settings import settings
from iris.modules.aria.schemas import ChatRequest, ChatMessage, ChatAttachment, AriaContext
from iris.modules.aria.service import AriaService, RATE_LIMIT_REPLY, stream_text, safe_file_name
from iris.modules.aria.prompts import build_system_prompt
from iris.modules.aria.llm import is_rate_limit_error
from tests.shared.fakes import FakeLLM, llm_reply


def user_data(account):
    return {"id": account["user_id"], "name": account["display_name"],
            "permission_level": account["permission_level"]}


def chat_request(text="Hello", team=None, attachments=None):
    return ChatRequest(
        messages=[ChatMessage(role="user", content=text, attachments=attachments or [])],
        context=AriaContext(team_id=team["team_id"] if team else None),
    )


def sse_payloads(chunks):
    return [json.loads(chunk[len("data: "):].strip()) for chunk in chunks]


@pytest.mark.unit
class TestStreaming:

    def test_stream_text_chunks_and_done_marker(self):
        payloads = sse_payloads(list(stream_text("a" * 250, chunk_size=100)))
        assert [len(p.get("content", "")) for p in payloads] == [100, 100, 50, 0]
        assert payloads[-1] == {"done": True}
        assert all(p["done"] is False for p in payloads[:-1])

    def test_empty_text_only_sends_done(self):
        assert sse_payloads(list(stream_text("", chunk_size=100))) == [{"done": True}]

    def test_safe_file_name(self):
        assert safe_file_name("my photo (1).png") == "my_photo__1_.png"
        assert safe_file_name(None) == "image"


@pytest.mark.unit
class TestRateLimitDetection:

    @pytest.mark.parametrize("message,expected", [
        ("Error code: 429", True),
        ("Resource has been exhausted (e.g. check quota).", True),
        ("Too Many Requests", True),
        ("connection reset", False),
    ])
    def test_markers(self, message, expected):
        assert is_rate_limit_error(RuntimeError(message)) is expected


@pytest.mark.unit
class TestConversation:

    def test_plain_reply_and_usage_logged(self, db, member):
        llm = FakeLLM([llm_reply("Hi there!", prompt_tokens=12, completion_tokens=3)])
        service = AriaService(db, lambda: llm)
        assert service.chat(chat_request(), user_data(member)) == "Hi there!"
        log = db.rows("aria_usage_logs")[0]
        assert (log["input_tokens"], log["output_tokens"], log["total_tokens"]) == (12, 3, 15)
        assert log["user_id"] == member["user_id"]
        assert llm.requests[0]["messages"][0]["role"] == "system"
        assert llm.requests[0]["model"] == settings.llm_model

    def test_no_messages_is_rejected_before_the_client_is_built(self, db, member):
        def factory():
            raise AssertionError("client should not be created")

        with pytest.raises(HTTPException) as excinfo:
            AriaService(db, factory).chat(ChatRequest(messages=[]), user_data(member))
        assert excinfo.value.status_code == 400

    def test_tool_round_then_answer(self, db, team, member):
        llm = FakeLLM([
            llm_reply(None, tool_calls=[("create_task", json.dumps({"title": "Prepare demo"}))]),
            llm_reply("Created it."),
        ])
        reply = AriaService(db, lambda: llm).chat(chat_request("Add a task", team), user_data(member))
        assert reply == "Created it."
        assert db.rows("task_issues")[0]["title"] == "Prepare demo"
        tool_message = llm.requests[1]["messages"][-1]
        assert tool_message["role"] == "tool"
        assert json.loads(tool_message["content"])["success"] is True
        assert db.rows("aria_usage_logs")[0]["total_tokens"] == 30

    def test_invalid_tool_arguments_are_reported_to_the_model(self, db, member):
        llm = FakeLLM([llm_reply(None, tool_calls=[("create_task", "{not json")]), llm_reply("Sorry.")])
        AriaService(db, lambda: llm).chat(chat_request(), user_data(member))
        assert "Invalid arguments" in json.loads(llm.requests[1]["messages"][-1]["content"])["error"]

    def test_tool_rounds_are_capped(self, db, member):
        looping = [llm_reply(None, tool_calls=[("unknown_tool", "{}")]) for _ in range(10)]
        llm = FakeLLM(looping)
        reply = AriaService(db, lambda: llm).chat(chat_request(), user_data(member))
        assert len(llm.requests) == settings.aria_max_tool_turns + 1
        assert reply == ""

    def test_rate_limit_returns_polite_reply(self, db, member):
        llm = FakeLLM([RuntimeError("Error code: 429 - quota exceeded")])
        assert AriaService(db, lambda: llm).chat(chat_request(), user_data(member)) == RATE_LIMIT_REPLY
        assert db.rows("aria_usage_logs") == []

    def test_other_failures_become_500(self, db, member):
        llm = FakeLLM([RuntimeError("boom")])
        with pytest.raises(HTTPException) as excinfo:
            AriaService(db, lambda: llm).chat(chat_request(), user_data(member))
        assert excinfo.value.status_code == 500

    def test_caller_identity_overrides_client_context(self, db, member):
        llm = FakeLLM()
        request = ChatRequest(
            messages=[ChatMessage(role="user", content="Who am I?")],
            context=AriaContext(userId="someone-else", userRole="admin", userName="Mallory"),
        )
        AriaService(db, lambda: llm).chat(request, user_data(member))
        system_prompt = llm.requests[0]["messages"][0]["content"]
        assert member["user_id"] in system_prompt
        assert "someone-else" not in system_prompt
        assert "Mallory" not in system_prompt

    def test_usage_log_failure_does_not_break_the_reply(self, db, member):
        db.failing_tables.add("aria_usage_logs")
        llm = FakeLLM([llm_reply("Still fine.")])
        assert AriaService(db, lambda: llm).chat(chat_request(), user_data(member)) == "Still fine."


@pytest.mark.unit
class TestContextAndAttachments:

    def test_enrich_context_with_team_data(self, db, team, member):
        db.add("task_issues", team_id=team["team_id"], title="Fix login", issue_number=1,
               status_id=db.rows("task_statuses")[1]["status_id"], archived_at=None)
        db.add("pm_projects", team_id=team["team_id"], project_name="Website", project_status="active",
               project_key="WEB-001")
        context = AriaService(db, FakeLLM).enrich_context(AriaContext(team_id=team["team_id"]))
        assert context.team_name == "Platform"
        assert context.tasks[0]["status"] == "Todo"
        assert context.projects[0]["project_name"] == "Website"
        prompt = build_system_prompt(context)
        assert "Fix login" in prompt and "Website" in prompt

    def test_attachments_are_stored_and_sent_as_images(self, db, member):
        image = ChatAttachment(name="shot.png", mimeType="image/png", data=base64.b64encode(b"png").decode())
        llm = FakeLLM()
        AriaService(db, lambda: llm).chat(chat_request(attachments=[image]), user_data(member))
        row = db.rows("aria_chat_attachments")[0]
        assert row["storage_path"].startswith(f"{member['user_id']}/")
        assert row["file_size"] == 3
        parts = llm.requests[0]["messages"][-1]["content"]
        assert parts[1]["image_url"]["url"].startswith("data:image/png;base64,")

    def test_invalid_base64_is_skipped(self, db, member):
        image = ChatAttachment(name="bad.png", mimeType="image/png", data="***")
        stored = AriaService(db, FakeLLM).store_attachments(
            ChatMessage(role="user", content="x", attachments=[image]), member["user_id"])
        assert stored == 0
        assert db.rows("aria_chat_attachments") == []
