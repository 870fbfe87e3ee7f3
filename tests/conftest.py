"""
Shared fixtures for the IRIS test-suite.

Every API test gets a fresh in-memory database injected in place of the
Supabase client, and rate limiting is disabled before the app is imported.
"""

import os

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient

from iris.database.supabase_client import get_supabase
from iris.modules.auth.service import clear_auth_cache
from tests.shared.factories import create_account
from tests.shared.fakes import FakeSupabase, FakeLLM


@pytest.fixture
def db() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def app(db):
    from iris.main import app as fastapi_app

    clear_auth_cache()
    fastapi_app.dependency_overrides[get_supabase] = lambda: db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()
    clear_auth_cache()


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def fake_llm(app) -> FakeLLM:
    from iris.modules.aria.routes import get_llm_factory

    llm = FakeLLM()
    app.dependency_overrides[get_llm_factory] = lambda: (lambda: llm)
    return llm


@pytest.fixture
def admin(db):
    return create_account(db, "admin@iris.test", level="admin")


@pytest.fixture
def manager(db):
    return create_account(db, "manager@iris.test", level="manager")


@pytest.fixture
def member(db):
    return create_account(db, "member@iris.test", level="user")


@pytest.fixture
def viewer(db):
    return create_account(db, "viewer@iris.test", level="viewer")


@pytest.fixture
def team(db, manager, member):
    """A team owned by the manager with member as a regular member and the default workflow"""
    team = db.add("teams", name="Platform", slug="platform", color="#00D4B3",
                  visibility="private", status="active", owner_id=manager["user_id"])
    db.add("team_members", team_id=team["team_id"], user_id=manager["user_id"], role="owner")
    db.add("team_members", team_id=team["team_id"], user_id=member["user_id"], role="member")
    for position, (name, status_type, is_default) in enumerate([
        ("Backlog", "backlog", False),
        ("Todo", "todo", True),
        ("In Progress", "in_progress", False),
        ("Done", "done", False),
        ("Cancelled", "cancelled", False),
    ]):
        db.add("task_statuses", team_id=team["team_id"], name=name, status_type=status_type,
               color="#6B7280", position=position, is_default=is_default)
    for level, name in enumerate(["Urgent", "High", "Medium", "Low"], start=1):
        db.add("task_priorities", name=name, level=level, color="#F59E0B")
    return team
