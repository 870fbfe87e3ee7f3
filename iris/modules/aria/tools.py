"""
ARIA tool definitions (OpenAI function-calling format) and their handlers.

Handlers run with the authenticated caller's identity and permission
level. They return plain dicts; errors are reported back to the model as
{"error": message} rather than raised to the HTTP layer.
"""

import logging
import re
import secrets
from supabase import Client
from fastapi import HTTPException
from iris.modules.issues.schemas import IssueCreate, IssueUpdate
from iris.modules.issues.service import IssueService
from iris.modules.teams.service import resolve_team, TEAM_ROLES
from iris.core.utils import now_iso, escape_like, sanitize_search, pg_error_code, UNIQUE_VIOLATION
from typing import List, Dict, Any, Optional

logger = logging.getLogger(__name__)

ALWAYS_ALLOWED_ROLES = ("super_admin", "admin")
ISSUE_KEY_PATTERN = re.compile(r"^[A-Z]+-(\d+)$")
MEMBER_ACTIONS = ("add", "create", "remove", "suspend", "activate", "change_role")
# Never matches any hash format verify_password understands
UNUSABLE_PASSWORD_PREFIX = "!"


class ToolAccessDenied(Exception):
    pass


def _function(name: str, description: str, properties: Dict[str, Any], required: List[str]) -> Dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {"type": "object", "properties": properties, "required": required},
        },
    }


def get_tool_definitions() -> List[Dict[str, Any]]:
    """Tool definitions sent to the model with every chat completion"""
    return [
        _function(
            "create_task",
            "Creates a new task in the current team. Use this when the user wants to add, create or register a task.",
            {
                "title": {"type": "string", "description": "The title or summary of the task."},
                "description": {"type": "string", "description": "Detailed description of the task. Optional."},
                "priority": {"type": "string", "description": 'Priority: "low", "medium", "high", "urgent". Default "medium".'},
                "estimate_points": {"type": "integer", "description": "Story points estimate (1, 2, 3, 5, 8). Optional."},
                "due_date": {"type": "string", "description": 'Due date as YYYY-MM-DD. Convert relative dates such as "tomorrow".'},
                "assignee_name_or_email": {"type": "string", "description": "Name or email of the assignee. Empty assigns the current user."},
            },
            ["title"],
        ),
        _function(
            "update_task_status",
            "Moves an existing task to another status, e.g. marks it as done.",
            {
                "task_identifier": {"type": "string", "description": "Task title or key (e.g. TEAM-123)."},
                "new_status": {"type": "string", "description": 'Status name: "Backlog", "Todo", "In Progress", "Done", "Cancelled".'},
            },
            ["task_identifier", "new_status"],
        ),
        _function(
            "update_task_priority",
            "Changes the priority of a task.",
            {
                "task_identifier": {"type": "string", "description": "Task title or key."},
                "new_priority": {"type": "string", "description": 'New priority: "low", "medium", "high", "urgent".'},
            },
            ["task_identifier", "new_priority"],
        ),
        _function(
            "create_project",
            "Creates a new project within the current team.",
            {
                "name": {"type": "string", "description": "Project name."},
                "key": {"type": "string", "description": 'Short key (e.g. "MKT"). Generated from the name when omitted.'},
                "description": {"type": "string", "description": "Brief description of the project goal."},
            },
            ["name"],
        ),
        _function(
            "manage_team_member",
            "Manages a team member: add (creating the account if needed), remove, suspend, activate or change role.",
            {
                "email": {"type": "string", "description": "Email of the user to manage."},
                "action": {"type": "string", "enum": list(MEMBER_ACTIONS), "description": "Action to perform."},
                "role": {"type": "string", "description": 'Team role when adding or changing role (e.g. "admin", "member").'},
                "first_name": {"type": "string", "description": "First name, used when a new account is created."},
                "last_name": {"type": "string", "description": "Last name, used when a new account is created."},
            },
            ["email", "action"],
        ),
        _function(
            "update_user_avatar",
            "Sets the image the user just uploaded in the chat as a profile picture.",
            {
                "target_user_email": {"type": "string", "description": "Email of the user to update. Defaults to the current user."},
                "image_reference": {"type": "string", "description": 'Reference to the image, e.g. "last_uploaded".'},
            },
            ["image_reference"],
        ),
    ]


class AriaToolHandlers:
    def __init__(self, supabase: Client, user_id: str, user_role: str, team_id: Optional[str] = None,
                 last_message_attachments: Optional[List[Any]] = None):
        self.supabase = supabase
        self.user_id = user_id
        self.user_role = user_role or "viewer"
        self.team_id = team_id
        self.last_message_attachments = last_message_attachments or []
        self.issues = IssueService(supabase)

    # --- helpers -----------------------------------------------------------

    def check_access(self, allowed_roles: List[str], action: str) -> bool:
        if self.user_role in ALWAYS_ALLOWED_ROLES or self.user_role in allowed_roles:
            return True
        raise ToolAccessDenied(f"Access denied: your role ({self.user_role}) is not allowed to {action}.")

    def _require_team(self) -> Dict[str, Any]:
        if not self.team_id:
            raise ValueError("No team is selected. Open a team and try again.")
        return resolve_team(self.supabase, self.team_id)

    def find_task(self, identifier: str) -> Optional[Dict[str, Any]]:
        """Task of the current team by key (ABC-12) or by title substring"""
        identifier = (identifier or "").strip()
        match = ISSUE_KEY_PATTERN.match(identifier)
        if match:
            result = self.supabase.table("task_issues")\
                .select("issue_id, title")\
                .eq("team_id", self.team_id)\
                .eq("issue_number", int(match.group(1)))\
                .is_("archived_at", "null")\
                .limit(1)\
                .execute()
            if result.data:
                return result.data[0]

        result = self.supabase.table("task_issues")\
            .select("issue_id, title")\
            .eq("team_id", self.team_id)\
            .ilike("title", f"%{escape_like(identifier)}%")\
            .is_("archived_at", "null")\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    def find_user(self, email_or_name: Optional[str]) -> Optional[Dict[str, Any]]:
        """Non-deleted user by exact email, then by first or display name. Empty means the caller."""
        if not email_or_name:
            return {"user_id": self.user_id}
        by_email = self.supabase.table("account_users")\
            .select("user_id, email, permission_level")\
            .ilike("email", escape_like(email_or_name.strip()))\
            .neq("account_status", "deleted")\
            .limit(1)\
            .execute()
        if by_email.data:
            return by_email.data[0]

        term = sanitize_search(email_or_name)
        if not term:
            return None
        by_name = self.supabase.table("account_users")\
            .select("user_id, email, permission_level")\
            .or_(f"first_name.ilike.%{term}%,display_name.ilike.%{term}%")\
            .neq("account_status", "deleted")\
            .limit(1)\
            .execute()
        return by_name.data[0] if by_name.data else None

    def _check_account_access(self, user: Dict[str, Any]):
        """Only a super_admin may act on a super_admin account"""
        if user.get("permission_level") == "super_admin" and self.user_role != "super_admin":
            raise ToolAccessDenied("Access denied: only a super admin can modify a super admin account.")

    def _priority(self, name: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("task_priorities")\
            .select("priority_id, name")\
            .ilike("name", escape_like(name))\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    def _team_status(self, team_id: str, name: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("task_statuses")\
            .select("status_id, name")\
            .eq("team_id", team_id)\
            .ilike("name", escape_like(name))\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    # --- tools -------------------------------------------------------------

    def create_task(self, args: Dict[str, Any]) -> Dict[str, Any]:
        self.check_access(["manager", "user"], "create tasks")
        team = self._require_team()

        assignee_id = self.user_id
        if args.get("assignee_name_or_email"):
            user = self.find_user(args["assignee_name_or_email"])
            if user:
                assignee_id = user["user_id"]

        priority = self._priority(args.get("priority") or "medium")
        status = self._team_status(team["team_id"], "todo")
        if not status:
            raise ValueError("Could not determine the initial 'Todo' status for this team.")

        issue = self.issues.create_issue(team, IssueCreate(
            title=args["title"],
            description=args.get("description"),
            status_id=status["status_id"],
            priority_id=priority["priority_id"] if priority else None,
            assignee_id=assignee_id,
            due_date=args.get("due_date") or None,
            estimate_points=args.get("estimate_points"),
        ), self.user_id)
        return {
            "success": True,
            "message": f"Task '{issue['title']}' created as {issue.get('identifier')}.",
            "task": issue,
        }

    def update_task_status(self, args: Dict[str, Any]) -> Dict[str, Any]:
        self.check_access(["manager", "user"], "update task status")
        team = self._require_team()
        task = self.find_task(args.get("task_identifier"))
        if not task:
            return {"error": f"Task '{args.get('task_identifier')}' not found."}
        status = self._team_status(team["team_id"], args.get("new_status") or "")
        if not status:
            return {"error": f"Status '{args.get('new_status')}' is not valid."}
        self.issues.update_issue(task["issue_id"], IssueUpdate(status_id=status["status_id"]), self.user_id)
        return {"success": True, "message": f"Task '{task['title']}' moved to {status['name']}."}

    def update_task_priority(self, args: Dict[str, Any]) -> Dict[str, Any]:
        self.check_access(["manager", "user"], "update task priority")
        self._require_team()
        task = self.find_task(args.get("task_identifier"))
        if not task:
            return {"error": f"Task '{args.get('task_identifier')}' not found."}
        priority = self._priority(args.get("new_priority") or "")
        if not priority:
            return {"error": f"Priority '{args.get('new_priority')}' is not valid."}
        self.issues.update_issue(task["issue_id"], IssueUpdate(priority_id=priority["priority_id"]), self.user_id)
        return {"success": True, "message": f"Task '{task['title']}' priority set to {priority['name']}."}

    def create_project(self, args: Dict[str, Any]) -> Dict[str, Any]:
        self.check_access(["manager"], "create projects")
        name = (args.get("name") or "").strip()
        if not name:
            return {"error": "A project name is required."}
        project_key = (args.get("key") or name[:3]).upper()

        result = self.supabase.table("pm_projects").insert({
            "team_id": self.team_id or None,
            "project_name": name,
            "project_key": project_key,
            "project_description": args.get("description"),
            "created_by_user_id": self.user_id,
            "project_status": "active",
            "completion_percentage": 0,
            "created_at": now_iso(),
        }).execute()
        if not result.data:
            raise ValueError("Error creating project")
        project = result.data[0]
        self.supabase.table("pm_project_members").insert({
            "project_id": project["project_id"],
            "user_id": self.user_id,
            "project_role": "owner",
        }).execute()
        return {"success": True, "message": f"Project '{project['project_name']}' created with key {project_key}."}

    def manage_team_member(self, args: Dict[str, Any]) -> Dict[str, Any]:
        self.check_access([], "manage team members")
        email = (args.get("email") or "").strip().lower()
        action = args.get("action")
        if not email:
            return {"error": "An email is required."}
        if action not in MEMBER_ACTIONS:
            return {"error": f"Unknown action '{action}'."}

        user = self.find_user(email)
        if action in ("add", "create"):
            return self._add_member(email, user, args)
        if not user:
            return {"error": f"User {email} not found."}

        if action in ("suspend", "activate"):
            self._check_account_access(user)
            new_status = "suspended" if action == "suspend" else "active"
            self.supabase.table("account_users")\
                .update({"account_status": new_status, "updated_at": now_iso()})\
                .eq("user_id", user["user_id"])\
                .execute()
            return {"success": True, "message": f"User {email} is now {new_status}."}

        team = self._require_team()
        if action == "remove":
            if team.get("owner_id") == user["user_id"]:
                return {"error": "The team owner cannot be removed."}
            result = self.supabase.table("team_members")\
                .delete()\
                .eq("team_id", team["team_id"])\
                .eq("user_id", user["user_id"])\
                .execute()
            if not result.data:
                return {"error": f"{email} is not a member of {team['name']}."}
            return {"success": True, "message": f"{email} removed from {team['name']}."}

        role = args.get("role")
        if role not in TEAM_ROLES:
            return {"error": f"Invalid role '{role}'. Use one of: {', '.join(TEAM_ROLES)}."}
        result = self.supabase.table("team_members")\
            .update({"role": role})\
            .eq("team_id", team["team_id"])\
            .eq("user_id", user["user_id"])\
            .execute()
        if not result.data:
            return {"error": f"{email} is not a member of {team['name']}."}
        return {"success": True, "message": f"{email} is now {role} in {team['name']}."}

    def _add_member(self, email: str, user: Optional[Dict[str, Any]], args: Dict[str, Any]) -> Dict[str, Any]:
        messages = []
        if not user:
            created = self.supabase.table("account_users").insert({
                "email": email,
                "username": f"{email.split('@')[0]}{secrets.randbelow(1000)}",
                "first_name": args.get("first_name") or "New",
                "last_name_paternal": args.get("last_name") or "Member",
                "password_hash": UNUSABLE_PASSWORD_PREFIX + secrets.token_hex(16),
                "permission_level": "user",
                "account_status": "pending_verification",
                "is_email_verified": False,
                "created_at": now_iso(),
            }).execute()
            if not created.data:
                return {"error": f"Could not create user {email}."}
            user = created.data[0]
            messages.append(f"User {email} created.")
        else:
            messages.append(f"User {email} already exists.")

        if self.team_id:
            team = self._require_team()
            role = args.get("role") if args.get("role") in TEAM_ROLES else "member"
            try:
                self.supabase.table("team_members").insert({
                    "team_id": team["team_id"],
                    "user_id": user["user_id"],
                    "role": role,
                    "joined_at": now_iso(),
                }).execute()
                messages.append(f"Added to {team['name']} as {role}.")
            except Exception as e:
                if pg_error_code(e) != UNIQUE_VIOLATION:
                    raise
                messages.append(f"Already a member of {team['name']}.")
        return {"success": True, "message": " ".join(messages)}

    def update_user_avatar(self, args: Dict[str, Any]) -> Dict[str, Any]:
        if not self.last_message_attachments:
            return {"error": "No image found in the current message."}

        target_id = self.user_id
        if args.get("target_user_email"):
            user = self.find_user(args["target_user_email"])
            if not user:
                return {"error": f"User {args['target_user_email']} not found."}
            target_id = user["user_id"]

        if target_id != self.user_id:
            self.check_access([], "change other users' profile pictures")
            self._check_account_access(user)
        else:
            self.check_access(["manager", "user"], "change your profile picture")

        recent = self.supabase.table("aria_chat_attachments")\
            .select("public_url")\
            .eq("user_id", self.user_id)\
            .order("created_at", desc=True)\
            .limit(1)\
            .execute()
        if not recent.data or not recent.data[0].get("public_url"):
            return {"error": "Image URL not found."}
        url = recent.data[0]["public_url"]

        self.supabase.table("account_users")\
            .update({"avatar_url": url, "updated_at": now_iso()})\
            .eq("user_id", target_id)\
            .execute()
        return {"success": True, "message": "Profile picture updated!", "url": url}

    # --- dispatch ----------------------------------------------------------

    def execute_tool(self, tool_name: str, tool_input: Dict[str, Any]) -> Dict[str, Any]:
        """Run one tool call; failures become {"error": ...} for that call only"""
        handler = getattr(self, tool_name, None) if tool_name in TOOL_NAMES else None
        if handler is None:
            return {"error": f"Tool {tool_name} not implemented."}
        try:
            logger.info(f"Executing tool {tool_name} for user {self.user_id}")
            return handler(tool_input or {})
        except HTTPException as e:
            logger.warning(f"Tool {tool_name} failed: {e.detail}")
            return {"error": str(e.detail)}
        except Exception as e:
            logger.error(f"Error executing tool {tool_name}: {e}", exc_info=True)
            return {"error": str(e)}


TOOL_NAMES = frozenset(d["function"]["name"] for d in get_tool_definitions())
