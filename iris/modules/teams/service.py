import logging
import math
import uuid
from datetime import datetime, timedelta, timezone
from supabase import Client
from iris.modules.teams.schemas import (
    TeamCreate, TeamUpdate, TeamResponse, TeamWithMembersResponse,
    TeamMemberAdd, TeamMemberResponse
)
from iris.modules.users.schemas import Pagination
from iris.modules.users.service import serialize_user
from iris.config.settings import settings
from iris.core.utils import (
    now_iso, parse_timestamp, slugify, pg_error_code, sanitize_search, escape_like, clamp_page_size, UNIQUE_VIOLATION
)
from typing import List, Optional, Dict, Any
from fastapi import HTTPException

logger = logging.getLogger(__name__)

TEAM_ROLES = ("owner", "admin", "lead", "member", "guest")
COMPLETED_STATUS_TYPES = ("done", "completed")
ONLINE_WINDOW = timedelta(minutes=15)


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(str(value))
        return True
    except ValueError:
        return False


def resolve_team(supabase: Client, team_ref: str) -> Dict[str, Any]:
    """Find a team by UUID, slug or (case-insensitive) name. 404 when nothing matches."""
    if _is_uuid(team_ref):
        result = supabase.table("teams")\
            .select("*")\
            .eq("team_id", team_ref)\
            .limit(1)\
            .execute()
        if result.data:
            return result.data[0]
    else:
        result = supabase.table("teams")\
            .select("*")\
            .eq("slug", team_ref.lower())\
            .limit(1)\
            .execute()
        if result.data:
            return result.data[0]
        result = supabase.table("teams")\
            .select("*")\
            .ilike("name", escape_like(team_ref))\
            .limit(1)\
            .execute()
        if result.data:
            return result.data[0]
    raise HTTPException(status_code=404, detail=f"Team '{team_ref}' not found")


def member_status(last_activity_at) -> str:
    """'active' when the user did something in the last 15 minutes"""
    last_activity = parse_timestamp(last_activity_at)
    if last_activity and datetime.now(timezone.utc) - last_activity <= ONLINE_WINDOW:
        return "active"
    return "offline"


class TeamService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _users_by_id(self, user_ids: List[str]) -> Dict[str, Dict[str, Any]]:
        user_ids = [u for u in dict.fromkeys(user_ids) if u]
        if not user_ids:
            return {}
        result = self.supabase.table("account_users")\
            .select("*")\
            .in_("user_id", user_ids)\
            .execute()
        return {u["user_id"]: serialize_user(u) for u in result.data or []}

    def _member_counts(self, team_ids: List[str]) -> Dict[str, int]:
        if not team_ids:
            return {}
        result = self.supabase.table("team_members")\
            .select("team_id")\
            .in_("team_id", team_ids)\
            .execute()
        counts: Dict[str, int] = {}
        for row in result.data or []:
            counts[row["team_id"]] = counts.get(row["team_id"], 0) + 1
        return counts

    def _user_team_ids(self, user_id: str) -> List[str]:
        result = self.supabase.table("team_members")\
            .select("team_id")\
            .eq("user_id", user_id)\
            .execute()
        return [m["team_id"] for m in result.data or []]

    def list_teams(
        self,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        status: Optional[str] = None,
        member_of_user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Paginated teams with member count and owner. member_of_user_id restricts to that user's teams."""
        try:
            page = max(page or 1, 1)
            limit = clamp_page_size(limit, settings.default_page_size, settings.max_page_size)
            offset = (page - 1) * limit

            query = self.supabase.table("teams").select("*", count="exact")
            if member_of_user_id is not None:
                team_ids = self._user_team_ids(member_of_user_id)
                if not team_ids:
                    return {"teams": [], "pagination": Pagination(page=page, limit=limit, total=0, total_pages=0)}
                query = query.in_("team_id", team_ids)
            term = sanitize_search(search) if search else ""
            if term:
                query = query.or_(f"name.ilike.%{term}%,description.ilike.%{term}%")
            if status and status != "all":
                query = query.eq("status", status)

            result = query.order("created_at", desc=True)\
                .range(offset, offset + limit - 1)\
                .execute()

            teams = result.data or []
            counts = self._member_counts([t["team_id"] for t in teams])
            owners = self._users_by_id([t.get("owner_id") for t in teams])
            total = result.count if result.count is not None else len(teams)
            return {
                "teams": [
                    TeamResponse(
                        **t,
                        member_count=counts.get(t["team_id"], 0),
                        owner=owners.get(t.get("owner_id")),
                    ) for t in teams
                ],
                "pagination": Pagination(
                    page=page, limit=limit, total=total,
                    total_pages=math.ceil(total / limit) if total else 0,
                ),
            }
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def create_team(self, team_data: TeamCreate) -> TeamResponse:
        """Create a team and add its owner as an 'owner' member"""
        slug = slugify(team_data.name)
        if not slug:
            raise HTTPException(status_code=400, detail="Team name must contain letters or numbers")
        try:
            result = self.supabase.table("teams").insert({
                "name": team_data.name.strip(),
                "slug": slug,
                "description": team_data.description,
                "color": team_data.color,
                "visibility": team_data.visibility,
                "status": "active",
                "owner_id": team_data.owner_id,
                "workspace_id": team_data.workspace_id,
                "created_at": now_iso(),
            }).execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create team")
            team = result.data[0]

            self.supabase.table("team_members").insert({
                "team_id": team["team_id"],
                "user_id": team_data.owner_id,
                "role": "owner",
                "joined_at": now_iso(),
            }).execute()
            logger.info(f"Team {team['team_id']} created with slug {slug}")

            return TeamResponse(**team, member_count=1)
        except HTTPException:
            raise
        except Exception as e:
            if pg_error_code(e) == UNIQUE_VIOLATION:
                raise HTTPException(status_code=409, detail="A team with this name already exists")
            raise HTTPException(status_code=500, detail=str(e))

    def get_team(self, team_ref: str) -> TeamWithMembersResponse:
        try:
            team = resolve_team(self.supabase, team_ref)
            members = self.supabase.table("team_members")\
                .select("*")\
                .eq("team_id", team["team_id"])\
                .execute()
            users = self._users_by_id([m["user_id"] for m in members.data or []])
            member_list = [{**m, "user": users.get(m["user_id"])} for m in members.data or []]
            return TeamWithMembersResponse(
                **team,
                member_count=len(member_list),
                owner=users.get(team.get("owner_id")),
                members=member_list,
            )
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def update_team(self, team_ref: str, team_data: TeamUpdate) -> TeamResponse:
        """Update team; the slug follows the name"""
        update_data = team_data.model_dump(exclude_unset=True, exclude_none=True)
        if not update_data:
            raise HTTPException(status_code=400, detail="No valid fields to update")
        try:
            team = resolve_team(self.supabase, team_ref)
            if "name" in update_data:
                update_data["slug"] = slugify(update_data["name"])
            update_data["updated_at"] = now_iso()

            result = self.supabase.table("teams")\
                .update(update_data)\
                .eq("team_id", team["team_id"])\
                .execute()

            if not result.data:
                raise HTTPException(status_code=404, detail="Team not found")
            return TeamResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            if pg_error_code(e) == UNIQUE_VIOLATION:
                raise HTTPException(status_code=409, detail="A team with this name already exists")
            raise HTTPException(status_code=500, detail=str(e))

    def delete_team(self, team_ref: str) -> bool:
        try:
            team = resolve_team(self.supabase, team_ref)
            # Delete team members first
            self.supabase.table("team_members")\
                .delete()\
                .eq("team_id", team["team_id"])\
                .execute()

            result = self.supabase.table("teams")\
                .delete()\
                .eq("team_id", team["team_id"])\
                .execute()
            return len(result.data) > 0
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def list_members(self, team_ref: str) -> List[TeamMemberResponse]:
        """Members with their task counts and online status"""
        try:
            team = resolve_team(self.supabase, team_ref)
            team_id = team["team_id"]
            members = self.supabase.table("team_members")\
                .select("*")\
                .eq("team_id", team_id)\
                .execute()
            if not members.data:
                return []
            user_ids = [m["user_id"] for m in members.data]
            users = self._users_by_id(user_ids)

            statuses = self.supabase.table("task_statuses")\
                .select("status_id, status_type")\
                .eq("team_id", team_id)\
                .execute()
            status_types = {s["status_id"]: s.get("status_type") for s in statuses.data or []}

            issues = self.supabase.table("task_issues")\
                .select("assignee_id, status_id")\
                .eq("team_id", team_id)\
                .in_("assignee_id", user_ids)\
                .is_("archived_at", "null")\
                .execute()
            totals: Dict[str, int] = {}
            completed: Dict[str, int] = {}
            for issue in issues.data or []:
                assignee = issue["assignee_id"]
                totals[assignee] = totals.get(assignee, 0) + 1
                if status_types.get(issue.get("status_id")) in COMPLETED_STATUS_TYPES:
                    completed[assignee] = completed.get(assignee, 0) + 1

            result = []
            for m in members.data:
                user = users.get(m["user_id"])
                result.append(TeamMemberResponse(
                    **m,
                    user=user,
                    tasks_count=totals.get(m["user_id"], 0),
                    completed_tasks_count=completed.get(m["user_id"], 0),
                    status=member_status(user.get("last_activity_at") if user else None),
                ))
            return result
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def add_member(self, team_ref: str, member_data: TeamMemberAdd) -> TeamMemberResponse:
        if member_data.role not in TEAM_ROLES:
            raise HTTPException(status_code=400, detail=f"Invalid role. Allowed: {', '.join(TEAM_ROLES)}")
        try:
            team = resolve_team(self.supabase, team_ref)
            result = self.supabase.table("team_members").insert({
                "team_id": team["team_id"],
                "user_id": member_data.user_id,
                "role": member_data.role,
                "joined_at": now_iso(),
            }).execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to add member")
            return TeamMemberResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            if pg_error_code(e) == UNIQUE_VIOLATION:
                raise HTTPException(status_code=409, detail="User is already a member of this team")
            raise HTTPException(status_code=500, detail=str(e))

    def update_member_role(self, team_ref: str, user_id: str, role: str) -> TeamMemberResponse:
        if role not in TEAM_ROLES:
            raise HTTPException(status_code=400, detail=f"Invalid role. Allowed: {', '.join(TEAM_ROLES)}")
        try:
            team = resolve_team(self.supabase, team_ref)
            result = self.supabase.table("team_members")\
                .update({"role": role})\
                .eq("team_id", team["team_id"])\
                .eq("user_id", user_id)\
                .execute()
            if not result.data:
                raise HTTPException(status_code=404, detail="Member not found")
            return TeamMemberResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def remove_member(self, team_ref: str, user_id: str) -> bool:
        """Remove a member; the team owner cannot be removed"""
        try:
            team = resolve_team(self.supabase, team_ref)
            if team.get("owner_id") == user_id:
                raise HTTPException(status_code=400, detail="The team owner cannot be removed")
            result = self.supabase.table("team_members")\
                .delete()\
                .eq("team_id", team["team_id"])\
                .eq("user_id", user_id)\
                .execute()
            if not result.data:
                raise HTTPException(status_code=404, detail="Member not found")
            return True
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_member_detail(self, team_ref: str, user_id: str) -> Dict[str, Any]:
        """A member with their tasks in the team and the team projects they belong to"""
        try:
            team = resolve_team(self.supabase, team_ref)
            team_id = team["team_id"]
            membership = self.supabase.table("team_members")\
                .select("*")\
                .eq("team_id", team_id)\
                .eq("user_id", user_id)\
                .limit(1)\
                .execute()
            if not membership.data:
                raise HTTPException(status_code=404, detail="Member not found")

            user = self._users_by_id([user_id]).get(user_id)
            tasks = self.supabase.table("task_issues")\
                .select("*")\
                .eq("team_id", team_id)\
                .eq("assignee_id", user_id)\
                .is_("archived_at", "null")\
                .order("created_at", desc=True)\
                .execute()

            projects: List[Dict[str, Any]] = []
            project_links = self.supabase.table("pm_project_members")\
                .select("project_id, project_role")\
                .eq("user_id", user_id)\
                .execute()
            roles_by_project = {p["project_id"]: p.get("project_role") for p in project_links.data or []}
            if roles_by_project:
                project_rows = self.supabase.table("pm_projects")\
                    .select("*")\
                    .in_("project_id", list(roles_by_project))\
                    .eq("team_id", team_id)\
                    .execute()
                projects = [
                    {**p, "project_role": roles_by_project.get(p["project_id"])}
                    for p in project_rows.data or []
                ]

            return {
                "member": membership.data[0],
                "user": user,
                "status": member_status(user.get("last_activity_at") if user else None),
                "tasks": tasks.data or [],
                "projects": projects,
            }
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
