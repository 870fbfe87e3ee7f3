import logging
import random
import re
from datetime import datetime, timedelta, timezone
from supabase import Client
from iris.modules.projects.schemas import ProjectCreate, ProjectUpdate, ProjectFilters, ProjectStatusUpdateCreate
from iris.modules.notifications.notifier import send_notification, send_team_notification
from iris.modules.users.service import serialize_user
from iris.core.utils import now_iso, pg_error_code, sanitize_search, CHECK_VIOLATION
from typing import List, Dict, Any
from fastapi import HTTPException

logger = logging.getLogger(__name__)

SPARKLINE_POINTS = 12
HISTORY_WINDOW = timedelta(days=30)


def generate_project_key(project_name: str, existing_count: int) -> str:
    """First four letters of the name (non-letters become X) plus a zero-padded sequence"""
    prefix = re.sub(r"[^A-Z]", "X", project_name[:4].upper())
    return f"{prefix}-{existing_count + 1:03d}"


def synthetic_sparkline(progress: int, seed: str) -> List[Dict[str, int]]:
    """A plausible rising curve that ends at the current progress, stable for a given seed"""
    rng = random.Random(seed)
    points = []
    current = 0.0
    for _ in range(SPARKLINE_POINTS):
        current = min(progress, current + rng.random() * (progress / 6 if progress else 0))
        points.append({"value": round(current)})
    points[-1]["value"] = progress
    return points


def milestone_progress(milestones: List[Dict[str, Any]], fallback: int) -> Dict[str, int]:
    total = len(milestones)
    completed = sum(1 for m in milestones if m.get("milestone_status") == "completed")
    started = sum(1 for m in milestones if m.get("milestone_status") == "in_progress")
    percentage = round(completed / total * 100) if total else (fallback or 0)
    return {"scope": total, "started": started, "completed": completed, "percentage": percentage}


class ProjectService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _get_project_row(self, project_id: str) -> Dict[str, Any]:
        result = self.supabase.table("pm_projects")\
            .select("*")\
            .eq("project_id", project_id)\
            .limit(1)\
            .execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Project not found")
        return result.data[0]

    def _users(self, user_ids: List[str]) -> Dict[str, Dict[str, Any]]:
        user_ids = [u for u in dict.fromkeys(user_ids) if u]
        if not user_ids:
            return {}
        result = self.supabase.table("account_users")\
            .select("*")\
            .in_("user_id", user_ids)\
            .execute()
        return {u["user_id"]: serialize_user(u) for u in result.data or []}

    def _count_by(self, table: str, project_ids: List[str]) -> Dict[str, int]:
        if not project_ids:
            return {}
        result = self.supabase.table(table)\
            .select("project_id")\
            .in_("project_id", project_ids)\
            .execute()
        counts: Dict[str, int] = {}
        for row in result.data or []:
            counts[row["project_id"]] = counts.get(row["project_id"], 0) + 1
        return counts

    def _progress_history(self, project: Dict[str, Any]) -> List[Dict[str, int]]:
        since = (datetime.now(timezone.utc) - HISTORY_WINDOW).isoformat()
        history = self.supabase.table("pm_project_progress_history")\
            .select("completion_percentage, recorded_at")\
            .eq("project_id", project["project_id"])\
            .gte("recorded_at", since)\
            .order("recorded_at")\
            .limit(SPARKLINE_POINTS)\
            .execute()
        if history.data:
            return [{"value": h.get("completion_percentage") or 0} for h in history.data]
        return synthetic_sparkline(project.get("completion_percentage") or 0, project["project_id"])

    def list_projects(self, filters: ProjectFilters) -> Dict[str, Any]:
        """Active (non-archived) projects with lead, team, counts and a progress sparkline"""
        try:
            limit = max(1, min(filters.limit, 200))
            offset = max(0, filters.offset)
            query = self.supabase.table("pm_projects")\
                .select("*", count="exact")\
                .neq("project_status", "archived")
            term = sanitize_search(filters.search) if filters.search else ""
            if term:
                query = query.or_(
                    f"project_name.ilike.%{term}%,project_description.ilike.%{term}%,project_key.ilike.%{term}%"
                )
            if filters.status:
                query = query.eq("project_status", filters.status)
            if filters.priority:
                query = query.eq("priority_level", filters.priority)
            if filters.health:
                query = query.eq("health_status", filters.health)
            if filters.team_id:
                query = query.eq("team_id", filters.team_id)

            result = query.order("created_at", desc=True)\
                .range(offset, offset + limit - 1)\
                .execute()
            projects = result.data or []
            project_ids = [p["project_id"] for p in projects]

            leads = self._users([p.get("lead_user_id") for p in projects])
            team_rows = {}
            team_id_list = list({p["team_id"] for p in projects if p.get("team_id")})
            if team_id_list:
                teams = self.supabase.table("teams")\
                    .select("team_id, name, color")\
                    .in_("team_id", team_id_list)\
                    .execute()
                team_rows = {t["team_id"]: t for t in teams.data or []}
            member_counts = self._count_by("pm_project_members", project_ids)
            milestone_counts = self._count_by("pm_milestones", project_ids)

            enriched = []
            for p in projects:
                team = team_rows.get(p.get("team_id")) or {}
                enriched.append({
                    **p,
                    "lead": leads.get(p.get("lead_user_id")),
                    "team_name": team.get("name"),
                    "team_color": team.get("color"),
                    "member_count": member_counts.get(p["project_id"], 0),
                    "milestone_count": milestone_counts.get(p["project_id"], 0),
                    "progress_history": self._progress_history(p),
                })

            return {
                "projects": enriched,
                "total": result.count if result.count is not None else len(enriched),
                "limit": limit,
                "offset": offset,
            }
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def create_project(self, project_data: ProjectCreate) -> Dict[str, Any]:
        """Create a project with a generated key, its owner membership, a 0% progress point and milestones"""
        try:
            existing = self.supabase.table("pm_projects")\
                .select("project_id", count="exact")\
                .execute()
            existing_count = existing.count if existing.count is not None else len(existing.data or [])
            project_key = generate_project_key(project_data.project_name, existing_count)

            row = project_data.model_dump(mode="json", exclude={"milestones"}, exclude_none=True)
            row.update({
                "project_key": project_key,
                "project_status": "planning",
                "health_status": "on_track",
                "completion_percentage": 0,
                "created_at": now_iso(),
            })
            result = self.supabase.table("pm_projects").insert(row).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create project")
            project = result.data[0]
            project_id = project["project_id"]
            creator_id = project_data.created_by_user_id

            self.supabase.table("pm_project_members").insert({
                "project_id": project_id,
                "user_id": creator_id,
                "project_role": "owner",
                "can_edit": True,
                "can_delete": True,
                "can_manage_members": True,
                "can_manage_settings": True,
            }).execute()
            self.supabase.table("pm_project_progress_history").insert({
                "project_id": project_id,
                "completion_percentage": 0,
                "recorded_at": now_iso(),
            }).execute()

            link = f"/admin/projects/{project_id}"
            if project.get("team_id"):
                send_team_notification(
                    self.supabase,
                    project["team_id"],
                    title="New team project",
                    message=f'Project "{project["project_name"]}" has started.',
                    category="project",
                    actor_id=creator_id,
                    entity_id=project_id,
                    link=link,
                )
            else:
                send_notification(
                    self.supabase,
                    creator_id,
                    title="Project created",
                    message=f'You created the project "{project["project_name"]}".',
                    type="success",
                    category="project",
                    entity_id=project_id,
                    link=link,
                )

            if project_data.milestones:
                fallback_date = project.get("target_date") or now_iso()
                try:
                    self.supabase.table("pm_milestones").insert([
                        {
                            "project_id": project_id,
                            "milestone_name": m.name,
                            "milestone_description": m.description,
                            "milestone_status": "pending",
                            "target_date": m.target_date.isoformat() if m.target_date else fallback_date,
                            "sort_order": index,
                        }
                        for index, m in enumerate(project_data.milestones)
                    ]).execute()
                except Exception as e:
                    logger.error(f"Error creating milestones for project {project_id}: {e}")

            logger.info(f"Project {project_key} created by {creator_id}")
            return {"project": project, "message": "Project created successfully"}
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_project(self, project_id: str) -> Dict[str, Any]:
        """Project with lead, team, milestones and milestone-based progress"""
        try:
            project = self._get_project_row(project_id)
            milestones = self.supabase.table("pm_milestones")\
                .select("*")\
                .eq("project_id", project_id)\
                .order("sort_order")\
                .execute()
            history = self.supabase.table("pm_project_progress_history")\
                .select("recorded_at, completion_percentage")\
                .eq("project_id", project_id)\
                .order("recorded_at")\
                .limit(10)\
                .execute()
            team = None
            if project.get("team_id"):
                team_result = self.supabase.table("teams")\
                    .select("team_id, name, color, slug")\
                    .eq("team_id", project["team_id"])\
                    .limit(1)\
                    .execute()
                team = team_result.data[0] if team_result.data else None

            progress = milestone_progress(milestones.data or [], project.get("completion_percentage"))
            progress["history"] = [
                {"date": h.get("recorded_at"), "completed": h.get("completion_percentage")}
                for h in history.data or []
            ]
            return {
                "project": {
                    **project,
                    "lead": self._users([project.get("lead_user_id")]).get(project.get("lead_user_id")),
                    "team": team,
                    "milestones": milestones.data or [],
                },
                "progress": progress,
            }
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def update_project(self, project_id: str, project_data: ProjectUpdate) -> Dict[str, Any]:
        """Patch allowed fields; start_date is pulled back to target_date when it would come after it"""
        updates = project_data.model_dump(mode="json", exclude_unset=True)
        if not updates:
            raise HTTPException(status_code=400, detail="No valid fields to update")
        try:
            current = self._get_project_row(project_id)
            target_date = updates.get("target_date")
            if target_date:
                start_date = updates.get("start_date", current.get("start_date"))
                if not start_date or str(start_date)[:10] > target_date:
                    updates["start_date"] = target_date
            updates["updated_at"] = now_iso()

            result = self.supabase.table("pm_projects")\
                .update(updates)\
                .eq("project_id", project_id)\
                .execute()
            if not result.data:
                raise HTTPException(status_code=404, detail="Project not found")

            if "completion_percentage" in updates and updates["completion_percentage"] != current.get("completion_percentage"):
                self.supabase.table("pm_project_progress_history").insert({
                    "project_id": project_id,
                    "completion_percentage": updates["completion_percentage"],
                    "recorded_at": now_iso(),
                }).execute()
            return {"project": result.data[0]}
        except HTTPException:
            raise
        except Exception as e:
            if pg_error_code(e) == CHECK_VIOLATION:
                raise HTTPException(status_code=400, detail="Start date cannot be after the target date")
            raise HTTPException(status_code=500, detail=str(e))

    def archive_project(self, project_id: str) -> bool:
        try:
            self._get_project_row(project_id)
            self.supabase.table("pm_projects")\
                .update({"project_status": "archived", "archived_at": now_iso(), "updated_at": now_iso()})\
                .eq("project_id", project_id)\
                .execute()
            return True
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def list_updates(self, project_id: str) -> List[Dict[str, Any]]:
        try:
            result = self.supabase.table("pm_project_updates")\
                .select("*")\
                .eq("project_id", project_id)\
                .order("created_at", desc=True)\
                .execute()
            updates = result.data or []
            authors = self._users([u.get("author_user_id") for u in updates])
            return [{**u, "author": authors.get(u.get("author_user_id"))} for u in updates]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def create_update(self, project_id: str, update_data: ProjectStatusUpdateCreate) -> Dict[str, Any]:
        """Post a status update; a health snapshot also becomes the project's health"""
        try:
            self._get_project_row(project_id)
            result = self.supabase.table("pm_project_updates").insert({
                "project_id": project_id,
                "author_user_id": update_data.user_id,
                "update_content": update_data.content,
                "update_title": update_data.title,
                "update_type": update_data.type,
                "health_status_snapshot": update_data.health_status,
                "created_at": now_iso(),
            }).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create update")

            if update_data.health_status:
                self.supabase.table("pm_projects")\
                    .update({"health_status": update_data.health_status, "updated_at": now_iso()})\
                    .eq("project_id", project_id)\
                    .execute()
            return result.data[0]
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
