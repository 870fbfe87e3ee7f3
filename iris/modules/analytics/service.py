import logging
import random
from datetime import datetime, timedelta, timezone
from supabase import Client
from iris.config.settings import settings
from iris.modules.analytics.schemas import (
    AnalyticsResponse, TaskStats, ProjectStats, DistributionSlice,
    HeatmapDay, LeaderboardEntry, TokenDay, AriaUsageResponse
)
from iris.modules.users.service import build_display_name
from iris.core.utils import parse_timestamp
from typing import List, Dict, Any, Optional
from fastapi import HTTPException

logger = logging.getLogger(__name__)

STATUS_TYPE_LABELS = {
    "done": "Completed",
    "in_progress": "In Progress",
    "todo": "To Do",
    "backlog": "Backlog",
    "cancelled": "Cancelled",
    "in_review": "In Review",
}
STATUS_TYPE_COLORS = {
    "done": "#10B981",
    "in_progress": "#3B82F6",
    "todo": "#F59E0B",
    "cancelled": "#EF4444",
}
DEFAULT_STATUS_COLOR = "#6B7280"
DONE_TYPES = ("done", "completed")
ACTIVE_PROJECT_STATUSES = ("active", "in_progress")
LEADERBOARD_SIZE = 5
ARIA_LOG_LIMIT = 1000


def _day(value) -> Optional[str]:
    parsed = parse_timestamp(value)
    return parsed.date().isoformat() if parsed else None


def demo_analytics(rng: Optional[random.Random] = None) -> AnalyticsResponse:
    """Demo payload shown while a workspace has no tasks or projects yet"""
    rng = rng or random.Random()
    today = datetime.now(timezone.utc).date()
    heatmap = [
        HeatmapDay(date=(today - timedelta(days=i)).isoformat(), count=rng.randint(0, 7))
        for i in range(365)
        if rng.random() > 0.6
    ]
    aria_usage = [
        TokenDay(date=(today - timedelta(days=i)).isoformat(), tokens=rng.randint(1000, 5999))
        for i in range(30, -1, -1)
    ]
    return AnalyticsResponse(
        isMock=True,
        tasks=TaskStats(total=124, distribution=[
            DistributionSlice(name="Completed", value=65, color="#10B981"),
            DistributionSlice(name="In Progress", value=24, color="#3B82F6"),
            DistributionSlice(name="To Do", value=15, color="#F59E0B"),
            DistributionSlice(name="Cancelled", value=5, color="#EF4444"),
            DistributionSlice(name="Backlog", value=15, color=DEFAULT_STATUS_COLOR),
        ]),
        projects=ProjectStats(total=12, completed=8, active=4),
        heatmap=heatmap,
        leaderboard=[
            LeaderboardEntry(user={"full_name": "Demo Lead", "email": "lead@iris.example"}, count=45),
            LeaderboardEntry(user={"full_name": "ARIA", "email": "aria@iris.example"}, count=32),
            LeaderboardEntry(user={"full_name": "Dev Team", "email": "dev@iris.example"}, count=28),
            LeaderboardEntry(user={"full_name": "Product Owner", "email": "po@iris.example"}, count=12),
        ],
        ariaUsage=aria_usage,
    )


def usage_cost(input_tokens: int, output_tokens: int) -> float:
    return (input_tokens / 1_000_000) * settings.aria_input_cost_per_million + \
        (output_tokens / 1_000_000) * settings.aria_output_cost_per_million


class AnalyticsService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _aria_logs(self) -> List[Dict[str, Any]]:
        try:
            result = self.supabase.table("aria_usage_logs")\
                .select("total_tokens, user_id, created_at")\
                .order("created_at")\
                .limit(ARIA_LOG_LIMIT)\
                .execute()
            return result.data or []
        except Exception as e:
            logger.warning(f"ARIA usage logs unavailable: {e}")
            return []

    def _leaderboard_users(self, user_ids: List[str]) -> Dict[str, Dict[str, Any]]:
        if not user_ids:
            return {}
        result = self.supabase.table("account_users")\
            .select("user_id, first_name, last_name_paternal, display_name, email, avatar_url")\
            .in_("user_id", user_ids)\
            .execute()
        return {
            u["user_id"]: {
                "id": u["user_id"],
                "full_name": u.get("display_name") or build_display_name(u),
                "email": u.get("email"),
                "avatar_url": u.get("avatar_url"),
            }
            for u in result.data or []
        }

    def get_dashboard(self, team_id: Optional[str] = None) -> AnalyticsResponse:
        """Task distribution, project totals, completion heatmap, leaderboard and ARIA tokens per day"""
        try:
            tasks_query = self.supabase.table("task_issues")\
                .select("issue_id, status_id, assignee_id, completed_at, created_at")\
                .is_("archived_at", "null")
            projects_query = self.supabase.table("pm_projects")\
                .select("project_id, project_status")
            if team_id:
                tasks_query = tasks_query.eq("team_id", team_id)
                projects_query = projects_query.eq("team_id", team_id)
            tasks = tasks_query.execute().data or []
            projects = projects_query.execute().data or []

            if not tasks and not projects:
                return demo_analytics()

            statuses = self.supabase.table("task_statuses")\
                .select("status_id, status_type")\
                .execute()
            status_types = {s["status_id"]: s.get("status_type") for s in statuses.data or []}

            type_counts: Dict[str, int] = {}
            heatmap: Dict[str, int] = {}
            done_by_user: Dict[str, int] = {}
            for task in tasks:
                status_type = status_types.get(task.get("status_id")) or "backlog"
                type_counts[status_type] = type_counts.get(status_type, 0) + 1
                is_done = status_type in DONE_TYPES
                if is_done or task.get("completed_at"):
                    day = _day(task.get("completed_at") or task.get("created_at"))
                    if day:
                        heatmap[day] = heatmap.get(day, 0) + 1
                if is_done and task.get("assignee_id"):
                    done_by_user[task["assignee_id"]] = done_by_user.get(task["assignee_id"], 0) + 1

            distribution = [
                DistributionSlice(
                    name=STATUS_TYPE_LABELS.get(status_type, status_type),
                    value=count,
                    color=STATUS_TYPE_COLORS.get(status_type, DEFAULT_STATUS_COLOR),
                )
                for status_type, count in type_counts.items()
            ]

            top = sorted(done_by_user.items(), key=lambda item: item[1], reverse=True)[:LEADERBOARD_SIZE]
            users = self._leaderboard_users([user_id for user_id, _ in top])
            leaderboard = [
                LeaderboardEntry(user=users.get(user_id) or {"full_name": "User", "email": "N/A"}, count=count)
                for user_id, count in top
            ]

            tokens_by_day: Dict[str, int] = {}
            for log in self._aria_logs():
                day = _day(log.get("created_at"))
                if day:
                    tokens_by_day[day] = tokens_by_day.get(day, 0) + (log.get("total_tokens") or 0)

            return AnalyticsResponse(
                tasks=TaskStats(total=len(tasks), distribution=distribution),
                projects=ProjectStats(
                    total=len(projects),
                    completed=sum(1 for p in projects if p.get("project_status") == "completed"),
                    active=sum(1 for p in projects if p.get("project_status") in ACTIVE_PROJECT_STATUSES),
                ),
                heatmap=[HeatmapDay(date=d, count=c) for d, c in sorted(heatmap.items())],
                leaderboard=leaderboard,
                ariaUsage=[TokenDay(date=d, tokens=t) for d, t in sorted(tokens_by_day.items())],
            )
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_aria_usage(self, team_id: Optional[str] = None, user_id: Optional[str] = None,
                       days: int = 30) -> AriaUsageResponse:
        """Token totals and estimated cost over the last `days` days; daily_tokens covers today (UTC)"""
        try:
            now = datetime.now(timezone.utc)
            since = now - timedelta(days=days)
            query = self.supabase.table("aria_usage_logs")\
                .select("input_tokens, output_tokens, total_tokens, created_at")\
                .gte("created_at", since.isoformat())
            if team_id:
                query = query.eq("team_id", team_id)
            if user_id:
                query = query.eq("user_id", user_id)
            logs = query.execute().data or []

            start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
            total_input = sum(log.get("input_tokens") or 0 for log in logs)
            total_output = sum(log.get("output_tokens") or 0 for log in logs)
            daily_tokens = 0
            for log in logs:
                created_at = parse_timestamp(log.get("created_at"))
                if created_at and created_at >= start_of_day:
                    daily_tokens += log.get("total_tokens") or 0

            return AriaUsageResponse(
                daily_tokens=daily_tokens,
                total_tokens=sum(log.get("total_tokens") or 0 for log in logs),
                total_input=total_input,
                total_output=total_output,
                cost_usd=usage_cost(total_input, total_output),
                interaction_count=len(logs),
                team_id=team_id,
                user_id=user_id,
                days=days,
            )
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
