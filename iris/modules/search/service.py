import logging
from supabase import Client
from iris.modules.search.schemas import SearchResult
from iris.modules.users.service import build_display_name
from iris.core.utils import sanitize_search
from typing import List, Callable

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2
RESULTS_PER_SOURCE = 5


class SearchService:
    """Global search over teams, projects, tasks and users.

    Each source is queried on its own; a failing source is logged and
    contributes nothing instead of failing the whole search.
    """

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def search(self, query: str) -> List[SearchResult]:
        if not query or len(query.strip()) < MIN_QUERY_LENGTH:
            return []
        term = sanitize_search(query.strip())
        if not term:
            return []

        results: List[SearchResult] = []
        for source in (self._teams, self._projects, self._tasks, self._users):
            results.extend(self._safe(source, term))
        return results

    def _safe(self, source: Callable[[str], List[SearchResult]], term: str) -> List[SearchResult]:
        try:
            return source(term)
        except Exception as e:
            logger.error(f"Search source {source.__name__} failed: {e}")
            return []

    def _teams(self, term: str) -> List[SearchResult]:
        result = self.supabase.table("teams")\
            .select("team_id, name")\
            .or_(f"name.ilike.%{term}%,description.ilike.%{term}%")\
            .limit(RESULTS_PER_SOURCE)\
            .execute()
        return [
            SearchResult(
                id=t["team_id"], type="team", title=t["name"], subtitle="Team",
                url=f"/admin/teams/{t['team_id']}/dashboard", icon="users",
            )
            for t in result.data or []
        ]

    def _projects(self, term: str) -> List[SearchResult]:
        result = self.supabase.table("pm_projects")\
            .select("project_id, project_name, project_key")\
            .or_(f"project_name.ilike.%{term}%,project_key.ilike.%{term}%")\
            .limit(RESULTS_PER_SOURCE)\
            .execute()
        return [
            SearchResult(
                id=p["project_id"], type="project", title=p["project_name"], subtitle=p.get("project_key"),
                url=f"/admin/projects/{p['project_id']}", icon="folder",
            )
            for p in result.data or []
        ]

    def _tasks(self, term: str) -> List[SearchResult]:
        result = self.supabase.table("task_issues")\
            .select("issue_id, title, issue_number, project_id")\
            .ilike("title", f"%{term}%")\
            .is_("archived_at", "null")\
            .limit(RESULTS_PER_SOURCE)\
            .execute()
        return [
            SearchResult(
                id=t["issue_id"], type="task", title=t["title"], subtitle=f"#{t.get('issue_number')}",
                url=f"/admin/projects/{t.get('project_id')}?view=tasks&taskId={t['issue_id']}", icon="task",
            )
            for t in result.data or []
        ]

    def _users(self, term: str) -> List[SearchResult]:
        result = self.supabase.table("account_users")\
            .select("user_id, first_name, last_name_paternal, display_name, email, avatar_url")\
            .or_(
                f"first_name.ilike.%{term}%,last_name_paternal.ilike.%{term}%,"
                f"display_name.ilike.%{term}%,email.ilike.%{term}%"
            )\
            .neq("account_status", "deleted")\
            .limit(RESULTS_PER_SOURCE)\
            .execute()
        return [
            SearchResult(
                id=u["user_id"], type="user", title=u.get("display_name") or build_display_name(u), subtitle=u.get("email"),
                url=f"/admin/users/{u['user_id']}", icon="user", avatar=u.get("avatar_url"),
            )
            for u in result.data or []
        ]
