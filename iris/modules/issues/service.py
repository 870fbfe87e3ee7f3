import logging
from datetime import datetime, timezone
from supabase import Client
from iris.modules.issues.schemas import IssueCreate, IssueUpdate, IssueFilters, CommentCreate
from iris.modules.notifications.notifier import send_notification, send_bulk_notification
from iris.modules.users.service import serialize_user
from iris.core.utils import now_iso, parse_timestamp, sanitize_search
from typing import List, Optional, Dict, Any
from fastapi import HTTPException

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "title", "description", "status_id", "priority_id", "assignee_id", "project_id",
    "cycle_id", "due_date", "estimate_points", "parent_issue_id",
)

# status_type -> timestamp column stamped when an issue enters it
TRANSITION_TIMESTAMPS = {
    "in_progress": "started_at",
    "done": "completed_at",
    "cancelled": "cancelled_at",
}

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def issue_identifier(team: Dict[str, Any], issue_number) -> str:
    prefix = (team.get("slug") or "").upper() or "TASK"
    return f"{prefix}-{issue_number}"


class IssueService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    # --- lookups -----------------------------------------------------------

    def _team(self, team_id: str) -> Dict[str, Any]:
        result = self.supabase.table("teams")\
            .select("*")\
            .eq("team_id", team_id)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else {"team_id": team_id}

    def _statuses(self, team_id: str) -> List[Dict[str, Any]]:
        result = self.supabase.table("task_statuses")\
            .select("*")\
            .eq("team_id", team_id)\
            .order("position")\
            .execute()
        return result.data or []

    def _priorities(self) -> Dict[str, Dict[str, Any]]:
        result = self.supabase.table("task_priorities")\
            .select("*")\
            .execute()
        return {p["priority_id"]: p for p in result.data or []}

    def _users(self, user_ids: List[str]) -> Dict[str, Dict[str, Any]]:
        user_ids = [u for u in dict.fromkeys(user_ids) if u]
        if not user_ids:
            return {}
        result = self.supabase.table("account_users")\
            .select("*")\
            .in_("user_id", user_ids)\
            .execute()
        return {u["user_id"]: serialize_user(u) for u in result.data or []}

    def _labels_by_issue(self, issue_ids: List[str]) -> Dict[str, List[Dict[str, Any]]]:
        if not issue_ids:
            return {}
        links = self.supabase.table("task_issue_labels")\
            .select("issue_id, label_id")\
            .in_("issue_id", issue_ids)\
            .execute()
        label_ids = list({link["label_id"] for link in links.data or []})
        labels: Dict[str, Dict[str, Any]] = {}
        if label_ids:
            rows = self.supabase.table("task_labels")\
                .select("*")\
                .in_("label_id", label_ids)\
                .execute()
            labels = {label["label_id"]: label for label in rows.data or []}
        by_issue: Dict[str, List[Dict[str, Any]]] = {}
        for link in links.data or []:
            if link["label_id"] in labels:
                by_issue.setdefault(link["issue_id"], []).append(labels[link["label_id"]])
        return by_issue

    def _get_issue_row(self, issue_id: str) -> Dict[str, Any]:
        result = self.supabase.table("task_issues")\
            .select("*")\
            .eq("issue_id", issue_id)\
            .limit(1)\
            .execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Issue not found")
        return result.data[0]

    def get_issue_team_id(self, issue_id: str) -> str:
        try:
            return self._get_issue_row(issue_id)["team_id"]
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def _enrich(self, issues: List[Dict[str, Any]], team: Dict[str, Any],
                statuses: Optional[List[Dict[str, Any]]] = None) -> List[Dict[str, Any]]:
        """Attach identifier, status, priority, assignee and labels to issue rows"""
        if not issues:
            return []
        if statuses is None:
            statuses = self._statuses(team["team_id"])
        status_map = {s["status_id"]: s for s in statuses}
        priorities = self._priorities()
        users = self._users([i.get("assignee_id") for i in issues] + [i.get("creator_id") for i in issues])
        labels = self._labels_by_issue([i["issue_id"] for i in issues])
        return [
            {
                **issue,
                "identifier": issue_identifier(team, issue.get("issue_number")),
                "status": status_map.get(issue.get("status_id")),
                "priority": priorities.get(issue.get("priority_id")),
                "assignee": users.get(issue.get("assignee_id")),
                "creator": users.get(issue.get("creator_id")),
                "labels": labels.get(issue["issue_id"], []),
            }
            for issue in issues
        ]

    def _next_issue_number(self, team_id: str) -> int:
        result = self.supabase.table("task_issues")\
            .select("issue_number")\
            .eq("team_id", team_id)\
            .order("issue_number", desc=True)\
            .limit(1)\
            .execute()
        if result.data and result.data[0].get("issue_number") is not None:
            return int(result.data[0]["issue_number"]) + 1
        return 1

    def _record_history(self, issue_id: str, actor_id: Optional[str], field_name: str,
                        old_value: Any, new_value: Any):
        self.supabase.table("task_issue_history").insert({
            "issue_id": issue_id,
            "actor_id": actor_id,
            "field_name": field_name,
            "old_value": None if old_value is None else str(old_value),
            "new_value": None if new_value is None else str(new_value),
            "created_at": now_iso(),
        }).execute()

    def _set_labels(self, issue_id: str, label_ids: List[str]):
        self.supabase.table("task_issue_labels")\
            .delete()\
            .eq("issue_id", issue_id)\
            .execute()
        rows = [{"issue_id": issue_id, "label_id": label_id} for label_id in dict.fromkeys(label_ids)]
        if rows:
            self.supabase.table("task_issue_labels").insert(rows).execute()

    # --- operations --------------------------------------------------------

    def list_team_issues(self, team: Dict[str, Any], filters: IssueFilters) -> Dict[str, Any]:
        """Issues of a team with board metadata (statuses, per-status counts, optional grouping)"""
        try:
            team_id = team["team_id"]
            statuses = self._statuses(team_id)

            query = self.supabase.table("task_issues")\
                .select("*", count="exact")\
                .eq("team_id", team_id)\
                .is_("archived_at", "null")
            if filters.status_id:
                query = query.eq("status_id", filters.status_id)
            if filters.assignee == "unassigned":
                query = query.is_("assignee_id", "null")
            elif filters.assignee:
                query = query.eq("assignee_id", filters.assignee)
            if filters.priority:
                query = query.eq("priority_id", filters.priority)
            if filters.project_id:
                query = query.eq("project_id", filters.project_id)
            if filters.cycle_id:
                query = query.eq("cycle_id", filters.cycle_id)
            term = sanitize_search(filters.search) if filters.search else ""
            if term:
                query = query.ilike("title", f"%{term}%")

            limit = max(1, min(filters.limit, 500))
            offset = max(0, filters.offset)
            result = query.order("sort_order")\
                .range(offset, offset + limit - 1)\
                .execute()

            issues = self._enrich(result.data or [], team, statuses)
            status_counts: Dict[str, int] = {s["status_id"]: 0 for s in statuses}
            for issue in issues:
                if issue.get("status_id") in status_counts:
                    status_counts[issue["status_id"]] += 1

            grouped = None
            if filters.group_by == "status":
                grouped = {s["status_id"]: [] for s in statuses}
                for issue in issues:
                    grouped.setdefault(issue.get("status_id"), []).append(issue)

            return {
                "issues": issues,
                "groupedIssues": grouped,
                "statuses": statuses,
                "statusCounts": status_counts,
                "total": result.count if result.count is not None else len(issues),
            }
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def create_issue(self, team: Dict[str, Any], issue_data: IssueCreate, actor_id: str) -> Dict[str, Any]:
        """Create an issue; without status_id it lands in the team's default (or first) status"""
        try:
            team_id = team["team_id"]
            status_id = issue_data.status_id
            if not status_id:
                statuses = self._statuses(team_id)
                if not statuses:
                    raise HTTPException(status_code=400, detail="Team has no statuses configured")
                default = next((s for s in statuses if s.get("is_default")), statuses[0])
                status_id = default["status_id"]

            issue_number = self._next_issue_number(team_id)
            row = issue_data.model_dump(mode="json", exclude={"label_ids"}, exclude_none=True)
            row.update({
                "team_id": team_id,
                "status_id": status_id,
                "issue_number": issue_number,
                "sort_order": issue_number,
                "creator_id": actor_id,
                "created_at": now_iso(),
            })
            result = self.supabase.table("task_issues").insert(row).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create issue")
            issue = result.data[0]

            if issue_data.label_ids:
                self._set_labels(issue["issue_id"], issue_data.label_ids)

            identifier = issue_identifier(team, issue_number)
            if issue_data.assignee_id and issue_data.assignee_id != actor_id:
                send_notification(
                    self.supabase,
                    issue_data.assignee_id,
                    title="New issue assigned",
                    message=f"{identifier}: {issue['title']}",
                    category="task",
                    actor_id=actor_id,
                    entity_id=issue["issue_id"],
                    link=f"/teams/{team.get('slug') or team_id}/issues/{issue['issue_id']}",
                )
            logger.info(f"Issue {identifier} created in team {team_id}")
            return self._enrich([issue], team)[0]
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_issue(self, issue_id: str) -> Dict[str, Any]:
        """Issue with parent, sub-issues and an activity feed (newest first)"""
        try:
            row = self._get_issue_row(issue_id)
            team = self._team(row["team_id"])
            issue = self._enrich([row], team)[0]

            if row.get("parent_issue_id"):
                parent = self.supabase.table("task_issues")\
                    .select("issue_id, issue_number, title, status_id")\
                    .eq("issue_id", row["parent_issue_id"])\
                    .limit(1)\
                    .execute()
                if parent.data:
                    issue["parent"] = {
                        **parent.data[0],
                        "identifier": issue_identifier(team, parent.data[0].get("issue_number")),
                    }

            children = self.supabase.table("task_issues")\
                .select("*")\
                .eq("parent_issue_id", issue_id)\
                .is_("archived_at", "null")\
                .order("sort_order")\
                .execute()
            issue["subIssues"] = self._enrich(children.data or [], team)
            issue["activity"] = self._activity(row)
            return issue
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def _activity(self, issue: Dict[str, Any]) -> List[Dict[str, Any]]:
        issue_id = issue["issue_id"]
        history = self.supabase.table("task_issue_history")\
            .select("*")\
            .eq("issue_id", issue_id)\
            .execute()
        comments = self.supabase.table("task_issue_comments")\
            .select("*")\
            .eq("issue_id", issue_id)\
            .is_("deleted_at", "null")\
            .execute()

        events = [{**h, "type": "history"} for h in history.data or []]
        events += [{**c, "type": "comment", "actor_id": c.get("author_id")} for c in comments.data or []]
        events.append({
            "type": "created",
            "actor_id": issue.get("creator_id"),
            "created_at": issue.get("created_at"),
        })

        actors = self._users([e.get("actor_id") for e in events])
        for event in events:
            event["actor"] = actors.get(event.get("actor_id"))
        events.sort(key=lambda e: parse_timestamp(e.get("created_at")) or _EPOCH, reverse=True)
        return events

    def _display_value(self, field: str, value: Any, statuses: Dict[str, Dict[str, Any]],
                       priorities: Dict[str, Dict[str, Any]], users: Dict[str, Dict[str, Any]]) -> Any:
        if value is None:
            return None
        if field == "status_id":
            return statuses.get(value, {}).get("name", value)
        if field == "priority_id":
            return priorities.get(value, {}).get("name", value)
        if field == "assignee_id":
            return (users.get(value) or {}).get("name", value)
        return value

    def update_issue(self, issue_id: str, issue_data: IssueUpdate, actor_id: str) -> Dict[str, Any]:
        """Apply field changes, log one history row per changed field, stamp status transitions"""
        payload = issue_data.model_dump(mode="json", exclude_unset=True)
        label_ids = payload.pop("label_ids", None)
        updates = {k: v for k, v in payload.items() if k in UPDATABLE_FIELDS}
        if not updates and label_ids is None:
            raise HTTPException(status_code=400, detail="No valid fields to update")
        if "title" in updates and not (updates["title"] or "").strip():
            raise HTTPException(status_code=400, detail="Title cannot be empty")
        try:
            current = self._get_issue_row(issue_id)
            team = self._team(current["team_id"])
            changed = {k: v for k, v in updates.items() if current.get(k) != v}

            if "status_id" in changed and changed["status_id"]:
                statuses = {s["status_id"]: s for s in self._statuses(current["team_id"])}
                new_status = statuses.get(changed["status_id"])
                if not new_status:
                    raise HTTPException(status_code=400, detail="Status does not belong to this team")
                column = TRANSITION_TIMESTAMPS.get(new_status.get("status_type"))
                if column and not (column == "started_at" and current.get("started_at")):
                    changed[column] = now_iso()
            else:
                statuses = {}

            if changed:
                changed["updated_at"] = now_iso()
                result = self.supabase.table("task_issues")\
                    .update(changed)\
                    .eq("issue_id", issue_id)\
                    .execute()
                if not result.data:
                    raise HTTPException(status_code=404, detail="Issue not found")
                updated = result.data[0]

                if "status_id" in updates and not statuses:
                    statuses = {s["status_id"]: s for s in self._statuses(current["team_id"])}
                priorities = self._priorities() if "priority_id" in changed else {}
                users = self._users([current.get("assignee_id"), changed.get("assignee_id")]) \
                    if "assignee_id" in changed else {}
                for field in (f for f in UPDATABLE_FIELDS if f in changed):
                    self._record_history(
                        issue_id, actor_id, field,
                        self._display_value(field, current.get(field), statuses, priorities, users),
                        self._display_value(field, changed[field], statuses, priorities, users),
                    )

                new_assignee = changed.get("assignee_id")
                if new_assignee and new_assignee != actor_id:
                    send_notification(
                        self.supabase,
                        new_assignee,
                        title="Issue assigned to you",
                        message=f"{issue_identifier(team, current.get('issue_number'))}: {updated.get('title')}",
                        category="task",
                        actor_id=actor_id,
                        entity_id=issue_id,
                    )
            else:
                updated = current

            if label_ids is not None:
                self._set_labels(issue_id, label_ids)
                self._record_history(issue_id, actor_id, "labels", None, ",".join(label_ids))

            return self._enrich([updated], team)[0]
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def archive_issue(self, issue_id: str, actor_id: str) -> bool:
        try:
            self._get_issue_row(issue_id)
            archived_at = now_iso()
            self.supabase.table("task_issues")\
                .update({"archived_at": archived_at, "updated_at": archived_at})\
                .eq("issue_id", issue_id)\
                .execute()
            self._record_history(issue_id, actor_id, "archived_at", None, archived_at)
            return True
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def list_comments(self, issue_id: str) -> List[Dict[str, Any]]:
        try:
            result = self.supabase.table("task_issue_comments")\
                .select("*")\
                .eq("issue_id", issue_id)\
                .is_("deleted_at", "null")\
                .order("created_at")\
                .execute()
            comments = result.data or []
            authors = self._users([c.get("author_id") for c in comments])
            return [{**c, "author": authors.get(c.get("author_id"))} for c in comments]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def add_comment(self, issue_id: str, comment_data: CommentCreate, actor_id: str) -> Dict[str, Any]:
        """Add a comment, log it in the history and tell the assignee and creator"""
        content = comment_data.content.strip()
        if not content:
            raise HTTPException(status_code=400, detail="Content is required")
        try:
            issue = self._get_issue_row(issue_id)
            result = self.supabase.table("task_issue_comments").insert({
                "issue_id": issue_id,
                "author_id": actor_id,
                "content": content,
                "parent_comment_id": comment_data.parent_comment_id,
                "created_at": now_iso(),
            }).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to add comment")

            self._record_history(issue_id, actor_id, "comment", None, content[:200])
            recipients = [u for u in (issue.get("assignee_id"), issue.get("creator_id")) if u and u != actor_id]
            send_bulk_notification(
                self.supabase,
                recipients,
                title="New comment",
                message=f"{issue.get('title')}: {content[:100]}",
                category="task",
                actor_id=actor_id,
                entity_id=issue_id,
            )
            return result.data[0]
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def list_project_issues(self, project_id: str) -> List[Dict[str, Any]]:
        """Non-archived issues of a project, each enriched with its team's identifier"""
        try:
            result = self.supabase.table("task_issues")\
                .select("*")\
                .eq("project_id", project_id)\
                .is_("archived_at", "null")\
                .order("sort_order")\
                .execute()
            issues = result.data or []
            enriched: List[Dict[str, Any]] = []
            by_team: Dict[str, List[Dict[str, Any]]] = {}
            for issue in issues:
                by_team.setdefault(issue["team_id"], []).append(issue)
            for team_id, team_issues in by_team.items():
                enriched.extend(self._enrich(team_issues, self._team(team_id)))
            return enriched
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
