import logging
from supabase import Client
from iris.modules.workspaces.schemas import (
    WorkspaceSummary, WorkspaceListResponse, WorkspaceDetail,
    WorkspaceDetailResponse, WorkspaceMemberResponse, WorkspaceMemberUser
)
from iris.modules.users.service import build_display_name
from iris.config.permissions_config import get_workspace_permissions
from typing import List, Dict, Any, Optional
from fastapi import HTTPException

logger = logging.getLogger(__name__)


class WorkspaceService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _membership(self, workspace_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("workspace_members")\
            .select("*")\
            .eq("workspace_id", workspace_id)\
            .eq("user_id", user_id)\
            .eq("is_active", True)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    def list_for_user(self, user_id: str) -> WorkspaceListResponse:
        """Active workspaces the user is an active member of, with the user's role in each"""
        try:
            memberships = self.supabase.table("workspace_members")\
                .select("workspace_id, iris_role")\
                .eq("user_id", user_id)\
                .eq("is_active", True)\
                .execute()
            roles = {m["workspace_id"]: m.get("iris_role") or "member" for m in memberships.data or []}
            if not roles:
                return WorkspaceListResponse(workspaces=[])

            workspaces = self.supabase.table("workspaces")\
                .select("*")\
                .in_("workspace_id", list(roles))\
                .eq("is_active", True)\
                .order("name")\
                .execute()
            return WorkspaceListResponse(workspaces=[
                WorkspaceSummary(
                    id=w["workspace_id"],
                    name=w["name"],
                    slug=w["slug"],
                    logo_url=w.get("logo_url"),
                    brand_color=w.get("brand_color"),
                    description=w.get("description"),
                    role=roles[w["workspace_id"]],
                )
                for w in workspaces.data or []
            ])
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_by_slug(self, slug: str, user_id: str) -> WorkspaceDetailResponse:
        try:
            result = self.supabase.table("workspaces")\
                .select("*")\
                .eq("slug", slug)\
                .eq("is_active", True)\
                .limit(1)\
                .execute()
            if not result.data:
                raise HTTPException(status_code=404, detail="Workspace not found")
            workspace = result.data[0]

            membership = self._membership(workspace["workspace_id"], user_id)
            if not membership:
                raise HTTPException(status_code=403, detail="You do not have access to this workspace")
            role = membership.get("iris_role") or "member"

            return WorkspaceDetailResponse(
                workspace=WorkspaceDetail(
                    id=workspace["workspace_id"],
                    name=workspace["name"],
                    slug=workspace["slug"],
                    logo_url=workspace.get("logo_url"),
                    brand_color=workspace.get("brand_color"),
                    description=workspace.get("description"),
                    settings=workspace.get("settings") or {},
                ),
                user_role=role,
                permissions=get_workspace_permissions(role),
                members=self._members(workspace["workspace_id"]),
            )
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def _members(self, workspace_id: str) -> List[WorkspaceMemberResponse]:
        members = self.supabase.table("workspace_members")\
            .select("*")\
            .eq("workspace_id", workspace_id)\
            .eq("is_active", True)\
            .order("joined_at")\
            .execute()
        rows = members.data or []
        user_ids = [m["user_id"] for m in rows]
        users: Dict[str, Dict[str, Any]] = {}
        if user_ids:
            accounts = self.supabase.table("account_users")\
                .select("user_id, first_name, last_name_paternal, display_name, email, avatar_url")\
                .in_("user_id", user_ids)\
                .execute()
            users = {u["user_id"]: u for u in accounts.data or []}

        result = []
        for m in rows:
            account = users.get(m["user_id"])
            result.append(WorkspaceMemberResponse(
                id=m["member_id"],
                user_id=m["user_id"],
                role=m.get("iris_role") or "member",
                joined_at=m.get("joined_at"),
                user=WorkspaceMemberUser(
                    name=account.get("display_name") or build_display_name(account),
                    email=account.get("email"),
                    avatar=account.get("avatar_url"),
                ) if account else None,
            ))
        return result
