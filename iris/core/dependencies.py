"""
Core dependencies for route protection and permission checking
"""

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from iris.database.supabase_client import get_supabase
from iris.modules.auth.service import AuthService
from iris.config.permissions_config import get_level_permissions
from supabase import Client
from typing import List, Dict, Any
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer()

ADMIN_LEVELS = ("super_admin", "admin")


def _get_request_cache(request: Request) -> Dict[str, Any]:
    """Return request-scoped cache for access data (permission_names, team memberships)."""
    if not hasattr(request.state, "access_cache"):
        request.state.access_cache = {}
    return request.state.access_cache


def get_access_cache(request: Request) -> Dict[str, Any]:
    return _get_request_cache(request)


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_current_token(
    credentials: HTTPAuthorizationCredentials = Security(security)
) -> str:
    """Extract JWT token from Authorization header"""
    return credentials.credentials


def get_current_user_id(
    token: str = Depends(get_current_token),
    auth_service: AuthService = Depends(get_auth_service)
) -> dict:
    """Extract current user info from JWT token"""
    return auth_service.get_current_user(token)


def is_super_user(user_data: dict) -> bool:
    """Check if user holds the super_admin permission level"""
    return user_data.get("permission_level") == "super_admin"


def is_admin(user_data: dict) -> bool:
    return user_data.get("permission_level") in ADMIN_LEVELS


def get_user_permissions(user_data: dict, cache: Dict[str, Any] = None) -> List[str]:
    """Permission names granted by the user's permission level. Populates request-scoped cache when provided."""
    if cache is not None and "permission_names" in cache:
        return cache["permission_names"]
    names = get_level_permissions(user_data.get("permission_level", ""))
    if cache is not None:
        cache["permission_names"] = names
    return names


def require_permission(required_permission: str):
    """Factory function to create permission check dependency"""
    def check_permission(
        request: Request,
        user_data: dict = Depends(get_current_user_id),
    ) -> dict:
        """Dependency to check if user has required permission"""
        if is_super_user(user_data):
            return user_data
        cache = _get_request_cache(request)
        user_permissions = get_user_permissions(user_data, cache)
        if required_permission not in user_permissions:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required: {required_permission}"
            )
        return user_data
    return check_permission


def ensure_self_or_admin(user_data: dict, target_user_id: str):
    if user_data["id"] != target_user_id and not is_admin(user_data):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only access your own data"
        )


def check_team_member(team_id: str, user_data: dict, supabase: Client, cache: Dict[str, Any] = None) -> dict:
    """Allow admins, or members of the team (team_members). Membership answers are cached per request."""
    if is_admin(user_data):
        return user_data
    key = f"team_member:{team_id}"
    if cache is not None and key in cache:
        is_member = cache[key]
    else:
        try:
            member_result = supabase.table("team_members")\
                .select("id")\
                .eq("team_id", team_id)\
                .eq("user_id", user_data["id"])\
                .limit(1)\
                .execute()
            is_member = bool(member_result.data)
        except Exception as e:
            logger.error(f"Error checking team membership: {e}")
            is_member = False
        if cache is not None:
            cache[key] = is_member
    if not is_member:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You must be a member of this team"
        )
    return user_data
