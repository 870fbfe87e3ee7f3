import logging
import math
import time
from supabase import Client
from iris.modules.users.schemas import UserCreate, UserUpdate, UserListResponse, Pagination, AvatarUploadResponse
from iris.config.permissions_config import PERMISSION_LEVELS
from iris.config.settings import settings
from iris.core import security
from iris.core.utils import now_iso, escape_like, sanitize_search, clamp_page_size
from typing import Dict, Any, Optional
from fastapi import HTTPException

logger = logging.getLogger(__name__)

ROLE_BY_LEVEL = {
    "super_admin": "admin",
    "admin": "admin",
    "manager": "user",
    "user": "user",
}

ACCOUNT_STATUSES = ("active", "pending_verification", "suspended", "inactive", "deleted")

AVATAR_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}

PRIVATE_FIELDS = ("password_hash",)


def map_role(permission_level: Optional[str]) -> str:
    """Collapse permission levels to the role the frontend understands"""
    return ROLE_BY_LEVEL.get(permission_level or "", "guest")


def build_display_name(account: Dict[str, Any]) -> str:
    parts = [account.get("first_name"), account.get("last_name_paternal"), account.get("last_name_maternal")]
    name = " ".join(p.strip() for p in parts if p and p.strip())
    return name or account.get("username") or account.get("email") or ""


def serialize_user(account: Dict[str, Any]) -> Dict[str, Any]:
    """Public shape of an account row; never exposes password_hash"""
    data = {k: v for k, v in account.items() if k not in PRIVATE_FIELDS}
    data["id"] = account.get("user_id")
    data["name"] = account.get("display_name") or build_display_name(account)
    data["role"] = map_role(account.get("permission_level"))
    return data


class UserService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _get_account(self, user_id: str) -> Dict[str, Any]:
        result = self.supabase.table("account_users")\
            .select("*")\
            .eq("user_id", user_id)\
            .neq("account_status", "deleted")\
            .limit(1)\
            .execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="User not found")
        return result.data[0]

    def _is_taken(self, column: str, value: str, exclude_user_id: Optional[str] = None) -> bool:
        query = self.supabase.table("account_users")\
            .select("user_id")\
            .ilike(column, escape_like(value))
        if exclude_user_id:
            query = query.neq("user_id", exclude_user_id)
        result = query.limit(1).execute()
        return bool(result.data)

    def list_users(
        self,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        status: Optional[str] = None,
        role: Optional[str] = None,
    ) -> UserListResponse:
        """Paginated account list; deleted accounts are never listed"""
        try:
            page = max(page or 1, 1)
            limit = clamp_page_size(limit, settings.default_page_size, settings.max_page_size)
            offset = (page - 1) * limit

            query = self.supabase.table("account_users")\
                .select("*", count="exact")\
                .neq("account_status", "deleted")
            term = sanitize_search(search) if search else ""
            if term:
                query = query.or_(
                    f"first_name.ilike.%{term}%,last_name_paternal.ilike.%{term}%,"
                    f"email.ilike.%{term}%,username.ilike.%{term}%,display_name.ilike.%{term}%"
                )
            if status and status != "all":
                query = query.eq("account_status", status)
            if role and role != "all":
                query = query.eq("permission_level", role)

            result = query.order("created_at", desc=True)\
                .range(offset, offset + limit - 1)\
                .execute()

            total = result.count if result.count is not None else len(result.data)
            return UserListResponse(
                users=[serialize_user(u) for u in result.data],
                pagination=Pagination(
                    page=page,
                    limit=limit,
                    total=total,
                    total_pages=math.ceil(total / limit) if total else 0,
                ),
            )
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_user(self, user_id: str) -> Dict[str, Any]:
        try:
            return serialize_user(self._get_account(user_id))
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def create_user(self, user_data: UserCreate, acting_user: Dict[str, Any]) -> Dict[str, Any]:
        """Admin-created accounts start active and verified"""
        if user_data.permission_level not in PERMISSION_LEVELS:
            raise HTTPException(status_code=400, detail=f"Invalid permission level: {user_data.permission_level}")
        if user_data.permission_level == "super_admin" and acting_user.get("permission_level") != "super_admin":
            raise HTTPException(status_code=403, detail="Only super admins can create super admins")
        email = user_data.email.lower()
        username = user_data.username.lower()
        try:
            if self._is_taken("email", email):
                raise HTTPException(status_code=409, detail="Email already registered")
            if self._is_taken("username", username):
                raise HTTPException(status_code=409, detail="Username already taken")

            row = user_data.model_dump(exclude={"password", "email", "username"})
            row.update({
                "email": email,
                "username": username,
                "password_hash": security.hash_password(user_data.password),
                "account_status": "active",
                "is_email_verified": True,
                "created_at": now_iso(),
            })
            row["display_name"] = build_display_name(row)

            result = self.supabase.table("account_users").insert(row).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create user")
            logger.info(f"User {result.data[0]['user_id']} created by {acting_user['id']}")
            return serialize_user(result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def update_user(self, user_id: str, user_data: UserUpdate, acting_user: Dict[str, Any]) -> Dict[str, Any]:
        updates = user_data.model_dump(exclude_unset=True, exclude_none=True)
        if not updates:
            raise HTTPException(status_code=400, detail="No valid fields to update")
        if "permission_level" in updates and updates["permission_level"] not in PERMISSION_LEVELS:
            raise HTTPException(status_code=400, detail=f"Invalid permission level: {updates['permission_level']}")
        if "account_status" in updates and updates["account_status"] not in ACCOUNT_STATUSES:
            raise HTTPException(status_code=400, detail=f"Invalid account status: {updates['account_status']}")
        try:
            account = self._get_account(user_id)
            acting_is_super = acting_user.get("permission_level") == "super_admin"
            if not acting_is_super and (
                account.get("permission_level") == "super_admin" or updates.get("permission_level") == "super_admin"
            ):
                raise HTTPException(status_code=403, detail="Only super admins can modify super admins")

            if "email" in updates:
                updates["email"] = updates["email"].lower()
                if self._is_taken("email", updates["email"], exclude_user_id=user_id):
                    raise HTTPException(status_code=409, detail="Email already registered")
            if "username" in updates:
                updates["username"] = updates["username"].lower()
                if self._is_taken("username", updates["username"], exclude_user_id=user_id):
                    raise HTTPException(status_code=409, detail="Username already taken")

            password = updates.pop("password", None)
            if password:
                updates["password_hash"] = security.hash_password(password)
                updates["password_changed_at"] = now_iso()
            if "display_name" not in updates:
                updates["display_name"] = build_display_name({**account, **updates})
            updates["updated_at"] = now_iso()

            result = self.supabase.table("account_users")\
                .update(updates)\
                .eq("user_id", user_id)\
                .execute()
            if not result.data:
                raise HTTPException(status_code=404, detail="User not found")
            return serialize_user(result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def delete_user(self, user_id: str, acting_user: Dict[str, Any]) -> bool:
        """Soft delete: mark the account deleted and revoke every session"""
        try:
            account = self._get_account(user_id)
            if account.get("permission_level") == "super_admin":
                raise HTTPException(status_code=403, detail="Super admin accounts cannot be deleted")
            if user_id == acting_user["id"]:
                raise HTTPException(status_code=400, detail="You cannot delete your own account")

            self.supabase.table("account_users")\
                .update({"account_status": "deleted", "updated_at": now_iso()})\
                .eq("user_id", user_id)\
                .execute()
            self.supabase.table("auth_sessions")\
                .update({
                    "is_active": False,
                    "revoked_at": now_iso(),
                    "revoked_reason": "User deleted",
                })\
                .eq("user_id", user_id)\
                .eq("is_active", True)\
                .execute()
            logger.info(f"User {user_id} deleted by {acting_user['id']}")
            return True
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def upload_avatar(self, user_id: str, content_type: str, content: bytes) -> AvatarUploadResponse:
        """Store the avatar at {user_id}/avatar.{ext}, replacing earlier files, then point the profile at it"""
        extension = AVATAR_TYPES.get((content_type or "").lower())
        if not extension:
            raise HTTPException(status_code=400, detail="Invalid file type. Allowed: JPEG, PNG, GIF, WEBP")
        if len(content) > settings.avatar_max_bytes:
            raise HTTPException(status_code=400, detail="File too large. Maximum size is 5MB")
        if not content:
            raise HTTPException(status_code=400, detail="Empty file")

        bucket = self.supabase.storage.from_(settings.avatar_bucket)
        path = f"{user_id}/avatar.{extension}"
        try:
            existing = bucket.list(user_id) or []
            old_paths = [f"{user_id}/{f['name']}" for f in existing if f.get("name")]
            if old_paths:
                bucket.remove(old_paths)
            bucket.upload(path, content, {"content-type": content_type, "upsert": "true"})
        except Exception as e:
            logger.error(f"Avatar upload failed for {user_id}: {e}")
            raise HTTPException(status_code=500, detail=f"Upload failed: {str(e)}")

        avatar_url = f"{bucket.get_public_url(path)}?t={int(time.time())}"
        try:
            result = self.supabase.table("account_users")\
                .update({"avatar_url": avatar_url, "updated_at": now_iso()})\
                .eq("user_id", user_id)\
                .execute()
            profile_updated = bool(result.data)
        except Exception as e:
            logger.error(f"Avatar stored but profile update failed for {user_id}: {e}")
            profile_updated = False
        return AvatarUploadResponse(avatar_url=avatar_url, path=path, profile_updated=profile_updated)
