import logging
import time
from datetime import datetime, timedelta, timezone
from supabase import Client
from iris.modules.auth.schemas import LoginRequest, RegisterRequest, TokenResponse, ChangePasswordRequest, ProfileUpdate
from iris.modules.users.service import serialize_user, build_display_name, map_role
from iris.config.settings import settings
from iris.core import security
from iris.core.utils import now_iso, parse_timestamp, escape_like
from fastapi import HTTPException
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

# In-memory cache for get_current_user so parallel requests with the same token decode it once
_AUTH_USER_CACHE: Dict[str, tuple] = {}
_AUTH_CACHE_TTL_SEC = 60
_AUTH_CACHE_MAX_SIZE = 500

# Statuses that may hold a session; pending_verification accounts can sign in until verified
SIGN_IN_STATUSES = ("active", "pending_verification")

PROFILE_FIELDS = (
    "first_name", "last_name_paternal", "last_name_maternal", "display_name", "username",
    "phone_number", "company_role", "department", "timezone", "locale", "avatar_url",
)


def clear_auth_cache():
    _AUTH_USER_CACHE.clear()


class AuthService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _find_account(self, identifier: str) -> Optional[Dict[str, Any]]:
        """Case-insensitive lookup by email, then by username."""
        pattern = escape_like(identifier.strip())
        for column in ("email", "username"):
            result = self.supabase.table("account_users")\
                .select("*")\
                .ilike(column, pattern)\
                .limit(1)\
                .execute()
            if result.data:
                return result.data[0]
        return None

    def _get_account(self, user_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("account_users")\
            .select("*")\
            .eq("user_id", user_id)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    def _record_login(self, identifier: str, user_id: Optional[str], success: bool,
                      ip_address: Optional[str], user_agent: Optional[str],
                      failure_reason: Optional[str] = None):
        try:
            self.supabase.table("auth_login_history").insert({
                "user_id": user_id,
                "identifier": identifier,
                "ip_address": ip_address,
                "user_agent": user_agent,
                "success": success,
                "failure_reason": failure_reason,
                "attempted_at": now_iso(),
            }).execute()
        except Exception as e:
            logger.error(f"Error recording login attempt: {e}")

    def _call_rpc(self, name: str, user_id: str):
        try:
            self.supabase.rpc(name, {"p_user_id": user_id}).execute()
        except Exception as e:
            logger.warning(f"RPC {name} failed for {user_id}: {e}")

    def _create_session(self, account: Dict[str, Any], ip_address: Optional[str],
                        user_agent: Optional[str]) -> TokenResponse:
        """Issue an access/refresh pair and persist their hashes in auth_sessions"""
        token_user = {
            "id": account["user_id"],
            "email": account.get("email"),
            "name": build_display_name(account),
            "role": map_role(account.get("permission_level")),
            "permission_level": account.get("permission_level"),
        }
        access_token = security.create_access_token(token_user)
        refresh_token = security.create_refresh_token(token_user)
        device = security.parse_user_agent(user_agent)
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=settings.refresh_token_ttl_seconds)

        self.supabase.table("auth_sessions").insert({
            "user_id": account["user_id"],
            "token_hash": security.hash_token(access_token),
            "refresh_token_hash": security.hash_token(refresh_token),
            "ip_address": ip_address,
            "user_agent": user_agent,
            "device_type": device["device_type"],
            "browser_name": device["browser_name"],
            "expires_at": expires_at.isoformat(),
            "is_active": True,
            "created_at": now_iso(),
        }).execute()

        return TokenResponse(
            user=serialize_user(account),
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=settings.access_token_ttl_seconds,
        )

    def login(self, login_data: LoginRequest, ip_address: Optional[str] = None,
              user_agent: Optional[str] = None) -> TokenResponse:
        """Authenticate by email or username and open a session"""
        identifier = (login_data.email or login_data.username or "").strip()
        if not identifier or not login_data.password:
            raise HTTPException(status_code=400, detail="Email/username and password are required")
        try:
            account = self._find_account(identifier)
            if not account:
                self._record_login(identifier, None, False, ip_address, user_agent, "user_not_found")
                raise HTTPException(status_code=401, detail="Invalid credentials")

            user_id = account["user_id"]
            locked_until = parse_timestamp(account.get("locked_until"))
            if locked_until and locked_until > datetime.now(timezone.utc):
                self._record_login(identifier, user_id, False, ip_address, user_agent, "account_locked")
                raise HTTPException(
                    status_code=423,
                    detail=f"Account locked until {locked_until.isoformat()}"
                )

            if account.get("account_status") not in SIGN_IN_STATUSES:
                self._record_login(identifier, user_id, False, ip_address, user_agent, "account_inactive")
                raise HTTPException(status_code=403, detail="Account is not active")

            if not security.verify_password(login_data.password, account.get("password_hash")):
                self._call_rpc("handle_failed_login", user_id)
                self._record_login(identifier, user_id, False, ip_address, user_agent, "invalid_password")
                logger.info(f"Failed login for user {user_id}")
                raise HTTPException(status_code=401, detail="Invalid credentials")

            self._call_rpc("reset_failed_login_attempts", user_id)
            update = {"last_login_at": now_iso(), "last_activity_at": now_iso()}
            if security.needs_rehash(account["password_hash"]):
                update["password_hash"] = security.hash_password(login_data.password)
            self.supabase.table("account_users")\
                .update(update)\
                .eq("user_id", user_id)\
                .execute()

            self._record_login(identifier, user_id, True, ip_address, user_agent)
            return self._create_session(account, ip_address, user_agent)
        except HTTPException:
            raise
        except Exception as e:
            logger.exception("Login failed")
            raise HTTPException(status_code=500, detail=f"Login failed: {str(e)}")

    def register(self, register_data: RegisterRequest, ip_address: Optional[str] = None,
                 user_agent: Optional[str] = None) -> TokenResponse:
        """Create a pending_verification account and sign it in"""
        email = register_data.email.lower()
        username = register_data.username.lower()
        try:
            if self._find_account(email):
                raise HTTPException(status_code=409, detail="Email already registered")
            if self._find_account(username):
                raise HTTPException(status_code=409, detail="Username already taken")

            row = {
                "email": email,
                "username": username,
                "first_name": register_data.first_name.strip(),
                "last_name_paternal": register_data.last_name_paternal.strip(),
                "last_name_maternal": (register_data.last_name_maternal or "").strip() or None,
                "password_hash": security.hash_password(register_data.password),
                "permission_level": "user",
                "account_status": "pending_verification",
                "is_email_verified": False,
                "timezone": "America/Mexico_City",
                "locale": "es-MX",
                "created_at": now_iso(),
            }
            row["display_name"] = build_display_name(row)

            result = self.supabase.table("account_users").insert(row).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to register user")
            account = result.data[0]
            logger.info(f"Registered user {account['user_id']}")
            return self._create_session(account, ip_address, user_agent)
        except HTTPException:
            raise
        except Exception as e:
            error_message = str(e)
            if "duplicate" in error_message.lower() or "23505" in error_message:
                raise HTTPException(status_code=409, detail="User already exists")
            raise HTTPException(status_code=500, detail=f"Registration failed: {error_message}")

    def refresh(self, refresh_token: str, ip_address: Optional[str] = None,
                user_agent: Optional[str] = None) -> TokenResponse:
        """Rotate a refresh token: revoke its session and open a new one"""
        payload = security.verify_token(refresh_token, security.REFRESH_TOKEN)
        if not payload:
            raise HTTPException(status_code=401, detail="Invalid or expired refresh token")
        try:
            account = self._get_account(payload["sub"])
            if not account:
                raise HTTPException(status_code=404, detail="User not found")
            if account.get("account_status") not in SIGN_IN_STATUSES:
                raise HTTPException(status_code=403, detail="Account is not active")

            revoked = self.supabase.table("auth_sessions")\
                .update({
                    "is_active": False,
                    "revoked_at": now_iso(),
                    "revoked_reason": "Token refreshed",
                })\
                .eq("refresh_token_hash", security.hash_token(refresh_token))\
                .eq("is_active", True)\
                .execute()
            if not revoked.data:
                raise HTTPException(status_code=401, detail="Session expired or revoked")

            tokens = self._create_session(account, ip_address, user_agent)
            tokens.user = None
            return tokens
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Token refresh failed: {str(e)}")

    def get_current_user(self, token: str) -> Dict[str, Any]:
        """Decode the access token into the current user. Uses short TTL cache keyed by token hash."""
        cache_key = security.hash_token(token)
        now = time.monotonic()
        if cache_key in _AUTH_USER_CACHE:
            user_data, expiry = _AUTH_USER_CACHE[cache_key]
            if now < expiry:
                return user_data
            del _AUTH_USER_CACHE[cache_key]
        payload = security.verify_token(token, security.ACCESS_TOKEN)
        if not payload or not payload.get("sub"):
            raise HTTPException(status_code=401, detail="Invalid or expired token")
        user_data = {
            "id": payload["sub"],
            "email": payload.get("email"),
            "name": payload.get("name"),
            "role": payload.get("role") or map_role(payload.get("permissionLevel")),
            "permission_level": payload.get("permissionLevel") or "viewer",
        }
        if len(_AUTH_USER_CACHE) < _AUTH_CACHE_MAX_SIZE:
            _AUTH_USER_CACHE[cache_key] = (user_data, now + _AUTH_CACHE_TTL_SEC)
        return user_data

    def logout(self, token: str) -> bool:
        """Revoke the session that issued this access token"""
        token_hash = security.hash_token(token)
        _AUTH_USER_CACHE.pop(token_hash, None)
        try:
            result = self.supabase.table("auth_sessions")\
                .update({
                    "is_active": False,
                    "revoked_at": now_iso(),
                    "revoked_reason": "User logout",
                })\
                .eq("token_hash", token_hash)\
                .execute()
            return bool(result.data)
        except Exception as e:
            logger.error(f"Error revoking session: {e}")
            return False

    def get_profile(self, user_id: str) -> Dict[str, Any]:
        try:
            account = self._get_account(user_id)
            if not account:
                raise HTTPException(status_code=404, detail="User not found")
            self.supabase.table("account_users")\
                .update({"last_activity_at": now_iso()})\
                .eq("user_id", user_id)\
                .execute()
            return serialize_user(account)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def update_profile(self, user_id: str, profile: ProfileUpdate) -> Dict[str, Any]:
        """Update the caller's own profile; only PROFILE_FIELDS are writable"""
        updates = {
            k: v for k, v in profile.model_dump(exclude_unset=True).items()
            if k in PROFILE_FIELDS and v is not None
        }
        if not updates:
            raise HTTPException(status_code=400, detail="No valid fields to update")
        try:
            account = self._get_account(user_id)
            if not account:
                raise HTTPException(status_code=404, detail="User not found")

            if "username" in updates:
                updates["username"] = updates["username"].lower()
                taken = self._find_account(updates["username"])
                if taken and taken["user_id"] != user_id:
                    raise HTTPException(status_code=409, detail="Username already taken")

            name_fields = ("first_name", "last_name_paternal", "last_name_maternal")
            if "display_name" not in updates and any(f in updates for f in name_fields):
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

    def change_password(self, user_id: str, data: ChangePasswordRequest) -> bool:
        if data.new_password != data.confirm_password:
            raise HTTPException(status_code=400, detail="Passwords do not match")
        weakness = security.validate_password_strength(data.new_password)
        if weakness:
            raise HTTPException(status_code=400, detail=weakness)
        try:
            account = self._get_account(user_id)
            if not account:
                raise HTTPException(status_code=404, detail="User not found")
            if not security.verify_password(data.current_password, account.get("password_hash")):
                raise HTTPException(status_code=401, detail="Current password is incorrect")
            if security.verify_password(data.new_password, account.get("password_hash")):
                raise HTTPException(status_code=400, detail="New password must be different from the current one")

            self.supabase.table("account_users")\
                .update({
                    "password_hash": security.hash_password(data.new_password),
                    "password_changed_at": now_iso(),
                    "updated_at": now_iso(),
                })\
                .eq("user_id", user_id)\
                .execute()
            logger.info(f"Password changed for user {user_id}")
            return True
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
