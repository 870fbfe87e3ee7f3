"""
Password hashing and token primitives for IRIS authentication.

New passwords are hashed with passlib's pbkdf2_sha256. Accounts created before
the move to passlib carry either the legacy IRIS PBKDF2 format
``$pbkdf2$<iterations>$<base64(salt || key)>`` or a bcrypt hash; both still
verify, and ``needs_rehash`` tells the login flow to upgrade them.

Tokens are HS256 JWTs signed with ``settings.jwt_secret``.
"""

import base64
import binascii
import hashlib
import hmac
import logging
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext

from iris.config.settings import settings

logger = logging.getLogger(__name__)

pwd_context = CryptContext(
    schemes=["pbkdf2_sha256", "bcrypt"],
    deprecated=["bcrypt"],
    pbkdf2_sha256__default_rounds=settings.pbkdf2_iterations,
)

LEGACY_PBKDF2_PREFIX = "$pbkdf2$"
LEGACY_SALT_BYTES = 16

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


def hash_password(password: str) -> str:
    """Hash a password with PBKDF2-SHA256."""
    return pwd_context.hash(password)


def _verify_legacy_pbkdf2(password: str, stored_hash: str) -> bool:
    parts = stored_hash.split("$")
    # ["", "pbkdf2", "<iterations>", "<b64>"]
    if len(parts) != 4:
        return False
    try:
        iterations = int(parts[2])
        raw = base64.b64decode(parts[3], validate=True)
    except (ValueError, binascii.Error):
        return False
    if len(raw) <= LEGACY_SALT_BYTES:
        return False
    salt, expected = raw[:LEGACY_SALT_BYTES], raw[LEGACY_SALT_BYTES:]
    derived = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations, dklen=len(expected))
    return hmac.compare_digest(derived, expected)


def verify_password(password: str, stored_hash: Optional[str]) -> bool:
    """
    Verify a plain text password against a stored hash.

    Unknown or malformed hash formats verify as False instead of raising.
    """
    if not password or not stored_hash:
        return False
    if stored_hash.startswith(LEGACY_PBKDF2_PREFIX):
        return _verify_legacy_pbkdf2(password, stored_hash)
    if pwd_context.identify(stored_hash) is None:
        return False
    try:
        return pwd_context.verify(password, stored_hash)
    except ValueError:
        logger.warning("Malformed password hash encountered")
        return False


def needs_rehash(stored_hash: str) -> bool:
    if stored_hash.startswith(LEGACY_PBKDF2_PREFIX):
        return True
    try:
        return pwd_context.needs_update(stored_hash)
    except ValueError:
        return False


def validate_password_strength(password: str) -> Optional[str]:
    """Return an error message when the password is too weak, else None."""
    if len(password) < 8:
        return "Password must be at least 8 characters"
    if not re.search(r"[A-Z]", password):
        return "Password must contain an uppercase letter"
    if not re.search(r"[a-z]", password):
        return "Password must contain a lowercase letter"
    if not re.search(r"\d", password):
        return "Password must contain a number"
    return None


def _create_token(user: Dict[str, Any], token_type: str, ttl_seconds: int) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user["id"],
        "email": user.get("email"),
        "name": user.get("name"),
        "role": user.get("role"),
        "permissionLevel": user.get("permission_level"),
        "type": token_type,
        "jti": uuid.uuid4().hex,
        "iat": now,
        "exp": now + timedelta(seconds=ttl_seconds),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_access_token(user: Dict[str, Any]) -> str:
    return _create_token(user, ACCESS_TOKEN, settings.access_token_ttl_seconds)


def create_refresh_token(user: Dict[str, Any]) -> str:
    return _create_token(user, REFRESH_TOKEN, settings.refresh_token_ttl_seconds)


def verify_token(token: str, expected_type: str = ACCESS_TOKEN) -> Optional[Dict[str, Any]]:
    """Decode a token. Returns None when the signature, expiry or token type is wrong."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.InvalidTokenError:
        return None
    if payload.get("type") != expected_type:
        return None
    return payload


def hash_token(token: str) -> str:
    """SHA-256 hex digest stored in auth_sessions instead of the raw token."""
    return hashlib.sha256(token.encode()).hexdigest()


def parse_user_agent(user_agent: Optional[str]) -> Dict[str, str]:
    ua = (user_agent or "").lower()
    if "ipad" in ua or "tablet" in ua:
        device_type = "tablet"
    elif "mobile" in ua or "android" in ua or "iphone" in ua:
        device_type = "mobile"
    else:
        device_type = "desktop"

    if "edg/" in ua:
        browser = "Edge"
    elif "opr/" in ua or "opera" in ua:
        browser = "Opera"
    elif "chrome" in ua:
        browser = "Chrome"
    elif "firefox" in ua:
        browser = "Firefox"
    elif "safari" in ua:
        browser = "Safari"
    else:
        browser = "Unknown"
    return {"device_type": device_type, "browser_name": browser}
