"""
Unit tests for password hashing and token handling.
"""

import base64
import hashlib
import os
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from iris.config.settings import settings
from iris.core import security


def legacy_hash(password: str, iterations: int = 1000) -> str:
    salt = os.urandom(security.LEGACY_SALT_BYTES)
    key = hashlib.pbkdf2_hmac("sha256", password.encode(), salt, iterations, dklen=32)
    return f"$pbkdf2${iterations}${base64.b64encode(salt + key).decode()}"


USER = {"id": "user-1", "email": "ana@iris.test", "name": "Ana", "role": "member", "permission_level": "user"}


@pytest.mark.unit
class TestPasswords:
    """Password hashing, verification and upgrade detection."""

    def test_hash_and_verify(self):
        hashed = security.hash_password("Secret123")
        assert hashed != "Secret123"
        assert security.verify_password("Secret123", hashed) is True
        assert security.verify_password("secret123", hashed) is False

    def test_legacy_pbkdf2_hash_still_verifies(self):
        stored = legacy_hash("Secret123")
        assert security.verify_password("Secret123", stored) is True
        assert security.verify_password("Wrong123", stored) is False
        assert security.needs_rehash(stored) is True

    def test_current_hash_does_not_need_rehash(self):
        assert security.needs_rehash(security.hash_password("Secret123")) is False

    @pytest.mark.parametrize("stored", [None, "", "plaintext", "$pbkdf2$abc$%%%", "!unusable"])
    def test_unknown_or_malformed_hash_is_rejected(self, stored):
        assert security.verify_password("Secret123", stored) is False

    @pytest.mark.parametrize("password,message", [
        ("Ab1", "at least 8"),
        ("abcdefg1", "uppercase"),
        ("ABCDEFG1", "lowercase"),
        ("Abcdefgh", "number"),
    ])
    def test_password_strength(self, password, message):
        assert message in security.validate_password_strength(password)

    def test_strong_password_passes(self):
        assert security.validate_password_strength("Abcdefg1") is None


@pytest.mark.unit
class TestTokens:
    """JWT issuing and verification."""

    def test_access_token_round_trip(self):
        payload = security.verify_token(security.create_access_token(USER))
        assert payload["sub"] == "user-1"
        assert payload["permissionLevel"] == "user"
        assert payload["type"] == security.ACCESS_TOKEN

    def test_token_type_is_enforced(self):
        refresh = security.create_refresh_token(USER)
        assert security.verify_token(refresh, security.ACCESS_TOKEN) is None
        assert security.verify_token(refresh, security.REFRESH_TOKEN)["sub"] == "user-1"

    def test_tokens_are_unique_per_issue(self):
        assert security.create_access_token(USER) != security.create_access_token(USER)

    def test_expired_token_is_rejected(self):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "user-1", "type": "access", "iat": now - timedelta(hours=2), "exp": now - timedelta(hours=1)},
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )
        assert security.verify_token(token) is None

    def test_wrong_signature_is_rejected(self):
        token = jwt.encode({"sub": "user-1", "type": "access"}, "another-secret", algorithm="HS256")
        assert security.verify_token(token) is None

    def test_hash_token_is_stable(self):
        assert security.hash_token("abc") == hashlib.sha256(b"abc").hexdigest()


@pytest.mark.unit
class TestUserAgent:

    @pytest.mark.parametrize("user_agent,device,browser", [
        ("Mozilla/5.0 (Windows NT 10.0) Chrome/120.0 Safari/537.36", "desktop", "Chrome"),
        ("Mozilla/5.0 (Windows NT 10.0) Chrome/120.0 Edg/120.0", "desktop", "Edge"),
        ("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0) Mobile Safari/604.1", "mobile", "Safari"),
        ("Mozilla/5.0 (iPad; CPU OS 17_0) Safari/604.1", "tablet", "Safari"),
        ("Mozilla/5.0 (X11; Linux) Firefox/121.0", "desktop", "Firefox"),
        (None, "desktop", "Unknown"),
    ])
    def test_parse_user_agent(self, user_agent, device, browser):
        assert security.parse_user_agent(user_agent) == {"device_type": device, "browser_name": browser}
