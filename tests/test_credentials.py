"""
Natours API — Credential Helper Tests
=======================================

What we test:
    ✅ Session tokens: claims, expiry, tampering, missing secret
    ✅ bcrypt hashing and comparison (including malformed hashes)
    ✅ Password-changed-after check against a token's iat
    ✅ Reset tokens: only the digest is stored, expiry is enforced
"""

import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import patch

import jwt
import pytest

from natours.config import settings
from natours.exceptions import AuthenticationError, ConfigurationError
from natours.services.credentials import (
    JWT_ALGORITHM,
    clear_reset_token,
    compare_password,
    create_reset_token,
    hash_password,
    hash_reset_token,
    issue_token,
    password_changed_after,
    reset_token_valid,
    verify_token,
)


class TestSessionTokens:
    def test_round_trip_claims(self):
        user_id = uuid.uuid4()
        now = datetime.now(timezone.utc)
        claims = verify_token(issue_token(user_id, now=now))
        assert claims["id"] == str(user_id)
        assert claims["iat"] == pytest.approx(now.timestamp())
        assert claims["exp"] == int((now + timedelta(days=settings.jwt_expires_in_days)).timestamp())

    def test_expired_token(self):
        long_ago = datetime.now(timezone.utc) - timedelta(days=settings.jwt_expires_in_days + 1)
        token = issue_token(uuid.uuid4(), now=long_ago)
        with pytest.raises(AuthenticationError) as exc_info:
            verify_token(token)
        assert exc_info.value.message == "Your token has expired! Please log in again."

    def test_wrong_signature(self):
        token = jwt.encode(
            {"id": str(uuid.uuid4()), "iat": 0, "exp": 4102444800},
            "some-other-secret",
            algorithm=JWT_ALGORITHM,
        )
        with pytest.raises(AuthenticationError) as exc_info:
            verify_token(token)
        assert exc_info.value.message == "Invalid token. Please log in again!"

    def test_missing_id_claim(self):
        token = jwt.encode({"iat": 0, "exp": 4102444800}, settings.jwt_secret, algorithm=JWT_ALGORITHM)
        with pytest.raises(AuthenticationError):
            verify_token(token)

    def test_garbage(self):
        with pytest.raises(AuthenticationError):
            verify_token("not.a.token")

    def test_missing_secret(self):
        with patch.object(settings, "jwt_secret", ""):
            with pytest.raises(ConfigurationError):
                issue_token(uuid.uuid4())


class TestPasswords:
    def test_hash_and_compare(self):
        hashed = hash_password("pass1234")
        assert hashed != "pass1234"
        assert hashed.startswith("$2")
        assert compare_password("pass1234", hashed)
        assert not compare_password("pass12345", hashed)

    def test_malformed_hash_does_not_match(self):
        assert compare_password("pass1234", "plaintext-in-the-column") is False

    def test_password_over_72_bytes_never_matches(self):
        hashed = hash_password("pass1234")
        assert compare_password("\u00e9" * 40, hashed) is False

    def test_password_changed_after(self):
        changed = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        user = SimpleNamespace(password_changed_at=changed)
        assert password_changed_after(user, changed.timestamp() - 1)
        assert not password_changed_after(user, changed.timestamp() + 1)

    def test_naive_timestamps_are_utc(self):
        user = SimpleNamespace(password_changed_at=datetime(2024, 1, 1, 12, 0))
        issued = datetime(2024, 1, 1, 11, 59, tzinfo=timezone.utc).timestamp()
        assert password_changed_after(user, issued)

    def test_never_changed(self):
        user = SimpleNamespace(password_changed_at=None)
        assert not password_changed_after(user, 0)


class TestResetTokens:
    def test_only_digest_is_stored(self):
        user = SimpleNamespace(password_reset_token=None, password_reset_expires=None)
        now = datetime.now(timezone.utc)
        token = create_reset_token(user, now=now)

        assert len(token) == 64
        assert user.password_reset_token == hash_reset_token(token)
        assert user.password_reset_token != token
        assert user.password_reset_expires == now + timedelta(
            minutes=settings.password_reset_expires_minutes
        )

    def test_expiry(self):
        user = SimpleNamespace(password_reset_token=None, password_reset_expires=None)
        now = datetime.now(timezone.utc)
        create_reset_token(user, now=now)
        assert reset_token_valid(user, now=now + timedelta(minutes=1))
        assert not reset_token_valid(
            user, now=now + timedelta(minutes=settings.password_reset_expires_minutes + 1)
        )

    def test_clear(self):
        user = SimpleNamespace(password_reset_token=None, password_reset_expires=None)
        create_reset_token(user)
        clear_reset_token(user)
        assert user.password_reset_token is None
        assert not reset_token_valid(user)
