"""
Natours API — Credentials
===========================

Session tokens, password hashes and password-reset tokens.

Tokens:
    HS256 JWTs carrying `{id, iat, exp}`. `iat` is a float timestamp so a
    password change in the same second as a login still invalidates tokens
    issued before it.
Passwords:
    bcrypt with `BCRYPT_ROUNDS` work factor. Hashing is CPU-bound; async
    callers run these functions in a worker thread.
    bcrypt only reads 72 bytes of input; longer passwords are refused by the
    request schemas and never match on login.
Reset tokens:
    32 random bytes as hex, mailed to the user once. Only the SHA-256 digest
    is stored, with an expiry `PASSWORD_RESET_EXPIRES_MINUTES` from now.
"""

import hashlib
import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Union

import bcrypt
import jwt

from natours.config import settings
from natours.exceptions import AuthenticationError, ConfigurationError

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
BCRYPT_MAX_BYTES = 72


def _secret() -> str:
    if not settings.jwt_secret:
        raise ConfigurationError("JWT_SECRET is not configured.")
    return settings.jwt_secret


# ── Session tokens ────────────────────────────────────────────────────────


def issue_token(user_id: Union[uuid.UUID, str], now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    expires = now + timedelta(days=settings.jwt_expires_in_days)
    payload = {
        "id": str(user_id),
        "iat": now.timestamp(),
        "exp": int(expires.timestamp()),
    }
    return jwt.encode(payload, _secret(), algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> Dict[str, Any]:
    """
    Decode and verify a session token.

    Raises:
        AuthenticationError: bad signature, malformed token, or expired
    """
    try:
        return jwt.decode(
            token,
            _secret(),
            algorithms=[JWT_ALGORITHM],
            options={"require": ["id", "iat", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Your token has expired! Please log in again.")
    except jwt.PyJWTError as e:
        logger.debug("Rejected session token: %s", e)
        raise AuthenticationError("Invalid token. Please log in again!")


# ── Passwords ─────────────────────────────────────────────────────────────


def hash_password(plain: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def compare_password(plain: str, hashed: str) -> bool:
    encoded = plain.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        logger.warning("Password comparison against a malformed hash")
        return False


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def password_changed_after(user, issued_at: float) -> bool:
    """True when the user's password changed after a token issued at `issued_at`."""
    if user.password_changed_at is None:
        return False
    return _as_utc(user.password_changed_at).timestamp() > issued_at


# ── Password reset tokens ─────────────────────────────────────────────────


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_reset_token(user, now: Optional[datetime] = None) -> str:
    """Store a fresh reset token's digest and expiry on `user`; return the plaintext."""
    now = now or datetime.now(timezone.utc)
    token = secrets.token_hex(32)
    user.password_reset_token = hash_reset_token(token)
    user.password_reset_expires = now + timedelta(minutes=settings.password_reset_expires_minutes)
    return token


def reset_token_valid(user, now: Optional[datetime] = None) -> bool:
    if user.password_reset_expires is None:
        return False
    now = now or datetime.now(timezone.utc)
    return _as_utc(user.password_reset_expires) > now


def clear_reset_token(user) -> None:
    user.password_reset_token = None
    user.password_reset_expires = None
