"""
Natours API — Authentication and Authorization Dependencies
=============================================================

What:  FastAPI dependencies that turn a request into an authenticated
       `RequestContext` and check its role.
How:   Per request:

           UNAUTHENTICATED ──token valid, user active, password unchanged──▶ AUTHENTICATED
           AUTHENTICATED   ──role ∈ allowed──▶ AUTHORIZED     (otherwise 403)

       Any failed step on the way to AUTHENTICATED is a 401 with its own
       message. The token is read from `Authorization: Bearer …` first and
       from the `jwt` cookie otherwise.

Usage:
    @router.get("/me")
    async def get_me(context: RequestContext = Depends(protect)): ...

    @router.delete("/{id}", dependencies=[Depends(restrict_to(Role.ADMIN))])
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from natours.database import get_db_session
from natours.exceptions import AuthenticationError, AuthorizationError
from natours.middleware.request_id import get_request_id
from natours.models.user import Role, User
from natours.services.credentials import password_changed_after, verify_token
from natours.services.user_service import active_users

TOKEN_COOKIE = "jwt"
LOGGED_OUT = "loggedout"


@dataclass(frozen=True)
class RequestContext:
    """Request-scoped state handed to route handlers explicitly."""

    user: User
    request_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    request_id: str = ""


def extract_token(request: Request) -> Optional[str]:
    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    cookie = request.cookies.get(TOKEN_COOKIE)
    if cookie and cookie != LOGGED_OUT:
        return cookie
    return None


async def protect(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> RequestContext:
    token = extract_token(request)
    if token is None:
        raise AuthenticationError()

    claims = verify_token(token)
    try:
        user_id = uuid.UUID(str(claims["id"]))
    except ValueError:
        raise AuthenticationError("Invalid token. Please log in again!")

    user = (
        await db.execute(active_users(select(User)).where(User.id == user_id))
    ).scalar_one_or_none()
    if user is None:
        raise AuthenticationError("The user belonging to this token no longer exists.")

    if password_changed_after(user, claims["iat"]):
        raise AuthenticationError("User recently changed password! Please log in again.")

    return RequestContext(user=user, request_id=get_request_id())


def restrict_to(*roles: Role):
    """Dependency factory: 403 unless the authenticated user's role is one of `roles`."""
    allowed = frozenset(roles)

    async def check_role(context: RequestContext = Depends(protect)) -> RequestContext:
        if context.user.role_enum not in allowed:
            raise AuthorizationError()
        return context

    return check_role
