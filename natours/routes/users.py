"""
Natours API — User and Authentication Route Handlers
======================================================

What:  /api/v1/users: signup/login/logout, the password flows, the
       current-user (/me) routes and admin user management.

Session cookie:
    Every route that logs a user in (signup, login, resetPassword,
    updatePassword) answers with the token in the body and in an http-only
    `jwt` cookie. Logout overwrites the cookie with a short-lived dummy value
    because an http-only cookie cannot be deleted by client scripts.
"""

import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from natours.config import settings
from natours.database import get_db_session
from natours.dependencies import LOGGED_OUT, TOKEN_COOKIE, RequestContext, protect, restrict_to
from natours.models.user import Role, User
from natours.routes import API_PREFIX
from natours.schemas.common import Envelope, ErrorResponse, dump, envelope, project_all
from natours.schemas.user import (
    AdminUserUpdate,
    ForgotPasswordRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    UpdateMeRequest,
    UpdatePasswordRequest,
    UserResponse,
)
from natours.services.auth_service import auth_service
from natours.services.credentials import issue_token
from natours.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])

ERROR_RESPONSES = {
    400: {"description": "Invalid input", "model": ErrorResponse},
    401: {"description": "Not logged in or bad credentials", "model": ErrorResponse},
    403: {"description": "Role not allowed", "model": ErrorResponse},
    404: {"description": "User not found", "model": ErrorResponse},
}

admin_only = restrict_to(Role.ADMIN)


def send_token(user: User, response: Response) -> dict:
    token = issue_token(user.id)
    max_age = settings.jwt_cookie_expires_in_days * 24 * 60 * 60
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=max_age,
        expires=datetime.now(timezone.utc) + timedelta(seconds=max_age),
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return envelope(token=token, data={"user": dump(UserResponse.from_model(user))})


# ── Authentication ────────────────────────────────────────────────────────


@router.post(
    "/signup",
    status_code=201,
    responses={201: {"model": Envelope}, **ERROR_RESPONSES},
    summary="Create an account",
)
async def signup(body: SignupRequest, response: Response, db: AsyncSession = Depends(get_db_session)):
    user = await auth_service.signup(db, body)
    return send_token(user, response)


@router.post("/login", responses={200: {"model": Envelope}, **ERROR_RESPONSES}, summary="Log in")
async def login(body: LoginRequest, response: Response, db: AsyncSession = Depends(get_db_session)):
    user = await auth_service.login(db, body)
    return send_token(user, response)


@router.get(
    "/logout",
    responses={200: {"model": Envelope}},
    summary="Log out (clears the session cookie)",
)
async def logout(response: Response):
    response.set_cookie(
        TOKEN_COOKIE,
        LOGGED_OUT,
        max_age=10,
        expires=datetime.now(timezone.utc) + timedelta(seconds=10),
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return envelope()


@router.post(
    "/forgotPassword",
    responses={200: {"model": Envelope}, **ERROR_RESPONSES},
    summary="Email a password reset link",
)
async def forgot_password(
    body: ForgotPasswordRequest,
    request: Request,
    db: AsyncSession = Depends(get_db_session),
):
    reset_url = f"{request.base_url}{API_PREFIX.lstrip('/')}/users/resetPassword/"
    await auth_service.forgot_password(db, body.email, reset_url)
    return envelope(message="Token sent to email!")


@router.patch(
    "/resetPassword/{token}",
    responses={200: {"model": Envelope}, **ERROR_RESPONSES},
    summary="Set a new password with a reset token",
)
async def reset_password(
    token: str,
    body: ResetPasswordRequest,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
):
    user = await auth_service.reset_password(db, token, body)
    return send_token(user, response)


@router.patch(
    "/updatePassword",
    responses={200: {"model": Envelope}, **ERROR_RESPONSES},
    summary="Change the current user's password",
)
async def update_password(
    body: UpdatePasswordRequest,
    response: Response,
    context: RequestContext = Depends(protect),
    db: AsyncSession = Depends(get_db_session),
):
    user = await auth_service.update_password(db, context.user, body)
    return send_token(user, response)


# ── Current user ──────────────────────────────────────────────────────────


@router.get(
    "/me",
    responses={200: {"model": Envelope}, **ERROR_RESPONSES},
    summary="The logged-in user",
)
async def get_me(context: RequestContext = Depends(protect)):
    return envelope(data={"user": dump(UserResponse.from_model(context.user))})


@router.patch(
    "/updateMe",
    responses={200: {"model": Envelope}, **ERROR_RESPONSES},
    summary="Update name, email or photo",
)
async def update_me(
    body: UpdateMeRequest,
    context: RequestContext = Depends(protect),
    db: AsyncSession = Depends(get_db_session),
):
    user = await user_service.update_me(db, context.user, body)
    return envelope(data={"user": dump(UserResponse.from_model(user))})


@router.delete(
    "/deleteMe",
    status_code=204,
    responses=ERROR_RESPONSES,
    summary="Deactivate the current account",
)
async def delete_me(
    context: RequestContext = Depends(protect),
    db: AsyncSession = Depends(get_db_session),
):
    await user_service.deactivate(db, context.user)
    return Response(status_code=204)


# ── Administration ────────────────────────────────────────────────────────


@router.get(
    "",
    responses={200: {"model": Envelope}, **ERROR_RESPONSES},
    summary="List active users",
    dependencies=[Depends(admin_only)],
)
async def list_users(request: Request, db: AsyncSession = Depends(get_db_session)):
    users, projection = await user_service.get_all(db, request.query_params)
    items = project_all([UserResponse.from_model(u) for u in users], projection)
    return envelope(results=len(items), data={"users": items})


@router.post(
    "",
    status_code=500,
    responses={500: {"model": ErrorResponse}},
    summary="Not supported, use /signup",
)
async def create_user():
    return JSONResponse(
        status_code=500,
        content={
            "status": "error",
            "message": "This route is not defined! Please use /signup instead",
        },
    )


@router.get(
    "/{user_id}",
    responses={200: {"model": Envelope}, **ERROR_RESPONSES},
    summary="Get a user",
    dependencies=[Depends(protect)],
)
async def get_user(user_id: UUID, db: AsyncSession = Depends(get_db_session)):
    user = await user_service.get_one(db, user_id)
    return envelope(data={"user": dump(UserResponse.from_model(user))})


@router.patch(
    "/{user_id}",
    responses={200: {"model": Envelope}, **ERROR_RESPONSES},
    summary="Update a user (not their password)",
    dependencies=[Depends(admin_only)],
)
async def update_user(
    user_id: UUID,
    body: AdminUserUpdate,
    db: AsyncSession = Depends(get_db_session),
):
    user = await user_service.update(db, user_id, body.model_dump(exclude_unset=True))
    return envelope(data={"user": dump(UserResponse.from_model(user))})


@router.delete(
    "/{user_id}",
    status_code=204,
    responses=ERROR_RESPONSES,
    summary="Delete a user",
    dependencies=[Depends(admin_only)],
)
async def delete_user(user_id: UUID, db: AsyncSession = Depends(get_db_session)):
    await user_service.delete(db, user_id)
    return Response(status_code=204)
