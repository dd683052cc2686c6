"""
Natours API — Authentication Service
======================================

What:  Signup, login and the three password flows (forgot, reset, update).
Who:   Called by the /users auth routes, which turn the returned user into a
       session token and cookie.

Password-reset flow:
    1. forgotPassword: a reset token is generated, its SHA-256 digest and a
       10-minute expiry are stored, and the plaintext is mailed as a link.
       If the mail cannot be delivered the stored token is cleared again.
    2. resetPassword/{token}: the digest of the presented token is looked up;
       a match that has not expired gets the new password and the token is
       cleared, so it works exactly once.
"""

import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from natours.exceptions import (
    AuthenticationError,
    EmailDeliveryError,
    NotFoundError,
    ValidationError,
)
from natours.models.user import User
from natours.schemas.user import (
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    UpdatePasswordRequest,
)
from natours.services.credentials import (
    clear_reset_token,
    compare_password,
    create_reset_token,
    hash_reset_token,
    reset_token_valid,
)
from natours.services.email_service import email_service
from natours.services.user_service import active_users, user_service

logger = logging.getLogger(__name__)


class AuthService:
    async def signup(self, db: AsyncSession, body: SignupRequest) -> User:
        # Role is never taken from the signup body
        user = await user_service.create(
            db,
            {"name": body.name, "email": body.email, "password": body.password},
        )
        logger.info("New user signed up: %s", user.id)
        return user

    async def login(self, db: AsyncSession, body: LoginRequest) -> User:
        if not body.email or not body.password:
            raise ValidationError("Please provide email and password!")

        user = await user_service.find_by_email(db, body.email)
        password_ok = user is not None and await asyncio.to_thread(
            compare_password, body.password, user.password
        )
        if not password_ok:
            raise AuthenticationError("Incorrect email or password")
        return user

    async def forgot_password(self, db: AsyncSession, email: str, reset_url: str) -> None:
        """
        Mail a reset link to `email`.

        Args:
            reset_url: Link prefix; the plaintext token is appended to it
        """
        user = await user_service.find_by_email(db, email)
        if user is None:
            raise NotFoundError(message="There is no user with that email address.")

        token = create_reset_token(user)
        await db.commit()

        message = (
            "Forgot your password? Submit a PATCH request with your new password "
            f"and passwordConfirm to: {reset_url}{token}\n"
            "If you didn't forget your password, please ignore this email!"
        )
        try:
            await email_service.send(
                to=user.email,
                subject="Your password reset token (valid for 10 min)",
                text=message,
            )
        except EmailDeliveryError:
            clear_reset_token(user)
            await db.commit()
            raise

    async def reset_password(self, db: AsyncSession, token: str, body: ResetPasswordRequest) -> User:
        statement = active_users(select(User)).where(
            User.password_reset_token == hash_reset_token(token)
        )
        user = (await db.execute(statement)).scalar_one_or_none()
        if user is None or not reset_token_valid(user):
            raise ValidationError("Token is invalid or has expired")

        clear_reset_token(user)
        return await user_service.change_password(db, user, body.password)

    async def update_password(self, db: AsyncSession, user: User, body: UpdatePasswordRequest) -> User:
        current_ok = await asyncio.to_thread(compare_password, body.password_current, user.password)
        if not current_ok:
            raise AuthenticationError("Your current password is wrong.")
        return await user_service.change_password(db, user, body.password)


# Singleton instance
auth_service = AuthService()
