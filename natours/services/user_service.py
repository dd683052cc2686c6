"""
Natours API — User Service
============================

What:  The user `Resource` (active-only scope, password hashing stage) and the
       self-service profile operations.

Soft delete:
    deleteMe flips `active` to False. The row stays, so the user's reviews
    keep their author, but the scope hides the account from every default
    read, including login and token authentication. Admin DELETE removes the
    row for real; its reviews cascade and the affected tours are recomputed.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from natours.exceptions import ValidationError
from natours.models.review import Review
from natours.models.user import User
from natours.schemas.user import UpdateMeRequest, UserDocument
from natours.services.credentials import hash_password
from natours.services.handler_factory import Resource, ResourceService, SaveContext
from natours.services.review_service import calc_average_ratings

logger = logging.getLogger(__name__)

SELF_SERVICE_FIELDS = ("name", "email", "photo")


def active_users(statement: Select) -> Select:
    return statement.where(User.active.is_(True))


def user_to_document(user: User) -> Dict[str, Any]:
    return {
        "name": user.name,
        "email": user.email,
        "photo": user.photo,
        "role": user.role,
    }


# ── Save pipeline stages ──────────────────────────────────────────────────


async def store_role_value(ctx: SaveContext) -> None:
    if "role" in ctx.data:
        ctx.data["role"] = ctx.data["role"].value


async def hash_new_password(ctx: SaveContext) -> None:
    plain = ctx.data.pop("password", None)
    if plain is None:
        return
    ctx.instance.password = await asyncio.to_thread(hash_password, plain)
    if not ctx.is_new:
        ctx.instance.password_changed_at = datetime.now(timezone.utc)


async def remember_reviewed_tours(ctx: SaveContext) -> None:
    result = await ctx.db.execute(
        select(Review.tour_id).where(Review.user_id == ctx.instance.id).distinct()
    )
    ctx.data["reviewed_tour_ids"] = list(result.scalars().all())


async def update_reviewed_tours(ctx: SaveContext) -> None:
    for tour_id in ctx.data.get("reviewed_tour_ids", []):
        await calc_average_ratings(ctx.db, tour_id)


user_resource = Resource(
    name="user",
    model=User,
    document_schema=UserDocument,
    to_document=user_to_document,
    columns={
        "name": User.name,
        "email": User.email,
        "role": User.role,
        "createdAt": User.created_at,
    },
    scope=active_users,
    before_save=(store_role_value, hash_new_password),
    before_delete=(remember_reviewed_tours,),
    after_delete=(update_reviewed_tours,),
)


class UserService(ResourceService):
    """User CRUD plus the /me operations."""

    async def find_by_email(self, db: AsyncSession, email: str):
        statement = self.resource.select().where(User.email == email.lower())
        return (await db.execute(statement)).scalar_one_or_none()

    async def update_me(self, db: AsyncSession, user: User, body: UpdateMeRequest) -> User:
        if body.password is not None or body.password_confirm is not None:
            raise ValidationError(
                "This route is not for password updates. Please use /updatePassword.",
                field="password",
            )
        patch = body.model_dump(include=set(SELF_SERVICE_FIELDS), exclude_unset=True)
        patch = {key: value for key, value in patch.items() if value is not None}
        return await self.apply_update(db, user, patch)

    async def deactivate(self, db: AsyncSession, user: User) -> None:
        user.active = False
        await db.commit()
        logger.info("User %s deactivated their account", user.id)

    async def change_password(self, db: AsyncSession, user: User, password: str) -> User:
        return await self.apply_update(db, user, {"password": password})


# Singleton instance
user_service = UserService(user_resource)
