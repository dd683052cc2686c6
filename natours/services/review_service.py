"""
Natours API — Review Service
==============================

What:  The review `Resource` and the rating recomputation that keeps each
       tour's ratingsAverage / ratingsQuantity equal to the aggregate over
       its reviews.
How:   `calc_average_ratings(tour_id)` is an after_save and after_delete
       stage, so it runs inside the same transaction as the review write,
       after the flush that made the write visible to the aggregate. When an
       update moves a review to another tour, both tours are recomputed.

Concurrency:
    The tour row is locked (SELECT ... FOR UPDATE) before its reviews are
    aggregated, so two review writes on one tour serialize instead of the
    later commit overwriting the earlier count. SQLite has no row locks; the
    clause is omitted there and its single writer gives the same ordering.
"""

import logging
import uuid
from typing import Any, Dict, List

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from natours.exceptions import AuthorizationError, NotFoundError
from natours.models.review import Review
from natours.models.tour import DEFAULT_RATINGS_AVERAGE, Tour
from natours.models.user import Role
from natours.schemas.review import ReviewDocument
from natours.services.handler_factory import Resource, ResourceService, SaveContext
from natours.services.tour_service import visible_tours

logger = logging.getLogger(__name__)


def review_to_document(review: Review) -> Dict[str, Any]:
    return {
        "review": review.review,
        "rating": review.rating,
        "tour_id": review.tour_id,
        "user_id": review.user_id,
    }


# ── Rating recomputation ──────────────────────────────────────────────────


async def calc_average_ratings(db: AsyncSession, tour_id: uuid.UUID) -> None:
    locked = await db.execute(select(Tour.id).where(Tour.id == tour_id).with_for_update())
    if locked.scalar_one_or_none() is None:
        # Tour deleted in the same transaction; nothing to keep in sync
        return

    count, average = (
        await db.execute(
            select(func.count(Review.id), func.avg(Review.rating)).where(Review.tour_id == tour_id)
        )
    ).one()

    if count:
        quantity, average = count, float(average)
    else:
        quantity, average = 0, DEFAULT_RATINGS_AVERAGE

    await db.execute(
        update(Tour)
        .where(Tour.id == tour_id)
        .values(ratings_quantity=quantity, ratings_average=average)
    )
    logger.debug("Tour %s ratings: %d reviews, average %.3f", tour_id, quantity, average)


async def recalculate_all_tour_stats(db: AsyncSession) -> int:
    """Recompute the rating statistics of every tour. Returns the number of tours."""
    tour_ids: List[uuid.UUID] = list((await db.execute(select(Tour.id))).scalars().all())
    for tour_id in tour_ids:
        await calc_average_ratings(db, tour_id)
    await db.commit()
    logger.info("Recalculated rating statistics for %d tours", len(tour_ids))
    return len(tour_ids)


# ── Save pipeline stages ──────────────────────────────────────────────────


async def require_visible_tour(ctx: SaveContext) -> None:
    if "tour_id" not in ctx.data:
        return
    tour_id = ctx.data["tour_id"]
    found = await ctx.db.execute(visible_tours(select(Tour.id)).where(Tour.id == tour_id))
    if found.scalar_one_or_none() is None:
        raise NotFoundError(resource="tour", resource_id=str(tour_id))


async def update_tour_ratings(ctx: SaveContext) -> None:
    tour_ids = {ctx.instance.tour_id}
    if ctx.previous.get("tour_id") is not None:
        tour_ids.add(ctx.previous["tour_id"])
    for tour_id in tour_ids:
        await calc_average_ratings(ctx.db, tour_id)


async def update_tour_ratings_after_delete(ctx: SaveContext) -> None:
    await calc_average_ratings(ctx.db, ctx.previous["tour_id"])


review_resource = Resource(
    name="review",
    model=Review,
    document_schema=ReviewDocument,
    to_document=review_to_document,
    columns={
        "rating": Review.rating,
        "createdAt": Review.created_at,
        "tour": Review.tour_id,
        "user": Review.user_id,
    },
    before_save=(require_visible_tour,),
    after_save=(update_tour_ratings,),
    after_delete=(update_tour_ratings_after_delete,),
)


class ReviewService(ResourceService):
    """Review CRUD with ownership checks for the `user` role."""

    async def get_owned(self, db: AsyncSession, review_id: uuid.UUID, user) -> Review:
        review = await self.get_one(db, review_id)
        if user.role == Role.USER.value and review.user_id != user.id:
            raise AuthorizationError("You can only modify your own reviews")
        return review

    async def update_review(self, db: AsyncSession, review_id: uuid.UUID, patch, user) -> Review:
        review = await self.get_owned(db, review_id, user)
        return await self.apply_update(db, review, patch)

    async def delete_review(self, db: AsyncSession, review_id: uuid.UUID, user) -> None:
        await self.get_owned(db, review_id, user)
        await self.delete(db, review_id)


# Singleton instance
review_service = ReviewService(review_resource)
