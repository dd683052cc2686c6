"""
Natours API — Review Route Handlers
=====================================

What:  /api/v1/reviews and the nested /api/v1/tours/{tour_id}/reviews.
Access:
    Every route requires a logged-in user. Only the `user` role writes
    reviews; `user` may edit or delete only their own, `admin` any.
    The author is always the authenticated user, never the request body.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from natours.database import get_db_session
from natours.dependencies import RequestContext, protect, restrict_to
from natours.exceptions import ValidationError
from natours.models.review import Review
from natours.models.user import Role
from natours.schemas.common import Envelope, ErrorResponse, dump, envelope, project_all
from natours.schemas.review import ReviewCreate, ReviewResponse, ReviewUpdate
from natours.services.review_service import review_service

router = APIRouter(prefix="/reviews", tags=["Reviews"], dependencies=[Depends(protect)])
tour_reviews_router = APIRouter(
    prefix="/tours/{tour_id}/reviews", tags=["Reviews"], dependencies=[Depends(protect)]
)

ERROR_RESPONSES = {
    400: {"description": "Invalid input or duplicate review", "model": ErrorResponse},
    401: {"description": "Not logged in", "model": ErrorResponse},
    403: {"description": "Role not allowed", "model": ErrorResponse},
    404: {"description": "Review or tour not found", "model": ErrorResponse},
}

review_authors = restrict_to(Role.USER)
review_editors = restrict_to(Role.USER, Role.ADMIN)


async def _list_reviews(db: AsyncSession, query_params, tour_id=None) -> dict:
    base_filters = [Review.tour_id == tour_id] if tour_id is not None else []
    reviews, projection = await review_service.get_all(db, query_params, base_filters=base_filters)
    items = project_all([ReviewResponse.from_model(r) for r in reviews], projection)
    return envelope(results=len(items), data={"reviews": items})


async def _create_review(db: AsyncSession, body: ReviewCreate, context: RequestContext, tour_id=None) -> dict:
    tour = tour_id or body.tour
    if tour is None:
        raise ValidationError("Review must belong to a tour", field="tour")
    review = await review_service.create(
        db,
        {
            "review": body.review,
            "rating": body.rating,
            "tour_id": tour,
            "user_id": context.user.id,
        },
    )
    return envelope(data={"review": dump(ReviewResponse.from_model(review))})


# ── /reviews ──────────────────────────────────────────────────────────────


@router.get("", responses={200: {"model": Envelope}, **ERROR_RESPONSES}, summary="List reviews")
async def list_reviews(request: Request, db: AsyncSession = Depends(get_db_session)):
    return await _list_reviews(db, request.query_params)


@router.post(
    "",
    status_code=201,
    responses={201: {"model": Envelope}, **ERROR_RESPONSES},
    summary="Review a tour (tour id in the body)",
)
async def create_review(
    body: ReviewCreate,
    context: RequestContext = Depends(review_authors),
    db: AsyncSession = Depends(get_db_session),
):
    return await _create_review(db, body, context)


@router.get(
    "/{review_id}",
    responses={200: {"model": Envelope}, **ERROR_RESPONSES},
    summary="Get a review",
)
async def get_review(review_id: UUID, db: AsyncSession = Depends(get_db_session)):
    review = await review_service.get_one(db, review_id)
    return envelope(data={"review": dump(ReviewResponse.from_model(review))})


@router.patch(
    "/{review_id}",
    responses={200: {"model": Envelope}, **ERROR_RESPONSES},
    summary="Edit a review",
)
async def update_review(
    review_id: UUID,
    body: ReviewUpdate,
    context: RequestContext = Depends(review_editors),
    db: AsyncSession = Depends(get_db_session),
):
    review = await review_service.update_review(db, review_id, body.to_patch(), context.user)
    return envelope(data={"review": dump(ReviewResponse.from_model(review))})


@router.delete(
    "/{review_id}",
    status_code=204,
    responses=ERROR_RESPONSES,
    summary="Delete a review",
)
async def delete_review(
    review_id: UUID,
    context: RequestContext = Depends(review_editors),
    db: AsyncSession = Depends(get_db_session),
):
    await review_service.delete_review(db, review_id, context.user)
    return Response(status_code=204)


# ── /tours/{tour_id}/reviews ──────────────────────────────────────────────


@tour_reviews_router.get(
    "",
    responses={200: {"model": Envelope}, **ERROR_RESPONSES},
    summary="List a tour's reviews",
)
async def list_tour_reviews(tour_id: UUID, request: Request, db: AsyncSession = Depends(get_db_session)):
    return await _list_reviews(db, request.query_params, tour_id=tour_id)


@tour_reviews_router.post(
    "",
    status_code=201,
    responses={201: {"model": Envelope}, **ERROR_RESPONSES},
    summary="Review the tour in the path",
)
async def create_tour_review(
    tour_id: UUID,
    body: ReviewCreate,
    context: RequestContext = Depends(review_authors),
    db: AsyncSession = Depends(get_db_session),
):
    return await _create_review(db, body, context, tour_id=tour_id)
