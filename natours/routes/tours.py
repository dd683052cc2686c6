"""
Natours API — Tour Route Handlers
===================================

What:  /api/v1/tours: public catalogue reads, admin/lead-guide mutations,
       statistics and geospatial lookups.
Route order:
    Fixed paths (top-5-tours, tours-stats, monthly-plan, tours-within,
    distances) are declared before `/{tour_id}`, otherwise they would be
    captured by it and fail UUID parsing.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from natours.database import get_db_session
from natours.dependencies import restrict_to
from natours.exceptions import ValidationError
from natours.models.user import Role
from natours.schemas.common import Envelope, ErrorResponse, dump, envelope, project_all
from natours.schemas.tour import TourDocument, TourResponse, TourUpdate
from natours.services.tour_service import TOP_TOURS_QUERY, tour_service
from natours.utils.geo import METERS_TO_UNIT, GeoPoint, parse_latlng

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tours", tags=["Tours"])

ERROR_RESPONSES = {
    400: {"description": "Invalid input", "model": ErrorResponse},
    401: {"description": "Not logged in", "model": ErrorResponse},
    403: {"description": "Role not allowed", "model": ErrorResponse},
    404: {"description": "Tour not found", "model": ErrorResponse},
}

tour_managers = restrict_to(Role.ADMIN, Role.LEAD_GUIDE)


def _parse_center(latlng: str) -> GeoPoint:
    try:
        return parse_latlng(latlng)
    except ValueError:
        raise ValidationError(
            "Please provide latitude and longitude in the format lat,lng.", field="latlng"
        )


def _check_unit(unit: str) -> str:
    if unit not in METERS_TO_UNIT:
        raise ValidationError("Please provide the unit as 'mi' or 'km'.", field="unit")
    return unit


async def _list_tours(db: AsyncSession, query_params) -> dict:
    tours, projection = await tour_service.get_all(db, query_params)
    items = project_all([TourResponse.from_model(t) for t in tours], projection)
    return envelope(results=len(items), data={"tours": items})


# ── Aliases and aggregations ──────────────────────────────────────────────


@router.get(
    "/top-5-tours",
    responses={200: {"model": Envelope}},
    summary="Five best-rated tours, cheapest first on ties",
)
async def top_tours(request: Request, db: AsyncSession = Depends(get_db_session)):
    query_params = {**request.query_params, **TOP_TOURS_QUERY}
    return await _list_tours(db, query_params)


@router.get(
    "/tours-stats",
    responses={200: {"model": Envelope}},
    summary="Rating and price statistics per difficulty",
)
async def tour_stats(db: AsyncSession = Depends(get_db_session)):
    stats = await tour_service.get_stats(db)
    return envelope(results=len(stats), data={"stats": [dump(s) for s in stats]})


@router.get(
    "/monthly-plan/{year}",
    responses={200: {"model": Envelope}, **ERROR_RESPONSES},
    summary="Tour departures per month of a year",
    dependencies=[Depends(restrict_to(Role.ADMIN, Role.LEAD_GUIDE, Role.GUIDE))],
)
async def monthly_plan(year: int, db: AsyncSession = Depends(get_db_session)):
    if not 1 <= year <= 9998:
        raise ValidationError(f"Invalid year: {year}.", field="year")
    plan = await tour_service.get_monthly_plan(db, year)
    return envelope(results=len(plan), data={"plan": [dump(entry) for entry in plan]})


@router.get(
    "/tours-within/{distance}/center/{latlng}/unit/{unit}",
    responses={200: {"model": Envelope}, 400: ERROR_RESPONSES[400]},
    summary="Tours starting within a radius of a point",
)
async def tours_within(
    distance: float,
    latlng: str,
    unit: str,
    db: AsyncSession = Depends(get_db_session),
):
    center = _parse_center(latlng)
    unit = _check_unit(unit)
    if distance < 0:
        raise ValidationError("Distance must not be negative.", field="distance")
    tours = await tour_service.get_tours_within(db, distance, center, unit)
    items = [dump(TourResponse.from_model(t)) for t in tours]
    return envelope(results=len(items), data={"tours": items})


@router.get(
    "/distances/{latlng}/unit/{unit}",
    responses={200: {"model": Envelope}, 400: ERROR_RESPONSES[400]},
    summary="Distance from a point to every tour's start",
)
async def tour_distances(latlng: str, unit: str, db: AsyncSession = Depends(get_db_session)):
    center = _parse_center(latlng)
    unit = _check_unit(unit)
    distances = await tour_service.get_distances(db, center, unit)
    return envelope(results=len(distances), data={"distances": [dump(d) for d in distances]})


# ── Collection ────────────────────────────────────────────────────────────


@router.get(
    "",
    responses={200: {"model": Envelope}, 400: ERROR_RESPONSES[400]},
    summary="List tours (filter, sort, fields, page, limit)",
)
async def list_tours(request: Request, db: AsyncSession = Depends(get_db_session)):
    return await _list_tours(db, request.query_params)


@router.post(
    "",
    status_code=201,
    responses={201: {"model": Envelope}, **ERROR_RESPONSES},
    summary="Create a tour",
    dependencies=[Depends(tour_managers)],
)
async def create_tour(body: TourDocument, db: AsyncSession = Depends(get_db_session)):
    tour = await tour_service.create(db, body.model_dump())
    return envelope(data={"tour": dump(TourResponse.from_model(tour))})


# ── Single tour ───────────────────────────────────────────────────────────


@router.get(
    "/{tour_id}",
    responses={200: {"model": Envelope}, 404: ERROR_RESPONSES[404]},
    summary="Get a tour with its reviews",
)
async def get_tour(tour_id: UUID, db: AsyncSession = Depends(get_db_session)):
    tour = await tour_service.get_one(db, tour_id, populate=True)
    return envelope(data={"tour": dump(TourResponse.from_model(tour, reviews=tour.reviews))})


@router.patch(
    "/{tour_id}",
    responses={200: {"model": Envelope}, **ERROR_RESPONSES},
    summary="Update a tour",
    dependencies=[Depends(tour_managers)],
)
async def update_tour(
    tour_id: UUID,
    body: TourUpdate,
    db: AsyncSession = Depends(get_db_session),
):
    tour = await tour_service.update(db, tour_id, body.model_dump(exclude_unset=True))
    return envelope(data={"tour": dump(TourResponse.from_model(tour))})


@router.delete(
    "/{tour_id}",
    status_code=204,
    responses=ERROR_RESPONSES,
    summary="Delete a tour",
    dependencies=[Depends(tour_managers)],
)
async def delete_tour(tour_id: UUID, db: AsyncSession = Depends(get_db_session)):
    await tour_service.delete(db, tour_id)
    return Response(status_code=204)
