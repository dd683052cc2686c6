"""
Natours API — Tour Service
============================

What:  The tour `Resource` (scope, API columns, save pipeline) plus the
       aggregation and geospatial queries behind the tour statistics routes.
Who:   Called by natours.routes.tours.

Scope:
    Secret tours are invisible to every default read, every write-by-id and
    every aggregation here. They can only be reached by code that builds its
    own query (the dev-data import and the rating recomputation).

Save pipeline (before_save):
    derive_slug          slug = slugify(name), on every save
    apply_start_location GeoJSON Point → flat lat/lng/address/description columns
    resolve_guides       guide ids → User rows (must exist and be active)
    apply_start_dates    list of datetimes → TourStartDate rows
"""

import logging
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from natours.exceptions import ValidationError
from natours.models.tour import Tour, TourStartDate
from natours.models.user import User
from natours.schemas.tour import (
    DifficultyStats,
    MonthlyPlanEntry,
    TourDistance,
    TourDocument,
)
from natours.services.handler_factory import Resource, ResourceService, SaveContext
from natours.utils.geo import (
    EARTH_RADIUS_METERS,
    METERS_TO_UNIT,
    GeoPoint,
    bounding_box,
    haversine_meters,
    radius_in_radians,
)
from natours.utils.slug import slugify

logger = logging.getLogger(__name__)

TOP_TOURS_QUERY = {
    "limit": "5",
    "sort": "-ratingsAverage,price",
    "fields": "name,price,ratingsAverage,summary,difficulty",
    "page": "1",
}

STATS_MIN_RATING = 4.5


def visible_tours(statement: Select) -> Select:
    return statement.where(Tour.secret_tour.is_(False))


def tour_to_document(tour: Tour) -> Dict[str, Any]:
    start_location = None
    if tour.start_location_lat is not None and tour.start_location_lng is not None:
        start_location = {
            "type": "Point",
            "coordinates": [tour.start_location_lng, tour.start_location_lat],
            "address": tour.start_location_address,
            "description": tour.start_location_description,
        }
    return {
        "name": tour.name,
        "duration": tour.duration,
        "max_group_size": tour.max_group_size,
        "difficulty": tour.difficulty,
        "price": tour.price,
        "price_discount": tour.price_discount,
        "summary": tour.summary,
        "description": tour.description,
        "image_cover": tour.image_cover,
        "images": list(tour.images or []),
        "start_location": start_location,
        "locations": list(tour.locations or []),
        "guides": [guide.id for guide in tour.guides],
        "start_dates": tour.start_dates,
        "secret_tour": tour.secret_tour,
    }


# ── Save pipeline stages ──────────────────────────────────────────────────


async def derive_slug(ctx: SaveContext) -> None:
    name = ctx.data.get("name", ctx.instance.name)
    ctx.instance.slug = slugify(name)


async def apply_start_location(ctx: SaveContext) -> None:
    if "start_location" not in ctx.data:
        return
    point = ctx.data.pop("start_location")
    tour = ctx.instance
    if point is None:
        tour.start_location_lat = tour.start_location_lng = None
        tour.start_location_address = tour.start_location_description = None
        return
    lng, lat = point["coordinates"]
    tour.start_location_lat = lat
    tour.start_location_lng = lng
    tour.start_location_address = point.get("address")
    tour.start_location_description = point.get("description")


async def resolve_guides(ctx: SaveContext) -> None:
    if "guides" not in ctx.data:
        return
    guide_ids: List[uuid.UUID] = list(dict.fromkeys(ctx.data.pop("guides")))
    if not guide_ids:
        ctx.instance.guides = []
        return
    result = await ctx.db.execute(
        select(User).where(User.id.in_(guide_ids), User.active.is_(True))
    )
    found = {user.id: user for user in result.scalars().all()}
    missing = [str(guide_id) for guide_id in guide_ids if guide_id not in found]
    if missing:
        raise ValidationError(
            message=f"No user found for guide id(s): {', '.join(missing)}",
            field="guides",
        )
    ctx.instance.guides = [found[guide_id] for guide_id in guide_ids]


async def apply_start_dates(ctx: SaveContext) -> None:
    if "start_dates" not in ctx.data:
        return
    # Naive datetimes are taken as UTC
    starts = [
        value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
        for value in ctx.data.pop("start_dates")
    ]
    ctx.instance.start_date_rows = [TourStartDate(starts_at=value) for value in sorted(starts)]


tour_resource = Resource(
    name="tour",
    model=Tour,
    document_schema=TourDocument,
    to_document=tour_to_document,
    columns={
        "name": Tour.name,
        "slug": Tour.slug,
        "duration": Tour.duration,
        "maxGroupSize": Tour.max_group_size,
        "difficulty": Tour.difficulty,
        "ratingsAverage": Tour.ratings_average,
        "ratingsQuantity": Tour.ratings_quantity,
        "price": Tour.price,
        "priceDiscount": Tour.price_discount,
        "createdAt": Tour.created_at,
    },
    scope=visible_tours,
    populate=(selectinload(Tour.reviews),),
    before_save=(derive_slug, apply_start_location, resolve_guides, apply_start_dates),
)


class TourService(ResourceService):
    """Tour CRUD plus statistics and geospatial lookups."""

    async def get_stats(self, db: AsyncSession) -> List[DifficultyStats]:
        difficulty = func.upper(Tour.difficulty)
        statement = (
            visible_tours(
                select(
                    difficulty.label("difficulty"),
                    func.count(Tour.id).label("num_tours"),
                    func.sum(Tour.ratings_quantity).label("num_ratings"),
                    func.avg(Tour.ratings_average).label("avg_rating"),
                    func.avg(Tour.price).label("avg_price"),
                    func.min(Tour.price).label("min_price"),
                    func.max(Tour.price).label("max_price"),
                )
            )
            .where(Tour.ratings_average >= STATS_MIN_RATING)
            .group_by(difficulty)
            .order_by(func.avg(Tour.price).asc())
        )
        rows = (await db.execute(statement)).all()
        return [
            DifficultyStats(
                difficulty=row.difficulty,
                num_tours=row.num_tours,
                num_ratings=row.num_ratings or 0,
                avg_rating=float(row.avg_rating),
                avg_price=float(row.avg_price),
                min_price=float(row.min_price),
                max_price=float(row.max_price),
            )
            for row in rows
        ]

    async def get_monthly_plan(self, db: AsyncSession, year: int) -> List[MonthlyPlanEntry]:
        """
        Tour departures per calendar month of `year`, busiest month first.

        Start dates are fetched for the year and grouped here: month
        extraction differs between PostgreSQL and SQLite, the year filter
        does not.
        """
        start = datetime(year, 1, 1, tzinfo=timezone.utc)
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
        statement = visible_tours(
            select(TourStartDate.starts_at, Tour.name).join(Tour, Tour.id == TourStartDate.tour_id)
        ).where(TourStartDate.starts_at >= start, TourStartDate.starts_at < end)

        months: Dict[int, List[str]] = defaultdict(list)
        for starts_at, name in (await db.execute(statement)).all():
            months[starts_at.month].append(name)

        plan = [
            MonthlyPlanEntry(month=month, num_tour_starts=len(names), tours=names)
            for month, names in months.items()
        ]
        plan.sort(key=lambda entry: (-entry.num_tour_starts, entry.month))
        return plan

    async def get_tours_within(
        self, db: AsyncSession, distance: float, center: GeoPoint, unit: str
    ) -> List[Tour]:
        """Tours whose start location lies within `distance` `unit`s of `center`."""
        radius = radius_in_radians(distance, unit)
        min_lat, max_lat, min_lng, max_lng = bounding_box(center, radius)
        statement = visible_tours(select(Tour)).where(
            Tour.start_location_lat.between(min_lat, max_lat),
            Tour.start_location_lng.between(min_lng, max_lng),
        )
        candidates = (await db.execute(statement)).scalars().all()

        # Angular distance, so the cut-off matches the radius exactly
        return [
            tour
            for tour in candidates
            if haversine_meters(center, _start_point(tour)) / EARTH_RADIUS_METERS <= radius
        ]

    async def get_distances(
        self, db: AsyncSession, center: GeoPoint, unit: str
    ) -> List[TourDistance]:
        statement = visible_tours(
            select(Tour.id, Tour.name, Tour.start_location_lat, Tour.start_location_lng)
        ).where(
            Tour.start_location_lat.is_not(None),
            Tour.start_location_lng.is_not(None),
        )
        multiplier = METERS_TO_UNIT[unit]
        distances = [
            TourDistance(
                id=row.id,
                name=row.name,
                distance=haversine_meters(center, _start_point(row)) * multiplier,
            )
            for row in (await db.execute(statement)).all()
        ]
        distances.sort(key=lambda entry: entry.distance)
        return distances


def _start_point(row) -> GeoPoint:
    return GeoPoint(lat=row.start_location_lat, lng=row.start_location_lng)


# Singleton instance
tour_service = TourService(tour_resource)
