"""
Natours API — Tour Request/Response Schemas
=============================================

What:  Pydantic models for tour input validation and tour responses.
How:   `TourDocument` is the full set of constraints a stored tour must meet.
       It validates POST bodies directly and is re-run by the handler factory
       on every PATCH against the merged (current + patch) document, so a
       discount that was valid for the old price cannot survive a price cut.
"""

import uuid
from datetime import datetime
from typing import Annotated, List, Literal, Optional

from pydantic import Field, StringConstraints, field_validator, model_validator

from natours.schemas.common import ApiModel
from natours.schemas.review import ReviewResponse

Difficulty = Literal["easy", "medium", "difficult"]

TourName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=10, max_length=40)]
TrimmedText = Annotated[str, StringConstraints(strip_whitespace=True)]


class GeoPoint(ApiModel):
    """GeoJSON Point. Coordinates are [longitude, latitude]."""

    type: Literal["Point"] = "Point"
    coordinates: List[float] = Field(min_length=2, max_length=2)
    address: Optional[str] = None
    description: Optional[str] = None

    @field_validator("coordinates")
    @classmethod
    def validate_coordinates(cls, v: List[float]) -> List[float]:
        lng, lat = v
        if not -180 <= lng <= 180 or not -90 <= lat <= 90:
            raise ValueError("Coordinates must be [longitude, latitude] within range")
        return v


class Location(GeoPoint):
    day: Optional[int] = Field(default=None, ge=0)


class TourDocument(ApiModel):
    name: TourName
    duration: int = Field(gt=0)
    max_group_size: int = Field(gt=0)
    difficulty: Difficulty
    price: float = Field(gt=0)
    price_discount: Optional[float] = Field(default=None, ge=0)
    summary: Optional[TrimmedText] = None
    description: Optional[TrimmedText] = None
    image_cover: str = Field(min_length=1)
    images: List[str] = Field(default_factory=list)
    start_location: Optional[GeoPoint] = None
    locations: List[Location] = Field(default_factory=list)
    guides: List[uuid.UUID] = Field(default_factory=list)
    start_dates: List[datetime] = Field(default_factory=list)
    secret_tour: bool = False

    @model_validator(mode="after")
    def discount_below_price(self) -> "TourDocument":
        if self.price_discount is not None and self.price_discount >= self.price:
            raise ValueError(
                f"Discount price ({self.price_discount}) should be below the regular price"
            )
        return self


class TourUpdate(ApiModel):
    """PATCH body: every field optional; only supplied fields are merged."""

    name: Optional[TourName] = None
    duration: Optional[int] = Field(default=None, gt=0)
    max_group_size: Optional[int] = Field(default=None, gt=0)
    difficulty: Optional[Difficulty] = None
    price: Optional[float] = Field(default=None, gt=0)
    price_discount: Optional[float] = Field(default=None, ge=0)
    summary: Optional[TrimmedText] = None
    description: Optional[TrimmedText] = None
    image_cover: Optional[str] = Field(default=None, min_length=1)
    images: Optional[List[str]] = None
    start_location: Optional[GeoPoint] = None
    locations: Optional[List[Location]] = None
    guides: Optional[List[uuid.UUID]] = None
    start_dates: Optional[List[datetime]] = None
    secret_tour: Optional[bool] = None


class GuideSummary(ApiModel):
    id: uuid.UUID
    name: str
    email: str
    role: str
    photo: str


class TourResponse(ApiModel):
    id: uuid.UUID
    name: str
    slug: str
    duration: int
    duration_weeks: float
    max_group_size: int
    difficulty: str
    ratings_average: float
    ratings_quantity: int
    price: float
    price_discount: Optional[float] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    image_cover: str
    images: List[str]
    created_at: datetime
    start_location: Optional[GeoPoint] = None
    locations: List[Location]
    guides: List[GuideSummary]
    start_dates: List[datetime]
    secret_tour: bool
    reviews: Optional[List[ReviewResponse]] = None

    @classmethod
    def from_model(cls, tour, reviews=None) -> "TourResponse":
        start_location = None
        if tour.start_location_lat is not None and tour.start_location_lng is not None:
            start_location = GeoPoint(
                coordinates=[tour.start_location_lng, tour.start_location_lat],
                address=tour.start_location_address,
                description=tour.start_location_description,
            )
        return cls(
            id=tour.id,
            name=tour.name,
            slug=tour.slug,
            duration=tour.duration,
            duration_weeks=tour.duration_weeks,
            max_group_size=tour.max_group_size,
            difficulty=tour.difficulty,
            ratings_average=tour.ratings_average,
            ratings_quantity=tour.ratings_quantity,
            price=tour.price,
            price_discount=tour.price_discount,
            summary=tour.summary,
            description=tour.description,
            image_cover=tour.image_cover,
            images=list(tour.images or []),
            created_at=tour.created_at,
            start_location=start_location,
            locations=[Location.model_validate(loc) for loc in (tour.locations or [])],
            guides=[
                GuideSummary(id=g.id, name=g.name, email=g.email, role=g.role, photo=g.photo)
                for g in tour.guides
            ],
            start_dates=tour.start_dates,
            secret_tour=tour.secret_tour,
            reviews=(
                [ReviewResponse.from_model(r) for r in reviews] if reviews is not None else None
            ),
        )


# ── Aggregation responses ─────────────────────────────────────────────────


class DifficultyStats(ApiModel):
    difficulty: str
    num_tours: int
    num_ratings: int
    avg_rating: float
    avg_price: float
    min_price: float
    max_price: float


class MonthlyPlanEntry(ApiModel):
    month: int
    num_tour_starts: int
    tours: List[str]


class TourDistance(ApiModel):
    id: uuid.UUID
    name: str
    distance: float
