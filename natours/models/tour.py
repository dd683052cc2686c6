"""
Natours API — Tour SQLAlchemy Models
======================================

What:  ORM models for the `tours` table and its two satellite tables:
       `tour_start_dates` (one row per scheduled departure) and `tour_guides`
       (many-to-many link to users).
Why satellite tables: start dates are unwound and grouped by month for the
       monthly plan; keeping them in rows lets the database filter by year.

Geospatial storage:
    The start location is kept as plain latitude/longitude columns. Radius
    queries pre-filter with a bounding box in SQL and finish with a haversine
    distance in Python (natours.utils.geo), which works the same on
    PostgreSQL and SQLite.
"""

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Table,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from natours.database import Base

if TYPE_CHECKING:
    from natours.models.review import Review
    from natours.models.user import User


DEFAULT_RATINGS_AVERAGE = 4.5

tour_guides = Table(
    "tour_guides",
    Base.metadata,
    Column("tour_id", Uuid, ForeignKey("tours.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class TourStartDate(Base):
    __tablename__ = "tour_start_dates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tour_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tours.id", ondelete="CASCADE"), nullable=False, index=True
    )
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class Tour(Base):
    """
    A bookable trip.

    Lifecycle:
        1. Created by an admin or lead guide (slug derived from the name)
        2. Updated: slug re-derived on every save, validation re-run
        3. ratings_average / ratings_quantity rewritten whenever one of its
           reviews is created, updated or deleted
        4. Deleted: start dates, guide links and reviews cascade
    """

    __tablename__ = "tours"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    max_group_size: Mapped[int] = mapped_column(Integer, nullable=False)
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False)

    # Derived from reviews; never written by the tour endpoints
    ratings_average: Mapped[float] = mapped_column(
        Float, nullable=False, default=DEFAULT_RATINGS_AVERAGE
    )
    ratings_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    price: Mapped[float] = mapped_column(Float, nullable=False)
    price_discount: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_cover: Mapped[str] = mapped_column(String(255), nullable=False)
    images: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    # ── Start location (GeoJSON Point flattened into columns) ─────────────
    start_location_lat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    start_location_lng: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    start_location_address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    start_location_description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Waypoints: [{"type": "Point", "coordinates": [lng, lat], "address", "description", "day"}]
    locations: Mapped[List[dict]] = mapped_column(JSON, nullable=False, default=list)

    secret_tour: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # ── Relationships ─────────────────────────────────────────────────────
    # Guides and start dates are part of every tour response, so they load
    # eagerly; reviews are only populated on the single-tour endpoint.
    guides: Mapped[List["User"]] = relationship(
        "User", secondary=tour_guides, lazy="selectin"
    )
    start_date_rows: Mapped[List[TourStartDate]] = relationship(
        TourStartDate,
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by=TourStartDate.starts_at,
    )
    reviews: Mapped[List["Review"]] = relationship(
        "Review",
        back_populates="tour",
        lazy="raise",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_tours_price_ratings", "price", "ratings_average"),
        Index("idx_tours_start_location", "start_location_lat", "start_location_lng"),
    )

    @property
    def start_dates(self) -> List[datetime]:
        return [row.starts_at for row in self.start_date_rows]

    @property
    def duration_weeks(self) -> float:
        return round(self.duration / 7, 2)

    def __repr__(self) -> str:
        return f"<Tour(id={self.id}, name='{self.name}', slug='{self.slug}')>"
