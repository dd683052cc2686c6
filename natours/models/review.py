"""
Natours API — Review SQLAlchemy Model
=======================================

What:  ORM model representing the `reviews` table.
Why the unique (tour_id, user_id) constraint: one review per user per tour.
       A second attempt surfaces as an IntegrityError, which the central
       error translation turns into a duplicate-key 400.
"""

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Float, ForeignKey, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from natours.database import Base

if TYPE_CHECKING:
    from natours.models.tour import Tour
    from natours.models.user import User


class Review(Base):
    __tablename__ = "reviews"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    review: Mapped[str] = mapped_column(Text, nullable=False)

    rating: Mapped[float] = mapped_column(Float, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    tour_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tours.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # The author's name and photo are part of every review response
    user: Mapped["User"] = relationship("User", lazy="selectin")
    tour: Mapped["Tour"] = relationship("Tour", back_populates="reviews", lazy="raise")

    __table_args__ = (
        UniqueConstraint("tour_id", "user_id", name="uq_reviews_tour_user"),
    )

    def __repr__(self) -> str:
        return f"<Review(id={self.id}, tour_id={self.tour_id}, rating={self.rating})>"
