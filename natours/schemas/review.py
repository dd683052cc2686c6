"""
Natours API — Review Schemas
==============================

`ReviewDocument` is what a stored review must satisfy (validated on create and
re-run on merged updates). The request bodies only carry what a client may
send; the author always comes from the authenticated user.
"""

import uuid
from datetime import datetime
from typing import Annotated, Optional

from pydantic import Field, StringConstraints

from natours.schemas.common import ApiModel

ReviewText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class ReviewDocument(ApiModel):
    review: ReviewText
    rating: float = Field(ge=1, le=5)
    tour_id: uuid.UUID
    user_id: uuid.UUID


class ReviewCreate(ApiModel):
    review: ReviewText
    rating: float = Field(ge=1, le=5)
    # Optional here: the nested /tours/{tourId}/reviews route supplies it
    tour: Optional[uuid.UUID] = None


class ReviewUpdate(ApiModel):
    review: Optional[ReviewText] = None
    rating: Optional[float] = Field(default=None, ge=1, le=5)
    tour: Optional[uuid.UUID] = None

    def to_patch(self) -> dict:
        patch = self.model_dump(exclude_unset=True)
        if "tour" in patch:
            patch["tour_id"] = patch.pop("tour")
        return patch


class ReviewAuthor(ApiModel):
    id: uuid.UUID
    name: str
    photo: str


class ReviewResponse(ApiModel):
    id: uuid.UUID
    review: str
    rating: float
    created_at: datetime
    tour: uuid.UUID
    user: Optional[ReviewAuthor] = None

    @classmethod
    def from_model(cls, review) -> "ReviewResponse":
        author = review.user
        return cls(
            id=review.id,
            review=review.review,
            rating=review.rating,
            created_at=review.created_at,
            tour=review.tour_id,
            user=(
                ReviewAuthor(id=author.id, name=author.name, photo=author.photo)
                if author is not None
                else None
            ),
        )
