"""
ORM models. Importing the package registers every table on Base.metadata,
which the string-based relationships ("User", "Review") need before the first
query runs.
"""

from natours.models.review import Review
from natours.models.tour import DEFAULT_RATINGS_AVERAGE, Tour, TourStartDate, tour_guides
from natours.models.user import Role, User

__all__ = [
    "DEFAULT_RATINGS_AVERAGE",
    "Review",
    "Role",
    "Tour",
    "TourStartDate",
    "User",
    "tour_guides",
]
