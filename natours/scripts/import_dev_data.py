"""
Natours API — Development Data Loader
=======================================

What:  Loads the sample users, tours and reviews from natours/dev_data into
       the configured database, or wipes all three tables.
How:   Records go through the same service pipelines the API uses, so
       passwords are hashed, slugs derived and tour ratings recomputed.

Usage:
    natours-import-dev-data --import
    natours-import-dev-data --delete
"""

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from natours.database import dispose_engine, session_scope
from natours.main import setup_logging
from natours.models.review import Review
from natours.models.tour import Tour
from natours.models.user import User
from natours.services.review_service import review_service
from natours.services.tour_service import tour_service
from natours.services.user_service import user_service

logger = logging.getLogger("natours.scripts.import_dev_data")

DATA_DIR = Path(__file__).resolve().parent.parent / "dev_data"


def load_json(name: str) -> List[Dict[str, Any]]:
    with open(DATA_DIR / name, encoding="utf-8") as fh:
        return json.load(fh)


async def import_data(db: AsyncSession) -> None:
    users = {}
    for record in load_json("users.json"):
        user = await user_service.create(db, record)
        users[user.email] = user.id
    logger.info("Imported %d users", len(users))

    tours = {}
    for record in load_json("tours.json"):
        record["guides"] = [users[email] for email in record.get("guides", [])]
        tour = await tour_service.create(db, record)
        tours[tour.name] = tour.id
    logger.info("Imported %d tours", len(tours))

    reviews = load_json("reviews.json")
    for record in reviews:
        await review_service.create(
            db,
            {
                "review": record["review"],
                "rating": record["rating"],
                "tour_id": tours[record["tour"]],
                "user_id": users[record["user"]],
            },
        )
    logger.info("Imported %d reviews", len(reviews))


async def delete_data(db: AsyncSession) -> None:
    # Children first; start dates and guide links cascade with their tours
    for model in (Review, Tour, User):
        result = await db.execute(delete(model))
        logger.info("Deleted %d rows from %s", result.rowcount, model.__tablename__)
    await db.commit()


async def run(action: str) -> None:
    try:
        async with session_scope() as db:
            if action == "import":
                await import_data(db)
            else:
                await delete_data(db)
    finally:
        await dispose_engine()


def main() -> None:
    parser = argparse.ArgumentParser(description="Load or remove the Natours sample data.")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--import", dest="action", action="store_const", const="import",
                       help="create the sample users, tours and reviews")
    group.add_argument("--delete", dest="action", action="store_const", const="delete",
                       help="delete every review, tour and user")
    args = parser.parse_args()

    setup_logging()
    asyncio.run(run(args.action))
    logger.info("Data successfully %s!", "loaded" if args.action == "import" else "deleted")


if __name__ == "__main__":
    main()
