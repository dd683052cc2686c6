"""
Recompute ratingsAverage / ratingsQuantity for every tour from its reviews.

Repairs drift after reviews were edited outside the API (manual SQL, restored
backups). Safe to run at any time.

Usage:
    natours-update-tour-stats
"""

import asyncio
import logging

from natours.database import dispose_engine, session_scope
from natours.main import setup_logging
from natours.services.review_service import recalculate_all_tour_stats

logger = logging.getLogger("natours.scripts.update_tour_stats")


async def run() -> int:
    try:
        async with session_scope() as db:
            return await recalculate_all_tour_stats(db)
    finally:
        await dispose_engine()


def main() -> None:
    setup_logging()
    count = asyncio.run(run())
    logger.info("Tour statistics updated successfully (%d tours)", count)


if __name__ == "__main__":
    main()
