"""
Natours API — Health Check Route
==================================

What:  GET /health for container probes and load balancers.
How:   Runs `SELECT 1` against the database. The service is "healthy" when
       that succeeds and "unhealthy" (HTTP 503) when it does not; nothing
       else the API does works without the database.
"""

import logging
import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from natours import __version__
from natours.database import engine
from natours.schemas.common import ApiModel

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


class HealthResponse(ApiModel):
    status: str
    version: str
    database: str
    uptime_seconds: float


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check():
    db_status = "connected"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        logger.warning("Health check: database unreachable: %s", e)

    health = HealthResponse(
        status="healthy" if db_status == "connected" else "unhealthy",
        version=__version__,
        database=db_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
    if db_status != "connected":
        return JSONResponse(status_code=503, content=health.model_dump(by_alias=True))
    return health
