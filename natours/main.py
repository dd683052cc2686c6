"""
Natours API — FastAPI Application Factory
===========================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn natours.main:app).

Application Architecture:
    ┌───────────────────────────────────────────────────────────┐
    │                       FastAPI App                         │
    │                                                           │
    │  Middleware: RateLimit → RequestID → Logging → Security   │
    │              headers → CORS → GZip                        │
    │                                                           │
    │  Routes (/api/v1): /tours  /tours/{id}/reviews  /reviews  │
    │                    /users                                 │
    │  Routes (root):    /health                                │
    │                                                           │
    │  Errors: every exception → translate_exception() →        │
    │          {status, message} (+ error, stack in development)│
    └───────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  configure logging, refuse to start without JWT_SECRET
    Shutdown: dispose the database engine
"""

import logging
import sys
import traceback
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import jwt
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from natours import __version__
from natours.config import settings
from natours.database import dispose_engine
from natours.exceptions import (
    ConfigurationError,
    NatoursError,
    NotFoundError,
    RateLimitExceededError,
    translate_exception,
)
from natours.middleware.logging import RequestLoggingMiddleware
from natours.middleware.rate_limit import RateLimitMiddleware
from natours.middleware.request_id import RequestIDMiddleware, request_id_var
from natours.middleware.security_headers import SecurityHeadersMiddleware
from natours.routes import API_PREFIX, health, reviews, tours, users

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong! Please try again later."


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the whole process.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Request IDs are part of each access-log message; service modules log
    them explicitly where they matter.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Quiet third-party loggers; natours.access replaces uvicorn's access log
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("Natours API %s starting up (%s)", __version__, settings.environment)

    # Without a signing secret nobody can log in; refuse to serve at all
    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.critical("Configuration error: %s", e)
        raise ConfigurationError(str(e))

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("Natours API shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _from_http_exception(request: Request, exc: StarletteHTTPException) -> NatoursError:
    if exc.status_code == 404:
        return NotFoundError(message=f"Can't find {request.url.path} on this server!")
    return NatoursError(message=str(exc.detail), status_code=exc.status_code)


def build_error_response(error: Optional[NatoursError], exc: BaseException) -> JSONResponse:
    """
    Shape an error into the response envelope.

    Production: `{status, message}` only, and unclassified errors get a
    generic message. Development adds the error name, status code, context
    and the formatted stack trace.
    """
    if error is None:
        status_code, status = 500, "error"
        message = str(exc) if not settings.is_production else GENERIC_ERROR_MESSAGE
        context = {}
    else:
        status_code, status, message, context = (
            error.status_code,
            error.status,
            error.message,
            error.context,
        )

    body = {"status": status, "message": message}
    if not settings.is_production:
        body["error"] = {
            "name": type(error or exc).__name__,
            "statusCode": status_code,
            "context": jsonable_encoder(context),
        }
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

    headers = {}
    if isinstance(error, RateLimitExceededError):
        headers["Retry-After"] = str(error.retry_after)
    return JSONResponse(status_code=status_code, content=body, headers=headers or None)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Route every error through one translation stage.

    Handled types:
        NatoursError            → its own status and message
        RequestValidationError  → CastError / ValidationError (400)
        Pydantic ValidationError→ ValidationError (400), from service re-validation
        IntegrityError          → DuplicateKeyError (400) for unique violations
        PyJWTError              → AuthenticationError (401)
        Starlette HTTPException → 404 "Can't find ..." / 405
        Exception               → 500, logged with stack trace
    """

    async def handle_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        if isinstance(exc, StarletteHTTPException):
            error = _from_http_exception(request, exc)
        else:
            error = translate_exception(exc)

        if error is None:
            logger.error("[%s] Unexpected error: %s", rid, exc, exc_info=exc)
        elif error.status_code >= 500:
            logger.error("[%s] %s: %s | Context: %s", rid, type(error).__name__, error.message, error.context)
        else:
            logger.debug("[%s] %s: %s", rid, type(error).__name__, error.message)
        return build_error_response(error, exc)

    for exc_class in (
        NatoursError,
        RequestValidationError,
        PydanticValidationError,
        IntegrityError,
        jwt.PyJWTError,
        StarletteHTTPException,
        Exception,
    ):
        app.add_exception_handler(exc_class, handle_error)


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="Natours API",
        description=(
            "Tour booking API: tours, reviews and users with JWT authentication, "
            "password reset by email, geospatial search and rating statistics."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RateLimit → RequestID → Logging → Security → CORS → GZip
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After", "X-RateLimit-Remaining"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(tours.router, prefix=API_PREFIX)
    app.include_router(reviews.tour_reviews_router, prefix=API_PREFIX)
    app.include_router(reviews.router, prefix=API_PREFIX)
    app.include_router(users.router, prefix=API_PREFIX)
    app.include_router(health.router)

    return app


# uvicorn imports `natours.main:app`
app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run(
        "natours.main:app",
        host=settings.backend_host,
        port=settings.backend_port,
        log_level=settings.log_level.lower(),
    )
