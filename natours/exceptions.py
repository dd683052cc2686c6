"""
Natours API — Exception Hierarchy and Error Translation
=========================================================

What:  Application-specific exceptions plus the single translation stage that
       turns storage-layer, validation-layer and token-layer failures into them.
Why:   Every error that reaches a client carries a safe message and an HTTP
       status. Unclassified errors are the only ones that do not, and the
       handlers in main.py replace their message before responding.
How:   Each exception carries a message, a status code and an optional
       context dict. `translate_exception()` maps foreign exception shapes
       (IntegrityError, Pydantic ValidationError, PyJWT errors) onto the
       hierarchy and returns None for anything it does not recognise.

Exception Hierarchy:
    NatoursError (base, operational)
    ├── ValidationError          → 400 (schema constraint violation)
    ├── CastError                → 400 (malformed identifier or value type)
    ├── DuplicateKeyError        → 400 (unique constraint violation)
    ├── AuthenticationError      → 401 (missing/invalid/expired credentials)
    ├── AuthorizationError       → 403 (role not allowed)
    ├── NotFoundError            → 404
    ├── RateLimitExceededError   → 429
    ├── EmailDeliveryError       → 500
    └── ConfigurationError       → 500
"""

import logging
import re
from typing import Any, Dict, Iterable, Mapping, Optional

import jwt
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError

logger = logging.getLogger(__name__)


class NatoursError(Exception):
    """
    Base exception for all operational Natours errors.

    Attributes:
        message:      User-facing error description (safe to return)
        status_code:  HTTP status the error maps to
        context:      Additional debug info (shown in development only)
    """

    status_code: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.context = context or {}
        super().__init__(self.message)

    @property
    def status(self) -> str:
        """`fail` for client errors, `error` for server errors."""
        return "fail" if 400 <= self.status_code < 500 else "error"


class ValidationError(NatoursError):
    """Client input violates a schema constraint or business rule."""

    status_code = 400

    def __init__(
        self,
        message: str = "Invalid input data.",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class CastError(NatoursError):
    """A value could not be converted to the type its field requires."""

    status_code = 400

    def __init__(self, field: str, value: Any, context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        ctx.update(field=field, value=str(value))
        super().__init__(message=f"Invalid {field}: {value}.", context=ctx)
        self.field = field
        self.value = value


class DuplicateKeyError(NatoursError):
    """A unique constraint rejected the write."""

    status_code = 400

    def __init__(
        self,
        fields: Iterable[str],
        value: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.fields = list(fields)
        joined = ", ".join(self.fields) or "unique"
        if value is not None:
            message = (
                f'Duplicate field value: "{value}". '
                f"Please use another value for the {joined} field!"
            )
        else:
            message = f"Duplicate value for {joined}. Please use another value!"
        ctx = context or {}
        ctx["fields"] = self.fields
        super().__init__(message=message, context=ctx)


class AuthenticationError(NatoursError):
    """No credentials, bad credentials, or credentials that are no longer valid."""

    status_code = 401

    def __init__(
        self,
        message: str = "You are not logged in! Please log in to get access.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AuthorizationError(NatoursError):
    """The authenticated user's role is not allowed to perform the action."""

    status_code = 403

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(NatoursError):
    """
    Raised when a requested resource does not exist.

    SQLAlchemy returns None for missing rows; services convert that into this
    exception so routes never branch on None.
    """

    status_code = 404

    def __init__(
        self,
        resource: str = "document",
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = f"No {resource} found with that ID"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class RateLimitExceededError(NatoursError):
    """Client exceeded the per-IP request budget for the current window."""

    status_code = 429

    def __init__(self, retry_after: int = 3600, context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(
            message="Too many requests from this IP, please try again in an hour!",
            context=ctx,
        )
        self.retry_after = retry_after


class EmailDeliveryError(NatoursError):
    """SMTP delivery failed after all retry attempts."""

    status_code = 500

    def __init__(
        self,
        message: str = "There was an error sending the email. Try again later!",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ConfigurationError(NatoursError):
    """A setting the operation depends on is missing."""

    status_code = 500


# ══════════════════════════════════════════════════════════════════════════
# Translation of foreign error shapes
# ══════════════════════════════════════════════════════════════════════════

_CAST_ERROR_TYPES = {
    "uuid_parsing",
    "uuid_type",
    "int_parsing",
    "int_type",
    "float_parsing",
    "float_type",
}

# SQLite: "UNIQUE constraint failed: users.email"
_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: (?P<columns>[\w., ]+)")
# PostgreSQL: "Key (email)=(a@b.io) already exists."
_POSTGRES_UNIQUE = re.compile(r"Key \((?P<columns>[^)]+)\)=\((?P<value>[^)]*)\) already exists")


def _format_validation_errors(errors: Iterable[Mapping[str, Any]]) -> str:
    messages = []
    for error in errors:
        msg = str(error.get("msg", "invalid value"))
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query")]
        messages.append(f"{loc[-1]}: {msg}" if loc else msg)
    return "Invalid input data. " + ". ".join(messages)


def _translate_request_validation(exc: RequestValidationError) -> NatoursError:
    errors = list(exc.errors())
    for error in errors:
        loc = error.get("loc", ())
        if error.get("type") in _CAST_ERROR_TYPES and loc and loc[0] in ("path", "query"):
            return CastError(field=str(loc[-1]), value=error.get("input"))
        if error.get("type") == "json_invalid":
            return ValidationError(message="Invalid JSON in request body.")
    return ValidationError(
        message=_format_validation_errors(errors),
        context={"errors": [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors]},
    )


def _translate_integrity_error(exc: IntegrityError) -> Optional[NatoursError]:
    text = str(exc.orig) if exc.orig is not None else str(exc)
    match = _POSTGRES_UNIQUE.search(text)
    if match:
        columns = [c.strip() for c in match.group("columns").split(",")]
        value = match.group("value") if len(columns) == 1 else None
        return DuplicateKeyError(columns, value=value)
    match = _SQLITE_UNIQUE.search(text)
    if match:
        columns = [c.strip().split(".")[-1] for c in match.group("columns").split(",")]
        return DuplicateKeyError(columns)
    if "unique" in text.lower() or "duplicate" in text.lower():
        return DuplicateKeyError([])
    return None


def translate_exception(exc: BaseException) -> Optional[NatoursError]:
    """
    Normalize an exception into the operational taxonomy.

    Returns the exception itself when it already is a NatoursError, a new
    NatoursError for recognised foreign shapes, and None for unclassified
    (programming) errors.
    """
    if isinstance(exc, NatoursError):
        return exc
    if isinstance(exc, RequestValidationError):
        return _translate_request_validation(exc)
    if isinstance(exc, PydanticValidationError):
        return ValidationError(message=_format_validation_errors(exc.errors()))
    if isinstance(exc, IntegrityError):
        return _translate_integrity_error(exc)
    if isinstance(exc, jwt.ExpiredSignatureError):
        return AuthenticationError("Your token has expired! Please log in again.")
    if isinstance(exc, jwt.PyJWTError):
        return AuthenticationError("Invalid token. Please log in again!")
    return None
