"""
Natours API — Query-Builder
=============================

What:  Turns a list endpoint's query-string into a filtered, sorted, paginated
       SQLAlchemy `Select`, plus the field projection to apply when the rows
       are serialized.
Why:   Every collection endpoint (tours, users, reviews) accepts the same
       query language; resources only differ in which API fields map to which
       columns.
How:   A chainable builder. Each step refines the statement and returns the
       builder, so the handler factory reads as one pipeline:

           QueryBuilder(stmt, params, columns).filter().sort().limit_fields().paginate()

Query language:
    ?difficulty=easy                 exact match
    ?duration[gte]=5&price[lt]=1500  range predicates (gte, gt, lte, lt)
    ?sort=-ratingsAverage,price      leading "-" means descending
    ?fields=name,price               projection; "-summary" excludes instead
    ?page=2&limit=10                 offset = (page - 1) * limit

Unknown fields are ignored, unknown operators are rejected, and values that
cannot be converted to the column's type raise a CastError. Pagination never
raises: anything that is not a positive integer falls back to the default.
"""

import logging
import operator
import re
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from pydantic.alias_generators import to_camel
from sqlalchemy import Select

from natours.exceptions import CastError, ValidationError

logger = logging.getLogger(__name__)

# ── Query language constants ──────────────────────────────────────────────
RESERVED_PARAMS = frozenset({"page", "sort", "limit", "fields"})
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 100
DEFAULT_SORT = "-createdAt"

# page and limit stay below 2**31 so the offset fits a signed 64-bit integer
MAX_PAGE_VALUE = 2**31 - 1
BIGINT_MIN, BIGINT_MAX = -(2**63), 2**63 - 1

OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    "gte": operator.ge,
    "gt": operator.gt,
    "lte": operator.le,
    "lt": operator.lt,
}

# "price" or "price[gte]"
_FILTER_KEY = re.compile(r"^(?P<field>[A-Za-z_][A-Za-z0-9_]*)(?:\[(?P<op>[^\]]*)\])?$")

_TRUE = {"true", "1", "yes"}
_FALSE = {"false", "0", "no"}


def _api_name(name: str) -> str:
    """Accept snake_case field names but project on the camelCase document keys."""
    return to_camel(name) if "_" in name else name


def _split(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def _positive_int(raw: Optional[str], default: int) -> int:
    try:
        value = int(raw) if raw is not None else default
    except (TypeError, ValueError):
        return default
    return value if 1 <= value <= MAX_PAGE_VALUE else default


def cast_value(field: str, column, raw: str) -> Any:
    """Convert a query-string value to the Python type of `column`."""
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return raw

    try:
        if python_type is bool:
            lowered = raw.lower()
            if lowered in _TRUE:
                return True
            if lowered in _FALSE:
                return False
            raise ValueError(raw)
        if python_type is datetime:
            return datetime.fromisoformat(raw)
        if python_type is uuid.UUID:
            return uuid.UUID(raw)
        if python_type is int:
            value = int(raw)
            if not BIGINT_MIN <= value <= BIGINT_MAX:
                raise ValueError(raw)
            return value
        if python_type is float:
            return float(raw)
        return raw
    except (TypeError, ValueError):
        raise CastError(field=field, value=raw)


# ── Result types ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FieldProjection:
    """Which API fields a serialized document keeps (include) or drops (exclude)."""

    include: Tuple[str, ...] = ()
    exclude: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.include and not self.exclude

    @classmethod
    def parse(cls, raw: Optional[str]) -> "FieldProjection":
        include: List[str] = []
        exclude: List[str] = []
        for name in _split(raw):
            if name.startswith("-"):
                if name[1:]:
                    exclude.append(_api_name(name[1:]))
            else:
                include.append(_api_name(name))
        # Mixing both forms: the allow-list wins
        if include:
            return cls(include=tuple(include))
        return cls(exclude=tuple(exclude))


@dataclass(frozen=True)
class Pagination:
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


# ── Builder ───────────────────────────────────────────────────────────────


class QueryBuilder:
    """
    Chainable refinement of a base `Select`.

    Args:
        statement:    Base query, already restricted to the resource scope
        query_params: Raw key/value pairs from the query-string
        columns:      API field name → mapped column (filterable and sortable)
        primary_key:  Column appended to every ORDER BY as a tie-breaker
    """

    def __init__(
        self,
        statement: Select,
        query_params: Mapping[str, str],
        columns: Mapping[str, Any],
        primary_key=None,
    ):
        self.statement = statement
        self.query_params = dict(query_params)
        self.columns = columns
        self.primary_key = primary_key
        self.projection = FieldProjection()
        self.pagination = Pagination()

    def filter(self) -> "QueryBuilder":
        for key, raw in self.query_params.items():
            if key in RESERVED_PARAMS:
                continue
            match = _FILTER_KEY.match(key)
            if not match:
                continue
            field, op_name = match.group("field"), match.group("op")
            column = self.columns.get(field)
            if column is None:
                logger.debug("Ignoring filter on unknown field '%s'", field)
                continue

            if op_name is None:
                compare = operator.eq
            elif op_name in OPERATORS:
                compare = OPERATORS[op_name]
            else:
                raise ValidationError(
                    message=f"Invalid filter operator '{op_name}' on {field}. "
                    f"Use one of: {', '.join(OPERATORS)}.",
                    field=field,
                )
            self.statement = self.statement.where(compare(column, cast_value(field, column, raw)))
        return self

    def sort(self) -> "QueryBuilder":
        order_by = []
        for name in _split(self.query_params.get("sort")):
            descending = name.startswith("-")
            column = self.columns.get(name.lstrip("-"))
            if column is None:
                continue
            order_by.append(column.desc() if descending else column.asc())

        if not order_by:
            default = self.columns.get(DEFAULT_SORT.lstrip("-"))
            if default is not None:
                order_by.append(default.desc())

        if self.primary_key is not None:
            order_by.append(self.primary_key.asc())
        if order_by:
            self.statement = self.statement.order_by(*order_by)
        return self

    def limit_fields(self) -> "QueryBuilder":
        self.projection = FieldProjection.parse(self.query_params.get("fields"))
        return self

    def paginate(self) -> "QueryBuilder":
        self.pagination = Pagination(
            page=_positive_int(self.query_params.get("page"), DEFAULT_PAGE),
            limit=_positive_int(self.query_params.get("limit"), DEFAULT_LIMIT),
        )
        self.statement = self.statement.offset(self.pagination.offset).limit(self.pagination.limit)
        return self
