"""
Natours API — Shared Schema Pieces
====================================

What:  Base model configuration, the response envelope, and field projection.
Why:   The public API speaks camelCase (`ratingsAverage`, `imageCover`) while
       Python code speaks snake_case. Every schema inherits the alias
       generator from `ApiModel` so both spellings validate and responses
       serialize as camelCase.
"""

from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from natours.services.query_builder import FieldProjection


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Envelope(BaseModel):
    """
    Success envelope: `{status, results?, token?, data?, message?}`.

    Used as the response_model of routes whose payload shape does not vary
    with field projection; fields left as None are excluded from the body.
    """

    status: str = Field(default="success")
    results: Optional[int] = None
    token: Optional[str] = None
    message: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    """Error envelope. `error` and `stack` only appear in development."""

    status: str = Field(description="'fail' for 4xx, 'error' for 5xx")
    message: str
    error: Optional[Dict[str, Any]] = None
    stack: Optional[str] = None


def envelope(
    data: Optional[Dict[str, Any]] = None,
    results: Optional[int] = None,
    token: Optional[str] = None,
    message: Optional[str] = None,
) -> Dict[str, Any]:
    """Build a success body. Only the top-level keys that were given appear."""
    body: Dict[str, Any] = {"status": "success"}
    for key, value in (("results", results), ("token", token), ("message", message), ("data", data)):
        if value is not None:
            body[key] = value
    return body


def dump(model: ApiModel) -> Dict[str, Any]:
    return model.model_dump(by_alias=True, mode="json")


def project(model: ApiModel, projection: Optional[FieldProjection] = None) -> Dict[str, Any]:
    """
    Serialize a response model keeping only the projected API fields.

    Projection works on the camelCase names clients send in `?fields=`;
    `id` is always kept so results stay addressable.
    """
    document = dump(model)
    if projection is None or projection.is_empty:
        return document
    if projection.include:
        keep = set(projection.include) | {"id"}
        return {k: v for k, v in document.items() if k in keep}
    return {k: v for k, v in document.items() if k not in projection.exclude}


def project_all(models: Iterable[ApiModel], projection: Optional[FieldProjection] = None) -> List[Dict[str, Any]]:
    return [project(m, projection) for m in models]
