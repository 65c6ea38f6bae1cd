"""Translate pipeline errors into HTTP responses.

Structure failures (the model answered with something unusable) and
host/network failures (the model could not be asked) get different status
codes and different advice, so the two are never confused by the user.
"""

from __future__ import annotations

from typing import Any, TypeVar

from fastapi import HTTPException
from pydantic import BaseModel, ValidationError

from thunderclerk.errors import (
    ActionCancelled,
    EmptyResult,
    InvalidHost,
    ModelTimeout,
    ResponseFormatError,
    ThunderClerkError,
    UpstreamError,
)

INVALID_OUTPUT_HINT = "Model returned invalid output."
SETTINGS_HINT = "Check your model/host settings."

M = TypeVar("M", bound=BaseModel)


def to_http_exception(exc: ThunderClerkError) -> HTTPException:
    if isinstance(exc, ResponseFormatError):
        return HTTPException(status_code=502, detail=f"{INVALID_OUTPUT_HINT} {exc}")
    if isinstance(exc, InvalidHost):
        return HTTPException(status_code=400, detail=f"{exc} {SETTINGS_HINT}")
    if isinstance(exc, ModelTimeout):
        return HTTPException(status_code=504, detail=f"{exc} {SETTINGS_HINT}")
    if isinstance(exc, UpstreamError):
        return HTTPException(status_code=503, detail=f"LLM unavailable: {exc} {SETTINGS_HINT}")
    if isinstance(exc, EmptyResult):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, ActionCancelled):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def invalid_record_exception(exc: ValidationError) -> HTTPException:
    """A record that survived post-processing but still does not fit its schema."""
    fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
    return HTTPException(status_code=502, detail=f"{INVALID_OUTPUT_HINT} Bad fields: {fields}")


def validate_record(model: type[M], record: Any) -> M:
    """Validate a pipeline record against its response schema, mapping failures to 502."""
    try:
        return model.model_validate(record)
    except ValidationError as exc:
        raise invalid_record_exception(exc) from exc
