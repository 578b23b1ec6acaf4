"""Exception handlers mapping the error taxonomy onto the JSON envelope.

Every error response is ``{"success": false, "message": ...}`` plus, where
relevant, ``errors`` (a ``{field, message}`` list), ``field`` or
``requestedUrl``.
"""

from __future__ import annotations

import logging
import traceback
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ahara.core.errors import (
    ConfigurationMissing,
    DuplicateRecord,
    FieldError,
    MalformedIdentity,
    NotFound,
    ValidationFailure,
)

logger = logging.getLogger(__name__)

AVAILABLE_ENDPOINTS = [
    "GET /",
    "GET /health",
    "GET /api/patients",
    "POST /api/patients",
    "GET /api/patients/:id",
    "PUT /api/patients/:id",
    "DELETE /api/patients/:id",
    "GET /api/patients/:id/summary",
    "POST /api/diet-plans/generate/:patientId",
    "POST /api/diet-plans/generate-direct",
    "POST /api/diet-plans/export/plan",
    "POST /api/diet-plans/export/recipes",
    "GET /api/diet-plans/health",
    "GET /api/diet-plans/test/:patientId",
]


def _envelope(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, **extra},
    )


def _request_errors(exc: RequestValidationError) -> ValidationFailure:
    """Convert FastAPI request errors, dropping the leading ``body``/``query`` segment."""
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ())]
        field = ".".join(loc[1:]) if len(loc) > 1 else ".".join(loc)
        errors.append(FieldError(field=field or "body", message=err.get("msg", "Invalid value")))
    return ValidationFailure(errors)


async def validation_failure_handler(request: Request, exc: ValidationFailure) -> JSONResponse:
    return _envelope(400, exc.message, errors=exc.as_dicts())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    if any(err.get("type") == "json_invalid" for err in exc.errors()):
        return _envelope(400, "Invalid JSON format")
    failure = _request_errors(exc)
    return _envelope(400, failure.message, errors=failure.as_dicts())


async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
    return _envelope(404, str(exc) or "Not found")


async def malformed_identity_handler(request: Request, exc: MalformedIdentity) -> JSONResponse:
    return _envelope(400, str(exc) or "Invalid ID format")


async def duplicate_record_handler(request: Request, exc: DuplicateRecord) -> JSONResponse:
    return _envelope(409, str(exc), field=exc.field)


async def configuration_missing_handler(
    request: Request, exc: ConfigurationMissing
) -> JSONResponse:
    logger.warning("Configuration check failed: %s", exc)
    return _envelope(
        500,
        f"Diet plan generation service not configured. Please set {exc.credential}.",
        credential=exc.credential,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return _envelope(
            404,
            "Endpoint not found",
            requestedUrl=request.url.path,
            availableEndpoints=AVAILABLE_ENDPOINTS,
        )
    return _envelope(exc.status_code, str(exc.detail))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    settings = getattr(request.app.state, "settings", None)
    if settings is not None and settings.is_production:
        return _envelope(500, "Internal Server Error")
    stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return _envelope(500, "Internal Server Error", stack=stack)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationFailure, validation_failure_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(NotFound, not_found_handler)
    app.add_exception_handler(MalformedIdentity, malformed_identity_handler)
    app.add_exception_handler(DuplicateRecord, duplicate_record_handler)
    app.add_exception_handler(ConfigurationMissing, configuration_missing_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
