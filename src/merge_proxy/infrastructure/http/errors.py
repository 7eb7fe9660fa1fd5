# src/merge_proxy/infrastructure/http/errors.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Exception handlers rendering the JSON error envelope."""

from __future__ import annotations

from typing import Any, Final

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.responses import Response

from merge_proxy.domain.exceptions.base import DomainError
from merge_proxy.infrastructure.logging.logger import get_json_logger

logger = get_json_logger(__name__)

# Domain codes surfaced as client errors; every other domain error is a 500.
_CLIENT_ERROR_STATUS: Final[dict[str, int]] = {"INVALID_INPUT": 400}


def _trace_id(request: Request) -> str | None:
    return getattr(getattr(request, "state", None), "http_request_id", None)


def status_for(exc: DomainError) -> int:
    """Return the HTTP status a domain error maps to."""
    return _CLIENT_ERROR_STATUS.get(exc.code, 500)


def error_envelope(
    *,
    code: str,
    http_status: int,
    message: str,
    details: dict[str, Any] | None = None,
    trace_id: str | None = None,
) -> dict[str, Any]:
    err: dict[str, Any] = {
        "code": code,
        "http_status": http_status,
        "message": message,
    }
    if details is not None:
        err["details"] = details
    if trace_id is not None:
        err["trace_id"] = trace_id
    return {"error": err}


async def handle_validation_error(request: Request, exc: RequestValidationError) -> Response:
    payload = error_envelope(
        code="VALIDATION_ERROR",
        http_status=422,
        message="Request validation failed",
        details={"errors": jsonable_encoder(exc.errors())},
        trace_id=_trace_id(request),
    )
    return JSONResponse(status_code=422, content=payload)


async def handle_http_exception(request: Request, exc: HTTPException) -> Response:
    payload = error_envelope(
        code="HTTP_ERROR",
        http_status=exc.status_code,
        message=exc.detail if isinstance(exc.detail, str) else "HTTP error",
        details=None if isinstance(exc.detail, str) else {"detail": exc.detail},
        trace_id=_trace_id(request),
    )
    return JSONResponse(status_code=exc.status_code, content=payload, headers=exc.headers)


async def handle_domain_error(request: Request, exc: DomainError) -> Response:
    http_status = status_for(exc)
    if http_status >= 500:
        logger.error("http.domain_error", extra={"code": exc.code, "details": exc.details})
    payload = error_envelope(
        code=exc.code,
        http_status=http_status,
        message=str(exc) or exc.code,
        details=exc.details or None,
        trace_id=_trace_id(request),
    )
    return JSONResponse(status_code=http_status, content=payload)


async def handle_unhandled_exception(request: Request, exc: Exception) -> Response:
    logger.exception("http.unhandled_exception", exc_info=exc)
    payload = error_envelope(
        code="INTERNAL_ERROR",
        http_status=500,
        message="Internal server error",
        details=None,
        trace_id=_trace_id(request),
    )
    return JSONResponse(status_code=500, content=payload)
