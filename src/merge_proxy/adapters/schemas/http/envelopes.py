# src/merge_proxy/adapters/schemas/http/envelopes.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""HTTP Envelopes (Adapters Layer).

Purpose:
    Canonical transport-facing error envelope ``{"error": ErrorObject}``.
    Successful intake responses are not wrapped: callers receive either the
    status document or the raw result body.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from merge_proxy.adapters.schemas.http.base import BaseHTTPSchema

__all__ = ["ErrorObject", "ErrorEnvelope"]


class ErrorObject(BaseModel):
    """Structured error object inside ErrorEnvelope.

    Error codes are UPPER_SNAKE_CASE, stable across releases, and mirror the
    domain exception codes (``INVALID_INPUT``, ``RESULT_MISSING``,
    ``STORE_UNAVAILABLE``) plus ``VALIDATION_ERROR`` and ``INTERNAL_ERROR``.
    """

    model_config = ConfigDict(
        title="ErrorObject",
        extra="forbid",
        json_schema_extra={
            "examples": [
                {
                    "code": "INVALID_INPUT",
                    "http_status": 400,
                    "message": "credential and lookupKey are required",
                    "details": {"missing": ["lookupKey"]},
                    "trace_id": "req-123",
                }
            ]
        },
    )

    code: str = Field(..., description="Stable machine-readable error code.")
    http_status: int = Field(..., description="Associated HTTP status.")
    message: str = Field(..., description="Human-readable error description.")
    details: dict[str, Any] | None = Field(
        default=None,
        description="Optional structured details safe for clients.",
    )
    trace_id: str | None = Field(
        default=None,
        description="Request correlation identifier (X-Request-ID).",
    )


class ErrorEnvelope(BaseHTTPSchema):
    r"""Canonical error envelope: {"error": ErrorObject}."""

    model_config = ConfigDict(title="ErrorEnvelope", extra="forbid")

    error: ErrorObject = Field(..., description="Structured error details.")
