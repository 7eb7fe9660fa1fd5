# src/merge_proxy/adapters/schemas/http/requests.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""HTTP schemas for the intake endpoint.

Layer:
    adapters/schemas/http
"""

from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, ConfigDict, Field

from merge_proxy.adapters.schemas.http.base import BaseHTTPSchema


class SubmitRequestBody(BaseHTTPSchema):
    """Body of ``POST /v1/requests``.

    Both fields are optional at the schema level so that a missing value is
    reported as ``INVALID_INPUT`` (400) by the use case rather than a schema
    error. ``cookie``/``dea`` are accepted for existing clients.
    """

    # Unknown fields from older clients are ignored.
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    credential: str | None = Field(
        default=None,
        validation_alias=AliasChoices("credential", "cookie"),
        description="Caller credential token forwarded upstream as the Cookie header.",
        examples=["A"],
    )
    lookup_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("lookupKey", "lookup_key", "dea"),
        description="Lookup key to resolve upstream.",
        examples=["123-456"],
    )


class RequestStatusResponse(BaseHTTPSchema):
    """202 body returned while a request is pending."""

    request_id: str = Field(..., serialization_alias="requestId")
    status: Literal["queued", "in-progress"]
    message: str
