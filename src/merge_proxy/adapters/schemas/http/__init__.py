# Copyright (c)
# SPDX-License-Identifier: MIT
"""HTTP Schemas package (Adapters Layer).

Purpose:
    Public, adapter-facing HTTP schema surface for merge-proxy.

    This module re-exports the envelopes and resource schemas used by
    routers and presenters. It intentionally does NOT expose BaseHTTPSchema to
    keep the base class internal to this package.

Layer:
    adapters/schemas/http
"""

from __future__ import annotations

from merge_proxy.adapters.schemas.http.envelopes import ErrorEnvelope, ErrorObject
from merge_proxy.adapters.schemas.http.requests import RequestStatusResponse, SubmitRequestBody

__all__ = [
    # Envelopes
    "ErrorObject",
    "ErrorEnvelope",
    # Intake
    "SubmitRequestBody",
    "RequestStatusResponse",
]
