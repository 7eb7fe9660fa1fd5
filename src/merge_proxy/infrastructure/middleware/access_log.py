# src/merge_proxy/infrastructure/middleware/access_log.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Access Log Middleware.

Summary:
    Emits one structured access log entry per request/response pair.

Fields:
    method, path, status (500 if the handler raised), elapsed_ms,
    client_ip, http_request_id (from ``RequestIdMiddleware``), ok.

Usage:
    app.add_middleware(AccessLogMiddleware)
"""

from __future__ import annotations

import logging
import time
from typing import Any

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from merge_proxy.infrastructure.logging.logger import get_json_logger

_logger: logging.Logger = get_json_logger(__name__)


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Structured access logging middleware."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Log a single access record around the downstream handler."""
        t0 = time.perf_counter()
        response: Response | None = None
        ok = False
        try:
            response = await call_next(request)
            ok = True
            return response
        finally:
            elapsed_ms = (time.perf_counter() - t0) * 1000.0
            log: dict[str, Any] = {
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code if response is not None else 500,
                "elapsed_ms": round(elapsed_ms, 2),
                "client_ip": request.client.host if request.client else None,
                "http_request_id": getattr(request.state, "http_request_id", None),
                "ok": ok,
            }
            _logger.info("access_log", extra=log)
