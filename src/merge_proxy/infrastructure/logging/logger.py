# src/merge_proxy/infrastructure/logging/logger.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Structured JSON logging utilities.

This module exposes an idempotent root configurator and a per-module logger
factory that produce JSON logs suitable for ingestion by log pipelines.

Features:
    * Stable keys: ``ts``, ``level``, ``logger``, ``message``.
    * Correlation via contextvars: ``http_request_id`` (the ``X-Request-ID``
      of an intake call) and ``request_id`` (the ledger identity a promotion
      is working on).
    * Fields passed through ``extra=`` are merged into the JSON line.

Typical usage:
    configure_root_logging()
    log = get_json_logger(__name__)
    log.info("promotion.start", extra={"request_id": rid})
"""

from __future__ import annotations

import json
import logging
import os
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

__all__ = [
    "configure_root_logging",
    "get_json_logger",
    "set_request_context",
    "get_http_request_id",
    "get_ledger_request_id",
]

# Per-task correlation context.
_HTTP_REQUEST_ID_CTX: ContextVar[str | None] = ContextVar(
    "merge_proxy_http_request_id", default=None
)
_LEDGER_REQUEST_ID_CTX: ContextVar[str | None] = ContextVar(
    "merge_proxy_request_id", default=None
)

# Attributes every LogRecord carries; anything else came in through ``extra=``.
_RESERVED_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime", "taskName"}


def set_request_context(
    *,
    http_request_id: str | None = None,
    request_id: str | None = None,
) -> None:
    """Set correlation identifiers on the current context.

    Args:
        http_request_id: Correlation identifier from ``X-Request-ID``, if any.
        request_id: Ledger identity being processed, if any.

    Notes:
        Additive: passing only one argument leaves the other unchanged.
    """
    if http_request_id is not None:
        _HTTP_REQUEST_ID_CTX.set(http_request_id)
    if request_id is not None:
        _LEDGER_REQUEST_ID_CTX.set(request_id)


def get_http_request_id() -> str | None:
    """Return the current HTTP request id from contextvars, if any."""
    return _HTTP_REQUEST_ID_CTX.get(None)


def get_ledger_request_id() -> str | None:
    """Return the ledger identity bound to the current context, if any."""
    return _LEDGER_REQUEST_ID_CTX.get(None)


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class _JsonFormatter(logging.Formatter):
    """JSON log formatter emitting stable keys and optional extras."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as a JSON object.

        Args:
            record: Logging record.

        Returns:
            JSON-encoded log line.
        """
        payload: dict[str, Any] = {
            "ts": datetime.now(tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        http_rid = getattr(record, "http_request_id", None) or _HTTP_REQUEST_ID_CTX.get(None)
        if http_rid:
            payload["http_request_id"] = http_rid
        rid = getattr(record, "request_id", None) or _LEDGER_REQUEST_ID_CTX.get(None)
        if rid:
            payload["request_id"] = rid

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            if exc_type is not None:
                payload["exc_type"] = exc_type.__name__
            if exc_value is not None:
                payload["exc_message"] = str(exc_value)

        for key, value in vars(record).items():
            if key in _RESERVED_ATTRS or key in payload:
                continue
            payload[key] = _jsonable(value)

        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def configure_root_logging(level: str | int | None = None) -> None:
    """Initialize the root logger with a JSON stream handler (idempotent).

    Args:
        level: Logging level or level name. If ``None``, use env ``LOG_LEVEL`` or ``INFO``.
    """
    root = logging.getLogger()

    env_level = os.getenv("LOG_LEVEL")
    resolved: int | str = (
        level if level is not None else (env_level.upper() if env_level else "INFO")
    )
    if isinstance(resolved, str):
        resolved = resolved.upper()
    root.setLevel(resolved)

    if root.handlers:
        # Already configured; prevent duplicate handlers on hot reload.
        return

    handler = logging.StreamHandler()
    handler.setFormatter(_JsonFormatter())
    root.addHandler(handler)


def get_json_logger(name: str) -> logging.Logger:
    """Return a module-specific logger backed by the JSON root handler.

    This does *not* implicitly configure the root logger. Call
    :func:`configure_root_logging` once at startup for global defaults.

    Args:
        name: Logger name, typically ``__name__`` of the caller.

    Returns:
        Configured logger.
    """
    logger = logging.getLogger(name)
    logger.propagate = True
    return logger
