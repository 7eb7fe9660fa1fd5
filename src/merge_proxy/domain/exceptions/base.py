# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Domain Error Root.

Summary:
    Every failure the request pipeline reports is a ``DomainError`` carrying
    a stable UPPER_SNAKE_CASE ``code`` and a JSON-safe ``details`` dict.
    Three families hang off it (see ``requests.py``):

    * caller errors: ``INVALID_INPUT`` (the only code mapped to a 4xx);
    * store errors: ``STORE_UNAVAILABLE``, ``RESULT_MISSING``,
      ``MALFORMED_RECORD``; surfaced by intake as 500 and absorbed by the
      promotion worker;
    * upstream errors: ``UPSTREAM_*``; never reach an HTTP caller, they end
      a promotion and delete its record.

    The HTTP boundary maps ``code`` to a status in ``infrastructure/http/errors.py``.

Layer:
    domain/exceptions
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Root of the pipeline's error taxonomy.

    Args:
        message: Human-readable description; falls back to ``code`` in envelopes.
        details: Structured, client-safe context (request ids, statuses).
    """

    code: str = "DOMAIN_ERROR"

    def __init__(self, message: str = "", *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = details or {}
