# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Request Pipeline Exceptions

Purpose:
    Error conditions raised by the intake gateway, the request ledger, the
    result store, and the promotion worker. Mapped to HTTP by adapters.

Layer: domain/exceptions
"""
from __future__ import annotations

from .base import DomainError


class InvalidRequestInput(DomainError):
    """Caller omitted the credential or the lookup key."""

    code = "INVALID_INPUT"


class ResultMissing(DomainError):
    """A complete record points at a result blob that does not exist."""

    code = "RESULT_MISSING"


class StoreUnavailable(DomainError):
    """The ledger or the result store could not be reached."""

    code = "STORE_UNAVAILABLE"


class MalformedRecord(DomainError):
    """A stored record or trigger payload could not be decoded."""

    code = "MALFORMED_RECORD"


class UpstreamFailure(DomainError):
    """The single upstream attempt did not produce a usable body."""

    code = "UPSTREAM_FAILURE"


class UpstreamRedirect(UpstreamFailure):
    """Upstream answered with a 3xx; redirects are never followed."""

    code = "UPSTREAM_REDIRECT"


class UpstreamStatusError(UpstreamFailure):
    """Upstream answered with a non-2xx, non-redirect status."""

    code = "UPSTREAM_STATUS_ERROR"


class UpstreamUnavailable(UpstreamFailure):
    """Transport-level failure talking to upstream (DNS, connect, read)."""

    code = "UPSTREAM_UNAVAILABLE"
