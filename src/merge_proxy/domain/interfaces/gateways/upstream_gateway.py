# Copyright (c)
# SPDX-License-Identifier: MIT
"""Upstream Lookup Gateway Protocol.

Synopsis:
    Domain-level Protocol (PEP 544) over the slow third-party lookup endpoint.
    The promotion worker depends only on this contract.

Layer:
    domain/interfaces/gateways
"""

from __future__ import annotations

from typing import Protocol


class UpstreamGatewayProtocol(Protocol):
    """Single-attempt access to the upstream lookup.

    Notes:
        Implementations must not leak transport types (httpx responses,
        status codes) through this interface; failures surface as
        :class:`~merge_proxy.domain.exceptions.requests.UpstreamFailure`
        subclasses.
    """

    async def fetch(self, credential: str, lookup_key: str) -> str:
        """Perform exactly one upstream call and return the raw body text.

        Args:
            credential: Caller credential forwarded to upstream.
            lookup_key: Lookup key as submitted by the caller.

        Raises:
            UpstreamRedirect: Upstream answered with a 3xx.
            UpstreamStatusError: Upstream answered with another non-2xx.
            UpstreamUnavailable: Transport failure.
        """
        ...
