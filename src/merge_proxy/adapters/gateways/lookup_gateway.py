# src/merge_proxy/adapters/gateways/lookup_gateway.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Adapter Gateway: upstream lookup transport → domain gateway port.

Thin adapter over :class:`LookupClient` implementing
``UpstreamGatewayProtocol`` for the promotion use case. Transport errors are
already mapped to domain ``UpstreamFailure`` subclasses by the client; this
layer only adds the structured log line per attempt.
"""

from __future__ import annotations

from merge_proxy.domain.exceptions.requests import UpstreamFailure
from merge_proxy.infrastructure.external_apis.lookup.client import LookupClient
from merge_proxy.infrastructure.logging.logger import get_json_logger

logger = get_json_logger(__name__)


class LookupGateway:
    """Upstream gateway backed by the HTTP lookup client."""

    def __init__(self, client: LookupClient) -> None:
        self._client = client

    async def fetch(self, credential: str, lookup_key: str) -> str:
        """Perform one upstream lookup and return the body text.

        Raises:
            UpstreamFailure: Any mapped upstream failure (redirect, status, transport).
        """
        try:
            body = await self._client.lookup(credential, lookup_key)
        except UpstreamFailure as exc:
            logger.warning(
                "upstream.failed",
                extra={"code": exc.code, "details": exc.details},
            )
            raise
        logger.info("upstream.succeeded", extra={"bytes": len(body)})
        return body
