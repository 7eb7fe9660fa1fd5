# src/merge_proxy/infrastructure/external_apis/lookup/client.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Upstream Lookup Transport Client (async, single attempt, instrumented).

This transport posts the practitioner lookup form to the upstream endpoint
and returns the raw response body. It provides:

* Async HTTP (httpx) with an explicit per-request timeout.
* Exactly one attempt per call; no retries.
* Redirects are never followed; any 3xx is a failure.
* Deterministic mapping to domain errors (3xx/non-2xx/transport).
* Prometheus latency histogram labelled by outcome.
"""

from __future__ import annotations

import time
from contextlib import suppress
from typing import Final

import httpx

from merge_proxy.config.settings import Settings
from merge_proxy.domain.exceptions.requests import (
    UpstreamFailure,
    UpstreamRedirect,
    UpstreamStatusError,
    UpstreamUnavailable,
)
from merge_proxy.domain.services.request_identity import sanitize_lookup_key
from merge_proxy.infrastructure.logging.logger import get_http_request_id, get_json_logger
from merge_proxy.infrastructure.observability.metrics import get_upstream_latency_seconds

__all__ = ["LookupClient", "build_form"]

logger = get_json_logger(__name__)

_DEFAULT_HEADERS: Final[dict[str, str]] = {
    "Accept": "text/html,application/xhtml+xml",
    "User-Agent": "merge-proxy-lookup-client/1.0",
}

# Static fields the upstream search form expects. The lookup field is filled
# per call; every other field is posted empty or with its fixed criteria.
_STATIC_FORM: Final[tuple[tuple[str, str], ...]] = (
    ("helpmode", "off"),
    ("Database", "Practitioner"),
    ("quickSearch", ""),
    ("postHsiId", ""),
    ("postSourceId", ""),
    ("postSourceType", ""),
    ("singleSearch", ""),
    ("postSearchKey", ""),
    ("sUniverseSource", "HCP-SLN"),
    ("license", ""),
    ("licdea_criteria", "EM"),
    ("last_name", ""),
    ("lastname_criteria", "SW"),
    ("first_name", ""),
    ("firstname_criteria", "SW"),
    ("middle_name", ""),
    ("middlename_criteria", "SW"),
    ("selState", "States"),
    ("hdnState", "States"),
    ("hdnSelBac", ""),
    ("hdnProfDesigAma", ""),
    ("hdnSelTaxonomyDescr", ""),
    ("hdnSelProfDesig", ""),
    ("hdnSelBestStatus", ""),
    ("sActiveLicense", ""),
    ("street_address", ""),
    ("street_address_criteria", "SW"),
    ("city", ""),
    ("city_criteria", "SW"),
    ("sAddressState", ""),
    ("license_zip", ""),
    ("hdnSelSanctionSource", ""),
    ("medproid", ""),
    ("medpromasterid", ""),
    ("hospital_name", ""),
    ("hospital_name_criteria", "SW"),
    ("group_practice", ""),
    ("group_practice_criteria", "SW"),
    ("customerid", ""),
    ("selSearchType", ""),
    ("SearchText2", ""),
    ("sSpecialty", ""),
    ("txtExpiresAfter", ""),
    ("sSamp", ""),
    ("sCertType", ""),
    ("sPrimSecSpecialty", ""),
    ("sTaxonomyCodeDescr", ""),
    ("sTaxonomyCode", ""),
    ("sSubset", ""),
    ("sRecordType", ""),
    ("sClassOfTradeDescr", ""),
    ("sClassOfTradeCode", ""),
    ("advsearch", "inline"),
    ("txtDetailCopy", ""),
)


def build_form(lookup_key: str, *, lookup_field: str = "license") -> dict[str, str]:
    """Return the form body for one lookup.

    Args:
        lookup_key: Lookup key as submitted; sanitized to ``[A-Za-z0-9]`` here.
        lookup_field: Name of the form field carrying the key.

    Returns:
        Ordered mapping of form fields.
    """
    form = dict(_STATIC_FORM)
    form[lookup_field] = sanitize_lookup_key(lookup_key)
    return form


class LookupClient:
    """Single-attempt transport client for the upstream lookup endpoint."""

    def __init__(
        self,
        settings: Settings,
        *,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport client.

        Args:
            settings: Application settings (``UPSTREAM_*`` fields are used).
            http: Optional shared ``httpx.AsyncClient``. If omitted, a client
                is created and owned by this instance. Injected clients must
                not follow redirects; the client enforces this per request.
        """
        self._url = settings.upstream_url
        self._lookup_field = settings.upstream_lookup_field
        self._timeout = float(settings.upstream_timeout_s)
        self._accept_error_bodies = settings.upstream_accept_error_bodies
        self._owns_client = http is None
        self._client = http or httpx.AsyncClient(
            timeout=self._timeout,
            headers=_DEFAULT_HEADERS.copy(),
            follow_redirects=False,
        )
        self._latency = get_upstream_latency_seconds()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance owns it."""
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    async def lookup(self, credential: str, lookup_key: str) -> str:
        """Post the lookup form once and return the response text.

        Args:
            credential: Value sent verbatim as the ``Cookie`` header.
            lookup_key: Lookup key as submitted by the caller.

        Returns:
            The response body decoded as text.

        Raises:
            UpstreamRedirect: Upstream answered with a 3xx.
            UpstreamStatusError: Upstream answered with another non-2xx and
                error bodies are not accepted.
            UpstreamUnavailable: Transport failure (DNS, connect, timeout).
        """
        headers = self._headers(credential)
        form = build_form(lookup_key, lookup_field=self._lookup_field)

        start = time.perf_counter()
        outcome = "success"
        try:
            try:
                response = await self._client.post(
                    self._url,
                    data=form,
                    headers=headers,
                    timeout=self._timeout,
                    follow_redirects=False,
                )
            except httpx.RequestError as exc:
                raise UpstreamUnavailable(
                    "upstream transport failure",
                    details={"error": type(exc).__name__},
                ) from exc
            return self._interpret(response)
        except UpstreamFailure as exc:
            outcome = type(exc).__name__
            raise
        finally:
            with suppress(Exception):
                self._latency.labels(outcome=outcome).observe(time.perf_counter() - start)

    # --------------------------- Internal helpers ------------------------- #

    def _headers(self, credential: str) -> dict[str, str]:
        headers = {"Cookie": credential}
        # Correlation propagation when called within an HTTP request.
        http_request_id = get_http_request_id()
        if http_request_id:
            headers["X-Request-ID"] = http_request_id
        return headers

    def _interpret(self, response: httpx.Response) -> str:
        status = response.status_code
        if 300 <= status < 400:
            raise UpstreamRedirect(
                "upstream answered with a redirect",
                details={"status": status, "location": response.headers.get("location")},
            )
        if not response.is_success:
            if not self._accept_error_bodies:
                raise UpstreamStatusError(
                    "upstream answered with an error status",
                    details={"status": status},
                )
            logger.warning("upstream.error_body_accepted", extra={"status": status})
        return response.text

