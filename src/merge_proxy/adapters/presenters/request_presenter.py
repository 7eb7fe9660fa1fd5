# src/merge_proxy/adapters/presenters/request_presenter.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Presenter for intake outcomes.

Purpose:
    Shape ``SubmitOutcome`` DTOs into HTTP responses: a 202 status document
    while the request is pending, or the raw stored body (200) once it has
    been consumed. Also builds the error envelope for domain errors raised
    by the intake use case.

Layer:
    adapters/presenters
"""

from __future__ import annotations

from fastapi import Response, status
from fastapi.responses import JSONResponse

from merge_proxy.adapters.schemas.http.envelopes import ErrorEnvelope, ErrorObject
from merge_proxy.adapters.schemas.http.requests import RequestStatusResponse
from merge_proxy.application.schemas.dto.requests import SubmitOutcome
from merge_proxy.domain.exceptions.base import DomainError
from merge_proxy.infrastructure.http.errors import status_for


class RequestPresenter:
    """Maps intake outcomes and errors to HTTP responses."""

    def __init__(self, *, result_media_type: str = "text/html") -> None:
        self._media_type = result_media_type

    def present(self, outcome: SubmitOutcome) -> Response:
        """Return the HTTP response for a successful intake call."""
        if outcome.body is not None:
            return Response(
                content=outcome.body,
                status_code=status.HTTP_200_OK,
                media_type=self._media_type,
            )

        body = RequestStatusResponse(
            request_id=outcome.request_id,
            status=outcome.status.value,  # type: ignore[arg-type]
            message=outcome.message or "",
        )
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content=body.model_dump_http(),
        )

    def present_error(self, exc: DomainError, *, trace_id: str | None) -> JSONResponse:
        """Return the error envelope response for a domain error."""
        http_status = status_for(exc)
        envelope = ErrorEnvelope(
            error=ErrorObject(
                code=exc.code,
                http_status=http_status,
                message=str(exc) or exc.code,
                details=exc.details or None,
                trace_id=trace_id,
            )
        )
        return JSONResponse(
            status_code=http_status,
            content=envelope.model_dump_http(exclude_none=True),
        )
