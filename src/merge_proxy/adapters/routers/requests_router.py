# src/merge_proxy/adapters/routers/requests_router.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Requests Router.

Summary:
    Intake endpoint. Each call either queues the lookup, reports that it is
    still pending, or hands back the finished result exactly once.

Layer:
    adapters/routers
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Request, Response, status

from merge_proxy.adapters.presenters.request_presenter import RequestPresenter
from merge_proxy.adapters.schemas.http.envelopes import ErrorEnvelope
from merge_proxy.adapters.schemas.http.requests import RequestStatusResponse, SubmitRequestBody
from merge_proxy.application.use_cases.requests.submit_request import SubmitRequest
from merge_proxy.dependencies.requests import get_request_presenter, get_submit_request_uc
from merge_proxy.domain.exceptions.requests import (
    InvalidRequestInput,
    ResultMissing,
    StoreUnavailable,
)

router = APIRouter(prefix="/v1", tags=["Requests"])

_RESPONSES: dict[int | str, dict[str, Any]] = {
    200: {
        "description": "The finished upstream result, consumed by this call.",
        "content": {"text/html": {}},
    },
    202: {"description": "Queued or in progress.", "model": RequestStatusResponse},
    400: {"description": "Missing credential or lookup key.", "model": ErrorEnvelope},
    500: {"description": "Store unavailable or result missing.", "model": ErrorEnvelope},
}


@router.post(
    "/requests",
    status_code=status.HTTP_202_ACCEPTED,
    responses=_RESPONSES,
    summary="Submit or poll a deduplicated upstream lookup",
    operation_id="submit_request",
    response_model=None,
)
async def submit_request(
    request: Request,
    uc: Annotated[SubmitRequest, Depends(get_submit_request_uc)],
    presenter: Annotated[RequestPresenter, Depends(get_request_presenter)],
    body: Annotated[SubmitRequestBody | None, Body()] = None,
) -> Response:
    """Submit a lookup or poll for its result.

    Returns:
        202 with the request status while pending, 200 with the raw result
        body once complete, or an ErrorEnvelope on error statuses.
    """
    trace_id = getattr(request.state, "http_request_id", None)
    credential = body.credential if body else None
    lookup_key = body.lookup_key if body else None
    try:
        outcome = await uc.execute(credential, lookup_key)
    except (InvalidRequestInput, ResultMissing, StoreUnavailable) as exc:
        return presenter.present_error(exc, trace_id=trace_id)
    return presenter.present(outcome)
