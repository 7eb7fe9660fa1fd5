# src/merge_proxy/dependencies/requests.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Dependency wiring for the intake endpoint.

Overview:
    Builds the :class:`SubmitRequest` use case from the shared ledger and
    result store that the bootstrap placed on ``app.state``. Nothing here
    opens connections.

Layer:
    dependencies
"""

from __future__ import annotations

from fastapi import Request

from merge_proxy.adapters.presenters.request_presenter import RequestPresenter
from merge_proxy.application.use_cases.requests.submit_request import SubmitRequest
from merge_proxy.config.settings import Settings


def _settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def get_submit_request_uc(request: Request) -> SubmitRequest:
    """Return the intake use case bound to this app's stores."""
    state = request.app.state
    return SubmitRequest(
        state.ledger,
        state.results,
        retention_seconds=_settings(request).retention_seconds,
    )


def get_request_presenter(request: Request) -> RequestPresenter:
    """Return the presenter configured with the result media type."""
    return RequestPresenter(result_media_type=_settings(request).result_media_type)
