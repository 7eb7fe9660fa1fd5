# src/merge_proxy/adapters/routers/metrics_router.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Prometheus scrape endpoint (`/metrics`).

Warms the lazily created collectors so their series appear on the very
first scrape (cold start).

Layer:
    adapters/routers
"""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from merge_proxy.infrastructure.logging.logger import get_json_logger
from merge_proxy.infrastructure.observability.metrics import (
    get_intake_outcomes_total,
    get_promotion_outcomes_total,
    get_readyz_redis_latency_seconds,
    get_store_operation_duration_seconds,
    get_upstream_latency_seconds,
)

logger = get_json_logger(__name__)
router = APIRouter()


def _warm_collectors() -> None:
    try:
        get_readyz_redis_latency_seconds()
        get_intake_outcomes_total()
        get_promotion_outcomes_total()
        get_upstream_latency_seconds()
        get_store_operation_duration_seconds()
    except Exception as exc:  # pragma: no cover
        logger.debug("metrics_router.warm_failed", extra={"error": str(exc)})


@router.get("/metrics", include_in_schema=False)
async def metrics_probe() -> Response:
    """Expose Prometheus metrics in text format."""
    _warm_collectors()
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
