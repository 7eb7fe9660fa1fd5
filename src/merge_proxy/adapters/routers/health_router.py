# Copyright (c)
# SPDX-License-Identifier: MIT
"""Health endpoints (Adapters Layer).

Purpose:
    Expose liveness and readiness signals suitable for container orchestrators
    and load balancers while keeping this adapters layer decoupled from
    infrastructure.

Design:
    * Adapters boundary respected: no direct Redis imports. The probe is
      placed on ``app.state.health_probe`` by the bootstrap.
    * Deterministic OpenAPI: stable operation_id/summary; typed response models.
    * Without a configured probe readiness reports "degraded" (503).
"""

from __future__ import annotations

import time
import typing as t
from enum import Enum
from typing import Annotated, Protocol

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import Field

from merge_proxy.adapters.schemas.http.base import BaseHTTPSchema
from merge_proxy.infrastructure.logging.logger import get_json_logger

logger = get_json_logger(__name__)
router = APIRouter()


# -----------------------------------------------------------------------------
# Contracts (types & DTOs)
# -----------------------------------------------------------------------------


class HealthState(str, Enum):
    """Overall service health classification."""

    OK = "ok"
    DEGRADED = "degraded"


class CheckResult(BaseHTTPSchema):
    """Result of a single dependency check.

    Attributes:
        name: Logical name for the dependency (``redis``).
        status: "ok" when the probe succeeded, otherwise "down".
        detail: Optional diagnostic detail (e.g., exception message).
        duration_ms: Time spent on the probe in milliseconds.
    """

    name: str = Field(..., examples=["redis"])
    status: t.Literal["ok", "down"]
    detail: str | None = None
    duration_ms: float


class ReadinessResponse(BaseHTTPSchema):
    """Aggregated readiness response."""

    status: HealthState
    checks: list[CheckResult] = Field(default_factory=list)


class LivenessResponse(BaseHTTPSchema):
    """Liveness response indicating the process is running."""

    status: t.Literal["ok"] = "ok"


# -----------------------------------------------------------------------------
# Probe protocol and default implementation
# -----------------------------------------------------------------------------


class HealthProbe(Protocol):
    """Protocol for minimal, non-destructive dependency checks."""

    async def redis(self) -> tuple[bool, str | None]:
        """Probe Redis (ledger, result store and promotion stream).

        Returns:
            ``(is_ok, detail)`` where ``detail`` is an optional diagnostic message.
        """
        ...


class NoopProbe:
    """Probe that performs no I/O and always reports failure."""

    async def redis(self) -> tuple[bool, str | None]:
        """Return a failing result indicating no Redis probe is configured."""
        return False, "no redis probe configured"


def get_health_probe(request: Request) -> HealthProbe:
    """Return the probe the bootstrap registered, or :class:`NoopProbe`."""
    probe: HealthProbe | None = getattr(request.app.state, "health_probe", None)
    return probe if probe is not None else NoopProbe()


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------


@router.get(
    "/healthz",
    summary="Liveness",
    operation_id="health_liveness",
    response_model=LivenessResponse,
    status_code=status.HTTP_200_OK,
)
async def liveness() -> LivenessResponse:
    """Return a fast liveness signal (no external I/O)."""
    return LivenessResponse()


@router.get(
    "/readyz",
    summary="Readiness",
    operation_id="health_readiness",
    response_model=ReadinessResponse,
    responses={503: {"description": "Service degraded", "model": ReadinessResponse}},
)
async def readiness(
    response: Response,
    probe: Annotated[HealthProbe, Depends(get_health_probe)],
) -> ReadinessResponse:
    """Ping Redis; 200 when reachable, 503 otherwise."""
    start = time.perf_counter()
    ok, detail = await probe.redis()
    duration_ms = (time.perf_counter() - start) * 1000.0

    check = CheckResult(
        name="redis",
        status="ok" if ok else "down",
        detail=detail,
        duration_ms=duration_ms,
    )
    if not ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    payload = ReadinessResponse(
        status=HealthState.OK if ok else HealthState.DEGRADED,
        checks=[check],
    )
    logger.info(
        "readiness_probe",
        extra={"overall": payload.status, "checks": [check.model_dump_http()]},
    )
    return payload
