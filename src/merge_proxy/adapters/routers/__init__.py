# Copyright (c)
# SPDX-License-Identifier: MIT
"""HTTP routers (Adapters Layer)."""

from __future__ import annotations

from merge_proxy.adapters.routers.health_router import router as health_router
from merge_proxy.adapters.routers.metrics_router import router as metrics_router
from merge_proxy.adapters.routers.requests_router import router as requests_router

__all__ = ["health_router", "metrics_router", "requests_router"]
