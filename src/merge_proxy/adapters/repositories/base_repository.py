# src/merge_proxy/adapters/repositories/base_repository.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""
BaseRedisRepository: shared mechanics for Redis-backed repositories.

Purpose:
    * Namespaced key building.
    * Uniform translation of Redis errors into ``StoreUnavailable``.
    * Per-operation latency histogram.
    * Injectable UTC clock.

Layer: adapters / repositories

Notes:
    No business logic; lifecycle decisions belong to the use cases.
"""

from __future__ import annotations

import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress
from datetime import datetime

from redis.asyncio.client import Redis
from redis.exceptions import RedisError

from merge_proxy.domain.exceptions.requests import StoreUnavailable
from merge_proxy.domain.services.clock import Clock, utc_now
from merge_proxy.infrastructure.logging.logger import get_json_logger
from merge_proxy.infrastructure.observability.metrics import (
    get_store_operation_duration_seconds,
)

logger = get_json_logger(__name__)


class BaseRedisRepository:
    """Base class for repositories stored in Redis."""

    #: Label used for metrics and error details (e.g. ``ledger``).
    store_name: str = "redis"

    def __init__(self, redis: Redis, *, namespace: str, clock: Clock | None = None) -> None:
        """Initialize the repository.

        Args:
            redis: Shared asyncio Redis client.
            namespace: Key prefix owned by this service (e.g. ``merge_proxy:v1``).
            clock: Optional UTC clock; defaults to :func:`utc_now`.
        """
        self._redis = redis
        self._ns = namespace.rstrip(":")
        self._clock: Clock = clock or utc_now

    def _k(self, *segments: str) -> str:
        """Build a namespaced key from segments."""
        return ":".join((self._ns, self.store_name, *segments))

    def _now(self) -> datetime:
        return self._clock()

    @asynccontextmanager
    async def _op(self, operation: str) -> AsyncIterator[None]:
        """Time a store operation and map Redis failures to ``StoreUnavailable``.

        Args:
            operation: Logical operation name for metrics and logs.

        Raises:
            StoreUnavailable: If Redis raised while the block ran.
        """
        start = time.perf_counter()
        try:
            yield
        except RedisError as exc:
            logger.error(
                "store.unavailable",
                extra={"store": self.store_name, "operation": operation, "error": str(exc)},
            )
            raise StoreUnavailable(
                f"{self.store_name} store unavailable during {operation}",
                details={"store": self.store_name, "operation": operation},
            ) from exc
        finally:
            with suppress(Exception):
                get_store_operation_duration_seconds().labels(
                    store=self.store_name,
                    operation=operation,
                ).observe(time.perf_counter() - start)
