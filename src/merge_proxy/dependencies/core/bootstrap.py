# src/merge_proxy/dependencies/core/bootstrap.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Core bootstrap for the HTTP intake API.

This module owns the lifecycle of shared infrastructure used by the FastAPI
app. It is intentionally thin: configuration is read from Settings, and the
Redis client, ledger and result store are built once and handed to routers
through ``app.state``.

The single public surface is :func:`bootstrap`, an async context manager that
yields the resolved state.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI
from redis.asyncio.client import Redis

from merge_proxy.adapters.repositories.redis_request_ledger import RedisRequestLedger
from merge_proxy.adapters.repositories.redis_result_store import RedisResultStore
from merge_proxy.config.settings import Settings, get_settings
from merge_proxy.infrastructure.caching.redis_client import (
    close_redis_client,
    create_redis_client,
    ping_redis,
)
from merge_proxy.infrastructure.logging.logger import get_json_logger

logger = get_json_logger(__name__)


class RedisHealthProbe:
    """Readiness probe pinging the shared Redis client."""

    def __init__(self, redis: Redis) -> None:
        self._redis = redis

    async def redis(self) -> tuple[bool, str | None]:
        return await ping_redis(self._redis)


@dataclass
class BootstrapState:
    """State yielded by the bootstrap context manager."""

    settings: Settings
    redis: Redis
    ledger: RedisRequestLedger
    results: RedisResultStore
    health_probe: RedisHealthProbe


def build_stores(settings: Settings, redis: Redis) -> tuple[RedisRequestLedger, RedisResultStore]:
    """Build the ledger and result store sharing one Redis client."""
    ledger = RedisRequestLedger(
        redis,
        namespace=settings.key_namespace,
        stream_maxlen=settings.promotion_stream_maxlen,
    )
    results = RedisResultStore(redis, namespace=settings.key_namespace)
    return ledger, results


@asynccontextmanager
async def bootstrap(
    app: FastAPI,
    *,
    settings: Settings | None = None,
    redis: Redis | None = None,
) -> AsyncGenerator[BootstrapState, None]:
    """Initialize and teardown shared infrastructure.

    Args:
        app: FastAPI application instance; the state is published on ``app.state``.
        settings: Settings override; defaults to :func:`get_settings`.
        redis: Pre-built client (tests). When given, it is not closed on exit.

    Yields:
        BootstrapState: Resolved settings, Redis client and stores.
    """
    settings = settings or get_settings()
    logger.info("bootstrap.start")

    owns_redis = redis is None
    client = redis if redis is not None else create_redis_client(settings)
    ledger, results = build_stores(settings, client)
    state = BootstrapState(
        settings=settings,
        redis=client,
        ledger=ledger,
        results=results,
        health_probe=RedisHealthProbe(client),
    )

    app.state.settings = state.settings
    app.state.ledger = state.ledger
    app.state.results = state.results
    app.state.health_probe = state.health_probe

    try:
        yield state
    finally:
        if owns_redis:
            try:
                await close_redis_client(client)
            except Exception:
                logger.exception("bootstrap.redis_close_failed")
        logger.info("bootstrap.stop")
