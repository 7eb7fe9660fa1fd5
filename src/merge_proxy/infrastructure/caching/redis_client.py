# src/merge_proxy/infrastructure/caching/redis_client.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Async Redis client factory.

The API bootstrap and the worker CLI each create one client per process and
hand it to the ledger, result store and promotion stream explicitly; there is
no module-level client.
"""

from __future__ import annotations

import logging
import time
from contextlib import suppress
from typing import Any, cast

import redis.asyncio as aioredis
from redis.asyncio.client import Redis
from redis.exceptions import RedisError

from merge_proxy.config.settings import Settings
from merge_proxy.infrastructure.observability.metrics import get_readyz_redis_latency_seconds

__all__ = ["create_redis_client", "close_redis_client", "ping_redis"]

logger = logging.getLogger(__name__)


def create_redis_client(settings: Settings) -> Redis:
    """Build the asyncio Redis client from settings.

    Responses are decoded to ``str``; the result store encodes blobs as UTF-8.
    """
    # Untyped shim so mypy does not care whether stubs type `from_url`.
    _from_url: Any = aioredis.from_url
    client = _from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        health_check_interval=settings.redis_health_check_interval_s,
        socket_timeout=settings.redis_socket_timeout_s,
        socket_connect_timeout=settings.redis_socket_connect_timeout_s,
    )
    return cast(Redis, client)


async def close_redis_client(client: Redis) -> None:
    """Close a client created by :func:`create_redis_client`."""
    with suppress(RuntimeError):
        await client.aclose()


async def ping_redis(client: Redis) -> tuple[bool, str | None]:
    """Probe Redis with PING and record the latency.

    Returns:
        ``(is_ok, detail)`` where ``detail`` carries the error message on failure.
    """
    start = time.perf_counter()
    try:
        await client.ping()
    except (RedisError, OSError) as exc:
        logger.warning("redis.ping_failed", extra={"error": str(exc)})
        return False, str(exc)
    finally:
        with suppress(Exception):
            get_readyz_redis_latency_seconds().observe(time.perf_counter() - start)
    return True, None
