# src/merge_proxy/adapters/repositories/redis_result_store.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Redis Result Store

Purpose:
    Implement ``ResultStoreProtocol`` with one Redis string per blob. Blobs
    are written with the remaining lifetime of the record that owns them, so
    a result never outlives its record by more than the rounding second.

Layer: adapters / repositories
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable

from redis.exceptions import WatchError

from merge_proxy.adapters.repositories.base_repository import BaseRedisRepository
from merge_proxy.infrastructure.logging.logger import get_json_logger

__all__ = ["RedisResultStore"]

logger = get_json_logger(__name__)


class RedisResultStore(BaseRedisRepository):
    """Blob store for upstream response bodies.

    The shared client decodes responses, so blobs must be UTF-8 text: they
    are stored decoded and re-encoded on read. Upstream bodies are produced
    as ``str`` and always satisfy this; other bytes are rejected on ``put``
    rather than stored lossily.
    """

    store_name = "results"

    async def put(self, key: str, data: bytes, *, ttl_seconds: int) -> None:
        """Store ``data`` under ``key`` with a TTL of at least one second.

        Raises:
            ValueError: If ``data`` is not valid UTF-8.
            StoreUnavailable: If Redis is unreachable.
        """
        text = data.decode("utf-8")
        async with self._op("put"):
            await self._redis.set(
                self._k(key),
                text,
                ex=max(1, int(ttl_seconds)),
            )

    async def get(self, key: str) -> bytes | None:
        """Return the blob or ``None`` if it is absent."""
        async with self._op("get"):
            raw = await self._redis.get(self._k(key))
        if raw is None:
            return None
        return raw.encode("utf-8")

    async def delete(self, key: str) -> None:
        """Delete the blob; absent keys are not an error."""
        async with self._op("delete"):
            await self._redis.delete(self._k(key))

    async def iter_keys(self) -> AsyncIterator[str]:
        """Yield every stored result key without the namespace prefix."""
        prefix = self._k("")
        async with self._op("scan"):
            async for full_key in self._redis.scan_iter(match=f"{prefix}*", count=500):
                yield full_key[len(prefix):]

    async def delete_if_orphaned(
        self,
        key: str,
        is_orphaned: Callable[[], Awaitable[bool]],
    ) -> bool:
        """Delete ``key`` only if it is still orphaned and was not rewritten meanwhile.

        The blob key is watched before ``is_orphaned`` runs, so a promotion
        that writes the same key after the check aborts the delete.

        Returns:
            True if the blob was deleted.
        """
        full_key = self._k(key)
        async with self._op("delete_if_orphaned"), self._redis.pipeline(transaction=True) as pipe:
            await pipe.watch(full_key)
            if not await is_orphaned():
                await pipe.unwatch()
                return False
            pipe.multi()
            pipe.delete(full_key)
            try:
                await pipe.execute()
            except WatchError:
                logger.info("results.orphan_rewritten", extra={"result_ref": key})
                return False
        return True
