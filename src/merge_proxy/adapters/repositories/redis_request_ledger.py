# src/merge_proxy/adapters/repositories/redis_request_ledger.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Redis Request Ledger

Purpose:
    Implement ``RequestLedgerProtocol`` on Redis. Each record is one JSON
    string key whose Redis TTL equals the retention window; expiry is also
    checked against ``expires_at`` so a record is unreadable the moment its
    window closes even if Redis has not evicted it yet.

Atomicity:
    * ``insert_if_absent`` runs WATCH/MULTI: the record SET and the promotion
      trigger XADD commit together or not at all, so exactly one trigger is
      published per successful insert.
    * ``update_status`` is a WATCH/MULTI compare-and-set that only moves a
      record forward and preserves its remaining TTL (``KEEPTTL``).

Layer: adapters / repositories
"""

from __future__ import annotations

import json
from typing import Final

from redis.asyncio.client import Redis
from redis.exceptions import WatchError

from merge_proxy.adapters.queues.redis_promotion_stream import (
    RECORD_FIELD,
    promotion_stream_key,
)
from merge_proxy.adapters.repositories.base_repository import BaseRedisRepository
from merge_proxy.domain.entities.request_record import RequestRecord
from merge_proxy.domain.enums.request_status import RequestStatus
from merge_proxy.domain.exceptions.requests import MalformedRecord, StoreUnavailable
from merge_proxy.domain.services.clock import Clock
from merge_proxy.infrastructure.logging.logger import get_json_logger

__all__ = ["RedisRequestLedger"]

logger = get_json_logger(__name__)

_MAX_WATCH_RETRIES: Final[int] = 32


def _encode(record: RequestRecord) -> str:
    return json.dumps(record.to_payload(), separators=(",", ":"))


def _decode(request_id: str, raw: str) -> RequestRecord:
    try:
        return RequestRecord.from_payload(json.loads(raw))
    except (KeyError, TypeError, ValueError) as exc:
        raise MalformedRecord(
            "stored request record could not be decoded",
            details={"request_id": request_id},
        ) from exc


class RedisRequestLedger(BaseRedisRepository):
    """Request ledger backed by Redis string keys and a promotion stream."""

    store_name = "ledger"

    def __init__(
        self,
        redis: Redis,
        *,
        namespace: str,
        stream_maxlen: int = 10_000,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the ledger.

        Args:
            redis: Shared asyncio Redis client (``decode_responses=True``).
            namespace: Key prefix shared with the promotion stream reader.
            stream_maxlen: Approximate cap applied on every trigger append.
            clock: Optional UTC clock used for logical expiry.
        """
        super().__init__(redis, namespace=namespace, clock=clock)
        self._stream = promotion_stream_key(namespace)
        self._stream_maxlen = stream_maxlen

    async def get(self, request_id: str) -> RequestRecord | None:
        """Return the live record, or ``None`` if absent or expired.

        Raises:
            MalformedRecord: If the stored value cannot be decoded.
            StoreUnavailable: If Redis is unreachable.
        """
        async with self._op("get"):
            raw = await self._redis.get(self._k(request_id))
        if raw is None:
            return None
        record = _decode(request_id, raw)
        if record.is_expired(self._now()):
            return None
        return record

    async def insert_if_absent(self, record: RequestRecord) -> bool:
        """Insert ``record`` and publish its trigger unless a live record exists.

        An expired or undecodable value under the same key counts as absent
        and is replaced.
        """
        key = self._k(record.request_id)
        payload = _encode(record)
        ttl = record.remaining_ttl_seconds(self._now())

        async with self._op("insert_if_absent"), self._redis.pipeline(transaction=True) as pipe:
            for _ in range(_MAX_WATCH_RETRIES):
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    if raw is not None and self._is_live(record.request_id, raw):
                        await pipe.unwatch()
                        return False
                    pipe.multi()
                    pipe.set(key, payload, ex=ttl)
                    pipe.xadd(
                        self._stream,
                        {RECORD_FIELD: payload},
                        maxlen=self._stream_maxlen,
                        approximate=True,
                    )
                    await pipe.execute()
                except WatchError:
                    continue
                logger.info(
                    "ledger.inserted",
                    extra={"request_id": record.request_id, "ttl_s": ttl},
                )
                return True
        raise StoreUnavailable(
            "ledger insert kept conflicting with concurrent writers",
            details={"request_id": record.request_id},
        )

    async def update_status(
        self,
        request_id: str,
        new_status: RequestStatus,
        result_ref: str | None = None,
    ) -> bool:
        """Compare-and-set the status forward, keeping the record's TTL.

        Returns:
            False if the record is absent, expired, undecodable, or already
            at or past ``new_status``.
        """
        key = self._k(request_id)

        async with self._op("update_status"), self._redis.pipeline(transaction=True) as pipe:
            for _ in range(_MAX_WATCH_RETRIES):
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    updated = self._advance(request_id, raw, new_status, result_ref)
                    if updated is None:
                        await pipe.unwatch()
                        return False
                    pipe.multi()
                    pipe.set(key, _encode(updated), keepttl=True, xx=True)
                    results = await pipe.execute()
                except WatchError:
                    continue
                applied = bool(results and results[0])
                if applied:
                    logger.info(
                        "ledger.status_updated",
                        extra={"request_id": request_id, "status": new_status.value},
                    )
                return applied
        raise StoreUnavailable(
            "ledger update kept conflicting with concurrent writers",
            details={"request_id": request_id},
        )

    async def delete(self, request_id: str) -> None:
        """Delete the record; absent records are not an error."""
        async with self._op("delete"):
            await self._redis.delete(self._k(request_id))

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    def _is_live(self, request_id: str, raw: str) -> bool:
        try:
            existing = _decode(request_id, raw)
        except MalformedRecord:
            logger.warning("ledger.malformed_replaced", extra={"request_id": request_id})
            return False
        return not existing.is_expired(self._now())

    def _advance(
        self,
        request_id: str,
        raw: str | None,
        new_status: RequestStatus,
        result_ref: str | None,
    ) -> RequestRecord | None:
        """Return the moved-forward record, or ``None`` when the CAS must not apply."""
        if raw is None:
            return None
        try:
            current = _decode(request_id, raw)
        except MalformedRecord:
            logger.warning("ledger.malformed_update_skipped", extra={"request_id": request_id})
            return None
        if current.is_expired(self._now()):
            return None
        if not current.status.can_transition_to(new_status):
            return None
        try:
            return current.with_status(new_status, result_ref=result_ref)
        except ValueError:
            # result_ref/status pairing rejected by the entity.
            return None
