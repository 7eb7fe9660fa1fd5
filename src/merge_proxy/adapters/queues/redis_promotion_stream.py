# src/merge_proxy/adapters/queues/redis_promotion_stream.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Promotion triggers over a Redis Stream (consumer side).

Synopsis:
    The request ledger appends one stream entry per successful
    ``insert_if_absent`` inside the same transaction as the insert. Promotion
    workers read the stream through a shared consumer group so each trigger
    is handed to one worker at a time; entries stay pending until
    acknowledged, giving at-least-once delivery.

Wire format:
    Stream ``<namespace>:promotions``; each entry has a single field
    ``record`` holding the JSON record payload.

Layer:
    adapters/queues
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any, Final

from redis.asyncio.client import Redis
from redis.exceptions import RedisError, ResponseError

from merge_proxy.domain.entities.request_record import RequestRecord
from merge_proxy.domain.exceptions.requests import StoreUnavailable
from merge_proxy.domain.interfaces.queues.promotion_queue import PromotionTrigger
from merge_proxy.infrastructure.logging.logger import get_json_logger

__all__ = ["RECORD_FIELD", "RedisPromotionStream", "promotion_stream_key"]

logger = get_json_logger(__name__)

RECORD_FIELD: Final[str] = "record"


def promotion_stream_key(namespace: str) -> str:
    """Return the stream key promotion triggers are appended to."""
    return f"{namespace.rstrip(':')}:promotions"


def _decode_trigger(message_id: str, fields: dict[str, Any] | None) -> PromotionTrigger:
    """Decode one stream entry; undecodable entries carry ``record=None``."""
    if not fields or RECORD_FIELD not in fields:
        logger.warning("promotion.trigger_empty", extra={"message_id": message_id})
        return PromotionTrigger(message_id=message_id, record=None)
    try:
        record = RequestRecord.from_payload(json.loads(fields[RECORD_FIELD]))
    except (KeyError, TypeError, ValueError) as exc:
        logger.warning(
            "promotion.trigger_malformed",
            extra={"message_id": message_id, "error": str(exc)},
        )
        return PromotionTrigger(message_id=message_id, record=None)
    return PromotionTrigger(message_id=message_id, record=record)


class RedisPromotionStream:
    """Consumer-group reader implementing ``PromotionTriggerSource``."""

    def __init__(
        self,
        redis: Redis,
        *,
        namespace: str,
        group: str,
        consumer: str,
    ) -> None:
        """Initialize the reader.

        Args:
            redis: Shared asyncio Redis client.
            namespace: Key prefix shared with the request ledger.
            group: Consumer group name.
            consumer: This worker's consumer name within the group.
        """
        self._redis = redis
        self._stream = promotion_stream_key(namespace)
        self._group = group
        self._consumer = consumer

    @property
    def stream(self) -> str:
        """Return the stream key."""
        return self._stream

    async def ensure_group(self) -> None:
        """Create the consumer group (and the stream) if missing."""
        try:
            await self._redis.xgroup_create(self._stream, self._group, id="0", mkstream=True)
        except ResponseError as exc:
            if "BUSYGROUP" not in str(exc):
                raise StoreUnavailable(
                    "could not create promotion consumer group",
                    details={"stream": self._stream, "group": self._group},
                ) from exc
        except RedisError as exc:
            raise StoreUnavailable(
                "promotion stream unavailable",
                details={"stream": self._stream},
            ) from exc

    async def read(
        self,
        *,
        count: int,
        block_ms: int,
        pending: bool = False,
    ) -> Sequence[PromotionTrigger]:
        """Read new triggers, or this consumer's pending ones when ``pending``."""
        try:
            response = await self._redis.xreadgroup(
                self._group,
                self._consumer,
                {self._stream: "0" if pending else ">"},
                count=count,
                block=None if pending else block_ms,
            )
        except RedisError as exc:
            raise StoreUnavailable(
                "promotion stream unavailable",
                details={"stream": self._stream},
            ) from exc

        triggers: list[PromotionTrigger] = []
        for _stream, entries in response or []:
            for message_id, fields in entries:
                triggers.append(_decode_trigger(message_id, fields))
        return triggers

    async def ack(self, message_id: str) -> None:
        """Acknowledge a trigger so it is not redelivered."""
        try:
            await self._redis.xack(self._stream, self._group, message_id)
        except RedisError as exc:
            raise StoreUnavailable(
                "promotion stream unavailable",
                details={"stream": self._stream, "message_id": message_id},
            ) from exc

    async def reclaim(self, *, min_idle_ms: int, count: int) -> Sequence[PromotionTrigger]:
        """Claim triggers another consumer left pending for ``min_idle_ms``."""
        try:
            response = await self._redis.xautoclaim(
                self._stream,
                self._group,
                self._consumer,
                min_idle_time=min_idle_ms,
                start_id="0-0",
                count=count,
            )
        except RedisError as exc:
            raise StoreUnavailable(
                "promotion stream unavailable",
                details={"stream": self._stream},
            ) from exc

        # [next_start_id, [(id, fields), ...], deleted_ids?]
        entries = response[1] if len(response) > 1 else []
        return [_decode_trigger(message_id, fields) for message_id, fields in entries]
