# tests/unit/adapters/queues/test_redis_promotion_stream.py
from __future__ import annotations

from datetime import timedelta

import pytest

from merge_proxy.adapters.queues.redis_promotion_stream import (
    RECORD_FIELD,
    promotion_stream_key,
)
from merge_proxy.domain.entities.request_record import RequestRecord


def _record(clock, rid: str = "b" * 64) -> RequestRecord:
    return RequestRecord.new_queued(
        request_id=rid,
        credential="A",
        lookup_key="123-456",
        retention=timedelta(hours=1),
        now=clock(),
    )


def test_stream_key_ignores_trailing_separator() -> None:
    assert promotion_stream_key("ns:") == "ns:promotions"
    assert promotion_stream_key("ns") == "ns:promotions"


@pytest.mark.asyncio
async def test_ensure_group_is_idempotent(stream) -> None:
    await stream.ensure_group()
    await stream.ensure_group()


@pytest.mark.asyncio
async def test_inserted_record_is_delivered_as_trigger(stream, ledger, clock) -> None:
    await stream.ensure_group()
    rec = _record(clock)
    await ledger.insert_if_absent(rec)

    triggers = await stream.read(count=10, block_ms=1)
    assert len(triggers) == 1
    assert triggers[0].record == rec

    # Delivered but unacknowledged: not new, still pending.
    assert await stream.read(count=10, block_ms=1) == []
    pending = await stream.read(count=10, block_ms=1, pending=True)
    assert [t.message_id for t in pending] == [triggers[0].message_id]

    await stream.ack(triggers[0].message_id)
    assert await stream.read(count=10, block_ms=1, pending=True) == []


@pytest.mark.asyncio
async def test_undecodable_entry_yields_trigger_without_record(stream, fake_redis) -> None:
    await stream.ensure_group()
    await fake_redis.xadd(stream.stream, {RECORD_FIELD: "{garbage"})
    await fake_redis.xadd(stream.stream, {"other": "x"})

    triggers = await stream.read(count=10, block_ms=1)
    assert [t.record for t in triggers] == [None, None]
